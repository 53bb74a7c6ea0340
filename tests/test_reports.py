"""
Expenses and the daily cash & expenses report
"""
from datetime import datetime

import pytest

MONTH = datetime.utcnow().strftime("%Y-%m")
TODAY = datetime.utcnow().date().isoformat()


def add_expense(client, headers, project, description, category, amount, date=TODAY):
    response = client.post("/api/v1/expenses", headers=headers, json={
        "project_id": project.id,
        "date": date,
        "description": description,
        "category": category,
        "amount": amount,
    })
    assert response.status_code == 200, response.json()
    return response.json()


@pytest.fixture
def expenses(client, project, other_project, admin_headers):
    return [
        add_expense(client, admin_headers, project, "Diesel for generator", "Fuel", 3000),
        add_expense(client, admin_headers, project, "Site office tea", "Refreshments", 450, date="2024-03-02"),
        add_expense(client, admin_headers, other_project, "Diesel for roller", "Fuel", 5200),
    ]


def test_expense_list_totals_and_filters(client, project, admin_headers, expenses):
    listing = client.get("/api/v1/expenses", headers=admin_headers, params={"project_id": project.id}).json()
    assert listing["total"] == 2
    assert listing["total_amount"] == 3450
    assert [e["description"] for e in listing["expenses"]] == ["Diesel for generator", "Site office tea"]

    listing = client.get("/api/v1/expenses", headers=admin_headers, params={"search": "diesel"}).json()
    assert listing["total"] == 2
    assert listing["total_amount"] == 8200

    listing = client.get("/api/v1/expenses", headers=admin_headers, params={"category": "Refreshments"}).json()
    assert [e["amount"] for e in listing["expenses"]] == [450]


def test_expense_categories_are_distinct_and_sorted(client, admin_headers, expenses):
    categories = client.get("/api/v1/expenses/categories", headers=admin_headers).json()
    assert categories == ["Fuel", "Refreshments"]


def test_site_manager_sees_only_their_project_expenses(client, manager_headers, expenses):
    listing = client.get("/api/v1/expenses", headers=manager_headers).json()
    assert listing["total"] == 2

    foreign = expenses[2]
    response = client.get(f"/api/v1/expenses/{foreign['id']}", headers=manager_headers)
    assert response.status_code == 404


def test_site_manager_cannot_edit_expenses(client, manager_headers, expenses):
    response = client.patch(f"/api/v1/expenses/{expenses[0]['id']}", headers=manager_headers, json={"amount": 1})
    assert response.status_code == 403


def test_report_requires_a_date(client, project, admin_headers):
    response = client.get(f"/api/v1/reports/cash-expenses/{project.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Query parameter date is required (YYYY-MM-DD)"

    response = client.get(f"/api/v1/reports/cash-expenses/{project.id}", headers=admin_headers,
                          params={"date": "2024-13-01"})
    assert response.status_code == 400


def test_report_for_unknown_project(client, admin_headers):
    response = client.get("/api/v1/reports/cash-expenses/9999", headers=admin_headers, params={"date": TODAY})
    assert response.status_code == 404
    assert response.json()["error"] == "Project not found"


def test_report_lists_the_days_payments_by_name(client, project, admin_headers, expenses):
    employee = client.post("/api/v1/employees", headers=admin_headers, json={
        "project_id": project.id, "name": "Karim Foreman", "role": "Foreman",
        "type": "Fixed", "monthly_salary": 60000,
    }).json()
    response = client.post(f"/api/v1/employees/{employee['id']}/payments", headers=admin_headers, json={
        "month": MONTH, "date": TODAY, "amount": 2000, "type": "Advance", "remarks": "Eid advance",
    })
    assert response.status_code == 200

    report = client.get(f"/api/v1/reports/cash-expenses/{project.id}", headers=admin_headers,
                        params={"date": TODAY}).json()
    assert report["date"] == TODAY
    assert report["project_name"] == "Riverside Towers"
    assert [(p["entity_name"], p["entity_type"], p["amount"]) for p in report["payments"]] == [
        ("Fuel", "Expense", 3000),
        ("Karim Foreman", "Salary", 2000),
    ]
    assert report["payments"][1]["remarks"] == "Eid advance"
    assert report["total_payments"] == 5000
    assert report["opening_balances"]["project_ledger"] == 5000
    assert report["opening_balances"]["project_ledger_closing"] == 0


def test_report_includes_bank_balances(client, project, super_headers):
    account = client.post("/api/v1/bank-accounts", headers=super_headers, json={
        "name": "Meezan Current", "opening_balance": 100000,
    }).json()
    client.post("/api/v1/bank-transactions", headers=super_headers, json={
        "account_id": account["id"], "type": "outflow", "amount": 40000, "date": TODAY,
        "source": "Meezan Current", "destination": "Riverside site cash", "project_id": project.id,
    })

    report = client.get(f"/api/v1/reports/cash-expenses/{project.id}", headers=super_headers,
                        params={"date": TODAY}).json()
    bank = report["opening_balances"]["bank_accounts"][0]
    assert bank["opening_balance"] == 100000
    assert bank["closing_balance"] == 60000
    assert report["opening_balances"]["project_ledger"] == 0
    assert report["opening_balances"]["project_ledger_closing"] == 40000
    assert report["closing_balance"] == 100000


def test_report_on_a_foreign_project_is_denied(client, other_project, manager_headers):
    response = client.get(f"/api/v1/reports/cash-expenses/{other_project.id}", headers=manager_headers,
                          params={"date": TODAY})
    assert response.status_code == 404
    assert response.json()["kind"] == "access_denied"
