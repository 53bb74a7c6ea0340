"""
Employees: attendance-driven payable, salary payments and month snapshots
"""
import calendar
from datetime import datetime

import pytest

MONTH = datetime.utcnow().strftime("%Y-%m")
DAYS = calendar.monthrange(int(MONTH[:4]), int(MONTH[5:]))[1]
TODAY = datetime.utcnow().date().isoformat()


@pytest.fixture
def foreman(client, project, admin_headers):
    response = client.post("/api/v1/employees", headers=admin_headers, json={
        "project_id": project.id,
        "name": "Karim Foreman",
        "role": "Foreman",
        "type": "Fixed",
        "monthly_salary": DAYS * 1000,
    })
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def mason(client, project, admin_headers):
    response = client.post("/api/v1/employees", headers=admin_headers, json={
        "project_id": project.id,
        "name": "Bilal Mason",
        "role": "Mason",
        "type": "Daily",
        "daily_rate": 1200,
    })
    assert response.status_code == 200
    return response.json()


def pay(client, headers, employee, amount, month=MONTH, type="Salary"):
    return client.post(f"/api/v1/employees/{employee['id']}/payments", headers=headers, json={
        "month": month, "date": TODAY, "amount": amount, "type": type,
    })


def snapshot(client, headers, employee):
    employees = client.get("/api/v1/employees", headers=headers, params={"month": MONTH}).json()
    return next(e for e in employees if e["id"] == employee["id"])["snapshot"]


def test_fixed_salary_is_payable_in_full_by_default(client, admin_headers, foreman):
    month = snapshot(client, admin_headers, foreman)
    assert month["payable"] == DAYS * 1000
    assert month["paid"] == 0
    assert month["payment_status"] == "Due"
    assert month["attendance"]["present"] == DAYS


def test_unpaid_leave_is_deducted(client, admin_headers, foreman):
    response = client.put(f"/api/v1/employees/{foreman['id']}/attendance", headers=admin_headers, json={
        "month": MONTH,
        "fixed_entries": [
            {"day": 1, "status": "unpaid_leave"},
            {"day": 2, "status": "unpaid_leave"},
            {"day": 3, "status": "paid_leave"},
        ],
    })
    assert response.status_code == 200

    month = snapshot(client, admin_headers, foreman)
    assert month["payable"] == (DAYS - 2) * 1000
    assert month["attendance"]["unpaid_leave"] == 2
    assert month["attendance"]["paid_leave"] == 1


def test_daily_wage_counts_hours_and_overtime(client, admin_headers, mason):
    client.put(f"/api/v1/employees/{mason['id']}/attendance", headers=admin_headers, json={
        "month": MONTH,
        "daily_entries": [
            {"day": 1, "status": "present", "hours_worked": 8, "overtime_hours": 2},
            {"day": 2, "status": "present", "hours_worked": 4},
            {"day": 3, "status": "absent", "hours_worked": 8},
        ],
    })

    month = snapshot(client, admin_headers, mason)
    assert month["payable"] == 2100
    assert month["attendance"]["worked_days"] == 1.5
    assert month["attendance"]["overtime_hours"] == 2

    sheet = client.get(f"/api/v1/employees/{mason['id']}/attendance", headers=admin_headers,
                       params={"month": MONTH}).json()
    assert [d["day"] for d in sheet["daily_entries"]] == [1, 2, 3]
    assert sheet["fixed_entries"] == []


def test_payments_cannot_exceed_payable(client, admin_headers, foreman):
    assert pay(client, admin_headers, foreman, 5000, type="Advance").status_code == 200

    response = pay(client, admin_headers, foreman, DAYS * 1000)
    assert response.status_code == 400
    assert "Maximum allowed" in response.json()["error"]

    assert pay(client, admin_headers, foreman, DAYS * 1000 - 5000).status_code == 200
    month = snapshot(client, admin_headers, foreman)
    assert month["remaining"] == 0
    assert month["payment_status"] == "Paid"


def test_no_dues_before_the_employee_existed(client, admin_headers, foreman):
    response = pay(client, admin_headers, foreman, 100, month="2000-01")
    assert response.status_code == 400
    assert response.json()["error"].startswith("No dues for this month")


def test_attendance_cannot_drop_payable_below_paid(client, admin_headers, mason):
    client.put(f"/api/v1/employees/{mason['id']}/attendance", headers=admin_headers, json={
        "month": MONTH,
        "daily_entries": [{"day": 1, "status": "present", "hours_worked": 8}],
    })
    pay(client, admin_headers, mason, 1200, type="Wage")

    response = client.put(f"/api/v1/employees/{mason['id']}/attendance", headers=admin_headers, json={
        "month": MONTH,
        "daily_entries": [{"day": 1, "status": "absent"}],
    })
    assert response.status_code == 400
    assert response.json()["error"].startswith("Cannot save attendance")


def test_ledger_reports_totals(client, admin_headers, foreman):
    pay(client, admin_headers, foreman, 4000)

    ledger = client.get(f"/api/v1/employees/{foreman['id']}/ledger", headers=admin_headers,
                        params={"month": MONTH}).json()
    assert ledger["total"] == 1
    assert ledger["total_paid"] == 4000
    assert ledger["total_due"] == DAYS * 1000 - 4000
    assert ledger["snapshot"]["payment_status"] == "Partial"


def test_updating_a_payment_is_checked_against_payable(client, admin_headers, foreman):
    payment = pay(client, admin_headers, foreman, 4000).json()

    response = client.patch(f"/api/v1/employees/payments/{payment['id']}", headers=admin_headers,
                            json={"amount": DAYS * 1000 + 1})
    assert response.status_code == 400

    response = client.patch(f"/api/v1/employees/payments/{payment['id']}", headers=admin_headers,
                            json={"amount": 6000})
    assert response.status_code == 200
    assert response.json()["amount"] == 6000


def test_employee_with_payments_cannot_be_deleted(client, admin_headers, foreman):
    payment = pay(client, admin_headers, foreman, 1000).json()

    response = client.delete(f"/api/v1/employees/{foreman['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "1 payment record(s) exist" in response.json()["error"]

    client.delete(f"/api/v1/employees/payments/{payment['id']}", headers=admin_headers)
    response = client.delete(f"/api/v1/employees/{foreman['id']}", headers=admin_headers)
    assert response.status_code == 200


def test_site_manager_creates_employees_on_their_project(client, project, other_project, manager_headers):
    response = client.post("/api/v1/employees", headers=manager_headers, json={
        "project_id": other_project.id, "name": "Naveed Helper", "role": "Helper",
        "type": "Daily", "daily_rate": 900,
    })
    assert response.status_code == 200
    assert response.json()["project_id"] == project.id
