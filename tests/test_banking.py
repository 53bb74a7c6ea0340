"""
Bank accounts, transactions and their effect on project balances
"""
import pytest


@pytest.fixture
def account(client, super_headers):
    response = client.post("/api/v1/bank-accounts", headers=super_headers, json={
        "name": "Meezan Current", "account_number": "0101-778899", "opening_balance": 10000,
    })
    assert response.status_code == 200
    return response.json()


def transaction(client, headers, account, type, amount, project_id=None, date="2024-05-01"):
    return client.post("/api/v1/bank-transactions", headers=headers, json={
        "account_id": account["id"],
        "date": date,
        "type": type,
        "amount": amount,
        "source": "Head Office",
        "destination": "Site Cash",
        "project_id": project_id,
    })


def test_inflow_and_outflow_move_balance(client, super_headers, account):
    assert transaction(client, super_headers, account, "inflow", 2500).status_code == 200
    assert transaction(client, super_headers, account, "outflow", 4000).status_code == 200

    accounts = client.get("/api/v1/bank-accounts", headers=super_headers).json()
    assert accounts[0]["current_balance"] == 8500
    assert accounts[0]["total_inflow"] == 2500
    assert accounts[0]["total_outflow"] == 4000


def test_outflow_cannot_overdraw(client, super_headers, account):
    response = transaction(client, super_headers, account, "outflow", 10000.01)
    assert response.status_code == 400
    assert response.json()["error"].startswith("Insufficient bank balance")


def test_project_only_on_outflows(client, project, super_headers, account):
    response = transaction(client, super_headers, account, "inflow", 100, project_id=project.id)
    assert response.status_code == 400
    assert response.json()["error"] == "Project can only be set for outflow transactions"


def test_tagged_outflow_funds_project_and_reverses_on_delete(client, project, super_headers, account):
    tx = transaction(client, super_headers, account, "outflow", 3000, project_id=project.id).json()
    assert tx["project_name"] == "Riverside Towers"

    detail = client.get(f"/api/v1/projects/{project.id}", headers=super_headers).json()
    assert detail["balance"] == 3000

    ledger = client.get(f"/api/v1/projects/{project.id}/ledger", headers=super_headers).json()
    assert ledger["balance"] == 3000
    assert [row["type"] for row in ledger["rows"]] == ["bank_outflow"]

    assert client.delete(f"/api/v1/bank-transactions/{tx['id']}", headers=super_headers).status_code == 200
    detail = client.get(f"/api/v1/projects/{project.id}", headers=super_headers).json()
    assert detail["balance"] == 0
    account_after = client.get("/api/v1/bank-accounts", headers=super_headers).json()[0]
    assert account_after["current_balance"] == 10000


def test_transaction_listing_filters(client, super_headers, account):
    transaction(client, super_headers, account, "inflow", 100, date="2024-05-01")
    transaction(client, super_headers, account, "inflow", 200, date="2024-06-01")

    result = client.get("/api/v1/bank-transactions", headers=super_headers, params={
        "start_date": "2024-05-15", "type": "inflow",
    }).json()
    assert result["total"] == 1
    assert result["rows"][0]["amount"] == 200


def test_account_with_transactions_cannot_be_deleted(client, super_headers, account):
    transaction(client, super_headers, account, "inflow", 100)
    response = client.delete(f"/api/v1/bank-accounts/{account['id']}", headers=super_headers)
    assert response.status_code == 400


def test_only_super_admin_moves_money(client, admin_headers, account):
    response = transaction(client, admin_headers, account, "inflow", 100)
    assert response.status_code == 403
