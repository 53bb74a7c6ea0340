"""
Every record reads back with the fields it was created with
"""
import pytest


def fetch_one(path):
    def fetch(client, headers, created):
        return client.get(f"{path}/{created['id']}", headers=headers).json()
    return fetch


def fetch_from_list(path):
    def fetch(client, headers, created):
        return next(r for r in client.get(path, headers=headers).json() if r["id"] == created["id"])
    return fetch


CASES = [
    ("/api/v1/contractors", lambda pid: {
        "name": "Pervaiz Steel Fixers", "phone": "0300-1234567", "description": "Rebar crew", "project_id": pid,
    }, fetch_one("/api/v1/contractors")),
    ("/api/v1/machines", lambda pid: {
        "name": "JCB 3CX Backhoe", "ownership": "Company Owned", "hourly_rate": 3200.5, "project_id": pid,
    }, fetch_one("/api/v1/machines")),
    ("/api/v1/vendors", lambda pid: {
        "name": "Lucky Cement Traders", "phone": "042-3571122", "description": "Cement and sand", "project_id": pid,
    }, fetch_one("/api/v1/vendors")),
    ("/api/v1/employees", lambda pid: {
        "project_id": pid, "name": "Karim Foreman", "role": "Foreman", "type": "Fixed",
        "monthly_salary": 65000, "phone": "0321-7654321",
    }, fetch_one("/api/v1/employees")),
    ("/api/v1/expenses", lambda pid: {
        "project_id": pid, "date": "2024-04-12", "description": "Generator diesel", "category": "Fuel",
        "payment_mode": "Online", "amount": 18250.75,
    }, fetch_one("/api/v1/expenses")),
    ("/api/v1/consumable-items", lambda pid: {
        "project_id": pid, "name": "Crush 3/4", "unit": "cft",
    }, fetch_one("/api/v1/consumable-items")),
    ("/api/v1/non-consumable-items", lambda pid: {
        "name": "Steel Prop", "category": "Shuttering", "unit": "piece",
    }, fetch_one("/api/v1/non-consumable-items")),
    ("/api/v1/bank-accounts", lambda pid: {
        "name": "Meezan Current", "account_number": "0101-778899", "opening_balance": 250000.25,
    }, fetch_from_list("/api/v1/bank-accounts")),
]


@pytest.mark.parametrize("path,make_payload,fetch", CASES, ids=[c[0].rsplit("/", 1)[-1] for c in CASES])
def test_create_then_fetch_returns_the_same_fields(client, project, super_headers, path, make_payload, fetch):
    payload = make_payload(project.id)
    response = client.post(path, headers=super_headers, json=payload)
    assert response.status_code == 200, response.json()
    created = response.json()

    fetched = fetch(client, super_headers, created)
    assert {key: fetched[key] for key in created} == created
    for field, value in payload.items():
        assert created[field] == value
