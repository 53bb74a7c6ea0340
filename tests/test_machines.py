"""
Machinery: hourly entries, FIFO payments and the machine ledger
"""
import pytest


@pytest.fixture
def excavator(client, project, admin_headers):
    response = client.post("/api/v1/machines", headers=admin_headers, json={
        "name": "CAT 320 Excavator", "ownership": "Rented", "hourly_rate": 4500, "project_id": project.id,
    })
    assert response.status_code == 200
    return response.json()


def log_hours(client, headers, machine, hours, date, used_by="Foundation crew"):
    response = client.post(f"/api/v1/machines/{machine['id']}/entries", headers=headers, json={
        "date": date, "hours_worked": hours, "used_by": used_by,
    })
    assert response.status_code == 200, response.json()
    return response.json()


def pay(client, headers, machine, amount, date):
    return client.post(f"/api/v1/machines/{machine['id']}/payments", headers=headers, json={
        "date": date, "amount": amount, "payment_method": "Cash",
    })


def test_entry_cost_is_fixed_at_the_rate_when_logged(client, admin_headers, excavator):
    entry = log_hours(client, admin_headers, excavator, 2.5, "2024-02-01")
    assert entry["total_cost"] == 11250

    client.patch(f"/api/v1/machines/{excavator['id']}", headers=admin_headers, json={"hourly_rate": 5000})
    log_hours(client, admin_headers, excavator, 1, "2024-02-02")

    machine = client.get(f"/api/v1/machines/{excavator['id']}", headers=admin_headers).json()
    assert machine["hourly_rate"] == 5000
    assert machine["total_hours"] == 3.5
    assert machine["total_cost"] == 16250


def test_ledger_allocates_payments_oldest_entry_first(client, admin_headers, excavator):
    log_hours(client, admin_headers, excavator, 2, "2024-02-01")
    log_hours(client, admin_headers, excavator, 2, "2024-02-03")
    assert pay(client, admin_headers, excavator, 12000, "2024-02-03").status_code == 200

    ledger = client.get(f"/api/v1/machines/{excavator['id']}/ledger", headers=admin_headers,
                        params={"month": "2024-02"}).json()
    assert ledger["total_cost"] == 18000
    assert ledger["total_paid"] == 12000
    assert ledger["remaining"] == 6000
    assert [(r["type"], r["date"]) for r in ledger["rows"]] == [
        ("entry", "2024-02-03"), ("payment", "2024-02-03"), ("entry", "2024-02-01"),
    ]
    assert ledger["rows"][0]["paid_amount"] == 3000
    assert ledger["rows"][2]["paid_amount"] == 9000


def test_overpaying_a_machine_is_rejected(client, admin_headers, excavator):
    log_hours(client, admin_headers, excavator, 1, "2024-02-01")

    response = pay(client, admin_headers, excavator, 5000, "2024-02-02")
    assert response.status_code == 400
    assert response.json()["error"] == "This payment would overpay the machine. Remaining balance is 4,500.00"


def test_deletes_respect_the_balance(client, admin_headers, excavator):
    entry = log_hours(client, admin_headers, excavator, 2, "2024-02-01")
    payment = pay(client, admin_headers, excavator, 9000, "2024-02-02").json()

    response = client.delete(f"/api/v1/machines/entries/{entry['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "remaining balance (0.00) is less than entry cost (9,000.00)" in response.json()["error"]

    log_hours(client, admin_headers, excavator, 1, "2024-02-05")
    response = client.delete(f"/api/v1/machines/{excavator['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "remaining dues of 4,500.00" in response.json()["error"]

    assert client.delete(f"/api/v1/machines/payments/{payment['id']}", headers=admin_headers).status_code == 200
    machine = client.get(f"/api/v1/machines/{excavator['id']}", headers=admin_headers).json()
    assert machine["total_paid"] == 0
    assert machine["remaining"] == 13500


def test_site_manager_cannot_delete_machines(client, manager_headers, excavator):
    response = client.delete(f"/api/v1/machines/{excavator['id']}", headers=manager_headers)
    assert response.status_code == 403


def test_money_is_limited_to_whole_paisa(client, admin_headers, excavator):
    log_hours(client, admin_headers, excavator, 1, "2024-02-01")

    response = pay(client, admin_headers, excavator, 0.001, "2024-02-02")
    assert response.status_code == 400
    assert response.json()["kind"] == "validation"

    response = client.patch(f"/api/v1/machines/{excavator['id']}", headers=admin_headers, json={"hourly_rate": 4500.125})
    assert response.status_code == 400
    assert pay(client, admin_headers, excavator, 4499.99, "2024-02-02").status_code == 200
