"""
Contractor ledger tests: FIFO allocation, payment guard and delete rules
"""
import pytest

from sitebooks.models import ContractorPaymentAllocation


@pytest.fixture
def contractor(client, project, admin_headers):
    response = client.post("/api/v1/contractors", headers=admin_headers, json={
        "name": "Bilal Masonry", "phone": "0300-1234567", "project_id": project.id,
    })
    assert response.status_code == 200
    return response.json()


def add_entry(client, headers, contractor, amount, date):
    response = client.post("/api/v1/contractors/entries", headers=headers, json={
        "contractor_id": contractor["id"], "date": date, "amount": amount,
    })
    assert response.status_code == 200, response.json()
    return response.json()


def add_payment(client, headers, contractor, amount, date):
    return client.post(f"/api/v1/contractors/{contractor['id']}/payments", headers=headers, json={
        "date": date, "amount": amount, "payment_method": "Bank",
    })


def test_entry_payment_and_ledger(client, project, admin_headers, contractor):
    add_entry(client, admin_headers, contractor, 1000, "2024-01-01")
    payment = add_payment(client, admin_headers, contractor, 600, "2024-01-02")
    assert payment.status_code == 200

    ledger = client.get("/api/v1/contractors/ledger", headers=admin_headers, params={
        "project_id": project.id, "month": "2024-01",
    }).json()
    assert ledger["total_amount"] == 1000
    assert ledger["total_paid"] == 600
    assert ledger["remaining"] == 400
    assert [row["type"] for row in ledger["rows"]] == ["payment", "entry"]

    entry_row = ledger["rows"][1]
    assert entry_row["paid_amount"] == 600
    assert entry_row["remaining"] == 400

    detail = client.get(f"/api/v1/contractors/{contractor['id']}", headers=admin_headers).json()
    assert detail["remaining"] == 400


def test_payment_allocates_oldest_entries_first(client, db, admin_headers, contractor):
    first = add_entry(client, admin_headers, contractor, 500, "2024-02-01")
    second = add_entry(client, admin_headers, contractor, 500, "2024-02-10")
    add_payment(client, admin_headers, contractor, 700, "2024-02-15")

    allocations = {a.entry_id: float(a.amount) for a in db.query(ContractorPaymentAllocation).all()}
    assert allocations == {first["id"]: 500.0, second["id"]: 200.0}


def test_overpayment_is_rejected(client, admin_headers, contractor):
    add_entry(client, admin_headers, contractor, 300, "2024-03-01")
    response = add_payment(client, admin_headers, contractor, 301, "2024-03-02")
    assert response.status_code == 400
    assert response.json()["error"] == "This payment would overpay the contractor. Remaining balance is 300.00"


def test_deleting_payment_cascades_allocations(client, db, admin_headers, contractor):
    add_entry(client, admin_headers, contractor, 1000, "2024-01-01")
    first = add_payment(client, admin_headers, contractor, 400, "2024-01-02").json()
    add_payment(client, admin_headers, contractor, 300, "2024-01-03")

    response = client.delete(f"/api/v1/contractors/payments/{first['id']}", headers=admin_headers)
    assert response.status_code == 200

    db.expire_all()
    allocations = db.query(ContractorPaymentAllocation).all()
    assert len(allocations) == 1
    assert float(allocations[0].amount) == 300.0
    assert allocations[0].payment_id != first["id"]


def test_deleting_entry_is_blocked_when_it_would_overpay(client, admin_headers, contractor):
    entry = add_entry(client, admin_headers, contractor, 1000, "2024-01-01")
    add_payment(client, admin_headers, contractor, 600, "2024-01-02")

    response = client.delete(f"/api/v1/contractors/entries/{entry['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "would overpay the contractor" in response.json()["error"]


def test_unpaid_entry_can_be_deleted(client, admin_headers, contractor):
    entry = add_entry(client, admin_headers, contractor, 250, "2024-01-05")
    response = client.delete(f"/api/v1/contractors/entries/{entry['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Entry deleted successfully"}


def test_contractor_with_balance_cannot_be_deleted(client, admin_headers, contractor):
    add_entry(client, admin_headers, contractor, 800, "2024-01-01")
    response = client.delete(f"/api/v1/contractors/{contractor['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "remaining amount of 800.00" in response.json()["error"]


def test_ledger_needs_month_or_contractor(client, project, admin_headers, contractor):
    response = client.get("/api/v1/contractors/ledger", headers=admin_headers, params={"project_id": project.id})
    assert response.status_code == 400

    add_entry(client, admin_headers, contractor, 100, "2023-12-01")
    add_entry(client, admin_headers, contractor, 200, "2024-01-01")
    all_time = client.get("/api/v1/contractors/ledger", headers=admin_headers, params={
        "contractor_id": contractor["id"],
    }).json()
    assert all_time["total"] == 2
    assert all_time["total_amount"] == 300


def test_site_manager_entries_and_scoping(client, project, other_project, admin_headers, manager_headers):
    own = client.post("/api/v1/contractors", headers=manager_headers, json={"name": "Site Crew"}).json()
    assert own["project_id"] == project.id

    foreign = client.post("/api/v1/contractors", headers=admin_headers, json={
        "name": "Other Crew", "project_id": other_project.id,
    }).json()

    listed = client.get("/api/v1/contractors", headers=manager_headers, params={"project_id": other_project.id})
    assert [c["name"] for c in listed.json()] == ["Site Crew"]

    response = client.get(f"/api/v1/contractors/{foreign['id']}", headers=manager_headers)
    assert response.status_code == 404
    assert response.json()["kind"] == "access_denied"

    response = client.delete(f"/api/v1/contractors/{own['id']}", headers=manager_headers)
    assert response.status_code == 403
