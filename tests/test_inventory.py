"""
Consumable inventory: purchases from vendors, vendor ledger and stock consumption
"""
import pytest


@pytest.fixture
def vendor(client, project, admin_headers):
    return client.post("/api/v1/vendors", headers=admin_headers, json={
        "name": "Lucky Cement Traders", "project_id": project.id,
    }).json()


@pytest.fixture
def cement(client, project, admin_headers):
    response = client.post("/api/v1/consumable-items", headers=admin_headers, json={
        "name": "Cement", "unit": "bag", "project_id": project.id,
    })
    assert response.status_code == 200
    return response.json()


def purchase(client, headers, item, vendor, quantity, unit_price, paid, date):
    response = client.post(f"/api/v1/consumable-items/{item['id']}/ledger", headers=headers, json={
        "vendor_id": vendor["id"],
        "date": date,
        "quantity": quantity,
        "unit_price": unit_price,
        "paid_amount": paid,
        "bilty_number": "BL-1182",
    })
    assert response.status_code == 200, response.json()
    return response.json()


def test_item_names_are_unique_per_project(client, project, other_project, admin_headers, cement):
    response = client.post("/api/v1/consumable-items", headers=admin_headers, json={
        "name": "CEMENT", "unit": "bag", "project_id": project.id,
    })
    assert response.status_code == 400

    response = client.post("/api/v1/consumable-items", headers=admin_headers, json={
        "name": "Cement", "unit": "bag", "project_id": other_project.id,
    })
    assert response.status_code == 200


def test_accented_item_names_collide_regardless_of_case(client, project, admin_headers):
    response = client.post("/api/v1/consumable-items", headers=admin_headers, json={
        "name": "Çimento Branco", "unit": "bag", "project_id": project.id,
    })
    assert response.status_code == 200

    response = client.post("/api/v1/consumable-items", headers=admin_headers, json={
        "name": "çimento branco", "unit": "bag", "project_id": project.id,
    })
    assert response.status_code == 400
    assert response.json()["error"] == 'An item named "çimento branco" already exists in this project'


def test_purchases_update_item_and_vendor_totals(client, admin_headers, vendor, cement):
    purchase(client, admin_headers, cement, vendor, 100, 500, 20000, "2024-01-01")
    purchase(client, admin_headers, cement, vendor, 50, 500, 0, "2024-01-10")

    item = client.get(f"/api/v1/consumable-items/{cement['id']}", headers=admin_headers).json()
    assert item["current_stock"] == 150
    assert item["total_amount"] == 75000
    assert item["total_paid"] == 20000
    assert item["total_pending"] == 55000

    vendor_after = client.get(f"/api/v1/vendors/{vendor['id']}", headers=admin_headers).json()
    assert vendor_after["total_billed"] == 75000
    assert vendor_after["remaining"] == 55000


def test_paid_amount_cannot_exceed_price(client, admin_headers, vendor, cement):
    response = client.post(f"/api/v1/consumable-items/{cement['id']}/ledger", headers=admin_headers, json={
        "vendor_id": vendor["id"], "date": "2024-01-01", "quantity": 2, "unit_price": 100, "paid_amount": 201,
    })
    assert response.status_code == 400
    assert response.json()["error"] == "Paid amount cannot exceed total price"


def test_vendor_payments_pool_over_purchases_oldest_first(client, project, admin_headers, vendor, cement):
    first = purchase(client, admin_headers, cement, vendor, 100, 500, 20000, "2024-01-01")
    second = purchase(client, admin_headers, cement, vendor, 50, 500, 0, "2024-01-10")

    response = client.post(f"/api/v1/vendors/{vendor['id']}/payments", headers=admin_headers, json={
        "date": "2024-01-15", "amount": 40000,
    })
    assert response.status_code == 200

    ledger = client.get(f"/api/v1/vendors/{vendor['id']}/ledger", headers=admin_headers).json()
    assert ledger["total_billed"] == 75000
    assert ledger["total_paid"] == 60000
    assert ledger["remaining"] == 15000

    rows = {(row["type"], row["id"]): row for row in ledger["rows"]}
    assert rows[("purchase", first["id"])]["remaining"] == 0
    assert rows[("purchase", second["id"])]["paid_amount"] == 10000
    assert rows[("purchase", second["id"])]["remaining"] == 15000

    items = client.get("/api/v1/consumable-items", headers=admin_headers, params={"project_id": project.id}).json()
    assert items[0]["total_paid"] == 60000
    assert items[0]["total_pending"] == 15000

    response = client.post(f"/api/v1/vendors/{vendor['id']}/payments", headers=admin_headers, json={
        "date": "2024-01-16", "amount": 15000.01,
    })
    assert response.status_code == 400


def test_vendor_with_balance_cannot_be_deleted(client, admin_headers, vendor, cement):
    purchase(client, admin_headers, cement, vendor, 1, 100, 0, "2024-01-01")
    response = client.delete(f"/api/v1/vendors/{vendor['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "remaining amount of 100.00" in response.json()["error"]


def test_consumption_draws_and_restores_stock(client, project, admin_headers, vendor, cement):
    purchase(client, admin_headers, cement, vendor, 40, 500, 0, "2024-01-01")

    response = client.post("/api/v1/stock-consumption", headers=admin_headers, json={
        "project_id": project.id,
        "date": "2024-01-03",
        "remarks": "Slab casting",
        "items": [{"item_id": cement["id"], "quantity_used": 25}],
    })
    assert response.status_code == 200
    consumption = response.json()
    assert consumption["items"] == [
        {"item_id": cement["id"], "item_name": "Cement", "unit": "bag", "quantity_used": 25}
    ]

    def stock():
        return client.get(f"/api/v1/consumable-items/{cement['id']}", headers=admin_headers).json()["current_stock"]

    assert stock() == 15

    response = client.post("/api/v1/stock-consumption", headers=admin_headers, json={
        "project_id": project.id, "date": "2024-01-04", "items": [{"item_id": cement["id"], "quantity_used": 16}],
    })
    assert response.status_code == 400
    assert response.json()["error"].startswith('Insufficient stock for "Cement"')

    response = client.patch(f"/api/v1/stock-consumption/{consumption['id']}", headers=admin_headers, json={
        "items": [{"item_id": cement["id"], "quantity_used": 40}],
    })
    assert response.status_code == 200
    assert stock() == 0

    assert client.delete(f"/api/v1/stock-consumption/{consumption['id']}", headers=admin_headers).status_code == 200
    assert stock() == 40


def test_consumption_rejects_duplicate_lines(client, project, admin_headers, vendor, cement):
    purchase(client, admin_headers, cement, vendor, 10, 500, 0, "2024-01-01")
    response = client.post("/api/v1/stock-consumption", headers=admin_headers, json={
        "project_id": project.id,
        "date": "2024-01-03",
        "items": [{"item_id": cement["id"], "quantity_used": 1}, {"item_id": cement["id"], "quantity_used": 2}],
    })
    assert response.status_code == 400
    assert response.json()["error"].startswith("Duplicate item")


def test_purchase_delete_cannot_make_stock_negative(client, project, admin_headers, vendor, cement):
    entry = purchase(client, admin_headers, cement, vendor, 10, 500, 0, "2024-01-01")
    client.post("/api/v1/stock-consumption", headers=admin_headers, json={
        "project_id": project.id, "date": "2024-01-02", "items": [{"item_id": cement["id"], "quantity_used": 4}],
    })

    response = client.delete(f"/api/v1/consumable-items/ledger/{entry['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "stock negative" in response.json()["error"]

    response = client.delete(f"/api/v1/consumable-items/{cement['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "1 ledger entry and 1 consumption entry" in response.json()["error"]
