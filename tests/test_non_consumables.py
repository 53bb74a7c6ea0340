"""
Non-consumable assets: categories, movement ledger replay and deletes
"""
import pytest


@pytest.fixture
def scaffolding(client, admin_headers):
    response = client.post("/api/v1/non-consumable-items", headers=admin_headers, json={
        "name": "Scaffolding Pipe", "category": "Shuttering", "unit": "piece",
    })
    assert response.status_code == 200
    return response.json()


def move(client, headers, item, event_type, quantity, date, **extra):
    payload = {"event_type": event_type, "quantity": quantity, "date": date}
    payload.update(extra)
    return client.post(f"/api/v1/non-consumable-items/{item['id']}/ledger", headers=headers, json=payload)


def get_item(client, headers, item):
    return client.get(f"/api/v1/non-consumable-items/{item['id']}", headers=headers).json()


def test_category_names_are_case_insensitive_unique(client, admin_headers):
    response = client.post("/api/v1/non-consumable-categories", headers=admin_headers, json={"name": "Shuttering"})
    assert response.status_code == 200

    response = client.post("/api/v1/non-consumable-categories", headers=admin_headers, json={"name": "shuttering"})
    assert response.status_code == 400
    assert response.json()["error"] == 'Category "shuttering" already exists'

    names = [c["name"] for c in client.get("/api/v1/non-consumable-categories", headers=admin_headers).json()]
    assert names == ["Shuttering"]


def test_accented_names_collide_regardless_of_case(client, admin_headers):
    response = client.post("/api/v1/non-consumable-categories", headers=admin_headers, json={"name": "Échafaudage"})
    assert response.status_code == 200

    response = client.post("/api/v1/non-consumable-categories", headers=admin_headers, json={"name": "échafaudage"})
    assert response.status_code == 400
    assert response.json()["error"] == 'Category "échafaudage" already exists'

    response = client.post("/api/v1/non-consumable-items", headers=admin_headers, json={
        "name": "Étai Métallique", "category": "Échafaudage", "unit": "piece",
    })
    assert response.status_code == 200
    response = client.post("/api/v1/non-consumable-items", headers=admin_headers, json={
        "name": "ÉTAI MÉTALLIQUE", "category": "Échafaudage", "unit": "piece",
    })
    assert response.status_code == 400
    assert response.json()["error"] == 'Item "ÉTAI MÉTALLIQUE" already exists'

    names = [c["name"] for c in client.get("/api/v1/non-consumable-categories", headers=admin_headers).json()]
    assert names == ["Échafaudage"]


def test_movements_keep_quantities_balanced(client, project, admin_headers, scaffolding):
    assert move(client, admin_headers, scaffolding, "Purchase", 100, "2024-01-01", total_cost=250000).status_code == 200
    assert move(client, admin_headers, scaffolding, "AssignToProject", 60, "2024-01-02",
                project_to_id=project.id).status_code == 200
    assert move(client, admin_headers, scaffolding, "ReturnToCompany", 10, "2024-01-05",
                project_from_id=project.id).status_code == 200
    assert move(client, admin_headers, scaffolding, "Repair", 5, "2024-01-06",
                project_from_id=project.id, total_cost=3000).status_code == 200
    assert move(client, admin_headers, scaffolding, "ReturnFromRepair", 3, "2024-01-09").status_code == 200
    assert move(client, admin_headers, scaffolding, "MarkLost", 2, "2024-01-10",
                project_from_id=project.id).status_code == 200

    item = get_item(client, admin_headers, scaffolding)
    assert item["company_store"] == 53
    assert item["in_use"] == 43
    assert item["under_repair"] == 2
    assert item["lost"] == 2
    assert item["total_quantity"] == 100
    assert item["company_store"] + item["in_use"] + item["under_repair"] + item["lost"] == item["total_quantity"]
    assert item["in_use_by_project"] == [
        {"project_id": project.id, "project_name": "Riverside Towers", "quantity": 43}
    ]


def test_assign_cannot_exceed_company_store(client, project, admin_headers, scaffolding):
    move(client, admin_headers, scaffolding, "Purchase", 20, "2024-01-01", total_cost=50000)

    response = move(client, admin_headers, scaffolding, "AssignToProject", 25, "2024-01-02", project_to_id=project.id)
    assert response.status_code == 400
    assert response.json()["error"] == "Quantity exceeds available in Company Store (20 available)"
    assert get_item(client, admin_headers, scaffolding)["company_store"] == 20


def test_backdated_movement_is_checked_against_history(client, project, admin_headers, scaffolding):
    move(client, admin_headers, scaffolding, "Purchase", 20, "2024-02-01", total_cost=50000)

    response = move(client, admin_headers, scaffolding, "AssignToProject", 5, "2024-01-15", project_to_id=project.id)
    assert response.status_code == 400
    assert "0 available" in response.json()["error"]


def test_assign_needs_a_project(client, admin_headers, scaffolding):
    move(client, admin_headers, scaffolding, "Purchase", 20, "2024-01-01", total_cost=50000)

    response = move(client, admin_headers, scaffolding, "AssignToProject", 5, "2024-01-02")
    assert response.status_code == 400
    assert response.json()["error"] == "Project is required for Assign to Project"


def test_deleting_a_purchase_with_dependent_movements_is_rejected(client, project, admin_headers, scaffolding):
    bought = move(client, admin_headers, scaffolding, "Purchase", 10, "2024-01-01", total_cost=25000).json()
    move(client, admin_headers, scaffolding, "AssignToProject", 8, "2024-01-02", project_to_id=project.id)

    response = client.delete(f"/api/v1/non-consumable-items/ledger/{bought['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"].startswith("Cannot delete Purchase entry")

    item = get_item(client, admin_headers, scaffolding)
    assert item["total_quantity"] == 10
    assert item["in_use"] == 8


def test_item_with_balances_cannot_be_deleted(client, project, admin_headers, scaffolding):
    bought = move(client, admin_headers, scaffolding, "Purchase", 4, "2024-01-01", total_cost=10000).json()

    response = client.delete(f"/api/v1/non-consumable-items/{scaffolding['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "Company Store: 4" in response.json()["error"]

    client.delete(f"/api/v1/non-consumable-items/ledger/{bought['id']}", headers=admin_headers)
    response = client.delete(f"/api/v1/non-consumable-items/{scaffolding['id']}", headers=admin_headers)
    assert response.status_code == 200


def test_site_manager_cannot_move_assets_to_other_projects(client, other_project, admin_headers,
                                                           manager_headers, scaffolding):
    move(client, admin_headers, scaffolding, "Purchase", 10, "2024-01-01", total_cost=25000)

    response = move(client, manager_headers, scaffolding, "AssignToProject", 2, "2024-01-02",
                    project_to_id=other_project.id)
    assert response.status_code == 404
    assert response.json()["kind"] == "access_denied"


def test_ledger_lists_newest_first(client, project, admin_headers, scaffolding):
    move(client, admin_headers, scaffolding, "Purchase", 10, "2024-01-01", total_cost=25000)
    move(client, admin_headers, scaffolding, "AssignToProject", 4, "2024-01-03", project_to_id=project.id)

    ledger = client.get(f"/api/v1/non-consumable-items/{scaffolding['id']}/ledger", headers=admin_headers).json()
    assert ledger["total"] == 2
    assert [e["event_type"] for e in ledger["entries"]] == ["AssignToProject", "Purchase"]
    assert ledger["entries"][0]["project_to_name"] == "Riverside Towers"
    assert ledger["entries"][0]["total_cost"] is None
