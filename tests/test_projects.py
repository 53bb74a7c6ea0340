"""
Projects: CRUD round trip, balance adjustments, delete guards and summary
"""


def test_create_then_fetch_round_trip(client, users, admin_headers):
    payload = {
        "name": "Canal View Plaza",
        "description": "Eight storey mixed use",
        "allocated_budget": 1250000.5,
        "status": "on_hold",
        "start_date": "2024-03-01",
        "end_date": "2025-06-30",
    }
    created = client.post("/api/v1/projects", headers=admin_headers, json=payload).json()
    fetched = client.get(f"/api/v1/projects/{created['id']}", headers=admin_headers).json()

    assert fetched == created
    for field, value in payload.items():
        assert fetched[field] == value
    assert fetched["balance"] == 0


def test_budget_must_be_positive(client, users, admin_headers):
    response = client.post("/api/v1/projects", headers=admin_headers, json={"name": "Zero", "allocated_budget": 0})
    assert response.status_code == 400
    assert response.json()["kind"] == "validation"


def test_site_manager_sees_only_assigned_project(client, project, other_project, manager_headers):
    listed = client.get("/api/v1/projects", headers=manager_headers).json()
    assert [p["id"] for p in listed] == [project.id]

    response = client.get(f"/api/v1/projects/{other_project.id}", headers=manager_headers)
    assert response.status_code == 404


def test_balance_adjustments(client, project, super_headers, admin_headers):
    url = f"/api/v1/projects/{project.id}/balance-adjustments"
    assert client.post(url, headers=admin_headers, json={"date": "2024-04-01", "amount": 10}).status_code == 403

    response = client.post(url, headers=super_headers, json={"date": "2024-04-01", "amount": 0})
    assert response.status_code == 400

    response = client.post(url, headers=super_headers, json={"date": "2024-04-01", "amount": -1})
    assert response.status_code == 400
    assert "balance would become negative" in response.json()["error"]

    added = client.post(url, headers=super_headers, json={
        "date": "2024-04-01", "amount": 750, "remarks": "Petty cash top-up",
    }).json()
    client.patch(f"{url}/{added['id']}", headers=super_headers, json={"amount": 500})
    ledger = client.get(f"/api/v1/projects/{project.id}/ledger", headers=super_headers).json()
    assert ledger["balance"] == 500
    assert ledger["rows"][0]["type"] == "manual_adjustment"

    client.delete(f"{url}/{added['id']}", headers=super_headers)
    assert client.get(f"/api/v1/projects/{project.id}", headers=super_headers).json()["balance"] == 0


def test_project_with_site_manager_cannot_be_deleted(client, project, super_headers):
    response = client.delete(f"/api/v1/projects/{project.id}", headers=super_headers)
    assert response.status_code == 400
    assert "Site Manager: Sam Site" in response.json()["error"]


def test_unused_project_is_deleted(client, other_project, super_headers):
    response = client.delete(f"/api/v1/projects/{other_project.id}", headers=super_headers)
    assert response.status_code == 200
    assert client.get(f"/api/v1/projects/{other_project.id}", headers=super_headers).status_code == 404


def test_summary_adds_up_ledgers(client, project, admin_headers):
    contractor = client.post("/api/v1/contractors", headers=admin_headers, json={
        "name": "Steel Fixers", "project_id": project.id,
    }).json()
    client.post("/api/v1/contractors/entries", headers=admin_headers, json={
        "contractor_id": contractor["id"], "date": "2024-01-01", "amount": 900,
    })
    client.post(f"/api/v1/contractors/{contractor['id']}/payments", headers=admin_headers, json={
        "date": "2024-01-05", "amount": 400,
    })
    client.post("/api/v1/expenses", headers=admin_headers, json={
        "project_id": project.id, "date": "2024-01-06", "description": "Diesel", "category": "Fuel", "amount": 150,
    })

    summary = client.get(f"/api/v1/projects/{project.id}/summary", headers=admin_headers).json()
    assert summary["spent"] == 550
    assert summary["liabilities"] == 500
    assert summary["breakdown"]["contractor"] == {"spent": 400, "liabilities": 500}
    assert summary["breakdown"]["expense"] == {"spent": 150, "liabilities": 0}


def test_summary_is_zero_for_foreign_project(client, other_project, manager_headers):
    summary = client.get(f"/api/v1/projects/{other_project.id}/summary", headers=manager_headers).json()
    assert summary["spent"] == 0
    assert summary["liabilities"] == 0


def test_project_reports_spent_from_the_summary(client, project, admin_headers):
    fresh = client.get(f"/api/v1/projects/{project.id}", headers=admin_headers).json()
    assert fresh["spent"] == 0

    client.post("/api/v1/expenses", headers=admin_headers, json={
        "project_id": project.id, "date": "2024-01-06", "description": "Diesel", "category": "Fuel", "amount": 150,
    })
    contractor = client.post("/api/v1/contractors", headers=admin_headers, json={
        "name": "Steel Fixers", "project_id": project.id,
    }).json()
    client.post("/api/v1/contractors/entries", headers=admin_headers, json={
        "contractor_id": contractor["id"], "date": "2024-01-01", "amount": 900,
    })
    client.post(f"/api/v1/contractors/{contractor['id']}/payments", headers=admin_headers, json={
        "date": "2024-01-05", "amount": 400,
    })

    summary = client.get(f"/api/v1/projects/{project.id}/summary", headers=admin_headers).json()
    fetched = client.get(f"/api/v1/projects/{project.id}", headers=admin_headers).json()
    listed = client.get("/api/v1/projects", headers=admin_headers).json()
    assert fetched["spent"] == summary["spent"] == 550
    assert [p["spent"] for p in listed if p["id"] == project.id] == [550]
