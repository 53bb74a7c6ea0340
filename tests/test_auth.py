"""
Login, token and user-management tests
"""
from sitebooks.core import policy
from sitebooks.models import AuditLog

from conftest import PASSWORD


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_login_returns_token_and_user(client, users):
    response = client.post("/api/v1/auth/login", json={"email": "Owner@Acme-Builders.com", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == policy.SUPER_ADMIN

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "owner@acme-builders.com"


def test_login_with_wrong_password(client, users):
    response = client.post("/api/v1/auth/login", json={"email": "owner@acme-builders.com", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"


def test_missing_or_bad_token_is_unauthorized(client, users):
    assert client.get("/api/v1/projects").status_code == 401
    response = client.get("/api/v1/projects", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["kind"] == "access_denied"


def test_disabled_user_is_rejected(client, db, users, admin_headers):
    admin = users[policy.ADMIN]
    admin.is_active = False
    db.commit()

    assert client.get("/api/v1/auth/me", headers=admin_headers).status_code == 403
    response = client.post("/api/v1/auth/login", json={"email": admin.email, "password": PASSWORD})
    assert response.status_code == 403


def test_super_admin_creates_site_manager(client, db, project, super_headers):
    response = client.post("/api/v1/users", headers=super_headers, json={
        "name": "Nadia Foreman",
        "email": "nadia@acme-builders.com",
        "password": "foreman-pass",
        "role": "Site Manager",
        "assigned_project_id": project.id,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == policy.SITE_MANAGER
    assert body["assigned_project_name"] == "Riverside Towers"

    assert db.query(AuditLog).filter(AuditLog.module == "user").count() == 1


def test_duplicate_email_is_a_validation_error(client, users, super_headers):
    response = client.post("/api/v1/users", headers=super_headers, json={
        "name": "Another Owner",
        "email": "OWNER@acme-builders.com",
        "password": "another-pass",
        "role": "admin",
    })
    assert response.status_code == 400
    assert response.json()["error"] == "Email already in use"


def test_admin_cannot_manage_admins(client, users, admin_headers):
    response = client.post("/api/v1/users", headers=admin_headers, json={
        "name": "Second Admin",
        "email": "second@acme-builders.com",
        "password": "second-pass",
        "role": "admin",
    })
    assert response.status_code == 404

    listed = client.get("/api/v1/users", headers=admin_headers).json()
    assert {u["role"] for u in listed} == {policy.SITE_MANAGER}


def test_cannot_delete_yourself(client, users, super_headers):
    me = users[policy.SUPER_ADMIN]
    response = client.delete(f"/api/v1/users/{me.id}", headers=super_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot delete yourself"


def test_site_manager_cannot_list_users(client, manager_headers):
    response = client.get("/api/v1/users", headers=manager_headers)
    assert response.status_code == 403
    assert response.json()["error"].startswith("Forbidden")
