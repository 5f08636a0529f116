from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AppRole
from app.models.entities import AuditEvent
from conftest import ADMIN, VIEWER, assign_role, auth_headers, principal_headers


def test_me_for_unassigned_user(client: TestClient) -> None:
    headers = auth_headers(oid="oid-new-user", email="New.User@test.local", display_name="New User")

    response = client.get("/api/v1/me", headers=headers)

    assert response.status_code == 200
    payload = response.json()
    assert payload["email"] == "new.user@test.local"
    assert payload["roles"] == []
    assert payload["is_approver"] is False


def test_me_exposes_roles(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, ADMIN, AppRole.HOD)

    payload = client.get("/api/v1/me", headers=headers).json()

    assert payload["roles"] == ["hod"]
    assert payload["is_approver"] is True


def test_inactive_assignment_grants_nothing(client: TestClient, db_session: Session) -> None:
    assign_role(db_session, role=AppRole.ADMIN, active=False, **VIEWER)

    payload = client.get("/api/v1/me", headers=auth_headers(**VIEWER)).json()

    assert payload["roles"] == []


def test_admin_endpoints_require_admin_role(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, VIEWER, AppRole.HOD)

    response = client.get("/api/v1/admin/users", headers=headers)

    assert response.status_code == 403


def test_admin_manages_role_assignments(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, ADMIN, AppRole.ADMIN)

    created = client.post(
        "/api/v1/admin/role-assignments",
        headers=headers,
        json={
            "user_email": "Officer@Test.local",
            "user_display_name": "Officer",
            "user_microsoft_oid": "oid-new-officer",
            "role": "project_officer",
        },
    )
    assert created.status_code == 201
    assignment = created.json()
    assert assignment["role"] == "project_officer"
    assert assignment["active"] is True

    duplicate = client.post(
        "/api/v1/admin/role-assignments",
        headers=headers,
        json={
            "user_email": "officer@test.local",
            "user_microsoft_oid": "oid-new-officer",
            "role": "project_officer",
        },
    )
    assert duplicate.status_code == 409

    mismatch = client.post(
        "/api/v1/admin/role-assignments",
        headers=headers,
        json={
            "user_email": "officer@test.local",
            "user_microsoft_oid": "oid-someone-else",
            "role": "viewer",
        },
    )
    assert mismatch.status_code == 409

    users = client.get("/api/v1/admin/users", headers=headers).json()["items"]
    officer = next(user for user in users if user["email"] == "officer@test.local")
    assert [item["role"] for item in officer["role_assignments"]] == ["project_officer"]

    updated = client.patch(
        f"/api/v1/admin/role-assignments/{assignment['id']}",
        headers=headers,
        json={"role": "project_office", "active": False},
    )
    assert updated.status_code == 200
    assert updated.json()["role"] == "project_office"
    assert updated.json()["active"] is False

    active_only = client.get("/api/v1/admin/users", headers=headers).json()["items"]
    assert all(user["email"] != "officer@test.local" for user in active_only)
    with_inactive = client.get("/api/v1/admin/users?include_inactive=true", headers=headers).json()["items"]
    assert any(user["email"] == "officer@test.local" for user in with_inactive)

    deleted = client.delete(f"/api/v1/admin/role-assignments/{assignment['id']}", headers=headers)
    assert deleted.status_code == 204

    actions = [event.action_type for event in db_session.query(AuditEvent).filter_by(entity_name="RoleAssignment")]
    assert sorted(actions) == ["created", "deleted", "updated"]


def test_role_assignment_rejects_invalid_email(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, ADMIN, AppRole.ADMIN)

    response = client.post(
        "/api/v1/admin/role-assignments",
        headers=headers,
        json={"user_email": "not-an-email", "user_microsoft_oid": "oid-x", "role": "viewer"},
    )

    assert response.status_code == 422


def test_admin_cannot_remove_own_admin_role(client: TestClient, db_session: Session) -> None:
    assignment = assign_role(db_session, role=AppRole.ADMIN, **ADMIN)

    response = client.delete(
        f"/api/v1/admin/role-assignments/{assignment.id}",
        headers=auth_headers(**ADMIN),
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "You cannot remove your own admin role."
