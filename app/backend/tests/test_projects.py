from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AppRole
from conftest import HOD, OFFICE, principal_headers


def test_project_registry_crud(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)

    created = client.post(
        "/api/v1/projects",
        headers=headers,
        json={"code": "SIM-01", "name": "Driving Simulator", "lifecycle_status": "completed", "completed_on": "2024-03-31"},
    )
    assert created.status_code == 201
    project = created.json()
    assert project["lifecycle_status"] == "completed"
    assert project["completed_on"] == "2024-03-31"

    duplicate = client.post("/api/v1/projects", headers=headers, json={"code": "SIM-01", "name": "Other"})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "Project code already exists."

    client.post("/api/v1/projects", headers=headers, json={"code": "RAD-02", "name": "Radar Trainer"})
    completed = client.get("/api/v1/projects?lifecycle_status=completed", headers=headers).json()["items"]
    assert [item["code"] for item in completed] == ["SIM-01"]
    searched = client.get("/api/v1/projects?q=radar", headers=headers).json()["items"]
    assert [item["code"] for item in searched] == ["RAD-02"]

    cleared = client.patch(
        f"/api/v1/projects/{project['id']}",
        headers=headers,
        json={"completed_on": None, "is_archived": True},
    )
    assert cleared.status_code == 200
    assert cleared.json()["completed_on"] is None
    assert cleared.json()["is_archived"] is True

    listed = client.get("/api/v1/projects", headers=headers).json()["items"]
    assert [item["code"] for item in listed] == ["RAD-02"]
    archived = client.get("/api/v1/projects?include_archived=true", headers=headers).json()["items"]
    assert {item["code"] for item in archived} == {"SIM-01", "RAD-02"}

    deleted = client.delete(f"/api/v1/projects/{project['id']}", headers=headers)
    assert deleted.status_code == 204
    assert client.get(f"/api/v1/projects/{project['id']}", headers=headers).status_code == 404


def test_project_writes_require_approver(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)

    response = client.post("/api/v1/projects", headers=headers, json={"code": "X-1", "name": "Blocked"})

    assert response.status_code == 403
