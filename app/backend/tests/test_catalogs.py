from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AppRole
from conftest import OFFICE, VIEWER, create_catalog_item, principal_headers


def test_unknown_catalog_is_not_found(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)

    response = client.get("/api/v1/catalogs/vehicle-types", headers=headers)

    assert response.status_code == 404


def test_catalog_names_are_unique_ignoring_case(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    create_catalog_item(client, headers, "visit-types", "Delegation")

    response = client.post("/api/v1/catalogs/visit-types", headers=headers, json={"name": "  delegation "})

    assert response.status_code == 409
    assert response.json()["detail"] == "A visit type with the same name already exists."


def test_catalog_writes_require_manager(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, VIEWER, AppRole.VIEWER)

    response = client.post("/api/v1/catalogs/activity-types", headers=headers, json={"name": "Seminar"})

    assert response.status_code == 403


def test_catalog_update_and_retire(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    second = create_catalog_item(client, headers, "activity-types", "Workshop", ordinal=2)
    first = create_catalog_item(client, headers, "activity-types", "Seminar", ordinal=1)

    listed = client.get("/api/v1/catalogs/activity-types", headers=headers).json()["items"]
    assert [item["name"] for item in listed] == ["Seminar", "Workshop"]

    stale = client.patch(
        f"/api/v1/catalogs/activity-types/{second['id']}",
        headers=headers,
        json={"row_version": "stale", "is_active": False},
    )
    assert stale.status_code == 409

    retired = client.patch(
        f"/api/v1/catalogs/activity-types/{second['id']}",
        headers=headers,
        json={"row_version": second["row_version"], "is_active": False},
    )
    assert retired.status_code == 200
    assert retired.json()["row_version"] != second["row_version"]

    active = client.get("/api/v1/catalogs/activity-types", headers=headers).json()["items"]
    assert [item["id"] for item in active] == [first["id"]]
    everything = client.get("/api/v1/catalogs/activity-types?include_inactive=true", headers=headers).json()["items"]
    assert len(everything) == 2


def test_catalog_item_in_use_cannot_be_deleted(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    visit_type = create_catalog_item(client, headers, "visit-types", "Foreign delegation")
    unused = create_catalog_item(client, headers, "visit-types", "School visit")
    visit = client.post(
        "/api/v1/visits",
        headers=headers,
        json={
            "visit_type_id": visit_type["id"],
            "date_of_visit": date(2024, 5, 2).isoformat(),
            "visitor_name": "Gen. A. Visitor",
            "strength": 12,
        },
    )
    assert visit.status_code == 201

    summaries = client.get("/api/v1/catalogs/visit-types?with_usage=true", headers=headers).json()["items"]
    usage = {item["name"]: item["usage_count"] for item in summaries}
    assert usage == {"Foreign delegation": 1, "School visit": 0}

    blocked = client.delete(
        f"/api/v1/catalogs/visit-types/{visit_type['id']}?row_version={visit_type['row_version']}",
        headers=headers,
    )
    assert blocked.status_code == 409
    assert blocked.json()["detail"] == "Cannot delete a visit type that is in use (1 records)."

    missing_token = client.delete(f"/api/v1/catalogs/visit-types/{unused['id']}", headers=headers)
    assert missing_token.status_code == 400

    removed = client.delete(
        f"/api/v1/catalogs/visit-types/{unused['id']}?row_version={unused['row_version']}",
        headers=headers,
    )
    assert removed.status_code == 204
