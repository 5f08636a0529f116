from __future__ import annotations

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AppRole
from app.core.config import get_settings
from app.services.photo_gallery import PhotoGallery
from conftest import OFFICE, VIEWER, create_catalog_item, jpeg_bytes, principal_headers


def _create_visit(client: TestClient, headers: dict[str, str], visit_type_id: str, **overrides) -> dict:
    payload = {
        "visit_type_id": visit_type_id,
        "date_of_visit": "2024-04-10",
        "visitor_name": "Brig. R. Sharma",
        "strength": 8,
        "remarks": "Demo of the driving simulator",
        **overrides,
    }
    response = client.post("/api/v1/visits", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _upload(client: TestClient, headers: dict[str, str], visit: dict, content: bytes, **form) -> object:
    return client.post(
        f"/api/v1/visits/{visit['id']}/photos",
        headers=headers,
        data={"row_version": visit["row_version"], **form},
        files={"file": ("photo.jpg", content, "image/jpeg")},
    )


def test_visit_validation(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    visit_type = create_catalog_item(client, headers, "visit-types", "Delegation")
    inactive_type = create_catalog_item(client, headers, "visit-types", "Retired", is_active=False)

    base = {"visit_type_id": visit_type["id"], "date_of_visit": "2024-04-10", "visitor_name": "Visitor", "strength": 3}

    zero_strength = client.post("/api/v1/visits", headers=headers, json={**base, "strength": 0})
    assert zero_strength.status_code == 422
    assert zero_strength.json()["detail"] == "Strength must be greater than zero."

    future = (date.today() + timedelta(days=3)).isoformat()
    future_visit = client.post("/api/v1/visits", headers=headers, json={**base, "date_of_visit": future})
    assert future_visit.status_code == 422

    inactive = client.post("/api/v1/visits", headers=headers, json={**base, "visit_type_id": inactive_type["id"]})
    assert inactive.status_code == 400
    assert inactive.json()["detail"] == "Visit type is inactive."

    blank_name = client.post("/api/v1/visits", headers=headers, json={**base, "visitor_name": "   "})
    assert blank_name.status_code == 422


def test_viewer_cannot_log_visits(client: TestClient, db_session: Session) -> None:
    office_headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    visit_type = create_catalog_item(client, office_headers, "visit-types", "Delegation")
    viewer_headers = principal_headers(db_session, VIEWER, AppRole.VIEWER)

    response = client.post(
        "/api/v1/visits",
        headers=viewer_headers,
        json={"visit_type_id": visit_type["id"], "date_of_visit": "2024-04-10", "visitor_name": "V", "strength": 1},
    )

    assert response.status_code == 403


def test_visit_update_uses_row_version(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    visit_type = create_catalog_item(client, headers, "visit-types", "Delegation")
    visit = _create_visit(client, headers, visit_type["id"])

    body = {
        "visit_type_id": visit_type["id"],
        "date_of_visit": "2024-04-11",
        "visitor_name": "Brig. R. Sharma",
        "strength": 9,
    }
    updated = client.put(f"/api/v1/visits/{visit['id']}", headers=headers, json={**body, "row_version": visit["row_version"]})
    assert updated.status_code == 200
    assert updated.json()["strength"] == 9

    stale = client.put(f"/api/v1/visits/{visit['id']}", headers=headers, json={**body, "row_version": visit["row_version"]})
    assert stale.status_code == 409


def test_visit_photo_gallery(client: TestClient, db_session: Session, upload_root) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    visit_type = create_catalog_item(client, headers, "visit-types", "Delegation")
    visit = _create_visit(client, headers, visit_type["id"])

    missing_version = client.post(
        f"/api/v1/visits/{visit['id']}/photos",
        headers=headers,
        files={"file": ("photo.jpg", jpeg_bytes(), "image/jpeg")},
    )
    assert missing_version.status_code == 422

    too_small = _upload(client, headers, visit, jpeg_bytes(640, 480))
    assert too_small.status_code == 422
    assert "at least 720x540" in too_small.json()["detail"]

    not_an_image = _upload(client, headers, visit, b"plain text, not a photo")
    assert not_an_image.status_code == 415

    first = _upload(client, headers, visit, jpeg_bytes(), caption="Arrival")
    assert first.status_code == 201
    visit = first.json()
    assert len(visit["photos"]) == 1
    first_photo = visit["photos"][0]
    assert visit["cover_photo_id"] == first_photo["id"]
    assert first_photo["is_cover"] is True
    assert (first_photo["width"], first_photo["height"]) == (1024, 768)

    second = _upload(client, headers, visit, jpeg_bytes(color=(200, 40, 40)))
    assert second.status_code == 201
    visit = second.json()
    second_photo = next(photo for photo in visit["photos"] if photo["id"] != first_photo["id"])
    assert visit["cover_photo_id"] == first_photo["id"]

    rendition = client.get(f"/api/v1/visits/{visit['id']}/photos/{first_photo['id']}?size=sm", headers=headers)
    assert rendition.status_code == 200
    assert rendition.headers["content-type"] == "image/jpeg"
    original = client.get(f"/api/v1/visits/{visit['id']}/photos/{first_photo['id']}?size=original", headers=headers)
    assert original.status_code == 200
    unknown = client.get(f"/api/v1/visits/{visit['id']}/photos/{first_photo['id']}?size=huge", headers=headers)
    assert unknown.status_code == 404

    covered = client.post(
        f"/api/v1/visits/{visit['id']}/photos/{second_photo['id']}/cover",
        headers=headers,
        json={"row_version": visit["row_version"]},
    )
    assert covered.status_code == 200
    visit = covered.json()
    assert visit["cover_photo_id"] == second_photo["id"]

    removed = client.delete(
        f"/api/v1/visits/{visit['id']}/photos/{second_photo['id']}?row_version={visit['row_version']}",
        headers=headers,
    )
    assert removed.status_code == 200
    visit = removed.json()
    assert [photo["id"] for photo in visit["photos"]] == [first_photo["id"]]
    assert visit["cover_photo_id"] == first_photo["id"]
    assert not (upload_root / "visits" / visit["id"] / second_photo["id"]).exists()

    listed = client.get("/api/v1/visits", headers=headers).json()["items"]
    assert listed[0]["photo_count"] == 1

    deleted = client.delete(f"/api/v1/visits/{visit['id']}?row_version={visit['row_version']}", headers=headers)
    assert deleted.status_code == 204
    assert client.get(f"/api/v1/visits/{visit['id']}", headers=headers).status_code == 404


def test_visit_search_and_export(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    delegation = create_catalog_item(client, headers, "visit-types", "Delegation")
    school = create_catalog_item(client, headers, "visit-types", "School visit")
    _create_visit(client, headers, delegation["id"], date_of_visit="2024-01-15", visitor_name="Col. Mehta")
    _create_visit(client, headers, school["id"], date_of_visit="2024-03-01", visitor_name="Kendriya Vidyalaya")

    by_type = client.get(f"/api/v1/visits?visit_type_id={school['id']}", headers=headers).json()["items"]
    assert [item["visitor_name"] for item in by_type] == ["Kendriya Vidyalaya"]
    by_text = client.get("/api/v1/visits?q=mehta", headers=headers).json()["items"]
    assert [item["visit_type_name"] for item in by_text] == ["Delegation"]
    by_range = client.get("/api/v1/visits?start_date=2024-02-01&end_date=2024-12-31", headers=headers).json()["items"]
    assert len(by_range) == 1

    workbook = client.get("/api/v1/visits/export?format=xlsx", headers=headers)
    assert workbook.status_code == 200
    assert workbook.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert 'filename="visits-' in workbook.headers["content-disposition"]
    assert workbook.content[:2] == b"PK"

    pdf = client.get("/api/v1/visits/export?format=pdf", headers=headers)
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")
    assert pdf.headers["content-disposition"].endswith('.pdf"')

    assert client.get("/api/v1/visits/export?format=csv", headers=headers).status_code == 422
    inverted = client.get("/api/v1/visits/export?start_date=2024-05-01&end_date=2024-01-01", headers=headers)
    assert inverted.status_code == 400


def test_photo_upload_size_limits(client: TestClient, db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    visit_type = create_catalog_item(client, headers, "visit-types", "Delegation")
    visit = _create_visit(client, headers, visit_type["id"])

    empty = _upload(client, headers, visit, b"")
    assert empty.status_code == 400
    assert empty.json()["detail"] == "Uploaded file is empty."

    monkeypatch.setenv("PHOTO_MAX_SIZE_BYTES", "256")
    get_settings.cache_clear()
    oversized = _upload(client, headers, visit, jpeg_bytes())
    assert oversized.status_code == 413
    assert oversized.json()["detail"] == "Photo exceeds the maximum size of 256 bytes."


def test_failed_photo_upload_leaves_no_files(
    client: TestClient, db_session: Session, upload_root, monkeypatch: pytest.MonkeyPatch
) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    visit_type = create_catalog_item(client, headers, "visit-types", "Delegation")
    visit = _create_visit(client, headers, visit_type["id"])

    def failing_set_cover(self, *, owner, photo) -> None:
        raise RuntimeError("cover update failed")

    monkeypatch.setattr(PhotoGallery, "set_cover", failing_set_cover)

    with pytest.raises(RuntimeError):
        _upload(client, headers, visit, jpeg_bytes())

    visit_root = upload_root / "visits" / visit["id"]
    assert not visit_root.exists() or not any(path.is_file() for path in visit_root.rglob("*"))
