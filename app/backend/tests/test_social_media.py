from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AppRole
from app.models.entities import SocialMediaEventPhoto
from conftest import OFFICE, create_catalog_item, jpeg_bytes, principal_headers


def _catalogs(client: TestClient, headers: dict[str, str]) -> tuple[dict, dict]:
    event_type = create_catalog_item(client, headers, "social-media-event-types", "Product launch")
    platform = create_catalog_item(client, headers, "social-media-platforms", "LinkedIn")
    return event_type, platform


def test_social_media_event_lifecycle(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    event_type, platform = _catalogs(client, headers)

    created = client.post(
        "/api/v1/social-media-events",
        headers=headers,
        json={
            "social_media_event_type_id": event_type["id"],
            "social_media_platform_id": platform["id"],
            "date_of_event": "2024-02-20",
            "title": "Simulator showcase",
            "reach": 4200,
        },
    )
    assert created.status_code == 201
    event = created.json()
    assert event["platform_name"] == "LinkedIn"
    assert event["photos"] == []

    negative = client.put(
        f"/api/v1/social-media-events/{event['id']}",
        headers=headers,
        json={
            "social_media_event_type_id": event_type["id"],
            "date_of_event": "2024-02-20",
            "title": "Simulator showcase",
            "reach": -1,
            "row_version": event["row_version"],
        },
    )
    assert negative.status_code == 422

    updated = client.put(
        f"/api/v1/social-media-events/{event['id']}",
        headers=headers,
        json={
            "social_media_event_type_id": event_type["id"],
            "social_media_platform_id": None,
            "date_of_event": "2024-02-21",
            "title": "Simulator showcase, day two",
            "reach": 5100,
            "row_version": event["row_version"],
        },
    )
    assert updated.status_code == 200
    event = updated.json()
    assert event["platform_name"] is None
    assert event["reach"] == 5100

    uploaded = client.post(
        f"/api/v1/social-media-events/{event['id']}/photos",
        headers=headers,
        data={"row_version": event["row_version"], "caption": "Stage"},
        files={"file": ("stage.jpg", jpeg_bytes(), "image/jpeg")},
    )
    assert uploaded.status_code == 201
    event = uploaded.json()
    photo_id = event["photos"][0]["id"]
    assert event["cover_photo_id"] == photo_id
    stored = db_session.query(SocialMediaEventPhoto).one()
    assert stored.is_cover is True

    thumb = client.get(f"/api/v1/social-media-events/{event['id']}/photos/{photo_id}?size=xs", headers=headers)
    assert thumb.status_code == 200
    assert thumb.headers["content-type"] == "image/jpeg"

    listed = client.get("/api/v1/social-media-events?q=day two", headers=headers).json()["items"]
    assert [item["photo_count"] for item in listed] == [1]

    deleted = client.delete(
        f"/api/v1/social-media-events/{event['id']}?row_version={event['row_version']}",
        headers=headers,
    )
    assert deleted.status_code == 204
    assert db_session.query(SocialMediaEventPhoto).count() == 0


def test_social_media_export_formats(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    event_type, platform = _catalogs(client, headers)
    client.post(
        "/api/v1/social-media-events",
        headers=headers,
        json={
            "social_media_event_type_id": event_type["id"],
            "social_media_platform_id": platform["id"],
            "date_of_event": "2024-02-20",
            "title": "Simulator showcase",
        },
    )

    workbook = client.get(f"/api/v1/social-media-events/export?platform_id={platform['id']}", headers=headers)
    assert workbook.status_code == 200
    assert 'filename="social-media-events-' in workbook.headers["content-disposition"]
    assert workbook.content[:2] == b"PK"

    pdf = client.get("/api/v1/social-media-events/export?format=PDF", headers=headers)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")
