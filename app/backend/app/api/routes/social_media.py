"""Social media event endpoints, including photos and exports."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.responses import attachment_response
from app.core.auth import RequestUserContext, get_current_user_context
from app.db.dependencies import get_db_session
from app.repositories.social_media_repository import SocialMediaSearchFilters
from app.services.social_media_service import SocialMediaEventData, SocialMediaService

router = APIRouter(prefix="/social-media-events", tags=["social-media"])


class SocialMediaEventPayload(BaseModel):
    social_media_event_type_id: UUID
    social_media_platform_id: UUID | None = None
    date_of_event: date
    title: str = Field(min_length=1, max_length=200)
    reach: int = Field(default=0, ge=0)
    description: str | None = Field(default=None, max_length=2000)


class SocialMediaEventUpdatePayload(SocialMediaEventPayload):
    row_version: str = Field(min_length=1, max_length=32)


class RowVersionPayload(BaseModel):
    row_version: str = Field(min_length=1, max_length=32)


def _service(db: Session) -> SocialMediaService:
    return SocialMediaService(db)


def _filters(
    event_type_id: UUID | None = Query(default=None),
    platform_id: UUID | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    q: str | None = Query(default=None, max_length=200),
) -> SocialMediaSearchFilters:
    return SocialMediaSearchFilters(
        event_type_id=event_type_id,
        platform_id=platform_id,
        start_date=start_date,
        end_date=end_date,
        query=q,
    )


def _event_data(payload: SocialMediaEventPayload, row_version: str | None = None) -> SocialMediaEventData:
    return SocialMediaEventData(
        social_media_event_type_id=payload.social_media_event_type_id,
        social_media_platform_id=payload.social_media_platform_id,
        date_of_event=payload.date_of_event,
        title=payload.title,
        reach=payload.reach,
        description=payload.description,
        row_version=row_version,
    )


@router.get("")
def search_events(
    filters: SocialMediaSearchFilters = Depends(_filters),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    return {"items": [service.serialize_list_row(row) for row in service.search_events(filters=filters)]}


@router.get("/export")
def export_events(
    format: str = Query(default="xlsx"),
    filters: SocialMediaSearchFilters = Depends(_filters),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    return attachment_response(_service(db).export_events(filters=filters, format_name=format))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_event(
    payload: SocialMediaEventPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    event = service.create_event(context=context, data=_event_data(payload))
    return service.serialize_event(event)


@router.get("/{event_id}")
def get_event(
    event_id: UUID,
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.serialize_event(service.get_event(event_id=event_id))


@router.put("/{event_id}")
def update_event(
    event_id: UUID,
    payload: SocialMediaEventUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    event = service.update_event(
        context=context,
        event_id=event_id,
        data=_event_data(payload, row_version=payload.row_version),
    )
    return service.serialize_event(event)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: UUID,
    row_version: str | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    _service(db).delete_event(context=context, event_id=event_id, row_version=row_version)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- Photos ----------
@router.post("/{event_id}/photos", status_code=status.HTTP_201_CREATED)
def upload_event_photo(
    event_id: UUID,
    file: UploadFile = File(...),
    row_version: str = Form(...),
    caption: str | None = Form(default=None),
    set_as_cover: bool = Form(default=False),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    service.upload_photo(
        context=context,
        event_id=event_id,
        row_version=row_version,
        content=file.file.read(),
        caption=caption,
        set_as_cover=set_as_cover,
    )
    return service.serialize_event(service.get_event(event_id=event_id))


@router.get("/{event_id}/photos/{photo_id}")
def open_event_photo(
    event_id: UUID,
    photo_id: UUID,
    size: str = Query(default="md"),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    content, media_type = _service(db).open_photo(event_id=event_id, photo_id=photo_id, size=size)
    return Response(content=content, media_type=media_type, headers={"Cache-Control": "private, max-age=300"})


@router.post("/{event_id}/photos/{photo_id}/cover")
def set_event_cover_photo(
    event_id: UUID,
    photo_id: UUID,
    payload: RowVersionPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    event = service.set_cover_photo(
        context=context,
        event_id=event_id,
        photo_id=photo_id,
        row_version=payload.row_version,
    )
    return service.serialize_event(event)


@router.delete("/{event_id}/photos/{photo_id}")
def remove_event_photo(
    event_id: UUID,
    photo_id: UUID,
    row_version: str | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    event = service.remove_photo(context=context, event_id=event_id, photo_id=photo_id, row_version=row_version)
    return service.serialize_event(event)
