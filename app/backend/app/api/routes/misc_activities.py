"""Miscellaneous activity endpoints, including media attachments."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.responses import attachment_response
from app.core.auth import RequestUserContext, get_current_user_context
from app.db.dependencies import get_db_session
from app.repositories.misc_activity_repository import MiscActivityQuery, MiscActivitySortField
from app.services.misc_activity_service import MiscActivityData, MiscActivityService

router = APIRouter(prefix="/misc-activities", tags=["misc-activities"])


class MiscActivityPayload(BaseModel):
    activity_type_id: UUID | None = None
    nomenclature: str = Field(min_length=1, max_length=256)
    occurrence_date: date
    description: str | None = Field(default=None, max_length=4000)
    external_link: str | None = Field(default=None, max_length=1024)


class MiscActivityUpdatePayload(MiscActivityPayload):
    row_version: str = Field(min_length=1, max_length=32)


def _service(db: Session) -> MiscActivityService:
    return MiscActivityService(db)


def _query(
    activity_type_id: UUID | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    q: str | None = Query(default=None, max_length=200),
    include_deleted: bool = Query(default=False),
    sort: MiscActivitySortField = Query(default=MiscActivitySortField.OCCURRENCE_DATE),
    descending: bool = Query(default=True),
) -> MiscActivityQuery:
    return MiscActivityQuery(
        activity_type_id=activity_type_id,
        start_date=start_date,
        end_date=end_date,
        search_text=q,
        include_deleted=include_deleted,
        sort_field=sort,
        sort_descending=descending,
    )


def _activity_data(payload: MiscActivityPayload, row_version: str | None = None) -> MiscActivityData:
    return MiscActivityData(
        activity_type_id=payload.activity_type_id,
        nomenclature=payload.nomenclature,
        occurrence_date=payload.occurrence_date,
        description=payload.description,
        external_link=payload.external_link,
        row_version=row_version,
    )


@router.get("")
def search_activities(
    query: MiscActivityQuery = Depends(_query),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    return {"items": [service.serialize_list_row(row) for row in service.search_activities(query=query)]}


@router.get("/export")
def export_activities(
    query: MiscActivityQuery = Depends(_query),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    return attachment_response(_service(db).export_activities(query=query))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_activity(
    payload: MiscActivityPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    activity = service.create_activity(context=context, data=_activity_data(payload))
    return service.serialize_activity(activity)


@router.get("/{activity_id}")
def get_activity(
    activity_id: UUID,
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.serialize_activity(service.get_activity(activity_id=activity_id))


@router.put("/{activity_id}")
def update_activity(
    activity_id: UUID,
    payload: MiscActivityUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    activity = service.update_activity(
        context=context,
        activity_id=activity_id,
        data=_activity_data(payload, row_version=payload.row_version),
    )
    return service.serialize_activity(activity)


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_activity(
    activity_id: UUID,
    row_version: str | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    _service(db).delete_activity(context=context, activity_id=activity_id, row_version=row_version)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- Media ----------
@router.post("/{activity_id}/media", status_code=status.HTTP_201_CREATED)
def upload_activity_media(
    activity_id: UUID,
    file: UploadFile = File(...),
    row_version: str = Form(...),
    caption: str | None = Form(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    service.upload_media(
        context=context,
        activity_id=activity_id,
        row_version=row_version,
        file_name=file.filename,
        content_type=file.content_type,
        content=file.file.read(),
        caption=caption,
    )
    return service.serialize_activity(service.get_activity(activity_id=activity_id))


@router.get("/{activity_id}/media/{media_id}")
def open_activity_media(
    activity_id: UUID,
    media_id: UUID,
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    content, media = _service(db).open_media(activity_id=activity_id, media_id=media_id)
    return Response(
        content=content,
        media_type=media.media_type,
        headers={"Content-Disposition": f'inline; filename="{media.original_file_name}"'},
    )


@router.delete("/{activity_id}/media/{media_id}")
def delete_activity_media(
    activity_id: UUID,
    media_id: UUID,
    row_version: str | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    activity = service.delete_media(
        context=context,
        activity_id=activity_id,
        media_id=media_id,
        row_version=row_version,
    )
    return service.serialize_activity(activity)
