"""Visit log endpoints, including photos and exports."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.responses import attachment_response
from app.core.auth import RequestUserContext, get_current_user_context
from app.db.dependencies import get_db_session
from app.repositories.visit_repository import VisitSearchFilters
from app.services.visit_service import VisitCreateData, VisitService, VisitUpdateData

router = APIRouter(prefix="/visits", tags=["visits"])


class VisitCreatePayload(BaseModel):
    visit_type_id: UUID
    date_of_visit: date
    visitor_name: str = Field(min_length=1, max_length=200)
    strength: int
    remarks: str | None = Field(default=None, max_length=2000)


class VisitUpdatePayload(VisitCreatePayload):
    row_version: str = Field(min_length=1, max_length=32)


class RowVersionPayload(BaseModel):
    row_version: str = Field(min_length=1, max_length=32)


def _service(db: Session) -> VisitService:
    return VisitService(db)


def _filters(
    visit_type_id: UUID | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    q: str | None = Query(default=None, max_length=200),
) -> VisitSearchFilters:
    return VisitSearchFilters(visit_type_id=visit_type_id, start_date=start_date, end_date=end_date, query=q)


@router.get("")
def search_visits(
    filters: VisitSearchFilters = Depends(_filters),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    return {"items": [service.serialize_list_row(row) for row in service.search_visits(filters=filters)]}


@router.get("/export")
def export_visits(
    format: str = Query(default="xlsx"),
    filters: VisitSearchFilters = Depends(_filters),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    return attachment_response(_service(db).export_visits(filters=filters, format_name=format))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_visit(
    payload: VisitCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    visit = service.create_visit(
        context=context,
        data=VisitCreateData(
            visit_type_id=payload.visit_type_id,
            date_of_visit=payload.date_of_visit,
            visitor_name=payload.visitor_name,
            strength=payload.strength,
            remarks=payload.remarks,
        ),
    )
    return service.serialize_visit(visit)


@router.get("/{visit_id}")
def get_visit(
    visit_id: UUID,
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.serialize_visit(service.get_visit(visit_id=visit_id))


@router.put("/{visit_id}")
def update_visit(
    visit_id: UUID,
    payload: VisitUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    visit = service.update_visit(
        context=context,
        visit_id=visit_id,
        data=VisitUpdateData(
            row_version=payload.row_version,
            visit_type_id=payload.visit_type_id,
            date_of_visit=payload.date_of_visit,
            visitor_name=payload.visitor_name,
            strength=payload.strength,
            remarks=payload.remarks,
        ),
    )
    return service.serialize_visit(visit)


@router.delete("/{visit_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_visit(
    visit_id: UUID,
    row_version: str | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    _service(db).delete_visit(context=context, visit_id=visit_id, row_version=row_version)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- Photos ----------
@router.post("/{visit_id}/photos", status_code=status.HTTP_201_CREATED)
def upload_visit_photo(
    visit_id: UUID,
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
        visit_id=visit_id,
        row_version=row_version,
        content=file.file.read(),
        caption=caption,
        set_as_cover=set_as_cover,
    )
    return service.serialize_visit(service.get_visit(visit_id=visit_id))


@router.get("/{visit_id}/photos/{photo_id}")
def open_visit_photo(
    visit_id: UUID,
    photo_id: UUID,
    size: str = Query(default="md"),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    content, media_type = _service(db).open_photo(visit_id=visit_id, photo_id=photo_id, size=size)
    return Response(content=content, media_type=media_type, headers={"Cache-Control": "private, max-age=300"})


@router.post("/{visit_id}/photos/{photo_id}/cover")
def set_visit_cover_photo(
    visit_id: UUID,
    photo_id: UUID,
    payload: RowVersionPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    visit = service.set_cover_photo(
        context=context,
        visit_id=visit_id,
        photo_id=photo_id,
        row_version=payload.row_version,
    )
    return service.serialize_visit(visit)


@router.delete("/{visit_id}/photos/{photo_id}")
def remove_visit_photo(
    visit_id: UUID,
    photo_id: UUID,
    row_version: str | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    visit = service.remove_photo(context=context, visit_id=visit_id, photo_id=photo_id, row_version=row_version)
    return service.serialize_visit(visit)
