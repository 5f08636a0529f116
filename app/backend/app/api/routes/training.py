"""Training tracker endpoints: trainings, rosters, delete requests and export."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.responses import attachment_response
from app.core.auth import RequestUserContext, get_current_user_context
from app.db.dependencies import get_db_session
from app.services.training_reporting_service import MAX_PAGE_SIZE, TrainingQuery, TrainingReportingService
from app.services.training_service import RosterRowData, TrainingService, TrainingWriteData

router = APIRouter(prefix="/trainings", tags=["training"])


class TrainingCreatePayload(BaseModel):
    training_type_id: UUID
    start_date: date | None = None
    end_date: date | None = None
    training_month: int | None = Field(default=None, ge=1, le=12)
    training_year: int | None = None
    legacy_officer_count: int = Field(default=0, ge=0)
    legacy_jco_count: int = Field(default=0, ge=0)
    legacy_or_count: int = Field(default=0, ge=0)
    notes: str | None = Field(default=None, max_length=2000)
    project_ids: list[UUID] = Field(default_factory=list)


class TrainingUpdatePayload(TrainingCreatePayload):
    row_version: str = Field(min_length=1, max_length=32)


class RosterRowPayload(BaseModel):
    rank: str | None = Field(default=None, max_length=128)
    name: str | None = Field(default=None, max_length=200)
    unit_name: str | None = Field(default=None, max_length=200)
    army_number: str | None = Field(default=None, max_length=32)
    category: int | None = None


class RosterPayload(BaseModel):
    row_version: str = Field(min_length=1, max_length=32)
    rows: list[RosterRowPayload] = Field(default_factory=list)


class DeleteRequestPayload(BaseModel):
    row_version: str = Field(min_length=1, max_length=32)
    reason: str = Field(min_length=1)


class RejectDeletePayload(BaseModel):
    notes: str = Field(min_length=1, max_length=1000)


def _service(db: Session) -> TrainingService:
    return TrainingService(db)


def _write_data(payload: TrainingCreatePayload, row_version: str | None = None) -> TrainingWriteData:
    return TrainingWriteData(
        training_type_id=payload.training_type_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        training_month=payload.training_month,
        training_year=payload.training_year,
        legacy_officer_count=payload.legacy_officer_count,
        legacy_jco_count=payload.legacy_jco_count,
        legacy_or_count=payload.legacy_or_count,
        notes=payload.notes,
        project_ids=list(payload.project_ids),
        row_version=row_version,
    )


def _query(
    training_type_id: list[UUID] | None = Query(default=None),
    project_id: UUID | None = Query(default=None),
    category: int | None = Query(default=None, ge=0, le=2),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    q: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=MAX_PAGE_SIZE),
) -> TrainingQuery:
    return TrainingQuery(
        training_type_ids=training_type_id or [],
        project_id=project_id,
        category=category,
        from_date=from_date,
        to_date=to_date,
        search=q,
        page=page,
        page_size=page_size,
    )


@router.get("")
def search_trainings(
    query: TrainingQuery = Depends(_query),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return TrainingReportingService(db).search(query)


@router.get("/export")
def export_trainings(
    include_roster: bool = Query(default=False),
    query: TrainingQuery = Depends(_query),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    return attachment_response(TrainingReportingService(db).export(query, include_roster=include_roster))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_training(
    payload: TrainingCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).create_training(context=context, data=_write_data(payload))


# ---------- Delete requests ----------
@router.get("/delete-requests/pending")
def list_pending_delete_requests(
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    return {"items": TrainingReportingService(db).pending_delete_requests()}


@router.post("/delete-requests/{request_id}/approve")
def approve_delete_request(
    request_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    request = _service(db).approve_delete(context=context, request_id=request_id)
    return TrainingService.serialize_delete_request(request)


@router.post("/delete-requests/{request_id}/reject")
def reject_delete_request(
    request_id: UUID,
    payload: RejectDeletePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    request = _service(db).reject_delete(context=context, request_id=request_id, notes=payload.notes)
    return TrainingService.serialize_delete_request(request)


# ---------- Trainings ----------
@router.get("/{training_id}")
def get_training(
    training_id: UUID,
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return TrainingReportingService(db).details(training_id=training_id)


@router.put("/{training_id}")
def update_training(
    training_id: UUID,
    payload: TrainingUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).update_training(
        context=context,
        training_id=training_id,
        data=_write_data(payload, payload.row_version),
    )


@router.put("/{training_id}/roster")
def upsert_roster(
    training_id: UUID,
    payload: RosterPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).upsert_roster(
        context=context,
        training_id=training_id,
        row_version=payload.row_version,
        rows=[
            RosterRowData(
                rank=row.rank,
                name=row.name,
                unit_name=row.unit_name,
                army_number=row.army_number,
                category=row.category,
            )
            for row in payload.rows
        ],
    )


@router.post("/{training_id}/delete-requests", status_code=status.HTTP_201_CREATED)
def request_training_delete(
    training_id: UUID,
    payload: DeleteRequestPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    request = _service(db).request_delete(
        context=context,
        training_id=training_id,
        row_version=payload.row_version,
        reason=payload.reason,
    )
    return TrainingService.serialize_delete_request(request)
