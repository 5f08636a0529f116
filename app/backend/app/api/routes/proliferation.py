"""Proliferation submission, approval, reconciliation and reporting endpoints."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.responses import attachment_response
from app.core.auth import RequestUserContext, get_current_user_context
from app.db.dependencies import get_db_session
from app.models.entities import ApprovalStatus, ProliferationPreferenceMode, ProliferationSource, ProliferationYearly
from app.services.proliferation_import_service import ProliferationImportService
from app.services.proliferation_reporting_service import (
    MAX_OVERVIEW_PAGE_SIZE,
    MAX_REPORT_PAGE_SIZE,
    OverviewQuery,
    ProjectExportQuery,
    ProliferationReportingService,
    ReportQuery,
    parse_report_kind,
)
from app.services.proliferation_service import (
    DecisionData,
    EntryKind,
    GranularEntryData,
    ProliferationService,
    YearlyEntryData,
    parse_source,
)

router = APIRouter(prefix="/proliferation", tags=["proliferation"])


class YearlyEntryPayload(BaseModel):
    project_id: UUID
    source: str = Field(min_length=1, max_length=16)
    year: int
    total_quantity: int
    remarks: str | None = Field(default=None, max_length=500)


class YearlyEntryUpdatePayload(YearlyEntryPayload):
    row_version: str = Field(min_length=1, max_length=32)


class GranularEntryPayload(BaseModel):
    project_id: UUID
    simulator_name: str = Field(min_length=1, max_length=200)
    unit_name: str = Field(min_length=1, max_length=200)
    proliferation_date: date
    quantity: int
    remarks: str | None = Field(default=None, max_length=500)


class GranularEntryUpdatePayload(GranularEntryPayload):
    row_version: str = Field(min_length=1, max_length=32)


class DecisionPayload(BaseModel):
    approve: bool
    row_version: str = Field(min_length=1, max_length=32)
    notes: str | None = Field(default=None, max_length=1000)


class PreferencePayload(BaseModel):
    project_id: UUID
    source: str = Field(min_length=1, max_length=16)
    year: int
    mode: ProliferationPreferenceMode | None = None
    row_version: str | None = Field(default=None, max_length=32)


def _service(db: Session) -> ProliferationService:
    return ProliferationService(db)


def _source(value: str | None) -> ProliferationSource | None:
    if value is None or not value.strip():
        return None
    parsed = parse_source(value)
    if parsed is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown source.")
    return parsed


def _required_source(value: str) -> ProliferationSource:
    parsed = _source(value)
    if parsed is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Source is required.")
    return parsed


def _serialize_entry(service: ProliferationService, entry: object) -> dict[str, object]:
    project = service.repo.get_project(entry.project_id)
    if isinstance(entry, ProliferationYearly):
        return service.serialize_yearly(entry, project)
    return service.serialize_granular(entry, project)


# ---------- Submissions ----------
@router.get("/entries/{kind}")
def list_entries(
    kind: EntryKind,
    project_id: UUID | None = Query(default=None),
    approval_status: ApprovalStatus | None = Query(default=None),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    items = _service(db).list_entries(kind=kind, project_id=project_id, approval_status=approval_status)
    return {"items": items}


@router.post("/yearly", status_code=status.HTTP_201_CREATED)
def create_yearly_entry(
    payload: YearlyEntryPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    entry = service.create_yearly(
        context=context,
        data=YearlyEntryData(
            project_id=payload.project_id,
            source=_required_source(payload.source),
            year=payload.year,
            total_quantity=payload.total_quantity,
            remarks=payload.remarks,
        ),
    )
    return _serialize_entry(service, entry)


@router.put("/yearly/{entry_id}")
def update_yearly_entry(
    entry_id: UUID,
    payload: YearlyEntryUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    entry = service.update_yearly(
        context=context,
        entry_id=entry_id,
        data=YearlyEntryData(
            project_id=payload.project_id,
            source=_required_source(payload.source),
            year=payload.year,
            total_quantity=payload.total_quantity,
            remarks=payload.remarks,
            row_version=payload.row_version,
        ),
    )
    return _serialize_entry(service, entry)


@router.post("/granular", status_code=status.HTTP_201_CREATED)
def create_granular_entry(
    payload: GranularEntryPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    entry = service.create_granular(
        context=context,
        data=GranularEntryData(
            project_id=payload.project_id,
            simulator_name=payload.simulator_name,
            unit_name=payload.unit_name,
            proliferation_date=payload.proliferation_date,
            quantity=payload.quantity,
            remarks=payload.remarks,
        ),
    )
    return _serialize_entry(service, entry)


@router.put("/granular/{entry_id}")
def update_granular_entry(
    entry_id: UUID,
    payload: GranularEntryUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    entry = service.update_granular(
        context=context,
        entry_id=entry_id,
        data=GranularEntryData(
            project_id=payload.project_id,
            simulator_name=payload.simulator_name,
            unit_name=payload.unit_name,
            proliferation_date=payload.proliferation_date,
            quantity=payload.quantity,
            remarks=payload.remarks,
            row_version=payload.row_version,
        ),
    )
    return _serialize_entry(service, entry)


@router.delete("/entries/{kind}/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entry(
    kind: EntryKind,
    entry_id: UUID,
    row_version: str | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    _service(db).delete_entry(context=context, kind=kind, entry_id=entry_id, row_version=row_version)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/entries/{kind}/{entry_id}/decision")
def decide_entry(
    kind: EntryKind,
    entry_id: UUID,
    payload: DecisionPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    entry = service.decide_entry(
        context=context,
        kind=kind,
        entry_id=entry_id,
        data=DecisionData(approve=payload.approve, row_version=payload.row_version, notes=payload.notes),
    )
    return _serialize_entry(service, entry)


# ---------- Import ----------
@router.post("/import/{kind}")
def import_entries(
    kind: EntryKind,
    file: UploadFile = File(...),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProliferationImportService(db)
    content = file.file.read()
    if kind is EntryKind.YEARLY:
        result = service.import_yearly(context=context, content=content)
    else:
        result = service.import_granular(context=context, content=content)
    return service.serialize_result(result)


# ---------- Preferences ----------
@router.put("/preferences")
def set_preference(
    payload: PreferencePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    source = _required_source(payload.source)
    result = service.set_preference(
        context=context,
        project_id=payload.project_id,
        source=source,
        year=payload.year,
        mode=payload.mode,
        expected_row_version=payload.row_version,
    )
    return {
        "outcome": result.outcome.value,
        "preference": service.serialize_preference(result.preference) if result.preference else None,
        "effective_total": service.get_effective_total(project_id=payload.project_id, source=source, year=payload.year),
    }


# ---------- Read models ----------
@router.get("/projects/{project_id}")
def get_project_detail(
    project_id: UUID,
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).project_detail(project_id=project_id)


@router.get("/units/suggestions")
def suggest_units(
    term: str | None = Query(default=None),
    take: int = Query(default=10),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[str]]:
    return {"items": _service(db).unit_suggestions(term=term, take=take)}


@router.get("/summary")
def get_summary(
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return ProliferationReportingService(db).summary()


@router.get("/overview")
def get_overview(
    source: str | None = Query(default=None),
    year: list[int] | None = Query(default=None),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    approval_status: ApprovalStatus | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=MAX_OVERVIEW_PAGE_SIZE),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return ProliferationReportingService(db).overview(
        OverviewQuery(
            source=_source(source),
            years=year or [],
            from_date=from_date,
            to_date=to_date,
            search=search,
            approval_status=approval_status,
            page=page,
            page_size=page_size,
        )
    )


def _report_query(
    kind: str,
    source: str | None = Query(default=None),
    project_id: UUID | None = Query(default=None),
    unit_name: str | None = Query(default=None, max_length=200),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    approval_status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=MAX_REPORT_PAGE_SIZE),
) -> ReportQuery:
    return ReportQuery(
        kind=parse_report_kind(kind),
        source=_source(source),
        project_id=project_id,
        unit_name=unit_name,
        from_date=from_date,
        to_date=to_date,
        approval_status=approval_status,
        page=page,
        page_size=page_size,
    )


@router.get("/reports/{kind}")
def run_report(
    query: ReportQuery = Depends(_report_query),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProliferationReportingService(db)
    return service.serialize_report(service.run_report(query))


@router.get("/reports/{kind}/export")
def export_report(
    query: ReportQuery = Depends(_report_query),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    return attachment_response(ProliferationReportingService(db).export_report(query))


@router.get("/export/projects")
def export_project_totals(
    source: str | None = Query(default=None),
    year: list[int] | None = Query(default=None),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    payload = ProliferationReportingService(db).export_projects(
        ProjectExportQuery(
            source=_source(source),
            years=year or [],
            from_date=from_date,
            to_date=to_date,
            search=search,
        ),
        requested_by=context.display_name or context.email,
    )
    return attachment_response(payload)
