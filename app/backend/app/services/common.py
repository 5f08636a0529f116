"""Helpers shared by the reporting module services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth import RequestUserContext
from app.models.entities import AuditEvent, new_row_version


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def normalize_optional(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def export_stamp(moment: datetime) -> str:
    return moment.strftime("%Y%m%d-%H%M")


def ensure_row_version(current: str, expected: str | None, *, detail: str) -> None:
    """Reject a write whose client token no longer matches the stored row."""

    if expected is None or not expected.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="row_version is required.")
    if current != expected.strip():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def bump_row_version(row: object) -> str:
    token = new_row_version()
    row.row_version = token
    return token


def record_audit(
    db: Session,
    *,
    context: RequestUserContext,
    entity_name: str,
    entity_id: UUID | str,
    action_type: str,
    payload: dict[str, object] | None = None,
) -> AuditEvent:
    event = AuditEvent(
        actor_user_id=context.user_id,
        entity_name=entity_name,
        entity_id=str(entity_id),
        action_type=action_type,
        payload=payload,
        created_at=datetime.utcnow(),
    )
    db.add(event)
    return event


def iso_or_none(value: object | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def str_or_none(value: UUID | None) -> str | None:
    return str(value) if value is not None else None
