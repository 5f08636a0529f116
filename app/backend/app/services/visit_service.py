"""Application service for visit logs, their photos and exports."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth import MANAGE_ROLES, RequestUserContext, ensure_role
from app.core.config import get_settings
from app.models.entities import Visit, VisitPhoto
from app.repositories.visit_repository import VisitListRow, VisitRepository, VisitSearchFilters
from app.services.common import (
    PDF_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    ExportFilePayload,
    bump_row_version,
    ensure_row_version,
    export_stamp,
    iso_or_none,
    normalize_optional,
    record_audit,
    str_or_none,
)
from app.services.exports import SheetSpec, build_pdf_table, build_workbook, filters_sheet
from app.services.media_storage import directory_of
from app.services.photo_gallery import PhotoGallery

LOGGER = logging.getLogger(__name__)

CONCURRENCY_MESSAGE = "The visit was modified by another user. Please reload and try again."
EXPORT_HEADERS = ["Date of visit", "Visit type", "Visitor", "Strength", "Remarks", "Photos"]


@dataclass(slots=True)
class VisitCreateData:
    visit_type_id: UUID
    date_of_visit: date
    visitor_name: str
    strength: int
    remarks: str | None = None


@dataclass(slots=True)
class VisitUpdateData:
    row_version: str
    visit_type_id: UUID
    date_of_visit: date
    visitor_name: str
    strength: int
    remarks: str | None = None


class VisitService:
    """Service implementing visit log rules."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = VisitRepository(db)
        self.settings = get_settings()
        self.gallery = PhotoGallery(
            db,
            settings=self.settings,
            photo_model=VisitPhoto,
            owner_column="visit_id",
            area="visits",
        )

    # ---------- Serialization ----------
    @staticmethod
    def serialize_list_row(row: VisitListRow) -> dict[str, object]:
        visit = row.visit
        return {
            "id": str(visit.id),
            "visit_type_id": str(visit.visit_type_id),
            "visit_type_name": row.visit_type_name,
            "date_of_visit": visit.date_of_visit.isoformat(),
            "visitor_name": visit.visitor_name,
            "strength": visit.strength,
            "remarks": visit.remarks,
            "photo_count": row.photo_count,
            "cover_photo_id": str_or_none(visit.cover_photo_id),
            "row_version": visit.row_version,
        }

    def serialize_visit(self, visit: Visit) -> dict[str, object]:
        visit_type = self.repo.get_type(visit.visit_type_id)
        photos = self.gallery.list_photos(visit.id)
        return {
            "id": str(visit.id),
            "visit_type_id": str(visit.visit_type_id),
            "visit_type_name": visit_type.name if visit_type else None,
            "date_of_visit": visit.date_of_visit.isoformat(),
            "visitor_name": visit.visitor_name,
            "strength": visit.strength,
            "remarks": visit.remarks,
            "cover_photo_id": str_or_none(visit.cover_photo_id),
            "photos": [self.gallery.serialize_photo(photo, cover_photo_id=visit.cover_photo_id) for photo in photos],
            "created_at": visit.created_at.isoformat(),
            "updated_at": iso_or_none(visit.updated_at),
            "row_version": visit.row_version,
        }

    # ---------- Validation ----------
    def _validate(
        self,
        *,
        visit_type_id: UUID,
        date_of_visit: date,
        visitor_name: str,
        strength: int,
        remarks: str | None,
    ) -> tuple[str, str | None]:
        visit_type = self.repo.get_type(visit_type_id)
        if visit_type is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Visit type not found.")
        if not visit_type.is_active:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Visit type is inactive.")

        name = visitor_name.strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Visitor name is required.")
        if len(name) > 200:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Visitor name cannot exceed 200 characters.",
            )
        if strength <= 0:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Strength must be greater than zero.",
            )
        if date_of_visit > datetime.utcnow().date():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Date of visit cannot be in the future.",
            )
        normalized_remarks = normalize_optional(remarks)
        if normalized_remarks is not None and len(normalized_remarks) > 2000:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Remarks cannot exceed 2000 characters.",
            )
        return name, normalized_remarks

    def _get_visit(self, visit_id: UUID) -> Visit:
        visit = self.repo.get(visit_id)
        if visit is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Visit not found.")
        return visit

    # ---------- Visits ----------
    def search_visits(self, *, filters: VisitSearchFilters) -> list[VisitListRow]:
        return self.repo.search(filters)

    def get_visit(self, *, visit_id: UUID) -> Visit:
        return self._get_visit(visit_id)

    def create_visit(self, *, context: RequestUserContext, data: VisitCreateData) -> Visit:
        ensure_role(context, MANAGE_ROLES)
        visitor_name, remarks = self._validate(
            visit_type_id=data.visit_type_id,
            date_of_visit=data.date_of_visit,
            visitor_name=data.visitor_name,
            strength=data.strength,
            remarks=data.remarks,
        )

        visit = Visit(
            visit_type_id=data.visit_type_id,
            date_of_visit=data.date_of_visit,
            visitor_name=visitor_name,
            strength=data.strength,
            remarks=remarks,
            created_by_user_id=context.user_id,
            created_at=datetime.utcnow(),
        )
        bump_row_version(visit)
        self.repo.add(visit)
        record_audit(self.db, context=context, entity_name="Visit", entity_id=visit.id, action_type="created")
        self.db.commit()
        self.db.refresh(visit)
        return visit

    def update_visit(self, *, context: RequestUserContext, visit_id: UUID, data: VisitUpdateData) -> Visit:
        ensure_role(context, MANAGE_ROLES)
        visit = self._get_visit(visit_id)
        ensure_row_version(visit.row_version, data.row_version, detail=CONCURRENCY_MESSAGE)
        visitor_name, remarks = self._validate(
            visit_type_id=data.visit_type_id,
            date_of_visit=data.date_of_visit,
            visitor_name=data.visitor_name,
            strength=data.strength,
            remarks=data.remarks,
        )

        visit.visit_type_id = data.visit_type_id
        visit.date_of_visit = data.date_of_visit
        visit.visitor_name = visitor_name
        visit.strength = data.strength
        visit.remarks = remarks
        visit.updated_by_user_id = context.user_id
        visit.updated_at = datetime.utcnow()
        bump_row_version(visit)
        record_audit(self.db, context=context, entity_name="Visit", entity_id=visit.id, action_type="updated")
        self.db.commit()
        self.db.refresh(visit)
        return visit

    def delete_visit(self, *, context: RequestUserContext, visit_id: UUID, row_version: str | None) -> None:
        ensure_role(context, MANAGE_ROLES)
        visit = self._get_visit(visit_id)
        ensure_row_version(visit.row_version, row_version, detail=CONCURRENCY_MESSAGE)

        directories = self.gallery.remove_all(visit.id)
        record_audit(self.db, context=context, entity_name="Visit", entity_id=visit.id, action_type="deleted")
        self.repo.delete(visit)
        self.db.commit()
        self.gallery.purge(directories)
        LOGGER.info("visit_deleted id=%s photos=%s", visit_id, len(directories))

    # ---------- Photos ----------
    def upload_photo(
        self,
        *,
        context: RequestUserContext,
        visit_id: UUID,
        row_version: str | None,
        content: bytes,
        caption: str | None,
        set_as_cover: bool = False,
    ) -> VisitPhoto:
        ensure_role(context, MANAGE_ROLES)
        visit = self._get_visit(visit_id)
        ensure_row_version(visit.row_version, row_version, detail=CONCURRENCY_MESSAGE)

        photo = self.gallery.add_photo(
            owner=visit,
            content=content,
            caption=caption,
            created_by_user_id=context.user_id,
            set_as_cover=set_as_cover,
        )
        try:
            bump_row_version(visit)
            record_audit(
                self.db,
                context=context,
                entity_name="VisitPhoto",
                entity_id=photo.id,
                action_type="uploaded",
                payload={"visit_id": str(visit.id)},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.gallery.purge([directory_of(photo.storage_key)])
            raise
        self.db.refresh(photo)
        return photo

    def remove_photo(
        self,
        *,
        context: RequestUserContext,
        visit_id: UUID,
        photo_id: UUID,
        row_version: str | None,
    ) -> Visit:
        ensure_role(context, MANAGE_ROLES)
        visit = self._get_visit(visit_id)
        ensure_row_version(visit.row_version, row_version, detail=CONCURRENCY_MESSAGE)
        photo = self.gallery.get_photo(visit.id, photo_id)

        directory = self.gallery.remove_photo(owner=visit, photo=photo)
        bump_row_version(visit)
        record_audit(self.db, context=context, entity_name="VisitPhoto", entity_id=photo_id, action_type="removed")
        self.db.commit()
        self.gallery.purge([directory])
        self.db.refresh(visit)
        return visit

    def set_cover_photo(
        self,
        *,
        context: RequestUserContext,
        visit_id: UUID,
        photo_id: UUID,
        row_version: str | None,
    ) -> Visit:
        ensure_role(context, MANAGE_ROLES)
        visit = self._get_visit(visit_id)
        ensure_row_version(visit.row_version, row_version, detail=CONCURRENCY_MESSAGE)
        photo = self.gallery.get_photo(visit.id, photo_id)

        self.gallery.set_cover(owner=visit, photo=photo)
        bump_row_version(visit)
        self.db.commit()
        self.db.refresh(visit)
        return visit

    def open_photo(self, *, visit_id: UUID, photo_id: UUID, size: str) -> tuple[bytes, str]:
        return self.gallery.open_photo(visit_id, photo_id, size)

    # ---------- Export ----------
    def export_visits(self, *, filters: VisitSearchFilters, format_name: str) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in {"xlsx", "pdf"}:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: xlsx, pdf.",
            )
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The start date must be on or before the end date.",
            )

        rows = [
            [
                row.visit.date_of_visit,
                row.visit_type_name,
                row.visit.visitor_name,
                row.visit.strength,
                row.visit.remarks,
                row.photo_count,
            ]
            for row in self.repo.search(filters)
        ]
        generated_at = datetime.utcnow()
        base_filename = f"visits-{export_stamp(generated_at)}"

        if normalized_format == "pdf":
            return ExportFilePayload(
                media_type=PDF_MEDIA_TYPE,
                filename=f"{base_filename}.pdf",
                content=build_pdf_table(
                    title="Visits",
                    subtitle=f"Generated {generated_at:%d %b %Y %H:%M} UTC",
                    headers=EXPORT_HEADERS,
                    rows=rows,
                ),
            )

        content = build_workbook(
            [
                SheetSpec(title="Visits", headers=EXPORT_HEADERS, rows=rows),
                filters_sheet(
                    {
                        "Visit type": str_or_none(filters.visit_type_id),
                        "From": iso_or_none(filters.start_date),
                        "To": iso_or_none(filters.end_date),
                        "Search": filters.query,
                    },
                    generated_at=generated_at,
                ),
            ]
        )
        return ExportFilePayload(media_type=XLSX_MEDIA_TYPE, filename=f"{base_filename}.xlsx", content=content)
