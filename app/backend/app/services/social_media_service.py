"""Application service for social media event logs, photos and exports."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth import MANAGE_ROLES, RequestUserContext, ensure_role
from app.core.config import get_settings
from app.models.entities import SocialMediaEvent, SocialMediaEventPhoto
from app.repositories.social_media_repository import (
    SocialMediaListRow,
    SocialMediaRepository,
    SocialMediaSearchFilters,
)
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

CONCURRENCY_MESSAGE = "The social media event was modified by another user. Please reload and try again."
EXPORT_HEADERS = ["Date", "Event type", "Platform", "Title", "Reach", "Description", "Photos"]


@dataclass(slots=True)
class SocialMediaEventData:
    social_media_event_type_id: UUID
    date_of_event: date
    title: str
    reach: int = 0
    social_media_platform_id: UUID | None = None
    description: str | None = None
    row_version: str | None = None


class SocialMediaService:
    """Service implementing social media event rules."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = SocialMediaRepository(db)
        self.settings = get_settings()
        self.gallery = PhotoGallery(
            db,
            settings=self.settings,
            photo_model=SocialMediaEventPhoto,
            owner_column="social_media_event_id",
            area="social-media-events",
        )

    # ---------- Serialization ----------
    @staticmethod
    def serialize_list_row(row: SocialMediaListRow) -> dict[str, object]:
        event = row.event
        return {
            "id": str(event.id),
            "social_media_event_type_id": str(event.social_media_event_type_id),
            "event_type_name": row.event_type_name,
            "social_media_platform_id": str_or_none(event.social_media_platform_id),
            "platform_name": row.platform_name,
            "date_of_event": event.date_of_event.isoformat(),
            "title": event.title,
            "reach": event.reach,
            "description": event.description,
            "photo_count": row.photo_count,
            "cover_photo_id": str_or_none(event.cover_photo_id),
            "row_version": event.row_version,
        }

    def serialize_event(self, event: SocialMediaEvent) -> dict[str, object]:
        event_type = self.repo.get_type(event.social_media_event_type_id)
        platform = (
            self.repo.get_platform(event.social_media_platform_id)
            if event.social_media_platform_id is not None
            else None
        )
        photos = self.gallery.list_photos(event.id)
        return {
            "id": str(event.id),
            "social_media_event_type_id": str(event.social_media_event_type_id),
            "event_type_name": event_type.name if event_type else None,
            "social_media_platform_id": str_or_none(event.social_media_platform_id),
            "platform_name": platform.name if platform else None,
            "date_of_event": event.date_of_event.isoformat(),
            "title": event.title,
            "reach": event.reach,
            "description": event.description,
            "cover_photo_id": str_or_none(event.cover_photo_id),
            "photos": [self.gallery.serialize_photo(photo, cover_photo_id=event.cover_photo_id) for photo in photos],
            "created_at": event.created_at.isoformat(),
            "updated_at": iso_or_none(event.updated_at),
            "row_version": event.row_version,
        }

    # ---------- Validation ----------
    def _validate(self, data: SocialMediaEventData) -> tuple[str, str | None]:
        event_type = self.repo.get_type(data.social_media_event_type_id)
        if event_type is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event type not found.")
        if not event_type.is_active:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event type is inactive.")

        if data.social_media_platform_id is not None:
            platform = self.repo.get_platform(data.social_media_platform_id)
            if platform is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Platform not found.")
            if not platform.is_active:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Platform is inactive.")

        title = data.title.strip()
        if not title:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Title is required.")
        if len(title) > 200:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Title cannot exceed 200 characters.",
            )
        if data.reach < 0:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Reach cannot be negative.")
        if data.date_of_event > datetime.utcnow().date():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Date of event cannot be in the future.",
            )
        description = normalize_optional(data.description)
        if description is not None and len(description) > 2000:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Description cannot exceed 2000 characters.",
            )
        return title, description

    def _get_event(self, event_id: UUID) -> SocialMediaEvent:
        event = self.repo.get(event_id)
        if event is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Social media event not found.")
        return event

    # ---------- Events ----------
    def search_events(self, *, filters: SocialMediaSearchFilters) -> list[SocialMediaListRow]:
        return self.repo.search(filters)

    def get_event(self, *, event_id: UUID) -> SocialMediaEvent:
        return self._get_event(event_id)

    def create_event(self, *, context: RequestUserContext, data: SocialMediaEventData) -> SocialMediaEvent:
        ensure_role(context, MANAGE_ROLES)
        title, description = self._validate(data)

        event = SocialMediaEvent(
            social_media_event_type_id=data.social_media_event_type_id,
            social_media_platform_id=data.social_media_platform_id,
            date_of_event=data.date_of_event,
            title=title,
            reach=data.reach,
            description=description,
            created_by_user_id=context.user_id,
            created_at=datetime.utcnow(),
        )
        bump_row_version(event)
        self.repo.add(event)
        record_audit(
            self.db,
            context=context,
            entity_name="SocialMediaEvent",
            entity_id=event.id,
            action_type="created",
        )
        self.db.commit()
        self.db.refresh(event)
        return event

    def update_event(
        self,
        *,
        context: RequestUserContext,
        event_id: UUID,
        data: SocialMediaEventData,
    ) -> SocialMediaEvent:
        ensure_role(context, MANAGE_ROLES)
        event = self._get_event(event_id)
        ensure_row_version(event.row_version, data.row_version, detail=CONCURRENCY_MESSAGE)
        title, description = self._validate(data)

        event.social_media_event_type_id = data.social_media_event_type_id
        event.social_media_platform_id = data.social_media_platform_id
        event.date_of_event = data.date_of_event
        event.title = title
        event.reach = data.reach
        event.description = description
        event.updated_by_user_id = context.user_id
        event.updated_at = datetime.utcnow()
        bump_row_version(event)
        record_audit(
            self.db,
            context=context,
            entity_name="SocialMediaEvent",
            entity_id=event.id,
            action_type="updated",
        )
        self.db.commit()
        self.db.refresh(event)
        return event

    def delete_event(self, *, context: RequestUserContext, event_id: UUID, row_version: str | None) -> None:
        ensure_role(context, MANAGE_ROLES)
        event = self._get_event(event_id)
        ensure_row_version(event.row_version, row_version, detail=CONCURRENCY_MESSAGE)

        directories = self.gallery.remove_all(event.id)
        record_audit(
            self.db,
            context=context,
            entity_name="SocialMediaEvent",
            entity_id=event.id,
            action_type="deleted",
        )
        self.repo.delete(event)
        self.db.commit()
        self.gallery.purge(directories)
        LOGGER.info("social_media_event_deleted id=%s photos=%s", event_id, len(directories))

    # ---------- Photos ----------
    def upload_photo(
        self,
        *,
        context: RequestUserContext,
        event_id: UUID,
        row_version: str | None,
        content: bytes,
        caption: str | None,
        set_as_cover: bool = False,
    ) -> SocialMediaEventPhoto:
        ensure_role(context, MANAGE_ROLES)
        event = self._get_event(event_id)
        ensure_row_version(event.row_version, row_version, detail=CONCURRENCY_MESSAGE)

        photo = self.gallery.add_photo(
            owner=event,
            content=content,
            caption=caption,
            created_by_user_id=context.user_id,
            set_as_cover=set_as_cover,
        )
        try:
            bump_row_version(event)
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
        event_id: UUID,
        photo_id: UUID,
        row_version: str | None,
    ) -> SocialMediaEvent:
        ensure_role(context, MANAGE_ROLES)
        event = self._get_event(event_id)
        ensure_row_version(event.row_version, row_version, detail=CONCURRENCY_MESSAGE)
        photo = self.gallery.get_photo(event.id, photo_id)

        directory = self.gallery.remove_photo(owner=event, photo=photo)
        bump_row_version(event)
        self.db.commit()
        self.gallery.purge([directory])
        self.db.refresh(event)
        return event

    def set_cover_photo(
        self,
        *,
        context: RequestUserContext,
        event_id: UUID,
        photo_id: UUID,
        row_version: str | None,
    ) -> SocialMediaEvent:
        ensure_role(context, MANAGE_ROLES)
        event = self._get_event(event_id)
        ensure_row_version(event.row_version, row_version, detail=CONCURRENCY_MESSAGE)
        photo = self.gallery.get_photo(event.id, photo_id)

        self.gallery.set_cover(owner=event, photo=photo)
        bump_row_version(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def open_photo(self, *, event_id: UUID, photo_id: UUID, size: str) -> tuple[bytes, str]:
        return self.gallery.open_photo(event_id, photo_id, size)

    # ---------- Export ----------
    def export_events(self, *, filters: SocialMediaSearchFilters, format_name: str) -> ExportFilePayload:
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
                row.event.date_of_event,
                row.event_type_name,
                row.platform_name,
                row.event.title,
                row.event.reach,
                row.event.description,
                row.photo_count,
            ]
            for row in self.repo.search(filters)
        ]
        generated_at = datetime.utcnow()
        base_filename = f"social-media-events-{export_stamp(generated_at)}"

        if normalized_format == "pdf":
            period = "All dates"
            if filters.start_date or filters.end_date:
                period = f"{iso_or_none(filters.start_date) or '...'} to {iso_or_none(filters.end_date) or '...'}"
            return ExportFilePayload(
                media_type=PDF_MEDIA_TYPE,
                filename=f"{base_filename}.pdf",
                content=build_pdf_table(
                    title="Social Media Events",
                    subtitle=f"{period} | Generated {generated_at:%d %b %Y %H:%M} UTC",
                    headers=EXPORT_HEADERS,
                    rows=rows,
                ),
            )

        content = build_workbook(
            [
                SheetSpec(title="Social media events", headers=EXPORT_HEADERS, rows=rows),
                filters_sheet(
                    {
                        "Event type": str_or_none(filters.event_type_id),
                        "Platform": str_or_none(filters.platform_id),
                        "From": iso_or_none(filters.start_date),
                        "To": iso_or_none(filters.end_date),
                        "Search": filters.query,
                    },
                    generated_at=generated_at,
                ),
            ]
        )
        return ExportFilePayload(media_type=XLSX_MEDIA_TYPE, filename=f"{base_filename}.xlsx", content=content)
