"""Application service for miscellaneous activity logs and their media."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import PurePosixPath
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.auth import MANAGE_ROLES, RequestUserContext, ensure_role
from app.core.config import get_settings
from app.models.entities import ActivityMedia, MiscActivity
from app.repositories.misc_activity_repository import (
    MiscActivityListRow,
    MiscActivityQuery,
    MiscActivityRepository,
)
from app.services.common import (
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
from app.services.exports import SheetSpec, build_workbook, filters_sheet
from app.services.media_storage import MediaStorage, read_image_size

LOGGER = logging.getLogger(__name__)

CONCURRENCY_MESSAGE = "The activity was modified by another user. Please reload and try again."
MEDIA_CONCURRENCY_MESSAGE = "The activity or media item was modified by another user. Please reload and try again."
DELETED_MESSAGE = "The activity has already been deleted."
DUPLICATE_MESSAGE = "An activity with the same nomenclature already exists for this date."

EXTENSION_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
}

_UNSAFE_FILE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(slots=True)
class MiscActivityData:
    nomenclature: str
    occurrence_date: date
    activity_type_id: UUID | None = None
    description: str | None = None
    external_link: str | None = None
    row_version: str | None = None


def normalize_content_type(content_type: str | None, file_name: str) -> str | None:
    if content_type and content_type.strip() and content_type.strip().lower() != "application/octet-stream":
        return content_type.split(";", 1)[0].strip().lower()
    return EXTENSION_CONTENT_TYPES.get(PurePosixPath(file_name).suffix.lower())


def safe_file_name(file_name: str) -> str:
    base = PurePosixPath(file_name.replace("\\", "/")).name
    cleaned = _UNSAFE_FILE_CHARS.sub("_", base).strip("._")
    return cleaned[:120] or "file"


class MiscActivityService:
    """Service implementing miscellaneous activity rules."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = MiscActivityRepository(db)
        self.settings = get_settings()
        self.storage = MediaStorage(self.settings.upload_root)

    # ---------- Serialization ----------
    @staticmethod
    def serialize_list_row(row: MiscActivityListRow) -> dict[str, object]:
        activity = row.activity
        return {
            "id": str(activity.id),
            "activity_type_id": str_or_none(activity.activity_type_id),
            "activity_type_name": row.activity_type_name,
            "nomenclature": activity.nomenclature,
            "occurrence_date": activity.occurrence_date.isoformat(),
            "description": activity.description,
            "external_link": activity.external_link,
            "media_count": row.media_count,
            "is_deleted": activity.deleted_at is not None,
            "captured_at": activity.captured_at.isoformat(),
            "row_version": activity.row_version,
        }

    @staticmethod
    def serialize_media(media: ActivityMedia) -> dict[str, object]:
        return {
            "id": str(media.id),
            "original_file_name": media.original_file_name,
            "media_type": media.media_type,
            "file_size": media.file_size,
            "caption": media.caption,
            "width": media.width,
            "height": media.height,
            "uploaded_at": media.uploaded_at.isoformat(),
        }

    def serialize_activity(self, activity: MiscActivity) -> dict[str, object]:
        activity_type = self.repo.get_type(activity.activity_type_id) if activity.activity_type_id else None
        return {
            "id": str(activity.id),
            "activity_type_id": str_or_none(activity.activity_type_id),
            "activity_type_name": activity_type.name if activity_type else None,
            "nomenclature": activity.nomenclature,
            "occurrence_date": activity.occurrence_date.isoformat(),
            "description": activity.description,
            "external_link": activity.external_link,
            "captured_by_user_id": str(activity.captured_by_user_id),
            "captured_at": activity.captured_at.isoformat(),
            "last_modified_at": iso_or_none(activity.last_modified_at),
            "deleted_at": iso_or_none(activity.deleted_at),
            "media": [self.serialize_media(media) for media in self.repo.list_media(activity.id)],
            "row_version": activity.row_version,
        }

    # ---------- Validation ----------
    def _validate(self, data: MiscActivityData) -> tuple[str, str | None, str | None]:
        nomenclature = (data.nomenclature or "").strip()
        if not nomenclature:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Nomenclature is required.")
        if len(nomenclature) > 256:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Nomenclature cannot exceed 256 characters.",
            )
        if data.occurrence_date > datetime.utcnow().date():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Occurrence date cannot be in the future.",
            )
        description = normalize_optional(data.description)
        if description is not None and len(description) > 4000:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Description cannot exceed 4000 characters.",
            )
        external_link = normalize_optional(data.external_link)
        if external_link is not None and len(external_link) > 1024:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="External link cannot exceed 1024 characters.",
            )

        if data.activity_type_id is not None:
            activity_type = self.repo.get_type(data.activity_type_id)
            if activity_type is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Activity type not found.")
            if not activity_type.is_active:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Activity type is inactive.")

        return nomenclature, description, external_link

    def _get_activity(self, activity_id: UUID) -> MiscActivity:
        activity = self.repo.get(activity_id)
        if activity is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity not found.")
        return activity

    def _get_live_activity(self, activity_id: UUID) -> MiscActivity:
        activity = self._get_activity(activity_id)
        if activity.deleted_at is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DELETED_MESSAGE)
        return activity

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_MESSAGE) from exc

    # ---------- Activities ----------
    def search_activities(self, *, query: MiscActivityQuery) -> list[MiscActivityListRow]:
        return self.repo.search(query)

    def get_activity(self, *, activity_id: UUID) -> MiscActivity:
        return self._get_activity(activity_id)

    def create_activity(self, *, context: RequestUserContext, data: MiscActivityData) -> MiscActivity:
        ensure_role(context, MANAGE_ROLES)
        nomenclature, description, external_link = self._validate(data)
        if self.repo.find_duplicate(occurrence_date=data.occurrence_date, nomenclature=nomenclature):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_MESSAGE)

        activity = MiscActivity(
            activity_type_id=data.activity_type_id,
            nomenclature=nomenclature,
            occurrence_date=data.occurrence_date,
            description=description,
            external_link=external_link,
            captured_by_user_id=context.user_id,
            captured_at=datetime.utcnow(),
        )
        bump_row_version(activity)
        self.repo.add(activity)
        record_audit(self.db, context=context, entity_name="MiscActivity", entity_id=activity.id, action_type="created")
        self._commit()
        self.db.refresh(activity)
        return activity

    def update_activity(
        self,
        *,
        context: RequestUserContext,
        activity_id: UUID,
        data: MiscActivityData,
    ) -> MiscActivity:
        ensure_role(context, MANAGE_ROLES)
        activity = self._get_live_activity(activity_id)
        ensure_row_version(activity.row_version, data.row_version, detail=CONCURRENCY_MESSAGE)
        nomenclature, description, external_link = self._validate(data)
        if self.repo.find_duplicate(
            occurrence_date=data.occurrence_date,
            nomenclature=nomenclature,
            exclude_id=activity.id,
        ):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_MESSAGE)

        activity.activity_type_id = data.activity_type_id
        activity.nomenclature = nomenclature
        activity.occurrence_date = data.occurrence_date
        activity.description = description
        activity.external_link = external_link
        activity.last_modified_by_user_id = context.user_id
        activity.last_modified_at = datetime.utcnow()
        bump_row_version(activity)
        record_audit(self.db, context=context, entity_name="MiscActivity", entity_id=activity.id, action_type="updated")
        self._commit()
        self.db.refresh(activity)
        return activity

    def delete_activity(self, *, context: RequestUserContext, activity_id: UUID, row_version: str | None) -> None:
        ensure_role(context, MANAGE_ROLES)
        activity = self._get_live_activity(activity_id)
        ensure_row_version(activity.row_version, row_version, detail=CONCURRENCY_MESSAGE)

        activity.deleted_at = datetime.utcnow()
        activity.deleted_by_user_id = context.user_id
        bump_row_version(activity)
        record_audit(self.db, context=context, entity_name="MiscActivity", entity_id=activity.id, action_type="deleted")
        self.db.commit()
        LOGGER.info("misc_activity_deleted id=%s", activity_id)

    # ---------- Media ----------
    def upload_media(
        self,
        *,
        context: RequestUserContext,
        activity_id: UUID,
        row_version: str | None,
        file_name: str | None,
        content_type: str | None,
        content: bytes,
        caption: str | None,
    ) -> ActivityMedia:
        ensure_role(context, MANAGE_ROLES)
        if not file_name or not file_name.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A file name is required.")
        normalized_caption = normalize_optional(caption)
        if normalized_caption is not None and len(normalized_caption) > 256:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Caption cannot exceed 256 characters.",
            )

        activity = self._get_live_activity(activity_id)
        ensure_row_version(activity.row_version, row_version, detail=CONCURRENCY_MESSAGE)

        media_type = normalize_content_type(content_type, file_name)
        if media_type is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unable to determine the file type.")
        if media_type not in self.settings.activity_media_allowed_types:
            allowed = ", ".join(self.settings.activity_media_allowed_types)
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail=f"Unsupported file type. Allowed types: {allowed}.",
            )
        if len(content) > self.settings.activity_media_max_size_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds the maximum size of {self.settings.activity_media_max_size_bytes} bytes.",
            )
        if not content:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")

        width = height = None
        if media_type.startswith("image/"):
            dimensions = read_image_size(content)
            if dimensions is None:
                raise HTTPException(
                    status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                    detail="The uploaded file is not a readable image.",
                )
            width, height = dimensions

        media_id = uuid.uuid4()
        storage_key = f"misc-activities/{activity.id}/{media_id}/{safe_file_name(file_name)}"
        try:
            self.storage.write(storage_key, content)

            media = ActivityMedia(
                id=media_id,
                activity_id=activity.id,
                storage_key=storage_key,
                original_file_name=PurePosixPath(file_name.replace("\\", "/")).name[:260],
                media_type=media_type,
                file_size=len(content),
                caption=normalized_caption,
                width=width,
                height=height,
                uploaded_by_user_id=context.user_id,
                uploaded_at=datetime.utcnow(),
            )
            self.repo.add(media)
            bump_row_version(activity)
            record_audit(
                self.db,
                context=context,
                entity_name="ActivityMedia",
                entity_id=media.id,
                action_type="uploaded",
                payload={"activity_id": str(activity.id), "file_name": media.original_file_name},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.storage.delete(storage_key)
            raise
        self.db.refresh(media)
        return media

    def delete_media(
        self,
        *,
        context: RequestUserContext,
        activity_id: UUID,
        media_id: UUID,
        row_version: str | None,
    ) -> MiscActivity:
        ensure_role(context, MANAGE_ROLES)
        activity = self._get_live_activity(activity_id)
        ensure_row_version(activity.row_version, row_version, detail=MEDIA_CONCURRENCY_MESSAGE)
        media = self.repo.get_media(activity.id, media_id)
        if media is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media item not found.")

        storage_key = media.storage_key
        self.repo.delete(media)
        bump_row_version(activity)
        record_audit(self.db, context=context, entity_name="ActivityMedia", entity_id=media_id, action_type="deleted")
        self.db.commit()
        self.storage.delete(storage_key)
        self.db.refresh(activity)
        return activity

    def open_media(self, *, activity_id: UUID, media_id: UUID) -> tuple[bytes, ActivityMedia]:
        media = self.repo.get_media(activity_id, media_id)
        if media is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media item not found.")
        return self.storage.read(media.storage_key), media

    # ---------- Export ----------
    def export_activities(self, *, query: MiscActivityQuery) -> ExportFilePayload:
        if query.start_date and query.end_date and query.start_date > query.end_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The start date must be on or before the end date.",
            )

        headers = ["Occurrence date", "Activity type", "Nomenclature", "Description", "External link", "Media", "Deleted"]
        rows = [
            [
                row.activity.occurrence_date,
                row.activity_type_name,
                row.activity.nomenclature,
                row.activity.description,
                row.activity.external_link,
                row.media_count,
                "Yes" if row.activity.deleted_at is not None else "No",
            ]
            for row in self.repo.search(query)
        ]
        generated_at = datetime.utcnow()
        content = build_workbook(
            [
                SheetSpec(title="Activities", headers=headers, rows=rows),
                filters_sheet(
                    {
                        "Activity type": str_or_none(query.activity_type_id),
                        "From": iso_or_none(query.start_date),
                        "To": iso_or_none(query.end_date),
                        "Search": query.search_text,
                        "Include deleted": "Yes" if query.include_deleted else "No",
                    },
                    generated_at=generated_at,
                ),
            ]
        )
        return ExportFilePayload(
            media_type=XLSX_MEDIA_TYPE,
            filename=f"misc-activities-{export_stamp(generated_at)}.xlsx",
            content=content,
        )
