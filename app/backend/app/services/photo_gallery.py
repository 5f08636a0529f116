"""Photo gallery operations shared by visits and social media events."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.services.common import normalize_optional
from app.services.media_storage import (
    ORIGINAL_SIZE,
    MediaStorage,
    directory_of,
    photo_directory,
    photo_key,
    process_photo,
)

LOGGER = logging.getLogger(__name__)

MAX_CAPTION_LENGTH = 512


class PhotoGallery:
    """Stores photos for one owner table and keeps its cover pointer consistent.

    ``photo_model`` rows carry ``storage_key`` of the original file; renditions
    sit next to it as ``{size}.jpg``. When the photo model has an ``is_cover``
    column, it is kept in step with ``owner.cover_photo_id``.
    """

    def __init__(
        self,
        db: Session,
        *,
        settings: Settings,
        photo_model: type,
        owner_column: str,
        area: str,
    ) -> None:
        self.db = db
        self.settings = settings
        self.photo_model = photo_model
        self.owner_column = owner_column
        self.area = area
        self.storage = MediaStorage(settings.upload_root)

    def _owner_attr(self):
        return getattr(self.photo_model, self.owner_column)

    @property
    def tracks_cover_flag(self) -> bool:
        return hasattr(self.photo_model, "is_cover")

    # ---------- Reads ----------
    def list_photos(self, owner_id: UUID) -> list[object]:
        return self.db.scalars(
            select(self.photo_model)
            .where(self._owner_attr() == owner_id)
            .order_by(self.photo_model.created_at.asc(), self.photo_model.id.asc())
        ).all()

    def get_photo(self, owner_id: UUID, photo_id: UUID) -> object:
        photo = self.db.scalar(
            select(self.photo_model).where(
                self.photo_model.id == photo_id,
                self._owner_attr() == owner_id,
            )
        )
        if photo is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found.")
        return photo

    def open_photo(self, owner_id: UUID, photo_id: UUID, size: str) -> tuple[bytes, str]:
        photo = self.get_photo(owner_id, photo_id)
        normalized = (size or ORIGINAL_SIZE).strip().lower()
        if normalized == ORIGINAL_SIZE:
            return self.storage.read(photo.storage_key), photo.content_type
        if normalized not in self.settings.photo_derivatives:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown photo size.")
        return self.storage.read(photo_key(directory_of(photo.storage_key), normalized)), "image/jpeg"

    @staticmethod
    def serialize_photo(photo: object, *, cover_photo_id: UUID | None) -> dict[str, object]:
        return {
            "id": str(photo.id),
            "content_type": photo.content_type,
            "width": photo.width,
            "height": photo.height,
            "caption": photo.caption,
            "version_stamp": photo.version_stamp,
            "is_cover": photo.id == cover_photo_id,
            "created_at": photo.created_at.isoformat(),
        }

    # ---------- Writes ----------
    def add_photo(
        self,
        *,
        owner: object,
        content: bytes,
        caption: str | None,
        created_by_user_id: UUID,
        set_as_cover: bool = False,
    ) -> object:
        """Process and store a photo, then stage its row; the caller commits."""

        normalized_caption = normalize_optional(caption)
        if normalized_caption is not None and len(normalized_caption) > MAX_CAPTION_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Caption cannot exceed {MAX_CAPTION_LENGTH} characters.",
            )

        processed = process_photo(content, self.settings)
        photo_id = uuid.uuid4()
        directory = photo_directory(self.area, owner.id, photo_id)
        original_key = photo_key(directory, ORIGINAL_SIZE, processed.extension)

        try:
            self.storage.write(original_key, processed.original)
            for size, rendition in processed.derivatives.items():
                self.storage.write(photo_key(directory, size), rendition)

            photo = self.photo_model(
                id=photo_id,
                storage_key=original_key,
                content_type=processed.content_type,
                width=processed.width,
                height=processed.height,
                caption=normalized_caption,
                version_stamp=uuid.uuid4().hex,
                created_by_user_id=created_by_user_id,
                created_at=datetime.utcnow(),
            )
            setattr(photo, self.owner_column, owner.id)
            self.db.add(photo)
            self.db.flush()

            if set_as_cover or owner.cover_photo_id is None:
                self.set_cover(owner=owner, photo=photo)
        except Exception:
            self.purge([directory])
            raise
        return photo

    def set_cover(self, *, owner: object, photo: object) -> None:
        owner.cover_photo_id = photo.id
        if self.tracks_cover_flag:
            for existing in self.list_photos(owner.id):
                existing.is_cover = existing.id == photo.id
        self.db.flush()

    def remove_photo(self, *, owner: object, photo: object) -> str:
        """Delete the row and repoint the cover; returns the directory to purge after commit."""

        directory = directory_of(photo.storage_key)
        was_cover = owner.cover_photo_id == photo.id
        self.db.delete(photo)
        self.db.flush()

        if was_cover:
            remaining = self.list_photos(owner.id)
            if remaining:
                self.set_cover(owner=owner, photo=remaining[0])
            else:
                owner.cover_photo_id = None
        return directory

    def remove_all(self, owner_id: UUID) -> list[str]:
        directories: list[str] = []
        for photo in self.list_photos(owner_id):
            directories.append(directory_of(photo.storage_key))
            self.db.delete(photo)
        self.db.flush()
        return directories

    def purge(self, directories: list[str]) -> None:
        for directory in directories:
            self.storage.delete_directory(directory)
        if directories:
            LOGGER.info("photo_files_purged area=%s count=%s", self.area, len(directories))
