"""Repository helpers for social media event logs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.models.entities import SocialMediaEvent, SocialMediaEventPhoto, SocialMediaEventType, SocialMediaPlatform


@dataclass(slots=True)
class SocialMediaSearchFilters:
    event_type_id: UUID | None = None
    platform_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    query: str | None = None


@dataclass(slots=True)
class SocialMediaListRow:
    event: SocialMediaEvent
    event_type_name: str
    platform_name: str | None
    photo_count: int


class SocialMediaRepository:
    """Persistence operations used by social media event services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def search(self, filters: SocialMediaSearchFilters) -> list[SocialMediaListRow]:
        photo_counts = (
            select(
                SocialMediaEventPhoto.social_media_event_id,
                func.count(SocialMediaEventPhoto.id).label("photo_count"),
            )
            .group_by(SocialMediaEventPhoto.social_media_event_id)
            .subquery()
        )
        stmt = (
            select(
                SocialMediaEvent,
                SocialMediaEventType.name,
                SocialMediaPlatform.name,
                func.coalesce(photo_counts.c.photo_count, 0),
            )
            .join(SocialMediaEventType, SocialMediaEventType.id == SocialMediaEvent.social_media_event_type_id)
            .outerjoin(SocialMediaPlatform, SocialMediaPlatform.id == SocialMediaEvent.social_media_platform_id)
            .outerjoin(photo_counts, photo_counts.c.social_media_event_id == SocialMediaEvent.id)
        )

        if filters.event_type_id is not None:
            stmt = stmt.where(SocialMediaEvent.social_media_event_type_id == filters.event_type_id)
        if filters.platform_id is not None:
            stmt = stmt.where(SocialMediaEvent.social_media_platform_id == filters.platform_id)
        if filters.start_date is not None:
            stmt = stmt.where(SocialMediaEvent.date_of_event >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(SocialMediaEvent.date_of_event <= filters.end_date)
        if filters.query and filters.query.strip():
            pattern = f"%{filters.query.strip()}%"
            stmt = stmt.where(
                or_(SocialMediaEvent.title.ilike(pattern), SocialMediaEvent.description.ilike(pattern))
            )

        rows = self.db.execute(
            stmt.order_by(SocialMediaEvent.date_of_event.desc(), SocialMediaEvent.created_at.desc())
        ).all()
        return [
            SocialMediaListRow(
                event=row[0],
                event_type_name=row[1],
                platform_name=row[2],
                photo_count=int(row[3]),
            )
            for row in rows
        ]

    def get(self, event_id: UUID) -> SocialMediaEvent | None:
        return self.db.scalar(select(SocialMediaEvent).where(SocialMediaEvent.id == event_id))

    def get_type(self, event_type_id: UUID) -> SocialMediaEventType | None:
        return self.db.scalar(select(SocialMediaEventType).where(SocialMediaEventType.id == event_type_id))

    def get_platform(self, platform_id: UUID) -> SocialMediaPlatform | None:
        return self.db.scalar(select(SocialMediaPlatform).where(SocialMediaPlatform.id == platform_id))

    def add(self, event: SocialMediaEvent) -> SocialMediaEvent:
        self.db.add(event)
        self.db.flush()
        return event

    def delete(self, event: SocialMediaEvent) -> None:
        self.db.delete(event)
        self.db.flush()
