"""Repository helpers for miscellaneous activity logs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.models.entities import ActivityMedia, ActivityType, MiscActivity


class MiscActivitySortField(str, Enum):
    OCCURRENCE_DATE = "occurrence_date"
    NOMENCLATURE = "nomenclature"
    CREATED_AT = "created_at"


@dataclass(slots=True)
class MiscActivityQuery:
    activity_type_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    search_text: str | None = None
    include_deleted: bool = False
    sort_field: MiscActivitySortField = MiscActivitySortField.OCCURRENCE_DATE
    sort_descending: bool = True


@dataclass(slots=True)
class MiscActivityListRow:
    activity: MiscActivity
    activity_type_name: str | None
    media_count: int


class MiscActivityRepository:
    """Persistence operations used by miscellaneous activity services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def search(self, query: MiscActivityQuery) -> list[MiscActivityListRow]:
        media_counts = (
            select(ActivityMedia.activity_id, func.count(ActivityMedia.id).label("media_count"))
            .group_by(ActivityMedia.activity_id)
            .subquery()
        )
        stmt = (
            select(MiscActivity, ActivityType.name, func.coalesce(media_counts.c.media_count, 0))
            .outerjoin(ActivityType, ActivityType.id == MiscActivity.activity_type_id)
            .outerjoin(media_counts, media_counts.c.activity_id == MiscActivity.id)
        )

        if not query.include_deleted:
            stmt = stmt.where(MiscActivity.deleted_at.is_(None))
        if query.activity_type_id is not None:
            stmt = stmt.where(MiscActivity.activity_type_id == query.activity_type_id)
        if query.start_date is not None:
            stmt = stmt.where(MiscActivity.occurrence_date >= query.start_date)
        if query.end_date is not None:
            stmt = stmt.where(MiscActivity.occurrence_date <= query.end_date)
        if query.search_text and query.search_text.strip():
            pattern = f"%{query.search_text.strip()}%"
            stmt = stmt.where(
                or_(MiscActivity.nomenclature.ilike(pattern), MiscActivity.description.ilike(pattern))
            )

        if query.sort_field is MiscActivitySortField.NOMENCLATURE:
            primary, secondary = MiscActivity.nomenclature, MiscActivity.occurrence_date
        elif query.sort_field is MiscActivitySortField.CREATED_AT:
            primary, secondary = MiscActivity.captured_at, MiscActivity.occurrence_date
        else:
            primary, secondary = MiscActivity.occurrence_date, MiscActivity.captured_at

        if query.sort_descending:
            stmt = stmt.order_by(primary.desc(), secondary.desc())
        else:
            stmt = stmt.order_by(primary.asc(), secondary.asc())

        return [
            MiscActivityListRow(activity=row[0], activity_type_name=row[1], media_count=int(row[2]))
            for row in self.db.execute(stmt).all()
        ]

    def get(self, activity_id: UUID) -> MiscActivity | None:
        return self.db.scalar(select(MiscActivity).where(MiscActivity.id == activity_id))

    def get_type(self, activity_type_id: UUID) -> ActivityType | None:
        return self.db.scalar(select(ActivityType).where(ActivityType.id == activity_type_id))

    def find_duplicate(
        self,
        *,
        occurrence_date: date,
        nomenclature: str,
        exclude_id: UUID | None = None,
    ) -> MiscActivity | None:
        stmt = select(MiscActivity).where(
            MiscActivity.occurrence_date == occurrence_date,
            MiscActivity.nomenclature == nomenclature,
        )
        if exclude_id is not None:
            stmt = stmt.where(MiscActivity.id != exclude_id)
        return self.db.scalar(stmt)

    def list_media(self, activity_id: UUID) -> list[ActivityMedia]:
        return self.db.scalars(
            select(ActivityMedia)
            .where(ActivityMedia.activity_id == activity_id)
            .order_by(ActivityMedia.uploaded_at.asc(), ActivityMedia.id.asc())
        ).all()

    def get_media(self, activity_id: UUID, media_id: UUID) -> ActivityMedia | None:
        return self.db.scalar(
            select(ActivityMedia).where(ActivityMedia.id == media_id, ActivityMedia.activity_id == activity_id)
        )

    def add(self, row: object) -> object:
        self.db.add(row)
        self.db.flush()
        return row

    def delete(self, row: object) -> None:
        self.db.delete(row)
        self.db.flush()
