"""Repository helpers for visit logs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.models.entities import Visit, VisitPhoto, VisitType


@dataclass(slots=True)
class VisitSearchFilters:
    visit_type_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    query: str | None = None


@dataclass(slots=True)
class VisitListRow:
    visit: Visit
    visit_type_name: str
    photo_count: int


class VisitRepository:
    """Persistence operations used by visit services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def search(self, filters: VisitSearchFilters) -> list[VisitListRow]:
        photo_counts = (
            select(VisitPhoto.visit_id, func.count(VisitPhoto.id).label("photo_count"))
            .group_by(VisitPhoto.visit_id)
            .subquery()
        )
        stmt = (
            select(Visit, VisitType.name, func.coalesce(photo_counts.c.photo_count, 0))
            .join(VisitType, VisitType.id == Visit.visit_type_id)
            .outerjoin(photo_counts, photo_counts.c.visit_id == Visit.id)
        )

        if filters.visit_type_id is not None:
            stmt = stmt.where(Visit.visit_type_id == filters.visit_type_id)
        if filters.start_date is not None:
            stmt = stmt.where(Visit.date_of_visit >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(Visit.date_of_visit <= filters.end_date)
        if filters.query and filters.query.strip():
            pattern = f"%{filters.query.strip()}%"
            stmt = stmt.where(or_(Visit.visitor_name.ilike(pattern), Visit.remarks.ilike(pattern)))

        rows = self.db.execute(stmt.order_by(Visit.date_of_visit.desc(), Visit.created_at.desc())).all()
        return [VisitListRow(visit=row[0], visit_type_name=row[1], photo_count=int(row[2])) for row in rows]

    def get(self, visit_id: UUID) -> Visit | None:
        return self.db.scalar(select(Visit).where(Visit.id == visit_id))

    def get_type(self, visit_type_id: UUID) -> VisitType | None:
        return self.db.scalar(select(VisitType).where(VisitType.id == visit_type_id))

    def add(self, visit: Visit) -> Visit:
        self.db.add(visit)
        self.db.flush()
        return visit

    def delete(self, visit: Visit) -> None:
        self.db.delete(visit)
        self.db.flush()
