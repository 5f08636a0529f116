"""Repository helpers for lookup catalogs (visit, event, activity and training types)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import InstrumentedAttribute, Session


class CatalogRepository:
    """Persistence operations for one catalog table."""

    def __init__(self, db: Session, model: type) -> None:
        self.db = db
        self.model = model

    def list_items(self, *, include_inactive: bool) -> list[object]:
        stmt = select(self.model)
        if not include_inactive:
            stmt = stmt.where(self.model.is_active.is_(True))
        order = [self.model.name.asc()]
        if hasattr(self.model, "ordinal"):
            order.insert(0, self.model.ordinal.asc())
        return self.db.scalars(stmt.order_by(*order)).all()

    def get(self, item_id: UUID) -> object | None:
        return self.db.scalar(select(self.model).where(self.model.id == item_id))

    def find_by_name(self, name: str, *, exclude_id: UUID | None = None) -> object | None:
        stmt = select(self.model).where(func.lower(self.model.name) == name.strip().lower())
        if exclude_id is not None:
            stmt = stmt.where(self.model.id != exclude_id)
        return self.db.scalar(stmt)

    def usage_counts(self, usage_column: InstrumentedAttribute) -> dict[UUID, int]:
        rows = self.db.execute(
            select(usage_column, func.count()).where(usage_column.is_not(None)).group_by(usage_column)
        ).all()
        return {row[0]: int(row[1]) for row in rows}

    def usage_count(self, usage_column: InstrumentedAttribute, item_id: UUID) -> int:
        stmt = select(func.count()).select_from(usage_column.class_).where(usage_column == item_id)
        return int(self.db.scalar(stmt) or 0)

    def add(self, item: object) -> object:
        self.db.add(item)
        self.db.flush()
        return item

    def delete(self, item: object) -> None:
        self.db.delete(item)
        self.db.flush()
