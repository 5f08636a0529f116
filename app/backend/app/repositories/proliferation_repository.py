"""Repository helpers for proliferation submissions, preferences and rollups."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.models.entities import (
    ApprovalStatus,
    Project,
    ProliferationGranular,
    ProliferationSource,
    ProliferationYearly,
    ProliferationYearPreference,
)

ComboKey = tuple[UUID, ProliferationSource, int]


class ProliferationRepository:
    """Persistence operations used by proliferation services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Projects ----------
    def get_project(self, project_id: UUID) -> Project | None:
        return self.db.scalar(select(Project).where(Project.id == project_id))

    def get_project_by_code(self, code: str) -> Project | None:
        return self.db.scalar(select(Project).where(func.lower(Project.code) == code.strip().lower()))

    def projects_by_ids(self, project_ids: set[UUID]) -> dict[UUID, Project]:
        if not project_ids:
            return {}
        rows = self.db.scalars(select(Project).where(Project.id.in_(project_ids))).all()
        return {row.id: row for row in rows}

    # ---------- Entries ----------
    def get_yearly(self, entry_id: UUID) -> ProliferationYearly | None:
        return self.db.scalar(select(ProliferationYearly).where(ProliferationYearly.id == entry_id))

    def get_granular(self, entry_id: UUID) -> ProliferationGranular | None:
        return self.db.scalar(select(ProliferationGranular).where(ProliferationGranular.id == entry_id))

    def approved_yearly_exists(
        self,
        *,
        project_id: UUID,
        source: ProliferationSource,
        year: int,
        exclude_id: UUID | None = None,
    ) -> bool:
        stmt = select(func.count()).select_from(ProliferationYearly).where(
            ProliferationYearly.project_id == project_id,
            ProliferationYearly.source == source,
            ProliferationYearly.year == year,
            ProliferationYearly.approval_status == ApprovalStatus.APPROVED,
        )
        if exclude_id is not None:
            stmt = stmt.where(ProliferationYearly.id != exclude_id)
        return int(self.db.scalar(stmt) or 0) > 0

    def list_yearly(
        self,
        *,
        project_id: UUID | None = None,
        source: ProliferationSource | None = None,
        approval_status: ApprovalStatus | None = None,
        years: list[int] | None = None,
        year_from: int | None = None,
        year_to: int | None = None,
        search: str | None = None,
    ) -> list[tuple[ProliferationYearly, Project]]:
        stmt = select(ProliferationYearly, Project).join(Project, Project.id == ProliferationYearly.project_id)
        if project_id is not None:
            stmt = stmt.where(ProliferationYearly.project_id == project_id)
        if source is not None:
            stmt = stmt.where(ProliferationYearly.source == source)
        if approval_status is not None:
            stmt = stmt.where(ProliferationYearly.approval_status == approval_status)
        if years:
            stmt = stmt.where(ProliferationYearly.year.in_(years))
        if year_from is not None:
            stmt = stmt.where(ProliferationYearly.year >= year_from)
        if year_to is not None:
            stmt = stmt.where(ProliferationYearly.year <= year_to)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Project.name.ilike(pattern),
                    Project.code.ilike(pattern),
                    ProliferationYearly.remarks.ilike(pattern),
                )
            )
        stmt = stmt.order_by(ProliferationYearly.year.desc(), Project.name.asc(), ProliferationYearly.source.asc())
        return [(row[0], row[1]) for row in self.db.execute(stmt).all()]

    def list_granular(
        self,
        *,
        project_id: UUID | None = None,
        approval_status: ApprovalStatus | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        search: str | None = None,
    ) -> list[tuple[ProliferationGranular, Project]]:
        stmt = select(ProliferationGranular, Project).join(Project, Project.id == ProliferationGranular.project_id)
        if project_id is not None:
            stmt = stmt.where(ProliferationGranular.project_id == project_id)
        if approval_status is not None:
            stmt = stmt.where(ProliferationGranular.approval_status == approval_status)
        if from_date is not None:
            stmt = stmt.where(ProliferationGranular.proliferation_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(ProliferationGranular.proliferation_date <= to_date)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Project.name.ilike(pattern),
                    Project.code.ilike(pattern),
                    ProliferationGranular.unit_name.ilike(pattern),
                    ProliferationGranular.simulator_name.ilike(pattern),
                    ProliferationGranular.remarks.ilike(pattern),
                )
            )
        stmt = stmt.order_by(ProliferationGranular.proliferation_date.desc(), Project.name.asc())
        return [(row[0], row[1]) for row in self.db.execute(stmt).all()]

    def add(self, row: object) -> object:
        self.db.add(row)
        self.db.flush()
        return row

    def delete(self, row: object) -> None:
        self.db.delete(row)
        self.db.flush()

    # ---------- Approved rollups ----------
    def approved_yearly_totals(self, project_id: UUID | None = None) -> dict[ComboKey, int]:
        stmt = (
            select(
                ProliferationYearly.project_id,
                ProliferationYearly.source,
                ProliferationYearly.year,
                func.sum(ProliferationYearly.total_quantity),
            )
            .where(ProliferationYearly.approval_status == ApprovalStatus.APPROVED)
            .group_by(ProliferationYearly.project_id, ProliferationYearly.source, ProliferationYearly.year)
        )
        if project_id is not None:
            stmt = stmt.where(ProliferationYearly.project_id == project_id)
        return {(row[0], row[1], int(row[2])): int(row[3] or 0) for row in self.db.execute(stmt).all()}

    def approved_granular_totals(self, project_id: UUID | None = None) -> dict[ComboKey, int]:
        stmt = select(
            ProliferationGranular.project_id,
            ProliferationGranular.source,
            ProliferationGranular.proliferation_date,
            ProliferationGranular.quantity,
        ).where(ProliferationGranular.approval_status == ApprovalStatus.APPROVED)
        if project_id is not None:
            stmt = stmt.where(ProliferationGranular.project_id == project_id)

        totals: dict[ComboKey, int] = defaultdict(int)
        for row in self.db.execute(stmt).all():
            totals[(row[0], row[1], row[2].year)] += int(row[3])
        return dict(totals)

    # ---------- Preferences ----------
    def get_preference(
        self,
        *,
        project_id: UUID,
        source: ProliferationSource,
        year: int,
    ) -> ProliferationYearPreference | None:
        return self.db.scalar(
            select(ProliferationYearPreference).where(
                ProliferationYearPreference.project_id == project_id,
                ProliferationYearPreference.source == source,
                ProliferationYearPreference.year == year,
            )
        )

    def preferences_by_combo(self, project_id: UUID | None = None) -> dict[ComboKey, ProliferationYearPreference]:
        stmt = select(ProliferationYearPreference)
        if project_id is not None:
            stmt = stmt.where(ProliferationYearPreference.project_id == project_id)
        return {(row.project_id, row.source, row.year): row for row in self.db.scalars(stmt).all()}

    # ---------- Lookups ----------
    def unit_name_suggestions(self, term: str, take: int) -> list[str]:
        pattern = f"%{term}%"
        return list(
            self.db.scalars(
                select(ProliferationGranular.unit_name)
                .where(ProliferationGranular.unit_name.ilike(pattern))
                .distinct()
                .order_by(ProliferationGranular.unit_name.asc())
                .limit(take)
            ).all()
        )
