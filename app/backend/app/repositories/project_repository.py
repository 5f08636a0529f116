"""Repository helpers for the project registry."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.models.entities import Project, ProjectLifecycleStatus


class ProjectRepository:
    """Persistence operations used by project services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list_projects(
        self,
        *,
        lifecycle_status: ProjectLifecycleStatus | None = None,
        include_archived: bool = False,
        search: str | None = None,
    ) -> list[Project]:
        stmt = select(Project).where(Project.is_deleted.is_(False))
        if lifecycle_status is not None:
            stmt = stmt.where(Project.lifecycle_status == lifecycle_status)
        if not include_archived:
            stmt = stmt.where(Project.is_archived.is_(False))
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(Project.name.ilike(pattern), Project.code.ilike(pattern)))
        return self.db.scalars(stmt.order_by(Project.name.asc(), Project.code.asc())).all()

    def get_project(self, project_id: UUID) -> Project | None:
        return self.db.scalar(select(Project).where(Project.id == project_id))

    def add_project(self, project: Project) -> Project:
        self.db.add(project)
        self.db.flush()
        return project

    def get_by_code(self, code: str) -> Project | None:
        return self.db.scalar(select(Project).where(Project.code == code))
