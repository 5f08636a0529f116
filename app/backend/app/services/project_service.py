"""Application service for the project registry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.auth import APPROVER_ROLES, RequestUserContext, ensure_role
from app.models.entities import Project, ProjectLifecycleStatus
from app.repositories.project_repository import ProjectRepository
from app.services.common import iso_or_none, record_audit


@dataclass(slots=True)
class ProjectCreateData:
    code: str
    name: str
    lifecycle_status: ProjectLifecycleStatus = ProjectLifecycleStatus.ACTIVE
    completed_on: date | None = None


@dataclass(slots=True)
class ProjectUpdateData:
    code: str | None = None
    name: str | None = None
    lifecycle_status: ProjectLifecycleStatus | None = None
    completed_on: date | None = None
    is_archived: bool | None = None


class ProjectService:
    """Service for maintaining the projects referenced by reports."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = ProjectRepository(db)

    @staticmethod
    def serialize_project(project: Project) -> dict[str, object]:
        return {
            "id": str(project.id),
            "code": project.code,
            "name": project.name,
            "lifecycle_status": project.lifecycle_status.value,
            "completed_on": iso_or_none(project.completed_on),
            "is_archived": project.is_archived,
            "created_at": project.created_at.isoformat(),
            "updated_at": project.updated_at.isoformat(),
        }

    def list_projects(
        self,
        *,
        lifecycle_status: ProjectLifecycleStatus | None = None,
        include_archived: bool = False,
        search: str | None = None,
    ) -> list[Project]:
        return self.repo.list_projects(
            lifecycle_status=lifecycle_status,
            include_archived=include_archived,
            search=search,
        )

    def get_project(self, project_id: UUID) -> Project:
        project = self.repo.get_project(project_id)
        if project is None or project.is_deleted:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        return project

    def _ensure_unique_code(self, code: str, *, exclude_id: UUID | None = None) -> None:
        existing = self.repo.get_by_code(code)
        if existing is not None and existing.id != exclude_id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Project code already exists.")

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Project code already exists.",
            ) from exc

    def create_project(self, *, context: RequestUserContext, data: ProjectCreateData) -> Project:
        ensure_role(context, APPROVER_ROLES)
        self._ensure_unique_code(data.code.strip())
        now = datetime.utcnow()
        project = Project(
            code=data.code.strip(),
            name=data.name.strip(),
            lifecycle_status=data.lifecycle_status,
            completed_on=data.completed_on,
            is_archived=False,
            is_deleted=False,
            created_at=now,
            updated_at=now,
        )
        self.repo.add_project(project)
        record_audit(self.db, context=context, entity_name="Project", entity_id=project.id, action_type="created")
        self._commit()
        self.db.refresh(project)
        return project

    def update_project(
        self,
        *,
        context: RequestUserContext,
        project_id: UUID,
        data: ProjectUpdateData,
        fields_set: set[str],
    ) -> Project:
        ensure_role(context, APPROVER_ROLES)
        project = self.get_project(project_id)

        if data.code is not None:
            self._ensure_unique_code(data.code.strip(), exclude_id=project.id)
            project.code = data.code.strip()
        if data.name is not None:
            project.name = data.name.strip()
        if data.lifecycle_status is not None:
            project.lifecycle_status = data.lifecycle_status
        if "completed_on" in fields_set:
            project.completed_on = data.completed_on
        if data.is_archived is not None:
            project.is_archived = data.is_archived
        project.updated_at = datetime.utcnow()

        record_audit(self.db, context=context, entity_name="Project", entity_id=project.id, action_type="updated")
        self._commit()
        self.db.refresh(project)
        return project

    def delete_project(self, *, context: RequestUserContext, project_id: UUID) -> None:
        ensure_role(context, APPROVER_ROLES)
        project = self.get_project(project_id)
        project.is_deleted = True
        project.updated_at = datetime.utcnow()
        record_audit(self.db, context=context, entity_name="Project", entity_id=project.id, action_type="deleted")
        self.db.commit()
