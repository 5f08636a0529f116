"""Project registry endpoints used by proliferation and training modules."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.auth import RequestUserContext, get_current_user_context
from app.db.dependencies import get_db_session
from app.models.entities import ProjectLifecycleStatus
from app.services.project_service import ProjectCreateData, ProjectService, ProjectUpdateData

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectCreatePayload(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    lifecycle_status: ProjectLifecycleStatus = ProjectLifecycleStatus.ACTIVE
    completed_on: date | None = None


class ProjectUpdatePayload(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=64)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    lifecycle_status: ProjectLifecycleStatus | None = None
    completed_on: date | None = None
    is_archived: bool | None = None


def _service(db: Session) -> ProjectService:
    return ProjectService(db)


@router.get("")
def list_projects(
    lifecycle_status: ProjectLifecycleStatus | None = Query(default=None),
    include_archived: bool = Query(default=False),
    q: str | None = Query(default=None, max_length=200),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    items = service.list_projects(lifecycle_status=lifecycle_status, include_archived=include_archived, search=q)
    return {"items": [service.serialize_project(project) for project in items]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    project = service.create_project(
        context=context,
        data=ProjectCreateData(
            code=payload.code,
            name=payload.name,
            lifecycle_status=payload.lifecycle_status,
            completed_on=payload.completed_on,
        ),
    )
    return service.serialize_project(project)


@router.get("/{project_id}")
def get_project(
    project_id: UUID,
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.serialize_project(service.get_project(project_id))


@router.patch("/{project_id}")
def update_project(
    project_id: UUID,
    payload: ProjectUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    project = service.update_project(
        context=context,
        project_id=project_id,
        data=ProjectUpdateData(
            code=payload.code,
            name=payload.name,
            lifecycle_status=payload.lifecycle_status,
            completed_on=payload.completed_on,
            is_archived=payload.is_archived,
        ),
        fields_set=set(payload.model_fields_set),
    )
    return service.serialize_project(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    _service(db).delete_project(context=context, project_id=project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
