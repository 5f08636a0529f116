"""Administration endpoints for users and role assignments."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.auth import APP_ROLE_TO_DB_ROLE, ROLE_TYPE_TO_APP_ROLE, AppRole, RequestUserContext, require_roles
from app.db.dependencies import get_db_session
from app.models.entities import RoleAssignment, User
from app.services.common import record_audit

router = APIRouter(prefix="/admin", tags=["admin"])


class RoleAssignmentCreate(BaseModel):
    user_email: str = Field(min_length=3, max_length=320)
    user_display_name: str | None = Field(default=None, min_length=1, max_length=255)
    user_microsoft_oid: str = Field(min_length=1, max_length=128)
    role: AppRole
    active: bool = True


class RoleAssignmentUpdate(BaseModel):
    role: AppRole | None = None
    active: bool | None = None


def _serialize_user(user: User) -> dict[str, object]:
    return {
        "id": str(user.id),
        "microsoft_oid": user.microsoft_oid,
        "email": user.email,
        "display_name": user.display_name,
        "status": user.status,
        "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
        "created_at": user.created_at.isoformat(),
        "updated_at": user.updated_at.isoformat(),
    }


def _serialize_role_assignment(assignment: RoleAssignment) -> dict[str, object]:
    return {
        "id": str(assignment.id),
        "user_id": str(assignment.user_id),
        "role": ROLE_TYPE_TO_APP_ROLE[assignment.role].value,
        "active": assignment.active,
        "created_at": assignment.created_at.isoformat(),
        "updated_at": assignment.updated_at.isoformat(),
    }


def _resolve_or_create_user(
    db: Session,
    *,
    email: str,
    microsoft_oid: str,
    display_name: str,
) -> User:
    normalized_email = email.strip().lower()
    normalized_oid = microsoft_oid.strip()
    now = datetime.utcnow()

    user = db.scalar(
        select(User).where(
            and_(User.email == normalized_email, User.microsoft_oid == normalized_oid)
        )
    )
    if user is not None:
        if user.display_name != display_name:
            user.display_name = display_name
            user.updated_at = now
            db.flush()
        return user

    user_by_email = db.scalar(select(User).where(User.email == normalized_email))
    if user_by_email is not None and user_by_email.microsoft_oid != normalized_oid:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists with different microsoft_oid.",
        )

    user_by_oid = db.scalar(select(User).where(User.microsoft_oid == normalized_oid))
    if user_by_oid is not None and user_by_oid.email != normalized_email:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this microsoft_oid already exists with different email.",
        )

    user = User(
        email=normalized_email,
        microsoft_oid=normalized_oid,
        display_name=display_name,
        status="active",
        last_login_at=None,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.flush()
    return user


def _validate_email(value: str) -> str:
    normalized = value.strip().lower()
    if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="user_email must be a valid email address.",
        )
    return normalized


def _get_assignment(db: Session, assignment_id: UUID) -> RoleAssignment:
    assignment = db.scalar(select(RoleAssignment).where(RoleAssignment.id == assignment_id))
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role assignment not found.")
    return assignment


def _commit_assignment(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role assignment already exists for this user.",
        ) from exc


@router.get("/users")
def list_users(
    include_inactive: bool = False,
    _: RequestUserContext = Depends(require_roles(AppRole.ADMIN)),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    """List users that hold role assignments, with their assignments."""

    stmt = select(RoleAssignment).order_by(RoleAssignment.created_at.asc())
    if not include_inactive:
        stmt = stmt.where(RoleAssignment.active.is_(True))
    assignments = db.scalars(stmt).all()
    if not assignments:
        return {"items": []}

    assignments_by_user: dict[UUID, list[dict[str, object]]] = {}
    for assignment in assignments:
        assignments_by_user.setdefault(assignment.user_id, []).append(_serialize_role_assignment(assignment))

    users = db.scalars(
        select(User).where(User.id.in_(list(assignments_by_user))).order_by(User.email.asc())
    ).all()
    items = []
    for user in users:
        user_payload = _serialize_user(user)
        user_payload["role_assignments"] = assignments_by_user.get(user.id, [])
        items.append(user_payload)
    return {"items": items}


@router.post("/role-assignments", status_code=status.HTTP_201_CREATED)
def create_role_assignment(
    payload: RoleAssignmentCreate,
    context: RequestUserContext = Depends(require_roles(AppRole.ADMIN)),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    """Create role assignment and upsert user account for first-time assignment."""

    user_email = _validate_email(payload.user_email)
    user_display_name = payload.user_display_name.strip() if payload.user_display_name else user_email
    user = _resolve_or_create_user(
        db,
        email=user_email,
        microsoft_oid=payload.user_microsoft_oid,
        display_name=user_display_name,
    )

    now = datetime.utcnow()
    assignment = RoleAssignment(
        user_id=user.id,
        role=APP_ROLE_TO_DB_ROLE[payload.role],
        active=payload.active,
        created_at=now,
        updated_at=now,
    )
    db.add(assignment)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role assignment already exists for this user.",
        ) from exc
    record_audit(
        db,
        context=context,
        entity_name="RoleAssignment",
        entity_id=assignment.id,
        action_type="created",
        payload={"user_id": str(user.id), "role": payload.role.value},
    )
    _commit_assignment(db)
    db.refresh(assignment)
    return _serialize_role_assignment(assignment)


@router.patch("/role-assignments/{assignment_id}")
def update_role_assignment(
    assignment_id: UUID,
    payload: RoleAssignmentUpdate,
    context: RequestUserContext = Depends(require_roles(AppRole.ADMIN)),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    """Change the role or activity of an assignment."""

    assignment = _get_assignment(db, assignment_id)
    if payload.role is not None:
        assignment.role = APP_ROLE_TO_DB_ROLE[payload.role]
    if payload.active is not None:
        assignment.active = payload.active
    assignment.updated_at = datetime.utcnow()

    record_audit(
        db,
        context=context,
        entity_name="RoleAssignment",
        entity_id=assignment.id,
        action_type="updated",
        payload={"role": ROLE_TYPE_TO_APP_ROLE[assignment.role].value, "active": assignment.active},
    )
    _commit_assignment(db)
    db.refresh(assignment)
    return _serialize_role_assignment(assignment)


@router.delete("/role-assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role_assignment(
    assignment_id: UUID,
    context: RequestUserContext = Depends(require_roles(AppRole.ADMIN)),
    db: Session = Depends(get_db_session),
) -> Response:
    assignment = _get_assignment(db, assignment_id)
    if assignment.user_id == context.user_id and assignment.role == APP_ROLE_TO_DB_ROLE[AppRole.ADMIN]:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You cannot remove your own admin role.",
        )
    db.delete(assignment)
    record_audit(db, context=context, entity_name="RoleAssignment", entity_id=assignment_id, action_type="deleted")
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
