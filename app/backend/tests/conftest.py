from __future__ import annotations

import io
from collections.abc import Generator
from datetime import date, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.auth import APP_ROLE_TO_DB_ROLE, AppRole, ensure_user_principal
from app.core.config import get_settings
from app.db.base import Base
from app.db.dependencies import get_db_session
import app.models.entities  # noqa: F401
from app.main import create_app
from app.models.entities import Project, ProjectLifecycleStatus, RoleAssignment, User

ADMIN = {"oid": "oid-admin", "email": "admin@test.local", "display_name": "Admin"}
HOD = {"oid": "oid-hod", "email": "hod@test.local", "display_name": "Head of Department"}
OFFICE = {"oid": "oid-office", "email": "office@test.local", "display_name": "Project Office"}
OFFICER = {"oid": "oid-officer", "email": "officer@test.local", "display_name": "Project Officer"}
VIEWER = {"oid": "oid-viewer", "email": "viewer@test.local", "display_name": "Viewer"}


@pytest.fixture(autouse=True)
def upload_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    root = tmp_path / "uploads"
    monkeypatch.setenv("UPLOAD_ROOT", str(root))
    get_settings.cache_clear()
    yield root
    get_settings.cache_clear()


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(
    *,
    oid: str = "oid-super-admin",
    email: str = "super.admin@test.local",
    display_name: str = "Super Admin",
) -> dict[str, str]:
    return {
        "X-MS-OID": oid,
        "X-MS-EMAIL": email,
        "X-MS-DISPLAY-NAME": display_name,
    }


def assign_role(
    db: Session,
    *,
    oid: str,
    email: str,
    display_name: str,
    role: AppRole,
    active: bool = True,
) -> RoleAssignment:
    user = ensure_user_principal(db, microsoft_oid=oid, email=email, display_name=display_name)
    now = datetime.utcnow()
    assignment = RoleAssignment(
        user_id=user.id,
        role=APP_ROLE_TO_DB_ROLE[role],
        active=active,
        created_at=now,
        updated_at=now,
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


def principal_headers(db: Session, principal: dict[str, str], role: AppRole | None = None) -> dict[str, str]:
    """Persist the principal (optionally with a role) and return its identity headers."""

    if role is None:
        ensure_user_principal(
            db,
            microsoft_oid=principal["oid"],
            email=principal["email"],
            display_name=principal["display_name"],
        )
    else:
        assign_role(db, role=role, **principal)
    return auth_headers(**principal)


def user_id_for(db: Session, principal: dict[str, str]):
    return db.query(User).filter(User.microsoft_oid == principal["oid"]).one().id


def create_project(
    db: Session,
    *,
    code: str,
    name: str,
    lifecycle_status: ProjectLifecycleStatus = ProjectLifecycleStatus.COMPLETED,
    is_archived: bool = False,
) -> Project:
    now = datetime.utcnow()
    project = Project(
        code=code,
        name=name,
        lifecycle_status=lifecycle_status,
        completed_on=date(2023, 6, 30) if lifecycle_status is ProjectLifecycleStatus.COMPLETED else None,
        is_archived=is_archived,
        is_deleted=False,
        created_at=now,
        updated_at=now,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def create_catalog_item(client: TestClient, headers: dict[str, str], catalog: str, name: str, **extra) -> dict:
    response = client.post(f"/api/v1/catalogs/{catalog}", json={"name": name, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def jpeg_bytes(width: int = 1024, height: int = 768, color: tuple[int, int, int] = (30, 120, 200)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="JPEG", quality=85)
    return buffer.getvalue()
