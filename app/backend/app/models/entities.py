"""ORM entities for the project office reporting schema."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def new_row_version() -> str:
    return uuid.uuid4().hex


def _enum_column(enum_cls: type[enum.Enum], name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class RoleType(str, enum.Enum):
    ADMIN = "admin"
    HOD = "hod"
    PROJECT_OFFICE = "project_office"
    PROJECT_OFFICER = "project_officer"
    VIEWER = "viewer"


class ProjectLifecycleStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProliferationSource(str, enum.Enum):
    SDD = "SDD"
    ABW515 = "ABW515"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProliferationPreferenceMode(str, enum.Enum):
    AUTO = "auto"
    USE_YEARLY = "use_yearly"
    USE_GRANULAR = "use_granular"
    USE_YEARLY_AND_GRANULAR = "use_yearly_and_granular"


class TrainingCounterSource(str, enum.Enum):
    LEGACY = "legacy"
    ROSTER = "roster"


class TraineeCategory(enum.IntEnum):
    OFFICER = 0
    JCO = 1
    OTHER_RANK = 2


# ---------- Identity ----------
class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    microsoft_oid: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class RoleAssignment(Base):
    __tablename__ = "role_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_role_assignments_user_role"),
        Index("ix_role_assignments_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    role: Mapped[RoleType] = mapped_column(_enum_column(RoleType, "role_type"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_entity", "entity_name", "entity_id"),
        Index("ix_audit_events_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    entity_name: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(128), nullable=False)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


# ---------- Projects ----------
class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (Index("ix_projects_lifecycle_status", "lifecycle_status"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    lifecycle_status: Mapped[ProjectLifecycleStatus] = mapped_column(
        _enum_column(ProjectLifecycleStatus, "project_lifecycle_status"),
        nullable=False,
        default=ProjectLifecycleStatus.ACTIVE,
    )
    completed_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


# ---------- Catalog types ----------
class VisitType(Base):
    __tablename__ = "visit_types"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class SocialMediaEventType(Base):
    __tablename__ = "social_media_event_types"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class SocialMediaPlatform(Base):
    __tablename__ = "social_media_platforms"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class ActivityType(Base):
    __tablename__ = "activity_types"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class TrainingType(Base):
    __tablename__ = "training_types"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_project_selection: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


# ---------- Visits ----------
class Visit(Base):
    __tablename__ = "visits"
    __table_args__ = (
        CheckConstraint("strength > 0", name="ck_visits_strength_positive"),
        Index("ix_visits_date_of_visit", "date_of_visit"),
        Index("ix_visits_visit_type_id", "visit_type_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    visit_type_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("visit_types.id"), nullable=False)
    date_of_visit: Mapped[date] = mapped_column(Date, nullable=False)
    visitor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    strength: Mapped[int] = mapped_column(Integer, nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    cover_photo_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class VisitPhoto(Base):
    __tablename__ = "visit_photos"
    __table_args__ = (Index("ix_visit_photos_visit_id", "visit_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    visit_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("visits.id"), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(260), nullable=False)
    content_type: Mapped[str] = mapped_column(String(64), nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    caption: Mapped[str | None] = mapped_column(String(512), nullable=True)
    version_stamp: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


# ---------- Social media ----------
class SocialMediaEvent(Base):
    __tablename__ = "social_media_events"
    __table_args__ = (
        CheckConstraint("reach >= 0", name="ck_social_media_events_reach_non_negative"),
        Index("ix_social_media_events_date_of_event", "date_of_event"),
        Index("ix_social_media_events_type_id", "social_media_event_type_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    social_media_event_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("social_media_event_types.id"), nullable=False
    )
    social_media_platform_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("social_media_platforms.id"), nullable=True
    )
    date_of_event: Mapped[date] = mapped_column(Date, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    reach: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    cover_photo_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class SocialMediaEventPhoto(Base):
    __tablename__ = "social_media_event_photos"
    __table_args__ = (Index("ix_social_media_event_photos_event_id", "social_media_event_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    social_media_event_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("social_media_events.id"), nullable=False
    )
    storage_key: Mapped[str] = mapped_column(String(260), nullable=False)
    content_type: Mapped[str] = mapped_column(String(64), nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    caption: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_cover: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version_stamp: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


# ---------- Miscellaneous activities ----------
class MiscActivity(Base):
    __tablename__ = "misc_activities"
    __table_args__ = (
        UniqueConstraint("occurrence_date", "nomenclature", name="uq_misc_activities_date_nomenclature"),
        Index("ix_misc_activities_activity_type_id", "activity_type_id"),
        Index("ix_misc_activities_deleted_at", "deleted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    activity_type_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("activity_types.id"), nullable=True
    )
    nomenclature: Mapped[str] = mapped_column(String(256), nullable=False)
    occurrence_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    external_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    captured_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    last_modified_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    last_modified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class ActivityMedia(Base):
    __tablename__ = "activity_media"
    __table_args__ = (Index("ix_activity_media_activity_id", "activity_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    activity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("misc_activities.id"), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(260), nullable=False)
    original_file_name: Mapped[str] = mapped_column(String(260), nullable=False)
    media_type: Mapped[str] = mapped_column(String(128), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    caption: Mapped[str | None] = mapped_column(String(256), nullable=True)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uploaded_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


# ---------- Proliferation ----------
class ProliferationYearly(Base):
    __tablename__ = "proliferation_yearly"
    __table_args__ = (
        CheckConstraint("year >= 2000 AND year <= 3000", name="ck_proliferation_yearly_year_range"),
        CheckConstraint("total_quantity >= 0", name="ck_proliferation_yearly_total_non_negative"),
        Index("ix_proliferation_yearly_project_source_year", "project_id", "source", "year"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    source: Mapped[ProliferationSource] = mapped_column(
        _enum_column(ProliferationSource, "proliferation_source"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        _enum_column(ApprovalStatus, "approval_status"), nullable=False, default=ApprovalStatus.PENDING
    )
    submitted_by_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    approved_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decision_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class ProliferationGranular(Base):
    __tablename__ = "proliferation_granular"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_proliferation_granular_quantity_positive"),
        Index("ix_proliferation_granular_project_date", "project_id", "proliferation_date"),
        Index("ix_proliferation_granular_unit_name", "unit_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    source: Mapped[ProliferationSource] = mapped_column(
        _enum_column(ProliferationSource, "proliferation_source"),
        nullable=False,
        default=ProliferationSource.SDD,
    )
    simulator_name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_name: Mapped[str] = mapped_column(String(200), nullable=False)
    proliferation_date: Mapped[date] = mapped_column(Date, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        _enum_column(ApprovalStatus, "approval_status"), nullable=False, default=ApprovalStatus.PENDING
    )
    submitted_by_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    approved_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decision_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class ProliferationYearPreference(Base):
    __tablename__ = "proliferation_year_preferences"
    __table_args__ = (
        UniqueConstraint("project_id", "source", "year", name="uq_proliferation_year_preferences_scope"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    source: Mapped[ProliferationSource] = mapped_column(
        _enum_column(ProliferationSource, "proliferation_source"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    mode: Mapped[ProliferationPreferenceMode] = mapped_column(
        _enum_column(ProliferationPreferenceMode, "proliferation_preference_mode"), nullable=False
    )
    set_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    set_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


# ---------- Training ----------
class Training(Base):
    __tablename__ = "trainings"
    __table_args__ = (
        CheckConstraint(
            "legacy_officer_count >= 0 AND legacy_jco_count >= 0 AND legacy_or_count >= 0",
            name="ck_trainings_legacy_counts_non_negative",
        ),
        CheckConstraint(
            "training_month IS NULL OR (training_month >= 1 AND training_month <= 12)",
            name="ck_trainings_month_range",
        ),
        Index("ix_trainings_training_type_id", "training_type_id"),
        Index("ix_trainings_start_date", "start_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    training_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("training_types.id"), nullable=False
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    training_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    training_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    legacy_officer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    legacy_jco_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    legacy_or_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    officers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    jcos: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    counter_source: Mapped[TrainingCounterSource] = mapped_column(
        _enum_column(TrainingCounterSource, "training_counter_source"),
        nullable=False,
        default=TrainingCounterSource.LEGACY,
    )
    counters_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)


class TrainingProject(Base):
    __tablename__ = "training_projects"
    __table_args__ = (
        UniqueConstraint("training_id", "project_id", name="uq_training_projects_training_project"),
        Index("ix_training_projects_project_id", "project_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    training_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("trainings.id"), nullable=False)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)


class TrainingTrainee(Base):
    __tablename__ = "training_trainees"
    __table_args__ = (
        UniqueConstraint("training_id", "army_number", name="uq_training_trainees_training_army_number"),
        CheckConstraint("category >= 0 AND category <= 2", name="ck_training_trainees_category_range"),
        Index("ix_training_trainees_training_id", "training_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    training_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("trainings.id"), nullable=False)
    army_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rank: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[int] = mapped_column(SmallInteger, nullable=False)


class TrainingDeleteRequest(Base):
    __tablename__ = "training_delete_requests"
    __table_args__ = (
        Index("ix_training_delete_requests_training_id", "training_id"),
        Index("ix_training_delete_requests_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Kept without a foreign key so decided requests outlive the deleted training.
    training_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    training_label: Mapped[str] = mapped_column(String(512), nullable=False)
    reason: Mapped[str] = mapped_column(String(1000), nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        _enum_column(ApprovalStatus, "approval_status"), nullable=False, default=ApprovalStatus.PENDING
    )
    requested_by_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    decided_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decision_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False, default=new_row_version)
