"""project office reports schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


role_type = postgresql.ENUM(
    "admin", "hod", "project_office", "project_officer", "viewer", name="role_type", create_type=False
)
project_lifecycle_status = postgresql.ENUM(
    "active", "completed", "cancelled", name="project_lifecycle_status", create_type=False
)
proliferation_source = postgresql.ENUM("SDD", "ABW515", name="proliferation_source", create_type=False)
approval_status = postgresql.ENUM("pending", "approved", "rejected", name="approval_status", create_type=False)
proliferation_preference_mode = postgresql.ENUM(
    "auto",
    "use_yearly",
    "use_granular",
    "use_yearly_and_granular",
    name="proliferation_preference_mode",
    create_type=False,
)
training_counter_source = postgresql.ENUM("legacy", "roster", name="training_counter_source", create_type=False)

ENUM_TYPES = (
    role_type,
    project_lifecycle_status,
    proliferation_source,
    approval_status,
    proliferation_preference_mode,
    training_counter_source,
)

CATALOG_TABLES = ("visit_types", "social_media_event_types", "social_media_platforms", "activity_types", "training_types")


def _uuid(name: str, *args, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, nullable=nullable, **kwargs)


def _user_fk(name: str, *, nullable: bool = False) -> sa.Column:
    return _uuid(name, sa.ForeignKey("users.id"), nullable=nullable)


def _row_version() -> sa.Column:
    return sa.Column("row_version", sa.String(length=32), nullable=False)


def _create_catalog_table(name: str, *extra: sa.Column) -> None:
    op.create_table(
        name,
        _uuid("id", primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("description", sa.String(length=512), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *extra,
        _user_fk("created_by_user_id"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _user_fk("updated_by_user_id", nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _row_version(),
    )


def upgrade() -> None:
    for enum_type in ENUM_TYPES:
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("microsoft_oid", sa.String(length=128), nullable=False, unique=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "role_assignments",
        _uuid("id", primary_key=True),
        _user_fk("user_id"),
        sa.Column("role", role_type, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "role", name="uq_role_assignments_user_role"),
    )
    op.create_index("ix_role_assignments_user_id", "role_assignments", ["user_id"])

    op.create_table(
        "audit_events",
        _uuid("id", primary_key=True),
        _user_fk("actor_user_id"),
        sa.Column("entity_name", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=False),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_name", "entity_id"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])

    op.create_table(
        "projects",
        _uuid("id", primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("lifecycle_status", project_lifecycle_status, nullable=False),
        sa.Column("completed_on", sa.Date(), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_projects_lifecycle_status", "projects", ["lifecycle_status"])

    _create_catalog_table("visit_types")
    _create_catalog_table("social_media_event_types")
    _create_catalog_table("social_media_platforms")
    _create_catalog_table("activity_types", sa.Column("ordinal", sa.Integer(), nullable=False, server_default="0"))
    _create_catalog_table(
        "training_types",
        sa.Column("requires_project_selection", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )

    op.create_table(
        "visits",
        _uuid("id", primary_key=True),
        _uuid("visit_type_id", sa.ForeignKey("visit_types.id")),
        sa.Column("date_of_visit", sa.Date(), nullable=False),
        sa.Column("visitor_name", sa.String(length=200), nullable=False),
        sa.Column("strength", sa.Integer(), nullable=False),
        sa.Column("remarks", sa.String(length=2000), nullable=True),
        _uuid("cover_photo_id", nullable=True),
        _user_fk("created_by_user_id"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _user_fk("updated_by_user_id", nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _row_version(),
        sa.CheckConstraint("strength > 0", name="ck_visits_strength_positive"),
    )
    op.create_index("ix_visits_date_of_visit", "visits", ["date_of_visit"])
    op.create_index("ix_visits_visit_type_id", "visits", ["visit_type_id"])

    op.create_table(
        "visit_photos",
        _uuid("id", primary_key=True),
        _uuid("visit_id", sa.ForeignKey("visits.id")),
        sa.Column("storage_key", sa.String(length=260), nullable=False),
        sa.Column("content_type", sa.String(length=64), nullable=False),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("caption", sa.String(length=512), nullable=True),
        sa.Column("version_stamp", sa.String(length=32), nullable=False),
        _user_fk("created_by_user_id"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_visit_photos_visit_id", "visit_photos", ["visit_id"])

    op.create_table(
        "social_media_events",
        _uuid("id", primary_key=True),
        _uuid("social_media_event_type_id", sa.ForeignKey("social_media_event_types.id")),
        _uuid("social_media_platform_id", sa.ForeignKey("social_media_platforms.id"), nullable=True),
        sa.Column("date_of_event", sa.Date(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("reach", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.String(length=2000), nullable=True),
        _uuid("cover_photo_id", nullable=True),
        _user_fk("created_by_user_id"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _user_fk("updated_by_user_id", nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _row_version(),
        sa.CheckConstraint("reach >= 0", name="ck_social_media_events_reach_non_negative"),
    )
    op.create_index("ix_social_media_events_date_of_event", "social_media_events", ["date_of_event"])
    op.create_index("ix_social_media_events_type_id", "social_media_events", ["social_media_event_type_id"])

    op.create_table(
        "social_media_event_photos",
        _uuid("id", primary_key=True),
        _uuid("social_media_event_id", sa.ForeignKey("social_media_events.id")),
        sa.Column("storage_key", sa.String(length=260), nullable=False),
        sa.Column("content_type", sa.String(length=64), nullable=False),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("caption", sa.String(length=512), nullable=True),
        sa.Column("is_cover", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("version_stamp", sa.String(length=32), nullable=False),
        _user_fk("created_by_user_id"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_social_media_event_photos_event_id",
        "social_media_event_photos",
        ["social_media_event_id"],
    )

    op.create_table(
        "misc_activities",
        _uuid("id", primary_key=True),
        _uuid("activity_type_id", sa.ForeignKey("activity_types.id"), nullable=True),
        sa.Column("nomenclature", sa.String(length=256), nullable=False),
        sa.Column("occurrence_date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(length=4000), nullable=True),
        sa.Column("external_link", sa.String(length=1024), nullable=True),
        _user_fk("captured_by_user_id"),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
        _user_fk("last_modified_by_user_id", nullable=True),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("deleted_by_user_id", nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        _row_version(),
        sa.UniqueConstraint("occurrence_date", "nomenclature", name="uq_misc_activities_date_nomenclature"),
    )
    op.create_index("ix_misc_activities_activity_type_id", "misc_activities", ["activity_type_id"])
    op.create_index("ix_misc_activities_deleted_at", "misc_activities", ["deleted_at"])

    op.create_table(
        "activity_media",
        _uuid("id", primary_key=True),
        _uuid("activity_id", sa.ForeignKey("misc_activities.id")),
        sa.Column("storage_key", sa.String(length=260), nullable=False),
        sa.Column("original_file_name", sa.String(length=260), nullable=False),
        sa.Column("media_type", sa.String(length=128), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("caption", sa.String(length=256), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        _user_fk("uploaded_by_user_id"),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_activity_media_activity_id", "activity_media", ["activity_id"])

    op.create_table(
        "proliferation_yearly",
        _uuid("id", primary_key=True),
        _uuid("project_id", sa.ForeignKey("projects.id")),
        sa.Column("source", proliferation_source, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("remarks", sa.String(length=500), nullable=True),
        sa.Column("approval_status", approval_status, nullable=False),
        _user_fk("submitted_by_user_id"),
        _user_fk("approved_by_user_id", nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_notes", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        _row_version(),
        sa.CheckConstraint("year >= 2000 AND year <= 3000", name="ck_proliferation_yearly_year_range"),
        sa.CheckConstraint("total_quantity >= 0", name="ck_proliferation_yearly_total_non_negative"),
    )
    op.create_index(
        "ix_proliferation_yearly_project_source_year",
        "proliferation_yearly",
        ["project_id", "source", "year"],
    )
    # One approved yearly figure per project/source/year.
    op.execute(
        """
        CREATE UNIQUE INDEX uq_proliferation_yearly_approved_scope
        ON proliferation_yearly (project_id, source, year)
        WHERE approval_status = 'approved'
        """
    )

    op.create_table(
        "proliferation_granular",
        _uuid("id", primary_key=True),
        _uuid("project_id", sa.ForeignKey("projects.id")),
        sa.Column("source", proliferation_source, nullable=False),
        sa.Column("simulator_name", sa.String(length=200), nullable=False),
        sa.Column("unit_name", sa.String(length=200), nullable=False),
        sa.Column("proliferation_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("remarks", sa.String(length=500), nullable=True),
        sa.Column("approval_status", approval_status, nullable=False),
        _user_fk("submitted_by_user_id"),
        _user_fk("approved_by_user_id", nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_notes", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        _row_version(),
        sa.CheckConstraint("quantity > 0", name="ck_proliferation_granular_quantity_positive"),
    )
    op.create_index(
        "ix_proliferation_granular_project_date",
        "proliferation_granular",
        ["project_id", "proliferation_date"],
    )
    op.create_index("ix_proliferation_granular_unit_name", "proliferation_granular", ["unit_name"])

    op.create_table(
        "proliferation_year_preferences",
        _uuid("id", primary_key=True),
        _uuid("project_id", sa.ForeignKey("projects.id")),
        sa.Column("source", proliferation_source, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("mode", proliferation_preference_mode, nullable=False),
        _user_fk("set_by_user_id"),
        sa.Column("set_at", sa.DateTime(timezone=True), nullable=False),
        _row_version(),
        sa.UniqueConstraint("project_id", "source", "year", name="uq_proliferation_year_preferences_scope"),
    )

    op.create_table(
        "trainings",
        _uuid("id", primary_key=True),
        _uuid("training_type_id", sa.ForeignKey("training_types.id")),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("training_month", sa.Integer(), nullable=True),
        sa.Column("training_year", sa.Integer(), nullable=True),
        sa.Column("legacy_officer_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("legacy_jco_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("legacy_or_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("officers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("jcos", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ors", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("counter_source", training_counter_source, nullable=False),
        sa.Column("counters_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(length=2000), nullable=True),
        _user_fk("created_by_user_id"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _user_fk("updated_by_user_id", nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _row_version(),
        sa.CheckConstraint(
            "legacy_officer_count >= 0 AND legacy_jco_count >= 0 AND legacy_or_count >= 0",
            name="ck_trainings_legacy_counts_non_negative",
        ),
        sa.CheckConstraint(
            "training_month IS NULL OR (training_month >= 1 AND training_month <= 12)",
            name="ck_trainings_month_range",
        ),
    )
    op.create_index("ix_trainings_training_type_id", "trainings", ["training_type_id"])
    op.create_index("ix_trainings_start_date", "trainings", ["start_date"])

    op.create_table(
        "training_projects",
        _uuid("id", primary_key=True),
        _uuid("training_id", sa.ForeignKey("trainings.id")),
        _uuid("project_id", sa.ForeignKey("projects.id")),
        sa.UniqueConstraint("training_id", "project_id", name="uq_training_projects_training_project"),
    )
    op.create_index("ix_training_projects_project_id", "training_projects", ["project_id"])

    op.create_table(
        "training_trainees",
        _uuid("id", primary_key=True),
        _uuid("training_id", sa.ForeignKey("trainings.id")),
        sa.Column("army_number", sa.String(length=64), nullable=True),
        sa.Column("rank", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("unit_name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.SmallInteger(), nullable=False),
        sa.UniqueConstraint("training_id", "army_number", name="uq_training_trainees_training_army_number"),
        sa.CheckConstraint("category >= 0 AND category <= 2", name="ck_training_trainees_category_range"),
    )
    op.create_index("ix_training_trainees_training_id", "training_trainees", ["training_id"])

    op.create_table(
        "training_delete_requests",
        _uuid("id", primary_key=True),
        _uuid("training_id"),
        sa.Column("training_label", sa.String(length=512), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=False),
        sa.Column("status", approval_status, nullable=False),
        _user_fk("requested_by_user_id"),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        _user_fk("decided_by_user_id", nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_notes", sa.String(length=1000), nullable=True),
        _row_version(),
    )
    op.create_index("ix_training_delete_requests_training_id", "training_delete_requests", ["training_id"])
    op.create_index("ix_training_delete_requests_status", "training_delete_requests", ["status"])
    op.execute(
        """
        CREATE UNIQUE INDEX uq_training_delete_requests_pending
        ON training_delete_requests (training_id)
        WHERE status = 'pending'
        """
    )


def downgrade() -> None:
    op.drop_table("training_delete_requests")
    op.drop_table("training_trainees")
    op.drop_table("training_projects")
    op.drop_table("trainings")
    op.drop_table("proliferation_year_preferences")
    op.drop_table("proliferation_granular")
    op.drop_table("proliferation_yearly")
    op.drop_table("activity_media")
    op.drop_table("misc_activities")
    op.drop_table("social_media_event_photos")
    op.drop_table("social_media_events")
    op.drop_table("visit_photos")
    op.drop_table("visits")
    for name in reversed(CATALOG_TABLES):
        op.drop_table(name)
    op.drop_table("projects")
    op.drop_table("audit_events")
    op.drop_table("role_assignments")
    op.drop_table("users")

    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(op.get_bind(), checkfirst=True)
