"""Application service for lookup catalogs used by the reporting modules."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session

from app.core.auth import MANAGE_ROLES, RequestUserContext, ensure_role
from app.models.entities import (
    ActivityType,
    MiscActivity,
    SocialMediaEvent,
    SocialMediaEventType,
    SocialMediaPlatform,
    Training,
    TrainingType,
    Visit,
    VisitType,
)
from app.repositories.catalog_repository import CatalogRepository
from app.services.common import bump_row_version, ensure_row_version, iso_or_none, normalize_optional, record_audit

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogDefinition:
    key: str
    label: str
    model: type
    usage_column: InstrumentedAttribute


CATALOGS: dict[str, CatalogDefinition] = {
    definition.key: definition
    for definition in (
        CatalogDefinition("visit-types", "visit type", VisitType, Visit.visit_type_id),
        CatalogDefinition(
            "social-media-event-types",
            "social media event type",
            SocialMediaEventType,
            SocialMediaEvent.social_media_event_type_id,
        ),
        CatalogDefinition(
            "social-media-platforms",
            "social media platform",
            SocialMediaPlatform,
            SocialMediaEvent.social_media_platform_id,
        ),
        CatalogDefinition("activity-types", "activity type", ActivityType, MiscActivity.activity_type_id),
        CatalogDefinition("training-types", "training type", TrainingType, Training.training_type_id),
    )
}


@dataclass(slots=True)
class CatalogItemCreateData:
    name: str
    description: str | None = None
    is_active: bool = True
    ordinal: int | None = None
    requires_project_selection: bool | None = None


@dataclass(slots=True)
class CatalogItemUpdateData:
    row_version: str
    name: str | None = None
    description: str | None = None
    is_active: bool | None = None
    ordinal: int | None = None
    requires_project_selection: bool | None = None


def resolve_catalog(catalog_key: str) -> CatalogDefinition:
    definition = CATALOGS.get(catalog_key.strip().lower())
    if definition is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown catalog.")
    return definition


class CatalogService:
    """Create, rename, retire and delete catalog entries."""

    def __init__(self, db: Session, definition: CatalogDefinition) -> None:
        self.db = db
        self.definition = definition
        self.repo = CatalogRepository(db, definition.model)

    def serialize_item(self, item: object, *, usage_count: int | None = None) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": str(item.id),
            "name": item.name,
            "description": item.description,
            "is_active": item.is_active,
            "row_version": item.row_version,
            "created_at": item.created_at.isoformat(),
            "updated_at": iso_or_none(item.updated_at),
        }
        if hasattr(item, "ordinal"):
            payload["ordinal"] = item.ordinal
        if hasattr(item, "requires_project_selection"):
            payload["requires_project_selection"] = item.requires_project_selection
        if usage_count is not None:
            payload["usage_count"] = usage_count
        return payload

    # ---------- Reads ----------
    def list_items(self, *, include_inactive: bool = False) -> list[object]:
        return self.repo.list_items(include_inactive=include_inactive)

    def list_summaries(self, *, include_inactive: bool = True) -> list[dict[str, object]]:
        counts = self.repo.usage_counts(self.definition.usage_column)
        return [
            self.serialize_item(item, usage_count=counts.get(item.id, 0))
            for item in self.repo.list_items(include_inactive=include_inactive)
        ]

    def get_item(self, item_id: UUID) -> object:
        item = self.repo.get(item_id)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{self.definition.label.capitalize()} not found.",
            )
        return item

    # ---------- Writes ----------
    def _validated_name(self, name: str, *, exclude_id: UUID | None = None) -> str:
        normalized = name.strip()
        if not normalized:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Name is required.")
        if len(normalized) > 128:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Name cannot exceed 128 characters.",
            )
        if self.repo.find_by_name(normalized, exclude_id=exclude_id) is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A {self.definition.label} with the same name already exists.",
            )
        return normalized

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A {self.definition.label} with the same name already exists.",
            ) from exc

    def create_item(self, *, context: RequestUserContext, data: CatalogItemCreateData) -> object:
        ensure_role(context, MANAGE_ROLES)
        model = self.definition.model

        item = model(
            name=self._validated_name(data.name),
            description=normalize_optional(data.description),
            is_active=data.is_active,
            created_by_user_id=context.user_id,
            created_at=datetime.utcnow(),
        )
        if hasattr(item, "ordinal") and data.ordinal is not None:
            item.ordinal = data.ordinal
        if hasattr(item, "requires_project_selection") and data.requires_project_selection is not None:
            item.requires_project_selection = data.requires_project_selection
        bump_row_version(item)

        self.repo.add(item)
        record_audit(
            self.db,
            context=context,
            entity_name=model.__name__,
            entity_id=item.id,
            action_type="created",
            payload={"name": item.name},
        )
        self._commit()
        self.db.refresh(item)
        return item

    def update_item(self, *, context: RequestUserContext, item_id: UUID, data: CatalogItemUpdateData) -> object:
        ensure_role(context, MANAGE_ROLES)
        item = self.get_item(item_id)
        ensure_row_version(
            item.row_version,
            data.row_version,
            detail=f"The {self.definition.label} was modified by another user. Please reload and try again.",
        )

        if data.name is not None:
            item.name = self._validated_name(data.name, exclude_id=item.id)
        if data.description is not None:
            item.description = normalize_optional(data.description)
        if data.is_active is not None:
            item.is_active = data.is_active
        if data.ordinal is not None and hasattr(item, "ordinal"):
            item.ordinal = data.ordinal
        if data.requires_project_selection is not None and hasattr(item, "requires_project_selection"):
            item.requires_project_selection = data.requires_project_selection

        item.updated_by_user_id = context.user_id
        item.updated_at = datetime.utcnow()
        bump_row_version(item)
        record_audit(
            self.db,
            context=context,
            entity_name=self.definition.model.__name__,
            entity_id=item.id,
            action_type="updated",
            payload={"name": item.name, "is_active": item.is_active},
        )
        self._commit()
        self.db.refresh(item)
        return item

    def delete_item(self, *, context: RequestUserContext, item_id: UUID, row_version: str | None) -> None:
        ensure_role(context, MANAGE_ROLES)
        item = self.get_item(item_id)
        ensure_row_version(
            item.row_version,
            row_version,
            detail=f"The {self.definition.label} was modified by another user. Please reload and try again.",
        )

        in_use = self.repo.usage_count(self.definition.usage_column, item.id)
        if in_use > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Cannot delete a {self.definition.label} that is in use ({in_use} records).",
            )

        record_audit(
            self.db,
            context=context,
            entity_name=self.definition.model.__name__,
            entity_id=item.id,
            action_type="deleted",
            payload={"name": item.name},
        )
        self.repo.delete(item)
        self.db.commit()
        LOGGER.info("catalog_item_deleted catalog=%s id=%s", self.definition.key, item_id)
