"""Lookup catalog endpoints (visit, social media, activity and training types)."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.auth import RequestUserContext, get_current_user_context
from app.db.dependencies import get_db_session
from app.services.catalog_service import (
    CatalogItemCreateData,
    CatalogItemUpdateData,
    CatalogService,
    resolve_catalog,
)

router = APIRouter(prefix="/catalogs", tags=["catalogs"])


class CatalogItemCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    description: str | None = Field(default=None, max_length=512)
    is_active: bool = True
    ordinal: int | None = Field(default=None, ge=0)
    requires_project_selection: bool | None = None


class CatalogItemUpdatePayload(BaseModel):
    row_version: str = Field(min_length=1, max_length=32)
    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = Field(default=None, max_length=512)
    is_active: bool | None = None
    ordinal: int | None = Field(default=None, ge=0)
    requires_project_selection: bool | None = None


def _service(db: Session, catalog_key: str) -> CatalogService:
    return CatalogService(db, resolve_catalog(catalog_key))


@router.get("/{catalog_key}")
def list_catalog_items(
    catalog_key: str,
    include_inactive: bool = Query(default=False),
    with_usage: bool = Query(default=False),
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db, catalog_key)
    if with_usage:
        return {"items": service.list_summaries(include_inactive=include_inactive)}
    return {"items": [service.serialize_item(item) for item in service.list_items(include_inactive=include_inactive)]}


@router.post("/{catalog_key}", status_code=status.HTTP_201_CREATED)
def create_catalog_item(
    catalog_key: str,
    payload: CatalogItemCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db, catalog_key)
    item = service.create_item(
        context=context,
        data=CatalogItemCreateData(
            name=payload.name,
            description=payload.description,
            is_active=payload.is_active,
            ordinal=payload.ordinal,
            requires_project_selection=payload.requires_project_selection,
        ),
    )
    return service.serialize_item(item)


@router.patch("/{catalog_key}/{item_id}")
def update_catalog_item(
    catalog_key: str,
    item_id: UUID,
    payload: CatalogItemUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db, catalog_key)
    item = service.update_item(
        context=context,
        item_id=item_id,
        data=CatalogItemUpdateData(
            row_version=payload.row_version,
            name=payload.name,
            description=payload.description,
            is_active=payload.is_active,
            ordinal=payload.ordinal,
            requires_project_selection=payload.requires_project_selection,
        ),
    )
    return service.serialize_item(item)


@router.delete("/{catalog_key}/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_catalog_item(
    catalog_key: str,
    item_id: UUID,
    row_version: str | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _service(db, catalog_key)
    service.delete_item(context=context, item_id=item_id, row_version=row_version)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
