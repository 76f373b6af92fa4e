"""Bottle and mixer catalog endpoints."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.api import deps
from tableside.api.rate_limit import DEFAULT_RATE_DEP
from tableside.models.catalog import CatalogItemKind
from tableside.models.user import User
from tableside.schemas.catalog import (
    CatalogItemCreate,
    CatalogItemRead,
    CatalogItemUpdate,
)
from tableside.services import catalog_service

router = APIRouter(prefix="/catalog", dependencies=[DEFAULT_RATE_DEP])


@router.get("", response_model=list[CatalogItemRead], summary="List catalog items")
async def list_catalog_items(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
    kind: CatalogItemKind | None = Query(default=None),
    include_inactive: bool = Query(default=False),
) -> list[CatalogItemRead]:
    items = await catalog_service.list_items(
        session,
        kind=kind,
        include_inactive=include_inactive and current_user.is_admin,
    )
    return [CatalogItemRead.model_validate(item) for item in items]


@router.post(
    "",
    response_model=CatalogItemRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create catalog item",
)
async def create_catalog_item(
    payload: CatalogItemCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> CatalogItemRead:
    item = await catalog_service.create_item(session, payload=payload)
    return CatalogItemRead.model_validate(item)


@router.patch(
    "/{item_id}", response_model=CatalogItemRead, summary="Update catalog item"
)
async def update_catalog_item(
    item_id: uuid.UUID,
    payload: CatalogItemUpdate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> CatalogItemRead:
    item = await catalog_service.update_item(session, item_id=item_id, payload=payload)
    return CatalogItemRead.model_validate(item)


@router.delete(
    "/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate catalog item",
)
async def deactivate_catalog_item(
    item_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> None:
    await catalog_service.deactivate_item(session, item_id=item_id)
    return None
