"""Operations for the bottle and mixer catalog."""
from __future__ import annotations

import uuid
from collections.abc import Sequence
from decimal import Decimal

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.models import CatalogItem, CatalogItemKind, VenueTable
from tableside.schemas.catalog import CatalogItemCreate, CatalogItemUpdate
from tableside.services import pricing_service
from tableside.services.errors import NotFoundError, ValidationError
from tableside.services.store import commit_changes


async def list_items(
    session: AsyncSession,
    *,
    kind: CatalogItemKind | None = None,
    include_inactive: bool = False,
) -> list[CatalogItem]:
    stmt: Select[tuple[CatalogItem]] = select(CatalogItem)
    if kind is not None:
        stmt = stmt.where(CatalogItem.kind == kind)
    if not include_inactive:
        stmt = stmt.where(CatalogItem.active.is_(True))
    stmt = stmt.order_by(CatalogItem.name.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_item(session: AsyncSession, *, item_id: uuid.UUID) -> CatalogItem:
    item = await session.get(CatalogItem, item_id)
    if item is None:
        raise NotFoundError("Catalog item not found")
    return item


async def create_item(
    session: AsyncSession, *, payload: CatalogItemCreate
) -> CatalogItem:
    item = CatalogItem(
        kind=payload.kind,
        name=payload.name,
        price=Decimal(str(payload.price)),
        description=payload.description,
        image_url=payload.image_url,
        active=payload.active,
    )
    session.add(item)
    await commit_changes(session, context="creating catalog item")
    await session.refresh(item)
    return item


async def update_item(
    session: AsyncSession, *, item_id: uuid.UUID, payload: CatalogItemUpdate
) -> CatalogItem:
    item = await get_item(session, item_id=item_id)
    data = payload.model_dump(exclude_unset=True)
    if "price" in data and data["price"] is not None:
        data["price"] = Decimal(str(data["price"]))
    for key, value in data.items():
        setattr(item, key, value)
    await commit_changes(session, context="updating catalog item")
    await session.refresh(item)
    return item


async def deactivate_item(session: AsyncSession, *, item_id: uuid.UUID) -> None:
    """Hide an item from new reservations; existing line items keep their snapshot."""
    item = await get_item(session, item_id=item_id)
    item.active = False
    await commit_changes(session, context="deactivating catalog item")


async def resolve_items(
    session: AsyncSession,
    *,
    item_ids: Sequence[uuid.UUID],
    kind: CatalogItemKind,
) -> list[CatalogItem]:
    """Load active items of ``kind`` in request order; repeats are kept.

    Raises ``ValidationError`` for unknown, inactive or wrong-kind ids.
    """

    if not item_ids:
        return []
    stmt = select(CatalogItem).where(CatalogItem.id.in_(set(item_ids)))
    found = {item.id: item for item in (await session.execute(stmt)).scalars().all()}
    items: list[CatalogItem] = []
    for item_id in item_ids:
        item = found.get(item_id)
        if item is None or not item.active or item.kind is not kind:
            raise ValidationError(f"Unknown {kind.value}: {item_id}")
        items.append(item)
    return items


async def quote_table(
    session: AsyncSession,
    *,
    table: VenueTable,
    bottle_ids: Sequence[uuid.UUID] = (),
    mixer_ids: Sequence[uuid.UUID] = (),
) -> tuple[pricing_service.CostBreakdown, pricing_service.LegacyEstimate, bool]:
    """Price a table with a bottle/mixer selection using catalog prices."""

    bottles = await resolve_items(
        session, item_ids=bottle_ids, kind=CatalogItemKind.BOTTLE
    )
    mixers = await resolve_items(session, item_ids=mixer_ids, kind=CatalogItemKind.MIXER)
    breakdown = pricing_service.cost_breakdown(table.price, bottles, mixers)
    legacy = pricing_service.legacy_service_fee_estimate(table.price, bottles, mixers)
    met = pricing_service.minimum_bottles_met(table.minimum_bottles, bottles)
    return breakdown, legacy, met
