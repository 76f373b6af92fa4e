"""Operations for events and their bookable tables."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tableside.models import Event, Reservation, VenueTable
from tableside.models.mixins import utcnow
from tableside.schemas.event import EventCreate, EventUpdate, TableCreate, TableUpdate
from tableside.services.errors import (
    NotFoundError,
    TableUnavailableError,
    ValidationError,
)
from tableside.services.store import commit_changes

logger = logging.getLogger(__name__)


async def list_events(
    session: AsyncSession, *, include_unpublished: bool = False
) -> list[Event]:
    stmt: Select[tuple[Event]] = select(Event)
    if not include_unpublished:
        stmt = stmt.where(Event.is_published.is_(True))
    stmt = stmt.order_by(Event.starts_at.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_event(
    session: AsyncSession, *, event_id: uuid.UUID, with_tables: bool = False
) -> Event:
    stmt = select(Event).where(Event.id == event_id)
    if with_tables:
        stmt = stmt.options(selectinload(Event.tables))
    event = (await session.execute(stmt)).scalar_one_or_none()
    if event is None:
        raise NotFoundError("Event not found")
    return event


async def create_event(session: AsyncSession, *, payload: EventCreate) -> Event:
    event = Event(**payload.model_dump())
    session.add(event)
    await commit_changes(session, context="creating event")
    await session.refresh(event)
    logger.info("Event %s created", event.id)
    return event


async def update_event(
    session: AsyncSession, *, event_id: uuid.UUID, payload: EventUpdate
) -> Event:
    event = await get_event(session, event_id=event_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(event, key, value)
    await commit_changes(session, context="updating event")
    await session.refresh(event)
    return event


async def delete_event(session: AsyncSession, *, event_id: uuid.UUID) -> None:
    event = await get_event(session, event_id=event_id, with_tables=True)
    count_stmt = select(func.count(Reservation.id)).where(Reservation.event_id == event_id)
    if (await session.execute(count_stmt)).scalar_one():
        raise ValidationError("Event has reservations and cannot be deleted")
    await session.delete(event)
    await commit_changes(session, context="deleting event")
    logger.info("Event %s deleted", event_id)


async def list_tables(session: AsyncSession, *, event_id: uuid.UUID) -> list[VenueTable]:
    await get_event(session, event_id=event_id)
    stmt = (
        select(VenueTable)
        .where(VenueTable.event_id == event_id)
        .order_by(VenueTable.number.asc())
        .execution_options(populate_existing=True)
    )
    return list((await session.execute(stmt)).scalars().all())


async def get_table(
    session: AsyncSession, *, table_id: uuid.UUID, event_id: uuid.UUID | None = None
) -> VenueTable:
    stmt = (
        select(VenueTable)
        .where(VenueTable.id == table_id)
        .execution_options(populate_existing=True)
    )
    if event_id is not None:
        stmt = stmt.where(VenueTable.event_id == event_id)
    table = (await session.execute(stmt)).scalar_one_or_none()
    if table is None:
        raise NotFoundError("Table not found")
    return table


async def _ensure_number_free(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    number: int,
    exclude_id: uuid.UUID | None = None,
) -> None:
    stmt = select(VenueTable.id).where(
        VenueTable.event_id == event_id, VenueTable.number == number
    )
    if exclude_id is not None:
        stmt = stmt.where(VenueTable.id != exclude_id)
    if (await session.execute(stmt)).first() is not None:
        raise ValidationError(f"Table number {number} already exists for this event")


async def create_table(
    session: AsyncSession, *, event_id: uuid.UUID, payload: TableCreate
) -> VenueTable:
    await get_event(session, event_id=event_id)
    await _ensure_number_free(session, event_id=event_id, number=payload.number)
    table = VenueTable(
        event_id=event_id,
        number=payload.number,
        capacity=payload.capacity,
        price=Decimal(str(payload.price)),
        location=payload.location,
        minimum_bottles=payload.minimum_bottles,
    )
    session.add(table)
    await commit_changes(session, context="creating table")
    await session.refresh(table)
    return table


async def update_table(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    table_id: uuid.UUID,
    payload: TableUpdate,
) -> VenueTable:
    table = await get_table(session, table_id=table_id, event_id=event_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("number") is not None and data["number"] != table.number:
        await _ensure_number_free(
            session, event_id=event_id, number=data["number"], exclude_id=table.id
        )
    for key, value in data.items():
        if value is not None:
            setattr(table, key, value)
    await commit_changes(session, context="updating table")
    await session.refresh(table)
    return table


async def delete_table(
    session: AsyncSession, *, event_id: uuid.UUID, table_id: uuid.UUID
) -> None:
    table = await get_table(session, table_id=table_id, event_id=event_id)
    if table.reserved:
        raise ValidationError("Reserved tables cannot be deleted")
    await session.delete(table)
    await commit_changes(session, context="deleting table")


async def tables_by_capacity(
    session: AsyncSession,
    *,
    min_capacity: int,
    event_id: uuid.UUID | None = None,
    include_reserved: bool = False,
) -> list[VenueTable]:
    stmt = select(VenueTable).where(VenueTable.capacity >= min_capacity)
    if event_id is not None:
        stmt = stmt.where(VenueTable.event_id == event_id)
    if not include_reserved:
        stmt = stmt.where(VenueTable.reserved.is_(False))
    stmt = stmt.order_by(VenueTable.capacity.asc(), VenueTable.number.asc())
    stmt = stmt.execution_options(populate_existing=True)
    return list((await session.execute(stmt)).scalars().all())


async def assign_table(
    session: AsyncSession,
    *,
    table_id: uuid.UUID,
    reservation_id: uuid.UUID,
    user_id: uuid.UUID | None = None,
) -> None:
    """Mark a free table as held by ``reservation_id``; the caller commits.

    Raises ``TableUnavailableError`` when another reservation got there first.
    """

    stmt = (
        update(VenueTable)
        .where(VenueTable.id == table_id, VenueTable.reserved.is_(False))
        .values(
            reserved=True,
            reservation_id=reservation_id,
            reserved_by=user_id,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount == 0:
        logger.warning(
            "Table %s unavailable for reservation %s", table_id, reservation_id
        )
        raise TableUnavailableError("Table is already reserved")


async def release_table(
    session: AsyncSession, *, table_id: uuid.UUID, reservation_id: uuid.UUID
) -> bool:
    """Free a table only if it is still held by ``reservation_id``; the caller commits."""

    stmt = (
        update(VenueTable)
        .where(VenueTable.id == table_id, VenueTable.reservation_id == reservation_id)
        .values(
            reserved=False,
            reservation_id=None,
            reserved_by=None,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount == 0:
        logger.warning(
            "Table %s was not held by reservation %s", table_id, reservation_id
        )
        return False
    return True
