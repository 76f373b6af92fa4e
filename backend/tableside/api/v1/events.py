"""Event and table endpoints."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.api import deps
from tableside.api.rate_limit import DEFAULT_RATE_DEP
from tableside.models.user import User
from tableside.schemas.event import (
    EventCreate,
    EventDetail,
    EventRead,
    EventUpdate,
    TableCreate,
    TableRead,
    TableUpdate,
)
from tableside.schemas.pricing import (
    CostBreakdownRead,
    LegacyEstimateRead,
    TableQuote,
)
from tableside.services import catalog_service, event_service

router = APIRouter(prefix="/events", dependencies=[DEFAULT_RATE_DEP])
tables_router = APIRouter(prefix="/tables", dependencies=[DEFAULT_RATE_DEP])


@router.get("", response_model=list[EventRead], summary="List events")
async def list_events(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
    include_unpublished: bool = Query(default=False),
) -> list[EventRead]:
    events = await event_service.list_events(
        session, include_unpublished=include_unpublished and current_user.is_admin
    )
    return [EventRead.model_validate(event) for event in events]


@router.post(
    "",
    response_model=EventRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create event",
)
async def create_event(
    payload: EventCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> EventRead:
    event = await event_service.create_event(session, payload=payload)
    return EventRead.model_validate(event)


@router.get("/{event_id}", response_model=EventDetail, summary="Get event with tables")
async def get_event(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.get_current_user)],
) -> EventDetail:
    event = await event_service.get_event(session, event_id=event_id, with_tables=True)
    return EventDetail.model_validate(event)


@router.patch("/{event_id}", response_model=EventRead, summary="Update event")
async def update_event(
    event_id: uuid.UUID,
    payload: EventUpdate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> EventRead:
    event = await event_service.update_event(session, event_id=event_id, payload=payload)
    return EventRead.model_validate(event)


@router.delete(
    "/{event_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete event"
)
async def delete_event(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> None:
    await event_service.delete_event(session, event_id=event_id)
    return None


@router.get(
    "/{event_id}/tables", response_model=list[TableRead], summary="List event tables"
)
async def list_tables(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.get_current_user)],
) -> list[TableRead]:
    tables = await event_service.list_tables(session, event_id=event_id)
    return [TableRead.model_validate(table) for table in tables]


@router.post(
    "/{event_id}/tables",
    response_model=TableRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add table to event",
)
async def create_table(
    event_id: uuid.UUID,
    payload: TableCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> TableRead:
    table = await event_service.create_table(session, event_id=event_id, payload=payload)
    return TableRead.model_validate(table)


@router.patch(
    "/{event_id}/tables/{table_id}", response_model=TableRead, summary="Update table"
)
async def update_table(
    event_id: uuid.UUID,
    table_id: uuid.UUID,
    payload: TableUpdate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> TableRead:
    table = await event_service.update_table(
        session, event_id=event_id, table_id=table_id, payload=payload
    )
    return TableRead.model_validate(table)


@router.delete(
    "/{event_id}/tables/{table_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete table",
)
async def delete_table(
    event_id: uuid.UUID,
    table_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> None:
    await event_service.delete_table(session, event_id=event_id, table_id=table_id)
    return None


@router.get(
    "/{event_id}/tables/{table_id}/quote",
    response_model=TableQuote,
    summary="Price a table with bottles and mixers",
)
async def quote_table(
    event_id: uuid.UUID,
    table_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.get_current_user)],
    bottle_ids: list[uuid.UUID] | None = Query(default=None),
    mixer_ids: list[uuid.UUID] | None = Query(default=None),
) -> TableQuote:
    table = await event_service.get_table(session, table_id=table_id, event_id=event_id)
    breakdown, legacy, met = await catalog_service.quote_table(
        session,
        table=table,
        bottle_ids=bottle_ids or [],
        mixer_ids=mixer_ids or [],
    )
    return TableQuote(
        table_id=table.id,
        breakdown=CostBreakdownRead(**breakdown.to_dict()),
        legacy_estimate=LegacyEstimateRead(**legacy.to_dict()),
        minimum_bottles=table.minimum_bottles,
        minimum_bottles_met=met,
    )


@tables_router.get(
    "/capacity/{min_capacity}",
    response_model=list[TableRead],
    summary="Free tables seating at least the given number of guests",
)
async def tables_by_capacity(
    min_capacity: int,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.get_current_user)],
    event_id: uuid.UUID | None = Query(default=None),
) -> list[TableRead]:
    tables = await event_service.tables_by_capacity(
        session, min_capacity=min_capacity, event_id=event_id
    )
    return [TableRead.model_validate(table) for table in tables]
