"""Reservation, table change and check-in endpoints."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.api import deps
from tableside.api.rate_limit import DEFAULT_RATE_DEP, PAYMENTS_RATE_DEP
from tableside.integrations import ExpoPushClient, StripeClient
from tableside.models.reservation import Reservation
from tableside.models.user import User
from tableside.schemas.event import EventRead, TableRead
from tableside.schemas.payment import (
    CompleteTableChangePaymentRequest,
    PendingTableChangePaymentRead,
)
from tableside.schemas.reservation import (
    CancelRequest,
    CheckInDetails,
    CheckInRequest,
    EventReservations,
    ReservationCreate,
    ReservationRead,
    ReservationUpdate,
    TableChangeRequest,
    TableChangeResult,
)
from tableside.services import (
    notification_service,
    payments_service,
    reservation_service,
    table_change_service,
    user_service,
)
from tableside.services.table_change_service import TableChangeOutcome

router = APIRouter(prefix="/reservations", dependencies=[DEFAULT_RATE_DEP])


async def _owned_reservation(
    session: AsyncSession, reservation_id: uuid.UUID, user: User
) -> Reservation:
    reservation = await reservation_service.get_reservation(
        session, reservation_id=reservation_id
    )
    deps.ensure_owner_or_staff(user, reservation.user_id)
    return reservation


def _staff_name(user: User) -> str:
    return user.display_name or user.email


def _change_result(outcome: TableChangeOutcome) -> TableChangeResult:
    return TableChangeResult(
        status=outcome.status,
        amount=outcome.amount,
        reservation=ReservationRead.model_validate(outcome.reservation),
        client_secret=outcome.client_secret,
        payment_intent_id=outcome.payment_intent_id,
        refund_id=outcome.refund_id,
    )


@router.get(
    "",
    response_model=list[EventReservations],
    summary="All reservations grouped by event",
)
async def list_reservations(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_staff)],
) -> list[EventReservations]:
    grouped = await reservation_service.list_reservations_by_event(session)
    return [
        EventReservations(
            event=EventRead.model_validate(event),
            reservations=[ReservationRead.model_validate(r) for r in reservations],
        )
        for event, reservations in grouped
    ]


@router.post(
    "",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Reserve a table",
)
async def create_reservation(
    payload: ReservationCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> ReservationRead:
    reservation = await reservation_service.create_reservation(
        session,
        user=current_user,
        event_id=payload.event_id,
        table_id=payload.table_id,
        guest_count=payload.guest_count,
        bottle_ids=payload.bottle_ids,
        mixer_ids=payload.mixer_ids,
    )
    return ReservationRead.model_validate(reservation)


@router.get(
    "/event/{event_id}",
    response_model=list[ReservationRead],
    summary="Reservations for one event",
)
async def list_event_reservations(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_staff)],
) -> list[ReservationRead]:
    reservations = await reservation_service.list_event_reservations(
        session, event_id=event_id
    )
    return [ReservationRead.model_validate(r) for r in reservations]


@router.get("/{reservation_id}", response_model=ReservationRead, summary="Get reservation")
async def get_reservation(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> ReservationRead:
    reservation = await _owned_reservation(session, reservation_id, current_user)
    return ReservationRead.model_validate(reservation)


@router.patch(
    "/{reservation_id}", response_model=ReservationRead, summary="Edit reservation"
)
async def update_reservation(
    reservation_id: uuid.UUID,
    payload: ReservationUpdate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> ReservationRead:
    reservation = await reservation_service.update_reservation(
        session, reservation_id=reservation_id, payload=payload
    )
    return ReservationRead.model_validate(reservation)


@router.delete(
    "/{reservation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete reservation",
)
async def delete_reservation(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
) -> None:
    await reservation_service.delete_reservation(session, reservation_id=reservation_id)
    return None


@router.get(
    "/{reservation_id}/available-tables",
    response_model=list[TableRead],
    summary="Tables this reservation can move to",
)
async def available_tables(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> list[TableRead]:
    await _owned_reservation(session, reservation_id, current_user)
    tables = await reservation_service.available_tables(
        session, reservation_id=reservation_id
    )
    return [TableRead.model_validate(table) for table in tables]


@router.post(
    "/{reservation_id}/change-table",
    response_model=TableChangeResult,
    summary="Move reservation to another table",
    dependencies=[PAYMENTS_RATE_DEP],
)
async def change_table(
    reservation_id: uuid.UUID,
    payload: TableChangeRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
    stripe_client: Annotated[
        StripeClient | None, Depends(deps.get_optional_stripe_client)
    ],
    currency: Annotated[str, Depends(deps.get_payments_currency)],
) -> TableChangeResult:
    await _owned_reservation(session, reservation_id, current_user)
    if payload.admin_override and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    outcome = await table_change_service.change_table(
        session,
        reservation_id=reservation_id,
        new_table_id=payload.new_table_id,
        stripe=stripe_client,
        payment_intent_id=payload.payment_intent_id,
        admin_override=payload.admin_override,
        currency=currency,
    )
    return _change_result(outcome)


@router.post(
    "/{reservation_id}/fix-table-change",
    response_model=TableChangeResult,
    summary="Settle an unapplied table change price difference",
)
async def fix_table_change(
    reservation_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_admin)],
    stripe_client: Annotated[StripeClient, Depends(deps.get_stripe_client)],
    push_client: Annotated[ExpoPushClient, Depends(deps.get_push_client)],
    currency: Annotated[str, Depends(deps.get_payments_currency)],
) -> TableChangeResult:
    outcome = await table_change_service.fix_table_change(
        session, reservation_id=reservation_id, stripe=stripe_client, currency=currency
    )
    if outcome.status != table_change_service.NO_CHANGE:
        customer = await user_service.get_user(
            session, user_id=outcome.reservation.user_id
        )
        title, message = notification_service.build_table_change_message(
            outcome.reservation, status=outcome.status, amount=outcome.amount
        )
        notification_service.schedule_push(
            background_tasks,
            push_client,
            tokens=[customer.push_token],
            title=title,
            message=message,
            data={"reservationId": str(reservation_id), "type": outcome.status},
        )
    return _change_result(outcome)


@router.get(
    "/{reservation_id}/check-in",
    response_model=CheckInDetails,
    summary="Reservation details for the door",
)
async def check_in_details(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_staff)],
) -> CheckInDetails:
    reservation, event = await reservation_service.check_in_details(
        session, reservation_id=reservation_id
    )
    return CheckInDetails(
        reservation=ReservationRead.model_validate(reservation),
        event=EventRead.model_validate(event),
        check_in_url=reservation_service.check_in_url(reservation.id),
    )


@router.post(
    "/{reservation_id}/check-in",
    response_model=ReservationRead,
    summary="Check in a reservation",
)
async def check_in(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[User, Depends(deps.require_staff)],
    payload: CheckInRequest | None = None,
) -> ReservationRead:
    reservation = await reservation_service.check_in(
        session,
        reservation_id=reservation_id,
        staff_name=payload.staff_name if payload else None,
    )
    return ReservationRead.model_validate(reservation)


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationRead,
    summary="Cancel a reservation",
    dependencies=[PAYMENTS_RATE_DEP],
)
async def cancel_reservation(
    reservation_id: uuid.UUID,
    payload: CancelRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
    stripe_client: Annotated[
        StripeClient | None, Depends(deps.get_optional_stripe_client)
    ],
) -> ReservationRead:
    await _owned_reservation(session, reservation_id, current_user)
    if payload.refund_amount and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    reservation = await reservation_service.cancel_reservation(
        session,
        reservation_id=reservation_id,
        stripe=stripe_client,
        reason=payload.reason,
        refund_amount=payload.refund_amount,
        staff_name=payload.staff_name or _staff_name(current_user),
    )
    return ReservationRead.model_validate(reservation)


@router.get(
    "/{reservation_id}/pending-table-change-payment",
    response_model=PendingTableChangePaymentRead,
    summary="Client secret for an outstanding table change payment",
)
async def pending_table_change_payment(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
    stripe_client: Annotated[StripeClient, Depends(deps.get_stripe_client)],
) -> PendingTableChangePaymentRead:
    await _owned_reservation(session, reservation_id, current_user)
    pending = await payments_service.get_pending_table_change_payment(
        session, reservation_id=reservation_id, stripe=stripe_client
    )
    return PendingTableChangePaymentRead.model_validate(pending, from_attributes=True)


@router.post(
    "/{reservation_id}/complete-table-change-payment",
    response_model=ReservationRead,
    summary="Apply a paid table change",
    dependencies=[PAYMENTS_RATE_DEP],
)
async def complete_table_change_payment(
    reservation_id: uuid.UUID,
    payload: CompleteTableChangePaymentRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
    stripe_client: Annotated[StripeClient, Depends(deps.get_stripe_client)],
) -> ReservationRead:
    await _owned_reservation(session, reservation_id, current_user)
    reservation = await payments_service.complete_table_change_payment(
        session,
        reservation_id=reservation_id,
        payment_intent_id=payload.payment_intent_id,
        stripe=stripe_client,
    )
    return ReservationRead.model_validate(reservation)
