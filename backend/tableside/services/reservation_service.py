"""Reservation management service helpers."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.core.config import get_settings
from tableside.integrations import StripeClient
from tableside.models import (
    CatalogItemKind,
    Event,
    Reservation,
    ReservationStatus,
    User,
    VenueTable,
)
from tableside.models.mixins import utcnow
from tableside.schemas.reservation import ReservationUpdate
from tableside.services import (
    catalog_service,
    event_service,
    payments_service,
    pricing_service,
)
from tableside.services.errors import (
    NotFoundError,
    TableUnavailableError,
    UpstreamError,
    ValidationError,
)
from tableside.services.store import commit_changes

logger = logging.getLogger(__name__)

DEFAULT_CHECK_IN_BY = "QR Scan"

_CLOSED_STATUSES = {ReservationStatus.CANCELLED, ReservationStatus.COMPLETED}


async def get_reservation(
    session: AsyncSession, *, reservation_id: uuid.UUID
) -> Reservation:
    reservation = await session.get(
        Reservation, reservation_id, populate_existing=True
    )
    if reservation is None:
        raise NotFoundError("Reservation not found")
    return reservation


async def create_reservation(
    session: AsyncSession,
    *,
    user: User,
    event_id: uuid.UUID,
    table_id: uuid.UUID,
    guest_count: int,
    bottle_ids: Sequence[uuid.UUID] = (),
    mixer_ids: Sequence[uuid.UUID] = (),
) -> Reservation:
    """Price and hold a table for ``user``; the reservation starts ``pending``."""

    event = await event_service.get_event(session, event_id=event_id)
    if not event.is_published:
        raise ValidationError("Event is not open for reservations")
    table = await event_service.get_table(session, table_id=table_id, event_id=event_id)
    if table.reserved:
        raise TableUnavailableError("Table is already reserved")
    if guest_count < 1 or guest_count > table.capacity:
        raise ValidationError(
            f"Guest count must be between 1 and {table.capacity} for this table"
        )

    bottles = await catalog_service.resolve_items(
        session, item_ids=bottle_ids, kind=CatalogItemKind.BOTTLE
    )
    mixers = await catalog_service.resolve_items(
        session, item_ids=mixer_ids, kind=CatalogItemKind.MIXER
    )
    if not pricing_service.minimum_bottles_met(table.minimum_bottles, bottles):
        raise ValidationError(
            f"Table {table.number} requires at least {table.minimum_bottles} bottles"
        )

    reservation = Reservation(
        id=uuid.uuid4(),
        event_id=event.id,
        user_id=user.id,
        table_id=table.id,
        table_number=table.number,
        guest_count=guest_count,
        bottles=[item.as_line_item() for item in bottles],
        mixers=[item.as_line_item() for item in mixers],
        total_amount=pricing_service.total_charge(table.price, bottles, mixers),
        status=ReservationStatus.PENDING,
        user_name=user.display_name or user.email,
        user_email=user.email,
    )
    session.add(reservation)
    try:
        await event_service.assign_table(
            session, table_id=table.id, reservation_id=reservation.id, user_id=user.id
        )
    except TableUnavailableError:
        await session.rollback()
        raise
    await commit_changes(session, context="creating reservation")
    await session.refresh(reservation)
    logger.info(
        "Reservation %s created event=%s table=%s total=%s",
        reservation.id,
        event.id,
        table.number,
        reservation.total_amount,
    )
    return reservation


async def list_reservations_by_event(
    session: AsyncSession,
) -> list[tuple[Event, list[Reservation]]]:
    """All reservations grouped under their event, soonest event first."""

    events = (
        (await session.execute(select(Event).order_by(Event.starts_at.asc())))
        .scalars()
        .all()
    )
    stmt = select(Reservation).order_by(Reservation.created_at.asc())
    grouped: dict[uuid.UUID, list[Reservation]] = {}
    for reservation in (await session.execute(stmt)).scalars().all():
        grouped.setdefault(reservation.event_id, []).append(reservation)
    return [(event, grouped[event.id]) for event in events if event.id in grouped]


async def list_event_reservations(
    session: AsyncSession, *, event_id: uuid.UUID
) -> list[Reservation]:
    await event_service.get_event(session, event_id=event_id)
    stmt = (
        select(Reservation)
        .where(Reservation.event_id == event_id)
        .order_by(Reservation.table_number.asc())
    )
    return list((await session.execute(stmt)).scalars().all())


async def list_user_reservations(
    session: AsyncSession, *, user_id: uuid.UUID
) -> list[Reservation]:
    stmt = (
        select(Reservation)
        .join(Event, Event.id == Reservation.event_id)
        .where(Reservation.user_id == user_id)
        .order_by(Event.starts_at.desc(), Reservation.created_at.desc())
    )
    return list((await session.execute(stmt)).scalars().all())


def ensure_movable(reservation: Reservation) -> None:
    if reservation.status is ReservationStatus.CANCELLED:
        raise ValidationError("Cannot change table for a cancelled reservation")
    if reservation.status is ReservationStatus.CHECKED_IN:
        raise ValidationError("Cannot change table for a checked-in reservation")


async def available_tables(
    session: AsyncSession, *, reservation_id: uuid.UUID
) -> list[VenueTable]:
    """Free tables at the reservation's event, plus the one it already holds."""

    reservation = await get_reservation(session, reservation_id=reservation_id)
    ensure_movable(reservation)
    stmt = (
        select(VenueTable)
        .where(
            VenueTable.event_id == reservation.event_id,
            or_(VenueTable.reserved.is_(False), VenueTable.id == reservation.table_id),
        )
        .order_by(VenueTable.number.asc())
        .execution_options(populate_existing=True)
    )
    return list((await session.execute(stmt)).scalars().all())


async def check_in(
    session: AsyncSession,
    *,
    reservation_id: uuid.UUID,
    staff_name: str | None = None,
) -> Reservation:
    reservation = await get_reservation(session, reservation_id=reservation_id)
    if reservation.status is ReservationStatus.CHECKED_IN:
        raise ValidationError("Reservation already checked in")
    if reservation.status in _CLOSED_STATUSES:
        raise ValidationError(f"Cannot check in a {reservation.status.value} reservation")
    if reservation.status is ReservationStatus.PENDING:
        raise ValidationError("Reservation has not been paid")

    reservation.status = ReservationStatus.CHECKED_IN
    reservation.checked_in_at = utcnow()
    reservation.checked_in_by = staff_name or DEFAULT_CHECK_IN_BY
    await commit_changes(session, context="checking in reservation")
    await session.refresh(reservation)
    logger.info(
        "Reservation %s checked in by %s", reservation.id, reservation.checked_in_by
    )
    return reservation


async def check_in_details(
    session: AsyncSession, *, reservation_id: uuid.UUID
) -> tuple[Reservation, Event]:
    reservation = await get_reservation(session, reservation_id=reservation_id)
    event = await event_service.get_event(session, event_id=reservation.event_id)
    return reservation, event


def check_in_url(reservation_id: uuid.UUID, *, base_url: str | None = None) -> str:
    """Link encoded in the reservation's QR code."""
    root = (base_url or get_settings().app_public_url).rstrip("/")
    return f"{root}/staff/check-in/{reservation_id}"


async def cancel_reservation(
    session: AsyncSession,
    *,
    reservation_id: uuid.UUID,
    stripe: StripeClient | None = None,
    reason: str | None = None,
    refund_amount: Decimal | None = None,
    staff_name: str | None = None,
) -> Reservation:
    """Cancel, optionally refund, and free the table.

    The refund is requested before anything is written, so a processor failure
    leaves the reservation untouched.
    """

    reservation = await get_reservation(session, reservation_id=reservation_id)
    if reservation.status is ReservationStatus.CANCELLED:
        raise ValidationError("Reservation is already cancelled")
    if reservation.status in {ReservationStatus.CHECKED_IN, ReservationStatus.COMPLETED}:
        raise ValidationError(f"Cannot cancel a {reservation.status.value} reservation")

    refund_value = pricing_service.to_money(refund_amount)
    if refund_value > pricing_service.ZERO:
        if not reservation.payment_id:
            raise ValidationError("Payment ID is required for refunds")
        if refund_value > reservation.total_amount:
            raise ValidationError("Refund amount cannot exceed the reservation total")
        if stripe is None:
            raise UpstreamError("Payment processor is not configured")
        refund = payments_service.refund_payment(
            stripe,
            payment_intent_id=reservation.payment_id,
            amount=refund_value,
            reservation_id=reservation.id,
            reason=reason,
            log=logger,
        )
        await payments_service.record_refund(
            session,
            refund=refund,
            payment_intent_id=reservation.payment_id,
            reservation_id=reservation.id,
            amount=refund_value,
            reason=reason,
            processed_by=staff_name,
        )
        reservation.refund_id = refund.id
        reservation.refund_amount = pricing_service.round_money(refund_value)

    reservation.status = ReservationStatus.CANCELLED
    reservation.cancelled_at = utcnow()
    reservation.cancelled_by = staff_name
    reservation.cancellation_reason = reason
    reservation.pending_table_change_payment_intent_id = None
    reservation.pending_table_change_amount = None
    await event_service.release_table(
        session, table_id=reservation.table_id, reservation_id=reservation.id
    )
    await commit_changes(session, context="cancelling reservation")
    await session.refresh(reservation)
    logger.info(
        "Reservation %s cancelled by %s refund=%s",
        reservation.id,
        staff_name,
        reservation.refund_id,
    )
    return reservation


async def update_reservation(
    session: AsyncSession, *, reservation_id: uuid.UUID, payload: ReservationUpdate
) -> Reservation:
    reservation = await get_reservation(session, reservation_id=reservation_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("status") is ReservationStatus.CANCELLED:
        raise ValidationError("Use the cancel operation to cancel a reservation")
    if data.get("guest_count") is not None:
        table = await event_service.get_table(session, table_id=reservation.table_id)
        if data["guest_count"] > table.capacity:
            raise ValidationError(
                f"Guest count must be between 1 and {table.capacity} for this table"
            )
    for key, value in data.items():
        if value is not None:
            setattr(reservation, key, value)
    await commit_changes(session, context="updating reservation")
    await session.refresh(reservation)
    return reservation


async def delete_reservation(session: AsyncSession, *, reservation_id: uuid.UUID) -> None:
    """Hard delete; the table is freed if the reservation still held it."""
    reservation = await get_reservation(session, reservation_id=reservation_id)
    await event_service.release_table(
        session, table_id=reservation.table_id, reservation_id=reservation.id
    )
    await session.delete(reservation)
    await commit_changes(session, context="deleting reservation")
    logger.info("Reservation %s deleted", reservation_id)
