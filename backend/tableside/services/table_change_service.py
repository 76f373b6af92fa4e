"""Moving reservations between tables and settling the price difference.

A move prices the reservation at both tables with the canonical charge
formula; the difference is charged through a new intent, refunded on the
original payment, or waived by an admin override.

``fix_table_change`` settles moves that were made without applying the
difference. Upgrades park a ``table_change_fix`` intent on the reservation as
a pending table change, which ``payments_service.complete_table_change_payment``
later applies.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from tableside.integrations import PaymentIntent, StripeClient, to_cents
from tableside.models import (
    PaymentKind,
    PaymentRecordStatus,
    Reservation,
    VenueTable,
)
from tableside.models.mixins import utcnow
from tableside.services import event_service, payments_service, pricing_service
from tableside.services.errors import (
    PaymentIncompleteError,
    TableUnavailableError,
    UpstreamError,
    ValidationError,
)
from tableside.services.reservation_service import ensure_movable, get_reservation
from tableside.services.store import commit_changes

logger = logging.getLogger(__name__)

COMPLETED = "completed"
NEEDS_PAYMENT = "needs_payment"
REFUNDED = "refunded"
NO_CHANGE = "no_change"


@dataclass(slots=True)
class TableChangeOutcome:
    status: str
    amount: Decimal
    reservation: Reservation
    client_secret: str | None = None
    payment_intent_id: str | None = None
    refund_id: str | None = None


def _intent_metadata(
    reservation: Reservation,
    *,
    kind: PaymentKind,
    new_table: VenueTable,
    previous_table: VenueTable,
    amount_due: Decimal,
) -> dict[str, str]:
    return {
        "reservationId": str(reservation.id),
        "eventId": str(reservation.event_id),
        "userId": str(reservation.user_id),
        "type": kind.value,
        "newTableId": str(new_table.id),
        "previousTableId": str(previous_table.id),
        "amountDue": f"{amount_due:.2f}",
    }


async def _swap_tables(
    session: AsyncSession,
    *,
    reservation: Reservation,
    old_table: VenueTable,
    new_table: VenueTable,
) -> None:
    try:
        await event_service.assign_table(
            session,
            table_id=new_table.id,
            reservation_id=reservation.id,
            user_id=reservation.user_id,
        )
    except TableUnavailableError:
        await session.rollback()
        raise
    await event_service.release_table(
        session, table_id=old_table.id, reservation_id=reservation.id
    )
    reservation.previous_table_id = old_table.id
    reservation.previous_table_number = old_table.number
    reservation.table_id = new_table.id
    reservation.table_number = new_table.number
    reservation.table_changed_at = utcnow()


async def _refund_difference(
    session: AsyncSession,
    *,
    reservation: Reservation,
    payment_intent_id: str,
    amount: Decimal,
    stripe: StripeClient,
    reason: str,
) -> str:
    """Refund ``amount`` on the booking payment, rolling back pending writes on failure."""

    try:
        refund = payments_service.refund_payment(
            stripe,
            payment_intent_id=payment_intent_id,
            amount=amount,
            reservation_id=reservation.id,
            reason=reason,
            log=logger,
        )
    except UpstreamError:
        await session.rollback()
        raise
    await payments_service.record_refund(
        session,
        refund=refund,
        payment_intent_id=payment_intent_id,
        reservation_id=reservation.id,
        amount=amount,
        reason=reason,
    )
    reservation.table_change_refund_id = refund.id
    return refund.id


async def _load_move(
    session: AsyncSession, *, reservation_id: uuid.UUID, new_table_id: uuid.UUID
) -> tuple[Reservation, VenueTable, VenueTable]:
    reservation = await get_reservation(session, reservation_id=reservation_id)
    ensure_movable(reservation)
    if new_table_id == reservation.table_id:
        raise ValidationError("Reservation already holds this table")
    new_table = await event_service.get_table(
        session, table_id=new_table_id, event_id=reservation.event_id
    )
    if new_table.reserved:
        raise TableUnavailableError("Table is already reserved")
    if reservation.guest_count > new_table.capacity:
        raise ValidationError(
            f"Table {new_table.number} seats at most {new_table.capacity} guests"
        )
    old_table = await event_service.get_table(session, table_id=reservation.table_id)
    return reservation, old_table, new_table


def _verify_upgrade_intent(
    intent: PaymentIntent,
    *,
    reservation: Reservation,
    new_table: VenueTable,
    delta: Decimal,
) -> None:
    if intent.status != "succeeded":
        raise PaymentIncompleteError("Payment not completed", status=intent.status)
    metadata = intent.metadata
    if (
        metadata.get("reservationId") != str(reservation.id)
        or metadata.get("type") != PaymentKind.TABLE_CHANGE.value
        or metadata.get("newTableId") != str(new_table.id)
    ):
        logger.warning(
            "Table change payment metadata mismatch reservation=%s payment=%s",
            reservation.id,
            intent.id,
        )
        raise ValidationError("Invalid payment for this reservation")
    if intent.amount is not None and intent.amount != to_cents(delta):
        logger.warning(
            "Table change payment amount mismatch reservation=%s payment=%s",
            reservation.id,
            intent.id,
        )
        raise ValidationError("Payment amount does not match the table change")


def _require_processor(stripe: StripeClient | None) -> StripeClient:
    if stripe is None:
        raise UpstreamError("Payment processor is not configured")
    return stripe


async def change_table(
    session: AsyncSession,
    *,
    reservation_id: uuid.UUID,
    new_table_id: uuid.UUID,
    stripe: StripeClient | None = None,
    payment_intent_id: str | None = None,
    admin_override: bool = False,
    currency: str = "usd",
) -> TableChangeOutcome:
    """Move a reservation to another table at the same event."""

    reservation, old_table, new_table = await _load_move(
        session, reservation_id=reservation_id, new_table_id=new_table_id
    )
    delta = pricing_service.table_change_delta(
        old_table.price, new_table.price, reservation.bottles, reservation.mixers
    )

    if admin_override:
        await _swap_tables(
            session, reservation=reservation, old_table=old_table, new_table=new_table
        )
        reservation.table_change_amount = pricing_service.ZERO
        await commit_changes(session, context="overriding table change")
        await session.refresh(reservation)
        logger.info(
            "Table change override reservation=%s table %s -> %s",
            reservation.id,
            old_table.number,
            new_table.number,
        )
        return TableChangeOutcome(
            status=COMPLETED, amount=pricing_service.ZERO, reservation=reservation
        )

    if delta > 0 and payment_intent_id is None:
        intent = payments_service.create_intent(
            _require_processor(stripe),
            amount=delta,
            metadata=_intent_metadata(
                reservation,
                kind=PaymentKind.TABLE_CHANGE,
                new_table=new_table,
                previous_table=old_table,
                amount_due=delta,
            ),
            currency=currency,
            customer_email=reservation.user_email,
            idempotency_seed=f"table-change-{reservation.id}-{new_table.id}-{to_cents(delta)}",
            log=logger,
        )
        await payments_service.record_intent(
            session,
            intent=intent,
            kind=PaymentKind.TABLE_CHANGE,
            reservation=reservation,
            amount=delta,
            currency=currency,
        )
        await commit_changes(session, context="creating table change payment")
        logger.info(
            "Table change needs payment reservation=%s payment=%s amount=%s",
            reservation.id,
            intent.id,
            delta,
        )
        return TableChangeOutcome(
            status=NEEDS_PAYMENT,
            amount=delta,
            reservation=reservation,
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
        )

    if delta > 0 and payment_intent_id is not None:
        processor = _require_processor(stripe)
        record = await payments_service.get_record(session, payment_intent_id)
        if record is not None and record.reservation_created:
            raise ValidationError("Payment has already been applied")
        intent = payments_service.retrieve_intent(
            processor, payment_intent_id, reservation_id=reservation.id, log=logger
        )
        _verify_upgrade_intent(
            intent, reservation=reservation, new_table=new_table, delta=delta
        )
        await _swap_tables(
            session, reservation=reservation, old_table=old_table, new_table=new_table
        )
        reservation.total_amount = reservation.total_amount + delta
        reservation.table_change_amount = delta
        reservation.table_change_invoice_id = payment_intent_id
        if record is not None:
            record.status = PaymentRecordStatus.SUCCEEDED
            record.reservation_created = True
        await commit_changes(session, context="applying paid table change")
        await session.refresh(reservation)
        logger.info(
            "Table upgraded reservation=%s table %s -> %s amount=%s",
            reservation.id,
            old_table.number,
            new_table.number,
            delta,
        )
        return TableChangeOutcome(
            status=COMPLETED,
            amount=delta,
            reservation=reservation,
            payment_intent_id=payment_intent_id,
        )

    payment_id = reservation.payment_id if delta < 0 else None
    processor = _require_processor(stripe) if payment_id else None
    await _swap_tables(
        session, reservation=reservation, old_table=old_table, new_table=new_table
    )
    reservation.total_amount = reservation.total_amount + delta
    reservation.table_change_amount = delta
    refund_id: str | None = None
    if payment_id and processor is not None:
        refund_id = await _refund_difference(
            session,
            reservation=reservation,
            payment_intent_id=payment_id,
            amount=-delta,
            stripe=processor,
            reason="Table downgrade",
        )
    await commit_changes(session, context="applying table downgrade")
    await session.refresh(reservation)
    logger.info(
        "Table changed reservation=%s table %s -> %s amount=%s refund=%s",
        reservation.id,
        old_table.number,
        new_table.number,
        delta,
        refund_id,
    )
    return TableChangeOutcome(
        status=REFUNDED if refund_id else COMPLETED,
        amount=delta,
        reservation=reservation,
        refund_id=refund_id,
    )


async def fix_table_change(
    session: AsyncSession,
    *,
    reservation_id: uuid.UUID,
    stripe: StripeClient,
    currency: str = "usd",
) -> TableChangeOutcome:
    """Settle the price difference of a move that was never charged or refunded."""

    reservation = await get_reservation(session, reservation_id=reservation_id)
    ensure_movable(reservation)
    if reservation.previous_table_id is None:
        raise ValidationError("Reservation has no table change to fix")
    if reservation.has_pending_table_change:
        pending = await payments_service.get_pending_table_change_payment(
            session, reservation_id=reservation.id, stripe=stripe, logger=logger
        )
        return TableChangeOutcome(
            status=NEEDS_PAYMENT,
            amount=pending.amount_due,
            reservation=reservation,
            client_secret=pending.client_secret,
            payment_intent_id=pending.payment_intent_id,
        )
    if (
        reservation.table_change_amount is not None
        or reservation.table_change_invoice_id
        or reservation.table_change_refund_id
    ):
        raise ValidationError("Table change price difference was already applied")

    previous_table = await event_service.get_table(
        session, table_id=reservation.previous_table_id
    )
    current_table = await event_service.get_table(session, table_id=reservation.table_id)
    delta = pricing_service.table_change_delta(
        previous_table.price, current_table.price, reservation.bottles, reservation.mixers
    )

    if delta == 0:
        return TableChangeOutcome(status=NO_CHANGE, amount=delta, reservation=reservation)

    if delta < 0:
        if not reservation.payment_id:
            raise ValidationError("Payment ID is required for refunds")
        reservation.total_amount = reservation.total_amount + delta
        reservation.table_change_amount = delta
        refund_id = await _refund_difference(
            session,
            reservation=reservation,
            payment_intent_id=reservation.payment_id,
            amount=-delta,
            stripe=stripe,
            reason="Table change price difference",
        )
        await commit_changes(session, context="refunding table change difference")
        await session.refresh(reservation)
        logger.info(
            "Table change fix refunded reservation=%s amount=%s refund=%s",
            reservation.id,
            -delta,
            refund_id,
        )
        return TableChangeOutcome(
            status=REFUNDED, amount=delta, reservation=reservation, refund_id=refund_id
        )

    intent = payments_service.create_intent(
        stripe,
        amount=delta,
        metadata=_intent_metadata(
            reservation,
            kind=PaymentKind.TABLE_CHANGE_FIX,
            new_table=current_table,
            previous_table=previous_table,
            amount_due=delta,
        ),
        currency=currency,
        customer_email=reservation.user_email,
        idempotency_seed=f"table-change-fix-{reservation.id}-{to_cents(delta)}",
        log=logger,
    )
    await payments_service.record_intent(
        session,
        intent=intent,
        kind=PaymentKind.TABLE_CHANGE_FIX,
        reservation=reservation,
        amount=delta,
        currency=currency,
    )
    reservation.pending_table_change_payment_intent_id = intent.id
    reservation.pending_table_change_amount = delta
    await commit_changes(session, context="creating table change fix payment")
    await session.refresh(reservation)
    logger.info(
        "Table change fix pending reservation=%s payment=%s amount=%s",
        reservation.id,
        intent.id,
        delta,
    )
    return TableChangeOutcome(
        status=NEEDS_PAYMENT,
        amount=delta,
        reservation=reservation,
        client_secret=intent.client_secret,
        payment_intent_id=intent.id,
    )
