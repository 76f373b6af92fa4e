"""Payment reconciliation between reservations and the processor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.integrations import (
    PaymentIntent,
    RefundResult,
    StripeClient,
    StripeClientError,
    to_cents,
)
from tableside.models import (
    PaymentEvent,
    PaymentKind,
    PaymentRecord,
    PaymentRecordStatus,
    Refund,
    Reservation,
    ReservationStatus,
)
from tableside.models.mixins import utcnow
from tableside.services.errors import (
    NotFoundError,
    PaymentIncompleteError,
    UpstreamError,
    ValidationError,
)
from tableside.services.pricing_service import ZERO, round_money, to_money
from tableside.services.store import commit_changes

_logger = logging.getLogger(__name__)

_STATUS_MAP: Mapping[str, PaymentRecordStatus] = {
    "requires_payment_method": PaymentRecordStatus.REQUIRES_PAYMENT_METHOD,
    "requires_confirmation": PaymentRecordStatus.REQUIRES_CONFIRMATION,
    "requires_action": PaymentRecordStatus.REQUIRES_ACTION,
    "processing": PaymentRecordStatus.PROCESSING,
    "succeeded": PaymentRecordStatus.SUCCEEDED,
    "canceled": PaymentRecordStatus.CANCELED,
    "failed": PaymentRecordStatus.FAILED,
    "refunded": PaymentRecordStatus.REFUNDED,
    "partial_refund": PaymentRecordStatus.PARTIAL_REFUND,
}

_TERMINAL_FAILURES = {PaymentRecordStatus.CANCELED, PaymentRecordStatus.FAILED}
_PAID_STATUSES = (
    PaymentRecordStatus.SUCCEEDED,
    PaymentRecordStatus.REFUNDED,
    PaymentRecordStatus.PARTIAL_REFUND,
)


def _to_status(status: str) -> PaymentRecordStatus:
    return _STATUS_MAP.get(status, PaymentRecordStatus.PROCESSING)


@dataclass(slots=True)
class PaymentIntentResult:
    client_secret: str
    payment_id: str


@dataclass(slots=True)
class PaymentStatusView:
    payment_id: str
    status: PaymentRecordStatus
    amount: Decimal
    currency: str
    reservation_created: bool
    reservation_id: UUID
    user_id: UUID
    kind: PaymentKind
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PaymentStatusView":
        return cls(
            payment_id=record.provider_payment_intent_id,
            status=record.status,
            amount=record.amount,
            currency=record.currency,
            reservation_created=record.reservation_created,
            reservation_id=record.reservation_id,
            user_id=record.user_id,
            kind=record.kind,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


@dataclass(slots=True)
class PendingTableChangePayment:
    client_secret: str
    payment_intent_id: str
    amount_due: Decimal


def create_intent(
    stripe: StripeClient,
    *,
    amount: Decimal,
    metadata: dict[str, Any],
    currency: str = "usd",
    customer_email: str | None = None,
    idempotency_seed: str | None = None,
    log: logging.Logger | None = None,
) -> PaymentIntent:
    """Create a processor intent, converting client failures to ``UpstreamError``."""

    try:
        intent = stripe.create_payment_intent(
            amount=amount,
            currency=currency,
            metadata=metadata,
            customer_email=customer_email,
            idempotency_seed=idempotency_seed,
        )
    except StripeClientError as exc:
        (log or _logger).error(
            "Payment intent creation failed reservation=%s type=%s: %s",
            metadata.get("reservationId"),
            metadata.get("type"),
            exc,
        )
        raise UpstreamError(
            "Payment processor request failed", upstream_message=str(exc)
        ) from exc
    if intent.client_secret is None:
        raise UpstreamError("Payment processor did not return a client secret")
    return intent


def retrieve_intent(
    stripe: StripeClient,
    payment_intent_id: str,
    *,
    reservation_id: UUID | None = None,
    log: logging.Logger | None = None,
) -> PaymentIntent:
    """Re-fetch an intent from the processor."""

    try:
        return stripe.retrieve_payment_intent(payment_intent_id)
    except StripeClientError as exc:
        (log or _logger).error(
            "Payment intent lookup failed reservation=%s payment=%s: %s",
            reservation_id,
            payment_intent_id,
            exc,
        )
        raise UpstreamError(
            "Payment processor request failed", upstream_message=str(exc)
        ) from exc


async def get_record(
    session: AsyncSession, payment_intent_id: str
) -> PaymentRecord | None:
    stmt = select(PaymentRecord).where(
        PaymentRecord.provider_payment_intent_id == payment_intent_id
    )
    return (await session.execute(stmt)).scalars().first()


async def _booking_paid(session: AsyncSession, reservation_id: UUID) -> bool:
    stmt = select(PaymentRecord.id).where(
        PaymentRecord.reservation_id == reservation_id,
        PaymentRecord.kind == PaymentKind.INITIAL_BOOKING,
        PaymentRecord.status.in_(_PAID_STATUSES),
    )
    return (await session.execute(stmt)).first() is not None


async def record_intent(
    session: AsyncSession,
    *,
    intent: PaymentIntent,
    kind: PaymentKind,
    reservation: Reservation,
    amount: Decimal,
    currency: str = "usd",
) -> PaymentRecord:
    """Insert or refresh the local mirror of ``intent``; the caller commits."""

    record = await get_record(session, intent.id)
    status = _to_status(intent.status)
    if record is None:
        record = PaymentRecord(
            provider="stripe",
            provider_payment_intent_id=intent.id,
            kind=kind,
            reservation_id=reservation.id,
            event_id=reservation.event_id,
            user_id=reservation.user_id,
            amount=round_money(amount),
            currency=currency,
            status=status,
        )
        session.add(record)
        await session.flush()
    else:
        record.amount = round_money(amount)
        record.currency = currency
        record.status = status
        record.failure_reason = None
    return record


async def create_payment_intent(
    session: AsyncSession,
    *,
    amount: Any,
    reservation_id: UUID | None,
    event_id: UUID | None,
    user_id: UUID | None,
    metadata: Mapping[str, Any] | None = None,
    stripe: StripeClient,
    currency: str = "usd",
    logger: logging.Logger | None = None,
) -> PaymentIntentResult:
    """Create the initial booking intent for a reservation."""

    log = logger or _logger
    missing = [
        name
        for name, value in (
            ("amount", amount),
            ("reservation_id", reservation_id),
            ("event_id", event_id),
            ("user_id", user_id),
        )
        if value is None or value == ""
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    try:
        amount_value = to_money(amount)
    except InvalidOperation as exc:
        raise ValidationError("Amount must be a number") from exc
    if not amount_value.is_finite():
        raise ValidationError("Amount must be a number")
    if amount_value <= ZERO:
        raise ValidationError("Amount must be positive")

    reservation = await session.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFoundError("Reservation not found")
    if reservation.event_id != event_id or reservation.user_id != user_id:
        log.warning(
            "Payment request does not match reservation reservation=%s event=%s user=%s",
            reservation_id,
            event_id,
            user_id,
        )
        raise ValidationError("Reservation does not match event or user")
    if reservation.status is ReservationStatus.CANCELLED:
        raise ValidationError("Reservation is cancelled")
    if reservation.status is not ReservationStatus.PENDING or await _booking_paid(
        session, reservation.id
    ):
        log.warning(
            "Payment requested for paid reservation reservation=%s payment=%s",
            reservation_id,
            reservation.payment_id,
        )
        raise ValidationError("Reservation is already paid")
    if round_money(amount_value) != round_money(reservation.total_amount):
        log.warning(
            "Payment amount mismatch reservation=%s requested=%s expected=%s",
            reservation_id,
            amount_value,
            reservation.total_amount,
        )
        raise ValidationError("Amount does not match reservation total")

    intent_metadata = {
        **dict(metadata or {}),
        "reservationId": str(reservation.id),
        "eventId": str(reservation.event_id),
        "userId": str(reservation.user_id),
        "type": PaymentKind.INITIAL_BOOKING.value,
    }
    intent = create_intent(
        stripe,
        amount=reservation.total_amount,
        metadata=intent_metadata,
        currency=currency,
        customer_email=reservation.user_email,
        idempotency_seed=f"reservation-{reservation.id}-{to_cents(reservation.total_amount)}",
        log=log,
    )
    await record_intent(
        session,
        intent=intent,
        kind=PaymentKind.INITIAL_BOOKING,
        reservation=reservation,
        amount=reservation.total_amount,
        currency=currency,
    )
    reservation.payment_id = intent.id
    reservation.payment_status = intent.status
    await commit_changes(session, context="creating payment intent", log=log)
    log.info("Payment intent created reservation=%s payment=%s", reservation.id, intent.id)
    return PaymentIntentResult(client_secret=intent.client_secret or "", payment_id=intent.id)


async def get_payment_status(
    session: AsyncSession, *, payment_id: str
) -> PaymentStatusView:
    record = await get_record(session, payment_id)
    if record is None:
        raise NotFoundError("Payment not found")
    return PaymentStatusView.from_record(record)


async def reconcile_payment(
    session: AsyncSession,
    *,
    payment_intent_id: str,
    stripe: StripeClient,
    logger: logging.Logger | None = None,
) -> PaymentStatusView:
    """Apply processor-confirmed state of an initial booking to its reservation."""

    log = logger or _logger
    record = await get_record(session, payment_intent_id)
    if record is None:
        raise NotFoundError("Payment not found")

    intent = retrieve_intent(
        stripe, payment_intent_id, reservation_id=record.reservation_id, log=log
    )
    if intent.metadata.get("reservationId") != str(record.reservation_id):
        log.warning(
            "Payment metadata mismatch reservation=%s payment=%s",
            record.reservation_id,
            payment_intent_id,
        )
        raise ValidationError("Invalid payment for this reservation")
    if intent.amount is not None and intent.amount != to_cents(record.amount):
        log.warning(
            "Payment amount mismatch reservation=%s payment=%s",
            record.reservation_id,
            payment_intent_id,
        )
        raise ValidationError("Payment amount does not match record")

    status = _to_status(intent.status)
    record.status = status
    if status is not PaymentRecordStatus.SUCCEEDED:
        if status in _TERMINAL_FAILURES:
            record.failure_reason = f"Processor reported {intent.status}"
        await commit_changes(session, context="recording payment status", log=log)
        log.info(
            "Payment not completed reservation=%s payment=%s status=%s",
            record.reservation_id,
            payment_intent_id,
            intent.status,
        )
        raise PaymentIncompleteError("Payment not completed", status=intent.status)

    if record.kind is PaymentKind.INITIAL_BOOKING and not record.reservation_created:
        reservation = await session.get(Reservation, record.reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation not found")
        if reservation.status is ReservationStatus.PENDING:
            reservation.status = ReservationStatus.CONFIRMED
        reservation.payment_id = intent.id
        reservation.payment_status = intent.status
        record.reservation_created = True
        log.info(
            "Payment reconciled reservation=%s payment=%s",
            reservation.id,
            payment_intent_id,
        )
    record.failure_reason = None
    await commit_changes(session, context="reconciling payment", log=log)
    await session.refresh(record)
    return PaymentStatusView.from_record(record)


async def get_pending_table_change_payment(
    session: AsyncSession,
    *,
    reservation_id: UUID,
    stripe: StripeClient,
    logger: logging.Logger | None = None,
) -> PendingTableChangePayment:
    """Return the client secret and amount for an outstanding table change."""

    log = logger or _logger
    reservation = await session.get(
        Reservation, reservation_id, populate_existing=True
    )
    if reservation is None:
        raise NotFoundError("Reservation not found")
    if reservation.status is ReservationStatus.CANCELLED:
        raise ValidationError("Reservation is cancelled")
    payment_intent_id = reservation.pending_table_change_payment_intent_id
    amount_due = reservation.pending_table_change_amount or ZERO
    if not payment_intent_id or amount_due <= ZERO:
        raise NotFoundError("No pending table change payment for this reservation")

    intent = retrieve_intent(
        stripe, payment_intent_id, reservation_id=reservation_id, log=log
    )
    if intent.metadata.get("reservationId") != str(reservation_id):
        log.warning(
            "Pending payment metadata mismatch reservation=%s payment=%s",
            reservation_id,
            payment_intent_id,
        )
        raise ValidationError("Invalid pending payment")
    if intent.client_secret is None:
        raise UpstreamError("Payment processor did not return a client secret")
    return PendingTableChangePayment(
        client_secret=intent.client_secret,
        payment_intent_id=payment_intent_id,
        amount_due=amount_due,
    )


async def complete_table_change_payment(
    session: AsyncSession,
    *,
    reservation_id: UUID,
    payment_intent_id: str,
    stripe: StripeClient,
    logger: logging.Logger | None = None,
) -> Reservation:
    """Apply a paid pending table change to its reservation exactly once."""

    log = logger or _logger
    reservation = await session.get(
        Reservation, reservation_id, populate_existing=True
    )
    if reservation is None:
        raise NotFoundError("Reservation not found")
    if reservation.status is ReservationStatus.CANCELLED:
        raise ValidationError("Reservation is cancelled")
    if reservation.pending_table_change_payment_intent_id != payment_intent_id:
        log.warning(
            "Table change payment does not match pending change reservation=%s payment=%s",
            reservation_id,
            payment_intent_id,
        )
        raise ValidationError("Payment does not match reservation pending table change")
    pending_amount = reservation.pending_table_change_amount or ZERO

    intent = retrieve_intent(
        stripe, payment_intent_id, reservation_id=reservation_id, log=log
    )
    if intent.status != "succeeded":
        log.info(
            "Table change payment not completed reservation=%s payment=%s status=%s",
            reservation_id,
            payment_intent_id,
            intent.status,
        )
        raise PaymentIncompleteError("Payment not completed", status=intent.status)
    if (
        intent.metadata.get("reservationId") != str(reservation_id)
        or intent.metadata.get("type") != PaymentKind.TABLE_CHANGE_FIX.value
    ):
        log.warning(
            "Table change payment metadata mismatch reservation=%s payment=%s",
            reservation_id,
            payment_intent_id,
        )
        raise ValidationError("Invalid payment for this reservation")

    # The guard on the pending intent id makes the apply single-shot.
    stmt = (
        update(Reservation)
        .where(
            Reservation.id == reservation_id,
            Reservation.pending_table_change_payment_intent_id == payment_intent_id,
            Reservation.status != ReservationStatus.CANCELLED,
        )
        .values(
            table_change_amount=pending_amount,
            table_change_invoice_id=payment_intent_id,
            total_amount=Reservation.total_amount + pending_amount,
            pending_table_change_payment_intent_id=None,
            pending_table_change_amount=None,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount == 0:
        await session.rollback()
        log.warning(
            "Pending table change already applied reservation=%s payment=%s",
            reservation_id,
            payment_intent_id,
        )
        raise ValidationError("Payment does not match reservation pending table change")

    record = await get_record(session, payment_intent_id)
    if record is not None:
        record.status = PaymentRecordStatus.SUCCEEDED
        record.reservation_created = True
        record.failure_reason = None
    await commit_changes(session, context="completing table change payment", log=log)
    await session.refresh(reservation)
    log.info(
        "Table change payment applied reservation=%s payment=%s amount=%s",
        reservation_id,
        payment_intent_id,
        pending_amount,
    )
    return reservation


async def _event_seen(session: AsyncSession, event_id: str) -> bool:
    stmt = select(PaymentEvent.id).where(PaymentEvent.provider_event_id == event_id)
    return (await session.execute(stmt)).first() is not None


def _refund_status(amount_refunded: int | None, amount: int | None) -> PaymentRecordStatus:
    if amount_refunded is None or amount is None or amount_refunded >= amount:
        return PaymentRecordStatus.REFUNDED
    return PaymentRecordStatus.PARTIAL_REFUND


async def apply_webhook_event(
    session: AsyncSession,
    *,
    payload: Mapping[str, Any],
    logger: logging.Logger | None = None,
) -> str:
    """Apply a verified processor event. Returns ``processed``, ``duplicate`` or ``ignored``."""

    log = logger or _logger
    event_id = str(payload.get("id") or "")
    if not event_id:
        raise ValidationError("Webhook event is missing an id")
    if await _event_seen(session, event_id):
        log.info("Duplicate webhook event %s ignored", event_id)
        return "duplicate"

    event_type = payload.get("type")
    data_object: Mapping[str, Any] = (payload.get("data") or {}).get("object") or {}
    outcome = "ignored"

    if event_type in {"payment_intent.succeeded", "payment_intent.payment_failed"}:
        intent_id = str(data_object.get("id") or "")
        record = await get_record(session, intent_id) if intent_id else None
        if record is None:
            log.warning("Webhook %s for unknown payment %s", event_type, intent_id)
        elif (data_object.get("metadata") or {}).get("reservationId") != str(
            record.reservation_id
        ):
            log.warning(
                "Webhook metadata mismatch reservation=%s payment=%s",
                record.reservation_id,
                intent_id,
            )
        elif event_type == "payment_intent.succeeded":
            record.status = PaymentRecordStatus.SUCCEEDED
            record.failure_reason = None
            if record.kind is PaymentKind.INITIAL_BOOKING:
                reservation = await session.get(Reservation, record.reservation_id)
                if reservation is not None:
                    if reservation.status is ReservationStatus.PENDING:
                        reservation.status = ReservationStatus.CONFIRMED
                    reservation.payment_status = "succeeded"
                    record.reservation_created = True
            outcome = "processed"
        else:
            error = data_object.get("last_payment_error") or {}
            record.status = PaymentRecordStatus.FAILED
            record.failure_reason = error.get("message") or "Payment failed"
            outcome = "processed"
    elif event_type == "charge.refunded":
        intent_id = str(data_object.get("payment_intent") or "")
        record = await get_record(session, intent_id) if intent_id else None
        if record is not None:
            record.status = _refund_status(
                data_object.get("amount_refunded"), data_object.get("amount")
            )
            outcome = "processed"
        else:
            log.warning("Refund webhook for unknown payment %s", intent_id)

    session.add(PaymentEvent(provider_event_id=event_id, raw=dict(payload)))
    await commit_changes(session, context="applying webhook event", log=log)
    log.info("Webhook event %s (%s) %s", event_id, event_type, outcome)
    return outcome


def refund_payment(
    stripe: StripeClient,
    *,
    payment_intent_id: str,
    amount: Decimal,
    reservation_id: UUID,
    reason: str | None = None,
    log: logging.Logger | None = None,
) -> RefundResult:
    """Refund part or all of an intent, converting client failures to ``UpstreamError``."""

    try:
        return stripe.refund_payment_intent(
            payment_intent_id,
            amount=amount,
            metadata={"reservationId": str(reservation_id), "reason": reason or ""},
        )
    except StripeClientError as exc:
        (log or _logger).error(
            "Refund failed reservation=%s payment=%s: %s",
            reservation_id,
            payment_intent_id,
            exc,
        )
        raise UpstreamError(
            "Payment processor request failed", upstream_message=str(exc)
        ) from exc


async def record_refund(
    session: AsyncSession,
    *,
    refund: RefundResult,
    payment_intent_id: str,
    reservation_id: UUID,
    amount: Decimal,
    reason: str | None = None,
    processed_by: str | None = None,
) -> Refund:
    """Persist a refund and mark the mirrored payment; the caller commits."""

    row = Refund(
        provider_refund_id=refund.id,
        payment_intent_id=payment_intent_id,
        reservation_id=reservation_id,
        amount=round_money(amount),
        status=refund.status,
        reason=reason,
        processed_by=processed_by,
    )
    session.add(row)
    record = await get_record(session, payment_intent_id)
    if record is not None:
        record.status = (
            PaymentRecordStatus.REFUNDED
            if amount >= record.amount
            else PaymentRecordStatus.PARTIAL_REFUND
        )
    return row
