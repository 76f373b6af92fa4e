"""Payment record, refund and webhook event models."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from tableside.db.base import Base
from tableside.models.mixins import TimestampMixin
from tableside.models.types import JSONB_TYPE


class PaymentRecordStatus(str, enum.Enum):
    """Processor-reported lifecycle states mirrored locally."""

    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIAL_REFUND = "partial_refund"


class PaymentKind(str, enum.Enum):
    """Discriminator embedded in processor metadata as ``type``."""

    INITIAL_BOOKING = "initial_booking"
    TABLE_CHANGE = "table_change"
    TABLE_CHANGE_FIX = "table_change_fix"


class PaymentRecord(TimestampMixin, Base):
    """Local mirror of a processor payment intent.

    The processor's intent id lives in its own indexed column rather than
    doubling as the primary key.
    """

    __tablename__ = "payment_records"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider: Mapped[str] = mapped_column(String(32), nullable=False, default="stripe")
    provider_payment_intent_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    kind: Mapped[PaymentKind] = mapped_column(
        Enum(PaymentKind), default=PaymentKind.INITIAL_BOOKING, nullable=False
    )
    reservation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(12), nullable=False, default="usd")
    status: Mapped[PaymentRecordStatus] = mapped_column(
        Enum(PaymentRecordStatus), nullable=False
    )
    reservation_created: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    failure_reason: Mapped[str | None] = mapped_column(Text())


class Refund(TimestampMixin, Base):
    """A refund issued against a reservation payment."""

    __tablename__ = "refunds"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_refund_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False
    )
    payment_intent_id: Mapped[str] = mapped_column(String(255), nullable=False)
    reservation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(1024))
    processed_by: Mapped[str | None] = mapped_column(String(200))


class PaymentEvent(Base):
    """Raw provider webhook events for auditing and idempotency."""

    __tablename__ = "payment_events"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_event_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False
    )
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),  # type: ignore[arg-type]
    )
    raw: Mapped[dict[str, Any]] = mapped_column(JSONB_TYPE, nullable=False)
