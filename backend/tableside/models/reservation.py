"""Reservation models."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tableside.db.base import Base
from tableside.models.event import Event
from tableside.models.mixins import TimestampMixin
from tableside.models.types import JSONB_TYPE


class ReservationStatus(str, enum.Enum):
    """Lifecycle states for reservations."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    CHECKED_IN = "checked-in"
    COMPLETED = "completed"


class Reservation(TimestampMixin, Base):
    """A guest's hold on one table for one event."""

    __tablename__ = "reservations"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    table_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    table_number: Mapped[int] = mapped_column(Integer, nullable=False)
    guest_count: Mapped[int] = mapped_column(Integer, nullable=False)
    bottles: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB_TYPE, default=list, nullable=False
    )
    mixers: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB_TYPE, default=list, nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus), default=ReservationStatus.PENDING, nullable=False
    )
    user_name: Mapped[str | None] = mapped_column(String(200))
    user_email: Mapped[str | None] = mapped_column(String(320))

    payment_id: Mapped[str | None] = mapped_column(String(255))
    payment_status: Mapped[str | None] = mapped_column(String(64))

    previous_table_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    previous_table_number: Mapped[int | None] = mapped_column(Integer)
    table_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    pending_table_change_payment_intent_id: Mapped[str | None] = mapped_column(
        String(255)
    )
    pending_table_change_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    table_change_invoice_id: Mapped[str | None] = mapped_column(String(255))
    table_change_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    table_change_refund_id: Mapped[str | None] = mapped_column(String(255))

    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    checked_in_by: Mapped[str | None] = mapped_column(String(200))

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[str | None] = mapped_column(String(200))
    cancellation_reason: Mapped[str | None] = mapped_column(String(1024))
    refund_id: Mapped[str | None] = mapped_column(String(255))
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    event: Mapped[Event] = relationship("Event")

    @property
    def has_pending_table_change(self) -> bool:
        return bool(
            self.pending_table_change_payment_intent_id
            and (self.pending_table_change_amount or Decimal("0")) > 0
        )
