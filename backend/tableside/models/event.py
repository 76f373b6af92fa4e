"""Event and table models."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tableside.db.base import Base
from tableside.models.mixins import TimestampMixin


class TableLocation(str, enum.Enum):
    """Floor section a table sits in."""

    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


class Event(TimestampMixin, Base):
    """A night on the venue calendar."""

    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    description: Mapped[str | None] = mapped_column(Text())
    flyer_url: Mapped[str | None] = mapped_column(String(1024))
    is_published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    tables: Mapped[list["VenueTable"]] = relationship(
        "VenueTable",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="VenueTable.number",
    )


class VenueTable(TimestampMixin, Base):
    """A bookable table for a specific event.

    ``reserved`` and ``reservation_id`` move together; the reservation holding
    the table points back through ``Reservation.table_id``.
    """

    __tablename__ = "event_tables"
    __table_args__ = (
        UniqueConstraint("event_id", "number", name="uq_event_tables_event_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    location: Mapped[TableLocation] = mapped_column(
        Enum(TableLocation), default=TableLocation.CENTER, nullable=False
    )
    minimum_bottles: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reserved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reservation_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    reserved_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    event: Mapped[Event] = relationship("Event", back_populates="tables")
