"""Schemas for reservations, table changes and check-in."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tableside.models.reservation import ReservationStatus
from tableside.schemas.event import EventRead


class LineItem(BaseModel):
    id: str
    name: str
    price: Decimal


class ReservationCreate(BaseModel):
    event_id: uuid.UUID
    table_id: uuid.UUID
    guest_count: int = Field(ge=1)
    bottle_ids: list[uuid.UUID] = Field(default_factory=list)
    mixer_ids: list[uuid.UUID] = Field(default_factory=list)


class ReservationUpdate(BaseModel):
    """Admin edits; omitted fields are left alone."""

    guest_count: int | None = Field(default=None, ge=1)
    status: ReservationStatus | None = None
    user_name: str | None = Field(default=None, max_length=200)


class ReservationRead(BaseModel):
    id: uuid.UUID
    event_id: uuid.UUID
    user_id: uuid.UUID
    table_id: uuid.UUID
    table_number: int
    guest_count: int
    bottles: list[LineItem]
    mixers: list[LineItem]
    total_amount: Decimal
    status: ReservationStatus
    user_name: str | None = None
    user_email: str | None = None
    payment_id: str | None = None
    payment_status: str | None = None
    previous_table_id: uuid.UUID | None = None
    previous_table_number: int | None = None
    table_changed_at: datetime | None = None
    pending_table_change_payment_intent_id: str | None = None
    pending_table_change_amount: Decimal | None = None
    table_change_invoice_id: str | None = None
    table_change_amount: Decimal | None = None
    table_change_refund_id: str | None = None
    checked_in_at: datetime | None = None
    checked_in_by: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    refund_id: str | None = None
    refund_amount: Decimal | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EventReservations(BaseModel):
    event: EventRead
    reservations: list[ReservationRead]


class TableChangeRequest(BaseModel):
    new_table_id: uuid.UUID
    payment_intent_id: str | None = None
    admin_override: bool = False


class TableChangeResult(BaseModel):
    """Outcome of a table move or a price-difference fix."""

    status: str
    amount: Decimal
    reservation: ReservationRead
    client_secret: str | None = None
    payment_intent_id: str | None = None
    refund_id: str | None = None


class CheckInRequest(BaseModel):
    staff_name: str | None = Field(default=None, max_length=200)


class CheckInDetails(BaseModel):
    reservation: ReservationRead
    event: EventRead
    check_in_url: str


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1024)
    refund_amount: Decimal | None = Field(default=None, ge=0)
    staff_name: str | None = Field(default=None, max_length=200)
