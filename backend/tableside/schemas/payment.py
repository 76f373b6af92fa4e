"""Schemas for payment operations."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from tableside.models.payment import PaymentKind, PaymentRecordStatus


class PaymentIntentCreateRequest(BaseModel):
    """Request payload for creating a booking payment intent."""

    amount: Decimal | None = None
    reservation_id: UUID | None = None
    event_id: UUID | None = None
    user_id: UUID | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class PaymentIntentCreateResponse(BaseModel):
    client_secret: str
    payment_id: str


class PaymentStatusRead(BaseModel):
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


class PendingTableChangePaymentRead(BaseModel):
    client_secret: str
    payment_intent_id: str
    amount_due: Decimal


class CompleteTableChangePaymentRequest(BaseModel):
    payment_intent_id: str = Field(min_length=1)


class WebhookAck(BaseModel):
    status: str
