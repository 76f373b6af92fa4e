"""Schemas for price quotes."""

from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel


class CostBreakdownRead(BaseModel):
    table_price: Decimal
    bottles_cost: Decimal
    mixers_cost: Decimal
    subtotal: Decimal
    bottle_gratuity: Decimal
    subtotal_with_gratuity: Decimal
    processor_fee: Decimal
    total: Decimal


class LegacyEstimateRead(BaseModel):
    """Flat service-fee estimate kept for older clients; never charged."""

    subtotal: Decimal
    service_fee: Decimal
    total: Decimal
    label: str


class TableQuote(BaseModel):
    table_id: uuid.UUID
    breakdown: CostBreakdownRead
    legacy_estimate: LegacyEstimateRead
    minimum_bottles: int
    minimum_bottles_met: bool
