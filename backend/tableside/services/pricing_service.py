"""Reservation cost calculator.

Every function here is pure: the same table price and line items always give
the same breakdown. Component amounts are kept exact and only the final total
is rounded to cents.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

MONEY_PLACES = Decimal("0.01")
ZERO = Decimal("0")

BOTTLE_GRATUITY_RATE = Decimal("0.18")
PROCESSOR_PERCENT_FEE = Decimal("0.029")
PROCESSOR_FIXED_FEE = Decimal("0.30")

# Flat fee shown on older estimate screens; never used for a charge.
LEGACY_SERVICE_FEE_RATE = Decimal("0.10")


@dataclass(slots=True, frozen=True)
class CostBreakdown:
    """Full cost of a reservation."""

    table_price: Decimal
    bottles_cost: Decimal
    mixers_cost: Decimal
    subtotal: Decimal
    bottle_gratuity: Decimal
    subtotal_with_gratuity: Decimal
    processor_fee: Decimal
    total: Decimal

    def to_dict(self) -> dict[str, str]:
        """Serialize to two-decimal strings for responses."""
        return {
            "table_price": _to_str(self.table_price),
            "bottles_cost": _to_str(self.bottles_cost),
            "mixers_cost": _to_str(self.mixers_cost),
            "subtotal": _to_str(self.subtotal),
            "bottle_gratuity": _to_str(self.bottle_gratuity),
            "subtotal_with_gratuity": _to_str(self.subtotal_with_gratuity),
            "processor_fee": _to_str(self.processor_fee),
            "total": _to_str(self.total),
        }


@dataclass(slots=True, frozen=True)
class LegacyEstimate:
    """Display-only estimate using the flat service fee."""

    subtotal: Decimal
    service_fee: Decimal
    total: Decimal
    label: str = "Estimate only (legacy 10% service fee); not the amount charged"

    def to_dict(self) -> dict[str, str]:
        return {
            "subtotal": _to_str(self.subtotal),
            "service_fee": _to_str(self.service_fee),
            "total": _to_str(self.total),
            "label": self.label,
        }


def to_money(value: Any) -> Decimal:
    """Coerce a price-like value to Decimal; ``None`` and blanks become zero."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _to_str(value: Decimal) -> str:
    return f"{round_money(value):.2f}"


def _item_price(item: Any) -> Decimal:
    if isinstance(item, Mapping):
        raw = item.get("price")
    else:
        raw = getattr(item, "price", None)
    return to_money(raw)


def _sum_prices(items: Iterable[Any] | None) -> Decimal:
    return sum((_item_price(item) for item in items or ()), ZERO)


def bottles_cost(items: Iterable[Any] | None) -> Decimal:
    """Sum of bottle prices; items without a price count as zero."""
    return _sum_prices(items)


def mixers_cost(items: Iterable[Any] | None) -> Decimal:
    """Sum of mixer prices. Mixers never attract gratuity."""
    return _sum_prices(items)


def bottle_gratuity(bottles_total: Decimal) -> Decimal:
    return to_money(bottles_total) * BOTTLE_GRATUITY_RATE


def processor_fee(amount: Decimal) -> Decimal:
    """Percentage-plus-fixed card processing fee."""
    return to_money(amount) * PROCESSOR_PERCENT_FEE + PROCESSOR_FIXED_FEE


def cost_breakdown(
    table_price: Any = ZERO,
    bottles: Iterable[Any] | None = None,
    mixers: Iterable[Any] | None = None,
) -> CostBreakdown:
    """Compute the canonical charge for a table plus its line items."""

    price = to_money(table_price)
    bottles_total = bottles_cost(bottles)
    mixers_total = mixers_cost(mixers)
    subtotal = price + bottles_total + mixers_total
    gratuity = bottle_gratuity(bottles_total)
    with_gratuity = subtotal + gratuity
    fee = processor_fee(with_gratuity)
    return CostBreakdown(
        table_price=price,
        bottles_cost=bottles_total,
        mixers_cost=mixers_total,
        subtotal=subtotal,
        bottle_gratuity=gratuity,
        subtotal_with_gratuity=with_gratuity,
        processor_fee=fee,
        total=round_money(with_gratuity + fee),
    )


def total_charge(
    table_price: Any = ZERO,
    bottles: Iterable[Any] | None = None,
    mixers: Iterable[Any] | None = None,
) -> Decimal:
    """Rounded amount actually charged for a reservation."""
    return cost_breakdown(table_price, bottles, mixers).total


def table_change_delta(
    old_price: Any,
    new_price: Any,
    bottles: Iterable[Any] | None = None,
    mixers: Iterable[Any] | None = None,
) -> Decimal:
    """Charge (positive) or refund (negative) for moving between tables."""
    bottle_list = list(bottles or ())
    mixer_list = list(mixers or ())
    return total_charge(new_price, bottle_list, mixer_list) - total_charge(
        old_price, bottle_list, mixer_list
    )


def legacy_service_fee_estimate(
    table_price: Any = ZERO,
    bottles: Iterable[Any] | None = None,
    mixers: Iterable[Any] | None = None,
) -> LegacyEstimate:
    subtotal = to_money(table_price) + bottles_cost(bottles) + mixers_cost(mixers)
    service_fee = subtotal * LEGACY_SERVICE_FEE_RATE
    return LegacyEstimate(
        subtotal=subtotal,
        service_fee=service_fee,
        total=round_money(subtotal + service_fee),
    )


def minimum_bottles_met(minimum_bottles: int | None, bottles: Iterable[Any] | None) -> bool:
    return len(list(bottles or ())) >= (minimum_bottles or 0)
