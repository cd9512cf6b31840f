from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from salon_booking.domain.entities.booking_request import PriceTotals

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def clamp_discount(discount_percent: Any) -> Decimal:
    if discount_percent in (None, ""):
        return Decimal("0")
    value = _to_decimal(discount_percent)
    return min(max(value, Decimal("0")), HUNDRED)


def discounted_price(base: Any, discount_percent: Any = None) -> Decimal:
    """Unrounded discounted price. Round with round_money() when displaying or persisting."""
    base_value = _to_decimal(base)
    discount = clamp_discount(discount_percent)
    if discount == 0:
        return base_value
    return base_value * (1 - discount / HUNDRED)


def round_money(value: Any) -> Decimal:
    return _to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(items: Iterable[Any]) -> PriceTotals:
    """
    Sum original and discounted prices over items exposing
    price, discount_percent and optionally quantity.
    Aggregates in full precision, rounds once at the end.
    """
    original = Decimal("0")
    discounted = Decimal("0")
    for item in items:
        quantity = int(getattr(item, "quantity", 1) or 0)
        base = _to_decimal(_base_price(item))
        original += base * quantity
        discounted += discounted_price(base, getattr(item, "discount_percent", None)) * quantity

    original_rounded = round_money(original)
    discounted_rounded = round_money(discounted)
    return PriceTotals(
        original=original_rounded,
        discounted=discounted_rounded,
        savings=original_rounded - discounted_rounded,
    )


def _base_price(item: Any) -> Any:
    # segments keep the catalog price as original_price and the discounted line as price
    original = getattr(item, "original_price", None)
    if original is not None:
        return original
    return item.price
