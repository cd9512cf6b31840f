"""
Tests for discounted pricing and totals.
"""

from __future__ import annotations

from decimal import Decimal

from salon_booking.application.utils.pricing import clamp_discount, discounted_price, line_total, round_money
from salon_booking.domain.entities.booking_request import ProductLine


def test_haircut_and_manicure_totals(services):
    """Haircut 50 + Manicure 35 at 20% off totals 78 with 7 saved."""
    totals = line_total([services["haircut"], services["manicure"]])

    assert totals.original == Decimal("85.00")
    assert totals.discounted == Decimal("78.00")
    assert totals.savings == Decimal("7.00")


def test_missing_or_zero_discount_keeps_base():
    assert discounted_price(Decimal("50")) == Decimal("50")
    assert discounted_price(Decimal("50"), 0) == Decimal("50")
    assert discounted_price(Decimal("50"), "") == Decimal("50")


def test_discount_is_clamped():
    assert clamp_discount(-10) == Decimal("0")
    assert clamp_discount(150) == Decimal("100")
    assert discounted_price(Decimal("40"), 150) == Decimal("0")
    assert discounted_price(Decimal("40"), -5) == Decimal("40")


def test_discounted_price_stays_within_bounds():
    for base in (Decimal("0"), Decimal("0.01"), Decimal("19.99"), Decimal("250")):
        for discount in (0, 1, 12.5, 33.333, 50, 99.9, 100):
            price = discounted_price(base, discount)
            assert Decimal("0") <= price <= base


def test_rounding_happens_once_at_the_end():
    """Three lines of 6.6667 sum to 20.00, not 3 x 6.67 = 20.01."""
    item = ProductLine(product_id="p", name="Tonic", price=Decimal("10"), quantity=3, discount_percent=Decimal("33.333"))

    totals = line_total([item])

    assert totals.original == Decimal("30.00")
    assert totals.discounted == Decimal("20.00")
    assert totals.savings == Decimal("10.00")


def test_round_money_is_half_up():
    assert round_money(Decimal("2.675")) == Decimal("2.68")
    assert round_money(Decimal("2.665")) == Decimal("2.67")
    assert round_money(Decimal("-0.005")) == Decimal("-0.01")


def test_quantities_multiply_lines(products):
    lines = [
        ProductLine(product_id="serum", name="Hair Serum", price=products["serum"].price, quantity=2, discount_percent=products["serum"].discount_percent),
        ProductLine(product_id="shampoo", name="Argan Shampoo", price=products["shampoo"].price, quantity=1),
    ]

    totals = line_total(lines)

    assert totals.original == Decimal("52.00")
    assert totals.discounted == Decimal("42.00")
    assert totals.savings == Decimal("10.00")
    assert totals.savings >= 0
    assert totals.discounted <= totals.original


def test_empty_selection_is_zero():
    totals = line_total([])
    assert totals.original == totals.discounted == totals.savings == Decimal("0.00")
