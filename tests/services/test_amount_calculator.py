"""
Tests for discount amount calculation.

Verifies that the calculator:
- Applies percentage and fixed rules with Decimal arithmetic
- Caps fixed discounts at the order total
- Returns zero for free shipping and buy-x-get-y
- Never produces a negative amount
"""

from decimal import Decimal

import pytest

from discount_service.schemas.discount import DiscountType
from discount_service.services.discounts.amount_calculator import (
    RULES,
    calculate_discount_amount,
    calculate_discounted_price,
    format_discount_value,
    format_usage,
    quantize_amount,
)


class TestCalculateDiscountAmount:

    def test_percentage_of_order_total(self):
        assert calculate_discount_amount("percentage", 10, 200) == Decimal("20")

    def test_percentage_keeps_fractional_cents(self):
        """10% of 19.99 is 1.999; rounding happens at the boundary."""
        amount = calculate_discount_amount(DiscountType.PERCENTAGE, 10, 19.99)
        assert amount == Decimal("1.999")
        assert quantize_amount(amount) == Decimal("2.00")

    def test_fixed_below_order_total(self):
        assert calculate_discount_amount("fixed", 20, 100) == Decimal("20")

    def test_fixed_capped_at_order_total(self):
        assert calculate_discount_amount("fixed", 50, 30) == Decimal("30")

    @pytest.mark.parametrize("discount_type", ["free_shipping", "buy_x_get_y"])
    def test_valueless_types_discount_nothing(self, discount_type):
        assert calculate_discount_amount(discount_type, 25, 100) == Decimal("0")

    def test_negative_order_total_gives_zero(self):
        assert calculate_discount_amount("percentage", 10, -50) == Decimal("0")
        assert calculate_discount_amount("fixed", 10, -50) == Decimal("0")

    def test_zero_order_total(self):
        assert calculate_discount_amount("fixed", 10, 0) == Decimal("0")

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValueError):
            calculate_discount_amount("mystery", 10, 100)

    def test_every_type_has_a_rule(self):
        assert set(RULES) == set(DiscountType)


def test_discounted_price():
    assert calculate_discounted_price(100, "percentage", 25) == Decimal("75")
    assert calculate_discounted_price(15, "fixed", 20) == Decimal("0")


def test_quantize_rounds_half_up():
    assert quantize_amount(Decimal("2.345")) == Decimal("2.35")
    assert quantize_amount("2.344") == Decimal("2.34")


def test_format_discount_value():
    assert format_discount_value("percentage", Decimal("15.00")) == "15%"
    assert format_discount_value("percentage", Decimal("12.5")) == "12.5%"
    assert format_discount_value("fixed", 20) == "$20.00"
    assert format_discount_value("fixed", 5, currency_symbol="€") == "€5.00"
    assert format_discount_value("free_shipping", 0) == "Free shipping"


def test_format_usage():
    assert format_usage(3, 10) == "3 / 10"
    assert format_usage(3) == "3 used"
