# discount_service/services/discounts/amount_calculator.py
"""
Discount amount calculation.

Each discount type is a rule object; ``RULES`` maps every ``DiscountType``
to its rule and is checked for completeness at import time, so a new type
cannot be added to the enum without a matching rule.

Amounts are not rounded here. Use ``quantize_amount`` where an amount is
persisted or displayed.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from discount_service.schemas.discount import DiscountType

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
CENT = Decimal("0.01")


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps float inputs like 19.99 from turning into 19.9899999...
    return Decimal(str(value))


@dataclass(frozen=True)
class PercentageRule:
    def amount(self, value: Decimal, order_total: Decimal) -> Decimal:
        return order_total * value / Decimal(100)


@dataclass(frozen=True)
class FixedRule:
    def amount(self, value: Decimal, order_total: Decimal) -> Decimal:
        return min(value, order_total)


@dataclass(frozen=True)
class FreeShippingRule:
    # Shipping cost adjustments are applied by the shipping calculation.
    def amount(self, value: Decimal, order_total: Decimal) -> Decimal:
        return ZERO


@dataclass(frozen=True)
class BuyXGetYRule:
    # TODO: needs per-line-item eligibility (which items are X, which are Y)
    # before an amount can be computed; until then it discounts nothing.
    def amount(self, value: Decimal, order_total: Decimal) -> Decimal:
        return ZERO


RULES = {
    DiscountType.PERCENTAGE: PercentageRule(),
    DiscountType.FIXED: FixedRule(),
    DiscountType.FREE_SHIPPING: FreeShippingRule(),
    DiscountType.BUY_X_GET_Y: BuyXGetYRule(),
}

_missing = set(DiscountType) - set(RULES)
if _missing:
    raise RuntimeError(f"No amount rule for discount types: {sorted(t.value for t in _missing)}")


def calculate_discount_amount(
    discount_type: Union[DiscountType, str], value: Number, order_total: Number
) -> Decimal:
    """
    Discount amount for an order.

    - percentage: ``order_total * value / 100``
    - fixed: ``min(value, order_total)``
    - free_shipping, buy_x_get_y: ``0``

    Never negative.
    """
    rule = RULES[DiscountType(discount_type)]
    total = max(_to_decimal(order_total), ZERO)
    amount = rule.amount(_to_decimal(value), total)
    return max(amount, ZERO)


def calculate_discounted_price(
    original_price: Number, discount_type: Union[DiscountType, str], value: Number
) -> Decimal:
    """Price after applying the discount, floored at zero."""
    price = _to_decimal(original_price)
    return max(ZERO, price - calculate_discount_amount(discount_type, value, price))


def quantize_amount(amount: Number) -> Decimal:
    """Round to cents, half up."""
    return _to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_discount_value(discount_type: Union[DiscountType, str], value: Number, currency_symbol: str = "$") -> str:
    discount_type = DiscountType(discount_type)
    value = _to_decimal(value)
    if discount_type == DiscountType.PERCENTAGE:
        return f"{value.normalize():f}%"
    if discount_type == DiscountType.FIXED:
        return f"{currency_symbol}{quantize_amount(value)}"
    if discount_type == DiscountType.FREE_SHIPPING:
        return "Free shipping"
    return "Buy X get Y"


def format_usage(used_count: int, usage_limit=None) -> str:
    if usage_limit:
        return f"{used_count} / {usage_limit}"
    return f"{used_count} used"
