# discount_service/services/discounts/redemption.py
"""
Checkout-time validation of discount and voucher codes.

Gates run in a fixed order and the first failing gate decides the
rejection reason shown to the shopper:

1. code lookup              -> NOT_FOUND
2. code/discount active     -> INACTIVE
3. starts_at in the future  -> NOT_YET_ACTIVE
4. ends_at in the past      -> EXPIRED
5. discount usage limit     -> LIMIT_REACHED
6. single-use code used     -> ALREADY_USED
7. per-code usage limit     -> CODE_LIMIT_REACHED
8. minimum order amount     -> BELOW_MINIMUM
9. minimum item quantity    -> BELOW_MINIMUM_QUANTITY
10. per-customer limit      -> ALREADY_USED_BY_CUSTOMER

Validation only reads. Counters change when a usage is recorded.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from discount_service.core.config import settings
from discount_service.crud import discount as discount_crud
from discount_service.crud import discount_usage as discount_usage_crud
from discount_service.crud import voucher_code as voucher_code_crud
from discount_service.schemas.checkout import DiscountValidation
from discount_service.schemas.discount import DiscountType, RejectionReason
from discount_service.services.discounts.amount_calculator import (
    calculate_discount_amount,
    quantize_amount,
)
from discount_service.services.discounts.code_validator import (
    LOOSE_CODE_PATTERN,
    normalize_code,
)
from discount_service.utils.timeutils import ensure_utc, utcnow


# NOT_FOUND / INACTIVE / malformed codes share generic wording so a shopper
# cannot tell which codes exist.
GENERIC_INVALID = "Invalid discount code"
GENERIC_INACTIVE = "This code is no longer valid"


def _reject(reason: RejectionReason, message: str) -> DiscountValidation:
    return DiscountValidation(is_valid=False, reason=reason, error_message=message)


def customer_usage_limit(discount) -> Optional[int]:
    """Per-customer cap: apply-once means 1, otherwise max_uses_per_customer."""
    if discount.apply_once_per_customer:
        return 1
    return discount.max_uses_per_customer


class RedemptionValidator:
    """Validates a code against an order without side effects."""

    def validate(
        self,
        db: Session,
        tenant_id: str,
        code: str,
        order_total,
        item_count: Optional[int] = None,
        customer_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DiscountValidation:
        now = now or utcnow()
        order_total = Decimal(str(order_total))
        normalized = normalize_code(code)

        if not LOOSE_CODE_PATTERN.match(normalized):
            return _reject(RejectionReason.NOT_FOUND, GENERIC_INVALID)

        # 1. Lookup: individual voucher codes first, then discount-level codes
        voucher_code = voucher_code_crud.get_by_code(
            db, tenant_id=tenant_id, code=normalized
        )
        if voucher_code:
            discount = discount_crud.get(
                db, id=voucher_code.discount_id, tenant_id=tenant_id
            )
        else:
            discount = discount_crud.get_by_code(
                db, tenant_id=tenant_id, code=normalized
            )

        if not discount:
            return _reject(RejectionReason.NOT_FOUND, GENERIC_INVALID)

        # 2. Active flags
        if voucher_code and voucher_code.status != "active":
            return _reject(RejectionReason.INACTIVE, GENERIC_INACTIVE)
        if not discount.is_active:
            return _reject(RejectionReason.INACTIVE, GENERIC_INACTIVE)

        # 3-4. Validity window
        starts_at = ensure_utc(discount.starts_at)
        if starts_at and starts_at > now:
            return _reject(
                RejectionReason.NOT_YET_ACTIVE, "This discount is not yet active"
            )
        ends_at = ensure_utc(discount.ends_at)
        if ends_at and ends_at < now:
            return _reject(RejectionReason.EXPIRED, "This discount has expired")

        # 5. Discount-wide usage limit
        if discount.usage_limit_reached:
            return _reject(
                RejectionReason.LIMIT_REACHED,
                "This discount has reached its usage limit",
            )

        # 6. Single use: the code itself must be unused
        code_used_count = voucher_code.used_count if voucher_code else discount.used_count
        if discount.single_use and code_used_count > 0:
            return _reject(
                RejectionReason.ALREADY_USED, "This code has already been used"
            )

        # 7. Per-code usage limit
        if voucher_code and voucher_code.usage_limit_reached:
            return _reject(
                RejectionReason.CODE_LIMIT_REACHED,
                "This code has reached its usage limit",
            )

        # 8. Minimum order amount
        if discount.min_order_amount and order_total < discount.min_order_amount:
            return _reject(
                RejectionReason.BELOW_MINIMUM,
                f"Minimum order amount of {settings.CURRENCY_SYMBOL}"
                f"{quantize_amount(discount.min_order_amount)} required",
            )

        # 9. Minimum quantity
        if (
            discount.min_quantity
            and item_count is not None
            and item_count < discount.min_quantity
        ):
            return _reject(
                RejectionReason.BELOW_MINIMUM_QUANTITY,
                f"Minimum {discount.min_quantity} items required",
            )

        # 10. Per-customer usage
        limit = customer_usage_limit(discount)
        if customer_id and limit:
            used = discount_usage_crud.count_by_customer(
                db, discount_id=discount.id, customer_id=customer_id
            )
            if used >= limit:
                return _reject(
                    RejectionReason.ALREADY_USED_BY_CUSTOMER,
                    "You have already used this discount",
                )

        amount = calculate_discount_amount(discount.type, discount.value, order_total)

        return DiscountValidation(
            is_valid=True,
            discount_id=discount.id,
            voucher_code_id=voucher_code.id if voucher_code else None,
            code=voucher_code.code if voucher_code else discount.code,
            discount_type=DiscountType(discount.type),
            discount_value=discount.value,
            discount_amount=amount,
        )


redemption_validator = RedemptionValidator()
