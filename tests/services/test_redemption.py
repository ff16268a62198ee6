"""
Tests for checkout-time redemption validation.

Gates run in a fixed order and the first failure decides the reason.
"""

from datetime import timedelta
from decimal import Decimal

from discount_service import crud
from discount_service.schemas.discount import RejectionReason
from discount_service.services.discounts.redemption import (
    GENERIC_INACTIVE,
    GENERIC_INVALID,
    redemption_validator,
)
from discount_service.utils.timeutils import utcnow

from tests.utils.discount import (
    OTHER_TENANT_ID,
    TENANT_ID,
    create_random_discount,
    create_voucher_code,
)


def validate(db, code, order_total, **kwargs):
    return redemption_validator.validate(db, TENANT_ID, code, order_total, **kwargs)


# ------------------------------------------------------------------ #
# End-to-end checkout scenarios
# ------------------------------------------------------------------ #

def test_fixed_discount_above_minimum(db_session):
    create_random_discount(
        db_session, TENANT_ID, code="SAVE20", type="fixed", value=Decimal("20"),
        min_order_amount=Decimal("50"),
    )

    result = validate(db_session, "SAVE20", Decimal("100"))

    assert result.is_valid
    assert result.reason is None
    assert result.discount_amount == Decimal("20")
    assert result.code == "SAVE20"


def test_fixed_discount_below_minimum(db_session):
    create_random_discount(
        db_session, TENANT_ID, code="SAVE20", type="fixed", value=Decimal("20"),
        min_order_amount=Decimal("50"),
    )

    result = validate(db_session, "SAVE20", Decimal("10"))

    assert not result.is_valid
    assert result.reason == RejectionReason.BELOW_MINIMUM
    assert result.error_message == "Minimum order amount of $50.00 required"
    assert result.discount_amount == Decimal("0")


def test_usage_limit_reached(db_session):
    create_random_discount(db_session, TENANT_ID, code="ONCE", usage_limit=1, used_count=1)

    result = validate(db_session, "ONCE", 100)

    assert result.reason == RejectionReason.LIMIT_REACHED


# ------------------------------------------------------------------ #
# Individual gates
# ------------------------------------------------------------------ #

def test_unknown_code(db_session):
    result = validate(db_session, "NOPE", 100)
    assert result.reason == RejectionReason.NOT_FOUND
    assert result.error_message == GENERIC_INVALID


def test_malformed_code_reported_as_not_found(db_session):
    result = validate(db_session, "!!bad code!!", 100)
    assert result.reason == RejectionReason.NOT_FOUND
    assert result.error_message == GENERIC_INVALID


def test_code_from_other_tenant_not_found(db_session):
    create_random_discount(db_session, OTHER_TENANT_ID, code="SUMMER")
    assert validate(db_session, "SUMMER", 100).reason == RejectionReason.NOT_FOUND


def test_lookup_is_case_insensitive(db_session):
    create_random_discount(db_session, TENANT_ID, code="SUMMER")
    assert validate(db_session, "  summer ", 100).is_valid


def test_inactive_discount(db_session):
    create_random_discount(db_session, TENANT_ID, code="OFF", is_active=False)

    result = validate(db_session, "OFF", 100)

    assert result.reason == RejectionReason.INACTIVE
    assert result.error_message == GENERIC_INACTIVE


def test_deactivated_voucher_code(db_session):
    discount = create_random_discount(db_session, TENANT_ID, kind="voucher", code="MAIN")
    create_voucher_code(db_session, TENANT_ID, discount.id, code="VC-OFF", status="deactivated")

    assert validate(db_session, "VC-OFF", 100).reason == RejectionReason.INACTIVE


def test_not_yet_active(db_session):
    create_random_discount(
        db_session, TENANT_ID, code="SOON", starts_at=utcnow() + timedelta(days=1)
    )
    assert validate(db_session, "SOON", 100).reason == RejectionReason.NOT_YET_ACTIVE


def test_expired(db_session):
    create_random_discount(
        db_session, TENANT_ID, code="OLD", ends_at=utcnow() - timedelta(days=1)
    )
    assert validate(db_session, "OLD", 100).reason == RejectionReason.EXPIRED


def test_expired_wins_over_below_minimum(db_session):
    create_random_discount(
        db_session, TENANT_ID, code="OLD", ends_at=utcnow() - timedelta(days=1),
        min_order_amount=Decimal("50"),
    )
    assert validate(db_session, "OLD", 10).reason == RejectionReason.EXPIRED


def test_inactive_wins_over_expired(db_session):
    create_random_discount(
        db_session, TENANT_ID, code="OLD", is_active=False,
        ends_at=utcnow() - timedelta(days=1),
    )
    assert validate(db_session, "OLD", 100).reason == RejectionReason.INACTIVE


def test_single_use_discount_code_already_used(db_session):
    create_random_discount(db_session, TENANT_ID, code="ONEOFF", single_use=True, used_count=1)
    assert validate(db_session, "ONEOFF", 100).reason == RejectionReason.ALREADY_USED


def test_single_use_checked_on_the_voucher_code(db_session):
    discount = create_random_discount(
        db_session, TENANT_ID, kind="voucher", code="MAIN", single_use=True, used_count=1
    )
    create_voucher_code(db_session, TENANT_ID, discount.id, code="VC-FRESH")
    create_voucher_code(db_session, TENANT_ID, discount.id, code="VC-USED", used_count=1, usage_limit=1)

    assert validate(db_session, "VC-FRESH", 100).is_valid
    # Single use is checked before the per-code limit
    assert validate(db_session, "VC-USED", 100).reason == RejectionReason.ALREADY_USED


def test_code_usage_limit_reached(db_session):
    discount = create_random_discount(db_session, TENANT_ID, kind="voucher", code="MAIN")
    create_voucher_code(
        db_session, TENANT_ID, discount.id, code="VC-TWICE", usage_limit=2, used_count=2
    )
    assert validate(db_session, "VC-TWICE", 100).reason == RejectionReason.CODE_LIMIT_REACHED


def test_below_minimum_quantity(db_session):
    create_random_discount(db_session, TENANT_ID, code="BULK", min_quantity=3)

    assert validate(db_session, "BULK", 100, item_count=2).reason == RejectionReason.BELOW_MINIMUM_QUANTITY
    assert validate(db_session, "BULK", 100, item_count=3).is_valid
    # Quantity unknown: gate skipped
    assert validate(db_session, "BULK", 100).is_valid


def test_once_per_customer(db_session):
    discount = create_random_discount(
        db_session, TENANT_ID, code="WELCOME", apply_once_per_customer=True
    )
    crud.discount_usage.create_usage(
        db_session, tenant_id=TENANT_ID, discount_id=discount.id,
        discount_amount=Decimal("5"), order_id="order_1", customer_id="cust_1",
    )
    db_session.commit()

    used = validate(db_session, "WELCOME", 100, customer_id="cust_1")
    assert used.reason == RejectionReason.ALREADY_USED_BY_CUSTOMER
    assert validate(db_session, "WELCOME", 100, customer_id="cust_2").is_valid
    # Anonymous checkouts skip the per-customer gate
    assert validate(db_session, "WELCOME", 100).is_valid


def test_max_uses_per_customer(db_session):
    discount = create_random_discount(
        db_session, TENANT_ID, code="LOYAL", max_uses_per_customer=2
    )
    for order_id in ("order_1", "order_2"):
        crud.discount_usage.create_usage(
            db_session, tenant_id=TENANT_ID, discount_id=discount.id,
            discount_amount=Decimal("5"), order_id=order_id, customer_id="cust_1",
        )
    db_session.commit()

    result = validate(db_session, "LOYAL", 100, customer_id="cust_1")
    assert result.reason == RejectionReason.ALREADY_USED_BY_CUSTOMER


# ------------------------------------------------------------------ #
# Result contents
# ------------------------------------------------------------------ #

def test_voucher_code_result_points_at_code(db_session):
    discount = create_random_discount(
        db_session, TENANT_ID, kind="voucher", code="MAIN", value=Decimal("25")
    )
    voucher_code = create_voucher_code(db_session, TENANT_ID, discount.id, code="VC-ABC")

    result = validate(db_session, "vc-abc", Decimal("80"))

    assert result.is_valid
    assert result.discount_id == discount.id
    assert result.voucher_code_id == voucher_code.id
    assert result.code == "VC-ABC"
    assert result.discount_amount == Decimal("20")


def test_validation_has_no_side_effects(db_session):
    discount = create_random_discount(db_session, TENANT_ID, code="SUMMER", usage_limit=5)

    first = validate(db_session, "SUMMER", 100)
    second = validate(db_session, "SUMMER", 100)

    assert first == second
    db_session.refresh(discount)
    assert discount.used_count == 0


def test_rejection_is_repeatable(db_session):
    create_random_discount(db_session, TENANT_ID, code="ONCE", usage_limit=1, used_count=1)
    assert validate(db_session, "ONCE", 100) == validate(db_session, "ONCE", 100)
