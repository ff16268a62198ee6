# discount_service/services/discounts/usage_recorder.py
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from discount_service.core.exceptions import StorageFailure
from discount_service.crud import discount as discount_crud
from discount_service.crud import discount_usage as discount_usage_crud
from discount_service.crud import voucher_code as voucher_code_crud
from discount_service.schemas.discount import RejectionReason
from discount_service.services.discounts.amount_calculator import quantize_amount
from discount_service.services.discounts.results import RecordResult

logger = logging.getLogger(__name__)


def record_usage(
    db: Session,
    tenant_id: str,
    discount_id: str,
    order_id: Optional[str],
    discount_amount,
    voucher_code_id: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> RecordResult:
    """
    Record one redemption: a ledger row plus the counter increments.

    The usage row, ``Discount.used_count + 1`` and (when a code is given)
    ``VoucherCode.used_count + 1`` are committed together or not at all.
    Increments are guarded by the usage limits, so a redemption that lost
    a race for the last use is rolled back and reported as LIMIT_REACHED
    or CODE_LIMIT_REACHED.
    """
    amount = quantize_amount(Decimal(str(discount_amount)))

    try:
        # Row lock serialises concurrent redemptions of the same discount
        # on databases that support SELECT ... FOR UPDATE.
        discount = discount_crud.get_for_update(db, id=discount_id, tenant_id=tenant_id)
        if not discount:
            db.rollback()
            return RecordResult(
                success=False,
                reason=RejectionReason.NOT_FOUND,
                error_message="Discount not found",
            )

        usage = discount_usage_crud.create_usage(
            db,
            tenant_id=tenant_id,
            discount_id=discount_id,
            discount_amount=amount,
            order_id=order_id,
            voucher_code_id=voucher_code_id,
            customer_id=customer_id,
        )

        if not discount_crud.increment_used_count(
            db, discount_id=discount_id, tenant_id=tenant_id
        ):
            db.rollback()
            return RecordResult(
                success=False,
                reason=RejectionReason.LIMIT_REACHED,
                error_message="This discount has reached its usage limit",
            )

        if voucher_code_id and not voucher_code_crud.increment_used_count(
            db, code_id=voucher_code_id, tenant_id=tenant_id, discount_id=discount_id
        ):
            db.rollback()
            return RecordResult(
                success=False,
                reason=RejectionReason.CODE_LIMIT_REACHED,
                error_message="This code has reached its usage limit",
            )

        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Failed to record usage of discount %s for order %s",
            discount_id,
            order_id,
            exc_info=True,
        )
        raise StorageFailure(
            "Failed to record discount usage", details={"discount_id": discount_id}
        ) from exc

    db.refresh(usage)
    logger.info(
        "Recorded usage %s of discount %s (order=%s, amount=%s)",
        usage.id,
        discount_id,
        order_id,
        amount,
    )
    return RecordResult(success=True, usage=usage)
