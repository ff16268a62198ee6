# discount_service/services/discounts/discount_service.py
"""
Discount Management Service

Handles business logic for:
- Sale and voucher discount management (create, update, delete, toggle)
- Discount duplication with unique copy codes
- Voucher code management and batch generation
- Checkout validation and usage recording
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from discount_service.core.config import settings
from discount_service.core.exceptions import StorageFailure
from discount_service.crud import discount as discount_crud
from discount_service.crud import discount_usage as discount_usage_crud
from discount_service.crud import voucher_code as voucher_code_crud
from discount_service.models.discount import Discount
from discount_service.models.discount_usage import DiscountUsage
from discount_service.models.voucher_code import VoucherCode
from discount_service.schemas.checkout import (
    ApplicableSale,
    DiscountValidation,
    SaleLookupItem,
)
from discount_service.schemas.discount import (
    DiscountCreate,
    DiscountKind,
    DiscountType,
    DiscountUpdate,
    RejectionReason,
    VoucherCodeCreate,
    VoucherCodeGenerate,
)
from discount_service.services.discounts.amount_calculator import (
    calculate_discount_amount,
    calculate_discounted_price,
    quantize_amount,
)
from discount_service.services.discounts.code_generator import (
    generate_unique_codes,
    next_copy_code,
)
from discount_service.services.discounts.code_validator import (
    STRICT_CODE_MAX_LENGTH,
    check_code_available,
    is_code_taken,
    validate_code_format,
)
from discount_service.services.discounts.redemption import redemption_validator
from discount_service.services.discounts.results import MutationResult, RecordResult
from discount_service.services.discounts.usage_recorder import record_usage
from discount_service.utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

# Types whose value is ignored by the amount calculator
_VALUELESS_TYPES = {DiscountType.FREE_SHIPPING, DiscountType.BUY_X_GET_Y}

# Columns that cannot be cleared; an explicit null on update leaves them as they are
_NON_NULLABLE_FIELDS = {
    "name",
    "type",
    "value",
    "scope",
    "apply_once_per_order",
    "apply_once_per_customer",
    "only_for_staff",
    "single_use",
    "is_active",
}

# Configuration copied verbatim by duplicate_discount
_COPIED_FIELDS = (
    "description",
    "kind",
    "type",
    "value",
    "scope",
    "apply_once_per_order",
    "min_order_amount",
    "min_quantity",
    "usage_limit",
    "apply_once_per_customer",
    "max_uses_per_customer",
    "only_for_staff",
    "single_use",
    "applicable_product_ids",
    "applicable_collection_ids",
    "applicable_category_ids",
    "applicable_variant_ids",
    "extra_metadata",
)


def check_discount_rules(
    discount_type: DiscountType,
    value: Decimal,
    starts_at: Optional[datetime],
    ends_at: Optional[datetime],
) -> Optional[MutationResult]:
    """Value and date-window rules shared by create and update."""
    discount_type = DiscountType(discount_type)
    if discount_type == DiscountType.PERCENTAGE and (value < 0 or value > 100):
        return MutationResult.failed(
            RejectionReason.INVALID_VALUE, "Percentage must be between 0 and 100"
        )
    if discount_type not in _VALUELESS_TYPES and value <= 0:
        return MutationResult.failed(
            RejectionReason.INVALID_VALUE, "Discount value must be greater than 0"
        )

    starts_at, ends_at = ensure_utc(starts_at), ensure_utc(ends_at)
    if starts_at and ends_at and starts_at >= ends_at:
        return MutationResult.failed(
            RejectionReason.INVALID_DATE_RANGE, "End date must be after start date"
        )
    return None


def _sale_covers(sale: Discount, item: SaleLookupItem) -> bool:
    if sale.scope == "entire_order":
        return True
    if item.product_id in (sale.applicable_product_ids or []):
        return True
    if item.variant_id and item.variant_id in (sale.applicable_variant_ids or []):
        return True
    if set(item.category_ids) & set(sale.applicable_category_ids or []):
        return True
    return bool(set(item.collection_ids) & set(sale.applicable_collection_ids or []))


def _commit(db: Session, action: str) -> Optional[MutationResult]:
    """
    Commit the pending changes. A unique-constraint violation (another
    writer took the code first) comes back as DUPLICATE_CODE; any other
    database error raises StorageFailure.
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Failed to %s: code already in use", action)
        return MutationResult.failed(
            RejectionReason.DUPLICATE_CODE, "A code with this value already exists"
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to %s", action, exc_info=True)
        raise StorageFailure(f"Failed to {action}") from exc
    return None


class DiscountManagementService:
    """Service for managing discounts, voucher codes and redemptions."""

    # ========================================
    # Discount Operations
    # ========================================

    def list_discounts(
        self,
        db: Session,
        tenant_id: str,
        search: Optional[str] = None,
        kind: Optional[str] = None,
        discount_type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Discount]:
        return discount_crud.get_multi_filtered(
            db,
            tenant_id=tenant_id,
            search=search,
            kind=kind,
            discount_type=discount_type,
            status=status,
            limit=limit,
            offset=offset,
        )

    def get_discount(
        self, db: Session, tenant_id: str, discount_id: str
    ) -> Optional[Discount]:
        return discount_crud.get(db, id=discount_id, tenant_id=tenant_id)

    def create_discount(
        self, db: Session, tenant_id: str, input_data: DiscountCreate
    ) -> MutationResult:
        """Validate and create a discount. Voucher discounts always get a code."""
        if input_data.type in _VALUELESS_TYPES:
            input_data = input_data.model_copy(update={"value": Decimal("0")})

        failure = check_discount_rules(
            input_data.type, input_data.value, input_data.starts_at, input_data.ends_at
        )
        if failure:
            return failure

        if input_data.code:
            check = check_code_available(db, tenant_id, input_data.code, strict=True)
            if not check.is_valid:
                return MutationResult.failed(check.reason, check.error_message)
            input_data = input_data.model_copy(update={"code": check.code})
        elif input_data.kind == DiscountKind.VOUCHER:
            code = generate_unique_codes(
                1,
                existing=self._existing_codes(db, tenant_id),
                length=settings.VOUCHER_CODE_LENGTH,
                max_attempts_per_code=settings.CODE_GENERATION_MAX_ATTEMPTS,
            )[0]
            input_data = input_data.model_copy(update={"code": code})

        discount = discount_crud.create_for_tenant(
            db, obj_in=input_data, tenant_id=tenant_id, commit=False
        )
        failure = _commit(db, "create discount")
        if failure:
            return failure
        db.refresh(discount)
        logger.info("Created %s discount %s (%s)", discount.kind, discount.id, discount.code)
        return MutationResult(success=True, data=discount)

    def update_discount(
        self,
        db: Session,
        tenant_id: str,
        discount_id: str,
        input_data: DiscountUpdate,
    ) -> MutationResult:
        """Apply the fields that were set on ``input_data``."""
        discount = self.get_discount(db, tenant_id, discount_id)
        if not discount:
            return MutationResult.failed(RejectionReason.NOT_FOUND, "Discount not found")

        update_data = {
            field: value
            for field, value in input_data.model_dump(exclude_unset=True).items()
            if value is not None or field not in _NON_NULLABLE_FIELDS
        }

        usage_limit = update_data.get("usage_limit")
        if usage_limit is not None and usage_limit < (discount.used_count or 0):
            return MutationResult.failed(
                RejectionReason.INVALID_VALUE,
                f"Usage limit cannot be lower than the {discount.used_count} uses so far",
            )

        if update_data.get("code"):
            check = check_code_available(
                db, tenant_id, update_data["code"], strict=True, exclude_discount_id=discount.id
            )
            if not check.is_valid:
                return MutationResult.failed(check.reason, check.error_message)
            update_data["code"] = check.code
        elif "code" in update_data:
            # A code cannot be cleared, only replaced
            update_data.pop("code")

        discount_type = DiscountType(update_data.get("type") or discount.type)
        if discount_type in _VALUELESS_TYPES:
            update_data["value"] = Decimal("0")
        value = update_data.get("value")
        if value is None:
            value = discount.value

        failure = check_discount_rules(
            discount_type,
            value,
            update_data.get("starts_at", discount.starts_at),
            update_data.get("ends_at", discount.ends_at),
        )
        if failure:
            return failure

        if "metadata" in update_data:
            update_data["extra_metadata"] = update_data.pop("metadata")

        for field, field_value in update_data.items():
            setattr(discount, field, getattr(field_value, "value", field_value))
        discount.updated_at = utcnow()

        failure = _commit(db, "update discount")
        if failure:
            return failure
        db.refresh(discount)
        return MutationResult(success=True, data=discount)

    def toggle_discount_status(
        self, db: Session, tenant_id: str, discount_id: str, is_active: bool
    ) -> MutationResult:
        return self.update_discount(
            db, tenant_id, discount_id, DiscountUpdate(is_active=is_active)
        )

    def delete_discount(
        self, db: Session, tenant_id: str, discount_id: str
    ) -> Optional[Discount]:
        """Delete a discount together with its codes and usage history."""
        try:
            return discount_crud.remove(db, id=discount_id, tenant_id=tenant_id)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to delete discount %s", discount_id, exc_info=True)
            raise StorageFailure("Failed to delete discount") from exc

    def delete_discounts(
        self, db: Session, tenant_id: str, discount_ids: List[str]
    ) -> List[str]:
        try:
            return discount_crud.remove_many(db, ids=discount_ids, tenant_id=tenant_id)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to delete discounts", exc_info=True)
            raise StorageFailure("Failed to delete discounts") from exc

    def toggle_discounts(
        self, db: Session, tenant_id: str, discount_ids: List[str], is_active: bool
    ) -> List[str]:
        """Switch several discounts on or off; ids of other tenants are skipped."""
        try:
            updated = discount_crud.set_active_many(
                db, ids=discount_ids, tenant_id=tenant_id, is_active=is_active
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to toggle discounts", exc_info=True)
            raise StorageFailure("Failed to toggle discounts") from exc
        logger.info("Set is_active=%s on %d discount(s)", is_active, len(updated))
        return updated

    def duplicate_discount(
        self, db: Session, tenant_id: str, discount_id: str
    ) -> MutationResult:
        """
        Copy a discount's configuration into a new, inactive discount.

        The copy gets a fresh ``<CODE>_COPY[n]`` code, no validity window and
        a zero usage count. Long codes are cut short to make room for the
        suffix. Raises GenerationExhausted if no copy code is free.
        """
        original = self.get_discount(db, tenant_id, discount_id)
        if not original:
            return MutationResult.failed(RejectionReason.NOT_FOUND, "Discount not found")

        new_code = None
        if original.code:
            new_code = next_copy_code(
                original.code,
                lambda candidate: is_code_taken(db, tenant_id, candidate),
                max_attempts=settings.DUPLICATE_CODE_MAX_ATTEMPTS,
                max_length=STRICT_CODE_MAX_LENGTH,
            )
            check = validate_code_format(new_code, strict=True)
            if not check.is_valid:
                return MutationResult.failed(check.reason, check.error_message)

        duplicate = Discount(
            tenant_id=tenant_id,
            code=new_code,
            name=f"{original.name} (Copy)",
            starts_at=None,
            ends_at=None,
            is_active=False,  # Start as inactive
            used_count=0,
            **{field: getattr(original, field) for field in _COPIED_FIELDS},
        )
        db.add(duplicate)
        failure = _commit(db, "duplicate discount")
        if failure:
            return failure
        db.refresh(duplicate)
        logger.info("Duplicated discount %s as %s (%s)", original.id, duplicate.id, new_code)
        return MutationResult(success=True, data=duplicate)

    # ========================================
    # Voucher Code Operations
    # ========================================

    def list_voucher_codes(
        self, db: Session, tenant_id: str, discount_id: str
    ) -> List[VoucherCode]:
        return voucher_code_crud.get_by_discount(
            db, discount_id=discount_id, tenant_id=tenant_id
        )

    def add_voucher_code(
        self,
        db: Session,
        tenant_id: str,
        discount_id: str,
        input_data: VoucherCodeCreate,
    ) -> MutationResult:
        """Add one manually chosen code to a discount."""
        if not self.get_discount(db, tenant_id, discount_id):
            return MutationResult.failed(RejectionReason.NOT_FOUND, "Discount not found")

        check = check_code_available(db, tenant_id, input_data.code, strict=False)
        if not check.is_valid:
            return MutationResult.failed(check.reason, check.error_message)

        code = voucher_code_crud.create_code(
            db,
            tenant_id=tenant_id,
            discount_id=discount_id,
            obj_in=input_data.model_copy(update={"code": check.code}),
            commit=False,
        )
        failure = _commit(db, "add voucher code")
        if failure:
            return failure
        db.refresh(code)
        return MutationResult(success=True, data=code)

    def generate_voucher_codes(
        self,
        db: Session,
        tenant_id: str,
        discount_id: str,
        input_data: VoucherCodeGenerate,
    ) -> MutationResult:
        """
        Generate and insert a batch of random codes.

        The batch goes in with one flush. If another writer claimed some of
        the candidates in the meantime, only those collided codes are
        redrawn and the batch is retried.
        """
        if not self.get_discount(db, tenant_id, discount_id):
            return MutationResult.failed(RejectionReason.NOT_FOUND, "Discount not found")
        if input_data.quantity > settings.MAX_GENERATED_CODES:
            return MutationResult.failed(
                RejectionReason.INVALID_VALUE,
                f"Quantity must be between 1 and {settings.MAX_GENERATED_CODES}",
            )

        existing = self._existing_codes(db, tenant_id)
        pending = self._draw_codes(input_data.quantity, existing, input_data.prefix)

        for attempt in range(1, settings.CODE_BATCH_INSERT_RETRIES + 1):
            try:
                inserted = voucher_code_crud.insert_batch(
                    db,
                    tenant_id=tenant_id,
                    discount_id=discount_id,
                    codes=pending,
                    usage_limit=input_data.usage_limit,
                )
                db.commit()
            except IntegrityError:
                db.rollback()
                existing = self._existing_codes(db, tenant_id)
                still_free = [c for c in pending if c not in existing]
                collided = len(pending) - len(still_free)
                logger.warning(
                    "Voucher code batch for discount %s collided on %d code(s), attempt %d",
                    discount_id,
                    collided,
                    attempt,
                )
                pending = still_free + self._draw_codes(
                    collided, existing | set(still_free), input_data.prefix
                )
                continue
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("Failed to generate voucher codes", exc_info=True)
                raise StorageFailure("Failed to generate voucher codes") from exc

            for code in inserted:
                db.refresh(code)
            logger.info(
                "Generated %d voucher codes for discount %s", len(inserted), discount_id
            )
            return MutationResult(success=True, data=inserted)

        raise StorageFailure(
            "Failed to generate voucher codes",
            details={"attempts": settings.CODE_BATCH_INSERT_RETRIES},
        )

    def delete_voucher_codes(
        self, db: Session, tenant_id: str, code_ids: List[str]
    ) -> List[str]:
        """Delete unused codes; redeemed codes stay for the usage history."""
        try:
            return voucher_code_crud.remove_unused(db, ids=code_ids, tenant_id=tenant_id)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to delete voucher codes", exc_info=True)
            raise StorageFailure("Failed to delete voucher codes") from exc

    # ========================================
    # Checkout Operations
    # ========================================

    def validate_code(
        self,
        db: Session,
        tenant_id: str,
        code: str,
        order_total,
        item_count: Optional[int] = None,
        customer_id: Optional[str] = None,
    ) -> DiscountValidation:
        try:
            result = redemption_validator.validate(
                db,
                tenant_id,
                code,
                order_total,
                item_count=item_count,
                customer_id=customer_id,
            )
        except SQLAlchemyError as exc:
            logger.error("Failed to validate discount code", exc_info=True)
            raise StorageFailure("Failed to validate discount code") from exc
        if not result.is_valid:
            logger.debug("Rejected code %r for tenant %s: %s", code, tenant_id, result.reason)
        return result

    def record_usage(
        self,
        db: Session,
        tenant_id: str,
        discount_id: str,
        order_id: Optional[str],
        discount_amount,
        voucher_code_id: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> RecordResult:
        return record_usage(
            db,
            tenant_id,
            discount_id,
            order_id,
            discount_amount,
            voucher_code_id=voucher_code_id,
            customer_id=customer_id,
        )

    def redeem(
        self,
        db: Session,
        tenant_id: str,
        code: str,
        order_id: str,
        order_total,
        item_count: Optional[int] = None,
        customer_id: Optional[str] = None,
    ):
        """Validate a code and, if it passes, record the usage."""
        validation = self.validate_code(
            db, tenant_id, code, order_total, item_count=item_count, customer_id=customer_id
        )
        if not validation.is_valid:
            return validation, None

        recorded = self.record_usage(
            db,
            tenant_id,
            validation.discount_id,
            order_id,
            validation.discount_amount,
            voucher_code_id=validation.voucher_code_id,
            customer_id=customer_id,
        )
        if not recorded.success:
            # Lost a race for the last available use
            validation = DiscountValidation(
                is_valid=False,
                reason=recorded.reason,
                error_message=recorded.error_message,
            )
            return validation, None
        return validation, recorded.usage

    def list_usages(
        self, db: Session, tenant_id: str, discount_id: str
    ) -> List[DiscountUsage]:
        """Redemption history of a discount, newest first."""
        return discount_usage_crud.get_by_discount(
            db, discount_id=discount_id, tenant_id=tenant_id
        )

    def get_applicable_sales(
        self,
        db: Session,
        tenant_id: str,
        items: List[SaleLookupItem],
        now: Optional[datetime] = None,
    ) -> List[ApplicableSale]:
        """
        Best running sale for each item, if any.

        A sale covers an item when it runs on the entire order or lists the
        item's product, variant, one of its categories or one of its
        collections. When several sales cover an item, the one taking the
        most off its price wins; without a price, the highest value wins.
        Free shipping and buy X get Y sales never change a price and are
        left out.
        """
        try:
            sales = discount_crud.get_running_sales(db, tenant_id=tenant_id, now=now)
        except SQLAlchemyError as exc:
            logger.error("Failed to look up sales", exc_info=True)
            raise StorageFailure("Failed to look up sales") from exc
        sales = [s for s in sales if DiscountType(s.type) not in _VALUELESS_TYPES]

        results = []
        for item in items:
            best, best_rank = None, None
            for sale in sales:
                if not _sale_covers(sale, item):
                    continue
                value = Decimal(sale.value)
                rank = (
                    calculate_discount_amount(sale.type, value, item.price)
                    if item.price is not None
                    else value
                )
                if best is None or rank > best_rank:
                    best, best_rank = sale, rank
            if best is None:
                continue

            sale_price = None
            if item.price is not None:
                sale_price = quantize_amount(
                    calculate_discounted_price(item.price, best.type, best.value)
                )
            results.append(
                ApplicableSale(
                    product_id=item.product_id,
                    sale_id=best.id,
                    discount_type=best.type,
                    discount_value=best.value,
                    original_price=item.price,
                    sale_price=sale_price,
                )
            )
        return results

    # ========================================
    # Helpers
    # ========================================

    def _existing_codes(self, db: Session, tenant_id: str) -> set:
        return voucher_code_crud.list_existing_codes(
            db, tenant_id=tenant_id
        ) | discount_crud.list_codes(db, tenant_id=tenant_id)

    def _draw_codes(self, quantity: int, existing: set, prefix: Optional[str]) -> List[str]:
        if quantity <= 0:
            return []
        return generate_unique_codes(
            quantity,
            existing=existing,
            prefix=prefix,
            length=settings.VOUCHER_CODE_LENGTH,
            max_attempts_per_code=settings.CODE_GENERATION_MAX_ATTEMPTS,
        )


# Singleton instance
discount_management_service = DiscountManagementService()
