# discount_service/crud/crud_discount_usage.py
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from discount_service.models.discount_usage import DiscountUsage


class CRUDDiscountUsage:
    """Ledger access for discount usages. Rows are never updated."""

    def count_by_customer(
        self, db: Session, *, discount_id: str, customer_id: str
    ) -> int:
        """How many times a customer has redeemed a discount."""
        return (
            db.query(func.count(DiscountUsage.id))
            .filter(
                DiscountUsage.discount_id == discount_id,
                DiscountUsage.customer_id == customer_id,
            )
            .scalar()
            or 0
        )

    def count_by_discount(self, db: Session, *, discount_id: str) -> int:
        return (
            db.query(func.count(DiscountUsage.id))
            .filter(DiscountUsage.discount_id == discount_id)
            .scalar()
            or 0
        )

    def get_by_discount(
        self, db: Session, *, discount_id: str, tenant_id: str
    ) -> List[DiscountUsage]:
        return (
            db.query(DiscountUsage)
            .filter(
                DiscountUsage.discount_id == discount_id,
                DiscountUsage.tenant_id == tenant_id,
            )
            .order_by(DiscountUsage.used_at.desc())
            .all()
        )

    def create_usage(
        self,
        db: Session,
        *,
        tenant_id: str,
        discount_id: str,
        discount_amount: Decimal,
        order_id: Optional[str] = None,
        voucher_code_id: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> DiscountUsage:
        """Stage a usage row inside the caller's transaction (no commit)."""
        usage = DiscountUsage(
            tenant_id=tenant_id,
            discount_id=discount_id,
            voucher_code_id=voucher_code_id,
            order_id=order_id,
            customer_id=customer_id,
            discount_amount=discount_amount,
        )
        db.add(usage)
        db.flush()
        return usage


discount_usage = CRUDDiscountUsage()
