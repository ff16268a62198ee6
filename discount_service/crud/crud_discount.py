# discount_service/crud/crud_discount.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, false, func, or_, true
from sqlalchemy.orm import Session

from discount_service.crud.base import CRUDBase
from discount_service.models.discount import Discount
from discount_service.schemas.discount import DiscountCreate, DiscountUpdate
from discount_service.utils.timeutils import utcnow


def status_condition(model, status: str, now: datetime):
    """
    SQL form of ``Discount.status_at``: inactive, then expired, then
    scheduled, otherwise active.
    """
    not_ended = or_(model.ends_at.is_(None), model.ends_at >= now)
    started = or_(model.starts_at.is_(None), model.starts_at <= now)
    if status == "inactive":
        return model.is_active == false()
    if status == "expired":
        return and_(model.is_active == true(), model.ends_at.isnot(None), model.ends_at < now)
    if status == "scheduled":
        return and_(model.is_active == true(), not_ended, model.starts_at > now)
    if status == "active":
        return and_(model.is_active == true(), not_ended, started)
    raise ValueError(f"Unknown discount status: {status}")


class CRUDDiscount(CRUDBase[Discount, DiscountCreate, DiscountUpdate]):
    """CRUD operations for Discount model."""

    def get_by_code(
        self,
        db: Session,
        *,
        tenant_id: str,
        code: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[Discount]:
        """Get a discount by its discount-level code (case-insensitive)."""
        query = db.query(self.model).filter(
            and_(
                self.model.tenant_id == tenant_id,
                func.upper(self.model.code) == code.strip().upper(),
            )
        )
        if exclude_id:
            query = query.filter(self.model.id != exclude_id)
        return query.first()

    def get_for_update(
        self, db: Session, *, id: str, tenant_id: str
    ) -> Optional[Discount]:
        """Load a discount with a row lock held until the transaction ends."""
        return (
            db.query(self.model)
            .filter(self.model.id == id, self.model.tenant_id == tenant_id)
            .with_for_update()
            .first()
        )

    def get_multi_filtered(
        self,
        db: Session,
        *,
        tenant_id: str,
        search: Optional[str] = None,
        kind: Optional[str] = None,
        discount_type: Optional[str] = None,
        status: Optional[str] = None,
        now: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Discount]:
        """List discounts for a tenant, newest first. Filters apply before paging."""
        query = db.query(self.model).filter(self.model.tenant_id == tenant_id)

        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    self.model.name.ilike(pattern),
                    self.model.description.ilike(pattern),
                )
            )
        if kind:
            query = query.filter(self.model.kind == kind)
        if discount_type:
            query = query.filter(self.model.type == discount_type)
        if status:
            query = query.filter(status_condition(self.model, status, now or utcnow()))

        return (
            query.order_by(self.model.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def list_codes(self, db: Session, *, tenant_id: str) -> set:
        rows = (
            db.query(self.model.code)
            .filter(self.model.tenant_id == tenant_id, self.model.code.isnot(None))
            .all()
        )
        return {row[0].upper() for row in rows}

    def create_for_tenant(
        self, db: Session, *, obj_in: DiscountCreate, tenant_id: str, commit: bool = True
    ) -> Discount:
        """Create a new discount for a tenant."""
        data = obj_in.model_dump(exclude={"metadata"})
        db_obj = Discount(
            tenant_id=tenant_id,
            extra_metadata=obj_in.metadata,
            **{key: getattr(value, "value", value) for key, value in data.items()},
        )
        db.add(db_obj)
        if commit:
            db.commit()
            db.refresh(db_obj)
        return db_obj

    def increment_used_count(
        self, db: Session, *, discount_id: str, tenant_id: str
    ) -> bool:
        """
        Atomically add one use, refusing to go past the usage limit.

        Runs ``used_count = used_count + 1`` in SQL so concurrent redemptions
        never read-modify-write the same value. Returns False when no row
        matched (missing discount or limit already reached). Does not commit.
        """
        updated = (
            db.query(self.model)
            .filter(
                self.model.id == discount_id,
                self.model.tenant_id == tenant_id,
                or_(
                    self.model.usage_limit.is_(None),
                    self.model.used_count < self.model.usage_limit,
                ),
            )
            .update(
                {
                    self.model.used_count: self.model.used_count + 1,
                    self.model.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def remove_many(self, db: Session, *, ids: List[str], tenant_id: str) -> List[str]:
        """Delete several discounts; returns the ids actually removed."""
        discounts = (
            db.query(self.model)
            .filter(self.model.tenant_id == tenant_id, self.model.id.in_(ids))
            .all()
        )
        removed = [d.id for d in discounts]
        for d in discounts:
            db.delete(d)
        db.commit()
        return removed

    def get_running_sales(
        self, db: Session, *, tenant_id: str, now: Optional[datetime] = None
    ) -> List[Discount]:
        """Active sales whose validity window contains ``now``."""
        return (
            db.query(self.model)
            .filter(
                self.model.tenant_id == tenant_id,
                self.model.kind == "sale",
                status_condition(self.model, "active", now or utcnow()),
            )
            .all()
        )

    def set_active_many(
        self, db: Session, *, ids: List[str], tenant_id: str, is_active: bool
    ) -> List[str]:
        """Set ``is_active`` on several discounts; returns the ids updated."""
        discounts = (
            db.query(self.model)
            .filter(self.model.tenant_id == tenant_id, self.model.id.in_(ids))
            .all()
        )
        now = utcnow()
        for d in discounts:
            d.is_active = is_active
            d.updated_at = now
        db.commit()
        return [d.id for d in discounts]


discount = CRUDDiscount(Discount)
