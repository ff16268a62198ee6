# discount_service/crud/crud_voucher_code.py
from typing import Iterable, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from discount_service.crud.base import CRUDBase
from discount_service.models.voucher_code import VoucherCode
from discount_service.schemas.discount import VoucherCodeCreate
from discount_service.utils.timeutils import utcnow


class CRUDVoucherCode(CRUDBase[VoucherCode, VoucherCodeCreate, VoucherCodeCreate]):
    """CRUD operations for VoucherCode model."""

    def get_by_code(
        self,
        db: Session,
        *,
        tenant_id: str,
        code: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[VoucherCode]:
        """Get a voucher code by its string (case-insensitive)."""
        query = db.query(self.model).filter(
            and_(
                self.model.tenant_id == tenant_id,
                func.upper(self.model.code) == code.strip().upper(),
            )
        )
        if exclude_id:
            query = query.filter(self.model.id != exclude_id)
        return query.first()

    def get_by_discount(
        self, db: Session, *, discount_id: str, tenant_id: str
    ) -> List[VoucherCode]:
        return (
            db.query(self.model)
            .filter(
                self.model.discount_id == discount_id,
                self.model.tenant_id == tenant_id,
            )
            .order_by(self.model.created_at.desc())
            .all()
        )

    def list_existing_codes(self, db: Session, *, tenant_id: str) -> set:
        """All codes already stored for a tenant, used to seed generation."""
        rows = db.query(self.model.code).filter(self.model.tenant_id == tenant_id).all()
        return {row[0].upper() for row in rows}

    def create_code(
        self,
        db: Session,
        *,
        tenant_id: str,
        discount_id: str,
        obj_in: VoucherCodeCreate,
        commit: bool = True,
    ) -> VoucherCode:
        db_obj = VoucherCode(
            tenant_id=tenant_id,
            discount_id=discount_id,
            code=obj_in.code,
            usage_limit=obj_in.usage_limit,
            is_manually_created=obj_in.is_manually_created,
        )
        db.add(db_obj)
        if commit:
            db.commit()
            db.refresh(db_obj)
        return db_obj

    def insert_batch(
        self,
        db: Session,
        *,
        tenant_id: str,
        discount_id: str,
        codes: Iterable[str],
        usage_limit: Optional[int] = None,
    ) -> List[VoucherCode]:
        """
        Stage a batch of generated codes and flush them in one round trip.

        The caller owns the transaction: a unique-constraint violation
        surfaces as IntegrityError from the flush and nothing is committed.
        """
        objs = [
            VoucherCode(
                tenant_id=tenant_id,
                discount_id=discount_id,
                code=code,
                usage_limit=usage_limit,
                is_manually_created=False,
            )
            for code in codes
        ]
        db.add_all(objs)
        db.flush()
        return objs

    def increment_used_count(
        self,
        db: Session,
        *,
        code_id: str,
        tenant_id: str,
        discount_id: Optional[str] = None,
    ) -> bool:
        """Atomically add one use and stamp used_at. Does not commit."""
        query = db.query(self.model).filter(
            self.model.id == code_id,
            self.model.tenant_id == tenant_id,
        )
        if discount_id:
            query = query.filter(self.model.discount_id == discount_id)
        updated = (
            query
            .filter(
                self.model.status == "active",
                or_(
                    self.model.usage_limit.is_(None),
                    self.model.used_count < self.model.usage_limit,
                ),
            )
            .update(
                {
                    self.model.used_count: self.model.used_count + 1,
                    self.model.used_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def remove_unused(
        self, db: Session, *, ids: List[str], tenant_id: str
    ) -> List[str]:
        """Delete codes that were never redeemed; used codes are kept."""
        codes = (
            db.query(self.model)
            .filter(self.model.tenant_id == tenant_id, self.model.id.in_(ids))
            .all()
        )
        removed = []
        for code in codes:
            if code.can_delete:
                removed.append(code.id)
                db.delete(code)
        db.commit()
        return removed


voucher_code = CRUDVoucherCode(VoucherCode)
