# discount_service/models/discount.py
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Integer,
    Numeric,
    Text,
    JSON,
    Index,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship
from discount_service.db.base_class import Base
from discount_service.utils.timeutils import utcnow, ensure_utc
import uuid


class Discount(Base):
    __tablename__ = "discounts"

    id = Column(
        String, primary_key=True, default=lambda: f"disc_{uuid.uuid4().hex[:12]}"
    )
    tenant_id = Column(String, nullable=False, index=True)
    code = Column(String(50), nullable=True)  # discount-level code (simple variant)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    kind = Column(String(20), nullable=False, default="voucher")  # 'sale' or 'voucher'
    type = Column(String(20), nullable=False, default="percentage")
    value = Column(Numeric(10, 2), nullable=False, default=0)
    scope = Column(String(30), nullable=False, default="entire_order")
    apply_once_per_order = Column(Boolean, nullable=False, default=False)

    # Minimum requirements
    min_order_amount = Column(Numeric(10, 2), nullable=True)
    min_quantity = Column(Integer, nullable=True)

    # Usage limits
    usage_limit = Column(Integer, nullable=True)  # NULL = unlimited
    used_count = Column(Integer, nullable=False, default=0)
    apply_once_per_customer = Column(Boolean, nullable=False, default=False)
    max_uses_per_customer = Column(Integer, nullable=True)
    only_for_staff = Column(Boolean, nullable=False, default=False)
    single_use = Column(Boolean, nullable=False, default=False)

    # Validity window
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Applicability for scope=specific_products
    applicable_product_ids = Column(JSON, nullable=True)
    applicable_collection_ids = Column(JSON, nullable=True)
    applicable_category_ids = Column(JSON, nullable=True)
    applicable_variant_ids = Column(JSON, nullable=True)

    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    voucher_codes = relationship(
        "VoucherCode",
        back_populates="discount",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    usages = relationship(
        "DiscountUsage",
        back_populates="discount",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_discounts_tenant_kind", "tenant_id", "kind"),
        Index("idx_discounts_tenant_active", "tenant_id", "is_active"),
        # NULL codes (sales without a code) do not collide
        UniqueConstraint("tenant_id", "code", name="uq_discounts_tenant_code"),
    )

    def status_at(self, now) -> str:
        """Derived display status: inactive, expired, scheduled or active."""
        if not self.is_active:
            return "inactive"
        ends_at = ensure_utc(self.ends_at)
        if ends_at and ends_at < now:
            return "expired"
        starts_at = ensure_utc(self.starts_at)
        if starts_at and starts_at > now:
            return "scheduled"
        return "active"

    @property
    def status(self) -> str:
        return self.status_at(utcnow())

    @property
    def remaining_uses(self):
        """Calculate remaining uses, or None if unlimited."""
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - (self.used_count or 0))

    @property
    def usage_limit_reached(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit
