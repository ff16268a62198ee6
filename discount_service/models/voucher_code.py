# discount_service/models/voucher_code.py
from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import relationship
from discount_service.db.base_class import Base
from discount_service.utils.timeutils import utcnow
import uuid


class VoucherCode(Base):
    """A single redeemable code belonging to a voucher discount."""
    __tablename__ = "voucher_codes"

    id = Column(
        String, primary_key=True, default=lambda: f"vc_{uuid.uuid4().hex[:12]}"
    )
    tenant_id = Column(String, nullable=False, index=True)
    discount_id = Column(
        String,
        ForeignKey("discounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    used_count = Column(Integer, nullable=False, default=0)
    usage_limit = Column(Integer, nullable=True)  # NULL = unlimited
    is_manually_created = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    used_at = Column(DateTime(timezone=True), nullable=True)

    discount = relationship("Discount", back_populates="voucher_codes")

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_voucher_codes_tenant_code"),
        Index("idx_voucher_codes_discount_status", "discount_id", "status"),
    )

    @property
    def usage_limit_reached(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    @property
    def effective_status(self) -> str:
        """Stored status, reporting 'used' once a per-code limit is exhausted."""
        if self.status != "active":
            return self.status
        if self.usage_limit_reached:
            return "used"
        return "active"

    @property
    def can_delete(self) -> bool:
        return self.used_count == 0
