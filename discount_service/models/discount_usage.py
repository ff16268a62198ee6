# discount_service/models/discount_usage.py
from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, func
from sqlalchemy.orm import relationship
from discount_service.db.base_class import Base
from discount_service.utils.timeutils import utcnow
import uuid


class DiscountUsage(Base):
    """Append-only ledger entry: one row per redemption."""
    __tablename__ = "discount_usages"

    id = Column(
        String, primary_key=True, default=lambda: f"du_{uuid.uuid4().hex[:12]}"
    )
    tenant_id = Column(String, nullable=False, index=True)
    discount_id = Column(
        String,
        ForeignKey("discounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    voucher_code_id = Column(
        String,
        ForeignKey("voucher_codes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    customer_id = Column(String, nullable=True, index=True)
    order_id = Column(String, nullable=True, index=True)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    used_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    discount = relationship("Discount", back_populates="usages")
    voucher_code = relationship("VoucherCode", foreign_keys=[voucher_code_id])
