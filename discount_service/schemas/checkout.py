# discount_service/schemas/checkout.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from discount_service.schemas.discount import DiscountType, RejectionReason


class RedemptionValidationRequest(BaseModel):
    """Checkout-time check of a code against an order."""
    code: str = Field(..., min_length=1, max_length=50)
    order_total: Decimal = Field(..., ge=0)
    item_count: Optional[int] = Field(default=None, ge=0)
    customer_id: Optional[str] = None


class RedeemRequest(RedemptionValidationRequest):
    """Validate a code and record its usage against an order."""
    order_id: str


class DiscountUsageCreate(BaseModel):
    discount_id: str
    order_id: str
    discount_amount: Decimal = Field(..., ge=0)
    voucher_code_id: Optional[str] = None
    customer_id: Optional[str] = None


class DiscountValidation(BaseModel):
    """Result of redemption validation."""
    is_valid: bool
    reason: Optional[RejectionReason] = None
    error_message: Optional[str] = None
    discount_id: Optional[str] = None
    voucher_code_id: Optional[str] = None
    code: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    discount_amount: Decimal = Decimal("0")


class DiscountUsageResponse(BaseModel):
    id: str
    tenant_id: str
    discount_id: str
    voucher_code_id: Optional[str] = None
    customer_id: Optional[str] = None
    order_id: Optional[str] = None
    discount_amount: Decimal
    used_at: datetime

    model_config = {"from_attributes": True}


class RedemptionResponse(BaseModel):
    validation: DiscountValidation
    usage: Optional[DiscountUsageResponse] = None


# ============================================
# Automatic sales
# ============================================

class SaleLookupItem(BaseModel):
    """A product in the cart, with the groupings sales can target."""
    product_id: str
    variant_id: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    category_ids: List[str] = []
    collection_ids: List[str] = []


class SaleLookupRequest(BaseModel):
    items: List[SaleLookupItem] = Field(..., min_length=1)


class ApplicableSale(BaseModel):
    """Best running sale for one product."""
    product_id: str
    sale_id: str
    discount_type: DiscountType
    discount_value: Decimal
    original_price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None


class SaleLookupResponse(BaseModel):
    sales: List[ApplicableSale]
