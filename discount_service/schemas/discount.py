# discount_service/schemas/discount.py
import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# ============================================
# Enums
# ============================================

class DiscountKind(str, Enum):
    SALE = "sale"
    VOUCHER = "voucher"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"
    BUY_X_GET_Y = "buy_x_get_y"


class DiscountScope(str, Enum):
    ENTIRE_ORDER = "entire_order"
    SPECIFIC_PRODUCTS = "specific_products"


class DiscountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    SCHEDULED = "scheduled"


class VoucherCodeStatus(str, Enum):
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"
    DEACTIVATED = "deactivated"


class RejectionReason(str, Enum):
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_VALUE = "INVALID_VALUE"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    DUPLICATE_CODE = "DUPLICATE_CODE"
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    NOT_YET_ACTIVE = "NOT_YET_ACTIVE"
    EXPIRED = "EXPIRED"
    LIMIT_REACHED = "LIMIT_REACHED"
    CODE_LIMIT_REACHED = "CODE_LIMIT_REACHED"
    ALREADY_USED = "ALREADY_USED"
    ALREADY_USED_BY_CUSTOMER = "ALREADY_USED_BY_CUSTOMER"
    BELOW_MINIMUM = "BELOW_MINIMUM"
    BELOW_MINIMUM_QUANTITY = "BELOW_MINIMUM_QUANTITY"


_PREFIX_PATTERN = re.compile(r"^[A-Z0-9_-]*$")


def _normalize_optional_code(v):
    if v is None:
        return v
    v = v.strip().upper()
    return v or None


# ============================================
# Discount Schemas
# ============================================

class DiscountCreate(BaseModel):
    """Schema for creating a sale or voucher discount."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    code: Optional[str] = Field(default=None, max_length=50)
    kind: DiscountKind = DiscountKind.VOUCHER
    type: DiscountType = DiscountType.PERCENTAGE
    value: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    scope: DiscountScope = DiscountScope.ENTIRE_ORDER
    apply_once_per_order: bool = False
    min_order_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    min_quantity: Optional[int] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    apply_once_per_customer: bool = False
    max_uses_per_customer: Optional[int] = Field(default=None, ge=1)
    only_for_staff: bool = False
    single_use: bool = False
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool = True
    applicable_product_ids: Optional[List[str]] = None
    applicable_collection_ids: Optional[List[str]] = None
    applicable_category_ids: Optional[List[str]] = None
    applicable_variant_ids: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        return _normalize_optional_code(v)


class DiscountUpdate(BaseModel):
    """Schema for updating a discount. Only fields that are set get applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    code: Optional[str] = Field(default=None, max_length=50)
    type: Optional[DiscountType] = None
    value: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    scope: Optional[DiscountScope] = None
    apply_once_per_order: Optional[bool] = None
    min_order_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    min_quantity: Optional[int] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    apply_once_per_customer: Optional[bool] = None
    max_uses_per_customer: Optional[int] = Field(default=None, ge=1)
    only_for_staff: Optional[bool] = None
    single_use: Optional[bool] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    applicable_product_ids: Optional[List[str]] = None
    applicable_collection_ids: Optional[List[str]] = None
    applicable_category_ids: Optional[List[str]] = None
    applicable_variant_ids: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        return _normalize_optional_code(v)


class DiscountResponse(BaseModel):
    """Schema for discount response."""
    id: str
    tenant_id: str
    code: Optional[str] = None
    name: str
    description: Optional[str] = None
    kind: DiscountKind
    type: DiscountType
    value: Decimal
    scope: DiscountScope
    apply_once_per_order: bool
    min_order_amount: Optional[Decimal] = None
    min_quantity: Optional[int] = None
    usage_limit: Optional[int] = None
    used_count: int
    remaining_uses: Optional[int] = None
    apply_once_per_customer: bool
    max_uses_per_customer: Optional[int] = None
    only_for_staff: bool
    single_use: bool
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool
    status: DiscountStatus
    applicable_product_ids: Optional[List[str]] = None
    applicable_collection_ids: Optional[List[str]] = None
    applicable_category_ids: Optional[List[str]] = None
    applicable_variant_ids: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="extra_metadata")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted_count: int
    deleted_ids: List[str]


class ToggleStatusRequest(BaseModel):
    is_active: bool


class BulkToggleRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    is_active: bool


class BulkToggleResponse(BaseModel):
    updated_count: int
    updated_ids: List[str]


# ============================================
# Voucher Code Schemas
# ============================================

class VoucherCodeCreate(BaseModel):
    """Manually add a single code to a voucher."""
    code: str = Field(..., min_length=1, max_length=50)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    is_manually_created: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        return v.strip().upper()


class VoucherCodeGenerate(BaseModel):
    """Generate a batch of random codes for a voucher."""
    quantity: int = Field(..., ge=1)  # upper bound is MAX_GENERATED_CODES
    prefix: Optional[str] = Field(default=None, max_length=20)
    usage_limit: Optional[int] = Field(default=None, ge=1)

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v):
        v = _normalize_optional_code(v)
        if v is not None and not _PREFIX_PATTERN.match(v):
            raise ValueError("Prefix may only contain letters, numbers, hyphens and underscores")
        return v


class VoucherCodeResponse(BaseModel):
    id: str
    tenant_id: str
    discount_id: str
    code: str
    status: VoucherCodeStatus
    effective_status: VoucherCodeStatus
    used_count: int
    usage_limit: Optional[int] = None
    is_manually_created: bool
    created_at: datetime
    used_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CodeDeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)
