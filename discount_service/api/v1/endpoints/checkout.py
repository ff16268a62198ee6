# discount_service/api/v1/endpoints/checkout.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from discount_service.api import deps
from discount_service.db.session import get_db
from discount_service.schemas.checkout import (
    DiscountUsageCreate,
    DiscountUsageResponse,
    DiscountValidation,
    RedeemRequest,
    RedemptionResponse,
    RedemptionValidationRequest,
    SaleLookupRequest,
    SaleLookupResponse,
)
from discount_service.services.discounts.discount_service import (
    discount_management_service as service,
)

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("/validate", response_model=DiscountValidation)
def validate_code(
    request: RedemptionValidationRequest,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    """
    Check a code against an order. Rejections come back with
    `is_valid: false` and a reason, not as an HTTP error.
    """
    return service.validate_code(
        db,
        tenant_id,
        request.code,
        request.order_total,
        item_count=request.item_count,
        customer_id=request.customer_id,
    )


@router.post("/redeem", response_model=RedemptionResponse)
def redeem_code(
    request: RedeemRequest,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    validation, usage = service.redeem(
        db,
        tenant_id,
        request.code,
        request.order_id,
        request.order_total,
        item_count=request.item_count,
        customer_id=request.customer_id,
    )
    return RedemptionResponse(validation=validation, usage=usage)


@router.post(
    "/usages",
    response_model=DiscountUsageResponse,
    status_code=status.HTTP_201_CREATED,
)
def record_usage(
    usage_in: DiscountUsageCreate,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    """
    Record a redemption that was validated earlier in the checkout.
    """
    result = service.record_usage(
        db,
        tenant_id,
        usage_in.discount_id,
        usage_in.order_id,
        usage_in.discount_amount,
        voucher_code_id=usage_in.voucher_code_id,
        customer_id=usage_in.customer_id,
    )
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": result.reason.value, "message": result.error_message},
        )
    return result.usage


@router.post("/sales", response_model=SaleLookupResponse)
def lookup_sales(
    request: SaleLookupRequest,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    """
    Automatic sales for the products in a cart. Products without a running
    sale are left out of the response.
    """
    return SaleLookupResponse(
        sales=service.get_applicable_sales(db, tenant_id, request.items)
    )
