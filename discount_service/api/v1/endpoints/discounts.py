# discount_service/api/v1/endpoints/discounts.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from discount_service.api import deps
from discount_service.db.session import get_db
from discount_service.schemas.checkout import DiscountUsageResponse
from discount_service.schemas.discount import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkToggleRequest,
    BulkToggleResponse,
    CodeDeleteRequest,
    DiscountCreate,
    DiscountKind,
    DiscountResponse,
    DiscountStatus,
    DiscountType,
    DiscountUpdate,
    RejectionReason,
    ToggleStatusRequest,
    VoucherCodeCreate,
    VoucherCodeGenerate,
    VoucherCodeResponse,
)
from discount_service.services.discounts.discount_service import (
    discount_management_service as service,
)
from discount_service.services.discounts.results import MutationResult

router = APIRouter(prefix="/discounts", tags=["Discounts"])


def _unwrap(result: MutationResult):
    """Return the payload or turn a rejected mutation into an HTTP error."""
    if result.success:
        return result.data
    status_code = (
        status.HTTP_404_NOT_FOUND
        if result.reason == RejectionReason.NOT_FOUND
        else status.HTTP_400_BAD_REQUEST
    )
    raise HTTPException(
        status_code=status_code,
        detail={"code": result.reason.value, "message": result.error_message},
    )


@router.get("", response_model=List[DiscountResponse])
def list_discounts(
    search: Optional[str] = None,
    kind: Optional[DiscountKind] = None,
    type: Optional[DiscountType] = None,
    status: Optional[DiscountStatus] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    """
    List discounts for the current tenant, newest first.
    """
    return service.list_discounts(
        db,
        tenant_id,
        search=search,
        kind=kind.value if kind else None,
        discount_type=type.value if type else None,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=DiscountResponse, status_code=status.HTTP_201_CREATED)
def create_discount(
    discount_in: DiscountCreate,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    return _unwrap(service.create_discount(db, tenant_id, discount_in))


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_discounts(
    request: BulkDeleteRequest,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    deleted = service.delete_discounts(db, tenant_id, request.ids)
    return BulkDeleteResponse(deleted_count=len(deleted), deleted_ids=deleted)


@router.post("/bulk-toggle", response_model=BulkToggleResponse)
def bulk_toggle_discounts(
    request: BulkToggleRequest,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    updated = service.toggle_discounts(db, tenant_id, request.ids, request.is_active)
    return BulkToggleResponse(updated_count=len(updated), updated_ids=updated)


@router.get("/{discountId}", response_model=DiscountResponse)
def get_discount(
    discountId: str,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    discount = service.get_discount(db, tenant_id, discountId)
    if not discount:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Discount not found"
        )
    return discount


@router.patch("/{discountId}", response_model=DiscountResponse)
def update_discount(
    discountId: str,
    discount_in: DiscountUpdate,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    return _unwrap(service.update_discount(db, tenant_id, discountId, discount_in))


@router.delete("/{discountId}", status_code=status.HTTP_204_NO_CONTENT)
def delete_discount(
    discountId: str,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    if not service.delete_discount(db, tenant_id, discountId):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Discount not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{discountId}/toggle", response_model=DiscountResponse)
def toggle_discount(
    discountId: str,
    request: ToggleStatusRequest,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    return _unwrap(
        service.toggle_discount_status(db, tenant_id, discountId, request.is_active)
    )


@router.post(
    "/{discountId}/duplicate",
    response_model=DiscountResponse,
    status_code=status.HTTP_201_CREATED,
)
def duplicate_discount(
    discountId: str,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    """
    Copy a discount. The copy starts inactive with no validity window.
    """
    return _unwrap(service.duplicate_discount(db, tenant_id, discountId))


@router.get("/{discountId}/usages", response_model=List[DiscountUsageResponse])
def list_discount_usages(
    discountId: str,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    if not service.get_discount(db, tenant_id, discountId):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Discount not found"
        )
    return service.list_usages(db, tenant_id, discountId)


# ========================================
# Voucher codes
# ========================================

@router.get("/{discountId}/codes", response_model=List[VoucherCodeResponse])
def list_voucher_codes(
    discountId: str,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    return service.list_voucher_codes(db, tenant_id, discountId)


@router.post(
    "/{discountId}/codes",
    response_model=VoucherCodeResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_voucher_code(
    discountId: str,
    code_in: VoucherCodeCreate,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    return _unwrap(service.add_voucher_code(db, tenant_id, discountId, code_in))


@router.post(
    "/{discountId}/codes/generate",
    response_model=List[VoucherCodeResponse],
    status_code=status.HTTP_201_CREATED,
)
def generate_voucher_codes(
    discountId: str,
    request: VoucherCodeGenerate,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    return _unwrap(service.generate_voucher_codes(db, tenant_id, discountId, request))


@router.post("/{discountId}/codes/delete", response_model=BulkDeleteResponse)
def delete_voucher_codes(
    discountId: str,
    request: CodeDeleteRequest,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(deps.get_tenant_id),
):
    """
    Delete codes that have never been redeemed. Used codes are skipped.
    """
    deleted = service.delete_voucher_codes(db, tenant_id, request.ids)
    return BulkDeleteResponse(deleted_count=len(deleted), deleted_ids=deleted)
