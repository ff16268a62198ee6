# discount_service/services/discounts/code_validator.py
import re
from typing import Optional

from sqlalchemy.orm import Session

from discount_service.crud import discount as discount_crud
from discount_service.crud import voucher_code as voucher_code_crud
from discount_service.schemas.discount import RejectionReason
from discount_service.services.discounts.results import CodeCheckResult

# Discount-level codes typed by merchants
STRICT_CODE_MIN_LENGTH = 3
STRICT_CODE_MAX_LENGTH = 20
STRICT_CODE_PATTERN = re.compile(
    rf"^[A-Z0-9_-]{{{STRICT_CODE_MIN_LENGTH},{STRICT_CODE_MAX_LENGTH}}}$"
)
# Voucher codes, including generated PREFIX-XXXXXXXX codes
LOOSE_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{1,50}$")

STRICT_FORMAT_MESSAGE = (
    "Code must be 3-20 characters, uppercase letters, numbers, hyphens, "
    "and underscores only"
)
LOOSE_FORMAT_MESSAGE = (
    "Code must be 1-50 characters, uppercase letters, numbers, hyphens, "
    "and underscores only"
)


def normalize_code(raw: Optional[str]) -> str:
    return (raw or "").strip().upper()


def validate_code_format(raw: Optional[str], strict: bool = True) -> CodeCheckResult:
    code = normalize_code(raw)
    pattern = STRICT_CODE_PATTERN if strict else LOOSE_CODE_PATTERN
    if not pattern.match(code):
        return CodeCheckResult(
            is_valid=False,
            code=code,
            reason=RejectionReason.INVALID_FORMAT,
            error_message=STRICT_FORMAT_MESSAGE if strict else LOOSE_FORMAT_MESSAGE,
        )
    return CodeCheckResult(is_valid=True, code=code)


def is_code_taken(
    db: Session,
    tenant_id: str,
    code: str,
    exclude_discount_id: Optional[str] = None,
    exclude_voucher_code_id: Optional[str] = None,
) -> bool:
    """True if any discount or voucher code of the tenant already uses ``code``."""
    if discount_crud.get_by_code(
        db, tenant_id=tenant_id, code=code, exclude_id=exclude_discount_id
    ):
        return True
    if voucher_code_crud.get_by_code(
        db, tenant_id=tenant_id, code=code, exclude_id=exclude_voucher_code_id
    ):
        return True
    return False


def check_code_available(
    db: Session,
    tenant_id: str,
    raw: Optional[str],
    strict: bool = True,
    exclude_discount_id: Optional[str] = None,
    exclude_voucher_code_id: Optional[str] = None,
) -> CodeCheckResult:
    """Format check followed by tenant-wide uniqueness. Writes nothing."""
    result = validate_code_format(raw, strict=strict)
    if not result.is_valid:
        return result

    if is_code_taken(
        db,
        tenant_id,
        result.code,
        exclude_discount_id=exclude_discount_id,
        exclude_voucher_code_id=exclude_voucher_code_id,
    ):
        return CodeCheckResult(
            is_valid=False,
            code=result.code,
            reason=RejectionReason.DUPLICATE_CODE,
            error_message="A code with this value already exists",
        )
    return result
