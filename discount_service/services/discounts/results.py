# discount_service/services/discounts/results.py
from dataclasses import dataclass
from typing import Any, Optional

from discount_service.schemas.discount import RejectionReason


@dataclass
class CodeCheckResult:
    is_valid: bool
    code: Optional[str] = None
    reason: Optional[RejectionReason] = None
    error_message: Optional[str] = None


@dataclass
class MutationResult:
    """Outcome of a create/update/duplicate/code operation."""
    success: bool
    data: Any = None
    reason: Optional[RejectionReason] = None
    error_message: Optional[str] = None

    @classmethod
    def failed(cls, reason: RejectionReason, message: str) -> "MutationResult":
        return cls(success=False, reason=reason, error_message=message)


@dataclass
class RecordResult:
    """Outcome of recording a redemption."""
    success: bool
    usage: Any = None
    reason: Optional[RejectionReason] = None
    error_message: Optional[str] = None
