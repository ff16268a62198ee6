# discount_service/core/exceptions.py
"""
Exceptions raised by the discount service.

Expected validation outcomes (bad code format, expired code, order below
minimum, ...) are returned as result objects and never raised. The classes
below cover the conditions a caller cannot recover from inside the same
request: storage failures and exhausted code generation.
"""

from typing import Optional


class DiscountServiceError(Exception):
    """Base error with structured information for the HTTP layer."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class StorageFailure(DiscountServiceError):
    """The persistent store rejected or failed an operation."""

    status_code = 503
    code = "STORAGE_FAILURE"


class GenerationExhausted(DiscountServiceError):
    """No unique code could be found within the attempt budget."""

    status_code = 409
    code = "GENERATION_EXHAUSTED"
