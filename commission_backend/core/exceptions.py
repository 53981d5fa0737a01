"""
Typed failures raised by the service layer.

Routes never translate these by hand: the handler registered in main.py turns
any CommerceError into a structured `{"success": false, "error": {...}}` body.
"""

from typing import Any, Dict, Optional

from fastapi import status


class ErrorCodes:
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    BELOW_MINIMUM_PAYOUT = "BELOW_MINIMUM_PAYOUT"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    PAYOUT_NOT_RECONCILABLE = "PAYOUT_NOT_RECONCILABLE"
    PAYMENT_MISMATCH = "PAYMENT_MISMATCH"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CommerceError(Exception):
    """Base application error with structured data."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCodes.INTERNAL_ERROR,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(CommerceError):
    def __init__(self, message: str, code: str = ErrorCodes.VALIDATION_ERROR, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code, status.HTTP_400_BAD_REQUEST, details)


class InsufficientBalanceError(ValidationError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCodes.INSUFFICIENT_BALANCE, details)


class NotFoundError(CommerceError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCodes.NOT_FOUND, status.HTTP_404_NOT_FOUND, details)


class AlreadyProcessedError(CommerceError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCodes.ALREADY_PROCESSED, status.HTTP_409_CONFLICT, details)


class PayoutReconciliationError(CommerceError):
    """Approved commissions cannot be combined, whole rows only, into the requested amount."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCodes.PAYOUT_NOT_RECONCILABLE, status.HTTP_409_CONFLICT, details)


class PermissionDeniedError(CommerceError):
    def __init__(self, message: str = "Operation not permitted."):
        super().__init__(message, ErrorCodes.FORBIDDEN, status.HTTP_403_FORBIDDEN)
