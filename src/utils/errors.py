"""
HTTP Errors
Maps billing core exceptions onto HTTP responses
Source: https://fastapi.tiangolo.com/tutorial/handling-errors/
"""

from fastapi import HTTPException, status

from src.core.exceptions import (
    BillingCoreError,
    InputValidationError,
    RecordNotFoundError,
    TransactionStateError,
    TriageError,
)
from src.db.store import StoreError
from src.gateways.base import GatewayError
from src.services.edi.x12_base import X12ParseError


class NotFoundError(HTTPException):
    """Raised when resource not found"""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class ValidationError(HTTPException):
    """Raised when validation fails"""

    def __init__(self, detail: str = "Validation error"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
        )


class ConflictError(HTTPException):
    """Raised when resource conflict occurs"""

    def __init__(self, detail: str = "Resource conflict"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


class UpstreamError(HTTPException):
    """Raised when the data store or an external capability fails"""

    def __init__(self, detail: str = "Upstream service error", status_code: int = status.HTTP_502_BAD_GATEWAY):
        super().__init__(
            status_code=status_code,
            detail=detail,
        )


def http_error_for(exc: Exception) -> HTTPException:
    """Translate a core, store or gateway exception into an HTTP error."""
    if isinstance(exc, RecordNotFoundError):
        return NotFoundError(exc.message)
    if isinstance(exc, InputValidationError):
        return ValidationError(exc.message)
    if isinstance(exc, TransactionStateError):
        return ConflictError(exc.message)
    if isinstance(exc, TriageError):
        return UpstreamError(exc.message)
    if isinstance(exc, (StoreError, GatewayError, X12ParseError)):
        return UpstreamError(str(exc) or "Upstream service error")
    if isinstance(exc, BillingCoreError):
        return UpstreamError(exc.message, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return UpstreamError("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
