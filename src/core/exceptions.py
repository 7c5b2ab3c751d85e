"""
Domain exceptions for the billing core.

Services raise these; the API layer maps them onto HTTP responses. Transport
failures surface as ``StoreError`` (src.db.store) or ``GatewayError``
(src.gateways.base) and are never wrapped here.
"""

from typing import Any, Optional


class BillingCoreError(Exception):
    """Base class for billing core errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InputValidationError(BillingCoreError):
    """Caller supplied missing or malformed input. Raised before any I/O."""

    pass


class ReportDefinitionError(InputValidationError):
    """A report definition cannot be executed as written."""

    pass


class ExportFormatError(InputValidationError):
    """Requested export format is not supported."""

    pass


class RecordNotFoundError(BillingCoreError):
    """A referenced row does not exist."""

    def __init__(self, entity: str, record_id: str):
        super().__init__(f"{entity} not found: {record_id}", {"entity": entity, "id": record_id})
        self.entity = entity
        self.record_id = record_id


class TransactionStateError(BillingCoreError):
    """Illegal state transition for an EDI transaction or appeal."""

    pass


class TriageError(BillingCoreError):
    """The triage batch failed as a whole."""

    pass
