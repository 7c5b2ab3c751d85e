"""
EDI Domain Models.

Request/response shapes for eligibility (270/271), claim status (276/277),
claim submission (837/999) and remittance (835), plus the outbound
``EDITransaction`` with its one-way status lifecycle.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from src.core.enums import (
    ClaimStatus,
    EDITransactionStatus,
    EDITransactionType,
    EligibilityStatus,
)
from src.core.exceptions import TransactionStateError


# =============================================================================
# Eligibility
# =============================================================================


@dataclass
class EligibilityRequest:
    """Eligibility lookup request."""

    patient_id: str
    subscriber_id: str
    payer_id: str
    service_date: date
    service_codes: list[str] = field(default_factory=list)
    diagnosis_codes: list[str] = field(default_factory=list)


@dataclass
class CoverageSummary:
    copay: float = 0.0
    deductible: float = 0.0
    coinsurance: float = 0.0
    out_of_pocket_max: float = 0.0


@dataclass
class Benefit:
    service_type: str
    coverage_level: str
    limitations: list[str] = field(default_factory=list)


@dataclass
class EligibilityResponse:
    """
    Eligibility result.

    ``status`` distinguishes an explicit ineligible record from the absence
    of any record (``UNKNOWN``); ``is_eligible`` is False for both.
    """

    is_eligible: bool
    coverage: CoverageSummary
    benefits: list[Benefit]
    effective_date: date
    termination_date: Optional[date] = None
    status: EligibilityStatus = EligibilityStatus.UNKNOWN
    verification_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.termination_date and self.termination_date < self.effective_date:
            raise ValueError("termination_date must not precede effective_date")

    @classmethod
    def unknown(cls, service_date: date) -> "EligibilityResponse":
        """Response for a lookup that found no verification record."""
        return cls(
            is_eligible=False,
            coverage=CoverageSummary(),
            benefits=[],
            effective_date=service_date,
            status=EligibilityStatus.UNKNOWN,
        )


# =============================================================================
# Claim Status
# =============================================================================


@dataclass
class ClaimStatusRequest:
    claim_id: str
    patient_id: str
    payer_id: str
    service_date: date
    payer_name: str = ""
    patient_first_name: str = ""
    patient_last_name: str = ""
    claim_amount: float = 0.0


@dataclass
class ClaimStatusResponse:
    claim_id: str
    status: ClaimStatus
    status_date: Optional[date]
    amount_paid: Optional[float] = None
    denial_reason: Optional[str] = None
    remittance_advice: Optional[str] = None
    status_code: str = ""


# =============================================================================
# Remittance
# =============================================================================


@dataclass
class RemittanceAdjustment:
    code: str
    amount: float
    reason: str
    claim_id: str = ""


@dataclass
class RemittanceClaim:
    claim_id: str
    status_code: str
    charge_amount: float
    paid_amount: float
    patient_responsibility: float
    adjustments: list[RemittanceAdjustment] = field(default_factory=list)


@dataclass
class RemittanceAdvice:
    """Parsed 835. ``claim_id`` is the first claim in the remittance."""

    claim_id: str
    total_paid: float
    adjustments: list[RemittanceAdjustment]
    patient_responsibility: float
    payment_date: Optional[date]
    check_number: Optional[str] = None
    payer_name: str = ""
    claims: list[RemittanceClaim] = field(default_factory=list)


# =============================================================================
# Acknowledgment
# =============================================================================


@dataclass
class FunctionalAcknowledgment:
    """Parsed 999. ``code`` is AK901 (A, E, P or R)."""

    code: str
    accepted: bool
    acknowledged_control_number: str = ""
    errors: list[str] = field(default_factory=list)


# =============================================================================
# Transaction
# =============================================================================


_ALLOWED_TRANSITIONS: dict[EDITransactionStatus, set[EDITransactionStatus]] = {
    EDITransactionStatus.PENDING: {EDITransactionStatus.SENT, EDITransactionStatus.REJECTED},
    EDITransactionStatus.SENT: {EDITransactionStatus.ACKNOWLEDGED, EDITransactionStatus.REJECTED},
    EDITransactionStatus.ACKNOWLEDGED: {EDITransactionStatus.PROCESSED, EDITransactionStatus.REJECTED},
    EDITransactionStatus.PROCESSED: set(),
    EDITransactionStatus.REJECTED: set(),
}


@dataclass
class EDITransaction:
    """Outbound EDI transaction. Immutable once processed or rejected."""

    id: str
    transaction_type: EDITransactionType
    payload: str
    status: EDITransactionStatus = EDITransactionStatus.PENDING
    response: Optional[Any] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error_message: Optional[str] = None
    control_number: str = ""
    claim_id: Optional[str] = None
    acknowledgment_code: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return not _ALLOWED_TRANSITIONS[self.status]

    def advance(
        self,
        status: EDITransactionStatus,
        *,
        response: Optional[Any] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Move to ``status``; raises ``TransactionStateError`` on an illegal step."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise TransactionStateError(
                f"Cannot move transaction {self.id} from {self.status.value} to {status.value}",
                {"transaction_id": self.id},
            )
        self.status = status
        if response is not None:
            self.response = response
        if error_message is not None:
            self.error_message = error_message
        self.updated_at = datetime.now(timezone.utc)
