"""
Denial Domain Models.

Typed views over ``claim_denials``, ``claims`` / ``professional_claims`` and
``appeal_workflows`` rows, the triage batch contract, and the per-denial
analysis. Rows and capability responses are decoded with coerce-or-default
helpers so malformed fields never fail an operation.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Optional

from src.core.coercion import (
    first_present,
    to_date,
    to_datetime,
    to_mapping_list,
    to_number,
    to_optional_number,
    to_optional_str,
    to_str,
    to_str_list,
)
from src.core.enums import (
    ActionPriority,
    AppealStatus,
    AppealType,
    DenialCategoryType,
    DenialSeverity,
    TriagePriority,
)

# Display caps for triage and analysis views
QUEUE_DISPLAY_LIMIT = 10
CLUSTER_DISPLAY_LIMIT = 6
CLUSTER_CODE_DISPLAY_LIMIT = 4
CLUSTER_FIX_DISPLAY_LIMIT = 3
ACTION_DISPLAY_LIMIT = 8
DENIAL_LIST_DISPLAY_LIMIT = 50


# =============================================================================
# Rows
# =============================================================================


@dataclass
class DenialRecord:
    """One ``claim_denials`` row."""

    id: str
    claim_id: Optional[str]
    denial_code: str
    denial_reason: str
    denied_amount: float
    denial_date: Optional[date] = None
    company_id: Optional[str] = None
    urgency: Optional[str] = None
    appeal_status: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DenialRecord":
        return cls(
            id=to_str(row.get("id")),
            claim_id=to_optional_str(row.get("claim_id")),
            denial_code=to_str(first_present(row, ("denial_code", "denialCode"))).strip(),
            denial_reason=to_str(first_present(row, ("denial_reason", "denialReason"))),
            denied_amount=to_number(first_present(row, ("denied_amount", "amount"))),
            denial_date=to_date(first_present(row, ("denial_date", "created_at"))),
            company_id=to_optional_str(row.get("company_id")),
            urgency=to_optional_str(row.get("urgency")),
            appeal_status=to_optional_str(row.get("appeal_status")),
            raw=dict(row),
        )


@dataclass
class ClaimRecord:
    """A claim row from either ``claims`` or ``professional_claims``."""

    id: str
    source_table: str
    claim_number: Optional[str] = None
    patient_name: Optional[str] = None
    payer_name: Optional[str] = None
    procedure_codes: list[str] = field(default_factory=list)
    diagnosis_codes: list[str] = field(default_factory=list)
    prior_auth_number: Optional[str] = None
    service_date_from: Optional[date] = None
    status: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], source_table: str) -> "ClaimRecord":
        return cls(
            id=to_str(row.get("id")),
            source_table=source_table,
            claim_number=to_optional_str(first_present(row, ("claim_number", "claimNumber"))),
            patient_name=to_optional_str(first_present(row, ("patient_name", "patientName"))),
            payer_name=to_optional_str(first_present(row, ("payer_name", "payer", "insurance_provider"))),
            procedure_codes=to_str_list(first_present(row, ("procedure_codes", "cpt_codes"))),
            diagnosis_codes=to_str_list(first_present(row, ("diagnosis_codes", "icd_codes"))),
            prior_auth_number=to_optional_str(row.get("prior_auth_number")),
            service_date_from=to_date(row.get("service_date_from")),
            status=to_optional_str(row.get("status")),
            raw=dict(row),
        )


@dataclass
class DenialClaimPair:
    """A denial with its resolved claim, if any."""

    denial: DenialRecord
    claim: Optional[ClaimRecord] = None

    @property
    def claim_ref(self) -> str:
        """Claim id used for analysis: the denial's own, else the resolved claim's."""
        return self.denial.claim_id or (self.claim.id if self.claim else "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "denial": _public(self.denial),
            "claim": _public(self.claim) if self.claim else None,
        }


@dataclass
class DenialTotals:
    total_denials: int
    total_denied_amount: float


# =============================================================================
# Triage
# =============================================================================


@dataclass
class TriageCandidate:
    """One denial flattened for the triage capability."""

    denial_id: str
    claim_id: str
    denial_code: str
    denial_reason: str
    amount: float
    payer_name: str
    procedure_codes: list[str]
    diagnosis_codes: list[str]
    denial_date: Optional[str]

    @classmethod
    def from_pair(cls, pair: DenialClaimPair) -> "TriageCandidate":
        denial, claim = pair.denial, pair.claim
        raw_date = first_present(denial.raw, ("denial_date", "created_at"))
        return cls(
            denial_id=denial.id,
            claim_id=denial.claim_id or (claim.id if claim else ""),
            denial_code=denial.denial_code,
            denial_reason=denial.denial_reason,
            amount=denial.denied_amount,
            payer_name=(claim.payer_name if claim else None) or "",
            procedure_codes=list(claim.procedure_codes) if claim else [],
            diagnosis_codes=list(claim.diagnosis_codes) if claim else [],
            denial_date=to_str(raw_date) if raw_date is not None else None,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "denialId": self.denial_id,
            "claimId": self.claim_id,
            "denialCode": self.denial_code,
            "denialReason": self.denial_reason,
            "amount": self.amount,
            "payerName": self.payer_name,
            "procedureCodes": self.procedure_codes,
            "diagnosisCodes": self.diagnosis_codes,
            "denialDate": self.denial_date,
        }


def _priority(value: Any) -> TriagePriority:
    try:
        return TriagePriority(to_str(value).strip().lower())
    except ValueError:
        return TriagePriority.LOW


@dataclass
class TriageQueueItem:
    denial_id: str
    claim_id: str
    priority: TriagePriority
    rationale: str
    predicted_success_probability: Optional[float] = None
    estimated_recovery_amount: Optional[float] = None
    next_best_action: Optional[str] = None

    @classmethod
    def from_payload(cls, item: Mapping[str, Any]) -> "TriageQueueItem":
        return cls(
            denial_id=to_str(first_present(item, ("denialId", "denial_id"))),
            claim_id=to_str(first_present(item, ("claimId", "claim_id"))),
            priority=_priority(item.get("priority")),
            rationale=to_str(item.get("rationale")),
            predicted_success_probability=to_optional_number(
                first_present(item, ("predictedSuccessProbability", "predicted_success_probability"))
            ),
            estimated_recovery_amount=to_optional_number(
                first_present(item, ("estimatedRecoveryAmount", "estimated_recovery_amount"))
            ),
            next_best_action=to_optional_str(first_present(item, ("nextBestAction", "next_best_action"))),
        )


@dataclass
class TriageCluster:
    label: str
    count: int
    denial_codes: list[str]
    estimated_recoverable_amount: float
    top_fixes: list[str]

    @classmethod
    def from_payload(cls, item: Mapping[str, Any]) -> "TriageCluster":
        return cls(
            label=to_str(item.get("label")) or "Cluster",
            count=int(to_number(item.get("count"))),
            denial_codes=to_str_list(first_present(item, ("denialCodes", "denial_codes"))),
            estimated_recoverable_amount=to_number(
                first_present(item, ("estimatedRecoverableAmount", "estimated_recoverable_amount"))
            ),
            top_fixes=to_str_list(first_present(item, ("topFixes", "top_fixes"))),
        )

    def display(self) -> "TriageCluster":
        return TriageCluster(
            label=self.label,
            count=self.count,
            denial_codes=self.denial_codes[:CLUSTER_CODE_DISPLAY_LIMIT],
            estimated_recoverable_amount=self.estimated_recoverable_amount,
            top_fixes=self.top_fixes[:CLUSTER_FIX_DISPLAY_LIMIT],
        )


@dataclass
class TriageResult:
    """Triage output; never persisted."""

    queue: list[TriageQueueItem] = field(default_factory=list)
    clusters: list[TriageCluster] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "TriageResult":
        """Decode a capability response; missing or ill-typed parts become empty."""
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            queue=[TriageQueueItem.from_payload(item) for item in to_mapping_list(payload.get("queue"))],
            clusters=[TriageCluster.from_payload(item) for item in to_mapping_list(payload.get("clusters"))],
        )

    def display(self) -> "TriageResult":
        """The truncated view shown to operators."""
        return TriageResult(
            queue=self.queue[:QUEUE_DISPLAY_LIMIT],
            clusters=[cluster.display() for cluster in self.clusters[:CLUSTER_DISPLAY_LIMIT]],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Analysis
# =============================================================================


@dataclass
class RootCause:
    primary: str
    secondary: list[str]
    confidence: str  # high | medium | low
    evidence: list[str]


@dataclass
class DenialCategory:
    type: DenialCategoryType
    subcategory: str
    severity: DenialSeverity


@dataclass
class Appealability:
    can_appeal: bool
    appeal_type: AppealType
    success_probability: float  # 0-100
    recommended_appeal_strategy: str
    required_documents: list[str]
    deadline: Optional[datetime] = None


@dataclass
class RecommendedAction:
    action: str
    priority: ActionPriority
    description: str
    estimated_time: str
    automated: bool


@dataclass
class SimilarDenial:
    claim_id: Optional[str]
    denial_code: str
    resolution: str
    outcome: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class DenialAnalysis:
    """Per-denial analysis; never persisted."""

    denial_id: str
    claim_id: str
    root_cause: RootCause
    category: DenialCategory
    appealability: Appealability
    recommended_actions: list[RecommendedAction]
    similar_denials: list[SimilarDenial]
    prevention_strategies: list[str]
    estimated_recovery_amount: float
    estimated_recovery_probability: float

    def display_actions(self) -> list[RecommendedAction]:
        return self.recommended_actions[:ACTION_DISPLAY_LIMIT]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AppealWorkflow:
    """An ``appeal_workflows`` row."""

    denial_id: str
    claim_id: str
    appeal_type: AppealType
    status: AppealStatus
    appeal_letter: str
    supporting_documents: list[str] = field(default_factory=list)
    id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AppealWorkflow":
        try:
            appeal_type = AppealType(to_str(row.get("appeal_type")))
        except ValueError:
            appeal_type = AppealType.STANDARD
        try:
            status = AppealStatus(to_str(row.get("status")))
        except ValueError:
            status = AppealStatus.DRAFT
        return cls(
            id=to_optional_str(row.get("id")),
            denial_id=to_str(row.get("denial_id")),
            claim_id=to_str(row.get("claim_id")),
            appeal_type=appeal_type,
            status=status,
            appeal_letter=to_str(row.get("appeal_letter")),
            supporting_documents=to_str_list(row.get("supporting_documents")),
            created_by=to_optional_str(row.get("created_by")),
            created_at=to_datetime(row.get("created_at")),
            submitted_at=to_datetime(row.get("submitted_at")),
            updated_at=to_datetime(row.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DenialCodeCount:
    code: str
    reason: str
    count: int
    rate: float


@dataclass
class DenialTrends:
    total_denials: int
    denial_rate: float
    top_denial_codes: list[DenialCodeCount]
    appeal_success_rate: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _public(record: Any) -> dict[str, Any]:
    data = asdict(record)
    data.pop("raw", None)
    return data
