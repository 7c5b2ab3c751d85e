"""
Denial Intelligence Gateway.

Request/response contract for the denial-intelligence capability:
- triage(candidates) -> {"queue": [...], "clusters": [...]}
- assess(denial) -> {"successProbability", "supportingDocuments", ...}
- draft_appeal_letter(denial) -> letter text

Providers:
- remote: hosted serverless functions ``denial-triage``,
  ``denial-assessment`` and ``appeal-letter`` called over httpx
- local: deterministic heuristics and letter templates

Payloads use the camelCase keys of the hosted functions. Responses are
returned as received; callers decode them defensively.
"""

from collections import OrderedDict
from typing import Any, Mapping, Optional, Sequence
import logging

import httpx

from src.core.coercion import to_number, to_str, to_str_list
from src.core.denial_codes import (
    base_success_rate,
    categorize,
    denial_reason,
    estimate_recovery,
    normalize_code,
    root_cause_for,
)
from src.core.enums import DenialCategoryType, DenialIntelligenceProvider, TriagePriority
from src.gateways.base import BaseGateway, GatewayConfig, GatewayError

logger = logging.getLogger(__name__)


SUPPORTING_DOCUMENTS = [
    "Medical records",
    "Provider notes",
    "Insurance verification",
    "Prior authorization (if applicable)",
]

ESTIMATED_PROCESSING_TIME = "7-14 business days"

NEXT_BEST_ACTIONS = {
    "CO-11": "Correct diagnosis coding and appeal with clinical notes",
    "CO-16": "Link the prior authorization and resubmit",
    "CO-18": "Confirm duplicate status before resubmitting",
    "CO-22": "Update coordination of benefits and bill the primary payer",
    "CO-50": "Appeal with medical necessity documentation",
    "CO-1": "Bill patient for deductible balance",
    "CO-2": "Bill patient for coinsurance balance",
    "CO-3": "Bill patient for copay balance",
}

CLUSTER_LABELS = {
    DenialCategoryType.ADMINISTRATIVE: "Administrative / billing errors",
    DenialCategoryType.AUTHORIZATION: "Missing prior authorization",
    DenialCategoryType.CLINICAL: "Medical necessity / coding",
    DenialCategoryType.ELIGIBILITY: "Eligibility issues",
    DenialCategoryType.OTHER: "Other denials",
}

CLUSTER_FIXES = {
    DenialCategoryType.ADMINISTRATIVE: [
        "Run claim scrubbing before submission",
        "Check claim history for duplicates",
        "Verify coordination of benefits at intake",
    ],
    DenialCategoryType.AUTHORIZATION: [
        "Verify prior authorization requirements before service",
        "Link authorization numbers to claims at submission",
        "Set up automated authorization checks",
    ],
    DenialCategoryType.CLINICAL: [
        "Validate diagnosis codes before claim submission",
        "Verify diagnosis codes support procedure codes",
        "Attach clinical notes for high-cost procedures",
    ],
    DenialCategoryType.ELIGIBILITY: [
        "Verify eligibility before each visit",
        "Maintain accurate patient insurance records",
    ],
    DenialCategoryType.OTHER: [
        "Review payer-specific requirements",
        "Escalate for manual review",
    ],
}

LETTER_CLOSING = """Sincerely,
Billing Department"""


class DenialIntelligenceGateway(BaseGateway[DenialIntelligenceProvider]):
    """
    Gateway for denial triage, appeal assessment and letter drafting.

    Usage:
        gateway = DenialIntelligenceGateway(GatewayConfig(provider="local"))
        result = await gateway.triage([{"denialId": "d1", "denialCode": "CO-50", "amount": 120.5}])
        letter = await gateway.draft_appeal_letter({"claimId": "CLM-1", "denialCode": "CO-16"})
    """

    def __init__(self, config: GatewayConfig, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(config, http_client)

    @property
    def gateway_name(self) -> str:
        return "DenialIntelligence"

    def _parse_provider(self, provider_str: str) -> DenialIntelligenceProvider:
        try:
            return DenialIntelligenceProvider(provider_str.lower())
        except ValueError as e:
            raise GatewayError(f"Unknown denial intelligence provider: {provider_str}") from e

    @property
    def is_remote(self) -> bool:
        return self.provider == DenialIntelligenceProvider.REMOTE

    # =========================================================================
    # Public API
    # =========================================================================

    async def triage(self, candidates: Sequence[Mapping[str, Any]]) -> Any:
        """Prioritize and cluster a batch of denials in one call."""
        return await self._call("triage", self._triage(list(candidates)))

    async def assess(self, denial: Mapping[str, Any]) -> Any:
        """Estimate appeal success for one denial."""
        return await self._call("assess", self._assess(dict(denial)))

    async def draft_appeal_letter(self, denial: Mapping[str, Any]) -> str:
        """Draft the appeal letter text for one denial."""
        return await self._call("appeal letter", self._draft_appeal_letter(dict(denial)))

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _triage(self, candidates: list[Mapping[str, Any]]) -> Any:
        if self.is_remote:
            return await self._post_json("/denial-triage", {"denials": candidates})
        return local_triage(candidates)

    async def _assess(self, denial: dict[str, Any]) -> Any:
        if self.is_remote:
            return await self._post_json("/denial-assessment", {"denial": denial})
        return local_assessment(denial)

    async def _draft_appeal_letter(self, denial: dict[str, Any]) -> str:
        if not self.is_remote:
            return appeal_letter_template(denial)

        body = await self._post_json("/appeal-letter", {"denial": denial})
        if isinstance(body, Mapping):
            letter = body.get("letter") or body.get("appealText")
        else:
            letter = body
        if not isinstance(letter, str) or not letter.strip():
            raise GatewayError(
                "Appeal letter response did not include letter text",
                provider=self.provider.value,
            )
        return letter


# =============================================================================
# Local Provider
# =============================================================================


def _priority(recovery: float, probability: float) -> TriagePriority:
    if recovery >= 1000:
        return TriagePriority.CRITICAL
    if recovery >= 500 or probability >= 85:
        return TriagePriority.HIGH
    if recovery >= 100:
        return TriagePriority.MEDIUM
    return TriagePriority.LOW


def local_assessment(denial: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "successProbability": base_success_rate(to_str(denial.get("denialCode"))),
        "supportingDocuments": list(SUPPORTING_DOCUMENTS),
        "estimatedProcessingTime": ESTIMATED_PROCESSING_TIME,
    }


def local_triage(candidates: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """
    Rank denials by expected recovery and group them by denial category.

    The queue is ordered by estimated recovery, highest first; ties keep
    input order. Clusters are ordered by recoverable amount.
    """
    queue = []
    clusters: "OrderedDict[DenialCategoryType, dict[str, Any]]" = OrderedDict()

    for candidate in candidates:
        code = normalize_code(to_str(candidate.get("denialCode")))
        amount = to_number(candidate.get("amount"))
        probability = base_success_rate(code)
        recovery = round(estimate_recovery(amount, probability), 2)
        reason = to_str(candidate.get("denialReason")) or denial_reason(code)

        queue.append(
            {
                "denialId": to_str(candidate.get("denialId")),
                "claimId": to_str(candidate.get("claimId")),
                "priority": _priority(recovery, probability).value,
                "rationale": f"{code or 'Uncoded'} {reason}: ${amount:.2f} denied. {root_cause_for(code).primary}.",
                "predictedSuccessProbability": probability,
                "estimatedRecoveryAmount": recovery,
                "nextBestAction": NEXT_BEST_ACTIONS.get(code, "Review denial and gather documentation"),
            }
        )

        category = categorize(code).type
        cluster = clusters.setdefault(
            category,
            {
                "label": CLUSTER_LABELS[category],
                "count": 0,
                "denialCodes": [],
                "estimatedRecoverableAmount": 0.0,
                "topFixes": list(CLUSTER_FIXES[category]),
            },
        )
        cluster["count"] += 1
        cluster["estimatedRecoverableAmount"] = round(cluster["estimatedRecoverableAmount"] + recovery, 2)
        if code and code not in cluster["denialCodes"]:
            cluster["denialCodes"].append(code)

    queue.sort(key=lambda item: item["estimatedRecoveryAmount"], reverse=True)
    ordered_clusters = sorted(
        clusters.values(), key=lambda item: item["estimatedRecoverableAmount"], reverse=True
    )
    return {"queue": queue, "clusters": ordered_clusters}


def appeal_letter_template(denial: Mapping[str, Any]) -> str:
    """Fill the appeal letter template for the denial code."""
    claim_id = to_str(denial.get("claimId"))
    patient_name = to_str(denial.get("patientName")) or "Unknown"
    code = normalize_code(to_str(denial.get("denialCode")))
    opening = (
        "Dear Claims Department,\n\n"
        f"I am writing to appeal the denial of claim {claim_id} for {patient_name}."
    )

    if code == "CO-11":
        diagnosis_codes = to_str_list(denial.get("diagnosisCodes"))
        diagnosis = diagnosis_codes[0] if diagnosis_codes else "on file"
        body = (
            'The denial reason "Diagnosis Not Covered" appears to be incorrect based on the following:\n\n'
            f"1. The diagnosis code {diagnosis} is clearly covered under your policy guidelines\n"
            "2. The procedure performed is medically necessary for the patient's condition\n"
            "3. All required documentation was submitted with the original claim\n\n"
            "Please review this appeal and approve the claim for payment."
        )
    elif code == "CO-16":
        auth_number = to_str(denial.get("priorAuthNumber")) or "[AUTH-NUMBER]"
        body = (
            'The denial reason "Prior Authorization Required" is being appealed because:\n\n'
            "1. The procedure was performed under emergency conditions\n"
            "2. The authorization was obtained but not properly linked to the claim\n"
            f"3. The authorization number is: {auth_number}\n\n"
            "Please process this claim with the attached authorization documentation."
        )
    elif code == "CO-1":
        body = (
            'The denial reason "Deductible Amount" is being appealed because:\n\n'
            "1. The patient's deductible has been met for this calendar year\n"
            "2. The amount should be covered under the patient's insurance plan\n"
            "3. Please verify the patient's deductible status\n\n"
            "Please review and approve this claim."
        )
    else:
        reason = to_str(denial.get("denialReason")) or denial_reason(code)
        body = (
            f'The denial reason "{reason}" is being appealed based on the following:\n\n'
            "1. All required documentation was submitted\n"
            "2. The procedure is medically necessary\n"
            "3. The patient's insurance coverage is active\n\n"
            "Please review this appeal and approve the claim for payment."
        )

    return f"{opening}\n\n{body}\n\n{LETTER_CLOSING}"
