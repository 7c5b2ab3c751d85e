"""
Claim adjustment reason code (CARC) reference data.

Shared by the denial management service and the local denial-intelligence
provider. Codes are keyed in the ``GROUP-REASON`` form used on denial rows,
e.g. ``CO-16``.
"""

from dataclasses import dataclass
from typing import Optional

from src.core.enums import DenialCategoryType, DenialSeverity


@dataclass(frozen=True)
class RootCauseEntry:
    primary: str
    secondary: tuple[str, ...]


@dataclass(frozen=True)
class CategoryEntry:
    type: DenialCategoryType
    subcategory: str
    severity: DenialSeverity


DENIAL_REASONS: dict[str, str] = {
    "CO-1": "Deductible Amount",
    "CO-2": "Coinsurance Amount",
    "CO-3": "Co-payment Amount",
    "CO-11": "Diagnosis Not Covered",
    "CO-16": "Prior Authorization Required",
    "CO-18": "Duplicate Claim",
    "CO-22": "Coordination of Benefits",
    "CO-50": "Non-covered Services",
}

ROOT_CAUSES: dict[str, RootCauseEntry] = {
    "CO-1": RootCauseEntry(
        "Deductible not met or incorrectly calculated",
        ("Patient eligibility issue", "Benefit verification error"),
    ),
    "CO-11": RootCauseEntry(
        "Diagnosis code not covered or invalid",
        ("Missing primary diagnosis", "Incorrect diagnosis code"),
    ),
    "CO-16": RootCauseEntry(
        "Prior authorization missing or expired",
        ("Authorization not linked to claim", "Authorization number incorrect"),
    ),
    "CO-18": RootCauseEntry(
        "Duplicate claim submitted",
        ("Same claim submitted multiple times", "Overlapping service dates"),
    ),
    "CO-22": RootCauseEntry(
        "Coordination of benefits issue",
        ("Primary/secondary insurance confusion", "Other insurance coverage"),
    ),
    "CO-50": RootCauseEntry(
        "Medical necessity not established",
        ("Insufficient clinical documentation", "Procedure not medically necessary"),
    ),
}

UNKNOWN_ROOT_CAUSE = RootCauseEntry("Unknown root cause - requires manual review", ())

APPEAL_STRATEGIES: dict[str, str] = {
    "CO-11": "Appeal by providing additional clinical documentation demonstrating medical necessity and correct diagnosis coding.",
    "CO-16": "Appeal by providing prior authorization number and documentation showing authorization was obtained before service.",
    "CO-18": "Verify if this is truly a duplicate. If not, provide evidence of different service dates or procedures.",
    "CO-22": "Appeal by providing coordination of benefits information and proof of primary insurance exhaustion.",
    "CO-50": "Appeal by providing comprehensive medical necessity documentation, clinical notes, and treatment plan.",
}

DEFAULT_APPEAL_STRATEGY = "Review denial reason and provide appropriate documentation to support appeal."

# Patient responsibility
NON_APPEALABLE_CODES = frozenset({"CO-1", "CO-2", "CO-3"})

ADMINISTRATIVE_CODES = frozenset({"CO-1", "CO-2", "CO-3", "CO-18", "CO-22"})
CLINICAL_CODES = frozenset({"CO-11", "CO-50"})

# Historical appeal success rates, percent
APPEAL_SUCCESS_RATES: dict[str, float] = {
    "CO-11": 75.0,
    "CO-16": 85.0,
    "CO-1": 90.0,
    "CO-2": 80.0,
    "CO-3": 70.0,
}
DEFAULT_APPEAL_SUCCESS_RATE = 70.0

APPEAL_DEADLINE_DAYS = 60
RECOVERY_FACTOR = 0.9


def normalize_code(code: Optional[str]) -> str:
    """Upper-case and trim a denial code."""
    return (code or "").strip().upper()


def denial_reason(code: str) -> str:
    return DENIAL_REASONS.get(normalize_code(code), "Unknown Reason")


def root_cause_for(code: str) -> RootCauseEntry:
    return ROOT_CAUSES.get(normalize_code(code), UNKNOWN_ROOT_CAUSE)


def categorize(code: str) -> CategoryEntry:
    """Map a denial code onto its category, subcategory and severity."""
    code = normalize_code(code)
    if code in ADMINISTRATIVE_CODES:
        return CategoryEntry(
            DenialCategoryType.ADMINISTRATIVE, "Billing/Administrative Error", DenialSeverity.MEDIUM
        )
    if code == "CO-16":
        return CategoryEntry(
            DenialCategoryType.AUTHORIZATION, "Prior Authorization Required", DenialSeverity.HIGH
        )
    if code in CLINICAL_CODES:
        return CategoryEntry(DenialCategoryType.CLINICAL, "Medical Necessity/Clinical", DenialSeverity.HIGH)
    # CO-4x and CO-5x outside the clinical set
    if code.startswith("CO-4") or code.startswith("CO-5"):
        return CategoryEntry(DenialCategoryType.ELIGIBILITY, "Eligibility Issue", DenialSeverity.CRITICAL)
    return CategoryEntry(DenialCategoryType.OTHER, "Other", DenialSeverity.MEDIUM)


def appeal_strategy(code: str) -> str:
    return APPEAL_STRATEGIES.get(normalize_code(code), DEFAULT_APPEAL_STRATEGY)


def base_success_rate(code: str) -> float:
    return APPEAL_SUCCESS_RATES.get(normalize_code(code), DEFAULT_APPEAL_SUCCESS_RATE)


def estimate_recovery(amount: float, probability: float) -> float:
    """Expected recovery for ``amount`` at ``probability`` percent."""
    return amount * (probability / 100) * RECOVERY_FACTOR
