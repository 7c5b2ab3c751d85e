"""
X12 Response Parser.

Parses inbound or simulated responses into typed results:
- 271 eligibility response -> EligibilityResponse
- 277 claim status response -> ClaimStatusResponse
- 835 remittance advice -> RemittanceAdvice
- 999 implementation acknowledgment -> FunctionalAcknowledgment

No checksum or control-total validation is performed.
"""

from datetime import date
from typing import Callable, Optional, Union
import logging

from src.core.enums import ClaimStatus, EligibilityStatus
from src.services.edi.models import (
    Benefit,
    ClaimStatusResponse,
    CoverageSummary,
    EligibilityResponse,
    FunctionalAcknowledgment,
    RemittanceAdjustment,
    RemittanceAdvice,
    RemittanceClaim,
)
from src.services.edi.x12_base import (
    X12Interchange,
    X12ParseError,
    X12Segment,
    X12Tokenizer,
    parse_x12_date,
    parse_x12_date_range,
)

logger = logging.getLogger(__name__)


# Claim adjustment reason codes rendered in remittance adjustments
ADJUSTMENT_REASONS = {
    "1": "Deductible amount",
    "2": "Coinsurance amount",
    "3": "Co-payment amount",
    "4": "Procedure code inconsistent with modifier",
    "11": "Diagnosis inconsistent with procedure",
    "16": "Claim lacks information needed for adjudication",
    "18": "Exact duplicate claim/service",
    "22": "Care may be covered by another payer",
    "29": "Time limit for filing has expired",
    "45": "Charge exceeds fee schedule/maximum allowable",
    "50": "Not deemed a medical necessity by the payer",
    "96": "Non-covered charge(s)",
    "97": "Benefit included in payment for another service",
    "197": "Precertification/authorization absent",
}

# STC01-1 claim status category codes
_STATUS_CATEGORIES: dict[str, ClaimStatus] = {
    "A0": ClaimStatus.PROCESSING,
    "A1": ClaimStatus.PROCESSING,
    "A2": ClaimStatus.PROCESSING,
    "A3": ClaimStatus.REJECTED,
    "A4": ClaimStatus.REJECTED,
    "A6": ClaimStatus.REJECTED,
    "A7": ClaimStatus.REJECTED,
    "A8": ClaimStatus.REJECTED,
    "F1": ClaimStatus.PAID,
    "F2": ClaimStatus.DENIED,
    "F4": ClaimStatus.DENIED,
}

ParsedResponse = Union[
    EligibilityResponse, ClaimStatusResponse, RemittanceAdvice, FunctionalAcknowledgment
]


class X12ResponseParser:
    """Parse X12 response transaction sets."""

    def __init__(self, tokenizer: Optional[X12Tokenizer] = None):
        self.tokenizer = tokenizer or X12Tokenizer()

    def parse(self, content: str) -> ParsedResponse:
        """Dispatch on ST01."""
        interchange = self.tokenizer.parse_interchange(content)
        handlers: dict[str, Callable[[X12Interchange], ParsedResponse]] = {
            "271": self._parse_271,
            "277": self._parse_277,
            "835": self._parse_835,
            "999": self._parse_999,
        }
        handler = handlers.get(interchange.transaction_set_id)
        if handler is None:
            raise X12ParseError(
                f"Unsupported response transaction set: {interchange.transaction_set_id}",
                segment_id="ST",
            )
        return handler(interchange)

    def parse_271(self, content: str) -> EligibilityResponse:
        return self._parse_271(self._expect(content, "271"))

    def parse_277(self, content: str) -> ClaimStatusResponse:
        return self._parse_277(self._expect(content, "277"))

    def parse_835(self, content: str) -> RemittanceAdvice:
        return self._parse_835(self._expect(content, "835"))

    def parse_999(self, content: str) -> FunctionalAcknowledgment:
        return self._parse_999(self._expect(content, "999"))

    def _expect(self, content: str, code: str) -> X12Interchange:
        interchange = self.tokenizer.parse_interchange(content)
        if interchange.transaction_set_id != code:
            raise X12ParseError(
                f"Expected {code} transaction set, got {interchange.transaction_set_id}",
                segment_id="ST",
            )
        return interchange

    # =========================================================================
    # 271
    # =========================================================================

    def _parse_271(self, interchange: X12Interchange) -> EligibilityResponse:
        """
        Map EB segments onto the eligibility response.

        EB01 1 means active coverage, 6 inactive; B, C, A and G carry the
        copay, deductible, coinsurance and out-of-pocket amounts. MSG
        segments following an EB become that benefit's limitations. An AAA
        segment (request rejected) yields an UNKNOWN status.
        """
        coverage = CoverageSummary()
        benefits: list[Benefit] = []
        status: Optional[EligibilityStatus] = None
        effective: Optional[date] = None
        termination: Optional[date] = None
        current: Optional[Benefit] = None
        rejected = False

        for segment in interchange.body:
            sid = segment.segment_id
            if sid == "AAA":
                rejected = True
            elif sid == "EB":
                current = self._apply_eb(segment, coverage, benefits)
                code = segment.get_element(0)
                if code == "1" and status is None:
                    status = EligibilityStatus.ELIGIBLE
                elif code == "6" and status is None:
                    status = EligibilityStatus.INELIGIBLE
            elif sid == "MSG" and current is not None:
                current.limitations.append(segment.get_element(0))
            elif sid == "DTP":
                qualifier = segment.get_element(0)
                value = segment.get_element(2)
                if qualifier in ("346", "356"):
                    effective = parse_x12_date(value)
                elif qualifier in ("347", "357"):
                    termination = parse_x12_date(value)
                elif qualifier in ("291", "307") and segment.get_element(1) == "RD8":
                    effective, termination = parse_x12_date_range(value)

        if rejected or status is None:
            status = EligibilityStatus.UNKNOWN

        effective = effective or date.today()
        if termination and termination < effective:
            logger.warning(
                f"271 termination date {termination} precedes effective date {effective}; dropping it"
            )
            termination = None

        return EligibilityResponse(
            is_eligible=status == EligibilityStatus.ELIGIBLE,
            coverage=coverage,
            benefits=benefits,
            effective_date=effective,
            termination_date=termination,
            status=status,
        )

    @staticmethod
    def _apply_eb(
        segment: X12Segment, coverage: CoverageSummary, benefits: list[Benefit]
    ) -> Optional[Benefit]:
        code = segment.get_element(0)
        amount = segment.get_element_float(6)
        percent = segment.get_element_float(7)

        if code == "B" and not coverage.copay:
            coverage.copay = amount
        elif code == "C" and not coverage.deductible:
            coverage.deductible = amount
        elif code == "A" and not coverage.coinsurance:
            coverage.coinsurance = percent * 100 if 0 < percent <= 1 else percent
        elif code == "G" and not coverage.out_of_pocket_max:
            coverage.out_of_pocket_max = amount

        service_type = segment.get_element(2)
        if not service_type:
            return None
        benefit = Benefit(service_type=service_type, coverage_level=segment.get_element(1) or "IND")
        benefits.append(benefit)
        return benefit

    # =========================================================================
    # 277
    # =========================================================================

    def _parse_277(self, interchange: X12Interchange) -> ClaimStatusResponse:
        trn = next(
            (s for s in interchange.find_all("TRN") if s.get_element(0) in ("2", "1")), None
        )
        stc = interchange.find("STC")
        if stc is None:
            raise X12ParseError("277 response has no STC segment", segment_id="STC")

        composite = stc.get_composite(0, self.tokenizer.component_separator)
        category = composite[0] if composite else ""
        status_code = composite[1] if len(composite) > 1 else ""
        paid = stc.get_element_float(4)

        status = _STATUS_CATEGORIES.get(category)
        if status is None:
            if category in ("F0", "F3"):
                status = ClaimStatus.PAID if paid > 0 else ClaimStatus.PROCESSING
            else:
                status = ClaimStatus.PENDING

        denial_reason = None
        if status in (ClaimStatus.DENIED, ClaimStatus.REJECTED):
            denial_reason = stc.get_element(11) or f"Claim status {category}:{status_code}"

        return ClaimStatusResponse(
            claim_id=trn.get_element(1) if trn else "",
            status=status,
            status_date=parse_x12_date(stc.get_element(1)),
            amount_paid=paid if stc.get_element(4) else None,
            denial_reason=denial_reason,
            remittance_advice=stc.get_element(8) or None,
            status_code=f"{category}:{status_code}" if category else "",
        )

    # =========================================================================
    # 835
    # =========================================================================

    def _parse_835(self, interchange: X12Interchange) -> RemittanceAdvice:
        bpr = interchange.find("BPR")
        if bpr is None:
            raise X12ParseError("835 remittance has no BPR segment", segment_id="BPR")
        trn = interchange.find("TRN")

        payment_date = parse_x12_date(bpr.get_element(15))
        payer_name = ""
        claims: list[RemittanceClaim] = []
        current: Optional[RemittanceClaim] = None

        for segment in interchange.body:
            sid = segment.segment_id
            if sid == "N1" and segment.get_element(0) == "PR":
                payer_name = segment.get_element(1)
            elif sid == "DTM" and segment.get_element(0) == "405" and payment_date is None:
                payment_date = parse_x12_date(segment.get_element(1))
            elif sid == "CLP":
                current = RemittanceClaim(
                    claim_id=segment.get_element(0),
                    status_code=segment.get_element(1),
                    charge_amount=segment.get_element_float(2),
                    paid_amount=segment.get_element_float(3),
                    patient_responsibility=segment.get_element_float(4),
                )
                claims.append(current)
            elif sid == "CAS" and current is not None:
                current.adjustments.extend(self._parse_cas(segment, current.claim_id))

        adjustments = [adj for claim in claims for adj in claim.adjustments]
        return RemittanceAdvice(
            claim_id=claims[0].claim_id if claims else "",
            total_paid=bpr.get_element_float(1),
            adjustments=adjustments,
            patient_responsibility=round(sum(c.patient_responsibility for c in claims), 2),
            payment_date=payment_date,
            check_number=trn.get_element(1) if trn else None,
            payer_name=payer_name,
            claims=claims,
        )

    @staticmethod
    def _parse_cas(segment: X12Segment, claim_id: str) -> list[RemittanceAdjustment]:
        """CAS carries a group code followed by up to six reason/amount/quantity triples."""
        group = segment.get_element(0)
        adjustments = []
        for index in range(1, len(segment.elements), 3):
            reason_code = segment.get_element(index)
            if not reason_code:
                continue
            adjustments.append(
                RemittanceAdjustment(
                    code=f"{group}-{reason_code}",
                    amount=segment.get_element_float(index + 1),
                    reason=ADJUSTMENT_REASONS.get(reason_code, f"Adjustment reason {reason_code}"),
                    claim_id=claim_id,
                )
            )
        return adjustments

    # =========================================================================
    # 999
    # =========================================================================

    def _parse_999(self, interchange: X12Interchange) -> FunctionalAcknowledgment:
        ak9 = interchange.find("AK9")
        if ak9 is None:
            raise X12ParseError("999 acknowledgment has no AK9 segment", segment_id="AK9")
        ak1 = interchange.find("AK1")
        code = ak9.get_element(0)
        errors = [
            f"{s.get_element(0)} at segment {s.get_element(1)}"
            for s in interchange.find_all("IK3")
        ]
        errors.extend(f"Element error {s.get_element(2)}" for s in interchange.find_all("IK4"))
        return FunctionalAcknowledgment(
            code=code,
            accepted=code in ("A", "E"),
            acknowledged_control_number=ak1.get_element(1) if ak1 else "",
            errors=errors,
        )
