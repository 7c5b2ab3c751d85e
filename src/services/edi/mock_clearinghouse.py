"""
Deterministic Clearinghouse Simulator.

Fabricates 277, 999 and 835 response interchanges for demo mode and tests.
Outcomes are seeded from a SHA-256 digest of the request so the same
request always yields the same response.
"""

from datetime import datetime, timezone
from typing import Callable, Optional
import hashlib
import logging
import random

from src.services.edi.x12_base import (
    X12Tokenizer,
    format_x12_amount,
    format_x12_date,
)
from src.services.edi.x12_generator import X12ControlNumbers, X12Generator

logger = logging.getLogger(__name__)


def _seeded(*parts: str) -> random.Random:
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
    return random.Random(int(digest[:16], 16))


class MockClearinghouse:
    """Simulated clearinghouse responder."""

    def __init__(
        self,
        generator: Optional[X12Generator] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        # Responses travel from the clearinghouse back to us
        self.generator = generator or X12Generator(sender_id="CLEARINGHOUSE", receiver_id="SUBMITTER")
        self.clock = clock
        self.tokenizer = X12Tokenizer()

    def respond(self, transaction_type: str, content: str) -> str:
        if transaction_type == "276":
            return self._claim_status(content)
        if transaction_type == "837":
            return self._acknowledgment(content)
        raise ValueError(f"Simulator does not answer {transaction_type} transactions")

    # =========================================================================
    # 276 -> 277
    # =========================================================================

    def _claim_status(self, content: str) -> str:
        interchange = self.tokenizer.parse_interchange(content)
        trn = interchange.find("TRN")
        amt = interchange.find("AMT")
        payer = next((s for s in interchange.find_all("NM1") if s.get_element(0) == "PR"), None)
        patient = next((s for s in interchange.find_all("NM1") if s.get_element(0) == "QC"), None)

        claim_id = trn.get_element(1) if trn else ""
        charge = amt.get_element_float(1) if amt else 0.0
        rng = _seeded("276", claim_id, format_x12_amount(charge))
        now = self.clock()
        today = format_x12_date(now)

        outcome = rng.choice(["paid", "denied", "processing", "pending"])
        if outcome == "paid":
            paid = round(charge * rng.uniform(0.6, 0.95), 2)
            trace = f"EFT{rng.randint(100000, 999999)}"
            stc = ("F1:65", today, "", format_x12_amount(charge), format_x12_amount(paid), "", "", "", trace)
        elif outcome == "denied":
            stc = (
                "F2:88", today, "", format_x12_amount(charge), "0.00",
                "", "", "", "", "", "", "CO-50: Service not covered",
            )
        elif outcome == "processing":
            stc = ("A2:20", today, "", format_x12_amount(charge))
        else:
            stc = ("P1:20", today, "", format_x12_amount(charge))

        seg = self.generator.segment
        body = [
            seg("BHT", "0010", "08", claim_id or "0001", today, now.strftime("%H%M%S"), "DG"),
            seg("HL", "1", "", "20", "1"),
            seg("NM1", "PR", "2", payer.get_element(2) if payer else "", "", "", "", "", "PI", payer.get_element(8) if payer else ""),
            seg("HL", "2", "1", "22", "0"),
            seg(
                "NM1", "QC", "1",
                patient.get_element(2) if patient else "",
                patient.get_element(3) if patient else "",
                "", "", "", "MI",
                patient.get_element(8) if patient else "",
            ),
            seg("TRN", "2", claim_id),
            seg("STC", *stc),
        ]
        return self.generator.build_interchange("277", body, self._control(rng), now)

    # =========================================================================
    # 837 -> 999
    # =========================================================================

    def _acknowledgment(self, content: str) -> str:
        interchange = self.tokenizer.parse_interchange(content)
        clm = interchange.find("CLM")
        patient = next((s for s in interchange.find_all("NM1") if s.get_element(0) == "QC"), None)

        errors = []
        if clm is None:
            errors.append(("CLM", "3"))  # Mandatory segment missing
        elif clm.get_element_float(1) <= 0:
            errors.append(("CLM", "8"))  # Segment has data element errors
        if patient is None or not patient.get_element(8):
            errors.append(("NM1", "8"))

        code = "R" if errors else "A"
        seg = self.generator.segment
        body = [
            seg("AK1", interchange.functional_id or "HC", interchange.group_control_number or "1", "005010X222A1"),
            seg("AK2", interchange.transaction_set_id, interchange.transaction_control_number),
        ]
        for segment_id, error_code in errors:
            body.append(seg("IK3", segment_id, "1", "", error_code))
        body.append(seg("IK5", code))
        body.append(seg("AK9", code, "1", "1", "0" if errors else "1"))

        rng = _seeded("837", content)
        return self.generator.build_interchange("999", body, self._control(rng), self.clock())

    # =========================================================================
    # 835
    # =========================================================================

    def remittance(self, payer_id: str) -> str:
        rng = _seeded("835", payer_id)
        now = self.clock()
        today = format_x12_date(now)
        seg = self.generator.segment

        claims = []
        for _ in range(2):
            charge = round(rng.uniform(300, 2500), 2)
            contractual = round(charge * rng.uniform(0.05, 0.2), 2)
            patient_share = round(rng.uniform(10, 60), 2)
            paid = round(charge - contractual - patient_share, 2)
            claims.append((f"CLM-{rng.randint(100000, 999999)}", charge, paid, patient_share, contractual))

        total = round(sum(claim[2] for claim in claims), 2)
        check_number = f"{rng.randint(10000000, 99999999)}"

        body = [
            seg("BPR", "I", format_x12_amount(total), "C", "ACH", "CCP", "", "", "", "", "", "", "", "", "", "", today),
            seg("TRN", "1", check_number, payer_id),
            seg("DTM", "405", today),
            seg("N1", "PR", f"PAYER {payer_id}"),
            seg("N1", "PE", "BILLWISE AI NEXUS"),
        ]
        for claim_id, charge, paid, patient_share, contractual in claims:
            body.append(
                seg(
                    "CLP", claim_id, "1",
                    format_x12_amount(charge),
                    format_x12_amount(paid),
                    format_x12_amount(patient_share),
                    "12", f"PCN{claim_id[-6:]}",
                )
            )
            body.append(seg("CAS", "CO", "45", format_x12_amount(contractual)))
            body.append(seg("CAS", "PR", "2", format_x12_amount(patient_share)))

        return self.generator.build_interchange("835", body, self._control(rng), now)

    @staticmethod
    def _control(rng: random.Random) -> X12ControlNumbers:
        number = rng.randint(1, 999999999)
        return X12ControlNumbers(
            interchange=str(number).zfill(9),
            group=str(number % 10000 or 1),
            transaction=str(number % 10000 or 1).zfill(4),
        )
