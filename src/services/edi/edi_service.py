"""
EDI Service.

Entry point of the EDI transaction formatter:
- 270/271 eligibility lookup (delegated to EligibilityService)
- 276/277 claim status inquiry
- 837 claim submission with 999 acknowledgment
- 835 remittance processing
- X12 generation and a uniform response parse step

Transport and database errors propagate to the caller. There is no retry
policy and no deduplication of submissions.
"""

from datetime import datetime
from typing import Any, Mapping, Optional
from uuid import uuid4
import logging

from src.core.coercion import first_present, to_number, to_str
from src.core.enums import EDITransactionStatus, EDITransactionType
from src.core.exceptions import InputValidationError
from src.gateways.clearinghouse_gateway import ClearinghouseGateway
from src.services.edi.eligibility_service import EligibilityService
from src.services.edi.models import (
    ClaimStatusRequest,
    ClaimStatusResponse,
    EDITransaction,
    EligibilityRequest,
    EligibilityResponse,
    RemittanceAdvice,
)
from src.services.edi.x12_base import X12Segment, X12Tokenizer
from src.services.edi.x12_generator import X12ControlNumbers, X12Generator
from src.services.edi.x12_response_parser import ParsedResponse, X12ResponseParser

logger = logging.getLogger(__name__)

CONTROL_NUMBER_FIELDS = ("interchange", "group", "transaction")


def control_numbers_from(value: Any) -> Optional[X12ControlNumbers]:
    """
    Decode caller-supplied control numbers.

    Accepts a mapping with any of ``interchange``, ``group`` and
    ``transaction``; each value is a string or int of at most nine digits.

    Raises:
        InputValidationError: Unknown keys or non-numeric values
    """
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise InputValidationError("Control numbers must be an object")

    unknown = sorted(str(key) for key in value if key not in CONTROL_NUMBER_FIELDS)
    if unknown:
        raise InputValidationError(
            f"Unknown control number fields: {', '.join(unknown)}",
            {"allowed": list(CONTROL_NUMBER_FIELDS)},
        )

    numbers: dict[str, str] = {}
    for name, raw in value.items():
        if isinstance(raw, bool) or not isinstance(raw, (str, int)):
            raise InputValidationError(f"Control number '{name}' must be a string of digits")
        text = str(raw).strip()
        if not text.isdigit() or len(text) > 9:
            raise InputValidationError(f"Control number '{name}' must be 1 to 9 digits, got {raw!r}")
        numbers[name] = text
    return X12ControlNumbers(**numbers)


class EDIService:
    """
    EDI Service for X12 transaction processing.

    Usage:
        service = EDIService(eligibility, clearinghouse, generator)
        response = await service.check_eligibility(request, company_id)
        transaction = await service.submit_claim(claim_data)
        remittance = await service.process_remittance({"payer_id": "ACME"})
    """

    def __init__(
        self,
        eligibility: EligibilityService,
        clearinghouse: ClearinghouseGateway,
        generator: Optional[X12Generator] = None,
        parser: Optional[X12ResponseParser] = None,
    ):
        self.eligibility = eligibility
        self.clearinghouse = clearinghouse
        self.generator = generator or X12Generator()
        self.parser = parser or X12ResponseParser()

    # =========================================================================
    # 270/271 Eligibility
    # =========================================================================

    async def check_eligibility(
        self,
        request: EligibilityRequest,
        company_id: Optional[str] = None,
    ) -> EligibilityResponse:
        """Look up eligibility; a missing record yields an UNKNOWN response."""
        return await self.eligibility.check_eligibility(request, company_id)

    # =========================================================================
    # 276/277 Claim Status
    # =========================================================================

    async def check_claim_status(self, request: ClaimStatusRequest) -> ClaimStatusResponse:
        """Send a 276 inquiry and parse the 277 answer. Read-only."""
        if not request.claim_id:
            raise InputValidationError("Claim status inquiry requires a claim id")
        if not request.payer_id:
            raise InputValidationError("Claim status inquiry requires a payer id")

        x12_276 = self.generator.generate(
            EDITransactionType.CLAIM_STATUS_276,
            {
                "claim_id": request.claim_id,
                "payer_id": request.payer_id,
                "payer_name": request.payer_name,
                "patient_id": request.patient_id,
                "patient_first_name": request.patient_first_name,
                "patient_last_name": request.patient_last_name,
                "service_date": request.service_date,
                "claim_amount": request.claim_amount,
            },
        )
        x12_277 = await self.clearinghouse.exchange("276", x12_276)
        response = self.parser.parse_277(x12_277)
        if not response.claim_id:
            response.claim_id = request.claim_id

        logger.info(f"Claim {request.claim_id} status: {response.status.value}")
        return response

    # =========================================================================
    # 837 Submission
    # =========================================================================

    async def submit_claim(self, claim_data: Mapping[str, Any]) -> EDITransaction:
        """
        Generate and submit an 837, then apply the 999 acknowledgment.

        A caller-supplied ``claim_id`` is used as CLM01; otherwise one is
        assigned. Accepted claims end ``processed``; rejected claims end
        ``rejected`` with the acknowledgment errors as the error message.
        """
        payer_id = to_str(first_present(claim_data, ("payer_id", "payerId"))).strip()
        patient_id = to_str(first_present(claim_data, ("patient_id", "patientId"))).strip()
        if not payer_id:
            raise InputValidationError("Claim submission requires a payer id")
        if not patient_id:
            raise InputValidationError("Claim submission requires a patient id")

        claim_id = to_str(first_present(claim_data, ("claim_id", "claimId"))).strip()
        if not claim_id:
            claim_id = f"CLM-{uuid4().int % 1000000:06d}"

        data = dict(claim_data)
        data.update(
            claim_id=claim_id,
            payer_id=payer_id,
            patient_id=patient_id,
            claim_amount=to_number(first_present(claim_data, ("claim_amount", "total_amount", "totalAmount"))),
        )

        control = control_numbers_from(claim_data.get("control"))
        content = self.generator.generate(EDITransactionType.CLAIM_837, data, control)
        transaction = EDITransaction(
            id=f"837-{uuid4().hex[:12]}",
            transaction_type=EDITransactionType.CLAIM_837,
            payload=content,
            control_number=(control or X12ControlNumbers()).interchange,
            claim_id=claim_id,
        )

        try:
            x12_999 = await self.clearinghouse.exchange("837", content)
        except Exception as e:
            transaction.advance(EDITransactionStatus.REJECTED, error_message=str(e))
            logger.error(f"Claim {claim_id} submission failed: {e}")
            raise
        transaction.advance(EDITransactionStatus.SENT)

        ack = self.parser.parse_999(x12_999)
        transaction.acknowledgment_code = ack.code
        if ack.accepted:
            transaction.advance(EDITransactionStatus.ACKNOWLEDGED, response=ack)
            transaction.advance(EDITransactionStatus.PROCESSED)
        else:
            transaction.advance(
                EDITransactionStatus.REJECTED,
                response=ack,
                error_message="; ".join(ack.errors) or f"Acknowledgment code {ack.code}",
            )

        logger.info(
            f"Claim {claim_id} submitted as {transaction.id}: ack={ack.code} status={transaction.status.value}"
        )
        return transaction

    # =========================================================================
    # 835 Remittance
    # =========================================================================

    async def process_remittance(self, remittance_data: Mapping[str, Any]) -> RemittanceAdvice:
        """
        Parse an 835.

        ``remittance_data`` carries either raw X12 under ``content`` or a
        ``payer_id`` whose next remittance is pulled from the clearinghouse.
        """
        content = to_str(remittance_data.get("content")).strip()
        if not content:
            payer_id = to_str(first_present(remittance_data, ("payer_id", "payerId"))).strip()
            if not payer_id:
                raise InputValidationError("Remittance processing requires X12 content or a payer id")
            content = await self.clearinghouse.request_remittance(payer_id)

        remittance = self.parser.parse_835(content)
        logger.info(
            f"Remittance {remittance.check_number}: {len(remittance.claims)} claims, total paid {remittance.total_paid:.2f}"
        )
        return remittance

    # =========================================================================
    # Formatting and Parsing
    # =========================================================================

    def generate_x12_format(
        self,
        transaction_type: str,
        data: Mapping[str, Any],
        control: Optional[X12ControlNumbers] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """Render ``data`` as an X12 interchange. Pure."""
        return self.generator.generate(transaction_type, data, control, now)

    def parse_response(self, content: str) -> ParsedResponse:
        """Parse a 271, 277, 835 or 999 interchange."""
        return self.parser.parse(content)

    @staticmethod
    def tokenize(content: str) -> list[X12Segment]:
        return X12Tokenizer().tokenize(content)
