"""
Unit Tests for the EDI Service and Clearinghouse Simulator.

Tests:
- 276/277 claim status round trip through the simulator
- 837 submission and 999 acknowledgment handling
- 835 remittance processing
- Transaction status transitions
"""

from datetime import date, datetime, timezone

import pytest

from src.core.enums import ClaimStatus, EDITransactionStatus, EDITransactionType
from src.core.exceptions import InputValidationError, TransactionStateError
from src.db.memory_store import InMemoryDataStore
from src.gateways.base import GatewayConfig, ProviderUnavailableError
from src.gateways.clearinghouse_gateway import ClearinghouseGateway
from src.services.edi.edi_service import EDIService
from src.services.edi.eligibility_service import EligibilityService
from src.services.edi.mock_clearinghouse import MockClearinghouse
from src.services.edi.models import ClaimStatusRequest, EDITransaction, FunctionalAcknowledgment
from src.services.edi.x12_generator import X12Generator
from src.services.edi.x12_response_parser import X12ResponseParser

FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)

CLAIM = {
    "claim_id": "CLM001",
    "payer_id": "ACME01",
    "payer_name": "ACME HEALTH",
    "patient_id": "MBR123",
    "patient_last_name": "DOE",
    "patient_first_name": "JANE",
    "claim_amount": 150,
    "primary_diagnosis": "J06.9",
    "service_code": "0450",
}


def _simulator() -> MockClearinghouse:
    return MockClearinghouse(clock=lambda: FIXED_NOW)


def _service(simulator=None) -> EDIService:
    gateway = ClearinghouseGateway(GatewayConfig(provider="mock"), simulator=simulator or _simulator())
    return EDIService(EligibilityService(InMemoryDataStore()), gateway)


# =============================================================================
# Simulator Tests
# =============================================================================


@pytest.mark.unit
class TestMockClearinghouse:
    """Deterministic simulated responses."""

    def test_unsupported_transaction_type(self):
        with pytest.raises(ValueError):
            _simulator().respond("270", "ISA")

    def test_claim_status_is_deterministic(self):
        content = X12Generator().generate("276", {"claim_id": "CLM9", "claim_amount": 100})
        first = _simulator().respond("276", content)
        second = _simulator().respond("276", content)
        assert first == second
        assert X12ResponseParser().parse_277(first).claim_id == "CLM9"

    def test_acknowledges_valid_claim(self):
        content = X12Generator().generate("837", CLAIM)
        ack = X12ResponseParser().parse_999(_simulator().respond("837", content))
        assert ack.code == "A"
        assert ack.accepted is True

    def test_rejects_zero_amount_and_missing_patient(self):
        content = X12Generator().generate("837", dict(CLAIM, claim_amount=0, patient_id=""))
        ack = X12ResponseParser().parse_999(_simulator().respond("837", content))
        assert ack.code == "R"
        assert ack.accepted is False
        assert ack.errors == ["CLM at segment 1", "NM1 at segment 1"]

    def test_remittance_has_two_claims(self):
        remittance = X12ResponseParser().parse_835(_simulator().remittance("ACME01"))
        assert len(remittance.claims) == 2
        assert {adj.code for adj in remittance.adjustments} == {"CO-45", "PR-2"}
        assert remittance.total_paid == round(sum(c.paid_amount for c in remittance.claims), 2)
        assert remittance.payment_date == date(2024, 3, 15)


# =============================================================================
# EDI Service Tests
# =============================================================================


@pytest.mark.unit
class TestEDIService:
    """EDI service orchestration."""

    @pytest.mark.asyncio
    async def test_claim_status(self):
        response = await _service().check_claim_status(
            ClaimStatusRequest(
                claim_id="CLM9",
                patient_id="MBR123",
                payer_id="ACME01",
                service_date=date(2024, 3, 1),
                claim_amount=100,
            )
        )
        assert response.claim_id == "CLM9"
        assert response.status in set(ClaimStatus)

    @pytest.mark.asyncio
    async def test_claim_status_requires_ids(self):
        with pytest.raises(InputValidationError):
            await _service().check_claim_status(
                ClaimStatusRequest(claim_id="", patient_id="p", payer_id="ACME01", service_date=date(2024, 3, 1))
            )
        with pytest.raises(InputValidationError):
            await _service().check_claim_status(
                ClaimStatusRequest(claim_id="CLM9", patient_id="p", payer_id="", service_date=date(2024, 3, 1))
            )

    @pytest.mark.asyncio
    async def test_submit_claim_processed(self):
        transaction = await _service().submit_claim(CLAIM)

        assert transaction.transaction_type == EDITransactionType.CLAIM_837
        assert transaction.status == EDITransactionStatus.PROCESSED
        assert transaction.acknowledgment_code == "A"
        assert transaction.claim_id == "CLM001"
        assert transaction.payload.startswith("ISA*")
        assert isinstance(transaction.response, FunctionalAcknowledgment)
        assert transaction.is_final

    @pytest.mark.asyncio
    async def test_submit_claim_rejected(self):
        transaction = await _service().submit_claim(dict(CLAIM, claim_amount=0))

        assert transaction.status == EDITransactionStatus.REJECTED
        assert transaction.acknowledgment_code == "R"
        assert "CLM at segment 1" in transaction.error_message

    @pytest.mark.asyncio
    async def test_submit_claim_assigns_claim_id(self):
        transaction = await _service().submit_claim(dict(CLAIM, claim_id=""))
        assert transaction.claim_id.startswith("CLM-")
        assert f"CLM*{transaction.claim_id}*" in transaction.payload

    @pytest.mark.asyncio
    async def test_submit_claim_requires_payer_and_patient(self):
        with pytest.raises(InputValidationError):
            await _service().submit_claim(dict(CLAIM, payer_id=""))
        with pytest.raises(InputValidationError):
            await _service().submit_claim(dict(CLAIM, patient_id=" "))

    @pytest.mark.asyncio
    async def test_submit_claim_with_control_numbers(self):
        control = {"interchange": 42, "group": "7", "transaction": "0042"}
        transaction = await _service().submit_claim(dict(CLAIM, control=control))

        assert transaction.status == EDITransactionStatus.PROCESSED
        assert transaction.control_number == "42"
        assert "*000000042*" in transaction.payload
        assert "ST*837*0042*" in transaction.payload

    @pytest.mark.parametrize(
        "control",
        [
            {"isa": "1"},
            {"interchange": 5.5},
            {"interchange": True},
            {"group": "G1"},
            {"transaction": "1234567890"},
            {"interchange": None},
            "000000001",
            ["1"],
        ],
    )
    @pytest.mark.asyncio
    async def test_submit_claim_rejects_malformed_control_numbers(self, control):
        # No simulator: reaching the clearinghouse would raise ProviderUnavailableError
        gateway = ClearinghouseGateway(GatewayConfig(provider="mock"))
        service = EDIService(EligibilityService(InMemoryDataStore()), gateway)
        with pytest.raises(InputValidationError):
            await service.submit_claim(dict(CLAIM, control=control))

    @pytest.mark.asyncio
    async def test_submit_claim_transport_failure_propagates(self):
        gateway = ClearinghouseGateway(GatewayConfig(provider="mock"))
        service = EDIService(EligibilityService(InMemoryDataStore()), gateway)
        with pytest.raises(ProviderUnavailableError):
            await service.submit_claim(CLAIM)

    @pytest.mark.asyncio
    async def test_process_remittance_by_payer(self):
        remittance = await _service().process_remittance({"payer_id": "ACME01"})
        assert len(remittance.claims) == 2
        assert remittance.check_number

    @pytest.mark.asyncio
    async def test_process_remittance_from_content(self):
        content = _simulator().remittance("SUMMIT")
        remittance = await _service().process_remittance({"content": content})
        assert remittance.payer_name == "PAYER SUMMIT"

    @pytest.mark.asyncio
    async def test_process_remittance_requires_input(self):
        with pytest.raises(InputValidationError):
            await _service().process_remittance({})

    def test_generate_and_parse(self):
        service = _service()
        content = service.generate_x12_format("837", CLAIM)
        assert [s.segment_id for s in service.tokenize(content)][:3] == ["ISA", "GS", "ST"]

        ack = service.parse_response(_simulator().respond("837", content))
        assert isinstance(ack, FunctionalAcknowledgment)


@pytest.mark.unit
class TestEDITransaction:
    """Status transitions."""

    def test_legal_path(self):
        transaction = EDITransaction(id="t1", transaction_type=EDITransactionType.CLAIM_837, payload="")
        transaction.advance(EDITransactionStatus.SENT)
        transaction.advance(EDITransactionStatus.ACKNOWLEDGED)
        transaction.advance(EDITransactionStatus.PROCESSED)
        assert transaction.is_final

    def test_final_transactions_do_not_move(self):
        transaction = EDITransaction(id="t1", transaction_type=EDITransactionType.CLAIM_837, payload="")
        transaction.advance(EDITransactionStatus.REJECTED, error_message="boom")
        with pytest.raises(TransactionStateError):
            transaction.advance(EDITransactionStatus.SENT)
        assert transaction.error_message == "boom"

    def test_cannot_skip_sent(self):
        transaction = EDITransaction(id="t1", transaction_type=EDITransactionType.CLAIM_837, payload="")
        with pytest.raises(TransactionStateError):
            transaction.advance(EDITransactionStatus.PROCESSED)
