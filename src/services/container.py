"""
Service Container.

Builds every service of the billing core from ``Settings`` and owns the
shared resources (row store, gateway HTTP clients). Services receive their
collaborators explicitly; nothing reaches for a module-level singleton.

Usage:
    container = ServiceContainer.from_settings(get_settings())
    pairs = await container.triage.load_denials(company_id)
    await container.close()
"""

from dataclasses import dataclass
from typing import Optional
import logging

from src.api.config import Settings
from src.db.connection import create_data_store
from src.db.store import DataStore
from src.gateways.base import GatewayConfig
from src.gateways.clearinghouse_gateway import ClearinghouseGateway
from src.gateways.denial_intelligence_gateway import DenialIntelligenceGateway
from src.services.audit.authorization_audit import AuthorizationAuditService
from src.services.bulk_operations import BulkOperationsService
from src.services.denials.denial_management import DenialManagementService
from src.services.denials.triage import DenialTriageService
from src.services.edi.edi_service import EDIService
from src.services.edi.eligibility_service import EligibilityService
from src.services.edi.mock_clearinghouse import MockClearinghouse
from src.services.edi.x12_generator import X12Generator
from src.services.reports.report_service import ReportService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    store: DataStore
    clearinghouse: ClearinghouseGateway
    intelligence: DenialIntelligenceGateway
    audit: AuthorizationAuditService
    edi: EDIService
    denials: DenialManagementService
    triage: DenialTriageService
    bulk: BulkOperationsService
    reports: ReportService

    @classmethod
    def from_settings(cls, settings: Settings, store: Optional[DataStore] = None) -> "ServiceContainer":
        """
        Wire the core.

        Args:
            settings: Application settings
            store: Row store override (tests pass an ``InMemoryDataStore``)
        """
        store = store or create_data_store(settings)

        clearinghouse = ClearinghouseGateway(
            GatewayConfig(
                provider=settings.CLEARINGHOUSE_PROVIDER,
                base_url=settings.CLEARINGHOUSE_URL,
                api_key=settings.CLEARINGHOUSE_API_KEY,
                timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS,
            ),
            simulator=MockClearinghouse(),
        )
        intelligence = DenialIntelligenceGateway(
            GatewayConfig(
                provider=settings.DENIAL_INTELLIGENCE_PROVIDER,
                base_url=settings.DENIAL_INTELLIGENCE_URL,
                api_key=settings.DENIAL_INTELLIGENCE_API_KEY,
                timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS,
            )
        )

        generator = X12Generator(
            sender_id=settings.X12_SENDER_ID,
            receiver_id=settings.X12_RECEIVER_ID,
            submitter_name=settings.X12_SUBMITTER_NAME,
            usage_indicator=settings.X12_USAGE_INDICATOR,
        )

        audit = AuthorizationAuditService(store)
        denials = DenialManagementService(store, intelligence)
        container = cls(
            store=store,
            clearinghouse=clearinghouse,
            intelligence=intelligence,
            audit=audit,
            edi=EDIService(EligibilityService(store), clearinghouse, generator=generator),
            denials=denials,
            triage=DenialTriageService(
                store,
                denials,
                intelligence,
                audit,
                fetch_limit=settings.DENIAL_FETCH_LIMIT,
                batch_limit=settings.TRIAGE_BATCH_LIMIT,
            ),
            bulk=BulkOperationsService(store, audit),
            reports=ReportService(store),
        )
        logger.info(
            f"Service container ready (store={type(store).__name__}, "
            f"clearinghouse={settings.CLEARINGHOUSE_PROVIDER}, "
            f"intelligence={settings.DENIAL_INTELLIGENCE_PROVIDER})"
        )
        return container

    async def close(self) -> None:
        await self.clearinghouse.close()
        await self.intelligence.close()
        await self.store.close()
