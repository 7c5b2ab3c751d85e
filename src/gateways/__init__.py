"""
Provider Gateway Module for the Billing Core.

Gateways wrap external capabilities behind a provider switch, so the same
service code runs against hosted endpoints or local deterministic providers.
"""

from src.gateways.base import (
    BaseGateway,
    GatewayConfig,
    GatewayError,
    ProviderHealth,
    ProviderUnavailableError,
    ProviderTimeoutError,
)
from src.gateways.clearinghouse_gateway import (
    ClearinghouseGateway,
    ClearinghouseSimulator,
)
from src.gateways.denial_intelligence_gateway import DenialIntelligenceGateway

__all__ = [
    # Base
    "BaseGateway",
    "GatewayConfig",
    "GatewayError",
    "ProviderHealth",
    "ProviderUnavailableError",
    "ProviderTimeoutError",
    # Clearinghouse
    "ClearinghouseGateway",
    "ClearinghouseSimulator",
    # Denial intelligence
    "DenialIntelligenceGateway",
]
