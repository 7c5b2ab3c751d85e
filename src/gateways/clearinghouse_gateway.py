"""
Clearinghouse Gateway.

Exchanges X12 interchanges with a clearinghouse:
- 276 claim status inquiry -> 277 response
- 837 claim -> 999 acknowledgment
- remittance pull for a payer -> 835

The ``remote`` provider posts to the clearinghouse HTTP API with httpx. The
``mock`` provider delegates to an injected simulator that fabricates
deterministic responses, which is how demo mode and tests run.
"""

from typing import Optional, Protocol
import logging

import httpx

from src.core.enums import ClearinghouseProvider
from src.gateways.base import BaseGateway, GatewayConfig, GatewayError, ProviderUnavailableError

logger = logging.getLogger(__name__)


class ClearinghouseSimulator(Protocol):
    """Produces response interchanges without a network round trip."""

    def respond(self, transaction_type: str, content: str) -> str:
        ...

    def remittance(self, payer_id: str) -> str:
        ...


class ClearinghouseGateway(BaseGateway[ClearinghouseProvider]):
    """Gateway for outbound X12 exchanges."""

    def __init__(
        self,
        config: GatewayConfig,
        simulator: Optional[ClearinghouseSimulator] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(config, http_client)
        self._simulator = simulator

    @property
    def gateway_name(self) -> str:
        return "Clearinghouse"

    def _parse_provider(self, provider_str: str) -> ClearinghouseProvider:
        try:
            return ClearinghouseProvider(provider_str.lower())
        except ValueError as e:
            raise GatewayError(f"Unknown clearinghouse provider: {provider_str}") from e

    def _require_simulator(self) -> ClearinghouseSimulator:
        if self._simulator is None:
            raise ProviderUnavailableError(
                "Mock clearinghouse selected but no simulator configured",
                provider=self.provider.value,
            )
        return self._simulator

    async def exchange(self, transaction_type: str, content: str) -> str:
        """Send one interchange and return the response interchange."""
        return await self._call(f"exchange {transaction_type}", self._exchange(transaction_type, content))

    async def _exchange(self, transaction_type: str, content: str) -> str:
        if self.provider == ClearinghouseProvider.MOCK:
            return self._require_simulator().respond(transaction_type, content)
        body = await self._post_json(
            f"/x12/{transaction_type}", {"transaction_type": transaction_type, "content": content}
        )
        return self._response_content(body)

    async def request_remittance(self, payer_id: str) -> str:
        """Pull the next 835 remittance for ``payer_id``."""
        return await self._call("remittance", self._request_remittance(payer_id))

    async def _request_remittance(self, payer_id: str) -> str:
        if self.provider == ClearinghouseProvider.MOCK:
            return self._require_simulator().remittance(payer_id)
        body = await self._post_json("/remittance", {"payer_id": payer_id})
        return self._response_content(body)

    def _response_content(self, body: object) -> str:
        content = body.get("content") if isinstance(body, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise GatewayError(
                "Clearinghouse response did not include X12 content",
                provider=self.provider.value,
            )
        return content
