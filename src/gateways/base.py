"""
Base Gateway for External Capabilities.

Gateways wrap the external collaborators (denial intelligence functions,
clearinghouse) behind a provider switch with:
- A per-call timeout via asyncio.wait_for
- Health tracking
- Uniform error types

There is deliberately no retry: every failure is surfaced once to the
caller. Callers cancel an in-flight call by cancelling their asyncio task.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Generic, Optional, TypeVar
import asyncio
import logging
import time

import httpx

from src.core.enums import ProviderStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")
TProvider = TypeVar("TProvider", bound=Enum)


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.original_error = original_error


class ProviderUnavailableError(GatewayError):
    """Raised when a provider is not reachable or answers with an error status."""

    pass


class ProviderTimeoutError(GatewayError):
    """Raised when a provider request times out."""

    pass


@dataclass
class GatewayConfig:
    """Configuration for a gateway instance."""

    provider: str
    base_url: str = ""
    api_key: str = ""
    timeout_seconds: float = 30.0


@dataclass
class ProviderHealth:
    """Health status for the configured provider."""

    status: ProviderStatus = ProviderStatus.HEALTHY
    last_check: Optional[datetime] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    avg_latency_ms: float = 0.0
    request_count: int = 0
    error_count: int = 0

    def record_success(self, latency_ms: float) -> None:
        self.consecutive_failures = 0
        self.request_count += 1
        self.last_check = datetime.now(timezone.utc)
        if self.request_count == 1:
            self.avg_latency_ms = latency_ms
        else:
            self.avg_latency_ms = self.avg_latency_ms * 0.9 + latency_ms * 0.1
        self.status = ProviderStatus.HEALTHY

    def record_failure(self, error: str) -> None:
        self.consecutive_failures += 1
        self.error_count += 1
        self.request_count += 1
        self.last_error = error
        self.last_check = datetime.now(timezone.utc)
        self.status = (
            ProviderStatus.UNHEALTHY if self.consecutive_failures >= 3 else ProviderStatus.DEGRADED
        )


class BaseGateway(ABC, Generic[TProvider]):
    """
    Abstract base class for external capability gateways.

    Subclasses name themselves, parse their provider enum and issue calls
    through ``_call`` so timeouts and health are handled uniformly.
    """

    def __init__(self, config: GatewayConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.provider = self._parse_provider(config.provider)
        self.health = ProviderHealth()
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    @abstractmethod
    def gateway_name(self) -> str:
        """Name of this gateway for logging."""
        pass

    @abstractmethod
    def _parse_provider(self, provider_str: str) -> TProvider:
        """Parse provider string to enum."""
        pass

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            headers = {"Content-Type": "application/json"}
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=headers,
                timeout=self.config.timeout_seconds,
            )
        return self._http_client

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` under the configured timeout, recording health."""
        start = time.perf_counter()
        provider = self.provider.value
        try:
            result = await asyncio.wait_for(awaitable, timeout=self.config.timeout_seconds)
        except asyncio.TimeoutError as e:
            message = f"{self.gateway_name} {operation} timed out after {self.config.timeout_seconds}s"
            self.health.record_failure(message)
            logger.warning(message)
            raise ProviderTimeoutError(message, provider=provider, original_error=e) from e
        except GatewayError as e:
            self.health.record_failure(str(e))
            logger.warning(f"{self.gateway_name} {operation} failed: {e}")
            raise
        except httpx.HTTPStatusError as e:
            message = f"{self.gateway_name} {operation} returned HTTP {e.response.status_code}"
            self.health.record_failure(message)
            logger.warning(message)
            raise ProviderUnavailableError(message, provider=provider, original_error=e) from e
        except httpx.HTTPError as e:
            message = f"{self.gateway_name} {operation} failed: {e}"
            self.health.record_failure(message)
            logger.warning(message)
            raise ProviderUnavailableError(message, provider=provider, original_error=e) from e

        latency = (time.perf_counter() - start) * 1000
        self.health.record_success(latency)
        logger.debug(f"{self.gateway_name}: {operation} via {provider} succeeded in {latency:.1f}ms")
        return result

    async def _post_json(self, path: str, payload: dict[str, Any]) -> Any:
        response = await self._client().post(path, json=payload)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(
                f"{self.gateway_name} returned a non-JSON body for {path}",
                provider=self.provider.value,
                original_error=e,
            ) from e

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
