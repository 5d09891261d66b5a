"""Collector contract and shared HTTP plumbing.

A collector turns one external source into ``RawTrendRecord`` values. It must
be safe to run concurrently with the other collectors, return an empty list
when the source has nothing trending, and raise when it cannot answer. The
aggregator bounds every ``fetch`` with the collector's ``timeout``.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from trendwire.core.errors import CollectorFailure, ConfigurationError
from trendwire.core.logging import get_logger
from trendwire.core.models import RawTrendRecord, SourceKind

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_USER_AGENT = "TrendWire/1.0 (+https://github.com/trendwire/trendwire)"
RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)
MAX_RETRY_AFTER_SECONDS = 30.0


def build_client(timeout: float = DEFAULT_TIMEOUT, user_agent: str = DEFAULT_USER_AGENT) -> httpx.AsyncClient:
    """Shared async HTTP client for collectors."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers={"User-Agent": user_agent},
        follow_redirects=True,
        limits=httpx.Limits(
            max_keepalive_connections=20,
            max_connections=50,
            keepalive_expiry=30.0
        )
    )


class HttpSource:
    """Mixin owning an httpx client and retrying transient failures."""

    source_name: str = "http"

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or build_client(timeout)

    async def aclose(self) -> None:
        """Close the client if this source created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4.0),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TimeoutException, httpx.NetworkError)),
        reraise=True
    )
    async def _request(self, url: str, params: Optional[Dict[str, Any]] = None,
                       headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        """GET with exponential back-off on rate limits, server errors and network failures."""
        try:
            logger.debug(f"{self.source_name}: GET {url}")
            response = await self.client.get(url, params=params, headers=headers)

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                if retry_after:
                    try:
                        wait_time = float(retry_after)
                        if 0 < wait_time <= MAX_RETRY_AFTER_SECONDS:
                            logger.info(f"{self.source_name}: rate limited, waiting {wait_time}s as per Retry-After")
                            await asyncio.sleep(wait_time)
                    except (ValueError, TypeError):
                        logger.warning(f"{self.source_name}: invalid Retry-After header: {retry_after}")

            response.raise_for_status()
            return response

        except httpx.HTTPStatusError as e:
            if e.response.status_code in RETRYABLE_STATUS_CODES:
                logger.warning(f"{self.source_name}: retryable HTTP {e.response.status_code} for {url}")
                raise
            logger.error(f"{self.source_name}: HTTP {e.response.status_code} for {url}")
            raise CollectorFailure(self.source_name, f"HTTP {e.response.status_code} from {url}") from e
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            logger.warning(f"{self.source_name}: {type(e).__name__} for {url}, will retry")
            raise

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                       headers: Optional[Dict[str, str]] = None) -> Any:
        """Fetch and decode a JSON document."""
        response = await self._request(url, params=params, headers=headers)
        try:
            return response.json()
        except ValueError as e:
            raise CollectorFailure(self.source_name, f"Invalid JSON from {url}: {e}") from e

    async def get_text(self, url: str, params: Optional[Dict[str, Any]] = None,
                       headers: Optional[Dict[str, str]] = None) -> str:
        """Fetch a text document."""
        response = await self._request(url, params=params, headers=headers)
        return response.text

    def require(self, credential: str, name: str) -> str:
        """Return a credential or raise ConfigurationError when it is not set."""
        if not credential:
            raise ConfigurationError(self.source_name, f"{name} not configured")
        return credential


class TrendCollector(HttpSource, ABC):
    """Abstract base class for trend sources."""

    kind: SourceKind

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = DEFAULT_TIMEOUT):
        super().__init__(client=client, timeout=timeout)
        self.source_name = self.kind.value

    @abstractmethod
    async def fetch(self, options: Any) -> List[RawTrendRecord]:
        """
        Fetch the source's current trends.

        Args:
            options: AggregationOptions carrying geo and per-source parameters

        Returns:
            Raw records, empty when nothing is trending

        Raises:
            CollectorFailure: the source could not be reached or answered badly
            ConfigurationError: a required credential is missing
        """
        pass
