"""Base connector infrastructure for settlement data sources.

Provides the BaseConnector abstract class with:
- Async HTTP client via httpx with connection pooling
- Bounded in-flight requests via asyncio.Semaphore
- Structured logging via structlog
- Translation of HTTP failures into the fetch error taxonomy

Connectors are pure I/O boundaries: they never retry. Retry and backoff
policy belongs to the completeness reconciler, which needs to tell a
transient failure (short backoff) from rate limiting (long backoff).

Exception mapping:
- HTTP 429 -> RateLimitError
- connect errors, timeouts, HTTP 5xx, other HTTP errors -> TransientFetchError
- undecodable / malformed payloads -> DataParsingError
"""

import abc
import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx
import structlog

from curtailment.core.exceptions import (
    DataParsingError,
    RateLimitError,
    TransientFetchError,
)


# ---------------------------------------------------------------------------
# Raw record contract
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SettlementRecord:
    """One raw accepted bid/offer volume for a BM Unit in a settlement period.

    Attributes:
        unit_id: Elexon BM Unit id (e.g. ``"T_WHILW-1"``).
        volume: Signed volume in MWh; negative means output was reduced.
        final_price: Accepted price (GBP/MWh).
        original_price: Originally offered price (GBP/MWh).
        so_flag: System Operator flag.
        cadl_flag: Continuous Acceptance Duration Limit flag.
        lead_party_name: Lead party reported upstream, if any.
    """

    unit_id: str
    volume: float
    final_price: float
    original_price: float
    so_flag: bool = False
    cadl_flag: bool = False
    lead_party_name: str | None = None


# ---------------------------------------------------------------------------
# BaseConnector ABC
# ---------------------------------------------------------------------------
class BaseConnector(abc.ABC):
    """Abstract base class for settlement data connectors.

    Subclasses MUST override:
        SOURCE_NAME: str - identifier (e.g., "ELEXON")
        BASE_URL: str - base API URL

    Subclasses MAY override:
        MAX_IN_FLIGHT: int - max concurrent requests (default 10)
        TIMEOUT_SECONDS: float - HTTP timeout per request (default 30.0)

    Usage::

        async with MyConnector() as conn:
            records = await conn.fetch(date(2025, 3, 4), 16)
    """

    # Subclasses MUST override
    SOURCE_NAME: str = ""
    BASE_URL: str = ""

    # Subclasses MAY override
    MAX_IN_FLIGHT: int = 10
    TIMEOUT_SECONDS: float = 30.0

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        max_in_flight: int | None = None,
    ) -> None:
        self.base_url = base_url or self.BASE_URL
        self.timeout_seconds = timeout_seconds or self.TIMEOUT_SECONDS
        self._client: httpx.AsyncClient | None = None
        self._semaphore = asyncio.Semaphore(max_in_flight or self.MAX_IN_FLIGHT)
        self.log = structlog.get_logger().bind(connector=self.SOURCE_NAME)

    async def __aenter__(self) -> "BaseConnector":
        """Create and configure the httpx async client."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout_seconds),
            headers={"Accept": "application/json"},
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
            ),
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        """Close the httpx async client if open."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the active httpx client.

        Raises:
            RuntimeError: If the client has not been initialized via __aenter__.
        """
        if self._client is None:
            raise RuntimeError(
                f"{self.SOURCE_NAME}: HTTP client not initialized. "
                "Use 'async with connector:' context manager."
            )
        return self._client

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        """Bounded GET returning the decoded JSON body.

        Args:
            url: URL path (relative to the base URL) or absolute URL.
            **kwargs: Additional arguments passed to httpx.AsyncClient.get.

        Raises:
            RateLimitError: If the API returns HTTP 429.
            TransientFetchError: On network errors, timeouts and HTTP errors.
            DataParsingError: If the body is not valid JSON.
        """
        async with self._semaphore:
            self.log.debug("http_request", url=url)
            try:
                response = await self.client.get(url, **kwargs)
            except httpx.TimeoutException as exc:
                raise TransientFetchError(
                    f"{self.SOURCE_NAME}: timeout fetching {url}"
                ) from exc
            except httpx.TransportError as exc:
                raise TransientFetchError(
                    f"{self.SOURCE_NAME}: transport error fetching {url}: {exc}"
                ) from exc

        if response.status_code == 429:
            raise RateLimitError(
                f"{self.SOURCE_NAME}: Rate limit exceeded (HTTP 429)"
            )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransientFetchError(
                f"{self.SOURCE_NAME}: HTTP {response.status_code} for {url}"
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise DataParsingError(
                f"{self.SOURCE_NAME}: invalid JSON body for {url}"
            ) from exc

    # ---------------------------------------------------------------------------
    # Abstract interface
    # ---------------------------------------------------------------------------
    @abc.abstractmethod
    async def fetch(
        self, settlement_date: date, settlement_period: int
    ) -> list[SettlementRecord]:
        """Fetch raw records for one settlement period of one date.

        Args:
            settlement_date: Settlement date.
            settlement_period: Period index, 1-based.

        Returns:
            Raw records; empty when nothing was accepted in the period.
        """
        ...
