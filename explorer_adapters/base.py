"""
Base Explorer Client - Typed GET against a JSON HTTP API.

All clients MUST:
- Bound every request with connect and read timeouts
- Map every failure onto the explorer error taxonomy
- Retry only transient failures (network, 5xx), never 404/429/4xx
- Leave "absent" semantics of a 404 to the caller
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from explorer_adapters.exceptions import (
    ApiError,
    ExplorerAdapterError,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitError,
)
from explorer_adapters.models import (
    AdapterHealth,
    AdapterIncident,
    AdapterStatus,
    PagedItems,
)


logger = logging.getLogger(__name__)


class BaseExplorerClient(ABC):
    """
    Abstract base class for upstream JSON API clients.

    Subclasses supply ``name`` and endpoint methods built on
    ``fetch()`` / ``fetch_paginated()``.

    Features:
    - Per-request read timeout override for heavy endpoints
    - Limited retries with exponential backoff
    - Health tracking and incident log
    - Owns its aiohttp session unless one is injected
    """

    # Configuration defaults
    DEFAULT_CONNECT_TIMEOUT = 5.0
    DEFAULT_READ_TIMEOUT = 10.0
    MAX_ATTEMPTS = 2
    RETRY_INITIAL_DELAY = 1.0
    RETRY_BACKOFF_BASE = 1.5
    MAX_PAGES = 50
    DEGRADED_THRESHOLD = 3
    UNAVAILABLE_THRESHOLD = 5
    USER_AGENT = "AddressSync/1.0"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        retry_initial_delay: float = RETRY_INITIAL_DELAY,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout
        self._max_attempts = max(1, max_attempts)
        self._retry_initial_delay = retry_initial_delay
        self._session = session
        self._owns_session = session is None

        # Health tracking
        self._health = AdapterHealth(
            status=AdapterStatus.UNKNOWN,
            last_check=datetime.now(timezone.utc),
        )

        # Incident log
        self._incidents: list[AdapterIncident] = []
        self._max_incidents = 100

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this client."""
        pass

    @property
    def base_url(self) -> str:
        return self._base_url

    async def fetch(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        read_timeout: Optional[float] = None,
    ) -> Any:
        """
        GET ``path`` relative to the base URL and decode the JSON body.

        Args:
            path: Endpoint path, e.g. ``/addresses/0x.../counters``
            params: Query parameters
            read_timeout: Override of the default read timeout

        Returns:
            Decoded JSON value

        Raises:
            NotFoundError: HTTP 404
            RateLimitError: HTTP 429
            ApiError: Any other HTTP status >= 400
            NetworkError: Transport failure or timeout
            ParseError: Body is not valid JSON
        """
        url = self._build_url(path)
        try:
            data = await self._fetch_with_retry(url, params, read_timeout)
        except NotFoundError:
            # A 404 is an answer, not an outage
            self._on_success()
            raise
        except ExplorerAdapterError as e:
            self._on_error(e, url)
            raise
        self._on_success()
        return data

    async def fetch_paginated(
        self,
        path: str,
        limit: int,
        params: Optional[dict[str, Any]] = None,
        read_timeout: Optional[float] = None,
    ) -> list[Any]:
        """
        Collect up to ``limit`` items from a paginated list endpoint.

        Follows ``next_page_params`` until the limit is reached or the
        upstream reports no further page.
        """
        base_params = dict(params or {})
        base_params.setdefault("limit", limit)
        page_params = dict(base_params)
        items: list[Any] = []

        for _ in range(self.MAX_PAGES):
            payload = await self.fetch(path, params=page_params, read_timeout=read_timeout)
            try:
                page = PagedItems.from_payload(payload)
            except ParseError as e:
                e.adapter_name = self.name
                e.request_url = self._build_url(path)
                raise
            items.extend(page.items)
            if len(items) >= limit or not page.items or not page.next_page_params:
                break
            page_params = {**base_params, **self._query_params(page.next_page_params)}

        return items[:limit]

    @staticmethod
    def _query_params(raw: dict[str, Any]) -> dict[str, str]:
        """Flatten upstream cursor values into query-string scalars."""
        params = {}
        for key, value in raw.items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            params[key] = str(value)
        return params

    async def _fetch_with_retry(
        self,
        url: str,
        params: Optional[dict[str, Any]],
        read_timeout: Optional[float],
    ) -> Any:
        """Fetch with limited retries for transient failures."""
        attempt = 0
        while True:
            try:
                self._health.requests_total += 1
                return await self._make_request(url, params, read_timeout)

            except (NetworkError, ApiError) as e:
                transient = isinstance(e, NetworkError) or e.is_server_error
                if not transient or attempt + 1 >= self._max_attempts:
                    raise

                wait_time = self._retry_initial_delay * (self.RETRY_BACKOFF_BASE ** attempt)
                logger.warning(
                    f"[{self.name}] Retry {attempt + 1}/{self._max_attempts - 1} "
                    f"in {wait_time:.1f}s: {e}"
                )
                await asyncio.sleep(wait_time)
                attempt += 1

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    def _build_url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    sock_connect=self._connect_timeout,
                    sock_read=self._read_timeout,
                ),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        return {
            "Accept": "application/json",
            "User-Agent": self.USER_AGENT,
        }

    async def _make_request(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        read_timeout: Optional[float] = None,
    ) -> Any:
        """Make one GET request and map the outcome onto the taxonomy."""
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(
            sock_connect=self._connect_timeout,
            sock_read=read_timeout or self._read_timeout,
        )

        start_time = time.monotonic()
        try:
            async with session.get(url, params=params, timeout=timeout) as response:
                self._health.latency_ms = (time.monotonic() - start_time) * 1000

                if response.status == 404:
                    raise NotFoundError(
                        message=f"Resource not found: {url}",
                        adapter_name=self.name,
                        request_url=url,
                    )

                if response.status == 429:
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        adapter_name=self.name,
                        request_url=url,
                        retry_after_seconds=self._parse_retry_after(response.headers),
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise ApiError(
                        message=f"HTTP {response.status}",
                        adapter_name=self.name,
                        request_url=url,
                        status_code=response.status,
                        response_body=body[:500],
                    )

                body = await response.text()

        except aiohttp.ClientError as e:
            raise NetworkError(
                message=f"Connection error: {e}",
                adapter_name=self.name,
                request_url=url,
                original_error=e,
            ) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(
                message="Request timed out",
                adapter_name=self.name,
                request_url=url,
                original_error=e,
            ) from e

        return self._decode_json(body, url)

    def _decode_json(self, body: str, url: str) -> Any:
        try:
            return json.loads(body)
        except ValueError as e:
            raise ParseError(
                message="Response body is not valid JSON",
                adapter_name=self.name,
                request_url=url,
                raw_data=body[:500],
                original_error=e,
            ) from e

    @staticmethod
    def _parse_retry_after(headers: Any) -> Optional[int]:
        retry_after = headers.get("Retry-After")
        if not retry_after:
            return None
        try:
            return int(retry_after)
        except ValueError:
            return None

    # ─────────────────────────────────────────────────────────────
    # Health & Error Tracking
    # ─────────────────────────────────────────────────────────────

    def _on_success(self) -> None:
        """Handle successful request."""
        self._health.last_check = datetime.now(timezone.utc)
        self._health.consecutive_failures = 0

        if self._health.status != AdapterStatus.HEALTHY:
            if self._health.status != AdapterStatus.UNKNOWN:
                logger.info(f"[{self.name}] Recovered to HEALTHY status")
            self._health.status = AdapterStatus.HEALTHY

    def _on_error(self, error: ExplorerAdapterError, url: Optional[str] = None) -> None:
        """Handle request error."""
        self._health.error_count += 1
        self._health.consecutive_failures += 1
        self._health.last_error = str(error)
        self._health.last_error_time = datetime.now(timezone.utc)

        if isinstance(error, RateLimitError):
            self._health.status = AdapterStatus.RATE_LIMITED
        elif self._health.consecutive_failures >= self.UNAVAILABLE_THRESHOLD:
            if self._health.status != AdapterStatus.UNAVAILABLE:
                self._health.status = AdapterStatus.UNAVAILABLE
                logger.error(f"[{self.name}] Marked UNAVAILABLE")
        elif self._health.consecutive_failures >= self.DEGRADED_THRESHOLD:
            if self._health.status != AdapterStatus.DEGRADED:
                self._health.status = AdapterStatus.DEGRADED
                logger.warning(f"[{self.name}] Marked DEGRADED")

        self._log_incident(error, url)

    def _log_incident(self, error: ExplorerAdapterError, url: Optional[str] = None) -> None:
        """Log an incident."""
        incident = AdapterIncident(
            adapter_name=self.name,
            incident_type=error.__class__.__name__,
            timestamp=datetime.now(timezone.utc),
            error_message=str(error),
            request_url=url,
        )

        self._incidents.append(incident)

        if len(self._incidents) > self._max_incidents:
            self._incidents = self._incidents[-self._max_incidents:]

        logger.warning(f"[{self.name}] Incident: {error}")

    def get_health(self) -> AdapterHealth:
        """Get current health status."""
        return self._health

    def get_incidents(self, limit: int = 10) -> list[AdapterIncident]:
        """Get recent incidents."""
        return self._incidents[-limit:]

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseExplorerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, status={self._health.status.value})>"
