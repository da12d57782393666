"""
Address Sync - Price Cache.

Short-TTL read-through cache for the native coin USD price, shared
by every sync running in the process.

- One refresh at a time (asyncio.Lock)
- Readers arriving during a refresh get the stale value when there
  is one, instead of waiting
- A failed refresh serves the stale value if one exists, otherwise
  the error propagates
"""

import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from core.clock import ClockProtocol, SystemClock


logger = logging.getLogger(__name__)


PriceFetcher = Callable[[], Awaitable[Optional[Decimal]]]


class PriceCache:
    """Single-value TTL cache around an async price fetcher."""

    def __init__(
        self,
        fetcher: PriceFetcher,
        ttl_seconds: float = 60.0,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must not be negative")
        self._fetcher = fetcher
        self._ttl = ttl_seconds
        self._clock = clock or SystemClock()
        self._lock = asyncio.Lock()
        self._value: Optional[Decimal] = None
        self._fetched_at: Optional[float] = None

    @property
    def value(self) -> Optional[Decimal]:
        """Last fetched value, fresh or not."""
        return self._value

    def _is_fresh(self) -> bool:
        if self._fetched_at is None:
            return False
        return self._clock.monotonic() - self._fetched_at < self._ttl

    def invalidate(self) -> None:
        self._fetched_at = None

    async def get(self) -> Optional[Decimal]:
        if self._is_fresh():
            return self._value

        if self._lock.locked() and self._fetched_at is not None:
            return self._value

        async with self._lock:
            # Another task may have refreshed while we waited
            if self._is_fresh():
                return self._value

            try:
                value = await self._fetcher()
            except Exception as e:
                if self._fetched_at is None:
                    raise
                logger.warning(f"[price_cache] Refresh failed, serving stale price: {e}")
                return self._value

            self._value = value
            self._fetched_at = self._clock.monotonic()
            logger.debug(f"[price_cache] Refreshed price: {value}")
            return value
