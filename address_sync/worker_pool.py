"""
Address Sync - Worker Pool.

Runs many syncs concurrently on one event loop.

- At most ``max_concurrent`` passes in flight (asyncio.Semaphore)
- Duplicate input addresses are synced once
- Passes for the same address never overlap (per-address lock)
- Each address gets its own outcome; one failure never cancels
  the others
"""

import asyncio
import logging
from typing import Iterable, Union

from core.exceptions import InvalidAddressError
from core.units import normalize_address
from address_sync.orchestrator import AddressSyncOrchestrator
from storage.models.address import Address


logger = logging.getLogger(__name__)


SyncOutcome = Union[Address, Exception]


class SyncWorkerPool:
    """Bounded concurrent driver around an AddressSyncOrchestrator."""

    def __init__(self, orchestrator: AddressSyncOrchestrator, max_concurrent: int = 4) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._orchestrator = orchestrator
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def tracked_addresses(self) -> int:
        """Addresses with a pass running or queued."""
        return len(self._locks)

    def _claim_lock(self, address: str) -> asyncio.Lock:
        lock = self._locks.get(address)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[address] = lock
        self._lock_users[address] = self._lock_users.get(address, 0) + 1
        return lock

    def _release_lock(self, address: str) -> None:
        """Drop the lock once no other task holds or waits for it."""
        users = self._lock_users[address] - 1
        if users:
            self._lock_users[address] = users
        else:
            del self._lock_users[address]
            del self._locks[address]

    async def sync_one(self, address: str) -> Address:
        """Sync one address, waiting for any in-flight pass of the same address."""
        key = normalize_address(address)
        lock = self._claim_lock(key)
        try:
            async with lock:
                async with self._semaphore:
                    return await self._orchestrator.sync(key)
        finally:
            self._release_lock(key)

    async def _sync_outcome(self, address: str) -> SyncOutcome:
        try:
            return await self.sync_one(address)
        except Exception as e:
            return e

    async def sync_many(self, addresses: Iterable[str]) -> dict[str, SyncOutcome]:
        """
        Sync every address; returns address -> Address or the exception.

        Keys are canonical addresses; an input that is not a valid
        address is reported under its original string.
        """
        outcomes: dict[str, SyncOutcome] = {}
        unique: list[str] = []
        for raw in addresses:
            try:
                key = normalize_address(raw)
            except InvalidAddressError as e:
                outcomes[str(raw)] = e
                continue
            if key not in unique:
                unique.append(key)

        logger.info(f"[worker_pool] Syncing {len(unique)} addresses")
        results = await asyncio.gather(*(self._sync_outcome(key) for key in unique))
        outcomes.update(zip(unique, results))

        failed = sum(1 for result in results if isinstance(result, Exception))
        logger.info(f"[worker_pool] Done: {len(unique) - failed} succeeded, {failed} failed")
        return outcomes
