"""
Worker Pool Tests.
"""

import asyncio

import pytest

from address_sync.orchestrator import AddressSyncOrchestrator
from address_sync.worker_pool import SyncWorkerPool
from core.exceptions import InvalidAddressError
from explorer_adapters.exceptions import ApiError
from storage.models.address import Address

from conftest import ADDRESS, OTHER, THIRD


class RecordingOrchestrator:
    """Orchestrator double that tracks concurrency per address."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.calls = []
        self.in_flight = 0
        self.peak = 0
        self.active = set()
        self.overlapped = False

    async def sync(self, address):
        self.calls.append(address)
        if address in self.active:
            self.overlapped = True
        self.active.add(address)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if address in self.fail_for:
                raise ApiError(message="Bad gateway", status_code=502)
            return Address(address=address, sync_status="synced")
        finally:
            self.in_flight -= 1
            self.active.discard(address)


class TestSyncWorkerPool:

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self):
        orchestrator = RecordingOrchestrator()
        pool = SyncWorkerPool(orchestrator, max_concurrent=2)
        addresses = ["0x" + f"{n:040x}" for n in range(6)]

        outcomes = await pool.sync_many(addresses)

        assert len(outcomes) == 6
        assert orchestrator.peak == 2

    @pytest.mark.asyncio
    async def test_duplicates_synced_once(self):
        orchestrator = RecordingOrchestrator()
        pool = SyncWorkerPool(orchestrator)

        outcomes = await pool.sync_many([ADDRESS, ADDRESS.upper().replace("0X", "0x"), OTHER])

        assert sorted(orchestrator.calls) == sorted([ADDRESS, OTHER])
        assert set(outcomes) == {ADDRESS, OTHER}

    @pytest.mark.asyncio
    async def test_failures_isolated(self):
        orchestrator = RecordingOrchestrator(fail_for={OTHER})
        pool = SyncWorkerPool(orchestrator)

        outcomes = await pool.sync_many([ADDRESS, OTHER, THIRD, "not-an-address"])

        assert isinstance(outcomes[ADDRESS], Address)
        assert isinstance(outcomes[THIRD], Address)
        assert isinstance(outcomes[OTHER], ApiError)
        assert isinstance(outcomes["not-an-address"], InvalidAddressError)
        assert "not-an-address" not in orchestrator.calls

    @pytest.mark.asyncio
    async def test_same_address_never_overlaps(self):
        orchestrator = RecordingOrchestrator()
        pool = SyncWorkerPool(orchestrator, max_concurrent=4)

        await asyncio.gather(*(pool.sync_one(ADDRESS) for _ in range(3)))

        assert len(orchestrator.calls) == 3
        assert orchestrator.overlapped is False

    @pytest.mark.asyncio
    async def test_locks_released_after_passes(self):
        orchestrator = RecordingOrchestrator(fail_for={OTHER})
        pool = SyncWorkerPool(orchestrator, max_concurrent=1)

        queued = [asyncio.ensure_future(pool.sync_one(ADDRESS)) for _ in range(3)]
        queued.append(asyncio.ensure_future(pool.sync_one(OTHER)))
        await asyncio.sleep(0)
        assert pool.tracked_addresses == 2

        await asyncio.gather(*queued, return_exceptions=True)

        assert pool.tracked_addresses == 0
        assert orchestrator.overlapped is False

    @pytest.mark.asyncio
    async def test_with_real_orchestrator(self, session_factory, explorer):
        pool = SyncWorkerPool(AddressSyncOrchestrator(session_factory, explorer), max_concurrent=2)

        outcomes = await pool.sync_many([ADDRESS, OTHER])

        assert {address: row.sync_status for address, row in outcomes.items()} == {
            ADDRESS: "synced",
            OTHER: "synced",
        }

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            SyncWorkerPool(RecordingOrchestrator(), max_concurrent=0)
