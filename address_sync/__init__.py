"""
Address Sync Package.

============================================================
PURPOSE
============================================================
Keeps a canonical local record of an EVM address in step with a
Blockscout explorer: account data, contract metadata, holdings,
transaction history and derived aggregates.

============================================================
QUICK START
============================================================
    from address_sync import AddressSyncOrchestrator, SyncConfig
    from explorer_adapters import BlockscoutClient
    from storage.database import create_database_engine, get_session_factory

    engine = create_database_engine()
    async with BlockscoutClient() as explorer:
        orchestrator = AddressSyncOrchestrator(get_session_factory(engine), explorer)
        address = await orchestrator.sync("0x...")

============================================================
"""

from address_sync.aggregation import AggregateSnapshot, AggregationEngine
from address_sync.config import SyncConfig
from address_sync.ingestor import IngestionResult, TransactionIngestor
from address_sync.orchestrator import AddressSyncOrchestrator
from address_sync.price_cache import PriceCache
from address_sync.risk import FlagRiskProvider, NullRiskProvider, RiskProvider
from address_sync.state_machine import SyncStateMachine, TransitionGuard
from address_sync.types import (
    STEP_POLICIES,
    StepOutcome,
    StepResult,
    SyncReport,
    SyncStatus,
    SyncStep,
)
from address_sync.worker_pool import SyncWorkerPool


__all__ = [
    "AddressSyncOrchestrator",
    "SyncConfig",
    "SyncWorkerPool",
    "PriceCache",
    "RiskProvider",
    "NullRiskProvider",
    "FlagRiskProvider",
    "TransactionIngestor",
    "IngestionResult",
    "AggregationEngine",
    "AggregateSnapshot",
    "SyncStateMachine",
    "TransitionGuard",
    "SyncStatus",
    "SyncStep",
    "StepOutcome",
    "StepResult",
    "SyncReport",
    "STEP_POLICIES",
]
