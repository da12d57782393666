"""
Address Sync - Orchestrator.

============================================================
PURPOSE
============================================================
Runs one sync pass for an address:

    sync(address_hash) -> Address

Idempotent, safe to repeat, safe to run concurrently for
different addresses.

============================================================
PASS
============================================================
1. Validate the address (no I/O on invalid input)
2. Commit SYNCING + last_synced_at
3. Collect, under the pass deadline:
   - account, counters, contract, holdings, transactions and
     internal transactions concurrently
   - then token, validator deposits/withdrawals, price and
     risk score concurrently
4. Fold every StepResult through STEP_POLICIES
5. Apply all mutations synchronously in one session
6. Commit SYNCED

Nothing is awaited while a write transaction is open.

============================================================
OUTCOMES
============================================================
- account 404        → NOT_FOUND, no exception
- aborting failure   → FAILED, last_error = str(exc), re-raised
- deadline exceeded  → FAILED, SyncTimeoutError raised
- otherwise          → SYNCED

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional

from sqlalchemy.orm import Session, sessionmaker

from core.clock import ClockProtocol, SystemClock
from core.exceptions import SyncTimeoutError
from core.units import normalize_address
from address_sync import normalizer
from address_sync.aggregation import AggregationEngine
from address_sync.config import SyncConfig
from address_sync.ingestor import IngestionResult, TransactionIngestor
from address_sync.price_cache import PriceCache
from address_sync.risk import NullRiskProvider, RiskProvider
from address_sync.state_machine import SyncStateMachine
from address_sync.types import (
    STEP_POLICIES,
    FailurePolicy,
    NotFoundPolicy,
    StepOutcome,
    StepResult,
    SyncReport,
    SyncStatus,
    SyncStep,
)
from explorer_adapters.exceptions import NotFoundError
from explorer_adapters.models import AccountInfo
from explorer_adapters.providers.blockscout import BlockscoutClient
from storage.models.address import Address
from storage.repositories.address_repo import AddressRepository


logger = logging.getLogger(__name__)


# ============================================================
# COLLECTED PASS
# ============================================================

@dataclass
class CollectedPass:
    """Folded upstream results of one pass, ready to apply."""

    results: dict[SyncStep, StepResult] = field(default_factory=dict)
    skipped: set[SyncStep] = field(default_factory=set)

    def should_apply(self, step: SyncStep) -> bool:
        return step in self.results and step not in self.skipped

    def value(self, step: SyncStep) -> Any:
        result = self.results.get(step)
        if result is None or not result.ok:
            return None
        return result.value


# ============================================================
# ORCHESTRATOR
# ============================================================

class AddressSyncOrchestrator:
    """
    Coordinates fetch, normalization, ingestion and aggregation.

    Each call to ``sync`` uses its own session from the factory.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        explorer: BlockscoutClient,
        price_cache: Optional[PriceCache] = None,
        risk_provider: Optional[RiskProvider] = None,
        config: Optional[SyncConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._session_factory = session_factory
        self._explorer = explorer
        self._price_cache = price_cache
        self._risk_provider = risk_provider or NullRiskProvider()
        self._config = config or SyncConfig()
        self._clock = clock or SystemClock()
        self._state = SyncStateMachine(self._clock)
        self._reports: dict[str, SyncReport] = {}

    # =========================================================
    # PUBLIC API
    # =========================================================

    def report_for(self, address_hash: str) -> Optional[SyncReport]:
        """Report of the latest pass started for ``address_hash``."""
        return self._reports.get(normalize_address(address_hash))

    async def sync(self, address_hash: str) -> Address:
        """
        Synchronize one address with the explorer.

        Raises:
            InvalidAddressError: Malformed address, before any I/O
            SyncTimeoutError: The pass exceeded its deadline
            Exception: Any aborting failure, after it was recorded
        """
        address_str = normalize_address(address_hash)

        session = self._session_factory()
        try:
            addresses = AddressRepository(session)
            address = addresses.get_or_create(address_str)
            started_at = self._state.begin(address)
            addresses.commit()

            report = SyncReport(address=address_str, started_at=started_at)
            self._reports[address_str] = report
            logger.info(f"[{address_str}] Sync started")

            try:
                collected = await asyncio.wait_for(
                    self._collect(address_str, report),
                    timeout=self._config.sync_timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                error = SyncTimeoutError(address_str, self._config.sync_timeout_seconds)
                self._record_failure(session, address_str, error, report)
                raise error from e
            except Exception as e:
                self._record_failure(session, address_str, e, report)
                raise

            if collected is None:
                self._state.mark_not_found(address)
                addresses.commit()
                self._finish(report, SyncStatus.NOT_FOUND, address.last_error)
                logger.info(f"[{address_str}] Address not found on explorer")
                return self._detachable(address)

            try:
                self._apply(session, address, collected, report)
                self._state.complete(address)
                addresses.commit()
            except Exception as e:
                self._record_failure(session, address_str, e, report)
                raise

            self._finish(report, SyncStatus.SYNCED)
            logger.info(
                f"[{address_str}] Sync complete: "
                f"{report.transactions_created} new transactions, "
                f"skipped steps: {report.skipped_steps or 'none'}"
            )
            return self._detachable(address)
        finally:
            session.close()

    @staticmethod
    def _detachable(address: Address) -> Address:
        """Load relationships the caller may read once the session is closed."""
        address.contract_detail  # lazy load while still attached
        return address

    # =========================================================
    # COLLECT
    # =========================================================

    async def _run_step(self, step: SyncStep, call: Awaitable[Any]) -> StepResult:
        try:
            return StepResult.success(step, await call)
        except NotFoundError as e:
            return StepResult.not_found(step, e)
        except Exception as e:
            return StepResult.failure(step, e)

    async def _collect(self, address: str, report: SyncReport) -> Optional[CollectedPass]:
        """
        Read everything the pass needs. Returns None when the address
        does not exist upstream.

        Raises:
            Exception: The error of the first step whose policy aborts
        """
        limit = self._config.transaction_batch_limit
        collected = CollectedPass()

        first = await asyncio.gather(
            self._run_step(SyncStep.ACCOUNT, self._explorer.get_address(address)),
            self._run_step(SyncStep.COUNTERS, self._explorer.get_counters(address)),
            self._run_step(SyncStep.CONTRACT, self._explorer.get_smart_contract(address)),
            self._run_step(SyncStep.TOKEN_HOLDINGS, self._explorer.get_token_holdings(address)),
            self._run_step(SyncStep.TRANSACTIONS, self._explorer.get_transactions(address, limit)),
            self._run_step(
                SyncStep.INTERNAL_TRANSACTIONS,
                self._explorer.get_internal_transactions(address, limit),
            ),
        )
        for result in first:
            collected.results[result.step] = result

        account_result = collected.results[SyncStep.ACCOUNT]
        if self._is_terminal(account_result):
            report.steps[SyncStep.ACCOUNT] = account_result.outcome
            return None
        for result in first:
            self._fold(result, collected, report)

        account: AccountInfo = collected.value(SyncStep.ACCOUNT)
        second: list[Awaitable[StepResult]] = []

        if collected.value(SyncStep.CONTRACT) is not None:
            second.append(self._run_step(SyncStep.TOKEN, self._explorer.get_token(address)))

        validator = account.validator
        if validator is not None:
            if validator.index is not None:
                second.append(self._run_step(
                    SyncStep.VALIDATOR_DEPOSITS,
                    self._explorer.get_validator_deposits(str(validator.index)),
                ))
            second.append(self._run_step(
                SyncStep.VALIDATOR_WITHDRAWALS,
                self._explorer.get_withdrawals(address),
            ))

        if self._price_cache is not None:
            second.append(self._run_step(SyncStep.PRICE, self._price_cache.get()))

        second.append(self._run_step(SyncStep.RISK, self._risk_provider.score(address, account)))

        for result in await asyncio.gather(*second):
            collected.results[result.step] = result
            self._fold(result, collected, report)

        return collected

    @staticmethod
    def _is_terminal(result: StepResult) -> bool:
        policy = STEP_POLICIES[result.step]
        return (
            result.outcome == StepOutcome.NOT_FOUND
            and policy.on_not_found == NotFoundPolicy.TERMINAL
        )

    def _fold(self, result: StepResult, collected: CollectedPass, report: SyncReport) -> None:
        """Apply the step policy; raises the step error when the policy aborts."""
        report.steps[result.step] = result.outcome
        if result.ok:
            return

        policy = STEP_POLICIES[result.step]
        if result.outcome == StepOutcome.NOT_FOUND:
            if policy.on_not_found == NotFoundPolicy.ABSENT:
                return
            raise result.error

        if policy.on_failure == FailurePolicy.ABORT:
            raise result.error

        logger.warning(
            f"[{report.address}] Step {result.step.value} failed, keeping previous data: "
            f"{result.error}"
        )
        collected.skipped.add(result.step)
        report.skipped_steps.append(result.step.value)

    # =========================================================
    # APPLY
    # =========================================================

    def _apply(
        self,
        session: Session,
        address: Address,
        collected: CollectedPass,
        report: SyncReport,
    ) -> None:
        account: AccountInfo = collected.value(SyncStep.ACCOUNT)
        normalizer.apply_account(address, account)
        normalizer.apply_counters(address, collected.value(SyncStep.COUNTERS))

        # Applied after the account payload: the contract endpoint wins
        contract = collected.value(SyncStep.CONTRACT)
        if contract is None:
            normalizer.clear_contract(address)
        else:
            detail = normalizer.apply_contract(address, contract)
            if collected.should_apply(SyncStep.TOKEN):
                normalizer.apply_token(
                    detail,
                    collected.value(SyncStep.TOKEN),
                    contract.supported_interfaces,
                )

        if collected.should_apply(SyncStep.TOKEN_HOLDINGS):
            holdings = collected.value(SyncStep.TOKEN_HOLDINGS)
            if holdings is None:
                normalizer.clear_holdings(address)
            else:
                normalizer.apply_holdings(address, holdings)

        records = list(collected.value(SyncStep.TRANSACTIONS) or [])
        records.extend(collected.value(SyncStep.INTERNAL_TRANSACTIONS) or [])
        ingestion = TransactionIngestor(session).ingest(address, records)
        self._record_ingestion(report, ingestion)

        AggregationEngine(session).apply(address)

        normalizer.apply_validator(
            address,
            account.validator,
            self._beacon_count(collected, SyncStep.VALIDATOR_DEPOSITS),
            self._beacon_count(collected, SyncStep.VALIDATOR_WITHDRAWALS),
        )

        if collected.should_apply(SyncStep.PRICE):
            normalizer.apply_valuation(address, collected.value(SyncStep.PRICE))

        if collected.should_apply(SyncStep.RISK):
            address.risk_score = collected.value(SyncStep.RISK)

    @staticmethod
    def _beacon_count(collected: CollectedPass, step: SyncStep) -> Optional[int]:
        """Item count; 0 when upstream has no history; None when skipped."""
        if not collected.should_apply(step):
            return None
        items = collected.value(step)
        return len(items) if items is not None else 0

    @staticmethod
    def _record_ingestion(report: SyncReport, ingestion: IngestionResult) -> None:
        report.transactions_processed = ingestion.processed
        report.transactions_created = ingestion.created
        report.transactions_rejected = ingestion.rejected_count

    # =========================================================
    # OUTCOMES
    # =========================================================

    def _record_failure(
        self,
        session: Session,
        address_str: str,
        error: BaseException,
        report: SyncReport,
    ) -> None:
        """Roll back pass mutations, then durably record FAILED."""
        message = str(error)
        logger.error(f"[{address_str}] Sync failed: {type(error).__name__}: {message}")

        session.rollback()
        addresses = AddressRepository(session)
        address = addresses.get_by_address(address_str)
        if address is None:
            address = addresses.get_or_create(address_str)
            self._state.begin(address)
        self._state.fail(address, message)
        addresses.commit()
        self._finish(report, SyncStatus.FAILED, message)

    def _finish(self, report: SyncReport, status: SyncStatus, error: Optional[str] = None) -> None:
        report.status = status
        report.error = error
        report.finished_at = self._clock.now()
