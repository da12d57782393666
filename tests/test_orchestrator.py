"""
Sync Orchestrator Tests.

============================================================
PURPOSE
============================================================
End-to-end sync passes against a mocked explorer and an
in-memory database.

TEST CATEGORIES:
- Outcomes: synced, not_found, failed, timeout
- Contract lifecycle
- Step policies: aborting vs skippable steps
- Idempotence
- Derived fields: valuation, risk, validator

Rows are always checked through a fresh session opened after the
pass finished.

============================================================
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import inspect

from address_sync.config import SyncConfig
from address_sync.orchestrator import AddressSyncOrchestrator
from address_sync.price_cache import PriceCache
from address_sync.risk import FlagRiskProvider
from address_sync.types import StepOutcome, SyncStatus, SyncStep
from core.clock import MockClock
from core.constants import NOT_FOUND_NOTE
from core.exceptions import InvalidAddressError, SyncTimeoutError
from explorer_adapters.exceptions import ApiError, RateLimitError
from explorer_adapters.models import AccountInfo, ContractInfo, TokenHolding, TokenInfo
from storage.models.address import Address, ContractDetail
from storage.repositories import AddressRepository, AddressTransactionRepository

from conftest import ADDRESS, OTHER, THIRD, account_payload, not_found, tx_hash, tx_record


START = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return MockClock(START)


@pytest.fixture
def orchestrator(session_factory, explorer, clock):
    return AddressSyncOrchestrator(session_factory, explorer, clock=clock)


def load(session_factory, address: str = ADDRESS):
    """Address row and its transaction count, read in a fresh session."""
    with session_factory() as session:
        row = AddressRepository(session).get_by_address(address)
        count = AddressTransactionRepository(session).count(row) if row is not None else 0
        detail_count = session.query(ContractDetail).count()
        return row, count, detail_count


VOLATILE_COLUMNS = {"last_synced_at", "updated_at"}


def columns(row) -> dict:
    return {
        attr.key: getattr(row, attr.key)
        for attr in inspect(row).mapper.column_attrs
        if attr.key not in VOLATILE_COLUMNS
    }


def persisted_state(session_factory, address: str = ADDRESS) -> dict:
    """Every stored column of the address, its contract detail and its transactions."""
    with session_factory() as session:
        row = AddressRepository(session).get_by_address(address)
        transactions = AddressTransactionRepository(session).list_involving(row)
        return {
            "address": columns(row),
            "contract_detail": columns(row.contract_detail) if row.contract_detail else None,
            "transactions": sorted(
                (columns(tx) for tx in transactions),
                key=lambda tx: (tx["tx_hash"], tx["internal_tx_index"]),
            ),
        }


def contract_info() -> ContractInfo:
    return ContractInfo.from_payload({
        "name": "Tether USD",
        "is_verified": True,
        "language": "solidity",
        "supported_interfaces": ["ERC-165"],
    })


def token_info() -> TokenInfo:
    return TokenInfo.from_payload({
        "type": "ERC-20",
        "name": "Tether USD",
        "symbol": "USDT",
        "decimals": "6",
        "total_supply": "5000000",
    })


# ============================================================
# OUTCOMES
# ============================================================

class TestOutcomes:
    """Tests for the terminal status of a pass."""

    @pytest.mark.asyncio
    async def test_eoa_synced(self, orchestrator, session_factory, explorer):
        explorer.get_transactions.return_value = [tx_record(tx_hash(1))]

        result = await orchestrator.sync(ADDRESS.upper().replace("0X", "0x"))

        assert isinstance(result, Address)
        row, count, detail_count = load(session_factory)
        assert row.sync_status == "synced"
        assert row.last_error is None
        assert row.native_balance == Decimal("1.0")
        assert row.transaction_count == 12
        assert row.is_contract is False
        assert row.total_value_sent == Decimal("1")
        assert count == 1
        assert detail_count == 0
        assert row.last_synced_at.replace(tzinfo=None) == START.replace(tzinfo=None)

        report = orchestrator.report_for(ADDRESS)
        assert report.status == SyncStatus.SYNCED
        assert report.transactions_created == 1
        assert report.steps[SyncStep.CONTRACT] == StepOutcome.NOT_FOUND
        assert report.skipped_steps == []

    @pytest.mark.asyncio
    async def test_not_found_is_not_an_error(self, orchestrator, session_factory, explorer):
        with session_factory() as session:
            row = AddressRepository(session).get_or_create(ADDRESS)
            row.is_contract = True
            session.commit()
        explorer.get_address.side_effect = not_found("/addresses")

        result = await orchestrator.sync(ADDRESS)

        assert result.sync_status == "not_found"
        row, _, _ = load(session_factory)
        assert row.sync_status == "not_found"
        assert row.last_error == NOT_FOUND_NOTE
        assert row.is_contract is True
        assert orchestrator.report_for(ADDRESS).status == SyncStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_returned_row_readable_after_first_pass_not_found(self, orchestrator, explorer):
        explorer.get_address.side_effect = not_found("/addresses")

        result = await orchestrator.sync(ADDRESS)

        assert result.sync_status == "not_found"
        assert result.contract_detail is None

    @pytest.mark.asyncio
    async def test_concurrent_passes_keep_their_own_reports(self, orchestrator, explorer):
        async def account(address):
            await asyncio.sleep(0)
            if address == OTHER:
                raise not_found("/addresses")
            return AccountInfo.from_payload(account_payload(address))

        explorer.get_address.side_effect = account

        await asyncio.gather(orchestrator.sync(ADDRESS), orchestrator.sync(OTHER))

        assert orchestrator.report_for(ADDRESS).status == SyncStatus.SYNCED
        assert orchestrator.report_for(OTHER).status == SyncStatus.NOT_FOUND
        assert orchestrator.report_for(OTHER).address == OTHER
        assert orchestrator.report_for(THIRD) is None

    @pytest.mark.asyncio
    async def test_aborting_failure_recorded_and_raised(self, orchestrator, session_factory, explorer):
        error = RateLimitError(message="Rate limit exceeded", adapter_name="blockscout", retry_after_seconds=7)
        explorer.get_counters.side_effect = error

        with pytest.raises(RateLimitError):
            await orchestrator.sync(ADDRESS)

        row, count, _ = load(session_factory)
        assert row.sync_status == "failed"
        assert row.last_error == str(error)
        assert count == 0
        # Nothing from the failed pass is persisted
        assert row.native_balance is None

    @pytest.mark.asyncio
    async def test_unparseable_balance_fails_pass(self, orchestrator, session_factory, explorer):
        explorer.get_address.return_value = AccountInfo.from_payload(account_payload(coin_balance="lots"))
        explorer.get_transactions.return_value = [tx_record(tx_hash(1))]

        with pytest.raises(ValueError):
            await orchestrator.sync(ADDRESS)

        row, count, _ = load(session_factory)
        assert row.sync_status == "failed"
        assert count == 0

    @pytest.mark.asyncio
    async def test_timeout(self, session_factory, explorer, clock):
        async def slow(address):
            await asyncio.sleep(5)

        explorer.get_address.side_effect = slow
        orchestrator = AddressSyncOrchestrator(
            session_factory,
            explorer,
            config=SyncConfig(sync_timeout_seconds=0.05),
            clock=clock,
        )

        with pytest.raises(SyncTimeoutError):
            await orchestrator.sync(ADDRESS)

        row, _, _ = load(session_factory)
        assert row.sync_status == "failed"
        assert "deadline" in row.last_error

    @pytest.mark.asyncio
    async def test_invalid_address_before_any_io(self, orchestrator, session_factory, explorer):
        with pytest.raises(InvalidAddressError):
            await orchestrator.sync("0x1234")

        explorer.get_address.assert_not_called()
        with session_factory() as session:
            assert AddressRepository(session).count() == 0

    @pytest.mark.asyncio
    async def test_failed_address_recovers(self, orchestrator, session_factory, explorer):
        explorer.get_counters.side_effect = ApiError(message="Bad gateway", status_code=502)
        with pytest.raises(ApiError):
            await orchestrator.sync(ADDRESS)

        explorer.get_counters.side_effect = None
        await orchestrator.sync(ADDRESS)

        row, _, _ = load(session_factory)
        assert row.sync_status == "synced"
        assert row.last_error is None


# ============================================================
# CONTRACTS
# ============================================================

class TestContractLifecycle:
    """Tests for contract detail creation and removal."""

    @pytest.mark.asyncio
    async def test_contract_with_token(self, orchestrator, session_factory, explorer):
        explorer.get_smart_contract.side_effect = None
        explorer.get_smart_contract.return_value = contract_info()
        explorer.get_token.side_effect = None
        explorer.get_token.return_value = token_info()

        result = await orchestrator.sync(ADDRESS)

        assert result.contract_detail.token_symbol == "USDT"
        with session_factory() as session:
            row = AddressRepository(session).get_by_address(ADDRESS)
            detail = row.contract_detail
            assert row.is_contract is True
            assert detail.name == "Tether USD"
            assert detail.token_symbol == "USDT"
            assert detail.token_total_supply == Decimal("5")
            assert detail.supported_erc_standards == ["ERC-165", "ERC-20"]
            assert detail.is_erc20 is True
        explorer.get_token.assert_awaited_once_with(ADDRESS)

    @pytest.mark.asyncio
    async def test_contract_404_clears_detail(self, orchestrator, session_factory, explorer):
        explorer.get_smart_contract.side_effect = None
        explorer.get_smart_contract.return_value = contract_info()
        await orchestrator.sync(ADDRESS)
        assert load(session_factory)[2] == 1

        explorer.get_smart_contract.side_effect = not_found("/smart-contracts")
        explorer.get_address.return_value = AccountInfo.from_payload(account_payload(is_contract=True))
        await orchestrator.sync(ADDRESS)

        row, _, detail_count = load(session_factory)
        assert row.sync_status == "synced"
        assert row.is_contract is False
        assert detail_count == 0

    @pytest.mark.asyncio
    async def test_token_not_requested_for_eoa(self, orchestrator, explorer):
        await orchestrator.sync(ADDRESS)
        explorer.get_token.assert_not_called()

    @pytest.mark.asyncio
    async def test_contract_failure_aborts(self, orchestrator, session_factory, explorer):
        explorer.get_smart_contract.side_effect = ApiError(message="Internal error", status_code=500)

        with pytest.raises(ApiError):
            await orchestrator.sync(ADDRESS)

        assert load(session_factory)[0].sync_status == "failed"


# ============================================================
# STEP POLICIES
# ============================================================

class TestSkippableSteps:
    """Tests for steps whose failure keeps previous data."""

    @pytest.mark.asyncio
    async def test_holdings_failure_keeps_previous(self, orchestrator, session_factory, explorer):
        explorer.get_token_holdings.return_value = [TokenHolding.from_payload({
            "token": {"address_hash": OTHER, "type": "ERC-20", "symbol": "DAI", "decimals": "18"},
            "value": "3000000000000000000",
        })]
        await orchestrator.sync(ADDRESS)

        explorer.get_token_holdings.side_effect = ApiError(message="Gateway timeout", status_code=504)
        await orchestrator.sync(ADDRESS)

        row, _, _ = load(session_factory)
        assert row.sync_status == "synced"
        assert row.fungible_token_holdings[OTHER]["balance"] == "3.000000000000000000"
        assert orchestrator.report_for(ADDRESS).skipped_steps == ["token_holdings"]

    @pytest.mark.asyncio
    async def test_internal_transactions_failure_skipped(self, orchestrator, session_factory, explorer):
        explorer.get_transactions.return_value = [tx_record(tx_hash(1))]
        explorer.get_internal_transactions.side_effect = ApiError(message="Bad gateway", status_code=502)

        await orchestrator.sync(ADDRESS)

        row, count, _ = load(session_factory)
        assert row.sync_status == "synced"
        assert count == 1
        assert orchestrator.report_for(ADDRESS).steps[SyncStep.INTERNAL_TRANSACTIONS] == StepOutcome.FAILURE

    @pytest.mark.asyncio
    async def test_transactions_failure_aborts(self, orchestrator, session_factory, explorer):
        explorer.get_transactions.side_effect = ApiError(message="Bad gateway", status_code=502)

        with pytest.raises(ApiError):
            await orchestrator.sync(ADDRESS)

        assert load(session_factory)[0].sync_status == "failed"


# ============================================================
# IDEMPOTENCE
# ============================================================

class TestIdempotence:
    """Repeating a pass against unchanged upstream data changes nothing."""

    @pytest.mark.asyncio
    async def test_repeat_pass(self, orchestrator, session_factory, explorer):
        explorer.get_transactions.return_value = [
            tx_record(tx_hash(1), nonce=0),
            tx_record(tx_hash(2), sender=OTHER, recipient=ADDRESS, timestamp="2024-01-02T00:00:00Z"),
        ]
        explorer.get_internal_transactions.return_value = [
            {"transaction_hash": tx_hash(2), "index": 1, "from": {"hash": OTHER}, "to": {"hash": ADDRESS},
             "value": "250000000000000000", "success": True, "timestamp": "2024-01-02T00:00:00Z"},
        ]

        await orchestrator.sync(ADDRESS)
        first = persisted_state(session_factory)
        await orchestrator.sync(ADDRESS)
        second = persisted_state(session_factory)

        assert first == second
        assert len(second["transactions"]) == 3
        assert orchestrator.report_for(ADDRESS).transactions_created == 0
        assert second["address"]["total_value_received"] == Decimal("1.25")
        assert second["address"]["nonce"] == 0

    @pytest.mark.asyncio
    async def test_repeat_pass_for_contract(self, orchestrator, session_factory, explorer):
        explorer.get_smart_contract.side_effect = None
        explorer.get_smart_contract.return_value = contract_info()
        explorer.get_token.side_effect = None
        explorer.get_token.return_value = token_info()
        explorer.get_token_holdings.return_value = [TokenHolding.from_payload({
            "token": {"address_hash": OTHER, "type": "ERC-20", "symbol": "DAI", "decimals": "18"},
            "value": "3000000000000000000",
        })]

        await orchestrator.sync(ADDRESS)
        first = persisted_state(session_factory)
        await orchestrator.sync(ADDRESS)
        second = persisted_state(session_factory)

        assert first == second
        assert second["contract_detail"]["token_symbol"] == "USDT"


# ============================================================
# DERIVED FIELDS
# ============================================================

class TestDerivedFields:
    """Tests for valuation, risk and validator data."""

    @pytest.mark.asyncio
    async def test_usd_valuation(self, session_factory, explorer, clock):
        async def price():
            return Decimal("3000.5")

        orchestrator = AddressSyncOrchestrator(
            session_factory, explorer, price_cache=PriceCache(price, clock=clock), clock=clock,
        )
        await orchestrator.sync(ADDRESS)

        assert load(session_factory)[0].total_value_usd == Decimal("3000.5000")

    @pytest.mark.asyncio
    async def test_price_failure_keeps_previous_value(self, session_factory, explorer, clock):
        answers = [Decimal("2000"), RuntimeError("price api down")]

        async def price():
            answer = answers.pop(0)
            if isinstance(answer, Exception):
                raise answer
            return answer

        first = AddressSyncOrchestrator(
            session_factory, explorer, price_cache=PriceCache(price, clock=clock), clock=clock,
        )
        await first.sync(ADDRESS)
        # A cold cache has no stale value to serve
        orchestrator = AddressSyncOrchestrator(
            session_factory, explorer, price_cache=PriceCache(price, clock=clock), clock=clock,
        )
        await orchestrator.sync(ADDRESS)

        row, _, _ = load(session_factory)
        assert row.sync_status == "synced"
        assert row.total_value_usd == Decimal("2000.0000")
        assert "price" in orchestrator.report_for(ADDRESS).skipped_steps

    @pytest.mark.asyncio
    async def test_risk_score(self, session_factory, explorer, clock):
        explorer.get_address.return_value = AccountInfo.from_payload(
            account_payload(public_tags=[{"display_name": "Fake_Phishing123"}])
        )
        orchestrator = AddressSyncOrchestrator(
            session_factory, explorer, risk_provider=FlagRiskProvider(), clock=clock,
        )
        await orchestrator.sync(ADDRESS)

        row, _, _ = load(session_factory)
        assert row.risk_score == 75
        assert row.labels == ["Fake_Phishing123"]

    @pytest.mark.asyncio
    async def test_validator_counts(self, orchestrator, session_factory, explorer):
        explorer.get_address.return_value = AccountInfo.from_payload(
            account_payload(validator_info={"index": 42, "status": "active_ongoing"})
        )
        explorer.get_validator_deposits.return_value = [{"index": 1}]
        explorer.get_withdrawals.return_value = [{"index": n} for n in range(3)]

        await orchestrator.sync(ADDRESS)

        row, _, _ = load(session_factory)
        assert row.validator_index == 42
        assert row.validator_status == "active_ongoing"
        assert row.beacon_deposits_count == 1
        assert row.beacon_withdrawals_count == 3
        explorer.get_validator_deposits.assert_awaited_once_with("42")

    @pytest.mark.asyncio
    async def test_no_validator_no_beacon_calls(self, orchestrator, explorer):
        await orchestrator.sync(ADDRESS)
        explorer.get_validator_deposits.assert_not_called()
        explorer.get_withdrawals.assert_not_called()
