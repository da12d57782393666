"""
Shared fixtures: in-memory database and a mocked explorer.
"""

from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

from explorer_adapters.exceptions import NotFoundError
from explorer_adapters.models import AccountInfo, AddressCounters
from explorer_adapters.providers.blockscout import BlockscoutClient
from storage.database import create_all_tables, create_database_engine, get_session_factory
from storage.repositories.address_repo import AddressRepository


ADDRESS = "0x" + "ab" * 20
OTHER = "0x" + "cd" * 20
THIRD = "0x" + "ef" * 20


# ============================================================
# PAYLOAD BUILDERS
# ============================================================

def account_payload(address: str = ADDRESS, **overrides: Any) -> dict[str, Any]:
    payload = {
        "hash": address,
        "is_contract": False,
        "is_scam": False,
        "coin_balance": "1000000000000000000",
        "exchange_rate": "2000.5",
        "block_number_balance_updated_at": 19000000,
        "has_logs": False,
        "has_tokens": True,
        "has_token_transfers": True,
        "public_tags": [],
        "metadata": None,
    }
    payload.update(overrides)
    return payload


def counters_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "transactions_count": "12",
        "token_transfers_count": "4",
        "gas_usage_count": "210000",
        "validations_count": "0",
    }
    payload.update(overrides)
    return payload


def tx_record(
    tx_hash: str,
    sender: str = ADDRESS,
    recipient: str = OTHER,
    value: str = "1000000000000000000",
    fee: Optional[str] = "21000000000000",
    timestamp: Optional[str] = "2024-01-01T00:00:00.000000Z",
    status: str = "ok",
    block: Optional[int] = 100,
    **extra: Any,
) -> dict[str, Any]:
    record = {
        "hash": tx_hash,
        "from": {"hash": sender},
        "to": {"hash": recipient},
        "value": value,
        "timestamp": timestamp,
        "status": status,
        "block_number": block,
    }
    if fee is not None:
        record["fee"] = {"type": "actual", "value": fee}
    record.update(extra)
    return record


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


# ============================================================
# DATABASE
# ============================================================

@pytest.fixture
def engine():
    engine = create_database_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def address_row(session):
    row = AddressRepository(session).get_or_create(ADDRESS)
    session.commit()
    return row


# ============================================================
# EXPLORER
# ============================================================

def not_found(path: str = "/") -> NotFoundError:
    return NotFoundError(message=f"Resource not found: {path}", adapter_name="blockscout")


@pytest.fixture
def explorer():
    """Blockscout client double answering for a plain EOA."""
    client = AsyncMock(spec=BlockscoutClient)
    client.get_address.return_value = AccountInfo.from_payload(account_payload())
    client.get_counters.return_value = AddressCounters.from_payload(counters_payload())
    client.get_smart_contract.side_effect = not_found("/smart-contracts")
    client.get_token.side_effect = not_found("/tokens")
    client.get_token_holdings.return_value = []
    client.get_transactions.return_value = []
    client.get_internal_transactions.return_value = []
    client.get_withdrawals.return_value = []
    client.get_validator_deposits.return_value = []
    return client
