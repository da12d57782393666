"""
Data Normalizer Tests.

Tests cover:
- Account mapping, labels, provisional counters
- Contract/token mapping and the standards flags
- Holdings classification
- Validator fields and USD valuation
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from address_sync import normalizer
from explorer_adapters.models import (
    AccountInfo,
    AddressCounters,
    ContractInfo,
    TokenHolding,
    TokenInfo,
    ValidatorInfo,
)
from storage.models.address import Address

from conftest import ADDRESS, account_payload


def fresh_address() -> Address:
    return Address(address=ADDRESS, sync_status="syncing", labels=[], sanctioned_by=[])


def holding(address: str, token_type: str, value=None, token_id=None, decimals=None, name="Tok"):
    payload = {
        "token": {"address_hash": address, "type": token_type, "name": name, "symbol": "T", "decimals": decimals},
        "value": value,
    }
    if token_id is not None:
        payload["token_id"] = token_id
    return TokenHolding.from_payload(payload)


# =============================================================
# TEST: parse_timestamp
# =============================================================

class TestParseTimestamp:

    def test_zulu_to_aware_utc(self):
        parsed = normalizer.parse_timestamp("2024-03-01T12:00:00.000000Z")
        assert parsed == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)

    def test_offset_converted(self):
        parsed = normalizer.parse_timestamp("2024-03-01T14:00:00+02:00")
        assert parsed == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc

    def test_missing_is_none(self):
        assert normalizer.parse_timestamp(None) is None
        assert normalizer.parse_timestamp("") is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            normalizer.parse_timestamp("yesterday")

    def test_out_of_range_after_utc_shift_raises_value_error(self):
        with pytest.raises(ValueError):
            normalizer.parse_timestamp("9999-12-31T23:59:59-14:00")


# =============================================================
# TEST: Account
# =============================================================

class TestApplyAccount:

    def test_balance_is_exact_major_units(self):
        """1e18 wei becomes 1.0 native."""
        address = fresh_address()
        normalizer.apply_account(address, AccountInfo.from_payload(account_payload()))
        assert address.native_balance == Decimal("1.0")
        assert address.exchange_rate == Decimal("2000.5")

    def test_labels_union_deduplicated_case_preserving(self):
        account = AccountInfo.from_payload(account_payload(
            public_tags=[{"display_name": "Binance"}, "Exchange"],
            metadata={"tags": [{"name": "exchange"}, {"name": "Binance"}, {"name": "Hot"}]},
        ))
        address = fresh_address()
        address.labels = ["stale"]
        normalizer.apply_account(address, account)
        assert address.labels == ["Binance", "Exchange", "exchange", "Hot"]

    def test_out_of_range_last_seen_is_dropped(self):
        address = fresh_address()
        normalizer.apply_account(address, AccountInfo.from_payload(
            account_payload(last_seen_at="9999-12-31T23:59:59-14:00")
        ))
        assert address.last_seen_at is None
        assert address.native_balance == Decimal("1.0")

    def test_counters_reset_then_overwritten(self):
        address = fresh_address()
        address.transaction_count = 99
        normalizer.apply_account(address, AccountInfo.from_payload(account_payload()))
        assert address.transaction_count is None

        normalizer.apply_counters(address, AddressCounters.from_payload({
            "transactions_count": "5",
            "token_transfers_count": "9",
            "erc20_transfers_count": "2",
            "gas_usage_count": "42000",
        }))
        assert address.transaction_count == 5
        assert address.token_transfers_count == 9
        assert address.erc20_transfer_count == 2
        assert address.erc721_transfer_count is None
        assert address.total_gas_used == Decimal(42000)

    def test_unparseable_balance_raises(self):
        address = fresh_address()
        with pytest.raises(ValueError):
            normalizer.apply_account(address, AccountInfo.from_payload(account_payload(coin_balance="lots")))


# =============================================================
# TEST: Contract and token
# =============================================================

class TestContract:

    def test_contract_wins_over_account(self):
        address = fresh_address()
        normalizer.apply_account(address, AccountInfo.from_payload(account_payload(is_contract=False)))
        detail = normalizer.apply_contract(address, ContractInfo.from_payload({
            "name": "Vault",
            "language": "Vyper",
            "supported_interfaces": ["ERC-2981"],
        }))
        assert address.is_contract is True
        assert address.contract_detail is detail
        assert detail.is_vyper_contract is True
        assert detail.is_erc2981 is True
        assert detail.is_erc20 is False

    def test_clear_contract_drops_detail(self):
        address = fresh_address()
        normalizer.apply_contract(address, ContractInfo.from_payload({"name": "X"}))
        normalizer.clear_contract(address)
        assert address.is_contract is False
        assert address.contract_detail is None

    def test_smart_wallet_fields_copied(self):
        address = fresh_address()
        normalizer.apply_contract(address, ContractInfo.from_payload({
            "is_smart_wallet": True,
            "entry_point_address": "0xEP",
        }))
        assert address.is_smart_wallet is True
        assert address.entry_point_address == "0xep"

    def test_token_adds_type_to_standards(self):
        address = fresh_address()
        detail = normalizer.apply_contract(address, ContractInfo.from_payload({"supported_interfaces": ["ERC-165"]}))
        token = TokenInfo.from_payload({
            "type": "ERC-20",
            "name": "USD Coin",
            "symbol": "USDC",
            "decimals": "6",
            "total_supply": "1000000000",
            "circulating_market_cap": "123.45",
        })
        normalizer.apply_token(detail, token, ["ERC-165"])

        assert detail.supported_erc_standards == ["ERC-165", "ERC-20"]
        assert detail.is_erc20 is True
        assert detail.token_total_supply == Decimal("1000")
        assert detail.circulating_market_cap == Decimal("123.45")

    def test_absent_token_clears_fields(self):
        address = fresh_address()
        detail = normalizer.apply_contract(address, ContractInfo.from_payload({}))
        normalizer.apply_token(detail, TokenInfo.from_payload({"type": "ERC-721", "name": "Old"}), [])
        normalizer.apply_token(detail, None, [])
        assert detail.token_name is None
        assert detail.token_type is None
        assert detail.is_erc721 is False


# =============================================================
# TEST: Holdings
# =============================================================

class TestHoldings:

    def test_classification(self):
        address = fresh_address()
        normalizer.apply_holdings(address, [
            holding("0xaaa", "ERC-20", value="2500000", decimals=6, name="USDC"),
            holding("0xbbb", "ERC-721", token_id="1"),
            holding("0xbbb", "ERC-721", token_id="2"),
            holding("0xbbb", "ERC-721", token_id="2"),
            holding("0xccc", "ERC-1155", value="3", token_id="9"),
            holding("0xddd", "ERC-404", value="10", token_id="4"),
            holding("0xeee", "ERC-7984", value="10"),
        ])

        assert address.fungible_token_holdings["0xaaa"] == {
            "name": "USDC", "symbol": "T", "balance": "2.500000", "standard": "ERC-20",
        }
        assert [t["id"] for t in address.non_fungible_token_holdings["0xbbb"]["tokens"]] == ["1", "2"]
        assert address.non_fungible_token_holdings["0xccc"]["tokens"] == [{"id": "9", "value": "3"}]
        # Unknown types: instance id decides
        assert "0xddd" in address.non_fungible_token_holdings
        assert address.fungible_token_holdings["0xeee"]["balance"] == "0.000000000000000010"

    def test_last_write_wins_for_fungible(self):
        address = fresh_address()
        normalizer.apply_holdings(address, [
            holding("0xaaa", "ERC-20", value="1", decimals=0),
            holding("0xaaa", "ERC-20", value="2", decimals=0),
        ])
        assert address.fungible_token_holdings["0xaaa"]["balance"] == "2"


# =============================================================
# TEST: Validator and valuation
# =============================================================

class TestValidatorAndValuation:

    def test_no_validator_nulls_fields(self):
        address = fresh_address()
        address.validator_index = 5
        address.beacon_deposits_count = 2
        normalizer.apply_validator(address, None, 3, 4)
        assert address.validator_index is None
        assert address.beacon_deposits_count is None

    def test_validator_counts(self):
        address = fresh_address()
        normalizer.apply_validator(address, ValidatorInfo(index=7, status="active"), 0, 12)
        assert address.validator_index == 7
        assert address.beacon_deposits_count == 0
        assert address.beacon_withdrawals_count == 12

    def test_usd_value_quantized(self):
        address = fresh_address()
        address.native_balance = Decimal("1.5")
        normalizer.apply_valuation(address, Decimal("3000.123456"))
        assert address.total_value_usd == Decimal("4500.1852")

    def test_missing_price_clears_value(self):
        address = fresh_address()
        address.total_value_usd = Decimal("1")
        normalizer.apply_valuation(address, None)
        assert address.total_value_usd is None
