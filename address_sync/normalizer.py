"""
Address Sync - Data Normalizer.

============================================================
PURPOSE
============================================================
Maps typed upstream payloads onto the canonical Address and
ContractDetail records.

Every function here is synchronous and only mutates ORM objects;
the orchestrator calls them after all upstream reads completed.

============================================================
RULES
============================================================
- Amounts go through core.units, never float
- Account labels: public tags plus metadata tags, deduplicated,
  case-preserving, first occurrence wins
- Counters reset to None on account apply, then overwritten by
  the counters payload
- The contract endpoint decides is_contract
- Holdings are classified by token type; unknown types by the
  presence of an instance id

============================================================
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Optional

from core.constants import NATIVE_DECIMALS, USD_QUANTUM
from core.units import to_major_units
from explorer_adapters.models import (
    AccountInfo,
    AddressCounters,
    ContractInfo,
    TokenHolding,
    TokenInfo,
    ValidatorInfo,
)
from storage.models.address import Address, ContractDetail


logger = logging.getLogger(__name__)


FUNGIBLE_TYPES = {"ERC-20"}
NON_FUNGIBLE_TYPES = {"ERC-721", "ERC-1155"}

# Standard name -> ContractDetail flag column
ERC_FLAGS: dict[str, str] = {
    "ERC-20": "is_erc20",
    "ERC-223": "is_erc223",
    "ERC-721": "is_erc721",
    "ERC-777": "is_erc777",
    "ERC-1155": "is_erc1155",
    "ERC-2981": "is_erc2981",
    "ERC-3643": "is_erc3643",
    "ERC-404": "is_erc404",
    "ERC-6551": "is_erc6551",
    "ERC-6900": "is_erc6900",
    "ERC-7828": "is_erc7828",
    "ERC-7861": "is_erc7861",
    "ERC-7878": "is_erc7878",
    "ERC-7902": "is_erc7902",
    "ERC-7920": "is_erc7920",
    "ERC-7930": "is_erc7930",
    "ERC-7943": "is_erc7943",
}

_COUNTER_FIELDS = (
    "transaction_count",
    "failed_transaction_count",
    "internal_transaction_count",
    "token_transfers_count",
    "erc20_transfer_count",
    "erc721_transfer_count",
    "erc1155_transfer_count",
    "user_operations_count",
)


# ============================================================
# VALUE HELPERS
# ============================================================

def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    None or "" gives None. Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not an ISO-8601 string
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"Timestamp is not a string: {value!r}")
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except OverflowError as e:
        # UTC shift past datetime.max / datetime.min
        raise ValueError(f"Timestamp out of range: {value!r}") from e


def _timestamp_or_none(value: Any, field_name: str) -> Optional[datetime]:
    try:
        return parse_timestamp(value)
    except ValueError:
        logger.warning(f"[normalizer] Ignoring unparseable {field_name}: {value!r}")
        return None


def _decimal_or_none(value: Optional[str]) -> Optional[Decimal]:
    """Plain decimal string (prices, market caps, gas totals)."""
    if value is None or value == "":
        return None
    try:
        result = Decimal(value)
    except InvalidOperation:
        logger.warning(f"[normalizer] Ignoring non-decimal value: {value!r}")
        return None
    return result if result.is_finite() else None


def _major_or_none(value: Optional[str], decimals: int = NATIVE_DECIMALS) -> Optional[Decimal]:
    if value is None:
        return None
    return to_major_units(value, decimals)


def merge_labels(existing: Iterable[str], new: Iterable[str]) -> list[str]:
    """Union preserving first-seen order and case."""
    merged: list[str] = []
    for label in list(existing) + list(new):
        if label and label not in merged:
            merged.append(label)
    return merged


# ============================================================
# ACCOUNT
# ============================================================

def apply_account(address: Address, account: AccountInfo) -> None:
    """
    Apply the primary account payload.

    Raises:
        ValueError: If the coin balance is not an integer amount
    """
    if account.is_contract is not None:
        address.is_contract = account.is_contract
    address.is_scam = account.is_scam

    address.native_balance = to_major_units(account.coin_balance)
    address.balance_updated_at_block = account.block_number_balance_updated_at
    address.staked_balance = _major_or_none(account.staked_balance)
    address.staked_balance_updated_at_block = account.staked_balance_updated_at_block
    address.exchange_rate = _decimal_or_none(account.exchange_rate)
    address.historical_balances = account.historical_balances
    address.historical_token_balances = account.historical_token_balances

    address.has_logs = account.has_logs
    address.has_token_transfers = account.has_token_transfers
    address.has_tokens = account.has_tokens
    address.has_beacon_chain_withdrawals = account.has_beacon_chain_withdrawals

    address.ens_name = account.ens_name
    address.ens_avatar_url = account.ens_avatar_url
    address.ens_records = account.ens_records
    address.labels = merge_labels([], account.labels)
    address.sanctioned_by = list(account.sanctioned_by)

    address.is_smart_wallet = account.is_smart_wallet
    address.entry_point_address = account.entry_point_address
    address.paymaster_address = account.paymaster_address
    address.bundler_address = account.bundler_address
    address.supports_eip7702 = account.supports_eip7702
    address.creator_address = account.creator_address
    address.creation_transaction_hash = account.creation_transaction_hash
    address.creation_method = account.creation_method
    address.init_code_hash = account.init_code_hash

    address.mined_blocks_count = account.mined_blocks_count
    address.bridge_deposits_count = account.bridge_deposits_count
    address.bridge_withdrawals_count = account.bridge_withdrawals_count
    address.total_gas_used = _decimal_or_none(account.gas_usage)

    address.last_seen_at = _timestamp_or_none(account.last_seen_at, "last_seen_at")
    address.updated_at_block = account.updated_at_block
    address.explorer_metadata = account.metadata

    # Provisional until the counters payload is applied
    for name in _COUNTER_FIELDS:
        setattr(address, name, None)


def apply_counters(address: Address, counters: AddressCounters) -> None:
    address.transaction_count = counters.transactions_count
    address.failed_transaction_count = counters.failed_transactions_count
    address.internal_transaction_count = counters.internal_transactions_count
    address.token_transfers_count = counters.token_transfers_count
    address.erc20_transfer_count = counters.erc20_transfers_count
    address.erc721_transfer_count = counters.erc721_transfers_count
    address.erc1155_transfer_count = counters.erc1155_transfers_count
    address.user_operations_count = counters.user_operations_count
    if counters.validations_count is not None:
        address.mined_blocks_count = counters.validations_count
    gas = _decimal_or_none(counters.gas_usage_count)
    if gas is not None:
        address.total_gas_used = gas


# ============================================================
# CONTRACT
# ============================================================

def clear_contract(address: Address) -> None:
    """The address is not a verified contract: EOA, drop any detail row."""
    address.is_contract = False
    if address.contract_detail is not None:
        logger.info(f"[normalizer] Removing contract detail of {address.address}")
        address.contract_detail = None


def apply_contract(address: Address, contract: ContractInfo) -> ContractDetail:
    """Mark the address as a contract and populate its ContractDetail."""
    address.is_contract = True

    detail = address.contract_detail
    if detail is None:
        detail = ContractDetail()
        address.contract_detail = detail

    language = (contract.language or "").lower()

    detail.name = contract.name
    detail.is_verified = contract.is_verified
    detail.is_partially_verified = contract.is_partially_verified
    detail.is_fully_verified = contract.is_fully_verified
    detail.is_verified_via_sourcify = contract.is_verified_via_sourcify
    detail.is_verified_via_eth_bytecode_db = contract.is_verified_via_eth_bytecode_db
    detail.is_verified_via_verifier_alliance = contract.is_verified_via_verifier_alliance
    detail.verified_at = _timestamp_or_none(contract.verified_at, "verified_at")
    detail.verified_twin_address_hash = contract.verified_twin_address_hash
    detail.sourcify_repo_url = contract.sourcify_repo_url

    detail.source_code = contract.source_code
    detail.abi = contract.abi
    detail.file_path = contract.file_path
    detail.compilation_target_file_name = contract.compilation_target
    detail.source_code_files = contract.additional_sources
    detail.language = contract.language
    detail.is_vyper_contract = language == "vyper"
    detail.is_yul_contract = language == "yul"
    detail.license_type = contract.license_type

    detail.compiler_version = contract.compiler_version
    detail.compiler_settings = contract.compiler_settings
    detail.evm_version = contract.evm_version
    detail.is_optimization_enabled = contract.optimization_enabled
    detail.optimization_runs = contract.optimization_runs
    detail.constructor_arguments = contract.constructor_arguments
    detail.decoded_constructor_args = contract.decoded_constructor_args
    detail.external_libraries = contract.external_libraries

    detail.deployed_bytecode = contract.deployed_bytecode
    detail.creation_bytecode = contract.creation_bytecode
    detail.is_self_destructed = contract.is_self_destructed
    detail.is_changed_bytecode = contract.is_changed_bytecode
    detail.is_blueprint = contract.is_blueprint

    detail.is_proxy = contract.is_proxy
    detail.is_minimal_proxy = contract.minimal_proxy
    detail.proxy_type = contract.proxy_type
    detail.implementation_address = contract.implementation_address
    detail.implementation_name = contract.implementation_name
    detail.implementation_slot = contract.implementation_slot
    detail.admin_address = contract.admin_address
    detail.beacon_address = contract.beacon_address

    if contract.is_smart_wallet:
        address.is_smart_wallet = True
        address.entry_point_address = contract.entry_point_address
        address.paymaster_address = contract.paymaster_address
        address.bundler_address = contract.bundler_address
        address.supports_eip7702 = contract.supports_eip7702
        address.creation_method = contract.creation_method
        address.init_code_hash = contract.init_code_hash

    _refresh_standards(detail, contract.supported_interfaces)
    return detail


def apply_token(detail: ContractDetail, token: Optional[TokenInfo], interfaces: list[str]) -> None:
    """
    Apply token metadata to a contract detail.

    ``token`` is None when the contract is not a token; token fields
    are then cleared.
    """
    if token is None:
        detail.token_name = None
        detail.token_symbol = None
        detail.token_decimals = None
        detail.token_total_supply = None
        detail.token_type = None
        detail.holders_count = None
        detail.circulating_market_cap = None
        detail.volume_24h = None
        detail.icon_url = None
        _refresh_standards(detail, interfaces)
        return

    detail.token_name = token.name
    detail.token_symbol = token.symbol
    detail.token_decimals = token.decimals
    detail.token_total_supply = (
        to_major_units(token.total_supply, token.decimals)
        if token.decimals is not None and token.total_supply is not None
        else None
    )
    detail.token_type = token.type
    detail.holders_count = token.holders_count
    detail.circulating_market_cap = _decimal_or_none(token.circulating_market_cap)
    detail.volume_24h = _decimal_or_none(token.volume_24h)
    detail.icon_url = token.icon_url
    _refresh_standards(detail, interfaces)


def _refresh_standards(detail: ContractDetail, interfaces: Iterable[str]) -> None:
    standards = merge_labels([], interfaces)
    if detail.token_type and detail.token_type not in standards:
        standards.append(detail.token_type)
    detail.supported_erc_standards = standards
    for standard, flag in ERC_FLAGS.items():
        setattr(detail, flag, standard in standards)


# ============================================================
# HOLDINGS
# ============================================================

def _is_fungible(holding: TokenHolding) -> bool:
    token_type = holding.token.type
    if token_type in FUNGIBLE_TYPES:
        return True
    if token_type in NON_FUNGIBLE_TYPES:
        return False
    return holding.token_id is None


def apply_holdings(address: Address, holdings: list[TokenHolding]) -> None:
    """Split holdings into fungible balances and NFT instances per contract."""
    fungible: dict[str, Any] = {}
    non_fungible: dict[str, Any] = {}

    for holding in holdings:
        contract = holding.token.address
        if not contract:
            continue

        if _is_fungible(holding):
            decimals = holding.token.decimals if holding.token.decimals is not None else NATIVE_DECIMALS
            try:
                balance = to_major_units(holding.value, decimals)
            except ValueError as e:
                logger.warning(f"[normalizer] Skipping holding {contract}: {e}")
                continue
            fungible[contract] = {
                "name": holding.token.name,
                "symbol": holding.token.symbol,
                "balance": format(balance, "f"),
                "standard": holding.token.type,
            }
            continue

        if holding.token_id is None:
            continue
        entry = non_fungible.setdefault(contract, {
            "name": holding.token.name,
            "symbol": holding.token.symbol,
            "standard": holding.token.type,
            "tokens": [],
        })
        if any(instance["id"] == holding.token_id for instance in entry["tokens"]):
            continue
        instance: dict[str, Any] = {"id": holding.token_id}
        if holding.value is not None:
            instance["value"] = holding.value
        entry["tokens"].append(instance)

    address.fungible_token_holdings = fungible
    address.non_fungible_token_holdings = non_fungible


def clear_holdings(address: Address) -> None:
    address.fungible_token_holdings = {}
    address.non_fungible_token_holdings = {}


# ============================================================
# VALIDATOR
# ============================================================

def apply_validator(
    address: Address,
    validator: Optional[ValidatorInfo],
    deposits_count: Optional[int],
    withdrawals_count: Optional[int],
) -> None:
    """
    Apply beacon-chain validator data.

    Counts of None keep the previous value (skipped step).
    """
    if validator is None:
        address.validator_index = None
        address.validator_status = None
        address.beacon_deposits_count = None
        address.beacon_withdrawals_count = None
        return

    address.validator_index = validator.index
    address.validator_status = validator.status
    if deposits_count is not None:
        address.beacon_deposits_count = deposits_count
    if withdrawals_count is not None:
        address.beacon_withdrawals_count = withdrawals_count


# ============================================================
# VALUATION
# ============================================================

def usd_value(balance: Optional[Decimal], price: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = 120
        return ((balance or Decimal(0)) * price).quantize(Decimal(USD_QUANTUM))


def apply_valuation(address: Address, price: Optional[Decimal]) -> None:
    if price is None:
        address.total_value_usd = None
        return
    address.total_value_usd = usd_value(address.native_balance, price)
