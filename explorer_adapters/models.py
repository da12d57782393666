"""
Explorer Data Models - Typed views of upstream payloads.

Each upstream endpoint shape is decoded exactly once, at the I/O
boundary, into an optional-field dataclass. Downstream code never
indexes into raw dicts. Numeric amounts stay as the upstream
minor-unit strings; conversion is the normalizer's job.

A payload that is not a JSON object raises ParseError. Individual
fields are lenient: a field of the wrong type decodes to None.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from explorer_adapters.exceptions import ParseError


class AdapterStatus(Enum):
    """Health status of an explorer adapter."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


@dataclass
class AdapterHealth:
    """Health status of an explorer adapter."""
    status: AdapterStatus
    last_check: datetime
    latency_ms: Optional[float] = None
    error_count: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    consecutive_failures: int = 0
    requests_total: int = 0

    def is_usable(self) -> bool:
        """Check if adapter can still be used."""
        return self.status in (AdapterStatus.HEALTHY, AdapterStatus.DEGRADED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "latency_ms": self.latency_ms,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "consecutive_failures": self.consecutive_failures,
            "requests_total": self.requests_total,
        }


@dataclass
class AdapterIncident:
    """Record of an adapter incident."""
    adapter_name: str
    incident_type: str
    timestamp: datetime
    error_message: str
    request_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "adapter_name": self.adapter_name,
            "incident_type": self.incident_type,
            "timestamp": self.timestamp.isoformat(),
            "error_message": self.error_message,
            "request_url": self.request_url,
        }


# ─────────────────────────────────────────────────────────────
# Field helpers
# ─────────────────────────────────────────────────────────────

def require_object(payload: Any, model_name: str) -> dict[str, Any]:
    """Return the payload if it is a JSON object, else raise ParseError."""
    if not isinstance(payload, dict):
        raise ParseError(
            message=f"{model_name} payload is not a JSON object",
            raw_data=payload,
        )
    return payload


def opt_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def opt_int(value: Any) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def opt_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


def opt_dict(value: Any) -> Optional[dict[str, Any]]:
    return value if isinstance(value, dict) else None


def opt_list(value: Any) -> Optional[list[Any]]:
    return value if isinstance(value, list) else None


def hash_of(value: Any) -> Optional[str]:
    """Address reference as either {"hash": ...} or a plain string, lower-cased."""
    if isinstance(value, dict):
        value = value.get("hash")
    if isinstance(value, str) and value:
        return value.lower()
    return None


def tag_names(metadata: Any) -> list[str]:
    """Label names from a ``{"tags": [...]}`` metadata block."""
    tags = metadata.get("tags") if isinstance(metadata, dict) else None
    if not isinstance(tags, list):
        return []
    names = []
    for tag in tags:
        if isinstance(tag, str):
            name = tag
        elif isinstance(tag, dict):
            name = tag.get("name") or tag.get("display_name") or tag.get("label")
        else:
            name = None
        if isinstance(name, str) and name:
            names.append(name)
    return names


# ─────────────────────────────────────────────────────────────
# Endpoint models
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ValidatorInfo:
    """Beacon-chain validator identity attached to an account."""
    index: Optional[int] = None
    status: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["ValidatorInfo"]:
        if not isinstance(payload, dict):
            return None
        return cls(index=opt_int(payload.get("index")), status=opt_str(payload.get("status")))


@dataclass(frozen=True)
class AccountInfo:
    """``GET /addresses/{hash}``"""
    hash: Optional[str] = None
    is_contract: Optional[bool] = None
    is_scam: Optional[bool] = None
    coin_balance: Optional[str] = None
    exchange_rate: Optional[str] = None
    block_number_balance_updated_at: Optional[int] = None
    staked_balance: Optional[str] = None
    staked_balance_updated_at_block: Optional[int] = None
    historical_balances: Optional[dict[str, Any]] = None
    historical_token_balances: Optional[dict[str, Any]] = None
    ens_name: Optional[str] = None
    ens_avatar_url: Optional[str] = None
    ens_records: Optional[dict[str, Any]] = None
    public_tags: list[str] = field(default_factory=list)
    metadata_tags: list[str] = field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None
    sanctioned_by: list[str] = field(default_factory=list)
    has_logs: Optional[bool] = None
    has_token_transfers: Optional[bool] = None
    has_tokens: Optional[bool] = None
    has_beacon_chain_withdrawals: Optional[bool] = None
    mined_blocks_count: Optional[int] = None
    bridge_deposits_count: Optional[int] = None
    bridge_withdrawals_count: Optional[int] = None
    gas_usage: Optional[str] = None
    creator_address: Optional[str] = None
    creation_transaction_hash: Optional[str] = None
    creation_method: Optional[str] = None
    init_code_hash: Optional[str] = None
    is_smart_wallet: Optional[bool] = None
    entry_point_address: Optional[str] = None
    paymaster_address: Optional[str] = None
    bundler_address: Optional[str] = None
    supports_eip7702: Optional[bool] = None
    last_seen_at: Optional[str] = None
    updated_at_block: Optional[int] = None
    validator: Optional[ValidatorInfo] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "AccountInfo":
        data = require_object(payload, "Account")
        public_tags = []
        for tag in opt_list(data.get("public_tags")) or []:
            if isinstance(tag, str):
                public_tags.append(tag)
            elif isinstance(tag, dict):
                name = tag.get("display_name") or tag.get("name") or tag.get("label")
                if isinstance(name, str) and name:
                    public_tags.append(name)
        sanctioned = [str(s) for s in opt_list(data.get("sanctioned_by")) or [] if s]
        return cls(
            hash=hash_of(data.get("hash")),
            is_contract=opt_bool(data.get("is_contract")),
            is_scam=opt_bool(data.get("is_scam")),
            coin_balance=opt_str(data.get("coin_balance")),
            exchange_rate=opt_str(data.get("exchange_rate")),
            block_number_balance_updated_at=opt_int(data.get("block_number_balance_updated_at")),
            staked_balance=opt_str(data.get("staked_eth_balance")),
            staked_balance_updated_at_block=opt_int(data.get("staked_balance_updated_at_block")),
            historical_balances=opt_dict(data.get("historical_balances")),
            historical_token_balances=opt_dict(data.get("historical_token_balances")),
            ens_name=opt_str(data.get("ens_domain_name")),
            ens_avatar_url=opt_str(data.get("avatar")),
            ens_records=opt_dict(data.get("records")),
            public_tags=public_tags,
            metadata_tags=tag_names(data.get("metadata")),
            metadata=opt_dict(data.get("metadata")),
            sanctioned_by=sanctioned,
            has_logs=opt_bool(data.get("has_logs")),
            has_token_transfers=opt_bool(data.get("has_token_transfers")),
            has_tokens=opt_bool(data.get("has_tokens")),
            has_beacon_chain_withdrawals=opt_bool(data.get("has_beacon_chain_withdrawals")),
            mined_blocks_count=opt_int(data.get("mined_blocks_count")),
            bridge_deposits_count=opt_int(data.get("bridge_deposits_count")),
            bridge_withdrawals_count=opt_int(data.get("bridge_withdrawals_count")),
            gas_usage=opt_str(data.get("gas_usage")),
            creator_address=hash_of(data.get("creator_address_hash")),
            creation_transaction_hash=opt_str(data.get("creation_transaction_hash")),
            creation_method=opt_str(data.get("creation_method")),
            init_code_hash=opt_str(data.get("init_code_hash")),
            is_smart_wallet=opt_bool(data.get("is_smart_wallet")),
            entry_point_address=hash_of(data.get("entry_point_address")),
            paymaster_address=hash_of(data.get("paymaster_address")),
            bundler_address=hash_of(data.get("bundler_address")),
            supports_eip7702=opt_bool(data.get("supports_eip7702")),
            last_seen_at=opt_str(data.get("last_seen_at")),
            updated_at_block=opt_int(data.get("updated_at_block")),
            validator=ValidatorInfo.from_payload(data.get("validator_info")),
        )

    @property
    def labels(self) -> list[str]:
        """Public tags followed by metadata tags, in upstream order."""
        return self.public_tags + self.metadata_tags


@dataclass(frozen=True)
class AddressCounters:
    """``GET /addresses/{hash}/counters``"""
    transactions_count: Optional[int] = None
    token_transfers_count: Optional[int] = None
    erc20_transfers_count: Optional[int] = None
    erc721_transfers_count: Optional[int] = None
    erc1155_transfers_count: Optional[int] = None
    user_operations_count: Optional[int] = None
    failed_transactions_count: Optional[int] = None
    internal_transactions_count: Optional[int] = None
    validations_count: Optional[int] = None
    gas_usage_count: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "AddressCounters":
        data = require_object(payload, "Counters")
        return cls(
            transactions_count=opt_int(data.get("transactions_count")),
            token_transfers_count=opt_int(data.get("token_transfers_count")),
            erc20_transfers_count=opt_int(data.get("erc20_transfers_count")),
            erc721_transfers_count=opt_int(data.get("erc721_transfers_count")),
            erc1155_transfers_count=opt_int(data.get("erc1155_transfers_count")),
            user_operations_count=opt_int(data.get("user_operations_count")),
            failed_transactions_count=opt_int(data.get("failed_transactions_count")),
            internal_transactions_count=opt_int(data.get("internal_transactions_count")),
            validations_count=opt_int(data.get("validations_count")),
            gas_usage_count=opt_str(data.get("gas_usage_count")),
        )


@dataclass(frozen=True)
class ContractInfo:
    """``GET /smart-contracts/{hash}``"""
    name: Optional[str] = None
    is_verified: Optional[bool] = None
    is_partially_verified: Optional[bool] = None
    is_fully_verified: Optional[bool] = None
    is_verified_via_sourcify: Optional[bool] = None
    is_verified_via_eth_bytecode_db: Optional[bool] = None
    is_verified_via_verifier_alliance: Optional[bool] = None
    verified_at: Optional[str] = None
    verified_twin_address_hash: Optional[str] = None
    sourcify_repo_url: Optional[str] = None
    source_code: Optional[str] = None
    abi: Optional[list[Any]] = None
    file_path: Optional[str] = None
    compilation_target: Optional[str] = None
    additional_sources: Optional[list[Any]] = None
    language: Optional[str] = None
    license_type: Optional[str] = None
    compiler_version: Optional[str] = None
    compiler_settings: Optional[dict[str, Any]] = None
    evm_version: Optional[str] = None
    optimization_enabled: Optional[bool] = None
    optimization_runs: Optional[int] = None
    constructor_arguments: Optional[str] = None
    decoded_constructor_args: Optional[list[Any]] = None
    external_libraries: Optional[list[Any]] = None
    deployed_bytecode: Optional[str] = None
    creation_bytecode: Optional[str] = None
    is_self_destructed: Optional[bool] = None
    is_changed_bytecode: Optional[bool] = None
    is_blueprint: Optional[bool] = None
    is_proxy: Optional[bool] = None
    minimal_proxy: Optional[bool] = None
    proxy_type: Optional[str] = None
    implementation_address: Optional[str] = None
    implementation_name: Optional[str] = None
    implementation_slot: Optional[str] = None
    admin_address: Optional[str] = None
    beacon_address: Optional[str] = None
    supported_interfaces: list[str] = field(default_factory=list)
    is_smart_wallet: Optional[bool] = None
    entry_point_address: Optional[str] = None
    paymaster_address: Optional[str] = None
    bundler_address: Optional[str] = None
    supports_eip7702: Optional[bool] = None
    creation_method: Optional[str] = None
    init_code_hash: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "ContractInfo":
        data = require_object(payload, "Contract")
        implementations = opt_list(data.get("implementations")) or []
        first_impl = implementations[0] if implementations and isinstance(implementations[0], dict) else {}
        proxy = opt_dict(data.get("proxy_details")) or {}
        interfaces = [str(i) for i in opt_list(data.get("supported_interfaces")) or [] if i]
        return cls(
            name=opt_str(data.get("name")),
            is_verified=opt_bool(data.get("is_verified")),
            is_partially_verified=opt_bool(data.get("is_partially_verified")),
            is_fully_verified=opt_bool(data.get("is_fully_verified")),
            is_verified_via_sourcify=opt_bool(data.get("is_verified_via_sourcify")),
            is_verified_via_eth_bytecode_db=opt_bool(data.get("is_verified_via_eth_bytecode_db")),
            is_verified_via_verifier_alliance=opt_bool(data.get("is_verified_via_verifier_alliance")),
            verified_at=opt_str(data.get("verified_at")),
            verified_twin_address_hash=hash_of(data.get("verified_twin_address_hash")),
            sourcify_repo_url=opt_str(data.get("sourcify_repo_url")),
            source_code=opt_str(data.get("source_code")),
            abi=opt_list(data.get("abi")),
            file_path=opt_str(data.get("file_path")),
            compilation_target=opt_str(data.get("compilation_target")),
            additional_sources=opt_list(data.get("additional_sources")),
            language=opt_str(data.get("language")),
            license_type=opt_str(data.get("license_type")),
            compiler_version=opt_str(data.get("compiler_version")),
            compiler_settings=opt_dict(data.get("compiler_settings")),
            evm_version=opt_str(data.get("evm_version")),
            optimization_enabled=opt_bool(data.get("optimization_enabled")),
            optimization_runs=opt_int(data.get("optimization_runs")),
            constructor_arguments=opt_str(data.get("constructor_args") or data.get("constructor_arguments")),
            decoded_constructor_args=opt_list(data.get("decoded_constructor_args")),
            external_libraries=opt_list(data.get("external_libraries")),
            deployed_bytecode=opt_str(data.get("deployed_bytecode")),
            creation_bytecode=opt_str(data.get("creation_bytecode")),
            is_self_destructed=opt_bool(data.get("is_self_destructed")),
            is_changed_bytecode=opt_bool(data.get("is_changed_bytecode")),
            is_blueprint=opt_bool(data.get("is_blueprint")),
            is_proxy=opt_bool(data.get("is_proxy")),
            minimal_proxy=opt_bool(data.get("minimal_proxy")),
            proxy_type=opt_str(data.get("proxy_type")),
            implementation_address=hash_of(first_impl.get("address") or first_impl.get("hash")),
            implementation_name=opt_str(first_impl.get("name")),
            implementation_slot=opt_str(proxy.get("implementation_slot")),
            admin_address=hash_of(proxy.get("admin_address")),
            beacon_address=hash_of(proxy.get("beacon_address")),
            supported_interfaces=interfaces,
            is_smart_wallet=opt_bool(data.get("is_smart_wallet")),
            entry_point_address=hash_of(data.get("entry_point_address")),
            paymaster_address=hash_of(data.get("paymaster_address")),
            bundler_address=hash_of(data.get("bundler_address")),
            supports_eip7702=opt_bool(data.get("supports_eip7702")),
            creation_method=opt_str(data.get("creation_method")),
            init_code_hash=opt_str(data.get("init_code_hash")),
        )


@dataclass(frozen=True)
class TokenInfo:
    """``GET /tokens/{hash}``, also embedded in holdings items."""
    address: Optional[str] = None
    type: Optional[str] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    total_supply: Optional[str] = None
    holders_count: Optional[int] = None
    circulating_market_cap: Optional[str] = None
    volume_24h: Optional[str] = None
    exchange_rate: Optional[str] = None
    icon_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "TokenInfo":
        data = require_object(payload, "Token")
        return cls(
            address=hash_of(data.get("address_hash") or data.get("address")),
            type=opt_str(data.get("type")),
            name=opt_str(data.get("name")),
            symbol=opt_str(data.get("symbol")),
            decimals=opt_int(data.get("decimals")),
            total_supply=opt_str(data.get("total_supply")),
            holders_count=opt_int(data.get("holders_count", data.get("holders"))),
            circulating_market_cap=opt_str(data.get("circulating_market_cap")),
            volume_24h=opt_str(data.get("volume_24h")),
            exchange_rate=opt_str(data.get("exchange_rate")),
            icon_url=opt_str(data.get("icon_url")),
        )


@dataclass(frozen=True)
class TokenHolding:
    """One item of ``GET /addresses/{hash}/tokens``."""
    token: TokenInfo
    value: Optional[str] = None
    token_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "TokenHolding":
        data = require_object(payload, "Token holding")
        token_id = data.get("token_id")
        if token_id is None:
            token_id = data.get("id")
        return cls(
            token=TokenInfo.from_payload(data.get("token") or {}),
            value=opt_str(data.get("value")),
            token_id=opt_str(token_id),
        )


@dataclass(frozen=True)
class PagedItems:
    """Blockscout list envelope: ``{"items": [...], "next_page_params": {...}}``"""
    items: list[Any] = field(default_factory=list)
    next_page_params: Optional[dict[str, Any]] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "PagedItems":
        data = require_object(payload, "List")
        items = data.get("items")
        if items is None:
            items = []
        if not isinstance(items, list):
            raise ParseError(message="List payload 'items' is not an array", raw_data=payload)
        return cls(items=items, next_page_params=opt_dict(data.get("next_page_params")))
