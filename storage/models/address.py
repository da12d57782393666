"""
Address Domain Models.

============================================================
PURPOSE
============================================================
Canonical local record of an on-chain address, its verified
contract metadata, and its transaction history.

============================================================
TABLES
============================================================
- addresses: one row per address, upstream-sourced fields plus
  pipeline-derived aggregates and sync lifecycle
- contract_details: zero-or-one per address, contracts only
- address_transactions: transaction history, unique on
  (tx_hash, internal_tx_index)

Every non-lifecycle field is recomputable from the address and
its persisted transactions.

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storage.models.base import Base, TimestampMixin
from storage.models.types import JSONType


# ============================================================
# ADDRESS
# ============================================================

class Address(Base, TimestampMixin):
    """
    Canonical record of one address.

    ``address`` is the only externally meaningful identity.
    """

    __tablename__ = "addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(
        String(42),
        nullable=False,
        unique=True,
        comment="Lower-case 0x-prefixed hex address"
    )

    # Identity
    is_contract: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_scam: Mapped[Optional[bool]] = mapped_column(Boolean)

    # Account abstraction
    is_smart_wallet: Mapped[Optional[bool]] = mapped_column(Boolean)
    entry_point_address: Mapped[Optional[str]] = mapped_column(String(42))
    paymaster_address: Mapped[Optional[str]] = mapped_column(String(42))
    bundler_address: Mapped[Optional[str]] = mapped_column(String(42))
    supports_eip7702: Mapped[Optional[bool]] = mapped_column(Boolean)
    creator_address: Mapped[Optional[str]] = mapped_column(String(42))
    creation_transaction_hash: Mapped[Optional[str]] = mapped_column(String(66))
    creation_method: Mapped[Optional[str]] = mapped_column(String(50))
    init_code_hash: Mapped[Optional[str]] = mapped_column(String(66))

    # Balances and valuation (major units)
    native_balance: Mapped[Optional[Decimal]] = mapped_column(comment="Native coin balance")
    staked_balance: Mapped[Optional[Decimal]] = mapped_column()
    balance_updated_at_block: Mapped[Optional[int]] = mapped_column(BigInteger)
    staked_balance_updated_at_block: Mapped[Optional[int]] = mapped_column(BigInteger)
    exchange_rate: Mapped[Optional[Decimal]] = mapped_column()
    total_value_usd: Mapped[Optional[Decimal]] = mapped_column(
        comment="native_balance x cached USD price"
    )
    historical_balances: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)
    historical_token_balances: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)

    # Upstream activity counters
    transaction_count: Mapped[Optional[int]] = mapped_column(Integer)
    failed_transaction_count: Mapped[Optional[int]] = mapped_column(Integer)
    internal_transaction_count: Mapped[Optional[int]] = mapped_column(Integer)
    token_transfers_count: Mapped[Optional[int]] = mapped_column(Integer)
    erc20_transfer_count: Mapped[Optional[int]] = mapped_column(Integer)
    erc721_transfer_count: Mapped[Optional[int]] = mapped_column(Integer)
    erc1155_transfer_count: Mapped[Optional[int]] = mapped_column(Integer)
    user_operations_count: Mapped[Optional[int]] = mapped_column(Integer)
    mined_blocks_count: Mapped[Optional[int]] = mapped_column(Integer)
    bridge_deposits_count: Mapped[Optional[int]] = mapped_column(Integer)
    bridge_withdrawals_count: Mapped[Optional[int]] = mapped_column(Integer)
    total_gas_used: Mapped[Optional[Decimal]] = mapped_column()

    # Derived from persisted transactions
    total_fees_paid: Mapped[Optional[Decimal]] = mapped_column()
    total_value_sent: Mapped[Optional[Decimal]] = mapped_column()
    total_value_received: Mapped[Optional[Decimal]] = mapped_column()
    first_transaction_at: Mapped[Optional[datetime]] = mapped_column()
    last_transaction_at: Mapped[Optional[datetime]] = mapped_column()
    first_seen_block_number: Mapped[Optional[int]] = mapped_column(BigInteger)
    last_seen_block_number: Mapped[Optional[int]] = mapped_column(BigInteger)
    nonce: Mapped[Optional[int]] = mapped_column(BigInteger, comment="EOAs only")

    # Holdings, keyed by lower-case token contract address
    fungible_token_holdings: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)
    non_fungible_token_holdings: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)

    # Flags
    has_logs: Mapped[Optional[bool]] = mapped_column(Boolean)
    has_token_transfers: Mapped[Optional[bool]] = mapped_column(Boolean)
    has_tokens: Mapped[Optional[bool]] = mapped_column(Boolean)
    has_beacon_chain_withdrawals: Mapped[Optional[bool]] = mapped_column(Boolean)

    # Naming, labels, risk
    ens_name: Mapped[Optional[str]] = mapped_column(String(255))
    ens_avatar_url: Mapped[Optional[str]] = mapped_column(Text)
    ens_records: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)
    labels: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    sanctioned_by: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    risk_score: Mapped[Optional[int]] = mapped_column(Integer, comment="0-100")

    # Beacon chain validator
    validator_index: Mapped[Optional[int]] = mapped_column(BigInteger)
    validator_status: Mapped[Optional[str]] = mapped_column(String(50))
    beacon_deposits_count: Mapped[Optional[int]] = mapped_column(Integer)
    beacon_withdrawals_count: Mapped[Optional[int]] = mapped_column(Integer)

    # Misc upstream
    last_seen_at: Mapped[Optional[datetime]] = mapped_column()
    updated_at_block: Mapped[Optional[int]] = mapped_column(BigInteger)
    explorer_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)

    # Sync lifecycle
    sync_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        comment="pending | syncing | synced | not_found | failed"
    )
    last_error: Mapped[Optional[str]] = mapped_column(Text)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column()

    contract_detail: Mapped[Optional["ContractDetail"]] = relationship(
        back_populates="address",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined",
    )
    transactions: Mapped[list["AddressTransaction"]] = relationship(
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_addresses_sync_status", "sync_status"),
    )

    def __repr__(self) -> str:
        return f"<Address(address={self.address}, status={self.sync_status})>"


# ============================================================
# CONTRACT DETAIL
# ============================================================

class ContractDetail(Base, TimestampMixin):
    """Verified contract and token metadata of a contract address."""

    __tablename__ = "contract_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address_id: Mapped[int] = mapped_column(
        ForeignKey("addresses.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    # Verification
    name: Mapped[Optional[str]] = mapped_column(String(255))
    is_verified: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_partially_verified: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_fully_verified: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_verified_via_sourcify: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_verified_via_eth_bytecode_db: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_verified_via_verifier_alliance: Mapped[Optional[bool]] = mapped_column(Boolean)
    verified_at: Mapped[Optional[datetime]] = mapped_column()
    verified_twin_address_hash: Mapped[Optional[str]] = mapped_column(String(42))
    sourcify_repo_url: Mapped[Optional[str]] = mapped_column(Text)

    # Source
    source_code: Mapped[Optional[str]] = mapped_column(Text)
    abi: Mapped[Optional[list[Any]]] = mapped_column(JSONType)
    file_path: Mapped[Optional[str]] = mapped_column(Text)
    compilation_target_file_name: Mapped[Optional[str]] = mapped_column(Text)
    source_code_files: Mapped[Optional[list[Any]]] = mapped_column(JSONType)
    language: Mapped[Optional[str]] = mapped_column(String(20))
    is_vyper_contract: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_yul_contract: Mapped[Optional[bool]] = mapped_column(Boolean)
    license_type: Mapped[Optional[str]] = mapped_column(String(50))

    # Compiler
    compiler_version: Mapped[Optional[str]] = mapped_column(String(100))
    compiler_settings: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)
    evm_version: Mapped[Optional[str]] = mapped_column(String(50))
    is_optimization_enabled: Mapped[Optional[bool]] = mapped_column(Boolean)
    optimization_runs: Mapped[Optional[int]] = mapped_column(BigInteger)
    constructor_arguments: Mapped[Optional[str]] = mapped_column(Text)
    decoded_constructor_args: Mapped[Optional[list[Any]]] = mapped_column(JSONType)
    external_libraries: Mapped[Optional[list[Any]]] = mapped_column(JSONType)

    # Bytecode
    deployed_bytecode: Mapped[Optional[str]] = mapped_column(Text)
    creation_bytecode: Mapped[Optional[str]] = mapped_column(Text)
    is_self_destructed: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_changed_bytecode: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_blueprint: Mapped[Optional[bool]] = mapped_column(Boolean)

    # Proxy linkage
    is_proxy: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_minimal_proxy: Mapped[Optional[bool]] = mapped_column(Boolean)
    proxy_type: Mapped[Optional[str]] = mapped_column(String(50))
    implementation_address: Mapped[Optional[str]] = mapped_column(String(42))
    implementation_name: Mapped[Optional[str]] = mapped_column(String(255))
    implementation_slot: Mapped[Optional[str]] = mapped_column(String(66))
    admin_address: Mapped[Optional[str]] = mapped_column(String(42))
    beacon_address: Mapped[Optional[str]] = mapped_column(String(42))

    # Token
    token_name: Mapped[Optional[str]] = mapped_column(String(255))
    token_symbol: Mapped[Optional[str]] = mapped_column(String(50))
    token_decimals: Mapped[Optional[int]] = mapped_column(Integer)
    token_total_supply: Mapped[Optional[Decimal]] = mapped_column()
    token_type: Mapped[Optional[str]] = mapped_column(String(20))
    holders_count: Mapped[Optional[int]] = mapped_column(BigInteger)
    circulating_market_cap: Mapped[Optional[Decimal]] = mapped_column()
    volume_24h: Mapped[Optional[Decimal]] = mapped_column()
    icon_url: Mapped[Optional[str]] = mapped_column(Text)

    # Standards
    supported_erc_standards: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    is_erc20: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc223: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc721: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc777: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc1155: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc2981: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc3643: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc404: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc6551: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc6900: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc7828: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc7861: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc7878: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc7902: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc7920: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc7930: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_erc7943: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    address: Mapped["Address"] = relationship(back_populates="contract_detail")

    def __repr__(self) -> str:
        return f"<ContractDetail(address_id={self.address_id}, name={self.name})>"


# ============================================================
# ADDRESS TRANSACTION
# ============================================================

class AddressTransaction(Base, TimestampMixin):
    """
    One standard (index 0) or internal (index > 0) transaction.

    The owner is the first address that ingested the row; the
    (tx_hash, internal_tx_index) pair is unique across the table.
    """

    __tablename__ = "address_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address_id: Mapped[int] = mapped_column(
        ForeignKey("addresses.id", ondelete="CASCADE"),
        nullable=False,
    )

    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    internal_tx_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tx_type: Mapped[Optional[str]] = mapped_column(String(50))
    method: Mapped[Optional[str]] = mapped_column(String(255))
    block_number: Mapped[Optional[int]] = mapped_column(BigInteger)
    timestamp: Mapped[Optional[datetime]] = mapped_column(comment="Null while pending")
    from_address: Mapped[Optional[str]] = mapped_column(String(42))
    to_address: Mapped[Optional[str]] = mapped_column(String(42))
    value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal(0))
    fee: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal(0))
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    raw_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)

    owner: Mapped["Address"] = relationship(back_populates="transactions")

    __table_args__ = (
        UniqueConstraint("tx_hash", "internal_tx_index", name="uq_address_transactions_hash_index"),
        Index("ix_address_transactions_address_timestamp", "address_id", "timestamp"),
        Index("ix_address_transactions_from", "from_address"),
        Index("ix_address_transactions_to", "to_address"),
    )

    @property
    def is_completed(self) -> bool:
        return self.timestamp is not None

    def __repr__(self) -> str:
        return (
            f"<AddressTransaction(tx_hash={self.tx_hash}, "
            f"index={self.internal_tx_index})>"
        )
