"""
Address Sync - Transaction Ingestor.

============================================================
PURPOSE
============================================================
Persists a merged batch of standard and internal transaction
records for one address, without duplicates.

============================================================
RECORD FLOW
============================================================
raw record
  → identity (hash, internal index)      missing hash: skipped
  → batch dedup                           repeat in batch: skipped
  → field extraction                      malformed or out of range: rejected
  → SAVEPOINT: find-or-create by identity  any error: rolled back, rejected
  → counterparty labels merged into the address

A rejected record never rolls back earlier records and never
blocks later ones.

============================================================
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from core.constants import MAX_BIGINT, MAX_INTERNAL_TX_INDEX
from core.exceptions import PartialRecordError
from core.units import to_major_units
from address_sync.normalizer import merge_labels, parse_timestamp
from explorer_adapters.models import hash_of, opt_int, tag_names
from storage.models.address import Address
from storage.repositories.transaction_repo import AddressTransactionRepository


logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Counts and rejects of one ingestion batch."""

    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    rejected: list[PartialRecordError] = field(default_factory=list)

    @property
    def rejected_count(self) -> int:
        return len(self.rejected)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "rejected": [error.to_dict() for error in self.rejected],
        }


# ============================================================
# FIELD EXTRACTION
# ============================================================

def record_identity(record: dict[str, Any]) -> Optional[tuple[str, int]]:
    """(hash, internal index), or None when the record has no hash."""
    tx_hash = record.get("hash") or record.get("transaction_hash")
    if not isinstance(tx_hash, str) or not tx_hash:
        return None
    index = record.get("internal_tx_index")
    if index is None:
        index = record.get("index")
    parsed_index = opt_int(index)
    if index is not None and parsed_index is None:
        raise PartialRecordError("Unparseable internal index", record=record, field_name="index")
    if parsed_index is not None and not 0 <= parsed_index <= MAX_INTERNAL_TX_INDEX:
        raise PartialRecordError("Internal index out of range", record=record, field_name="index")
    return tx_hash.lower(), parsed_index or 0


def _bounded_int(record: dict[str, Any], field_name: str, value: Any, maximum: int) -> Optional[int]:
    """Non-negative integer no larger than ``maximum``; None when absent or unparseable."""
    parsed = opt_int(value)
    if parsed is not None and not 0 <= parsed <= maximum:
        raise PartialRecordError(
            f"{field_name} out of range: {parsed}", record=record, field_name=field_name
        )
    return parsed


def _amount(value: Any) -> Optional[Any]:
    """Scalar minor amount, or the ``value`` of a ``{"value": ...}`` object."""
    if isinstance(value, dict):
        return value.get("value")
    return value


def extract_fee(record: dict[str, Any]) -> Decimal:
    """
    Explicit fee, else gas_limit x gas_price, else zero (pending).

    Raises:
        ValueError: If an amount is not an integer in minor units
    """
    explicit = _amount(record.get("fee"))
    if explicit not in (None, ""):
        return to_major_units(explicit)

    gas_limit = record.get("gas_limit")
    gas_price = record.get("gas_price")
    if gas_limit not in (None, "") and gas_price not in (None, ""):
        return to_major_units(int(gas_limit) * int(gas_price))

    return Decimal(0)


def extract_success(record: dict[str, Any]) -> bool:
    return record.get("status") == "ok" or record.get("success") is True


def _build_fields(record: dict[str, Any]) -> dict[str, Any]:
    try:
        fee = extract_fee(record)
    except (TypeError, ValueError) as e:
        raise PartialRecordError("Unparseable fee", record=record, field_name="fee", cause=e) from e

    try:
        value = to_major_units(_amount(record.get("value")))
    except ValueError as e:
        raise PartialRecordError("Unparseable value", record=record, field_name="value", cause=e) from e

    try:
        timestamp = parse_timestamp(record.get("timestamp"))
    except ValueError as e:
        raise PartialRecordError(
            "Unparseable timestamp", record=record, field_name="timestamp", cause=e
        ) from e

    block_number = _bounded_int(
        record, "block_number", record.get("block_number", record.get("block")), MAX_BIGINT
    )
    # Copied onto Address.nonce by the aggregation engine
    _bounded_int(record, "nonce", record.get("nonce"), MAX_BIGINT)

    success = extract_success(record)
    method = record.get("method")
    if not isinstance(method, str) or not method:
        method = "transfer" if success else "failed_transfer"

    tx_types = record.get("transaction_types")
    if isinstance(tx_types, list) and tx_types:
        tx_type = str(tx_types[0])
    else:
        tx_type = record.get("type")
        tx_type = str(tx_type) if tx_type is not None else None

    return {
        "tx_type": tx_type,
        "method": method,
        "block_number": block_number,
        "timestamp": timestamp,
        "from_address": hash_of(record.get("from")),
        "to_address": hash_of(record.get("to")),
        "value": value,
        "fee": fee,
        "success": success,
        "raw_data": record,
    }


def _counterparty_labels(record: dict[str, Any]) -> list[str]:
    labels: list[str] = []
    for key in ("to", "from"):
        party = record.get(key)
        if isinstance(party, dict):
            labels.extend(tag_names(party.get("metadata")))
    return labels


# ============================================================
# INGESTOR
# ============================================================

class TransactionIngestor:
    """Find-or-create of transaction rows, one SAVEPOINT per record."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._transactions = AddressTransactionRepository(session)

    def ingest(self, address: Address, records: list[Any]) -> IngestionResult:
        """
        Persist ``records`` for ``address``.

        Existing rows are filled in, never duplicated; their owner is
        not changed.
        """
        result = IngestionResult()
        seen: set[tuple[str, int]] = set()

        for record in records:
            result.processed += 1
            try:
                if not isinstance(record, dict):
                    raise PartialRecordError("Record is not an object", record=record)

                identity = record_identity(record)
                if identity is None:
                    logger.debug(f"[{address.address}] Skipping record without hash")
                    result.skipped += 1
                    continue
                if identity in seen:
                    result.skipped += 1
                    continue
                seen.add(identity)

                fields = _build_fields(record)
                created = self._persist(address, identity, fields)
                if created:
                    result.created += 1
                else:
                    result.updated += 1

                labels = _counterparty_labels(record)
                if labels:
                    address.labels = merge_labels(address.labels or [], labels)

            except PartialRecordError as e:
                self._reject(address, result, e)
            except Exception as e:
                # Storage or driver errors; the SAVEPOINT is already rolled back
                self._reject(address, result, PartialRecordError(str(e), record=record, cause=e))

        logger.info(
            f"[{address.address}] Ingested {result.processed} records: "
            f"{result.created} created, {result.updated} updated, "
            f"{result.skipped} skipped, {result.rejected_count} rejected"
        )
        return result

    @staticmethod
    def _reject(address: Address, result: IngestionResult, error: PartialRecordError) -> None:
        logger.warning(f"[{address.address}] Rejected transaction record: {error.reason}")
        result.rejected.append(error)

    def _persist(self, address: Address, identity: tuple[str, int], fields: dict[str, Any]) -> bool:
        tx_hash, index = identity
        with self._session.begin_nested():
            existing = self._transactions.get_by_identity(tx_hash, index)
            if existing is None:
                self._transactions.create(address, tx_hash, index, **fields)
                return True
            self._transactions.update(existing, **_fill_in(existing, fields))
            return False


def _fill_in(existing: Any, fields: dict[str, Any]) -> dict[str, Any]:
    """
    Fields to refresh on an already stored row.

    A pending row becomes completed once upstream reports a timestamp;
    a completed row is never reverted to pending.
    """
    updates = dict(fields)
    if existing.timestamp is not None and fields["timestamp"] is None:
        for name in ("timestamp", "block_number", "fee", "success"):
            updates.pop(name)
    return updates
