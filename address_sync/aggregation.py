"""
Address Sync - Aggregation Engine.

Derives financial aggregates of an address from its persisted
transactions only. A row counts for the address when the address
owns it or appears as its sender or recipient.

- completed: non-null timestamp
- total fees: every outgoing row, pending included
- total sent / received: completed and successful rows only
- nonce (EOAs): ``raw_data["nonce"]`` of the latest completed
  outgoing row
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from explorer_adapters.models import opt_int
from storage.models.address import Address
from storage.repositories.transaction_repo import AddressTransactionRepository


logger = logging.getLogger(__name__)


@dataclass
class AggregateSnapshot:
    total_fees_paid: Decimal
    total_value_sent: Decimal
    total_value_received: Decimal
    first_transaction_at: Optional[datetime] = None
    last_transaction_at: Optional[datetime] = None
    first_seen_block_number: Optional[int] = None
    last_seen_block_number: Optional[int] = None
    nonce: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_fees_paid": str(self.total_fees_paid),
            "total_value_sent": str(self.total_value_sent),
            "total_value_received": str(self.total_value_received),
            "first_transaction_at": self.first_transaction_at.isoformat() if self.first_transaction_at else None,
            "last_transaction_at": self.last_transaction_at.isoformat() if self.last_transaction_at else None,
            "first_seen_block_number": self.first_seen_block_number,
            "last_seen_block_number": self.last_seen_block_number,
            "nonce": self.nonce,
        }


class AggregationEngine:
    """Computes and applies AggregateSnapshots."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._transactions = AddressTransactionRepository(session)

    def compute(self, address: Address) -> AggregateSnapshot:
        # Rows created in this pass must be visible to the queries
        self._session.flush()

        fees = Decimal(0)
        sent = Decimal(0)
        received = Decimal(0)
        for tx in self._transactions.list_involving(address):
            if tx.from_address == address.address:
                fees += tx.fee or Decimal(0)
            if not (tx.is_completed and tx.success):
                continue
            if tx.from_address == address.address:
                sent += tx.value or Decimal(0)
            if tx.to_address == address.address:
                received += tx.value or Decimal(0)

        snapshot = AggregateSnapshot(
            total_fees_paid=fees,
            total_value_sent=sent,
            total_value_received=received,
        )

        first = self._transactions.first_completed(address)
        last = self._transactions.last_completed(address)
        if first is not None:
            snapshot.first_transaction_at = first.timestamp
            snapshot.first_seen_block_number = first.block_number
        if last is not None:
            snapshot.last_transaction_at = last.timestamp
            snapshot.last_seen_block_number = last.block_number

        if not address.is_contract:
            outgoing = self._transactions.last_completed_outgoing(address)
            if outgoing is not None and isinstance(outgoing.raw_data, dict):
                snapshot.nonce = opt_int(outgoing.raw_data.get("nonce"))

        return snapshot

    def apply(self, address: Address) -> AggregateSnapshot:
        snapshot = self.compute(address)
        address.total_fees_paid = snapshot.total_fees_paid
        address.total_value_sent = snapshot.total_value_sent
        address.total_value_received = snapshot.total_value_received
        address.first_transaction_at = snapshot.first_transaction_at
        address.last_transaction_at = snapshot.last_transaction_at
        address.first_seen_block_number = snapshot.first_seen_block_number
        address.last_seen_block_number = snapshot.last_seen_block_number
        address.nonce = snapshot.nonce
        logger.debug(f"[{address.address}] Aggregates: {snapshot.to_dict()}")
        return snapshot
