"""
Address Transaction Repository.

Rows are identified by (tx_hash, internal_tx_index) across the
whole table. A row "involves" an address when the address owns it
or appears as its sender or recipient; aggregates are computed over
that set so a transfer between two tracked addresses counts for
both, although only the first one to ingest it owns the row.
"""

from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from storage.models.address import Address, AddressTransaction
from storage.repositories.base import BaseRepository


class AddressTransactionRepository(BaseRepository[AddressTransaction]):
    """Repository for the ``address_transactions`` table."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, AddressTransaction, "AddressTransactionRepository")

    def get_by_identity(self, tx_hash: str, internal_tx_index: int) -> Optional[AddressTransaction]:
        stmt = select(AddressTransaction).where(
            AddressTransaction.tx_hash == tx_hash,
            AddressTransaction.internal_tx_index == internal_tx_index,
        )
        return self._execute_scalar(stmt)

    def create(self, owner: Address, tx_hash: str, internal_tx_index: int, **fields: Any) -> AddressTransaction:
        record = AddressTransaction(
            address_id=owner.id,
            tx_hash=tx_hash,
            internal_tx_index=internal_tx_index,
            **fields,
        )
        return self._add(
            record,
            {"field": "tx_hash,internal_tx_index", "value": f"{tx_hash},{internal_tx_index}"},
        )

    def update(self, record: AddressTransaction, **fields: Any) -> AddressTransaction:
        for name, value in fields.items():
            setattr(record, name, value)
        self._flush("update")
        return record

    # ─────────────────────────────────────────────────────────────
    # Involvement queries
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def _involving(address: Address):
        return or_(
            AddressTransaction.address_id == address.id,
            AddressTransaction.from_address == address.address,
            AddressTransaction.to_address == address.address,
        )

    def list_involving(self, address: Address) -> list[AddressTransaction]:
        stmt = (
            select(AddressTransaction)
            .where(self._involving(address))
            .order_by(AddressTransaction.id)
        )
        return self._execute_query(stmt)

    def first_completed(self, address: Address) -> Optional[AddressTransaction]:
        stmt = (
            select(AddressTransaction)
            .where(self._involving(address), AddressTransaction.timestamp.is_not(None))
            .order_by(
                AddressTransaction.timestamp.asc(),
                AddressTransaction.block_number.asc(),
                AddressTransaction.internal_tx_index.asc(),
            )
            .limit(1)
        )
        return self._execute_scalar(stmt)

    def last_completed(self, address: Address) -> Optional[AddressTransaction]:
        stmt = (
            select(AddressTransaction)
            .where(self._involving(address), AddressTransaction.timestamp.is_not(None))
            .order_by(
                AddressTransaction.timestamp.desc(),
                AddressTransaction.block_number.desc(),
                AddressTransaction.internal_tx_index.desc(),
            )
            .limit(1)
        )
        return self._execute_scalar(stmt)

    def last_completed_outgoing(self, address: Address) -> Optional[AddressTransaction]:
        stmt = (
            select(AddressTransaction)
            .where(
                AddressTransaction.from_address == address.address,
                AddressTransaction.timestamp.is_not(None),
            )
            .order_by(
                AddressTransaction.timestamp.desc(),
                AddressTransaction.block_number.desc(),
                AddressTransaction.internal_tx_index.desc(),
            )
            .limit(1)
        )
        return self._execute_scalar(stmt)

    def count(self, address: Optional[Address] = None) -> int:
        if address is None:
            return self._count()
        return self._count(AddressTransaction.address_id == address.id)
