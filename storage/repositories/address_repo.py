"""
Address Repository.

Lookup and creation of canonical Address rows, keyed by the
lower-case address string.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage.models.address import Address
from storage.repositories.base import BaseRepository


class AddressRepository(BaseRepository[Address]):
    """Repository for the ``addresses`` table."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Address, "AddressRepository")

    def get_by_address(self, address: str) -> Optional[Address]:
        stmt = select(Address).where(Address.address == address)
        return self._execute_scalar(stmt)

    def get_or_create(self, address: str) -> Address:
        """
        Return the row for ``address``, inserting a pending one if absent.

        Args:
            address: Canonical (already validated) address string
        """
        existing = self.get_by_address(address)
        if existing is not None:
            return existing

        record = Address(address=address, sync_status="pending", labels=[], sanctioned_by=[])
        self._logger.info(f"Creating address record {address}")
        return self._add(record, {"field": "address", "value": address})

    def count(self) -> int:
        return self._count()

    def commit(self) -> None:
        self._commit()

    def rollback(self) -> None:
        self._session.rollback()
