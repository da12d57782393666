"""
Storage Models Package.

ORM models of the address sync store.

- Address: canonical address record
- ContractDetail: verified contract metadata (contracts only)
- AddressTransaction: transaction history
"""

from storage.models.base import Base, TimestampMixin
from storage.models.types import JSONType, PreciseDecimal
from storage.models.address import Address, AddressTransaction, ContractDetail


__all__ = [
    "Base",
    "TimestampMixin",
    "JSONType",
    "PreciseDecimal",
    "Address",
    "AddressTransaction",
    "ContractDetail",
]
