"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the only gateway to persistent storage.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. Session Injection: Sessions are injected, not created internally
2. Explicit Methods: clear method names per query
3. Exception Handling: All DB errors wrapped in repository exceptions

============================================================
REPOSITORIES
============================================================
- AddressRepository: canonical address rows
- AddressTransactionRepository: transaction history

============================================================
"""

from storage.repositories.base import BaseRepository
from storage.repositories.address_repo import AddressRepository
from storage.repositories.transaction_repo import AddressTransactionRepository
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    RepositoryException,
    TransactionError,
)


__all__ = [
    "BaseRepository",
    "AddressRepository",
    "AddressTransactionRepository",
    "RepositoryException",
    "DuplicateRecordError",
    "IntegrityError",
    "ConnectionError",
    "QueryError",
    "TransactionError",
]
