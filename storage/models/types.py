"""
Column types shared by the ORM models.

- PreciseDecimal: exact decimal on every backend
- JSONType: JSONB on PostgreSQL, generic JSON elsewhere
"""

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator


JSONType = JSON().with_variant(JSONB(), "postgresql")


class PreciseDecimal(TypeDecorator):
    """
    Exact decimal column.

    NUMERIC(78, 18) on PostgreSQL (78 digits hold any uint256).
    Other dialects store the plain decimal string, since SQLite
    NUMERIC affinity goes through a float.
    """

    impl = String
    cache_ok = True

    def __init__(self, precision: int = 78, scale: int = 18):
        super().__init__()
        self.precision = precision
        self.scale = scale

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Numeric(self.precision, self.scale, asdecimal=True))
        return dialect.type_descriptor(String(self.precision + 2))

    def process_bind_param(self, value: Any, dialect) -> Optional[Any]:
        if value is None:
            return None
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        if dialect.name == "postgresql":
            return value
        return format(value, "f")

    def process_result_value(self, value: Any, dialect) -> Optional[Decimal]:
        if value is None:
            return None
        if isinstance(value, Decimal):
            return value
        return Decimal(str(value))
