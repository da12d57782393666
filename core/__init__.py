"""
Core Module Package.

Shared kernel that every other package depends on.

Components:
- clock: Injectable time source
- constants: Pipeline-wide constants
- exceptions: Pipeline exception hierarchy
- units: Exact minor/major unit conversion and address canonicalization
"""

from core.clock import ClockProtocol, MockClock, SystemClock
from core.exceptions import (
    AddressSyncError,
    InvalidAddressError,
    PartialRecordError,
    StateTransitionError,
    SyncTimeoutError,
)
from core.units import normalize_address, to_major_units, to_minor_units


__all__ = [
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "AddressSyncError",
    "InvalidAddressError",
    "PartialRecordError",
    "StateTransitionError",
    "SyncTimeoutError",
    "normalize_address",
    "to_major_units",
    "to_minor_units",
]
