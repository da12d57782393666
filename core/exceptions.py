"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the pipeline-level exceptions.

Upstream transport failures live in ``explorer_adapters.exceptions``
and storage failures in ``storage.repositories.exceptions``; this
module covers what the sync pipeline itself raises.

============================================================
EXCEPTION HIERARCHY
============================================================
AddressSyncError (base)
├── InvalidAddressError
├── PartialRecordError
├── StateTransitionError
└── SyncTimeoutError

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# BASE EXCEPTION
# ============================================================

class AddressSyncError(Exception):
    """
    Base exception for all address sync errors.

    All exceptions carry:
    - context: for debugging
    - recoverable: whether a later retry may succeed
    - timestamp: when the error occurred
    """

    default_recoverable: bool = True

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# INPUT ERRORS
# ============================================================

class InvalidAddressError(AddressSyncError):
    """Address string is not a 0x-prefixed 20-byte hex value."""

    default_recoverable = False

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid address: {value!r}",
            context={"value": str(value)[:100]},
        )
        self.value = value


# ============================================================
# RECORD ERRORS
# ============================================================

class PartialRecordError(AddressSyncError):
    """
    A single upstream record could not be normalized.

    Raised per record by the ingestor and absorbed there; the
    record is retained for diagnostics.
    """

    default_recoverable = False

    def __init__(
        self,
        reason: str,
        record: Optional[Any] = None,
        field_name: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        context: Dict[str, Any] = {"reason": reason}
        if field_name:
            context["field_name"] = field_name
        super().__init__(message=reason, context=context, cause=cause)
        self.reason = reason
        self.record = record
        self.field_name = field_name


# ============================================================
# LIFECYCLE ERRORS
# ============================================================

class StateTransitionError(AddressSyncError):
    """Invalid sync status transition."""

    default_recoverable = False

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
    ):
        context: Dict[str, Any] = {}
        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state
        super().__init__(message, context=context)
        self.from_state = from_state
        self.to_state = to_state


class SyncTimeoutError(AddressSyncError):
    """A sync pass exceeded its wall-clock deadline."""

    def __init__(self, address: str, timeout_seconds: float):
        super().__init__(
            message=f"Sync of {address} exceeded deadline of {timeout_seconds:g}s",
            context={"address": address, "timeout_seconds": timeout_seconds},
        )
        self.address = address
        self.timeout_seconds = timeout_seconds


__all__ = [
    "AddressSyncError",
    "InvalidAddressError",
    "PartialRecordError",
    "StateTransitionError",
    "SyncTimeoutError",
]
