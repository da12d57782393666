"""
Address Sync - Status State Machine.

============================================================
PURPOSE
============================================================
Manages the sync lifecycle of an Address with guarded transitions.

STATE MACHINE:

    PENDING ──► SYNCING ──┬──► SYNCED
                  ▲       ├──► NOT_FOUND
                  │       └──► FAILED
                  │               │
                  └───────────────┘   (any state may re-enter SYNCING)

INVARIANTS:
- SYNCING is committed, with last_synced_at, before any upstream call
- SYNCED clears last_error
- NOT_FOUND leaves is_contract untouched
- FAILED records the exception message verbatim

============================================================
"""

import logging
from datetime import datetime
from typing import Dict, Optional, Set

from core.clock import ClockProtocol, SystemClock
from core.constants import NOT_FOUND_NOTE
from core.exceptions import StateTransitionError
from address_sync.types import SyncStatus
from storage.models.address import Address


logger = logging.getLogger(__name__)


# ============================================================
# STATE TRANSITION RULES
# ============================================================

VALID_TRANSITIONS: Dict[SyncStatus, Set[SyncStatus]] = {
    SyncStatus.PENDING: {SyncStatus.SYNCING},
    SyncStatus.SYNCING: {SyncStatus.SYNCED, SyncStatus.NOT_FOUND, SyncStatus.FAILED},
    SyncStatus.SYNCED: {SyncStatus.SYNCING},
    SyncStatus.NOT_FOUND: {SyncStatus.SYNCING},
    SyncStatus.FAILED: {SyncStatus.SYNCING},
}


# ============================================================
# STATE TRANSITION GUARD
# ============================================================

class TransitionGuard:
    """Ensures transitions are valid and explains denials."""

    @staticmethod
    def can_transition(
        from_state: SyncStatus,
        to_state: SyncStatus,
    ) -> tuple[bool, str]:
        """
        Check if transition is allowed.

        Returns:
            Tuple of (allowed, reason)
        """
        # Re-entering SYNCING after an interrupted pass
        if from_state == to_state == SyncStatus.SYNCING:
            return True, "Same state"

        if to_state in VALID_TRANSITIONS.get(from_state, set()):
            return True, "Valid transition"

        return False, f"Invalid transition: {from_state.value} -> {to_state.value}"


# ============================================================
# STATE MACHINE
# ============================================================

class SyncStateMachine:
    """Applies lifecycle transitions to Address rows."""

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock or SystemClock()

    @staticmethod
    def status_of(address: Address) -> SyncStatus:
        return SyncStatus(address.sync_status or SyncStatus.PENDING.value)

    def _transition(self, address: Address, to_state: SyncStatus) -> None:
        from_state = self.status_of(address)
        allowed, reason = TransitionGuard.can_transition(from_state, to_state)
        if not allowed:
            raise StateTransitionError(
                f"{address.address}: {reason}",
                from_state=from_state.value,
                to_state=to_state.value,
            )
        address.sync_status = to_state.value
        logger.debug(f"[{address.address}] {from_state.value} -> {to_state.value}")

    def begin(self, address: Address) -> datetime:
        """Enter SYNCING and stamp last_synced_at; returns the stamp."""
        self._transition(address, SyncStatus.SYNCING)
        started_at = self._clock.now()
        address.last_synced_at = started_at
        return started_at

    def complete(self, address: Address) -> None:
        self._transition(address, SyncStatus.SYNCED)
        address.last_error = None

    def mark_not_found(self, address: Address, note: str = NOT_FOUND_NOTE) -> None:
        self._transition(address, SyncStatus.NOT_FOUND)
        address.last_error = note

    def fail(self, address: Address, message: str) -> None:
        self._transition(address, SyncStatus.FAILED)
        address.last_error = message
