"""
Sync Status State Machine Tests.

Tests cover:
- Transition table
- Lifecycle side effects on the Address row
"""

from datetime import datetime, timezone

import pytest

from address_sync.state_machine import SyncStateMachine, TransitionGuard
from address_sync.types import SyncStatus
from core.clock import MockClock
from core.constants import NOT_FOUND_NOTE
from core.exceptions import StateTransitionError
from storage.models.address import Address

from conftest import ADDRESS


START = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def address_in(status: SyncStatus) -> Address:
    return Address(address=ADDRESS, sync_status=status.value, is_contract=True, labels=[], sanctioned_by=[])


# =============================================================
# TEST: TransitionGuard
# =============================================================

class TestTransitionGuard:

    @pytest.mark.parametrize("from_state", list(SyncStatus))
    def test_any_state_may_enter_syncing(self, from_state):
        allowed, _ = TransitionGuard.can_transition(from_state, SyncStatus.SYNCING)
        assert allowed

    @pytest.mark.parametrize("to_state", [SyncStatus.SYNCED, SyncStatus.NOT_FOUND, SyncStatus.FAILED])
    def test_outcomes_require_syncing(self, to_state):
        assert TransitionGuard.can_transition(SyncStatus.SYNCING, to_state)[0]
        allowed, reason = TransitionGuard.can_transition(SyncStatus.PENDING, to_state)
        assert not allowed
        assert "pending" in reason

    def test_terminal_to_terminal_denied(self):
        assert not TransitionGuard.can_transition(SyncStatus.SYNCED, SyncStatus.FAILED)[0]
        assert not TransitionGuard.can_transition(SyncStatus.FAILED, SyncStatus.SYNCED)[0]


# =============================================================
# TEST: SyncStateMachine
# =============================================================

class TestSyncStateMachine:

    def test_begin_stamps_last_synced_at(self):
        machine = SyncStateMachine(MockClock(START))
        address = address_in(SyncStatus.PENDING)

        stamp = machine.begin(address)

        assert stamp == START
        assert address.last_synced_at == START
        assert address.sync_status == "syncing"

    def test_complete_clears_error(self):
        machine = SyncStateMachine(MockClock(START))
        address = address_in(SyncStatus.FAILED)
        address.last_error = "boom"

        machine.begin(address)
        machine.complete(address)

        assert address.sync_status == "synced"
        assert address.last_error is None

    def test_not_found_keeps_is_contract(self):
        machine = SyncStateMachine(MockClock(START))
        address = address_in(SyncStatus.SYNCED)

        machine.begin(address)
        machine.mark_not_found(address)

        assert address.sync_status == "not_found"
        assert address.last_error == NOT_FOUND_NOTE
        assert address.is_contract is True

    def test_fail_records_message_verbatim(self):
        machine = SyncStateMachine(MockClock(START))
        address = address_in(SyncStatus.PENDING)
        machine.begin(address)
        machine.fail(address, "Rate limit exceeded (retry after 7s)")

        assert address.sync_status == "failed"
        assert address.last_error == "Rate limit exceeded (retry after 7s)"

    def test_invalid_transition_raises(self):
        machine = SyncStateMachine(MockClock(START))
        address = address_in(SyncStatus.PENDING)

        with pytest.raises(StateTransitionError) as exc_info:
            machine.complete(address)

        assert exc_info.value.from_state == "pending"
        assert exc_info.value.to_state == "synced"
        assert address.sync_status == "pending"

    def test_missing_status_reads_as_pending(self):
        address = Address(address=ADDRESS)
        assert SyncStateMachine.status_of(address) == SyncStatus.PENDING
