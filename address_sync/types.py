"""
Address Sync - Types.

============================================================
PURPOSE
============================================================
Value types shared by the sync pipeline:

- SyncStatus: lifecycle of an Address row
- SyncStep / StepOutcome / StepResult: one upstream step of a pass
  and what came of it
- StepPolicy / STEP_POLICIES: how each outcome folds into the pass
- SyncReport: diagnostics of one pass

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# SYNC STATUS
# ============================================================

class SyncStatus(Enum):
    """Lifecycle state of an Address."""

    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    NOT_FOUND = "not_found"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        """Terminal for one pass; a new pass may always re-enter SYNCING."""
        return self in (SyncStatus.SYNCED, SyncStatus.NOT_FOUND, SyncStatus.FAILED)


# ============================================================
# STEPS
# ============================================================

class SyncStep(Enum):
    """Upstream reads and derivations of one sync pass, in apply order."""

    ACCOUNT = "account"
    COUNTERS = "counters"
    CONTRACT = "contract"
    TOKEN = "token"
    TOKEN_HOLDINGS = "token_holdings"
    TRANSACTIONS = "transactions"
    INTERNAL_TRANSACTIONS = "internal_transactions"
    VALIDATOR_DEPOSITS = "validator_deposits"
    VALIDATOR_WITHDRAWALS = "validator_withdrawals"
    PRICE = "price"
    RISK = "risk"


class StepOutcome(Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    FAILURE = "failure"


@dataclass
class StepResult:
    """Outcome of one step; ``value`` on success, ``error`` otherwise."""

    step: SyncStep
    outcome: StepOutcome
    value: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, step: SyncStep, value: Any) -> "StepResult":
        return cls(step=step, outcome=StepOutcome.SUCCESS, value=value)

    @classmethod
    def not_found(cls, step: SyncStep, error: Optional[BaseException] = None) -> "StepResult":
        return cls(step=step, outcome=StepOutcome.NOT_FOUND, error=error)

    @classmethod
    def failure(cls, step: SyncStep, error: BaseException) -> "StepResult":
        return cls(step=step, outcome=StepOutcome.FAILURE, error=error)

    @property
    def ok(self) -> bool:
        return self.outcome == StepOutcome.SUCCESS


# ============================================================
# STEP POLICY
# ============================================================

class NotFoundPolicy(Enum):
    """What a 404 from a step means for the pass."""

    TERMINAL = "terminal"
    """The address does not exist upstream; end the pass as not_found."""

    ABSENT = "absent"
    """The feature is absent; apply its zero value."""

    ABORT = "abort"
    """Unexpected; fail the pass."""


class FailurePolicy(Enum):
    """What any other failure of a step means for the pass."""

    ABORT = "abort"
    """Fail the pass and re-raise."""

    SKIP = "skip"
    """Log, keep the previous value, continue."""


@dataclass(frozen=True)
class StepPolicy:
    on_not_found: NotFoundPolicy
    on_failure: FailurePolicy


STEP_POLICIES: Dict[SyncStep, StepPolicy] = {
    SyncStep.ACCOUNT: StepPolicy(NotFoundPolicy.TERMINAL, FailurePolicy.ABORT),
    SyncStep.COUNTERS: StepPolicy(NotFoundPolicy.ABORT, FailurePolicy.ABORT),
    SyncStep.CONTRACT: StepPolicy(NotFoundPolicy.ABSENT, FailurePolicy.ABORT),
    SyncStep.TOKEN: StepPolicy(NotFoundPolicy.ABSENT, FailurePolicy.SKIP),
    SyncStep.TOKEN_HOLDINGS: StepPolicy(NotFoundPolicy.ABSENT, FailurePolicy.SKIP),
    SyncStep.TRANSACTIONS: StepPolicy(NotFoundPolicy.ABSENT, FailurePolicy.ABORT),
    SyncStep.INTERNAL_TRANSACTIONS: StepPolicy(NotFoundPolicy.ABSENT, FailurePolicy.SKIP),
    SyncStep.VALIDATOR_DEPOSITS: StepPolicy(NotFoundPolicy.ABSENT, FailurePolicy.SKIP),
    SyncStep.VALIDATOR_WITHDRAWALS: StepPolicy(NotFoundPolicy.ABSENT, FailurePolicy.SKIP),
    SyncStep.PRICE: StepPolicy(NotFoundPolicy.ABSENT, FailurePolicy.SKIP),
    SyncStep.RISK: StepPolicy(NotFoundPolicy.ABSENT, FailurePolicy.SKIP),
}


# ============================================================
# PASS REPORT
# ============================================================

@dataclass
class SyncReport:
    """Diagnostics of one sync pass."""

    address: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: Optional[SyncStatus] = None
    steps: Dict[SyncStep, StepOutcome] = field(default_factory=dict)
    skipped_steps: List[str] = field(default_factory=list)
    transactions_processed: int = 0
    transactions_created: int = 0
    transactions_rejected: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "status": self.status.value if self.status else None,
            "steps": {step.value: outcome.value for step, outcome in self.steps.items()},
            "skipped_steps": self.skipped_steps,
            "transactions_processed": self.transactions_processed,
            "transactions_created": self.transactions_created,
            "transactions_rejected": self.transactions_rejected,
            "error": self.error,
        }
