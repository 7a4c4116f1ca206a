"""Finalize state machine models — deterministic transitions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FinalizeState(str, Enum):
    """States of a single ``finalize release`` invocation."""

    VALIDATING = "validating"
    ALLOCATING = "allocating"
    GATING = "gating"
    DRY_RUN_STOP = "dry_run_stop"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


# Any non-terminal state may fail. DRY_RUN_STOP, DONE and FAILED are terminal.
VALID_TRANSITIONS: dict[FinalizeState, set[FinalizeState]] = {
    FinalizeState.VALIDATING: {FinalizeState.ALLOCATING, FinalizeState.FAILED},
    FinalizeState.ALLOCATING: {FinalizeState.GATING, FinalizeState.FAILED},
    FinalizeState.GATING: {
        FinalizeState.DRY_RUN_STOP,
        FinalizeState.COMMITTING,
        FinalizeState.FAILED,
    },
    FinalizeState.COMMITTING: {FinalizeState.DONE, FinalizeState.FAILED},
    FinalizeState.DRY_RUN_STOP: set(),
    FinalizeState.DONE: set(),
    FinalizeState.FAILED: set(),
}

TERMINAL_STATES: frozenset[FinalizeState] = frozenset(
    state for state, targets in VALID_TRANSITIONS.items() if not targets
)


class FinalizeTransition(BaseModel):
    """Records a single state transition for the invocation history."""

    model_config = ConfigDict(frozen=True)

    from_state: FinalizeState
    to_state: FinalizeState
    reason: str | None = None  # populated when entering FAILED
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
