"""Deterministic finalize state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- A reason on every transition into FAILED
- Every transition recorded in the invocation history
"""

from __future__ import annotations

import logging

from finalforge.models.stages import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    FinalizeState,
    FinalizeTransition,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class FinalizeStateMachine:
    """Tracks one finalize invocation through its states.

    Parameters
    ----------
    initial:
        Starting state, ``VALIDATING`` by default.
    """

    def __init__(self, initial: FinalizeState = FinalizeState.VALIDATING) -> None:
        self._state = initial
        self._history: list[FinalizeTransition] = []

    @property
    def state(self) -> FinalizeState:
        return self._state

    @property
    def history(self) -> list[FinalizeTransition]:
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def failure_reason(self) -> str | None:
        if self._state is not FinalizeState.FAILED:
            return None
        return self._history[-1].reason

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(
        self, target: FinalizeState, *, reason: str | None = None
    ) -> FinalizeTransition:
        """Move to *target*, recording the transition.

        Raises ``InvalidTransitionError`` if VALID_TRANSITIONS forbids it.
        """
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {self._state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        if target is FinalizeState.FAILED and not reason:
            raise InvalidTransitionError("Transition to failed requires a reason")

        record = FinalizeTransition(
            from_state=self._state, to_state=target, reason=reason
        )
        self._history.append(record)
        self._state = target
        logger.debug("Finalize: %s -> %s", record.from_state.value, target.value)
        return record

    def fail(self, reason: str) -> FinalizeTransition | None:
        """Enter FAILED from any non-terminal state; no-op once terminal."""
        if self.is_terminal:
            return None
        return self.transition(FinalizeState.FAILED, reason=reason)
