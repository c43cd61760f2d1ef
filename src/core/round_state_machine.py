"""
Round State Machine

Owns the lifecycle state of the current round.

State Machine:
    IDLE → COMMITTING → STARTING → ANIMATING → RESULT_SHOWN
      ↑         │           │                       │
      └─────────┴───────────┘ (commit/start failed) │
      ↑                                             │
      └──────────── (next drop) ←───────────────────┘

RESULT_SHOWN behaves like IDLE for a new drop: the next commit moves straight
to COMMITTING.
"""

import logging
from collections.abc import Callable

from models import RoundState

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[RoundState, frozenset[RoundState]] = {
    RoundState.IDLE: frozenset({RoundState.COMMITTING}),
    RoundState.COMMITTING: frozenset({RoundState.STARTING, RoundState.IDLE}),
    RoundState.STARTING: frozenset({RoundState.ANIMATING, RoundState.IDLE}),
    RoundState.ANIMATING: frozenset({RoundState.RESULT_SHOWN, RoundState.IDLE}),
    RoundState.RESULT_SHOWN: frozenset({RoundState.COMMITTING, RoundState.IDLE}),
}


class InvalidTransition(Exception):
    """Raised on a transition the lifecycle does not allow"""

    pass


class RoundStateMachine:
    """
    State machine for one client's rounds.

    Usage:
        sm = RoundStateMachine()
        sm.on_state_change = lambda old, new: print(f"{old} -> {new}")
        sm.begin_commit()
        sm.begin_start()
        sm.begin_animation()
        sm.show_result()
    """

    def __init__(self):
        self._state = RoundState.IDLE
        self.on_state_change: Callable[[RoundState, RoundState], None] | None = None

    @property
    def state(self) -> RoundState:
        """Current state of the state machine."""
        return self._state

    def is_busy(self) -> bool:
        """Check if a new drop must be rejected."""
        return RoundState.is_busy(self._state)

    def _transition_to(self, new_state: RoundState) -> None:
        """Transition to a new state, calling callback if set."""
        old_state = self._state
        if old_state == new_state:
            return
        if new_state not in _ALLOWED_TRANSITIONS[old_state]:
            raise InvalidTransition(f"Cannot go from {old_state.value} to {new_state.value}")

        self._state = new_state
        logger.info(f"Round state: {old_state.value} -> {new_state.value}")
        if self.on_state_change:
            self.on_state_change(old_state, new_state)

    def begin_commit(self) -> None:
        self._transition_to(RoundState.COMMITTING)

    def begin_start(self) -> None:
        self._transition_to(RoundState.STARTING)

    def begin_animation(self) -> None:
        self._transition_to(RoundState.ANIMATING)

    def show_result(self) -> None:
        self._transition_to(RoundState.RESULT_SHOWN)

    def fail(self, reason: str) -> None:
        """
        Abort the round and return to IDLE.

        Args:
            reason: Description of the failure, for the log
        """
        logger.warning(f"Round aborted in {self._state.value} state: {reason}")
        self._transition_to(RoundState.IDLE)

    def reset(self) -> None:
        """Return to IDLE from any state (teardown)."""
        old_state = self._state
        self._state = RoundState.IDLE
        if old_state != RoundState.IDLE:
            logger.debug(f"Round state reset from {old_state.value}")
