"""
Enumerations for round states and path directions
"""

from enum import Enum


class RoundState(str, Enum):
    """Round lifecycle states"""

    IDLE = "idle"
    COMMITTING = "committing"
    STARTING = "starting"
    ANIMATING = "animating"
    RESULT_SHOWN = "result_shown"

    @classmethod
    def is_busy(cls, state: "RoundState") -> bool:
        """Check if a drop request must be rejected in this state.

        Busy states:
        - COMMITTING / STARTING: a network call for the round is in flight
        - ANIMATING: the ball is still falling
        """
        return state in (cls.COMMITTING, cls.STARTING, cls.ANIMATING)


class Direction(str, Enum):
    """Ball deflection at a peg"""

    LEFT = "LEFT"
    RIGHT = "RIGHT"
