"""
Data models for Plinko Lab
"""

from .enums import Direction, RoundState
from .playback import BallPosition, BoardGeometry, PlaybackState
from .round import (
    BOARD_ROWS,
    MAX_COLUMN,
    CommitResponse,
    GameResult,
    PathStep,
    RevealResponse,
    Round,
)
from .verification import (
    VERIFICATION_FIELDS,
    ReconciledVerification,
    VerificationInput,
    VerificationReport,
)

__all__ = [
    "Direction",
    "RoundState",
    # Playback
    "BallPosition",
    "BoardGeometry",
    "PlaybackState",
    # Round wire models
    "BOARD_ROWS",
    "MAX_COLUMN",
    "CommitResponse",
    "GameResult",
    "PathStep",
    "RevealResponse",
    "Round",
    # Verification
    "VERIFICATION_FIELDS",
    "ReconciledVerification",
    "VerificationInput",
    "VerificationReport",
]
