"""Core module - Round lifecycle, playback and verification"""

from . import validators
from .errors import (
    CommitFailed,
    EmptyPath,
    IncompleteInput,
    InvalidInput,
    NoResultAvailable,
    NoRoundId,
    PlinkoError,
    RevealFailed,
    StartFailed,
    VerificationFailed,
)
from .playback_engine import PathPlaybackEngine, PlaybackHandle, ball_positions
from .round_controller import RoundController
from .round_state_machine import RoundStateMachine
from .validators import (
    is_bet_text_allowed,
    nudge_drop_column,
    parse_bet_cents,
    validate_drop_column,
    validate_game_result,
)
from .verification import VerificationReconciler
from .verifier import VerificationForm

__all__ = [
    "CommitFailed",
    "EmptyPath",
    "IncompleteInput",
    "InvalidInput",
    "NoResultAvailable",
    "NoRoundId",
    "PathPlaybackEngine",
    "PlaybackHandle",
    "PlinkoError",
    "RevealFailed",
    "RoundController",
    "RoundStateMachine",
    "StartFailed",
    "VerificationFailed",
    "VerificationForm",
    "VerificationReconciler",
    "ball_positions",
    "is_bet_text_allowed",
    "nudge_drop_column",
    "parse_bet_cents",
    "validate_drop_column",
    "validate_game_result",
    "validators",
]
