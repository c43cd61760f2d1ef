"""
Input validation functions
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from core.errors import InvalidInput, StartFailed
from models import BOARD_ROWS, MAX_COLUMN, GameResult
from utils import clamp_column

# Same filter the bet field applies while typing: digits with at most one dot
BET_TEXT_PATTERN = re.compile(r"\d*\.?\d*")


def is_bet_text_allowed(text: str) -> bool:
    """Check whether an edit to the bet field should be accepted"""
    return bool(BET_TEXT_PATTERN.fullmatch(text))


def parse_bet_cents(text: str) -> int:
    """
    Convert a dollar amount typed by the user into integer cents

    Multiplies by 100 and rounds half up, so "1.005" becomes 101.

    Args:
        text: Bet amount, e.g. "1.00"

    Returns:
        Non-negative integer cents

    Raises:
        InvalidInput: If the text is not a plain non-negative decimal number
    """
    candidate = (text or "").strip()
    if not candidate or candidate == "." or not BET_TEXT_PATTERN.fullmatch(candidate):
        raise InvalidInput(f"Invalid bet amount: {text!r}")

    try:
        amount = Decimal(candidate)
    except InvalidOperation as e:
        raise InvalidInput(f"Invalid bet amount: {text!r}") from e

    if not amount.is_finite() or amount < 0:
        raise InvalidInput(f"Invalid bet amount: {text!r}")

    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_drop_column(column: int) -> int:
    """
    Validate a drop column is on the board

    Raises:
        InvalidInput: If column is not an integer in [0, 12]
    """
    if isinstance(column, bool) or not isinstance(column, int):
        raise InvalidInput(f"Drop column must be an integer, got {column!r}")
    if not 0 <= column <= MAX_COLUMN:
        raise InvalidInput(f"Drop column {column} outside 0-{MAX_COLUMN}")
    return column


def validate_game_result(result: GameResult, rows: int = BOARD_ROWS) -> GameResult:
    """
    Check a start response describes a playable descent

    Column bounds are already enforced by PathStep; this checks the path
    length, one step per peg row.

    Raises:
        StartFailed: If the path is empty or has the wrong length
    """
    if len(result.path) != rows:
        raise StartFailed(
            f"Round {result.round_id} returned {len(result.path)} path steps, expected {rows}"
        )

    return result


def nudge_drop_column(column: int, delta: int) -> int:
    """Move the drop column by delta, staying on the board (arrow-key stepping)"""
    return clamp_column(column + delta, MAX_COLUMN)
