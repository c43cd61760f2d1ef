"""
Decimal Utilities Module - Consistent handling of money and multipliers
Ensures precision and prevents float/Decimal mixing issues
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

logger = logging.getLogger(__name__)

# Type alias for numeric types
Numeric = Union[Decimal, float, str, int]

__all__ = [
    "CENTS_PER_DOLLAR",
    "clamp_column",
    "format_cents",
    "format_multiplier",
    "to_decimal",
]

CENTS_PER_DOLLAR = Decimal("100")
_TWO_PLACES = Decimal("0.01")


def to_decimal(value: Numeric, default: Decimal | None = None) -> Decimal:
    """
    Safely convert value to Decimal

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        Decimal value

    Raises:
        ValueError if conversion fails and no default provided
    """
    if isinstance(value, Decimal):
        return value

    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        if default is not None:
            logger.warning(f"Failed to convert {value} to Decimal: {e}, using default {default}")
            return default
        raise ValueError(f"Cannot convert {value} to Decimal: {e}")


def format_cents(cents: Numeric) -> str:
    """
    Format an amount in cents as dollars

    Args:
        cents: Amount in cents

    Returns:
        Formatted string (e.g., 250 -> "$2.50")
    """
    dollars = (to_decimal(cents) / CENTS_PER_DOLLAR).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    if dollars < 0:
        return f"-${-dollars}"
    return f"${dollars}"


def format_multiplier(value: Numeric) -> str:
    """Format a payout multiplier without trailing zeros (e.g., "2.5x", "10x")"""
    return f"{format(to_decimal(value).normalize(), 'f')}x"


def clamp_column(column: int, max_column: int = 12) -> int:
    """Clamp a drop column onto the board"""
    return max(0, min(max_column, column))
