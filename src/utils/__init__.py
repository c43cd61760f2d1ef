"""
Utility modules for Plinko Lab
"""

from .decimal_utils import (
    CENTS_PER_DOLLAR,
    clamp_column,
    format_cents,
    format_multiplier,
    to_decimal,
)
from .seeds import generate_client_seed

__all__ = [
    'CENTS_PER_DOLLAR',
    'clamp_column',
    'format_cents',
    'format_multiplier',
    'generate_client_seed',
    'to_decimal',
]
