"""
Client seed generation
"""

import secrets
import string

_ALPHABET = string.digits + string.ascii_lowercase


def generate_client_seed(length: int = 26) -> str:
    """Random base-36 seed for the player's side of the round"""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))
