"""
Seed handling for reproducible sessions.

A session resolves its seed to a non-negative integer once, at start, and
records it in the state. Every random draw after that comes from a
``random.Random`` keyed on the seed and a stream label, so the same seed
and tick sequence always replay to the same state, including after a
save and reload.
"""

import random
import re
from typing import Optional, Union

from make2manage.engine.errors import InvalidSeed

_SEED_TOKEN = re.compile(r"^[A-Za-z0-9_.:\-]{1,64}$")
MAX_SEED = 2**32 - 1


def hash_seed(text: str) -> int:
    """Stable 32-bit hash of a seed token."""
    value = 0
    for char in text:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    return value


def resolve_seed(seed: Optional[Union[int, str]]) -> int:
    """Turn a user-supplied seed into a non-negative integer.

    Args:
        seed: Integer, seed token, or None to draw a fresh seed

    Returns:
        Integer seed in [0, 2**32)

    Raises:
        InvalidSeed: If the seed is negative, too large, or not a valid token
    """
    if seed is None:
        return random.SystemRandom().randrange(MAX_SEED)
    if isinstance(seed, bool):
        raise InvalidSeed(f"Seed must be an integer or token, got {seed!r}")
    if isinstance(seed, int):
        if seed < 0 or seed > MAX_SEED:
            raise InvalidSeed(f"Seed must be between 0 and {MAX_SEED}, got {seed}")
        return seed
    if isinstance(seed, str):
        token = seed.strip()
        if token.isdigit():
            return resolve_seed(int(token))
        if not _SEED_TOKEN.match(token):
            raise InvalidSeed(
                f"Seed token must be 1-64 letters, digits or '_.:-', got {seed!r}"
            )
        return hash_seed(token)
    raise InvalidSeed(f"Unsupported seed type: {type(seed).__name__}")


def stream(seed: int, label: str, index: Optional[int] = None) -> random.Random:
    """Independent random stream for one purpose.

    Args:
        seed: Resolved session seed
        label: Purpose of the stream (e.g. "orders", "events")
        index: Optional counter, such as the tick number

    Returns:
        Seeded ``random.Random``
    """
    key = f"{seed}:{label}" if index is None else f"{seed}:{label}:{index}"
    return random.Random(key)
