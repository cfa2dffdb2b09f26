# dynart/seeds.py
"""
Seed derivation.

    seed_a = H(asset_id, current_time, previous_hash)
    seed_b = H(seed_a, producer, difficulty)

H is SHA3-256 over a packed encoding, read back as a 256-bit big-endian
integer. Packing: integers are 32-byte big-endian words, identities are
their 20 raw bytes, byte strings are copied as-is. Seeds are derived, not
secret: anyone with the same inputs gets the same values.
"""

import hashlib
from typing import Tuple, Union

from .entropy import EntropyInputs
from .identity import address_bytes

WORD_BITS = 256
WORD_MAX = (1 << WORD_BITS) - 1

Packable = Union[int, bytes, str]


def _pack(value: Packable) -> bytes:
    if isinstance(value, bool):
        raise ValueError("Cannot pack a boolean")
    if isinstance(value, int):
        if value < 0 or value > WORD_MAX:
            raise ValueError(f"Integer out of 256-bit range: {value}")
        return value.to_bytes(32, "big")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return address_bytes(value)
    raise ValueError(f"Cannot pack {type(value).__name__}")


def pack(*values: Packable) -> bytes:
    """Concatenate the packed encodings of values."""
    return b"".join(_pack(v) for v in values)


def hash_words(*values: Packable) -> int:
    """SHA3-256 of the packed values as an unsigned 256-bit integer."""
    return int.from_bytes(hashlib.sha3_256(pack(*values)).digest(), "big")


def derive_seeds(asset_id: int, entropy: EntropyInputs) -> Tuple[int, int]:
    """
    Derive the two content seeds for an asset.

    Pure function: identical inputs always give identical seeds.

    Args:
        asset_id: Asset identifier
        entropy: Host-supplied entropy for this query

    Returns:
        (seed_a, seed_b), both in [0, 2**256)
    """
    seed_a = hash_words(asset_id, entropy.current_time, entropy.previous_hash)
    seed_b = hash_words(seed_a, entropy.producer, entropy.difficulty)
    return seed_a, seed_b
