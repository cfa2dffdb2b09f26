# dynart/entropy.py
"""
Externally supplied entropy.

The content pipeline never reads the clock or chain state itself. The host
hands it an EntropyInputs value per query, obtained from an EntropyProvider.
Tests pin the inputs with FixedEntropyProvider; ClockEntropyProvider stands
in for a live host.
"""

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .identity import normalize_address

logger = logging.getLogger(__name__)

GENESIS_HASH = hashlib.sha3_256(b"genesis").digest()


@dataclass(frozen=True)
class EntropyInputs:
    """
    Entropy for one content query.

    Attributes:
        current_time: Host time in whole seconds
        previous_hash: 32-byte hash of the previous execution unit
        producer: Identity of the block producer
        difficulty: Difficulty-like scalar (opaque, may be constant)
    """
    current_time: int
    previous_hash: bytes
    producer: str
    difficulty: int

    def __post_init__(self):
        if self.current_time < 0 or self.difficulty < 0:
            raise ValueError("Entropy integers must be non-negative")
        if len(self.previous_hash) != 32:
            raise ValueError(f"previous_hash must be 32 bytes, got {len(self.previous_hash)}")
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "producer", normalize_address(self.producer))
        object.__setattr__(self, "previous_hash", bytes(self.previous_hash))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_time": self.current_time,
            "previous_hash": self.previous_hash.hex(),
            "producer": self.producer,
            "difficulty": self.difficulty,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntropyInputs":
        previous_hash = data["previous_hash"]
        if previous_hash.startswith("0x"):
            previous_hash = previous_hash[2:]
        return cls(
            current_time=int(data["current_time"]),
            previous_hash=bytes.fromhex(previous_hash),
            producer=data["producer"],
            difficulty=int(data["difficulty"]),
        )


class EntropyProvider(ABC):
    """Capability that supplies fresh entropy for each query."""

    @abstractmethod
    def current(self) -> EntropyInputs:
        """Return the entropy inputs for a call happening now."""
        pass


class FixedEntropyProvider(EntropyProvider):
    """Returns the same inputs on every call."""

    def __init__(self, inputs: EntropyInputs):
        self.inputs = inputs

    def current(self) -> EntropyInputs:
        return self.inputs


class ClockEntropyProvider(EntropyProvider):
    """
    Simulated host entropy.

    current_time is the wall clock in whole seconds. previous_hash is a
    hash chain started from GENESIS_HASH that advances once for every new
    second observed, so it behaves like the hash of the last sealed block.
    """

    def __init__(
        self,
        producer: str,
        difficulty: int = 0,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.producer = normalize_address(producer)
        self.difficulty = difficulty
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._last_time: Optional[int] = None
        self._head = GENESIS_HASH

    def current(self) -> EntropyInputs:
        now = int(self._clock())
        with self._lock:
            if self._last_time is None:
                self._last_time = now
            elif now != self._last_time:
                self._head = hashlib.sha3_256(
                    self._head + self._last_time.to_bytes(32, "big")
                ).digest()
                self._last_time = now
                logger.debug(f"Entropy chain advanced to {self._head.hex()[:16]}...")
            head = self._head

        return EntropyInputs(
            current_time=now,
            previous_hash=head,
            producer=self.producer,
            difficulty=self.difficulty,
        )
