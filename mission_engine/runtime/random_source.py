"""
Injectable random number sources.

Every random draw in the engine goes through a RandomSource so that
outcome generation and reward rolls can be replayed exactly.
"""

import random
from typing import Iterable, List, Optional, Protocol

from mission_engine.models.mission import RateRange


class RandomSource(Protocol):
    def next(self) -> float:
        """Return a float in [0, 1)."""
        ...


class SeededRandomSource:
    """Backed by a private random.Random instance, never the module-global RNG."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def next(self) -> float:
        return self._rng.random()


class ScriptedRandomSource:
    """Replays a fixed sequence of values. Raises when the script runs out."""

    def __init__(self, values: Iterable[float]):
        self._values: List[float] = list(values)
        self._index = 0
        for v in self._values:
            if not 0.0 <= v < 1.0:
                raise ValueError(f"Scripted value out of range [0, 1): {v}")

    @property
    def consumed(self) -> int:
        return self._index

    def next(self) -> float:
        if self._index >= len(self._values):
            raise IndexError("Scripted random source exhausted")
        value = self._values[self._index]
        self._index += 1
        return value


def uniform(rng: RandomSource, span: RateRange) -> float:
    """Draw uniformly from [span.min, span.max)."""
    return span.min + rng.next() * (span.max - span.min)
