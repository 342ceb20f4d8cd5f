"""
Frequency distributions over tokens and weighted sampling without replacement.
"""
from __future__ import annotations

import random
from typing import Dict, Iterator, Optional, Tuple


def draw_without_replacement(remaining: Dict[str, int], rng: Optional[random.Random] = None) -> str:
    """
    Draw one weighted-random key from `remaining` and delete it.

    Builds a cumulative sum over the entries in their current order, picks a
    uniform integer in [0, total) and returns the first key whose cumulative
    sum exceeds it.

    Args:
        remaining: Mapping of key -> positive weight; mutated in place
        rng: Random source (defaults to the module-level generator)

    Returns:
        The drawn key
    """
    assert remaining, "cannot draw from an empty distribution"
    rng = rng or random

    total = sum(remaining.values())
    pick = rng.randrange(total)
    running = 0
    for key, weight in remaining.items():
        running += weight
        if pick < running:
            del remaining[key]
            return key
    raise AssertionError("cumulative distribution did not cover the drawn value")


class FrequencyDistribution:
    """Mapping from token to a positive integer count."""

    __slots__ = ("_counts",)

    def __init__(self, counts: Optional[Dict[str, int]] = None):
        self._counts: Dict[str, int] = {}
        for token, count in (counts or {}).items():
            if count > 0:
                self._counts[token] = int(count)

    def increment(self, token: str):
        self._counts[token] = self._counts.get(token, 0) + 1

    def decrement(self, token: str, amount: int = 1):
        """Subtract `amount` from a token's count, dropping it at zero."""
        assert token in self._counts, f"token {token!r} not in distribution"
        count = self._counts[token] - amount
        if count <= 0:
            del self._counts[token]
        else:
            self._counts[token] = count

    def is_empty(self) -> bool:
        return not self._counts

    def count(self, token: str) -> int:
        return self._counts.get(token, 0)

    def total(self) -> int:
        return sum(self._counts.values())

    def items(self) -> Iterator[Tuple[str, int]]:
        return iter(self._counts.items())

    def tokens(self) -> Iterator[str]:
        return iter(self._counts)

    def permutation(self, rng: Optional[random.Random] = None) -> Iterator[str]:
        """
        Yield every token exactly once, each drawn by weight from those left.

        Likely tokens tend to come first, but every token is eventually yielded.
        """
        remaining = dict(self._counts)
        while remaining:
            yield draw_without_replacement(remaining, rng)

    def to_dict(self) -> Dict[str, int]:
        return dict(self._counts)

    def __eq__(self, other) -> bool:
        if not isinstance(other, FrequencyDistribution):
            return NotImplemented
        return self._counts == other._counts

    def __repr__(self) -> str:
        return f"FrequencyDistribution({self._counts!r})"
