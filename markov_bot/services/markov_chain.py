"""
Second-order (triplet) Markov chain over whitespace-delimited tokens.

A chain holds two views of one logical table:
- the context table: "<first> <second>" context key -> distribution of
  successor tokens
- the seed index: normalized token -> context keys whose second token
  normalizes to it, so seeded generation never scans the whole table

Both are private. Training (add_message/add) and undo (remove_message,
remove_chain, remove) are the only mutators and keep the two consistent.
Tokens are FieldCodec-escaped whenever they enter the table, which keeps the
serialized form safe to store as MongoDB field names.
"""
from __future__ import annotations

import random
from typing import Dict, Iterator, List, Optional, Set, Tuple

from markov_bot.services import field_codec
from markov_bot.services.frequency import FrequencyDistribution
from markov_bot.services.generator import BOUNDARY, generate as _generate
from markov_bot.services.length_requirement import LengthRequirement

Context = Tuple[str, str]


def context_key(first: str, second: str) -> str:
    """Serialize a context as a single escaped string."""
    return f"{field_codec.encode(first)} {field_codec.encode(second)}"


def split_context_key(key: str) -> Context:
    first, second = key.split(" ")
    return field_codec.decode(first), field_codec.decode(second)


def trim_non_alphanumeric(word: str) -> str:
    """Strip leading and trailing characters that are not letters or digits."""
    start, end = 0, len(word)
    while start < end and not word[start].isalnum():
        start += 1
    while end > start and not word[end - 1].isalnum():
        end -= 1
    return word[start:end]


def normalizations(token: str) -> List[str]:
    """Distinct, non-empty seed-index keys for a token."""
    lowered = token.lower()
    keys = []
    for key in (lowered, trim_non_alphanumeric(lowered)):
        if key and key not in keys:
            keys.append(key)
    return keys


def message_windows(text: str) -> Iterator[Tuple[Context, str]]:
    """
    Yield ((first, second), successor) for every transition in a message.

    The token sequence is padded as ε, ε, t1..tn, ε, ε so the first context
    is (ε, ε) and the final windows end in ε. Messages with no tokens yield
    nothing.
    """
    tokens = text.split()
    if not tokens:
        return
    padded = [BOUNDARY, BOUNDARY] + tokens + [BOUNDARY, BOUNDARY]
    for i in range(len(padded) - 2):
        yield (padded[i], padded[i + 1]), padded[i + 2]


class MarkovChain:
    """Trained model (context table + seed index) for one owner."""

    def __init__(self, user_id: str = ""):
        self.user_id = user_id
        self._data: Dict[str, FrequencyDistribution] = {}
        self._seeds: Dict[str, Set[str]] = {}

    # --- training ---
    def add_message(self, text: str):
        """Add every transition in a message to the chain."""
        for context, successor in message_windows(text):
            self.add(context, successor)

    def add(self, context: Context, successor: str):
        first, second = context
        key = context_key(first, second)
        dist = self._data.get(key)
        if dist is None:
            dist = FrequencyDistribution()
            self._data[key] = dist
        dist.increment(field_codec.encode(successor))

        for norm in normalizations(second):
            self._seeds.setdefault(norm, set()).add(key)

    # --- undo ---
    def remove_message(self, text: str):
        """Reverse a previous add_message() of the same text."""
        for context, successor in message_windows(text):
            self.remove(context, successor, 1)

    def remove_chain(self, other: "MarkovChain"):
        """Subtract every transition count recorded in another chain."""
        for context, successor, count in list(other.transitions()):
            self.remove(context, successor, count)

    def remove(self, context: Context, successor: str, count: int = 1):
        first, second = context
        key = context_key(first, second)
        dist = self._data.get(key)
        assert dist is not None, f"context {key!r} not in chain {self.user_id!r}"

        dist.decrement(field_codec.encode(successor), count)
        if not dist.is_empty():
            return

        del self._data[key]
        for norm in normalizations(second):
            keys = self._seeds.get(norm)
            assert keys is not None and key in keys, f"context {key!r} missing from seed index entry {norm!r}"
            keys.discard(key)
            if not keys:
                del self._seeds[norm]

    # --- read access ---
    def is_empty(self) -> bool:
        return not self._data

    def distribution(self, key: str) -> Optional[FrequencyDistribution]:
        """Successor distribution for a serialized context key."""
        return self._data.get(key)

    def match_seed(self, seed: str) -> Optional[Set[str]]:
        """
        Context keys whose second token matches a seed word.

        Tries the lower-cased seed first, then the lower-cased seed with
        surrounding punctuation trimmed.
        """
        lowered = seed.lower()
        keys = self._seeds.get(lowered)
        if not keys:
            keys = self._seeds.get(trim_non_alphanumeric(lowered))
        return keys

    def transitions(self) -> Iterator[Tuple[Context, str, int]]:
        """Yield ((first, second), successor, count) with tokens decoded."""
        for key, dist in self._data.items():
            context = split_context_key(key)
            for successor, count in dist.items():
                yield context, field_codec.decode(successor), count

    def generate(
        self,
        seed: Optional[str] = None,
        length_requirement: Optional[LengthRequirement] = None,
        rng: Optional[random.Random] = None,
        max_steps: Optional[int] = None,
    ) -> List[str]:
        """Generate a token sequence. See generator.generate()."""
        return _generate(self, seed, length_requirement, rng=rng, max_steps=max_steps)

    # --- persistence ---
    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "data": {key: dist.to_dict() for key, dist in self._data.items()},
            "seeds": {field_codec.encode(norm): sorted(keys) for norm, keys in self._seeds.items()},
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "MarkovChain":
        chain = cls(raw.get("user_id", ""))
        for key, counts in raw.get("data", {}).items():
            dist = FrequencyDistribution(counts)
            if not dist.is_empty():
                chain._data[key] = dist
        for norm, keys in raw.get("seeds", {}).items():
            if keys:
                chain._seeds[field_codec.decode(norm)] = set(keys)
        return chain

    def __eq__(self, other) -> bool:
        if not isinstance(other, MarkovChain):
            return NotImplemented
        return self._data == other._data and self._seeds == other._seeds

    def __repr__(self) -> str:
        return f"MarkovChain(user_id={self.user_id!r}, contexts={len(self._data)}, seeds={len(self._seeds)})"
