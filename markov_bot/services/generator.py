"""
Weighted-random backtracking generation over a MarkovChain.

Starting contexts and successors are both tried in weighted order without
replacement: the likeliest choice is attempted first, but every choice is
eventually attempted. Unconstrained generation almost always succeeds on
the first path; a length requirement falls back to exhaustive depth-first
search, pruned as soon as a branch can no longer meet the bound.

The search keeps its own stack instead of recursing, so long messages do
not hit the interpreter's recursion limit.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from markov_bot.services import field_codec
from markov_bot.services.frequency import draw_without_replacement
from markov_bot.services.length_requirement import LengthRequirement

if TYPE_CHECKING:
    from markov_bot.services.markov_chain import MarkovChain

logger = logging.getLogger(__name__)

BOUNDARY = ""


class GenerationErrorKind(str, Enum):
    EMPTY = "empty"
    NO_SUCH_SEED = "no_such_seed"
    LENGTH_REQUIREMENT_INVALID = "length_requirement_invalid"
    CANNOT_MEET_LENGTH_REQUIREMENT = "cannot_meet_length_requirement"


class GenerationError(Exception):
    """Expected generation failure; `kind` says which one."""

    def __init__(self, kind: GenerationErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass
class _Frame:
    second: str
    length: int
    successors: Iterator[str]


class _Search:
    """Depth-first search state shared across all starting contexts of one call."""

    def __init__(
        self,
        chain: "MarkovChain",
        requirement: Optional[LengthRequirement],
        rng: Optional[random.Random],
        max_steps: Optional[int],
    ):
        self.chain = chain
        self.requirement = requirement
        self.rng = rng
        self.max_steps = max_steps
        self.steps = 0
        self.exhausted = False

    def _visit(self, first: str, second: str, emitted: int):
        """
        Enter context (first, second) having emitted `emitted` tokens before `second`.

        Returns True for an accepted end of message, None for a failed
        branch, or a frame whose successors are still to be tried.
        """
        if second == BOUNDARY and first != BOUNDARY:
            if self.requirement is None or self.requirement.is_satisfied(emitted):
                return True
            return None

        if self.max_steps is not None and self.steps >= self.max_steps:
            self.exhausted = True
            return None
        self.steps += 1

        length = emitted + (1 if second != BOUNDARY else 0)
        dist = self.chain.distribution(f"{first} {second}")
        assert dist is not None, f"context {first!r} {second!r} reachable but not in chain"

        if self.requirement is not None:
            max_length = self.requirement.max_length
            if max_length is not None and length > max_length:
                return None
            if length < self.requirement.min_length and all(t == BOUNDARY for t in dist.tokens()):
                return None

        return _Frame(second, length, dist.permutation(self.rng))

    def run(self, first: str, second: str) -> Optional[List[str]]:
        """Search from one starting context; returns escaped tokens or None."""
        start = self._visit(first, second, 0)
        if start is True:
            return []
        if start is None:
            return None

        stack: List[_Frame] = [start]
        while stack:
            frame = stack[-1]
            successor = None if self.exhausted else next(frame.successors, None)
            if successor is None:
                stack.pop()
                continue

            child = self._visit(frame.second, successor, frame.length)
            if child is True:
                return [f.second for f in stack if f.second != BOUNDARY]
            if child is not None:
                stack.append(child)
        return None


def generate(
    chain: "MarkovChain",
    seed: Optional[str] = None,
    length_requirement: Optional[LengthRequirement] = None,
    rng: Optional[random.Random] = None,
    max_steps: Optional[int] = None,
) -> List[str]:
    """
    Generate a token sequence from a chain.

    Args:
        chain: Trained chain (read only)
        seed: Optional word the message must start from
        length_requirement: Optional bound on the number of tokens
        rng: Random source (defaults to the module-level generator)
        max_steps: Optional cap on expanded contexts for the whole call

    Returns:
        List of decoded tokens

    Raises:
        GenerationError: EMPTY, LENGTH_REQUIREMENT_INVALID, NO_SUCH_SEED or
            CANNOT_MEET_LENGTH_REQUIREMENT
    """
    if chain.is_empty():
        raise GenerationError(GenerationErrorKind.EMPTY)
    if length_requirement is not None and not length_requirement.is_valid():
        raise GenerationError(GenerationErrorKind.LENGTH_REQUIREMENT_INVALID, str(length_requirement))

    if seed is None:
        candidates: Dict[str, int] = {f"{BOUNDARY} {BOUNDARY}": 1}
    else:
        keys = chain.match_seed(seed)
        if not keys:
            raise GenerationError(GenerationErrorKind.NO_SUCH_SEED, seed)
        candidates = {key: chain.distribution(key).total() for key in sorted(keys)}

    search = _Search(chain, length_requirement, rng, max_steps)
    while candidates and not search.exhausted:
        key = draw_without_replacement(candidates, rng)
        first, second = key.split(" ")
        tokens = search.run(first, second)
        if tokens is not None:
            logger.debug("Generated %d tokens in %d steps", len(tokens), search.steps)
            return [field_codec.decode(token) for token in tokens]

    if search.exhausted:
        logger.debug("Generation stopped after %d steps", search.steps)
    raise GenerationError(GenerationErrorKind.CANNOT_MEET_LENGTH_REQUIREMENT, str(length_requirement or ""))
