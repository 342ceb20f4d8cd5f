"""
Length requirements for generated messages, e.g. "=5" or ">=3".
"""
from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Optional

_COMPARATORS = {
    "<": operator.lt,
    "<=": operator.le,
    "=": operator.eq,
    ">": operator.gt,
    ">=": operator.ge,
}

# Smallest bound for which each operator admits a non-empty message
_MIN_BOUNDS = {
    "<": 2,
    "<=": 1,
    "=": 1,
    ">": 1,
    ">=": 2,
}

_PATTERN = re.compile(r"^(<=|>=|<|>|=)(\d+)$")


@dataclass(frozen=True)
class LengthRequirement:
    """Comparison operator plus a non-negative token-count bound."""
    op: str
    bound: int

    @classmethod
    def parse(cls, text: str) -> Optional["LengthRequirement"]:
        """Parse "<op><bound>"; returns None if the text is not of that form."""
        match = _PATTERN.match(text.strip())
        if not match:
            return None
        return cls(match.group(1), int(match.group(2)))

    def is_valid(self) -> bool:
        if self.op not in _COMPARATORS or self.bound < 0:
            return False
        return self.bound >= _MIN_BOUNDS[self.op]

    def is_satisfied(self, length: int) -> bool:
        return _COMPARATORS[self.op](length, self.bound)

    @property
    def max_length(self) -> Optional[int]:
        """Largest admissible length, or None when unbounded above."""
        if self.op == "<":
            return self.bound - 1
        if self.op in ("<=", "="):
            return self.bound
        return None

    @property
    def min_length(self) -> int:
        """Smallest admissible length."""
        if self.op == ">":
            return self.bound + 1
        if self.op in (">=", "="):
            return self.bound
        return 0

    def __str__(self) -> str:
        return f"{self.op}{self.bound}"
