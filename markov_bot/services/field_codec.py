"""
Field-name escaping for tokens stored as MongoDB document keys.

MongoDB rejects field names that start with "$", so any token beginning
with the reserved prefix is stored with an escape byte in front of it.
User text is assumed never to start with the escape byte itself.
"""
from __future__ import annotations

RESERVED_PREFIX = "$"
ESCAPE = "\x1b"


def encode(token: str) -> str:
    """Escape a token whose literal form would collide with the reserved prefix."""
    if token.startswith(RESERVED_PREFIX):
        return ESCAPE + token
    return token


def decode(field: str) -> str:
    """Inverse of encode()."""
    if field.startswith(ESCAPE + RESERVED_PREFIX):
        return field[len(ESCAPE):]
    return field
