"""
Parsing of bot command text.

    /msg                 -> generate from everyone in the chat
    /msg @alice          -> generate from one user
    /msg @alice hello    -> ... starting from a seed word
    /msg hello =5        -> ... with exactly five words
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from markov_bot.services.length_requirement import LengthRequirement

TOO_MANY_SEEDS_REPLY = "<up to one seed word can be provided>"


class CommandParseError(ValueError):
    """Malformed command arguments; `reply` is shown to the user."""

    def __init__(self, reply: str):
        super().__init__(reply)
        self.reply = reply


@dataclass
class MsgArgs:
    username: Optional[str] = None
    seed: Optional[str] = None
    length_requirement: Optional[LengthRequirement] = None


def split_command(text: str) -> Tuple[Optional[str], str]:
    """
    Split "/cmd@botname rest" into ("cmd", "rest").

    Returns (None, text) when the message is not a command.
    """
    stripped = text.lstrip()
    if not stripped.startswith("/"):
        return None, text
    body = stripped[1:]
    if not body or body[0].isspace():
        return None, text
    parts = body.split(maxsplit=1)
    name = parts[0].split("@", 1)[0].lower()
    if not name:
        return None, text
    return name, parts[1] if len(parts) > 1 else ""


def parse_msg_args(text: str) -> MsgArgs:
    """
    Parse the arguments of /msg: [@username] [seed] [length requirement].

    Raises:
        CommandParseError: more than one seed word was given
    """
    parts = text.split()
    args = MsgArgs()

    if parts and parts[0].startswith("@") and len(parts[0]) > 1:
        args.username = parts.pop(0)[1:]

    if parts:
        requirement = LengthRequirement.parse(parts[-1])
        if requirement is not None:
            args.length_requirement = requirement
            parts.pop()

    if len(parts) > 1:
        raise CommandParseError(TOO_MANY_SEEDS_REPLY)
    if parts:
        args.seed = parts[0]
    return args
