"""
Telegram chat-history export (result.json) reading for bulk training.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, ValidationError

COMMAND_MARKER = "/"


class ChatExportError(Exception):
    """The export file could not be read or parsed."""


class TextEntity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    text: str


class ExportMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    from_id: Optional[str] = None
    text: Union[str, List[Union[str, TextEntity]]] = ""
    via_bot: Optional[str] = None

    def plain_text(self) -> str:
        """Message text with formatted pieces joined by spaces."""
        if isinstance(self.text, str):
            return self.text
        return " ".join(piece if isinstance(piece, str) else piece.text for piece in self.text)


class ChatExport(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: str
    messages: List[ExportMessage] = []


def _api_chat_id(export_id: int, chat_type: str) -> int:
    """Exports store group ids without the sign/prefix the Bot API uses."""
    if chat_type == "private_group":
        return -export_id
    if chat_type.endswith("supergroup"):
        return int(f"-100{export_id}")
    return export_id


def _strip_sender_prefix(from_id: Optional[str]) -> Optional[str]:
    if from_id is None:
        return None
    for prefix in ("user", "channel"):
        if from_id.startswith(prefix):
            return from_id[len(prefix):]
    return None


def parse_chat_export(raw: dict) -> ChatExport:
    """
    Validate an export and normalize it to Bot API ids.

    Only messages sent by users or channels are kept; their `from_id` loses
    its "user"/"channel" prefix.
    """
    try:
        export = ChatExport.model_validate(raw)
    except ValidationError as e:
        raise ChatExportError(f"invalid chat export: {e}") from e

    export.id = _api_chat_id(export.id, export.type)
    kept = []
    for message in export.messages:
        sender = _strip_sender_prefix(message.from_id)
        if sender is None:
            continue
        message.from_id = sender
        kept.append(message)
    export.messages = kept
    return export


def read_chat_export(path: Union[str, Path]) -> ChatExport:
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ChatExportError(f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ChatExportError(f"{path} is not valid JSON: {e}") from e
    return parse_chat_export(raw)


def qualifying_messages(export: ChatExport, bot_user_ids: Iterable[str] = ()) -> Iterator[Tuple[str, str]]:
    """
    Yield (sender_id, text) for messages that should train the chains, in order.

    Skips messages sent via or by bots, commands and messages without text.
    """
    bots = set(bot_user_ids)
    for message in export.messages:
        if message.via_bot or message.from_id in bots:
            continue
        text = message.plain_text()
        if not text.split() or text.lstrip().startswith(COMMAND_MARKER):
            continue
        yield message.from_id, text
