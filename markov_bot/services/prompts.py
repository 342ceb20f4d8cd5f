"""
In-flight "are you sure?" prompts, keyed by (chat, user).

A prompt is opened when the bot asks a question and bound to the id of the
bot's question message once the chat client has sent it. Only a reply to
that exact message from the same user answers the prompt.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

YES_STRINGS = ("y", "yes", "ye", "ya", "yeah")


class PromptKind(str, Enum):
    DELETE_MY_DATA = "delete_my_data"


@dataclass
class Prompt:
    kind: PromptKind
    message_id: Optional[int] = None


class PromptStore:
    """Thread-safe map of (chat_id, user_id) -> pending Prompt."""

    def __init__(self):
        self._prompts: Dict[Tuple[str, str], Prompt] = {}
        self._lock = threading.Lock()

    def open(self, chat_id: str, user_id: str, kind: PromptKind) -> Prompt:
        """Start a prompt, replacing any earlier one for the same user."""
        prompt = Prompt(kind)
        with self._lock:
            self._prompts[(chat_id, user_id)] = prompt
        return prompt

    def bind(self, chat_id: str, user_id: str, message_id: int) -> bool:
        """Attach the question message id; False if no prompt is pending."""
        with self._lock:
            prompt = self._prompts.get((chat_id, user_id))
            if prompt is None:
                return False
            prompt.message_id = message_id
            return True

    def match(self, chat_id: str, user_id: str, reply_to_message_id: Optional[int]) -> Optional[Prompt]:
        """The pending prompt a message answers, if it replies to the prompt's question."""
        if reply_to_message_id is None:
            return None
        with self._lock:
            prompt = self._prompts.get((chat_id, user_id))
        if prompt is None or prompt.message_id != reply_to_message_id:
            return None
        return prompt

    def close(self, chat_id: str, user_id: str):
        with self._lock:
            self._prompts.pop((chat_id, user_id), None)


def is_yes(text: str) -> bool:
    return text.strip().lower() in YES_STRINGS
