"""
Bot-facing flows on top of the chain engine and the chat store.

The chat client forwards every message here. Plain messages train the
sender's chain and the chat-wide "all users" chain; /msg generates a
message; /deletemydata asks for confirmation and then removes the sender's
chain and its contribution to the chat-wide chain.

Each chat update is one read-modify-write of the chat document, retried
when another writer got there first.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, TypeVar

from pymongo.errors import PyMongoError

from markov_bot.config import settings
from markov_bot.services.chat_import import ChatExport, qualifying_messages
from markov_bot.services.chat_store import ChatData, ChatStore, ConcurrentWriteError
from markov_bot.services.commands import CommandParseError, parse_msg_args, split_command
from markov_bot.services.generator import GenerationError, GenerationErrorKind
from markov_bot.services.prompts import Prompt, PromptKind, PromptStore, is_yes
from markov_bot.utils.logger import log_error, log_info, log_warning

T = TypeVar("T")

NO_DATA_REPLY = "<no data>"
GENERATION_REPLIES = {
    GenerationErrorKind.EMPTY: NO_DATA_REPLY,
    GenerationErrorKind.NO_SUCH_SEED: "<no such seed>",
    GenerationErrorKind.LENGTH_REQUIREMENT_INVALID: "<invalid length requirement>",
    GenerationErrorKind.CANNOT_MEET_LENGTH_REQUIREMENT: "<cannot meet length requirement>",
}

DELETE_QUESTION = "Are you sure you want to delete your Markov chain data in this group?"
DELETE_DONE_REPLY = "Your Markov chain data in this group has been deleted."
DELETE_NOTHING_REPLY = "No data found."
DELETE_DECLINED_REPLY = "Okay, I won't delete your Markov chain data in this group then."


@dataclass
class BotReply:
    """Outcome of one incoming message: text to send back (if any) and whether it trained."""
    reply: Optional[str] = None
    trained: bool = False


class MarkovBotService:
    def __init__(
        self,
        store: ChatStore,
        prompts: Optional[PromptStore] = None,
        all_users_key: Optional[str] = None,
        max_steps: Optional[int] = None,
        write_retries: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.prompts = prompts or PromptStore()
        self.all_users_key = all_users_key or settings.ALL_USERS_KEY
        self.max_steps = max_steps if max_steps is not None else settings.GENERATION_MAX_STEPS
        self.write_retries = max(1, write_retries or settings.CHAT_WRITE_RETRIES)
        self.rng = rng

    # --- entry point ---
    def handle_message(
        self,
        chat_id: str,
        user_id: str,
        text: str,
        username: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        mention_user_id: Optional[str] = None,
        mention_text: Optional[str] = None,
    ) -> BotReply:
        """
        Route one chat message.

        Args:
            chat_id: Chat the message was sent in
            user_id: Sender id
            text: Message text (or media caption)
            username: Sender username, remembered for @mention lookups
            reply_to_message_id: Id of the message this one replies to
            mention_user_id: Id of a user linked by a text mention in the command
            mention_text: The text of that mention as it appears in `text`
        """
        if username:
            self._remember_sender(username, user_id)

        prompt = self.prompts.match(chat_id, user_id, reply_to_message_id)
        if prompt is not None:
            return BotReply(reply=self.answer_prompt(prompt, chat_id, user_id, text))

        command, rest = split_command(text)
        if command == "msg":
            if mention_user_id and mention_text:
                rest = rest.replace(mention_text, "", 1)
            return BotReply(reply=self.msg(chat_id, rest, mention_user_id))
        if command == "deletemydata":
            return BotReply(reply=self.ask_delete(chat_id, user_id))
        if command is not None:
            # Unknown commands are not training data
            return BotReply()

        return BotReply(trained=self.train(chat_id, user_id, text))

    def _remember_sender(self, username: str, user_id: str):
        try:
            self.store.remember_user(username, user_id)
        except PyMongoError as e:
            log_error("[Markov] Failed to remember user", username=username, error=e)

    # --- training ---
    def train(self, chat_id: str, user_id: str, text: str) -> bool:
        """Add a message to the sender's chain and to the chat-wide chain."""
        if not text.split():
            return False

        def mutate(chat: ChatData) -> bool:
            chat.add_message(user_id, text)
            chat.add_message(self.all_users_key, text)
            return True

        return self._update_chat(chat_id, mutate)

    def import_export(self, export: ChatExport, bot_user_ids: Iterable[str] = ()) -> int:
        """Train on every qualifying message of a chat export; returns the message count."""
        chat_id = str(export.id)
        messages = list(qualifying_messages(export, bot_user_ids))

        def mutate(chat: ChatData) -> int:
            for sender, text in messages:
                chat.add_message(sender, text)
                chat.add_message(self.all_users_key, text)
            return len(messages)

        imported = self._update_chat(chat_id, mutate) if messages else 0
        log_info("[Import] Imported messages", chat_id=chat_id, count=imported)
        return imported

    # --- generation ---
    def msg(self, chat_id: str, args: str, mention_user_id: Optional[str] = None) -> str:
        """Run /msg and return the reply text."""
        try:
            parsed = parse_msg_args(args)
        except CommandParseError as e:
            return e.reply

        if mention_user_id:
            owner = mention_user_id
        elif parsed.username:
            owner = self.store.resolve_username(parsed.username)
            if owner is None:
                return NO_DATA_REPLY
        else:
            owner = self.all_users_key

        chat = self.store.read_chat(chat_id)
        chain = chat.data.get(owner) if chat else None
        if chain is None:
            return NO_DATA_REPLY
        try:
            words = chain.generate(
                seed=parsed.seed,
                length_requirement=parsed.length_requirement,
                rng=self.rng,
                max_steps=self.max_steps,
            )
        except GenerationError as e:
            return GENERATION_REPLIES[e.kind]
        return " ".join(words)

    # --- data deletion ---
    def ask_delete(self, chat_id: str, user_id: str) -> str:
        self.prompts.open(chat_id, user_id, PromptKind.DELETE_MY_DATA)
        return DELETE_QUESTION

    def answer_prompt(self, prompt: Prompt, chat_id: str, user_id: str, text: str) -> str:
        """Handle a reply to a pending prompt; the prompt stays open if the answer cannot be stored."""
        if prompt.kind != PromptKind.DELETE_MY_DATA:
            raise ValueError(f"unknown prompt kind {prompt.kind}")
        if not is_yes(text):
            self.prompts.close(chat_id, user_id)
            return DELETE_DECLINED_REPLY
        deleted = self.delete_user_data(chat_id, user_id)
        self.prompts.close(chat_id, user_id)
        return DELETE_DONE_REPLY if deleted else DELETE_NOTHING_REPLY

    def delete_user_data(self, chat_id: str, user_id: str) -> bool:
        """Remove a user's chain and subtract it from the chat-wide chain."""

        def mutate(chat: ChatData) -> bool:
            chain = chat.data.pop(user_id, None)
            if chain is None:
                return False
            everyone = chat.data.get(self.all_users_key)
            if everyone is not None:
                everyone.remove_chain(chain)
                if everyone.is_empty():
                    del chat.data[self.all_users_key]
            return True

        deleted = self._update_chat(chat_id, mutate, create=False)
        if deleted:
            log_info("[Markov] Deleted user data", chat_id=chat_id, user_id=user_id)
        return bool(deleted)

    # --- storage ---
    def _update_chat(self, chat_id: str, mutate: Callable[[ChatData], T], create: bool = True) -> Optional[T]:
        """
        Read a chat, apply `mutate` and write it back if it reports a change.

        Retries on ConcurrentWriteError up to `write_retries` times, re-reading
        the chat each time. Returns mutate's result, or None when the chat does
        not exist and `create` is False.
        """
        for attempt in range(1, self.write_retries + 1):
            chat = self.store.read_chat(chat_id)
            if chat is None:
                if not create:
                    return None
                chat = ChatData(chat_id)

            result = mutate(chat)
            if not result:
                return result
            try:
                self.store.write_chat(chat)
                return result
            except ConcurrentWriteError as e:
                if attempt == self.write_retries:
                    raise
                log_warning("[Markov] Write conflict, retrying", chat_id=chat_id, attempt=attempt, retries=self.write_retries)
        return None
