"""
Shared pytest fixtures for Markov service tests.
"""
import copy
import random
from typing import Dict, List, Optional

import pytest

from markov_bot.services.bot import MarkovBotService
from markov_bot.services.chat_store import ChatData, ConcurrentWriteError
from markov_bot.services.markov_chain import MarkovChain
from markov_bot.services.prompts import PromptStore


# Sample Telegram chat export (result.json) for import tests
SAMPLE_EXPORT = {
    "name": "Test Group",
    "type": "private_supergroup",
    "id": 1234567890,
    "messages": [
        {"id": 1, "type": "service", "actor_id": "user111", "action": "create_group"},
        {"id": 2, "type": "message", "from": "Alice", "from_id": "user111", "text": "hello there everyone"},
        {
            "id": 3,
            "type": "message",
            "from": "Bob",
            "from_id": "user222",
            "text": ["look at ", {"type": "link", "text": "example.com"}, " today"],
        },
        {"id": 4, "type": "message", "from": "Bob", "from_id": "user222", "text": "/msg @alice"},
        {"id": 5, "type": "message", "from": "News", "from_id": "channel333", "text": "breaking news"},
        {"id": 6, "type": "message", "from": "Alice", "from_id": "user111", "text": "", "photo": "photos/1.jpg"},
        {"id": 7, "type": "message", "from": "Alice", "from_id": "user111", "via_bot": "@gif", "text": "funny gif"},
        {"id": 8, "type": "message", "from": "Helper", "from_id": "user999", "text": "I am a bot"},
    ],
}


class InMemoryChatStore:
    """ChatStore stand-in keeping serialized chat documents in a dict."""

    def __init__(self):
        self.chats: Dict[str, dict] = {}
        self.users: Dict[str, str] = {}
        self.writes = 0

    def ensure_indexes(self):
        pass

    def read_chat(self, chat_id: str) -> Optional[ChatData]:
        doc = self.chats.get(chat_id)
        if doc is None:
            return None
        return ChatData.from_document(copy.deepcopy(doc))

    def write_chat(self, chat_data: ChatData):
        stored = self.chats.get(chat_data.chat_id)
        if chat_data.version is None:
            if stored is not None:
                raise ConcurrentWriteError(f"chat {chat_data.chat_id} was created concurrently")
        elif stored is None or stored["version"] != chat_data.version:
            raise ConcurrentWriteError(f"chat {chat_data.chat_id} changed since version {chat_data.version}")

        doc = chat_data.to_document()
        doc["version"] = (chat_data.version or 0) + 1
        self.chats[chat_data.chat_id] = copy.deepcopy(doc)
        chat_data.version = doc["version"]
        self.writes += 1

    def remember_user(self, username: str, user_id: str):
        self.users[username.lower()] = user_id

    def resolve_username(self, username: str) -> Optional[str]:
        return self.users.get(username.lower())

    def close(self):
        pass


def build_chain(*messages: str, user_id: str = "") -> MarkovChain:
    """Build a chain from messages."""
    chain = MarkovChain(user_id)
    for message in messages:
        chain.add_message(message)
    return chain


@pytest.fixture
def make_chain():
    """Factory building a chain trained on the given messages."""
    return build_chain


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source for reproducible draws."""
    return random.Random(1234)


@pytest.fixture
def chat_messages() -> List[str]:
    """Sample chat messages."""
    return [
        "good morning everyone",
        "good morning to you too",
        "has anyone seen my keys",
        "the keys are on the table",
        "$100 says they are in the car",
        "Morning! coffee is ready",
    ]


@pytest.fixture
def chat_store() -> InMemoryChatStore:
    return InMemoryChatStore()


@pytest.fixture
def bot_service(chat_store, rng) -> MarkovBotService:
    return MarkovBotService(
        chat_store,
        PromptStore(),
        all_users_key="all",
        max_steps=10_000,
        write_retries=3,
        rng=rng,
    )


@pytest.fixture
def sample_export() -> dict:
    return copy.deepcopy(SAMPLE_EXPORT)
