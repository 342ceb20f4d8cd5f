"""
MongoDB persistence for per-chat Markov chains and username lookups.

One `chats` document per chat holds every owner's chain:
    {"chat_id": "...", "version": 3, "data": {"<user_id>": {chain}, "all": {chain}}}

Writes are optimistic: a document is only replaced if its stored `version`
still matches the one that was read, so two concurrent read-modify-write
cycles cannot silently drop an update. Callers retry on ConcurrentWriteError.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError

from markov_bot.config import settings
from markov_bot.services.markov_chain import MarkovChain
from markov_bot.utils.logger import log_info

CHAT_ID_KEY = "chat_id"
USERNAME_KEY = "username"


class ConcurrentWriteError(Exception):
    """The chat document changed between read and write."""


@dataclass
class ChatData:
    """All chains of one chat. `version` is None until the document is first stored."""
    chat_id: str
    data: Dict[str, MarkovChain] = field(default_factory=dict)
    version: Optional[int] = None

    def add_message(self, owner: str, text: str):
        """Add a message to an owner's chain, creating the chain on first use."""
        chain = self.data.get(owner)
        if chain is None:
            chain = MarkovChain(owner)
            self.data[owner] = chain
        chain.add_message(text)

    def to_document(self) -> dict:
        return {
            CHAT_ID_KEY: self.chat_id,
            "version": self.version or 0,
            "data": {owner: chain.to_dict() for owner, chain in self.data.items()},
        }

    @classmethod
    def from_document(cls, doc: dict) -> "ChatData":
        return cls(
            chat_id=doc[CHAT_ID_KEY],
            data={owner: MarkovChain.from_dict(raw) for owner, raw in doc.get("data", {}).items()},
            version=doc.get("version", 0),
        )


class ChatStore:
    """pymongo-backed store for ChatData and the username -> user id map."""

    def __init__(self, client: Optional[MongoClient] = None, db_name: Optional[str] = None):
        self._client = client
        self.db_name = db_name or settings.MONGODB_DB

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            self._client = MongoClient(
                settings.MONGODB_URI,
                appname=settings.MONGODB_APP_NAME,
                connectTimeoutMS=settings.MONGODB_CONNECT_TIMEOUT_MS,
            )
        return self._client

    @property
    def chats(self):
        return self.client.get_database(self.db_name)[settings.CHATS_COLLECTION]

    @property
    def user_infos(self):
        return self.client.get_database(self.db_name)[settings.USER_INFOS_COLLECTION]

    def ensure_indexes(self):
        self.chats.create_index(CHAT_ID_KEY, unique=True)
        self.user_infos.create_index(USERNAME_KEY, unique=True)
        log_info("[Store] Indexes ensured", db=self.db_name)

    def read_chat(self, chat_id: str) -> Optional[ChatData]:
        doc = self.chats.find_one({CHAT_ID_KEY: chat_id}, {"_id": 0})
        if doc is None:
            return None
        return ChatData.from_document(doc)

    def write_chat(self, chat_data: ChatData):
        """
        Store a chat document if nobody else wrote it since it was read.

        Raises:
            ConcurrentWriteError: the stored version moved on
        """
        new_version = (chat_data.version or 0) + 1
        doc = chat_data.to_document()
        doc["version"] = new_version

        if chat_data.version is None:
            try:
                self.chats.insert_one(doc)
            except DuplicateKeyError as e:
                raise ConcurrentWriteError(f"chat {chat_data.chat_id} was created concurrently") from e
        else:
            # Documents written before versioning have no version field
            expected = chat_data.version if chat_data.version else {"$in": [0, None]}
            result = self.chats.replace_one({CHAT_ID_KEY: chat_data.chat_id, "version": expected}, doc)
            if result.matched_count == 0:
                raise ConcurrentWriteError(f"chat {chat_data.chat_id} changed since version {chat_data.version}")

        chat_data.version = new_version

    def remember_user(self, username: str, user_id: str):
        username = username.lower()
        self.user_infos.replace_one(
            {USERNAME_KEY: username},
            {USERNAME_KEY: username, "user_id": user_id},
            upsert=True,
        )

    def resolve_username(self, username: str) -> Optional[str]:
        doc = self.user_infos.find_one({USERNAME_KEY: username.lower()})
        return doc["user_id"] if doc else None

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None
            log_info("[Store] MongoDB client closed")
