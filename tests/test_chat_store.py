"""
Tests for chat documents and the pymongo-backed store.
"""
from unittest.mock import MagicMock

import pytest
from pymongo.errors import DuplicateKeyError

from markov_bot.services.chat_store import ChatData, ChatStore, ConcurrentWriteError


@pytest.fixture
def collections():
    """Mock chats/user_infos collections behind a mock MongoClient."""
    chats = MagicMock(name="chats")
    user_infos = MagicMock(name="user_infos")
    db = MagicMock(name="db")
    db.__getitem__.side_effect = lambda name: {"chats": chats, "user_infos": user_infos}[name]
    client = MagicMock(name="client")
    client.get_database.return_value = db
    return client, chats, user_infos


class TestChatData:
    """Test suite for ChatData."""

    def test_add_message_creates_chain(self):
        chat = ChatData("1")
        chat.add_message("42", "hello world")

        assert set(chat.data) == {"42"}
        assert chat.data["42"].user_id == "42"
        assert chat.data["42"].generate() == ["hello", "world"]

    def test_document_round_trip(self, make_chain):
        """Chains survive conversion to and from a document."""
        chat = ChatData("1", {"42": make_chain("$x marks the spot", user_id="42")}, version=3)

        restored = ChatData.from_document(chat.to_document())

        assert restored.chat_id == "1"
        assert restored.version == 3
        assert restored.data["42"] == chat.data["42"]

    def test_legacy_document_without_version(self):
        """Documents from before versioning load as version 0."""
        assert ChatData.from_document({"chat_id": "1", "data": {}}).version == 0


class TestChatStore:
    """Test suite for ChatStore with a mocked client."""

    def test_read_missing(self, collections):
        client, chats, _ = collections
        chats.find_one.return_value = None

        assert ChatStore(client=client, db_name="test").read_chat("1") is None

    def test_read_existing(self, collections, make_chain):
        client, chats, _ = collections
        chats.find_one.return_value = ChatData("1", {"all": make_chain("hi there")}, version=2).to_document()

        chat = ChatStore(client=client, db_name="test").read_chat("1")

        assert chat.version == 2
        assert chat.data["all"].generate() == ["hi", "there"]
        chats.find_one.assert_called_once_with({"chat_id": "1"}, {"_id": 0})

    def test_write_new_inserts(self, collections):
        client, chats, _ = collections
        chat = ChatData("1")
        chat.add_message("all", "hello")

        ChatStore(client=client, db_name="test").write_chat(chat)

        doc = chats.insert_one.call_args[0][0]
        assert doc["chat_id"] == "1"
        assert doc["version"] == 1
        assert chat.version == 1

    def test_write_new_conflict(self, collections):
        """Another writer creating the chat first is a conflict."""
        client, chats, _ = collections
        chats.insert_one.side_effect = DuplicateKeyError("duplicate chat_id")

        with pytest.raises(ConcurrentWriteError):
            ChatStore(client=client, db_name="test").write_chat(ChatData("1"))

    def test_write_existing_checks_version(self, collections):
        client, chats, _ = collections
        chats.replace_one.return_value = MagicMock(matched_count=1)
        chat = ChatData("1", version=4)

        ChatStore(client=client, db_name="test").write_chat(chat)

        filter_doc, doc = chats.replace_one.call_args[0]
        assert filter_doc == {"chat_id": "1", "version": 4}
        assert doc["version"] == 5
        assert chat.version == 5

    def test_write_existing_conflict(self, collections):
        """A moved-on version raises and leaves the in-memory version alone."""
        client, chats, _ = collections
        chats.replace_one.return_value = MagicMock(matched_count=0)
        chat = ChatData("1", version=4)

        with pytest.raises(ConcurrentWriteError):
            ChatStore(client=client, db_name="test").write_chat(chat)
        assert chat.version == 4

    def test_write_legacy_document(self, collections):
        """Unversioned documents are matched by a missing version field."""
        client, chats, _ = collections
        chats.replace_one.return_value = MagicMock(matched_count=1)

        ChatStore(client=client, db_name="test").write_chat(ChatData("1", version=0))

        filter_doc = chats.replace_one.call_args[0][0]
        assert filter_doc == {"chat_id": "1", "version": {"$in": [0, None]}}

    def test_remember_and_resolve_user(self, collections):
        """Usernames are stored and looked up lower-cased."""
        client, _, user_infos = collections
        store = ChatStore(client=client, db_name="test")

        store.remember_user("Alice", "42")
        user_infos.replace_one.assert_called_once_with(
            {"username": "alice"}, {"username": "alice", "user_id": "42"}, upsert=True
        )

        user_infos.find_one.return_value = {"username": "alice", "user_id": "42"}
        assert store.resolve_username("ALICE") == "42"
        user_infos.find_one.assert_called_with({"username": "alice"})

    def test_resolve_unknown_user(self, collections):
        client, _, user_infos = collections
        user_infos.find_one.return_value = None

        assert ChatStore(client=client, db_name="test").resolve_username("nobody") is None
