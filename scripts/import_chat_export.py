#!/usr/bin/env python3
"""
Import a Telegram chat export into the Markov chains of that chat.

Every message from a user or channel trains the sender's chain and the
chat-wide "all" chain, in export order. Commands and bot messages are skipped.

Usage:
    python scripts/import_chat_export.py \\
        --export ~/Downloads/ChatExport/result.json \\
        --bot-user-id 123456789
"""

import argparse
import sys

from markov_bot.services.bot import MarkovBotService
from markov_bot.services.chat_import import ChatExportError, read_chat_export
from markov_bot.services.chat_store import ChatStore
from markov_bot.utils.logger import setup_logger

logger = setup_logger("markov_bot")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import a Telegram chat export (result.json)")
    parser.add_argument("--export", required=True, help="Path to the chat export JSON file")
    parser.add_argument("--mongodb-uri", default=None, help="Override MONGODB_URI")
    parser.add_argument("--db", default=None, help="Override MONGODB_DB")
    parser.add_argument(
        "--bot-user-id",
        action="append",
        default=[],
        help="Sender id whose messages are skipped (repeatable)",
    )
    args = parser.parse_args(argv)

    try:
        export = read_chat_export(args.export)
    except ChatExportError as e:
        logger.error(f"[Import] {e}")
        return 1

    logger.info(f"[Import] Chat {export.id}: {len(export.messages)} user/channel messages")

    client = None
    if args.mongodb_uri:
        from pymongo import MongoClient
        client = MongoClient(args.mongodb_uri)
    store = ChatStore(client=client, db_name=args.db)
    try:
        store.ensure_indexes()
        imported = MarkovBotService(store).import_export(export, args.bot_user_id)
    finally:
        store.close()

    print(f"Imported {imported} messages into chat {export.id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
