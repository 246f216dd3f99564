"""
Chat history synchronization.

Usage:
    from legalchat.history import ChatHistory
    from legalchat.local_storage import LocalStorage

    history = ChatHistory(store, LocalStorage(settings.history.storage_path), settings.history)
    await history.load(user)
    history.start()
"""

from legalchat.history.converters import (
    dump_legacy_sessions,
    message_from_record,
    message_to_record,
    parse_legacy_sessions,
    session_from_records,
)
from legalchat.history.pending import PendingQueue
from legalchat.history.sync import ChatHistory, NotAuthenticatedError

__all__ = [
    "ChatHistory",
    "NotAuthenticatedError",
    "PendingQueue",
    "dump_legacy_sessions",
    "message_from_record",
    "message_to_record",
    "parse_legacy_sessions",
    "session_from_records",
]
