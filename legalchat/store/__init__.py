"""
Remote chat store: CRUD for sessions and messages.

Usage:
    from legalchat.store import create_store
    from legalchat.config import get_settings

    store = await create_store(get_settings().store)
    sessions = await store.list_sessions(user_id)
"""

from legalchat.store.base import (
    BaseChatStore,
    ChatStoreError,
    DuplicateRecordError,
    MessageRecord,
    NewMessageRecord,
    SessionRecord,
)
from legalchat.store.factory import create_store
from legalchat.store.postgres import PostgresChatStore
from legalchat.store.supabase import SupabaseChatStore

__all__ = [
    "BaseChatStore",
    "ChatStoreError",
    "DuplicateRecordError",
    "MessageRecord",
    "NewMessageRecord",
    "PostgresChatStore",
    "SessionRecord",
    "SupabaseChatStore",
    "create_store",
]
