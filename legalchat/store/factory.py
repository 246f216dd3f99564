"""
Chat Store Factory

Builds the configured remote chat store from StoreSettings.
"""

import logging

from legalchat.config import StoreSettings
from legalchat.store.base import BaseChatStore
from legalchat.store.postgres import PostgresChatStore
from legalchat.store.supabase import SupabaseChatStore

logger = logging.getLogger(__name__)


async def create_store(config: StoreSettings) -> BaseChatStore:
    """
    Create and initialize the chat store selected by ``STORE_BACKEND``.

    Raises:
        ValueError: If the selected backend is missing required settings
    """
    logger.info(f"Creating {config.backend} chat store", extra={"backend": config.backend})

    if config.backend == "supabase":
        if not config.supabase_url or not config.supabase_key:
            raise ValueError(
                "Supabase store requires STORE_SUPABASE_URL and STORE_SUPABASE_KEY"
            )
        return SupabaseChatStore(
            str(config.supabase_url),
            config.supabase_key,
            access_token=config.access_token,
            timeout=config.timeout,
        )

    if config.backend == "postgres":
        if not config.database_url:
            raise ValueError("Postgres store requires STORE_DATABASE_URL")
        store = PostgresChatStore(str(config.database_url))
        await store.initialize()
        return store

    raise ValueError(f"Unknown store backend: {config.backend}")  # pragma: no cover
