"""Persisted queue of messages whose remote write has not been confirmed."""

from __future__ import annotations

import json
import logging

from pydantic import TypeAdapter, ValidationError

from legalchat.local_storage import PENDING_MESSAGES_KEY, LocalStorage
from legalchat.models.chat import PendingMessage

logger = logging.getLogger(__name__)

_ENTRY = TypeAdapter(PendingMessage)
_ENTRIES = TypeAdapter(list[PendingMessage])


class PendingQueue:
    """Pending messages stored under ``pending-messages`` in local storage."""

    def __init__(self, storage: LocalStorage) -> None:
        self.storage = storage

    def load(self) -> list[PendingMessage]:
        raw = self.storage.get_item(PENDING_MESSAGES_KEY)
        if not raw:
            return []
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable pending message queue")
            return []
        if not isinstance(payload, list):
            return []

        entries: list[PendingMessage] = []
        for item in payload:
            try:
                entries.append(_ENTRY.validate_python(item))
            except ValidationError as exc:
                logger.warning(f"Skipping malformed pending message: {exc.error_count()} errors")
        return entries

    def save(self, entries: list[PendingMessage]) -> None:
        self.storage.set_item(
            PENDING_MESSAGES_KEY,
            _ENTRIES.dump_json(entries, by_alias=True).decode("utf-8"),
        )

    def append(self, entry: PendingMessage) -> None:
        """Add an entry, replacing any earlier entry for the same message."""
        entries = [item for item in self.load() if item.message.id != entry.message.id]
        entries.append(entry)
        self.save(entries)
