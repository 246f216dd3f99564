"""
Local key/value storage.

Persists small string values to a JSON file (default
``~/.legalchat/local_storage.json``). Holds the current session id, the
legacy session cache, the migration flag and the pending message queue.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

SESSIONS_KEY = "legal-ai-chat-sessions"
CURRENT_SESSION_KEY = "legal-ai-current-session"
MIGRATION_KEY = "legal-ai-migration-completed"
PENDING_MESSAGES_KEY = "pending-messages"


class LocalStorage:
    """String key/value store backed by one JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                f"Ignoring unreadable local storage file: {exc}",
                extra={"path": str(self.path)},
            )
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(key): str(value) for key, value in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        self._ensure_dir()
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def clear(self) -> None:
        """Remove the backing file."""
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError:
            return
