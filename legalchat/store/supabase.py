"""
Supabase Chat Store

BaseChatStore implementation speaking PostgREST (``/rest/v1``) over httpx.
Expects two tables with row level security keyed on ``user_id``:
``chat_sessions`` and ``chat_messages``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from legalchat.models.chat import ActionStep, ContactInfo, LegalReference
from legalchat.store.base import (
    BaseChatStore,
    ChatStoreError,
    DuplicateRecordError,
    MessageRecord,
    NewMessageRecord,
    SessionRecord,
)

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "chat_sessions"
MESSAGES_TABLE = "chat_messages"

RecordT = TypeVar("RecordT", bound=BaseModel)


class SupabaseChatStore(BaseChatStore):
    """Chat store backed by a Supabase project."""

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url:
            raise ValueError("Supabase URL is required (STORE_SUPABASE_URL)")
        if not api_key:
            raise ValueError("Supabase key is required (STORE_SUPABASE_KEY)")
        self.base_url = f"{str(url).rstrip('/')}/rest/v1"
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
        )
        if client is not None:
            self.client.headers.update(headers)

        logger.info("Supabase chat store initialized", extra={"base_url": self.base_url})

    async def _request(
        self,
        operation: str,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        returning: bool = False,
    ) -> list[dict[str, Any]]:
        headers = {"Prefer": "return=representation"} if returning else None
        try:
            response = await self.client.request(
                method,
                f"/{table}",
                params=params,
                json=json,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            error_cls = DuplicateRecordError if exc.response.status_code == 409 else ChatStoreError
            raise error_cls(
                operation,
                f"HTTP {exc.response.status_code}: {exc.response.text}",
                context={"table": table, "params": params},
            ) from exc
        except httpx.HTTPError as exc:
            raise ChatStoreError(
                operation,
                f"{type(exc).__name__}: {exc}",
                context={"table": table, "params": params},
            ) from exc

        if not response.content:
            return []
        try:
            payload = response.json()
        except ValueError as exc:
            raise ChatStoreError(
                operation,
                f"Invalid JSON response: {exc}",
                context={"table": table, "status": response.status_code},
            ) from exc
        if isinstance(payload, dict):
            return [payload]
        return list(payload or [])

    @staticmethod
    def _single(operation: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
        if not rows:
            raise ChatStoreError(operation, "No row returned")
        return rows[0]

    @staticmethod
    def _validate(operation: str, model: type[RecordT], row: Any) -> RecordT:
        try:
            return model.model_validate(row)
        except ValidationError as exc:
            raise ChatStoreError(
                operation, f"Unexpected row shape: {exc.error_count()} errors"
            ) from exc

    async def create_session(self, user_id: str, title: str) -> SessionRecord:
        rows = await self._request(
            "create_session",
            "POST",
            SESSIONS_TABLE,
            json={"user_id": user_id, "title": title},
            returning=True,
        )
        return self._validate("create_session", SessionRecord, self._single("create_session", rows))

    async def list_sessions(self, user_id: str) -> list[SessionRecord]:
        rows = await self._request(
            "list_sessions",
            "GET",
            SESSIONS_TABLE,
            params={
                "select": "*",
                "user_id": f"eq.{user_id}",
                "order": "updated_at.desc",
            },
        )
        return [self._validate("list_sessions", SessionRecord, row) for row in rows]

    async def update_session(self, session_id: str, *, title: str) -> SessionRecord:
        rows = await self._request(
            "update_session",
            "PATCH",
            SESSIONS_TABLE,
            params={"id": f"eq.{session_id}"},
            json={"title": title, "updated_at": datetime.now(UTC).isoformat()},
            returning=True,
        )
        return self._validate("update_session", SessionRecord, self._single("update_session", rows))

    async def delete_session(self, session_id: str) -> None:
        await self._request(
            "delete_session",
            "DELETE",
            SESSIONS_TABLE,
            params={"id": f"eq.{session_id}"},
        )

    async def create_message(self, message: NewMessageRecord) -> MessageRecord:
        payload = message.model_dump(mode="json", exclude_none=True)
        payload["timestamp"] = datetime.now(UTC).isoformat()
        rows = await self._request(
            "create_message",
            "POST",
            MESSAGES_TABLE,
            json=payload,
            returning=True,
        )
        return self._validate("create_message", MessageRecord, self._single("create_message", rows))

    async def list_messages(self, session_id: str) -> list[MessageRecord]:
        rows = await self._request(
            "list_messages",
            "GET",
            MESSAGES_TABLE,
            params={
                "select": "*",
                "session_id": f"eq.{session_id}",
                "order": "timestamp.asc",
            },
        )
        return [self._validate("list_messages", MessageRecord, row) for row in rows]

    async def update_message(
        self,
        message_id: str,
        *,
        content: str | None = None,
        legal_references: list[LegalReference] | None = None,
        action_steps: list[ActionStep] | None = None,
        contact_info: list[ContactInfo] | None = None,
    ) -> MessageRecord:
        updates = self._message_updates(content, legal_references, action_steps, contact_info)
        rows = await self._request(
            "update_message",
            "PATCH",
            MESSAGES_TABLE,
            params={"id": f"eq.{message_id}"},
            json=updates,
            returning=True,
        )
        return self._validate("update_message", MessageRecord, self._single("update_message", rows))

    async def delete_messages(self, session_id: str) -> None:
        await self._request(
            "delete_messages",
            "DELETE",
            MESSAGES_TABLE,
            params={"session_id": f"eq.{session_id}"},
        )

    async def close(self) -> None:
        await self.client.aclose()
