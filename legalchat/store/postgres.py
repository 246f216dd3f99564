"""Postgres-backed chat store using asyncpg."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import asyncpg
from pydantic import ValidationError

from legalchat.models.chat import ActionStep, ContactInfo, LegalReference
from legalchat.store.base import (
    BaseChatStore,
    ChatStoreError,
    DuplicateRecordError,
    MessageRecord,
    NewMessageRecord,
    SessionRecord,
)

_CREATE_SESSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS chat_sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);
"""

_CREATE_SESSIONS_USER_INDEX = """
CREATE INDEX IF NOT EXISTS chat_sessions_user_updated_idx
ON chat_sessions (user_id, updated_at DESC);
"""

_CREATE_MESSAGES_TABLE = """
CREATE TABLE IF NOT EXISTS chat_messages (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('user', 'ai')),
    content TEXT NOT NULL,
    timestamp TIMESTAMPTZ NOT NULL,
    legal_references JSONB,
    action_steps JSONB,
    contact_info JSONB
);
"""

_CREATE_MESSAGES_SESSION_INDEX = """
CREATE INDEX IF NOT EXISTS chat_messages_session_ts_idx
ON chat_messages (session_id, timestamp ASC);
"""

_SESSION_COLUMNS = "id, user_id, title, created_at, updated_at"
_MESSAGE_COLUMNS = (
    "id, session_id, type, content, timestamp, legal_references, action_steps, contact_info"
)
_JSON_FIELDS = ("legal_references", "action_steps", "contact_info")
_DATABASE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PostgresChatStore(BaseChatStore):
    """Persist chat sessions and messages in a Postgres database."""

    def __init__(self, database_url: str | None = None) -> None:
        self._database_url = database_url
        self._pool: asyncpg.Pool | None = None

    async def initialize(self) -> None:
        if self._pool is None:
            if not self._database_url:
                raise ValueError("STORE_DATABASE_URL must be set for the postgres chat store.")
            dsn = self._normalize_postgres_url(self._database_url)
            self._pool = await asyncpg.create_pool(dsn=dsn, min_size=1, max_size=5)
        await self._pool.execute(_CREATE_SESSIONS_TABLE)
        await self._pool.execute(_CREATE_SESSIONS_USER_INDEX)
        await self._pool.execute(_CREATE_MESSAGES_TABLE)
        await self._pool.execute(_CREATE_MESSAGES_SESSION_INDEX)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def create_session(self, user_id: str, title: str) -> SessionRecord:
        now = datetime.now(UTC)
        row = await self._fetchrow(
            "create_session",
            f"""
            INSERT INTO chat_sessions ({_SESSION_COLUMNS})
            VALUES ($1, $2, $3, $4, $4)
            RETURNING {_SESSION_COLUMNS}
            """,
            str(uuid4()),
            user_id,
            title,
            now,
        )
        return self._row_to_session("create_session", row)

    async def list_sessions(self, user_id: str) -> list[SessionRecord]:
        rows = await self._fetch(
            "list_sessions",
            f"""
            SELECT {_SESSION_COLUMNS}
            FROM chat_sessions
            WHERE user_id = $1
            ORDER BY updated_at DESC
            """,
            user_id,
        )
        return [self._row_to_session("list_sessions", row) for row in rows]

    async def update_session(self, session_id: str, *, title: str) -> SessionRecord:
        row = await self._fetchrow(
            "update_session",
            f"""
            UPDATE chat_sessions
            SET title = $2, updated_at = $3
            WHERE id = $1
            RETURNING {_SESSION_COLUMNS}
            """,
            session_id,
            title,
            datetime.now(UTC),
        )
        return self._row_to_session("update_session", row)

    async def delete_session(self, session_id: str) -> None:
        await self._execute(
            "delete_session",
            "DELETE FROM chat_sessions WHERE id = $1",
            session_id,
        )

    async def create_message(self, message: NewMessageRecord) -> MessageRecord:
        payload = message.model_dump(mode="json")
        row = await self._fetchrow(
            "create_message",
            f"""
            INSERT INTO chat_messages ({_MESSAGE_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7::jsonb, $8::jsonb)
            RETURNING {_MESSAGE_COLUMNS}
            """,
            message.id,
            message.session_id,
            message.type,
            message.content,
            datetime.now(UTC),
            *(self._encode_json_field(payload[field]) for field in _JSON_FIELDS),
        )
        return self._row_to_message("create_message", row)

    async def list_messages(self, session_id: str) -> list[MessageRecord]:
        rows = await self._fetch(
            "list_messages",
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM chat_messages
            WHERE session_id = $1
            ORDER BY timestamp ASC
            """,
            session_id,
        )
        return [self._row_to_message("list_messages", row) for row in rows]

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
        assignments = []
        values: list[Any] = [message_id]
        for column, value in updates.items():
            values.append(value if column == "content" else json.dumps(value))
            cast = "" if column == "content" else "::jsonb"
            assignments.append(f"{column} = ${len(values)}{cast}")
        row = await self._fetchrow(
            "update_message",
            f"""
            UPDATE chat_messages
            SET {", ".join(assignments)}
            WHERE id = $1
            RETURNING {_MESSAGE_COLUMNS}
            """,
            *values,
        )
        return self._row_to_message("update_message", row)

    async def delete_messages(self, session_id: str) -> None:
        await self._execute(
            "delete_messages",
            "DELETE FROM chat_messages WHERE session_id = $1",
            session_id,
        )

    async def _fetch(self, operation: str, query: str, *args: Any) -> list[asyncpg.Record]:
        self._ensure_pool()
        try:
            return await self._pool.fetch(query, *args)
        except _DATABASE_ERRORS as exc:
            raise self._store_error(operation, exc) from exc

    async def _fetchrow(self, operation: str, query: str, *args: Any) -> asyncpg.Record:
        self._ensure_pool()
        try:
            row = await self._pool.fetchrow(query, *args)
        except _DATABASE_ERRORS as exc:
            raise self._store_error(operation, exc) from exc
        if row is None:
            raise ChatStoreError(operation, "No row returned")
        return row

    async def _execute(self, operation: str, query: str, *args: Any) -> str:
        self._ensure_pool()
        try:
            return await self._pool.execute(query, *args)
        except _DATABASE_ERRORS as exc:
            raise self._store_error(operation, exc) from exc

    def _ensure_pool(self) -> None:
        if self._pool is None:
            raise RuntimeError("PostgresChatStore not initialized")

    @staticmethod
    def _normalize_postgres_url(url: str) -> str:
        if url.startswith("postgresql+asyncpg://"):
            return "postgresql://" + url[len("postgresql+asyncpg://") :]
        return url

    @staticmethod
    def _encode_json_field(value: Any) -> str | None:
        if value is None:
            return None
        return json.dumps(value)

    @staticmethod
    def _decode_json_field(value: Any) -> Any:
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return None
        return value

    @staticmethod
    def _store_error(operation: str, exc: Exception) -> ChatStoreError:
        if isinstance(exc, asyncpg.UniqueViolationError):
            return DuplicateRecordError(operation, str(exc))
        return ChatStoreError(operation, f"{type(exc).__name__}: {exc}")

    @staticmethod
    def _row_to_session(operation: str, row: asyncpg.Record) -> SessionRecord:
        try:
            return SessionRecord(
                id=str(row["id"]),
                user_id=str(row["user_id"]),
                title=str(row["title"]),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
        except ValidationError as exc:
            raise ChatStoreError(
                operation, f"Unexpected row shape: {exc.error_count()} errors"
            ) from exc

    @classmethod
    def _row_to_message(cls, operation: str, row: asyncpg.Record) -> MessageRecord:
        try:
            return MessageRecord(
                id=str(row["id"]),
                session_id=str(row["session_id"]),
                type=row["type"],
                content=str(row["content"]),
                timestamp=row["timestamp"],
                legal_references=cls._decode_json_field(row["legal_references"]),
                action_steps=cls._decode_json_field(row["action_steps"]),
                contact_info=cls._decode_json_field(row["contact_info"]),
            )
        except ValidationError as exc:
            raise ChatStoreError(
                operation, f"Unexpected row shape: {exc.error_count()} errors"
            ) from exc
