"""Conversions between remote store records, local chat models and legacy JSON."""

from __future__ import annotations

import json

from pydantic import TypeAdapter

from legalchat.models.chat import ChatSession, Message
from legalchat.store.base import MessageRecord, NewMessageRecord, SessionRecord

_LEGACY_SESSIONS = TypeAdapter(list[ChatSession])


def message_from_record(record: MessageRecord) -> Message:
    return Message(
        id=record.id,
        type=record.type,
        content=record.content,
        timestamp=record.timestamp,
        legal_references=record.legal_references,
        action_steps=record.action_steps,
        contact_info=record.contact_info,
    )


def session_from_records(record: SessionRecord, messages: list[MessageRecord]) -> ChatSession:
    return ChatSession(
        id=record.id,
        title=record.title,
        messages=[message_from_record(message) for message in messages],
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def message_to_record(message: Message, session_id: str) -> NewMessageRecord:
    return NewMessageRecord(
        id=message.id,
        session_id=session_id,
        type=message.type,
        content=message.content,
        legal_references=message.legal_references,
        action_steps=message.action_steps,
        contact_info=message.contact_info,
    )


def parse_legacy_sessions(raw: str) -> list[ChatSession]:
    """
    Parse the session list written by earlier client versions.

    Raises:
        ValueError: If the payload is not a JSON list of sessions
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Legacy session data is not valid JSON: {exc}") from exc
    return _LEGACY_SESSIONS.validate_python(payload)


def dump_legacy_sessions(sessions: list[ChatSession]) -> str:
    """Serialize sessions in the legacy camelCase form."""
    return _LEGACY_SESSIONS.dump_json(sessions, by_alias=True).decode("utf-8")
