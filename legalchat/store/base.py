"""
Base Chat Store

Abstract interface for the remote datastore holding chat sessions and
messages. Implementations talk to Supabase (PostgREST) or Postgres directly;
the history layer only depends on this contract.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from legalchat.models.chat import ActionStep, ContactInfo, LegalReference, MessageType

logger = logging.getLogger(__name__)


class ChatStoreError(Exception):
    """Raised when a remote store operation fails."""

    def __init__(self, operation: str, message: str, context: dict[str, Any] | None = None):
        self.operation = operation
        self.message = message
        self.context = context or {}
        super().__init__(f"[{operation}] {message}")


class DuplicateRecordError(ChatStoreError):
    """Raised when an insert conflicts with an existing row id."""


class SessionRecord(BaseModel):
    """Row of the ``chat_sessions`` table."""

    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime


class NewMessageRecord(BaseModel):
    """Message row before the store stamps it with a timestamp."""

    id: str
    session_id: str
    type: MessageType
    content: str
    legal_references: list[LegalReference] | None = None
    action_steps: list[ActionStep] | None = None
    contact_info: list[ContactInfo] | None = None


class MessageRecord(NewMessageRecord):
    """Row of the ``chat_messages`` table."""

    timestamp: datetime = Field(..., description="Server-side insert time")


class BaseChatStore(ABC):
    """
    CRUD contract for chat sessions and messages.

    Every operation raises ChatStoreError on failure so callers can decide
    whether the failure is best-effort or fatal.
    """

    @abstractmethod
    async def create_session(self, user_id: str, title: str) -> SessionRecord:
        """Insert a session and return the stored row."""

    @abstractmethod
    async def list_sessions(self, user_id: str) -> list[SessionRecord]:
        """Sessions owned by ``user_id``, most recently updated first."""

    @abstractmethod
    async def update_session(self, session_id: str, *, title: str) -> SessionRecord:
        """Rename a session; also bumps ``updated_at``."""

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Delete one session row."""

    @abstractmethod
    async def create_message(self, message: NewMessageRecord) -> MessageRecord:
        """Insert a message stamped with the current time."""

    @abstractmethod
    async def list_messages(self, session_id: str) -> list[MessageRecord]:
        """Messages of a session, oldest first."""

    @abstractmethod
    async def update_message(
        self,
        message_id: str,
        *,
        content: str | None = None,
        legal_references: list[LegalReference] | None = None,
        action_steps: list[ActionStep] | None = None,
        contact_info: list[ContactInfo] | None = None,
    ) -> MessageRecord:
        """Patch content or legal metadata of a message."""

    @abstractmethod
    async def delete_messages(self, session_id: str) -> None:
        """Delete every message of a session."""

    async def close(self) -> None:
        """Release network resources."""
        return None

    @staticmethod
    def _message_updates(
        content: str | None,
        legal_references: list[LegalReference] | None,
        action_steps: list[ActionStep] | None,
        contact_info: list[ContactInfo] | None,
    ) -> dict[str, Any]:
        updates: dict[str, Any] = {}
        if content is not None:
            updates["content"] = content
        if legal_references is not None:
            updates["legal_references"] = [item.model_dump() for item in legal_references]
        if action_steps is not None:
            updates["action_steps"] = [item.model_dump() for item in action_steps]
        if contact_info is not None:
            updates["contact_info"] = [item.model_dump() for item in contact_info]
        if not updates:
            raise ValueError("update_message requires at least one field to change")
        return updates
