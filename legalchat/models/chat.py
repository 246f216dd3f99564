"""
Chat Models

Pydantic models for chat sessions, messages and the structured legal
metadata attached to assistant replies.

Field names are snake_case in Python. The camelCase aliases match the JSON
written by earlier client versions (legacy sessions, pending queue), so
``model_validate`` accepts both spellings and ``model_dump(by_alias=True)``
produces the stored form.
"""

import random
import string
import time
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MessageType = Literal["user", "ai"]
ContactType = Literal["phone", "email", "website"]

DEFAULT_SESSION_TITLE = "New Chat"
DEFAULT_TITLE_LENGTH = 50

GREETING_MESSAGE = (
    "Namaste! I am your AI Legal Assistant, here to help you navigate the Indian "
    "legal system. I can assist you with understanding laws, rights, procedures, "
    "and legal documentation. How may I assist you today?"
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _generate_id(prefix: str) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def new_message_id() -> str:
    """Return a client-side message id (``msg-<epoch ms>-<9 chars>``)."""
    return _generate_id("msg")


def new_session_id() -> str:
    """Return a client-side session id (``chat-<epoch ms>-<9 chars>``)."""
    return _generate_id("chat")


def derive_title(content: str, limit: int = DEFAULT_TITLE_LENGTH) -> str:
    """Session title taken from the first user message."""
    if len(content) > limit:
        return content[:limit] + "..."
    return content


class _ChatModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LegalReference(_ChatModel):
    """Statute, article or section cited in an answer."""

    section: str = Field(..., description="Identifier, e.g. 'Article 21'")
    description: str = Field(default="", description="What the provision covers")


class ActionStep(_ChatModel):
    """One practical step the user can take."""

    step: str = Field(..., description="Step number or short label")
    description: str = Field(default="", description="What to do")


class ContactInfo(_ChatModel):
    """Helpline or agency the user can reach."""

    department: str
    helpline: str
    type: ContactType = "phone"
    description: str | None = None


class Message(_ChatModel):
    """Single chat turn (user or assistant)."""

    id: str = Field(default_factory=new_message_id)
    type: MessageType
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    legal_references: list[LegalReference] | None = None
    action_steps: list[ActionStep] | None = None
    contact_info: list[ContactInfo] | None = None


class ChatSession(_ChatModel):
    """Named, ordered conversation thread."""

    id: str = Field(default_factory=new_session_id)
    title: str = DEFAULT_SESSION_TITLE
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class PendingMessage(_ChatModel):
    """Message waiting for a confirmed remote write."""

    message: Message
    session_id: str
    title: str | None = Field(
        default=None,
        description="Title derived from this message, still to be pushed to the store",
    )
    timestamp: int = Field(
        default_factory=lambda: int(time.time() * 1000),
        description="Epoch milliseconds when the message was queued",
    )


class User(BaseModel):
    """Authenticated identity owning the chat sessions."""

    id: str = Field(..., min_length=1)
    email: str | None = None


def greeting_session() -> ChatSession:
    """Fresh session holding only the assistant greeting."""
    return ChatSession(
        title=DEFAULT_SESSION_TITLE,
        messages=[Message(type="ai", content=GREETING_MESSAGE)],
    )
