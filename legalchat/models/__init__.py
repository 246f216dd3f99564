"""
LegalChat Models Module

Pydantic models for chat state shared by the store, history and pipeline layers.

Usage:
    from legalchat.models import ChatSession, Message, User
"""

from legalchat.models.chat import (
    DEFAULT_SESSION_TITLE,
    GREETING_MESSAGE,
    ActionStep,
    ChatSession,
    ContactInfo,
    LegalReference,
    Message,
    MessageType,
    PendingMessage,
    User,
    derive_title,
    greeting_session,
    new_message_id,
    new_session_id,
)

__all__ = [
    "DEFAULT_SESSION_TITLE",
    "GREETING_MESSAGE",
    "ActionStep",
    "ChatSession",
    "ContactInfo",
    "LegalReference",
    "Message",
    "MessageType",
    "PendingMessage",
    "User",
    "derive_title",
    "greeting_session",
    "new_message_id",
    "new_session_id",
]
