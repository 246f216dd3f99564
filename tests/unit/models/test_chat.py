"""Unit tests for chat models and helpers."""

import re
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from legalchat.models import (
    DEFAULT_SESSION_TITLE,
    GREETING_MESSAGE,
    ChatSession,
    ContactInfo,
    Message,
    PendingMessage,
    User,
    derive_title,
    greeting_session,
    new_message_id,
    new_session_id,
)


class TestIds:
    def test_message_id_format(self):
        assert re.fullmatch(r"msg-\d{13}-[a-z0-9]{9}", new_message_id())

    def test_session_id_format(self):
        assert re.fullmatch(r"chat-\d{13}-[a-z0-9]{9}", new_session_id())

    def test_ids_are_unique(self):
        assert len({new_message_id() for _ in range(200)}) == 200


class TestDeriveTitle:
    def test_short_content_kept(self):
        assert derive_title("Tenant rights") == "Tenant rights"

    def test_exactly_limit_not_truncated(self):
        content = "x" * 50

        assert derive_title(content) == content

    def test_long_content_truncated_with_ellipsis(self):
        content = "What are my rights if my landlord refuses to return the deposit?"

        title = derive_title(content)

        assert title == content[:50] + "..."
        assert len(title) == 53

    def test_custom_limit(self):
        assert derive_title("abcdef", limit=3) == "abc..."


class TestMessage:
    def test_defaults(self):
        message = Message(type="user", content="Hello")

        assert message.id.startswith("msg-")
        assert message.timestamp.tzinfo is not None
        assert message.legal_references is None

    def test_invalid_type_rejected(self):
        with pytest.raises(ValidationError):
            Message(type="system", content="Hello")

    def test_accepts_camel_case_payload(self):
        message = Message.model_validate(
            {
                "id": "msg-1",
                "type": "ai",
                "content": "See Article 21.",
                "timestamp": "2024-05-01T10:00:00Z",
                "legalReferences": [{"section": "Article 21", "description": "Life"}],
                "actionSteps": [{"step": "1", "description": "File a complaint"}],
                "contactInfo": [{"department": "NALSA", "helpline": "15100"}],
            }
        )

        assert message.legal_references[0].section == "Article 21"
        assert message.action_steps[0].description == "File a complaint"
        assert message.contact_info[0].type == "phone"

    def test_dump_by_alias_uses_camel_case(self):
        message = Message(
            id="msg-1",
            type="ai",
            content="x",
            contact_info=[ContactInfo(department="Police", helpline="112")],
        )

        payload = message.model_dump(by_alias=True)

        assert "contactInfo" in payload
        assert "contact_info" not in payload

    def test_contact_type_validated(self):
        with pytest.raises(ValidationError):
            ContactInfo(department="Police", helpline="112", type="fax")


class TestChatSession:
    def test_defaults(self):
        session = ChatSession()

        assert session.id.startswith("chat-")
        assert session.title == DEFAULT_SESSION_TITLE
        assert session.messages == []

    def test_greeting_session(self):
        session = greeting_session()

        assert session.title == "New Chat"
        assert len(session.messages) == 1
        assert session.messages[0].type == "ai"
        assert session.messages[0].content == GREETING_MESSAGE


class TestPendingMessage:
    def test_timestamp_is_epoch_ms(self):
        entry = PendingMessage(message=Message(type="user", content="hi"), session_id="s1")

        assert entry.timestamp > 1_600_000_000_000

    def test_round_trip_camel_case(self):
        entry = PendingMessage(
            message=Message(
                id="msg-1",
                type="user",
                content="hi",
                timestamp=datetime(2024, 1, 1, tzinfo=UTC),
            ),
            session_id="s1",
            timestamp=1,
        )

        payload = entry.model_dump(mode="json", by_alias=True)

        assert payload["sessionId"] == "s1"
        assert PendingMessage.model_validate(payload) == entry


def test_user_requires_id():
    with pytest.raises(ValidationError):
        User(id="")
