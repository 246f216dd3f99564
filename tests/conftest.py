"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import asyncio
import logging
from datetime import UTC, datetime

import pytest

from legalchat.store.base import (
    BaseChatStore,
    ChatStoreError,
    DuplicateRecordError,
    MessageRecord,
    SessionRecord,
)

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires API keys and external services)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (may require external services)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 1 second)")
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """
    Configure logging for tests.

    Sets up log capture and configures log levels.
    This fixture runs automatically for all tests.
    """
    logging.disable(logging.NOTSET)
    caplog.set_level(logging.DEBUG)
    yield
    logging.disable(logging.NOTSET)


@pytest.fixture
def disable_logging():
    """Disable logging for tests that generate excessive logs."""
    logging.disable(logging.CRITICAL)
    yield
    logging.disable(logging.NOTSET)


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """
    Point settings at test-only values.

    Local storage goes to a temp dir, the .env file is not applied and the
    settings cache is cleared before and after each test.
    """
    from legalchat.config import clear_settings_cache

    clear_settings_cache()
    monkeypatch.setenv("LEGALCHAT_ENV_SOURCE", "env")
    monkeypatch.setenv("HISTORY_STORAGE_PATH", str(tmp_path / "storage" / "local_storage.json"))
    monkeypatch.setenv("LLM_GOOGLE_API_KEY", "test-google-key")
    for name in (
        "LEGALCHAT_USER_ID",
        "LLM_GOOGLE_MODEL",
        "STORE_BACKEND",
        "STORE_SUPABASE_URL",
        "STORE_SUPABASE_KEY",
        "STORE_ACCESS_TOKEN",
        "STORE_DATABASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    clear_settings_cache()


# ============================================================================
# Shared Chat Fixtures
# ============================================================================


@pytest.fixture
def local_storage(tmp_path):
    """LocalStorage backed by a temp file."""
    from legalchat.local_storage import LocalStorage

    return LocalStorage(tmp_path / "local_storage.json")


@pytest.fixture
def fast_history_settings():
    """History settings with no backoff delay."""
    from legalchat.config import HistorySettings

    return HistorySettings(retry_backoff_seconds=0.0, retry_interval_seconds=0.01)


@pytest.fixture
def mock_llm_provider():
    """
    Mock LLM provider for testing the assistant.

    Usage:
        def test_assistant(mock_llm_provider):
            mock_llm_provider.set_stream(['{"content": ', '"ok"}'])
    """
    from unittest.mock import MagicMock

    from legalchat.llm.models import LLMStreamChunk

    class MockLLMProvider:
        def __init__(self):
            self.model = "gemini-2.5-flash"
            self.requests = []
            self.chunks: list[str] = []
            self.error: Exception | None = None
            self.set_model = MagicMock()

        def set_stream(self, chunks: list[str]):
            self.chunks = chunks

        def set_error(self, error: Exception):
            self.error = error

        def get_current_model(self):
            return self.model

        def get_available_models(self):
            from legalchat.config import AVAILABLE_MODELS

            return AVAILABLE_MODELS

        async def stream(self, request):
            self.requests.append(request)
            if self.error is not None:
                raise self.error
            for chunk in self.chunks:
                yield LLMStreamChunk(content=chunk)

    return MockLLMProvider()


# ============================================================================
# In-memory Chat Store
# ============================================================================


class FakeChatStore(BaseChatStore):
    """
    In-memory chat store with failure injection.

    Usage:
        store = FakeChatStore()
        store.fail("create_message", times=2)   # next two calls raise
        store.fail("list_sessions")             # every call raises
    """

    def __init__(self):
        self.sessions: dict[str, SessionRecord] = {}
        self.messages: dict[str, MessageRecord] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, int | None] = {}
        self.message_gate: asyncio.Event | None = None
        self.closed = False
        self._counter = 0

    def fail(self, operation: str, times: int | None = None) -> None:
        self.failures[operation] = times

    def recover(self, operation: str | None = None) -> None:
        if operation is None:
            self.failures.clear()
        else:
            self.failures.pop(operation, None)

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    def messages_for(self, session_id: str) -> list[MessageRecord]:
        return sorted(
            (record for record in self.messages.values() if record.session_id == session_id),
            key=lambda record: record.timestamp,
        )

    def seed_session(self, user_id, title, updated_at=None, messages=()) -> SessionRecord:
        """Insert a session and its messages without recording calls."""
        record = self._new_session(user_id, title, updated_at or datetime.now(UTC))
        for message in messages:
            self.messages[message.id] = MessageRecord(
                id=message.id,
                session_id=record.id,
                type=message.type,
                content=message.content,
                timestamp=message.timestamp,
            )
        return record

    def _new_session(self, user_id: str, title: str, stamp: datetime) -> SessionRecord:
        self._counter += 1
        record = SessionRecord(
            id=f"remote-{self._counter}",
            user_id=user_id,
            title=title,
            created_at=stamp,
            updated_at=stamp,
        )
        self.sessions[record.id] = record
        return record

    def _call(self, operation: str, *args) -> None:
        self.calls.append((operation, args))
        if operation not in self.failures:
            return
        remaining = self.failures[operation]
        if remaining is not None:
            if remaining <= 1:
                del self.failures[operation]
            else:
                self.failures[operation] = remaining - 1
        raise ChatStoreError(operation, "injected failure")

    async def create_session(self, user_id, title):
        self._call("create_session", user_id, title)
        return self._new_session(user_id, title, datetime.now(UTC))

    async def list_sessions(self, user_id):
        self._call("list_sessions", user_id)
        records = [record for record in self.sessions.values() if record.user_id == user_id]
        return sorted(records, key=lambda record: record.updated_at, reverse=True)

    async def update_session(self, session_id, *, title):
        self._call("update_session", session_id, title)
        if session_id not in self.sessions:
            raise ChatStoreError("update_session", "No row returned")
        record = self.sessions[session_id].model_copy(
            update={"title": title, "updated_at": datetime.now(UTC)}
        )
        self.sessions[session_id] = record
        return record

    async def delete_session(self, session_id):
        self._call("delete_session", session_id)
        self.sessions.pop(session_id, None)

    async def create_message(self, message):
        if self.message_gate is not None:
            await self.message_gate.wait()
        self._call("create_message", message.id, message.session_id)
        if message.id in self.messages:
            raise DuplicateRecordError("create_message", "duplicate key value")
        record = MessageRecord(**message.model_dump(), timestamp=datetime.now(UTC))
        self.messages[message.id] = record
        return record

    async def list_messages(self, session_id):
        self._call("list_messages", session_id)
        return self.messages_for(session_id)

    async def update_message(
        self,
        message_id,
        *,
        content=None,
        legal_references=None,
        action_steps=None,
        contact_info=None,
    ):
        self._call("update_message", message_id)
        updates = self._message_updates(content, legal_references, action_steps, contact_info)
        if message_id not in self.messages:
            raise ChatStoreError("update_message", "No row returned")
        record = MessageRecord.model_validate(
            {**self.messages[message_id].model_dump(), **updates}
        )
        self.messages[message_id] = record
        return record

    async def delete_messages(self, session_id):
        self._call("delete_messages", session_id)
        self.messages = {
            key: record for key, record in self.messages.items() if record.session_id != session_id
        }

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_store():
    """In-memory chat store (see FakeChatStore)."""
    return FakeChatStore()
