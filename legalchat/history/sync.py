"""
Chat History Synchronizer

Owns the in-memory chat sessions of one user and mirrors them to the remote
chat store. Local state is updated optimistically; message writes happen in
background tasks that retry with linear backoff. Writes that still fail are
recorded in a persisted pending queue and retried periodically.

On the first authenticated load, sessions cached locally by earlier client
versions are migrated to the remote store once, and sessions sharing a title
are deduplicated.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import UTC, datetime

from legalchat.config import HistorySettings
from legalchat.history.converters import (
    message_to_record,
    parse_legacy_sessions,
    session_from_records,
)
from legalchat.history.pending import PendingQueue
from legalchat.local_storage import (
    CURRENT_SESSION_KEY,
    MIGRATION_KEY,
    SESSIONS_KEY,
    LocalStorage,
)
from legalchat.models.chat import (
    DEFAULT_SESSION_TITLE,
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
)
from legalchat.store.base import (
    BaseChatStore,
    ChatStoreError,
    DuplicateRecordError,
    SessionRecord,
)

logger = logging.getLogger(__name__)


class NotAuthenticatedError(Exception):
    """Raised when an operation needs a signed-in user."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ChatHistory:
    """
    Session and message state for one user, synchronized with a remote store.

    Attributes:
        sessions: Loaded sessions, newest created first
        is_loading: True until the first load finishes
        saving_messages: Ids of messages with a remote write in flight
        failed_messages: Ids of messages whose remote write gave up
    """

    def __init__(
        self,
        store: BaseChatStore,
        storage: LocalStorage,
        settings: HistorySettings | None = None,
    ) -> None:
        self.store = store
        self.storage = storage
        self.settings = settings or HistorySettings()
        self.pending = PendingQueue(storage)

        self.user: User | None = None
        self.sessions: list[ChatSession] = []
        self.is_loading = True
        self.saving_messages: set[str] = set()
        self.failed_messages: set[str] = set()

        self._current_session_id: str | None = None
        self._save_tasks: set[asyncio.Task] = set()
        self._retry_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def current_session_id(self) -> str | None:
        return self._current_session_id

    @current_session_id.setter
    def current_session_id(self, session_id: str | None) -> None:
        self._current_session_id = session_id
        try:
            if session_id:
                self.storage.set_item(CURRENT_SESSION_KEY, session_id)
            else:
                self.storage.remove_item(CURRENT_SESSION_KEY)
        except OSError as exc:
            logger.error(f"Failed to save current session id: {exc}")

    @property
    def current_session(self) -> ChatSession | None:
        return self.get_session(self._current_session_id)

    def get_session(self, session_id: str | None) -> ChatSession | None:
        if session_id is None:
            return None
        return next((session for session in self.sessions if session.id == session_id), None)

    # ------------------------------------------------------------------
    # Loading and migration
    # ------------------------------------------------------------------

    async def load(self, user: User | None, *, read_only: bool = False) -> None:
        """
        Load the sessions of ``user`` (or reset state when signed out).

        With ``read_only`` the remote store is only read: local data is not
        migrated, duplicates are kept, an empty account gets no greeting
        session and queued messages are not sent.
        """
        self.user = user
        self.is_loading = True

        if user is None:
            self.sessions = []
            self._current_session_id = None
            self.is_loading = False
            return

        try:
            if not read_only and not self.storage.get_item(MIGRATION_KEY):
                await self.migrate_local_data(user.id)

            records = await self.store.list_sessions(user.id)
            if len(records) > 1 and not read_only:
                await self.cleanup_duplicate_sessions(user.id)
                records = await self.store.list_sessions(user.id)

            sessions = []
            for record in records:
                messages = await self.store.list_messages(record.id)
                sessions.append(session_from_records(record, messages))
            self.sessions = sessions

            if sessions:
                self.current_session_id = self._pick_current_session(sessions)
            elif not read_only:
                await self.create_new_session()
        except (ChatStoreError, ValueError) as exc:
            logger.error(
                f"Failed to load chat sessions: {exc}",
                extra={"user_id": user.id},
            )
            self._load_legacy_fallback()
        finally:
            self.is_loading = False

        logger.info(
            f"Loaded {len(self.sessions)} chat sessions",
            extra={"user_id": user.id, "current_session_id": self.current_session_id},
        )
        if not read_only:
            await self.process_pending_messages()

    def _pick_current_session(self, sessions: list[ChatSession]) -> str:
        saved_id = self.storage.get_item(CURRENT_SESSION_KEY)
        if saved_id and any(session.id == saved_id for session in sessions):
            return saved_id
        return max(sessions, key=lambda session: session.updated_at).id

    def _load_legacy_fallback(self) -> None:
        if self.storage.get_item(MIGRATION_KEY):
            return
        stored = self.storage.get_item(SESSIONS_KEY)
        if not stored:
            return
        try:
            sessions = parse_legacy_sessions(stored)
        except ValueError as exc:
            logger.error(f"Failed to load fallback sessions: {exc}")
            return

        self.sessions = sessions
        if sessions:
            self.current_session_id = self._pick_current_session(sessions)
        logger.warning(f"Using {len(sessions)} locally cached sessions while the store is unavailable")

    async def migrate_local_data(self, user_id: str) -> None:
        """
        Copy sessions cached locally by earlier client versions to the store.

        Runs once: the migration flag is set on success, or when the user
        already has remote sessions. Failures propagate without setting the
        flag so the next load tries again.
        """
        stored = self.storage.get_item(SESSIONS_KEY)
        if not stored:
            return

        try:
            existing = await self.store.list_sessions(user_id)
            if existing:
                logger.info("User already has remote sessions, skipping migration")
                self._finish_migration()
                return

            local_sessions = parse_legacy_sessions(stored)
            logger.info(f"Migrating {len(local_sessions)} chat sessions to the remote store...")

            for local_session in local_sessions:
                record = await self.store.create_session(user_id, local_session.title)
                for message in local_session.messages:
                    await self.store.create_message(message_to_record(message, record.id))

            self._finish_migration()
            logger.info("Successfully migrated local chat data")
        except (ChatStoreError, ValueError) as exc:
            logger.error(f"Failed to migrate local data: {exc}", extra={"user_id": user_id})
            raise

    def _finish_migration(self) -> None:
        self.storage.set_item(MIGRATION_KEY, "true")
        self.storage.remove_item(SESSIONS_KEY)
        self.storage.remove_item(CURRENT_SESSION_KEY)

    async def cleanup_duplicate_sessions(self, user_id: str) -> None:
        """Delete sessions sharing a title, keeping the most recently updated one."""
        try:
            records = await self.store.list_sessions(user_id)
            groups: dict[str, list[SessionRecord]] = {}
            for record in records:
                groups.setdefault(record.title, []).append(record)

            for title, group in groups.items():
                if len(group) < 2:
                    continue
                group.sort(key=lambda record: record.updated_at, reverse=True)
                for duplicate in group[1:]:
                    logger.info(f"Removing duplicate session: {duplicate.id} ({title})")
                    await self.store.delete_session(duplicate.id)
                    await self.store.delete_messages(duplicate.id)
        except ChatStoreError as exc:
            logger.error(f"Failed to clean up duplicate sessions: {exc}", extra={"user_id": user_id})

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    async def create_new_session(self) -> str:
        """Create a greeting-only session, make it current and return its id."""
        if self.user is None:
            raise NotAuthenticatedError("User must be authenticated")

        session = greeting_session()
        try:
            record = await self.store.create_session(self.user.id, session.title)
            session.id = record.id
            await self.store.create_message(message_to_record(session.messages[0], record.id))
        except ChatStoreError as exc:
            logger.error(
                f"Failed to create session in remote store, keeping it locally: {exc}",
                extra={"session_id": session.id},
            )

        self.sessions.insert(0, session)
        self.current_session_id = session.id
        return session.id

    async def update_current_session(self, *, title: str | None = None) -> None:
        session = self.current_session
        if session is None:
            return

        if title:
            try:
                await self.store.update_session(session.id, title=title)
            except ChatStoreError as exc:
                logger.error(f"Failed to update session in remote store: {exc}")
            session.title = title
        session.updated_at = _utcnow()

    async def delete_session(self, session_id: str) -> None:
        try:
            await self.store.delete_session(session_id)
            await self.store.delete_messages(session_id)
        except ChatStoreError as exc:
            logger.error(f"Failed to delete session from remote store: {exc}")

        self.sessions = [session for session in self.sessions if session.id != session_id]
        if self._current_session_id == session_id:
            self.current_session_id = self.sessions[0].id if self.sessions else None

    async def switch_to_session(self, session_id: str) -> bool:
        """Make ``session_id`` current; refused while messages are being saved."""
        if self.saving_messages:
            logger.warning("Cannot switch sessions while messages are being saved")
            return False
        if self.get_session(session_id) is None:
            logger.warning(f"Cannot switch to unknown session {session_id}")
            return False

        self.current_session_id = session_id
        await self.process_pending_messages()
        return True

    async def clear_all_sessions(self) -> None:
        if self.user is None:
            return

        try:
            records = await self.store.list_sessions(self.user.id)
            for record in records:
                await self.store.delete_session(record.id)
                await self.store.delete_messages(record.id)
        except ChatStoreError as exc:
            logger.error(f"Failed to clear sessions from remote store: {exc}")

        self.sessions = []
        self._current_session_id = None
        self.storage.remove_item(SESSIONS_KEY)
        self.storage.remove_item(CURRENT_SESSION_KEY)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def add_message_to_current_session(
        self,
        type: MessageType,
        content: str,
        *,
        legal_references: list[LegalReference] | None = None,
        action_steps: list[ActionStep] | None = None,
        contact_info: list[ContactInfo] | None = None,
    ) -> Message | None:
        """
        Append a message to the current session and persist it in the background.

        Returns the new message, or None when no session is current.
        """
        session = self.current_session
        if session is None:
            logger.warning("No current session, cannot add message")
            return None

        message = Message(
            type=type,
            content=content,
            legal_references=legal_references,
            action_steps=action_steps,
            contact_info=contact_info,
        )

        new_title = None
        if session.title == DEFAULT_SESSION_TITLE and type == "user":
            new_title = derive_title(content, self.settings.title_max_length)
            session.title = new_title
        self._append_local(session, message)

        self._schedule_save(message, session.id, new_title)
        return message

    def _append_local(self, session: ChatSession, message: Message) -> None:
        session.messages.append(message)
        session.messages.sort(key=lambda item: item.timestamp)
        session.updated_at = _utcnow()

    def _schedule_save(self, message: Message, session_id: str, title: str | None = None) -> None:
        self.saving_messages.add(message.id)
        task = asyncio.create_task(self._save_with_retry(message, session_id, title))
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)

    async def _save_with_retry(
        self,
        message: Message,
        session_id: str,
        title: str | None = None,
    ) -> bool:
        """Persist ``message``; on final failure queue it locally. Returns success."""
        self.saving_messages.add(message.id)
        try:
            saved = await self._create_remote_message(message, session_id)
        finally:
            self.saving_messages.discard(message.id)

        if not saved:
            self.failed_messages.add(message.id)
            self._queue_pending(message, session_id, title)
            return False

        self.failed_messages.discard(message.id)
        if title:
            try:
                await self.store.update_session(session_id, title=title)
            except ChatStoreError as exc:
                logger.error(f"Failed to update session title: {exc}", extra={"session_id": session_id})
        return True

    async def _create_remote_message(self, message: Message, session_id: str) -> bool:
        attempts = self.settings.save_attempts
        for attempt in range(1, attempts + 1):
            try:
                await self.store.create_message(message_to_record(message, session_id))
                return True
            except DuplicateRecordError:
                # An earlier attempt was stored but its response was lost.
                logger.info(
                    "Message already stored remotely",
                    extra={"message_id": message.id, "session_id": session_id},
                )
                return True
            except ChatStoreError as exc:
                logger.error(
                    f"Failed to save message (attempt {attempt}/{attempts}): {exc}",
                    extra={"message_id": message.id, "session_id": session_id},
                )
                if attempt < attempts:
                    await asyncio.sleep(attempt * self.settings.retry_backoff_seconds)
        return False

    def _queue_pending(self, message: Message, session_id: str, title: str | None = None) -> None:
        try:
            self.pending.append(PendingMessage(message=message, session_id=session_id, title=title))
        except OSError as exc:
            logger.error(f"Failed to store message in local backup: {exc}")

    async def retry_failed_messages(self) -> None:
        """Re-send queued messages that gave up, under their original ids and sessions."""
        failed_ids = set(self.failed_messages)
        if not failed_ids:
            return

        entries = self.pending.load()
        to_retry = [entry for entry in entries if entry.message.id in failed_ids]
        self.pending.save([entry for entry in entries if entry.message.id not in failed_ids])

        logger.info(f"Retrying {len(to_retry)} failed messages")
        for entry in to_retry:
            await self._save_with_retry(entry.message, entry.session_id, entry.title)

    async def process_pending_messages(self) -> None:
        """
        Resume queued writes for the current session.

        Messages already present in the session are treated as persisted and
        dropped. Messages that failed during this run stay queued for the
        retry loop. Anything else is restored locally and saved again.
        """
        session = self.current_session
        if session is None:
            return

        entries = self.pending.load()
        mine = [
            entry
            for entry in entries
            if entry.session_id == session.id and entry.message.id not in self.failed_messages
        ]
        if not mine:
            return

        handled = {entry.message.id for entry in mine}
        self.pending.save([entry for entry in entries if entry.message.id not in handled])

        existing_ids = {message.id for message in session.messages}
        for entry in mine:
            if entry.message.id in existing_ids:
                continue
            if entry.title and session.title == DEFAULT_SESSION_TITLE:
                session.title = entry.title
            self._append_local(session, entry.message)
            self._schedule_save(entry.message, session.id, entry.title)

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic retry loop for failed messages."""
        if self._retry_task is None or self._retry_task.done():
            self._retry_task = asyncio.create_task(self._retry_loop())

    async def _retry_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.retry_interval_seconds)
            if not self.failed_messages:
                continue
            try:
                await self.retry_failed_messages()
            except (ChatStoreError, OSError) as exc:
                logger.error(f"Failed to retry failed messages: {exc}")

    async def wait_for_saves(self) -> None:
        """Wait until every in-flight message write has finished."""
        while self._save_tasks:
            await asyncio.gather(*list(self._save_tasks))

    async def aclose(self) -> None:
        if self._retry_task is not None:
            self._retry_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._retry_task
            self._retry_task = None
        await self.wait_for_saves()
