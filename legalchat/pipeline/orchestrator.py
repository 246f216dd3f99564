"""
Conversation Pipeline

Runs one chat turn: records the user's query in the current session, asks
the legal assistant with the session's earlier turns as context, and
records the structured answer.
"""

from __future__ import annotations

import logging
import time

from legalchat.assistant.service import HistoryRole, LegalAssistant
from legalchat.history.sync import ChatHistory
from legalchat.models.chat import Message

logger = logging.getLogger(__name__)


class LegalChatPipeline:
    """Glue between the chat history and the legal assistant."""

    def __init__(self, history: ChatHistory, assistant: LegalAssistant) -> None:
        self.history = history
        self.assistant = assistant

    def _conversation_turns(self) -> list[tuple[HistoryRole, str]]:
        session = self.history.current_session
        if session is None:
            return []
        turns: list[tuple[HistoryRole, str]] = [
            ("model" if message.type == "ai" else "user", message.content)
            for message in session.messages
        ]
        # Gemini chat history must open with a user turn.
        while turns and turns[0][0] == "model":
            turns.pop(0)
        return turns

    async def ask(self, query: str) -> Message:
        """Send ``query`` in the current session and return the assistant's message."""
        query = query.strip()
        if not query:
            raise ValueError("Query must not be empty")

        if self.history.current_session is None:
            await self.history.create_new_session()

        turns = self._conversation_turns()
        user_message = await self.history.add_message_to_current_session("user", query)
        if user_message is None:
            raise RuntimeError("No current session to add the query to")

        start = time.perf_counter()
        answer = await self.assistant.generate_legal_response(query, turns)
        logger.info(
            "Assistant answered",
            extra={
                "session_id": self.history.current_session_id,
                "duration_ms": round((time.perf_counter() - start) * 1000, 1),
                "references": len(answer.legal_references),
                "steps": len(answer.action_steps),
                "contacts": len(answer.contact_info),
            },
        )

        ai_message = await self.history.add_message_to_current_session(
            "ai",
            answer.content,
            legal_references=answer.legal_references,
            action_steps=answer.action_steps,
            contact_info=answer.contact_info,
        )
        if ai_message is None:
            raise RuntimeError("Current session disappeared while waiting for the answer")
        return ai_message
