"""
Legal Assistant

Sends a user query plus the conversation so far to the LLM and returns the
reply as structured sections (answer, legal references, action steps,
contact info). The model is asked for a JSON document; when it does not
comply the raw text is returned as the answer.
"""

import json
import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from legalchat.llm.base import BaseLLMProvider
from legalchat.llm.models import LLMMessage, LLMRequest
from legalchat.models.chat import ActionStep, ContactInfo, LegalReference

logger = logging.getLogger(__name__)

HistoryRole = Literal["user", "model"]

FALLBACK_ANSWER = (
    "I apologize, but I'm experiencing technical difficulties. Please try again in a "
    "moment. For urgent legal matters, please consult a qualified legal professional."
)

SYSTEM_INSTRUCTION = """You are an assistant expert in Indian law. Use the Constitution of India and relevant statutes when applicable.
Be concise, factual, and not a substitute for a lawyer.

Reply with a single JSON object and nothing else:
{
  "content": "1-2 short sentences answering the query, ending with: Consult a qualified lawyer for specific advice.",
  "legal_references": [{"section": "Article 21", "description": "..."}],
  "action_steps": [{"step": "1", "description": "..."}],
  "contact_info": [{"department": "...", "helpline": "...", "type": "phone|email|website", "description": "..."}]
}
Use empty lists when a section does not apply."""


class LegalAnswer(BaseModel):
    """Structured assistant reply."""

    content: str = Field(..., description="Short answer shown to the user")
    legal_references: list[LegalReference] = Field(default_factory=list)
    action_steps: list[ActionStep] = Field(default_factory=list)
    contact_info: list[ContactInfo] = Field(default_factory=list)


class LegalAssistant:
    """Turns user queries into structured legal answers via an LLM provider."""

    def __init__(self, provider: BaseLLMProvider, system_instruction: str = SYSTEM_INSTRUCTION):
        self.provider = provider
        self.system_instruction = system_instruction

    def get_current_model(self) -> str:
        return self.provider.get_current_model()

    def get_available_models(self) -> tuple[str, ...]:
        return self.provider.get_available_models()

    def set_model(self, model: str) -> None:
        self.provider.set_model(model)

    async def generate_legal_response(
        self,
        query: str,
        history: list[tuple[HistoryRole, str]],
    ) -> LegalAnswer:
        """
        Ask the model about ``query`` given earlier turns.

        Never raises: provider failures produce the apology answer.
        """
        request = LLMRequest(
            messages=self._build_messages(query, history),
            response_format="json",
        )

        try:
            chunks: list[str] = []
            async for chunk in self.provider.stream(request):
                chunks.append(chunk.content)
            full_text = "".join(chunks)
        except Exception as exc:
            logger.error(
                f"LLM request failed: {exc}",
                extra={"model": getattr(self.provider, "model", None)},
                exc_info=True,
            )
            return LegalAnswer(content=FALLBACK_ANSWER)

        return self._parse_response(full_text)

    def _build_messages(
        self, query: str, history: list[tuple[HistoryRole, str]]
    ) -> list[LLMMessage]:
        messages = [LLMMessage(role="system", content=self.system_instruction)]
        for role, content in history:
            if not content.strip():
                continue
            messages.append(
                LLMMessage(role="assistant" if role == "model" else "user", content=content)
            )
        messages.append(LLMMessage(role="user", content=query))
        return messages

    def _parse_response(self, text: str) -> LegalAnswer:
        payload = self._extract_json(text)
        if payload is None:
            logger.warning("LLM reply was not JSON; returning raw text as answer")
            return LegalAnswer(content=text.strip() or FALLBACK_ANSWER)

        try:
            answer = LegalAnswer.model_validate(payload)
        except ValidationError as exc:
            logger.warning(f"LLM reply did not match answer schema: {exc}")
            content = payload.get("content")
            return LegalAnswer(
                content=str(content).strip() if content else text.strip(),
            )
        answer.content = answer.content.strip()
        return answer

    @staticmethod
    def _extract_json(content: str) -> dict[str, Any] | None:
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            start = content.find("{")
            end = content.rfind("}") + 1
            if start == -1 or end <= start:
                return None
            try:
                parsed = json.loads(content[start:end])
            except json.JSONDecodeError:
                return None
        return parsed if isinstance(parsed, dict) else None
