"""Legal assistant: LLM queries returning structured answers."""

from legalchat.assistant.service import FALLBACK_ANSWER, LegalAnswer, LegalAssistant

__all__ = ["FALLBACK_ANSWER", "LegalAnswer", "LegalAssistant"]
