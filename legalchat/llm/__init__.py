"""
LLM Provider Module

Gemini-backed LLM abstraction used by the legal assistant.

Usage:
    from legalchat.llm import create_provider, LLMRequest, LLMMessage
    from legalchat.config import get_settings

    provider = create_provider(get_settings().llm)

    request = LLMRequest(
        messages=[LLMMessage(role="user", content="Hello!")],
    )

    response = await provider.generate(request)
    print(response.content)
"""

from legalchat.llm.base import BaseLLMProvider
from legalchat.llm.factory import create_provider
from legalchat.llm.google import GoogleProvider
from legalchat.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
    ModelInfo,
)

__all__ = [
    "BaseLLMProvider",
    "GoogleProvider",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMStreamChunk",
    "LLMUsage",
    "ModelInfo",
    "create_provider",
]
