"""
Google LLM Provider

Implementation of BaseLLMProvider for Google's Gemini models.
Conversations are sent as a Gemini chat: system messages become the
system instruction, earlier turns become chat history, and the final user
turn is sent with ``send_message_async``.
"""

import logging
import warnings
from collections.abc import AsyncIterator
from typing import Any

with warnings.catch_warnings():
    warnings.simplefilter("ignore", FutureWarning)
    import google.generativeai as genai

from legalchat.config import AVAILABLE_MODELS
from legalchat.llm.base import BaseLLMProvider
from legalchat.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
    ModelInfo,
)

logger = logging.getLogger(__name__)


class GoogleProvider(BaseLLMProvider):
    """
    Google (Gemini) LLM provider implementation.

    Uses the google-generativeai Python SDK.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.09,
        top_p: float | None = 0.7,
        top_k: int | None = 30,
        max_tokens: int = 2048,
        timeout: int = 30,
    ):
        """Initialize Google provider."""
        super().__init__(
            provider_name="google",
            temperature=temperature,
            top_p=top_p,
            top_k=top_k,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        if model not in AVAILABLE_MODELS:
            raise ValueError(f"Unsupported Gemini model: {model}")

        self.model = model
        self.api_key = api_key
        self.genai = genai
        self.genai.configure(api_key=api_key)

        logger.info(f"Google provider initialized with model: {model}", extra={"model": model})

    def get_current_model(self) -> str:
        return self.model

    def get_available_models(self) -> tuple[str, ...]:
        return AVAILABLE_MODELS

    def set_model(self, model: str) -> None:
        """Switch the default model used for subsequent requests."""
        if model not in AVAILABLE_MODELS:
            raise ValueError(
                f"Unsupported Gemini model: {model}. Available: {', '.join(AVAILABLE_MODELS)}"
            )
        logger.info(f"Switching Gemini model {self.model} -> {model}")
        self.model = model

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using Google Gemini API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        model_name = request.model or self.model
        chat, message = self._start_chat(request, model_name)

        response = await chat.send_message_async(
            message,
            generation_config=self._generation_config(request),
        )
        response_text = self._extract_response_text(response)
        finish_reason = self._extract_finish_reason(response)

        # Estimate token usage (Gemini doesn't always provide exact counts)
        prompt_tokens = sum(self.count_tokens(msg.content) for msg in request.messages)
        completion_tokens = self.count_tokens(response_text)

        llm_response = LLMResponse(
            content=response_text,
            model=model_name,
            usage=LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason=finish_reason,
            provider="google",
            metadata={"raw_finish_reason": self._extract_raw_finish_reason(response)},
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion using Google Gemini API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        model_name = request.model or self.model
        chat, message = self._start_chat(request, model_name)

        response = await chat.send_message_async(
            message,
            generation_config=self._generation_config(request),
            stream=True,
        )

        async for chunk in response:
            text = self._extract_response_text(chunk)
            if text:
                yield LLMStreamChunk(content=text, finish_reason=None)

    def _start_chat(self, request: LLMRequest, model_name: str) -> tuple[Any, str]:
        system_parts = [msg.content for msg in request.messages if msg.role == "system"]
        turns = [msg for msg in request.messages if msg.role != "system"]
        if not turns or turns[-1].role != "user":
            raise ValueError("Gemini chat requests must end with a user message")

        client = self.genai.GenerativeModel(
            model_name,
            system_instruction="\n\n".join(system_parts) or None,
        )
        chat = client.start_chat(history=self._to_history(turns[:-1]))
        return chat, turns[-1].content

    @staticmethod
    def _to_history(messages: list[LLMMessage]) -> list[dict[str, Any]]:
        return [
            {
                "role": "model" if msg.role == "assistant" else "user",
                "parts": [msg.content],
            }
            for msg in messages
        ]

    def _generation_config(self, request: LLMRequest) -> Any:
        options: dict[str, Any] = {
            "temperature": request.temperature,
            "max_output_tokens": request.max_tokens,
        }
        if request.top_p is not None:
            options["top_p"] = request.top_p
        if request.top_k is not None:
            options["top_k"] = request.top_k
        if request.response_format == "json":
            options["response_mime_type"] = "application/json"
        return self.genai.types.GenerationConfig(**options)

    def count_tokens(self, text: str) -> int:
        """Count tokens for Google models."""
        # Rough approximation
        return len(text) // 4

    def _extract_response_text(self, response: Any) -> str:
        try:
            text = getattr(response, "text", "")
        except ValueError:
            # Blocked or empty candidates raise on .text access
            return ""
        if isinstance(text, str):
            return text
        if text is None:
            return ""
        return str(text)

    def _extract_raw_finish_reason(self, response: Any) -> str:
        candidates = getattr(response, "candidates", None)
        if not candidates:
            return ""
        first = candidates[0] if len(candidates) > 0 else None
        if first is None:
            return ""
        reason = getattr(first, "finish_reason", "")
        return str(reason or "")

    def _extract_finish_reason(self, response: Any) -> str:
        raw_reason = self._extract_raw_finish_reason(response).lower()
        if any(token in raw_reason for token in ("max_tokens", "length")):
            return "length"
        if any(token in raw_reason for token in ("safety", "blocked", "recitation")):
            return "content_filter"
        if "error" in raw_reason:
            return "error"
        return "stop"

    def get_model_info(self, model_name: str | None = None) -> ModelInfo:
        """Get Google model information."""
        model = model_name or self.model
        capabilities = ["vision"] if "lite" not in model else []
        max_output = 65536 if model.startswith("gemini-2.5") else 8192
        return ModelInfo(
            name=model,
            provider="google",
            context_window=1048576,
            max_output=max_output,
            capabilities=capabilities,
        )
