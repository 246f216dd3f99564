"""
Base LLM Provider

Abstract base class defining the interface for LLM providers used by the
legal assistant.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from legalchat.llm.models import (
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    ModelInfo,
)

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Attributes:
        provider_name: Unique identifier for this provider
        temperature: Default sampling temperature
        top_p: Default nucleus sampling cutoff
        top_k: Default top-k sampling cutoff
        max_tokens: Default maximum tokens to generate
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        provider_name: str,
        temperature: float = 0.0,
        top_p: float | None = None,
        top_k: int | None = None,
        max_tokens: int = 2000,
        timeout: int = 30,
    ):
        self.provider_name = provider_name
        self.temperature = temperature
        self.top_p = top_p
        self.top_k = top_k
        self.max_tokens = max_tokens
        self.timeout = timeout

        logger.info(
            f"Initialized {provider_name} provider",
            extra={
                "provider": provider_name,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            request: LLM request with messages and parameters

        Returns:
            LLMResponse with generated content and metadata

        Raises:
            Exception: Provider-specific errors (API errors, timeouts, etc.)
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """
        Stream a completion from the LLM.

        Yields:
            LLMStreamChunk: Chunks of generated text
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Count tokens in a text string."""
        pass  # pragma: no cover - abstract method

    @abstractmethod
    def get_model_info(self, model_name: str | None = None) -> ModelInfo:
        """Get information about a model (None = default model)."""
        pass  # pragma: no cover - abstract method

    @abstractmethod
    def get_current_model(self) -> str:
        """Model used when a request does not name one."""
        pass  # pragma: no cover - abstract method

    @abstractmethod
    def get_available_models(self) -> tuple[str, ...]:
        """Models this provider can switch to."""
        pass  # pragma: no cover - abstract method

    @abstractmethod
    def set_model(self, model: str) -> None:
        """Switch the default model; unknown names raise ValueError."""
        pass  # pragma: no cover - abstract method

    def _apply_defaults(self, request: LLMRequest) -> LLMRequest:
        """Apply default sampling values to request if not specified."""
        if request.temperature is None:
            request.temperature = self.temperature
        if request.top_p is None:
            request.top_p = self.top_p
        if request.top_k is None:
            request.top_k = self.top_k
        if request.max_tokens is None:
            request.max_tokens = self.max_tokens
        return request

    def _log_request(self, request: LLMRequest) -> None:
        """Log request details for debugging."""
        logger.debug(
            f"{self.provider_name} request",
            extra={
                "provider": self.provider_name,
                "message_count": len(request.messages),
                "temperature": request.temperature,
                "max_tokens": request.max_tokens,
                "response_format": request.response_format,
            },
        )

    def _log_response(self, response: LLMResponse) -> None:
        """Log response details for debugging."""
        logger.debug(
            f"{self.provider_name} response",
            extra={
                "provider": self.provider_name,
                "model": response.model,
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
                "finish_reason": response.finish_reason,
            },
        )
