"""
LLM Request and Response Models

Pydantic models for LLM provider interactions.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    """Single message in an LLM conversation."""

    role: Literal["system", "user", "assistant"] = Field(
        ...,
        description="Message role"
    )
    content: str = Field(
        ...,
        description="Message content",
        min_length=1
    )


class LLMRequest(BaseModel):
    """Request to an LLM provider."""

    messages: List[LLMMessage] = Field(
        ...,
        description="Conversation messages; the last one must be the user turn",
        min_length=1
    )
    temperature: Optional[float] = Field(
        None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature (overrides default)"
    )
    top_p: Optional[float] = Field(
        None,
        gt=0.0,
        le=1.0,
        description="Nucleus sampling cutoff (overrides default)"
    )
    top_k: Optional[int] = Field(
        None,
        gt=0,
        description="Top-k sampling cutoff (overrides default)"
    )
    max_tokens: Optional[int] = Field(
        None,
        gt=0,
        description="Maximum tokens to generate (overrides default)"
    )
    model: Optional[str] = Field(
        None,
        description="Specific model to use (overrides default)"
    )
    response_format: Optional[Literal["text", "json"]] = Field(
        None,
        description="Ask the model for plain text or a JSON document"
    )


class LLMUsage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = Field(..., ge=0)
    completion_tokens: int = Field(..., ge=0)
    total_tokens: int = Field(..., ge=0)


class LLMResponse(BaseModel):
    """Response from an LLM provider."""

    content: str = Field(
        ...,
        description="Generated text content"
    )
    model: str = Field(
        ...,
        description="Model that generated the response"
    )
    usage: LLMUsage = Field(
        ...,
        description="Token usage information"
    )
    finish_reason: Literal["stop", "length", "content_filter", "error"] = Field(
        ...,
        description="Reason the generation stopped"
    )
    provider: str = Field(
        ...,
        description="Provider that handled the request"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional provider-specific response data"
    )


class LLMStreamChunk(BaseModel):
    """Streaming response chunk from an LLM provider."""

    content: str = Field(
        ...,
        description="Chunk of generated text"
    )
    finish_reason: Optional[Literal["stop", "length", "content_filter", "error"]] = Field(
        None,
        description="Reason if this is the final chunk"
    )


class ModelInfo(BaseModel):
    """Information about a specific model."""

    name: str
    provider: str
    context_window: int = Field(..., gt=0)
    max_output: int = Field(..., gt=0)
    capabilities: List[str] = Field(default_factory=list)
