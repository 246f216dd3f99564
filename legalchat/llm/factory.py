"""
LLM Provider Factory

Creates the configured LLM provider from LLMSettings.
"""

import logging

from legalchat.config import LLMSettings
from legalchat.llm.base import BaseLLMProvider
from legalchat.llm.google import GoogleProvider

logger = logging.getLogger(__name__)


def create_provider(config: LLMSettings) -> BaseLLMProvider:
    """
    Create the Gemini provider.

    Raises:
        ValueError: If the API key is not configured
    """
    if not config.google_api_key:
        raise ValueError("Google API key is required but not configured (LLM_GOOGLE_API_KEY)")

    logger.info(
        f"Creating google provider with model {config.google_model}",
        extra={"provider": "google", "model": config.google_model},
    )
    return GoogleProvider(
        api_key=config.google_api_key,
        model=config.google_model,
        temperature=config.temperature,
        top_p=config.top_p,
        top_k=config.top_k,
        max_tokens=config.max_tokens,
        timeout=config.timeout,
    )
