"""Chat turn orchestration."""

from legalchat.pipeline.orchestrator import LegalChatPipeline

__all__ = ["LegalChatPipeline"]
