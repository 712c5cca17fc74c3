"""Adapters for the external generation and embedding services."""

from .embedding import EmbeddingService, HashingEmbeddingService, OpenAIEmbeddingService
from .generation import (
    ChatMessage,
    GenerationOptions,
    GenerationService,
    HTTPChatService,
    ModelTier,
    OpenAIChatService,
)

__all__ = [
    "ChatMessage",
    "EmbeddingService",
    "GenerationOptions",
    "GenerationService",
    "HTTPChatService",
    "HashingEmbeddingService",
    "ModelTier",
    "OpenAIChatService",
    "OpenAIEmbeddingService",
]
