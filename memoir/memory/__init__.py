"""Memory components: conversation buffer, extraction, reformulation and storage."""

from __future__ import annotations

from .base import MemoryChunk, Role, SearchResult, StoredMemory, Turn
from .buffer import CACHE_LIMIT, ConversationBuffer, merge_sections, merge_summary
from .extraction import (
    FactExtractor,
    KeywordTopicExtractor,
    SentenceChunker,
    TopicExtractor,
    parse_fact_fragments,
)
from .policy import FailurePolicy, apply_failure_policy
from .reformulation import IdentityReformulator, QueryReformulator
from .store import VectorMemoryStore

__all__ = [
    "CACHE_LIMIT",
    "ConversationBuffer",
    "FactExtractor",
    "FailurePolicy",
    "IdentityReformulator",
    "KeywordTopicExtractor",
    "MemoryChunk",
    "QueryReformulator",
    "Role",
    "SearchResult",
    "SentenceChunker",
    "StoredMemory",
    "TopicExtractor",
    "Turn",
    "VectorMemoryStore",
    "apply_failure_policy",
    "merge_sections",
    "merge_summary",
    "parse_fact_fragments",
]
