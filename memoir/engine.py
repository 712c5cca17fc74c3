"""Per-turn orchestration of reformulation, recall, reply and buffering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from typing_extensions import Literal

from memoir.backends.base import BackendConnector
from memoir.config import Settings
from memoir.memory.base import MemoryChunk, SearchResult, StoredMemory, Turn
from memoir.memory.buffer import ConversationBuffer
from memoir.memory.extraction import FactExtractor
from memoir.memory.reformulation import QueryReformulator
from memoir.memory.store import VectorMemoryStore
from memoir.services.embedding import EmbeddingService, OpenAIEmbeddingService
from memoir.services.generation import (
    ChatMessage,
    GenerationOptions,
    GenerationService,
    OpenAIChatService,
)
from memoir.utils.exceptions import SummarizationError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PERSONA = "You are a helpful AI assistant. Keep your responses concise and friendly."
MEMORY_CONTEXT_PREFIX = "Relevant memories from past conversations: "
REPLY_OPTIONS = GenerationOptions(tier="full", max_output_tokens=1000, temperature=0.7)


class Reformulator(Protocol):
    def reformulate(self, user_input: str, recent_turns: Sequence[Turn] = ()) -> str:
        ...


class ChunkProducer(Protocol):
    def process(self, summaries: Sequence[str]) -> List[MemoryChunk]:
        ...


@dataclass(frozen=True)
class TurnResult:
    """What happened during one chat turn."""

    reply: str
    query: str
    memories: Tuple[SearchResult, ...] = ()
    rotated: bool = False
    rotation_error: Optional[SummarizationError] = None


@dataclass(frozen=True)
class ProcessOutcome:
    """Result of turning the rolling summary into stored memories."""

    status: Literal["empty", "no_chunks", "stored"]
    chunks: Tuple[MemoryChunk, ...] = ()
    ids: Tuple[str, ...] = ()


def compose_messages(
    persona: str,
    memories: Sequence[SearchResult],
    turns: Sequence[Turn],
    user_input: str,
) -> List[ChatMessage]:
    """Build the reply prompt: persona, recalled memories, window, input."""

    messages = [ChatMessage(role="system", content=persona)]
    if memories:
        context = " | ".join(memory.narrative for memory in memories)
        messages.append(ChatMessage(role="system", content=f"{MEMORY_CONTEXT_PREFIX}{context}"))
    messages.extend(ChatMessage(role=turn.role, content=turn.content) for turn in turns)
    messages.append(ChatMessage(role="user", content=user_input))
    return messages


class MemoryEngine:
    """Sequence one session's turns through the memory lifecycle.

    A turn runs reformulate, search, reply, append and possibly rotate;
    :meth:`process` runs snapshot, extract, insert and reset. Session state
    lives in the buffer; the store may be shared between engines.
    """

    def __init__(
        self,
        *,
        generator: GenerationService,
        store: VectorMemoryStore,
        buffer: ConversationBuffer,
        reformulator: Reformulator,
        extractor: ChunkProducer,
        persona: str = DEFAULT_PERSONA,
        search_limit: int = 3,
    ) -> None:
        self._generator = generator
        self.store = store
        self.buffer = buffer
        self.reformulator = reformulator
        self.extractor = extractor
        self.persona = persona
        self.search_limit = search_limit

    @property
    def summary(self) -> str:
        return self.buffer.summary

    def recall(self, user_input: str) -> Tuple[str, List[SearchResult]]:
        """Return the search query used for ``user_input`` and its hits."""

        query = self.reformulator.reformulate(user_input, self.buffer.turns)
        if query != user_input:
            logger.info("Reformulated query", extra={"query": query})
        memories = self.store.search(query, self.search_limit)
        logger.info("Memory search complete", extra={"found": len(memories)})
        return query, memories

    def chat(self, user_input: str) -> TurnResult:
        text = (user_input or "").strip()
        if not text:
            raise ValidationError("user input must not be empty")

        query, memories = self.recall(text)
        messages = compose_messages(self.persona, memories, self.buffer.turns, text)
        reply = self._generator.complete(messages, REPLY_OPTIONS)

        rotations = self.buffer.rotations
        rotation_error: Optional[SummarizationError] = None
        try:
            self.buffer.extend(
                [Turn(role="user", content=text), Turn(role="assistant", content=reply)]
            )
        except SummarizationError as exc:
            # The reply was produced; report the failed rotation alongside it.
            logger.error("Conversation summarisation failed", extra={"error": str(exc)})
            rotation_error = exc
        return TurnResult(
            reply=reply,
            query=query,
            memories=tuple(memories),
            rotated=self.buffer.rotations > rotations,
            rotation_error=rotation_error,
        )

    def process(self) -> ProcessOutcome:
        """Extract facts from the rolling summary and store them.

        State is cleared only after the chunks were stored, so a failed run
        can simply be retried.
        """

        if not self.buffer.has_content:
            return ProcessOutcome(status="empty")

        contexts = self.buffer.snapshot_for_processing()
        if not contexts:
            return ProcessOutcome(status="empty")

        chunks = self.extractor.process(contexts)
        if not chunks:
            return ProcessOutcome(status="no_chunks")

        ids = self.store.insert(chunks)
        self.buffer.reset()
        logger.info("Summary and cache cleared", extra={"stored": len(ids)})
        return ProcessOutcome(status="stored", chunks=tuple(chunks), ids=tuple(ids))

    def memories(self) -> List[StoredMemory]:
        return self.store.list_all()

    def clear_memories(self) -> int:
        return self.store.clear()


def build_backend_connector(settings: Settings) -> BackendConnector:
    """Create a lazily opened connector for the configured backend."""

    if settings.backend == "faiss":
        from memoir.backends.faiss_backend import FaissCollection

        return BackendConnector(
            lambda: FaissCollection(settings.collection_name),
            description=f"faiss collection '{settings.collection_name}'",
        )

    from memoir.backends.chroma_backend import ChromaCollection

    return BackendConnector(
        lambda: ChromaCollection.open(
            settings.collection_name,
            url=settings.chroma_path,
            persist_dir=settings.chroma_persist_dir,
        ),
        description=f"chroma collection '{settings.collection_name}'",
    )


def build_engine(
    settings: Settings,
    *,
    generator: Optional[GenerationService] = None,
    embedder: Optional[EmbeddingService] = None,
    connector: Optional[BackendConnector] = None,
) -> MemoryEngine:
    """Wire every component from ``settings``; collaborators can be injected."""

    if generator is None or embedder is None:
        api_key = settings.require_api_key()
        if generator is None:
            generator = OpenAIChatService(
                api_key=api_key,
                model=settings.chat_model,
                light_model=settings.light_model,
                api_base=settings.api_base,
                max_retries=settings.max_retries,
                request_timeout=settings.request_timeout,
            )
        if embedder is None:
            embedder = OpenAIEmbeddingService(
                api_key=api_key,
                model=settings.embedding_model,
                api_base=settings.api_base,
                request_timeout=settings.request_timeout,
            )

    store = VectorMemoryStore(
        embedder,
        connector or build_backend_connector(settings),
        default_limit=settings.search_limit,
    )
    return MemoryEngine(
        generator=generator,
        store=store,
        buffer=ConversationBuffer(
            generator,
            limit=settings.cache_limit,
            summary_max_chars=settings.summary_max_chars,
        ),
        reformulator=QueryReformulator(generator),
        extractor=FactExtractor(generator),
        search_limit=settings.search_limit,
    )


__all__ = [
    "MemoryEngine",
    "ProcessOutcome",
    "TurnResult",
    "build_backend_connector",
    "build_engine",
    "compose_messages",
]
