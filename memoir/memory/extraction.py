"""Fact extraction: turn narrative summaries into atomic memory chunks."""

from __future__ import annotations

import logging
import re
import string
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from memoir.services.generation import ChatMessage, GenerationOptions, GenerationService
from memoir.utils.exceptions import ExtractionError

from .base import MemoryChunk
from .policy import apply_failure_policy
from .utils import MAX_CHUNK_WORDS, MIN_CHUNK_WORDS, filter_by_word_count

logger = logging.getLogger(__name__)

CHUNK_DELIMITER = "|"
EXTRACTION_SOURCE = "conversation_summary"
EXTRACTION_OPTIONS = GenerationOptions(tier="full", max_output_tokens=2500, temperature=0.7)

EXTRACTION_SYSTEM_PROMPT = (
    "You are a long-term memory system. Extract and consolidate important facts from "
    "conversations. Each memory chunk should be self-contained (readable independently), "
    "focus on facts not conversation flow, and capture what someone would remember "
    "long-term. Combine related information. Output only memory chunks separated by |."
)

EXTRACTION_PROMPT_TEMPLATE = """Extract important facts and information from these conversation summaries. Think like long-term human memory - what would someone remember weeks later?

CRITICAL RULES:
1. Each chunk must be SELF-CONTAINED and make sense on its own
2. Focus on FACTS and ATTRIBUTES, not conversation flow
3. Extract WHO, WHAT, WHERE, WHEN - not "discussed" or "shifted to"
4. Combine related information into one chunk
5. Keep chunks 2-4 sentences, focused on one topic
6. Separate unrelated topics with | character

What to extract:
- Personal information (name, job, location, preferences, goals)
- Specific facts and details (numbers, dates, names)
- Skills, knowledge, or capabilities demonstrated
- Preferences, likes/dislikes, constraints
- Plans, goals, or future intentions

BAD (conversation flow): "User asked about Roman history. Conversation shifted to programming."
GOOD (facts only): "User is interested in Python and web development."

BAD (fragmented): "User moved to Tokyo. | User speaks Portuguese. | User misses Brazilian food."
GOOD (self-contained): "User is Brazilian (speaks Portuguese), recently moved to Tokyo for work, and is looking for Brazilian food there while learning Japanese."

BAD (too detailed): "Assistant asked about first emperor of Rome, user correctly answered Augustus, demonstrating knowledge of Roman history."
GOOD (high-level): "User has knowledge of Roman history."

BAD (incomplete context): "They miss Brazilian food and want to find it in Tokyo."
GOOD (complete context): "User recently moved to Tokyo and misses Brazilian food from home."

Summaries:
{summaries}

Extract the key facts as self-contained chunks, separated by |."""

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class TopicExtractor(Protocol):
    """Optional enrichment producing a comma-joined keyword string."""

    def __call__(self, narrative: str) -> Optional[str]:
        """Return keywords for ``narrative`` or ``None`` when there are none."""


class KeywordTopicExtractor:
    """Naive keyword heuristic: the first distinct long words of a narrative."""

    def __init__(self, *, min_length: int = 6, limit: int = 3) -> None:
        self.min_length = min_length
        self.limit = limit

    def __call__(self, narrative: str) -> Optional[str]:
        topics: List[str] = []
        for raw in narrative.lower().split():
            word = raw.strip(string.punctuation)
            if len(word) < self.min_length or word in topics:
                continue
            topics.append(word)
            if len(topics) == self.limit:
                break
        return ", ".join(topics) if topics else None


def parse_fact_fragments(text: str, *, delimiter: str = CHUNK_DELIMITER) -> List[str]:
    """Split raw model output into trimmed, non-empty candidate facts."""

    if not text:
        return []
    return [fragment.strip() for fragment in text.split(delimiter) if fragment.strip()]


def combine_summaries(summaries: Sequence[str]) -> str:
    """Number the summaries and join them into a single document."""

    return "\n\n".join(
        f"Summary {index}:\n{summary}" for index, summary in enumerate(summaries, start=1)
    )


def build_chunk(
    narrative: str,
    *,
    source: str,
    topic_extractor: Optional[TopicExtractor] = None,
    timestamp: Optional[str] = None,
) -> MemoryChunk:
    """Attach the standard metadata to ``narrative``."""

    metadata: Dict[str, object] = {
        "timestamp": timestamp or utc_timestamp(),
        "source": source,
        "chunk_length": len(narrative),
    }
    if topic_extractor is not None:
        topics = topic_extractor(narrative)
        if topics:
            metadata["topics"] = topics
    return MemoryChunk(narrative=narrative, metadata=metadata)


class FactExtractor:
    """Consolidate conversation summaries into self-contained facts.

    Args:
        generator: Service used to rewrite summaries as delimited facts.
        topic_extractor: Optional keyword enrichment; ``None`` disables it.
        min_words: Shortest accepted fact, in words.
        max_words: Longest accepted fact, in words.
        clock: Callable returning the timestamp stamped on each chunk.

    Raises:
        ExtractionError: From :meth:`process` when generation fails.
    """

    def __init__(
        self,
        generator: GenerationService,
        *,
        topic_extractor: Optional[TopicExtractor] = KeywordTopicExtractor(),
        min_words: int = MIN_CHUNK_WORDS,
        max_words: int = MAX_CHUNK_WORDS,
        source: str = EXTRACTION_SOURCE,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._generator = generator
        self._topic_extractor = topic_extractor
        self.min_words = min_words
        self.max_words = max_words
        self.source = source
        self._clock = clock

    def build_messages(self, summaries: Sequence[str]) -> List[ChatMessage]:
        prompt = EXTRACTION_PROMPT_TEMPLATE.format(summaries=combine_summaries(summaries))
        return [
            ChatMessage(role="system", content=EXTRACTION_SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]

    @apply_failure_policy("process", error=ExtractionError)
    def process(self, summaries: Sequence[str]) -> List[MemoryChunk]:
        if not summaries:
            logger.info("No summaries to process")
            return []

        logger.info("Processing summaries", extra={"count": len(summaries)})
        raw = self._generator.complete(self.build_messages(summaries), EXTRACTION_OPTIONS)
        logger.debug("Generated narratives", extra={"raw": raw})

        fragments = parse_fact_fragments(raw)
        accepted = filter_by_word_count(
            fragments, minimum=self.min_words, maximum=self.max_words
        )
        if len(accepted) < len(fragments):
            logger.info(
                "Discarded fragments outside word bounds",
                extra={"discarded": len(fragments) - len(accepted)},
            )
        if not accepted:
            logger.warning("Extraction produced no usable chunks")
            return []

        timestamp = self._clock()
        chunks = [
            build_chunk(
                narrative,
                source=self.source,
                topic_extractor=self._topic_extractor,
                timestamp=timestamp,
            )
            for narrative in accepted
        ]
        logger.info("Created narrative chunks", extra={"count": len(chunks)})
        return chunks


class SentenceChunker:
    """Deterministic chunker pairing consecutive sentences.

    Stands in for :class:`FactExtractor` where no generation service should be
    called, such as offline demos and tests.
    """

    def __init__(
        self,
        *,
        sentences_per_chunk: int = 2,
        topic_extractor: Optional[TopicExtractor] = KeywordTopicExtractor(),
        source: str = "test_conversation",
        min_words: int = MIN_CHUNK_WORDS,
        max_words: int = MAX_CHUNK_WORDS,
    ) -> None:
        self.sentences_per_chunk = max(1, sentences_per_chunk)
        self._topic_extractor = topic_extractor
        self.source = source
        self.min_words = min_words
        self.max_words = max_words

    def split(self, summary: str) -> List[str]:
        sentences = [s.strip() for s in _SENTENCE_RE.findall(summary) if s.strip()]
        if len(sentences) <= self.sentences_per_chunk:
            return [summary.strip()] if summary.strip() else []
        step = self.sentences_per_chunk
        return [" ".join(sentences[i : i + step]) for i in range(0, len(sentences), step)]

    def process(self, summaries: Sequence[str]) -> List[MemoryChunk]:
        narratives: List[str] = []
        for summary in summaries:
            narratives.extend(self.split(summary))
        accepted = filter_by_word_count(narratives, minimum=self.min_words, maximum=self.max_words)
        timestamp = utc_timestamp()
        return [
            build_chunk(
                narrative,
                source=self.source,
                topic_extractor=self._topic_extractor,
                timestamp=timestamp,
            )
            for narrative in accepted
        ]


__all__ = [
    "CHUNK_DELIMITER",
    "FactExtractor",
    "KeywordTopicExtractor",
    "SentenceChunker",
    "TopicExtractor",
    "build_chunk",
    "combine_summaries",
    "parse_fact_fragments",
]
