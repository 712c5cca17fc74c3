"""Bounded conversation window with a rolling summary of what overflowed."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from memoir.services.generation import ChatMessage, GenerationOptions, GenerationService
from memoir.utils.exceptions import MemoryConfigurationError, SummarizationError, ValidationError

from .base import ROLES, Turn
from .policy import apply_failure_policy

logger = logging.getLogger(__name__)

CACHE_LIMIT = 7
SEED_PREFIX = "Previous conversation context: "
SUMMARY_SEPARATOR = "\n\n"
SUMMARY_SYSTEM_PROMPT = "Summarize all the context in this following chat conversation concisely."
SUMMARY_OPTIONS = GenerationOptions(tier="full", max_output_tokens=1000, temperature=0.12)


def merge_sections(
    sections: Sequence[str],
    incoming: str,
    *,
    separator: str = SUMMARY_SEPARATOR,
    max_chars: Optional[int] = None,
) -> List[str]:
    """Append ``incoming`` to the summary ``sections``, oldest first.

    Each section is one rotation's summary, whatever paragraph breaks it
    contains. With ``max_chars`` set, whole leading sections are dropped
    until the joined result fits; if the newest section alone is too long
    its tail is kept.
    """

    if max_chars is not None and max_chars <= 0:
        raise MemoryConfigurationError("max_chars must be positive when provided")
    merged = list(sections)
    if incoming:
        merged.append(incoming)
    if max_chars is None:
        return merged

    while len(merged) > 1 and len(separator.join(merged)) > max_chars:
        merged.pop(0)
    if merged and len(merged[0]) > max_chars:
        merged[0] = merged[0][-max_chars:]
    return merged


def merge_summary(
    previous: str,
    incoming: str,
    *,
    separator: str = SUMMARY_SEPARATOR,
    max_chars: Optional[int] = None,
) -> str:
    """Append ``incoming`` to ``previous`` as a new section.

    ``previous`` is treated as a single section, so compaction either keeps
    it whole or drops it.
    """

    sections = [previous] if previous else []
    return separator.join(
        merge_sections(sections, incoming, separator=separator, max_chars=max_chars)
    )


def render_transcript(turns: Sequence[Turn]) -> str:
    """Format turns the way the summariser expects them."""

    text = "".join(f"{turn.content}\n" for turn in turns)
    return f"{text}\nsummary:"


def summarize_turns(generator: GenerationService, turns: Sequence[Turn]) -> str:
    """Ask the generation service for a concise summary of ``turns``."""

    messages = [
        ChatMessage(role="system", content=SUMMARY_SYSTEM_PROMPT),
        ChatMessage(role="user", content=render_transcript(turns)),
    ]
    summary = generator.complete(messages, SUMMARY_OPTIONS).strip()
    if not summary:
        raise SummarizationError("Generation service returned an empty summary")
    return summary


class ConversationBuffer:
    """The active dialogue window plus the rolling summary for one session.

    Once the window reaches ``limit`` turns it is summarised, the summary is
    merged into the rolling summary, and the window is replaced by a single
    seeded turn that carries the merged summary forward as context.
    Instances are not thread-safe and must not be shared across sessions.
    """

    def __init__(
        self,
        generator: GenerationService,
        *,
        limit: int = CACHE_LIMIT,
        summary_max_chars: Optional[int] = None,
    ) -> None:
        if limit < 2:
            raise MemoryConfigurationError("limit must be at least 2")
        if summary_max_chars is not None and summary_max_chars <= 0:
            raise MemoryConfigurationError("summary_max_chars must be positive when provided")
        self._generator = generator
        self.limit = limit
        self._summary_max_chars = summary_max_chars
        self._turns: List[Turn] = []
        self._sections: List[str] = []
        self._seeded = False
        self.rotations = 0

    @property
    def turns(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def summary(self) -> str:
        return SUMMARY_SEPARATOR.join(self._sections)

    @property
    def size(self) -> int:
        return len(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def is_seeded(self) -> bool:
        """``True`` when the first turn is the synthetic summary carrier."""

        return self._seeded

    @property
    def has_content(self) -> bool:
        return bool(self._sections or self._turns)

    def append(self, turn: Turn) -> None:
        """Add ``turn`` and rotate if the window is full.

        A failed rotation leaves the window (including ``turn``) intact and
        raises :class:`SummarizationError`.
        """

        self._validate(turn)
        self._turns.append(turn)
        self._maybe_rotate()

    def extend(self, turns: Iterable[Turn]) -> None:
        """Add several turns, checking the limit once afterwards."""

        batch = list(turns)
        for turn in batch:
            self._validate(turn)
        self._turns.extend(batch)
        self._maybe_rotate()

    @apply_failure_policy("rotate", error=SummarizationError)
    def rotate(self) -> str:
        """Summarise the window into the rolling summary and reseed it."""

        if not self._turns:
            return self.summary

        incoming = summarize_turns(self._generator, self._turns)
        self._sections = merge_sections(
            self._sections, incoming, max_chars=self._summary_max_chars
        )
        merged = self.summary
        self._turns = [Turn(role="user", content=f"{SEED_PREFIX}{merged}")]
        self._seeded = True
        self.rotations += 1
        logger.info(
            "Conversation summarised and buffer reset",
            extra={"summary_chars": len(merged)},
        )
        return merged

    @apply_failure_policy("snapshot", error=SummarizationError)
    def snapshot_for_processing(self) -> List[str]:
        """Return the texts that should be turned into long-term memories.

        That is the rolling summary plus, when turns arrived after the seeded
        turn, a fresh summary of them. Nothing is mutated; call :meth:`reset`
        once the output has been stored.
        """

        contexts: List[str] = []
        if self._sections:
            contexts.append(self.summary)
        residual = self._turns[1:] if self._seeded else self._turns
        if residual:
            logger.info("Summarising residual conversation", extra={"turns": len(residual)})
            contexts.append(summarize_turns(self._generator, residual))
        return contexts

    def reset(self) -> None:
        """Forget the window and the rolling summary."""

        self._turns = []
        self._sections = []
        self._seeded = False

    def _maybe_rotate(self) -> None:
        if len(self._turns) >= self.limit:
            logger.info("Cache limit reached, summarising conversation", extra={"size": len(self._turns)})
            self.rotate()

    @staticmethod
    def _validate(turn: Turn) -> None:
        if not isinstance(turn, Turn):
            raise ValidationError("turn must be a Turn instance")
        if turn.role not in ROLES:
            raise ValidationError(f"turn role must be one of {ROLES}, got '{turn.role}'")


__all__ = [
    "CACHE_LIMIT",
    "ConversationBuffer",
    "SEED_PREFIX",
    "merge_sections",
    "merge_summary",
    "render_transcript",
    "summarize_turns",
]
