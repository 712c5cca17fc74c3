"""Turn a raw utterance plus recent context into a memory search query."""

from __future__ import annotations

import logging
from typing import List, Sequence

from memoir.services.generation import ChatMessage, GenerationOptions, GenerationService
from memoir.utils.exceptions import GenerationError

from .base import Turn
from .policy import apply_failure_policy

logger = logging.getLogger(__name__)

CONTEXT_TURNS = 4
MAX_QUERY_WORDS = 20
REFORMULATION_OPTIONS = GenerationOptions(tier="light", max_output_tokens=100, temperature=0.3)

SYSTEM_PROMPT = (
    "You are a search query optimizer. Convert user messages into effective search "
    "queries for finding relevant memories. Output only the query."
)

USER_PROMPT_TEMPLATE = """Given this user input and recent conversation context, generate a concise search query to find relevant memories.

Recent context:
{context}

User input: "{user_input}"

Generate a search query that captures:
- What the user is asking about
- Key entities, topics, or concepts
- Implicit references from context

Output ONLY the search query, nothing else. Keep it under {max_words} words."""


def format_context(turns: Sequence[Turn], *, size: int = CONTEXT_TURNS) -> str:
    recent = list(turns)[-size:] if size > 0 else []
    if not recent:
        return "No recent context"
    return "\n".join(f"{turn.role}: {turn.content}" for turn in recent)


class QueryReformulator:
    """Rewrite user input into a query aligned with stored memory chunks.

    Reformulation is advisory: whenever the generation service fails the
    original input is returned unchanged.
    """

    def __init__(self, generator: GenerationService, *, context_turns: int = CONTEXT_TURNS) -> None:
        self._generator = generator
        self.context_turns = context_turns

    def build_messages(self, user_input: str, recent_turns: Sequence[Turn] = ()) -> List[ChatMessage]:
        prompt = USER_PROMPT_TEMPLATE.format(
            context=format_context(recent_turns, size=self.context_turns),
            user_input=user_input,
            max_words=MAX_QUERY_WORDS,
        )
        return [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]

    @apply_failure_policy(
        "reformulate",
        fallback=lambda self, user_input, *args, **kwargs: user_input,
    )
    def reformulate(self, user_input: str, recent_turns: Sequence[Turn] = ()) -> str:
        reply = self._generator.complete(
            self.build_messages(user_input, recent_turns), REFORMULATION_OPTIONS
        )
        query = reply.strip().strip('"').strip()
        if not query:
            raise GenerationError("Query reformulation returned empty text")
        if query != user_input:
            logger.debug("Reformulated query", extra={"original": user_input, "query": query})
        return query


class IdentityReformulator:
    """Drop-in reformulator that searches with the raw input."""

    def reformulate(self, user_input: str, recent_turns: Sequence[Turn] = ()) -> str:
        return user_input


__all__ = ["IdentityReformulator", "QueryReformulator", "format_context"]
