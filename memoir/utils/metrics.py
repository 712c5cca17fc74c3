"""Light-weight metrics helpers for observability of external calls."""

from __future__ import annotations

import statistics
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import perf_counter
from typing import Generator, List, Optional, Tuple


def estimate_token_count(text: str) -> int:
    """Coarse token estimation that works without backend specific tooling."""

    if not text:
        return 0
    return max(1, len(text.split()))


@dataclass
class TokenUsageTracker:
    """Track prompt/response token usage for cost attribution."""

    records: List[Tuple[int, int]] = field(default_factory=list)

    def record(
        self,
        prompt: str,
        response: str,
        *,
        prompt_tokens: Optional[int] = None,
        response_tokens: Optional[int] = None,
    ) -> Tuple[int, int]:
        """Record usage, preferring provider reported counts when given."""

        if prompt_tokens is None:
            prompt_tokens = estimate_token_count(prompt)
        if response_tokens is None:
            response_tokens = estimate_token_count(response)
        self.records.append((prompt_tokens, response_tokens))
        return prompt_tokens, response_tokens

    def total_tokens(self) -> int:
        return sum(prompt + response for prompt, response in self.records)


@dataclass
class ResponseTimeTracker:
    """Context manager that measures response latency."""

    durations: List[float] = field(default_factory=list)

    @contextmanager
    def track(self) -> Generator[None, None, None]:
        start = perf_counter()
        try:
            yield
        finally:
            self.durations.append(perf_counter() - start)

    def latest(self) -> float:
        return self.durations[-1] if self.durations else 0.0

    def average(self) -> float:
        return statistics.mean(self.durations) if self.durations else 0.0


__all__ = ["ResponseTimeTracker", "TokenUsageTracker", "estimate_token_count"]
