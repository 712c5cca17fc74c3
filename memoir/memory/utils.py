"""Utility helpers shared across memory implementations."""

from __future__ import annotations

from typing import List, Sequence

MIN_CHUNK_WORDS = 10
MAX_CHUNK_WORDS = 200


def word_count(text: str) -> int:
    """Count whitespace separated words in ``text``."""

    return len(text.split())


def within_word_bounds(
    text: str, *, minimum: int = MIN_CHUNK_WORDS, maximum: int = MAX_CHUNK_WORDS
) -> bool:
    """Return ``True`` when ``text`` has between ``minimum`` and ``maximum`` words."""

    return minimum <= word_count(text) <= maximum


def filter_by_word_count(
    fragments: Sequence[str],
    *,
    minimum: int = MIN_CHUNK_WORDS,
    maximum: int = MAX_CHUNK_WORDS,
) -> List[str]:
    """Keep only fragments whose word count lies in ``[minimum, maximum]``."""

    return [
        fragment
        for fragment in fragments
        if within_word_bounds(fragment, minimum=minimum, maximum=maximum)
    ]


__all__ = [
    "MAX_CHUNK_WORDS",
    "MIN_CHUNK_WORDS",
    "filter_by_word_count",
    "within_word_bounds",
    "word_count",
]
