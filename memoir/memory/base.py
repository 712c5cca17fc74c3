"""Value objects shared by the memory components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from typing_extensions import Literal

Role = Literal["user", "assistant"]

ROLES = ("user", "assistant")


@dataclass(frozen=True)
class Turn:
    """A single role-tagged message in the active conversation window."""

    role: Role
    content: str


@dataclass(frozen=True)
class MemoryChunk:
    """An atomic, self-contained factual statement eligible for storage.

    ``metadata`` carries ``timestamp``, ``source`` and ``chunk_length`` and
    optionally ``topics`` (a comma-joined keyword string).
    """

    narrative: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StoredMemory:
    """A memory chunk persisted in the store under a backend id."""

    id: str
    narrative: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchResult:
    """A retrieved memory ranked by backend distance (lower is closer).

    The distance is only meaningful as an ordering key.
    """

    narrative: str
    metadata: Mapping[str, Any]
    distance: float


__all__ = ["MemoryChunk", "ROLES", "Role", "SearchResult", "StoredMemory", "Turn"]
