"""Vector backend contract and the lazily initialised connection handle."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence

from memoir.utils.exceptions import BackendUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryMatch:
    """A nearest-neighbour hit reported by a backend."""

    id: str
    document: str
    metadata: Mapping[str, Any]
    distance: float


@dataclass(frozen=True)
class BackendRecord:
    """A stored record as returned by :meth:`VectorBackend.get`."""

    id: str
    document: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


class VectorBackend(Protocol):
    """A named collection of ``(id, embedding, document, metadata)`` records."""

    name: str

    def add(
        self,
        ids: Sequence[str],
        embeddings: Sequence[Sequence[float]],
        documents: Sequence[str],
        metadatas: Sequence[Mapping[str, Any]],
    ) -> None:
        """Insert records; the batch is written by a single request."""

    def query(self, embedding: Sequence[float], k: int) -> List[QueryMatch]:
        """Return up to ``k`` matches ordered by ascending distance."""

    def get(self, ids: Optional[Sequence[str]] = None) -> List[BackendRecord]:
        """Return the selected records, or every record when ``ids`` is ``None``."""

    def delete(self, ids: Sequence[str]) -> None:
        """Remove the records with the given ids."""

    def count(self) -> int:
        """Return the number of stored records."""


BackendFactory = Callable[[], VectorBackend]


class BackendConnector:
    """Open a backend collection on first use and reuse the handle afterwards.

    The connector is constructed by the application and handed to every
    store that shares the collection, so "connect once" does not depend on
    module level globals. Its ``write_lock`` serialises writes
    from every store sharing the collection.
    """

    def __init__(self, factory: BackendFactory, *, description: str = "vector backend") -> None:
        self._factory = factory
        self._description = description
        self._backend: Optional[VectorBackend] = None
        self._lock = threading.Lock()
        self.write_lock = threading.RLock()

    @classmethod
    def from_backend(cls, backend: VectorBackend) -> "BackendConnector":
        """Wrap an already opened backend."""

        connector = cls(lambda: backend, description=getattr(backend, "name", "vector backend"))
        connector.get()
        return connector

    @property
    def connected(self) -> bool:
        return self._backend is not None

    def get(self) -> VectorBackend:
        backend = self._backend
        if backend is not None:
            return backend
        with self._lock:
            if self._backend is None:
                try:
                    self._backend = self._factory()
                except BackendUnavailableError:
                    raise
                except Exception as exc:
                    raise BackendUnavailableError(
                        f"Could not initialise {self._description}: {exc}"
                    ) from exc
                logger.info(
                    "Vector backend initialised",
                    extra={"backend": self._description},
                )
            return self._backend


__all__ = [
    "BackendConnector",
    "BackendFactory",
    "BackendRecord",
    "QueryMatch",
    "VectorBackend",
]
