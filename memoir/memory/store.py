"""Long-term semantic memory over an injected vector backend."""

from __future__ import annotations

import itertools
import logging
import threading
import time
from typing import Iterator, List, Sequence

from memoir.backends.base import BackendConnector, VectorBackend
from memoir.services.embedding import EmbeddingService
from memoir.utils.exceptions import EmbeddingError, MemoryStoreError, ValidationError

from .base import MemoryChunk, SearchResult, StoredMemory
from .policy import apply_failure_policy

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 3

_id_sequence: Iterator[int] = itertools.count()
_id_lock = threading.Lock()


def generate_chunk_ids(count: int) -> List[str]:
    """Return ``count`` ids that are unique within the process.

    Ids look like ``chunk_<epoch ms>_<sequence>_<index>``; the sequence keeps
    two batches issued in the same millisecond apart.
    """

    with _id_lock:
        sequence = next(_id_sequence)
    stamp = int(time.time() * 1000)
    return [f"chunk_{stamp}_{sequence}_{index}" for index in range(count)]


def _validate_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValidationError(f"limit must be a positive integer, got {limit!r}")


class VectorMemoryStore:
    """Insert, search, enumerate and clear memory chunks.

    Searches degrade to an empty result when embedding or the backend fails;
    writes and enumeration raise :class:`MemoryStoreError`. Writes are
    serialised per collection through the connector, so batches from
    different sessions never interleave.
    """

    def __init__(
        self,
        embedder: EmbeddingService,
        connector: BackendConnector,
        *,
        default_limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> None:
        _validate_limit(default_limit)
        self._embedder = embedder
        self._connector = connector
        self.default_limit = default_limit

    @property
    def backend(self) -> VectorBackend:
        return self._connector.get()

    def _embed(self, text: str) -> List[float]:
        vector = [float(x) for x in self._embedder.embed(text)]
        if not vector:
            raise EmbeddingError("Embedding service returned an empty vector")
        return vector

    @apply_failure_policy("insert", error=MemoryStoreError)
    def insert(self, chunks: Sequence[MemoryChunk]) -> List[str]:
        """Embed and persist ``chunks``; returns the generated ids."""

        if not chunks:
            logger.info("No chunks to store")
            return []

        with self._connector.write_lock:
            backend = self.backend
            logger.info("Generating embeddings", extra={"count": len(chunks)})
            embeddings = [self._embed(chunk.narrative) for chunk in chunks]
            ids = generate_chunk_ids(len(chunks))
            backend.add(
                ids,
                embeddings,
                [chunk.narrative for chunk in chunks],
                [dict(chunk.metadata) for chunk in chunks],
            )
        logger.info("Stored memory chunks", extra={"count": len(chunks)})
        return ids

    def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[SearchResult]:
        """Return up to ``limit`` memories closest to ``query``, closest first."""

        _validate_limit(limit)
        return self._search(query, limit)

    @apply_failure_policy("search", fallback=lambda *args, **kwargs: [])
    def _search(self, query: str, limit: int) -> List[SearchResult]:
        backend = self.backend
        matches = backend.query(self._embed(query), limit)
        results = [
            SearchResult(
                narrative=match.document,
                metadata=dict(match.metadata),
                distance=float(match.distance),
            )
            for match in matches[:limit]
        ]
        logger.debug("Memory search", extra={"query": query, "results": len(results)})
        return results

    @apply_failure_policy("list_all", error=MemoryStoreError)
    def list_all(self) -> List[StoredMemory]:
        """Return every stored memory in backend order."""

        return [
            StoredMemory(id=record.id, narrative=record.document, metadata=dict(record.metadata))
            for record in self.backend.get()
        ]

    @apply_failure_policy("clear", error=MemoryStoreError)
    def clear(self) -> int:
        """Delete every stored memory and return how many were removed."""

        with self._connector.write_lock:
            backend = self.backend
            if backend.count() == 0:
                logger.info("No memories to clear")
                return 0
            ids = [record.id for record in backend.get()]
            if ids:
                backend.delete(ids)
            remaining = backend.count()
            if remaining:
                raise MemoryStoreError(
                    f"Clear left {remaining} memories in collection '{backend.name}'"
                )
        logger.info("Cleared memories", extra={"count": len(ids)})
        return len(ids)

    def count(self) -> int:
        return self.backend.count()


__all__ = ["DEFAULT_SEARCH_LIMIT", "VectorMemoryStore", "generate_chunk_ids"]
