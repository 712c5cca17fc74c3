"""Caching helpers for embedding vectors to reduce latency and cost."""

from __future__ import annotations

from collections import OrderedDict
from threading import RLock
from typing import Optional, Sequence, Tuple

from memoir.utils.exceptions import CacheConfigurationError

Vector = Tuple[float, ...]


class EmbeddingCache:
    """A thread-safe LRU cache mapping text to its embedding vector.

    Embeddings are deterministic for a given model version, so the model name
    is part of the cache key.
    """

    def __init__(self, max_size: int = 512) -> None:
        if max_size <= 0:
            raise CacheConfigurationError("max_size must be a positive integer")
        self._max_size = max_size
        self._store: "OrderedDict[Tuple[str, str], Vector]" = OrderedDict()
        self._lock = RLock()

    def get(self, model: str, text: str) -> Optional[Vector]:
        key = (model, text)
        with self._lock:
            if key not in self._store:
                return None
            value = self._store.pop(key)
            self._store[key] = value
            return value

    def set(self, model: str, text: str, vector: Sequence[float]) -> None:
        key = (model, text)
        with self._lock:
            if key in self._store:
                self._store.pop(key)
            self._store[key] = tuple(float(x) for x in vector)
            while len(self._store) > self._max_size:
                self._store.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


__all__ = ["EmbeddingCache"]
