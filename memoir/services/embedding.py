"""Embedding services turning text into fixed-dimension vectors."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import numpy as np
import openai

from memoir.utils.caching import EmbeddingCache
from memoir.utils.exceptions import ConfigurationError, EmbeddingError
from memoir.utils.metrics import ResponseTimeTracker
from memoir.utils.safety import RateLimiter

logger = logging.getLogger(__name__)


class EmbeddingService(Protocol):
    """Anything that maps text to a vector of fixed dimension."""

    def embed(self, text: str) -> Sequence[float]:
        """Return the embedding of ``text`` or raise :class:`EmbeddingError`."""


class OpenAIEmbeddingService:
    """Embedding service backed by the OpenAI embeddings API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        api_base: Optional[str] = None,
        client: Optional[Any] = None,
        cache: Optional[EmbeddingCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        request_timeout: float = 60.0,
        response_time_tracker: Optional[ResponseTimeTracker] = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ConfigurationError(
                    "No API key configured for OpenAIEmbeddingService. Provide `client` or set `api_key`."
                )
            client_kwargs: Dict[str, Any] = {"api_key": api_key, "timeout": request_timeout}
            if api_base is not None:
                client_kwargs["base_url"] = api_base
            client = openai.OpenAI(**client_kwargs)
        self._client = client
        self.model = model
        self._cache = cache if cache is not None else EmbeddingCache()
        self._rate_limiter = rate_limiter
        self.response_time_tracker = response_time_tracker or ResponseTimeTracker()

    def embed(self, text: str) -> Sequence[float]:
        cached = self._cache.get(self.model, text)
        if cached is not None:
            return list(cached)

        if self._rate_limiter is not None:
            self._rate_limiter.acquire()
        try:
            with self.response_time_tracker.track():
                response = self._client.embeddings.create(model=self.model, input=text)
        except openai.OpenAIError as exc:
            raise EmbeddingError(f"OpenAI embedding request failed: {exc}") from exc

        data = getattr(response, "data", None) or []
        if not data:
            raise EmbeddingError("OpenAI embedding response contained no vectors.")
        vector = [float(x) for x in data[0].embedding]
        self._cache.set(self.model, text, vector)
        logger.debug(
            "embedding",
            extra={
                "model": self.model,
                "dimension": len(vector),
                "duration": self.response_time_tracker.latest(),
            },
        )
        return vector


class HashingEmbeddingService:
    """Deterministic offline embedder based on character codes.

    Vectors carry no real semantics; this is meant for demos and tests that
    must run without network access.
    """

    def __init__(self, dimension: int = 1536) -> None:
        if dimension <= 0:
            raise ConfigurationError("dimension must be positive")
        self.dimension = dimension

    def embed(self, text: str) -> List[float]:
        vector = np.zeros(self.dimension, dtype="float64")
        for index, char in enumerate(text):
            vector[index % self.dimension] += ord(char) / 1000.0
        norm = float(np.linalg.norm(vector))
        if norm > 0.0:
            vector /= norm
        return vector.tolist()


__all__ = ["EmbeddingService", "HashingEmbeddingService", "OpenAIEmbeddingService"]
