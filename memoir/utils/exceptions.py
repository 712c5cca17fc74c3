"""Project-wide custom exception hierarchy for Memoir."""

from __future__ import annotations

from typing import Optional

from typing_extensions import Literal

FailureStatus = Literal["authentication", "rate_limit", "timeout", "other"]


class MemoirError(Exception):
    """Base class for all custom exceptions raised by Memoir."""


class ConfigurationError(MemoirError):
    """Raised when a component receives an invalid configuration."""


class ValidationError(MemoirError):
    """Raised when input data fails validation checks."""


class DependencyError(MemoirError):
    """Raised when optional dependencies are unavailable or fail to load."""


class MissingDependencyError(DependencyError):
    """Raised when an optional dependency is not installed."""


class BackendError(MemoirError):
    """Raised when an external service or vector backend fails."""


class BackendUnavailableError(BackendError):
    """Raised when a required backend cannot be initialised."""


class GenerationError(BackendError):
    """Raised when the text generation service fails.

    ``status`` classifies the failure so callers can pick user facing
    messaging without inspecting provider specific exceptions.
    """

    def __init__(self, message: str, *, status: FailureStatus = "other") -> None:
        super().__init__(message)
        self.status: FailureStatus = status


class EmbeddingError(BackendError):
    """Raised when the embedding service cannot produce a vector."""


class CacheError(MemoirError):
    """Base class for cache related errors."""


class CacheConfigurationError(CacheError, ConfigurationError):
    """Raised when cache parameters are invalid."""


class RateLimiterConfigurationError(ConfigurationError):
    """Raised when rate limiter parameters are invalid."""


class MemoryModuleError(MemoirError):
    """Base class for memory module related errors."""


class MemoryConfigurationError(MemoryModuleError, ConfigurationError):
    """Raised when memory modules receive invalid parameters."""


class SummarizationError(MemoryModuleError):
    """Raised when the conversation buffer cannot be summarised."""


class ExtractionError(MemoryModuleError):
    """Raised when summaries cannot be turned into memory chunks."""


class MemoryStoreError(MemoryModuleError):
    """Raised when a write or enumeration against the memory store fails."""


def failure_status(exc: Optional[BaseException]) -> FailureStatus:
    """Return the status classification carried by ``exc`` or its causes."""

    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        if isinstance(exc, GenerationError):
            return exc.status
        exc = exc.__cause__ or exc.__context__
    return "other"
