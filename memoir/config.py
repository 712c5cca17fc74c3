"""Runtime settings for Memoir.

All configuration is resolved into a single :class:`Settings` object so the
rest of the code never reads environment variables directly.

Recognised variables: ``OPENAI_API_KEY``, ``OPENAI_BASE_URL``, ``CHROMA_PATH``
and the ``MEMOIR_*`` family listed in :func:`settings_from_env`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from memoir.utils.exceptions import ConfigurationError

BACKENDS = ("chroma", "faiss")


@dataclass
class Settings:
    """Resolved runtime configuration."""

    openai_api_key: Optional[str] = None
    api_base: Optional[str] = None
    chat_model: str = "gpt-4o"
    light_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    backend: str = "chroma"
    chroma_path: str = "http://localhost:8000"
    chroma_persist_dir: Optional[str] = None
    collection_name: str = "memories"
    cache_limit: int = 7
    search_limit: int = 3
    summary_max_chars: Optional[int] = None
    request_timeout: float = 60.0
    max_retries: int = 2
    log_level: str = "INFO"

    def validate(self) -> "Settings":
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"backend must be one of {', '.join(BACKENDS)}, got '{self.backend}'"
            )
        if self.cache_limit < 2:
            raise ConfigurationError("cache_limit must be at least 2")
        if self.search_limit <= 0:
            raise ConfigurationError("search_limit must be positive")
        if self.summary_max_chars is not None and self.summary_max_chars <= 0:
            raise ConfigurationError("summary_max_chars must be positive when set")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(f"Unknown log level '{self.log_level}'")
        return self

    @property
    def log_level_value(self) -> int:
        return int(logging.getLevelName(self.log_level.upper()))

    def require_api_key(self) -> str:
        if not self.openai_api_key or self.openai_api_key == "your_key_here":
            raise ConfigurationError(
                "OPENAI_API_KEY not configured. Create a .env file with your OpenAI API key."
            )
        return self.openai_api_key

    def asdict(self, *, redact: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if redact and data.get("openai_api_key"):
            data["openai_api_key"] = "***"
        return data


def _parse(name: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a valid {kind.__name__}, got '{raw}'") from exc


def settings_from_env(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Assemble settings from environment variables and defaults."""

    source = os.environ if env is None else env
    s = Settings()

    s.openai_api_key = source.get("OPENAI_API_KEY") or None
    s.api_base = source.get("OPENAI_BASE_URL") or None
    s.chat_model = source.get("MEMOIR_CHAT_MODEL", s.chat_model)
    s.light_model = source.get("MEMOIR_LIGHT_MODEL", s.light_model)
    s.embedding_model = source.get("MEMOIR_EMBEDDING_MODEL", s.embedding_model)

    s.backend = source.get("MEMOIR_BACKEND", s.backend).lower()
    s.chroma_path = source.get("CHROMA_PATH", s.chroma_path)
    s.chroma_persist_dir = source.get("MEMOIR_CHROMA_PERSIST_DIR") or None
    s.collection_name = source.get("MEMOIR_COLLECTION", s.collection_name)

    for name, attr, kind in (
        ("MEMOIR_CACHE_LIMIT", "cache_limit", int),
        ("MEMOIR_SEARCH_LIMIT", "search_limit", int),
        ("MEMOIR_SUMMARY_MAX_CHARS", "summary_max_chars", int),
        ("MEMOIR_REQUEST_TIMEOUT", "request_timeout", float),
        ("MEMOIR_MAX_RETRIES", "max_retries", int),
    ):
        raw = source.get(name)
        if raw:
            setattr(s, attr, _parse(name, raw, kind))

    s.log_level = source.get("MEMOIR_LOG_LEVEL", s.log_level)
    return s.validate()


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load ``.env`` (without overriding real env vars) and resolve settings."""

    load_dotenv(env_file, override=False)
    return settings_from_env()


__all__ = ["BACKENDS", "Settings", "load_settings", "settings_from_env"]
