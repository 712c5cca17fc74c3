"""Tests for settings resolution."""

from __future__ import annotations

import logging
import os

import pytest

from memoir import config
from memoir.config import Settings, load_settings, settings_from_env
from memoir.utils.exceptions import ConfigurationError


def test_defaults_match_documented_values() -> None:
    settings = settings_from_env({})

    assert settings.backend == "chroma"
    assert settings.chroma_path == "http://localhost:8000"
    assert settings.collection_name == "memories"
    assert settings.cache_limit == 7
    assert settings.search_limit == 3
    assert settings.summary_max_chars is None
    assert settings.openai_api_key is None


def test_environment_overrides() -> None:
    settings = settings_from_env(
        {
            "OPENAI_API_KEY": "sk-test",
            "MEMOIR_BACKEND": "FAISS",
            "MEMOIR_CACHE_LIMIT": "9",
            "MEMOIR_SUMMARY_MAX_CHARS": "4000",
            "MEMOIR_REQUEST_TIMEOUT": "12.5",
            "MEMOIR_LOG_LEVEL": "debug",
        }
    )

    assert settings.backend == "faiss"
    assert settings.cache_limit == 9
    assert settings.summary_max_chars == 4000
    assert settings.request_timeout == 12.5
    assert settings.log_level_value == logging.DEBUG
    assert settings.require_api_key() == "sk-test"


@pytest.mark.parametrize(
    "env",
    [
        {"MEMOIR_BACKEND": "pinecone"},
        {"MEMOIR_CACHE_LIMIT": "1"},
        {"MEMOIR_CACHE_LIMIT": "seven"},
        {"MEMOIR_SEARCH_LIMIT": "0"},
        {"MEMOIR_LOG_LEVEL": "chatty"},
    ],
)
def test_invalid_values_are_rejected(env) -> None:
    with pytest.raises(ConfigurationError):
        settings_from_env(env)


@pytest.mark.parametrize("key", [None, "", "your_key_here"])
def test_placeholder_api_key_is_not_accepted(key) -> None:
    with pytest.raises(ConfigurationError):
        Settings(openai_api_key=key).require_api_key()


def test_asdict_redacts_api_key() -> None:
    assert Settings(openai_api_key="sk-secret").asdict()["openai_api_key"] == "***"
    assert Settings(openai_api_key="sk-secret").asdict(redact=False)["openai_api_key"] == "sk-secret"


def test_load_settings_reads_env_file(tmp_path, monkeypatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("MEMOIR_COLLECTION=from_file\nMEMOIR_SEARCH_LIMIT=5\n")
    monkeypatch.delenv("MEMOIR_COLLECTION", raising=False)
    monkeypatch.setenv("MEMOIR_SEARCH_LIMIT", "4")
    captured = {}

    def fake_from_env():
        captured.update(
            collection=os.environ.get("MEMOIR_COLLECTION"),
            limit=os.environ.get("MEMOIR_SEARCH_LIMIT"),
        )
        return Settings()

    monkeypatch.setattr(config, "settings_from_env", fake_from_env)
    try:
        load_settings(str(env_file))
    finally:
        os.environ.pop("MEMOIR_COLLECTION", None)

    assert captured == {"collection": "from_file", "limit": "4"}
