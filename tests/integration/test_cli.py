"""Tests for the interactive shell driven by scripted input."""

from __future__ import annotations

import io

import pytest

from memoir import cli
from memoir.cli import MemoryShell, build_parser
from memoir.config import Settings
from memoir.engine import build_engine
from memoir.utils.exceptions import GenerationError


class ScriptedInput:
    def __init__(self, *lines: str) -> None:
        self.lines = list(lines)

    def __call__(self, prompt: str) -> str:
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


def _shell(generator, embedder, connector, *lines):
    engine = build_engine(
        Settings(cache_limit=4), generator=generator, embedder=embedder, connector=connector
    )
    out = io.StringIO()
    return MemoryShell(engine, read_line=ScriptedInput(*lines), out=out), out


def test_chat_and_cache_commands(generator, embedder, connector) -> None:
    generator.default = "Nice to meet you!"
    shell, out = _shell(generator, embedder, connector, "Hi, I'm Ana", "cache", "exit")

    assert shell.run() == 0

    text = out.getvalue()
    assert "AI: Nice to meet you!" in text
    assert "1. [user] Hi, I'm Ana" in text
    assert "2. [assistant] Nice to meet you!" in text
    assert "Goodbye!" in text


def test_process_and_memories_commands(generator, embedder, connector, make_fact) -> None:
    narrative = make_fact("User Ana lives in Lisbon and works as a nurse")
    generator.queue("query", "Hello Ana!", "Ana lives in Lisbon.", narrative)
    shell, out = _shell(generator, embedder, connector, "I'm Ana", "process", "memories", "summaries")

    shell.run()

    text = out.getvalue()
    assert "Created 1 narrative chunks" in text
    assert f"Narrative: {narrative}" in text
    assert "Total: 1 memories" in text
    assert "No summary yet" in text


def test_clear_requires_confirmation(generator, embedder, connector, backend) -> None:
    backend.add(["x"], [[1.0]], ["stored fact"], [{}])
    shell, out = _shell(generator, embedder, connector, "clear", "no", "clear", "confirm")

    shell.run()

    text = out.getvalue()
    assert "Cancelled. No memories were deleted." in text
    assert "Database cleared. 1 memories deleted." in text
    assert backend.count() == 0


def test_authentication_failure_is_reported(generator, embedder, connector) -> None:
    generator.default = GenerationError("invalid key", status="authentication")
    shell, out = _shell(generator, embedder, connector, "hello")

    shell.run()

    assert "Authentication failed" in out.getvalue()


def test_rate_limit_during_process_is_reported(generator, embedder, connector) -> None:
    generator.queue("query", "reply", "summary", GenerationError("slow down", status="rate_limit"))
    shell, out = _shell(generator, embedder, connector, "hello", "process", "quit")

    assert shell.run() == 0
    assert "Rate limit exceeded. Please try again later." in out.getvalue()


def test_parser_accepts_backend_choice() -> None:
    args = build_parser().parse_args(["--backend", "faiss", "--log-level", "DEBUG"])
    assert args.backend == "faiss"
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--backend", "sqlite"])


def test_main_reports_configuration_errors(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "load_settings", lambda env_file=None: Settings(openai_api_key=None))
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)

    assert cli.main([]) == 1
    assert "OPENAI_API_KEY not configured" in capsys.readouterr().err
