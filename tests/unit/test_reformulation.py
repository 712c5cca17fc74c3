"""Tests for query reformulation."""

from __future__ import annotations

from memoir.memory.base import Turn
from memoir.memory.reformulation import (
    REFORMULATION_OPTIONS,
    IdentityReformulator,
    QueryReformulator,
    format_context,
)
from memoir.utils.exceptions import GenerationError


def test_reformulate_uses_light_tier_and_strips_quotes(generator) -> None:
    generator.queue('"Tokyo marathon training plan"')
    reformulator = QueryReformulator(generator)

    query = reformulator.reformulate("how is my training going?")

    assert query == "Tokyo marathon training plan"
    assert generator.calls[0][1] == REFORMULATION_OPTIONS
    assert generator.calls[0][1].tier == "light"


def test_prompt_contains_only_last_four_turns(generator) -> None:
    generator.queue("query")
    turns = [Turn("user" if i % 2 == 0 else "assistant", f"turn-{i}") for i in range(6)]

    QueryReformulator(generator).reformulate("and then?", turns)

    prompt = generator.prompts()[0]
    assert "turn-0" not in prompt
    assert "turn-1" not in prompt
    assert "user: turn-2" in prompt
    assert "assistant: turn-5" in prompt
    assert 'User input: "and then?"' in prompt


def test_failure_falls_back_to_original_input(generator) -> None:
    generator.queue(GenerationError("down"))
    assert QueryReformulator(generator).reformulate("original text") == "original text"


def test_empty_reply_falls_back_to_original_input(generator) -> None:
    generator.queue('  ""  ')
    assert QueryReformulator(generator).reformulate("original text") == "original text"


def test_format_context_without_turns() -> None:
    assert format_context([]) == "No recent context"


def test_identity_reformulator_returns_input() -> None:
    assert IdentityReformulator().reformulate("as is", [Turn("user", "x")]) == "as is"
