"""Shared fakes for exercising the memory components without network access."""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pytest

from memoir.backends.base import BackendConnector, BackendRecord, QueryMatch
from memoir.services.generation import ChatMessage, GenerationOptions
from memoir.utils.exceptions import BackendError

Reply = Union[str, BaseException, Callable[[Sequence[ChatMessage], GenerationOptions], str]]


class ScriptedGenerator:
    """Generation service replaying canned replies and recording every call.

    Each queued reply is either returned, raised (exceptions) or called with
    the messages and options. Once the script runs out ``default`` is used.
    """

    def __init__(self, replies: Sequence[Reply] = (), *, default: Reply = "ok") -> None:
        self._replies: List[Reply] = list(replies)
        self.default = default
        self.calls: List[Tuple[List[ChatMessage], GenerationOptions]] = []

    def queue(self, *replies: Reply) -> None:
        self._replies.extend(replies)

    def complete(self, messages: Sequence[ChatMessage], options: GenerationOptions) -> str:
        self.calls.append((list(messages), options))
        reply = self._replies.pop(0) if self._replies else self.default
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(messages, options)
        return reply

    def prompts(self) -> List[str]:
        return [messages[-1].content for messages, _ in self.calls]


class KeywordEmbedder:
    """Embeds text as counts of a fixed vocabulary plus a constant bias term."""

    def __init__(self, vocabulary: Sequence[str] = ()) -> None:
        self.vocabulary = [word.lower() for word in vocabulary]
        self.calls: List[str] = []
        self.fail_with: Optional[BaseException] = None

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        words = text.lower().split()
        return [1.0] + [float(sum(word.strip(".,!?") == v for word in words)) for v in self.vocabulary]


class FakeBackend:
    """In-memory backend honouring the vector backend contract."""

    def __init__(self, name: str = "memories") -> None:
        self.name = name
        self._records: Dict[str, Tuple[List[float], str, Dict[str, Any]]] = {}
        self.add_calls = 0
        self.fail_on: Dict[str, BaseException] = {}
        self.ignore_deletes = False
        self.on_delete: Optional[Callable[[], None]] = None

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def add(
        self,
        ids: Sequence[str],
        embeddings: Sequence[Sequence[float]],
        documents: Sequence[str],
        metadatas: Sequence[Mapping[str, Any]],
    ) -> None:
        self._maybe_fail("add")
        self.add_calls += 1
        for record_id in ids:
            if record_id in self._records:
                raise BackendError(f"duplicate id {record_id}")
        for record_id, embedding, document, metadata in zip(ids, embeddings, documents, metadatas):
            self._records[record_id] = (list(embedding), document, dict(metadata))

    def query(self, embedding: Sequence[float], k: int) -> List[QueryMatch]:
        self._maybe_fail("query")
        scored = []
        for record_id, (vector, document, metadata) in self._records.items():
            distance = math.sqrt(sum((a - b) ** 2 for a, b in zip(vector, embedding)))
            scored.append(QueryMatch(record_id, document, dict(metadata), distance))
        scored.sort(key=lambda match: match.distance)
        return scored[:k]

    def get(self, ids: Optional[Sequence[str]] = None) -> List[BackendRecord]:
        self._maybe_fail("get")
        selected = list(self._records) if ids is None else [i for i in ids if i in self._records]
        return [
            BackendRecord(record_id, self._records[record_id][1], dict(self._records[record_id][2]))
            for record_id in selected
        ]

    def delete(self, ids: Sequence[str]) -> None:
        self._maybe_fail("delete")
        if self.on_delete is not None:
            self.on_delete()
        if self.ignore_deletes:
            return
        for record_id in ids:
            self._records.pop(record_id, None)

    def count(self) -> int:
        self._maybe_fail("count")
        return len(self._records)


def fact(text: str, padding: int = 10) -> str:
    """Pad ``text`` with filler words so it clears the minimum chunk length."""

    words = text.split()
    filler = ["detail"] * max(0, padding - len(words))
    return " ".join(words + filler)


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def connector(backend: FakeBackend) -> BackendConnector:
    return BackendConnector.from_backend(backend)


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder(["tokyo", "marathon", "python", "brazil", "food", "running"])


@pytest.fixture
def make_fact() -> Callable[..., str]:
    return fact
