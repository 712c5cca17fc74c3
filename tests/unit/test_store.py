"""Tests for the vector memory store over an in-memory backend."""

from __future__ import annotations

import threading

import pytest

from memoir.backends.base import BackendConnector
from memoir.memory.base import MemoryChunk
from memoir.memory.store import VectorMemoryStore, generate_chunk_ids
from memoir.utils.exceptions import (
    BackendError,
    BackendUnavailableError,
    EmbeddingError,
    MemoryStoreError,
    ValidationError,
)

TOKYO = "User recently moved to Tokyo and misses Brazil food from home."
MARATHON = "User is training for a marathon and goes running every single morning."
PYTHON = "User writes Python for work and is learning web development on weekends."


def _chunk(narrative: str) -> MemoryChunk:
    return MemoryChunk(narrative=narrative, metadata={"source": "test", "chunk_length": len(narrative)})


@pytest.fixture
def store(embedder, connector) -> VectorMemoryStore:
    return VectorMemoryStore(embedder, connector)


def test_insert_then_list_all_round_trips(store, backend) -> None:
    chunks = [_chunk(TOKYO), _chunk(MARATHON)]
    ids = store.insert(chunks)

    assert len(ids) == 2
    assert len(set(ids)) == 2
    assert backend.add_calls == 1
    listed = store.list_all()
    assert [memory.narrative for memory in listed] == [TOKYO, MARATHON]
    assert [memory.id for memory in listed] == ids
    for memory, chunk in zip(listed, chunks):
        assert memory.narrative == chunk.narrative
        assert memory.metadata == chunk.metadata


def test_insert_empty_batch_is_a_no_op(store, backend) -> None:
    assert store.insert([]) == []
    assert backend.add_calls == 0


def test_search_orders_by_distance_and_respects_limit(store) -> None:
    store.insert([_chunk(PYTHON), _chunk(TOKYO), _chunk(MARATHON)])

    results = store.search("tokyo food", limit=2)

    assert len(results) == 2
    assert results[0].narrative == TOKYO
    assert results[0].distance <= results[1].distance


def test_search_limit_larger_than_store(store) -> None:
    store.insert([_chunk(TOKYO)])
    assert len(store.search("anything", limit=10)) == 1


def test_search_on_empty_store_returns_nothing(store) -> None:
    assert store.search("tokyo") == []


@pytest.mark.parametrize("limit", [0, -1, 1.5, True])
def test_search_rejects_invalid_limits(store, limit) -> None:
    with pytest.raises(ValidationError):
        store.search("tokyo", limit=limit)


def test_search_degrades_when_embedding_fails(store, embedder) -> None:
    store.insert([_chunk(TOKYO)])
    embedder.fail_with = EmbeddingError("embedding service down")
    assert store.search("tokyo") == []


def test_search_degrades_when_backend_fails(store, backend) -> None:
    store.insert([_chunk(TOKYO)])
    backend.fail_on["query"] = BackendError("connection refused")
    assert store.search("tokyo") == []


def test_insert_failure_is_reported(store, backend) -> None:
    backend.fail_on["add"] = BackendError("disk full")
    with pytest.raises(MemoryStoreError) as excinfo:
        store.insert([_chunk(TOKYO)])
    assert isinstance(excinfo.value.__cause__, BackendError)


def test_insert_with_empty_embedding_fails(connector) -> None:
    class EmptyEmbedder:
        def embed(self, text):
            return []

    with pytest.raises(MemoryStoreError):
        VectorMemoryStore(EmptyEmbedder(), connector).insert([_chunk(TOKYO)])


def test_list_all_failure_propagates(store, backend) -> None:
    backend.fail_on["get"] = BackendError("timeout")
    with pytest.raises(MemoryStoreError):
        store.list_all()


def test_clear_is_idempotent(store) -> None:
    store.insert([_chunk(TOKYO), _chunk(MARATHON), _chunk(PYTHON)])

    assert store.clear() == 3
    assert store.clear() == 0
    assert store.list_all() == []
    assert store.search("tokyo") == []


def test_clear_reports_leftover_records(store, backend) -> None:
    store.insert([_chunk(TOKYO)])
    backend.ignore_deletes = True
    with pytest.raises(MemoryStoreError):
        store.clear()


def test_backend_is_opened_once_and_lazily(embedder, backend) -> None:
    opened = []

    def factory():
        opened.append(1)
        return backend

    connector = BackendConnector(factory)
    store = VectorMemoryStore(embedder, connector)
    assert not connector.connected

    store.insert([_chunk(TOKYO)])
    store.search("tokyo")
    store.list_all()

    assert opened == [1]


def test_unavailable_backend_degrades_search_but_fails_writes(embedder) -> None:
    def factory():
        raise ConnectionError("no server at localhost:8000")

    store = VectorMemoryStore(embedder, BackendConnector(factory))

    assert store.search("tokyo") == []
    with pytest.raises(MemoryStoreError) as excinfo:
        store.insert([_chunk(TOKYO)])
    assert isinstance(excinfo.value.__cause__, BackendUnavailableError)


def test_generated_ids_are_unique_across_threads() -> None:
    batches = []

    def worker():
        batches.append(generate_chunk_ids(5))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    ids = [record_id for batch in batches for record_id in batch]
    assert len(ids) == 40
    assert len(set(ids)) == 40
    assert all(record_id.startswith("chunk_") for record_id in ids)


def test_writes_from_two_stores_on_one_collection_are_serialised(embedder, connector, backend) -> None:
    first = VectorMemoryStore(embedder, connector)
    second = VectorMemoryStore(embedder, connector)
    first.insert([_chunk(TOKYO)])
    inserted_during_clear = []
    writers = []

    def insert_from_other_session():
        writer = threading.Thread(target=second.insert, args=([_chunk(MARATHON)],))
        writers.append(writer)
        writer.start()
        writer.join(timeout=0.2)
        inserted_during_clear.append(not writer.is_alive())

    backend.on_delete = insert_from_other_session

    assert first.clear() == 1
    backend.on_delete = None
    writers[0].join(timeout=5)

    assert inserted_during_clear == [False]
    assert [memory.narrative for memory in first.list_all()] == [MARATHON]
