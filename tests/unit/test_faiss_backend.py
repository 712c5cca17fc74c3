import sys

import pytest

from memoir.backends.faiss_backend import FaissCollection
from memoir.services.embedding import HashingEmbeddingService
from memoir.utils.exceptions import BackendError, MissingDependencyError


@pytest.fixture(scope="module")
def _skip_if_faiss_missing():
    pytest.importorskip("faiss")
    pytest.importorskip("numpy")


def _add(collection, embedder, records):
    collection.add(
        [record_id for record_id, _ in records],
        [embedder.embed(text) for _, text in records],
        [text for _, text in records],
        [{"source": "test"} for _ in records],
    )


@pytest.mark.usefixtures("_skip_if_faiss_missing")
def test_faiss_collection_returns_closest_first():
    embedder = HashingEmbeddingService(dimension=64)
    collection = FaissCollection()
    _add(
        collection,
        embedder,
        [
            ("a", "Discuss project timeline"),
            ("b", "Review architecture draft"),
            ("c", "Finalize project timeline"),
        ],
    )

    matches = collection.query(embedder.embed("Discuss project timeline"), 2)

    assert [match.id for match in matches][0] == "a"
    assert matches[0].distance == pytest.approx(0.0, abs=1e-5)
    assert matches[0].distance <= matches[1].distance
    assert matches[0].metadata == {"source": "test"}


@pytest.mark.usefixtures("_skip_if_faiss_missing")
def test_faiss_collection_get_delete_and_count():
    embedder = HashingEmbeddingService(dimension=32)
    collection = FaissCollection()
    _add(collection, embedder, [("a", "first"), ("b", "second"), ("c", "third")])

    assert collection.count() == 3
    assert [record.id for record in collection.get()] == ["a", "b", "c"]
    assert [record.document for record in collection.get(["c"])] == ["third"]

    collection.delete(["a", "c"])

    assert collection.count() == 1
    assert [match.id for match in collection.query(embedder.embed("first"), 5)] == ["b"]


@pytest.mark.usefixtures("_skip_if_faiss_missing")
def test_faiss_collection_rejects_duplicates_and_bad_dimensions():
    embedder = HashingEmbeddingService(dimension=16)
    collection = FaissCollection()
    _add(collection, embedder, [("a", "first")])

    with pytest.raises(BackendError):
        _add(collection, embedder, [("a", "again")])
    with pytest.raises(BackendError):
        collection.add(["b"], [[1.0, 2.0]], ["short"], [{}])


@pytest.mark.usefixtures("_skip_if_faiss_missing")
def test_empty_faiss_collection_query():
    assert FaissCollection().query([0.1, 0.2], 3) == []


def test_requires_faiss_dependency(monkeypatch):
    if "faiss" in sys.modules:
        pytest.skip("faiss installed; cannot test missing dependency")

    original_import = __import__

    def fake_import(name, *args, **kwargs):
        if name == "faiss":
            raise ImportError("missing")
        return original_import(name, *args, **kwargs)

    monkeypatch.setattr("builtins.__import__", fake_import)

    with pytest.raises(MissingDependencyError):
        FaissCollection()
