"""In-process vector backend built on a FAISS index."""
from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from memoir.backends.base import BackendRecord, QueryMatch
from memoir.utils.exceptions import BackendError, MissingDependencyError

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only.
    import faiss
    import numpy as np


class FaissCollection:
    """A named collection whose vectors live in a FAISS ``IndexIDMap``.

    Documents and metadata are kept in process memory next to the index, so
    the collection lasts as long as the process does.

    Args:
        name: Collection name, reported in logs.
        index_factory: FAISS index type specification (default: "Flat").
        normalize_embeddings: Whether to L2-normalise vectors so that the
            reported L2 distance tracks cosine distance (default: True).

    Raises:
        MissingDependencyError: If ``faiss`` or ``numpy`` is not installed.
    """

    def __init__(
        self,
        name: str = "memories",
        *,
        index_factory: str = "Flat",
        normalize_embeddings: bool = True,
    ) -> None:
        # Lazy import to keep the dependency optional
        try:
            import faiss  # type: ignore[import-untyped]
        except ImportError as exc:
            raise MissingDependencyError(
                "FaissCollection requires the 'faiss' package. "
                "Install it with `pip install faiss-cpu`."
            ) from exc

        try:
            import numpy as np
        except ImportError as exc:
            raise MissingDependencyError(
                "FaissCollection requires NumPy alongside faiss."
            ) from exc

        self.name = name
        self._faiss: faiss = faiss  # type: ignore[assignment]
        self._np: np = np  # type: ignore[assignment]
        self._index_factory = index_factory
        self._normalize_embeddings = normalize_embeddings
        self._dimension: Optional[int] = None
        self._base_index: Optional[faiss.Index] = None
        self._index: Optional[faiss.Index] = None
        self._documents: Dict[int, str] = {}
        self._metadatas: Dict[int, Dict[str, Any]] = {}
        self._external_ids: Dict[int, str] = {}
        self._internal_ids: Dict[str, int] = {}
        self._order: List[int] = []
        self._id_counter = 0
        self._lock = threading.RLock()

    def _build_index(self, dimension: int) -> None:
        self._dimension = dimension
        self._base_index = self._faiss.index_factory(dimension, self._index_factory)
        self._index = self._faiss.IndexIDMap(self._base_index)

    def _as_matrix(self, embeddings: Sequence[Sequence[float]]) -> "np.ndarray":  # type: ignore[name-defined]
        matrix = self._np.asarray(
            [[float(x) for x in embedding] for embedding in embeddings], dtype="float32"
        )
        if matrix.ndim != 2:
            raise BackendError("Embeddings must be one-dimensional sequences of floats")
        if self._dimension is not None and matrix.shape[1] != self._dimension:
            raise BackendError(
                f"Embedding dimension {matrix.shape[1]} does not match collection "
                f"dimension {self._dimension}"
            )
        if self._normalize_embeddings:
            self._faiss.normalize_L2(matrix)
        return matrix

    def add(
        self,
        ids: Sequence[str],
        embeddings: Sequence[Sequence[float]],
        documents: Sequence[str],
        metadatas: Sequence[Mapping[str, Any]],
    ) -> None:
        if not (len(ids) == len(embeddings) == len(documents) == len(metadatas)):
            raise BackendError("ids, embeddings, documents and metadatas must align")
        if not ids:
            return
        with self._lock:
            duplicates = [record_id for record_id in ids if record_id in self._internal_ids]
            if duplicates or len(set(ids)) != len(ids):
                raise BackendError(f"Duplicate record ids: {duplicates or list(ids)}")

            matrix = self._as_matrix(embeddings)
            # Initialize index on first write
            if self._index is None:
                self._build_index(matrix.shape[1])
            assert self._index is not None
            assert self._base_index is not None

            if not self._base_index.is_trained:
                self._base_index.train(matrix)

            internal = list(range(self._id_counter, self._id_counter + len(ids)))
            self._index.add_with_ids(matrix, self._np.asarray(internal, dtype="int64"))
            self._id_counter += len(ids)

            for record_id, internal_id, document, metadata in zip(
                ids, internal, documents, metadatas
            ):
                self._external_ids[internal_id] = record_id
                self._internal_ids[record_id] = internal_id
                self._documents[internal_id] = document
                self._metadatas[internal_id] = dict(metadata)
                self._order.append(internal_id)

    def query(self, embedding: Sequence[float], k: int) -> List[QueryMatch]:
        with self._lock:
            if self._index is None or not self._order or k <= 0:
                return []
            query_vector = self._as_matrix([embedding])
            distances, indices = self._index.search(query_vector, min(k, len(self._order)))

            matches: List[QueryMatch] = []
            for distance, idx in zip(distances[0], indices[0]):
                if idx == -1:
                    continue
                internal_id = int(idx)
                if internal_id not in self._documents:
                    continue
                matches.append(
                    QueryMatch(
                        id=self._external_ids[internal_id],
                        document=self._documents[internal_id],
                        metadata=dict(self._metadatas[internal_id]),
                        distance=float(distance),
                    )
                )
            return matches

    def get(self, ids: Optional[Sequence[str]] = None) -> List[BackendRecord]:
        with self._lock:
            if ids is None:
                selected = list(self._order)
            else:
                selected = [self._internal_ids[i] for i in ids if i in self._internal_ids]
            return [
                BackendRecord(
                    id=self._external_ids[internal_id],
                    document=self._documents[internal_id],
                    metadata=dict(self._metadatas[internal_id]),
                )
                for internal_id in selected
            ]

    def delete(self, ids: Sequence[str]) -> None:
        with self._lock:
            internal = [self._internal_ids[i] for i in ids if i in self._internal_ids]
            if not internal:
                return
            if self._index is not None:
                self._index.remove_ids(self._np.asarray(internal, dtype="int64"))
            removed = set(internal)
            for internal_id in internal:
                record_id = self._external_ids.pop(internal_id)
                self._internal_ids.pop(record_id, None)
                self._documents.pop(internal_id, None)
                self._metadatas.pop(internal_id, None)
            self._order = [i for i in self._order if i not in removed]

    def count(self) -> int:
        with self._lock:
            return len(self._order)


__all__ = ["FaissCollection"]
