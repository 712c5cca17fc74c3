"""Vector backend backed by a ChromaDB collection."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

from memoir.backends.base import BackendRecord, QueryMatch
from memoir.utils.exceptions import BackendUnavailableError, MissingDependencyError

logger = logging.getLogger(__name__)

DEFAULT_CHROMA_URL = "http://localhost:8000"
COLLECTION_DESCRIPTION = "AI conversation memory chunks"


def _import_chromadb() -> Any:
    try:
        import chromadb
    except ImportError as exc:
        raise MissingDependencyError(
            "ChromaCollection requires the 'chromadb' package. "
            "Install it with `pip install chromadb` (or `pip install memoir[chroma]`)."
        ) from exc
    return chromadb


def create_chroma_client(
    *, url: Optional[str] = None, persist_dir: Optional[str] = None
) -> Any:
    """Return a Chroma client for a server ``url`` or a local ``persist_dir``."""

    chromadb = _import_chromadb()
    if persist_dir:
        return chromadb.PersistentClient(path=persist_dir)

    parsed = urlparse(url or DEFAULT_CHROMA_URL)
    host = parsed.hostname or "localhost"
    port = parsed.port or (443 if parsed.scheme == "https" else 8000)
    return chromadb.HttpClient(host=host, port=port, ssl=parsed.scheme == "https")


class ChromaCollection:
    """Adapter exposing a Chroma collection through the backend contract."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection
        self.name = getattr(collection, "name", "memories")

    @classmethod
    def open(
        cls,
        name: str = "memories",
        *,
        url: Optional[str] = None,
        persist_dir: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> "ChromaCollection":
        """Get or create the named collection."""

        resolved = client or create_chroma_client(url=url, persist_dir=persist_dir)
        try:
            collection = resolved.get_or_create_collection(
                name=name, metadata={"description": COLLECTION_DESCRIPTION}
            )
        except Exception as exc:
            location = persist_dir or url or DEFAULT_CHROMA_URL
            logger.error(
                "Error initialising Chroma; make sure the server is reachable",
                extra={"location": location, "error": str(exc)},
            )
            raise BackendUnavailableError(
                f"Could not open Chroma collection '{name}' at {location}: {exc}"
            ) from exc
        logger.info("Chroma initialised", extra={"collection": name})
        return cls(collection)

    def add(
        self,
        ids: Sequence[str],
        embeddings: Sequence[Sequence[float]],
        documents: Sequence[str],
        metadatas: Sequence[Mapping[str, Any]],
    ) -> None:
        if not ids:
            return
        self._collection.add(
            ids=list(ids),
            embeddings=[[float(x) for x in embedding] for embedding in embeddings],
            documents=list(documents),
            metadatas=[dict(metadata) for metadata in metadatas],
        )

    def query(self, embedding: Sequence[float], k: int) -> List[QueryMatch]:
        total = self._collection.count()
        if total == 0 or k <= 0:
            return []
        results = self._collection.query(
            query_embeddings=[[float(x) for x in embedding]],
            n_results=min(k, total),
            include=["documents", "metadatas", "distances"],
        )
        ids = (results.get("ids") or [[]])[0]
        documents = (results.get("documents") or [[]])[0] or []
        metadatas = (results.get("metadatas") or [[]])[0] or []
        distances = (results.get("distances") or [[]])[0] or []
        matches: List[QueryMatch] = []
        for idx, document in enumerate(documents):
            metadata = metadatas[idx] if idx < len(metadatas) else None
            matches.append(
                QueryMatch(
                    id=ids[idx],
                    document=document or "",
                    metadata=dict(metadata or {}),
                    distance=float(distances[idx]),
                )
            )
        return matches

    def get(self, ids: Optional[Sequence[str]] = None) -> List[BackendRecord]:
        kwargs: Dict[str, Any] = {"include": ["documents", "metadatas"]}
        if ids is not None:
            kwargs["ids"] = list(ids)
        else:
            total = self._collection.count()
            if total == 0:
                return []
            kwargs["limit"] = total
        results = self._collection.get(**kwargs)
        record_ids = results.get("ids") or []
        documents = results.get("documents") or []
        metadatas = results.get("metadatas") or []
        return [
            BackendRecord(
                id=record_id,
                document=documents[idx] if idx < len(documents) else "",
                metadata=dict((metadatas[idx] if idx < len(metadatas) else None) or {}),
            )
            for idx, record_id in enumerate(record_ids)
        ]

    def delete(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        self._collection.delete(ids=list(ids))

    def count(self) -> int:
        return int(self._collection.count())


__all__ = ["ChromaCollection", "create_chroma_client"]
