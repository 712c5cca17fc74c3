"""Vector backend contract and concrete collection adapters."""

from .base import BackendConnector, BackendFactory, BackendRecord, QueryMatch, VectorBackend
from .chroma_backend import ChromaCollection, create_chroma_client
from .faiss_backend import FaissCollection

__all__ = [
    "BackendConnector",
    "BackendFactory",
    "BackendRecord",
    "ChromaCollection",
    "FaissCollection",
    "QueryMatch",
    "VectorBackend",
    "create_chroma_client",
]
