"""Offline walkthrough of the long-term memory store.

The demo exercises the storage half of the system without any network
access:

* ``SentenceChunker`` stands in for model-driven fact extraction.
* ``HashingEmbeddingService`` produces deterministic embeddings.
* ``FaissCollection`` keeps the vectors in process.

Because the embeddings are character based, search results only loosely
track meaning; the point is to show the store lifecycle end to end.
"""

from __future__ import annotations

import logging
from pathlib import Path
import sys
from typing import List

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from memoir.backends import BackendConnector
from memoir.backends.faiss_backend import FaissCollection
from memoir.memory import SentenceChunker, VectorMemoryStore
from memoir.services import HashingEmbeddingService
from memoir.utils.logging_utils import configure_logging

MOCK_SUMMARIES: List[str] = [
    "User is Brazilian and speaks Portuguese natively. They recently moved to Tokyo "
    "for a software engineering job. They miss Brazilian food and are looking for "
    "restaurants in Tokyo that serve feijoada. They are also learning Japanese "
    "through an online course every evening.",
    "User runs marathons and is training for the Tokyo Marathon in March. They run "
    "five times a week and follow a plan from their old running club in Sao Paulo. "
    "User enjoys Python programming and builds small tools to track their training "
    "data and race times.",
]

QUERIES = ["Brazilian food in Tokyo", "marathon training", "learning Japanese"]


def run_demo() -> None:
    store = VectorMemoryStore(
        HashingEmbeddingService(),
        BackendConnector(lambda: FaissCollection("memories"), description="demo faiss collection"),
    )

    print("Clearing existing memories...")
    print(f"Deleted {store.clear()} memories\n")

    chunks = SentenceChunker().process(MOCK_SUMMARIES)
    print(f"Created {len(chunks)} chunks:")
    for index, chunk in enumerate(chunks, start=1):
        print(f"  {index}. {chunk.narrative}")
        print(f"     topics: {chunk.metadata.get('topics', '-')}")

    ids = store.insert(chunks)
    print(f"\nStored {len(ids)} memories\n")

    for query in QUERIES:
        print(f'Query: "{query}"')
        for result in store.search(query, limit=2):
            print(f"  ({result.distance:.3f}) {result.narrative}")
        print()

    print(f"Total memories in store: {len(store.list_all())}")


def main() -> None:
    configure_logging(level=logging.WARNING)
    run_demo()


if __name__ == "__main__":
    main()
