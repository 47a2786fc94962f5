"""
Retrieval — vector storage and semantic search with citations.

This module wraps the vector store behind a clean interface so that the
chat tools never need to know which DB is backing retrieval.

Public surface
--------------
- :class:`SemanticRetriever` — main entry point for retrieval with citations.
- :class:`VectorStoreBase` — abstract backend.
- :class:`PineconeVectorStore` — hosted Pinecone backend.
- :class:`InMemoryVectorStore` — in-process backend for development and tests.
- :class:`Citation`, :class:`RetrievalResult`, :class:`MetadataFilter`,
  :class:`VectorRecord`, :class:`VectorMatch`, :class:`IndexStats` — data models.
"""

from ai_lab.retrieval.base import VectorStoreBase
from ai_lab.retrieval.memory_store import InMemoryVectorStore
from ai_lab.retrieval.models import (
    Citation,
    IndexStats,
    MetadataFilter,
    RetrievalResult,
    VectorMatch,
    VectorRecord,
)
from ai_lab.retrieval.retriever import SemanticRetriever

__all__ = [
    "Citation",
    "InMemoryVectorStore",
    "IndexStats",
    "MetadataFilter",
    "PineconeVectorStore",
    "RetrievalResult",
    "SemanticRetriever",
    "VectorMatch",
    "VectorRecord",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import PineconeVectorStore to avoid pulling in the SDK at import time."""
    if name == "PineconeVectorStore":
        from ai_lab.retrieval.pinecone_store import PineconeVectorStore

        return PineconeVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
