"""Semantic retriever — metadata-aware search with citation tracking.

This module is the **primary public interface** for retrieval.  The chat
tools, the debug endpoint and tests all go through it rather than talking
to a vector store directly.

Usage::

    from ai_lab.retrieval.retriever import SemanticRetriever

    retriever = SemanticRetriever(store, embedder)
    results   = await retriever.search("What is a vector database?", k=5)
    for r in results:
        print(r.citation.short_ref(), r.content[:80])
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ai_lab.retrieval.models import Citation, MetadataFilter, RetrievalResult, VectorMatch

if TYPE_CHECKING:
    from ai_lab.ingestion.embedder import OpenAIEmbedder
    from ai_lab.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """High-level retriever that wraps any :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    embedder:
        Embedding client used to turn query text into a vector.
    default_k:
        Default number of results returned by :meth:`search`.
    score_threshold:
        Default minimum similarity score; results below this are discarded.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: OpenAIEmbedder,
        *,
        default_k: int = 5,
        score_threshold: float = 0.3,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.default_k = default_k
        self.score_threshold = score_threshold

    @property
    def store(self) -> VectorStoreBase:
        return self._store

    # -- public API -----------------------------------------------------------

    async def search(
        self,
        query: str,
        *,
        k: int | None = None,
        threshold: float | None = None,
        filters: list[MetadataFilter] | None = None,
    ) -> list[RetrievalResult]:
        """Run a semantic search and return results with citations.

        Parameters
        ----------
        query:
            Natural-language query string.
        k:
            Number of results (defaults to ``self.default_k``).
        threshold:
            Minimum score (defaults to ``self.score_threshold``).
        filters:
            Optional metadata filters forwarded to the vector store.

        Returns
        -------
        list[RetrievalResult]
            Ranked results, each carrying a :class:`Citation`.  An empty list
            means nothing cleared the threshold; store failures raise
            :class:`~ai_lab.errors.QueryError` instead.
        """
        embedding = await self._embedder.embed(query)
        return await self.search_by_embedding(embedding, k=k, threshold=threshold, filters=filters)

    async def search_by_embedding(
        self,
        embedding: list[float],
        *,
        k: int | None = None,
        threshold: float | None = None,
        filters: list[MetadataFilter] | None = None,
    ) -> list[RetrievalResult]:
        """Same as :meth:`search` but accepts a pre-computed embedding."""
        k = k or self.default_k
        threshold = self.score_threshold if threshold is None else threshold
        matches = await asyncio.to_thread(
            self._store.query, embedding, top_k=k, threshold=threshold, filters=filters
        )
        logger.info("Retrieved %d passage(s) (k=%d, threshold=%.2f)", len(matches), k, threshold)
        return [self._to_result(m) for m in matches]

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _to_result(match: VectorMatch) -> RetrievalResult:
        meta = match.metadata
        citation = Citation(
            chunk_id=meta.get("chunkId", match.id),
            document_id=meta.get("documentId"),
            title=meta.get("documentTitle", "Unknown Document"),
            source=meta.get("source", "unknown"),
            chunk_index=meta.get("chunkIndex"),
            page=meta.get("page"),
            score=match.score,
            metadata=meta,
        )
        return RetrievalResult(content=match.content, citation=citation)
