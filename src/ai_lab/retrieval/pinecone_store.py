"""Pinecone implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

from pinecone import Pinecone

from ai_lab.errors import DeleteError, QueryError, StatsError, UpsertError
from ai_lab.retrieval.base import VectorStoreBase, flatten_metadata, rank_matches
from ai_lab.retrieval.models import IndexStats, MetadataFilter, VectorMatch, VectorRecord

logger = logging.getLogger(__name__)


def _build_pinecone_filter(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Pinecone filter syntax."""
    if not filters:
        return None

    _OP_MAP = {
        "eq": "$eq",
        "ne": "$ne",
        "gt": "$gt",
        "gte": "$gte",
        "lt": "$lt",
        "lte": "$lte",
        "in": "$in",
        "nin": "$nin",
    }

    clauses: list[dict[str, Any]] = []
    for f in filters:
        pinecone_op = _OP_MAP.get(f.operator)
        if pinecone_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {pinecone_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class PineconeVectorStore(VectorStoreBase):
    """Pinecone-backed vector store.

    Parameters
    ----------
    index_name:
        Name of an existing Pinecone index (cosine metric).
    namespace:
        Namespace inside the index; every call is scoped to it.
    api_key:
        Pinecone API key; ignored when *client* is given.
    client:
        Pre-built :class:`pinecone.Pinecone` client (tests inject a mock).
    dimension:
        Vector length reported when the index does not say.
    upsert_batch_size:
        Maximum number of vectors sent per upsert request.
    """

    def __init__(
        self,
        index_name: str,
        namespace: str,
        *,
        api_key: str = "",
        client: Pinecone | None = None,
        dimension: int = 1536,
        upsert_batch_size: int = 100,
    ) -> None:
        super().__init__(namespace)
        self.index_name = index_name
        self.dimension = dimension
        self.upsert_batch_size = upsert_batch_size
        self._client = client or Pinecone(api_key=api_key)
        self._index = self._client.Index(index_name)

    # -- VectorStoreBase overrides --------------------------------------------

    def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        logger.info(
            "Upserting %d vector(s) into %s/%s", len(records), self.index_name, self.namespace
        )
        try:
            for start in range(0, len(records), self.upsert_batch_size):
                batch = records[start : start + self.upsert_batch_size]
                self._index.upsert(
                    vectors=[
                        {"id": r.id, "values": r.values, "metadata": flatten_metadata(r.metadata)}
                        for r in batch
                    ],
                    namespace=self.namespace,
                )
        except Exception as exc:
            logger.exception("Pinecone upsert failed")
            raise UpsertError(f"Failed to store document vectors: {exc}") from exc

    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        threshold: float = 0.3,
        filters: list[MetadataFilter] | None = None,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        try:
            response = self._index.query(
                vector=vector,
                top_k=top_k,
                include_metadata=include_metadata,
                include_values=False,
                filter=_build_pinecone_filter(filters) if filters else None,
                namespace=self.namespace,
            )
        except Exception as exc:
            logger.exception("Pinecone query failed")
            raise QueryError("Failed to retrieve relevant documents") from exc

        raw = getattr(response, "matches", None) or []
        logger.debug("Pinecone returned %d raw match(es)", len(raw))

        matches: list[VectorMatch] = []
        for m in raw:
            if not m.score:
                continue
            meta = dict(m.metadata or {})
            matches.append(
                VectorMatch(
                    id=m.id,
                    score=float(m.score),
                    metadata=meta,
                    content=str(meta.get("content", "")),
                )
            )
        ranked = rank_matches(matches, top_k=top_k, threshold=threshold)
        logger.debug("%d match(es) at threshold >= %.2f", len(ranked), threshold)
        return ranked

    def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        try:
            self._index.delete(ids=ids, namespace=self.namespace)
        except Exception as exc:
            logger.exception("Pinecone delete failed")
            raise DeleteError("Failed to delete document vectors") from exc

    def stats(self) -> IndexStats:
        try:
            raw = self._index.describe_index_stats()
        except Exception as exc:
            logger.exception("Pinecone describe_index_stats failed")
            raise StatsError("Failed to retrieve index statistics") from exc

        return IndexStats(
            total_vectors=getattr(raw, "total_vector_count", 0) or 0,
            dimension=getattr(raw, "dimension", 0) or self.dimension,
            fullness=getattr(raw, "index_fullness", 0.0) or 0.0,
        )

    def health_check(self) -> bool:
        try:
            return self.index_name in self._client.list_indexes().names()
        except Exception:
            logger.warning("Pinecone health-check failed", exc_info=True)
            return False
