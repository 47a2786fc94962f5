"""In-process vector store for local development and tests."""

from __future__ import annotations

import logging
from typing import Any

from ai_lab.errors import QueryError, UpsertError
from ai_lab.ingestion.embedder import cosine_similarity
from ai_lab.retrieval.base import VectorStoreBase, flatten_metadata, rank_matches
from ai_lab.retrieval.models import IndexStats, MetadataFilter, VectorMatch, VectorRecord

logger = logging.getLogger(__name__)


def _matches_filter(metadata: dict[str, Any], f: MetadataFilter) -> bool:
    value = metadata.get(f.field)
    if f.operator == "eq":
        return value == f.value
    if f.operator == "ne":
        return value != f.value
    if f.operator == "in":
        return value in f.value
    if f.operator == "nin":
        return value not in f.value
    if value is None:
        return False
    if f.operator == "gt":
        return value > f.value
    if f.operator == "gte":
        return value >= f.value
    if f.operator == "lt":
        return value < f.value
    if f.operator == "lte":
        return value <= f.value
    raise ValueError(f"Unsupported filter operator: {f.operator!r}")


class InMemoryVectorStore(VectorStoreBase):
    """Dictionary-backed store scored by cosine similarity.

    Negative similarities are clamped to ``0.0`` so scores stay in [0, 1].
    """

    def __init__(self, namespace: str = "default", *, dimension: int = 1536) -> None:
        super().__init__(namespace)
        self.dimension = dimension
        self._records: dict[str, VectorRecord] = {}

    def upsert(self, records: list[VectorRecord]) -> None:
        for record in records:
            if len(record.values) != self.dimension:
                raise UpsertError(
                    f"Failed to store document vectors: expected dimension {self.dimension}, "
                    f"got {len(record.values)}",
                    details={"id": record.id},
                )
        for record in records:
            self._records[record.id] = record.model_copy(
                update={"metadata": flatten_metadata(record.metadata)}
            )

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
            matches: list[VectorMatch] = []
            for record in self._records.values():
                if filters and not all(_matches_filter(record.metadata, f) for f in filters):
                    continue
                score = max(cosine_similarity(vector, record.values), 0.0)
                matches.append(
                    VectorMatch(
                        id=record.id,
                        score=score,
                        metadata=dict(record.metadata) if include_metadata else {},
                        content=str(record.metadata.get("content", "")),
                    )
                )
        except ValueError as exc:
            logger.exception("In-memory query failed")
            raise QueryError("Failed to retrieve relevant documents") from exc
        return rank_matches(matches, top_k=top_k, threshold=threshold)

    def delete(self, ids: list[str]) -> None:
        for vector_id in ids:
            self._records.pop(vector_id, None)

    def stats(self) -> IndexStats:
        return IndexStats(total_vectors=len(self._records), dimension=self.dimension, fullness=0.0)

    def health_check(self) -> bool:
        return True
