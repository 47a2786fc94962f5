"""Abstract base class for vector-store backends.

A backend subclasses :class:`VectorStoreBase` and implements the five
abstract methods.  Every operation is scoped to the store's namespace.
Each method raises its own :class:`~ai_lab.errors.StoreError` subtype on
failure so callers can tell an upsert failure from a query failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ai_lab.retrieval.models import IndexStats, MetadataFilter, VectorMatch, VectorRecord


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    namespace:
        Named partition inside the index that isolates this collection.
    """

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or overwrite *records*.  Raises :class:`~ai_lab.errors.UpsertError`."""
        ...

    @abstractmethod
    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        threshold: float = 0.3,
        filters: list[MetadataFilter] | None = None,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Return the closest matches to *vector*.

        Results **must** satisfy ``score >= threshold``, be ordered by
        descending score, and hold at most *top_k* items.  Raises
        :class:`~ai_lab.errors.QueryError`.
        """
        ...

    @abstractmethod
    def delete(self, ids: list[str]) -> None:
        """Delete vectors by id.  Raises :class:`~ai_lab.errors.DeleteError`."""
        ...

    @abstractmethod
    def stats(self) -> IndexStats:
        """Return index statistics.  Raises :class:`~ai_lab.errors.StatsError`."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...


def rank_matches(matches: list[VectorMatch], *, top_k: int, threshold: float) -> list[VectorMatch]:
    """Apply the query contract: drop scores below *threshold*, sort, cap at *top_k*."""
    kept = [m for m in matches if m.score >= threshold]
    kept.sort(key=lambda m: m.score, reverse=True)
    return kept[:top_k]


def flatten_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Keep only values vector stores accept as metadata (no ``None``, no nesting)."""
    flat: dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        elif isinstance(value, list) and all(isinstance(v, str) for v in value):
            flat[key] = value
    return flat
