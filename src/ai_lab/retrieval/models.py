"""Domain models for vector records, retrieval results and citation tracking."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"documentId"``, ``"source"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    # -- helpers for common filters ------------------------------------------

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)


class VectorRecord(BaseModel):
    """One vector to upsert, with its flat metadata."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorMatch(BaseModel):
    """One raw hit returned by a vector-store query.

    ``score`` is a cosine similarity in [0, 1]; ``content`` is the chunk text
    stored alongside the vector.
    """

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)
    content: str = ""


class IndexStats(BaseModel):
    total_vectors: int = 0
    dimension: int = 0
    fullness: float = 0.0


class Citation(BaseModel):
    """Provenance record linking a retrieved chunk back to its source document.

    Attributes
    ----------
    citation_id:
        Unique identifier for this citation instance.
    chunk_id:
        The vector-store id of the chunk.
    document_id:
        Id of the document the chunk was cut from (``None`` when unknown).
    title:
        Human-readable document title.
    source:
        Source kind of the document (``pdf``, ``url`` or ``text``).
    chunk_index:
        Ordinal position of the chunk within the source document.
    page:
        Page number, when known.
    score:
        Similarity score returned by the vector store.
    metadata:
        Full metadata stored alongside the vector.
    retrieved_at:
        UTC timestamp of when the retrieval happened.
    """

    citation_id: str = Field(default_factory=lambda: uuid4().hex[:12])
    chunk_id: str | None = None
    document_id: str | None = None
    title: str = "Unknown Document"
    source: str = "unknown"
    chunk_index: int | None = None
    page: int | None = None
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def short_ref(self) -> str:
        """Return a compact ``[title§chunk]`` reference string."""
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{self.title}§{chunk}]"


class RetrievalResult(BaseModel):
    """A single retrieved passage together with its citation."""

    content: str
    citation: Citation

    def __str__(self) -> str:  # noqa: D105
        return f"{self.citation.short_ref()} {self.content[:120]}…"
