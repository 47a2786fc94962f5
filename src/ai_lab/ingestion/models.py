"""Domain models for documents, chunks and processing results."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

SourceKind = Literal["pdf", "url", "text"]
DocumentStatus = Literal["processing", "completed", "error"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_document_id() -> str:
    return f"doc-{uuid4().hex}"


def new_chunk_id() -> str:
    return f"chunk-{uuid4().hex}"


class DocumentMetadata(BaseModel):
    """Aggregate metadata recorded for a processed document.

    Attributes
    ----------
    filename:
        Original filename for uploaded documents.
    url:
        Origin URL for remote pages.
    content_type:
        Declared content type of a remote page.
    size:
        Size of the raw source in bytes.
    page_count:
        Number of pages (page-oriented formats only).
    processed_at:
        UTC timestamp of when extraction and chunking ran.
    chunk_count:
        Number of chunks produced.
    extra:
        Free-form metadata reported by the source (e.g. PDF info dictionary).
    """

    filename: str | None = None
    url: str | None = None
    content_type: str | None = None
    size: int | None = None
    page_count: int | None = None
    author: str | None = None
    processed_at: datetime = Field(default_factory=_utcnow)
    chunk_count: int = 0
    extra: dict[str, Any] = Field(default_factory=dict)


class Document(BaseModel):
    """A source document after extraction.

    Chunk offsets index into :func:`~ai_lab.ingestion.chunker.normalize_text`
    applied to :attr:`content`, not into the raw content itself.
    """

    id: str = Field(default_factory=new_document_id)
    title: str
    content: str
    source: SourceKind
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    status: DocumentStatus = "processing"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ChunkMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    word_count: int
    char_count: int
    source: SourceKind
    document_title: str
    page: int | None = None
    section: str | None = None


class Chunk(BaseModel):
    """A bounded contiguous slice of a document's text — the unit of embedding.

    Attributes
    ----------
    id:
        Unique identifier, also used as the vector id after upsert.
    document_id:
        Back-reference to the owning :class:`Document`.
    content:
        The trimmed chunk text.
    index:
        Zero-based sequence number within the document.
    start_index / end_index:
        Pre-trim character offsets into the normalized document text.
    metadata:
        Word/char counts plus the document's source kind and title.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_chunk_id)
    document_id: str = ""
    content: str
    index: int
    start_index: int
    end_index: int
    metadata: ChunkMetadata


class ProcessingResult(BaseModel):
    """Tagged outcome of :func:`~ai_lab.ingestion.processor.process_document`.

    On failure ``document`` is ``None`` and ``chunks`` is empty; nothing
    partially built is exposed.
    """

    success: bool
    document: Document | None = None
    chunks: list[Chunk] = Field(default_factory=list)
    error: str | None = None
    processing_time_ms: float = 0.0


class DocumentSummary(BaseModel):
    """Document-library entry kept after ingestion."""

    id: str
    title: str
    source: SourceKind
    chunk_count: int
    chunk_ids: list[str] = Field(default_factory=list)
    status: DocumentStatus = "completed"
    created_at: datetime = Field(default_factory=_utcnow)


class IngestionOutcome(BaseModel):
    """Tagged outcome of a full ingestion (process → embed → store)."""

    success: bool
    document: DocumentSummary | None = None
    message: str = ""
    error: str | None = None
    processing_time_ms: float = 0.0
