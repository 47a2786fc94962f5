"""Document assembly — combine extractor output and chunks into one record."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

import httpx

from ai_lab.ingestion.chunker import ChunkingOptions, chunk_text
from ai_lab.ingestion.loader import DocumentSource, LiteralSource, RemoteSource, extract
from ai_lab.ingestion.models import (
    Chunk,
    Document,
    DocumentMetadata,
    ProcessingResult,
    SourceKind,
)

logger = logging.getLogger(__name__)

_SOURCE_KINDS: dict[str, SourceKind] = {
    "document": "pdf",
    "remote": "url",
    "literal": "text",
}


def assemble(
    source_kind: SourceKind,
    content: str,
    metadata: dict[str, Any],
    title: str,
    options: ChunkingOptions | None = None,
) -> tuple[Document, list[Chunk]]:
    """Build a :class:`Document` and its chunks.

    The document is created in ``processing`` state and returned as
    ``completed`` once chunking has finished, with ``chunk_count`` filled in.
    Every chunk carries the document id and title.  No I/O happens here.
    """
    document = Document(
        title=title,
        content=content,
        source=source_kind,
        metadata=DocumentMetadata(**metadata),
    )

    chunks = chunk_text(
        content,
        options,
        document_id=document.id,
        document_title=title,
        source=source_kind,
    )

    now = datetime.now(timezone.utc)
    document = document.model_copy(
        update={
            "status": "completed",
            "updated_at": now,
            "metadata": document.metadata.model_copy(
                update={"chunk_count": len(chunks), "processed_at": now}
            ),
        }
    )
    return document, chunks


async def process_document(
    source: DocumentSource | RemoteSource | LiteralSource,
    options: ChunkingOptions | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> ProcessingResult:
    """Extract, chunk and assemble a document from any supported source.

    Never raises: any failure during extraction or chunking is reported as
    ``ProcessingResult(success=False, error=...)``.
    """
    started = time.perf_counter()
    try:
        extracted = await extract(source, http_client=http_client)
        document, chunks = assemble(
            _SOURCE_KINDS[source.kind],
            extracted.content,
            extracted.metadata,
            extracted.title,
            options,
        )
    except Exception as exc:
        logger.exception("Document processing failed (%s source)", source.kind)
        return ProcessingResult(
            success=False,
            error=str(exc) or type(exc).__name__,
            processing_time_ms=_elapsed_ms(started),
        )

    logger.info("Processed %r into %d chunk(s)", document.title, len(chunks))
    return ProcessingResult(
        success=True,
        document=document,
        chunks=chunks,
        processing_time_ms=_elapsed_ms(started),
    )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
