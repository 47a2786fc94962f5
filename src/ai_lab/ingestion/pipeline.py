"""Ingestion pipeline — process a source, embed its chunks and store the vectors."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from ai_lab.errors import EmbeddingError, StorageError, StoreError
from ai_lab.ingestion.models import Chunk, Document, DocumentSummary, IngestionOutcome
from ai_lab.ingestion.processor import process_document
from ai_lab.retrieval.base import flatten_metadata
from ai_lab.retrieval.models import VectorRecord

if TYPE_CHECKING:
    import httpx

    from ai_lab.ingestion.chunker import ChunkingOptions
    from ai_lab.ingestion.embedder import OpenAIEmbedder
    from ai_lab.ingestion.loader import DocumentSource, LiteralSource, RemoteSource
    from ai_lab.retrieval.base import VectorStoreBase
    from ai_lab.storage.documents import DocumentLibrary

logger = logging.getLogger(__name__)


def chunk_vector_metadata(document: Document, chunk: Chunk) -> dict[str, Any]:
    """Flat metadata stored next to a chunk's vector.

    The chunk text itself is included so query results can be shown
    without a second lookup.
    """
    return flatten_metadata(
        {
            "documentId": document.id,
            "chunkId": chunk.id,
            "documentTitle": document.title,
            "source": document.source,
            "chunkIndex": chunk.index,
            "wordCount": chunk.metadata.word_count,
            "page": chunk.metadata.page,
            "section": chunk.metadata.section,
            "createdAt": document.created_at.isoformat(),
            "content": chunk.content,
        }
    )


class IngestionPipeline:
    """Chain extraction, chunking, embedding and vector storage.

    Parameters
    ----------
    embedder:
        Embedding client for chunk text.
    store:
        Vector store receiving one vector per chunk (vector id = chunk id).
    library:
        Document library that records every successfully stored document.
    options:
        Chunking options; the chunker defaults apply when omitted.
    http_client:
        Shared HTTP client for remote sources.
    """

    def __init__(
        self,
        embedder: OpenAIEmbedder,
        store: VectorStoreBase,
        library: DocumentLibrary,
        options: ChunkingOptions | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._library = library
        self._options = options
        self._http_client = http_client

    async def ingest(self, source: DocumentSource | RemoteSource | LiteralSource) -> IngestionOutcome:
        """Run the whole pipeline for one source.

        Never raises for processing, embedding, store or library failures;
        those are reported as ``IngestionOutcome(success=False, error=...)``.
        When the library write fails the vectors just stored are deleted again.
        """
        started = time.perf_counter()
        result = await process_document(source, self._options, http_client=self._http_client)
        if not result.success or result.document is None:
            return IngestionOutcome(
                success=False,
                error=result.error or "Failed to process document",
                processing_time_ms=_elapsed_ms(started),
            )

        document, chunks = result.document, result.chunks
        if not chunks:
            return IngestionOutcome(
                success=False,
                error="No text content could be extracted from the document",
                processing_time_ms=_elapsed_ms(started),
            )

        try:
            vectors = await self._embedder.embed_batch([c.content for c in chunks])
            records = [
                VectorRecord(id=c.id, values=v, metadata=chunk_vector_metadata(document, c))
                for c, v in zip(chunks, vectors)
            ]
            await asyncio.to_thread(self._store.upsert, records)
        except (EmbeddingError, StoreError) as exc:
            logger.exception("Ingestion of %r failed", document.title)
            return IngestionOutcome(
                success=False,
                error=exc.message,
                processing_time_ms=_elapsed_ms(started),
            )

        summary = DocumentSummary(
            id=document.id,
            title=document.title,
            source=document.source,
            chunk_count=len(chunks),
            chunk_ids=[c.id for c in chunks],
            status=document.status,
            created_at=document.created_at,
        )
        try:
            await asyncio.to_thread(self._library.add, summary)
        except StorageError as exc:
            logger.exception("Recording %r in the document library failed", document.title)
            await self._discard_vectors(summary.chunk_ids)
            return IngestionOutcome(
                success=False,
                error=exc.message,
                processing_time_ms=_elapsed_ms(started),
            )

        logger.info("Ingested %r: %d chunk(s) stored", document.title, len(chunks))
        return IngestionOutcome(
            success=True,
            document=summary,
            message=f"Successfully processed {document.title} into {len(chunks)} chunks",
            processing_time_ms=_elapsed_ms(started),
        )

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document's vectors and its library entry.

        Returns ``False`` when the library has no such document.  Raises
        :class:`~ai_lab.errors.DeleteError` when the store rejects the delete;
        the library entry is kept in that case.
        """
        summary = await asyncio.to_thread(self._library.get, document_id)
        if summary is None:
            return False
        await asyncio.to_thread(self._store.delete, summary.chunk_ids)
        await asyncio.to_thread(self._library.remove, document_id)
        logger.info("Deleted document %s (%d vector(s))", document_id, len(summary.chunk_ids))
        return True

    async def _discard_vectors(self, ids: list[str]) -> None:
        try:
            await asyncio.to_thread(self._store.delete, ids)
        except StoreError:
            logger.exception("Could not remove %d orphaned vector(s)", len(ids))


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
