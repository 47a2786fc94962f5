"""Document library — the list of documents that have been ingested."""

from __future__ import annotations

import logging

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ai_lab.errors import StorageError
from ai_lab.ingestion.models import DocumentSummary
from ai_lab.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "ai-lab-documents"

_summary_list = TypeAdapter(list[DocumentSummary])


class DocumentLibrary:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def _load(self) -> list[DocumentSummary]:
        raw = self._store.get(STORAGE_KEY)
        if not raw:
            return []
        try:
            return _summary_list.validate_json(raw)
        except PydanticValidationError as exc:
            raise StorageError("Stored document library is corrupt", details={"key": STORAGE_KEY}) from exc

    def _write(self, documents: list[DocumentSummary]) -> None:
        self._store.set(STORAGE_KEY, _summary_list.dump_json(documents).decode("utf-8"))

    def add(self, summary: DocumentSummary) -> None:
        """Insert *summary*, replacing any entry with the same id."""
        documents = [d for d in self._load() if d.id != summary.id]
        documents.append(summary)
        self._write(documents)
        logger.debug("Library now holds %d document(s)", len(documents))

    def list(self) -> list[DocumentSummary]:
        """Return every entry, newest first."""
        return sorted(self._load(), key=lambda d: d.created_at, reverse=True)

    def get(self, document_id: str) -> DocumentSummary | None:
        return next((d for d in self._load() if d.id == document_id), None)

    def remove(self, document_id: str) -> bool:
        documents = self._load()
        kept = [d for d in documents if d.id != document_id]
        if len(kept) == len(documents):
            return False
        self._write(kept)
        return True
