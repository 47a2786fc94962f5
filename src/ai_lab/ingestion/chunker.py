"""Fixed-window text chunking with paragraph / sentence boundary snapping."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from ai_lab.ingestion.models import Chunk, ChunkMetadata, SourceKind

_PARAGRAPH_BREAK = "\n\n"
_SENTENCE_END = "."


class ChunkingOptions(BaseModel):
    """Chunker configuration.

    Attributes
    ----------
    chunk_size:
        Target maximum number of characters per chunk.
    chunk_overlap:
        Characters shared by consecutive chunks.  Not checked against
        ``chunk_size``; the ``min_chunk_size`` advance floor keeps the scan
        moving even when the overlap is larger than the window.
    min_chunk_size:
        Trimmed candidates shorter than this are dropped.
    preserve_paragraphs:
        Prefer ending a chunk at a paragraph break, then at a sentence end,
        over a hard character cut.
    """

    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    min_chunk_size: int = Field(default=100, ge=0)
    preserve_paragraphs: bool = True


DEFAULT_CHUNKING_OPTIONS = ChunkingOptions()


def normalize_text(text: str) -> str:
    """Unify line endings, cap blank-line runs at one, strip the ends."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def chunk_text(
    text: str,
    options: ChunkingOptions | None = None,
    *,
    document_id: str = "",
    document_title: str = "Untitled Document",
    source: SourceKind = "text",
) -> list[Chunk]:
    """Split *text* into bounded, overlapping chunks.

    Parameters
    ----------
    text:
        Raw document text; normalized with :func:`normalize_text` first.
    options:
        Chunking configuration (defaults to :data:`DEFAULT_CHUNKING_OPTIONS`).
    document_id / document_title / source:
        Copied onto every chunk so chunks can be displayed without a join.

    Returns
    -------
    list[Chunk]
        Chunks in increasing ``index`` order.  Empty for blank input.
        A normalized text no longer than ``chunk_size`` always yields exactly
        one chunk, regardless of ``min_chunk_size``.
    """
    opts = options or DEFAULT_CHUNKING_OPTIONS
    clean = normalize_text(text)
    if not clean:
        return []

    def make_chunk(content: str, index: int, start: int, end: int) -> Chunk:
        return Chunk(
            document_id=document_id,
            content=content,
            index=index,
            start_index=start,
            end_index=end,
            metadata=ChunkMetadata(
                word_count=len(content.split()),
                char_count=len(content),
                source=source,
                document_title=document_title,
            ),
        )

    length = len(clean)
    # No upper bound on this branch; see DESIGN.md.
    if length <= opts.chunk_size:
        return [make_chunk(clean, 0, 0, length)]

    chunks: list[Chunk] = []
    min_advance = max(opts.min_chunk_size, 1)
    start = 0
    while start < length:
        end = min(start + opts.chunk_size, length)

        if opts.preserve_paragraphs and end < length:
            end = _snap_to_boundary(clean, start, end, opts.min_chunk_size)

        candidate = clean[start:end].strip()
        if len(candidate) >= opts.min_chunk_size:
            chunks.append(make_chunk(candidate, len(chunks), start, end))

        next_start = max(end - opts.chunk_overlap, start + min_advance)
        if next_start >= end:
            break
        start = next_start

    return chunks


def _snap_to_boundary(text: str, start: int, end: int, min_chunk_size: int) -> int:
    """Pull *end* back to the last paragraph break, else sentence end, in the window.

    Only boundaries lying past ``start + min_chunk_size`` are accepted, and the
    boundary must end inside ``text[start:end]``.
    """
    paragraph = text.rfind(_PARAGRAPH_BREAK, 0, end)
    if paragraph > start + min_chunk_size:
        return paragraph + len(_PARAGRAPH_BREAK)

    sentence = text.rfind(_SENTENCE_END, 0, end)
    if sentence > start + min_chunk_size:
        return sentence + len(_SENTENCE_END)

    return end
