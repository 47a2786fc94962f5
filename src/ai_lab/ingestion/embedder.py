"""Embedding generation backed by OpenAI embedding models."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from langchain_openai import OpenAIEmbeddings

from ai_lab.errors import EmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)

# Rough token estimate used for truncation: 1 token ≈ 4 characters.
CHARS_PER_TOKEN = 4


class OpenAIEmbedder:
    """Turn text into fixed-length vectors.

    Parameters
    ----------
    model:
        Embedding model identifier.
    api_key:
        OpenAI API key; ignored when *embeddings* is given.
    dimensions:
        Expected vector length.
    max_tokens:
        Token budget per input.  Longer text is truncated to
        ``max_tokens * 4`` characters before submission (lossy).
    batch_size:
        Number of texts sent per upstream call in :meth:`embed_batch`.
    embeddings:
        Pre-built LangChain :class:`Embeddings` implementation (tests inject
        a fake here).
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        *,
        api_key: str = "",
        dimensions: int = 1536,
        max_tokens: int = 8192,
        batch_size: int = 100,
        embeddings: Embeddings | None = None,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.max_chars = max_tokens * CHARS_PER_TOKEN
        self.batch_size = batch_size
        self._embeddings = embeddings or OpenAIEmbeddings(model=model, api_key=api_key)

    async def embed(self, text: str) -> list[float]:
        """Embed a single string.

        Raises
        ------
        EmbeddingError
            When *text* is blank, the upstream call fails, or the vector
            does not have ``dimensions`` finite values.
        """
        prepared = self._prepare(text)
        try:
            vector = await self._embeddings.aembed_query(prepared)
        except Exception as exc:
            logger.exception("Embedding request failed")
            raise EmbeddingError(f"Failed to generate embedding: {exc}") from exc
        if not validate_embedding(vector, self.dimensions):
            raise EmbeddingError(
                f"Failed to generate embedding: expected {self.dimensions} finite values, got {len(vector)}"
            )
        return vector

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many strings, ``batch_size`` at a time.

        Sub-batches are awaited one after another.  A failure anywhere fails
        the whole call; no partial results are returned.
        """
        if not texts:
            return []

        prepared = [self._prepare(t) for t in texts]
        vectors: list[list[float]] = []
        for start in range(0, len(prepared), self.batch_size):
            batch = prepared[start : start + self.batch_size]
            try:
                result = await self._embeddings.aembed_documents(batch)
            except Exception as exc:
                logger.exception("Batch embedding failed at offset %d", start)
                raise EmbeddingError(f"Failed to generate batch embeddings: {exc}") from exc
            if len(result) != len(batch) or not all(validate_embedding(v, self.dimensions) for v in result):
                raise EmbeddingError(
                    f"Failed to generate batch embeddings: expected {len(batch)} vectors of dimension {self.dimensions}"
                )
            vectors.extend(result)
            logger.debug("Embedded batch %d-%d", start, start + len(batch))
        return vectors

    def _prepare(self, text: str) -> str:
        if not text or not text.strip():
            raise EmbeddingError("Text cannot be empty")
        if len(text) > self.max_chars:
            logger.debug("Truncating %d chars to %d before embedding", len(text), self.max_chars)
            return text[: self.max_chars]
        return text


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 if either is all zeros)."""
    if len(a) != len(b):
        raise ValueError("Embeddings must have the same dimensions")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def validate_embedding(vector: list[float], dimensions: int = 1536) -> bool:
    """Return ``True`` when *vector* has the expected length and only finite numbers."""
    return (
        isinstance(vector, list)
        and len(vector) == dimensions
        and all(isinstance(v, (int, float)) and math.isfinite(v) for v in vector)
    )
