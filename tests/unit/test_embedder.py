"""Unit tests for the embedding client."""

from __future__ import annotations

import math

import pytest
from langchain_core.embeddings import Embeddings

from ai_lab.errors import EmbeddingError
from ai_lab.ingestion.embedder import OpenAIEmbedder, cosine_similarity, validate_embedding


class RecordingEmbeddings(Embeddings):
    """Returns ``[len(text), 1.0]`` for every text and records each call."""

    def __init__(self, fail_on_call: int | None = None) -> None:
        self.batches: list[list[str]] = []
        self.queries: list[str] = []
        self.fail_on_call = fail_on_call

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        if self.fail_on_call is not None and len(self.batches) == self.fail_on_call:
            raise RuntimeError("upstream 500")
        return [[float(len(t)), 1.0] for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        if self.fail_on_call is not None:
            raise RuntimeError("upstream 500")
        return [float(len(text)), 1.0]


class TestEmbed:
    @pytest.mark.asyncio
    async def test_single_text(self) -> None:
        backend = RecordingEmbeddings()
        embedder = OpenAIEmbedder(dimensions=2, embeddings=backend)
        assert await embedder.embed("hello") == [5.0, 1.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_text_rejected(self, text: str) -> None:
        embedder = OpenAIEmbedder(dimensions=2, embeddings=RecordingEmbeddings())
        with pytest.raises(EmbeddingError, match="Text cannot be empty"):
            await embedder.embed(text)

    @pytest.mark.asyncio
    async def test_long_text_truncated(self) -> None:
        backend = RecordingEmbeddings()
        embedder = OpenAIEmbedder(dimensions=2, max_tokens=2, embeddings=backend)
        await embedder.embed("x" * 20)
        assert backend.queries == ["x" * 8]

    @pytest.mark.asyncio
    async def test_upstream_failure_wrapped(self) -> None:
        embedder = OpenAIEmbedder(dimensions=2, embeddings=RecordingEmbeddings(fail_on_call=1))
        with pytest.raises(EmbeddingError, match="Failed to generate embedding"):
            await embedder.embed("hello")

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self) -> None:
        embedder = OpenAIEmbedder(dimensions=3, embeddings=RecordingEmbeddings())
        with pytest.raises(EmbeddingError, match="expected 3"):
            await embedder.embed("hello")
        with pytest.raises(EmbeddingError, match="dimension 3"):
            await embedder.embed_batch(["hello"])


class TestEmbedBatch:
    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        backend = RecordingEmbeddings()
        embedder = OpenAIEmbedder(dimensions=2, embeddings=backend)
        assert await embedder.embed_batch([]) == []
        assert backend.batches == []

    @pytest.mark.asyncio
    async def test_sub_batches_in_order(self) -> None:
        backend = RecordingEmbeddings()
        embedder = OpenAIEmbedder(dimensions=2, batch_size=2, embeddings=backend)
        texts = ["a", "bb", "ccc", "dddd", "eeeee"]
        vectors = await embedder.embed_batch(texts)
        assert [len(b) for b in backend.batches] == [2, 2, 1]
        assert [v[0] for v in vectors] == [1.0, 2.0, 3.0, 4.0, 5.0]

    @pytest.mark.asyncio
    async def test_any_failure_fails_whole_batch(self) -> None:
        backend = RecordingEmbeddings(fail_on_call=2)
        embedder = OpenAIEmbedder(dimensions=2, batch_size=2, embeddings=backend)
        with pytest.raises(EmbeddingError, match="Failed to generate batch embeddings"):
            await embedder.embed_batch(["a", "b", "c", "d"])

    @pytest.mark.asyncio
    async def test_blank_member_rejected(self) -> None:
        embedder = OpenAIEmbedder(dimensions=2, embeddings=RecordingEmbeddings())
        with pytest.raises(EmbeddingError):
            await embedder.embed_batch(["fine", " "])

    @pytest.mark.asyncio
    async def test_deterministic_fake(self, fake_embedder: OpenAIEmbedder) -> None:
        first = await fake_embedder.embed_batch(["alpha", "beta"])
        second = await fake_embedder.embed_batch(["alpha", "beta"])
        assert first == second
        assert all(len(v) == 8 for v in first)


class TestVectorHelpers:
    def test_cosine_identical(self) -> None:
        assert math.isclose(cosine_similarity([1.0, 2.0], [1.0, 2.0]), 1.0)

    def test_cosine_orthogonal(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_cosine_zero_vector(self) -> None:
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_cosine_dimension_mismatch(self) -> None:
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 2.0])

    def test_validate_embedding(self) -> None:
        assert validate_embedding([0.1] * 4, dimensions=4)
        assert not validate_embedding([0.1] * 3, dimensions=4)
        assert not validate_embedding([0.1, float("nan"), 0.1, 0.1], dimensions=4)
