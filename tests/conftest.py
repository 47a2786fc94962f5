"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.messages import AIMessageChunk

from ai_lab.images.models import ImageAnalysis, ImageGenerationRequest, ImageGenerationResult, ImageMetadata
from ai_lab.images.providers import ImageProvider
from ai_lab.ingestion.embedder import OpenAIEmbedder
from ai_lab.retrieval.memory_store import InMemoryVectorStore

EMBEDDING_SIZE = 8


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class ScriptedChatModel:
    """Stand-in for a tool-calling chat model.

    Each call to :meth:`astream` plays the next scripted turn (a list of
    :class:`AIMessageChunk`).  An exception in a turn is raised instead of
    yielded.
    """

    def __init__(self, turns: list[list[Any]] | None = None) -> None:
        self._turns = list(turns or [])
        self.calls: list[list[Any]] = []
        self.bound_tools: list[Any] | None = None

    def bind_tools(self, tools: list[Any], **kwargs: Any) -> ScriptedChatModel:
        self.bound_tools = tools
        return self

    async def astream(self, messages: list[Any], **kwargs: Any):
        self.calls.append(list(messages))
        turn = self._turns.pop(0) if self._turns else [AIMessageChunk(content="")]
        for chunk in turn:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


def tool_call_chunk(name: str, args: str, call_id: str = "call_1") -> AIMessageChunk:
    return AIMessageChunk(
        content="",
        tool_call_chunks=[{"name": name, "args": args, "id": call_id, "index": 0}],
    )


@pytest.fixture()
def fake_embedder() -> OpenAIEmbedder:
    return OpenAIEmbedder(
        "fake-embedding",
        dimensions=EMBEDDING_SIZE,
        embeddings=DeterministicFakeEmbedding(size=EMBEDDING_SIZE),
    )


@pytest.fixture()
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore("test-namespace", dimension=EMBEDDING_SIZE)


# ── Image fakes ─────────────────────────────────────────────────────────


class FakeImageProvider(ImageProvider):
    """Provider that returns a fixed hosted URL, or raises *error* when set."""

    name = "Fake provider"

    def __init__(self, provider_id: str = "openai", *, available: bool = True, error: Exception | None = None) -> None:
        self.id = provider_id
        self._available = available
        self._error = error
        self.requests: list[ImageGenerationRequest] = []

    @property
    def is_available(self) -> bool:
        return self._available

    async def generate(self, request: ImageGenerationRequest) -> ImageGenerationResult:
        self.requests.append(request)
        if self._error is not None:
            raise self._error
        url = f"https://images.example.com/{self.id}.png"
        return ImageGenerationResult(
            success=True,
            image_url=url,
            image_id=f"{self.id}-1",
            revised_prompt=f"revised: {request.prompt}",
            metadata=ImageMetadata(
                id=f"{self.id}-1",
                url=url,
                prompt=request.prompt,
                provider=self.id,
                size=request.size,
                cost=0.04,
                model="fake-model",
            ),
        )


def fake_vision_llm(analysis: ImageAnalysis | Exception) -> MagicMock:
    """Chat-model mock whose structured-output runnable returns *analysis*."""
    llm = MagicMock()
    structured = llm.with_structured_output.return_value
    if isinstance(analysis, Exception):
        structured.ainvoke = AsyncMock(side_effect=analysis)
    else:
        structured.ainvoke = AsyncMock(return_value=analysis)
    return llm


SAMPLE_ANALYSIS = ImageAnalysis(
    description="A red bicycle leaning against a brick wall",
    objects=["bicycle", "wall"],
    colors=["red", "brown"],
    mood="calm",
    style="street photography",
    text=["NO PARKING"],
    tags=["bike", "urban"],
    confidence=0.9,
)
