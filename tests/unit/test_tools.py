"""Unit tests for the tool registry and the built-in chat tools."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import SAMPLE_ANALYSIS, FakeImageProvider, fake_vision_llm
from langchain_core.messages import ToolMessage
from langchain_core.tools import StructuredTool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, ValidationError

from ai_lab.chat.registry import ToolRegistry, ToolResult
from ai_lab.chat.tools import build_tool_registry, convert_currency, make_retrieve_docs
from ai_lab.errors import QueryError, ToolRegistrationError
from ai_lab.images.providers import ImageProviderRegistry
from ai_lab.images.vision import VisionAnalyzer
from ai_lab.retrieval.models import Citation, RetrievalResult


class EchoArgs(BaseModel):
    text: str


async def echo(text: str) -> dict:
    return {"echo": text}


def _echo_tool(name: str = "echo", **overrides) -> StructuredTool:
    fields = {"coroutine": echo, "name": name, "description": "Echo text back", "args_schema": EchoArgs}
    fields.update(overrides)
    return StructuredTool.from_function(**fields)


def _retriever(results=None, error: Exception | None = None) -> MagicMock:
    retriever = MagicMock()
    if error is not None:
        retriever.search = AsyncMock(side_effect=error)
    else:
        retriever.search = AsyncMock(return_value=results or [])
    return retriever


def _registry(retriever=None, images=None, vision=None) -> ToolRegistry:
    return build_tool_registry(
        retriever or _retriever(),
        images or ImageProviderRegistry([FakeImageProvider("openai")]),
        vision or VisionAnalyzer(fake_vision_llm(SAMPLE_ANALYSIS)),
        max_results=5,
        max_threshold=0.3,
    )


async def _call(registry: ToolRegistry, name: str, arguments: dict) -> dict:
    return await registry.get(name).ainvoke(arguments)


# ── Registry ────────────────────────────────────────────────────────────


class TestToolRegistry:
    def test_register_and_describe(self) -> None:
        registry = ToolRegistry()
        registry.register(_echo_tool())
        assert "echo" in registry
        assert len(registry) == 1
        schema = convert_to_openai_tool(registry.get("echo"))
        assert schema["function"]["name"] == "echo"
        assert schema["function"]["parameters"]["properties"]["text"]["type"] == "string"

    @pytest.mark.parametrize("name", ["has space", "x" * 65, "dots.not.allowed"])
    def test_bad_name_rejected(self, name: str) -> None:
        with pytest.raises(ToolRegistrationError, match="Invalid tool name"):
            ToolRegistry().register(_echo_tool(name))

    def test_duplicate_rejected(self) -> None:
        registry = ToolRegistry()
        registry.register(_echo_tool())
        with pytest.raises(ToolRegistrationError, match="already registered"):
            registry.register(_echo_tool())

    def test_schema_must_be_model(self) -> None:
        json_schema = {"type": "object", "properties": {"text": {"type": "string"}}}
        with pytest.raises(ToolRegistrationError, match="pydantic model"):
            ToolRegistry().register(_echo_tool(args_schema=json_schema))

    def test_tool_must_be_async(self) -> None:
        sync_tool = StructuredTool.from_function(
            func=lambda text: text, name="echo", description="d", args_schema=EchoArgs
        )
        with pytest.raises(ToolRegistrationError, match="async"):
            ToolRegistry().register(sync_tool)

    @pytest.mark.asyncio
    async def test_arguments_validated_per_call(self) -> None:
        calls: list[str] = []

        async def record(text: str) -> None:
            calls.append(text)

        registry = ToolRegistry()
        registry.register(_echo_tool(coroutine=record))
        with pytest.raises(ValidationError):
            await _call(registry, "echo", {"wrong": 1})
        assert calls == []


class TestToolResult:
    def test_json_output_decoded(self) -> None:
        message = ToolMessage(content='{"echo": "hi"}', name="echo", tool_call_id="call_1")
        result = ToolResult.from_message(message)
        assert result == ToolResult(tool_name="echo", success=True, output={"echo": "hi"})

    def test_plain_text_output_kept(self) -> None:
        message = ToolMessage(content="done", name="echo", tool_call_id="call_1")
        assert ToolResult.from_message(message).output == "done"

    def test_error_status(self) -> None:
        message = ToolMessage(content="Error: boom", name="echo", tool_call_id="call_1", status="error")
        result = ToolResult.from_message(message)
        assert result.success is False
        assert result.error == "Error: boom"
        assert result.output is None


# ── Built-in tools ──────────────────────────────────────────────────────


class TestBuiltinRegistry:
    def test_five_tools(self) -> None:
        assert set(_registry().names) == {
            "get_weather",
            "convert_currency",
            "retrieve_docs",
            "generate_image",
            "describe_image",
        }


class TestWeather:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("units", "temperature", "unit"),
        [("celsius", 22.0, "°C"), ("fahrenheit", 72.0, "°F"), ("kelvin", 295.15, "K")],
    )
    async def test_units(self, units: str, temperature: float, unit: str) -> None:
        output = await _call(_registry(), "get_weather", {"location": "Paris", "units": units})
        assert output["location"] == "Paris"
        assert output["temperature"] == temperature
        assert output["units"] == unit
        assert output["humidity"] == 65

    @pytest.mark.asyncio
    async def test_default_units_celsius(self) -> None:
        output = await _call(_registry(), "get_weather", {"location": "Oslo"})
        assert output["units"] == "°C"

    @pytest.mark.asyncio
    async def test_unknown_units_rejected(self) -> None:
        with pytest.raises(ValidationError):
            await _call(_registry(), "get_weather", {"location": "Oslo", "units": "rankine"})


class TestCurrency:
    @pytest.mark.asyncio
    async def test_usd_to_eur(self) -> None:
        output = await _call(_registry(), "convert_currency", {"amount": 100, "from": "USD", "to": "EUR"})
        assert output["converted_amount"] == 85.0
        assert output["exchange_rate"] == 0.85
        assert output["from"] == "USD"

    @pytest.mark.asyncio
    async def test_cross_rate_and_case(self) -> None:
        output = await convert_currency(73, "gbp", "usd")
        assert output["converted_amount"] == 100.0
        assert output["to"] == "USD"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "arguments",
        [{"amount": 0, "from": "USD", "to": "EUR"}, {"amount": 5, "from": "US", "to": "EUR"}],
    )
    async def test_invalid_arguments(self, arguments: dict) -> None:
        with pytest.raises(ValidationError):
            await _call(_registry(), "convert_currency", arguments)


class TestRetrieveDocs:
    @pytest.mark.asyncio
    async def test_formats_results(self) -> None:
        results = [
            RetrievalResult(
                content="Pinecone namespaces isolate data.",
                citation=Citation(chunk_id="c1", title="Guide.pdf", page=3, score=0.8765),
            ),
            RetrievalResult(content="Second", citation=Citation(chunk_id="c2", title="Notes", score=0.5)),
        ]
        retriever = _retriever(results)
        output = await make_retrieve_docs(retriever)(query="namespaces", top_k=10, threshold=0.1)
        retriever.search.assert_awaited_once_with("namespaces", k=5, threshold=0.1)
        assert output["total_results"] == 2
        first = output["results"][0]
        assert first == {
            "id": "c1",
            "content": "Pinecone namespaces isolate data.",
            "source": "Guide.pdf",
            "page": 3,
            "relevance_score": 0.88,
            "rank": 1,
        }
        assert output["results"][1]["rank"] == 2

    @pytest.mark.asyncio
    async def test_threshold_capped(self) -> None:
        retriever = _retriever([])
        await _call(_registry(retriever=retriever), "retrieve_docs", {"query": "q", "threshold": 0.9})
        retriever.search.assert_awaited_once_with("q", k=5, threshold=0.3)

    @pytest.mark.asyncio
    async def test_no_results(self) -> None:
        output = await _call(_registry(retriever=_retriever([])), "retrieve_docs", {"query": "anything"})
        assert output["results"] == []
        assert output["message"].startswith("No relevant documents found")
        assert "error" not in output

    @pytest.mark.asyncio
    async def test_store_failure_reported(self) -> None:
        retriever = _retriever(error=QueryError("Failed to retrieve relevant documents"))
        output = await _call(_registry(retriever=retriever), "retrieve_docs", {"query": "anything"})
        assert output["error"] is True
        assert output["message"] == "Error searching documents: Failed to retrieve relevant documents"

    @pytest.mark.asyncio
    async def test_top_k_bounds(self) -> None:
        with pytest.raises(ValidationError):
            await _call(_registry(), "retrieve_docs", {"query": "q", "top_k": 50})


class TestGenerateImage:
    @pytest.mark.asyncio
    async def test_default_provider(self) -> None:
        provider = FakeImageProvider("openai")
        output = await _call(_registry(images=ImageProviderRegistry([provider])), "generate_image", {"prompt": "a cat"})
        assert output["success"] is True
        assert output["provider"] == "openai"
        assert output["image_url"] == "https://images.example.com/openai.png"
        assert output["metadata"]["cost"] == 0.04
        assert provider.requests[0].prompt == "a cat"

    @pytest.mark.asyncio
    async def test_explicit_provider(self) -> None:
        images = ImageProviderRegistry([FakeImageProvider("openai"), FakeImageProvider("replicate")])
        output = await _call(
            _registry(images=images), "generate_image", {"prompt": "a mountain lake at dawn", "provider": "replicate"}
        )
        assert output["provider"] == "replicate"

    @pytest.mark.asyncio
    async def test_no_provider_available(self) -> None:
        images = ImageProviderRegistry([FakeImageProvider("openai", available=False)])
        output = await _call(_registry(images=images), "generate_image", {"prompt": "a cat"})
        assert output["success"] is False
        assert "No image generation providers" in output["error"]

    @pytest.mark.asyncio
    async def test_provider_failure(self) -> None:
        images = ImageProviderRegistry([FakeImageProvider("openai", error=RuntimeError("content policy"))])
        output = await _call(_registry(images=images), "generate_image", {"prompt": "a cat"})
        assert output["success"] is False
        assert output["error"] == "content policy"


class TestDescribeImage:
    @pytest.mark.asyncio
    async def test_analysis_returned(self) -> None:
        output = await _call(_registry(), "describe_image", {"image_url": "https://example.com/bike.jpg"})
        assert output["success"] is True
        assert output["analysis"]["objects"] == ["bicycle", "wall"]
        assert output["metadata"]["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_analysis_failure(self) -> None:
        vision = VisionAnalyzer(fake_vision_llm(RuntimeError("vision down")))
        output = await _call(_registry(vision=vision), "describe_image", {"image_url": "https://x/y.png"})
        assert output["success"] is False
        assert output["error"] == "vision down"
