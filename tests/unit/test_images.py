"""Unit tests for image providers, the provider registry and vision analysis."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import SAMPLE_ANALYSIS, FakeImageProvider, fake_vision_llm
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

from ai_lab.images.models import ImageAnalysisRequest, ImageGenerationRequest
from ai_lab.images.providers import (
    ImageProviderRegistry,
    OpenAIImageProvider,
    ReplicateImageProvider,
    dalle_cost,
)
from ai_lab.images.vision import VisionAnalyzer, build_vision_prompt, calculate_vision_cost

PROMPT = "A lighthouse on a cliff at sunset"


def _openai_client(b64: str = "aGVsbG8=", revised: str | None = "A tall lighthouse") -> MagicMock:
    client = MagicMock()
    client.images.generate = AsyncMock(
        return_value=SimpleNamespace(data=[SimpleNamespace(b64_json=b64, revised_prompt=revised)])
    )
    return client


def _replicate_client(output) -> MagicMock:
    client = MagicMock()
    client.async_run = AsyncMock(return_value=output)
    return client


# ── Request validation ──────────────────────────────────────────────────


class TestImageGenerationRequest:
    def test_defaults(self) -> None:
        request = ImageGenerationRequest(prompt=PROMPT)
        assert (request.size, request.style, request.quality, request.provider) == (
            "1024x1024",
            "vivid",
            "standard",
            None,
        )

    @pytest.mark.parametrize(
        "fields",
        [{"prompt": "short"}, {"prompt": "x" * 4001}, {"prompt": PROMPT, "size": "512x512"}],
    )
    def test_rejects_invalid(self, fields: dict) -> None:
        with pytest.raises(ValidationError):
            ImageGenerationRequest(**fields)


# ── OpenAI provider ─────────────────────────────────────────────────────


class TestOpenAIImageProvider:
    @pytest.mark.parametrize(
        ("size", "quality", "cost"),
        [("1024x1024", "standard", 0.04), ("1792x1024", "standard", 0.08), ("1024x1024", "hd", 0.08), ("1024x1792", "hd", 0.12)],
    )
    def test_pricing(self, size: str, quality: str, cost: float) -> None:
        assert dalle_cost(size, quality) == cost

    def test_unavailable_without_key(self) -> None:
        assert OpenAIImageProvider().is_available is False

    @pytest.mark.asyncio
    async def test_generate_returns_data_url(self) -> None:
        client = _openai_client()
        provider = OpenAIImageProvider(client=client)
        result = await provider.generate(ImageGenerationRequest(prompt=PROMPT, quality="hd"))

        assert result.success is True
        assert result.image_url == "data:image/png;base64,aGVsbG8="
        assert result.revised_prompt == "A tall lighthouse"
        assert result.image_id.startswith("openai-")
        assert result.metadata.cost == 0.08
        assert result.metadata.provider == "openai"
        kwargs = client.images.generate.await_args.kwargs
        assert kwargs["model"] == "dall-e-3"
        assert kwargs["response_format"] == "b64_json"
        assert kwargs["quality"] == "hd"
        assert kwargs["n"] == 1


# ── Replicate provider ──────────────────────────────────────────────────


class TestReplicateImageProvider:
    def test_unavailable_without_token(self) -> None:
        assert ReplicateImageProvider().is_available is False

    @pytest.mark.asyncio
    async def test_generate_with_file_output(self) -> None:
        client = _replicate_client([SimpleNamespace(url="https://replicate.delivery/out.png")])
        provider = ReplicateImageProvider(client=client)
        result = await provider.generate(ImageGenerationRequest(prompt=PROMPT, size="1792x1024", quality="hd"))

        assert result.image_url == "https://replicate.delivery/out.png"
        assert result.metadata.cost == 0.005
        model, = client.async_run.await_args.args
        assert model == "stability-ai/sdxl"
        payload = client.async_run.await_args.kwargs["input"]
        assert (payload["width"], payload["height"]) == (1792, 1024)
        assert payload["num_inference_steps"] == 50
        assert payload["prompt"] == PROMPT

    @pytest.mark.asyncio
    async def test_natural_style_folds_into_prompt(self) -> None:
        client = _replicate_client(["https://replicate.delivery/plain.png"])
        provider = ReplicateImageProvider(client=client)
        result = await provider.generate(ImageGenerationRequest(prompt=PROMPT, style="natural"))

        assert result.image_url == "https://replicate.delivery/plain.png"
        assert result.metadata.cost == 0.003
        payload = client.async_run.await_args.kwargs["input"]
        assert payload["prompt"].startswith(PROMPT)
        assert "natural" in payload["prompt"]
        assert payload["num_inference_steps"] == 25

    @pytest.mark.asyncio
    async def test_empty_output_raises(self) -> None:
        provider = ReplicateImageProvider(client=_replicate_client([]))
        with pytest.raises(RuntimeError, match="no image"):
            await provider.generate(ImageGenerationRequest(prompt=PROMPT))


# ── Registry ────────────────────────────────────────────────────────────


class TestImageProviderRegistry:
    def test_default_is_first_available(self) -> None:
        registry = ImageProviderRegistry(
            [FakeImageProvider("openai", available=False), FakeImageProvider("replicate")]
        )
        assert registry.default_provider() == "replicate"
        assert [p.id for p in registry.available()] == ["replicate"]

    def test_no_default_when_none_available(self) -> None:
        assert ImageProviderRegistry([OpenAIImageProvider()]).default_provider() is None

    def test_status(self) -> None:
        registry = ImageProviderRegistry([OpenAIImageProvider(), FakeImageProvider("replicate")])
        status = {s["id"]: s for s in registry.status()}
        assert status["openai"]["is_available"] is False
        assert status["openai"]["status"] == "unavailable"
        assert status["replicate"]["status"] == "active"

    @pytest.mark.asyncio
    async def test_unknown_provider(self) -> None:
        result = await ImageProviderRegistry([]).generate("midjourney", ImageGenerationRequest(prompt=PROMPT))
        assert result.success is False
        assert result.error == "Provider 'midjourney' not found"

    @pytest.mark.asyncio
    async def test_unavailable_provider(self) -> None:
        registry = ImageProviderRegistry([OpenAIImageProvider()])
        result = await registry.generate("openai", ImageGenerationRequest(prompt=PROMPT))
        assert result.success is False
        assert result.error == "Provider 'openai' is not available. Check API key configuration."

    @pytest.mark.asyncio
    async def test_provider_exception_returned(self) -> None:
        client = MagicMock()
        client.images.generate = AsyncMock(side_effect=RuntimeError("Your request was rejected"))
        registry = ImageProviderRegistry([OpenAIImageProvider(client=client)])
        result = await registry.generate("openai", ImageGenerationRequest(prompt=PROMPT))
        assert result.success is False
        assert result.error == "Your request was rejected"

    @pytest.mark.asyncio
    async def test_success_passthrough(self) -> None:
        registry = ImageProviderRegistry([OpenAIImageProvider(client=_openai_client())])
        result = await registry.generate("openai", ImageGenerationRequest(prompt=PROMPT))
        assert result.success is True
        assert result.image_url.startswith("data:image/png;base64,")


# ── Vision ──────────────────────────────────────────────────────────────


class TestVisionPrompt:
    def test_cost(self) -> None:
        assert calculate_vision_cost("high") == 0.01
        assert calculate_vision_cost("low") == 0.005

    def test_prompt_carries_image_and_detail(self) -> None:
        system, human = build_vision_prompt(
            ImageAnalysisRequest(image_url="https://x/cat.png", detail_level="low")
        )
        assert isinstance(system, SystemMessage)
        assert isinstance(human, HumanMessage)
        image_part = human.content[1]
        assert image_part == {"type": "image_url", "image_url": {"url": "https://x/cat.png", "detail": "low"}}

    def test_optional_rules(self) -> None:
        system, _ = build_vision_prompt(
            ImageAnalysisRequest(image_url="https://x/cat.png", include_text=False, generate_tags=False)
        )
        assert "Extract any text" not in system.content
        assert "Generate relevant tags" not in system.content


class TestVisionAnalyzer:
    @pytest.mark.asyncio
    async def test_analyze(self) -> None:
        llm = fake_vision_llm(SAMPLE_ANALYSIS)
        result = await VisionAnalyzer(llm).analyze(ImageAnalysisRequest(image_url="https://x/bike.jpg"))

        assert result.success is True
        assert result.analysis == SAMPLE_ANALYSIS
        assert result.metadata.model == "gpt-4o"
        assert result.metadata.detail_level == "high"
        assert result.metadata.cost == 0.01
        llm.with_structured_output.assert_called_once()

    @pytest.mark.asyncio
    async def test_disabled_fields_cleared(self) -> None:
        analyzer = VisionAnalyzer(fake_vision_llm(SAMPLE_ANALYSIS))
        result = await analyzer.analyze(
            ImageAnalysisRequest(image_url="https://x/bike.jpg", include_text=False, generate_tags=False)
        )
        assert result.analysis.text == []
        assert result.analysis.tags == []
        assert result.analysis.objects == SAMPLE_ANALYSIS.objects

    @pytest.mark.asyncio
    async def test_failure_returned(self) -> None:
        analyzer = VisionAnalyzer(fake_vision_llm(RuntimeError("invalid image")))
        result = await analyzer.analyze(ImageAnalysisRequest(image_url="https://x/broken"))
        assert result.success is False
        assert result.error == "invalid image"
        assert result.analysis is None

    @pytest.mark.asyncio
    async def test_batch_analyze(self) -> None:
        llm = fake_vision_llm(SAMPLE_ANALYSIS)
        requests = [ImageAnalysisRequest(image_url=f"https://x/{i}.png") for i in range(3)]
        results = await VisionAnalyzer(llm).batch_analyze(requests, delay=0)
        assert [r.image_url for r in results] == [r.image_url for r in requests]
        assert llm.with_structured_output.return_value.ainvoke.await_count == 3

    @pytest.mark.asyncio
    async def test_extract_text(self) -> None:
        assert await VisionAnalyzer(fake_vision_llm(SAMPLE_ANALYSIS)).extract_text("https://x/sign.png") == [
            "NO PARKING"
        ]
        assert await VisionAnalyzer(fake_vision_llm(RuntimeError("down"))).extract_text("https://x") == []
