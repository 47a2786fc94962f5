"""Built-in tools exposed to the chat model.

Each tool is a :class:`~langchain_core.tools.StructuredTool` built from an
``async`` function and a pydantic argument schema.  Tools that need services
are closures over them, so :func:`build_tool_registry` can be handed fakes for
the retriever, image registry and vision analyzer in tests.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Literal

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field

from ai_lab.chat.registry import ToolRegistry
from ai_lab.errors import QueryError
from ai_lab.images.models import ImageAnalysisRequest, ImageGenerationRequest

if TYPE_CHECKING:
    from ai_lab.images.providers import ImageProviderRegistry
    from ai_lab.images.vision import VisionAnalyzer
    from ai_lab.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)

# Mock exchange rates relative to USD.
MOCK_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.85,
    "GBP": 0.73,
    "JPY": 110.0,
    "CAD": 1.25,
    "AUD": 1.35,
    "CHF": 0.92,
    "CNY": 6.45,
    "INR": 74.5,
    "BRL": 5.2,
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Argument schemas ────────────────────────────────────────────────────


class WeatherArgs(BaseModel):
    location: str = Field(min_length=1, description="City name, state, country, or coordinates (lat,lon)")
    units: Literal["celsius", "fahrenheit", "kelvin"] = Field(
        default="celsius", description="Temperature units (default: celsius)"
    )


class CurrencyArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: float = Field(gt=0, description="Amount to convert (must be positive)")
    from_currency: str = Field(
        alias="from", min_length=3, max_length=3, description="Source currency code (e.g., USD, EUR, GBP)"
    )
    to_currency: str = Field(
        alias="to", min_length=3, max_length=3, description="Target currency code (e.g., USD, EUR, GBP)"
    )


class RetrieveDocsArgs(BaseModel):
    query: str = Field(min_length=1, description="Search query to find relevant documents")
    top_k: int = Field(default=5, ge=1, le=20, description="Number of results to return (1-20, default: 5)")
    threshold: float = Field(
        default=0.3, ge=0.0, le=1.0, description="Minimum similarity threshold (0-1, default: 0.3)"
    )


class GenerateImageArgs(BaseModel):
    prompt: str = Field(min_length=1, description="Detailed description of the image to generate")
    size: Literal["1024x1024", "1792x1024", "1024x1792"] = "1024x1024"
    style: Literal["vivid", "natural"] = Field(
        default="vivid", description="vivid for dramatic/artistic, natural for realistic"
    )
    quality: Literal["standard", "hd"] = "standard"
    provider: Literal["openai", "replicate"] | None = Field(
        default=None, description="Provider to use (default: best available)"
    )


class DescribeImageArgs(BaseModel):
    image_url: str = Field(min_length=1, description="URL of the image to analyze")
    detail_level: Literal["low", "high"] = "high"
    include_text: bool = True
    generate_tags: bool = True


# ── Tool functions ──────────────────────────────────────────────────────


async def get_weather(location: str, units: str = "celsius") -> dict:
    """Mock current weather for a location."""
    if units == "fahrenheit":
        temperature, wind_speed, unit, feels = 72.0, 8.5, "°F", 75.0
    elif units == "kelvin":
        temperature, wind_speed, unit, feels = 295.15, 3.8, "K", 297.15
    else:
        temperature, wind_speed, unit, feels = 22.0, 3.8, "°C", 24.0

    return {
        "location": location,
        "temperature": temperature,
        "description": "Partly cloudy with light winds",
        "humidity": 65,
        "wind_speed": wind_speed,
        "units": unit,
        "feels_like": feels,
        "visibility": 10,
        "pressure": 1013,
        "timestamp": _now_iso(),
    }


async def convert_currency(amount: float, from_currency: str, to_currency: str) -> dict:
    """Convert with mock rates; unknown codes are treated as parity with USD."""
    source = from_currency.upper()
    target = to_currency.upper()
    rate = MOCK_RATES.get(target, 1.0) / MOCK_RATES.get(source, 1.0)
    return {
        "amount": amount,
        "from": source,
        "to": target,
        "converted_amount": round(amount * rate, 2),
        "exchange_rate": round(rate, 4),
        "last_updated": _now_iso(),
        "provider": "mock-rates",
    }


def _truncate(text: str | None, limit: int) -> str | None:
    if text is None:
        return None
    return text[:limit] + ("..." if len(text) > limit else "")


def make_retrieve_docs(retriever: SemanticRetriever, *, max_results: int = 5, max_threshold: float = 0.3):
    """Document search closed over *retriever*.

    ``top_k`` is capped at *max_results* and ``threshold`` at *max_threshold*,
    so the model can narrow a search but not starve it.
    """

    async def retrieve_docs(query: str, top_k: int = 5, threshold: float = 0.3) -> dict:
        try:
            results = await retriever.search(
                query, k=min(top_k, max_results), threshold=min(threshold, max_threshold)
            )
        except QueryError as exc:
            return {
                "query": query,
                "results": [],
                "message": f"Error searching documents: {exc.message}",
                "total_results": 0,
                "error": True,
            }

        if not results:
            return {
                "query": query,
                "results": [],
                "message": "No relevant documents found for this query. You may need to upload documents first.",
                "total_results": 0,
            }

        formatted = [
            {
                "id": r.citation.chunk_id,
                "content": r.content,
                "source": r.citation.title,
                "page": r.citation.page,
                "relevance_score": round(r.citation.score or 0.0, 2),
                "rank": rank,
            }
            for rank, r in enumerate(results, 1)
        ]
        return {
            "query": query,
            "results": formatted,
            "message": f"Found {len(formatted)} relevant document(s)",
            "total_results": len(formatted),
        }

    return retrieve_docs


def make_generate_image(images: ImageProviderRegistry):
    async def generate_image(
        prompt: str,
        size: str = "1024x1024",
        style: str = "vivid",
        quality: str = "standard",
        provider: str | None = None,
    ) -> dict:
        provider = provider or images.default_provider()
        if provider is None:
            return {
                "success": False,
                "error": "No image generation providers are available. Please check API key configuration.",
                "prompt": prompt,
            }

        # The tool accepts short prompts; the request model needs at least 10 chars.
        request = ImageGenerationRequest.model_construct(
            prompt=prompt,
            size=size,
            style=style,
            quality=quality,
            provider=provider,
        )
        result = await images.generate(provider, request)
        if not result.success:
            return {
                "success": False,
                "error": result.error or "Image generation failed",
                "prompt": prompt,
                "provider": provider,
            }

        return {
            "success": True,
            "image_url": result.image_url,
            "image_id": result.image_id,
            "context_summary": f'Generated {size} image using {provider}: "{_truncate(prompt, 100)}"',
            "revised_prompt": _truncate(result.revised_prompt, 200),
            "prompt": _truncate(prompt, 100),
            "provider": provider,
            "metadata": {
                "size": size,
                "style": style,
                "quality": quality,
                "generated_at": _now_iso(),
                "cost": result.metadata.cost if result.metadata else None,
                "model": result.metadata.model if result.metadata else None,
            },
        }

    return generate_image


def make_describe_image(vision: VisionAnalyzer):
    async def describe_image(
        image_url: str,
        detail_level: str = "high",
        include_text: bool = True,
        generate_tags: bool = True,
    ) -> dict:
        result = await vision.analyze(
            ImageAnalysisRequest(
                image_url=image_url,
                detail_level=detail_level,
                include_text=include_text,
                generate_tags=generate_tags,
            )
        )
        if not result.success or result.analysis is None:
            return {
                "success": False,
                "error": result.error or "Image analysis failed",
                "image_url": image_url,
            }

        return {
            "success": True,
            "image_url": image_url,
            "analysis": result.analysis.model_dump(),
            "metadata": result.metadata.model_dump(mode="json") if result.metadata else None,
        }

    return describe_image


# ── Registry ────────────────────────────────────────────────────────────


def build_tool_registry(
    retriever: SemanticRetriever,
    images: ImageProviderRegistry,
    vision: VisionAnalyzer,
    *,
    max_results: int = 5,
    max_threshold: float = 0.3,
) -> ToolRegistry:
    """Register the five built-in tools.

    Parameters
    ----------
    retriever:
        Backs ``retrieve_docs``.
    images:
        Backs ``generate_image``.
    vision:
        Backs ``describe_image``.
    max_results:
        Upper bound on ``retrieve_docs`` results, whatever ``top_k`` asks for.
    max_threshold:
        Upper bound on the ``retrieve_docs`` similarity threshold.
    """
    registry = ToolRegistry()
    registry.register(
        StructuredTool.from_function(
            coroutine=get_weather,
            name="get_weather",
            description=(
                "Get current weather conditions for a specified location including temperature, "
                "humidity, wind speed, and general conditions"
            ),
            args_schema=WeatherArgs,
        )
    )
    registry.register(
        StructuredTool.from_function(
            coroutine=convert_currency,
            name="convert_currency",
            description=(
                "Convert an amount from one currency to another using current exchange rates. "
                "Supports major world currencies like USD, EUR, GBP, JPY, etc."
            ),
            args_schema=CurrencyArgs,
        )
    )
    registry.register(
        StructuredTool.from_function(
            coroutine=make_retrieve_docs(retriever, max_results=max_results, max_threshold=max_threshold),
            name="retrieve_docs",
            description=(
                "Search through uploaded documents to find relevant information based on a query. "
                "Use this when the user asks questions that might be answered by their documents."
            ),
            args_schema=RetrieveDocsArgs,
        )
    )
    registry.register(
        StructuredTool.from_function(
            coroutine=make_generate_image(images),
            name="generate_image",
            description="Generate an image from a text description using AI. Supports multiple providers and styles.",
            args_schema=GenerateImageArgs,
        )
    )
    registry.register(
        StructuredTool.from_function(
            coroutine=make_describe_image(vision),
            name="describe_image",
            description=(
                "Analyze an image and provide detailed description with structured tags and metadata. "
                "Can extract text and identify objects, colors, mood, and style."
            ),
            args_schema=DescribeImageArgs,
        )
    )
    logger.info("Registered %d tool(s): %s", len(registry), ", ".join(registry.names))
    return registry
