"""Image generation providers and the registry that chooses between them."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import replicate
from openai import AsyncOpenAI

from ai_lab.images.models import ImageGenerationRequest, ImageGenerationResult, ImageMetadata

logger = logging.getLogger(__name__)

# USD per image, keyed by quality then size.
DALLE3_PRICING: dict[str, dict[str, float]] = {
    "standard": {"1024x1024": 0.040, "1792x1024": 0.080, "1024x1792": 0.080},
    "hd": {"1024x1024": 0.080, "1792x1024": 0.120, "1024x1792": 0.120},
}
REPLICATE_PRICING: dict[str, float] = {"standard": 0.003, "hd": 0.005}


def dalle_cost(size: str, quality: str) -> float:
    return DALLE3_PRICING.get(quality, {}).get(size, 0.040)


class ImageProvider(ABC):
    """One text-to-image backend.

    Subclasses raise on upstream failure; :class:`ImageProviderRegistry`
    turns exceptions into failed :class:`ImageGenerationResult` objects.
    """

    id: str
    name: str
    description: str = ""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """``True`` when the provider has the credentials it needs."""
        ...

    @abstractmethod
    async def generate(self, request: ImageGenerationRequest) -> ImageGenerationResult:
        ...

    def status(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_available": self.is_available,
            "status": "active" if self.is_available else "unavailable",
        }


class OpenAIImageProvider(ImageProvider):
    """DALL-E 3 through the OpenAI images API.

    The image comes back as base64 and is returned as a ``data:image/png``
    URL, together with the prompt DALL-E actually used.
    """

    id = "openai"
    name = "OpenAI DALL-E 3"
    description = "High-quality image generation with natural language understanding"

    def __init__(
        self,
        *,
        api_key: str = "",
        model: str = "dall-e-3",
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._client = client or (AsyncOpenAI(api_key=api_key) if api_key else None)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def generate(self, request: ImageGenerationRequest) -> ImageGenerationResult:
        if self._client is None:
            raise RuntimeError("OpenAI API key is required for image generation")

        logger.info("Generating %s image with %s", request.size, self.model)
        response = await self._client.images.generate(
            model=self.model,
            prompt=request.prompt,
            size=request.size,
            style=request.style,
            quality=request.quality,
            response_format="b64_json",
            n=1,
        )
        image = response.data[0]
        image_url = f"data:image/png;base64,{image.b64_json}"
        image_id = f"openai-{int(time.time() * 1000)}"

        return ImageGenerationResult(
            success=True,
            image_url=image_url,
            revised_prompt=image.revised_prompt,
            image_id=image_id,
            metadata=ImageMetadata(
                id=image_id,
                url=image_url,
                prompt=request.prompt,
                revised_prompt=image.revised_prompt,
                provider="openai",
                size=request.size,
                style=request.style,
                quality=request.quality,
                model=self.model,
                cost=dalle_cost(request.size, request.quality),
            ),
        )


class ReplicateImageProvider(ImageProvider):
    """Stable Diffusion XL hosted on Replicate.

    Replicate returns a hosted image URL rather than inline data.  ``style``
    is folded into the prompt and ``hd`` raises the inference step count.
    """

    id = "replicate"
    name = "Replicate SDXL"
    description = "Stable Diffusion XL for diverse artistic styles and high-resolution images"

    def __init__(
        self,
        *,
        api_token: str = "",
        model: str = "stability-ai/sdxl",
        client: replicate.Client | None = None,
    ) -> None:
        self.model = model
        self._client = client or (replicate.Client(api_token=api_token) if api_token else None)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def generate(self, request: ImageGenerationRequest) -> ImageGenerationResult:
        if self._client is None:
            raise RuntimeError("Replicate API token is required for image generation")

        width, height = (int(v) for v in request.size.split("x"))
        prompt = request.prompt if request.style == "vivid" else f"{request.prompt}, natural photographic style"
        logger.info("Generating %s image with %s", request.size, self.model)
        output = await self._client.async_run(
            self.model,
            input={
                "prompt": prompt,
                "width": width,
                "height": height,
                "num_outputs": 1,
                "num_inference_steps": 50 if request.quality == "hd" else 25,
            },
        )

        first = (output[0] if output else None) if isinstance(output, list) else output
        if not first:
            raise RuntimeError("Replicate returned no image")
        image_url = str(getattr(first, "url", first))
        image_id = f"replicate-{int(time.time() * 1000)}"

        return ImageGenerationResult(
            success=True,
            image_url=image_url,
            image_id=image_id,
            metadata=ImageMetadata(
                id=image_id,
                url=image_url,
                prompt=request.prompt,
                provider="replicate",
                size=request.size,
                style=request.style,
                quality=request.quality,
                model=self.model,
                cost=REPLICATE_PRICING[request.quality],
            ),
        )


class ImageProviderRegistry:
    """Registry of image providers, in preference order.

    Parameters
    ----------
    providers:
        Providers keyed by id; the first available one is the default.
    """

    def __init__(self, providers: list[ImageProvider]) -> None:
        self._providers: dict[str, ImageProvider] = {p.id: p for p in providers}

    def get(self, provider_id: str) -> ImageProvider | None:
        return self._providers.get(provider_id)

    def available(self) -> list[ImageProvider]:
        return [p for p in self._providers.values() if p.is_available]

    def default_provider(self) -> str | None:
        available = self.available()
        return available[0].id if available else None

    def status(self) -> list[dict[str, Any]]:
        return [p.status() for p in self._providers.values()]

    async def generate(self, provider_id: str, request: ImageGenerationRequest) -> ImageGenerationResult:
        """Generate with *provider_id*; every failure is returned, never raised."""
        provider = self.get(provider_id)
        if provider is None:
            return ImageGenerationResult(success=False, error=f"Provider '{provider_id}' not found")
        if not provider.is_available:
            return ImageGenerationResult(
                success=False,
                error=f"Provider '{provider_id}' is not available. Check API key configuration.",
            )

        try:
            result = await provider.generate(request)
        except Exception as exc:
            logger.exception("Image generation with %s failed", provider_id)
            return ImageGenerationResult(success=False, error=str(exc) or "Image generation failed")

        logger.info(
            "Generated image %s with %s (cost=%s)",
            result.image_id,
            provider_id,
            result.metadata.cost if result.metadata else None,
        )
        return result
