"""Request and result models for image generation and analysis."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

ImageSize = Literal["1024x1024", "1792x1024", "1024x1792"]
ImageStyle = Literal["vivid", "natural"]
ImageQuality = Literal["standard", "hd"]
ProviderId = Literal["openai", "replicate"]
DetailLevel = Literal["low", "high"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Generation ──────────────────────────────────────────────────────────


class ImageGenerationRequest(BaseModel):
    prompt: str = Field(min_length=10, max_length=4000)
    size: ImageSize = "1024x1024"
    style: ImageStyle = "vivid"
    quality: ImageQuality = "standard"
    provider: ProviderId | None = None


class ImageMetadata(BaseModel):
    id: str
    url: str
    prompt: str
    revised_prompt: str | None = None
    provider: ProviderId
    size: str
    style: str | None = None
    quality: str | None = None
    generated_at: datetime = Field(default_factory=_utcnow)
    cost: float | None = None
    model: str | None = None


class ImageGenerationResult(BaseModel):
    """Tagged outcome of an image generation call.

    On success ``image_url`` is either a ``data:`` URL (inline base64) or a
    provider-hosted URL.
    """

    success: bool
    image_url: str | None = None
    revised_prompt: str | None = None
    image_id: str | None = None
    error: str | None = None
    metadata: ImageMetadata | None = None


# ── Analysis ────────────────────────────────────────────────────────────


class ImageAnalysisRequest(BaseModel):
    image_url: str = Field(min_length=1)
    detail_level: DetailLevel = "high"
    include_text: bool = True
    generate_tags: bool = True


class ImageAnalysis(BaseModel):
    """Structured description returned by the vision model."""

    description: str = Field(description="Detailed description of the image content")
    objects: list[str] = Field(default_factory=list, description="Objects, people, or items visible in the image")
    colors: list[str] = Field(default_factory=list, description="Dominant colors in the image")
    mood: str = Field(default="", description="Overall mood or atmosphere of the image")
    style: str = Field(default="", description="Artistic style, photography type, or visual characteristics")
    text: list[str] = Field(default_factory=list, description="Any text visible in the image")
    tags: list[str] = Field(default_factory=list, description="Relevant tags or keywords for the image")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Confidence score for the analysis")


class AnalysisMetadata(BaseModel):
    model: str
    detail_level: DetailLevel
    analyzed_at: datetime = Field(default_factory=_utcnow)
    cost: float | None = None


class ImageAnalysisResult(BaseModel):
    success: bool
    image_url: str
    analysis: ImageAnalysis | None = None
    metadata: AnalysisMetadata | None = None
    error: str | None = None
