"""
Images — text-to-image generation and image analysis.

Public surface
--------------
- :class:`ImageProviderRegistry` — picks and calls an available provider.
- :class:`OpenAIImageProvider`, :class:`ReplicateImageProvider` — concrete providers.
- :class:`VisionAnalyzer` — structured image analysis with a vision model.
"""

from ai_lab.images.models import (
    ImageAnalysis,
    ImageAnalysisRequest,
    ImageAnalysisResult,
    ImageGenerationRequest,
    ImageGenerationResult,
    ImageMetadata,
)
from ai_lab.images.providers import (
    ImageProvider,
    ImageProviderRegistry,
    OpenAIImageProvider,
    ReplicateImageProvider,
)
from ai_lab.images.vision import VisionAnalyzer

__all__ = [
    "ImageAnalysis",
    "ImageAnalysisRequest",
    "ImageAnalysisResult",
    "ImageGenerationRequest",
    "ImageGenerationResult",
    "ImageMetadata",
    "ImageProvider",
    "ImageProviderRegistry",
    "OpenAIImageProvider",
    "ReplicateImageProvider",
    "VisionAnalyzer",
]
