"""Image analysis with a vision-capable chat model and structured output."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

from ai_lab.images.models import (
    AnalysisMetadata,
    ImageAnalysis,
    ImageAnalysisRequest,
    ImageAnalysisResult,
)

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)

VISION_SYSTEM = """\
You are an expert image analyst. Analyze the provided image and return a
structured analysis:

1. Provide a detailed, accurate description of what you see
2. List all visible objects, people, animals, or significant items
3. Identify the dominant colors in the image
4. Describe the overall mood, atmosphere, or emotional tone
5. Identify the artistic style, photography type, or visual characteristics
{text_rule}{tag_rule}
Be precise, objective, and comprehensive. Provide a confidence score based on
image clarity and your certainty about the analysis.
"""


def calculate_vision_cost(detail_level: str = "high") -> float:
    """Approximate USD cost of one analysis."""
    return 0.01 if detail_level == "high" else 0.005


def build_vision_prompt(request: ImageAnalysisRequest) -> list:
    system = VISION_SYSTEM.format(
        text_rule="6. Extract any text visible in the image\n" if request.include_text else "",
        tag_rule="7. Generate relevant tags for categorization and search\n" if request.generate_tags else "",
    )
    return [
        SystemMessage(content=system),
        HumanMessage(
            content=[
                {"type": "text", "text": f"Please analyze this image in {request.detail_level} detail."},
                {
                    "type": "image_url",
                    "image_url": {"url": request.image_url, "detail": request.detail_level},
                },
            ]
        ),
    ]


class VisionAnalyzer:
    """Describe images with a vision model.

    Parameters
    ----------
    llm:
        Vision-capable chat model (``gpt-4o`` by default, see
        :func:`~ai_lab.chat.llm.get_vision_llm`).
    model_name:
        Name recorded in the analysis metadata.
    """

    def __init__(self, llm: BaseChatModel, *, model_name: str = "gpt-4o") -> None:
        self._llm = llm
        self._structured = llm.with_structured_output(ImageAnalysis)
        self.model_name = model_name

    async def analyze(self, request: ImageAnalysisRequest) -> ImageAnalysisResult:
        """Analyze one image.  Failures are returned as ``success=False``."""
        logger.info("Analyzing image (%s detail)", request.detail_level)
        try:
            analysis: ImageAnalysis = await self._structured.ainvoke(build_vision_prompt(request))
        except Exception as exc:
            logger.exception("Vision analysis failed")
            return ImageAnalysisResult(
                success=False,
                image_url=request.image_url,
                error=str(exc) or "Image analysis failed",
            )

        updates: dict[str, list[str]] = {}
        if not request.include_text:
            updates["text"] = []
        if not request.generate_tags:
            updates["tags"] = []
        if updates:
            analysis = analysis.model_copy(update=updates)

        logger.info(
            "Vision analysis done: %d object(s), %d tag(s), confidence=%.2f",
            len(analysis.objects),
            len(analysis.tags),
            analysis.confidence,
        )
        return ImageAnalysisResult(
            success=True,
            image_url=request.image_url,
            analysis=analysis,
            metadata=AnalysisMetadata(
                model=self.model_name,
                detail_level=request.detail_level,
                cost=calculate_vision_cost(request.detail_level),
            ),
        )

    async def batch_analyze(
        self,
        requests: list[ImageAnalysisRequest],
        *,
        delay: float = 1.0,
    ) -> list[ImageAnalysisResult]:
        """Analyze images one after another, sleeping *delay* seconds between them."""
        results: list[ImageAnalysisResult] = []
        for i, request in enumerate(requests):
            results.append(await self.analyze(request))
            if delay and i < len(requests) - 1:
                await asyncio.sleep(delay)
        logger.info(
            "Batch analysis: %d/%d successful", sum(r.success for r in results), len(results)
        )
        return results

    async def extract_text(self, image_url: str) -> list[str]:
        """Return the text visible in an image, or ``[]`` on failure."""
        result = await self.analyze(
            ImageAnalysisRequest(image_url=image_url, detail_level="high", include_text=True, generate_tags=False)
        )
        if not result.success or result.analysis is None:
            return []
        return result.analysis.text
