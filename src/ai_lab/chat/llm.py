"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``LLM_BASE_URL`` to any server that
   exposes ``/v1/chat/completions`` (vLLM, a local proxy, …); ``ChatOpenAI``
   works unchanged.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from ai_lab.config import Settings, settings

logger = logging.getLogger(__name__)


def get_llm(temperature: float | None = None, *, config: Settings | None = None) -> ChatOpenAI:
    """Return the configured chat model.

    When ``llm_base_url`` is set the client is pointed at that endpoint
    instead of the OpenAI cloud API, with a dummy key (``"EMPTY"``) if none
    is configured.
    """
    config = config or settings
    kwargs: dict = {
        "model": config.llm_model_name,
        "temperature": config.llm_temperature if temperature is None else temperature,
        "max_tokens": config.llm_max_tokens,
    }

    if config.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", config.llm_base_url)
        kwargs["base_url"] = config.llm_base_url
        kwargs["api_key"] = config.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = config.openai_api_key

    return ChatOpenAI(**kwargs)


def get_vision_llm(*, config: Settings | None = None) -> ChatOpenAI:
    """Return the vision model used for image analysis (low temperature)."""
    config = config or settings
    return ChatOpenAI(
        model=config.vision_model,
        temperature=0.1,
        max_tokens=1000,
        api_key=config.openai_api_key,
    )
