"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

from ai_lab.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key")
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible chat endpoint. Leave empty to "
            "use the OpenAI cloud API."
        ),
    )
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1000
    chat_max_steps: int = Field(default=5, description="Tool-calling steps allowed per chat request")

    # Vector store
    vector_store_backend: str = Field(default="pinecone", description="'pinecone' or 'memory'")
    pinecone_api_key: str = ""
    pinecone_index_name: str = "ai-lab-rag"
    pinecone_namespace: str = "ai-lab-documents"

    # Embedding
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_batch_size: int = 100
    embedding_max_tokens: int = 8192

    # Retrieval
    rag_top_k: int = 5
    rag_threshold: float = 0.3

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100
    preserve_paragraphs: bool = True

    # Images
    image_model: str = "dall-e-3"
    replicate_api_token: str = ""
    replicate_model: str = "stability-ai/sdxl"
    default_image_provider: str = "openai"
    max_image_size: int = 10 * 1024 * 1024
    supported_image_formats: list[str] = ["jpg", "jpeg", "png", "webp", "gif"]

    # Vision
    vision_model: str = "gpt-4o"
    vision_detail_level: Literal["low", "high"] = "high"

    # App
    max_file_size: int = 10 * 1024 * 1024
    max_conversations: int = 50
    storage_dir: str = ".ai_lab"
    debug: bool = False
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_required(self) -> None:
        """Raise :class:`ConfigurationError` when a required credential is missing.

        Image generation through Replicate is optional, so a missing token only
        produces a warning.
        """
        missing: list[str] = []
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if self.vector_store_backend == "pinecone" and not self.pinecone_api_key:
            missing.append("PINECONE_API_KEY")

        if not self.replicate_api_token:
            logger.warning("REPLICATE_API_TOKEN is not set - Replicate image generation is disabled")

        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                details={"missing": missing},
            )


# Import `settings` wherever defaults are needed; clients receive values explicitly.
settings = Settings()
