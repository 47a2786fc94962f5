"""Service container — every external client, built once and passed explicitly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import Request

from ai_lab.chat.llm import get_llm, get_vision_llm
from ai_lab.chat.tools import build_tool_registry
from ai_lab.images.providers import ImageProviderRegistry, OpenAIImageProvider, ReplicateImageProvider
from ai_lab.images.vision import VisionAnalyzer
from ai_lab.ingestion.chunker import ChunkingOptions
from ai_lab.ingestion.embedder import OpenAIEmbedder
from ai_lab.ingestion.pipeline import IngestionPipeline
from ai_lab.retrieval.memory_store import InMemoryVectorStore
from ai_lab.retrieval.retriever import SemanticRetriever
from ai_lab.storage.chat_history import ChatHistoryStore
from ai_lab.storage.documents import DocumentLibrary
from ai_lab.storage.kv import JsonFileStore

if TYPE_CHECKING:
    import httpx
    from langchain_core.language_models import BaseChatModel

    from ai_lab.chat.registry import ToolRegistry
    from ai_lab.config import Settings
    from ai_lab.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler may need."""

    settings: Settings
    llm: BaseChatModel
    embedder: OpenAIEmbedder
    store: VectorStoreBase
    retriever: SemanticRetriever
    pipeline: IngestionPipeline
    library: DocumentLibrary
    history: ChatHistoryStore
    images: ImageProviderRegistry
    vision: VisionAnalyzer
    tools: ToolRegistry


def build_vector_store(config: Settings) -> VectorStoreBase:
    if config.vector_store_backend == "memory":
        logger.info("Using in-memory vector store (namespace=%s)", config.pinecone_namespace)
        return InMemoryVectorStore(config.pinecone_namespace, dimension=config.embedding_dimensions)
    if config.vector_store_backend == "pinecone":
        from ai_lab.retrieval.pinecone_store import PineconeVectorStore

        logger.info("Using Pinecone index %s (namespace=%s)", config.pinecone_index_name, config.pinecone_namespace)
        return PineconeVectorStore(
            config.pinecone_index_name,
            config.pinecone_namespace,
            api_key=config.pinecone_api_key,
            dimension=config.embedding_dimensions,
        )
    raise ValueError(f"Unknown vector store backend: {config.vector_store_backend!r}")


def build_services(config: Settings, *, http_client: httpx.AsyncClient | None = None) -> Services:
    """Validate *config* and construct every client.

    Raises
    ------
    ConfigurationError
        When a required credential is missing.
    """
    config.validate_required()

    embedder = OpenAIEmbedder(
        config.embedding_model,
        api_key=config.openai_api_key,
        dimensions=config.embedding_dimensions,
        max_tokens=config.embedding_max_tokens,
        batch_size=config.embedding_batch_size,
    )
    store = build_vector_store(config)
    retriever = SemanticRetriever(
        store, embedder, default_k=config.rag_top_k, score_threshold=config.rag_threshold
    )

    kv = JsonFileStore(Path(config.storage_dir))
    library = DocumentLibrary(kv)
    history = ChatHistoryStore(kv, max_conversations=config.max_conversations, model=config.llm_model_name)

    pipeline = IngestionPipeline(
        embedder,
        store,
        library,
        ChunkingOptions(
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            min_chunk_size=config.min_chunk_size,
            preserve_paragraphs=config.preserve_paragraphs,
        ),
        http_client=http_client,
    )

    providers = [
        OpenAIImageProvider(api_key=config.openai_api_key, model=config.image_model),
        ReplicateImageProvider(api_token=config.replicate_api_token, model=config.replicate_model),
    ]
    providers.sort(key=lambda p: p.id != config.default_image_provider)
    images = ImageProviderRegistry(providers)
    vision = VisionAnalyzer(get_vision_llm(config=config), model_name=config.vision_model)

    tools = build_tool_registry(
        retriever, images, vision, max_results=config.rag_top_k, max_threshold=config.rag_threshold
    )

    return Services(
        settings=config,
        llm=get_llm(config=config),
        embedder=embedder,
        store=store,
        retriever=retriever,
        pipeline=pipeline,
        library=library,
        history=history,
        images=images,
        vision=vision,
        tools=tools,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
