"""FastAPI application exposing the AI Lab as a REST API."""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
import uvicorn
from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ai_lab import __version__
from ai_lab.chat.stream import prepare_messages, stream_chat, to_langchain_messages
from ai_lab.config import settings
from ai_lab.errors import AILabError, NotFoundError, ProviderUnavailableError, ValidationError
from ai_lab.images.models import ImageAnalysisRequest, ImageGenerationRequest
from ai_lab.ingestion.loader import DocumentSource, LiteralSource, RemoteSource
from ai_lab.serving.dependencies import Services, build_services, get_services
from ai_lab.serving.schemas import ChatRequest, ErrorResponse, RagTestRequest, SaveConversationRequest

logger = logging.getLogger(__name__)


def create_app(services: Services | None = None) -> FastAPI:
    """Build the application.

    When *services* is given (tests) it is used as-is; otherwise the service
    container is built from the global settings at start-up.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "services", None) is not None:
            yield
            return
        async with httpx.AsyncClient(follow_redirects=True, timeout=30.0) as http_client:
            app.state.services = build_services(settings, http_client=http_client)
            logger.info("AI Lab services ready (vector store: %s)", settings.vector_store_backend)
            yield

    app = FastAPI(
        title="AI Lab API",
        version=__version__,
        description="Streaming chat with tools, document RAG and image generation/analysis.",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    _register_error_handlers(app)
    _register_routes(app)
    return app


# ── Error handling ────────────────────────────────────────────────────


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AILabError)
    async def ai_lab_error_handler(request: Request, exc: AILabError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message, details=jsonable_encoder(exc.details)).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error="Invalid request", details={"errors": jsonable_encoder(exc.errors())}
            ).model_dump(),
        )


# ── Routes ────────────────────────────────────────────────────────────


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    # -- chat -------------------------------------------------------------

    @app.post("/api/chat")
    async def chat(body: ChatRequest, services: Services = Depends(get_services)) -> StreamingResponse:
        """Stream the assistant's reply as server-sent events."""
        if not body.messages:
            raise ValidationError("Messages array is required and cannot be empty", field="messages")

        prepared = prepare_messages([m.model_dump(exclude_none=True) for m in body.messages])
        history = to_langchain_messages(prepared)
        logger.info("Chat request: %d message(s), %d after preprocessing", len(body.messages), len(prepared))

        async def event_stream() -> AsyncIterator[str]:
            async for event in stream_chat(
                services.llm,
                services.tools,
                history,
                max_steps=services.settings.chat_max_steps,
            ):
                yield f"data: {event.model_dump_json()}\n\n"
            yield "data: [DONE]\n\n"

        return StreamingResponse(event_stream(), media_type="text/event-stream")

    # -- documents --------------------------------------------------------

    @app.post("/api/documents/upload")
    async def upload_document(
        file: UploadFile | None = File(default=None),
        url: str | None = Form(default=None),
        content: str | None = Form(default=None),
        title: str | None = Form(default=None),
        services: Services = Depends(get_services),
    ) -> JSONResponse:
        """Ingest a PDF upload, a URL or pasted text."""
        if file is not None and file.filename:
            is_pdf = file.content_type == "application/pdf" or file.filename.lower().endswith(".pdf")
            if not is_pdf:
                raise ValidationError("Only PDF files are supported", field="file")
            data = await file.read()
            max_size = services.settings.max_file_size
            if len(data) > max_size:
                raise ValidationError(
                    f"File size exceeds the {max_size // (1024 * 1024)}MB limit", field="file"
                )
            source: Any = DocumentSource(data=data, filename=file.filename)
        elif url:
            source = RemoteSource(url=url)
        elif content and content.strip():
            source = LiteralSource(text=content, title=title or "")
        else:
            raise ValidationError("No file, URL, or content provided")

        outcome = await services.pipeline.ingest(source)
        if not outcome.success:
            return JSONResponse(
                status_code=422,
                content=ErrorResponse(error=outcome.error or "Failed to process document").model_dump(),
            )
        return JSONResponse(content=outcome.model_dump(mode="json"))

    @app.get("/api/documents")
    async def list_documents(services: Services = Depends(get_services)) -> dict[str, Any]:
        documents = await asyncio.to_thread(services.library.list)
        return {"documents": [d.model_dump(mode="json") for d in documents], "total": len(documents)}

    @app.delete("/api/documents/{document_id}")
    async def delete_document(document_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
        if not await services.pipeline.delete_document(document_id):
            raise NotFoundError(f"Document not found: {document_id}", details={"id": document_id})
        return {"success": True, "id": document_id}

    # -- images -----------------------------------------------------------

    @app.post("/api/images/generate")
    async def generate_image(
        request: ImageGenerationRequest, services: Services = Depends(get_services)
    ) -> dict[str, Any]:
        provider = request.provider or services.images.default_provider()
        if provider is None:
            raise ProviderUnavailableError(
                "No image generation providers are available. Please check API key configuration."
            )

        result = await services.images.generate(provider, request)
        if not result.success:
            raise AILabError(result.error or "Image generation failed", details={"provider": provider})
        return {
            "success": True,
            "image_url": result.image_url,
            "image_id": result.image_id,
            "revised_prompt": result.revised_prompt,
            "provider": provider,
            "metadata": result.metadata.model_dump(mode="json") if result.metadata else None,
        }

    @app.get("/api/images/providers")
    async def image_providers(services: Services = Depends(get_services)) -> dict[str, Any]:
        return {"providers": services.images.status(), "default": services.images.default_provider()}

    @app.post("/api/images/upload")
    async def upload_image(
        file: UploadFile | None = File(default=None), services: Services = Depends(get_services)
    ) -> dict[str, Any]:
        """Analyze an uploaded image with the vision model."""
        if file is None or not file.filename:
            raise ValidationError("No file provided", field="file")

        formats = services.settings.supported_image_formats
        extension = file.filename.rsplit(".", 1)[-1].lower() if "." in file.filename else ""
        if extension not in formats:
            raise ValidationError(
                f"Unsupported file format. Supported formats: {', '.join(formats)}", field="file"
            )

        data = await file.read()
        max_size = services.settings.max_image_size
        if len(data) > max_size:
            raise ValidationError(f"File too large. Maximum size: {max_size // (1024 * 1024)}MB", field="file")

        mime_type = file.content_type or f"image/{extension}"
        data_url = f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
        result = await services.vision.analyze(
            ImageAnalysisRequest(image_url=data_url, detail_level=services.settings.vision_detail_level)
        )
        if not result.success:
            raise AILabError(result.error or "Image analysis failed")

        return {
            "success": True,
            "image": {
                "id": f"uploaded-{int(time.time() * 1000)}",
                "original_filename": file.filename,
                "size": len(data),
                "mime_type": mime_type,
                "analysis": result.analysis.model_dump() if result.analysis else None,
                "uploaded_at": result.metadata.analyzed_at.isoformat() if result.metadata else None,
                "cost": result.metadata.cost if result.metadata else None,
            },
        }

    # -- retrieval debugging ------------------------------------------------

    @app.get("/api/test-rag")
    async def rag_stats(services: Services = Depends(get_services)) -> dict[str, Any]:
        healthy = await asyncio.to_thread(services.store.health_check)
        stats = await asyncio.to_thread(services.store.stats)
        return {"success": True, "healthy": healthy, "index_stats": stats.model_dump()}

    @app.post("/api/test-rag")
    async def rag_debug_query(
        body: RagTestRequest, services: Services = Depends(get_services)
    ) -> dict[str, Any]:
        """Run a query at threshold 0 and top-k 10 to inspect raw similarity scores."""
        if not body.query.strip():
            raise ValidationError("Query is required", field="query")

        stats = await asyncio.to_thread(services.store.stats)
        embedding = await services.embedder.embed(body.query)
        results = await services.retriever.search_by_embedding(embedding, k=10, threshold=0.0)
        return {
            "success": True,
            "query": body.query,
            "index_stats": stats.model_dump(),
            "query_embedding_dimensions": len(embedding),
            "results": [
                {
                    "id": r.citation.chunk_id,
                    "score": r.citation.score,
                    "content_preview": r.content[:200] + "...",
                    "metadata": r.citation.metadata,
                }
                for r in results
            ],
            "total_results": len(results),
        }

    # -- conversations ------------------------------------------------------

    @app.get("/api/conversations")
    async def list_conversations(services: Services = Depends(get_services)) -> dict[str, Any]:
        summaries = await asyncio.to_thread(services.history.list_summaries)
        return {"conversations": [s.model_dump(mode="json") for s in summaries]}

    @app.delete("/api/conversations")
    async def clear_conversations(services: Services = Depends(get_services)) -> dict[str, bool]:
        await asyncio.to_thread(services.history.clear)
        return {"success": True}

    @app.get("/api/conversations/export")
    async def export_conversations(services: Services = Depends(get_services)) -> Response:
        content = await asyncio.to_thread(services.history.export_json)
        return Response(content=content, media_type="application/json")

    @app.post("/api/conversations/import")
    async def import_conversations(request: Request, services: Services = Depends(get_services)) -> dict[str, Any]:
        raw = (await request.body()).decode("utf-8", errors="replace")
        imported = await asyncio.to_thread(services.history.import_json, raw)
        return {"success": True, "imported": imported}

    @app.get("/api/conversations/{conversation_id}")
    async def get_conversation(conversation_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
        conversation = await asyncio.to_thread(services.history.get, conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation not found: {conversation_id}", details={"id": conversation_id})
        return conversation.model_dump(mode="json")

    @app.put("/api/conversations/{conversation_id}")
    async def save_conversation(
        conversation_id: str,
        body: SaveConversationRequest,
        services: Services = Depends(get_services),
    ) -> dict[str, Any]:
        conversation = await asyncio.to_thread(
            services.history.save, conversation_id, body.messages, title=body.title
        )
        return conversation.model_dump(mode="json")

    @app.delete("/api/conversations/{conversation_id}")
    async def delete_conversation(
        conversation_id: str, services: Services = Depends(get_services)
    ) -> dict[str, Any]:
        if not await asyncio.to_thread(services.history.delete, conversation_id):
            raise NotFoundError(f"Conversation not found: {conversation_id}", details={"id": conversation_id})
        return {"success": True, "id": conversation_id}


app = create_app()


def main() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "ai_lab.serving.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
