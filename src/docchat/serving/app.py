"""FastAPI application exposing document upload and chat as a REST API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docchat.config import settings
from docchat.errors import DocChatError
from docchat.ingestion.loader import extract_text
from docchat.ingestion.pipeline import Document
from docchat.retrieval.maintenance import cleanup_corrupted
from docchat.serving.container import AppContainer
from docchat.serving.schemas import (
    ChatRequest,
    ChatResponse,
    ChatSource,
    CleanupResponse,
    EmbeddingHealthResponse,
    ErrorResponse,
    HealthResponse,
    LatestFileResponse,
    ParseResponse,
    UploadRequest,
    UploadResponse,
)

logger = logging.getLogger(__name__)

_PROBE_TEXT = "This is a test sentence for embedding generation."


def _error_response(status_code: int, error: str, code: str, details: str | None = None) -> JSONResponse:
    payload = ErrorResponse(error=error, code=code, details=details)
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(by_alias=True, exclude_none=True),
    )


def _container(request: Request) -> AppContainer:
    return request.app.state.container


def create_app(container: AppContainer | None = None) -> FastAPI:
    """Build the API. *container* is used as-is when given (tests inject one)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.container = container if container is not None else AppContainer(settings)
        await app.state.container.start()
        logger.info("DocChat API ready (index=%s)", app.state.container.store.index_name)
        yield
        logger.info("DocChat API shut down.")

    app = FastAPI(
        title="DocChat API",
        version="0.1.0",
        description="Upload documents and chat with them over a vector index.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error translation ─────────────────────────────────────────────
    @app.exception_handler(DocChatError)
    async def docchat_error_handler(request: Request, exc: DocChatError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
            error = exc.user_message
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
            error = str(exc)
        return _error_response(exc.status_code, error, exc.code, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("%s %s malformed: %s", request.method, request.url.path, exc.errors())
        return _error_response(400, "The request body is malformed.", "validation_error", str(exc.errors()))

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        """Liveness probe plus a cheap vector-store reachability check."""
        c = _container(request)
        reachable = await asyncio.to_thread(c.store.health_check)
        return HealthResponse(vector_store=c.store.index_name, store_reachable=reachable)

    @app.get("/health/embedding", response_model=EmbeddingHealthResponse)
    async def embedding_health(request: Request) -> EmbeddingHealthResponse:
        """Embed a probe sentence end-to-end and report the vector length."""
        c = _container(request)
        vector = await c.embedder.embed_query(_PROBE_TEXT)
        return EmbeddingHealthResponse(
            model=c.embedding_model,
            dimension=len(vector),
            expected_dimension=c.embedding_dimension,
        )

    @app.post("/documents", response_model=UploadResponse)
    async def upload_document(body: UploadRequest, request: Request) -> UploadResponse:
        """Chunk, embed and store a document already converted to text."""
        logger.info("POST /documents (start) file=%s type=%s", body.file_name, body.file_type)
        report = await _container(request).pipeline.ingest(
            Document(file_name=body.file_name, content=body.content, content_type=body.file_type)
        )
        message = "Document processed successfully"
        if report.partial:
            message = f"Document processed with {report.stored_count} of {report.chunk_count} chunks stored"
        logger.info("POST /documents (done) file=%s stored=%d", report.file_name, report.stored_count)
        return UploadResponse(
            message=message,
            chunk_count=report.chunk_count,
            embedding_count=report.embedding_count,
            stored_count=report.stored_count,
            file_name=report.file_name,
            processing_time_seconds=report.elapsed_seconds,
        )

    @app.post("/documents/parse", response_model=ParseResponse, response_model_exclude_none=True)
    async def parse_document(file: UploadFile = File(...)) -> ParseResponse:
        """Extract plain text from an uploaded PDF, DOCX or text file."""
        data = await file.read()
        name = file.filename or "upload"
        logger.info("POST /documents/parse file=%s size=%d", name, len(data))
        extracted = await asyncio.to_thread(extract_text, name, data, file.content_type)
        return ParseResponse(
            text=extracted.text,
            file_name=extracted.file_name,
            character_count=len(extracted.text),
            pages=extracted.pages,
        )

    @app.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
    async def chat(body: ChatRequest, request: Request) -> ChatResponse:
        """Answer a question from the latest (or the named) uploaded document."""
        answer = await _container(request).chat_service.ask(body.message, file_name=body.file_name)
        sources = [ChatSource(file_name=m.file_name, score=m.score) for m in answer.sources]
        return ChatResponse(
            response=answer.response,
            sources=sources or None,
            source_file=answer.source_file,
            timestamp=answer.timestamp,
        )

    @app.get("/files/latest", response_model=LatestFileResponse)
    async def latest_file(request: Request) -> LatestFileResponse:
        c = _container(request)
        entry = c.retriever.latest_file()
        return LatestFileResponse(
            latest_file=entry.file_name if entry else None,
            uploaded_at=entry.latest_timestamp if entry else None,
            total_files=len(c.registry),
        )

    @app.post("/maintenance/cleanup-corrupted", response_model=CleanupResponse)
    async def cleanup(request: Request) -> CleanupResponse:
        """Delete stored records whose text looks like binary garbage."""
        c = _container(request)
        report = await asyncio.to_thread(
            cleanup_corrupted,
            c.store,
            c.registry,
            batch_size=c.pipeline_config.upsert_batch_size,
        )
        if report.scanned_count == 0:
            message = "No vectors found in the database"
        elif report.deleted_count == 0:
            message = "No corrupted vectors found"
        else:
            message = f"Successfully deleted {report.deleted_count} corrupted vectors"
        return CleanupResponse(
            message=message,
            deleted_count=report.deleted_count,
            superseded_deleted_count=report.superseded_deleted_count,
        )

    return app


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
