"""Request and response bodies of the HTTP API.

Fields are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Requests ──────────────────────────────────────────────────────────
class UploadRequest(ApiModel):
    """A document already converted to text by the client."""

    file_name: str = ""
    content: str = ""
    file_type: str = "text/plain"


class ChatRequest(ApiModel):
    message: str = ""
    # Scope the answer to this file instead of the latest upload.
    file_name: str | None = None


# ── Responses ─────────────────────────────────────────────────────────
class UploadResponse(ApiModel):
    success: bool = True
    message: str
    chunk_count: int
    embedding_count: int
    stored_count: int
    file_name: str
    processing_time_seconds: float


class ParseResponse(ApiModel):
    success: bool = True
    text: str
    file_name: str
    character_count: int
    pages: int | None = None


class ChatSource(ApiModel):
    file_name: str | None = None
    score: float | None = None


class ChatResponse(ApiModel):
    success: bool = True
    response: str
    sources: list[ChatSource] | None = None
    source_file: str | None = None
    timestamp: datetime


class LatestFileResponse(ApiModel):
    success: bool = True
    latest_file: str | None = None
    uploaded_at: datetime | None = None
    total_files: int = 0


class CleanupResponse(ApiModel):
    success: bool = True
    message: str
    deleted_count: int
    superseded_deleted_count: int = 0


class HealthResponse(ApiModel):
    status: str = "ok"
    vector_store: str | None = None
    store_reachable: bool | None = None


class EmbeddingHealthResponse(ApiModel):
    success: bool = True
    model: str
    dimension: int
    expected_dimension: int


class ErrorResponse(ApiModel):
    success: bool = False
    error: str
    code: str
    details: str | None = None
