"""Error taxonomy shared by the ingestion, retrieval and serving layers.

Every error carries a machine-readable ``code``, the HTTP status the serving
layer answers with, and a message that is safe to show to end users.
"""

from __future__ import annotations


class DocChatError(Exception):
    """Base class for all errors raised by :mod:`docchat`."""

    code = "internal_error"
    status_code = 500
    user_message = "Something went wrong while handling the request."

    def __init__(self, message: str | None = None, *, details: str | None = None) -> None:
        super().__init__(message or self.user_message)
        self.details = details


class ValidationError(DocChatError):
    """Missing or malformed request fields; raised before any external call."""

    code = "validation_error"
    status_code = 400
    user_message = "The request is missing required fields or is malformed."


class ProviderError(DocChatError):
    """The embedding or chat provider failed or returned a malformed payload."""

    code = "provider_error"
    status_code = 502
    user_message = "The AI provider returned an error. Please try again later."


class QuotaExceeded(ProviderError):
    """The provider rate-limited us (HTTP 429)."""

    code = "quota_exceeded"
    status_code = 429
    user_message = (
        "The AI provider quota has been exceeded. Add credits to the provider "
        "account or enable mock vectors for testing."
    )


class EmbeddingFailure(ProviderError):
    """A chunk could not be embedded at any truncation level."""

    code = "embedding_failure"
    user_message = "Failed to create embeddings."


class GenerationFailure(ProviderError):
    """The chat model did not produce an answer."""

    code = "generation_failure"
    user_message = "Failed to generate a response."


class StorageError(DocChatError):
    """The vector database rejected a read or write."""

    code = "storage_error"
    status_code = 503
    user_message = "The vector database is unavailable."


class DimensionMismatch(StorageError):
    """An embedding's length does not match the index dimension."""

    code = "dimension_mismatch"
    user_message = "Embedding dimension does not match the vector index."


class ChunkTooLarge(DocChatError):
    """A chunk exceeds the embedding byte ceiling.

    Handled inside the embedder by truncation; only logged, never returned
    to a client.
    """

    code = "chunk_too_large"
    status_code = 413


def status_code_of(exc: BaseException) -> int | None:
    """Find an HTTP status on *exc* or anything in its cause chain.

    OpenAI errors expose ``status_code``; Google API errors expose ``code``.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attr in ("status_code", "code"):
            value = getattr(current, attr, None)
            if isinstance(value, int) and not isinstance(value, bool):
                return int(value)
        current = current.__cause__ or current.__context__
    return None
