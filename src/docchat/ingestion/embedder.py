"""Chunk embedding with truncation fallback and fixed-window batching.

Providers are reached through LangChain's :class:`Embeddings` interface so
OpenAI, Gemini and the deterministic fake used for mock vectors are
interchangeable.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from numbers import Real

from langchain_core.embeddings import DeterministicFakeEmbedding, Embeddings
from pydantic import BaseModel

from docchat.config import PipelineConfig, Settings, settings
from docchat.errors import (
    ChunkTooLarge,
    DimensionMismatch,
    DocChatError,
    EmbeddingFailure,
    ProviderError,
    QuotaExceeded,
    ValidationError,
    status_code_of,
)
from docchat.ingestion.chunker import Chunk, byte_length

logger = logging.getLogger(__name__)

# provider -> (default model, vector length)
DEFAULT_EMBEDDING_MODELS: dict[str, tuple[str, int]] = {
    "openai": ("text-embedding-3-small", 1536),
    "gemini": ("models/embedding-001", 768),
    "mock": ("deterministic-fake", 1536),
}


def embedding_profile(s: Settings = settings) -> tuple[str, int]:
    """Resolve ``(model, dimension)`` from settings and provider defaults.

    Mock vectors keep the configured provider's dimension so they fit the
    same index.
    """
    if s.embedding_provider not in DEFAULT_EMBEDDING_MODELS:
        raise ValueError(f"Unsupported embedding_provider: {s.embedding_provider!r}")
    model, dimension = DEFAULT_EMBEDDING_MODELS[s.embedding_provider]
    return s.embedding_model or model, s.embedding_dimension or dimension


def build_embeddings(s: Settings = settings) -> Embeddings:
    """Return the configured embedding client.

    ``use_mock_vectors`` (or provider ``"mock"``) yields a
    :class:`DeterministicFakeEmbedding`: no network, same text → same vector.
    """
    model, dimension = embedding_profile(s)
    if s.use_mock_vectors or s.embedding_provider == "mock":
        logger.info("Using mock embeddings (dim=%d)", dimension)
        return DeterministicFakeEmbedding(size=dimension)

    if s.embedding_provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        logger.info("Using OpenAI embeddings: %s", model)
        return OpenAIEmbeddings(model=model, api_key=s.openai_api_key)

    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    logger.info("Using Gemini embeddings: %s", model)
    return GoogleGenerativeAIEmbeddings(model=model, google_api_key=s.google_api_key)


class EmbeddedChunk(BaseModel):
    """A chunk paired with the vector computed for it."""

    chunk: Chunk
    vector: list[float]
    embedded_chars: int


class BatchEmbedder:
    """Embed chunks in fixed-size concurrent groups.

    Parameters
    ----------
    embeddings:
        Any LangChain embedding client.
    config:
        Pipeline knobs: byte ceiling, truncation levels, batch size and
        inter-batch delay.
    dimension:
        Expected vector length. ``None`` skips the check.
    """

    def __init__(
        self,
        embeddings: Embeddings,
        config: PipelineConfig | None = None,
        *,
        dimension: int | None = None,
    ) -> None:
        self._embeddings = embeddings
        self.config = config or PipelineConfig()
        self.dimension = dimension

    # -- single calls -----------------------------------------------------------

    async def embed_one(self, text: str) -> list[float]:
        """One provider call for a document chunk's text."""
        try:
            vectors = await self._embeddings.aembed_documents([text])
        except DocChatError:
            raise
        except Exception as exc:
            raise self._translate(exc) from exc
        if not vectors:
            raise ProviderError("Embedding response contained no vectors")
        return self._validate(vectors[0])

    async def embed_query(self, text: str) -> list[float]:
        """Embed a user query. No truncation fallback."""
        if not text or not text.strip():
            raise ValidationError("Query text is empty")
        try:
            vector = await self._embeddings.aembed_query(text)
        except DocChatError:
            raise
        except Exception as exc:
            raise self._translate(exc) from exc
        return self._validate(vector)

    # -- fallback ladder --------------------------------------------------------

    def attempts_for(self, text: str) -> list[str]:
        """Texts to try in order: the full chunk, then each shorter truncation."""
        attempts: list[str] = []
        if byte_length(text) <= self.config.embed_byte_ceiling:
            attempts.append(text)
        for level in sorted(self.config.truncation_levels, reverse=True):
            if len(text) > level:
                attempts.append(text[:level])
        return attempts

    async def embed_chunk(self, chunk: Chunk) -> EmbeddedChunk:
        """Embed *chunk*, truncating and retrying on oversize or failure.

        Raises
        ------
        QuotaExceeded
            The provider rate-limited us; retrying smaller text will not help.
        EmbeddingFailure
            Every truncation level failed.
        """
        size = byte_length(chunk.text)
        oversized = size > self.config.embed_byte_ceiling
        if oversized:
            logger.warning(
                "Chunk %d too large (%d bytes > %d), truncating",
                chunk.index, size, self.config.embed_byte_ceiling,
            )

        last_exc: Exception | None = None
        for text in self.attempts_for(chunk.text):
            try:
                vector = await self.embed_one(text)
            except (QuotaExceeded, DimensionMismatch):
                raise
            except ProviderError as exc:
                last_exc = exc
                logger.warning("Chunk %d failed at %d chars: %s", chunk.index, len(text), exc)
                continue
            if len(text) < len(chunk.text):
                logger.info("Chunk %d embedded after truncation to %d chars", chunk.index, len(text))
            return EmbeddedChunk(chunk=chunk, vector=vector, embedded_chars=len(text))

        if last_exc is None and oversized:
            last_exc = ChunkTooLarge(f"Chunk {chunk.index} is {size} bytes and no truncation level applies")
        raise EmbeddingFailure(
            f"Chunk {chunk.index} could not be embedded",
            details=str(last_exc) if last_exc else None,
        ) from last_exc

    # -- batches ----------------------------------------------------------------

    async def embed_chunks(self, chunks: Sequence[Chunk]) -> list[EmbeddedChunk]:
        """Embed every chunk; failed chunks are logged and dropped.

        Groups of ``batch_size`` run concurrently in a task group; groups run
        one after another with ``inter_batch_delay`` seconds in between. A
        quota or dimension error cancels the rest of its group and is
        re-raised as is.
        """
        batch_size = self.config.batch_size
        total = len(chunks)
        n_batches = math.ceil(total / batch_size) if total else 0
        logger.info("Embedding %d chunks in batches of %d", total, batch_size)

        embedded: list[EmbeddedChunk] = []
        for number, start in enumerate(range(0, total, batch_size), 1):
            batch = chunks[start : start + batch_size]
            logger.info("Processing batch %d/%d", number, n_batches)
            try:
                async with asyncio.TaskGroup() as tg:
                    tasks = [tg.create_task(self._embed_or_skip(c)) for c in batch]
            except ExceptionGroup as group:
                # Siblings are already cancelled; the first error aborts the run.
                raise group.exceptions[0]
            for task in tasks:
                outcome = task.result()
                if outcome is not None:
                    embedded.append(outcome)

            if start + batch_size < total and self.config.inter_batch_delay > 0:
                await asyncio.sleep(self.config.inter_batch_delay)

        logger.info("Embedded %d / %d chunks", len(embedded), total)
        return embedded

    async def _embed_or_skip(self, chunk: Chunk) -> EmbeddedChunk | None:
        try:
            return await self.embed_chunk(chunk)
        except EmbeddingFailure as exc:
            logger.error("Skipping chunk %d: %s (%s)", chunk.index, exc, exc.details)
            return None

    # -- internals --------------------------------------------------------------

    def _translate(self, exc: Exception) -> ProviderError:
        if status_code_of(exc) == 429:
            return QuotaExceeded(details=str(exc))
        return ProviderError(f"Embedding request failed: {exc}", details=type(exc).__name__)

    def _validate(self, vector: object) -> list[float]:
        if not isinstance(vector, (list, tuple)) or not vector:
            raise ProviderError("Embedding response is empty or malformed")
        if not all(isinstance(v, Real) and not isinstance(v, bool) for v in vector):
            raise ProviderError("Embedding response contains non-numeric values")
        if self.dimension is not None and len(vector) != self.dimension:
            raise DimensionMismatch(
                f"Embedding has {len(vector)} dimensions, index expects {self.dimension}"
            )
        return [float(v) for v in vector]
