"""Ingestion pipeline — chunk, embed and store one uploaded document.

    upload → chunk_text → BatchEmbedder → VectorStoreWriter → FileRegistry

Uploads of the same file name are serialised by :class:`UploadLeases`, and a
re-upload replaces the file's previous generation of records once the new one
is stored. Superseded ids that fail to delete are queued in the registry and
retried by the next upload.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from pydantic import BaseModel

from docchat.errors import EmbeddingFailure, StorageError, ValidationError
from docchat.ingestion.chunker import ChunkingPolicy, chunk_text
from docchat.ingestion.embedder import BatchEmbedder
from docchat.ingestion.writer import VectorStoreWriter
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.registry import FileRegistry

logger = logging.getLogger(__name__)


class Document(BaseModel):
    """An uploaded document; ``file_name`` is its unique key."""

    file_name: str
    content: str
    content_type: str = "text/plain"


class IngestionReport(BaseModel):
    file_name: str
    chunk_count: int
    embedding_count: int
    stored_count: int
    replaced_count: int = 0
    timestamp: datetime | None = None
    elapsed_seconds: float = 0.0
    error: str | None = None

    @property
    def partial(self) -> bool:
        return self.error is not None or self.stored_count < self.chunk_count


class UploadLeases:
    """One asyncio lock per file name, created on demand and released when idle."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: defaultdict[str, int] = defaultdict(int)

    def is_held(self, file_name: str) -> bool:
        lock = self._locks.get(file_name)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, file_name: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(file_name, asyncio.Lock())
        self._holders[file_name] += 1
        try:
            if lock.locked():
                logger.info("Waiting for in-flight upload of %s", file_name)
            async with lock:
                yield
        finally:
            self._holders[file_name] -= 1
            if self._holders[file_name] == 0:
                del self._holders[file_name]
                self._locks.pop(file_name, None)


class IngestionPipeline:
    """Wire the chunker, embedder, writer and registry together.

    Parameters
    ----------
    policy:
        Chunking policy applied to every document.
    embedder:
        Batch embedder for chunk vectors.
    writer:
        Writer that upserts records into ``store``.
    store:
        Vector store, used directly to delete superseded generations.
    registry:
        File registry updated after every successful write.
    leases:
        Per-file exclusivity; a private instance is created when omitted.
    """

    def __init__(
        self,
        *,
        policy: ChunkingPolicy,
        embedder: BatchEmbedder,
        writer: VectorStoreWriter,
        store: VectorStoreBase,
        registry: FileRegistry,
        leases: UploadLeases | None = None,
        delete_batch_size: int = 100,
    ) -> None:
        self.policy = policy
        self.embedder = embedder
        self.writer = writer
        self.store = store
        self.registry = registry
        self.leases = leases or UploadLeases()
        self.delete_batch_size = delete_batch_size

    async def ingest(self, document: Document) -> IngestionReport:
        """Store *document* as the new generation of its file name.

        Raises
        ------
        ValidationError
            Missing file name or content, or no chunk survives chunking.
        QuotaExceeded
            The embedding provider rate-limited the upload.
        EmbeddingFailure
            Not a single chunk could be embedded.
        StorageError
            Nothing could be written to the vector store.
        """
        if not document.file_name or not document.file_name.strip():
            raise ValidationError("fileName is required")
        if not document.content or not document.content.strip():
            raise ValidationError("content is required")

        async with self.leases.hold(document.file_name):
            return await self._ingest_locked(document)

    async def _ingest_locked(self, document: Document) -> IngestionReport:
        file_name = document.file_name
        t0 = time.monotonic()

        chunks = chunk_text(document.content, self.policy)
        logger.info("Created %d chunks for %s (%s)", len(chunks), file_name, document.content_type)
        if not chunks:
            raise ValidationError(f"{file_name} contains no usable text")

        embedded = await self.embedder.embed_chunks(chunks)
        if not embedded:
            raise EmbeddingFailure(f"No chunk of {file_name} could be embedded")

        written = await self.writer.write(
            file_name,
            [e.chunk for e in embedded],
            [e.vector for e in embedded],
        )
        if written.stored_count == 0:
            raise StorageError(written.error or f"No records stored for {file_name}")

        previous = self.registry.record_upload(file_name, written.timestamp, written.stored_ids)
        # Same-millisecond re-uploads reuse ids; those records are the new generation.
        current = set(written.stored_ids)
        stale = [i for i in previous.record_ids if i not in current] if previous is not None else []
        stale += [i for i in self.registry.pending_deletes() if i not in current and i not in stale]
        replaced = 0
        if stale:
            deleted, failed = await self._delete_records(stale)
            self.registry.clear_pending(deleted)
            self.registry.mark_pending(failed)
            replaced = len(deleted)

        elapsed = time.monotonic() - t0
        logger.info(
            "Ingested %s: %d chunks, %d embedded, %d stored, %d replaced in %.1fs",
            file_name, len(chunks), len(embedded), written.stored_count, replaced, elapsed,
        )
        return IngestionReport(
            file_name=file_name,
            chunk_count=len(chunks),
            embedding_count=len(embedded),
            stored_count=written.stored_count,
            replaced_count=replaced,
            timestamp=written.timestamp,
            elapsed_seconds=round(elapsed, 2),
            error=written.error,
        )

    async def _delete_records(self, ids: list[str]) -> tuple[list[str], list[str]]:
        """Delete *ids* in batches; return ``(deleted ids, ids whose batch failed)``."""
        deleted: list[str] = []
        failed: list[str] = []
        for start in range(0, len(ids), self.delete_batch_size):
            batch = ids[start : start + self.delete_batch_size]
            try:
                await asyncio.to_thread(self.store.delete, batch)
            except StorageError as exc:
                logger.warning("Could not delete %d superseded record(s): %s", len(batch), exc)
                failed.extend(batch)
                continue
            deleted.extend(batch)
        return deleted, failed
