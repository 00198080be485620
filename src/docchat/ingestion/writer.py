"""Vector-store writer — turns embedded chunks into records and upserts them."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from docchat.errors import DimensionMismatch, StorageError
from docchat.ingestion.chunker import Chunk
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import VectorRecord

logger = logging.getLogger(__name__)


class WriteReport(BaseModel):
    """Outcome of one :meth:`VectorStoreWriter.write` call.

    ``stored_ids`` lists every record that reached the store, even when a
    later batch failed and ``error`` is set.
    """

    file_name: str
    timestamp: datetime
    record_count: int = 0
    stored_count: int = 0
    stored_ids: list[str] = Field(default_factory=list)
    batches: int = 0
    error: str | None = None

    @property
    def complete(self) -> bool:
        return self.error is None and self.stored_count == self.record_count


def build_records(
    file_name: str,
    chunks: Sequence[Chunk],
    embeddings: Sequence[list[float]],
    timestamp: datetime,
) -> list[VectorRecord]:
    """Pair chunks with embeddings; extra items on either side are ignored."""
    count = min(len(chunks), len(embeddings))
    if len(chunks) != len(embeddings):
        logger.warning(
            "Chunk/embedding count mismatch for %s: %d vs %d, storing %d",
            file_name, len(chunks), len(embeddings), count,
        )
    return [
        VectorRecord.for_chunk(
            file_name=file_name,
            chunk_index=chunks[i].index,
            text=chunks[i].text,
            values=list(embeddings[i]),
            timestamp=timestamp,
        )
        for i in range(count)
    ]


class VectorStoreWriter:
    """Upsert records in batches bounded by the store's per-call limit.

    Parameters
    ----------
    store:
        Target vector store.
    upsert_batch_size:
        Max records per upsert call (Pinecone caps requests at 100 vectors).
    """

    def __init__(self, store: VectorStoreBase, *, upsert_batch_size: int = 100) -> None:
        self._store = store
        self.upsert_batch_size = upsert_batch_size

    def check_dimensions(self, records: Sequence[VectorRecord]) -> None:
        expected = self._store.dimension
        for record in records:
            if len(record.values) != expected:
                raise DimensionMismatch(
                    f"Record {record.id} has {len(record.values)} dimensions, "
                    f"index {self._store.index_name!r} expects {expected}"
                )

    async def write(
        self,
        file_name: str,
        chunks: Sequence[Chunk],
        embeddings: Sequence[list[float]],
        *,
        timestamp: datetime | None = None,
    ) -> WriteReport:
        """Build records for *file_name* and upsert them.

        All records share *timestamp* (default: now, UTC), which identifies
        this upload's generation. A failing batch stops the write; the report
        still counts the batches stored before it.

        Raises
        ------
        DimensionMismatch
            Any vector's length differs from the index dimension. Nothing is
            written in that case.
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        records = build_records(file_name, chunks, embeddings, timestamp)
        report = WriteReport(file_name=file_name, timestamp=timestamp, record_count=len(records))
        if not records:
            return report

        await asyncio.to_thread(self.check_dimensions, records)

        for start in range(0, len(records), self.upsert_batch_size):
            batch = records[start : start + self.upsert_batch_size]
            try:
                await asyncio.to_thread(self._store.upsert, batch)
            except StorageError as exc:
                report.error = str(exc)
                logger.error(
                    "Upsert failed for %s after %d/%d records: %s",
                    file_name, report.stored_count, len(records), exc,
                )
                break
            report.batches += 1
            report.stored_count += len(batch)
            report.stored_ids.extend(r.id for r in batch)
            logger.info("Stored batch: %d/%d vectors", report.stored_count, len(records))

        logger.info("Stored %d vectors for file: %s", report.stored_count, file_name)
        return report
