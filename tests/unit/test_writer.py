"""Unit tests for record building and batched upserts."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from docchat.errors import DimensionMismatch, StorageError
from docchat.ingestion.chunker import Chunk
from docchat.ingestion.writer import VectorStoreWriter, build_records
from docchat.retrieval.memory_store import InMemoryVectorStore
from docchat.retrieval.models import VectorRecord

TS = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FlakyStore(InMemoryVectorStore):
    """Fails the *fail_on*-th upsert call (1-based)."""

    def __init__(self, dimension: int, fail_on: int) -> None:
        super().__init__(dimension=dimension)
        self.fail_on = fail_on
        self.upsert_calls = 0

    def upsert(self, records: list[VectorRecord]) -> None:
        self.upsert_calls += 1
        if self.upsert_calls == self.fail_on:
            raise StorageError("index unavailable")
        super().upsert(records)


def _chunks(n: int) -> list[Chunk]:
    return [Chunk(text=f"chunk {i} text", index=i, byte_length=12) for i in range(n)]


def _vectors(n: int, dim: int = 3) -> list[list[float]]:
    return [[float(i)] * dim for i in range(n)]


class TestBuildRecords:
    def test_metadata_and_ids(self) -> None:
        records = build_records("doc.txt", _chunks(2), _vectors(2), TS)
        millis = int(TS.timestamp() * 1000)
        assert [r.id for r in records] == [f"doc.txt-chunk-0-{millis}", f"doc.txt-chunk-1-{millis}"]
        assert records[1].metadata == {
            "text": "chunk 1 text",
            "fileName": "doc.txt",
            "chunkIndex": 1,
            "timestamp": TS.isoformat(),
        }

    def test_length_mismatch_uses_shorter_side(self) -> None:
        assert len(build_records("doc.txt", _chunks(3), _vectors(2), TS)) == 2
        assert len(build_records("doc.txt", _chunks(1), _vectors(4), TS)) == 1


class TestVectorStoreWriter:
    def test_writes_in_batches(self) -> None:
        store = InMemoryVectorStore(dimension=3)
        writer = VectorStoreWriter(store, upsert_batch_size=100)
        report = asyncio.run(writer.write("doc.txt", _chunks(250), _vectors(250), timestamp=TS))
        assert report.complete
        assert report.batches == 3
        assert report.stored_count == 250
        assert len(store) == 250

    def test_partial_failure_keeps_earlier_batches(self) -> None:
        store = FlakyStore(dimension=3, fail_on=3)
        writer = VectorStoreWriter(store, upsert_batch_size=100)
        report = asyncio.run(writer.write("doc.txt", _chunks(250), _vectors(250), timestamp=TS))
        assert report.stored_count == 200
        assert len(report.stored_ids) == 200
        assert report.error is not None
        assert not report.complete

    def test_dimension_mismatch_writes_nothing(self) -> None:
        store = InMemoryVectorStore(dimension=4)
        writer = VectorStoreWriter(store)
        with pytest.raises(DimensionMismatch):
            asyncio.run(writer.write("doc.txt", _chunks(2), _vectors(2, dim=3)))
        assert len(store) == 0

    def test_shared_timestamp_across_records(self) -> None:
        store = InMemoryVectorStore(dimension=3)
        writer = VectorStoreWriter(store, upsert_batch_size=1)
        report = asyncio.run(writer.write("doc.txt", _chunks(3), _vectors(3)))
        stamps = {hit["metadata"]["timestamp"] for hit in store.scan()}
        assert stamps == {report.timestamp.isoformat()}

    def test_nothing_to_write(self) -> None:
        writer = VectorStoreWriter(InMemoryVectorStore(dimension=3))
        report = asyncio.run(writer.write("doc.txt", [], []))
        assert report.record_count == 0
        assert report.stored_count == 0
