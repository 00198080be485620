"""Unit tests for the file registry (latest-upload index)."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from docchat.retrieval.memory_store import InMemoryVectorStore
from docchat.retrieval.models import VectorRecord
from docchat.retrieval.registry import FileRegistry, entries_from_hits, parse_timestamp

JAN = datetime(2024, 1, 1, tzinfo=timezone.utc)
FEB = datetime(2024, 2, 1, tzinfo=timezone.utc)


def _hit(rid: str, file_name: str | None, ts: str | None) -> dict:
    meta = {"text": "x"}
    if file_name:
        meta["fileName"] = file_name
    if ts:
        meta["timestamp"] = ts
    return {"id": rid, "content": "x", "score": None, "metadata": meta}


class TestParseTimestamp:
    def test_iso_with_offset(self) -> None:
        assert parse_timestamp("2024-01-01T00:00:00+00:00") == JAN

    def test_zulu_suffix(self) -> None:
        assert parse_timestamp("2024-01-01T00:00:00Z") == JAN

    def test_naive_is_utc(self) -> None:
        assert parse_timestamp("2024-01-01T00:00:00") == JAN

    def test_missing_or_garbage_sorts_oldest(self) -> None:
        epoch = datetime.fromtimestamp(0, tz=timezone.utc)
        assert parse_timestamp(None) == epoch
        assert parse_timestamp("yesterday") == epoch


class TestEntriesFromHits:
    def test_keeps_newest_generation_per_file(self) -> None:
        hits = [
            _hit("a-old", "a.txt", "2024-01-01T00:00:00+00:00"),
            _hit("a-new-0", "a.txt", "2024-02-01T00:00:00+00:00"),
            _hit("a-new-1", "a.txt", "2024-02-01T00:00:00+00:00"),
            _hit("orphan", None, "2024-03-01T00:00:00+00:00"),
        ]
        entries = entries_from_hits(hits)
        assert list(entries) == ["a.txt"]
        assert entries["a.txt"].latest_timestamp == FEB
        assert entries["a.txt"].record_ids == ["a-new-0", "a-new-1"]
        assert entries["a.txt"].record_count == 2


class TestFileRegistry:
    def test_latest_is_most_recent_upload(self) -> None:
        registry = FileRegistry()
        assert registry.latest() is None
        registry.record_upload("A.txt", JAN, ["a-0"])
        registry.record_upload("B.txt", FEB, ["b-0"])
        latest = registry.latest()
        assert latest is not None and latest.file_name == "B.txt"
        assert [e.file_name for e in registry.files()] == ["B.txt", "A.txt"]

    def test_record_upload_returns_previous_generation(self) -> None:
        registry = FileRegistry()
        assert registry.record_upload("a.txt", JAN, ["a-0", "a-1"]) is None
        previous = registry.record_upload("a.txt", FEB, ["a-2"])
        assert previous is not None and previous.record_ids == ["a-0", "a-1"]
        assert registry.get("a.txt").record_count == 1
        assert len(registry) == 1

    def test_remove_records_drops_emptied_files(self) -> None:
        registry = FileRegistry()
        registry.record_upload("a.txt", JAN, ["a-0", "a-1"])
        registry.record_upload("b.txt", FEB, ["b-0"])
        registry.remove_records(["a-0", "b-0"])
        assert "b.txt" not in registry
        assert registry.get("a.txt").record_ids == ["a-1"]

    def test_persists_to_json(self, tmp_path: Path) -> None:
        path = tmp_path / "registry.json"
        FileRegistry(path).record_upload("a.txt", JAN, ["a-0"])
        reloaded = FileRegistry(path)
        assert reloaded.get("a.txt").latest_timestamp == JAN
        assert reloaded.get("a.txt").record_ids == ["a-0"]

    def test_rebuild_from_store(self) -> None:
        store = InMemoryVectorStore(dimension=2)
        for name, ts in (("a.txt", JAN), ("b.txt", FEB)):
            store.upsert(
                [
                    VectorRecord.for_chunk(
                        file_name=name, chunk_index=0, text="text", values=[1.0, 0.0], timestamp=ts
                    )
                ]
            )
        registry = FileRegistry()
        assert registry.rebuild_from_store(store) == 2
        assert registry.latest().file_name == "b.txt"

    def test_pending_deletes_persist_and_clear(self, tmp_path: Path) -> None:
        path = tmp_path / "registry.json"
        registry = FileRegistry(path)
        registry.mark_pending(["a-old-0", "a-old-1"])
        reloaded = FileRegistry(path)
        assert reloaded.pending_deletes() == ["a-old-0", "a-old-1"]
        reloaded.clear_pending(["a-old-0"])
        assert FileRegistry(path).pending_deletes() == ["a-old-1"]

    def test_reused_ids_leave_the_pending_list(self) -> None:
        registry = FileRegistry()
        registry.mark_pending(["a-0", "a-1"])
        registry.record_upload("a.txt", JAN, ["a-1"])
        assert registry.pending_deletes() == ["a-0"]
