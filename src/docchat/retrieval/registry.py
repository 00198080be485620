"""File registry — the ``fileName → latest upload`` secondary index.

Answering "which file was uploaded last?" from the vector index alone means
enumerating every record on each chat turn. The registry is updated at write
time instead, so the lookup is O(number of files). The full scan survives only
in :meth:`FileRegistry.rebuild_from_store`, used to bootstrap an empty
registry from an existing index.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from docchat.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class FileEntry(BaseModel):
    """Latest stored generation of one uploaded file."""

    file_name: str
    latest_timestamp: datetime
    record_count: int = 0
    record_ids: list[str] = Field(default_factory=list)

    @property
    def timestamp_iso(self) -> str:
        return self.latest_timestamp.isoformat()


def parse_timestamp(value: Any) -> datetime:
    """Parse a stored ISO-8601 timestamp; unknown values sort oldest."""
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        logger.warning("Unparseable record timestamp %r", value)
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def entries_from_hits(hits: Iterable[dict[str, Any]]) -> dict[str, FileEntry]:
    """Group scanned hits by ``fileName``, keeping each file's newest generation."""
    entries: dict[str, FileEntry] = {}
    for hit in hits:
        meta = hit.get("metadata") or {}
        file_name = meta.get("fileName")
        if not file_name:
            continue
        ts = parse_timestamp(meta.get("timestamp"))
        entry = entries.get(file_name)
        if entry is None or ts > entry.latest_timestamp:
            entries[file_name] = FileEntry(
                file_name=file_name,
                latest_timestamp=ts,
                record_count=1,
                record_ids=[hit["id"]],
            )
        elif ts == entry.latest_timestamp:
            entry.record_ids.append(hit["id"])
            entry.record_count += 1
    return entries


class FileRegistry:
    """Tracks the latest generation per file name.

    Parameters
    ----------
    path:
        Optional JSON file the registry is loaded from and saved to after
        every change. ``None`` keeps it in memory only.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else None
        self._entries: dict[str, FileEntry] = {}
        self._pending: list[str] = []
        if self._path is not None and self._path.exists():
            self._load()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_name: str) -> bool:
        return file_name in self._entries

    def get(self, file_name: str) -> FileEntry | None:
        return self._entries.get(file_name)

    def files(self) -> list[FileEntry]:
        """All entries, newest first."""
        return sorted(self._entries.values(), key=lambda e: e.latest_timestamp, reverse=True)

    def latest(self) -> FileEntry | None:
        """The file whose most recent generation is newest, or ``None``."""
        if not self._entries:
            return None
        return max(self._entries.values(), key=lambda e: e.latest_timestamp)

    def record_upload(
        self,
        file_name: str,
        timestamp: datetime,
        record_ids: list[str],
    ) -> FileEntry | None:
        """Make *record_ids* the current generation of *file_name*.

        Returns the entry it replaced, if any, so the caller can delete the
        superseded records.
        """
        previous = self._entries.get(file_name)
        self._entries[file_name] = FileEntry(
            file_name=file_name,
            latest_timestamp=timestamp,
            record_count=len(record_ids),
            record_ids=list(record_ids),
        )
        # Ids reused by this generation are live again.
        live = set(record_ids)
        self._pending = [rid for rid in self._pending if rid not in live]
        self._save()
        return previous

    def remove_records(self, ids: Iterable[str]) -> None:
        """Forget deleted record ids; files left with no records are dropped."""
        doomed = set(ids)
        if not doomed:
            return
        for name in list(self._entries):
            entry = self._entries[name]
            kept = [rid for rid in entry.record_ids if rid not in doomed]
            if len(kept) == len(entry.record_ids):
                continue
            if kept:
                self._entries[name] = entry.model_copy(update={"record_ids": kept, "record_count": len(kept)})
            else:
                del self._entries[name]
        self._save()

    def pending_deletes(self) -> list[str]:
        """Superseded record ids whose deletion failed and must be retried."""
        return list(self._pending)

    def mark_pending(self, ids: Iterable[str]) -> None:
        added = [rid for rid in ids if rid not in self._pending]
        if not added:
            return
        self._pending.extend(added)
        self._save()
        logger.warning("%d superseded record(s) queued for a later delete", len(added))

    def clear_pending(self, ids: Iterable[str]) -> None:
        done = set(ids)
        kept = [rid for rid in self._pending if rid not in done]
        if len(kept) == len(self._pending):
            return
        self._pending = kept
        self._save()

    def rebuild_from_store(self, store: VectorStoreBase) -> int:
        """Replace the registry contents with a full scan of *store*."""
        self._entries = entries_from_hits(store.scan())
        self._save()
        logger.info("Rebuilt file registry from %s: %d file(s)", store.index_name, len(self._entries))
        return len(self._entries)

    # -- persistence ----------------------------------------------------------

    def _load(self) -> None:
        assert self._path is not None
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        self._entries = {item["file_name"]: FileEntry.model_validate(item) for item in raw.get("files", [])}
        self._pending = list(raw.get("pending_deletes", []))
        logger.info("Loaded file registry from %s (%d file(s))", self._path, len(self._entries))

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "files": [e.model_dump(mode="json") for e in self._entries.values()],
            "pending_deletes": self._pending,
        }
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)
