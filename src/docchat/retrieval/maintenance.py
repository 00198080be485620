"""Index maintenance — find and delete records whose text is corrupted.

Binary uploads (e.g. a DOCX sent as raw bytes) end up stored as garbage
text that pollutes retrieval. These heuristics flag such records.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel, Field

from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.registry import FileRegistry

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n\r\t]")

MIN_TEXT_CHARS = 10
MAX_NON_PRINTABLE_RATIO = 0.3


class CleanupReport(BaseModel):
    scanned_count: int = 0
    deleted_count: int = 0
    deleted_ids: list[str] = Field(default_factory=list)
    superseded_deleted_count: int = 0


def corruption_reasons(text: str) -> list[str]:
    """Names of every heuristic that *text* trips (empty when clean)."""
    reasons: list[str] = []
    if _CONTROL_CHARS.search(text):
        reasons.append("control_characters")
    if "PK" in text and "word/_rels" in text:
        reasons.append("archive_markers")
    if len(text.strip()) < MIN_TEXT_CHARS:
        reasons.append("near_empty")
    if len(_NON_PRINTABLE.findall(text)) > len(text) * MAX_NON_PRINTABLE_RATIO:
        reasons.append("non_printable")
    return reasons


def is_corrupted(text: str) -> bool:
    return bool(corruption_reasons(text))


def find_corrupted(store: VectorStoreBase) -> tuple[int, list[str]]:
    """Scan *store*; return ``(records scanned, ids of corrupted records)``."""
    hits = store.scan()
    corrupted: list[str] = []
    for hit in hits:
        text = hit.get("content") or ""
        if not text:
            continue
        reasons = corruption_reasons(text)
        if reasons:
            meta = hit.get("metadata") or {}
            logger.info("Corrupted record %s (%s): %s", hit["id"], meta.get("fileName"), ", ".join(reasons))
            corrupted.append(hit["id"])
    return len(hits), corrupted


def cleanup_corrupted(
    store: VectorStoreBase,
    registry: FileRegistry | None = None,
    *,
    batch_size: int = 100,
) -> CleanupReport:
    """Delete corrupted records from *store* in batches of *batch_size*.

    With a *registry*, superseded records whose delete failed during a
    re-upload are retried here as well.
    """
    scanned, ids = find_corrupted(store)
    report = CleanupReport(scanned_count=scanned)
    logger.info("Found %d corrupted record(s) out of %d", len(ids), scanned)

    for start in range(0, len(ids), batch_size):
        batch = ids[start : start + batch_size]
        store.delete(batch)
        report.deleted_ids.extend(batch)
        report.deleted_count += len(batch)
        if registry is not None:
            registry.remove_records(batch)
        logger.info("  deleted %d / %d", report.deleted_count, len(ids))

    if registry is not None:
        report.superseded_deleted_count = purge_superseded(store, registry, batch_size=batch_size)
    return report


def purge_superseded(store: VectorStoreBase, registry: FileRegistry, *, batch_size: int = 100) -> int:
    """Retry deletes of superseded records left behind by failed re-upload cleanups."""
    ids = registry.pending_deletes()
    for start in range(0, len(ids), batch_size):
        batch = ids[start : start + batch_size]
        store.delete(batch)
        registry.clear_pending(batch)
    if ids:
        logger.info("Deleted %d superseded record(s) left by earlier re-uploads", len(ids))
    return len(ids)
