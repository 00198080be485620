"""In-process vector store for mock-vector mode and local development."""

from __future__ import annotations

import math
from typing import Any

from docchat.errors import DimensionMismatch
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import MetadataFilter, VectorRecord


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def _matches(meta: dict[str, Any], f: MetadataFilter) -> bool:
    value = meta.get(f.field)
    if f.operator == "eq":
        return value == f.value
    if f.operator == "ne":
        return value != f.value
    if f.operator == "in":
        return value in f.value
    if f.operator == "nin":
        return value not in f.value
    if value is None:
        return False
    if f.operator == "gt":
        return value > f.value
    if f.operator == "gte":
        return value >= f.value
    if f.operator == "lt":
        return value < f.value
    if f.operator == "lte":
        return value <= f.value
    raise ValueError(f"Unsupported filter operator: {f.operator!r}")


class InMemoryVectorStore(VectorStoreBase):
    """Dictionary-backed store ranking by cosine similarity.

    Nothing survives a restart; use it with mock vectors or in tests.
    """

    def __init__(self, index_name: str = "memory", *, dimension: int = 1536) -> None:
        super().__init__(index_name)
        self._dimension = dimension
        self._records: dict[str, VectorRecord] = {}

    @property
    def dimension(self) -> int:
        return self._dimension

    def __len__(self) -> int:
        return len(self._records)

    def upsert(self, records: list[VectorRecord]) -> None:
        for record in records:
            if len(record.values) != self._dimension:
                raise DimensionMismatch(
                    f"Record {record.id} has {len(record.values)} dims, index expects {self._dimension}"
                )
        for record in records:
            self._records[record.id] = record

    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        hits = [
            {
                "id": r.id,
                "content": r.metadata.get("text", ""),
                "score": _cosine(query_embedding, r.values),
                "metadata": dict(r.metadata),
            }
            for r in self._records.values()
            if all(_matches(r.metadata, f) for f in filters or [])
        ]
        hits.sort(key=lambda h: h["score"], reverse=True)
        return hits[:k]

    def scan(self) -> list[dict[str, Any]]:
        return [
            {"id": r.id, "content": r.metadata.get("text", ""), "score": None, "metadata": dict(r.metadata)}
            for r in self._records.values()
        ]

    def delete(self, ids: list[str]) -> None:
        for vid in ids:
            self._records.pop(vid, None)

    def health_check(self) -> bool:
        return True
