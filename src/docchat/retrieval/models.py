"""Domain models for stored vector records and retrieval matches."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"fileName"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    # -- helpers for common filters ------------------------------------------

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)


def make_record_id(file_name: str, chunk_index: int, timestamp: datetime) -> str:
    """``"<fileName>-chunk-<index>-<epoch millis>"``."""
    millis = int(timestamp.timestamp() * 1000)
    return f"{file_name}-chunk-{chunk_index}-{millis}"


class VectorRecord(BaseModel):
    """The unit of storage: identifier, embedding and chunk metadata.

    ``metadata`` always carries ``text``, ``fileName``, ``chunkIndex`` and
    an ISO-8601 ``timestamp`` shared by every record of one upload.
    """

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_chunk(
        cls,
        *,
        file_name: str,
        chunk_index: int,
        text: str,
        values: list[float],
        timestamp: datetime,
    ) -> VectorRecord:
        return cls(
            id=make_record_id(file_name, chunk_index, timestamp),
            values=values,
            metadata={
                "text": text,
                "fileName": file_name,
                "chunkIndex": chunk_index,
                "timestamp": timestamp.isoformat(),
            },
        )

    @property
    def file_name(self) -> str | None:
        return self.metadata.get("fileName")

    @property
    def chunk_index(self) -> int | None:
        return self.metadata.get("chunkIndex")

    def to_pinecone(self) -> dict[str, Any]:
        return {"id": self.id, "values": self.values, "metadata": self.metadata}


class RetrievalMatch(BaseModel):
    """A chunk returned for a query, with its similarity score and source."""

    id: str | None = None
    text: str = ""
    score: float | None = None
    file_name: str = "unknown"
    chunk_index: int | None = None
    timestamp: str | None = None

    @classmethod
    def from_hit(cls, hit: dict[str, Any]) -> RetrievalMatch:
        meta = hit.get("metadata") or {}
        chunk_index = meta.get("chunkIndex")
        return cls(
            id=hit.get("id"),
            text=hit.get("content") or meta.get("text") or "",
            score=hit.get("score"),
            file_name=meta.get("fileName") or "unknown",
            # Pinecone hands numeric metadata back as floats.
            chunk_index=int(chunk_index) if chunk_index is not None else None,
            timestamp=meta.get("timestamp"),
        )

    def short_ref(self) -> str:
        """Return a compact ``[fileName§chunk]`` reference string."""
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{self.file_name}§{chunk}]"

    def __str__(self) -> str:  # noqa: D105
        return f"{self.short_ref()} {self.text[:120]}…"
