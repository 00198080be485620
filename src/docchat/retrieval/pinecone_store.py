"""Pinecone implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

from pinecone import Pinecone

from docchat.config import settings
from docchat.errors import StorageError
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import MetadataFilter, VectorRecord

logger = logging.getLogger(__name__)

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_pinecone_filter(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Pinecone filter syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        op = _OP_MAP.get(f.operator)
        if op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class PineconeVectorStore(VectorStoreBase):
    """Pinecone-backed vector store.

    Parameters
    ----------
    index_name:
        Name of the Pinecone index.
    api_key:
        Pinecone API key.
    namespace:
        Namespace inside the index; empty string is the default namespace.
    client:
        Pre-built :class:`pinecone.Pinecone` client (tests inject a mock).
    """

    def __init__(
        self,
        index_name: str = settings.pinecone_index_name,
        *,
        api_key: str = settings.pinecone_api_key,
        namespace: str = settings.pinecone_namespace,
        client: Any | None = None,
    ) -> None:
        super().__init__(index_name)
        self._client = client if client is not None else Pinecone(api_key=api_key)
        self._index = self._client.Index(index_name)
        self._namespace = namespace
        self._dimension: int | None = None

    # -- VectorStoreBase overrides --------------------------------------------

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            try:
                self._dimension = int(self._client.describe_index(self.index_name).dimension)
            except Exception as exc:
                raise StorageError(f"Could not describe index {self.index_name!r}: {exc}") from exc
        return self._dimension

    def upsert(self, records: list[VectorRecord]) -> None:
        try:
            self._index.upsert(
                vectors=[r.to_pinecone() for r in records],
                namespace=self._namespace,
            )
        except Exception as exc:
            raise StorageError(f"Pinecone upsert failed: {exc}") from exc

    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        try:
            response = self._index.query(
                vector=query_embedding,
                top_k=k,
                include_metadata=True,
                include_values=False,
                filter=_build_pinecone_filter(filters) if filters else None,
                namespace=self._namespace,
            )
        except Exception as exc:
            raise StorageError(f"Pinecone query failed: {exc}") from exc

        hits: list[dict[str, Any]] = []
        for match in response.matches or []:
            meta = dict(match.metadata or {})
            hits.append(
                {
                    "id": match.id,
                    "content": meta.get("text", ""),
                    "score": match.score,
                    "metadata": meta,
                }
            )
        return hits

    def scan(self) -> list[dict[str, Any]]:
        # list() pages through record ids; fetch() returns their metadata.
        hits: list[dict[str, Any]] = []
        try:
            for ids in self._index.list(namespace=self._namespace):
                if not ids:
                    continue
                fetched = self._index.fetch(ids=list(ids), namespace=self._namespace)
                for vid, vector in fetched.vectors.items():
                    meta = dict(vector.metadata or {})
                    hits.append({"id": vid, "content": meta.get("text", ""), "score": None, "metadata": meta})
        except Exception as exc:
            raise StorageError(f"Pinecone scan failed: {exc}") from exc
        logger.info("Scanned %d records from index %s", len(hits), self.index_name)
        return hits

    def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        try:
            self._index.delete(ids=ids, namespace=self._namespace)
        except Exception as exc:
            raise StorageError(f"Pinecone delete failed: {exc}") from exc

    def health_check(self) -> bool:
        try:
            self._index.describe_index_stats()
            return True
        except Exception:
            logger.warning("Pinecone health-check failed", exc_info=True)
            return False
