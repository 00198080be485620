"""Abstract base class for vector-store backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase`
and implementing the abstract methods. The writer, retriever, registry
rebuild and maintenance jobs are backend-agnostic.

Backends return *hits* as plain dicts with at least:

* ``"id"`` – record identifier
* ``"content"`` – the chunk text
* ``"score"`` – similarity score (higher = more similar, ``None`` for scans)
* ``"metadata"`` – the stored metadata dict
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docchat.retrieval.models import MetadataFilter, VectorRecord


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    index_name:
        Logical name of the index / collection.
    """

    def __init__(self, index_name: str) -> None:
        self.index_name = index_name

    # -- required overrides ---------------------------------------------------

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Vector length accepted by the index."""
        ...

    @abstractmethod
    def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or overwrite *records* in a single call."""
        ...

    @abstractmethod
    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        """Return the top-*k* hits for *query_embedding*, best first.

        Parameters
        ----------
        query_embedding:
            Dense vector for the query.
        k:
            Number of results to return.
        filters:
            Optional metadata filters applied server-side.
        """
        ...

    @abstractmethod
    def scan(self) -> list[dict[str, Any]]:
        """Enumerate every stored record as a hit (``score`` is ``None``)."""
        ...

    @abstractmethod
    def delete(self, ids: list[str]) -> None:
        """Delete records by their IDs."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...
