"""Semantic retriever — nearest-neighbour search scoped to a source file.

Usage::

    from docchat.retrieval.retriever import SemanticRetriever

    retriever = SemanticRetriever(store, registry=registry)
    latest = retriever.latest_file()
    matches = retriever.search_by_embedding(vector, k=5, file_name=latest.file_name)
    for m in matches:
        print(m.short_ref(), m.score)
"""

from __future__ import annotations

import logging

from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import MetadataFilter, RetrievalMatch
from docchat.retrieval.registry import FileEntry, FileRegistry

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """High-level retriever that wraps any :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    registry:
        The file registry used to resolve the latest uploaded file.
    default_k:
        Default number of results returned by :meth:`search_by_embedding`.
    score_threshold:
        Optional minimum similarity score; results below it are discarded.
        ``None`` keeps every match the store returns (cosine scores can be
        negative).
    """

    def __init__(
        self,
        store: VectorStoreBase,
        *,
        registry: FileRegistry | None = None,
        default_k: int = 5,
        score_threshold: float | None = None,
    ) -> None:
        self._store = store
        self._registry = registry if registry is not None else FileRegistry()
        self.default_k = default_k
        self.score_threshold = score_threshold

    # -- public API -----------------------------------------------------------

    def search_by_embedding(
        self,
        embedding: list[float],
        *,
        k: int | None = None,
        file_name: str | None = None,
        filters: list[MetadataFilter] | None = None,
    ) -> list[RetrievalMatch]:
        """Return up to *k* matches, best first, as ranked by the store.

        Parameters
        ----------
        embedding:
            Pre-computed query vector.
        k:
            Number of results (defaults to ``self.default_k``).
        file_name:
            Restrict results to records of this file.
        filters:
            Extra metadata filters forwarded to the vector store.
        """
        k = k or self.default_k
        all_filters = list(filters or [])
        if file_name:
            all_filters.append(MetadataFilter.equals("fileName", file_name))

        # Superseded records awaiting a retried delete are still in the index.
        stale = set(self._registry.pending_deletes())
        hits = self._store.similarity_search(embedding, k=k + len(stale), filters=all_filters or None)
        matches: list[RetrievalMatch] = []
        for hit in hits:
            if hit.get("id") in stale:
                continue
            if len(matches) == k:
                break
            score = hit.get("score")
            if self.score_threshold is not None and score is not None and score < self.score_threshold:
                continue
            matches.append(RetrievalMatch.from_hit(hit))
        logger.info("Retrieved %d match(es) (k=%d, file=%s)", len(matches), k, file_name)
        return matches

    def latest_file(self) -> FileEntry | None:
        """The most recently uploaded file according to the registry."""
        return self._registry.latest()

    def file(self, file_name: str) -> FileEntry | None:
        return self._registry.get(file_name)
