"""
Retrieval — vector storage backends, the file registry, search and upkeep.

This module wraps the vector store behind a clean interface so that the
ingestion and chat layers never need to know which DB is backing them.

Public surface
--------------
- :class:`SemanticRetriever` — nearest-neighbour search scoped to a file.
- :class:`VectorStoreBase` — abstract backend.
- :class:`PineconeVectorStore` — default Pinecone backend.
- :class:`InMemoryVectorStore` — process-local backend for mock mode.
- :class:`FileRegistry`, :class:`FileEntry` — latest-upload index.
- :class:`VectorRecord`, :class:`RetrievalMatch`, :class:`MetadataFilter` — data models.
"""

from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.memory_store import InMemoryVectorStore
from docchat.retrieval.models import MetadataFilter, RetrievalMatch, VectorRecord
from docchat.retrieval.registry import FileEntry, FileRegistry
from docchat.retrieval.retriever import SemanticRetriever

__all__ = [
    "FileEntry",
    "FileRegistry",
    "InMemoryVectorStore",
    "MetadataFilter",
    "PineconeVectorStore",
    "RetrievalMatch",
    "SemanticRetriever",
    "VectorRecord",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import PineconeVectorStore to avoid pulling in the SDK at import time."""
    if name == "PineconeVectorStore":
        from docchat.retrieval.pinecone_store import PineconeVectorStore

        return PineconeVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
