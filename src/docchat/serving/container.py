"""Application wiring — builds every long-lived object the API needs."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from docchat.config import PipelineConfig, Settings, settings
from docchat.errors import StorageError
from docchat.generation.answerer import Answerer
from docchat.generation.llm import get_llm
from docchat.generation.service import ChatService
from docchat.ingestion.embedder import BatchEmbedder, build_embeddings, embedding_profile
from docchat.ingestion.pipeline import IngestionPipeline, UploadLeases
from docchat.ingestion.writer import VectorStoreWriter
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.memory_store import InMemoryVectorStore
from docchat.retrieval.registry import FileRegistry
from docchat.retrieval.retriever import SemanticRetriever

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)


def build_store(s: Settings, dimension: int) -> VectorStoreBase:
    """Pinecone unless ``vector_store`` is ``"memory"``."""
    if s.vector_store == "memory":
        logger.info("Using in-memory vector store (dim=%d)", dimension)
        return InMemoryVectorStore(dimension=dimension)
    if s.vector_store != "pinecone":
        raise ValueError(f"Unsupported vector_store: {s.vector_store!r}")

    from docchat.retrieval.pinecone_store import PineconeVectorStore

    logger.info("Using Pinecone index %s", s.pinecone_index_name)
    return PineconeVectorStore(
        s.pinecone_index_name,
        api_key=s.pinecone_api_key,
        namespace=s.pinecone_namespace,
    )


class AppContainer:
    """Owns heavy object instantiation and application wiring.

    Every collaborator can be injected; anything omitted is built from
    *s*. Tests pass fakes for the embeddings client, the store and the chat
    model so no network is touched.
    """

    def __init__(
        self,
        s: Settings = settings,
        *,
        embeddings: Embeddings | None = None,
        store: VectorStoreBase | None = None,
        registry: FileRegistry | None = None,
        llm: BaseChatModel | None = None,
        pipeline_config: PipelineConfig | None = None,
    ) -> None:
        self.settings = s
        self.pipeline_config = pipeline_config or PipelineConfig.from_settings(s)
        self.embedding_model, self.embedding_dimension = embedding_profile(s)

        # Core infrastructure
        self.embeddings = embeddings if embeddings is not None else build_embeddings(s)
        self.store = store if store is not None else build_store(s, self.embedding_dimension)
        self.registry = registry if registry is not None else FileRegistry(s.registry_path or None)

        self.embedder = BatchEmbedder(
            self.embeddings,
            self.pipeline_config,
            dimension=self.embedding_dimension,
        )
        self.writer = VectorStoreWriter(
            self.store,
            upsert_batch_size=self.pipeline_config.upsert_batch_size,
        )
        self.leases = UploadLeases()

        # Upload path
        self.pipeline = IngestionPipeline(
            policy=self.pipeline_config.chunk_policy,
            embedder=self.embedder,
            writer=self.writer,
            store=self.store,
            registry=self.registry,
            leases=self.leases,
            delete_batch_size=self.pipeline_config.upsert_batch_size,
        )

        # Query path
        self.retriever = SemanticRetriever(
            self.store,
            registry=self.registry,
            default_k=s.retrieval_top_k,
        )
        self.answerer = Answerer(llm if llm is not None else get_llm(s))
        self.chat_service = ChatService(
            self.embedder,
            self.retriever,
            self.answerer,
            top_k=s.retrieval_top_k,
        )

    async def start(self) -> None:
        """Seed an empty registry from the store so "latest file" survives restarts."""
        if len(self.registry):
            return
        try:
            count = await asyncio.to_thread(self.registry.rebuild_from_store, self.store)
        except StorageError as exc:
            logger.warning("Could not rebuild file registry from %s: %s", self.store.index_name, exc)
            return
        logger.info("File registry seeded with %d file(s)", count)
