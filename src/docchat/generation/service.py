"""Query path — embed the question, retrieve context, generate an answer."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from docchat.errors import ValidationError
from docchat.generation.answerer import Answerer
from docchat.ingestion.embedder import BatchEmbedder
from docchat.retrieval.models import RetrievalMatch
from docchat.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)

NO_DOCUMENTS_MESSAGE = (
    "I don't have any relevant information in my knowledge base to answer your "
    "question. Please make sure you've uploaded some documents first."
)


class ChatAnswer(BaseModel):
    response: str
    sources: list[RetrievalMatch] = Field(default_factory=list)
    source_file: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_sources(self) -> bool:
        return bool(self.sources)


class ChatService:
    """Answer questions against the most recently uploaded document.

    Parameters
    ----------
    embedder:
        Embeds the question with the same model used for the chunks.
    retriever:
        Nearest-neighbour search plus latest-file lookup.
    answerer:
        Chat-model wrapper producing the final text.
    top_k:
        Number of chunks handed to the model as context.
    """

    def __init__(
        self,
        embedder: BatchEmbedder,
        retriever: SemanticRetriever,
        answerer: Answerer,
        *,
        top_k: int = 5,
    ) -> None:
        self._embedder = embedder
        self._retriever = retriever
        self._answerer = answerer
        self.top_k = top_k

    async def ask(self, message: str, *, file_name: str | None = None) -> ChatAnswer:
        """Answer *message*, scoped to *file_name* or else the latest upload.

        With nothing uploaded (or nothing relevant retrieved) the reply is a
        polite "no documents" message without sources, not an error.
        """
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message is required")

        entry = self._retriever.file(file_name) if file_name else self._retriever.latest_file()
        if entry is None:
            logger.info("No documents available for chat (requested file=%s)", file_name)
            return ChatAnswer(response=NO_DOCUMENTS_MESSAGE)

        logger.info("Creating query embedding...")
        vector = await self._embedder.embed_query(message)

        logger.info("Retrieving relevant chunks from %s...", entry.file_name)
        matches = await asyncio.to_thread(
            self._retriever.search_by_embedding,
            vector,
            k=self.top_k,
            file_name=entry.file_name,
        )
        if not matches:
            return ChatAnswer(response=NO_DOCUMENTS_MESSAGE, source_file=entry.file_name)

        logger.info("Generating response from %d chunk(s)...", len(matches))
        response = await self._answerer.answer(message, matches)
        return ChatAnswer(response=response, sources=matches, source_file=entry.file_name)
