"""Unit tests for prompt assembly, the answerer and the chat service.

All tests run without network access: the chat model is LangChain's
``FakeListChatModel`` (or a hand-written stub) and embeddings are
deterministic fakes.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from docchat.config import PipelineConfig
from docchat.errors import GenerationFailure, QuotaExceeded, ValidationError
from docchat.generation.answerer import Answerer
from docchat.generation.prompts import build_answer_prompt, format_context
from docchat.generation.service import NO_DOCUMENTS_MESSAGE, ChatService
from docchat.ingestion.embedder import BatchEmbedder
from docchat.retrieval.memory_store import InMemoryVectorStore
from docchat.retrieval.models import RetrievalMatch, VectorRecord
from docchat.retrieval.registry import FileRegistry
from docchat.retrieval.retriever import SemanticRetriever

DIM = 16


class QuotaError(Exception):
    status_code = 429


class FailingChatModel:
    """Stand-in chat model whose every call raises *exc*."""

    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def ainvoke(self, messages):  # noqa: ANN001, ANN201
        raise self.exc


def _matches() -> list[RetrievalMatch]:
    return [
        RetrievalMatch(text="Revenue grew 12% in Q3.", file_name="report.txt", chunk_index=0, score=0.9),
        RetrievalMatch(text="Costs were flat.", file_name="report.txt", chunk_index=1, score=0.8),
    ]


# ── Prompts ───────────────────────────────────────────────────────────


class TestPrompts:
    def test_context_blocks_are_numbered(self) -> None:
        ctx = format_context(_matches())
        assert ctx.startswith("Document 1 (from report.txt):\nRevenue grew 12% in Q3.")
        assert "\n\nDocument 2 (from report.txt):\nCosts were flat." in ctx

    def test_prompt_has_system_context_and_user_query(self) -> None:
        messages = build_answer_prompt("How did revenue change?", _matches())
        assert isinstance(messages[0], SystemMessage)
        assert "Revenue grew 12%" in messages[0].content
        assert "Use only the information from the context" in messages[0].content
        assert isinstance(messages[1], HumanMessage)
        assert messages[1].content == "How did revenue change?"


# ── Answerer ──────────────────────────────────────────────────────────


class TestAnswerer:
    def test_returns_model_text(self) -> None:
        answerer = Answerer(FakeListChatModel(responses=["Revenue grew 12%."]))
        assert asyncio.run(answerer.answer("Revenue?", _matches())) == "Revenue grew 12%."

    def test_rate_limit_becomes_quota_exceeded(self) -> None:
        answerer = Answerer(FailingChatModel(QuotaError("slow down")))
        with pytest.raises(QuotaExceeded):
            asyncio.run(answerer.answer("Revenue?", _matches()))

    def test_other_errors_become_generation_failure(self) -> None:
        answerer = Answerer(FailingChatModel(RuntimeError("model offline")))
        with pytest.raises(GenerationFailure):
            asyncio.run(answerer.answer("Revenue?", _matches()))

    def test_empty_completion_is_failure(self) -> None:
        answerer = Answerer(FakeListChatModel(responses=["   "]))
        with pytest.raises(GenerationFailure):
            asyncio.run(answerer.answer("Revenue?", _matches()))


# ── ChatService ───────────────────────────────────────────────────────


@pytest.fixture()
def embeddings() -> DeterministicFakeEmbedding:
    return DeterministicFakeEmbedding(size=DIM)


@pytest.fixture()
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=DIM)


@pytest.fixture()
def registry() -> FileRegistry:
    return FileRegistry()


def _service(embeddings, store, registry, responses=("Grounded answer.",)) -> ChatService:  # noqa: ANN001
    embedder = BatchEmbedder(embeddings, PipelineConfig(inter_batch_delay=0), dimension=DIM)
    retriever = SemanticRetriever(store, registry=registry)
    answerer = Answerer(FakeListChatModel(responses=list(responses)))
    return ChatService(embedder, retriever, answerer, top_k=5)


def _store_file(embeddings, store, registry, file_name: str, texts: list[str], ts: datetime) -> None:  # noqa: ANN001
    records = [
        VectorRecord.for_chunk(
            file_name=file_name,
            chunk_index=i,
            text=text,
            values=embeddings.embed_query(text),
            timestamp=ts,
        )
        for i, text in enumerate(texts)
    ]
    store.upsert(records)
    registry.record_upload(file_name, ts, [r.id for r in records])


class TestChatService:
    def test_no_documents_is_polite_success(self, embeddings, store, registry) -> None:  # noqa: ANN001
        answer = asyncio.run(_service(embeddings, store, registry).ask("Anything there?"))
        assert answer.response == NO_DOCUMENTS_MESSAGE
        assert answer.sources == []
        assert answer.source_file is None

    def test_answers_from_latest_file_only(self, embeddings, store, registry) -> None:  # noqa: ANN001
        _store_file(embeddings, store, registry, "A.txt", ["Old content."], datetime(2024, 1, 1, tzinfo=timezone.utc))
        _store_file(
            embeddings, store, registry, "B.txt", ["New content.", "More new."], datetime(2024, 2, 1, tzinfo=timezone.utc)
        )
        answer = asyncio.run(_service(embeddings, store, registry).ask("What is new?"))
        assert answer.response == "Grounded answer."
        assert answer.source_file == "B.txt"
        assert {m.file_name for m in answer.sources} == {"B.txt"}
        assert len(answer.sources) == 2

    def test_explicit_file_scope(self, embeddings, store, registry) -> None:  # noqa: ANN001
        _store_file(embeddings, store, registry, "A.txt", ["Old content."], datetime(2024, 1, 1, tzinfo=timezone.utc))
        _store_file(embeddings, store, registry, "B.txt", ["New content."], datetime(2024, 2, 1, tzinfo=timezone.utc))
        answer = asyncio.run(_service(embeddings, store, registry).ask("What is old?", file_name="A.txt"))
        assert answer.source_file == "A.txt"
        assert [m.file_name for m in answer.sources] == ["A.txt"]

    def test_unknown_file_scope_means_no_documents(self, embeddings, store, registry) -> None:  # noqa: ANN001
        answer = asyncio.run(_service(embeddings, store, registry).ask("Hi?", file_name="nope.txt"))
        assert answer.response == NO_DOCUMENTS_MESSAGE

    def test_empty_message_rejected(self, embeddings, store, registry) -> None:  # noqa: ANN001
        with pytest.raises(ValidationError):
            asyncio.run(_service(embeddings, store, registry).ask("  "))
