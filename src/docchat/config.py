"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from docchat.ingestion.chunker import ChunkingPolicy


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Providers
    openai_api_key: str = Field(default="", description="OpenAI API key (embeddings and chat)")
    google_api_key: str = Field(default="", description="Google Generative AI key (Gemini embeddings)")

    # Embedding
    embedding_provider: str = Field(
        default="openai",
        description="One of 'openai', 'gemini' or 'mock'.",
    )
    embedding_model: str = Field(default="", description="Empty selects the provider default.")
    embedding_dimension: int = Field(
        default=0,
        description="Vector length of the embedding model; 0 selects the provider default.",
    )

    # Chat completion
    llm_model_name: str = "gpt-4o-mini"
    llm_base_url: str = ""
    llm_max_tokens: int = 500
    llm_temperature: float = 0.7

    # Vector store
    pinecone_api_key: str = ""
    pinecone_index_name: str = "rag-gemini-768"
    pinecone_namespace: str = ""
    vector_store: str = Field(default="pinecone", description="'pinecone' or 'memory'.")
    registry_path: str = Field(
        default="",
        description="JSON file backing the file registry. Empty keeps it in memory.",
    )

    # Ingestion pipeline
    chunk_mode: str = Field(default="large", description="'strict' (word units) or 'large' (sentences).")
    chunk_byte_budget: int = 0
    min_chunk_chars: int = 0
    embed_byte_ceiling: int = 10_000
    truncation_levels: list[int] = Field(default_factory=lambda: [1500, 500])
    embed_batch_size: int = 5
    inter_batch_delay: float = 1.0
    upsert_batch_size: int = 100
    use_mock_vectors: bool = False

    # Retrieval
    retrieval_top_k: int = 5

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


class PipelineConfig(BaseModel):
    """Every knob of the chunk → embed → upsert pipeline in one object.

    The byte-strict and large-chunk strategies are the same pipeline with a
    different :class:`ChunkingPolicy`; mock vectors are a flag rather than a
    separate code path.
    """

    chunk_policy: ChunkingPolicy = Field(default_factory=ChunkingPolicy.large_chunks)
    embed_byte_ceiling: int = 10_000
    truncation_levels: list[int] = Field(default_factory=lambda: [1500, 500])
    batch_size: int = Field(default=5, ge=1)
    inter_batch_delay: float = Field(default=1.0, ge=0.0)
    upsert_batch_size: int = Field(default=100, ge=1)
    use_mock_vectors: bool = False

    @classmethod
    def from_settings(cls, s: Settings) -> PipelineConfig:
        if s.chunk_mode == "strict":
            policy = ChunkingPolicy.byte_strict()
        elif s.chunk_mode == "large":
            policy = ChunkingPolicy.large_chunks()
        else:
            raise ValueError(f"Unsupported chunk_mode: {s.chunk_mode!r}")

        overrides: dict[str, int] = {}
        if s.chunk_byte_budget:
            overrides["max_bytes"] = s.chunk_byte_budget
        if s.min_chunk_chars:
            overrides["min_chars"] = s.min_chunk_chars
        if overrides:
            policy = policy.model_copy(update=overrides)

        return cls(
            chunk_policy=policy,
            embed_byte_ceiling=s.embed_byte_ceiling,
            truncation_levels=sorted(s.truncation_levels, reverse=True),
            batch_size=s.embed_batch_size,
            inter_batch_delay=s.inter_batch_delay,
            upsert_batch_size=s.upsert_batch_size,
            use_mock_vectors=s.use_mock_vectors or s.embedding_provider == "mock",
        )


# Import `settings` wherever needed; tests build their own `Settings`.
settings = Settings()
