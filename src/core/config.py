"""Application configuration and .env loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized runtime configuration."""

    ai_model: str | None = Field(default=None, validation_alias="AI_MODEL")
    ai_model_provider: str | None = Field(
        default=None, validation_alias="AI_MODEL_PROVIDER"
    )
    ai_temperature: float = Field(default=0.0, validation_alias="AI_TEMPERATURE")
    ai_max_tokens: int | None = Field(default=None, validation_alias="AI_MAX_TOKENS")
    ai_max_retries: int = Field(default=2, validation_alias="AI_MAX_RETRIES")
    ai_system_prompt: str | None = Field(
        default=None, validation_alias="AI_SYSTEM_PROMPT"
    )
    ai_batch_size: int = Field(default=100, ge=1, validation_alias="AI_BATCH_SIZE")
    ai_concurrency: int = Field(default=6, ge=1, validation_alias="AI_CONCURRENCY")
    ai_batch_timeout: float = Field(
        default=120.0, gt=0, validation_alias="AI_BATCH_TIMEOUT"
    )
    qroc_batch_size: int = Field(default=10, ge=1, validation_alias="QROC_BATCH_SIZE")

    embedding_model: str | None = Field(
        default=None, validation_alias="EMBEDDING_MODEL"
    )
    embedding_model_provider: str | None = Field(
        default=None, validation_alias="EMBEDDING_MODEL_PROVIDER"
    )
    embedding_batch_size: int = Field(
        default=64, ge=1, validation_alias="EMBEDDING_BATCH_SIZE"
    )
    embedding_retry_attempts: int = Field(
        default=5, ge=1, validation_alias="EMBEDDING_RETRY_ATTEMPTS"
    )
    embedding_retry_base_ms: int = Field(
        default=500, ge=0, validation_alias="EMBEDDING_RETRY_BASE_MS"
    )

    enable_rag: bool = Field(default=False, validation_alias="ENABLE_RAG")
    rag_index_id: str | None = Field(default=None, validation_alias="RAG_INDEX_ID")
    rag_index_map: str | None = Field(default=None, validation_alias="RAG_INDEX_MAP")
    rag_top_k: int = Field(default=10, ge=1, validation_alias="RAG_TOP_K")
    rag_max_snippets: int = Field(default=8, ge=1, validation_alias="RAG_MAX_SNIPPETS")
    rag_context_char_budget: int = Field(
        default=2500, ge=0, validation_alias="RAG_CONTEXT_CHAR_BUDGET"
    )
    rag_chunk_size: int = Field(default=800, ge=1, validation_alias="RAG_CHUNK_SIZE")
    rag_chunk_overlap: int = Field(
        default=300, ge=0, validation_alias="RAG_CHUNK_OVERLAP"
    )

    session_ttl_seconds: float = Field(
        default=1800.0, gt=0, validation_alias="SESSION_TTL_SECONDS"
    )
    session_sweep_interval: float = Field(
        default=300.0, gt=0, validation_alias="SESSION_SWEEP_INTERVAL"
    )
    stream_interval: float = Field(default=0.8, gt=0, validation_alias="STREAM_INTERVAL")
    import_stream_interval: float = Field(
        default=1.0, gt=0, validation_alias="IMPORT_STREAM_INTERVAL"
    )
    row_yield_every: int = Field(default=25, ge=1, validation_alias="ROW_YIELD_EVERY")
    jobs_list_limit: int = Field(default=5, ge=1, validation_alias="JOBS_LIST_LIMIT")

    store_path: str = Field(
        default="data/qbank.sqlite", validation_alias="STORE_PATH"
    )

    langsmith_tracing: bool = Field(default=False, validation_alias="LANGSMITH_TRACING")
    langsmith_project: str | None = Field(
        default=None, validation_alias="LANGSMITH_PROJECT"
    )
    langsmith_endpoint: str | None = Field(
        default=None, validation_alias="LANGSMITH_ENDPOINT"
    )
    langsmith_api_key: str | None = Field(
        default=None, validation_alias="LANGSMITH_API_KEY", exclude=True
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def features(self) -> dict[str, bool]:
        """Which optional stacks are usable with the current values."""
        return {
            "correction": self.ai_model is not None,
            "embeddings": self.embedding_model is not None,
            "rag": bool(
                self.enable_rag
                and self.embedding_model
                and (self.rag_index_id or self.rag_index_map)
            ),
            "tracing": bool(self.langsmith_tracing and self.langsmith_api_key),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once from .env/environment."""
    return Settings()


__all__ = ["Settings", "get_settings"]
