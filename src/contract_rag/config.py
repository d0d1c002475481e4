"""Configuration models for the contract RAG core."""

from __future__ import annotations

import os
from enum import Enum

from pydantic import BaseModel, Field


class ProviderKind(str, Enum):
    """Which backend serves embeddings and completions.

    Selected once at startup. `OLLAMA` is a local model with a small context
    window; `OPENAI` is a hosted model with a large one.
    """

    OLLAMA = "ollama"
    OPENAI = "openai"

    @property
    def is_local(self) -> bool:
        return self is ProviderKind.OLLAMA


class EmbeddingCacheConfig(BaseModel):
    """Configures the embedding memo cache and the sliding-window limiter."""

    capacity: int = Field(default=500, ge=1)
    eviction_fraction: float = Field(default=0.1, gt=0.0, le=1.0)
    rate_limit_calls: int = Field(default=10, ge=1)
    rate_window_seconds: float = Field(default=60.0, gt=0.0)


class RetrievalConfig(BaseModel):
    """Configures similarity thresholds and candidate counts."""

    similarity_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    generation_candidates: int = Field(default=5, ge=1)
    validation_candidates: int = Field(default=3, ge=1)
    embedding_prefix_chars: int = Field(default=2000, ge=1)


class ClauseConfig(BaseModel):
    """Configures the key-clause compression heuristic."""

    clause_body_chars: int = Field(default=500, ge=1)
    fallback_chars: int = Field(default=2000, ge=1)
    max_output_chars: int = Field(default=8000, ge=1)
    global_reference_count: int = Field(default=3, ge=1)


class PromptLimits(BaseModel):
    """Character ceilings applied to each prompt section."""

    target_chars: int = Field(default=15000, ge=1)
    reference_clause_chars: int = Field(default=8000, ge=1)
    requirements_chars: int = Field(default=5000, ge=1)
    context_chars: int = Field(default=3000, ge=1)
    generation_reference_chars: int = Field(default=15000, ge=1)
    generation_query_chars: int = Field(default=5000, ge=1)

    @classmethod
    def for_provider(cls, kind: ProviderKind) -> "PromptLimits":
        if kind.is_local:
            return cls(
                target_chars=4000,
                reference_clause_chars=2000,
                requirements_chars=2000,
                context_chars=800,
                generation_reference_chars=6000,
                generation_query_chars=2000,
            )
        return cls()


class ProviderConfig(BaseModel):
    """Connection details for the selected model backend."""

    kind: ProviderKind = ProviderKind.OLLAMA
    model: str = "llama3.1:8b"
    embedding_model: str = "nomic-embed-text"
    base_url: str | None = "http://127.0.0.1:11434"
    api_key: str | None = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    num_ctx: int = Field(default=4096, ge=512)


class Settings(BaseModel):
    """Top-level settings assembled once per process."""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    cache: EmbeddingCacheConfig = Field(default_factory=EmbeddingCacheConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    clauses: ClauseConfig = Field(default_factory=ClauseConfig)
    database_url: str | None = None
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def prompt_limits(self) -> PromptLimits:
        return PromptLimits.for_provider(self.provider.kind)

    @classmethod
    def from_env(cls) -> "Settings":
        raw_kind = os.getenv("LLM_PROVIDER", ProviderKind.OLLAMA.value).strip().lower()
        try:
            kind = ProviderKind(raw_kind)
        except ValueError as exc:
            raise ValueError(
                f"Unknown LLM_PROVIDER: {raw_kind}. Use 'ollama' or 'openai'."
            ) from exc

        if kind is ProviderKind.OLLAMA:
            provider = ProviderConfig(
                kind=kind,
                model=os.getenv("OLLAMA_MODEL", "llama3.1:8b"),
                embedding_model=os.getenv("OLLAMA_EMBEDDING_MODEL", "nomic-embed-text"),
                base_url=os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434"),
            )
        else:
            provider = ProviderConfig(
                kind=kind,
                model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
                embedding_model=os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
                base_url=os.getenv("OPENAI_BASE_URL") or None,
                api_key=os.getenv("OPENAI_API_KEY") or None,
            )

        return cls(
            provider=provider,
            database_url=os.getenv("DATABASE_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=os.getenv("LOG_JSON", "").lower() in {"1", "true", "yes"},
        )
