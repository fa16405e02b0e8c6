"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Use a .env file for local development.

Environment Variables:
    EMBEDDING_ENDPOINT_URL: URL of the embedding provider route
    EMBEDDING_API_KEY: Bearer token for the embedding provider (optional)
    EMBEDDING_TIMEOUT: Per-request timeout in seconds
    CHUNK_SIZE: Character size for document chunks
    CHUNK_OVERLAP: Overlap between chunks
    RETRIEVAL_TOP_K: Number of chunks to retrieve
    MAX_CONTEXT_CHARS: Character budget for the assembled context
    CORPUS_PATH: Path to the corpus snapshot written by `portfolio-rag ingest`
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Embedding Provider
    # ==========================================================================
    embedding_endpoint_url: str = Field(
        default="http://localhost:3000/api/ai/embeddings",
        description="Embedding route accepting {text} and returning {embedding}",
    )
    embedding_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Bearer token sent to the embedding provider (optional)",
    )
    embedding_timeout: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="Per-request timeout in seconds for embedding calls",
    )
    embedding_max_retries: int = Field(
        default=0,
        ge=0,
        le=5,
        description="Retries on 429/5xx/transport failures (0 disables retries)",
    )
    embedding_retry_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=30.0,
        description="Initial backoff delay in seconds between retries",
    )
    embedding_batch_size: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Texts per batch (also the concurrency limit for async embedding)",
    )

    # ==========================================================================
    # Chunking Configuration
    # ==========================================================================
    chunk_size: int = Field(
        default=900,
        ge=200,
        le=4000,
        description="Maximum chunk length in characters",
    )
    chunk_overlap: int = Field(
        default=150,
        ge=0,
        le=3999,
        description="Characters repeated between consecutive chunks",
    )

    # ==========================================================================
    # Retrieval Configuration
    # ==========================================================================
    retrieval_top_k: int = Field(
        default=6,
        ge=1,
        le=50,
        description="Number of chunks to retrieve",
    )
    retrieval_min_score: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Minimum cosine similarity for retrieved chunks",
    )
    max_context_chars: int = Field(
        default=5000,
        ge=500,
        le=20000,
        description="Character budget for the assembled context",
    )
    strict_dimensions: bool = Field(
        default=False,
        description="Fail on query/chunk vector length mismatch instead of truncating",
    )
    corpus_path: Path = Field(
        default=Path("data/corpus.json"),
        description="Corpus snapshot used by the CLI and loaded by the API on startup",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================
    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind API server",
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for API server",
    )

    # ==========================================================================
    # Observability Configuration
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================
    @field_validator("chunk_overlap")
    @classmethod
    def validate_chunk_overlap(cls, v: int, info) -> int:
        """Ensure overlap is less than chunk size."""
        chunk_size = info.data.get("chunk_size", 900)
        if v >= chunk_size:
            raise ValueError(f"chunk_overlap ({v}) must be less than chunk_size ({chunk_size})")
        return v

    @field_validator("corpus_path")
    @classmethod
    def resolve_path(cls, v: Path) -> Path:
        """Resolve paths to absolute paths."""
        return v.resolve()

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def embedding_api_key_value(self) -> Optional[str]:
        """Get the actual API key value (use sparingly)."""
        if self.embedding_api_key:
            return self.embedding_api_key.get_secret_value()
        return None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    Call `get_settings.cache_clear()` to reload settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Convenience alias
settings = get_settings()
