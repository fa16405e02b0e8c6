"""
Pydantic models for API request and response schemas.

These models provide automatic validation and OpenAPI documentation.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from portfolio_rag.retrieval.types import Document, RagSource


class DocumentSchema(BaseModel):
    """A document submitted for ingestion."""

    id: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Stable document identifier",
        examples=["blog-rust-async"],
    )
    title: str = Field(
        ...,
        description="Document title",
        examples=["Async Rust in practice"],
    )
    source_type: Optional[Literal["blog", "project", "page", "custom"]] = Field(
        default=None,
        description="Origin of the content",
    )
    source_url: Optional[str] = Field(
        default=None,
        description="Public URL of the document",
        examples=["/blog/async-rust"],
    )
    content: str = Field(
        ...,
        description="Raw document text",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form metadata copied onto every chunk",
    )

    def to_document(self) -> Document:
        return Document(
            id=self.id,
            title=self.title,
            content=self.content,
            source_type=self.source_type,
            source_url=self.source_url,
            metadata=dict(self.metadata),
        )


class IngestRequest(BaseModel):
    """Request schema for the /ingest endpoint."""

    documents: list[DocumentSchema] = Field(
        ...,
        description="Documents that make up the new corpus",
    )
    chunk_size: Optional[int] = Field(
        default=None,
        description="Maximum chunk length in characters (clamped to 200-4000)",
    )
    chunk_overlap: Optional[int] = Field(
        default=None,
        description="Characters shared by consecutive chunks",
    )
    batch_size: Optional[int] = Field(
        default=None,
        description="Concurrent embedding calls (clamped to 1-50)",
    )


class IngestResponse(BaseModel):
    """Response schema for the /ingest endpoint."""

    documents: int = Field(description="Documents in the new corpus")
    chunks: int = Field(description="Embedded chunks in the new corpus")
    dimension: int = Field(description="Embedding dimension")
    latency_ms: float = Field(description="Total processing time in milliseconds")


class ContextRequest(BaseModel):
    """Request schema for the /context endpoint."""

    query: str = Field(
        ...,
        max_length=2000,
        description="User question to ground",
        examples=["Which projects used FastAPI?"],
    )
    top_k: Optional[int] = Field(default=None, description="Maximum chunks (clamped to 1-50)")
    min_score: Optional[float] = Field(default=None, description="Minimum cosine similarity")
    max_context_chars: Optional[int] = Field(
        default=None,
        description="Context budget in characters (clamped to 500-20000)",
    )
    expansions: list[str] = Field(
        default_factory=list,
        max_length=5,
        description="Alternative phrasings whose results are merged in",
    )


class SourceSchema(BaseModel):
    """Citation for a chunk included in the context."""

    id: str
    title: str
    chunk_index: int
    url: Optional[str] = None
    type: Optional[str] = None
    score: Optional[float] = None
    content_preview: str = ""

    @classmethod
    def from_source(cls, source: RagSource) -> "SourceSchema":
        return cls(
            id=source.id,
            title=source.title,
            chunk_index=source.chunk_index,
            url=source.url,
            type=source.type,
            score=source.score,
            content_preview=source.content_preview,
        )


class ContextResponse(BaseModel):
    """Response schema for the /context endpoint."""

    context: str = Field(description="Prompt-ready context (empty when nothing matched)")
    sources: list[SourceSchema] = Field(
        default_factory=list,
        description="Chunks included in the context",
    )
    fallback: bool = Field(
        default=False,
        description="True when retrieval failed and an empty context was returned",
    )
    error: Optional[str] = Field(
        default=None,
        description="Retrieval error message when fallback is true",
    )


class HealthResponse(BaseModel):
    """Response schema for the /health endpoint."""

    status: str = Field(
        description="Health status",
        examples=["healthy", "degraded"],
    )
    version: str = Field(
        description="API version",
    )
    corpus_loaded: bool = Field(
        description="Whether a non-empty corpus is available",
    )
    corpus_size: int = Field(
        description="Number of chunks in the corpus",
    )


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    error: str = Field(
        description="Error code",
        examples=["empty_input", "provider_error", "ingestion_error"],
    )
    message: str = Field(
        description="Human-readable error message",
    )
