"""
Data model for the retrieval pipeline.

Documents go in, chunks come out of the chunker, embedded chunks come out of
ingestion, and retrieved chunks come out of the retriever. None of these are
persisted by the pipeline itself; the corpus is always held by the caller.

Metadata dicts and vectors are left out of the generated ``__hash__`` (they
still take part in equality), so every record can go in a set or be used as a
dict key.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Literal, Optional, Sequence

SourceType = Literal["blog", "project", "page", "custom"]
"""Closed set of content origins for a document."""

SOURCE_TYPES: tuple[str, ...] = ("blog", "project", "page", "custom")

Vector = Sequence[float]
"""An embedding vector; dimensionality is fixed by the embedding provider."""


@dataclass(frozen=True)
class Document:
    """An ingestion input supplied by the content source."""

    id: str
    """Stable external identifier (e.g. a blog post id)."""

    title: str
    """Human-readable title, repeated in every chunk header."""

    content: str
    """Raw document text."""

    source_type: Optional[SourceType] = None
    """Origin of the content: blog, project, page or custom."""

    source_url: Optional[str] = None
    """Public URL of the document, if any."""

    metadata: dict[str, Any] = field(default_factory=dict, hash=False)
    """Free-form metadata copied onto every chunk."""


@dataclass(frozen=True)
class Chunk:
    """A contiguous slice of a document's normalized text."""

    id: str
    """Deterministic identifier: ``{document_id}::chunk::{chunk_index}``."""

    document_id: str
    """Id of the document this chunk was cut from."""

    title: str
    """Title of the parent document."""

    chunk_index: int
    """Zero-based position within the parent document."""

    content: str
    """The slice text."""

    source_type: Optional[SourceType] = None
    source_url: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict, hash=False)

    def chunk_fields(self) -> dict[str, Any]:
        """Return the plain chunk fields, dropping subclass extras."""
        return {f.name: getattr(self, f.name) for f in fields(Chunk)}


@dataclass(frozen=True)
class EmbeddedChunk(Chunk):
    """A chunk together with its embedding vector."""

    embedding: Vector = field(default=(), hash=False)


@dataclass(frozen=True)
class RetrievedChunk(Chunk):
    """A chunk ranked against a query."""

    score: Optional[float] = None
    """Cosine similarity to the query, if scored."""

    @classmethod
    def from_chunk(cls, chunk: Chunk, score: Optional[float]) -> "RetrievedChunk":
        return cls(**chunk.chunk_fields(), score=score)


@dataclass(frozen=True)
class VectorStoreItem:
    """The unit held by an in-memory corpus: a chunk and its vector."""

    chunk: Chunk
    embedding: Vector = field(hash=False)

    @classmethod
    def from_embedded(cls, embedded: EmbeddedChunk) -> "VectorStoreItem":
        return cls(chunk=Chunk(**embedded.chunk_fields()), embedding=embedded.embedding)


@dataclass(frozen=True)
class QueryPreparation:
    """Everything the retriever and assembler need for one query."""

    query_embedding: Vector = field(hash=False)
    top_k: int
    min_score: float
    max_context_chars: int


@dataclass(frozen=True)
class ContextResult:
    """Assembled context plus the chunks that made it into the budget."""

    context: str
    used_chunks: list[RetrievedChunk] = field(default_factory=list, hash=False)


@dataclass(frozen=True)
class RagSource:
    """Citation view of a chunk used in a context."""

    id: str
    title: str
    chunk_index: int
    url: Optional[str] = None
    type: Optional[SourceType] = None
    score: Optional[float] = None
    content_preview: str = ""
