"""
Ingestion and query entrypoints.

Ingestion: documents -> chunks -> embeddings -> EmbeddedChunks.
Query: query -> embedding -> ranked chunks (over a caller-supplied corpus)
-> bounded context.

Options left as None fall back to the values in settings.
"""

import logging
import time
from typing import Optional, Sequence

from portfolio_rag.config import settings
from portfolio_rag.retrieval.chunker import build_chunks_from_documents
from portfolio_rag.retrieval.context import (
    MAX_CONTEXT_CHARS,
    MIN_CONTEXT_CHARS,
    build_context_from_chunks,
)
from portfolio_rag.retrieval.embeddings import CancelEvent, Embedder
from portfolio_rag.retrieval.errors import (
    ChunkingProducedNoOutputError,
    EmbeddingCountMismatchError,
    EmptyInputError,
)
from portfolio_rag.retrieval.resources import get_embedder
from portfolio_rag.retrieval.retriever import (
    MAX_TOP_K,
    merge_retrieval_results,
    retrieve_top_k_from_memory,
)
from portfolio_rag.retrieval.types import (
    Chunk,
    ContextResult,
    Document,
    EmbeddedChunk,
    QueryPreparation,
    RetrievedChunk,
    Vector,
    VectorStoreItem,
)
from portfolio_rag.retrieval.utils import clamp

logger = logging.getLogger(__name__)


# =============================================================================
# Ingestion
# =============================================================================

def _chunk_for_ingestion(
    documents: Sequence[Document],
    chunk_size: Optional[int],
    chunk_overlap: Optional[int],
) -> list[Chunk]:
    if not documents:
        raise EmptyInputError("No documents provided for ingestion.")

    chunks = build_chunks_from_documents(
        documents,
        chunk_size=chunk_size if chunk_size is not None else settings.chunk_size,
        chunk_overlap=chunk_overlap if chunk_overlap is not None else settings.chunk_overlap,
    )
    if not chunks:
        raise ChunkingProducedNoOutputError("No chunks generated from documents.")

    logger.info(f"Chunked {len(documents)} documents into {len(chunks)} chunks")
    return chunks


def _attach_embeddings(
    chunks: list[Chunk],
    embeddings: list[list[float]],
) -> list[EmbeddedChunk]:
    if len(embeddings) != len(chunks):
        raise EmbeddingCountMismatchError(len(chunks), len(embeddings))

    return [
        EmbeddedChunk(**chunk.chunk_fields(), embedding=embedding)
        for chunk, embedding in zip(chunks, embeddings)
    ]


def ingest_documents(
    documents: Sequence[Document],
    chunk_size: Optional[int] = None,
    chunk_overlap: Optional[int] = None,
    batch_size: Optional[int] = None,
    embedder: Optional[Embedder] = None,
    cancel_event: Optional[CancelEvent] = None,
) -> list[EmbeddedChunk]:
    """
    Chunk and embed documents into a fresh corpus.

    Any failure aborts the whole ingestion; no partial corpus is returned.

    Args:
        documents: Documents to ingest
        chunk_size: Maximum chunk length in characters
        chunk_overlap: Characters shared by consecutive chunks
        batch_size: Embedding batch size
        embedder: Embedder to use (default: cached embedder from settings)
        cancel_event: Set it to abort the embedding stage

    Returns:
        Embedded chunks, in document then chunk order

    Raises:
        EmptyInputError: If no documents were given
        ChunkingProducedNoOutputError: If every document is blank
        ProviderError: If any embedding call fails
        EmbeddingCountMismatchError: If the vector count differs from the chunk count
        EmbeddingCancelledError: If cancel_event gets set
    """
    chunks = _chunk_for_ingestion(documents, chunk_size, chunk_overlap)
    embedder = embedder or get_embedder()

    start_time = time.perf_counter()
    embeddings = embedder.embed_many(
        [chunk.content for chunk in chunks],
        batch_size=batch_size,
        cancel_event=cancel_event,
    )
    logger.info(
        f"Embedded {len(embeddings)} chunks in {(time.perf_counter() - start_time) * 1000:.0f}ms"
    )

    return _attach_embeddings(chunks, embeddings)


async def aingest_documents(
    documents: Sequence[Document],
    chunk_size: Optional[int] = None,
    chunk_overlap: Optional[int] = None,
    batch_size: Optional[int] = None,
    embedder: Optional[Embedder] = None,
    cancel_event: Optional[CancelEvent] = None,
) -> list[EmbeddedChunk]:
    """Async version of ingest_documents; batch_size bounds concurrent provider calls."""
    chunks = _chunk_for_ingestion(documents, chunk_size, chunk_overlap)
    embedder = embedder or get_embedder()

    start_time = time.perf_counter()
    embeddings = await embedder.aembed_many(
        [chunk.content for chunk in chunks],
        batch_size=batch_size,
        cancel_event=cancel_event,
    )
    logger.info(
        f"Embedded {len(embeddings)} chunks in {(time.perf_counter() - start_time) * 1000:.0f}ms"
    )

    return _attach_embeddings(chunks, embeddings)


def to_vector_store_items(embedded: Sequence[EmbeddedChunk]) -> list[VectorStoreItem]:
    """Convert ingestion output into corpus items."""
    return [VectorStoreItem.from_embedded(chunk) for chunk in embedded]


# =============================================================================
# Query
# =============================================================================

def _build_preparation(
    query_embedding: Vector,
    top_k: Optional[int],
    min_score: Optional[float],
    max_context_chars: Optional[int],
) -> QueryPreparation:
    return QueryPreparation(
        query_embedding=query_embedding,
        top_k=int(clamp(top_k if top_k is not None else settings.retrieval_top_k, 1, MAX_TOP_K)),
        min_score=clamp(
            min_score if min_score is not None else settings.retrieval_min_score, 0.0, 1.0
        ),
        max_context_chars=int(
            clamp(
                max_context_chars if max_context_chars is not None else settings.max_context_chars,
                MIN_CONTEXT_CHARS,
                MAX_CONTEXT_CHARS,
            )
        ),
    )


def _require_query(query: str) -> None:
    if not query or not query.strip():
        raise EmptyInputError("Query is required.")


def _phrasings(query: str, expansions: Sequence[str]) -> list[str]:
    """The query followed by its non-blank expansions; only the query itself must be non-blank."""
    return [query, *(text for text in expansions if text and text.strip())]


def prepare_query(
    query: str,
    top_k: Optional[int] = None,
    min_score: Optional[float] = None,
    max_context_chars: Optional[int] = None,
    embedder: Optional[Embedder] = None,
) -> QueryPreparation:
    """
    Embed a query and resolve its retrieval options.

    Raises:
        EmptyInputError: If the query is blank
        ProviderError: If the embedding call fails
    """
    _require_query(query)
    embedder = embedder or get_embedder()
    return _build_preparation(embedder.embed_text(query), top_k, min_score, max_context_chars)


async def aprepare_query(
    query: str,
    top_k: Optional[int] = None,
    min_score: Optional[float] = None,
    max_context_chars: Optional[int] = None,
    embedder: Optional[Embedder] = None,
) -> QueryPreparation:
    """Async version of prepare_query."""
    _require_query(query)
    embedder = embedder or get_embedder()
    embedding = await embedder.aembed_text(query)
    return _build_preparation(embedding, top_k, min_score, max_context_chars)


def retrieve_for_preparations(
    preparations: Sequence[QueryPreparation],
    corpus: Sequence[VectorStoreItem],
    strict: Optional[bool] = None,
) -> list[RetrievedChunk]:
    """
    Retrieve for one or more prepared queries and merge the rankings.

    The first preparation supplies top_k and min_score for every ranking,
    and the merged list is truncated to that top_k.
    """
    primary = preparations[0]
    strict = settings.strict_dimensions if strict is None else strict

    rankings = [
        retrieve_top_k_from_memory(
            preparation.query_embedding,
            corpus,
            top_k=primary.top_k,
            min_score=primary.min_score,
            strict=strict,
        )
        for preparation in preparations
    ]
    if len(rankings) == 1:
        return rankings[0]

    return merge_retrieval_results(rankings)[: primary.top_k]


def query_context(
    query: str,
    corpus: Sequence[VectorStoreItem],
    top_k: Optional[int] = None,
    min_score: Optional[float] = None,
    max_context_chars: Optional[int] = None,
    expansions: Sequence[str] = (),
    embedder: Optional[Embedder] = None,
    strict: Optional[bool] = None,
) -> ContextResult:
    """
    Build the prompt context for a query against a corpus snapshot.

    The corpus belongs to the caller and must not change while this runs.

    Args:
        query: User query
        corpus: Current corpus items
        top_k: Maximum chunks to retrieve
        min_score: Minimum cosine similarity
        max_context_chars: Context character budget
        expansions: Extra phrasings of the query; blank ones are skipped,
            the rest have their rankings merged
        embedder: Embedder to use (default: cached embedder from settings)
        strict: Fail on vector length mismatch (default from settings)

    Returns:
        ContextResult with the context string and the chunks it includes
    """
    embedder = embedder or get_embedder()
    preparations = [
        prepare_query(text, top_k, min_score, max_context_chars, embedder=embedder)
        for text in _phrasings(query, expansions)
    ]

    retrieved = retrieve_for_preparations(preparations, corpus, strict)
    logger.debug(f"Retrieved {len(retrieved)} of {len(corpus)} chunks")

    return build_context_from_chunks(retrieved, preparations[0].max_context_chars)


async def aquery_context(
    query: str,
    corpus: Sequence[VectorStoreItem],
    top_k: Optional[int] = None,
    min_score: Optional[float] = None,
    max_context_chars: Optional[int] = None,
    expansions: Sequence[str] = (),
    embedder: Optional[Embedder] = None,
    strict: Optional[bool] = None,
) -> ContextResult:
    """Async version of query_context."""
    embedder = embedder or get_embedder()
    preparations = [
        await aprepare_query(text, top_k, min_score, max_context_chars, embedder=embedder)
        for text in _phrasings(query, expansions)
    ]

    retrieved = retrieve_for_preparations(preparations, corpus, strict)
    logger.debug(f"Retrieved {len(retrieved)} of {len(corpus)} chunks")

    return build_context_from_chunks(retrieved, preparations[0].max_context_chars)
