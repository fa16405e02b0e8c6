"""
Retrieval pipeline components.

Components:
    - chunker: Normalize and split documents into overlapping windows
    - embeddings: Embed texts through an external embedding provider
    - retriever: Cosine-similarity ranking over an in-memory corpus
    - context: Pack ranked chunks into a bounded prompt context
    - pipeline: Ingestion and query entrypoints
    - corpus: Caller-held corpus snapshots
"""

from portfolio_rag.retrieval.chunker import build_chunks_from_documents, chunk_text
from portfolio_rag.retrieval.context import build_context_from_chunks, chunks_to_sources
from portfolio_rag.retrieval.corpus import CorpusSnapshot
from portfolio_rag.retrieval.embeddings import Embedder, HttpEmbeddingProvider
from portfolio_rag.retrieval.errors import RetrievalError
from portfolio_rag.retrieval.pipeline import (
    aingest_documents,
    aquery_context,
    ingest_documents,
    prepare_query,
    query_context,
)
from portfolio_rag.retrieval.retriever import (
    cosine_similarity,
    merge_retrieval_results,
    retrieve_top_k_from_memory,
)
from portfolio_rag.retrieval.types import (
    Chunk,
    ContextResult,
    Document,
    EmbeddedChunk,
    RetrievedChunk,
    VectorStoreItem,
)

__all__ = [
    "Chunk",
    "ContextResult",
    "CorpusSnapshot",
    "Document",
    "EmbeddedChunk",
    "Embedder",
    "HttpEmbeddingProvider",
    "RetrievalError",
    "RetrievedChunk",
    "VectorStoreItem",
    "aingest_documents",
    "aquery_context",
    "build_chunks_from_documents",
    "build_context_from_chunks",
    "chunk_text",
    "chunks_to_sources",
    "cosine_similarity",
    "ingest_documents",
    "merge_retrieval_results",
    "prepare_query",
    "query_context",
    "retrieve_top_k_from_memory",
]
