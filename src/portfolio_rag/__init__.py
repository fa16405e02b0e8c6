"""
portfolio-rag: Retrieval pipeline for a portfolio site's AI assistant

This package turns portfolio content (blog posts, projects, pages) into
overlapping chunks, embeds them through an external embedding provider,
and at query time ranks the chunks by cosine similarity and packs the best
ones into a bounded context string for a language model.

Key Components:
    - retrieval: Chunking, embedding, in-memory retrieval and context assembly
    - api: FastAPI endpoints for ingestion and context queries
    - cli: Typer command-line interface

Example:
    >>> from portfolio_rag.retrieval import CorpusSnapshot, Document, ingest_documents, query_context
    >>> embedded = ingest_documents([Document(id="intro", title="Intro", content=text)])
    >>> corpus = CorpusSnapshot.from_embedded_chunks(embedded)
    >>> result = query_context("What do you build?", corpus.items)
    >>> print(result.context)
"""

__version__ = "0.1.0"

from portfolio_rag.config import settings

__all__ = [
    "__version__",
    "settings",
]
