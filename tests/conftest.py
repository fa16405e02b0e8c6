"""
Pytest configuration and shared fixtures.

Provides common fixtures for:
    - Configuration with test values
    - A fake embedding provider (no network)
    - Sample documents and corpus items
"""

import asyncio
from typing import Optional
from unittest.mock import patch

import pytest

from portfolio_rag.retrieval.errors import ProviderError


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def mock_settings():
    """Provide test settings without requiring .env file."""
    with patch.dict(
        "os.environ",
        {
            "EMBEDDING_ENDPOINT_URL": "http://embeddings.test/api/ai/embeddings",
            "EMBEDDING_API_KEY": "test-api-key",
            "CHUNK_SIZE": "600",
            "CHUNK_OVERLAP": "100",
            "RETRIEVAL_TOP_K": "4",
            "STRICT_DIMENSIONS": "true",
        },
    ):
        from portfolio_rag.config import Settings
        yield Settings()


# =============================================================================
# Fake Embedding Provider
# =============================================================================

class FakeEmbeddingProvider:
    """
    In-memory embedding provider for tests.

    Returns the vector registered for a text, or a deterministic vector
    derived from the text. Fails with ProviderError on the n-th call when
    fail_on_call is set.
    """

    def __init__(
        self,
        vectors: Optional[dict[str, list[float]]] = None,
        fail_on_call: Optional[int] = None,
        delays: Optional[dict[str, float]] = None,
    ) -> None:
        self.vectors = vectors or {}
        self.fail_on_call = fail_on_call
        self.delays = delays or {}
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def _vector_for(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise ProviderError("Embedding provider unavailable", status_code=503)
        if text in self.vectors:
            return list(self.vectors[text])
        return [float(len(text)), 1.0, float(sum(map(ord, text)) % 7)]

    def embed(self, text: str) -> list[float]:
        return self._vector_for(text)

    async def aembed(self, text: str) -> list[float]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(text, 0.001))
            return self._vector_for(text)
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    """Provide a fake embedding provider with no registered vectors."""
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_embedder(fake_provider):
    """Provide an Embedder backed by the fake provider."""
    from portfolio_rag.retrieval.embeddings import Embedder

    return Embedder(provider=fake_provider, batch_size=10)


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def sample_documents():
    """Provide sample portfolio documents."""
    from portfolio_rag.retrieval.types import Document

    return [
        Document(
            id="blog-async-rust",
            title="Async Rust in practice",
            content="Tokio runtimes, pinning and cancellation safety. " * 30,
            source_type="blog",
            source_url="/blog/async-rust",
            metadata={"tags": ["rust", "async"]},
        ),
        Document(
            id="project-portfolio",
            title="Portfolio site",
            content="A Next.js site with an admin CMS and an AI assistant.",
            source_type="project",
            source_url="/project/portfolio",
        ),
    ]


@pytest.fixture
def make_item():
    """Factory for corpus items with a given id and vector."""
    from portfolio_rag.retrieval.types import Chunk, VectorStoreItem

    def _make_item(document_id: str, embedding: list[float], index: int = 0, title: str = "") -> VectorStoreItem:
        chunk = Chunk(
            id=f"{document_id}::chunk::{index}",
            document_id=document_id,
            title=title or document_id.title(),
            chunk_index=index,
            content=f"Content of {document_id} #{index}",
        )
        return VectorStoreItem(chunk=chunk, embedding=embedding)

    return _make_item


@pytest.fixture
def make_retrieved():
    """Factory for retrieved chunks with a given id, score and content."""
    from portfolio_rag.retrieval.types import RetrievedChunk

    def _make_retrieved(chunk_id: str, score: Optional[float], content: str = "text", **kwargs) -> RetrievedChunk:
        return RetrievedChunk(
            id=chunk_id,
            document_id=chunk_id.split("::")[0],
            title=kwargs.pop("title", "Doc"),
            chunk_index=kwargs.pop("chunk_index", 0),
            content=content,
            score=score,
            **kwargs,
        )

    return _make_retrieved


@pytest.fixture
def provider_factory():
    """Provide the FakeEmbeddingProvider class for tests that configure failures or vectors."""
    return FakeEmbeddingProvider
