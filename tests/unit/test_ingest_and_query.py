"""Unit tests for retrieval.pipeline module."""

import threading

import pytest

from portfolio_rag.config import settings
from portfolio_rag.retrieval.embeddings import Embedder
from portfolio_rag.retrieval.errors import (
    ChunkingProducedNoOutputError,
    DimensionMismatchError,
    EmbeddingCancelledError,
    EmbeddingCountMismatchError,
    EmptyInputError,
    ProviderError,
)
from portfolio_rag.retrieval.pipeline import (
    aingest_documents,
    aprepare_query,
    aquery_context,
    ingest_documents,
    prepare_query,
    query_context,
    retrieve_for_preparations,
    to_vector_store_items,
)
from portfolio_rag.retrieval.types import Document, EmbeddedChunk, QueryPreparation, VectorStoreItem


class ShortEmbedder(Embedder):
    """Embedder that drops the last vector of every batch."""

    def embed_many(self, texts, batch_size=None, cancel_event=None):
        return super().embed_many(texts, batch_size, cancel_event)[:-1]


@pytest.fixture
def query_embedder(provider_factory):
    """Embedder with fixed vectors for a few queries."""
    provider = provider_factory(
        vectors={
            "rust": [1.0, 0.0],
            "cms": [0.0, 1.0],
            "both": [1.0, 1.0],
        }
    )
    return Embedder(provider=provider, batch_size=4)


@pytest.fixture
def corpus(make_item):
    return [
        make_item("rust-post", [1.0, 0.0], title="Async Rust"),
        make_item("cms-project", [0.0, 1.0], title="Portfolio CMS"),
        make_item("overview", [1.0, 1.0], title="Overview"),
    ]


@pytest.mark.unit
class TestIngestDocuments:
    """Tests for ingest_documents function."""

    def test_ingest_success(self, sample_documents, fake_embedder, fake_provider):
        embedded = ingest_documents(
            sample_documents, chunk_size=900, chunk_overlap=150, embedder=fake_embedder
        )

        assert all(isinstance(chunk, EmbeddedChunk) for chunk in embedded)
        assert [chunk.id for chunk in embedded] == [
            "blog-async-rust::chunk::0",
            "blog-async-rust::chunk::1",
            "project-portfolio::chunk::0",
        ]
        assert fake_provider.calls == [chunk.content for chunk in embedded]
        for chunk in embedded:
            assert chunk.embedding[0] == float(len(chunk.content))

    def test_ingest_keeps_chunk_fields(self, sample_documents, fake_embedder):
        embedded = ingest_documents(sample_documents, embedder=fake_embedder)
        project = embedded[-1]

        assert project.title == "Portfolio site"
        assert project.source_type == "project"
        assert project.source_url == "/project/portfolio"
        assert project.chunk_index == 0

    def test_ingest_no_documents(self, fake_embedder):
        with pytest.raises(EmptyInputError, match="No documents provided for ingestion."):
            ingest_documents([], embedder=fake_embedder)

    def test_ingest_all_blank(self, fake_embedder, fake_provider):
        documents = [Document(id="a", title="A", content="  "), Document(id="b", title="B", content="")]

        with pytest.raises(ChunkingProducedNoOutputError, match="No chunks generated from documents."):
            ingest_documents(documents, embedder=fake_embedder)

        assert fake_provider.calls == []

    def test_ingest_count_mismatch(self, sample_documents, fake_provider):
        embedder = ShortEmbedder(provider=fake_provider)

        with pytest.raises(EmbeddingCountMismatchError) as exc_info:
            ingest_documents(sample_documents, embedder=embedder)

        assert exc_info.value.expected == 3
        assert exc_info.value.received == 2

    def test_ingest_provider_failure(self, sample_documents, provider_factory):
        """Any embedding failure aborts the whole ingestion."""
        embedder = Embedder(provider=provider_factory(fail_on_call=2))

        with pytest.raises(ProviderError):
            ingest_documents(sample_documents, embedder=embedder)

    def test_ingest_cancelled(self, sample_documents, fake_embedder):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(EmbeddingCancelledError):
            ingest_documents(sample_documents, embedder=fake_embedder, cancel_event=cancel)

    def test_ingest_uses_shared_embedder(self, sample_documents, fake_embedder, fake_provider, monkeypatch):
        monkeypatch.setattr("portfolio_rag.retrieval.pipeline.get_embedder", lambda: fake_embedder)

        embedded = ingest_documents(sample_documents)

        assert len(embedded) == 3
        assert len(fake_provider.calls) == 3

    def test_to_vector_store_items(self, sample_documents, fake_embedder):
        embedded = ingest_documents(sample_documents, embedder=fake_embedder)

        items = to_vector_store_items(embedded)

        assert all(isinstance(item, VectorStoreItem) for item in items)
        assert [item.chunk.id for item in items] == [chunk.id for chunk in embedded]
        assert [item.embedding for item in items] == [chunk.embedding for chunk in embedded]

    @pytest.mark.asyncio
    async def test_aingest_success(self, sample_documents, fake_embedder):
        embedded = await aingest_documents(sample_documents, batch_size=2, embedder=fake_embedder)

        assert [chunk.chunk_index for chunk in embedded] == [0, 1, 0]
        for chunk in embedded:
            assert chunk.embedding[0] == float(len(chunk.content))

    @pytest.mark.asyncio
    async def test_aingest_no_documents(self, fake_embedder):
        with pytest.raises(EmptyInputError):
            await aingest_documents([], embedder=fake_embedder)

    @pytest.mark.asyncio
    async def test_aingest_provider_failure(self, sample_documents, provider_factory):
        embedder = Embedder(provider=provider_factory(fail_on_call=1))

        with pytest.raises(ProviderError):
            await aingest_documents(sample_documents, embedder=embedder)


@pytest.mark.unit
class TestPrepareQuery:
    """Tests for prepare_query function."""

    def test_defaults_from_settings(self, query_embedder):
        preparation = prepare_query("rust", embedder=query_embedder)

        assert preparation.query_embedding == [1.0, 0.0]
        assert preparation.top_k == settings.retrieval_top_k
        assert preparation.min_score == settings.retrieval_min_score
        assert preparation.max_context_chars == settings.max_context_chars

    def test_options_clamped(self, query_embedder):
        preparation = prepare_query(
            "rust", top_k=500, min_score=3.0, max_context_chars=10, embedder=query_embedder
        )

        assert preparation.top_k == 50
        assert preparation.min_score == 1.0
        assert preparation.max_context_chars == 500

    def test_lower_bounds(self, query_embedder):
        preparation = prepare_query(
            "rust", top_k=0, min_score=-0.5, max_context_chars=999999, embedder=query_embedder
        )

        assert preparation.top_k == 1
        assert preparation.min_score == 0.0
        assert preparation.max_context_chars == 20000

    @pytest.mark.parametrize("query", ["", "   ", "\n"])
    def test_blank_query(self, query_embedder, query):
        with pytest.raises(EmptyInputError, match="Query is required."):
            prepare_query(query, embedder=query_embedder)

        assert query_embedder.provider.calls == []

    @pytest.mark.asyncio
    async def test_aprepare_query(self, query_embedder):
        preparation = await aprepare_query("cms", top_k=3, embedder=query_embedder)

        assert preparation.query_embedding == [0.0, 1.0]
        assert preparation.top_k == 3


@pytest.mark.unit
class TestQueryContext:
    """Tests for query_context function."""

    def test_end_to_end(self, query_embedder, corpus):
        result = query_context("rust", corpus, top_k=2, min_score=0.5, embedder=query_embedder)

        assert [c.document_id for c in result.used_chunks] == ["rust-post", "overview"]
        assert result.used_chunks[0].score == pytest.approx(1.0)
        assert "Title: Async Rust" in result.context
        assert "Portfolio CMS" not in result.context

    def test_empty_corpus(self, query_embedder):
        result = query_context("rust", [], embedder=query_embedder)

        assert result.context == ""
        assert result.used_chunks == []

    def test_nothing_above_threshold(self, query_embedder, make_item):
        corpus = [make_item("cms-project", [0.0, 1.0])]

        result = query_context("rust", corpus, min_score=0.3, embedder=query_embedder)

        assert result.context == ""

    def test_blank_query(self, query_embedder, corpus):
        with pytest.raises(EmptyInputError):
            query_context("  ", corpus, embedder=query_embedder)

    def test_expansions_merged(self, query_embedder, corpus):
        """Rankings for every phrasing are merged, then cut to top_k."""
        result = query_context(
            "rust", corpus, top_k=2, expansions=["cms"], embedder=query_embedder
        )

        assert [c.document_id for c in result.used_chunks] == ["rust-post", "cms-project"]
        assert query_embedder.provider.calls == ["rust", "cms"]

    def test_blank_expansions_skipped(self, query_embedder, corpus):
        """Blank expansions are ignored instead of failing a valid query."""
        result = query_context(
            "rust", corpus, top_k=2, expansions=["", "   ", "cms"], embedder=query_embedder
        )

        assert [c.document_id for c in result.used_chunks] == ["rust-post", "cms-project"]
        assert query_embedder.provider.calls == ["rust", "cms"]

    def test_blank_query_with_expansions(self, query_embedder, corpus):
        with pytest.raises(EmptyInputError, match="Query is required."):
            query_context(" ", corpus, expansions=["cms"], embedder=query_embedder)

    def test_strict_dimension_mismatch(self, query_embedder, make_item):
        corpus = [make_item("wide", [1.0, 0.0, 0.0])]

        with pytest.raises(DimensionMismatchError):
            query_context("rust", corpus, embedder=query_embedder, strict=True)

    def test_lenient_dimension_mismatch(self, query_embedder, make_item):
        corpus = [make_item("wide", [1.0, 0.0, 0.0])]

        result = query_context("rust", corpus, embedder=query_embedder, strict=False)

        assert len(result.used_chunks) == 1

    def test_context_budget_respected(self, query_embedder, make_item):
        corpus = [make_item(f"doc{i}", [1.0, 0.01 * i]) for i in range(30)]

        result = query_context("rust", corpus, top_k=30, max_context_chars=600, embedder=query_embedder)

        assert 0 < len(result.used_chunks) < 30
        assert len(result.context) <= 600

    def test_ingest_then_query(self, sample_documents, fake_embedder):
        embedded = ingest_documents(sample_documents, embedder=fake_embedder)
        items = to_vector_store_items(embedded)

        result = query_context("Tokio runtimes", items, top_k=3, embedder=fake_embedder, strict=True)

        assert 1 <= len(result.used_chunks) <= 3
        assert {c.id for c in result.used_chunks} <= {item.chunk.id for item in items}

    @pytest.mark.asyncio
    async def test_aquery_context(self, query_embedder, corpus):
        result = await aquery_context("cms", corpus, top_k=1, embedder=query_embedder)

        assert [c.document_id for c in result.used_chunks] == ["cms-project"]

    @pytest.mark.asyncio
    async def test_aquery_context_expansions(self, query_embedder, corpus):
        result = await aquery_context(
            "cms", corpus, top_k=3, expansions=["both"], embedder=query_embedder
        )

        assert [c.document_id for c in result.used_chunks][0] in {"cms-project", "overview"}
        assert len({c.id for c in result.used_chunks}) == len(result.used_chunks)

    @pytest.mark.asyncio
    async def test_aquery_context_blank_expansions_skipped(self, query_embedder, corpus):
        result = await aquery_context("cms", corpus, top_k=1, expansions=[""], embedder=query_embedder)

        assert [c.document_id for c in result.used_chunks] == ["cms-project"]
        assert query_embedder.provider.calls == ["cms"]


@pytest.mark.unit
class TestRetrieveForPreparations:
    """Tests for retrieve_for_preparations function."""

    def test_primary_options_apply_to_all(self, corpus):
        preparations = [
            QueryPreparation(query_embedding=[1.0, 0.0], top_k=1, min_score=0.9, max_context_chars=5000),
            QueryPreparation(query_embedding=[0.0, 1.0], top_k=50, min_score=0.0, max_context_chars=5000),
        ]

        results = retrieve_for_preparations(preparations, corpus, strict=False)

        assert len(results) == 1
        assert results[0].score == pytest.approx(1.0)
