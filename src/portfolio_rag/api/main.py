"""
FastAPI application for the portfolio-rag REST API.

Run with:
    uvicorn portfolio_rag.api.main:app --reload

Or use the CLI:
    portfolio-rag serve

The app holds the current corpus snapshot in ``app.state.corpus``. Ingestion
builds a complete new snapshot and swaps it in only on success, so queries
never see a partial corpus.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from portfolio_rag import __version__
from portfolio_rag.api.models import (
    ContextRequest,
    ContextResponse,
    ErrorResponse,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    SourceSchema,
)
from portfolio_rag.config import settings
from portfolio_rag.retrieval.context import chunks_to_sources
from portfolio_rag.retrieval.corpus import CorpusSnapshot
from portfolio_rag.retrieval.embeddings import Embedder
from portfolio_rag.retrieval.errors import (
    ChunkingProducedNoOutputError,
    EmptyInputError,
    RetrievalError,
)
from portfolio_rag.retrieval.pipeline import aingest_documents, aquery_context
from portfolio_rag.retrieval.resources import get_embedder

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Load the corpus snapshot from settings.corpus_path if one exists
        - Otherwise start with an empty corpus until /ingest is called
    """
    logger.info("Initializing portfolio-rag resources...")

    try:
        app.state.corpus = CorpusSnapshot.load(settings.corpus_path)
    except FileNotFoundError:
        logger.warning(f"No corpus snapshot at {settings.corpus_path}; starting empty")
        app.state.corpus = CorpusSnapshot()

    yield

    logger.info("Shutting down portfolio-rag...")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="portfolio-rag",
        description="Retrieval pipeline for a portfolio site's AI assistant",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


router = APIRouter()


def _current_corpus(request: Request) -> CorpusSnapshot:
    return getattr(request.app.state, "corpus", None) or CorpusSnapshot()


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint for liveness/readiness probes.

    Reports "degraded" while the corpus is empty: queries still answer,
    but always with an empty context.
    """
    corpus = _current_corpus(request)

    return HealthResponse(
        status="healthy" if len(corpus) else "degraded",
        version=__version__,
        corpus_loaded=len(corpus) > 0,
        corpus_size=len(corpus),
    )


@router.post(
    "/ingest",
    response_model=IngestResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Nothing to ingest"},
        502: {"model": ErrorResponse, "description": "Embedding provider failure"},
    },
    tags=["Ingestion"],
)
async def ingest_endpoint(
    payload: IngestRequest,
    request: Request,
    embedder: Embedder = Depends(get_embedder),
) -> IngestResponse:
    """
    Re-embed the full corpus from the submitted documents.

    The previous corpus stays in place if anything fails.

    Raises:
        HTTPException: 400 if no documents or no chunks
        HTTPException: 502 if the embedding provider fails
    """
    start_time = time.perf_counter()

    try:
        embedded = await aingest_documents(
            [document.to_document() for document in payload.documents],
            chunk_size=payload.chunk_size,
            chunk_overlap=payload.chunk_overlap,
            batch_size=payload.batch_size,
            embedder=embedder,
        )
    except (EmptyInputError, ChunkingProducedNoOutputError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "empty_input", "message": str(e)},
        )
    except RetrievalError as e:
        logger.error(f"Ingestion failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "ingestion_error", "message": str(e)},
        )

    corpus = CorpusSnapshot.from_embedded_chunks(embedded)
    request.app.state.corpus = corpus

    latency_ms = (time.perf_counter() - start_time) * 1000
    logger.info(f"Ingested {len(payload.documents)} documents into {len(corpus)} chunks")

    return IngestResponse(
        documents=len(corpus.document_ids),
        chunks=len(corpus),
        dimension=corpus.dimension,
        latency_ms=latency_ms,
    )


@router.post("/context", response_model=ContextResponse, tags=["Query"])
async def context_endpoint(
    payload: ContextRequest,
    request: Request,
    embedder: Embedder = Depends(get_embedder),
) -> ContextResponse:
    """
    Build the grounding context for a chat turn.

    Retrieval failures never fail the chat turn: they return an empty
    context with fallback=true so the model is told it has no grounding.
    """
    corpus = _current_corpus(request)

    try:
        result = await aquery_context(
            payload.query,
            corpus.items,
            top_k=payload.top_k,
            min_score=payload.min_score,
            max_context_chars=payload.max_context_chars,
            expansions=payload.expansions,
            embedder=embedder,
        )
    except RetrievalError as e:
        logger.warning(f"Context retrieval failed, falling back to empty context: {e}")
        return ContextResponse(context="", sources=[], fallback=True, error=str(e))

    return ContextResponse(
        context=result.context,
        sources=[SourceSchema.from_source(source) for source in chunks_to_sources(result.used_chunks)],
    )


# Create app instance
app = create_app()
