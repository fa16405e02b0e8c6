"""
FastAPI REST API for portfolio-rag.

Endpoints:
    POST /ingest - Re-embed the corpus from a set of documents
    POST /context - Build the grounding context for a query
    GET /health - Health check for probes
"""

from portfolio_rag.api.main import app, create_app

__all__ = ["app", "create_app"]
