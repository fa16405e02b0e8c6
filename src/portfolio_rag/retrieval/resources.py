"""
Singleton resource management for the embedding provider and embedder.

Uses the @lru_cache pattern (same as config.py settings singleton) so that
every ingestion and query in a process shares one configured client.

Usage:
    embedder = get_embedder()  # First call builds, subsequent calls reuse

    # In tests (reset cache after changing settings)
    clear_resource_cache()
"""

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

from portfolio_rag.config import settings

if TYPE_CHECKING:
    from portfolio_rag.retrieval.embeddings import Embedder, HttpEmbeddingProvider

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_embedding_provider() -> "HttpEmbeddingProvider":
    """
    Get or create the global HTTP embedding provider.

    Returns:
        HttpEmbeddingProvider configured from settings
    """
    from portfolio_rag.retrieval.embeddings import HttpEmbeddingProvider

    logger.info(f"Initializing embedding provider at {settings.embedding_endpoint_url}")

    return HttpEmbeddingProvider(
        endpoint_url=settings.embedding_endpoint_url,
        api_key=settings.embedding_api_key_value,
        timeout=settings.embedding_timeout,
        max_retries=settings.embedding_max_retries,
        retry_delay=settings.embedding_retry_delay,
    )


@lru_cache(maxsize=1)
def get_embedder() -> "Embedder":
    """
    Get or create the global Embedder.

    Returns:
        Embedder backed by get_embedding_provider()
    """
    from portfolio_rag.retrieval.embeddings import Embedder

    return Embedder(
        provider=get_embedding_provider(),
        batch_size=settings.embedding_batch_size,
    )


def clear_resource_cache() -> None:
    """
    Clear all cached resources.

    Used in tests to reset state between test cases.
    """
    get_embedding_provider.cache_clear()
    get_embedder.cache_clear()
    logger.debug("Resource cache cleared")
