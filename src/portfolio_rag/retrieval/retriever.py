"""
In-memory retrieval by cosine similarity.

The retriever never owns the corpus: callers pass the current collection of
VectorStoreItems on every call and must not mutate it while a retrieval is
running. A linear scan is enough at portfolio scale (hundreds to low
thousands of chunks).
"""

from typing import Iterable, Optional, Sequence

import numpy as np

from portfolio_rag.retrieval.errors import DimensionMismatchError
from portfolio_rag.retrieval.types import RetrievedChunk, Vector, VectorStoreItem
from portfolio_rag.retrieval.utils import clamp, score_key

DEFAULT_TOP_K = 6
MAX_TOP_K = 50
DEFAULT_MIN_SCORE = 0.0


def _as_pair(a: Vector, b: Vector, strict: bool) -> tuple[np.ndarray, np.ndarray]:
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if len(va) != len(vb):
        if strict:
            raise DimensionMismatchError(len(va), len(vb))
        n = min(len(va), len(vb))
        va, vb = va[:n], vb[:n]
    return va, vb


def dot(a: Vector, b: Vector) -> float:
    """Dot product over the common prefix of a and b."""
    va, vb = _as_pair(a, b, strict=False)
    return float(np.dot(va, vb))


def norm(v: Vector) -> float:
    """Euclidean length of v."""
    return float(np.linalg.norm(np.asarray(v, dtype=np.float64)))


def cosine_similarity(a: Vector, b: Vector, strict: bool = False) -> float:
    """
    Cosine similarity between two vectors.

    When lengths differ, only the common prefix is compared unless strict
    is set. A zero vector on either side gives 0.0.

    Args:
        a: First vector
        b: Second vector
        strict: Raise instead of truncating on a length mismatch

    Returns:
        Similarity in [-1, 1]

    Raises:
        DimensionMismatchError: If strict and the lengths differ
    """
    va, vb = _as_pair(a, b, strict)

    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0

    return float(np.dot(va, vb) / denom)


def retrieve_top_k_from_memory(
    query_embedding: Vector,
    items: Iterable[VectorStoreItem],
    top_k: int = DEFAULT_TOP_K,
    min_score: float = DEFAULT_MIN_SCORE,
    strict: bool = False,
) -> list[RetrievedChunk]:
    """
    Rank corpus items against a query vector.

    Items scoring below min_score are dropped, the rest are sorted by score
    descending (equal scores keep corpus order) and truncated to top_k.

    Args:
        query_embedding: Query vector
        items: Corpus snapshot; not modified
        top_k: Maximum results, clamped to [1, 50]
        min_score: Score floor, clamped to [0, 1]
        strict: Raise on query/item vector length mismatch

    Returns:
        Retrieved chunks with scores attached
    """
    top_k = int(clamp(top_k, 1, MAX_TOP_K))
    min_score = clamp(min_score, 0.0, 1.0)

    scored = [
        RetrievedChunk.from_chunk(
            item.chunk,
            cosine_similarity(query_embedding, item.embedding, strict=strict),
        )
        for item in items
    ]

    filtered = [chunk for chunk in scored if score_key(chunk) >= min_score]

    # list.sort is stable, so ties stay in corpus order
    filtered.sort(key=score_key, reverse=True)

    return filtered[:top_k]


def merge_retrieval_results(
    lists: Iterable[Sequence[RetrievedChunk]],
) -> list[RetrievedChunk]:
    """
    Merge ranked lists, keeping the best-scoring entry per chunk id.

    On equal scores the first occurrence wins. Output is sorted by score
    descending with ties in first-seen order.
    """
    best: dict[str, RetrievedChunk] = {}

    for ranked in lists:
        for chunk in ranked:
            existing: Optional[RetrievedChunk] = best.get(chunk.id)
            if existing is None or score_key(chunk) > score_key(existing):
                best[chunk.id] = chunk

    # dict keeps first insertion position even when a value is replaced
    return sorted(best.values(), key=score_key, reverse=True)
