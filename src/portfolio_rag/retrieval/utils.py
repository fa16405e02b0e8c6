"""
Small helpers shared by the retrieval components.
"""

from portfolio_rag.retrieval.types import RetrievedChunk


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def score_key(chunk: RetrievedChunk) -> float:
    """Sort key for ranked chunks; a missing score counts as 0."""
    return chunk.score if chunk.score is not None else 0.0
