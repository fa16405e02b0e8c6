"""
Context assembly for prompt injection.

Packs ranked chunks into one bounded string. Each chunk becomes a block:

    ---
    Title: About | Type: page | URL: /about | Score: 0.8123 | Chunk: 0

    <chunk content>

Blocks are added best-first until the next one would overflow the budget.
"""

from typing import Sequence

from portfolio_rag.retrieval.types import ContextResult, RagSource, RetrievedChunk
from portfolio_rag.retrieval.utils import clamp, score_key

DEFAULT_MAX_CONTEXT_CHARS = 5000
MIN_CONTEXT_CHARS = 500
MAX_CONTEXT_CHARS = 20000

BLOCK_SEPARATOR = "\n"
PREVIEW_CHARS = 220


def format_chunk_block(chunk: RetrievedChunk, include_scores: bool = True) -> str:
    """Render one chunk as a header line plus its raw content."""
    header = [f"Title: {chunk.title}"]

    if chunk.source_type:
        header.append(f"Type: {chunk.source_type}")
    if chunk.source_url:
        header.append(f"URL: {chunk.source_url}")
    if include_scores and chunk.score is not None:
        header.append(f"Score: {chunk.score:.4f}")

    header.append(f"Chunk: {chunk.chunk_index}")

    return f"---\n{' | '.join(header)}\n\n{chunk.content}\n"


def build_context_from_chunks(
    chunks: Sequence[RetrievedChunk],
    max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
    include_scores: bool = True,
) -> ContextResult:
    """
    Assemble a context string within a character budget.

    Chunks are re-sorted by score descending (missing scores count as 0,
    ties keep input order). The first block that would push the context
    past the budget stops assembly; it and everything ranked after it are
    dropped.

    Args:
        chunks: Retrieved chunks, in any order
        max_context_chars: Budget, clamped to [500, 20000]
        include_scores: Add "Score: x.xxxx" to block headers

    Returns:
        ContextResult with the joined context and the chunks it contains
    """
    budget = int(clamp(max_context_chars, MIN_CONTEXT_CHARS, MAX_CONTEXT_CHARS))

    if not chunks:
        return ContextResult(context="", used_chunks=[])

    ranked = sorted(chunks, key=score_key, reverse=True)

    parts: list[str] = []
    used: list[RetrievedChunk] = []
    total = 0

    for chunk in ranked:
        block = format_chunk_block(chunk, include_scores)
        cost = len(block) + (len(BLOCK_SEPARATOR) if parts else 0)

        if total + cost > budget:
            break

        parts.append(block)
        used.append(chunk)
        total += cost

    return ContextResult(context=BLOCK_SEPARATOR.join(parts), used_chunks=used)


def truncate_text(text: str, max_chars: int) -> str:
    """Cut text to max_chars (clamped to [10, 200000]) and mark the cut with an ellipsis."""
    limit = int(clamp(max_chars, 10, 200000))
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "…"


def chunks_to_sources(chunks: Sequence[RetrievedChunk]) -> list[RagSource]:
    """Map used chunks to citation entries with a short content preview."""
    return [
        RagSource(
            id=chunk.id,
            title=chunk.title,
            chunk_index=chunk.chunk_index,
            url=chunk.source_url,
            type=chunk.source_type,
            score=chunk.score,
            content_preview=truncate_text(chunk.content, PREVIEW_CHARS),
        )
        for chunk in chunks
    ]
