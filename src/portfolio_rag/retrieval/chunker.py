"""
Fixed-window document chunking.

Splits document text into overlapping character windows after normalizing
whitespace. Chunk ids are derived from the document id and the chunk's
position, so re-ingesting the same content reproduces the same ids.
"""

import logging
import re
from typing import Iterable

from portfolio_rag.retrieval.types import Chunk, Document
from portfolio_rag.retrieval.utils import clamp

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 900
DEFAULT_CHUNK_OVERLAP = 150
MIN_CHUNK_SIZE = 200
MAX_CHUNK_SIZE = 4000

CHUNK_ID_SEPARATOR = "::chunk::"

_HORIZONTAL_WS = re.compile(r"[ \t]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def normalize_whitespace(text: str) -> str:
    """
    Normalize whitespace before chunking.

    Drops carriage returns, collapses runs of spaces/tabs to a single space,
    collapses three or more newlines to a blank line, and trims both ends.
    """
    text = text.replace("\r", "")
    text = _HORIZONTAL_WS.sub(" ", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def make_chunk_id(document_id: str, index: int) -> str:
    return f"{document_id}{CHUNK_ID_SEPARATOR}{index}"


def parse_chunk_id(chunk_id: str) -> tuple[str, int]:
    """
    Split a chunk id back into (document_id, chunk_index).

    Returns ("", -1) when the id was not produced by make_chunk_id.
    """
    parts = chunk_id.split(CHUNK_ID_SEPARATOR)
    if len(parts) != 2:
        return "", -1

    document_id, raw_index = parts
    try:
        return document_id, int(raw_index)
    except ValueError:
        return document_id, -1


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """
    Split text into overlapping fixed-size windows.

    Consecutive chunks share exactly `chunk_overlap` characters and every
    character of the normalized text lands in at least one chunk. The last
    chunk may be shorter than `chunk_size`.

    Args:
        text: Raw text to chunk
        chunk_size: Maximum chunk length, clamped to [200, 4000]
        chunk_overlap: Characters shared by consecutive chunks,
            clamped to [0, chunk_size - 1]

    Returns:
        List of chunk strings (empty for empty or whitespace-only text)
    """
    chunk_size = int(clamp(chunk_size, MIN_CHUNK_SIZE, MAX_CHUNK_SIZE))
    chunk_overlap = int(clamp(chunk_overlap, 0, chunk_size - 1))

    cleaned = normalize_whitespace(text or "")
    if not cleaned:
        return []

    chunks: list[str] = []
    start = 0
    while start < len(cleaned):
        end = min(start + chunk_size, len(cleaned))
        chunks.append(cleaned[start:end])

        if end >= len(cleaned):
            break

        start = end - chunk_overlap

    return chunks


def build_chunks_from_documents(
    documents: Iterable[Document],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[Chunk]:
    """
    Chunk every document, keeping input order.

    Args:
        documents: Documents to chunk
        chunk_size: Maximum chunk length in characters
        chunk_overlap: Characters shared by consecutive chunks

    Returns:
        Flat list of chunks; chunk_index restarts at 0 for each document
    """
    chunks: list[Chunk] = []

    for document in documents:
        pieces = chunk_text(document.content, chunk_size, chunk_overlap)
        if not pieces:
            logger.debug(f"Document {document.id!r} produced no chunks")

        for index, content in enumerate(pieces):
            chunks.append(
                Chunk(
                    id=make_chunk_id(document.id, index),
                    document_id=document.id,
                    title=document.title,
                    chunk_index=index,
                    content=content,
                    source_type=document.source_type,
                    source_url=document.source_url,
                    metadata=dict(document.metadata),
                )
            )

    return chunks
