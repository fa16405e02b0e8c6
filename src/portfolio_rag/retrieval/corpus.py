"""
Caller-side corpus snapshots.

The retriever never owns the corpus. A CorpusSnapshot is what a collaborator
(the CLI, the API) holds between ingestion and queries: an immutable tuple of
VectorStoreItems that is replaced wholesale on re-ingestion, so queries in
flight keep reading the snapshot they started with.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

from portfolio_rag.config import settings
from portfolio_rag.retrieval.types import Chunk, EmbeddedChunk, VectorStoreItem

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = 1


@dataclass(frozen=True)
class CorpusSnapshot:
    """
    Read-only view of an embedded corpus.

    Example:
        >>> snapshot = CorpusSnapshot.from_embedded_chunks(ingest_documents(documents))
        >>> snapshot.save("data/corpus.json")
        >>> query_context("What do you build?", CorpusSnapshot.load("data/corpus.json").items)
    """

    items: tuple[VectorStoreItem, ...] = ()

    @classmethod
    def from_embedded_chunks(cls, embedded: Sequence[EmbeddedChunk]) -> "CorpusSnapshot":
        return cls(items=tuple(VectorStoreItem.from_embedded(chunk) for chunk in embedded))

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[VectorStoreItem]:
        return iter(self.items)

    @property
    def document_ids(self) -> list[str]:
        """Distinct document ids in corpus order."""
        return list(dict.fromkeys(item.chunk.document_id for item in self.items))

    @property
    def dimension(self) -> int:
        """Vector length of the first item (0 for an empty corpus)."""
        if not self.items:
            return 0
        return len(self.items[0].embedding)

    def save(self, path: str | Path | None = None) -> Path:
        """
        Write the snapshot to a JSON file.

        Args:
            path: Output file (default from settings)

        Returns:
            The path written
        """
        path = Path(path) if path is not None else settings.corpus_path
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": SNAPSHOT_FORMAT_VERSION,
            "items": [
                {
                    "chunk": item.chunk.chunk_fields(),
                    "embedding": list(item.embedding),
                }
                for item in self.items
            ],
        }

        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.info(f"Saved corpus snapshot with {len(self)} items to {path}")
        return path

    @classmethod
    def load(cls, path: str | Path | None = None) -> "CorpusSnapshot":
        """
        Read a snapshot written by save().

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file has an unknown format version
        """
        path = Path(path) if path is not None else settings.corpus_path
        if not path.exists():
            raise FileNotFoundError(f"Corpus snapshot not found: {path}")

        with path.open(encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("version")
        if version != SNAPSHOT_FORMAT_VERSION:
            raise ValueError(f"Unsupported corpus snapshot version: {version}")

        items = tuple(
            VectorStoreItem(
                chunk=Chunk(**entry["chunk"]),
                embedding=tuple(float(value) for value in entry["embedding"]),
            )
            for entry in data["items"]
        )
        logger.info(f"Loaded corpus snapshot with {len(items)} items from {path}")
        return cls(items=items)
