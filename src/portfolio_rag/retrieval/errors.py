"""
Error taxonomy for the retrieval pipeline.

Every failure the pipeline can report is a subclass of RetrievalError, so
collaborators can catch one type at their boundary. Nothing inside the
pipeline recovers from these; they propagate to the caller unchanged.
"""

from typing import Optional


class RetrievalError(Exception):
    """Base class for all retrieval pipeline failures."""


class EmptyInputError(RetrievalError):
    """No text, documents or query were provided."""


class ProviderError(RetrievalError):
    """The embedding provider failed or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable


class ChunkingProducedNoOutputError(RetrievalError):
    """Every input document normalized to empty text."""


class DimensionMismatchError(RetrievalError):
    """Two vectors compared in strict mode have different lengths."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Embedding dimension mismatch: {left} != {right}")
        self.left = left
        self.right = right


class EmbeddingCountMismatchError(RetrievalError):
    """A batch embedding returned a different number of vectors than inputs."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"Embedding count mismatch: expected {expected} vectors, got {received}"
        )
        self.expected = expected
        self.received = received


class EmbeddingCancelledError(RetrievalError):
    """The caller signalled cancellation during a batch embedding."""
