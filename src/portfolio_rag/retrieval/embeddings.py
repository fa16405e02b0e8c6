"""
Embedding generation via an external embedding provider.

The provider is a plain HTTP route that accepts ``{"text": ...}`` and answers
``{"embedding": [...]}`` (optionally wrapped as ``{"ok": true, "data": {...}}``).
HttpEmbeddingProvider owns the transport concerns (timeouts, auth, optional
retries); Embedder owns validation, batching and result ordering.
"""

import asyncio
import logging
import threading
from typing import Any, Optional, Protocol, Sequence, Union

import httpx
from tenacity import (
    AsyncRetrying,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from portfolio_rag.config import settings
from portfolio_rag.retrieval.errors import (
    EmbeddingCancelledError,
    EmptyInputError,
    ProviderError,
)
from portfolio_rag.retrieval.utils import clamp

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
MAX_BATCH_SIZE = 50

CancelEvent = Union[threading.Event, asyncio.Event]


class EmbeddingProvider(Protocol):
    """Anything that can turn one text into one vector, sync and async."""

    def embed(self, text: str) -> list[float]: ...

    async def aembed(self, text: str) -> list[float]: ...


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


class HttpEmbeddingProvider:
    """
    Call a JSON embedding route over HTTP.

    Non-2xx responses and transport failures (including timeouts) surface as
    ProviderError. Retries are disabled unless max_retries > 0, and then only
    cover rate limits, server errors and transport failures.

    Example:
        >>> provider = HttpEmbeddingProvider(endpoint_url="http://localhost:3000/api/ai/embeddings")
        >>> provider.embed("What projects use Rust?")[:3]
        [0.013, -0.044, 0.021]
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ) -> None:
        """
        Initialize the provider client.

        Args:
            endpoint_url: Embedding route URL (default from settings)
            api_key: Bearer token (default from settings)
            timeout: Per-request timeout in seconds (default from settings)
            max_retries: Extra attempts on retryable failures (default from settings)
            retry_delay: Initial exponential backoff delay in seconds (default from settings)
        """
        self.endpoint_url = endpoint_url or settings.embedding_endpoint_url
        self.api_key = api_key or settings.embedding_api_key_value
        self.timeout = timeout if timeout is not None else settings.embedding_timeout
        self.max_retries = max_retries if max_retries is not None else settings.embedding_max_retries
        self.retry_delay = retry_delay if retry_delay is not None else settings.embedding_retry_delay

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _retry_policy(self) -> dict[str, Any]:
        return {
            "retry": retry_if_exception(_is_retryable),
            "stop": stop_after_attempt(self.max_retries + 1),
            "wait": wait_exponential(multiplier=self.retry_delay),
            "before_sleep": before_sleep_log(logger, logging.WARNING),
            "reraise": True,
        }

    def embed(self, text: str) -> list[float]:
        """
        Embed one text.

        Raises:
            ProviderError: On non-2xx responses, malformed bodies or network errors
        """
        return Retrying(**self._retry_policy())(self._post, text)

    async def aembed(self, text: str) -> list[float]:
        """Async version of embed."""
        return await AsyncRetrying(**self._retry_policy())(self._apost, text)

    def _post(self, text: str) -> list[float]:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.endpoint_url, json={"text": text}, headers=self.headers)
        except httpx.TransportError as e:
            raise ProviderError(str(e) or "Network error", retryable=True) from e
        return self._parse_response(response)

    async def _apost(self, text: str) -> list[float]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.endpoint_url, json={"text": text}, headers=self.headers)
        except httpx.TransportError as e:
            raise ProviderError(str(e) or "Network error", retryable=True) from e
        return self._parse_response(response)

    @staticmethod
    def _parse_response(response: httpx.Response) -> list[float]:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        status = response.status_code
        if response.is_error:
            message = None
            if isinstance(payload, dict):
                message = payload.get("error") or payload.get("message")
            raise ProviderError(
                str(message or f"Request failed ({status})"),
                status_code=status,
                retryable=status == 429 or status >= 500,
            )

        # Accept both {embedding} and {ok, data: {embedding}}
        if isinstance(payload, dict) and "data" in payload:
            payload = payload["data"]

        embedding = payload.get("embedding") if isinstance(payload, dict) else None
        if not isinstance(embedding, list) or not embedding or not all(
            isinstance(value, (int, float)) and not isinstance(value, bool) for value in embedding
        ):
            raise ProviderError("Embedding provider returned invalid response", status_code=status)

        return [float(value) for value in embedding]


def _check_cancelled(cancel_event: Optional[CancelEvent]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise EmbeddingCancelledError("Embedding cancelled by caller")


class Embedder:
    """
    Turn texts into vectors through an embedding provider.

    Batches fail fast: the first provider failure aborts the whole call and no
    partial list is returned. Vector i always corresponds to text i.

    Example:
        >>> embedder = Embedder()
        >>> vectors = embedder.embed_many(["About me", "Projects"], batch_size=2)
        >>> len(vectors)
        2
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        """
        Initialize the embedder.

        Args:
            provider: Embedding provider (default: HttpEmbeddingProvider from settings)
            batch_size: Default batch size / concurrency limit (default from settings)
        """
        self.provider = provider or HttpEmbeddingProvider()
        self.batch_size = self._resolve_batch_size(
            batch_size if batch_size is not None else settings.embedding_batch_size
        )

    @staticmethod
    def _resolve_batch_size(batch_size: Optional[int]) -> int:
        return int(clamp(DEFAULT_BATCH_SIZE if batch_size is None else batch_size, 1, MAX_BATCH_SIZE))

    def embed_text(self, text: str) -> list[float]:
        """
        Embed a single text.

        Raises:
            EmptyInputError: If text is blank
            ProviderError: If the provider call fails
        """
        if not text or not text.strip():
            raise EmptyInputError("Text is required for embeddings.")
        return self.provider.embed(text)

    async def aembed_text(self, text: str) -> list[float]:
        """Async version of embed_text."""
        if not text or not text.strip():
            raise EmptyInputError("Text is required for embeddings.")
        return await self.provider.aembed(text)

    def embed_many(
        self,
        texts: Sequence[str],
        batch_size: Optional[int] = None,
        cancel_event: Optional[CancelEvent] = None,
    ) -> list[list[float]]:
        """
        Embed texts batch by batch, one sequential provider call per text.

        Args:
            texts: Texts to embed
            batch_size: Texts per batch, clamped to [1, 50]
            cancel_event: Checked before every provider call

        Returns:
            One vector per input text, in input order

        Raises:
            EmptyInputError: If texts is empty or any text is blank
            ProviderError: On the first failing provider call
            EmbeddingCancelledError: If cancel_event gets set
        """
        if not texts:
            raise EmptyInputError("texts[] is required.")

        size = self._resolve_batch_size(self.batch_size if batch_size is None else batch_size)
        embeddings: list[list[float]] = []

        for start in range(0, len(texts), size):
            batch = texts[start : start + size]
            logger.debug(f"Embedding batch {start // size + 1} ({len(batch)} texts)")

            for text in batch:
                _check_cancelled(cancel_event)
                embeddings.append(self.embed_text(text))

        return embeddings

    async def aembed_many(
        self,
        texts: Sequence[str],
        batch_size: Optional[int] = None,
        cancel_event: Optional[CancelEvent] = None,
    ) -> list[list[float]]:
        """
        Embed texts concurrently with at most batch_size calls in flight.

        Results are written into a pre-sized list by input index, so ordering
        does not depend on completion order. The first failure cancels every
        outstanding call and is re-raised.
        """
        if not texts:
            raise EmptyInputError("texts[] is required.")

        size = self._resolve_batch_size(self.batch_size if batch_size is None else batch_size)
        semaphore = asyncio.Semaphore(size)
        results: list[Optional[list[float]]] = [None] * len(texts)

        async def _embed_at(index: int, text: str) -> None:
            async with semaphore:
                _check_cancelled(cancel_event)
                results[index] = await self.aembed_text(text)

        tasks = [asyncio.ensure_future(_embed_at(i, text)) for i, text in enumerate(texts)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return [vector for vector in results if vector is not None]
