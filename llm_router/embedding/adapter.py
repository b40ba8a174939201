"""
LangChain Embedding Adapter

Wraps any LangChain ``Embeddings`` implementation as an EmbeddingPort.

Features:
- Per-call timeout (a slow backend surfaces as EmbeddingUnavailable)
- Retry with exponential backoff, layered here and not in the routing engine
- One-to-one batch contract enforcement
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from llm_router.embedding.ports import EmbeddingPort, Vector
from llm_router.errors import EmbeddingUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LangChainEmbeddingAdapter(EmbeddingPort):
    """
    EmbeddingPort backed by a LangChain Embeddings object.

    Uses the async ``aembed_query`` / ``aembed_documents`` methods, which
    every LangChain Embeddings provides (falling back to a thread executor
    for sync-only integrations).
    """

    def __init__(
        self,
        embeddings: Any,
        timeout: float | None = 5.0,
        max_retries: int = 2,
        retry_base_delay: float = 0.2,
        retry_max_delay: float = 2.0,
    ):
        """
        Initialize the adapter.

        Args:
            embeddings: LangChain Embeddings instance
            timeout: Per-attempt timeout in seconds (None disables)
            max_retries: Retries after the first failed attempt
            retry_base_delay: Base delay for retry backoff (seconds)
            retry_max_delay: Maximum retry delay (seconds)
        """
        self._embeddings = embeddings
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    @property
    def embeddings(self) -> Any:
        return self._embeddings

    def _backoff(self, attempt: int) -> float:
        return min(self._retry_base_delay * (2 ** attempt), self._retry_max_delay)

    async def _call(self, operation: str, factory: Callable[[], Awaitable[T]]) -> T:
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                if self._timeout is None:
                    return await factory()
                return await asyncio.wait_for(factory(), timeout=self._timeout)
            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(
                    f"Embedding {operation} timed out after {self._timeout}s "
                    f"(attempt {attempt + 1}/{self._max_retries + 1})"
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Embedding {operation} failed: {e} "
                    f"(attempt {attempt + 1}/{self._max_retries + 1})"
                )

            if attempt < self._max_retries:
                await asyncio.sleep(self._backoff(attempt))

        if isinstance(last_error, asyncio.TimeoutError):
            raise EmbeddingUnavailable(
                f"Embedding {operation} timed out after {self._timeout}s"
            ) from last_error
        raise EmbeddingUnavailable(
            f"Embedding {operation} failed: {last_error}"
        ) from last_error

    async def embed(self, text: str) -> Vector:
        vector = await self._call("query", lambda: self._embeddings.aembed_query(text))
        return [float(x) for x in vector]

    async def embed_batch(self, texts: Sequence[str]) -> list[Vector]:
        if not texts:
            return []

        items = list(texts)
        vectors = await self._call(
            "batch", lambda: self._embeddings.aembed_documents(items)
        )

        if len(vectors) != len(items):
            raise EmbeddingUnavailable(
                f"Embedding batch returned {len(vectors)} vectors for {len(items)} texts"
            )

        return [[float(x) for x in vector] for vector in vectors]
