"""
Embedding Port Interface

Abstract contract the router uses to turn text into a fixed-length vector.

These ports follow the hexagonal architecture pattern:
- Routing and indexing code depend only on this interface
- Adapters (LangChain-backed, test doubles) implement it
- Retry/backoff and connection pooling belong to the adapter, never the core

Contract:
- Dimensionality is constant across calls for one backend deployment
- embed_batch returns one vector per input text, in input order

Thread-safety: Implementations must be safe for concurrent async usage.
"""

from abc import ABC, abstractmethod
from typing import Sequence


Vector = list[float]


class EmbeddingPort(ABC):
    """Turns text into embedding vectors."""

    @abstractmethod
    async def embed(self, text: str) -> Vector:
        """
        Embed a single text.

        Raises:
            EmbeddingUnavailable: If the backend errors or times out
        """
        ...

    @abstractmethod
    async def embed_batch(self, texts: Sequence[str]) -> list[Vector]:
        """
        Embed many texts in one round trip.

        Returns:
            Vectors in the same order and of the same length as ``texts``

        Raises:
            EmbeddingUnavailable: If the backend errors, times out, or breaks
                the one-to-one contract
        """
        ...

    async def close(self) -> None:
        """Release backend resources (no-op by default)."""
        return None
