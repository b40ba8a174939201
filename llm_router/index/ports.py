"""
Vector Index Port Interfaces

Abstract contract the router uses to store labeled vectors and answer
nearest-neighbour queries.

These ports follow the hexagonal architecture pattern:
- Routing and indexing code depend only on these interfaces
- Adapters (in-memory, Qdrant) implement them
- The index is injected via dependency inversion

Thread-safety: All implementations must be safe for concurrent async usage.
Searches must never observe a half-applied upsert batch.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence


class DistanceMetric(str, Enum):
    """Similarity metric a collection is built with."""
    COSINE = "cosine"
    DOT = "dot"
    EUCLID = "euclid"


@dataclass
class IndexPoint:
    """
    A labeled vector to store.

    Payload carries route name, model, provider, utterance text and route
    metadata as flat string fields.
    """
    id: str
    vector: list[float]
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchHit:
    """A nearest-neighbour result (higher score = more similar)."""
    id: str
    score: float
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class CollectionInfo:
    """Summary of a stored collection."""
    name: str
    points_count: int
    dimension: int | None = None
    distance: DistanceMetric | None = None


class VectorIndexPort(ABC):
    """
    Storage and nearest-neighbour search for labeled vectors.
    """

    @abstractmethod
    async def ensure_collection(
        self,
        name: str,
        dimension: int,
        distance: DistanceMetric = DistanceMetric.COSINE,
    ) -> None:
        """
        Create the collection, replacing any existing one with the same name.

        Idempotent: calling it twice leaves one empty collection.

        Raises:
            VectorIndexError: If creation fails
        """
        ...

    @abstractmethod
    async def upsert(self, collection: str, points: Sequence[IndexPoint]) -> int:
        """
        Insert or replace points.

        Args:
            collection: Target collection
            points: Points to write (one bounded batch)

        Returns:
            Number of points written

        Raises:
            CollectionNotFoundError: If the collection does not exist
            VectorIndexError: If the write fails
        """
        ...

    @abstractmethod
    async def search(
        self,
        collection: str,
        query_vector: Sequence[float],
        k: int,
    ) -> list[SearchHit]:
        """
        Find the k most similar points.

        Returns:
            Up to k hits ordered by descending similarity. Fewer than k if the
            collection holds fewer points.

        Raises:
            CollectionNotFoundError: If the collection does not exist
            VectorIndexError: If the query fails
        """
        ...

    @abstractmethod
    async def collection_info(self, name: str) -> CollectionInfo:
        """
        Report a collection's point count.

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        ...

    @abstractmethod
    async def delete_collection(self, name: str) -> bool:
        """
        Drop a collection.

        Returns:
            True if it existed
        """
        ...

    async def close(self) -> None:
        """Release connections (no-op by default)."""
        return None


# =============================================================================
# Exceptions
# =============================================================================

class VectorIndexError(Exception):
    """Base exception for vector index errors."""
    pass


class CollectionNotFoundError(VectorIndexError):
    """Collection does not exist."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Collection not found: {name}")


class VectorDimensionError(VectorIndexError):
    """Vector length does not match the collection's dimensionality."""
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector dimension {actual} does not match collection dimension {expected}")
