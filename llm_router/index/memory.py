"""
In-Memory Vector Index

Brute-force nearest-neighbour search over numpy matrices.
Suitable for development, testing, and small single-node route sets.

Writes build a new collection state and swap it in, so a concurrent
search always sees either the old or the new state.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np

from llm_router.index.ports import (
    CollectionInfo,
    CollectionNotFoundError,
    DistanceMetric,
    IndexPoint,
    SearchHit,
    VectorDimensionError,
    VectorIndexPort,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CollectionState:
    """Immutable contents of one collection."""
    dimension: int
    distance: DistanceMetric
    ids: tuple[str, ...] = ()
    matrix: np.ndarray | None = None
    payloads: tuple[dict[str, Any], ...] = ()
    positions: dict[str, int] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.ids)


def _scores(
    matrix: np.ndarray,
    query: np.ndarray,
    distance: DistanceMetric,
) -> np.ndarray:
    """Similarity of every row against the query (higher = closer)."""
    if distance == DistanceMetric.DOT:
        return matrix @ query

    if distance == DistanceMetric.EUCLID:
        return -np.linalg.norm(matrix - query, axis=1)

    # Cosine: zero vectors have no direction and score 0
    row_norms = np.linalg.norm(matrix, axis=1)
    query_norm = np.linalg.norm(query)
    denom = row_norms * query_norm
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(denom > 0, dots / np.where(denom > 0, denom, 1.0), 0.0)
    return np.clip(scores, -1.0, 1.0)


class InMemoryVectorIndex(VectorIndexPort):
    """
    In-memory vector index implementation.

    Features:
    - Cosine, dot product and euclidean scoring
    - Stable ordering (equal scores keep insertion order)
    - Copy-on-write collections for lock-free searches
    """

    def __init__(self):
        self._collections: dict[str, _CollectionState] = {}
        self._lock = asyncio.Lock()

    async def ensure_collection(
        self,
        name: str,
        dimension: int,
        distance: DistanceMetric = DistanceMetric.COSINE,
    ) -> None:
        if dimension <= 0:
            raise ValueError(f"Collection dimension must be positive, got {dimension}")

        async with self._lock:
            replaced = name in self._collections
            self._collections[name] = _CollectionState(
                dimension=dimension,
                distance=DistanceMetric(distance),
            )
        logger.info(
            f"{'Recreated' if replaced else 'Created'} in-memory collection "
            f"{name} (dim={dimension}, distance={DistanceMetric(distance).value})"
        )

    async def upsert(self, collection: str, points: Sequence[IndexPoint]) -> int:
        if not points:
            return 0

        async with self._lock:
            state = self._collections.get(collection)
            if state is None:
                raise CollectionNotFoundError(collection)

            for point in points:
                if len(point.vector) != state.dimension:
                    raise VectorDimensionError(state.dimension, len(point.vector))

            ids = list(state.ids)
            payloads = list(state.payloads)
            rows = (
                [row for row in state.matrix]
                if state.matrix is not None else []
            )
            positions = dict(state.positions)

            for point in points:
                vector = np.asarray(point.vector, dtype=np.float32)
                position = positions.get(point.id)
                if position is None:
                    positions[point.id] = len(ids)
                    ids.append(point.id)
                    payloads.append(dict(point.payload))
                    rows.append(vector)
                else:
                    payloads[position] = dict(point.payload)
                    rows[position] = vector

            self._collections[collection] = _CollectionState(
                dimension=state.dimension,
                distance=state.distance,
                ids=tuple(ids),
                matrix=np.vstack(rows),
                payloads=tuple(payloads),
                positions=positions,
            )

        logger.debug(f"Upserted {len(points)} points to {collection}")
        return len(points)

    async def search(
        self,
        collection: str,
        query_vector: Sequence[float],
        k: int,
    ) -> list[SearchHit]:
        state = self._collections.get(collection)
        if state is None:
            raise CollectionNotFoundError(collection)

        if len(query_vector) != state.dimension:
            raise VectorDimensionError(state.dimension, len(query_vector))

        if k <= 0 or state.size == 0 or state.matrix is None:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        scores = _scores(state.matrix, query, state.distance)
        order = np.argsort(-scores, kind="stable")[:k]

        return [
            SearchHit(
                id=state.ids[i],
                score=float(scores[i]),
                payload=dict(state.payloads[i]),
            )
            for i in order
        ]

    async def collection_info(self, name: str) -> CollectionInfo:
        state = self._collections.get(name)
        if state is None:
            raise CollectionNotFoundError(name)
        return CollectionInfo(
            name=name,
            points_count=state.size,
            dimension=state.dimension,
            distance=state.distance,
        )

    async def delete_collection(self, name: str) -> bool:
        async with self._lock:
            existed = self._collections.pop(name, None) is not None
        if existed:
            logger.info(f"Deleted in-memory collection {name}")
        return existed

    def collection_names(self) -> list[str]:
        return sorted(self._collections)
