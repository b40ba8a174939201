"""
Qdrant Vector Index

Async Qdrant implementation of the VectorIndexPort.

Uses qdrant_client.AsyncQdrantClient, which pools its own connections;
one instance is shared by every request.

Point IDs must be UUID strings or unsigned integers (Qdrant requirement);
the indexing pipeline generates UUIDs.

For in-process use (tests, single-node demos) pass
``client=AsyncQdrantClient(location=":memory:")``.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import Distance, PointStruct, VectorParams

from llm_router.index.ports import (
    CollectionInfo,
    CollectionNotFoundError,
    DistanceMetric,
    IndexPoint,
    SearchHit,
    VectorIndexError,
    VectorIndexPort,
)

logger = logging.getLogger(__name__)


_DISTANCE_MAP = {
    DistanceMetric.COSINE: Distance.COSINE,
    DistanceMetric.DOT: Distance.DOT,
    DistanceMetric.EUCLID: Distance.EUCLID,
}


def _client_timeout(timeout: float | None) -> int | None:
    """The client takes whole seconds; round up so sub-second bounds stay non-zero."""
    if timeout is None or timeout <= 0:
        return None
    return math.ceil(timeout)


def _is_missing(error: Exception) -> bool:
    """True for a server 404 or the ValueError raised by local (in-process) mode."""
    if isinstance(error, UnexpectedResponse):
        return error.status_code == 404
    return isinstance(error, ValueError) and "not found" in str(error).lower()


class QdrantVectorIndex(VectorIndexPort):
    """
    Vector index backed by a Qdrant server.
    """

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: str | None = None,
        timeout: float | None = 10.0,
        prefer_grpc: bool = False,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """
        Initialize the Qdrant index.

        Args:
            url: Qdrant server URL (e.g., "http://localhost:6333")
            api_key: Optional API key (required for Qdrant Cloud)
            timeout: Client request timeout in seconds
            prefer_grpc: Use the gRPC interface (port 6334) where possible
            client: Pre-built client (overrides the other arguments)
        """
        self._url = url
        self._client = client or AsyncQdrantClient(
            url=url,
            api_key=api_key,
            timeout=_client_timeout(timeout),
            prefer_grpc=prefer_grpc,
        )
        logger.info(f"Qdrant vector index configured (url={url})")

    async def _require(self, name: str) -> None:
        if not await self._client.collection_exists(collection_name=name):
            raise CollectionNotFoundError(name)

    async def ensure_collection(
        self,
        name: str,
        dimension: int,
        distance: DistanceMetric = DistanceMetric.COSINE,
    ) -> None:
        try:
            if await self._client.collection_exists(collection_name=name):
                await self._client.delete_collection(collection_name=name)
                logger.info(f"Dropped existing Qdrant collection {name}")

            await self._client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(
                    size=dimension,
                    distance=_DISTANCE_MAP[DistanceMetric(distance)],
                ),
            )
        except UnexpectedResponse as e:
            raise VectorIndexError(f"Failed to create collection {name}: {e}") from e

        logger.info(
            f"Created Qdrant collection {name} "
            f"(dim={dimension}, distance={DistanceMetric(distance).value})"
        )

    async def upsert(self, collection: str, points: Sequence[IndexPoint]) -> int:
        if not points:
            return 0

        structs = [
            PointStruct(id=point.id, vector=list(point.vector), payload=dict(point.payload))
            for point in points
        ]

        try:
            await self._client.upsert(
                collection_name=collection,
                points=structs,
                wait=True,
            )
        except (UnexpectedResponse, ValueError) as e:
            if _is_missing(e):
                raise CollectionNotFoundError(collection) from e
            raise VectorIndexError(f"Failed to upsert to {collection}: {e}") from e

        logger.debug(f"Upserted {len(structs)} points to {collection}")
        return len(structs)

    async def search(
        self,
        collection: str,
        query_vector: Sequence[float],
        k: int,
    ) -> list[SearchHit]:
        if k <= 0:
            return []

        try:
            response = await self._client.query_points(
                collection_name=collection,
                query=list(query_vector),
                limit=k,
                with_payload=True,
            )
        except (UnexpectedResponse, ValueError) as e:
            if _is_missing(e):
                raise CollectionNotFoundError(collection) from e
            raise VectorIndexError(f"Search on {collection} failed: {e}") from e

        return [
            SearchHit(id=str(point.id), score=float(point.score), payload=dict(point.payload or {}))
            for point in response.points
        ]

    async def collection_info(self, name: str) -> CollectionInfo:
        await self._require(name)

        info = await self._client.get_collection(collection_name=name)
        count = await self._client.count(collection_name=name, exact=True)

        dimension = None
        distance = None
        vectors = info.config.params.vectors
        if isinstance(vectors, VectorParams):
            dimension = vectors.size
            for metric, qdrant_distance in _DISTANCE_MAP.items():
                if vectors.distance == qdrant_distance:
                    distance = metric

        return CollectionInfo(
            name=name,
            points_count=count.count,
            dimension=dimension,
            distance=distance,
        )

    async def delete_collection(self, name: str) -> bool:
        if not await self._client.collection_exists(collection_name=name):
            return False
        await self._client.delete_collection(collection_name=name)
        logger.info(f"Deleted Qdrant collection {name}")
        return True

    async def close(self) -> None:
        await self._client.close()
