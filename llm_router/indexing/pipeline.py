"""
Indexing Pipeline

Turns route definitions into a searchable index generation and publishes
the matching catalog snapshot.

Build flow:
1. Validate every definition (nothing is touched if one is invalid)
2. Embed a sample text once to learn the dimensionality D
3. Create a fresh collection for the new generation (named
   "<prefix>_g<N>_<random suffix>", never reused by any process)
4. Embed utterances in bounded batches per route; every vector must have D components
5. Upsert points in bounded batches
6. Verify the point count (mismatch is a warning)
7. Publish the catalog snapshot with a single swap, then retire the old collection

Any failure or cancellation drops the half-built collection and leaves the
previous generation live.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from llm_router.catalog import CatalogSnapshot, RouteCatalog, RouteDefinition, validate_definitions
from llm_router.embedding import EmbeddingPort
from llm_router.errors import (
    EmbeddingDimensionMismatch,
    EmbeddingUnavailable,
    IndexBuildInProgress,
    IndexUnavailable,
    RoutingCancelled,
)
from llm_router.index import DistanceMetric, IndexPoint, VectorIndexPort
from llm_router.indexing.loader import load_route_definitions

logger = logging.getLogger(__name__)

SAMPLE_TEXT = "test"


@dataclass
class BuildReport:
    """Summary of a completed index build."""
    generation: int
    collection: str
    dimension: int
    routes: int
    points: int
    verified: bool
    duration_ms: float


def _chunks(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def build_payload(definition: RouteDefinition, utterance: str) -> dict[str, str]:
    """Flat string payload stored with each point. Reserved keys win over metadata."""
    payload = dict(definition.metadata)
    payload.update({
        "route": definition.name,
        "model": definition.model,
        "provider": definition.provider,
        "utterance": utterance,
    })
    return payload


class IndexBuilder:
    """
    Builds index generations and publishes them to a RouteCatalog.

    Builds are serialised; routing reads are never blocked.
    """

    def __init__(
        self,
        catalog: RouteCatalog,
        index: VectorIndexPort,
        embedder: EmbeddingPort,
        collection_prefix: str = "llm_routes",
        embed_batch_size: int = 64,
        upsert_batch_size: int = 100,
        verify_attempts: int = 3,
        verify_interval: float = 0.5,
        retire_delay: float = 0.0,
    ):
        """
        Initialize the builder.

        Args:
            catalog: Catalog to publish generations to
            index: Vector index port
            embedder: Embedding port
            collection_prefix: Base name; generation N lives in "<prefix>_g<N>_<suffix>"
            embed_batch_size: Max texts per embed_batch call
            upsert_batch_size: Max points per upsert call
            verify_attempts: Point count checks before giving up with a warning
            verify_interval: Seconds between point count checks
            retire_delay: Seconds to keep the superseded collection for
                in-flight searches (0 drops it immediately)
        """
        if embed_batch_size <= 0 or upsert_batch_size <= 0:
            raise ValueError("Batch sizes must be positive")

        self._catalog = catalog
        self._index = index
        self._embedder = embedder
        self._prefix = collection_prefix
        self._embed_batch_size = embed_batch_size
        self._upsert_batch_size = upsert_batch_size
        self._verify_attempts = max(1, verify_attempts)
        self._verify_interval = verify_interval
        self._retire_delay = retire_delay

        self._build_lock = asyncio.Lock()
        self._retire_tasks: set[asyncio.Task] = set()
        self._last_report: BuildReport | None = None

    @property
    def building(self) -> bool:
        return self._build_lock.locked()

    @property
    def last_report(self) -> BuildReport | None:
        return self._last_report

    def collection_name(self, generation: int) -> str:
        """Fresh collection name for a build. Unique across processes sharing one index."""
        return f"{self._prefix}_g{generation}_{uuid.uuid4().hex[:8]}"

    async def build(
        self,
        definitions: Sequence[RouteDefinition],
        *,
        deadline: float | None = None,
        wait: bool = True,
    ) -> BuildReport:
        """
        Build and publish a new generation.

        Args:
            definitions: Full set of route definitions
            deadline: Seconds the whole build may take
            wait: Queue behind a running build (False raises instead)

        Raises:
            InvalidRouteDefinition: Definitions are invalid
            EmbeddingDimensionMismatch: Backend changed dimensionality mid-build
            EmbeddingUnavailable: Embedding backend failed
            IndexUnavailable: Vector index failed
            RoutingCancelled: The deadline elapsed
            IndexBuildInProgress: wait=False and a build is running
        """
        if not wait and self._build_lock.locked():
            raise IndexBuildInProgress("An index build is already running")

        async with self._build_lock:
            if deadline is None:
                return await self._build(definitions)
            try:
                return await asyncio.wait_for(self._build(definitions), timeout=deadline)
            except asyncio.TimeoutError:
                logger.warning(f"Index build cancelled: deadline of {deadline}s elapsed")
                raise RoutingCancelled(
                    f"Index build did not complete within {deadline}s"
                ) from None

    async def build_from_file(self, path: str | Path, **kwargs) -> BuildReport:
        """Load a route definition file and build it."""
        definitions = await asyncio.to_thread(load_route_definitions, path)
        return await self.build(definitions, **kwargs)

    async def _build(self, definitions: Sequence[RouteDefinition]) -> BuildReport:
        started = time.perf_counter()
        checked = validate_definitions(definitions)

        generation = self._catalog.next_generation()
        collection = self.collection_name(generation)
        logger.info(
            f"Index build started: generation {generation}, "
            f"{len(checked)} routes -> {collection}"
        )

        created = False
        try:
            dimension = await self._detect_dimension()

            try:
                await self._index.ensure_collection(collection, dimension, DistanceMetric.COSINE)
            except Exception as e:
                raise IndexUnavailable(f"Failed to create collection {collection}: {e}") from e
            created = True

            points, vector_ids = await self._embed_routes(checked, dimension)
            await self._upsert(collection, points)
            verified = await self._verify(collection, len(points))

            snapshot = CatalogSnapshot.build(
                checked,
                vector_ids,
                generation=generation,
                collection=collection,
                dimension=dimension,
            )
        except (Exception, asyncio.CancelledError):
            logger.error(
                f"Index build for generation {generation} aborted; "
                f"generation {self._catalog.generation} stays live",
                exc_info=True,
            )
            if created:
                await self._discard(collection)
            raise

        previous = self._catalog.publish(snapshot)
        if previous.collection and previous.collection != collection:
            await self._retire(previous.collection)

        report = BuildReport(
            generation=generation,
            collection=collection,
            dimension=dimension,
            routes=len(checked),
            points=len(points),
            verified=verified,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        self._last_report = report
        logger.info(
            f"Seeded {report.points} utterances across {report.routes} routes "
            f"into {collection} (dim={dimension}, {report.duration_ms:.0f} ms)"
        )
        return report

    async def _detect_dimension(self) -> int:
        try:
            sample = await self._embedder.embed(SAMPLE_TEXT)
        except EmbeddingUnavailable:
            raise
        except Exception as e:
            raise EmbeddingUnavailable(f"Failed to get sample embedding: {e}") from e

        if not sample:
            raise EmbeddingUnavailable("Sample embedding is empty")

        logger.info(f"Embedding dimensions: {len(sample)}")
        return len(sample)

    async def _embed_routes(
        self,
        definitions: Sequence[RouteDefinition],
        dimension: int,
    ) -> tuple[list[IndexPoint], dict[str, list[str]]]:
        points: list[IndexPoint] = []
        vector_ids: dict[str, list[str]] = {}

        for definition in definitions:
            logger.info(
                f"Processing route '{definition.name}' with "
                f"{len(definition.utterances)} utterances"
            )
            ids = vector_ids.setdefault(definition.name, [])

            for batch in _chunks(definition.utterances, self._embed_batch_size):
                try:
                    vectors = await self._embedder.embed_batch(batch)
                except EmbeddingUnavailable:
                    raise
                except Exception as e:
                    raise EmbeddingUnavailable(
                        f"Failed to embed utterances for route {definition.name}: {e}"
                    ) from e

                if len(vectors) != len(batch):
                    raise EmbeddingUnavailable(
                        f"Embedding batch for route {definition.name} returned "
                        f"{len(vectors)} vectors for {len(batch)} texts"
                    )

                for utterance, vector in zip(batch, vectors):
                    if len(vector) != dimension:
                        raise EmbeddingDimensionMismatch(
                            dimension, len(vector), context=f"route '{definition.name}'"
                        )
                    point_id = str(uuid.uuid4())
                    ids.append(point_id)
                    points.append(
                        IndexPoint(
                            id=point_id,
                            vector=list(vector),
                            payload=build_payload(definition, utterance),
                        )
                    )

        return points, vector_ids

    async def _upsert(self, collection: str, points: list[IndexPoint]) -> None:
        logger.info(f"Upserting {len(points)} points to {collection}")
        for batch in _chunks(points, self._upsert_batch_size):
            try:
                await self._index.upsert(collection, batch)
            except Exception as e:
                raise IndexUnavailable(f"Failed to upsert points: {e}") from e

    async def _verify(self, collection: str, expected: int) -> bool:
        count = None
        for attempt in range(self._verify_attempts):
            try:
                info = await self._index.collection_info(collection)
                count = info.points_count
            except Exception as e:
                logger.warning(f"Failed to get collection info for {collection}: {e}")
            else:
                if count == expected:
                    logger.info(f"Collection '{collection}' now has {count} points")
                    return True

            if attempt < self._verify_attempts - 1:
                await asyncio.sleep(self._verify_interval)

        logger.warning(
            f"Collection '{collection}' reports {count} points, expected {expected} "
            f"(index may still be converging)"
        )
        return False

    async def _discard(self, collection: str) -> None:
        try:
            await self._index.delete_collection(collection)
        except Exception as e:
            logger.warning(f"Failed to drop collection {collection}: {e}")

    async def _retire(self, collection: str) -> None:
        if self._retire_delay <= 0:
            await self._discard(collection)
            return
        task = asyncio.create_task(self._discard_later(collection))
        self._retire_tasks.add(task)
        task.add_done_callback(self._retire_tasks.discard)

    async def _discard_later(self, collection: str) -> None:
        await asyncio.sleep(self._retire_delay)
        await self._discard(collection)

    async def wait_retired(self) -> None:
        """Wait until superseded collections have been dropped."""
        if self._retire_tasks:
            await asyncio.gather(*list(self._retire_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel pending retirements."""
        for task in list(self._retire_tasks):
            task.cancel()
        await self.wait_retired()
