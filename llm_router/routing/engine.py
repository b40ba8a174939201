"""
Routing Decision Engine

Routes a natural-language request to the best-matching model/provider pair
by nearest-neighbour search over labeled utterance embeddings.

Routing flow:
1. Obtain the query vector (embed text, or take the precomputed vector)
2. Fetch the k nearest labeled vectors from the index (cosine)
3. Resolve every hit to its route via the catalog snapshot, dropping stale IDs
4. Aggregate per route (max similarity) and rank (score desc, name asc)
5. Accept the top route only if its score reaches the confidence threshold

The engine holds no mutable state of its own. Every call reads the catalog
snapshot once, so concurrent calls during a reload each see exactly one
generation. If a reload retires that generation's collection mid-call, the
search moves to the replacing generation and resolves hits against it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Sequence

from llm_router.catalog import CatalogSnapshot, RouteCatalog
from llm_router.embedding import EmbeddingPort
from llm_router.errors import (
    EmbeddingUnavailable,
    IndexUnavailable,
    InvalidQuery,
    RoutingCancelled,
    UnknownVectorID,
)
from llm_router.index import CollectionNotFoundError, SearchHit, VectorIndexPort
from llm_router.routing.decision import (
    DecisionOutcome,
    Query,
    RankedRoute,
    RoutingDecision,
)
from llm_router.routing.scoring import Neighbor, aggregate_max, rank_routes

logger = logging.getLogger(__name__)


class RoutingEngine:
    """
    Nearest-neighbour semantic router.

    Safe to call concurrently from many tasks without locking.
    """

    def __init__(
        self,
        catalog: RouteCatalog,
        index: VectorIndexPort,
        embedder: EmbeddingPort,
        k: int = 10,
        confidence_threshold: float = 0.75,
        embedding_timeout: float | None = 5.0,
        index_timeout: float | None = 2.0,
        default_deadline: float | None = None,
    ):
        """
        Initialize the engine.

        Args:
            catalog: Route catalog holding the live snapshot
            index: Vector index port
            embedder: Embedding port
            k: Number of neighbours to retrieve
            confidence_threshold: Minimum top score for a match (0.0-1.0)
            embedding_timeout: Bound on the embedding call (seconds)
            index_timeout: Bound on the nearest-neighbour call (seconds)
            default_deadline: Whole-call deadline when the caller gives none
        """
        _check_k(k, ValueError)
        _check_threshold(confidence_threshold, ValueError)

        self._catalog = catalog
        self._index = index
        self._embedder = embedder
        self._k = k
        self._threshold = confidence_threshold
        self._embedding_timeout = embedding_timeout
        self._index_timeout = index_timeout
        self._default_deadline = default_deadline

    @property
    def catalog(self) -> RouteCatalog:
        return self._catalog

    @property
    def k(self) -> int:
        return self._k

    @property
    def confidence_threshold(self) -> float:
        return self._threshold

    async def route(
        self,
        query: Query | str | Sequence[float],
        *,
        k: int | None = None,
        confidence_threshold: float | None = None,
        deadline: float | None = None,
    ) -> RoutingDecision:
        """
        Produce a routing decision for a query.

        Args:
            query: Query model, raw text, or a precomputed vector
            k: Override the neighbour count for this call
            confidence_threshold: Override the threshold for this call
            deadline: Seconds the whole call may take

        Returns:
            RoutingDecision (MATCHED or NO_CONFIDENT_MATCH)

        Raises:
            InvalidQuery: No usable text/vector, bad overrides, or wrong dimensionality
            EmbeddingUnavailable: Embedding backend errored or timed out
            IndexUnavailable: Vector index errored or timed out
            RoutingCancelled: The deadline elapsed
        """
        parsed = _coerce_query(query)

        k = self._k if k is None else k
        threshold = self._threshold if confidence_threshold is None else confidence_threshold
        _check_k(k, InvalidQuery)
        _check_threshold(threshold, InvalidQuery)

        if deadline is None:
            deadline = self._default_deadline
        if deadline is None:
            return await self._route(parsed, k, threshold)

        try:
            return await asyncio.wait_for(
                self._route(parsed, k, threshold), timeout=deadline
            )
        except asyncio.TimeoutError:
            # Backend timeouts are converted inside _route, so this is the deadline
            logger.warning(f"Routing cancelled: deadline of {deadline}s elapsed")
            raise RoutingCancelled(
                f"Routing did not complete within {deadline}s"
            ) from None

    async def _route(self, query: Query, k: int, threshold: float) -> RoutingDecision:
        started = time.perf_counter()
        snapshot = self._catalog.snapshot

        if not snapshot.is_loaded or snapshot.collection is None:
            logger.info("Routing: catalog not loaded -> no confident match")
            return _decide(snapshot, [], threshold, started)

        vector = await self._query_vector(query)
        _check_dimension(snapshot, vector)

        snapshot, hits = await self._search_live(snapshot, vector, k)
        neighbors = self._resolve(snapshot, hits)
        ranked = rank_routes(aggregate_max(neighbors))

        decision = _decide(snapshot, ranked, threshold, started)

        logger.debug(
            f"Routing ranked {len(ranked)} routes from {len(hits)} neighbours "
            f"(generation {snapshot.generation}): "
            + ", ".join(f"{r.route}={r.score:.3f}" for r in ranked)
        )
        if decision.matched:
            logger.info(
                f"Routing: matched '{decision.route}' -> "
                f"{decision.provider}/{decision.model} "
                f"(confidence: {decision.confidence:.3f}, {decision.latency_ms:.1f} ms)"
            )
        else:
            logger.info(
                f"Routing: no confident match "
                f"(top: {ranked[0].route if ranked else None}, "
                f"confidence: {decision.confidence:.3f} < {threshold})"
            )
        return decision

    async def _query_vector(self, query: Query) -> list[float]:
        if query.vector is not None:
            return list(query.vector)

        try:
            if self._embedding_timeout is None:
                vector = await self._embedder.embed(query.text)
            else:
                vector = await asyncio.wait_for(
                    self._embedder.embed(query.text), timeout=self._embedding_timeout
                )
        except EmbeddingUnavailable:
            raise
        except asyncio.TimeoutError as e:
            raise EmbeddingUnavailable(
                f"Embedding timed out after {self._embedding_timeout}s"
            ) from e
        except Exception as e:
            raise EmbeddingUnavailable(f"Embedding failed: {e}") from e

        if not vector:
            raise EmbeddingUnavailable("Embedding backend returned an empty vector")
        return list(vector)

    async def _search_live(
        self, snapshot: CatalogSnapshot, vector: list[float], k: int
    ) -> tuple[CatalogSnapshot, list[SearchHit]]:
        """
        Search the snapshot's collection.

        If a reload retired that collection while this call was in flight,
        search the generation that replaced it once. The returned snapshot is
        the one the hits must be resolved against.
        """
        try:
            return snapshot, await self._search(snapshot.collection, vector, k)
        except CollectionNotFoundError as e:
            current = self._catalog.snapshot
            if current is snapshot or not current.is_loaded or current.collection is None:
                raise IndexUnavailable(f"Index search failed: {e}") from e
            logger.info(
                f"Generation {snapshot.generation} retired mid-request, "
                f"searching generation {current.generation} instead"
            )

        _check_dimension(current, vector)
        try:
            return current, await self._search(current.collection, vector, k)
        except CollectionNotFoundError as e:
            raise IndexUnavailable(f"Index search failed: {e}") from e

    async def _search(
        self, collection: str, vector: list[float], k: int
    ) -> list[SearchHit]:
        try:
            if self._index_timeout is None:
                return await self._index.search(collection, vector, k)
            return await asyncio.wait_for(
                self._index.search(collection, vector, k), timeout=self._index_timeout
            )
        except CollectionNotFoundError:
            raise
        except asyncio.TimeoutError as e:
            raise IndexUnavailable(
                f"Index search timed out after {self._index_timeout}s"
            ) from e
        except Exception as e:
            raise IndexUnavailable(f"Index search failed: {e}") from e

    def _resolve(self, snapshot: CatalogSnapshot, hits: list[SearchHit]) -> list[Neighbor]:
        neighbors: list[Neighbor] = []
        for hit in hits:
            try:
                route = snapshot.resolve(hit.id)
            except UnknownVectorID as e:
                logger.warning(f"Dropping stale neighbour: {e}")
                continue
            neighbors.append(
                Neighbor(
                    route=route.name,
                    score=hit.score,
                    utterance=hit.payload.get("utterance"),
                )
            )
        return neighbors


def _decide(
    snapshot: CatalogSnapshot,
    ranked: list[RankedRoute],
    threshold: float,
    started: float,
) -> RoutingDecision:
    latency_ms = (time.perf_counter() - started) * 1000
    top = ranked[0] if ranked else None

    if top is None or top.score < threshold:
        return RoutingDecision(
            confidence=top.score if top else 0.0,
            outcome=DecisionOutcome.NO_CONFIDENT_MATCH,
            ranked=ranked,
            generation=snapshot.generation,
            latency_ms=latency_ms,
        )

    route = snapshot.get(top.route)
    return RoutingDecision(
        route=route.name,
        model=route.model,
        provider=route.provider,
        confidence=top.score,
        outcome=DecisionOutcome.MATCHED,
        ranked=ranked,
        metadata=dict(route.metadata),
        generation=snapshot.generation,
        latency_ms=latency_ms,
    )


def _coerce_query(query: Query | str | Sequence[float]) -> Query:
    if isinstance(query, Query):
        parsed = query
    elif isinstance(query, str):
        parsed = Query(text=query)
    elif query is None:
        raise InvalidQuery("Query is empty")
    else:
        try:
            parsed = Query(vector=[float(x) for x in query])
        except (TypeError, ValueError) as e:
            raise InvalidQuery(f"Query vector must be a sequence of numbers: {e}") from e

    if parsed.vector is not None:
        if not parsed.vector:
            raise InvalidQuery("Query vector is empty")
        return parsed

    if parsed.text is None or not parsed.text.strip():
        raise InvalidQuery("Query needs non-empty text or a vector")
    return parsed


def _check_dimension(snapshot: CatalogSnapshot, vector: list[float]) -> None:
    if snapshot.dimension is not None and len(vector) != snapshot.dimension:
        raise InvalidQuery(
            f"Query vector has {len(vector)} dimensions, index has {snapshot.dimension}"
        )


def _check_k(k: int, error: type[Exception]) -> None:
    if not isinstance(k, int) or isinstance(k, bool) or k <= 0:
        raise error(f"k must be a positive integer, got {k!r}")


def _check_threshold(threshold: float, error: type[Exception]) -> None:
    if not isinstance(threshold, (int, float)) or not 0.0 <= threshold <= 1.0:
        raise error(f"confidence_threshold must be within [0, 1], got {threshold!r}")
