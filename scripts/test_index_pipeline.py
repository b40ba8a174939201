#!/usr/bin/env python3
"""
Indexing Pipeline Test Script

Builds index generations against the in-memory index and checks publication,
rollback, batching and hot reload behaviour.

Usage:
    python scripts/test_index_pipeline.py
"""

import asyncio
import logging
import os
import sys
import tempfile
import threading
from typing import Sequence

# Add project root to path
sys.path.insert(0, ".")

from langchain_core.embeddings import DeterministicFakeEmbedding

from llm_router.catalog import RouteCatalog, RouteDefinition
from llm_router.embedding import EmbeddingPort, LangChainEmbeddingAdapter
from llm_router.errors import (
    EmbeddingDimensionMismatch,
    IndexBuildInProgress,
    IndexUnavailable,
    InvalidRouteDefinition,
    RoutingCancelled,
)
from llm_router.index import CollectionInfo, InMemoryVectorIndex
from llm_router.indexing import IndexBuilder, build_payload, dump_route_definitions
from llm_router.indexing import pipeline as pipeline_module
from llm_router.routing import RoutingEngine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class ShapedEmbedder(EmbeddingPort):
    """Returns constant vectors whose sizes can be changed between builds."""

    def __init__(self, query_dim: int = 8, batch_dim: int | None = None, batch_delay: float = 0.0):
        self.query_dim = query_dim
        self.batch_dim = batch_dim
        self.batch_delay = batch_delay
        self.batch_sizes: list[int] = []

    async def embed(self, text):
        return [1.0] * self.query_dim

    async def embed_batch(self, texts: Sequence[str]):
        self.batch_sizes.append(len(texts))
        if self.batch_delay:
            await asyncio.sleep(self.batch_delay)
        dim = self.batch_dim or self.query_dim
        return [[1.0] * dim for _ in texts]


class RecordingIndex(InMemoryVectorIndex):
    """In-memory index that records upserts and can inject faults."""

    def __init__(self, fail_on_upsert: int | None = None, count_offset: int = 0):
        super().__init__()
        self.fail_on_upsert = fail_on_upsert
        self.count_offset = count_offset
        self.upsert_sizes: list[int] = []

    async def upsert(self, collection, points):
        self.upsert_sizes.append(len(points))
        if self.fail_on_upsert is not None and len(self.upsert_sizes) == self.fail_on_upsert:
            raise ConnectionError("index went away")
        return await super().upsert(collection, points)

    async def collection_info(self, name):
        info = await super().collection_info(name)
        return CollectionInfo(
            name=info.name,
            points_count=info.points_count + self.count_offset,
            dimension=info.dimension,
            distance=info.distance,
        )


def two_routes() -> list[RouteDefinition]:
    return [
        RouteDefinition(
            name="code",
            model="gpt-4o",
            provider="openai",
            utterances=[
                "write a python function",
                "fix this stack trace",
                "refactor my class",
            ],
            metadata={"tier": "premium"},
        ),
        RouteDefinition(
            name="chat",
            model="llama3.2",
            provider="ollama",
            utterances=[
                "how are you today",
                "tell me a joke",
                "good morning",
            ],
        ),
    ]


def fake_embedder(size: int = 256) -> LangChainEmbeddingAdapter:
    return LangChainEmbeddingAdapter(DeterministicFakeEmbedding(size=size), timeout=5.0, max_retries=0)


async def test_round_trip():
    """Test that every indexed utterance routes back to its own route."""
    logger.info("=" * 60)
    logger.info("Test: Round Trip")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    index = InMemoryVectorIndex()
    embedder = fake_embedder()
    builder = IndexBuilder(catalog, index, embedder, collection_prefix="rt", verify_interval=0)

    report = await builder.build(two_routes())
    assert report.generation == 1
    assert report.collection.startswith("rt_g1_")
    assert report.dimension == 256
    assert report.routes == 2
    assert report.points == 6
    assert report.verified is True
    assert builder.last_report == report

    snapshot = catalog.snapshot
    assert snapshot.vector_count == 6
    assert snapshot.dimension == 256
    assert snapshot.collection == report.collection

    engine = RoutingEngine(catalog, index, embedder, k=5, confidence_threshold=0.9)
    for definition in two_routes():
        for utterance in definition.utterances:
            decision = await engine.route(utterance)
            assert decision.matched, f"'{utterance}' did not match"
            assert decision.route == definition.name
            assert decision.model == definition.model
            assert decision.provider == definition.provider
            assert decision.confidence >= 0.99
            assert decision.ranked[0].utterance == utterance

    logger.info("✓ Round trip passed")


async def test_payload_layout():
    """Test the flat point payload."""
    logger.info("=" * 60)
    logger.info("Test: Payload Layout")
    logger.info("=" * 60)

    definition = RouteDefinition(
        name="code",
        model="gpt-4o",
        provider="openai",
        utterances=["x"],
        metadata={"tier": "premium", "route": "spoofed"},
    )
    payload = build_payload(definition, "write a function")
    assert payload == {
        "tier": "premium",
        "route": "code",
        "model": "gpt-4o",
        "provider": "openai",
        "utterance": "write a function",
    }

    logger.info("✓ Payload layout passed")


async def test_invalid_definitions_touch_nothing():
    """Test that invalid definitions are rejected before any backend call."""
    logger.info("=" * 60)
    logger.info("Test: Invalid Definitions")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    index = RecordingIndex()
    embedder = ShapedEmbedder()
    builder = IndexBuilder(catalog, index, embedder)

    definitions = two_routes() + [RouteDefinition(name="code", utterances=["dup"])]
    try:
        await builder.build(definitions)
        assert False, "Expected InvalidRouteDefinition"
    except InvalidRouteDefinition:
        pass

    assert not catalog.is_loaded
    assert index.collection_names() == []
    assert embedder.batch_sizes == []

    logger.info("✓ Invalid definitions passed")


async def test_dimension_mismatch_rolls_back():
    """Test that a dimensionality change mid-build keeps the old generation."""
    logger.info("=" * 60)
    logger.info("Test: Dimension Mismatch")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    index = InMemoryVectorIndex()
    embedder = ShapedEmbedder(query_dim=384)
    builder = IndexBuilder(catalog, index, embedder, collection_prefix="dm", verify_interval=0)

    first = await builder.build(two_routes())
    assert catalog.generation == 1

    embedder.batch_dim = 512
    try:
        await builder.build(two_routes())
        assert False, "Expected EmbeddingDimensionMismatch"
    except EmbeddingDimensionMismatch as e:
        assert e.expected == 384
        assert e.actual == 512

    assert catalog.generation == 1
    assert catalog.snapshot.collection == first.collection
    assert index.collection_names() == [first.collection]

    # A later good build skips the failed generation number
    embedder.batch_dim = None
    report = await builder.build(two_routes())
    assert report.generation == 3
    assert report.collection.startswith("dm_g3_")
    assert index.collection_names() == [report.collection]

    logger.info("✓ Dimension mismatch passed")


async def test_batching():
    """Test embedding and upsert batch bounds."""
    logger.info("=" * 60)
    logger.info("Test: Batching")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    index = RecordingIndex()
    embedder = ShapedEmbedder()
    builder = IndexBuilder(
        catalog,
        index,
        embedder,
        embed_batch_size=64,
        upsert_batch_size=100,
        verify_interval=0,
    )

    definitions = [
        RouteDefinition(name="big", utterances=[f"utterance {i}" for i in range(200)]),
        RouteDefinition(name="small", utterances=[f"other {i}" for i in range(50)]),
    ]
    report = await builder.build(definitions)

    assert report.points == 250
    # Embedding batches never straddle routes
    assert embedder.batch_sizes == [64, 64, 64, 8, 50]
    assert index.upsert_sizes == [100, 100, 50]

    info = await index.collection_info(report.collection)
    assert info.points_count == 250
    assert catalog.snapshot.vector_count == 250

    try:
        IndexBuilder(catalog, index, embedder, upsert_batch_size=0)
        assert False, "Expected ValueError for zero batch size"
    except ValueError:
        pass

    logger.info("✓ Batching passed")


async def test_upsert_failure_rolls_back():
    """Test that an index failure mid-upsert leaves the catalog unchanged."""
    logger.info("=" * 60)
    logger.info("Test: Upsert Failure")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    index = RecordingIndex()
    embedder = ShapedEmbedder()
    builder = IndexBuilder(
        catalog, index, embedder, collection_prefix="uf", upsert_batch_size=2, verify_interval=0
    )

    first = await builder.build(two_routes())
    before = catalog.snapshot

    index.fail_on_upsert = len(index.upsert_sizes) + 2
    try:
        await builder.build(two_routes())
        assert False, "Expected IndexUnavailable"
    except IndexUnavailable:
        pass

    assert catalog.snapshot is before
    assert index.collection_names() == [first.collection]

    logger.info("✓ Upsert failure passed")


async def test_verify_mismatch_is_a_warning():
    """Test that a point count mismatch still publishes, unverified."""
    logger.info("=" * 60)
    logger.info("Test: Verify Mismatch")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    index = RecordingIndex(count_offset=-1)
    builder = IndexBuilder(
        catalog, index, ShapedEmbedder(), verify_attempts=2, verify_interval=0
    )

    report = await builder.build(two_routes())
    assert report.verified is False
    assert catalog.generation == 1

    logger.info("✓ Verify mismatch passed")


async def test_deadline_cancels_build():
    """Test that a build deadline drops the partial collection."""
    logger.info("=" * 60)
    logger.info("Test: Build Deadline")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    index = InMemoryVectorIndex()
    embedder = ShapedEmbedder(batch_delay=0.5)
    builder = IndexBuilder(catalog, index, embedder, collection_prefix="dl")

    try:
        await builder.build(two_routes(), deadline=0.05)
        assert False, "Expected RoutingCancelled"
    except RoutingCancelled:
        pass

    assert not catalog.is_loaded
    assert index.collection_names() == []
    assert not builder.building

    logger.info("✓ Build deadline passed")


async def test_build_in_progress():
    """Test that a non-waiting build is refused while another runs."""
    logger.info("=" * 60)
    logger.info("Test: Build In Progress")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    builder = IndexBuilder(
        catalog, InMemoryVectorIndex(), ShapedEmbedder(batch_delay=0.1), verify_interval=0
    )

    running = asyncio.create_task(builder.build(two_routes()))
    await asyncio.sleep(0.02)
    assert builder.building

    try:
        await builder.build(two_routes(), wait=False)
        assert False, "Expected IndexBuildInProgress"
    except IndexBuildInProgress:
        pass

    # A waiting build queues behind the running one
    queued = await builder.build(two_routes())
    first = await running
    assert first.generation == 1
    assert queued.generation == 2
    assert catalog.generation == 2

    logger.info("✓ Build in progress passed")


async def test_hot_reload_consistency():
    """Test that concurrent routing during a reload sees one whole generation."""
    logger.info("=" * 60)
    logger.info("Test: Hot Reload")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    index = InMemoryVectorIndex()
    embedder = fake_embedder(size=64)
    builder = IndexBuilder(
        catalog,
        index,
        embedder,
        collection_prefix="hr",
        embed_batch_size=1,
        verify_interval=0,
        retire_delay=0.2,
    )
    engine = RoutingEngine(catalog, index, embedder, k=4, confidence_threshold=0.9)

    first = await builder.build(two_routes())

    renamed = two_routes()
    renamed[0] = RouteDefinition(
        name="coding",
        model="claude-sonnet",
        provider="anthropic",
        utterances=renamed[0].utterances,
    )

    async def keep_routing():
        decisions = []
        while builder.building or not decisions:
            decisions.append(await engine.route("write a python function"))
            await asyncio.sleep(0)
        return decisions

    reload_task = asyncio.create_task(builder.build(renamed))
    decisions = await keep_routing()
    report = await reload_task

    assert report.generation == 2
    for decision in decisions:
        assert decision.generation in (1, 2)
        expected = "code" if decision.generation == 1 else "coding"
        assert decision.route == expected, f"generation {decision.generation} routed to {decision.route}"

    decision = await engine.route("write a python function")
    assert decision.generation == 2
    assert decision.route == "coding"
    assert decision.provider == "anthropic"

    # Old collection survives the retire delay, then goes
    assert first.collection in index.collection_names()
    await builder.wait_retired()
    assert index.collection_names() == [report.collection]

    await builder.close()

    logger.info("✓ Hot reload passed")


class SlowQueryEmbedder(EmbeddingPort):
    """Delegates to another port, delaying single-text (query) embeddings."""

    def __init__(self, inner: EmbeddingPort, delay: float):
        self.inner = inner
        self.delay = delay

    async def embed(self, text):
        await asyncio.sleep(self.delay)
        return await self.inner.embed(text)

    async def embed_batch(self, texts):
        return await self.inner.embed_batch(texts)


async def test_shared_index_between_catalogs():
    """Test that two routers sharing one index never touch each other's collections."""
    logger.info("=" * 60)
    logger.info("Test: Shared Index")
    logger.info("=" * 60)

    index = InMemoryVectorIndex()
    embedder = fake_embedder(size=64)

    catalog_a = RouteCatalog()
    builder_a = IndexBuilder(catalog_a, index, embedder, collection_prefix="shared", verify_interval=0)
    engine_a = RoutingEngine(catalog_a, index, embedder, confidence_threshold=0.9)

    catalog_b = RouteCatalog()
    builder_b = IndexBuilder(catalog_b, index, embedder, collection_prefix="shared", verify_interval=0)
    engine_b = RoutingEngine(catalog_b, index, embedder, confidence_threshold=0.9)

    report_a = await builder_a.build(two_routes())
    decision = await engine_a.route("write a python function")
    assert decision.route == "code"

    # Same prefix, same generation number, separate collection
    report_b = await builder_b.build(two_routes())
    assert report_a.generation == report_b.generation == 1
    assert report_a.collection != report_b.collection
    assert sorted(index.collection_names()) == sorted([report_a.collection, report_b.collection])

    decision = await engine_a.route("write a python function")
    assert decision.matched
    assert decision.route == "code"
    assert decision.ranked

    decision = await engine_b.route("tell me a joke")
    assert decision.route == "chat"

    logger.info("✓ Shared index passed")


async def test_reload_during_request():
    """Test that a request outliving its generation's collection still completes."""
    logger.info("=" * 60)
    logger.info("Test: Reload During Request")
    logger.info("=" * 60)

    catalog = RouteCatalog()
    index = InMemoryVectorIndex()
    embedder = fake_embedder(size=64)
    # Superseded collections are dropped as soon as the new generation publishes
    builder = IndexBuilder(catalog, index, embedder, collection_prefix="mid", verify_interval=0)
    engine = RoutingEngine(
        catalog,
        index,
        SlowQueryEmbedder(embedder, delay=0.5),
        confidence_threshold=0.9,
    )

    first = await builder.build(two_routes())

    renamed = two_routes()
    renamed[0] = RouteDefinition(
        name="coding",
        model="claude-sonnet",
        provider="anthropic",
        utterances=renamed[0].utterances,
    )

    in_flight = asyncio.create_task(engine.route("write a python function"))
    await asyncio.sleep(0.05)
    report = await builder.build(renamed)
    assert first.collection not in index.collection_names()
    assert not in_flight.done()

    decision = await in_flight
    assert decision.generation == report.generation == 2
    assert decision.route == "coding"
    assert decision.provider == "anthropic"

    logger.info("✓ Reload during request passed")


async def test_build_from_file():
    """Test building straight from a YAML route file."""
    logger.info("=" * 60)
    logger.info("Test: Build From File")
    logger.info("=" * 60)

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "routes.yaml")
        with open(path, "w") as f:
            f.write(dump_route_definitions(two_routes()))

        catalog = RouteCatalog()
        builder = IndexBuilder(catalog, InMemoryVectorIndex(), ShapedEmbedder(), verify_interval=0)
        report = await builder.build_from_file(path)

    assert report.routes == 2
    assert [r.name for r in catalog.list_routes()] == ["code", "chat"]
    assert catalog.get("code").metadata == {"tier": "premium"}

    # The file is read off the event loop thread
    loader_threads = []

    def recording_loader(path):
        loader_threads.append(threading.current_thread())
        return two_routes()

    original_loader = pipeline_module.load_route_definitions
    pipeline_module.load_route_definitions = recording_loader
    try:
        await builder.build_from_file("routes.yaml")
    finally:
        pipeline_module.load_route_definitions = original_loader
    assert len(loader_threads) == 1
    assert loader_threads[0] is not threading.current_thread()
    assert catalog.generation == 2

    logger.info("✓ Build from file passed")


async def main():
    """Run all tests."""
    logger.info("Indexing Pipeline Test Suite")
    logger.info("=" * 60)

    try:
        await test_round_trip()
        await test_payload_layout()
        await test_invalid_definitions_touch_nothing()
        await test_dimension_mismatch_rolls_back()
        await test_batching()
        await test_upsert_failure_rolls_back()
        await test_verify_mismatch_is_a_warning()
        await test_deadline_cancels_build()
        await test_build_in_progress()
        await test_hot_reload_consistency()
        await test_shared_index_between_catalogs()
        await test_reload_during_request()
        await test_build_from_file()

        logger.info("")
        logger.info("=" * 60)
        logger.info("All tests passed! ✓")
        logger.info("=" * 60)

    except AssertionError as e:
        logger.error(f"Test failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
