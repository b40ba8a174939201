"""
Router Service Bundle

Wires catalog, ports, engine and index builder from RouterSettings.

Usage:
    service = create_router_service(settings_from_env())
    await service.builder.build_from_file(settings.routes_path)
    decision = await service.engine.route("summarize this article")
    await service.close()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from llm_router.catalog import RouteCatalog
from llm_router.config import RouterSettings
from llm_router.embedding import EmbeddingPort, create_embedding_port
from llm_router.index import VectorIndexPort, create_vector_index
from llm_router.indexing import IndexBuilder
from llm_router.routing import RoutingEngine

logger = logging.getLogger(__name__)


@dataclass
class RouterService:
    """Everything a serving process holds, shared across requests."""
    settings: RouterSettings
    catalog: RouteCatalog
    embedder: EmbeddingPort
    index: VectorIndexPort
    engine: RoutingEngine
    builder: IndexBuilder

    async def close(self) -> None:
        """Close all backend connections."""
        await self.builder.close()
        await self.embedder.close()
        await self.index.close()


def create_router_service(
    settings: RouterSettings,
    embedder: EmbeddingPort | None = None,
    index: VectorIndexPort | None = None,
) -> RouterService:
    """
    Create the router service bundle.

    Args:
        settings: Router configuration
        embedder: Custom embedding port (optional, built from settings otherwise)
        index: Custom vector index (optional, built from settings otherwise)

    Returns:
        Configured RouterService
    """
    if embedder is None:
        embedder = create_embedding_port(
            model=settings.embedding_model,
            timeout=settings.embedding_timeout,
            max_retries=settings.embedding_max_retries,
            retry_base_delay=settings.embedding_retry_base_delay,
        )
    if index is None:
        index = create_vector_index(
            backend=settings.index_backend,
            qdrant_url=settings.qdrant_url,
            qdrant_api_key=settings.qdrant_api_key,
            timeout=max(settings.index_timeout, 10.0),
        )

    catalog = RouteCatalog()
    engine = RoutingEngine(
        catalog,
        index,
        embedder,
        k=settings.top_k,
        confidence_threshold=settings.confidence_threshold,
        # Adapter retries run inside this bound
        embedding_timeout=settings.embedding_timeout * (settings.embedding_max_retries + 1),
        index_timeout=settings.index_timeout,
        default_deadline=settings.request_deadline,
    )
    builder = IndexBuilder(
        catalog,
        index,
        embedder,
        collection_prefix=settings.collection_name,
        embed_batch_size=settings.embed_batch_size,
        upsert_batch_size=settings.upsert_batch_size,
        verify_attempts=settings.verify_attempts,
        verify_interval=settings.verify_interval,
        retire_delay=settings.retire_delay,
    )

    logger.info(
        f"Router service configured: embedding={settings.embedding_model}, "
        f"index={settings.index_backend}, k={settings.top_k}, "
        f"threshold={settings.confidence_threshold}"
    )
    return RouterService(
        settings=settings,
        catalog=catalog,
        embedder=embedder,
        index=index,
        engine=engine,
        builder=builder,
    )
