"""
Vector Index Factory

Factory function to create the appropriate vector index implementation
based on configuration or environment variables.

Supported backends:
- memory: In-process numpy index for development/testing
- qdrant: Qdrant server for production deployments

Environment Variables:
- ROUTER_INDEX_BACKEND: Index backend type (memory, qdrant)
- ROUTER_QDRANT_URL: Qdrant URL (for qdrant backend)
- ROUTER_QDRANT_API_KEY: Qdrant API key (optional)
"""

from __future__ import annotations

import logging
import os

from llm_router.index.memory import InMemoryVectorIndex
from llm_router.index.ports import VectorIndexPort

logger = logging.getLogger(__name__)

# Valid backend types
VALID_BACKENDS = {"memory", "qdrant"}


def create_vector_index(
    backend: str | None = None,
    qdrant_url: str | None = None,
    qdrant_api_key: str | None = None,
    timeout: float | None = 10.0,
    **kwargs,
) -> VectorIndexPort:
    """
    Create a vector index based on configuration or environment.

    Args:
        backend: "memory" or "qdrant". Auto-detects from ROUTER_INDEX_BACKEND.
        qdrant_url: Qdrant URL. Auto-detects from ROUTER_QDRANT_URL.
        qdrant_api_key: Qdrant API key. Auto-detects from ROUTER_QDRANT_API_KEY.
        timeout: Client request timeout (qdrant backend)
        **kwargs: Additional backend-specific options (e.g., prefer_grpc)

    Returns:
        Configured VectorIndexPort instance

    Raises:
        ValueError: If backend is invalid
        ImportError: If required dependencies are not installed
    """
    if backend is None:
        backend = os.getenv("ROUTER_INDEX_BACKEND", "memory")

    backend = backend.lower()

    if backend not in VALID_BACKENDS:
        raise ValueError(
            f"Unknown vector index backend: {backend}. "
            f"Valid options: {', '.join(sorted(VALID_BACKENDS))}"
        )

    if backend == "memory":
        logger.info("Creating in-memory vector index")
        return InMemoryVectorIndex()

    if qdrant_url is None:
        qdrant_url = os.getenv("ROUTER_QDRANT_URL", "http://localhost:6333")
    if qdrant_api_key is None:
        qdrant_api_key = os.getenv("ROUTER_QDRANT_API_KEY") or None

    try:
        from llm_router.index.qdrant import QdrantVectorIndex
    except ImportError as e:
        raise ImportError(
            "Qdrant vector index requires the qdrant-client package. "
            "Install with: pip install qdrant-client"
        ) from e

    logger.info(f"Creating Qdrant vector index (url={qdrant_url})")
    return QdrantVectorIndex(
        url=qdrant_url,
        api_key=qdrant_api_key,
        timeout=timeout,
        prefer_grpc=kwargs.get("prefer_grpc", False),
    )


def get_available_backends() -> list[str]:
    """
    Get list of available index backends.

    Returns:
        List of backend names that can be used (dependencies installed)
    """
    available = ["memory"]

    try:
        import qdrant_client  # noqa: F401
        available.append("qdrant")
    except ImportError:
        pass

    return available
