"""
Router Settings

Environment-based configuration for the router service.

Usage:
    # From environment (.env is loaded by the application entry point)
    settings = settings_from_env()

    # Explicit
    settings = RouterSettings(index_backend="qdrant", top_k=5)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from llm_router.index.factory import VALID_BACKENDS


@dataclass
class RouterSettings:
    """
    Configuration for the router service.

    Attributes:
        routes_path: Route definition file
        embedding_model: Embedding model identifier (see create_embeddings)
        embedding_timeout: Per-call embedding timeout (seconds)
        embedding_max_retries: Adapter-level embedding retries
        embedding_retry_base_delay: Base delay for embedding retry backoff
        index_backend: "memory" or "qdrant"
        qdrant_url: Qdrant endpoint
        qdrant_api_key: Qdrant API key (optional)
        collection_name: Base collection name (generations are suffixed)
        index_timeout: Per-call nearest-neighbour timeout (seconds)
        top_k: Neighbours retrieved per query
        confidence_threshold: Minimum top score for a match
        request_deadline: Whole-request deadline (seconds, optional)
        embed_batch_size: Max texts per embedding batch
        upsert_batch_size: Max points per upsert batch
        verify_attempts: Post-build point count checks
        verify_interval: Seconds between point count checks
        retire_delay: Seconds to keep a superseded collection around
        build_on_startup: Build the index from routes_path at startup
        log_level: Root log level
    """
    routes_path: str = "configs/routes.yaml"
    embedding_model: str = "fake/384"
    embedding_timeout: float = 5.0
    embedding_max_retries: int = 2
    embedding_retry_base_delay: float = 0.2
    index_backend: str = "memory"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    collection_name: str = "llm_routes"
    index_timeout: float = 2.0
    top_k: int = 10
    confidence_threshold: float = 0.75
    request_deadline: float | None = None
    embed_batch_size: int = 64
    upsert_batch_size: int = 100
    verify_attempts: int = 3
    verify_interval: float = 0.5
    retire_delay: float = 2.0
    build_on_startup: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            ValueError: If any setting is out of range
        """
        if self.index_backend.lower() not in VALID_BACKENDS:
            raise ValueError(
                f"Unknown index backend: {self.index_backend}. "
                f"Valid options: {', '.join(sorted(VALID_BACKENDS))}"
            )
        if self.top_k <= 0:
            raise ValueError(f"top_k must be positive, got {self.top_k}")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError(
                f"confidence_threshold must be within [0, 1], got {self.confidence_threshold}"
            )
        if self.embed_batch_size <= 0 or self.upsert_batch_size <= 0:
            raise ValueError("Batch sizes must be positive")
        if self.request_deadline is not None and self.request_deadline <= 0:
            raise ValueError("request_deadline must be positive when set")
        if not self.collection_name:
            raise ValueError("collection_name must not be empty")


def _optional_float(value: str | None) -> float | None:
    if value is None or value.strip() == "":
        return None
    return float(value)


def settings_from_env() -> RouterSettings:
    """
    Create RouterSettings from environment variables.

    Environment variables:
        ROUTER_ROUTES_PATH: Route definition file
        ROUTER_EMBEDDING_MODEL: Embedding model identifier
        ROUTER_EMBEDDING_TIMEOUT: Embedding timeout in seconds
        ROUTER_EMBEDDING_MAX_RETRIES: Embedding retries
        ROUTER_EMBEDDING_RETRY_BASE_DELAY: Embedding retry backoff base
        ROUTER_INDEX_BACKEND: "memory" or "qdrant"
        ROUTER_QDRANT_URL: Qdrant URL
        ROUTER_QDRANT_API_KEY: Qdrant API key
        ROUTER_COLLECTION_NAME: Base collection name
        ROUTER_INDEX_TIMEOUT: Search timeout in seconds
        ROUTER_TOP_K: Neighbour count
        ROUTER_CONFIDENCE_THRESHOLD: Minimum top score for a match
        ROUTER_REQUEST_DEADLINE: Whole-request deadline in seconds
        ROUTER_EMBED_BATCH_SIZE: Texts per embedding batch
        ROUTER_UPSERT_BATCH_SIZE: Points per upsert batch
        ROUTER_VERIFY_ATTEMPTS: Post-build point count checks
        ROUTER_VERIFY_INTERVAL: Seconds between checks
        ROUTER_RETIRE_DELAY: Seconds before dropping a superseded collection
        ROUTER_BUILD_ON_STARTUP: "false" to skip the startup build
        ROUTER_LOG_LEVEL: Root log level

    Raises:
        ValueError: If a value cannot be parsed or is out of range
    """
    return RouterSettings(
        routes_path=os.getenv("ROUTER_ROUTES_PATH", "configs/routes.yaml"),
        embedding_model=os.getenv("ROUTER_EMBEDDING_MODEL", "fake/384"),
        embedding_timeout=float(os.getenv("ROUTER_EMBEDDING_TIMEOUT", "5.0")),
        embedding_max_retries=int(os.getenv("ROUTER_EMBEDDING_MAX_RETRIES", "2")),
        embedding_retry_base_delay=float(os.getenv("ROUTER_EMBEDDING_RETRY_BASE_DELAY", "0.2")),
        index_backend=os.getenv("ROUTER_INDEX_BACKEND", "memory").lower(),
        qdrant_url=os.getenv("ROUTER_QDRANT_URL", "http://localhost:6333"),
        qdrant_api_key=os.getenv("ROUTER_QDRANT_API_KEY") or None,
        collection_name=os.getenv("ROUTER_COLLECTION_NAME", "llm_routes"),
        index_timeout=float(os.getenv("ROUTER_INDEX_TIMEOUT", "2.0")),
        top_k=int(os.getenv("ROUTER_TOP_K", "10")),
        confidence_threshold=float(os.getenv("ROUTER_CONFIDENCE_THRESHOLD", "0.75")),
        request_deadline=_optional_float(os.getenv("ROUTER_REQUEST_DEADLINE")),
        embed_batch_size=int(os.getenv("ROUTER_EMBED_BATCH_SIZE", "64")),
        upsert_batch_size=int(os.getenv("ROUTER_UPSERT_BATCH_SIZE", "100")),
        verify_attempts=int(os.getenv("ROUTER_VERIFY_ATTEMPTS", "3")),
        verify_interval=float(os.getenv("ROUTER_VERIFY_INTERVAL", "0.5")),
        retire_delay=float(os.getenv("ROUTER_RETIRE_DELAY", "2.0")),
        build_on_startup=os.getenv("ROUTER_BUILD_ON_STARTUP", "true").lower() != "false",
        log_level=os.getenv("ROUTER_LOG_LEVEL", "INFO").upper(),
    )
