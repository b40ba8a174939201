"""
Vector Index Port

Stores labeled utterance vectors and answers nearest-neighbour queries.

Components:
- VectorIndexPort: Abstract interface for index implementations
- InMemoryVectorIndex: Development/testing implementation (numpy)
- QdrantVectorIndex: Qdrant implementation (optional dependency)

Environment Variables:
- ROUTER_INDEX_BACKEND: Index backend (memory, qdrant)
- ROUTER_QDRANT_URL: Qdrant connection URL
"""

from llm_router.index.ports import (
    DistanceMetric,
    IndexPoint,
    SearchHit,
    CollectionInfo,
    VectorIndexPort,
    VectorIndexError,
    CollectionNotFoundError,
    VectorDimensionError,
)
from llm_router.index.memory import InMemoryVectorIndex
from llm_router.index.factory import create_vector_index, get_available_backends

_optional_exports: list[str] = []

try:
    from llm_router.index.qdrant import QdrantVectorIndex
    _optional_exports.append("QdrantVectorIndex")
except ImportError:
    pass

__all__ = [
    # Port interfaces
    "DistanceMetric",
    "IndexPoint",
    "SearchHit",
    "CollectionInfo",
    "VectorIndexPort",
    "VectorIndexError",
    "CollectionNotFoundError",
    "VectorDimensionError",
    # Implementations (always available)
    "InMemoryVectorIndex",
    # Optional implementations
    *_optional_exports,
    # Factory
    "create_vector_index",
    "get_available_backends",
]
