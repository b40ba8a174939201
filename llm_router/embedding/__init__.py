"""
Embedding Port

Provides the text -> vector capability the router consumes.
"""

from .ports import EmbeddingPort, Vector
from .adapter import LangChainEmbeddingAdapter
from .factory import create_embeddings, create_embedding_port

__all__ = [
    "EmbeddingPort",
    "Vector",
    "LangChainEmbeddingAdapter",
    "create_embeddings",
    "create_embedding_port",
]
