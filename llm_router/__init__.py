# LLM Router - Semantic nearest-neighbour routing
# Dispatches natural-language requests to model/provider targets
# by comparing them with labeled example utterances.

__version__ = "0.1.0"

# Re-export commonly used components for convenience
from llm_router.errors import (
    RouterError,
    InvalidRouteDefinition,
    EmbeddingDimensionMismatch,
    EmbeddingUnavailable,
    IndexUnavailable,
    UnknownVectorID,
    RouteNotFound,
    InvalidQuery,
    RoutingCancelled,
    IndexBuildInProgress,
)
from llm_router.catalog import (
    Route,
    RouteDefinition,
    CatalogSnapshot,
    RouteCatalog,
)
from llm_router.routing import (
    RoutingEngine,
    RoutingDecision,
    DecisionOutcome,
    Query,
    RankedRoute,
)
from llm_router.indexing import IndexBuilder, load_route_definitions

__all__ = [
    "__version__",
    # Errors
    "RouterError",
    "InvalidRouteDefinition",
    "EmbeddingDimensionMismatch",
    "EmbeddingUnavailable",
    "IndexUnavailable",
    "UnknownVectorID",
    "RouteNotFound",
    "InvalidQuery",
    "RoutingCancelled",
    "IndexBuildInProgress",
    # Catalog
    "Route",
    "RouteDefinition",
    "CatalogSnapshot",
    "RouteCatalog",
    # Routing
    "RoutingEngine",
    "RoutingDecision",
    "DecisionOutcome",
    "Query",
    "RankedRoute",
    # Indexing
    "IndexBuilder",
    "load_route_definitions",
]
