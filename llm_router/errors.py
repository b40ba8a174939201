"""
Router Error Taxonomy

All failures raised by the routing core derive from RouterError.
Each subclass carries a stable ``code`` used by the HTTP layer.

Note: "no confident match" is not an error. It is a valid decision
outcome (see DecisionOutcome.NO_CONFIDENT_MATCH).
"""


class RouterError(Exception):
    """Base exception for routing errors."""
    code = "router_error"


class InvalidRouteDefinition(RouterError):
    """A route definition is malformed (empty/duplicate name, no utterances)."""
    code = "invalid_route_definition"


class EmbeddingDimensionMismatch(RouterError):
    """The embedding backend returned a vector of unexpected length during a build."""
    code = "embedding_dimension_mismatch"

    def __init__(self, expected: int, actual: int, context: str = ""):
        self.expected = expected
        self.actual = actual
        detail = f" ({context})" if context else ""
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}{detail}"
        )


class EmbeddingUnavailable(RouterError):
    """The embedding backend errored or timed out."""
    code = "embedding_unavailable"


class IndexUnavailable(RouterError):
    """The vector index errored or timed out."""
    code = "index_unavailable"


class UnknownVectorID(RouterError):
    """A vector ID was not registered in the current catalog generation."""
    code = "unknown_vector_id"

    def __init__(self, vector_id: str, generation: int):
        self.vector_id = vector_id
        self.generation = generation
        super().__init__(
            f"Vector {vector_id} is not registered in generation {generation}"
        )


class RouteNotFound(RouterError):
    """No route with the given name."""
    code = "route_not_found"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Route not found: {name}")


class InvalidQuery(RouterError):
    """The query carries no usable text/vector or has the wrong dimensionality."""
    code = "invalid_query"


class RoutingCancelled(RouterError):
    """The operation's deadline elapsed before it completed."""
    code = "cancelled"


class IndexBuildInProgress(RouterError):
    """Another index build currently holds the build lock."""
    code = "index_build_in_progress"
