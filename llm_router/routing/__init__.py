# Semantic Routing
# Nearest-neighbour routing of natural-language requests to model/provider targets
#
# Features:
# - Cosine nearest-neighbour search over labeled utterances
# - Max-aggregation of evidence per route
# - Deterministic ranking (score desc, name asc)
# - Explicit no-confident-match outcome below the threshold

from llm_router.routing.decision import (
    DecisionOutcome,
    Query,
    RankedRoute,
    RoutingDecision,
)
from llm_router.routing.scoring import (
    Neighbor,
    RouteEvidence,
    aggregate_max,
    normalize_score,
    rank_routes,
)
from llm_router.routing.engine import RoutingEngine

__all__ = [
    # Core engine
    "RoutingEngine",
    # Decision models
    "DecisionOutcome",
    "Query",
    "RankedRoute",
    "RoutingDecision",
    # Scoring
    "Neighbor",
    "RouteEvidence",
    "aggregate_max",
    "normalize_score",
    "rank_routes",
]
