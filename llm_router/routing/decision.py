"""
Routing Decision Models

Query in, RoutingDecision out. Both are ephemeral and never persisted.
"""

from enum import Enum

from pydantic import BaseModel, Field


class DecisionOutcome(str, Enum):
    """How a routing call concluded."""
    MATCHED = "matched"
    NO_CONFIDENT_MATCH = "no_confident_match"


class Query(BaseModel):
    """
    A routing query: raw text, a precomputed vector, or both.

    When a vector is present it is used as-is and the text is only
    informational (no embedding call is made).
    """

    text: str | None = Field(
        default=None,
        description="Natural-language request to embed"
    )
    vector: list[float] | None = Field(
        default=None,
        description="Precomputed query embedding (must have the index dimensionality)"
    )


class RankedRoute(BaseModel):
    """One route's aggregated evidence for a query."""

    route: str = Field(description="Route name")
    score: float = Field(
        description="Aggregated similarity (max over the route's neighbours)",
        ge=0.0,
        le=1.0,
    )
    neighbors: int = Field(
        default=0,
        description="How many of the k neighbours belong to this route"
    )
    utterance: str | None = Field(
        default=None,
        description="The indexed utterance that produced the route's best score"
    )


class RoutingDecision(BaseModel):
    """
    Result of a routing call.

    When outcome is NO_CONFIDENT_MATCH, route is None and model/provider are
    empty: callers must apply their own fallback policy.
    """

    route: str | None = Field(
        default=None,
        description="Selected route name (None when no confident match)"
    )
    model: str = Field(default="", description="Target model of the selected route")
    provider: str = Field(default="", description="Target provider of the selected route")
    confidence: float = Field(
        default=0.0,
        description="Top aggregated score, 0.0 when nothing was found",
        ge=0.0,
        le=1.0,
    )
    outcome: DecisionOutcome = Field(default=DecisionOutcome.NO_CONFIDENT_MATCH)
    ranked: list[RankedRoute] = Field(
        default_factory=list,
        description="Every route considered, best first"
    )
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Metadata of the selected route"
    )
    generation: int = Field(
        default=0,
        description="Catalog generation the decision was computed against"
    )
    latency_ms: float = Field(default=0.0, description="Time spent computing the decision")

    @property
    def matched(self) -> bool:
        return self.outcome == DecisionOutcome.MATCHED
