"""
HTTP request/response schemas for the router API.
"""

from pydantic import BaseModel, Field

from llm_router.catalog import Route, RouteDefinition


class RouteRequest(BaseModel):
    """Body of POST /v1/route."""

    text: str | None = Field(default=None, description="Query text")
    vector: list[float] | None = Field(default=None, description="Precomputed query vector")
    k: int | None = Field(default=None, description="Override neighbour count", gt=0)
    confidence_threshold: float | None = Field(
        default=None,
        description="Override confidence threshold",
        ge=0.0,
        le=1.0,
    )


class RouteList(BaseModel):
    generation: int
    routes: list[Route]


class ReindexResponse(BaseModel):
    generation: int
    collection: str
    dimension: int
    routes: int
    points: int
    verified: bool
    duration_ms: float


class ErrorResponse(BaseModel):
    error: str
    message: str


class ReindexRequest(BaseModel):
    """Optional body of POST /v1/admin/reindex."""

    routes: list[RouteDefinition] | None = Field(
        default=None,
        description="Route definitions to index instead of the routes file"
    )
