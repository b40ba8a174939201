"""
Route Models

A RouteDefinition is what an operator writes in the routes file.
A Route is the catalog's immutable view of it at serving time.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RouteDefinition(BaseModel):
    """
    One entry of the route definition file.

    Shape: name, model, provider, utterances, metadata.
    Semantic checks (empty names, duplicates, empty utterance lists)
    are done by the catalog so they surface as InvalidRouteDefinition.
    """

    name: str = Field(
        ...,
        description="Unique route key"
    )
    model: str = Field(
        default="",
        description="Target model identifier (e.g., 'gpt-4o-mini')"
    )
    provider: str = Field(
        default="",
        description="Target provider identifier (e.g., 'openai')"
    )
    utterances: list[str] = Field(
        default_factory=list,
        description="Example utterances representing the route's intent space"
    )
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Free-form string metadata attached to every indexed point"
    )

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, value):
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value


class Route(BaseModel):
    """
    A routable target (model + provider pair).

    Immutable once loaded; replaced wholesale on re-indexing.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    model: str = ""
    provider: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
    utterance_count: int = 0

    @classmethod
    def from_definition(cls, definition: RouteDefinition) -> "Route":
        return cls(
            name=definition.name,
            model=definition.model,
            provider=definition.provider,
            metadata=dict(definition.metadata),
            utterance_count=len(definition.utterances),
        )
