"""
Route Catalog

In-memory mapping of route name -> Route plus the reverse mapping of
stored vector ID -> owning route name.

Each load produces a new immutable CatalogSnapshot. Publishing swaps a
single reference, so readers never observe a half-built catalog and never
need a lock: a routing call grabs ``catalog.snapshot`` once and uses that
generation for its whole lifetime.
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from llm_router.catalog.models import Route, RouteDefinition
from llm_router.errors import InvalidRouteDefinition, RouteNotFound, UnknownVectorID

logger = logging.getLogger(__name__)


def validate_definitions(definitions: Iterable[RouteDefinition]) -> list[RouteDefinition]:
    """
    Check a full set of route definitions before anything is applied.

    Raises:
        InvalidRouteDefinition: empty name, duplicate name, or empty utterance list
    """
    checked: list[RouteDefinition] = []
    seen: set[str] = set()

    for position, definition in enumerate(definitions):
        name = definition.name.strip() if definition.name else ""
        if not name:
            raise InvalidRouteDefinition(f"Route #{position} has an empty name")
        if name != definition.name:
            raise InvalidRouteDefinition(
                f"Route name {definition.name!r} has leading or trailing whitespace"
            )
        if name in seen:
            raise InvalidRouteDefinition(f"Duplicate route name: {name}")
        if not definition.utterances:
            raise InvalidRouteDefinition(f"Route '{name}' has no utterances")
        if any(not u or not u.strip() for u in definition.utterances):
            raise InvalidRouteDefinition(f"Route '{name}' has a blank utterance")

        seen.add(name)
        checked.append(definition)

    return checked



def _detached(route: Route) -> Route:
    # Route is frozen but its metadata dict is not; readers get their own copy
    return route.model_copy(update={"metadata": dict(route.metadata)})


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    One generation of the catalog.

    Attributes:
        generation: Monotonic generation number (0 = nothing loaded yet)
        routes: route name -> Route, in definition order
        vector_routes: vector ID -> route name
        collection: Vector index collection holding this generation's points
        dimension: Embedding dimensionality D of this generation
        created_at: When the snapshot was built
    """
    generation: int
    routes: Mapping[str, Route]
    vector_routes: Mapping[str, str]
    collection: str | None = None
    dimension: int | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def empty(cls) -> "CatalogSnapshot":
        return cls(
            generation=0,
            routes=MappingProxyType({}),
            vector_routes=MappingProxyType({}),
        )

    @classmethod
    def build(
        cls,
        definitions: Sequence[RouteDefinition],
        vector_ids: Mapping[str, Sequence[str]] | None = None,
        *,
        generation: int,
        collection: str | None = None,
        dimension: int | None = None,
    ) -> "CatalogSnapshot":
        """
        Validate definitions and build an immutable snapshot.

        Args:
            definitions: Full set of route definitions
            vector_ids: route name -> IDs of the vectors stored for it
            generation: Generation number to stamp
            collection: Collection the vectors live in
            dimension: Embedding dimensionality

        Raises:
            InvalidRouteDefinition: If definitions are invalid, or vector IDs
                reference an unknown route or are assigned twice
        """
        checked = validate_definitions(definitions)
        routes = {d.name: Route.from_definition(d) for d in checked}

        vector_routes: dict[str, str] = {}
        for route_name, ids in (vector_ids or {}).items():
            if route_name not in routes:
                raise InvalidRouteDefinition(
                    f"Vector IDs assigned to unknown route '{route_name}'"
                )
            for vector_id in ids:
                owner = vector_routes.setdefault(str(vector_id), route_name)
                if owner != route_name:
                    raise InvalidRouteDefinition(
                        f"Vector ID {vector_id} assigned to both '{owner}' and '{route_name}'"
                    )

        return cls(
            generation=generation,
            routes=MappingProxyType(routes),
            vector_routes=MappingProxyType(vector_routes),
            collection=collection,
            dimension=dimension,
        )

    @property
    def is_loaded(self) -> bool:
        return self.generation > 0

    @property
    def route_count(self) -> int:
        return len(self.routes)

    @property
    def vector_count(self) -> int:
        return len(self.vector_routes)

    def resolve(self, vector_id: str) -> Route:
        """Map a stored vector ID back to its route."""
        route_name = self.vector_routes.get(str(vector_id))
        if route_name is None:
            raise UnknownVectorID(str(vector_id), self.generation)
        return _detached(self.routes[route_name])

    def get(self, name: str) -> Route:
        route = self.routes.get(name)
        if route is None:
            raise RouteNotFound(name)
        return _detached(route)

    def list_routes(self) -> list[Route]:
        return [_detached(route) for route in self.routes.values()]


class RouteCatalog:
    """
    Holder of the live CatalogSnapshot.

    Writes replace the whole snapshot with a single assignment.
    Reads are lock-free.
    """

    def __init__(self):
        self._snapshot = CatalogSnapshot.empty()
        self._generations = itertools.count(1)

    @property
    def snapshot(self) -> CatalogSnapshot:
        """The live generation. Grab once per request."""
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    @property
    def is_loaded(self) -> bool:
        """True once at least one generation has been published."""
        return self._snapshot.is_loaded

    def next_generation(self) -> int:
        """Reserve a generation number (never reused, even if a build fails)."""
        return next(self._generations)

    def load(
        self,
        definitions: Sequence[RouteDefinition],
        vector_ids: Mapping[str, Sequence[str]] | None = None,
        *,
        collection: str | None = None,
        dimension: int | None = None,
    ) -> CatalogSnapshot:
        """
        Replace the entire catalog atomically.

        Nothing is applied if validation fails.

        Raises:
            InvalidRouteDefinition: If any definition is invalid
        """
        snapshot = CatalogSnapshot.build(
            definitions,
            vector_ids,
            generation=self.next_generation(),
            collection=collection,
            dimension=dimension,
        )
        self.publish(snapshot)
        return snapshot

    def publish(self, snapshot: CatalogSnapshot) -> CatalogSnapshot:
        """
        Swap in a prebuilt snapshot.

        Returns:
            The snapshot that was live before the swap
        """
        previous = self._snapshot
        if snapshot.generation <= previous.generation:
            raise ValueError(
                f"Refusing to publish generation {snapshot.generation} "
                f"over generation {previous.generation}"
            )
        self._snapshot = snapshot
        logger.info(
            f"Catalog generation {snapshot.generation} published: "
            f"{snapshot.route_count} routes, {snapshot.vector_count} vectors"
            + (f" (collection: {snapshot.collection})" if snapshot.collection else "")
        )
        return previous

    def resolve(self, vector_id: str) -> Route:
        return self._snapshot.resolve(vector_id)

    def get(self, name: str) -> Route:
        return self._snapshot.get(name)

    def list_routes(self) -> list[Route]:
        return self._snapshot.list_routes()
