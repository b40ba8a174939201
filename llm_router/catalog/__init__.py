# Route Catalog
# Immutable, atomically swappable snapshots of the known routes
# and the vector ID -> route mapping used to interpret search hits.

from llm_router.catalog.models import Route, RouteDefinition
from llm_router.catalog.catalog import (
    CatalogSnapshot,
    RouteCatalog,
    validate_definitions,
)

__all__ = [
    "Route",
    "RouteDefinition",
    "CatalogSnapshot",
    "RouteCatalog",
    "validate_definitions",
]
