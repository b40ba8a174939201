"""
Indexing Pipeline

Offline/administrative flow that embeds route utterances into a new index
generation and publishes the matching catalog snapshot.
"""

from .loader import (
    dump_route_definitions,
    load_route_definitions,
    parse_route_definitions,
)
from .pipeline import BuildReport, IndexBuilder, build_payload

__all__ = [
    "BuildReport",
    "IndexBuilder",
    "build_payload",
    "dump_route_definitions",
    "load_route_definitions",
    "parse_route_definitions",
]
