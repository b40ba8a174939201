"""
Route definition file loading.

Format (YAML):

    routes:
      - name: code
        model: gpt-4o
        provider: openai
        utterances:
          - "write a python function"
          - "fix this stack trace"
        metadata:
          tier: premium
"""

import logging
from pathlib import Path
from typing import Sequence

import yaml
from pydantic import ValidationError

from llm_router.catalog import RouteDefinition, validate_definitions
from llm_router.errors import InvalidRouteDefinition

logger = logging.getLogger(__name__)


def parse_route_definitions(text: str) -> list[RouteDefinition]:
    """
    Parse and validate a route definition document.

    Raises:
        InvalidRouteDefinition: On malformed YAML or invalid routes
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidRouteDefinition(f"Route file is not valid YAML: {e}") from e

    if data is None:
        data = {"routes": []}
    if not isinstance(data, dict) or "routes" not in data:
        raise InvalidRouteDefinition("Route file must have a top-level 'routes' key")

    entries = data["routes"] or []
    if not isinstance(entries, list):
        raise InvalidRouteDefinition("'routes' must be a list")

    definitions = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise InvalidRouteDefinition(f"Route #{position} must be a mapping")
        try:
            definitions.append(RouteDefinition.model_validate(entry))
        except ValidationError as e:
            raise InvalidRouteDefinition(
                f"Route #{position} ({entry.get('name', '?')}) is invalid: {e}"
            ) from e

    return validate_definitions(definitions)


def load_route_definitions(path: str | Path) -> list[RouteDefinition]:
    """
    Read route definitions from a YAML file.

    Raises:
        InvalidRouteDefinition: If the file is unreadable or invalid
    """
    path = Path(path)
    logger.info(f"Loading routes from {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InvalidRouteDefinition(f"Failed to read routes file {path}: {e}") from e

    definitions = parse_route_definitions(text)
    logger.info(
        f"Loaded {len(definitions)} routes "
        f"({sum(len(d.utterances) for d in definitions)} utterances) from {path}"
    )
    return definitions


def dump_route_definitions(definitions: Sequence[RouteDefinition]) -> str:
    """Serialize route definitions back to the YAML file shape."""
    return yaml.safe_dump(
        {"routes": [d.model_dump() for d in definitions]},
        sort_keys=False,
        allow_unicode=True,
    )
