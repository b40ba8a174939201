"""
Score aggregation and ranking helpers.

Per-route evidence is the maximum similarity among that route's neighbours:
a single strong exemplar outweighs many mediocre ones, and routes with
more utterances get no advantage from sheer count.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Mapping

from llm_router.routing.decision import RankedRoute


@dataclass(frozen=True)
class Neighbor:
    """A resolved nearest-neighbour hit."""
    route: str
    score: float
    utterance: str | None = None


@dataclass
class RouteEvidence:
    """Aggregated evidence for one route."""
    score: float
    neighbors: int
    utterance: str | None = None


def normalize_score(score: float) -> float:
    """Clamp a similarity into [0, 1]. Negative cosine and NaN count as 0."""
    if score is None or math.isnan(score):
        return 0.0
    return min(1.0, max(0.0, float(score)))


def aggregate_max(neighbors: Iterable[Neighbor]) -> dict[str, RouteEvidence]:
    """Group neighbours by route, keeping each route's best score."""
    evidence: dict[str, RouteEvidence] = {}

    for neighbor in neighbors:
        score = normalize_score(neighbor.score)
        current = evidence.get(neighbor.route)
        if current is None:
            evidence[neighbor.route] = RouteEvidence(
                score=score,
                neighbors=1,
                utterance=neighbor.utterance,
            )
            continue

        current.neighbors += 1
        if score > current.score:
            current.score = score
            current.utterance = neighbor.utterance

    return evidence


def rank_routes(evidence: Mapping[str, RouteEvidence]) -> list[RankedRoute]:
    """Order routes by score descending, then by name ascending."""
    ordered = sorted(evidence.items(), key=lambda item: (-item[1].score, item[0]))
    return [
        RankedRoute(
            route=name,
            score=item.score,
            neighbors=item.neighbors,
            utterance=item.utterance,
        )
        for name, item in ordered
    ]
