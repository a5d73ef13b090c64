"""Scoring utilities for the KAK Cup events.

Turns raw per-team measurements (fish weights, chug times, golf scores) into
ranked point allocations.  Everything here is a pure function: no module
state, no I/O, safe to call from any request thread.
"""

from __future__ import annotations

import math
from typing import Dict, Hashable, Iterable, List, Mapping

# Rank 1 earns 7 points, rank 7 earns 1; every rank beyond that is floored at 1.
POINTS_CEILING = 8
MIN_POINTS = 1
FISH_COUNTED = 3


class InvalidInput(ValueError):
    """Raised when an observation can not be scored."""


def reduce_fish_observations(weights: Iterable[float]) -> float:
    """Return the total of the three heaviest positive fish weights.

    Zero and negative weights are dropped (a 0 lb entry records "no catch").
    With fewer than three valid weights the remaining ones are summed, and an
    empty selection totals 0.
    """
    valid = [w for w in weights if w > 0]
    if not valid:
        return 0
    top = sorted(valid, reverse=True)[:FISH_COUNTED]
    return sum(top)


def reduce_chug_observations(time1: float, time2: float) -> float:
    """Average two chug times, rounded half-up to 3 decimal places.

    Args:
        time1: First chug time in seconds.
        time2: Second chug time in seconds.

    Returns:
        The mean of both times.

    Raises:
        InvalidInput: If either time is zero or negative.
    """
    if time1 <= 0 or time2 <= 0:
        raise InvalidInput("Chug times must be positive numbers")
    return math.floor((time1 + time2) / 2 * 1000 + 0.5) / 1000


def _rank_points(rank: int) -> int:
    """Return the points a single team earns at ``rank``."""
    return max(MIN_POINTS, POINTS_CEILING - rank)


def allocate_points(ranked_scores: Iterable[Dict]) -> List[Dict]:
    """Award points to teams already sorted best to worst.

    Each entry must provide ``team_id`` and ``score``.  Consecutive entries
    with exactly equal scores form a tie group; the group shares the points of
    every rank it occupies and each member receives the same quotient.  For
    example two teams tied across ranks 2 and 3 each score ``(6 + 5) / 2``.

    The input is not sorted or modified.  Output order matches input order.
    """
    entries = list(ranked_scores)
    results: List[Dict] = []
    rank = 1
    i = 0
    while i < len(entries):
        score = entries[i]["score"]
        j = i
        while j < len(entries) and entries[j]["score"] == score:
            j += 1
        group = entries[i:j]
        # Exact equality only; callers round their scores before ranking.
        total = sum(_rank_points(r) for r in range(rank, rank + len(group)))
        share = total / len(group)
        for entry in group:
            results.append({"team_id": entry["team_id"], "points": share})
        rank += len(group)
        i = j
    return results


def _rank(scores: Mapping[Hashable, float], descending: bool) -> List[Dict]:
    ranked = [{"team_id": team_id, "score": score} for team_id, score in scores.items()]
    # sorted() is stable, so equal scores keep their mapping order
    ranked = sorted(ranked, key=lambda r: r["score"], reverse=descending)
    return allocate_points(ranked)


def rank_fish_teams(scores: Mapping[Hashable, float]) -> List[Dict]:
    """Rank teams by fish total weight (heavier wins)."""
    return _rank(scores, descending=True)


def rank_chug_teams(scores: Mapping[Hashable, float]) -> List[Dict]:
    """Rank teams by average chug time (faster wins)."""
    return _rank(scores, descending=False)


def rank_golf_teams(scores: Mapping[Hashable, float]) -> List[Dict]:
    """Rank teams by golf score relative to par (lowest wins)."""
    return _rank(scores, descending=False)


__all__ = [
    "InvalidInput",
    "reduce_fish_observations",
    "reduce_chug_observations",
    "allocate_points",
    "rank_fish_teams",
    "rank_chug_teams",
    "rank_golf_teams",
]
