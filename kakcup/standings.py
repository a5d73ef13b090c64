"""Overall standings for a tournament year.

Builds per-event score maps from stored rows, ranks them with
:mod:`kakcup.scoring` and combines fish, chug and golf points into a single
table sorted by total points.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .scoring import (
    rank_chug_teams,
    rank_fish_teams,
    rank_golf_teams,
    reduce_fish_observations,
)

MEMBER_FIELDS = ("kak1", "kak2", "kak3", "kak4")


def group_fish_weights(rows: Iterable[Dict[str, Any]]) -> Dict[str, float]:
    """Return each team's top-3 fish total from individual catch rows.

    Teams whose catches are all non-positive are left out entirely.
    """
    weights: Dict[str, List[float]] = {}
    for row in rows:
        weight = row.get("weight")
        if weight is None or weight <= 0:
            continue
        weights.setdefault(row["team_id"], []).append(weight)
    return {team_id: reduce_fish_observations(ws) for team_id, ws in weights.items()}


def chug_averages(rows: Iterable[Dict[str, Any]]) -> Dict[str, float]:
    """Return the stored chug average per team, skipping incomplete rows."""
    out: Dict[str, float] = {}
    for row in rows:
        avg = row.get("average")
        if avg is None or avg <= 0:
            continue
        out[row["team_id"]] = avg
    return out


def golf_scores(rows: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for row in rows:
        score = row.get("score")
        if score is None:
            continue
        out[row["team_id"]] = score
    return out


def _points_map(ranked: List[Dict]) -> Dict[str, float]:
    return {r["team_id"]: r["points"] for r in ranked}


def event_results(scores: Dict[str, float], points: Dict[str, float], teams: Iterable[Dict[str, Any]]) -> List[Dict]:
    """Per-event table of the teams that have a score, best first."""
    names = {t["id"]: t.get("name") for t in teams}
    table = [
        {
            "team_id": team_id,
            "team_name": names.get(team_id),
            "value": value,
            "points": points.get(team_id, 0.0),
        }
        for team_id, value in scores.items()
    ]
    table.sort(key=lambda r: -r["points"])
    return table


def _rank_label(total: float, place: int, tied: bool) -> str:
    if total == 0:
        return "-"
    if tied:
        return f"T-{place}"
    return str(place)


def compute_year_standings(
    teams: Iterable[Dict[str, Any]],
    fish_rows: Iterable[Dict[str, Any]],
    chug_rows: Iterable[Dict[str, Any]],
    golf_rows: Iterable[Dict[str, Any]],
) -> Dict[str, Any]:
    """Combine the three events into the overall standings.

    Args:
        teams: Team rows for the year (``id``, ``name``, ``position`` and
            member fields).
        fish_rows: Individual fish weight rows.
        chug_rows: Chug time rows carrying a precomputed ``average``.
        golf_rows: Golf score rows.

    Returns:
        Dictionary with ``standings`` (one entry per team sorted by total
        points, highest first) and ``events`` holding the per-event tables.
        Teams with no result in an event score zero points for it.
    """
    team_list = sorted(teams, key=lambda t: t.get("position") or 0)

    fish_totals = group_fish_weights(fish_rows)
    chug_avgs = chug_averages(chug_rows)
    golf = golf_scores(golf_rows)

    fish_points = _points_map(rank_fish_teams(fish_totals))
    chug_points = _points_map(rank_chug_teams(chug_avgs))
    golf_points = _points_map(rank_golf_teams(golf))

    standings: List[Dict[str, Any]] = []
    for team in team_list:
        tid = team["id"]
        fp = fish_points.get(tid, 0.0)
        cp = chug_points.get(tid, 0.0)
        gp = golf_points.get(tid, 0.0)
        standings.append(
            {
                "team_id": tid,
                "team_name": team.get("name"),
                "position": team.get("position"),
                "members": [team.get(f) for f in MEMBER_FIELDS if team.get(f)],
                "fish_total": fish_totals.get(tid),
                "chug_average": chug_avgs.get(tid),
                "golf_score": golf.get(tid),
                "fish_points": fp,
                "chug_points": cp,
                "golf_points": gp,
                "total_points": fp + cp + gp,
            }
        )

    # Stable: teams level on points keep their position order
    standings.sort(key=lambda r: -r["total_points"])

    first_place: Dict[float, int] = {}
    counts: Dict[float, int] = {}
    for idx, entry in enumerate(standings, start=1):
        total = entry["total_points"]
        first_place.setdefault(total, idx)
        counts[total] = counts.get(total, 0) + 1
    for entry in standings:
        total = entry["total_points"]
        entry["place"] = first_place[total]
        entry["tied"] = counts[total] > 1
        entry["rank_label"] = _rank_label(total, entry["place"], entry["tied"])

    return {
        "standings": standings,
        "events": {
            "fish": event_results(fish_totals, fish_points, team_list),
            "chug": event_results(chug_avgs, chug_points, team_list),
            "golf": event_results(golf, golf_points, team_list),
        },
    }


def leader(standings: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return the outright leader, or ``None`` when nobody has points or first is shared."""
    if not standings or standings[0]["total_points"] <= 0 or standings[0]["tied"]:
        return None
    return standings[0]


__all__ = [
    "group_fish_weights",
    "chug_averages",
    "golf_scores",
    "event_results",
    "compute_year_standings",
    "leader",
]
