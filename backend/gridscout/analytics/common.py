"""Helpers shared by the per-series analyzers."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from gridscout.callouts import UNKNOWN_CALLOUT, CalloutTable, format_map_name
from gridscout.decoder import parse_timestamp_ms

AnalyzerResult = Dict[str, Any]
Analyzer = Callable[..., Optional[AnalyzerResult]]

UNKNOWN_TEAM = "Unknown Team"
MIN_FORMATION_PLAYERS = 3


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def make_result(name: str, description: str, data: Any) -> AnalyzerResult:
    return {
        "name": name,
        "description": description,
        "data": data,
        "generatedAt": utc_now_iso(),
    }


def selected_team_ids(document: Dict[str, Any], team_id: Optional[str]) -> List[str]:
    """The requested team, or the first two teams of the series."""
    if team_id:
        return [team_id]
    teams = document.get("teams") or []
    return [str(team.get("id") or "") for team in teams[:2]] + [""] * max(0, 2 - len(teams))


def team_name(document: Dict[str, Any], team_id: str) -> str:
    for team in document.get("teams") or []:
        if team.get("id") == team_id:
            return team.get("name") or UNKNOWN_TEAM
    return UNKNOWN_TEAM


def team_side(round_doc: Dict[str, Any], team_id: str) -> Optional[str]:
    for entry in round_doc.get("teamSides") or []:
        if entry.get("teamId") == team_id:
            return entry.get("side")
    return None


def team_player_ids(game: Dict[str, Any], team_id: str) -> Set[str]:
    return {player["id"] for player in game.get("players") or [] if player.get("teamId") == team_id}


def player_names(game: Dict[str, Any]) -> Dict[str, str]:
    return {player["id"]: player.get("name") or player["id"] for player in game.get("players") or []}


def to_ms(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    return parse_timestamp_ms(value)


def freeze_end_snapshot(round_doc: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    snapshots = round_doc.get("coordinateTracking") or []
    if not snapshots:
        return None
    freeze_end = to_ms(round_doc.get("freezetimeEndedAt"))
    if freeze_end is not None and len(snapshots) > 1:
        for snapshot in snapshots:
            if snapshot["time"] >= freeze_end:
                return snapshot
        return snapshots[-1]
    if len(snapshots) > 1:
        return snapshots[1]
    return snapshots[0]


def closest_snapshot_to(
    snapshots: List[Dict[str, Any]], instant: int
) -> Optional[Dict[str, Any]]:
    """Closest snapshot to ``instant``, preferring one at or before it."""
    if not snapshots:
        return None
    best = snapshots[0]
    best_diff = abs(best["time"] - instant)
    for snapshot in snapshots:
        diff = abs(snapshot["time"] - instant)
        if diff < best_diff or (snapshot["time"] <= instant and best["time"] > instant):
            best_diff = diff
            best = snapshot
    return best


def first_kill_snapshot(round_doc: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    kills = round_doc.get("kills") or []
    if not kills:
        return None
    first_kill = to_ms(kills[0].get("occurredAt"))
    if first_kill is None:
        return None
    return closest_snapshot_to(round_doc.get("coordinateTracking") or [], first_kill)


def kill_times(round_doc: Dict[str, Any]) -> Dict[str, int]:
    """Earliest death time (epoch ms) per victim in the round."""
    deaths: Dict[str, int] = {}
    for kill in round_doc.get("kills") or []:
        when = to_ms(kill.get("occurredAt"))
        victim = kill.get("victimId")
        if when is None or not victim:
            continue
        deaths[victim] = min(when, deaths.get(victim, when))
    return deaths


def region_counts(
    snapshot: Dict[str, Any],
    player_ids: Set[str],
    map_id: str,
    callouts: CalloutTable,
) -> Optional[Dict[str, int]]:
    """Teammates per super region, or None below the formation minimum."""
    counts: Counter = Counter()
    for coord in snapshot.get("playerCoordinates") or []:
        if coord.get("playerId") not in player_ids:
            continue
        region = callouts.super_region(map_id, coord["x"], coord["y"])
        if region is not None:
            counts[region] += 1
    if sum(counts.values()) < MIN_FORMATION_PLAYERS:
        return None
    return dict(counts)


def formation_key(regions: Dict[str, int]) -> str:
    entries = sorted((name, count) for name, count in regions.items() if count > 0)
    return ", ".join(f"{count} {name}" for name, count in entries)


class FormationTally:
    """Counts formations per map for one team."""

    def __init__(self) -> None:
        self.rounds: Dict[str, int] = {}
        self.formations: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def touch(self, map_id: str) -> None:
        self.rounds.setdefault(map_id, 0)
        self.formations.setdefault(map_id, {})

    def add(self, map_id: str, regions: Dict[str, int]) -> None:
        self.touch(map_id)
        self.rounds[map_id] += 1
        key = formation_key(regions)
        entry = self.formations[map_id].setdefault(key, {"superRegions": regions, "count": 0})
        entry["count"] += 1

    @property
    def total_rounds(self) -> int:
        return sum(self.rounds.values())

    def by_map(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        maps = []
        for map_id, formations in self.formations.items():
            total = self.rounds[map_id]
            listing = [
                {
                    "formationKey": key,
                    "superRegions": entry["superRegions"],
                    "count": entry["count"],
                    "percentage": (entry["count"] / total) * 100 if total > 0 else 0,
                }
                for key, entry in formations.items()
            ]
            listing.sort(key=lambda item: -item["count"])
            if limit is not None:
                listing = listing[:limit]
            if listing:
                maps.append(
                    {
                        "mapId": map_id,
                        "mapName": format_map_name(map_id),
                        "totalRounds": total,
                        "formations": listing,
                    }
                )
        maps.sort(key=lambda item: -item["totalRounds"])
        return maps


def frequencies(values: Iterable[str], total: int) -> List[Tuple[str, int, float]]:
    """(value, count, percentage) sorted by count, first-seen order on ties."""
    counts = Counter(values)
    rows = [(value, count, (count / total) * 100 if total > 0 else 0) for value, count in counts.items()]
    rows.sort(key=lambda row: -row[1])
    return rows


def cluster_record(
    centroid_x: float,
    centroid_y: float,
    positions: List[Dict[str, float]],
    map_id: str,
    callouts: CalloutTable,
    denominator: int,
) -> Dict[str, Any]:
    """Output shape shared by every positional cluster listing."""
    callout = callouts.closest(map_id, centroid_x, centroid_y)
    count = len(positions)
    return {
        "centroidX": centroid_x,
        "centroidY": centroid_y,
        "callout": callout.label if callout else UNKNOWN_CALLOUT,
        "superRegion": callout.super_region_name if callout else UNKNOWN_CALLOUT,
        "count": count,
        "percentage": (count / denominator) * 100 if denominator > 0 else 0,
        "positions": positions,
    }
