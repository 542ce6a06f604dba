"""Lurk detection on attack.

Between five and thirty seconds after freeze time ends, a tight group of at
least three attackers sharing one super region is the pack; any live teammate
standing in another super region is lurking. One detection counts per round.
"""

from __future__ import annotations

from collections import Counter
from itertools import combinations
from typing import Any, Dict, List, Optional

import numpy as np

from gridscout.analytics.common import (
    AnalyzerResult,
    make_result,
    selected_team_ids,
    team_name,
    team_side,
    to_ms,
)
from gridscout.callouts import UNKNOWN_CALLOUT, CalloutTable, default_callout_table, format_map_name

LURK_CHECK_START_MS = 5000
LURK_CHECK_END_MS = 30000
PACK_RADIUS = 600
MIN_PACK_SIZE = 3
MIN_ALIVE = 4


def attack_snapshots(
    round_doc: Dict[str, Any],
    team_id: str,
    team_players: List[Dict[str, Any]],
    map_id: str,
    callouts: CalloutTable,
) -> List[List[Dict[str, Any]]]:
    """Located live attackers for each qualifying snapshot in the lurk window."""
    if team_side(round_doc, team_id) != "attacker":
        return []
    freeze_end = to_ms(round_doc.get("freezetimeEndedAt"))
    if freeze_end is None:
        return []
    start, end = freeze_end + LURK_CHECK_START_MS, freeze_end + LURK_CHECK_END_MS
    kills = [(to_ms(kill.get("occurredAt")), kill.get("victimId")) for kill in round_doc.get("kills") or []]

    qualifying = []
    for snapshot in round_doc.get("coordinateTracking") or []:
        if not start <= snapshot["time"] <= end:
            continue
        dead = {victim for when, victim in kills if when is not None and when <= snapshot["time"]}
        alive = [p for p in team_players if p["id"] not in dead]
        if len(alive) < MIN_ALIVE:
            continue
        coords = {c["playerId"]: c for c in snapshot.get("playerCoordinates") or []}
        if any(p["id"] not in coords for p in alive):
            continue
        positions = []
        for player in alive:
            coord = coords[player["id"]]
            callout = callouts.closest(map_id, coord["x"], coord["y"])
            positions.append(
                {
                    "playerId": player["id"],
                    "playerName": player.get("name") or player["id"],
                    "x": coord["x"],
                    "y": coord["y"],
                    "superRegion": callout.super_region_name if callout else UNKNOWN_CALLOUT,
                    "callout": callout.label if callout else UNKNOWN_CALLOUT,
                }
            )
        qualifying.append(positions)
    return qualifying


def _tight(group) -> bool:
    coords = np.array([[p["x"], p["y"]] for p in group], dtype=float)
    deltas = coords[:, None, :] - coords[None, :, :]
    return bool((np.hypot(deltas[..., 0], deltas[..., 1]) <= PACK_RADIUS).all())


def detect_lurkers(positions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    for size in range(len(positions), MIN_PACK_SIZE - 1, -1):
        for pack in combinations(positions, size):
            region = pack[0]["superRegion"]
            if any(p["superRegion"] != region for p in pack) or not _tight(pack):
                continue
            pack_ids = {p["playerId"] for p in pack}
            lurkers = [
                {
                    "lurkerId": p["playerId"],
                    "lurkerName": p["playerName"],
                    "lurkerSuperRegion": p["superRegion"],
                    "lurkerCallout": p["callout"],
                    "packSuperRegion": region,
                    "x": p["x"],
                    "y": p["y"],
                }
                for p in positions
                if p["playerId"] not in pack_ids and p["superRegion"] != region
            ]
            if lurkers:
                return lurkers
    return []


def _push_sites(instances: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    grouped: Dict[str, Counter] = {}
    for instance in instances:
        grouped.setdefault(instance["packSuperRegion"], Counter())[instance["lurkerSuperRegion"]] += 1
    sites = []
    for push_site, locations in grouped.items():
        total = sum(locations.values())
        sites.append(
            {
                "pushSite": push_site,
                "lurkLocations": [
                    {"superRegion": region, "count": count, "percentage": (count / total) * 100}
                    for region, count in locations.most_common()
                ],
            }
        )
    sites.sort(key=lambda site: -sum(loc["count"] for loc in site["lurkLocations"]))
    return sites


def analyze_team(
    document: Dict[str, Any], team_id: str, callouts: CalloutTable
) -> Dict[str, Any]:
    maps: Dict[str, Dict[str, Any]] = {}
    for game in document.get("games") or []:
        map_id = game.get("mapId") or "unknown"
        map_entry = maps.setdefault(map_id, {"totalAttackRounds": 0, "players": {}})
        team_players = [p for p in game.get("players") or [] if p.get("teamId") == team_id]
        for player in team_players:
            map_entry["players"].setdefault(
                player["id"],
                {"playerName": player.get("name") or player["id"], "totalAttackRounds": 0, "instances": []},
            )
        for round_doc in game.get("rounds") or []:
            snapshots = attack_snapshots(round_doc, team_id, team_players, map_id, callouts)
            if not snapshots:
                continue
            map_entry["totalAttackRounds"] += 1
            for player in team_players:
                map_entry["players"][player["id"]]["totalAttackRounds"] += 1
            for positions in snapshots:
                lurkers = detect_lurkers(positions)
                if lurkers:
                    for lurker in lurkers:
                        map_entry["players"][lurker["lurkerId"]]["instances"].append(lurker)
                    break

    by_map = []
    for map_id, map_entry in maps.items():
        if map_entry["totalAttackRounds"] == 0:
            continue
        players = []
        for player_id, data in map_entry["players"].items():
            if data["totalAttackRounds"] == 0:
                continue
            lurk_count = len(data["instances"])
            players.append(
                {
                    "playerId": player_id,
                    "playerName": data["playerName"],
                    "totalAttackRounds": data["totalAttackRounds"],
                    "lurkCount": lurk_count,
                    "lurkPercentage": (lurk_count / data["totalAttackRounds"]) * 100,
                    "byPushSite": _push_sites(data["instances"]),
                }
            )
        players.sort(key=lambda item: -item["lurkPercentage"])
        # Maps without a lurk are kept so their attack rounds reach multi-series totals.
        by_map.append(
            {
                "mapId": map_id,
                "mapName": format_map_name(map_id),
                "totalAttackRounds": map_entry["totalAttackRounds"],
                "players": players,
            }
        )
    by_map.sort(key=lambda item: -item["totalAttackRounds"])
    return {"teamId": team_id, "teamName": team_name(document, team_id), "byMap": by_map}


def lurker_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
) -> Optional[AnalyzerResult]:
    callouts = callouts or default_callout_table()
    teams = [analyze_team(document, tid, callouts) for tid in selected_team_ids(document, team_id)]
    if not any(team["byMap"] for team in teams):
        return None
    return make_result(
        "lurkerAnalysis",
        "Analyzes lurker positions during attack rounds",
        {"teams": teams},
    )
