"""Where attackers hold after planting, split by plant site.

Positions are read from the snapshot closest to ten seconds after the plant,
skipping anyone who died before that instant. Clustering is by connected
components with a median centroid so one stray hold does not drag the spot.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import (
    AnalyzerResult,
    cluster_record,
    kill_times,
    make_result,
    selected_team_ids,
    team_name,
    team_side,
    to_ms,
)
from gridscout.callouts import CalloutTable, default_callout_table, format_map_name
from gridscout.clustering import Point, cluster_points

CLUSTER_RADIUS = 250
POST_PLANT_DELAY_MS = 10000
VALID_PLANT_SITES = ("A", "B", "C")
TOP_CLUSTERS = 10


def plant_site(round_doc: Dict[str, Any], map_id: str, callouts: CalloutTable) -> Optional[str]:
    """A, B or C from the nearest callout to the plant, else None."""
    position = (round_doc.get("bombPlant") or {}).get("position")
    if not position:
        return None
    region = callouts.super_region(map_id, position["x"], position["y"])
    return region if region in VALID_PLANT_SITES else None


def post_plant_snapshot(round_doc: Dict[str, Any], plant_time: int) -> Optional[Dict[str, Any]]:
    target = plant_time + POST_PLANT_DELAY_MS
    best = None
    best_diff = float("inf")
    for snapshot in round_doc.get("coordinateTracking") or []:
        if snapshot["time"] < plant_time:
            continue
        diff = abs(snapshot["time"] - target)
        if diff < best_diff:
            best_diff = diff
            best = snapshot
    return best


def post_plant_positions(round_doc: Dict[str, Any], player_ids: List[str]) -> Dict[str, Point]:
    plant_time = to_ms((round_doc.get("bombPlant") or {}).get("occurredAt"))
    if plant_time is None:
        return {}
    target = plant_time + POST_PLANT_DELAY_MS
    snapshot = post_plant_snapshot(round_doc, plant_time)
    if snapshot is None:
        return {}
    deaths = kill_times(round_doc)
    coords = {c["playerId"]: c for c in snapshot.get("playerCoordinates") or []}
    positions = {}
    for player_id in player_ids:
        if player_id in deaths and deaths[player_id] < target:
            continue
        coord = coords.get(player_id)
        if coord is None or (coord["x"] == 0 and coord["y"] == 0):
            continue
        positions[player_id] = Point(coord["x"], coord["y"])
    return positions


def analyze_team(
    document: Dict[str, Any], team_id: str, callouts: CalloutTable
) -> Dict[str, Any]:
    maps: Dict[str, Dict[str, Any]] = {}
    for game in document.get("games") or []:
        map_id = game.get("mapId") or "unknown"
        map_entry = maps.setdefault(map_id, {"totalPlants": 0, "bySite": {}})
        team_players = [p for p in game.get("players") or [] if p.get("teamId") == team_id]
        for round_doc in game.get("rounds") or []:
            if team_side(round_doc, team_id) != "attacker" or not round_doc.get("bombPlant"):
                continue
            site = plant_site(round_doc, map_id, callouts)
            if site is None:
                continue
            map_entry["totalPlants"] += 1
            site_entry = map_entry["bySite"].setdefault(site, {"totalPlants": 0, "players": {}})
            site_entry["totalPlants"] += 1
            positions = post_plant_positions(round_doc, [p["id"] for p in team_players])
            for player in team_players:
                point = positions.get(player["id"])
                if point is None:
                    continue
                site_entry["players"].setdefault(
                    player["id"], {"playerName": player.get("name") or player["id"], "points": []}
                )["points"].append(point)

    by_map = []
    for map_id, map_entry in maps.items():
        if map_entry["totalPlants"] == 0:
            continue
        by_site = []
        for site, site_entry in map_entry["bySite"].items():
            players = []
            for player_id, data in site_entry["players"].items():
                points = data["points"]
                clusters = [
                    cluster_record(
                        cluster.centroid_x,
                        cluster.centroid_y,
                        cluster.positions(),
                        map_id,
                        callouts,
                        len(points),
                    )
                    for cluster in cluster_points(
                        points, CLUSTER_RADIUS, method="components", centroid="median"
                    )
                ]
                clusters.sort(key=lambda item: -item["count"])
                if clusters:
                    players.append(
                        {
                            "playerId": player_id,
                            "playerName": data["playerName"],
                            "totalPlants": len(points),
                            "clusters": clusters[:TOP_CLUSTERS],
                        }
                    )
            players.sort(key=lambda item: item["playerName"].lower())
            if players:
                by_site.append(
                    {"site": site, "totalPlants": site_entry["totalPlants"], "players": players}
                )
        by_site.sort(key=lambda item: item["site"])
        if by_site:
            by_map.append(
                {
                    "mapId": map_id,
                    "mapName": format_map_name(map_id),
                    "totalPlantsOnMap": map_entry["totalPlants"],
                    "bySite": by_site,
                }
            )
    by_map.sort(key=lambda item: item["mapName"])
    return {"teamId": team_id, "teamName": team_name(document, team_id), "byMap": by_map}


def post_plant_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
) -> Optional[AnalyzerResult]:
    callouts = callouts or default_callout_table()
    teams = [analyze_team(document, tid, callouts) for tid in selected_team_ids(document, team_id)]
    if not any(team["byMap"] for team in teams):
        return None
    return make_result(
        "postPlantAnalysis",
        "Analyzes post-plant positioning for attackers",
        {"teams": teams},
    )
