"""Utility thrown around the plant, per plant site."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import (
    AnalyzerResult,
    cluster_record,
    make_result,
    selected_team_ids,
    team_name,
    team_side,
    to_ms,
)
from gridscout.analytics.post_plant import plant_site
from gridscout.callouts import CalloutTable, default_callout_table, format_map_name
from gridscout.clustering import Point, cluster_points

CLUSTER_RADIUS = 300
BEFORE_PLANT_MS = 5000
AFTER_PLANT_MS = 15000
MIN_CLUSTER_SIZE = 2
TOP_CLUSTERS = 10


def plant_window_usages(round_doc: Dict[str, Any], player_id: str, agent_name: str) -> List[Point]:
    plant_time = to_ms((round_doc.get("bombPlant") or {}).get("occurredAt"))
    if plant_time is None:
        return []
    start, end = plant_time - BEFORE_PLANT_MS, plant_time + AFTER_PLANT_MS
    seen = set()
    points = []
    for usage in round_doc.get("abilityUsages") or []:
        if usage.get("playerId") != player_id:
            continue
        when = to_ms(usage.get("occurredAt"))
        if when is None or not start <= when <= end or usage.get("abilityId") in seen:
            continue
        position = usage.get("position")
        if not position or (position.get("x") == 0 and position.get("y") == 0):
            continue
        seen.add(usage["abilityId"])
        points.append(
            Point(
                position["x"],
                position["y"],
                key=f"{usage['abilityId']}|{agent_name}",
                payload={"abilityId": usage["abilityId"], "agentName": agent_name},
            )
        )
    return points


def _players(site_entry: Dict[str, Any], map_id: str, callouts: CalloutTable) -> List[Dict[str, Any]]:
    players = []
    for player_id, data in site_entry["players"].items():
        if not data["points"]:
            continue
        clusters = []
        for cluster in cluster_points(data["points"], CLUSTER_RADIUS, use_key=True):
            if cluster.count < MIN_CLUSTER_SIZE:
                continue
            record = cluster_record(
                cluster.centroid_x,
                cluster.centroid_y,
                cluster.positions(),
                map_id,
                callouts,
                data["totalPlants"],
            )
            record.update(cluster.members[0].payload)
            clusters.append(record)
        clusters.sort(key=lambda item: -item["count"])
        if clusters:
            players.append(
                {
                    "playerId": player_id,
                    "playerName": data["playerName"],
                    "totalPlants": data["totalPlants"],
                    "clusters": clusters[:TOP_CLUSTERS],
                }
            )
    players.sort(key=lambda item: item["playerName"].lower())
    return players


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
            for player in team_players:
                data = site_entry["players"].setdefault(
                    player["id"],
                    {"playerName": player.get("name") or player["id"], "totalPlants": 0, "points": []},
                )
                data["totalPlants"] += 1
                data["points"].extend(
                    plant_window_usages(round_doc, player["id"], player.get("characterId") or "Unknown")
                )

    by_map = []
    for map_id, map_entry in maps.items():
        by_site = []
        for site, site_entry in map_entry["bySite"].items():
            players = _players(site_entry, map_id, callouts)
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
                    "totalPlants": map_entry["totalPlants"],
                    "bySite": by_site,
                }
            )
    by_map.sort(key=lambda item: item["mapName"])
    return {"teamId": team_id, "teamName": team_name(document, team_id), "byMap": by_map}


def post_plant_ability_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
) -> Optional[AnalyzerResult]:
    callouts = callouts or default_callout_table()
    teams = [analyze_team(document, tid, callouts) for tid in selected_team_ids(document, team_id)]
    if not any(team["byMap"] for team in teams):
        return None
    return make_result(
        "postPlantAbilityAnalysis",
        "Analyzes ability usage around bomb plant time",
        {"teams": teams},
    )
