"""Habitual defending spots per player at the end of freeze time."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import (
    AnalyzerResult,
    cluster_record,
    freeze_end_snapshot,
    make_result,
    selected_team_ids,
    team_name,
    team_side,
)
from gridscout.callouts import CalloutTable, default_callout_table, format_map_name
from gridscout.clustering import Point, cluster_points

CLUSTER_RADIUS = 300
MIN_POSITIONS = 2
MIN_CLUSTER_SIZE = 2
TOP_CLUSTERS = 5


def analyze_team(
    document: Dict[str, Any], team_id: str, callouts: CalloutTable
) -> Dict[str, Any]:
    positions: Dict[str, Dict[str, Dict[str, Any]]] = {}
    for game in document.get("games") or []:
        map_id = game.get("mapId") or "unknown"
        per_player = positions.setdefault(map_id, {})
        team_players = [p for p in game.get("players") or [] if p.get("teamId") == team_id]
        for round_doc in game.get("rounds") or []:
            if team_side(round_doc, team_id) != "defender":
                continue
            snapshot = freeze_end_snapshot(round_doc)
            if snapshot is None:
                continue
            coords = {c["playerId"]: c for c in snapshot.get("playerCoordinates") or []}
            for player in team_players:
                coord = coords.get(player["id"])
                if coord is None:
                    continue
                entry = per_player.setdefault(
                    player["id"], {"playerName": player.get("name") or player["id"], "points": []}
                )
                entry["points"].append(Point(coord["x"], coord["y"]))

    by_map = []
    for map_id, per_player in positions.items():
        players: List[Dict[str, Any]] = []
        for player_id, data in per_player.items():
            points = data["points"]
            clusters = []
            if len(points) >= MIN_POSITIONS:
                clusters = [
                    cluster_record(
                        cluster.centroid_x,
                        cluster.centroid_y,
                        cluster.positions(),
                        map_id,
                        callouts,
                        len(points),
                    )
                    for cluster in cluster_points(points, CLUSTER_RADIUS)
                    if cluster.count >= MIN_CLUSTER_SIZE
                ]
                clusters.sort(key=lambda item: -item["count"])
            # Players without a cluster still carry their rounds into multi-series totals.
            players.append(
                {
                    "playerId": player_id,
                    "playerName": data["playerName"],
                    "totalRounds": len(points),
                    "clusters": clusters[:TOP_CLUSTERS],
                }
            )
        players.sort(key=lambda item: item["playerName"].lower())
        if players:
            by_map.append({"mapId": map_id, "mapName": format_map_name(map_id), "players": players})
    by_map.sort(key=lambda item: -len(item["players"]))

    return {"teamId": team_id, "teamName": team_name(document, team_id), "byMap": by_map}


def player_position_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
) -> Optional[AnalyzerResult]:
    callouts = callouts or default_callout_table()
    teams = [analyze_team(document, tid, callouts) for tid in selected_team_ids(document, team_id)]
    if not any(team["byMap"] for team in teams):
        return None
    return make_result(
        "playerPositionAnalysis",
        "Analyzes common defending positions per player",
        {"teams": teams},
    )
