"""Where players throw their setup utility around the start of a round.

Only the first use of each ability per round counts, and only uses up to five
seconds after freeze time ends. Clusters are keyed by ability and agent so two
different abilities thrown from the same spot never merge.
"""

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
from gridscout.callouts import CalloutTable, default_callout_table, format_map_name
from gridscout.clustering import Point, cluster_points

CLUSTER_RADIUS = 300
ABILITY_WINDOW_MS = 5000
MIN_USAGES = 2
MIN_CLUSTER_SIZE = 2
TOP_CLUSTERS = 10

SIDE_SECTIONS = {"defender": "defensive", "attacker": "offensive"}


def early_usages(round_doc: Dict[str, Any], player_id: str, agent_name: str) -> List[Point]:
    freeze_end = to_ms(round_doc.get("freezetimeEndedAt"))
    if freeze_end is None:
        return []
    window_end = freeze_end + ABILITY_WINDOW_MS
    seen = set()
    points = []
    for usage in round_doc.get("abilityUsages") or []:
        if usage.get("playerId") != player_id:
            continue
        when = to_ms(usage.get("occurredAt"))
        if when is None or when > window_end or usage.get("abilityId") in seen:
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


def _section(
    document: Dict[str, Any], team_id: str, side: str, callouts: CalloutTable
) -> List[Dict[str, Any]]:
    usage: Dict[str, Dict[str, Dict[str, Any]]] = {}
    for game in document.get("games") or []:
        map_id = game.get("mapId") or "unknown"
        per_player = usage.setdefault(map_id, {})
        team_players = [p for p in game.get("players") or [] if p.get("teamId") == team_id]
        for round_doc in game.get("rounds") or []:
            if team_side(round_doc, team_id) != side:
                continue
            for player in team_players:
                agent_name = player.get("characterId") or "Unknown"
                entry = per_player.setdefault(
                    player["id"],
                    {"playerName": player.get("name") or player["id"], "totalRounds": 0, "points": []},
                )
                entry["totalRounds"] += 1
                entry["points"].extend(early_usages(round_doc, player["id"], agent_name))

    by_map = []
    for map_id, per_player in usage.items():
        players = []
        for player_id, data in per_player.items():
            clusters = []
            usages = data["points"] if len(data["points"]) >= MIN_USAGES else []
            for cluster in cluster_points(usages, CLUSTER_RADIUS, use_key=True):
                if cluster.count < MIN_CLUSTER_SIZE:
                    continue
                record = cluster_record(
                    cluster.centroid_x,
                    cluster.centroid_y,
                    cluster.positions(),
                    map_id,
                    callouts,
                    data["totalRounds"],
                )
                record.update(cluster.members[0].payload)
                clusters.append(record)
            clusters.sort(key=lambda item: -item["count"])
            players.append(
                {
                    "playerId": player_id,
                    "playerName": data["playerName"],
                    "totalRounds": data["totalRounds"],
                    "clusters": clusters[:TOP_CLUSTERS],
                }
            )
        players.sort(key=lambda item: item["playerName"].lower())
        if players:
            by_map.append({"mapId": map_id, "mapName": format_map_name(map_id), "players": players})
    by_map.sort(key=lambda item: item["mapName"])
    return by_map


def analyze_team(
    document: Dict[str, Any], team_id: str, callouts: CalloutTable
) -> Dict[str, Any]:
    result: Dict[str, Any] = {"teamId": team_id, "teamName": team_name(document, team_id)}
    for side, section in SIDE_SECTIONS.items():
        result[section] = _section(document, team_id, side, callouts)
    return result


def ability_usage_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
) -> Optional[AnalyzerResult]:
    callouts = callouts or default_callout_table()
    teams = [analyze_team(document, tid, callouts) for tid in selected_team_ids(document, team_id)]
    if not any(team["defensive"] or team["offensive"] for team in teams):
        return None
    return make_result(
        "abilityUsageAnalysis",
        "Analyzes common ability usage positions at round start",
        {"teams": teams},
    )
