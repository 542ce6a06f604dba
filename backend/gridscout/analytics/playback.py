"""Raw per-round data for synchronized replay, split by map and side."""

from __future__ import annotations

from typing import Any, Dict, Optional

from gridscout.analytics.common import (
    AnalyzerResult,
    make_result,
    selected_team_ids,
    team_name,
    team_side,
    to_ms,
)
from gridscout.callouts import CalloutTable, default_callout_table


def _round_payload(
    document: Dict[str, Any], game: Dict[str, Any], round_doc: Dict[str, Any], team_id: str, side: str
) -> Optional[Dict[str, Any]]:
    tracking = [
        {"time": snapshot["time"], "playerCoordinates": snapshot["playerCoordinates"]}
        for snapshot in round_doc.get("coordinateTracking") or []
        if snapshot.get("playerCoordinates")
    ]
    if not tracking:
        return None
    players = [
        {
            "playerId": player["id"],
            "playerName": player.get("name") or player["id"],
            "teamId": player.get("teamId"),
            "teamName": team_name(document, player.get("teamId") or ""),
            "agentId": player.get("characterId") or "",
            "side": team_side(round_doc, player.get("teamId") or "") or "attacker",
        }
        for player in game.get("players") or []
    ]
    plant = (round_doc.get("bombPlant") or {}).get("occurredAt")
    return {
        "roundId": f"{document.get('seriesId', '')}-{game.get('gameNumber')}-{round_doc.get('roundNumber')}",
        "gameNumber": game.get("gameNumber"),
        "roundNumber": round_doc.get("roundNumber"),
        "mapId": game.get("mapId") or "unknown",
        "ourSide": side,
        "isWin": round_doc.get("winnerTeamId") == team_id,
        "players": players,
        "coordinateTracking": tracking,
        "kills": [
            {"killerId": k.get("killerId"), "victimId": k.get("victimId"), "occurredAt": k.get("occurredAt")}
            for k in round_doc.get("kills") or []
        ],
        "freezetimeEndedAt": round_doc.get("freezetimeEndedAt"),
        "roundStartTime": tracking[0]["time"],
        "roundEndTime": tracking[-1]["time"],
        "bombPlantTime": to_ms(plant),
    }


def analyze_team(
    document: Dict[str, Any], team_id: str, callouts: CalloutTable
) -> Dict[str, Any]:
    by_map: Dict[str, Dict[str, Any]] = {}
    for game in document.get("games") or []:
        map_id = game.get("mapId") or "unknown"
        entry = by_map.setdefault(
            map_id,
            {"mapId": map_id, "bounds": callouts.bounds(map_id), "attacker": [], "defender": []},
        )
        for round_doc in game.get("rounds") or []:
            side = team_side(round_doc, team_id)
            if side not in ("attacker", "defender"):
                continue
            payload = _round_payload(document, game, round_doc, team_id, side)
            if payload is not None:
                entry[side].append(payload)
    return {
        "teamId": team_id,
        "teamName": team_name(document, team_id),
        "byMap": list(by_map.values()),
    }


def playback_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
) -> Optional[AnalyzerResult]:
    if len(document.get("teams") or []) < 2 or not document.get("games"):
        return None
    callouts = callouts or default_callout_table()
    teams = [analyze_team(document, tid, callouts) for tid in selected_team_ids(document, team_id)]
    has_data = any(m["attacker"] or m["defender"] for team in teams for m in team["byMap"])
    if not has_data:
        return None
    return make_result("playbackAnalysis", "Raw round data for synchronized playback", {"teams": teams})
