"""Agent pick rates per team, overall, per map and per player."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import AnalyzerResult, make_result, selected_team_ids, team_name
from gridscout.callouts import format_map_name

STAT_FIELDS = (
    "kills",
    "deaths",
    "attackerKills",
    "attackerDeaths",
    "defenderKills",
    "defenderDeaths",
)


def agent_frequencies(picks: List[Dict[str, Any]], total_games: int) -> List[Dict[str, Any]]:
    """Count picks per agent; ``picks`` carry agentId, agentName and isWin."""
    counts: Dict[str, Dict[str, Any]] = {}
    for pick in picks:
        entry = counts.setdefault(
            pick["agentId"],
            {"agentId": pick["agentId"], "agentName": pick["agentName"], "count": 0, "wins": 0},
        )
        entry["count"] += 1
        if pick.get("isWin"):
            entry["wins"] += 1
    rows = [
        {
            **entry,
            "totalGames": total_games,
            "percentage": (entry["count"] / total_games) * 100 if total_games > 0 else 0,
            "winPercentage": (entry["wins"] / entry["count"]) * 100 if entry["count"] else 0,
        }
        for entry in counts.values()
    ]
    rows.sort(key=lambda row: -row["count"])
    return rows


def _agent_name(player: Dict[str, Any]) -> str:
    agent_id = player.get("characterId") or "unknown"
    return player.get("characterName") or agent_id[:1].upper() + agent_id[1:]


def analyze_team(document: Dict[str, Any], team_id: str) -> Dict[str, Any]:
    games = document.get("games") or []
    all_picks: List[Dict[str, Any]] = []
    by_map: Dict[str, List[Dict[str, Any]]] = {}
    games_by_map: Dict[str, int] = {}
    by_player: Dict[str, Dict[str, Any]] = {}
    game_details: List[Dict[str, Any]] = []
    wins = 0

    for game in games:
        map_id = game.get("mapId") or "unknown"
        games_by_map[map_id] = games_by_map.get(map_id, 0) + 1
        by_map.setdefault(map_id, [])
        is_win = bool(team_id) and game.get("winnerTeamId") == team_id
        wins += int(is_win)

        player_stats = []
        for player in game.get("players") or []:
            if player.get("teamId") != team_id:
                continue
            pick = {
                "agentId": player.get("characterId") or "unknown",
                "agentName": _agent_name(player),
                "isWin": is_win,
            }
            all_picks.append(pick)
            by_map[map_id].append(pick)
            entry = by_player.setdefault(
                player["id"], {"playerName": player.get("name") or player["id"], "picks": []}
            )
            entry["picks"].append(pick)

            stats = player.get("stats") or {}
            player_stats.append(
                {
                    "playerId": player["id"],
                    "playerName": player.get("name") or player["id"],
                    "agentId": pick["agentId"],
                    "agentName": pick["agentName"],
                    **{name: stats.get(name, 0) for name in STAT_FIELDS},
                }
            )

        game_details.append(
            {
                "gameNumber": game.get("gameNumber"),
                "mapId": map_id,
                "winnerTeamId": game.get("winnerTeamId"),
                "isWin": is_win,
                "playerStats": player_stats,
            }
        )

    total = len(games)
    picks_by_map = [
        {
            "mapId": map_id,
            "mapName": format_map_name(map_id),
            "gamesPlayed": games_by_map[map_id],
            "agentPicks": agent_frequencies(picks, games_by_map[map_id]),
        }
        for map_id, picks in by_map.items()
    ]
    picks_by_map.sort(key=lambda item: -item["gamesPlayed"])

    preferences = [
        {
            "playerId": player_id,
            "playerName": data["playerName"],
            "gamesPlayed": len(data["picks"]),
            "wins": sum(1 for pick in data["picks"] if pick["isWin"]),
            "agentPicks": agent_frequencies(data["picks"], len(data["picks"])),
        }
        for player_id, data in by_player.items()
    ]
    preferences.sort(key=lambda item: item["playerName"].lower())

    return {
        "teamId": team_id,
        "teamName": team_name(document, team_id),
        "totalMapsPlayed": total,
        "wins": wins,
        "winPercentage": (wins / total) * 100 if total else 0,
        "overallAgentPicks": agent_frequencies(all_picks, total),
        "agentPicksByMap": picks_by_map,
        "playerAgentPreferences": preferences,
        "gameDetails": game_details,
    }


def agent_pick_analysis(
    document: Dict[str, Any], team_id: Optional[str] = None, callouts: Any = None
) -> Optional[AnalyzerResult]:
    if len(document.get("teams") or []) < 2 or not document.get("games"):
        return None
    teams = [analyze_team(document, tid) for tid in selected_team_ids(document, team_id)]
    return make_result(
        "agentPickAnalysis",
        "Analysis of agent pick patterns per team, overall and by map",
        {"totalGames": len(document["games"]), "teams": teams},
    )
