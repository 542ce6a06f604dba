"""Per-game champion draft breakdown for League of Legends series."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import AnalyzerResult, make_result
from gridscout.analytics.lol_common import sides, team_name
from gridscout.lol_reference import LolReference


def analyze_game(
    document: Dict[str, Any], game: Dict[str, Any], game_number: int
) -> Optional[Dict[str, Any]]:
    actions: List[Dict[str, Any]] = game.get("draftingActions") or []
    if not actions:
        return None
    teams = sides(document, game)
    by_side: Dict[str, Dict[str, List[str]]] = {
        "blue": {"ban": [], "pick": []},
        "red": {"ban": [], "pick": []},
    }
    for action in actions:
        side = "blue" if action["teamId"] == teams["blueTeamId"] else "red"
        by_side[side][action["action"]].append(action["champName"])

    first_team = actions[0]["teamId"]
    return {
        "gameId": game.get("id"),
        "gameNumber": game_number,
        **teams,
        "firstPickTeamId": first_team,
        "firstPickTeamName": team_name(document, first_team),
        "draftingActions": [
            {**action, "teamName": team_name(document, action["teamId"])} for action in actions
        ],
        "blueBans": by_side["blue"]["ban"],
        "bluePicks": by_side["blue"]["pick"],
        "redBans": by_side["red"]["ban"],
        "redPicks": by_side["red"]["pick"],
    }


def draft_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> Optional[AnalyzerResult]:
    games = []
    for number, game in enumerate(document.get("games") or [], start=1):
        data = analyze_game(document, game, number)
        if data is not None:
            games.append(data)
    if not games:
        return None
    return make_result(
        "draftAnalysis",
        "Analyzes the draft phase including bans and picks for all games in the series",
        {"totalGames": len(games), "games": games},
    )
