"""Whether the team ahead in gold at 15 minutes goes on to win."""

from __future__ import annotations

from typing import Any, Dict, Optional

from gridscout.analytics.common import AnalyzerResult, make_result
from gridscout.analytics.lol_common import FIFTEEN_MINUTES, average, sides, snapshot_at, team_name
from gridscout.lol_reference import LolReference

# Leads under this many gold count as an even game.
EVEN_THRESHOLD = 500


def team_worth_at(game: Dict[str, Any], team_id: str, when: float) -> float:
    snapshot = snapshot_at(game, when)
    if snapshot is None:
        return 0
    roster = {p["id"] for p in game.get("players") or [] if p.get("teamId") == team_id}
    return sum(c.get("worth") or 0 for c in snapshot.get("playerCoordinates") or [] if c.get("playerId") in roster)


def analyze_game(document: Dict[str, Any], game: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if not game.get("coordinateTracking") or (game.get("gameLength") or 0) < FIFTEEN_MINUTES:
        return None
    winner = game.get("winnerTeamId")
    if not winner:
        return None

    names = sides(document, game)
    blue_worth = team_worth_at(game, names["blueTeamId"], FIFTEEN_MINUTES)
    red_worth = team_worth_at(game, names["redTeamId"], FIFTEEN_MINUTES)
    difference = blue_worth - red_worth

    if abs(difference) < EVEN_THRESHOLD:
        ahead = behind = ("", "Even")
        lead = 0
        outcome = "even_at_15"
    else:
        blue = (names["blueTeamId"], names["blueTeamName"])
        red = (names["redTeamId"], names["redTeamName"])
        ahead, behind = (blue, red) if difference > 0 else (red, blue)
        lead = abs(difference)
        outcome = "lead_held" if winner == ahead[0] else "comeback"

    return {
        "gameId": game.get("id"),
        **names,
        "winnerTeamId": winner,
        "winnerTeamName": team_name(document, winner),
        "blueTeamWorthAt15": blue_worth,
        "redTeamWorthAt15": red_worth,
        "goldDifferenceAt15": difference,
        "teamAheadAt15Id": ahead[0],
        "teamAheadAt15": ahead[1],
        "teamBehindAt15Id": behind[0],
        "teamBehindAt15": behind[1],
        "leadAmount": lead,
        "comebackOccurred": outcome == "comeback",
        "leadHeld": outcome == "lead_held",
        "outcome": outcome,
    }


def comeback_stats(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> Optional[AnalyzerResult]:
    games = [
        data
        for data in (analyze_game(document, game) for game in document.get("games") or [])
        if data is not None
    ]
    if not games:
        return None

    comebacks = [g["leadAmount"] for g in games if g["outcome"] == "comeback"]
    held = [g["leadAmount"] for g in games if g["outcome"] == "lead_held"]
    decided = len(comebacks) + len(held)
    return make_result(
        "comebackStats",
        "Tracks comebacks from gold deficits and ability to hold leads at 15 minutes",
        {
            "totalGames": len(games),
            "totalComebacks": len(comebacks),
            "totalLeadsHeld": len(held),
            "totalEvenAt15": len(games) - decided,
            "comebackRate": (len(comebacks) / decided) * 100 if decided else 0,
            "leadHoldRate": (len(held) / decided) * 100 if decided else 0,
            "avgComebackDeficit": average(comebacks),
            "avgLeadWhenHeld": average(held),
            "games": games,
        },
    )
