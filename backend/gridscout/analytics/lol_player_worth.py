"""Gold earned by fifteen minutes and early recall timings."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import AnalyzerResult, make_result
from gridscout.analytics.lol_common import (
    FIFTEEN_MINUTES,
    reference_or_default,
    sides,
    team_name,
    worth_at,
)
from gridscout.lol_reference import LolReference

MIN_TIME_FOR_RECALL = 180
MIN_TIME_BETWEEN_RECALLS = 180
DEATH_WINDOW = 30


def _died_before(events: List[Dict[str, Any]], player_id: str, when: int) -> bool:
    start = when - DEATH_WINDOW
    return any(
        e["type"] == "kill" and e.get("targetId") == player_id and start <= e["time"] < when
        for e in events
    )


def early_recall_timers(events: List[Dict[str, Any]], player_id: str) -> List[int]:
    """Purchases that look like a recall rather than a respawn shop."""
    timers: List[int] = []
    last = 0
    purchases = sorted(
        (e for e in events if e["type"] == "purchase-item" and e["playerId"] == player_id),
        key=lambda e: e["time"],
    )
    for purchase in purchases:
        when = purchase["time"]
        if when < MIN_TIME_FOR_RECALL or when < last + MIN_TIME_BETWEEN_RECALLS:
            continue
        if _died_before(events, player_id, when):
            continue
        timers.append(when)
        last = when
    return timers


def analyze_game(
    document: Dict[str, Any],
    game: Dict[str, Any],
    team_id: Optional[str],
    reference: LolReference,
) -> Optional[Dict[str, Any]]:
    if not game.get("coordinateTracking") or (game.get("gameLength") or 0) < FIFTEEN_MINUTES:
        return None
    events = game.get("events") or []
    players = [
        {
            "playerId": player["id"],
            "playerName": player["name"],
            "teamId": player["teamId"],
            "teamName": team_name(document, player["teamId"]),
            "champName": player.get("champName"),
            "role": reference.role_of(player.get("name")),
            "worthAt15": worth_at(game, player["id"], FIFTEEN_MINUTES),
            "earlyRecallTimers": early_recall_timers(events, player["id"]),
        }
        for player in game.get("players") or []
        if not team_id or player.get("teamId") == team_id
    ]
    return {"gameId": game.get("id"), **sides(document, game), "players": players}


def player_worth_at_15(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> Optional[AnalyzerResult]:
    reference = reference_or_default(reference)
    games = [
        data
        for data in (
            analyze_game(document, game, team_id, reference) for game in document.get("games") or []
        )
        if data is not None
    ]
    if not games:
        return None
    return make_result(
        "playerWorthAt15",
        "Total gold earned (worth) at 15 minutes for every player",
        {"totalGames": len(games), "games": games},
    )
