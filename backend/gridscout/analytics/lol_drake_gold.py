"""Unspent gold held by mid laners and ADCs when each dragon dies."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import AnalyzerResult, make_result
from gridscout.analytics.lol_common import (
    coordinate_of,
    find_player,
    is_drake,
    player_in_role,
    reference_or_default,
    side_players,
    sides,
    snapshot_at,
    team_name,
)
from gridscout.lol_reference import LolReference

HOLDING_ROLES = ("mid", "bot")


def analyze_game(
    document: Dict[str, Any], game: Dict[str, Any], reference: LolReference
) -> List[Dict[str, Any]]:
    events = game.get("events") or []
    if not events or not game.get("coordinateTracking"):
        return []

    names = sides(document, game)
    blue, red = side_players(game)
    holders = [
        (player, names[f"{side}TeamName"], role)
        for side, roster in (("blue", blue), ("red", red))
        for role in HOLDING_ROLES
        for player in [player_in_role(roster, role, reference)]
        if player is not None
    ]

    details = []
    for number, drake in enumerate((e for e in events if is_drake(e)), start=1):
        killer = find_player(game, drake.get("playerId"))
        snapshot = snapshot_at(game, drake["time"])
        players = []
        if snapshot is not None:
            for player, name, role in holders:
                coord = coordinate_of(snapshot, player["id"]) or {}
                players.append(
                    {
                        "playerName": player.get("name"),
                        "teamId": player.get("teamId"),
                        "teamName": name,
                        "role": role,
                        "champName": player.get("champName"),
                        "holdingGoldWhenDrakeDies": coord.get("gold") or 0,
                    }
                )
        details.append(
            {
                "gameId": game.get("id"),
                "drakeNumber": number,
                "drakeType": drake.get("monsterName"),
                "drakeTime": drake["time"],
                "killerTeamName": team_name(document, killer["teamId"]) if killer else "Unknown",
                "blueTeamName": names["blueTeamName"],
                "redTeamName": names["redTeamName"],
                "players": players,
            }
        )
    return details


def drake_gold_holding(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> Optional[AnalyzerResult]:
    reference = reference_or_default(reference)
    details = [
        drake for game in document.get("games") or [] for drake in analyze_game(document, game, reference)
    ]
    if not details:
        return None
    return make_result(
        "drakeGoldHolding",
        "Gold held by mid laners and ADCs when drakes are killed",
        {"totalDrakes": len(details), "drakeDetails": details},
    )
