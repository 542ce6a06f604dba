"""Champion class and result for every top, jungle and support pick."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from gridscout.analytics.common import AnalyzerResult, make_result
from gridscout.analytics.lol_common import reference_or_default, team_name
from gridscout.lol_reference import LolReference

logger = logging.getLogger(__name__)

CLASS_ROLES = ("top", "jungle", "support")


def analyze_game(
    document: Dict[str, Any], game: Dict[str, Any], reference: LolReference
) -> List[Dict[str, Any]]:
    winner = game.get("winnerTeamId")
    if not winner:
        return []
    blue_id = game.get("blueSideTeamId")
    teams = document.get("teams") or []
    if not any(t.get("id") == blue_id for t in teams) or not any(t.get("id") != blue_id for t in teams):
        logger.debug(f"Game {game.get('id')} is missing a side's team; skipping class win rate")
        return []

    rows = []
    for player in game.get("players") or []:
        role = reference.role_of(player.get("name"))
        if role not in CLASS_ROLES:
            continue
        champion = reference.champion_class(player.get("champName"))
        if champion is None:
            logger.debug(f"No class data for champion {player.get('champName')}")
            continue
        rows.append(
            {
                "gameId": game.get("id"),
                "role": role,
                "teamId": player.get("teamId"),
                "teamName": team_name(document, player.get("teamId") or ""),
                "playerName": player.get("name"),
                "championName": player.get("champName"),
                "classes": champion["classes"],
                "hasHardCC": champion["hasHardCC"],
                "won": player.get("teamId") == winner,
            }
        )
    return rows


def class_win_rate(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> AnalyzerResult:
    reference = reference_or_default(reference)
    rows = [
        row
        for game in document.get("games") or []
        for row in analyze_game(document, game, reference)
        if not team_id or row["teamId"] == team_id
    ]
    # Always reported, so a stored series shows the class pass already ran.
    return make_result(
        "classWinRate",
        "Analyzes win rates based on champion class for top, jungle, and support roles",
        {"games": rows},
    )
