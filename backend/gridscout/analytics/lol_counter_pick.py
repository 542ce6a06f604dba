"""Gold difference at 15 minutes for top and mid laners by draft order.

A laner counter picked when their champion was locked in after their lane
opponent's.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import AnalyzerResult, make_result
from gridscout.analytics.lol_common import (
    FIFTEEN_MINUTES,
    UNKNOWN_PICK,
    average,
    pick_order,
    reference_or_default,
    team_name,
    worth_at,
)
from gridscout.lol_reference import LolReference

LANES = {"top": "topLane", "mid": "midLane"}


def analyze_game(
    document: Dict[str, Any], game: Dict[str, Any], reference: LolReference
) -> List[Dict[str, Any]]:
    actions = game.get("draftingActions") or []
    if not game.get("coordinateTracking") or not actions:
        return []
    if (game.get("gameLength") or 0) < FIFTEEN_MINUTES:
        return []

    players = game.get("players") or []
    rows = []
    for player in players:
        role = reference.role_of(player.get("name"))
        if role not in LANES:
            continue
        opponent = next(
            (
                p
                for p in players
                if p.get("teamId") != player.get("teamId") and reference.role_of(p.get("name")) == role
            ),
            None,
        )
        if opponent is None:
            continue
        ours = pick_order(player.get("champName"), actions)
        theirs = pick_order(opponent.get("champName"), actions)
        if UNKNOWN_PICK in (ours, theirs):
            continue

        worth = worth_at(game, player["id"], FIFTEEN_MINUTES)
        enemy_worth = worth_at(game, opponent["id"], FIFTEEN_MINUTES)
        rows.append(
            {
                "playerName": player.get("name"),
                "teamId": player.get("teamId"),
                "teamName": team_name(document, player.get("teamId") or ""),
                "champName": player.get("champName"),
                "role": role,
                "wasCounterPick": ours > theirs,
                "worthAt15": worth,
                "enemyWorthAt15": enemy_worth,
                "worthDiff": worth - enemy_worth,
                "gameId": game.get("id"),
            }
        )
    return rows


def _lane_summary(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    picking = [row for row in rows if row["wasCounterPick"]]
    picked = [row for row in rows if not row["wasCounterPick"]]
    return {
        "counterPickGames": picking,
        "counterPickedGames": picked,
        "avgWorthDiffWhenCounterPicking": average([row["worthDiff"] for row in picking]),
        "avgWorthDiffWhenCounterPicked": average([row["worthDiff"] for row in picked]),
    }


def counter_pick_gold_diff(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> Optional[AnalyzerResult]:
    reference = reference_or_default(reference)
    rows = [
        row
        for game in document.get("games") or []
        for row in analyze_game(document, game, reference)
        if not team_id or row["teamId"] == team_id
    ]
    if not rows:
        return None
    return make_result(
        "counterPickGoldDiff",
        "Total gold earned (worth) difference at 15 minutes for top/mid laners based on counter pick status",
        {lane: _lane_summary([row for row in rows if row["role"] == role]) for role, lane in LANES.items()},
    )
