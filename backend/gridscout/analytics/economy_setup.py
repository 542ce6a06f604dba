"""Setups split by economy state.

Rounds 1 and 13 open a half and are skipped. A round is a ``buy`` round when
the team won the previous round or someone on the team bought a rifle or the
Operator; everything else is ``eco``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from gridscout.analytics.common import (
    AnalyzerResult,
    FormationTally,
    first_kill_snapshot,
    freeze_end_snapshot,
    make_result,
    region_counts,
    selected_team_ids,
    team_name,
    team_player_ids,
    team_side,
)
from gridscout.callouts import CalloutTable, default_callout_table

BUY_WEAPONS = ("vandal", "phantom", "operator")
EXCLUDED_ROUNDS = {1, 13}
TOP_FORMATIONS = 10


def is_buy_round(
    round_doc: Dict[str, Any],
    previous: Optional[Dict[str, Any]],
    team_id: str,
    game: Dict[str, Any],
) -> bool:
    if previous is not None and previous.get("winnerTeamId") == team_id:
        return True
    team_players = [p for p in game.get("players") or [] if p.get("teamId") == team_id]
    ids = {p["id"] for p in team_players}
    names = {p.get("name") for p in team_players}
    for purchase in round_doc.get("purchases") or []:
        if purchase.get("playerId") not in ids and purchase.get("playerName") not in names:
            continue
        items = [str(item).lower() for item in purchase.get("items") or []]
        if any(weapon in item for item in items for weapon in BUY_WEAPONS):
            return True
    return False


def analyze_team(
    document: Dict[str, Any], team_id: str, callouts: CalloutTable
) -> Dict[str, Any]:
    tallies = {
        (side, economy): FormationTally()
        for side in ("defensive", "offensive")
        for economy in ("buy", "eco")
    }
    for game in document.get("games") or []:
        map_id = game.get("mapId") or "unknown"
        player_ids = team_player_ids(game, team_id)
        rounds = game.get("rounds") or []
        for index, round_doc in enumerate(rounds):
            if round_doc.get("roundNumber") in EXCLUDED_ROUNDS:
                continue
            previous = rounds[index - 1] if index > 0 else None
            economy = "buy" if is_buy_round(round_doc, previous, team_id, game) else "eco"
            side = team_side(round_doc, team_id)
            if side == "defender":
                key, snapshot = ("defensive", economy), freeze_end_snapshot(round_doc)
            elif side == "attacker":
                key, snapshot = ("offensive", economy), first_kill_snapshot(round_doc)
            else:
                continue
            if snapshot is None:
                continue
            regions = region_counts(snapshot, player_ids, map_id, callouts)
            if regions:
                tallies[key].add(map_id, regions)

    def section(side: str) -> Dict[str, Any]:
        return {
            economy: {
                "totalRounds": tallies[(side, economy)].total_rounds,
                "byMap": tallies[(side, economy)].by_map(limit=TOP_FORMATIONS),
            }
            for economy in ("buy", "eco")
        }

    return {
        "teamId": team_id,
        "teamName": team_name(document, team_id),
        "defensive": section("defensive"),
        "offensive": section("offensive"),
    }


def economy_setup_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
) -> Optional[AnalyzerResult]:
    callouts = callouts or default_callout_table()
    teams = [analyze_team(document, tid, callouts) for tid in selected_team_ids(document, team_id)]
    has_data = any(
        team[side][economy]["totalRounds"] > 0
        for team in teams
        for side in ("defensive", "offensive")
        for economy in ("buy", "eco")
    )
    if not has_data:
        return None
    return make_result(
        "economySetupAnalysis",
        "Analyzes setups based on economy status (buy vs eco)",
        {"teams": teams},
    )
