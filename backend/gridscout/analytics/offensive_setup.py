"""Attacking formations at the moment of the first kill."""

from __future__ import annotations

from typing import Any, Dict, Optional

from gridscout.analytics.common import (
    AnalyzerResult,
    FormationTally,
    first_kill_snapshot,
    make_result,
    region_counts,
    selected_team_ids,
    team_name,
    team_player_ids,
    team_side,
)
from gridscout.callouts import CalloutTable, default_callout_table


def analyze_team(
    document: Dict[str, Any], team_id: str, callouts: CalloutTable
) -> Dict[str, Any]:
    tally = FormationTally()
    for game in document.get("games") or []:
        map_id = game.get("mapId") or "unknown"
        tally.touch(map_id)
        player_ids = team_player_ids(game, team_id)
        for round_doc in game.get("rounds") or []:
            if team_side(round_doc, team_id) != "attacker":
                continue
            snapshot = first_kill_snapshot(round_doc)
            if snapshot is None:
                continue
            regions = region_counts(snapshot, player_ids, map_id, callouts)
            if regions:
                tally.add(map_id, regions)

    return {
        "teamId": team_id,
        "teamName": team_name(document, team_id),
        "totalOffensiveRounds": tally.total_rounds,
        "byMap": tally.by_map(),
    }


def offensive_setup_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
) -> Optional[AnalyzerResult]:
    callouts = callouts or default_callout_table()
    teams = [analyze_team(document, tid, callouts) for tid in selected_team_ids(document, team_id)]
    if not any(team["totalOffensiveRounds"] > 0 for team in teams):
        return None
    return make_result(
        "offensiveSetupAnalysis",
        "Analyzes offensive positioning at first kill",
        {"teams": teams},
    )
