"""Per-team map veto sequences for one series."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import AnalyzerResult, frequencies, make_result, selected_team_ids, team_name
from gridscout.callouts import format_map_name


def _map_frequencies(map_ids: List[str], total: int) -> List[Dict[str, Any]]:
    return [
        {"mapId": map_id, "mapName": format_map_name(map_id), "count": count, "percentage": pct}
        for map_id, count, pct in frequencies(map_ids, total)
    ]


def _single(action: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if action is None:
        return []
    return [
        {
            "mapId": action["mapId"],
            "mapName": format_map_name(action["mapId"]),
            "count": 1,
            "percentage": 100.0,
        }
    ]


def veto_sequence(team_id: str, name: str, veto: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Split one team's veto actions into ban phases, picks and the decider."""
    first_pick = next((i for i, action in enumerate(veto) if action["action"] == "pick"), None)
    our_first_pick = next(
        (i for i, a in enumerate(veto) if a["action"] == "pick" and a.get("teamId") == team_id),
        None,
    )
    our_first_ban = next(
        (i for i, a in enumerate(veto) if a["action"] == "ban" and a.get("teamId") == team_id),
        None,
    )

    ban_phase1: List[Dict[str, Any]] = []
    ban_phase2: List[Dict[str, Any]] = []
    picks: List[Dict[str, Any]] = []
    for index, action in enumerate(veto):
        if action.get("teamId") != team_id:
            continue
        if action["action"] == "pick":
            picks.append(action)
        elif action["action"] == "ban":
            if first_pick is None or index < first_pick:
                ban_phase1.append(action)
            else:
                ban_phase2.append(action)

    if our_first_pick is None:
        bans_before_pick = [a["mapId"] for a in veto if a["action"] == "ban"]
    else:
        bans_before_pick = [a["mapId"] for a in veto[:our_first_pick] if a["action"] == "ban"]

    # Opponent bans up to the end of the ban phase holding our first ban, not
    # only those sequenced before it. This also removes bans the opponent made
    # after ours from the report's ban1 availability; see "Open question
    # decisions" in DESIGN.md.
    opponent_bans: List[str] = []
    if our_first_ban is not None:
        phase_end = next(
            (i for i in range(our_first_ban, len(veto)) if veto[i]["action"] == "pick"),
            len(veto),
        )
        opponent_bans = [
            a["mapId"]
            for a in veto[:phase_end]
            if a["action"] == "ban" and a.get("teamId") != team_id
        ]

    decider = next((a["mapId"] for a in veto if a["action"] == "decider"), None)
    return {
        "teamId": team_id,
        "teamName": name,
        "banPhase1Actions": ban_phase1,
        "pickActions": picks,
        "banPhase2Actions": ban_phase2,
        "deciderMap": decider,
        "allBansBeforeOurPick": bans_before_pick,
        "opponentBansBeforeOurFirstBan": opponent_bans,
    }


def analyze_team(document: Dict[str, Any], team_id: str) -> Dict[str, Any]:
    name = team_name(document, team_id)
    sequence = veto_sequence(team_id, name, document.get("mapVeto") or [])
    bans1 = sequence["banPhase1Actions"]
    picks = sequence["pickActions"]
    bans2 = [a["mapId"] for a in sequence["banPhase2Actions"]]
    return {
        "teamId": team_id,
        "teamName": name,
        "totalSeries": 1,
        "banPhase1Patterns": {
            "ban1": _single(bans1[0] if bans1 else None),
            "ban2": _single(bans1[1] if len(bans1) > 1 else None),
            "allBans": _map_frequencies([a["mapId"] for a in bans1], 1),
        },
        "pickPatterns": {
            "pick1": _single(picks[0] if picks else None),
            "pick2": _single(picks[1] if len(picks) > 1 else None),
            "allPicks": _map_frequencies([a["mapId"] for a in picks], 1),
        },
        "banPhase2Patterns": {"allBans": _map_frequencies(bans2, 1)} if bans2 else None,
        "vetoSequences": [sequence],
    }


def map_veto_analysis(
    document: Dict[str, Any], team_id: Optional[str] = None, callouts: Any = None
) -> Optional[AnalyzerResult]:
    if len(document.get("teams") or []) < 2 or not document.get("mapVeto"):
        return None
    teams = [analyze_team(document, tid) for tid in selected_team_ids(document, team_id)]
    return make_result(
        "mapVetoAnalysis",
        "Analysis of map veto patterns including bans and picks",
        {"totalMaps": len(document.get("games") or []), "teams": teams},
    )
