"""Ban phase habits: bans by position, reactions to enemy bans, priority bans.

The first ban phase is the first six bans of the draft, three per team. The
team acting first in the draft holds first pick.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import AnalyzerResult, frequencies, make_result, selected_team_ids
from gridscout.analytics.lol_common import team_name
from gridscout.lol_reference import LolReference

FIRST_PHASE_BANS = 6
BANS_PER_TEAM = 3
MIN_REACTION_SAMPLE = 2
TOP_REACTIONS = 5


def _champion_frequencies(champions: List[str], total: int) -> List[Dict[str, Any]]:
    return [
        {"champion": champion, "count": count, "percentage": pct}
        for champion, count, pct in frequencies(champions, total)
    ]


def ban_sequence(
    actions: List[Dict[str, Any]], team_id: str, game_number: int, unavailable: List[str]
) -> Optional[Dict[str, Any]]:
    if not actions:
        return None
    is_first_pick = actions[0]["teamId"] == team_id
    bans = [a for a in actions if a["action"] == "ban"]
    picks = [a for a in actions if a["action"] == "pick"]

    first_phase = bans[:FIRST_PHASE_BANS]
    our_bans = [a["champName"] for a in first_phase if a["teamId"] == team_id]
    enemy_bans = [a["champName"] for a in first_phase if a["teamId"] != team_id]
    if len(our_bans) < BANS_PER_TEAM or len(enemy_bans) < BANS_PER_TEAM:
        return None

    our_first_picks: List[str] = []
    enemy_first_pick = None
    if is_first_pick:
        if picks and picks[0]["teamId"] == team_id:
            our_first_picks.append(picks[0]["champName"])
    else:
        if picks and picks[0]["teamId"] != team_id:
            enemy_first_pick = picks[0]["champName"]
        our_first_picks = [p["champName"] for p in picks[1:3] if p["teamId"] == team_id]

    our_picks = [p["champName"] for p in picks if p["teamId"] == team_id]
    our_all_bans = [b["champName"] for b in bans if b["teamId"] == team_id]
    return {
        "gameNumber": game_number,
        "isFirstPick": is_first_pick,
        "ourBans": our_bans,
        "enemyBans": enemy_bans,
        "ourFirstPicks": our_first_picks,
        "allBans": our_bans + enemy_bans,
        "enemyFirstPick": enemy_first_pick,
        "unavailableChamps": unavailable,
        "ourPicksBeforeSecondBan": our_picks[:3],
        "ourSecondPhaseBans": our_all_bans[3:5],
    }


def conditional_bans(
    sequences: List[Dict[str, Any]], enemy_position: int, our_position: int
) -> List[Dict[str, Any]]:
    reactions: Dict[str, List[str]] = {}
    for seq in sequences:
        if len(seq["enemyBans"]) > enemy_position and len(seq["ourBans"]) > our_position:
            reactions.setdefault(seq["enemyBans"][enemy_position], []).append(
                seq["ourBans"][our_position]
            )
    result = [
        {
            "ifEnemyBans": enemy_ban,
            "thenWeBan": _champion_frequencies(ours, len(ours))[:TOP_REACTIONS],
            "sampleSize": len(ours),
        }
        for enemy_ban, ours in reactions.items()
        if len(ours) >= MIN_REACTION_SAMPLE
    ]
    result.sort(key=lambda item: -item["sampleSize"])
    return result


def _position_stats(sequences: List[Dict[str, Any]], prefix: str) -> Dict[str, Any]:
    return {
        f"{prefix}Ban{index + 1}": _champion_frequencies(
            [s["ourBans"][index] for s in sequences if len(s["ourBans"]) > index], len(sequences)
        )
        for index in range(BANS_PER_TEAM)
    }


def analyze_team(document: Dict[str, Any], team_id: str) -> Optional[Dict[str, Any]]:
    sequences = []
    previous_picks: List[str] = []
    for number, game in enumerate(document.get("games") or [], start=1):
        actions = game.get("draftingActions") or []
        sequence = ban_sequence(actions, team_id, number, list(previous_picks))
        if sequence is not None:
            sequences.append(sequence)
        previous_picks.extend(a["champName"] for a in actions if a["action"] == "pick")
    if not sequences:
        return None

    first = [s for s in sequences if s["isFirstPick"]]
    second = [s for s in sequences if not s["isFirstPick"]]
    return {
        "teamId": team_id,
        "teamName": team_name(document, team_id),
        "totalGames": len(sequences),
        "banSequences": sequences,
        "banPositionStats": {**_position_stats(first, "firstPick"), **_position_stats(second, "secondPick")},
        # First pick reacts to the enemy's ban one slot later; second pick in the same slot.
        "adaptiveBanStats": {
            "reactionsToEnemyFirstBan": conditional_bans(first, 0, 1) + conditional_bans(second, 0, 0),
            "reactionsToEnemySecondBan": conditional_bans(first, 1, 2) + conditional_bans(second, 1, 1),
        },
        "mostCommonFirstBans": _champion_frequencies([s["ourBans"][0] for s in sequences], len(sequences)),
        "priorityBans": _champion_frequencies(
            [ban for s in sequences for ban in s["ourBans"]], len(sequences)
        ),
    }


def ban_phase_analysis(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> Optional[AnalyzerResult]:
    if len(document.get("teams") or []) < 2 and not team_id:
        return None
    teams = [
        result
        for result in (analyze_team(document, tid) for tid in selected_team_ids(document, team_id))
        if result is not None
    ]
    if not teams:
        return None
    return make_result(
        "banPhaseAnalysis",
        "Analyzes ban phase patterns, sequences, and adaptive banning strategies",
        {"teams": teams},
    )
