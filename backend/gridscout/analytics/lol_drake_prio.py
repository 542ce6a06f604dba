"""Bot lane priority at the first dragon and who took it.

Priority goes to the bot laner with the higher level when the drake dies; at
equal level, to whoever reached that level first.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from gridscout.analytics.common import AnalyzerResult, make_result
from gridscout.analytics.lol_common import (
    UNKNOWN_PICK,
    find_player,
    is_drake,
    pick_order,
    player_in_role,
    reference_or_default,
    side_players,
    sides,
    team_name,
)
from gridscout.lol_reference import LolReference


def level_at(events: List[Dict[str, Any]], player_id: str, when: float) -> Tuple[int, float]:
    """(level, time that level was reached) at ``when``."""
    level, reached = 1, 0
    ups = sorted(
        (e for e in events if e.get("type") == "level-up" and e.get("playerId") == player_id),
        key=lambda e: e["time"],
    )
    for event in ups:
        if event["time"] > when:
            break
        level, reached = event.get("newLevel") or level, event["time"]
    return level, reached


def priority(blue: Tuple[int, float], red: Tuple[int, float]) -> str:
    if blue[0] != red[0]:
        return "blue" if blue[0] > red[0] else "red"
    if blue[1] != red[1]:
        return "blue" if blue[1] < red[1] else "red"
    return "even"


def counter_pick_team(
    blue: Optional[Dict[str, Any]],
    red: Optional[Dict[str, Any]],
    actions: List[Dict[str, Any]],
    names: Dict[str, str],
) -> Optional[str]:
    """Name of the team that picked this role later, if the draft shows it."""
    if blue is None or red is None or not actions:
        return None
    blue_order = pick_order(blue.get("champName"), actions)
    red_order = pick_order(red.get("champName"), actions)
    if UNKNOWN_PICK in (blue_order, red_order) or blue_order == red_order:
        return None
    return names["blueTeamName"] if blue_order > red_order else names["redTeamName"]


def analyze_game(
    document: Dict[str, Any], game: Dict[str, Any], reference: LolReference
) -> Optional[Dict[str, Any]]:
    events = game.get("events") or []
    drake = next((e for e in events if is_drake(e)), None)
    if drake is None:
        return None

    blue, red = side_players(game)
    blue_bot = player_in_role(blue, "bot", reference)
    red_bot = player_in_role(red, "bot", reference)
    if blue_bot is None or red_bot is None:
        return None
    killer = find_player(game, drake.get("playerId"))
    if killer is None:
        return None

    names = sides(document, game)
    blue_level = level_at(events, blue_bot["id"], drake["time"])
    red_level = level_at(events, red_bot["id"], drake["time"])
    with_prio = priority(blue_level, red_level)
    killer_side = "blue" if killer["teamId"] == names["blueTeamId"] else "red"
    actions = game.get("draftingActions") or []

    return {
        "gameId": game.get("id"),
        "drakeType": drake.get("monsterName"),
        "drakeTime": drake["time"],
        "killerTeamId": killer["teamId"],
        "killerTeamName": team_name(document, killer["teamId"]),
        **names,
        "blueBotPlayer": blue_bot.get("name"),
        "redBotPlayer": red_bot.get("name"),
        "blueBotLevelAtDrake": blue_level[0],
        "redBotLevelAtDrake": red_level[0],
        "blueBotLastLevelUpTime": blue_level[1],
        "redBotLastLevelUpTime": red_level[1],
        "teamWithPrio": with_prio,
        "prioTeamGotDrake": with_prio == killer_side,
        "hadBotCounterPick": counter_pick_team(blue_bot, red_bot, actions, names),
        "hadSupportCounterPick": counter_pick_team(
            player_in_role(blue, "support", reference),
            player_in_role(red, "support", reference),
            actions,
            names,
        ),
    }


def bot_lane_drake_prio(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> Optional[AnalyzerResult]:
    reference = reference_or_default(reference)
    details = [
        data
        for data in (analyze_game(document, game, reference) for game in document.get("games") or [])
        if data is not None
    ]
    if not details:
        return None

    clear = [d for d in details if d["teamWithPrio"] != "even"]
    with_prio = sum(1 for d in clear if d["prioTeamGotDrake"])
    return make_result(
        "botLaneDrakePrio",
        "Correlation between bot lane priority (based on level advantage) and first drake control",
        {
            "totalDrakes": len(details),
            "drakesWhenHadPrio": with_prio,
            "drakesWhenNoPrio": len(clear) - with_prio,
            "drakesWhenEven": len(details) - len(clear),
            "prioWinRate": (with_prio / len(clear)) * 100 if clear else 0,
            "drakeDetails": details,
        },
    )
