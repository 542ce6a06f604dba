"""First void grub of each game: support recall timing and ADC attendance."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from gridscout.analytics.common import AnalyzerResult, make_result
from gridscout.analytics.lol_common import (
    coordinate_of,
    find_player,
    is_void_grub,
    player_in_role,
    reference_or_default,
    side_players,
    sides,
    snapshot_at,
    team_name,
)
from gridscout.lol_reference import LolReference

RECALL_CHANNEL_TIME = 8

# Grub pit, inclusive on every edge.
GRUB_AREA = {"minX": 3500, "maxX": 5500, "minY": 8800, "maxY": 10800}


def first_grub(game: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return next((e for e in game.get("events") or [] if is_void_grub(e)), None)


def in_grub_area(x: float, y: float) -> bool:
    return GRUB_AREA["minX"] <= x <= GRUB_AREA["maxX"] and GRUB_AREA["minY"] <= y <= GRUB_AREA["maxY"]


def recall_time_before(events: List[Dict[str, Any]], player_id: str, before: float) -> Optional[float]:
    """Start of the recall behind the player's last purchase before ``before``."""
    purchases = [
        e["time"]
        for e in events
        if e.get("type") == "purchase-item" and e.get("playerId") == player_id and e["time"] < before
    ]
    return max(purchases) - RECALL_CHANNEL_TIME if purchases else None


def recall_game(
    document: Dict[str, Any], game: Dict[str, Any], reference: LolReference
) -> Optional[Dict[str, Any]]:
    grub = first_grub(game)
    if grub is None:
        return None
    events = game.get("events") or []
    blue, red = side_players(game)
    killer = find_player(game, grub.get("playerId"))
    record: Dict[str, Any] = {
        "gameId": game.get("id"),
        "grubTime": grub["time"],
        "killerTeamName": team_name(document, killer["teamId"]) if killer else "Unknown",
        **sides(document, game),
    }
    for side, roster in (("blue", blue), ("red", red)):
        support = player_in_role(roster, "support", reference)
        record[f"{side}SupportRecallTime"] = (
            recall_time_before(events, support["id"], grub["time"]) if support else None
        )
    return record


def support_grub_recall(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> Optional[AnalyzerResult]:
    reference = reference_or_default(reference)
    details = [
        data
        for data in (recall_game(document, game, reference) for game in document.get("games") or [])
        if data is not None
    ]
    if not details:
        return None
    return make_result(
        "supportGrubRecall",
        "Support recall timing before first grub (purchase time - 8s for recall channel)",
        {"totalGames": len(details), "grubDetails": details},
    )


def adc_game(
    document: Dict[str, Any], game: Dict[str, Any], reference: LolReference
) -> Optional[Dict[str, Any]]:
    if not game.get("coordinateTracking"):
        return None
    grub = first_grub(game)
    if grub is None:
        return None
    killer = find_player(game, grub.get("playerId"))
    if killer is None:
        return None

    names = sides(document, game)
    blue, red = side_players(game)
    roster = blue if killer["teamId"] == names["blueTeamId"] else red
    adc = player_in_role(roster, "bot", reference)
    if adc is None:
        return None

    coord = coordinate_of(snapshot_at(game, grub["time"]), adc["id"])
    killer_name = team_name(document, killer["teamId"])
    return {
        "gameId": game.get("id"),
        "grubTime": grub["time"],
        "killerTeamId": killer["teamId"],
        "killerTeamName": killer_name,
        **names,
        "adcPlayerName": adc.get("name"),
        "adcTeamId": killer["teamId"],
        "adcTeamName": killer_name,
        "adcX": coord["x"] if coord else None,
        "adcY": coord["y"] if coord else None,
        "adcJoinedForGrubs": bool(coord) and in_grub_area(coord["x"], coord["y"]),
    }


def adc_joined_grubs(
    document: Dict[str, Any],
    team_id: Optional[str] = None,
    reference: Optional[LolReference] = None,
) -> Optional[AnalyzerResult]:
    reference = reference_or_default(reference)
    details = [
        data
        for data in (adc_game(document, game, reference) for game in document.get("games") or [])
        if data is not None
    ]
    if not details:
        return None
    present = sum(1 for d in details if d["adcJoinedForGrubs"])
    return make_result(
        "adcJoinedGrubs",
        "Whether the ADC was in the grub area (x: 3500-5500, y: 8800-10800) when team secured first grub",
        {
            "totalFirstGrubs": len(details),
            "grubsWithAdcPresent": present,
            "grubsWithoutAdcPresent": len(details) - present,
            "adcPresentRate": (present / len(details)) * 100,
            "grubDetails": details,
        },
    )
