"""Helpers shared by the League of Legends analyzers."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from gridscout.lol_reference import LolReference, default_lol_reference

FIFTEEN_MINUTES = 15 * 60
UNKNOWN_PICK = 999


def team_name(document: Dict[str, Any], team_id: str) -> str:
    for team in document.get("teams") or []:
        if team.get("id") == team_id:
            return team.get("name") or "Unknown"
    return "Unknown"


def reference_or_default(reference: Optional[LolReference]) -> LolReference:
    return reference if reference is not None else default_lol_reference()


def side_players(game: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """(blue, red) rosters; anyone not on the blue team counts as red."""
    blue_id = game.get("blueSideTeamId") or ""
    players = game.get("players") or []
    return (
        [p for p in players if p.get("teamId") == blue_id],
        [p for p in players if p.get("teamId") != blue_id],
    )


def side_team_ids(game: Dict[str, Any]) -> Tuple[str, str]:
    _, red = side_players(game)
    return game.get("blueSideTeamId") or "", (red[0]["teamId"] if red else "")


def sides(document: Dict[str, Any], game: Dict[str, Any]) -> Dict[str, str]:
    blue_id, red_id = side_team_ids(game)
    return {
        "blueTeamId": blue_id,
        "blueTeamName": team_name(document, blue_id),
        "redTeamId": red_id,
        "redTeamName": team_name(document, red_id),
    }


def player_in_role(
    players: Iterable[Dict[str, Any]], role: str, reference: LolReference
) -> Optional[Dict[str, Any]]:
    return next((p for p in players if reference.role_of(p.get("name")) == role), None)


def find_player(game: Dict[str, Any], player_id: Optional[str]) -> Optional[Dict[str, Any]]:
    return next((p for p in game.get("players") or [] if p.get("id") == player_id), None)


def snapshot_at(game: Dict[str, Any], when: float) -> Optional[Dict[str, Any]]:
    """Last coordinate snapshot at or before ``when``."""
    best = None
    for snapshot in game.get("coordinateTracking") or []:
        if snapshot["time"] > when:
            break
        best = snapshot
    return best


def coordinate_of(snapshot: Optional[Dict[str, Any]], player_id: str) -> Optional[Dict[str, Any]]:
    if snapshot is None:
        return None
    return next((c for c in snapshot.get("playerCoordinates") or [] if c.get("playerId") == player_id), None)


def worth_at(game: Dict[str, Any], player_id: str, target: float) -> float:
    return (coordinate_of(snapshot_at(game, target), player_id) or {}).get("worth") or 0


def pick_order(champion: Optional[str], actions: List[Dict[str, Any]]) -> int:
    """Index of ``champion`` among the draft's picks, ``UNKNOWN_PICK`` if absent."""
    picks = [a for a in actions if a.get("action") == "pick"]
    return next((i for i, a in enumerate(picks) if a.get("champName") == champion), UNKNOWN_PICK)


def is_drake(event: Dict[str, Any]) -> bool:
    return event.get("type") == "kill-atier-monster" and "Drake" in (event.get("monsterName") or "")


def is_void_grub(event: Dict[str, Any]) -> bool:
    return event.get("type") == "kill-atier-monster" and (event.get("monsterName") or "").startswith("voidGrub")


def average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0
