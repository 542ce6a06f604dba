"""Fold a VALORANT GRID event stream into a series document.

The fold state is an explicit ``ValorantState`` threaded through ``step``;
``finish`` flushes the open game and returns the immutable document. Feeding a
prefix of events and inspecting the state is the intended way to test it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from gridscout.decoder import EventBatch, decode_event_log, parse_timestamp_ms
from gridscout.events import (
    AbilityUsed,
    BombDefused,
    BombPlanted,
    FreezetimeEnded,
    FreezetimeStarted,
    GameStarted,
    GameWon,
    GridEvent,
    MapVetoed,
    PlayerKilled,
    RoundEnded,
    RoundWon,
    iter_valorant_events,
)

logger = logging.getLogger(__name__)

IGNORED_ITEMS = {"Classic", "Spike", "Melee"}
VALID_SIDES = {"attacker", "defender"}


@dataclass
class RosterEntry:
    id: str
    name: str
    team_id: str
    character_id: Optional[str] = None
    character_name: Optional[str] = None


@dataclass
class RoundScratch:
    team_sides: Dict[str, str] = field(default_factory=dict)
    freezetime_ended_at: Optional[str] = None
    purchases: List[Dict[str, Any]] = field(default_factory=list)
    kills: List[Dict[str, Any]] = field(default_factory=list)
    ability_usages: List[Dict[str, Any]] = field(default_factory=list)
    bomb_plant: Optional[Dict[str, Any]] = None
    bomb_defuse: Optional[Dict[str, Any]] = None
    snapshots: Dict[int, List[Dict[str, Any]]] = field(default_factory=dict)
    last_positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)


@dataclass
class GameAccumulator:
    game_number: int
    started_at: Optional[str]
    map_hint: Optional[str] = None
    winner_team_id: Optional[str] = None
    live: bool = False
    roster: Dict[str, RosterEntry] = field(default_factory=dict)
    rounds: List[Dict[str, Any]] = field(default_factory=list)
    last_round_items: Dict[str, List[str]] = field(default_factory=dict)
    current_round: Optional[RoundScratch] = None


@dataclass
class ValorantState:
    series_id: str = ""
    game_index: int = 0
    current: Optional[GameAccumulator] = None
    in_combat: bool = False
    games: List[Dict[str, Any]] = field(default_factory=list)
    veto: List[Dict[str, Any]] = field(default_factory=list)
    teams: Dict[str, Dict[str, Any]] = field(default_factory=dict)


# Embedded-state readers


def _latest_game(event: GridEvent) -> Dict[str, Any]:
    return event.latest_game_state()


def _iter_players(game_state: Dict[str, Any]) -> Iterable[Tuple[Dict[str, Any], Dict[str, Any]]]:
    for team in game_state.get("teams") or []:
        if not isinstance(team, dict):
            continue
        for player in team.get("players") or []:
            if isinstance(player, dict) and player.get("id") is not None:
                yield team, player


def _character(player: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    character = player.get("character") or {}
    if not isinstance(character, dict):
        return None, None
    char_id = character.get("id") or character.get("name")
    if not char_id:
        return None, None
    name = character.get("name") or str(char_id).capitalize()
    return str(char_id).lower(), str(name)


def _position(player: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    position = player.get("position")
    if not isinstance(position, dict):
        return None
    x = position.get("x")
    y = position.get("y")
    if x is None or y is None:
        return None
    return float(x), float(y)


def _map_hint(game_state: Dict[str, Any]) -> Optional[str]:
    game_map = game_state.get("map") or {}
    if not isinstance(game_map, dict):
        return None
    name = game_map.get("name") or game_map.get("id")
    return str(name).lower() if name else None


def _extract_inventories(event: GridEvent) -> Dict[str, Dict[str, Any]]:
    inventories: Dict[str, Dict[str, Any]] = {}
    for team, player in _iter_players(_latest_game(event)):
        items = []
        for item in (player.get("inventory") or {}).get("items") or []:
            name = item.get("name") if isinstance(item, dict) else None
            if name and name not in IGNORED_ITEMS:
                items.append(str(name))
        inventories[str(player.get("name") or player.get("id"))] = {
            "playerId": str(player.get("id")),
            "teamId": str(team.get("id") or ""),
            "items": items,
        }
    return inventories


def _calculate_purchases(
    current: Dict[str, Dict[str, Any]], last_round_items: Dict[str, List[str]]
) -> List[Dict[str, Any]]:
    purchases: List[Dict[str, Any]] = []
    for player_name, entry in current.items():
        previous = last_round_items.get(player_name, [])
        new_items = [item for item in entry["items"] if item not in previous]
        if new_items:
            purchases.append(
                {
                    "playerId": entry["playerId"],
                    "playerName": player_name,
                    "teamId": entry["teamId"],
                    "items": new_items,
                }
            )
    return purchases


def _extract_weapon(event: GridEvent) -> Optional[str]:
    for source in (event.actor.state_delta, event.actor.state):
        weapon_kills = (source.get("round") or {}).get("weaponKills")
        if isinstance(weapon_kills, dict) and weapon_kills:
            return str(next(iter(weapon_kills.keys())))
    return None


# Accumulator helpers


def _observe_teams(state: ValorantState, event: GridEvent) -> None:
    for team_state in (event.series_state.get("games") or [])[-1:]:
        for team in team_state.get("teams") or []:
            if not isinstance(team, dict) or not team.get("id"):
                continue
            team_id = str(team["id"])
            entry = state.teams.setdefault(
                team_id, {"id": team_id, "name": team.get("name") or team_id, "players": {}}
            )
            if team.get("name") and entry["name"] == team_id:
                entry["name"] = str(team["name"])
            for player in team.get("players") or []:
                if isinstance(player, dict) and player.get("id") is not None:
                    entry["players"].setdefault(
                        str(player["id"]), str(player.get("name") or player["id"])
                    )


def _update_roster(game: GameAccumulator, event: GridEvent) -> None:
    for team, player in _iter_players(_latest_game(event)):
        player_id = str(player["id"])
        character_id, character_name = _character(player)
        entry = game.roster.get(player_id)
        if entry is None:
            game.roster[player_id] = RosterEntry(
                id=player_id,
                name=str(player.get("name") or player_id),
                team_id=str(team.get("id") or ""),
                character_id=character_id,
                character_name=character_name,
            )
        elif entry.character_id is None and character_id:
            entry.character_id = character_id
            entry.character_name = character_name


def _take_snapshot(scratch: RoundScratch, event: GridEvent) -> None:
    if event.time_ms is None or event.time_ms in scratch.snapshots:
        return
    coordinates: List[Dict[str, Any]] = []
    for _, player in _iter_players(_latest_game(event)):
        position = _position(player)
        if position is None:
            continue
        coordinates.append({"playerId": str(player["id"]), "x": position[0], "y": position[1]})
        scratch.last_positions[str(player["id"])] = position
    if coordinates:
        scratch.snapshots[event.time_ms] = coordinates


def _position_of(scratch: RoundScratch, event: GridEvent, player_id: str) -> Optional[Dict[str, float]]:
    for _, player in _iter_players(_latest_game(event)):
        if str(player["id"]) == player_id:
            position = _position(player)
            if position is not None:
                return {"x": position[0], "y": position[1]}
    last = scratch.last_positions.get(player_id)
    if last is None:
        return None
    return {"x": last[0], "y": last[1]}


def _player_name(game: GameAccumulator, state: ValorantState, player_id: str) -> str:
    entry = game.roster.get(player_id)
    if entry is not None:
        return entry.name
    for team in state.teams.values():
        if player_id in team["players"]:
            return team["players"][player_id]
    return "Unknown"


def _ensure_game(state: ValorantState, event: GridEvent) -> GameAccumulator:
    if state.current is None:
        state.game_index += 1
        state.current = GameAccumulator(
            game_number=state.game_index,
            started_at=event.occurred_at or None,
            map_hint=_map_hint(_latest_game(event)),
        )
        _update_roster(state.current, event)
    return state.current


def _ensure_round(game: GameAccumulator, event: GridEvent) -> RoundScratch:
    if game.current_round is None:
        game.current_round = RoundScratch(team_sides=_team_sides(event))
    return game.current_round


def _team_sides(event: GridEvent) -> Dict[str, str]:
    sides: Dict[str, str] = {}
    for team in _latest_game(event).get("teams") or []:
        if not isinstance(team, dict) or not team.get("id"):
            continue
        side = str(team.get("side") or "").lower()
        if side in VALID_SIDES:
            sides[str(team["id"])] = side
    return sides


def _derive_stats(game: GameAccumulator) -> Dict[str, Dict[str, int]]:
    stats = {
        player_id: {
            "kills": 0,
            "deaths": 0,
            "attackerKills": 0,
            "attackerDeaths": 0,
            "defenderKills": 0,
            "defenderDeaths": 0,
            "firstKills": 0,
            "firstDeaths": 0,
            "roundsPlayed": 0,
        }
        for player_id in game.roster
    }
    for round_doc in game.rounds:
        sides = {entry["teamId"]: entry["side"] for entry in round_doc["teamSides"]}
        for player_id, entry in game.roster.items():
            if entry.team_id in sides:
                stats[player_id]["roundsPlayed"] += 1
        for index, kill in enumerate(round_doc["kills"]):
            killer = game.roster.get(kill["killerId"])
            victim = game.roster.get(kill["victimId"])
            if killer is not None:
                line = stats[killer.id]
                line["kills"] += 1
                side = sides.get(killer.team_id)
                if side:
                    line[f"{side}Kills"] += 1
                if index == 0:
                    line["firstKills"] += 1
            if victim is not None:
                line = stats[victim.id]
                line["deaths"] += 1
                side = sides.get(victim.team_id)
                if side:
                    line[f"{side}Deaths"] += 1
                if index == 0:
                    line["firstDeaths"] += 1
    return stats


def _flush_game(state: ValorantState) -> None:
    game = state.current
    if game is None:
        return
    if game.current_round is not None:
        logger.debug(f"Discarding unsealed round in game {game.game_number}")
    stats = _derive_stats(game)
    state.games.append(
        {
            "gameNumber": game.game_number,
            "mapId": None,
            "mapHint": game.map_hint,
            "startedAt": game.started_at,
            "winnerTeamId": game.winner_team_id,
            "players": [
                {
                    "id": entry.id,
                    "name": entry.name,
                    "teamId": entry.team_id,
                    "characterId": entry.character_id,
                    "characterName": entry.character_name,
                    "stats": stats[entry.id],
                }
                for entry in game.roster.values()
            ],
            "rounds": game.rounds,
        }
    )
    state.current = None
    state.in_combat = False


# Transitions


def _on_game_started(state: ValorantState, event: GridEvent) -> None:
    _flush_game(state)
    _ensure_game(state, event)


def _on_freezetime_started(state: ValorantState, event: GridEvent) -> None:
    game = _ensure_game(state, event)
    game.live = True
    if game.map_hint is None:
        game.map_hint = _map_hint(_latest_game(event))
    game.current_round = RoundScratch(team_sides=_team_sides(event))
    _update_roster(game, event)
    _take_snapshot(game.current_round, event)
    state.in_combat = False


def _on_freezetime_ended(state: ValorantState, event: GridEvent) -> None:
    game = _ensure_game(state, event)
    scratch = _ensure_round(game, event)
    scratch.purchases = _calculate_purchases(_extract_inventories(event), game.last_round_items)
    scratch.freezetime_ended_at = event.occurred_at or None
    state.in_combat = True
    _take_snapshot(scratch, event)


def _on_round_won(state: ValorantState, event: RoundWon) -> None:
    game = _ensure_game(state, event)
    scratch = _ensure_round(game, event)
    round_number = len(game.rounds) + 1
    if event.sequence_number is not None and event.sequence_number != round_number:
        logger.debug(
            f"Game {game.game_number}: provider round {event.sequence_number} "
            f"sealed as round {round_number}"
        )
    winner_name = event.team_name or state.teams.get(event.team_id, {}).get("name", "")
    round_doc: Dict[str, Any] = {
        "roundNumber": round_number,
        "winnerTeamId": event.team_id,
        "winnerTeamName": winner_name,
        "winType": event.win_type,
        "teamSides": [
            {"teamId": team_id, "side": side} for team_id, side in scratch.team_sides.items()
        ],
        "purchases": scratch.purchases,
        "abilityUsages": scratch.ability_usages,
        "kills": scratch.kills,
        "coordinateTracking": [
            {"time": time, "playerCoordinates": scratch.snapshots[time]}
            for time in sorted(scratch.snapshots)
        ],
    }
    if scratch.freezetime_ended_at:
        round_doc["freezetimeEndedAt"] = scratch.freezetime_ended_at
    if scratch.bomb_plant:
        round_doc["bombPlant"] = scratch.bomb_plant
    if scratch.bomb_defuse:
        round_doc["bombDefuse"] = scratch.bomb_defuse
    game.rounds.append(round_doc)
    game.current_round = None
    state.in_combat = False


def _on_round_ended(state: ValorantState, event: GridEvent) -> None:
    if state.current is None:
        return
    state.current.last_round_items = {
        name: entry["items"] for name, entry in _extract_inventories(event).items()
    }


def _on_combat_fact(state: ValorantState, event: GridEvent) -> None:
    game = state.current
    scratch = game.current_round if game else None
    if game is None or scratch is None or not state.in_combat:
        return
    if isinstance(event, PlayerKilled):
        scratch.kills.append(
            {
                "killerId": event.killer_id,
                "killerName": _player_name(game, state, event.killer_id),
                "victimId": event.victim_id,
                "victimName": _player_name(game, state, event.victim_id),
                "occurredAt": event.occurred_at,
                "weapon": _extract_weapon(event),
                "killerPosition": _position_of(scratch, event, event.killer_id),
                "victimPosition": _position_of(scratch, event, event.victim_id),
            }
        )
    elif isinstance(event, AbilityUsed):
        entry = game.roster.get(event.player_id)
        scratch.ability_usages.append(
            {
                "playerId": event.player_id,
                "playerName": _player_name(game, state, event.player_id),
                "abilityId": event.ability_id,
                "agentId": entry.character_id if entry else None,
                "occurredAt": event.occurred_at,
                "position": _position_of(scratch, event, event.player_id),
            }
        )
    elif isinstance(event, (BombPlanted, BombDefused)):
        fact = {
            "playerId": event.player_id,
            "playerName": _player_name(game, state, event.player_id),
            "occurredAt": event.occurred_at,
            "position": _position_of(scratch, event, event.player_id),
        }
        if isinstance(event, BombPlanted):
            scratch.bomb_plant = fact
        else:
            scratch.bomb_defuse = fact


def step(state: ValorantState, event: GridEvent) -> ValorantState:
    """Apply one event to the fold state and return it."""
    if not state.series_id and event.series_state.get("id"):
        state.series_id = str(event.series_state["id"])
    if event.series_state:
        _observe_teams(state, event)

    if isinstance(event, MapVetoed):
        state.veto.append(
            {
                "occurredAt": event.occurred_at,
                "action": event.action,
                "mapId": event.map_id,
                "teamId": event.team_id,
                "teamName": event.team_name,
            }
        )
        if event.team_id and event.team_name:
            entry = state.teams.setdefault(
                event.team_id, {"id": event.team_id, "name": event.team_name, "players": {}}
            )
            if entry["name"] == event.team_id:
                entry["name"] = event.team_name
        return state

    if isinstance(event, GameStarted):
        _on_game_started(state, event)
        return state
    if isinstance(event, FreezetimeStarted):
        _on_freezetime_started(state, event)
        return state
    if isinstance(event, FreezetimeEnded):
        _on_freezetime_ended(state, event)
        return state
    if isinstance(event, RoundWon):
        _on_round_won(state, event)
        return state
    if isinstance(event, RoundEnded):
        _on_round_ended(state, event)
        return state
    if isinstance(event, GameWon):
        if state.current is not None:
            state.current.winner_team_id = event.team_id or None
        return state

    game = state.current
    if game is not None and game.live and state.in_combat and game.current_round is not None:
        _take_snapshot(game.current_round, event)
        _update_roster(game, event)
    _on_combat_fact(state, event)
    return state


def _sequence_veto(veto: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    ordered = sorted(veto, key=lambda action: parse_timestamp_ms(action["occurredAt"]) or 0)
    return [
        {"sequenceNumber": index, **action} for index, action in enumerate(ordered, start=1)
    ]


def finish(state: ValorantState) -> Dict[str, Any]:
    """Flush the open game and build the series document."""
    _flush_game(state)
    veto = _sequence_veto(state.veto)
    picked = [action["mapId"] for action in veto if action["action"] in ("pick", "decider")]

    games = []
    for game in state.games:
        index = game["gameNumber"] - 1
        map_hint = game.pop("mapHint", None)
        if index < len(picked):
            map_id = picked[index]
        else:
            map_id = map_hint or "unknown"
        games.append({**game, "mapId": map_id})

    teams = [
        {
            "id": team["id"],
            "name": team["name"],
            "players": [{"id": pid, "name": name} for pid, name in team["players"].items()],
        }
        for team in state.teams.values()
    ]
    return {"seriesId": state.series_id, "teams": teams, "mapVeto": veto, "games": games}


def reconstruct_valorant(
    batches: List[EventBatch], series_id: Optional[str] = None
) -> Dict[str, Any]:
    state = ValorantState(series_id=series_id or (batches[0].series_id if batches else ""))
    for event in iter_valorant_events(batches):
        state = step(state, event)
    document = finish(state)
    logger.info(
        f"Reconstructed VALORANT series {document['seriesId']}: "
        f"{len(document['games'])} game(s), {len(document['mapVeto'])} veto action(s)"
    )
    return document


def convert_valorant_log(
    content: Union[str, bytes], series_id: Optional[str] = None
) -> Dict[str, Any]:
    return reconstruct_valorant(decode_event_log(content), series_id=series_id)
