"""Fold a League of Legends GRID event stream into a series document."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from gridscout.decoder import EventBatch, decode_event_log
from gridscout.events import (
    CharacterDrafted,
    GameClockStarted,
    GameStarted,
    GameWon,
    GridEvent,
    ItemChanged,
    LevelIncreased,
    MonsterKilled,
    PlayerKilled,
    StructureDestroyed,
    iter_lol_events,
)

logger = logging.getLogger(__name__)


@dataclass
class LolGameAccumulator:
    game_number: int
    start_time: Optional[str] = None
    blue_side_team_id: str = ""
    winner_team_id: Optional[str] = None
    game_length: int = 0
    players: List[Dict[str, Any]] = field(default_factory=list)
    drafting_actions: List[Dict[str, Any]] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    coordinates: Dict[int, List[Dict[str, Any]]] = field(default_factory=dict)
    item_names: Dict[str, str] = field(default_factory=dict)


@dataclass
class LolState:
    series_id: str = ""
    game_index: int = 0
    pending: Optional[LolGameAccumulator] = None
    current: Optional[LolGameAccumulator] = None
    live: bool = False
    games: List[LolGameAccumulator] = field(default_factory=list)
    teams: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def _game_state_for(event: GridEvent, game_number: int) -> Dict[str, Any]:
    games = event.series_state.get("games") or []
    if not games:
        return {}
    state = games[0] or {}
    sequence = state.get("sequenceNumber")
    if sequence is not None and sequence != game_number:
        return {}
    return state


def _game_time(event: GridEvent, game_number: int) -> int:
    clock = _game_state_for(event, game_number).get("clock") or {}
    seconds = clock.get("currentSeconds")
    return int(seconds) if isinstance(seconds, (int, float)) else 0


def _observe_teams(state: LolState, event: GridEvent) -> None:
    for game in event.series_state.get("games") or []:
        for team in (game or {}).get("teams") or []:
            if not isinstance(team, dict) or not team.get("id"):
                continue
            team_id = str(team["id"])
            entry = state.teams.setdefault(
                team_id, {"id": team_id, "name": str(team.get("name") or team_id), "players": {}}
            )
            for player in team.get("players") or []:
                if isinstance(player, dict) and player.get("id") is not None:
                    entry["players"].setdefault(
                        str(player["id"]), str(player.get("name") or player["id"])
                    )


def _capture_roster(game: LolGameAccumulator, event: GridEvent) -> None:
    games = event.actor.state.get("games") or event.series_state.get("games") or []
    if not games:
        return
    index = game.game_number - 1
    game_state = games[index] if index < len(games) else games[-1]
    for team in (game_state or {}).get("teams") or []:
        if not isinstance(team, dict):
            continue
        if str(team.get("side") or "").lower() == "blue" and team.get("id"):
            game.blue_side_team_id = str(team["id"])
        for player in team.get("players") or []:
            champion = (player.get("character") or {}).get("name")
            if not champion:
                continue
            game.players.append(
                {
                    "id": str(player.get("id")),
                    "name": str(player.get("name") or player.get("id")),
                    "champName": str(champion),
                    "teamId": str(team.get("id") or ""),
                }
            )


def _take_snapshot(game: LolGameAccumulator, event: GridEvent, time: int) -> None:
    if time == 0 or time in game.coordinates:
        return
    coordinates: List[Dict[str, Any]] = []
    for team in _game_state_for(event, game.game_number).get("teams") or []:
        for player in (team or {}).get("players") or []:
            position = player.get("position")
            if not isinstance(position, dict):
                continue
            coordinates.append(
                {
                    "playerId": str(player.get("id")),
                    "x": position.get("x", 0),
                    "y": position.get("y", 0),
                    "gold": player.get("money") or 0,
                    "worth": player.get("totalMoneyEarned") or 0,
                }
            )
    if coordinates:
        game.coordinates[time] = coordinates


def _record(game: LolGameAccumulator, event: GridEvent, time: int) -> None:
    if isinstance(event, ItemChanged):
        for item in event.items:
            item_id = str(item.get("id") or "")
            if event.kind in ("purchase-item", "acquire-item"):
                name = item.get("name")
                if not name:
                    continue
                if item_id:
                    game.item_names[item_id] = str(name)
            else:
                name = game.item_names.get(item_id, item_id)
            game.events.append(
                {"type": event.kind, "playerId": event.player_id, "itemName": str(name), "time": time}
            )
    elif isinstance(event, LevelIncreased):
        if event.new_level is not None:
            game.events.append(
                {"type": "level-up", "playerId": event.player_id, "newLevel": event.new_level, "time": time}
            )
    elif isinstance(event, MonsterKilled):
        game.events.append(
            {"type": event.tier, "playerId": event.player_id, "monsterName": event.monster, "time": time}
        )
    elif isinstance(event, PlayerKilled):
        game.events.append(
            {
                "type": "kill",
                "playerId": event.killer_id,
                "targetId": event.victim_id,
                "assistPlayerIds": list(event.assist_ids),
                "time": time,
            }
        )
    elif isinstance(event, StructureDestroyed):
        name_key = "towerName" if event.kind == "destroy-tower" else "inhibitorName"
        game.events.append(
            {"type": event.kind, "playerId": event.player_id, name_key: event.structure, "time": time}
        )


def _new_game(state: LolState, event: GridEvent) -> LolGameAccumulator:
    state.game_index += 1
    game = LolGameAccumulator(game_number=state.game_index, start_time=event.occurred_at or None)
    state.games.append(game)
    return game


def step(state: LolState, event: GridEvent) -> LolState:
    if not state.series_id and event.series_state.get("id"):
        state.series_id = str(event.series_state["id"])
    _observe_teams(state, event)

    if isinstance(event, GameStarted):
        state.live = False
        state.current = None
        state.pending = _new_game(state, event)
        _capture_roster(state.pending, event)
        return state

    if isinstance(event, GameClockStarted):
        if state.pending is not None:
            state.current = state.pending
            state.pending = None
        else:
            state.current = _new_game(state, event)
        if not state.current.players:
            _capture_roster(state.current, event)
        state.live = True
        return state

    if isinstance(event, CharacterDrafted):
        game = state.current or state.pending
        if game is None:
            game = state.pending = _new_game(state, event)
        game.drafting_actions.append(
            {"teamId": event.team_id, "champName": event.champion, "action": event.action}
        )
        return state

    if isinstance(event, GameWon):
        game = state.current or state.pending
        if game is not None:
            game.winner_team_id = event.team_id or None
        state.live = False
        state.current = None
        return state

    game = state.current
    if not state.live or game is None:
        return state

    time = _game_time(event, game.game_number)
    game.game_length = max(game.game_length, time)
    _take_snapshot(game, event, time)
    _record(game, event, time)
    return state


def _derive_stats(game: LolGameAccumulator) -> Dict[str, Dict[str, int]]:
    stats = {
        player["id"]: {
            "kills": 0,
            "deaths": 0,
            "assists": 0,
            "blueSideKills": 0,
            "blueSideDeaths": 0,
            "redSideKills": 0,
            "redSideDeaths": 0,
        }
        for player in game.players
    }
    team_of = {player["id"]: player["teamId"] for player in game.players}

    def side_of(player_id: str) -> str:
        return "blueSide" if team_of.get(player_id) == game.blue_side_team_id else "redSide"

    for event in game.events:
        if event["type"] != "kill":
            continue
        killer = event["playerId"]
        victim = event["targetId"]
        if killer in stats:
            stats[killer]["kills"] += 1
            stats[killer][f"{side_of(killer)}Kills"] += 1
        if victim in stats:
            stats[victim]["deaths"] += 1
            stats[victim][f"{side_of(victim)}Deaths"] += 1
        for assist in event["assistPlayerIds"]:
            if assist in stats:
                stats[assist]["assists"] += 1
    return stats


def finish(state: LolState) -> Dict[str, Any]:
    games = []
    for game in state.games:
        stats = _derive_stats(game)
        games.append(
            {
                "id": str(game.game_number),
                "gameNumber": game.game_number,
                "blueSideTeamId": game.blue_side_team_id,
                "winnerTeamId": game.winner_team_id,
                "gameLength": game.game_length,
                "startTime": game.start_time,
                "players": [{**player, "stats": stats[player["id"]]} for player in game.players],
                "draftingActions": game.drafting_actions,
                "events": sorted(game.events, key=lambda event: event["time"]),
                "coordinateTracking": [
                    {"time": time, "playerCoordinates": game.coordinates[time]}
                    for time in sorted(game.coordinates)
                ],
            }
        )
    teams = [
        {
            "id": team["id"],
            "name": team["name"],
            "players": [{"id": pid, "name": name} for pid, name in team["players"].items()],
        }
        for team in state.teams.values()
    ]
    return {"seriesId": state.series_id, "teams": teams, "games": games}


def reconstruct_lol(batches: List[EventBatch], series_id: Optional[str] = None) -> Dict[str, Any]:
    state = LolState(series_id=series_id or (batches[0].series_id if batches else ""))
    for event in iter_lol_events(batches):
        state = step(state, event)
    document = finish(state)
    logger.info(
        f"Reconstructed LoL series {document['seriesId']}: {len(document['games'])} game(s)"
    )
    return document


def convert_lol_log(content: Union[str, bytes], series_id: Optional[str] = None) -> Dict[str, Any]:
    return reconstruct_lol(decode_event_log(content), series_id=series_id)
