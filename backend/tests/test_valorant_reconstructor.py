from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

sys.path.append(str(Path(__file__).resolve().parents[1]))

from gridscout.valorant_reconstructor import convert_valorant_log

ROSTER = {
    "t1": ("Sentinels", [("p1", "tenz", "jett"), ("p2", "zekken", "raze")]),
    "t2": ("Cloud9", [("p3", "oxy", "sova"), ("p4", "v1c", "omen")]),
}


def _build_state(
    sides: Tuple[str, str] = ("attacker", "defender"),
    positions: Optional[Dict[str, Tuple[float, float]]] = None,
    inventories: Optional[Dict[str, List[str]]] = None,
    map_name: str = "Ascent",
) -> dict:
    positions = positions or {}
    inventories = inventories or {}
    teams = []
    for side, (team_id, (team_name, players)) in zip(sides, ROSTER.items()):
        built = []
        for player_id, name, agent in players:
            player = {"id": player_id, "name": name, "character": {"id": agent, "name": agent.title()}}
            if player_id in positions:
                x, y = positions[player_id]
                player["position"] = {"x": x, "y": y}
            if player_id in inventories:
                player["inventory"] = {"items": [{"name": item} for item in inventories[player_id]]}
            built.append(player)
        teams.append({"id": team_id, "name": team_name, "side": side, "players": built})
    return {"id": "2629391", "games": [{"map": {"name": map_name}, "teams": teams}]}


def _build_event(
    event_type: str,
    actor: Optional[dict] = None,
    target: Optional[dict] = None,
    state: Optional[dict] = None,
) -> dict:
    return {
        "type": event_type,
        "actor": actor or {},
        "target": target or {},
        "seriesState": state or _build_state(),
    }


def _build_log(*entries: Tuple[int, dict]) -> str:
    lines = []
    for index, (second, event) in enumerate(entries):
        minutes, seconds = divmod(second, 60)
        lines.append(
            json.dumps(
                {
                    "id": f"batch-{index}",
                    "occurredAt": f"2024-06-01T12:{minutes:02d}:{seconds:02d}Z",
                    "seriesId": "2629391",
                    "events": [event],
                }
            )
        )
    return "\n".join(lines)


def _round_won(team_id: str, team_name: str, sequence: int = 1) -> dict:
    return _build_event(
        "team-won-round",
        actor={"type": "team", "id": team_id, "state": {"name": team_name, "round": {"winType": "opponentEliminated"}}},
        target={"type": "round", "id": f"r{sequence}", "state": {"sequenceNumber": sequence}},
    )


def test_single_round_without_combat_facts() -> None:
    log = _build_log(
        (0, _build_event("round-started-freezetime", state=_build_state(positions={"p1": (100, 200)}))),
        (40, _round_won("t1", "Sentinels")),
    )
    document = convert_valorant_log(log)

    assert document["seriesId"] == "2629391"
    [game] = document["games"]
    assert game["mapId"] == "ascent"
    [round_doc] = game["rounds"]
    assert round_doc["roundNumber"] == 1
    assert round_doc["winnerTeamId"] == "t1"
    assert round_doc["winType"] == "opponentEliminated"
    assert round_doc["kills"] == []
    assert round_doc["purchases"] == []
    assert round_doc["abilityUsages"] == []
    assert "freezetimeEndedAt" not in round_doc
    assert len(round_doc["coordinateTracking"]) == 1
    assert round_doc["coordinateTracking"][0]["playerCoordinates"] == [
        {"playerId": "p1", "x": 100.0, "y": 200.0}
    ]
    assert {"teamId": "t1", "side": "attacker"} in round_doc["teamSides"]


def test_round_numbers_are_contiguous() -> None:
    log = _build_log(
        (0, _build_event("round-started-freezetime")),
        (10, _round_won("t1", "Sentinels", sequence=5)),
        (20, _build_event("round-started-freezetime")),
        (30, _round_won("t2", "Cloud9", sequence=9)),
    )
    rounds = convert_valorant_log(log)["games"][0]["rounds"]
    assert [round_doc["roundNumber"] for round_doc in rounds] == [1, 2]


def test_purchases_are_items_new_since_last_round() -> None:
    loadout = {"p1": ["Classic", "Vandal"], "p3": ["Ghost"]}
    log = _build_log(
        (0, _build_event("round-started-freezetime", state=_build_state(inventories=loadout))),
        (30, _build_event("round-ended-freezetime", state=_build_state(inventories=loadout))),
        (60, _round_won("t1", "Sentinels")),
        (61, _build_event("game-ended-round", state=_build_state(inventories=loadout))),
        (70, _build_event("round-started-freezetime", state=_build_state(inventories=loadout))),
        (100, _build_event("round-ended-freezetime", state=_build_state(inventories=loadout))),
        (130, _round_won("t2", "Cloud9", sequence=2)),
    )
    first, second = convert_valorant_log(log)["games"][0]["rounds"]

    assert first["purchases"] == [
        {"playerId": "p1", "playerName": "tenz", "teamId": "t1", "items": ["Vandal"]},
        {"playerId": "p3", "playerName": "oxy", "teamId": "t2", "items": ["Ghost"]},
    ]
    assert second["purchases"] == []
    assert second["freezetimeEndedAt"] == "2024-06-01T12:01:40Z"


def test_kills_only_count_once_combat_is_live() -> None:
    positions = {"p1": (0, 0), "p2": (10, 10), "p3": (500, 500), "p4": (600, 600)}
    state = _build_state(positions=positions)
    kill = {"type": "player", "id": "p1", "stateDelta": {"round": {"weaponKills": {"vandal": 1}}}}
    log = _build_log(
        (0, _build_event("round-started-freezetime", state=state)),
        (5, _build_event("player-killed-player", actor=kill, target={"type": "player", "id": "p4"}, state=state)),
        (30, _build_event("round-ended-freezetime", state=state)),
        (35, _build_event("player-killed-player", actor=kill, target={"type": "player", "id": "p3"}, state=state)),
        (60, _round_won("t1", "Sentinels")),
    )
    game = convert_valorant_log(log)["games"][0]
    [round_doc] = game["rounds"]

    assert [k["victimId"] for k in round_doc["kills"]] == ["p3"]
    kill_doc = round_doc["kills"][0]
    assert kill_doc["killerName"] == "tenz"
    assert kill_doc["weapon"] == "vandal"
    assert kill_doc["victimPosition"] == {"x": 500.0, "y": 500.0}

    stats = {player["id"]: player["stats"] for player in game["players"]}
    assert stats["p1"]["kills"] == 1
    assert stats["p1"]["attackerKills"] == 1
    assert stats["p1"]["firstKills"] == 1
    assert stats["p3"]["defenderDeaths"] == 1
    assert stats["p3"]["firstDeaths"] == 1
    assert all(line["roundsPlayed"] == 1 for line in stats.values())
    assert {p["id"]: p["characterId"] for p in game["players"]}["p2"] == "raze"


def test_bomb_plant_and_ability_usage_are_recorded() -> None:
    state = _build_state(positions={"p1": (0, 0), "p2": (50, 50)})
    log = _build_log(
        (0, _build_event("round-started-freezetime", state=state)),
        (30, _build_event("round-ended-freezetime", state=state)),
        (40, _build_event("player-used-ability", actor={"type": "player", "id": "p2"}, target={"id": "blast-pack"}, state=state)),
        (50, _build_event("player-completed-plantbomb", actor={"type": "player", "id": "p1"}, state=state)),
        (90, _round_won("t1", "Sentinels")),
    )
    round_doc = convert_valorant_log(log)["games"][0]["rounds"][0]

    assert round_doc["bombPlant"]["playerId"] == "p1"
    assert round_doc["bombPlant"]["position"] == {"x": 0.0, "y": 0.0}
    [usage] = round_doc["abilityUsages"]
    assert usage["abilityId"] == "blast-pack"
    assert usage["agentId"] == "raze"
    times = [snapshot["time"] for snapshot in round_doc["coordinateTracking"]]
    assert times == sorted(times)
    assert len(times) == 4


def test_veto_is_sequenced_and_maps_follow_picks() -> None:
    def veto(event_type: str, map_id: str, team: Optional[Tuple[str, str]]) -> dict:
        actor = {"type": "team", "id": team[0], "state": {"name": team[1]}} if team else {}
        return _build_event(event_type, actor=actor, target={"type": "map", "id": map_id})

    log = _build_log(
        (2, veto("team-picked-map", "bind", ("t2", "Cloud9"))),
        (0, veto("team-banned-map", "split", ("t1", "Sentinels"))),
        (1, veto("team-picked-map", "haven", ("t1", "Sentinels"))),
        (3, veto("series-picked-map", "lotus", None)),
        (10, _build_event("series-started-game", state=_build_state(map_name="Haven"))),
        (20, _build_event("round-started-freezetime", state=_build_state(map_name="Haven"))),
        (30, _round_won("t1", "Sentinels")),
        (40, _build_event("team-won-game", actor={"type": "team", "id": "t1"})),
        (50, _build_event("series-started-game", state=_build_state(map_name="Bind"))),
        (60, _build_event("round-started-freezetime", state=_build_state(map_name="Bind"))),
        (70, _round_won("t2", "Cloud9")),
    )
    document = convert_valorant_log(log)

    assert [(a["sequenceNumber"], a["action"], a["mapId"]) for a in document["mapVeto"]] == [
        (1, "ban", "split"),
        (2, "pick", "haven"),
        (3, "pick", "bind"),
        (4, "decider", "lotus"),
    ]
    assert document["mapVeto"][3]["teamId"] is None
    assert [game["mapId"] for game in document["games"]] == ["haven", "bind"]
    assert document["games"][0]["winnerTeamId"] == "t1"
    assert [team["name"] for team in document["teams"]] == ["Sentinels", "Cloud9"]


def test_unknown_and_malformed_events_are_ignored() -> None:
    log = "\n".join(
        [
            "this is not json",
            _build_log(
                (0, _build_event("round-started-freezetime")),
                (5, _build_event("player-did-something-new")),
                (10, _round_won("t1", "Sentinels")),
            ),
        ]
    )
    rounds = convert_valorant_log(log)["games"][0]["rounds"]
    assert len(rounds) == 1
