from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

sys.path.append(str(Path(__file__).resolve().parents[1]))

from gridscout.lol_reconstructor import convert_lol_log

TEAMS = {
    "blue": ("47351", "Cloud9", [("bp1", "Fudge", "Aatrox"), ("bp2", "Blaber", "Lee Sin")]),
    "red": ("47352", "Team Liquid", [("rp1", "Impact", "Gnar"), ("rp2", "UmTi", "Vi")]),
}


def _build_state(
    clock: int = 0,
    game_number: int = 1,
    with_champions: bool = True,
    worth: Optional[Dict[str, int]] = None,
) -> dict:
    worth = worth or {}
    teams = []
    for side, (team_id, name, players) in TEAMS.items():
        built = []
        for offset, (player_id, player_name, champion) in enumerate(players):
            player = {
                "id": player_id,
                "name": player_name,
                "position": {"x": 1000 + offset, "y": 2000 + offset},
                "money": 300,
                "totalMoneyEarned": worth.get(player_id, 500),
            }
            if with_champions:
                player["character"] = {"name": champion}
            built.append(player)
        teams.append({"id": team_id, "name": name, "side": side, "players": built})
    return {
        "id": "2770001",
        "games": [{"sequenceNumber": game_number, "clock": {"currentSeconds": clock}, "teams": teams}],
    }


def _build_event(
    event_type: str,
    actor: Optional[dict] = None,
    target: Optional[dict] = None,
    state: Optional[dict] = None,
) -> dict:
    return {"type": event_type, "actor": actor or {}, "target": target or {}, "seriesState": state or _build_state()}


def _build_log(*entries: Tuple[int, dict]) -> str:
    return "\n".join(
        json.dumps(
            {
                "id": f"batch-{index}",
                "occurredAt": f"2024-03-10T18:{second // 60:02d}:{second % 60:02d}Z",
                "seriesId": "2770001",
                "events": [event],
            }
        )
        for index, (second, event) in enumerate(entries)
    )


def _draft(event_type: str, team_id: str, champion: str) -> dict:
    return _build_event(
        event_type,
        actor={"type": "team", "id": team_id},
        target={"type": "character", "id": champion.lower(), "state": {"name": champion}},
        state=_build_state(with_champions=False),
    )


def test_single_game_is_rebuilt_from_events() -> None:
    kill = _build_event(
        "player-killed-player",
        actor={
            "type": "player",
            "id": "bp2",
            "stateDelta": {"game": {"killAssistsReceivedFromPlayer": [{"playerId": "bp1"}]}},
        },
        target={"type": "player", "id": "rp2"},
        state=_build_state(clock=300),
    )
    purchase = _build_event(
        "player-purchased-item",
        actor={"type": "player", "id": "bp1", "stateDelta": {"game": {"inventory": {"items": [{"id": "1055", "name": "Doran's Blade"}]}}}},
        state=_build_state(clock=400),
    )
    sold = _build_event(
        "player-sold-item",
        actor={"type": "player", "id": "bp1", "stateDelta": {"game": {"inventory": {"items": [{"id": "1055"}]}}}},
        state=_build_state(clock=450),
    )
    log = _build_log(
        (0, _build_event("series-started-game", state=_build_state(with_champions=False))),
        (10, _draft("team-banned-character", "47351", "Ahri")),
        (20, _draft("team-picked-character", "47352", "Gnar")),
        (60, _build_event("game-started-gameClock")),
        (360, kill),
        (460, purchase),
        (510, sold),
        (900, _build_event("team-won-game", actor={"type": "team", "id": "47351"})),
    )
    document = convert_lol_log(log)

    assert document["seriesId"] == "2770001"
    [game] = document["games"]
    assert game["gameNumber"] == 1
    assert game["blueSideTeamId"] == "47351"
    assert game["winnerTeamId"] == "47351"
    assert game["gameLength"] == 450
    assert game["draftingActions"] == [
        {"teamId": "47351", "champName": "Ahri", "action": "ban"},
        {"teamId": "47352", "champName": "Gnar", "action": "pick"},
    ]
    assert [event["type"] for event in game["events"]] == ["kill", "purchase-item", "sold-item"]
    assert game["events"][2]["itemName"] == "Doran's Blade"
    assert [snapshot["time"] for snapshot in game["coordinateTracking"]] == [300, 400, 450]

    stats = {player["id"]: player["stats"] for player in game["players"]}
    assert stats["bp2"]["kills"] == 1
    assert stats["bp2"]["blueSideKills"] == 1
    assert stats["bp1"]["assists"] == 1
    assert stats["rp2"]["redSideDeaths"] == 1
    assert {player["id"]: player["champName"] for player in game["players"]}["rp1"] == "Gnar"


def test_events_outside_live_game_are_dropped() -> None:
    early_kill = _build_event(
        "player-killed-player",
        actor={"type": "player", "id": "bp1"},
        target={"type": "player", "id": "rp1"},
        state=_build_state(clock=0),
    )
    log = _build_log(
        (0, _build_event("series-started-game")),
        (5, early_kill),
        (60, _build_event("game-started-gameClock")),
        (900, _build_event("team-won-game", actor={"type": "team", "id": "47352"})),
        (950, early_kill),
    )
    [game] = convert_lol_log(log)["games"]
    assert game["events"] == []
    assert game["winnerTeamId"] == "47352"


def test_second_game_uses_its_own_sequence_number() -> None:
    level = _build_event(
        "player-completed-increaseLevel",
        actor={"type": "player", "id": "rp1"},
        target={"type": "level", "state": {"completionCount": 5}},
        state=_build_state(clock=200, game_number=2),
    )
    log = _build_log(
        (0, _build_event("series-started-game")),
        (60, _build_event("game-started-gameClock")),
        (900, _build_event("team-won-game", actor={"type": "team", "id": "47351"})),
        (1000, _build_event("series-started-game", state=_build_state(game_number=2))),
        (1060, _build_event("game-started-gameClock", state=_build_state(game_number=2))),
        (1260, level),
    )
    games = convert_lol_log(log)["games"]

    assert [game["id"] for game in games] == ["1", "2"]
    assert games[1]["events"] == [{"type": "level-up", "playerId": "rp1", "newLevel": 6, "time": 200}]
