from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from gridscout.analytics.ability_usage import ability_usage_analysis
from gridscout.analytics.agent_picks import agent_pick_analysis
from gridscout.analytics.defensive_setup import defensive_setup_analysis
from gridscout.analytics.economy_setup import economy_setup_analysis, is_buy_round
from gridscout.analytics.lurker import lurker_analysis
from gridscout.analytics.map_veto import map_veto_analysis
from gridscout.analytics.offensive_setup import offensive_setup_analysis
from gridscout.analytics.playback import playback_analysis
from gridscout.analytics.player_positions import player_position_analysis
from gridscout.analytics.post_plant import post_plant_analysis
from gridscout.analytics.runner import analyzers_for, run_analytics
from gridscout.callouts import CalloutTable
from gridscout.decoder import parse_timestamp_ms

BASE_MS = parse_timestamp_ms("2024-06-01T12:00:00Z")
AGENTS = {"p1": "jett", "p2": "sova", "p3": "omen", "p4": "killjoy", "p5": "skye"}

Coords = Dict[str, Tuple[float, float]]

# Three lined-up A players and two on B.
A_STACK: Coords = {"p1": (10, 0), "p2": (20, 0), "p3": (30, 0), "p4": (4990, 0), "p5": (5010, 0)}


def _ms(seconds: float) -> int:
    return BASE_MS + int(seconds * 1000)


def _at(seconds: float) -> str:
    moment = datetime.fromtimestamp(_ms(seconds) / 1000, tz=timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


def _build_callouts() -> CalloutTable:
    return CalloutTable.from_payload(
        [
            {
                "displayName": "Ascent",
                "callouts": [
                    {"regionName": "Site", "superRegionName": "A", "location": {"x": 0, "y": 0}},
                    {"regionName": "Site", "superRegionName": "B", "location": {"x": 5000, "y": 0}},
                    {"regionName": "Courtyard", "superRegionName": "Mid", "location": {"x": 2500, "y": 3000}},
                ],
            }
        ]
    )


def _build_round(
    number: int,
    side: str,
    winner: str = "t1",
    snapshots: Optional[Dict[float, Coords]] = None,
    freeze_end: Optional[float] = 30,
    kills: Optional[List[dict]] = None,
    plant: Optional[dict] = None,
    purchases: Optional[List[dict]] = None,
    abilities: Optional[List[dict]] = None,
) -> dict:
    other = "defender" if side == "attacker" else "attacker"
    round_doc = {
        "roundNumber": number,
        "winnerTeamId": winner,
        "winType": "opponentEliminated",
        "teamSides": [{"teamId": "t1", "side": side}, {"teamId": "t2", "side": other}],
        "purchases": purchases or [],
        "abilityUsages": abilities or [],
        "kills": kills or [],
        "coordinateTracking": [
            {
                "time": _ms(second),
                "playerCoordinates": [
                    {"playerId": pid, "x": x, "y": y} for pid, (x, y) in coords.items()
                ],
            }
            for second, coords in sorted((snapshots or {}).items())
        ],
    }
    if freeze_end is not None:
        round_doc["freezetimeEndedAt"] = _at(freeze_end)
    if plant:
        round_doc["bombPlant"] = plant
    return round_doc


def _build_game(rounds: List[dict], game_number: int = 1, winner: str = "t1") -> dict:
    players = [
        {"id": pid, "name": f"player{pid[1:]}", "teamId": "t1", "characterId": agent, "characterName": agent.title(),
         "stats": {"kills": 2, "deaths": 1}}
        for pid, agent in AGENTS.items()
    ]
    players += [
        {"id": f"q{i}", "name": f"enemy{i}", "teamId": "t2", "characterId": "sage", "characterName": "Sage", "stats": {}}
        for i in range(1, 6)
    ]
    return {
        "gameNumber": game_number,
        "mapId": "ascent",
        "startedAt": _at(0),
        "winnerTeamId": winner,
        "players": players,
        "rounds": rounds,
    }


def _build_document(games: List[dict], veto: Optional[List[dict]] = None) -> dict:
    return {
        "seriesId": "S1",
        "teams": [{"id": "t1", "name": "Sentinels", "players": []}, {"id": "t2", "name": "Cloud9", "players": []}],
        "mapVeto": veto or [],
        "games": games,
    }


def _veto(sequence: int, action: str, map_id: str, team_id: Optional[str]) -> dict:
    return {"sequenceNumber": sequence, "occurredAt": _at(sequence), "action": action, "mapId": map_id,
            "teamId": team_id, "teamName": None}


def test_map_veto_splits_phases_per_team() -> None:
    veto = [
        _veto(1, "ban", "ascent", "t1"),
        _veto(2, "ban", "bind", "t2"),
        _veto(3, "pick", "haven", "t1"),
        _veto(4, "pick", "split", "t2"),
        _veto(5, "decider", "lotus", None),
    ]
    result = map_veto_analysis(_build_document([_build_game([])], veto=veto))
    ours, theirs = result["data"]["teams"]

    sequence = ours["vetoSequences"][0]
    assert [a["mapId"] for a in sequence["banPhase1Actions"]] == ["ascent"]
    assert [a["mapId"] for a in sequence["pickActions"]] == ["haven"]
    assert sequence["deciderMap"] == "lotus"
    assert "bind" in sequence["opponentBansBeforeOurFirstBan"]
    assert ours["banPhase2Patterns"] is None
    assert ours["pickPatterns"]["pick1"][0]["mapName"] == "Haven"

    their_sequence = theirs["vetoSequences"][0]
    assert their_sequence["opponentBansBeforeOurFirstBan"] == ["ascent"]
    assert their_sequence["allBansBeforeOurPick"] == ["ascent", "bind"]


def test_map_veto_needs_veto_actions() -> None:
    assert map_veto_analysis(_build_document([_build_game([])])) is None


def test_agent_picks_track_wins_per_map() -> None:
    document = _build_document([_build_game([], 1, winner="t1"), _build_game([], 2, winner="t2")])
    result = agent_pick_analysis(document, team_id="t1")
    [team] = result["data"]["teams"]

    assert team["totalMapsPlayed"] == 2
    assert team["wins"] == 1
    assert team["winPercentage"] == 50.0
    jett = next(row for row in team["overallAgentPicks"] if row["agentId"] == "jett")
    assert (jett["count"], jett["wins"], jett["percentage"]) == (2, 1, 100.0)
    assert team["agentPicksByMap"][0]["gamesPlayed"] == 2
    assert team["gameDetails"][1]["isWin"] is False
    assert team["gameDetails"][0]["playerStats"][0]["kills"] == 2


def test_defensive_setup_counts_freeze_end_formations() -> None:
    rounds = [
        _build_round(1, "defender", snapshots={0: {"p1": (2500, 3000)}, 30: A_STACK}),
        # Only two located players is below the formation minimum.
        _build_round(2, "defender", snapshots={30: {"p1": (0, 0), "p2": (5, 5)}}),
    ]
    result = defensive_setup_analysis(_build_document([_build_game(rounds)]), callouts=_build_callouts())
    ours, theirs = result["data"]["teams"]

    assert ours["totalDefensiveRounds"] == 1
    [formation] = ours["byMap"][0]["formations"]
    assert formation["formationKey"] == "3 A, 2 B"
    assert formation["superRegions"] == {"A": 3, "B": 2}
    assert formation["percentage"] == 100.0
    assert theirs["totalDefensiveRounds"] == 0


def test_offensive_setup_reads_snapshot_at_first_kill() -> None:
    mid = {pid: (2500, 3000) for pid in AGENTS}
    at_kill = {"p1": (10, 0), "p2": (20, 0), "p3": (30, 0), "p4": (2500, 3000), "p5": (2400, 2900)}
    kills = [{"killerId": "p1", "victimId": "q1", "occurredAt": _at(41)}]
    rounds = [_build_round(1, "attacker", snapshots={30: mid, 40: at_kill}, kills=kills)]
    result = offensive_setup_analysis(
        _build_document([_build_game(rounds)]), team_id="t1", callouts=_build_callouts()
    )
    [team] = result["data"]["teams"]

    assert team["totalOffensiveRounds"] == 1
    assert team["byMap"][0]["formations"][0]["formationKey"] == "3 A, 2 Mid"


def test_is_buy_round_checks_previous_win_and_rifles() -> None:
    game = _build_game([])
    rifle = _build_round(5, "attacker", purchases=[{"playerId": "p1", "playerName": "player1", "items": ["Vandal"]}])
    pistol = _build_round(5, "attacker", purchases=[{"playerId": "p1", "playerName": "player1", "items": ["Ghost"]}])
    won_previous = _build_round(4, "attacker", winner="t1")

    assert is_buy_round(rifle, None, "t1", game)
    assert not is_buy_round(pistol, None, "t1", game)
    assert is_buy_round(pistol, won_previous, "t1", game)
    assert not is_buy_round(rifle, None, "t2", game)


def test_economy_setup_skips_pistol_rounds() -> None:
    rounds = [
        _build_round(1, "defender", winner="t1", snapshots={30: A_STACK}),
        _build_round(2, "defender", winner="t2", snapshots={30: A_STACK}),
        _build_round(3, "defender", winner="t2", snapshots={30: A_STACK}),
    ]
    result = economy_setup_analysis(
        _build_document([_build_game(rounds)]), team_id="t1", callouts=_build_callouts()
    )
    [team] = result["data"]["teams"]

    assert team["defensive"]["buy"]["totalRounds"] == 1
    assert team["defensive"]["eco"]["totalRounds"] == 1
    assert team["offensive"]["buy"]["totalRounds"] == 0


def test_player_positions_cluster_repeated_spots() -> None:
    rounds = [
        _build_round(1, "defender", snapshots={30: {"p1": (10, 10)}}),
        _build_round(2, "defender", snapshots={30: {"p1": (20, 20)}}),
    ]
    result = player_position_analysis(
        _build_document([_build_game(rounds)]), team_id="t1", callouts=_build_callouts()
    )
    [player] = result["data"]["teams"][0]["byMap"][0]["players"]

    assert player["playerId"] == "p1"
    assert player["totalRounds"] == 2
    [cluster] = player["clusters"]
    assert (cluster["centroidX"], cluster["centroidY"]) == (15.0, 15.0)
    assert cluster["callout"] == "A: Site"
    assert cluster["count"] == 2
    assert cluster["percentage"] == 100.0


def test_ability_usage_clusters_early_casts() -> None:
    def cast(second: float, x: float) -> dict:
        return {"playerId": "p1", "playerName": "player1", "abilityId": "updraft", "agentId": "jett",
                "occurredAt": _at(second), "position": {"x": x, "y": 0}}

    rounds = [
        _build_round(1, "defender", abilities=[cast(32, 10), cast(33, 400)]),
        _build_round(2, "defender", abilities=[cast(31, 50)]),
        # Cast outside the five second window.
        _build_round(3, "defender", abilities=[cast(40, 60)]),
    ]
    result = ability_usage_analysis(
        _build_document([_build_game(rounds)]), team_id="t1", callouts=_build_callouts()
    )
    [team] = result["data"]["teams"]

    assert team["offensive"] == []
    players = {player["playerId"]: player for player in team["defensive"][0]["players"]}
    player = players["p1"]
    assert player["totalRounds"] == 3
    [cluster] = player["clusters"]
    assert cluster["abilityId"] == "updraft"
    assert cluster["agentName"] == "jett"
    assert cluster["count"] == 2
    # Teammates with no casts still report the rounds they played.
    assert players["p2"]["totalRounds"] == 3
    assert players["p2"]["clusters"] == []


def test_player_positions_keep_rounds_of_players_without_clusters() -> None:
    rounds = [
        _build_round(1, "defender", snapshots={30: {"p1": (10, 10), "p2": (0, 0)}}),
        _build_round(2, "defender", snapshots={30: {"p1": (4000, 4000), "p2": (5, 5)}}),
    ]
    result = player_position_analysis(
        _build_document([_build_game(rounds)]), team_id="t1", callouts=_build_callouts()
    )
    players = {player["playerId"]: player for player in result["data"]["teams"][0]["byMap"][0]["players"]}

    assert players["p1"]["totalRounds"] == 2
    assert players["p1"]["clusters"] == []
    assert players["p2"]["clusters"][0]["count"] == 2


def _build_post_plant_round() -> dict:
    # p1 dies three seconds after freeze time, p5 holds B while the rest stack A.
    held = {"p1": (300, 0), "p2": (10, 0), "p3": (100, 0), "p4": (200, 0), "p5": (5000, 0)}
    return _build_round(
        1,
        "attacker",
        snapshots={40: held, 50: held},
        kills=[{"killerId": "q1", "victimId": "p1", "occurredAt": _at(33)}],
        plant={"playerId": "p2", "playerName": "player2", "occurredAt": _at(40), "position": {"x": 5, "y": 5}},
    )


def test_post_plant_skips_players_dead_before_measurement() -> None:
    document = _build_document([_build_game([_build_post_plant_round()])])
    result = post_plant_analysis(document, team_id="t1", callouts=_build_callouts())
    [map_entry] = result["data"]["teams"][0]["byMap"]

    assert map_entry["totalPlantsOnMap"] == 1
    [site] = map_entry["bySite"]
    assert site["site"] == "A"
    assert {player["playerId"] for player in site["players"]} == {"p2", "p3", "p4", "p5"}
    p5 = next(player for player in site["players"] if player["playerId"] == "p5")
    assert p5["clusters"][0]["callout"] == "B: Site"


def test_lurker_counts_dead_players_in_attack_rounds() -> None:
    document = _build_document([_build_game([_build_post_plant_round()])])
    result = lurker_analysis(document, team_id="t1", callouts=_build_callouts())
    [map_entry] = result["data"]["teams"][0]["byMap"]
    players = {player["playerId"]: player for player in map_entry["players"]}

    assert map_entry["totalAttackRounds"] == 1
    assert players["p1"]["totalAttackRounds"] == 1
    assert players["p1"]["lurkCount"] == 0
    assert players["p5"]["lurkCount"] == 1
    assert players["p5"]["lurkPercentage"] == 100.0
    [push] = players["p5"]["byPushSite"]
    assert push["pushSite"] == "A"
    assert push["lurkLocations"] == [{"superRegion": "B", "count": 1, "percentage": 100.0}]
    assert map_entry["players"][0]["playerId"] == "p5"


def test_lurker_keeps_maps_without_lurks() -> None:
    stacked = {"p1": (10, 0), "p2": (20, 0), "p3": (30, 0), "p4": (40, 0), "p5": (50, 0)}
    rounds = [_build_round(1, "attacker", snapshots={40: stacked})]
    result = lurker_analysis(_build_document([_build_game(rounds)]), team_id="t1", callouts=_build_callouts())
    [map_entry] = result["data"]["teams"][0]["byMap"]

    assert map_entry["totalAttackRounds"] == 1
    assert all(player["lurkCount"] == 0 for player in map_entry["players"])


def test_playback_groups_rounds_by_side() -> None:
    rounds = [
        _build_round(1, "attacker", snapshots={0: A_STACK, 30: A_STACK}),
        _build_round(2, "defender", winner="t2", snapshots={60: A_STACK}),
    ]
    result = playback_analysis(_build_document([_build_game(rounds)]), team_id="t1", callouts=_build_callouts())
    [map_entry] = result["data"]["teams"][0]["byMap"]

    assert map_entry["bounds"]["minX"] == -750.0
    [attack] = map_entry["attacker"]
    assert attack["roundId"] == "S1-1-1"
    assert attack["isWin"] is True
    assert attack["roundStartTime"] == _ms(0)
    assert attack["roundEndTime"] == _ms(30)
    assert map_entry["defender"][0]["isWin"] is False


def test_run_analytics_skips_failures_and_empty_sections() -> None:
    def broken(document: dict, team_id: Optional[str] = None, callouts: Optional[CalloutTable] = None) -> dict:
        raise RuntimeError("boom")

    veto = [_veto(1, "ban", "ascent", "t1"), _veto(2, "pick", "haven", "t2")]
    document = _build_document([_build_game([])], veto=veto)
    analytics = run_analytics(
        document,
        callouts=_build_callouts(),
        analyzers=[("broken", broken), ("mapVetoAnalysis", map_veto_analysis), ("lurkerAnalysis", lurker_analysis)],
    )

    assert analytics["seriesId"] == "S1"
    assert [result["name"] for result in analytics["results"]] == ["mapVetoAnalysis"]


def test_analyzers_for_rejects_unknown_title() -> None:
    assert [name for name, _ in analyzers_for("lol")][-3:] == ["draftAnalysis", "banPhaseAnalysis", "classWinRate"]
    assert len(analyzers_for("lol")) == 10
    with pytest.raises(ValueError):
        analyzers_for("cs2")
