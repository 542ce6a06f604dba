from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from gridscout.analytics.player_positions import player_position_analysis
from gridscout.callouts import CalloutTable
from gridscout.scouting_report import ReportEntry, build_scouting_report, series_breakdown


def _action(sequence: int, action: str, map_id: str, team_id: Optional[str]) -> dict:
    names = {"t1": "Sentinels", "t2": "Cloud9"}
    return {
        "sequenceNumber": sequence,
        "occurredAt": f"2024-06-01T12:00:0{sequence}Z",
        "action": action,
        "mapId": map_id,
        "teamId": team_id,
        "teamName": names.get(team_id or ""),
    }


def _build_sequence(
    team_id: str,
    bans: List[Tuple[int, str]],
    picks: List[Tuple[int, str]],
    decider: str,
    opponent_bans: List[str],
    bans_before_pick: List[str],
) -> dict:
    return {
        "teamId": team_id,
        "banPhase1Actions": [_action(seq, "ban", map_id, team_id) for seq, map_id in bans],
        "pickActions": [_action(seq, "pick", map_id, team_id) for seq, map_id in picks],
        "banPhase2Actions": [],
        "deciderMap": decider,
        "allBansBeforeOurPick": bans_before_pick,
        "opponentBansBeforeOurFirstBan": opponent_bans,
    }


def _build_veto(ours: dict, theirs: dict) -> dict:
    return {
        "totalMaps": 2,
        "teams": [
            {"teamId": "t1", "teamName": "Sentinels", "vetoSequences": [ours]},
            {"teamId": "t2", "teamName": "Cloud9", "vetoSequences": [theirs]},
        ],
    }


def _build_agents(maps_played: int, wins: int) -> dict:
    pick = {"agentId": "jett", "agentName": "Jett", "count": maps_played, "wins": wins}
    return {
        "totalGames": maps_played,
        "teams": [
            {
                "teamId": "t1",
                "teamName": "Sentinels",
                "totalMapsPlayed": maps_played,
                "wins": wins,
                "agentPicksByMap": [{"mapId": "ascent", "gamesPlayed": maps_played, "agentPicks": [pick]}],
                "playerAgentPreferences": [
                    {"playerId": "p1", "playerName": "tenz", "gamesPlayed": maps_played, "wins": wins, "agentPicks": [pick]}
                ],
                "gameDetails": [
                    {
                        "gameNumber": 1,
                        "mapId": "ascent",
                        "winnerTeamId": "t1",
                        "isWin": True,
                        "playerStats": [{"playerId": "p1", "playerName": "tenz", "agentId": "jett", "agentName": "Jett", "kills": 21}],
                    }
                ],
            }
        ],
    }


def _build_formations(total: int, stacked: int, retake: int) -> dict:
    return {
        "teams": [
            {
                "teamId": "t1",
                "teamName": "Sentinels",
                "totalDefensiveRounds": total,
                "byMap": [
                    {
                        "mapId": "ascent",
                        "totalRounds": total,
                        "formations": [
                            {"formationKey": "3 A, 2 B", "superRegions": {"A": 3, "B": 2}, "count": stacked},
                            {"formationKey": "5 B", "superRegions": {"B": 5}, "count": retake},
                        ],
                    }
                ],
            }
        ]
    }


def _cluster(callout: str, centroid: Tuple[float, float], positions: List[Tuple[float, float]]) -> dict:
    return {
        "centroidX": centroid[0],
        "centroidY": centroid[1],
        "callout": callout,
        "superRegion": callout.split(":")[0],
        "count": len(positions),
        "positions": [{"x": x, "y": y} for x, y in positions],
    }


def _build_positions(clusters: List[dict], total_rounds: int) -> dict:
    return {
        "teams": [
            {
                "teamId": "t1",
                "teamName": "Sentinels",
                "byMap": [
                    {
                        "mapId": "ascent",
                        "players": [
                            {"playerId": "p1", "playerName": "tenz", "totalRounds": total_rounds, "clusters": clusters}
                        ],
                    }
                ],
            }
        ]
    }


def _build_entries() -> List[ReportEntry]:
    first = {
        "mapVetoAnalysis": _build_veto(
            _build_sequence("t1", [(1, "ascent")], [(3, "haven")], "lotus", ["bind"], ["ascent", "bind"]),
            _build_sequence("t2", [(2, "bind")], [(4, "split")], "lotus", ["ascent"], ["ascent", "bind"]),
        ),
        "agentPickAnalysis": _build_agents(2, 1),
        "defensiveSetupAnalysis": _build_formations(4, 3, 1),
        "playerPositionAnalysis": _build_positions([_cluster("A: Site", (10, 0), [(0, 0), (20, 0)])], 2),
    }
    second = {
        "mapVetoAnalysis": _build_veto(
            _build_sequence("t1", [(2, "bind")], [(3, "haven")], "icebox", ["ascent"], ["ascent", "bind"]),
            _build_sequence("t2", [(1, "ascent")], [(4, "pearl")], "icebox", [], ["ascent", "bind"]),
        ),
        "agentPickAnalysis": _build_agents(1, 1),
        "defensiveSetupAnalysis": _build_formations(2, 1, 1),
        "playerPositionAnalysis": _build_positions(
            [_cluster("A: Site", (40, 0), [(40, 0)]), _cluster("B: Site", (5000, 0), [(5000, 0)])], 2
        ),
    }
    return [
        ReportEntry("S1", "Cloud9", "2024-06-01", first, {"games": [{}, {}]}),
        ReportEntry("S2", "Cloud9", "2024-06-08", second),
    ]


def test_veto_stats_use_availability_and_series_counts() -> None:
    report = build_scouting_report("t1", _build_entries())
    veto = report["mapVetoStats"]

    ban1 = {row["mapId"]: row for row in veto["banPhase1"]["ban1"]}
    assert ban1["ascent"]["percentage"] == 100.0
    assert ban1["ascent"]["available"] == 1
    assert ban1["bind"]["count"] == 1
    assert ban1["haven"]["available"] == 2
    assert [row["mapId"] for row in veto["banPhase1"]["ban1"][:2]] == ["ascent", "bind"]
    assert [(row["mapId"], row["percentage"]) for row in veto["banPhase1"]["allBans"]] == [
        ("ascent", 50.0),
        ("bind", 50.0),
    ]
    assert veto["mapPicks"]["pick1"] == [
        {"mapId": "haven", "mapName": "Haven", "count": 2, "available": 2, "percentage": 100.0}
    ]
    # Maps the opponent removed before our pick never count as available.
    assert [row["mapId"] for row in veto["mapPicks"]["allPicks"]] == ["haven", "icebox", "lotus"]
    assert [row["mapId"] for row in veto["deciderMaps"]] == ["icebox", "lotus"]
    assert veto["banPhase2"] is None


def test_agent_formation_and_cluster_merges_sum_counts() -> None:
    report = build_scouting_report("t1", _build_entries())

    assert report["teamName"] == "Sentinels"
    assert report["seriesAnalyzed"] == 2
    assert report["mapsPlayed"] == 3

    [jett] = report["agentStats"]["overallPicks"]
    assert (jett["count"], jett["totalGames"], jett["wins"]) == (3, 3, 2)
    assert jett["winPercentage"] == pytest.approx(66.666, rel=1e-3)
    [player] = report["agentStats"]["playerPreferences"]
    assert (player["totalMapsPlayed"], player["wins"]) == (3, 2)

    [formations] = report["defensiveSetups"]["byMap"]
    assert report["defensiveSetups"]["totalDefensiveRounds"] == 6
    assert formations["totalRounds"] == 6
    assert [(f["formationKey"], f["count"]) for f in formations["formations"]] == [("3 A, 2 B", 4), ("5 B", 2)]
    assert formations["formations"][0]["percentage"] == pytest.approx(66.666, rel=1e-3)

    [position_player] = report["playerPositions"]["byMap"][0]["players"]
    assert position_player["totalRounds"] == 4
    a_site, b_site = position_player["clusters"]
    assert a_site["callout"] == "A: Site"
    assert a_site["count"] == 3
    assert a_site["positions"] == [{"x": 0, "y": 0}, {"x": 20, "y": 0}, {"x": 40, "y": 0}]
    assert (a_site["centroidX"], a_site["centroidY"]) == (20.0, 0.0)
    assert a_site["percentage"] == 75.0
    assert b_site["percentage"] == 25.0


def test_report_does_not_depend_on_series_order() -> None:
    entries = _build_entries()
    forward = build_scouting_report("t1", entries)
    backward = build_scouting_report("t1", list(reversed(entries)))

    for report in (forward, backward):
        report.pop("generatedAt")
        report.pop("seriesBreakdown")
    assert forward == backward


def test_missing_sections_are_null() -> None:
    report = build_scouting_report("t1", [("S9", "Cloud9", "2024-06-15", {})])

    assert report["teamName"] == "Unknown Team"
    assert report["mapsPlayed"] == 0
    for section in (
        "mapVetoStats",
        "agentStats",
        "defensiveSetups",
        "offensiveSetups",
        "economySetups",
        "playerPositions",
        "lurkerStats",
        "abilityUsage",
        "postPlant",
        "postPlantAbility",
    ):
        assert report[section] is None
    assert report["seriesBreakdown"] == [
        {"seriesId": "S9", "opponent": "Cloud9", "date": "2024-06-15", "mapsPlayed": 0, "mapVeto": [], "games": []}
    ]


def test_series_breakdown_interleaves_both_vetoes() -> None:
    entry = _build_entries()[0]
    breakdown = series_breakdown(entry, "t1")

    assert breakdown["mapsPlayed"] == 2
    assert [(a["sequenceNumber"], a["action"], a["mapId"], a["isOurTeam"]) for a in breakdown["mapVeto"]] == [
        (1, "ban", "ascent", True),
        (2, "ban", "bind", False),
        (3, "pick", "haven", True),
        (4, "pick", "split", False),
        (5, "decider", "lotus", False),
    ]
    [game] = breakdown["games"]
    assert game["ourAgents"][0]["kills"] == 21
    assert game["ourAgents"][0]["deaths"] == 0


def _build_lurk(total: int, lurks: int) -> dict:
    push = [{"pushSite": "A", "lurkLocations": [{"superRegion": "B", "count": lurks}]}] if lurks else []
    return {
        "teams": [
            {
                "teamId": "t1",
                "teamName": "Sentinels",
                "byMap": [
                    {
                        "mapId": "ascent",
                        "totalAttackRounds": total,
                        "players": [
                            {"playerId": "p1", "playerName": "tenz", "totalAttackRounds": total,
                             "lurkCount": lurks, "byPushSite": push}
                        ],
                    }
                ],
            }
        ]
    }


def _third_entry() -> ReportEntry:
    results = {
        "mapVetoAnalysis": _build_veto(
            _build_sequence("t1", [(1, "pearl")], [(3, "split")], "ascent", [], ["pearl", "lotus"]),
            _build_sequence("t2", [(2, "lotus")], [(4, "bind")], "ascent", ["pearl"], ["pearl", "lotus"]),
        ),
        "agentPickAnalysis": _build_agents(3, 1),
        "defensiveSetupAnalysis": _build_formations(5, 2, 3),
        "playerPositionAnalysis": _build_positions([_cluster("B: Site", (5010, 0), [(5000, 0), (5020, 0)])], 3),
        "lurkerAnalysis": _build_lurk(4, 1),
    }
    return ReportEntry("S3", "100 Thieves", "2024-06-15", results)


def _walk_percentages(node, path="report"):
    if isinstance(node, dict):
        for key, value in node.items():
            if key.endswith("ercentage") or key.endswith("Rate"):
                yield f"{path}.{key}", value
            yield from _walk_percentages(value, f"{path}.{key}")
    elif isinstance(node, list):
        for index, value in enumerate(node):
            yield from _walk_percentages(value, f"{path}[{index}]")


def test_every_report_frequency_stays_within_its_denominator() -> None:
    entries = _build_entries() + [_third_entry()]
    entries[0].results["lurkerAnalysis"] = _build_lurk(3, 0)
    report = build_scouting_report("t1", entries)

    found = list(_walk_percentages(report))
    assert found
    for path, value in found:
        assert 0 <= value <= 100, path


def test_report_is_the_same_for_any_series_order() -> None:
    first, second = _build_entries()
    third = _third_entry()

    reports = [
        build_scouting_report("t1", [first, second, third]),
        build_scouting_report("t1", [third, first, second]),
        build_scouting_report("t1", [second, third, first]),
    ]
    for report in reports:
        report.pop("generatedAt")
        report.pop("seriesBreakdown")
    assert reports[0] == reports[1] == reports[2]


def test_cluster_share_counts_rounds_from_series_without_clusters() -> None:
    callouts = CalloutTable.from_payload(
        [{"displayName": "Ascent", "callouts": [{"regionName": "Site", "superRegionName": "A", "location": {"x": 0, "y": 0}}]}]
    )

    def document(series_id: str, spots: List[Tuple[float, float]]) -> dict:
        rounds = [
            {
                "roundNumber": number,
                "teamSides": [{"teamId": "t1", "side": "defender"}, {"teamId": "t2", "side": "attacker"}],
                "coordinateTracking": [{"time": number * 1000, "playerCoordinates": [{"playerId": "p1", "x": x, "y": y}]}],
            }
            for number, (x, y) in enumerate(spots, start=1)
        ]
        return {
            "seriesId": series_id,
            "teams": [{"id": "t1", "name": "Sentinels"}, {"id": "t2", "name": "Cloud9"}],
            "games": [
                {"mapId": "ascent", "players": [{"id": "p1", "name": "tenz", "teamId": "t1"}], "rounds": rounds}
            ],
        }

    scattered = player_position_analysis(document("S1", [(0, 0), (3000, 3000)]), "t1", callouts)
    repeated = player_position_analysis(document("S2", [(0, 0), (10, 0)]), "t1", callouts)
    entries = [
        ReportEntry("S1", "Cloud9", "2024-06-01", {"playerPositionAnalysis": scattered["data"]}),
        ReportEntry("S2", "Cloud9", "2024-06-08", {"playerPositionAnalysis": repeated["data"]}),
    ]
    report = build_scouting_report("t1", entries)

    [player] = report["playerPositions"]["byMap"][0]["players"]
    assert player["totalRounds"] == 4
    [cluster] = player["clusters"]
    assert cluster["count"] == 2
    assert cluster["percentage"] == 50.0


def test_lurk_share_counts_attack_rounds_from_series_without_lurks() -> None:
    entries = [
        ReportEntry("S1", "Cloud9", "2024-06-01", {"lurkerAnalysis": _build_lurk(3, 0)}),
        ReportEntry("S2", "Cloud9", "2024-06-08", {"lurkerAnalysis": _build_lurk(1, 1)}),
    ]
    report = build_scouting_report("t1", entries)

    [map_entry] = report["lurkerStats"]["byMap"]
    assert map_entry["totalAttackRounds"] == 4
    [player] = map_entry["players"]
    assert player["totalAttackRounds"] == 4
    assert player["lurkPercentage"] == 25.0
