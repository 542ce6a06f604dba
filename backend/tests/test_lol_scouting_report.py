from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Iterator, List, Tuple

sys.path.append(str(Path(__file__).resolve().parents[1]))

from gridscout.analytics.runner import results_by_name, run_analytics
from gridscout.lol_scouting_report import build_lol_scouting_report
from gridscout.scouting_report import ReportEntry

from test_lol_analyzers import REFERENCE, build_full_document


def _entry(series_id: str, opponent: str = "Team Liquid") -> ReportEntry:
    document = build_full_document(series_id)
    analytics = run_analytics(document, title="lol", lol_reference=REFERENCE)
    return ReportEntry(series_id, opponent, "2024-06-01", results_by_name(analytics), document)


def _report(team_id: str, count: int = 2) -> dict:
    return build_lol_scouting_report(team_id, [_entry(f"S{i}") for i in range(1, count + 1)])


def _walk_percentages(node: Any, path: str = "") -> Iterator[Tuple[str, float]]:
    if isinstance(node, dict):
        for key, value in node.items():
            if key.endswith(("ercentage", "Rate")) and isinstance(value, (int, float)):
                yield f"{path}.{key}", value
            else:
                yield from _walk_percentages(value, f"{path}.{key}")
    elif isinstance(node, list):
        for index, value in enumerate(node):
            yield from _walk_percentages(value, f"{path}[{index}]")


def test_lol_report_header_and_breakdown() -> None:
    report = _report("blue")

    assert report["teamName"] == "Cloud9"
    assert report["seriesAnalyzed"] == 2
    [series, _] = report["seriesBreakdown"]
    assert series["seriesId"] == "S1"
    assert series["opponent"] == "Team Liquid"
    [game] = series["games"]
    assert game["isFirstPick"] is True
    assert game["enemyTeamId"] == "red"
    assert [a["isOurTeam"] for a in game["draftActions"][:2]] == [True, False]


def test_lol_report_lane_and_objective_sections() -> None:
    blue = _report("blue")
    red = _report("red")

    assert red["counterPickStats"]["topLane"]["counterPickValues"] == [-500, -500]
    assert red["counterPickStats"]["midLane"]["avgWorthDiffWhenCounterPicking"] == 400
    assert blue["counterPickStats"]["topLane"]["gamesCounterPicked"] == 2

    assert blue["drakePrioStats"] == {
        "totalDrakes": 2,
        "timesWeHadPrio": 2,
        "drakesWhenHadPrio": 0,
        "drakesWhenNoPrio": 2,
        "prioWinRate": 0,
    }
    assert red["drakePrioStats"]["timesWeHadPrio"] == 0

    assert blue["supportGrubStats"]["recallTimes"] == [192, 192]
    assert red["supportGrubStats"]["avgRecallTimeBeforeGrub"] == 322
    assert blue["adcGrubStats"]["adcPresentRate"] == 100
    assert red["adcGrubStats"]["totalFirstGrubs"] == 0

    assert blue["drakeGoldHoldingStats"] == {"totalDrakes": 2, "avgMidGoldHeld": 1200, "avgAdcGoldHeld": 800}


def test_lol_report_gold_lead_by_role_is_ours_minus_theirs() -> None:
    leads = _report("blue")["goldLeadAt15ByRole"]

    assert leads["top"] == {"avg": 500, "values": [500, 500]}
    assert leads["mid"]["avg"] == -400
    assert leads["bot"]["avg"] == 1000
    assert leads["support"]["avg"] == -100


def test_lol_report_comebacks_and_thrown_leads() -> None:
    blue = _report("blue")["comebackStats"]
    red = _report("red")["comebackStats"]

    assert blue["totalGames"] == 2
    assert blue["leadHoldRate"] == 0
    assert red["comebackRate"] == 100
    assert red["avgComebackDeficit"] == 900


def test_lol_report_class_win_rates_need_two_games() -> None:
    assert _report("red", count=1)["classWinRateStats"]["top"] == []

    red = _report("red")["classWinRateStats"]
    assert red["top"] == [{"className": "Vanguard", "wins": 2, "games": 2, "winRate": 100.0}]
    blue = _report("blue")["classWinRateStats"]
    assert [row["className"] for row in blue["support"]] == ["Catcher", "Warden"]
    assert blue["jungle"][0]["winRate"] == 0


def test_lol_report_first_pick_ban_phase() -> None:
    stats = _report("blue")["banPhaseStats"]
    first = stats["firstPick"]

    assert stats["totalGames"] == 2
    assert (stats["firstPickGames"], stats["secondPickGames"]) == (2, 0)
    assert first["ban1"] == [{"champion": "Zed", "count": 2, "percentage": 100.0}]
    assert [row["champion"] for row in first["priorityBans"]] == ["Kalista", "LeeSin", "Zed"]
    assert first["adaptiveBans"] == [
        {"ifEnemyBans": "Yasuo", "thenWeBan": [{"champion": "LeeSin", "count": 2, "percentage": 100.0}], "sampleSize": 2}
    ]
    assert first["firstPicks"][0] == {"champion": "Aatrox", "count": 2, "available": 2, "percentage": 100.0}
    assert stats["secondPick"]["priorityBans"] == []
    assert [row["champion"] for row in stats["bansByGame"]["game1"]] == ["Kalista", "LeeSin", "Zed"]

    patterns = stats["secondBanPhasePatterns"]
    assert [p["ifWePick"] for p in patterns] == ["Aatrox", "Azir", "Vi"]
    assert [ban["champion"] for ban in patterns[0]["weBan"]] == ["Braum", "Nautilus"]
    assert patterns[0]["sampleSize"] == 2


def test_lol_report_second_pick_replies() -> None:
    second = _report("red")["banPhaseStats"]["secondPick"]

    assert second["pickPairs"] == [{"pair": ["Ornn", "Sejuani"], "count": 2, "percentage": 100.0}]
    [reply] = second["adaptivePicks"]
    assert reply["ifEnemyPicks"] == "Aatrox"
    assert [row["champion"] for row in reply["thenWePick"]] == ["Ornn", "Sejuani"]
    assert reply["thenWePick"][0]["banRate"] == 0
    assert second["adaptiveBans"][0]["ifEnemyBans"] == "Zed"


def test_lol_report_frequencies_stay_within_their_denominators() -> None:
    for team_id in ("blue", "red"):
        values: List[Tuple[str, float]] = list(_walk_percentages(_report(team_id, count=3)))
        assert values
        for path, value in values:
            assert 0 <= value <= 100, path


def test_lol_report_without_analytics_has_empty_sections() -> None:
    report = build_lol_scouting_report("blue", [("S1", "Team Liquid", "", {}, build_full_document("S1"))])

    assert report["teamName"] == "Cloud9"
    assert report["banPhaseStats"] is None
    assert report["seriesBreakdown"][0]["games"] == []
