"""Runs every analyzer of a title against one reconstructed series."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from gridscout.analytics.ability_usage import ability_usage_analysis
from gridscout.analytics.agent_picks import agent_pick_analysis
from gridscout.analytics.common import Analyzer, utc_now_iso
from gridscout.analytics.defensive_setup import defensive_setup_analysis
from gridscout.analytics.economy_setup import economy_setup_analysis
from gridscout.analytics.lol_ban_phase import ban_phase_analysis
from gridscout.analytics.lol_class_win_rate import class_win_rate
from gridscout.analytics.lol_comeback import comeback_stats
from gridscout.analytics.lol_counter_pick import counter_pick_gold_diff
from gridscout.analytics.lol_draft import draft_analysis
from gridscout.analytics.lol_drake_gold import drake_gold_holding
from gridscout.analytics.lol_drake_prio import bot_lane_drake_prio
from gridscout.analytics.lol_grubs import adc_joined_grubs, support_grub_recall
from gridscout.analytics.lol_player_worth import player_worth_at_15
from gridscout.analytics.lurker import lurker_analysis
from gridscout.analytics.map_veto import map_veto_analysis
from gridscout.analytics.offensive_setup import offensive_setup_analysis
from gridscout.analytics.playback import playback_analysis
from gridscout.analytics.player_positions import player_position_analysis
from gridscout.analytics.post_plant import post_plant_analysis
from gridscout.analytics.post_plant_ability import post_plant_ability_analysis
from gridscout.callouts import CalloutTable, default_callout_table
from gridscout.lol_reference import LolReference, default_lol_reference
from gridscout.serialization import _convert_to_serializable

logger = logging.getLogger(__name__)

VALORANT_ANALYZERS: List[Tuple[str, Analyzer]] = [
    ("mapVetoAnalysis", map_veto_analysis),
    ("agentPickAnalysis", agent_pick_analysis),
    ("defensiveSetupAnalysis", defensive_setup_analysis),
    ("offensiveSetupAnalysis", offensive_setup_analysis),
    ("economySetupAnalysis", economy_setup_analysis),
    ("playerPositionAnalysis", player_position_analysis),
    ("abilityUsageAnalysis", ability_usage_analysis),
    ("postPlantAnalysis", post_plant_analysis),
    ("postPlantAbilityAnalysis", post_plant_ability_analysis),
    ("lurkerAnalysis", lurker_analysis),
    ("playbackAnalysis", playback_analysis),
]

LOL_ANALYZERS: List[Tuple[str, Analyzer]] = [
    ("counterPickGoldDiff", counter_pick_gold_diff),
    ("botLaneDrakePrio", bot_lane_drake_prio),
    ("supportGrubRecall", support_grub_recall),
    ("adcJoinedGrubs", adc_joined_grubs),
    ("playerWorthAt15", player_worth_at_15),
    ("drakeGoldHolding", drake_gold_holding),
    ("comebackStats", comeback_stats),
    ("draftAnalysis", draft_analysis),
    ("banPhaseAnalysis", ban_phase_analysis),
    ("classWinRate", class_win_rate),
]

ANALYZERS_BY_TITLE: Dict[str, List[Tuple[str, Analyzer]]] = {
    "val": VALORANT_ANALYZERS,
    "lol": LOL_ANALYZERS,
}


def analyzers_for(title: str) -> List[Tuple[str, Analyzer]]:
    try:
        return ANALYZERS_BY_TITLE[title]
    except KeyError:
        raise ValueError(f"Unsupported title '{title}' (expected one of {sorted(ANALYZERS_BY_TITLE)})")


def run_analytics(
    document: Dict[str, Any],
    title: str = "val",
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
    analyzers: Optional[List[Tuple[str, Analyzer]]] = None,
    lol_reference: Optional[LolReference] = None,
) -> Dict[str, Any]:
    """Run each analyzer, dropping the ones with nothing to report.

    An analyzer that raises is logged and skipped so one bad section never
    loses the rest of the series. Every analyzer is called as
    ``analyzer(document, team_id, reference)``, where the reference is the
    callout table for VALORANT and the role/class tables for LoL.
    """
    if analyzers is None:
        analyzers = analyzers_for(title)
    reference: Any
    if title == "lol":
        reference = lol_reference or default_lol_reference()
    else:
        reference = callouts or default_callout_table()
    series_id = document.get("seriesId") or ""

    results: List[Dict[str, Any]] = []
    t_start = time.perf_counter()
    for name, analyzer in analyzers:
        t0 = time.perf_counter()
        try:
            result = analyzer(document, team_id, reference)
        except Exception:
            logger.exception(f"Analyzer {name} failed for series {series_id}")
            continue
        logger.debug(f"[TIMING] {name}: {time.perf_counter() - t0:.3f}s")
        if result is None:
            logger.info(f"Analyzer {name} skipped for series {series_id}: insufficient data")
            continue
        results.append(result)

    logger.info(
        f"[TIMING] analytics for series {series_id}: {time.perf_counter() - t_start:.2f}s "
        f"({len(results)}/{len(analyzers)} analyzers)"
    )
    return _convert_to_serializable(
        {"seriesId": series_id, "generatedAt": utc_now_iso(), "results": results}
    )


def results_by_name(analytics: Dict[str, Any]) -> Dict[str, Any]:
    """Map analyzer name to its data, the shape the scouting report consumes."""
    return {result["name"]: result["data"] for result in analytics.get("results") or []}
