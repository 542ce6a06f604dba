"""Merge one team's League of Legends analytics across series into a report.

Only rows that belong to the scouted team are kept. Counts are summed over
every series first and turned into averages or percentages once at the end;
ties are broken by name so the report does not depend on series order.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from gridscout.analytics.common import UNKNOWN_TEAM, utc_now_iso
from gridscout.analytics.lol_common import average
from gridscout.lol_reference import ROLES
from gridscout.scouting_report import EntryLike, ReportEntry, _as_entry, _our_team, _pct
from gridscout.serialization import _convert_to_serializable

logger = logging.getLogger(__name__)

CLASS_ROLES = ("top", "jungle", "support")
MIN_CLASS_GAMES = 2
MIN_SAMPLE = 2
TOP_CHAMPIONS = 10
TOP_REACTIONS = 5
TOP_REACTION_GROUPS = 10
TOP_SECOND_PHASE_PATTERNS = 15


def _collect(entries: Sequence[ReportEntry], name: str) -> List[Dict[str, Any]]:
    return [entry.results[name] for entry in entries if entry.results.get(name)]


def _champion_frequencies(champions: Iterable[str], total: int, limit: int = TOP_CHAMPIONS) -> List[Dict[str, Any]]:
    rows = [
        {"champion": champion, "count": count, "percentage": _pct(count, total)}
        for champion, count in Counter(champions).items()
    ]
    rows.sort(key=lambda row: (-row["count"], row["champion"]))
    return rows[:limit]


# ---------------------------------------------------------------------------
# Lane and objective sections
# ---------------------------------------------------------------------------


def counter_pick_stats(data: List[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    lanes = {}
    for lane in ("topLane", "midLane"):
        picking = [
            row["worthDiff"]
            for series in data
            for row in (series.get(lane) or {}).get("counterPickGames") or []
            if row.get("teamId") == team_id
        ]
        picked = [
            row["worthDiff"]
            for series in data
            for row in (series.get(lane) or {}).get("counterPickedGames") or []
            if row.get("teamId") == team_id
        ]
        picking.sort()
        picked.sort()
        lanes[lane] = {
            "gamesAsCounterPick": len(picking),
            "gamesCounterPicked": len(picked),
            "avgWorthDiffWhenCounterPicking": average(picking),
            "avgWorthDiffWhenCounterPicked": average(picked),
            "counterPickValues": picking,
            "counterPickedValues": picked,
        }
    return lanes


def drake_prio_stats(data: List[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    total = had_prio = secured = 0
    for series in data:
        for drake in series.get("drakeDetails") or []:
            if team_id == drake.get("blueTeamId"):
                our_side = "blue"
            elif team_id == drake.get("redTeamId"):
                our_side = "red"
            else:
                continue
            total += 1
            if drake.get("teamWithPrio") != our_side:
                continue
            had_prio += 1
            if drake.get("killerTeamId") == team_id:
                secured += 1
    return {
        "totalDrakes": total,
        "timesWeHadPrio": had_prio,
        "drakesWhenHadPrio": secured,
        "drakesWhenNoPrio": had_prio - secured,
        "prioWinRate": _pct(secured, had_prio),
    }


def support_grub_stats(data: List[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    recall_times = []
    for series in data:
        for grub in series.get("grubDetails") or []:
            for side in ("blue", "red"):
                recall = grub.get(f"{side}SupportRecallTime")
                if grub.get(f"{side}TeamId") == team_id and recall is not None:
                    recall_times.append(recall)
    recall_times.sort()
    return {
        "totalGrubs": len(recall_times),
        "avgRecallTimeBeforeGrub": average(recall_times) if recall_times else None,
        "recallTimes": recall_times,
    }


def adc_grub_stats(data: List[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    ours = [
        grub
        for series in data
        for grub in series.get("grubDetails") or []
        if grub.get("adcTeamId") == team_id
    ]
    present = sum(1 for grub in ours if grub.get("adcJoinedForGrubs"))
    return {
        "totalFirstGrubs": len(ours),
        "grubsWithAdcPresent": present,
        "adcPresentRate": _pct(present, len(ours)),
    }


def gold_lead_by_role(data: List[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    """Our worth at 15 minus the worth of the enemy in the same role."""
    if not data:
        return None
    leads: Dict[str, List[float]] = {role: [] for role in ROLES}
    for series in data:
        for game in series.get("games") or []:
            ours: Dict[str, float] = {}
            enemy: Dict[str, float] = {}
            for player in game.get("players") or []:
                if player.get("role") not in leads:
                    continue
                side = ours if player.get("teamId") == team_id else enemy
                side[player["role"]] = player.get("worthAt15") or 0
            for role in ROLES:
                if role in ours and role in enemy:
                    leads[role].append(ours[role] - enemy[role])
    return {role: {"avg": average(values), "values": sorted(values)} for role, values in leads.items()}


def drake_gold_stats(data: List[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    drakes = 0
    held: Dict[str, List[float]] = {"mid": [], "bot": []}
    for series in data:
        for drake in series.get("drakeDetails") or []:
            ours = [p for p in drake.get("players") or [] if p.get("teamId") == team_id]
            if not ours:
                continue
            drakes += 1
            for player in ours:
                gold = player.get("holdingGoldWhenDrakeDies")
                if isinstance(gold, (int, float)) and player.get("role") in held:
                    held[player["role"]].append(gold)
    return {
        "totalDrakes": drakes,
        "avgMidGoldHeld": average(held["mid"]),
        "avgAdcGoldHeld": average(held["bot"]),
    }


def comeback_stats(data: List[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    total = 0
    comebacks: List[float] = []
    failed = 0
    held: List[float] = []
    thrown = 0
    for series in data:
        for game in series.get("games") or []:
            if team_id not in (game.get("blueTeamId"), game.get("redTeamId")):
                continue
            total += 1
            if game.get("outcome") == "even_at_15":
                continue
            won = game.get("winnerTeamId") == team_id
            if game.get("teamBehindAt15Id") == team_id:
                if won:
                    comebacks.append(game.get("leadAmount") or 0)
                else:
                    failed += 1
            elif game.get("teamAheadAt15Id") == team_id:
                if won:
                    held.append(game.get("leadAmount") or 0)
                else:
                    thrown += 1
    return {
        "totalGames": total,
        "comebackRate": _pct(len(comebacks), len(comebacks) + failed),
        "leadHoldRate": _pct(len(held), len(held) + thrown),
        "avgComebackDeficit": average(comebacks),
        "avgLeadWhenHeld": average(held),
    }


def class_win_rate_stats(data: List[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    rows = [
        {"role": game["role"], "className": class_name, "wins": int(bool(game.get("won"))), "games": 1}
        for series in data
        for game in series.get("games") or []
        if game.get("teamId") == team_id and game.get("role") in CLASS_ROLES
        for class_name in game.get("classes") or []
    ]
    frame = pd.DataFrame(rows, columns=["role", "className", "wins", "games"])
    totals = frame.groupby(["role", "className"], sort=True)[["wins", "games"]].sum()

    stats: Dict[str, List[Dict[str, Any]]] = {role: [] for role in CLASS_ROLES}
    for (role, class_name), row in totals.iterrows():
        if row["games"] < MIN_CLASS_GAMES:
            continue
        stats[role].append(
            {
                "className": class_name,
                "wins": int(row["wins"]),
                "games": int(row["games"]),
                "winRate": _pct(row["wins"], row["games"]),
            }
        )
    for listing in stats.values():
        listing.sort(key=lambda item: (-item["games"], item["className"]))
    return stats


# ---------------------------------------------------------------------------
# Ban phase
# ---------------------------------------------------------------------------


def _unavailable(sequence: Dict[str, Any], with_enemy_pick: bool = False) -> set:
    blocked = set(sequence.get("allBans") or (sequence.get("ourBans") or []) + (sequence.get("enemyBans") or []))
    blocked.update(sequence.get("unavailableChamps") or [])
    if with_enemy_pick and sequence.get("enemyFirstPick"):
        blocked.add(sequence["enemyFirstPick"])
    return blocked


def _pick_rate_when_available(
    sequences: List[Dict[str, Any]], picked_in: Any, with_enemy_pick: bool
) -> List[Dict[str, Any]]:
    champions = sorted({champ for seq in sequences for champ in picked_in(seq)})
    rows = []
    for champion in champions:
        available = [seq for seq in sequences if champion not in _unavailable(seq, with_enemy_pick)]
        picked = sum(1 for seq in available if champion in picked_in(seq))
        rows.append(
            {
                "champion": champion,
                "count": picked,
                "available": len(available),
                "percentage": _pct(picked, len(available)),
            }
        )
    rows.sort(key=lambda row: (-row["percentage"], row["champion"]))
    return rows[:TOP_CHAMPIONS]


def _bans_when_available(sequences: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Share of games a champion was banned while still available (fearless drafts)."""
    champions = sorted({ban for seq in sequences for ban in seq.get("ourBans") or []})
    rows = []
    for champion in champions:
        available = [seq for seq in sequences if champion not in (seq.get("unavailableChamps") or [])]
        count = sum(1 for seq in available if champion in (seq.get("ourBans") or []))
        if available:
            rows.append({"champion": champion, "count": count, "percentage": _pct(count, len(available))})
    rows.sort(key=lambda row: (-row["percentage"], row["champion"]))
    return rows[:TOP_CHAMPIONS]


def _adaptive_bans(sequences: List[Dict[str, Any]], our_slot: int) -> List[Dict[str, Any]]:
    reactions: Dict[str, List[str]] = {}
    for seq in sequences:
        enemy, ours = seq.get("enemyBans") or [], seq.get("ourBans") or []
        if enemy and len(ours) > our_slot:
            reactions.setdefault(enemy[0], []).append(ours[our_slot])
    result = [
        {
            "ifEnemyBans": enemy_ban,
            "thenWeBan": _champion_frequencies(ours, len(ours), TOP_REACTIONS),
            "sampleSize": len(ours),
        }
        for enemy_ban, ours in reactions.items()
        if len(ours) >= MIN_SAMPLE
    ]
    result.sort(key=lambda item: (-item["sampleSize"], item["ifEnemyBans"]))
    return result[:TOP_REACTION_GROUPS]


def _second_phase_patterns(sequences: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """When we have picked X before the second ban phase, what we ban there."""
    games: Dict[str, List[List[str]]] = {}
    for seq in sequences:
        bans = seq.get("ourSecondPhaseBans") or []
        if not bans:
            continue
        for pick in seq.get("ourPicksBeforeSecondBan") or []:
            games.setdefault(pick, []).append(bans)
    result = []
    for pick, ban_lists in games.items():
        if sum(len(bans) for bans in ban_lists) < MIN_SAMPLE:
            continue
        result.append(
            {
                "ifWePick": pick,
                "weBan": _champion_frequencies(
                    [ban for bans in ban_lists for ban in set(bans)], len(ban_lists), TOP_REACTIONS
                ),
                "sampleSize": len(ban_lists),
            }
        )
    result.sort(key=lambda item: (-item["sampleSize"], item["ifWePick"]))
    return result[:TOP_SECOND_PHASE_PATTERNS]


def _pick_pairs(sequences: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    pairs = Counter(
        tuple(sorted(seq["ourFirstPicks"][:2])) for seq in sequences if len(seq.get("ourFirstPicks") or []) >= 2
    )
    rows = [
        {"pair": list(pair), "count": count, "percentage": _pct(count, len(sequences))}
        for pair, count in pairs.items()
    ]
    rows.sort(key=lambda row: (-row["count"], row["pair"]))
    return rows[:TOP_CHAMPIONS]


def _adaptive_picks(sequences: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Our first two picks in reply to the enemy's first pick, with ban rates."""
    replies: Dict[str, List[Tuple[List[str], set]]] = {}
    for seq in sequences:
        if seq.get("enemyFirstPick") and seq.get("ourFirstPicks"):
            replies.setdefault(seq["enemyFirstPick"], []).append((seq["ourFirstPicks"][:2], _unavailable(seq)))
    result = []
    for enemy_pick, games in replies.items():
        if len(games) < MIN_SAMPLE:
            continue
        picks = Counter(pick for chosen, _ in games for pick in set(chosen))
        rows = [
            {
                "champion": champion,
                "count": count,
                "percentage": _pct(count, len(games)),
                "banRate": _pct(sum(1 for _, blocked in games if champion in blocked), len(games)),
            }
            for champion, count in picks.items()
        ]
        rows.sort(key=lambda row: (-row["percentage"], row["champion"]))
        result.append({"ifEnemyPicks": enemy_pick, "thenWePick": rows[:TOP_REACTIONS], "sampleSize": len(games)})
    result.sort(key=lambda item: (-item["sampleSize"], item["ifEnemyPicks"]))
    return result[:TOP_REACTION_GROUPS]


def _position_bans(sequences: List[Dict[str, Any]]) -> Dict[str, Any]:
    slots = {}
    for index in range(3):
        bans = [seq["ourBans"][index] for seq in sequences if len(seq.get("ourBans") or []) > index]
        slots[f"ban{index + 1}"] = _champion_frequencies(bans, len(bans))
    return {
        "priorityBans": _champion_frequencies(
            [ban for seq in sequences for ban in set(seq.get("ourBans") or [])], len(sequences)
        ),
        **slots,
    }


def ban_phase_stats(data: List[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    total_games = 0
    sequences: List[Dict[str, Any]] = []
    for series in data:
        team = _our_team(series, team_id)
        if team:
            total_games += team.get("totalGames") or 0
            sequences.extend(team.get("banSequences") or [])

    first = [seq for seq in sequences if seq.get("isFirstPick")]
    second = [seq for seq in sequences if not seq.get("isFirstPick")]
    by_game = {
        1: [seq for seq in sequences if (seq.get("gameNumber") or 1) == 1],
        2: [seq for seq in sequences if seq.get("gameNumber") == 2],
        3: [seq for seq in sequences if (seq.get("gameNumber") or 1) >= 3],
    }
    return {
        "totalGames": total_games,
        "firstPickGames": len(first),
        "secondPickGames": len(second),
        "bansByGame": {
            "game1": _champion_frequencies(
                [ban for seq in by_game[1] for ban in set(seq.get("ourBans") or [])], len(by_game[1])
            ),
            "game2": _bans_when_available(by_game[2]),
            "game3": _bans_when_available(by_game[3]),
        },
        "secondBanPhasePatterns": _second_phase_patterns(sequences),
        "firstPick": {
            **_position_bans(first),
            # First pick answers the enemy's first ban with its second.
            "adaptiveBans": _adaptive_bans(first, 1),
            "firstPicks": _pick_rate_when_available(first, lambda seq: (seq.get("ourFirstPicks") or [])[:1], False),
        },
        "secondPick": {
            **_position_bans(second),
            "adaptiveBans": _adaptive_bans(second, 0),
            "firstPicks": _pick_rate_when_available(second, lambda seq: seq.get("ourFirstPicks") or [], True),
            "pickPairs": _pick_pairs(second),
            "adaptivePicks": _adaptive_picks(second),
        },
    }


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


def series_breakdown(entry: ReportEntry, team_id: str) -> Dict[str, Any]:
    games = []
    for game in (entry.results.get("draftAnalysis") or {}).get("games") or []:
        games.append(
            {
                "gameNumber": game.get("gameNumber"),
                "isFirstPick": game.get("firstPickTeamId") == team_id,
                "ourTeamId": team_id,
                "enemyTeamId": game.get("redTeamId") if game.get("blueTeamId") == team_id else game.get("blueTeamId"),
                "draftActions": [
                    {
                        "teamId": action.get("teamId"),
                        "champName": action.get("champName"),
                        "action": action.get("action"),
                        "isOurTeam": action.get("teamId") == team_id,
                    }
                    for action in game.get("draftingActions") or []
                ],
            }
        )
    return {"seriesId": entry.series_id, "opponent": entry.opponent, "date": entry.date, "games": games}


def _resolve_team_name(entries: List[ReportEntry], team_id: str) -> str:
    for entry in entries:
        team = _our_team(entry.results.get("banPhaseAnalysis"), team_id)
        if team and team.get("teamName") not in (None, "", "Unknown"):
            return team["teamName"]
        for game in (entry.results.get("draftAnalysis") or {}).get("games") or []:
            for side in ("blue", "red"):
                if game.get(f"{side}TeamId") == team_id and game.get(f"{side}TeamName") not in (None, "Unknown"):
                    return game[f"{side}TeamName"]
        for team in (entry.document or {}).get("teams") or []:
            if team.get("id") == team_id and team.get("name"):
                return team["name"]
    return UNKNOWN_TEAM


def build_lol_scouting_report(
    team_id: str, entries: Sequence[EntryLike], team_name: Optional[str] = None
) -> Dict[str, Any]:
    """Aggregate one team's per-series LoL analytics into a scouting report."""
    t0 = time.perf_counter()
    entries = [_as_entry(entry) for entry in entries]
    report = {
        "teamId": team_id,
        "teamName": team_name or _resolve_team_name(entries, team_id),
        "seriesAnalyzed": len(entries),
        "generatedAt": utc_now_iso(),
        "counterPickStats": counter_pick_stats(_collect(entries, "counterPickGoldDiff"), team_id),
        "drakePrioStats": drake_prio_stats(_collect(entries, "botLaneDrakePrio"), team_id),
        "supportGrubStats": support_grub_stats(_collect(entries, "supportGrubRecall"), team_id),
        "adcGrubStats": adc_grub_stats(_collect(entries, "adcJoinedGrubs"), team_id),
        "goldLeadAt15ByRole": gold_lead_by_role(_collect(entries, "playerWorthAt15"), team_id),
        "drakeGoldHoldingStats": drake_gold_stats(_collect(entries, "drakeGoldHolding"), team_id),
        "comebackStats": comeback_stats(_collect(entries, "comebackStats"), team_id),
        "classWinRateStats": class_win_rate_stats(_collect(entries, "classWinRate"), team_id),
        "banPhaseStats": ban_phase_stats(_collect(entries, "banPhaseAnalysis"), team_id),
        "seriesBreakdown": [series_breakdown(entry, team_id) for entry in entries],
    }
    logger.info(
        f"[TIMING] LoL scouting report for team {team_id}: {time.perf_counter() - t0:.2f}s "
        f"({len(entries)} series)"
    )
    return _convert_to_serializable(report)
