"""Merge the per-series analytics of one team into a scouting report.

Every merge sums raw counts across series first and derives percentages once
at the end. Lists are ordered by value and then by key, so the report does not
depend on the order the series are given in.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from gridscout.analytics.common import UNKNOWN_TEAM, utc_now_iso
from gridscout.callouts import UNKNOWN_CALLOUT, format_map_name
from gridscout.clustering import Point, mean_centroid, median_centroid
from gridscout.serialization import _convert_to_serializable

logger = logging.getLogger(__name__)

TOP_MAPS = 10
TOP_AGENTS = 15
TOP_FORMATIONS = 10
TOP_POSITION_CLUSTERS = 5
TOP_ABILITY_CLUSTERS = 10
TOP_POST_PLANT_CLUSTERS = 5
TOP_POST_PLANT_ABILITY_CLUSTERS = 10

POSITION_KEY = ("callout",)
ABILITY_KEY = ("callout", "abilityId", "agentName")
ECONOMY_SECTIONS = (("defensive", "buy"), ("defensive", "eco"), ("offensive", "buy"), ("offensive", "eco"))


@dataclass
class ReportEntry:
    series_id: str
    opponent: str
    date: str
    results: Dict[str, Any]
    document: Optional[Dict[str, Any]] = None


EntryLike = Union[ReportEntry, Tuple[Any, ...]]


def _as_entry(entry: EntryLike) -> ReportEntry:
    if isinstance(entry, ReportEntry):
        return entry
    return ReportEntry(*entry)


def _our_team(data: Optional[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    return next((team for team in data.get("teams") or [] if team.get("teamId") == team_id), None)


def _enemy_team(data: Optional[Dict[str, Any]], team_id: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    return next((team for team in data.get("teams") or [] if team.get("teamId") != team_id), None)


def _pct(count: float, total: float) -> float:
    return (count / total) * 100 if total > 0 else 0


# ---------------------------------------------------------------------------
# Map veto
# ---------------------------------------------------------------------------


def _map_frequencies(map_ids: Iterable[str], total: int) -> List[Dict[str, Any]]:
    rows = [
        {
            "mapId": map_id,
            "mapName": format_map_name(map_id),
            "count": count,
            "available": total,
            "percentage": _pct(count, total),
        }
        for map_id, count in Counter(map_ids).items()
    ]
    rows.sort(key=lambda row: (-row["percentage"], row["mapId"]))
    return rows[:TOP_MAPS]


def _when_available(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Acted/available ratio per map from per-series availability rows."""
    if not rows:
        return []
    totals = pd.DataFrame(rows).groupby("mapId", sort=True)[["available", "acted"]].sum()
    result = [
        {
            "mapId": map_id,
            "mapName": format_map_name(map_id),
            "count": int(row["acted"]),
            "available": int(row["available"]),
            "percentage": _pct(row["acted"], row["available"]),
        }
        for map_id, row in totals.iterrows()
        if row["available"] > 0
    ]
    result.sort(key=lambda row: (-row["percentage"], row["mapId"]))
    return result[:TOP_MAPS]


def _maps_seen(sequence: Dict[str, Any], blocked: Iterable[str]) -> List[str]:
    seen = [a["mapId"] for a in sequence.get("banPhase1Actions") or []]
    seen += [a["mapId"] for a in sequence.get("pickActions") or []]
    seen += [a["mapId"] for a in sequence.get("banPhase2Actions") or []]
    if sequence.get("deciderMap"):
        seen.append(sequence["deciderMap"])
    seen += list(blocked)
    return sorted(set(seen))


class VetoMerge:
    def __init__(self) -> None:
        self.series = 0
        self.ban2: List[str] = []
        self.phase1_bans: List[str] = []
        self.pick1: List[str] = []
        self.pick2: List[str] = []
        self.picks: List[str] = []
        self.phase2_bans: List[str] = []
        self.phase2_series = 0
        self.deciders: List[str] = []
        self.first_ban_rows: List[Dict[str, Any]] = []
        self.pick_rows: List[Dict[str, Any]] = []

    def add(self, sequence: Dict[str, Any]) -> None:
        self.series += 1
        bans1 = [a["mapId"] for a in sequence.get("banPhase1Actions") or []]
        picks = [a["mapId"] for a in sequence.get("pickActions") or []]
        bans2 = [a["mapId"] for a in sequence.get("banPhase2Actions") or []]

        self.ban2.extend(bans1[1:2])
        self.phase1_bans.extend(bans1)
        self.pick1.extend(picks[:1])
        self.pick2.extend(picks[1:2])
        self.picks.extend(picks)

        opponent_bans = set(sequence.get("opponentBansBeforeOurFirstBan") or [])
        first_ban = bans1[0] if bans1 else None
        for map_id in _maps_seen(sequence, opponent_bans):
            available = map_id not in opponent_bans
            self.first_ban_rows.append(
                {"mapId": map_id, "available": int(available), "acted": int(available and map_id == first_ban)}
            )

        banned = set(sequence.get("allBansBeforeOurPick") or [])
        for map_id in _maps_seen(sequence, banned):
            available = map_id not in banned
            self.pick_rows.append(
                {"mapId": map_id, "available": int(available), "acted": int(available and map_id in picks)}
            )

        if bans2:
            self.phase2_series += 1
            self.phase2_bans.extend(bans2)
        if sequence.get("deciderMap"):
            self.deciders.append(sequence["deciderMap"])

    def build(self) -> Optional[Dict[str, Any]]:
        if self.series == 0:
            return None
        return {
            "banPhase1": {
                "ban1": _when_available(self.first_ban_rows),
                "ban2": _map_frequencies(self.ban2, self.series),
                "allBans": _map_frequencies(self.phase1_bans, self.series),
            },
            "mapPicks": {
                "pick1": _map_frequencies(self.pick1, self.series),
                "pick2": _map_frequencies(self.pick2, self.series),
                "allPicks": _when_available(self.pick_rows),
            },
            "banPhase2": (
                {"allBans": _map_frequencies(self.phase2_bans, self.phase2_series)}
                if self.phase2_series
                else None
            ),
            "deciderMaps": _map_frequencies(self.deciders, len(self.deciders)),
        }


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------

AGENT_COLUMNS = ["agentId", "agentName", "count", "wins"]


def _agent_frequencies(frame: pd.DataFrame, total_games: int) -> List[Dict[str, Any]]:
    if frame.empty:
        return []
    grouped = frame.groupby("agentId", sort=True).agg(
        agentName=("agentName", "first"), count=("count", "sum"), wins=("wins", "sum")
    )
    rows = [
        {
            "agentId": agent_id,
            "agentName": row["agentName"],
            "count": int(row["count"]),
            "totalGames": total_games,
            "percentage": _pct(row["count"], total_games),
            "wins": int(row["wins"]),
            "winPercentage": _pct(row["wins"], row["count"]),
        }
        for agent_id, row in grouped.iterrows()
    ]
    rows.sort(key=lambda row: (-row["percentage"], row["agentId"]))
    return rows[:TOP_AGENTS]


def _agent_rows(picks: Iterable[Dict[str, Any]], **extra: Any) -> List[Dict[str, Any]]:
    return [
        {
            **extra,
            "agentId": pick["agentId"],
            "agentName": pick.get("agentName") or pick["agentId"],
            "count": pick.get("count") or 0,
            "wins": pick.get("wins") or 0,
        }
        for pick in picks
    ]


class AgentMerge:
    def __init__(self) -> None:
        self.maps_played = 0
        self.map_rows: List[Dict[str, Any]] = []
        self.games_by_map: Counter = Counter()
        self.player_rows: List[Dict[str, Any]] = []
        self.players: Dict[str, Dict[str, Any]] = {}

    def add(self, team: Dict[str, Any]) -> None:
        self.maps_played += team.get("totalMapsPlayed") or 0
        for map_picks in team.get("agentPicksByMap") or []:
            map_id = map_picks["mapId"]
            self.games_by_map[map_id] += map_picks.get("gamesPlayed") or 0
            self.map_rows.extend(_agent_rows(map_picks.get("agentPicks") or [], mapId=map_id))
        for player in team.get("playerAgentPreferences") or []:
            entry = self.players.setdefault(
                player["playerId"], {"playerName": player.get("playerName"), "games": 0, "wins": 0}
            )
            entry["games"] += player.get("gamesPlayed") or 0
            entry["wins"] += player.get("wins") or 0
            self.player_rows.extend(
                _agent_rows(player.get("agentPicks") or [], playerId=player["playerId"])
            )

    def build(self) -> Optional[Dict[str, Any]]:
        if self.maps_played <= 0:
            return None
        maps = pd.DataFrame(self.map_rows, columns=["mapId", *AGENT_COLUMNS])
        players = pd.DataFrame(self.player_rows, columns=["playerId", *AGENT_COLUMNS])

        picks_by_map = [
            {
                "mapId": map_id,
                "mapName": format_map_name(map_id),
                "gamesPlayed": games,
                "agentPicks": _agent_frequencies(maps[maps["mapId"] == map_id], games or 1),
            }
            for map_id, games in self.games_by_map.items()
        ]
        picks_by_map.sort(key=lambda item: (-item["gamesPlayed"], item["mapId"]))

        preferences = [
            {
                "playerId": player_id,
                "playerName": data["playerName"],
                "totalMapsPlayed": data["games"],
                "wins": data["wins"],
                "winPercentage": _pct(data["wins"], data["games"]),
                "agentPicks": _agent_frequencies(players[players["playerId"] == player_id], data["games"]),
            }
            for player_id, data in self.players.items()
        ]
        preferences.sort(key=lambda item: ((item["playerName"] or "").lower(), item["playerId"]))

        return {
            "overallPicks": _agent_frequencies(maps, self.maps_played),
            "picksByMap": picks_by_map,
            "playerPreferences": preferences,
        }


# ---------------------------------------------------------------------------
# Formations
# ---------------------------------------------------------------------------


class FormationMerge:
    """Sums formation counts per (map, formationKey) across series."""

    def __init__(self) -> None:
        self.total_rounds = 0
        self.round_rows: List[Dict[str, Any]] = []
        self.formation_rows: List[Dict[str, Any]] = []
        self.regions: Dict[str, Dict[str, int]] = {}

    def add(self, total_rounds: Optional[int], by_map: Sequence[Dict[str, Any]]) -> None:
        self.total_rounds += total_rounds or 0
        for map_data in by_map or []:
            map_id = map_data["mapId"]
            self.round_rows.append({"mapId": map_id, "totalRounds": map_data.get("totalRounds") or 0})
            for formation in map_data.get("formations") or []:
                key = formation["formationKey"]
                self.regions.setdefault(key, formation.get("superRegions") or {})
                self.formation_rows.append(
                    {"mapId": map_id, "formationKey": key, "count": formation.get("count") or 0}
                )

    def by_map(self) -> List[Dict[str, Any]]:
        if not self.round_rows:
            return []
        rounds = pd.DataFrame(self.round_rows).groupby("mapId", sort=True)["totalRounds"].sum()
        counts = (
            pd.DataFrame(self.formation_rows, columns=["mapId", "formationKey", "count"])
            .groupby(["mapId", "formationKey"], sort=True)["count"]
            .sum()
        )
        listings: Dict[str, List[Dict[str, Any]]] = {}
        for (map_id, key), count in counts.items():
            total = int(rounds.get(map_id, 0))
            listings.setdefault(map_id, []).append(
                {
                    "formationKey": key,
                    "superRegions": self.regions[key],
                    "count": int(count),
                    "percentage": _pct(count, total),
                }
            )

        maps = []
        for map_id, total in rounds.items():
            listing = listings.get(map_id, [])
            listing.sort(key=lambda item: (-item["count"], item["formationKey"]))
            maps.append(
                {
                    "mapId": map_id,
                    "mapName": format_map_name(map_id),
                    "totalRounds": int(total),
                    "formations": listing[:TOP_FORMATIONS],
                }
            )
        maps.sort(key=lambda item: (-item["totalRounds"], item["mapId"]))
        return maps


# ---------------------------------------------------------------------------
# Positional clusters
# ---------------------------------------------------------------------------


class ClusterMerge:
    """Clusters of one player, matched across series by ``key_fields``."""

    def __init__(self, key_fields: Tuple[str, ...], centroid: str = "mean") -> None:
        self.key_fields = key_fields
        self.centroid = centroid
        self.total = 0
        self.player_name: Optional[str] = None
        self.clusters: Dict[Tuple[Any, ...], Dict[str, Any]] = {}

    def add(self, player_name: Optional[str], total: Optional[int], clusters: Sequence[Dict[str, Any]]) -> None:
        if self.player_name is None:
            self.player_name = player_name
        self.total += total or 0
        for cluster in clusters or []:
            key = tuple(cluster.get(name) or UNKNOWN_CALLOUT for name in self.key_fields)
            existing = self.clusters.get(key)
            if existing is None:
                self.clusters[key] = {
                    "centroidX": cluster.get("centroidX") or 0,
                    "centroidY": cluster.get("centroidY") or 0,
                    "callout": key[0],
                    "superRegion": cluster.get("superRegion"),
                    **{name: value for name, value in zip(self.key_fields, key) if name != "callout"},
                    "count": cluster.get("count") or 0,
                    "positions": list(cluster.get("positions") or []),
                    "parts": 1,
                }
                continue
            existing["count"] += cluster.get("count") or 0
            existing["positions"].extend(cluster.get("positions") or [])
            existing["parts"] += 1

    def _finish(self, cluster: Dict[str, Any], denominator: int) -> Dict[str, Any]:
        record = {name: value for name, value in cluster.items() if name != "parts"}
        record["positions"] = sorted(record["positions"], key=lambda p: (p["x"], p["y"]))
        if cluster["parts"] > 1 and record["positions"]:
            points = [Point(p["x"], p["y"]) for p in record["positions"]]
            centre = median_centroid(points) if self.centroid == "median" else mean_centroid(points)
            record["centroidX"], record["centroidY"] = centre
        record["percentage"] = _pct(record["count"], denominator)
        return record

    def build(self, limit: int, denominator: Optional[int] = None) -> List[Dict[str, Any]]:
        total = self.total if denominator is None else denominator
        records = [self._finish(self.clusters[key], total) for key in sorted(self.clusters)]
        records.sort(key=lambda item: -item["count"])
        return records[:limit]


def _players_listing(
    players: Dict[str, ClusterMerge],
    total_field: str,
    limit: int,
    denominator: Optional[int] = None,
) -> List[Dict[str, Any]]:
    listing = []
    for player_id, merge in players.items():
        clusters = merge.build(limit, denominator)
        if clusters:
            listing.append(
                {
                    "playerId": player_id,
                    "playerName": merge.player_name,
                    total_field: merge.total,
                    "clusters": clusters,
                }
            )
    listing.sort(key=lambda item: ((item["playerName"] or "").lower(), item["playerId"]))
    return listing


class PlayerClusterMerge:
    """map -> player -> clusters, for player positions and ability usage."""

    def __init__(self, key_fields: Tuple[str, ...], limit: int) -> None:
        self.key_fields = key_fields
        self.limit = limit
        self.maps: Dict[str, Dict[str, ClusterMerge]] = {}

    def add(self, by_map: Sequence[Dict[str, Any]]) -> None:
        for map_data in by_map or []:
            players = self.maps.setdefault(map_data["mapId"], {})
            for player in map_data.get("players") or []:
                merge = players.setdefault(player["playerId"], ClusterMerge(self.key_fields))
                merge.add(player.get("playerName"), player.get("totalRounds"), player.get("clusters"))

    def build(self) -> List[Dict[str, Any]]:
        maps = []
        for map_id, players in self.maps.items():
            listing = _players_listing(players, "totalRounds", self.limit)
            if listing:
                maps.append({"mapId": map_id, "mapName": format_map_name(map_id), "players": listing})
        maps.sort(key=lambda item: (item["mapName"], item["mapId"]))
        return maps


class SiteClusterMerge:
    """map -> site -> player -> clusters, for the post-plant analyzers."""

    def __init__(
        self,
        key_fields: Tuple[str, ...],
        limit: int,
        centroid: str,
        map_total_field: str,
        site_denominator: bool,
    ) -> None:
        self.key_fields = key_fields
        self.limit = limit
        self.centroid = centroid
        self.map_total_field = map_total_field
        self.site_denominator = site_denominator
        self.maps: Dict[str, Dict[str, Any]] = {}

    def add(self, by_map: Sequence[Dict[str, Any]]) -> None:
        for map_data in by_map or []:
            map_entry = self.maps.setdefault(map_data["mapId"], {"totalPlants": 0, "bySite": {}})
            map_entry["totalPlants"] += map_data.get(self.map_total_field) or 0
            for site_data in map_data.get("bySite") or []:
                site = map_entry["bySite"].setdefault(site_data["site"], {"totalPlants": 0, "players": {}})
                site["totalPlants"] += site_data.get("totalPlants") or 0
                for player in site_data.get("players") or []:
                    merge = site["players"].setdefault(
                        player["playerId"], ClusterMerge(self.key_fields, self.centroid)
                    )
                    merge.add(player.get("playerName"), player.get("totalPlants"), player.get("clusters"))

    def build(self) -> List[Dict[str, Any]]:
        maps = []
        for map_id, map_entry in self.maps.items():
            by_site = []
            for site, site_entry in map_entry["bySite"].items():
                denominator = site_entry["totalPlants"] if self.site_denominator else None
                players = _players_listing(site_entry["players"], "totalPlants", self.limit, denominator)
                if players:
                    by_site.append({"site": site, "totalPlants": site_entry["totalPlants"], "players": players})
            by_site.sort(key=lambda item: item["site"])
            if by_site:
                maps.append(
                    {
                        "mapId": map_id,
                        "mapName": format_map_name(map_id),
                        self.map_total_field: map_entry["totalPlants"],
                        "bySite": by_site,
                    }
                )
        maps.sort(key=lambda item: (item["mapName"], item["mapId"]))
        return maps


# ---------------------------------------------------------------------------
# Lurk
# ---------------------------------------------------------------------------


class LurkMerge:
    def __init__(self) -> None:
        self.maps: Dict[str, Dict[str, Any]] = {}

    def add(self, by_map: Sequence[Dict[str, Any]]) -> None:
        for map_data in by_map or []:
            map_entry = self.maps.setdefault(map_data["mapId"], {"totalAttackRounds": 0, "players": {}})
            map_entry["totalAttackRounds"] += map_data.get("totalAttackRounds") or 0
            for player in map_data.get("players") or []:
                entry = map_entry["players"].setdefault(
                    player["playerId"],
                    {"playerName": player.get("playerName"), "totalAttackRounds": 0, "lurkCount": 0, "byPushSite": {}},
                )
                entry["totalAttackRounds"] += player.get("totalAttackRounds") or 0
                entry["lurkCount"] += player.get("lurkCount") or 0
                for push in player.get("byPushSite") or []:
                    regions = entry["byPushSite"].setdefault(push["pushSite"], Counter())
                    for location in push.get("lurkLocations") or []:
                        regions[location["superRegion"]] += location.get("count") or 0

    @staticmethod
    def _push_sites(by_push_site: Dict[str, Counter]) -> List[Dict[str, Any]]:
        sites = []
        for push_site, regions in by_push_site.items():
            total = sum(regions.values())
            locations = [
                {"superRegion": region, "count": count, "percentage": _pct(count, total)}
                for region, count in sorted(regions.items(), key=lambda item: (-item[1], item[0]))
            ]
            if locations:
                sites.append({"pushSite": push_site, "lurkLocations": locations, "_total": total})
        sites.sort(key=lambda site: (-site["_total"], site["pushSite"]))
        for site in sites:
            del site["_total"]
        return sites

    def build(self) -> List[Dict[str, Any]]:
        maps = []
        for map_id, map_entry in self.maps.items():
            players = [
                {
                    "playerId": player_id,
                    "playerName": data["playerName"],
                    "totalAttackRounds": data["totalAttackRounds"],
                    "lurkCount": data["lurkCount"],
                    "lurkPercentage": _pct(data["lurkCount"], data["totalAttackRounds"]),
                    "byPushSite": self._push_sites(data["byPushSite"]),
                }
                for player_id, data in map_entry["players"].items()
                if data["lurkCount"] > 0
            ]
            players.sort(key=lambda item: (-item["lurkPercentage"], item["playerId"]))
            if players:
                maps.append(
                    {
                        "mapId": map_id,
                        "mapName": format_map_name(map_id),
                        "totalAttackRounds": map_entry["totalAttackRounds"],
                        "players": players,
                    }
                )
        maps.sort(key=lambda item: (item["mapName"], item["mapId"]))
        return maps


# ---------------------------------------------------------------------------
# Series breakdown
# ---------------------------------------------------------------------------

BREAKDOWN_STATS = ("kills", "deaths", "attackerKills", "attackerDeaths", "defenderKills", "defenderDeaths")


def _veto_breakdown(veto_data: Optional[Dict[str, Any]], team_id: str) -> List[Dict[str, Any]]:
    ours = _our_team(veto_data, team_id)
    if not ours or not ours.get("vetoSequences"):
        return []
    sequence = ours["vetoSequences"][0]
    actions: List[Dict[str, Any]] = []
    for phase in ("banPhase1Actions", "pickActions", "banPhase2Actions"):
        actions.extend({**a, "isOurTeam": True} for a in sequence.get(phase) or [])
    enemy = _enemy_team(veto_data, team_id)
    if enemy and enemy.get("vetoSequences"):
        for phase in ("banPhase1Actions", "pickActions", "banPhase2Actions"):
            actions.extend({**a, "isOurTeam": False} for a in enemy["vetoSequences"][0].get(phase) or [])
    actions.sort(key=lambda a: a.get("sequenceNumber") or 0)
    if sequence.get("deciderMap"):
        actions.append(
            {"action": "decider", "mapId": sequence["deciderMap"], "teamId": None, "teamName": None, "isOurTeam": False}
        )
    return [
        {
            "sequenceNumber": index,
            "action": a["action"],
            "mapId": a["mapId"],
            "teamId": a.get("teamId"),
            "teamName": a.get("teamName"),
            "isOurTeam": a["isOurTeam"],
        }
        for index, a in enumerate(actions, start=1)
    ]


def _games_breakdown(team: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not team:
        return []
    return [
        {
            "gameNumber": detail.get("gameNumber"),
            "mapId": detail.get("mapId"),
            "winnerTeamId": detail.get("winnerTeamId"),
            "isWin": bool(detail.get("isWin")),
            "ourAgents": [
                {
                    "playerId": stats.get("playerId"),
                    "playerName": stats.get("playerName"),
                    "agentId": stats.get("agentId"),
                    "agentName": stats.get("agentName"),
                    **{name: stats.get(name) or 0 for name in BREAKDOWN_STATS},
                }
                for stats in detail.get("playerStats") or []
            ],
        }
        for detail in team.get("gameDetails") or []
    ]


def series_breakdown(entry: ReportEntry, team_id: str) -> Dict[str, Any]:
    agents = _our_team(entry.results.get("agentPickAnalysis"), team_id)
    if entry.document is not None:
        maps_played = len(entry.document.get("games") or [])
    else:
        maps_played = (agents or {}).get("totalMapsPlayed") or 0
    return {
        "seriesId": entry.series_id,
        "opponent": entry.opponent,
        "date": entry.date,
        "mapsPlayed": maps_played,
        "mapVeto": _veto_breakdown(entry.results.get("mapVetoAnalysis"), team_id),
        "games": _games_breakdown(agents),
    }


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


def _resolve_team_name(entries: List[ReportEntry], team_id: str) -> str:
    for entry in entries:
        for data in entry.results.values():
            team = _our_team(data if isinstance(data, dict) else None, team_id)
            if team and team.get("teamName") and team["teamName"] != UNKNOWN_TEAM:
                return team["teamName"]
        for team in (entry.document or {}).get("teams") or []:
            if team.get("id") == team_id and team.get("name"):
                return team["name"]
    return UNKNOWN_TEAM


def build_scouting_report(team_id: str, entries: Sequence[EntryLike]) -> Dict[str, Any]:
    """Aggregate one team's per-series analytics into a scouting report.

    Each entry is ``(seriesId, opponent, date, {analyzer name: data})`` with an
    optional fifth item, the reconstructed series document.
    """
    t0 = time.perf_counter()
    entries = [_as_entry(entry) for entry in entries]

    veto = VetoMerge()
    agents = AgentMerge()
    defensive = FormationMerge()
    offensive = FormationMerge()
    economy = {section: FormationMerge() for section in ECONOMY_SECTIONS}
    positions = PlayerClusterMerge(POSITION_KEY, TOP_POSITION_CLUSTERS)
    abilities = {
        "defensive": PlayerClusterMerge(ABILITY_KEY, TOP_ABILITY_CLUSTERS),
        "offensive": PlayerClusterMerge(ABILITY_KEY, TOP_ABILITY_CLUSTERS),
    }
    post_plant = SiteClusterMerge(
        POSITION_KEY, TOP_POST_PLANT_CLUSTERS, "median", "totalPlantsOnMap", site_denominator=False
    )
    post_plant_ability = SiteClusterMerge(
        ABILITY_KEY, TOP_POST_PLANT_ABILITY_CLUSTERS, "mean", "totalPlants", site_denominator=True
    )
    lurk = LurkMerge()
    breakdown = []

    for entry in entries:
        results = entry.results

        team = _our_team(results.get("mapVetoAnalysis"), team_id)
        for sequence in (team or {}).get("vetoSequences") or []:
            veto.add(sequence)

        team = _our_team(results.get("agentPickAnalysis"), team_id)
        if team:
            agents.add(team)

        team = _our_team(results.get("defensiveSetupAnalysis"), team_id)
        if team:
            defensive.add(team.get("totalDefensiveRounds"), team.get("byMap"))

        team = _our_team(results.get("offensiveSetupAnalysis"), team_id)
        if team:
            offensive.add(team.get("totalOffensiveRounds"), team.get("byMap"))

        team = _our_team(results.get("economySetupAnalysis"), team_id)
        if team:
            for side, kind in ECONOMY_SECTIONS:
                section = (team.get(side) or {}).get(kind)
                if section:
                    economy[(side, kind)].add(section.get("totalRounds"), section.get("byMap"))

        team = _our_team(results.get("playerPositionAnalysis"), team_id)
        if team:
            positions.add(team.get("byMap"))

        team = _our_team(results.get("abilityUsageAnalysis"), team_id)
        if team:
            abilities["defensive"].add(team.get("defensive"))
            abilities["offensive"].add(team.get("offensive"))

        team = _our_team(results.get("postPlantAnalysis"), team_id)
        if team:
            post_plant.add(team.get("byMap"))

        team = _our_team(results.get("postPlantAbilityAnalysis"), team_id)
        if team:
            post_plant_ability.add(team.get("byMap"))

        team = _our_team(results.get("lurkerAnalysis"), team_id)
        if team:
            lurk.add(team.get("byMap"))

        breakdown.append(series_breakdown(entry, team_id))

    economy_total = sum(merge.total_rounds for merge in economy.values())
    ability_defensive = abilities["defensive"].build()
    ability_offensive = abilities["offensive"].build()
    position_maps = positions.build()
    post_plant_maps = post_plant.build()
    post_plant_ability_maps = post_plant_ability.build()
    lurk_maps = lurk.build()

    report = {
        "teamId": team_id,
        "teamName": _resolve_team_name(entries, team_id),
        "seriesAnalyzed": len(entries),
        "mapsPlayed": agents.maps_played,
        "generatedAt": utc_now_iso(),
        "mapVetoStats": veto.build(),
        "agentStats": agents.build(),
        "defensiveSetups": (
            {"totalDefensiveRounds": defensive.total_rounds, "byMap": defensive.by_map()}
            if defensive.total_rounds > 0
            else None
        ),
        "offensiveSetups": (
            {"totalOffensiveRounds": offensive.total_rounds, "byMap": offensive.by_map()}
            if offensive.total_rounds > 0
            else None
        ),
        "economySetups": (
            {
                side: {
                    kind: {
                        "totalRounds": economy[(side, kind)].total_rounds,
                        "byMap": economy[(side, kind)].by_map(),
                    }
                    for kind in ("buy", "eco")
                }
                for side in ("defensive", "offensive")
            }
            if economy_total > 0
            else None
        ),
        "playerPositions": {"byMap": position_maps} if position_maps else None,
        "lurkerStats": {"byMap": lurk_maps} if lurk_maps else None,
        "abilityUsage": (
            {"defensive": ability_defensive, "offensive": ability_offensive}
            if ability_defensive or ability_offensive
            else None
        ),
        "postPlant": {"byMap": post_plant_maps} if post_plant_maps else None,
        "postPlantAbility": {"byMap": post_plant_ability_maps} if post_plant_ability_maps else None,
        "seriesBreakdown": breakdown,
    }
    logger.info(
        f"[TIMING] scouting report for team {team_id}: {time.perf_counter() - t0:.2f}s "
        f"({len(entries)} series)"
    )
    return _convert_to_serializable(report)
