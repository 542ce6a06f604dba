"""Series processing: decode, reconstruct, analyze, then aggregate per team.

Each series is an independent pure transform, so a batch fans out over a
thread pool and the report is a single reduction over the results.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from gridscout.analytics.runner import results_by_name, run_analytics
from gridscout.callouts import CalloutTable
from gridscout.decoder import decode_payload
from gridscout.lol_reconstructor import reconstruct_lol
from gridscout.lol_reference import LolReference
from gridscout.lol_scouting_report import build_lol_scouting_report
from gridscout.scouting_report import ReportEntry, build_scouting_report
from gridscout.storage import DocumentStore
from gridscout.valorant_reconstructor import reconstruct_valorant

logger = logging.getLogger(__name__)

TITLES = ("val", "lol")


def store_key(title: str, series_id: str) -> str:
    return f"{title}_{series_id}"


@dataclass
class ProcessedSeries:
    series_id: str
    document: Dict[str, Any]
    analytics: Dict[str, Any]


def _check_title(title: str) -> str:
    if title not in TITLES:
        raise ValueError(f"Unsupported title '{title}' (expected one of {TITLES})")
    return title


def convert_series(series_id: str, content: bytes, title: str = "val") -> Dict[str, Any]:
    """Decode a raw (optionally zipped) event log and rebuild the series document."""
    _check_title(title)
    t0 = time.perf_counter()
    batches = decode_payload(content)
    if title == "lol":
        document = reconstruct_lol(batches, series_id=series_id)
    else:
        document = reconstruct_valorant(batches, series_id=series_id)
    document["seriesId"] = document.get("seriesId") or series_id
    logger.info(
        f"[TIMING] convert {title} series {series_id}: {time.perf_counter() - t0:.2f}s "
        f"({len(batches)} batches)"
    )
    return document


def analyze_series(
    document: Dict[str, Any],
    title: str = "val",
    team_id: Optional[str] = None,
    callouts: Optional[CalloutTable] = None,
    lol_reference: Optional[LolReference] = None,
) -> Dict[str, Any]:
    return run_analytics(
        document,
        title=_check_title(title),
        team_id=team_id,
        callouts=callouts,
        lol_reference=lol_reference,
    )


def process_series(
    series_id: str,
    content: bytes,
    title: str = "val",
    callouts: Optional[CalloutTable] = None,
    store: Optional[DocumentStore] = None,
    lol_reference: Optional[LolReference] = None,
) -> ProcessedSeries:
    document = convert_series(series_id, content, title)
    analytics = analyze_series(document, title, callouts=callouts, lol_reference=lol_reference)
    if store is not None:
        key = store_key(title, series_id)
        store.save("series", key, document)
        store.save("analytics", key, analytics)
    return ProcessedSeries(series_id=series_id, document=document, analytics=analytics)


def process_series_batch(
    logs: Sequence[Tuple[str, bytes]],
    title: str = "val",
    max_workers: int = 4,
    callouts: Optional[CalloutTable] = None,
    store: Optional[DocumentStore] = None,
    lol_reference: Optional[LolReference] = None,
) -> List[ProcessedSeries]:
    """Process ``(seriesId, raw log)`` pairs in parallel; output keeps input order."""
    _check_title(title)
    if not logs:
        return []
    t0 = time.perf_counter()
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(logs)))) as pool:
        futures = [
            pool.submit(process_series, series_id, content, title, callouts, store, lol_reference)
            for series_id, content in logs
        ]
        processed = [future.result() for future in futures]
    logger.info(
        f"[TIMING] processed {len(processed)} {title} series: {time.perf_counter() - t0:.2f}s"
    )
    return processed


def series_opponent(document: Dict[str, Any], team_id: str) -> str:
    for team in document.get("teams") or []:
        if team.get("id") != team_id:
            return team.get("name") or team.get("id") or "Unknown"
    return "Unknown"


def series_date(document: Dict[str, Any]) -> str:
    for game in document.get("games") or []:
        started = game.get("startedAt") or game.get("startTime")
        if started:
            return str(started)
    return ""


def report_entries(
    team_id: str,
    processed: Sequence[ProcessedSeries],
    opponents: Optional[Dict[str, str]] = None,
) -> List[ReportEntry]:
    opponents = opponents or {}
    return [
        ReportEntry(
            series_id=item.series_id,
            opponent=opponents.get(item.series_id) or series_opponent(item.document, team_id),
            date=series_date(item.document),
            results=results_by_name(item.analytics),
            document=item.document,
        )
        for item in processed
    ]


def build_team_report(
    team_id: str,
    processed: Sequence[ProcessedSeries],
    opponents: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Reduce processed VALORANT series into one team's scouting report."""
    return build_scouting_report(team_id, report_entries(team_id, processed, opponents))


def build_lol_team_report(
    team_id: str,
    processed: Sequence[ProcessedSeries],
    opponents: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    return build_lol_scouting_report(team_id, report_entries(team_id, processed, opponents))
