from __future__ import annotations

from functools import lru_cache
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from gridscout.analytics.runner import results_by_name
from gridscout.callouts import CalloutTable, default_callout_table, load_callout_table
from gridscout.env import load_env
from gridscout.grid_client import AsyncFileDownloadClient, FileDownloadConfig, GridAPIError, GridClient
from gridscout.lol_reference import LolReference, load_lol_reference
from gridscout.lol_scouting_report import build_lol_scouting_report
from gridscout.models import (
    AnalyticsResponse,
    ConvertResponse,
    ScoutingReportRequest,
    SeriesAnalysisRequest,
    SeriesAnalysisResponse,
    Title,
)
from gridscout.pipeline import (
    analyze_series,
    convert_series,
    process_series_batch,
    series_date,
    series_opponent,
    store_key,
)
from gridscout.scouting_report import ReportEntry, build_scouting_report
from gridscout.settings import Settings
from gridscout.storage import DocumentStore

load_env()

settings = Settings.from_env()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="GridScout API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache
def get_store() -> DocumentStore:
    return DocumentStore(settings.store_dir)


@lru_cache
def get_callouts() -> CalloutTable:
    if settings.callouts_path:
        return load_callout_table(settings.callouts_path)
    return default_callout_table()


@lru_cache
def get_lol_reference() -> LolReference:
    return load_lol_reference(settings.lol_positions_path, settings.lol_champion_classes_path)


@lru_cache
def get_grid_client() -> GridClient:
    return GridClient(
        api_key=settings.grid_api_key,
        debug_mode=settings.debug_mode,
        force_live=settings.grid_force_live,
        file_download_url=settings.grid_file_download_url,
        file_download_list_path=settings.grid_file_download_list_path,
        file_download_events_path=settings.grid_file_download_events_path,
    )


def _file_download_config() -> FileDownloadConfig:
    return FileDownloadConfig(
        base_url=settings.grid_file_download_url,
        list_path=settings.grid_file_download_list_path,
        events_path=settings.grid_file_download_events_path,
    )


async def _fetch_missing_logs(series_ids: List[str], title: Title = Title.val) -> Dict[str, bytes]:
    """Fetch event logs not already stored, concurrently."""
    store = get_store()
    logs: Dict[str, bytes] = {}
    missing = []
    for series_id in series_ids:
        content = store.load_events(store_key(title.value, series_id))
        if content is None or settings.grid_force_live:
            missing.append(series_id)
        else:
            logs[series_id] = content
    if missing:
        client = AsyncFileDownloadClient(settings.grid_api_key, config=_file_download_config())
        try:
            fetched = await client.fetch_many_series_events(
                missing, concurrency=settings.grid_events_concurrency
            )
        finally:
            await client.close()
        for series_id, content in fetched.items():
            store.save_events(store_key(title.value, series_id), content)
            logs[series_id] = content
    return logs


@app.get("/api/health")
async def health_check() -> dict:
    return {
        "status": "healthy",
        "debug_mode": settings.debug_mode,
        "store_dir": str(settings.store_dir),
        "max_workers": settings.max_workers,
    }


@app.post(
    "/api/{title}/series/{series_id}/convert",
    response_model=ConvertResponse,
    response_model_by_alias=True,
)
async def convert_series_log(title: Title, series_id: str, request: Request) -> ConvertResponse:
    """Rebuild a series document from an uploaded log, or fetch the log when the body is empty."""
    store = get_store()
    key = store_key(title.value, series_id)
    try:
        content = await request.body()
        source = "upload"
        if not content:
            content = await run_in_threadpool(get_grid_client().fetch_series_events, series_id)
            source = "grid"
        store.save_events(key, content)
        document = await run_in_threadpool(convert_series, series_id, content, title.value)
        store.save("series", key, document)
    except GridAPIError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(f"Failed to convert series {series_id}")
        raise HTTPException(status_code=500, detail=str(exc))

    return ConvertResponse(
        series_id=document["seriesId"],
        title=title,
        source=source,
        teams=[team.get("name") or team.get("id") for team in document.get("teams") or []],
        games_played=len(document.get("games") or []),
    )


@app.get("/api/{title}/series/{series_id}")
async def get_series_document(title: Title, series_id: str) -> dict:
    document = get_store().load("series", store_key(title.value, series_id))
    if document is None:
        raise HTTPException(status_code=404, detail=f"No converted series {series_id} for {title.value}")
    return document


@app.post(
    "/api/{title}/series/{series_id}/analyze",
    response_model=AnalyticsResponse,
    response_model_by_alias=True,
)
async def analyze_series_document(
    title: Title,
    series_id: str,
    team_id: Optional[str] = Query(None, alias="teamId"),
) -> Dict[str, Any]:
    store = get_store()
    key = store_key(title.value, series_id)
    document = store.load("series", key)
    if document is None:
        raise HTTPException(status_code=404, detail=f"No converted series {series_id} for {title.value}")
    try:
        callouts = get_callouts() if title is Title.val else None
        lol_reference = get_lol_reference() if title is Title.lol else None
        analytics = await run_in_threadpool(
            analyze_series, document, title.value, team_id, callouts, lol_reference
        )
        if team_id is None:
            store.save("analytics", key, analytics)
    except Exception as exc:
        logger.exception(f"Failed to analyze series {series_id}")
        raise HTTPException(status_code=500, detail=str(exc))
    return analytics


REPORT_BUILDERS: Dict[Title, Callable[[str, Sequence[ReportEntry]], Dict[str, Any]]] = {
    Title.val: build_scouting_report,
    Title.lol: build_lol_scouting_report,
}


def _report_entry(
    series_id: str, document: Dict[str, Any], analytics: Dict[str, Any], request: ScoutingReportRequest
) -> ReportEntry:
    opponents = request.opponents or {}
    return ReportEntry(
        series_id=series_id,
        opponent=opponents.get(series_id) or series_opponent(document, request.team_id),
        date=series_date(document),
        results=results_by_name(analytics),
        document=document,
    )


async def _scouting_report(title: Title, request: ScoutingReportRequest) -> dict:
    total_start = time.perf_counter()
    store = get_store()
    series_ids = list(dict.fromkeys(request.series_ids))

    try:
        entries: Dict[str, ReportEntry] = {}
        pending = []
        for series_id in series_ids:
            key = store_key(title.value, series_id)
            document = store.load("series", key)
            analytics = store.load("analytics", key)
            if document is None or analytics is None:
                pending.append(series_id)
                continue
            entries[series_id] = _report_entry(series_id, document, analytics, request)

        if pending:
            t0 = time.perf_counter()
            logs = await _fetch_missing_logs(pending, title)
            logger.info(f"[TIMING] fetch_events_total: {time.perf_counter() - t0:.2f}s ({len(logs)} series)")
            processed = await run_in_threadpool(
                process_series_batch,
                [(series_id, logs[series_id]) for series_id in pending],
                title.value,
                settings.max_workers,
                get_callouts() if title is Title.val else None,
                store,
                get_lol_reference() if title is Title.lol else None,
            )
            for item in processed:
                entries[item.series_id] = _report_entry(item.series_id, item.document, item.analytics, request)

        ordered = [entries[series_id] for series_id in series_ids]
        report = await run_in_threadpool(REPORT_BUILDERS[title], request.team_id, ordered)
        store.save("reports", f"{title.value}_{request.team_id}", report)
    except GridAPIError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(f"Failed to build {title.value} scouting report for team {request.team_id}")
        raise HTTPException(status_code=500, detail=str(exc))

    logger.info(f"[TIMING] TOTAL: {time.perf_counter() - total_start:.2f}s")
    return report


@app.post("/api/val/scouting-report")
async def generate_scouting_report(request: ScoutingReportRequest) -> dict:
    return await _scouting_report(Title.val, request)


@app.post("/api/lol/scouting-report")
async def generate_lol_scouting_report(request: ScoutingReportRequest) -> dict:
    return await _scouting_report(Title.lol, request)


@app.post(
    "/api/lol/scouting-report/analyze-series",
    response_model=SeriesAnalysisResponse,
    response_model_by_alias=True,
)
async def analyze_lol_series(request: SeriesAnalysisRequest) -> SeriesAnalysisResponse:
    """Make sure one series is converted and analyzed before it goes into a report.

    Stored analytics are reused unless they predate the class win rate pass.
    """
    store = get_store()
    series_id = request.series_id
    key = store_key(Title.lol.value, series_id)
    try:
        document = store.load("series", key)
        analytics = store.load("analytics", key)
        cache_hit = document is not None
        if document is None:
            logs = await _fetch_missing_logs([series_id], Title.lol)
            document = await run_in_threadpool(convert_series, series_id, logs[series_id], Title.lol.value)
            store.save("series", key, document)
        if analytics is None or "classWinRate" not in results_by_name(analytics):
            logger.info(f"Running LoL analytics for series {series_id}")
            analytics = await run_in_threadpool(
                analyze_series, document, Title.lol.value, None, None, get_lol_reference()
            )
            store.save("analytics", key, analytics)
    except GridAPIError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception as exc:
        logger.exception(f"Failed to analyze LoL series {series_id}")
        raise HTTPException(status_code=500, detail=str(exc))

    return SeriesAnalysisResponse(
        success=True,
        series_id=series_id,
        cache_hit=cache_hit,
        has_analytics=bool(analytics.get("results")),
    )
