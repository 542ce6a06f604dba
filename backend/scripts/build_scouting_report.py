#!/usr/bin/env python3
"""
Build a VALORANT or LoL scouting report for one team from stored series.

Series must already be converted (see convert_series.py). Analytics missing
from the store are computed from the stored series document.

Usage:
    python scripts/build_scouting_report.py --team-id 79 --series 2629390 2629391
    python scripts/build_scouting_report.py --team-id 79 --all
    python scripts/build_scouting_report.py --team-id 79 --all --output report.json
    python scripts/build_scouting_report.py --title lol --team-id 47494 --all
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from gridscout.analytics.runner import results_by_name  # noqa: E402
from gridscout.env import load_env  # noqa: E402
from gridscout.lol_scouting_report import build_lol_scouting_report  # noqa: E402
from gridscout.pipeline import TITLES, analyze_series, series_date, series_opponent, store_key  # noqa: E402
from gridscout.scouting_report import ReportEntry, build_scouting_report  # noqa: E402
from gridscout.settings import Settings  # noqa: E402
from gridscout.storage import DocumentStore  # noqa: E402

logger = logging.getLogger(__name__)

REPORT_BUILDERS = {"val": build_scouting_report, "lol": build_lol_scouting_report}


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a scouting report from stored series.")
    parser.add_argument("--title", choices=TITLES, default="val", help="Game title (default: val).")
    parser.add_argument("--team-id", required=True, help="GRID team id to scout.")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--series", nargs="+", help="Series ids to include.")
    group.add_argument(
        "--all",
        action="store_true",
        help="Include every stored series the team played in.",
    )
    parser.add_argument(
        "--store-dir",
        type=Path,
        default=None,
        help="Document store directory (default: GRIDSCOUT_STORE_DIR or backend/data/store).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Also write the report to this file.",
    )
    return parser.parse_args()


def _stored_series_for_team(store: DocumentStore, title: str, team_id: str) -> list[str]:
    prefix = f"{title}_"
    series_ids = []
    for key in store.keys("series"):
        if not key.startswith(prefix):
            continue
        document = store.load("series", key) or {}
        if any(team.get("id") == team_id for team in document.get("teams") or []):
            series_ids.append(key[len(prefix):])
    return series_ids


def main() -> None:
    load_env()
    args = _parse_args()
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(levelname)s - %(message)s")

    store = DocumentStore(args.store_dir or settings.store_dir)
    series_ids = _stored_series_for_team(store, args.title, args.team_id) if args.all else args.series
    if not series_ids:
        print(f"❌ No stored series found for team {args.team_id}.")
        sys.exit(1)

    start = time.perf_counter()
    entries = []
    for series_id in series_ids:
        key = store_key(args.title, series_id)
        document = store.load("series", key)
        if document is None:
            print(f"  ⚠️  Series {series_id} has not been converted; skipping")
            continue
        analytics = store.load("analytics", key)
        if analytics is None:
            analytics = analyze_series(document, args.title)
            store.save("analytics", key, analytics)
        entries.append(
            ReportEntry(
                series_id=series_id,
                opponent=series_opponent(document, args.team_id),
                date=series_date(document),
                results=results_by_name(analytics),
                document=document,
            )
        )

    if not entries:
        print("❌ None of the requested series are available.")
        sys.exit(1)

    report = REPORT_BUILDERS[args.title](args.team_id, entries)
    path = store.save("reports", f"{args.title}_{args.team_id}", report)
    if args.output:
        args.output.write_text(json.dumps(report, ensure_ascii=False, indent=2), encoding="utf-8")
        path = args.output

    print(f"✅ {report['teamName']}: {report['seriesAnalyzed']} series")
    print(f"💾 Saved to {path}")
    print(f"⏱️  Done in {time.perf_counter() - start:.2f}s")


if __name__ == "__main__":
    main()
