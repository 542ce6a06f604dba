#!/usr/bin/env python3
"""
Convert local GRID event logs into series documents and run the analyzers.

Each input file is a JSONL event log (optionally zipped). The file stem is
used as the series id unless --series-id is given for a single file.

Usage:
    python scripts/convert_series.py logs/2629390.jsonl
    python scripts/convert_series.py logs/*.jsonl --title val --workers 4
    python scripts/convert_series.py game.jsonl.zip --series-id 2629390 --title lol
    python scripts/convert_series.py logs/*.jsonl --no-analytics
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from gridscout.env import load_env  # noqa: E402
from gridscout.pipeline import convert_series, process_series_batch, store_key  # noqa: E402
from gridscout.settings import Settings  # noqa: E402
from gridscout.storage import DocumentStore  # noqa: E402

logger = logging.getLogger(__name__)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert GRID event logs into series documents and analytics."
    )
    parser.add_argument("logs", nargs="+", type=Path, help="Event log files (JSONL or zip).")
    parser.add_argument(
        "--title",
        choices=("val", "lol"),
        default="val",
        help="Game title of the logs (default: val).",
    )
    parser.add_argument(
        "--series-id",
        default=None,
        help="Series id to use when converting a single file.",
    )
    parser.add_argument(
        "--store-dir",
        type=Path,
        default=None,
        help="Document store directory (default: GRIDSCOUT_STORE_DIR or backend/data/store).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel workers (default: GRIDSCOUT_MAX_WORKERS).",
    )
    parser.add_argument(
        "--no-analytics",
        action="store_true",
        help="Only rebuild the series documents.",
    )
    return parser.parse_args()


def _series_id_for(path: Path) -> str:
    name = path.name
    for suffix in (".zip", ".jsonl", ".json"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    return name


def main() -> None:
    load_env()
    args = _parse_args()
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(levelname)s - %(message)s")

    if args.series_id and len(args.logs) > 1:
        print("❌ --series-id can only be used with a single log file.")
        sys.exit(1)

    missing = [path for path in args.logs if not path.exists()]
    if missing:
        print(f"❌ Log file(s) not found: {', '.join(str(path) for path in missing)}")
        sys.exit(1)

    store = DocumentStore(args.store_dir or settings.store_dir)
    logs = []
    for path in args.logs:
        series_id = args.series_id or _series_id_for(path)
        content = path.read_bytes()
        store.save_events(store_key(args.title, series_id), content)
        logs.append((series_id, content))

    print(f"🎯 Converting {len(logs)} {args.title} series into {store.root}")
    start = time.perf_counter()

    if args.no_analytics:
        for series_id, content in logs:
            document = convert_series(series_id, content, args.title)
            store.save("series", store_key(args.title, series_id), document)
            print(f"  ✅ {series_id}: {len(document.get('games') or [])} game(s)")
    else:
        processed = process_series_batch(
            logs,
            title=args.title,
            max_workers=args.workers or settings.max_workers,
            store=store,
        )
        for item in processed:
            names = [result["name"] for result in item.analytics.get("results") or []]
            print(
                f"  ✅ {item.series_id}: {len(item.document.get('games') or [])} game(s), "
                f"{len(names)} analyzer(s): {', '.join(names)}"
            )

    print("-" * 60)
    print(f"⏱️  Done in {time.perf_counter() - start:.2f}s")


if __name__ == "__main__":
    main()
