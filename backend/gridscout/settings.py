from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

DATA_DIR = Path(__file__).resolve().parents[1] / "data"


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _list_env(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [value.strip() for value in raw.split(",") if value.strip()]


def _path_env(name: str) -> Optional[Path]:
    value = os.getenv(name)
    if not value:
        return None
    return Path(value)


@dataclass(frozen=True)
class Settings:
    grid_api_key: str
    debug_mode: bool
    grid_force_live: bool
    grid_file_download_url: str
    grid_file_download_list_path: str
    grid_file_download_events_path: str
    grid_events_concurrency: int
    store_dir: Path
    callouts_path: Optional[Path]
    lol_positions_path: Optional[Path]
    lol_champion_classes_path: Optional[Path]
    max_workers: int
    cors_origins: List[str]
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            grid_api_key=os.getenv("GRID_API_KEY", ""),
            debug_mode=_bool_env("DEBUG_MODE"),
            grid_force_live=_bool_env("GRID_FORCE_LIVE"),
            grid_file_download_url=os.getenv(
                "GRID_FILE_DOWNLOAD_URL", "https://api.grid.gg/file-download"
            ),
            grid_file_download_list_path=os.getenv(
                "GRID_FILE_DOWNLOAD_LIST_PATH", "/list/{series_id}"
            ),
            grid_file_download_events_path=os.getenv(
                "GRID_FILE_DOWNLOAD_EVENTS_PATH", "/events/grid/series/{series_id}"
            ),
            grid_events_concurrency=max(1, _int_env("GRID_EVENTS_CONCURRENCY", 8)),
            store_dir=_path_env("GRIDSCOUT_STORE_DIR") or (DATA_DIR / "store"),
            callouts_path=_path_env("GRIDSCOUT_CALLOUTS_PATH"),
            lol_positions_path=_path_env("GRIDSCOUT_LOL_POSITIONS_PATH"),
            lol_champion_classes_path=_path_env("GRIDSCOUT_LOL_CHAMPION_CLASSES_PATH"),
            max_workers=max(1, _int_env("GRIDSCOUT_MAX_WORKERS", 4)),
            cors_origins=_list_env("GRIDSCOUT_CORS_ORIGINS")
            or ["http://localhost:3000", "http://localhost:3001"],
            log_level=os.getenv("GRIDSCOUT_LOG_LEVEL", "INFO").strip().upper(),
        )
