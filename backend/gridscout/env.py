from __future__ import annotations

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).resolve().parents[1]

# Auth defaults for the file-download API; real env vars and .env files win.
ENV_DEFAULTS = {
    "GRID_API_AUTH_MODE": "auto",
    "GRID_API_AUTH_HEADER": "x-api-key",
    "GRID_API_TOKEN_PREFIX": "",
    "GRIDSCOUT_LOG_LEVEL": "INFO",
}


def env_files() -> List[Path]:
    """.env files to read, most specific first."""
    files = []
    explicit = os.getenv("GRIDSCOUT_ENV_FILE")
    if explicit:
        files.append(Path(explicit))
    files.extend([BACKEND_DIR / ".env", BACKEND_DIR.parent / ".env"])
    return [path for path in files if path.is_file()]


def load_env() -> List[Path]:
    found = env_files()
    for path in found:
        load_dotenv(path, override=False)
    if not found:
        load_dotenv()
    for name, value in ENV_DEFAULTS.items():
        os.environ.setdefault(name, value)
    return found
