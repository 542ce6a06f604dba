"""Static League of Legends lookups the event log does not carry.

Player roles come from a name -> role table and champion classes from a
champion -> {class, hasHardCC} table, both JSON files under ``data/``.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from gridscout.settings import DATA_DIR, Settings

logger = logging.getLogger(__name__)

DEFAULT_POSITIONS_PATH = DATA_DIR / "lol_positions.json"
DEFAULT_CHAMPION_CLASSES_PATH = DATA_DIR / "lol_champion_classes.json"

ROLES = ("top", "jungle", "mid", "bot", "support")


def _read_json(path: Path, label: str) -> Dict[str, Any]:
    if not path.exists():
        logger.warning(f"{label} not found at {path}; related LoL analyzers will be empty")
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(f"Failed to load {label} {path}: {exc}")
        return {}
    return payload if isinstance(payload, dict) else {}


class LolReference:
    def __init__(self, roles: Dict[str, str], champion_classes: Dict[str, Dict[str, Any]]) -> None:
        self._roles = {name: role for name, role in roles.items() if role in ROLES}
        self._classes = champion_classes

    @classmethod
    def from_files(cls, positions_path: Path, classes_path: Path) -> "LolReference":
        return cls(
            {str(k): str(v).lower() for k, v in _read_json(positions_path, "Role table").items()},
            {
                str(k): v
                for k, v in _read_json(classes_path, "Champion class table").items()
                if isinstance(v, dict)
            },
        )

    def role_of(self, player_name: Optional[str]) -> Optional[str]:
        return self._roles.get(player_name or "")

    def champion_class(self, champion: Optional[str]) -> Optional[Dict[str, Any]]:
        data = self._classes.get(champion or "")
        if data is None:
            return None
        classes: List[str] = [str(c) for c in data.get("class") or []]
        return {"classes": classes, "hasHardCC": bool(data.get("hasHardCC"))}


@lru_cache
def load_lol_reference(
    positions_path: Optional[Path] = None, classes_path: Optional[Path] = None
) -> LolReference:
    return LolReference.from_files(
        positions_path or DEFAULT_POSITIONS_PATH, classes_path or DEFAULT_CHAMPION_CLASSES_PATH
    )


def default_lol_reference() -> LolReference:
    settings = Settings.from_env()
    return load_lol_reference(settings.lol_positions_path, settings.lol_champion_classes_path)
