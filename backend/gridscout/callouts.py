from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from gridscout.settings import DATA_DIR, Settings

logger = logging.getLogger(__name__)

DEFAULT_CALLOUTS_PATH = DATA_DIR / "valorant_callouts.json"
UNKNOWN_CALLOUT = "Unknown"


@dataclass(frozen=True)
class Callout:
    region_name: str
    super_region_name: str
    x: float
    y: float

    @property
    def label(self) -> str:
        return f"{self.super_region_name}: {self.region_name}"


def format_map_name(map_id: str) -> str:
    if not map_id:
        return map_id
    return map_id[:1].upper() + map_id[1:].lower()


class CalloutTable:
    """Read-only nearest-callout lookup keyed by lower-cased map display name."""

    def __init__(self, maps: Dict[str, List[Callout]]) -> None:
        self._maps = {name.strip().lower(): list(callouts) for name, callouts in maps.items()}
        self._coords = {
            name: np.array([[c.x, c.y] for c in callouts], dtype=float)
            for name, callouts in self._maps.items()
            if callouts
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "CalloutTable":
        if isinstance(payload, dict):
            payload = payload.get("data") or []
        if not isinstance(payload, list):
            return cls({})

        maps: Dict[str, List[Callout]] = {}
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            name = str(entry.get("displayName") or "").strip()
            if not name:
                continue
            callouts: List[Callout] = []
            for raw in entry.get("callouts") or []:
                location = raw.get("location") or {}
                x = location.get("x")
                y = location.get("y")
                if x is None or y is None:
                    continue
                callouts.append(
                    Callout(
                        region_name=str(raw.get("regionName") or ""),
                        super_region_name=str(raw.get("superRegionName") or ""),
                        x=float(x),
                        y=float(y),
                    )
                )
            maps[name] = callouts
        return cls(maps)

    @classmethod
    def from_file(cls, path: Path) -> "CalloutTable":
        if not path.exists():
            logger.warning(f"Callout table not found at {path}; region lookups disabled")
            return cls({})
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Failed to load callout table {path}: {exc}")
            return cls({})
        return cls.from_payload(payload)

    def has_map(self, map_name: str) -> bool:
        return bool(map_name) and map_name.strip().lower() in self._coords

    def closest(self, map_name: Optional[str], x: float, y: float) -> Optional[Callout]:
        if not map_name:
            return None
        key = map_name.strip().lower()
        coords = self._coords.get(key)
        if coords is None:
            return None
        distances = np.hypot(coords[:, 0] - x, coords[:, 1] - y)
        return self._maps[key][int(np.argmin(distances))]

    def label(self, map_name: Optional[str], x: float, y: float) -> str:
        callout = self.closest(map_name, x, y)
        return callout.label if callout else UNKNOWN_CALLOUT

    def super_region(self, map_name: Optional[str], x: float, y: float) -> Optional[str]:
        callout = self.closest(map_name, x, y)
        return callout.super_region_name if callout else None

    def bounds(self, map_name: Optional[str]) -> Dict[str, float]:
        """Callout extents padded by 15% on each axis."""
        coords = self._coords.get((map_name or "").strip().lower())
        if coords is None:
            return {"minX": -10000.0, "maxX": 10000.0, "minY": -10000.0, "maxY": 10000.0}
        min_x, min_y = coords.min(axis=0)
        max_x, max_y = coords.max(axis=0)
        pad_x = (max_x - min_x) * 0.15
        pad_y = (max_y - min_y) * 0.15
        return {
            "minX": float(min_x - pad_x),
            "maxX": float(max_x + pad_x),
            "minY": float(min_y - pad_y),
            "maxY": float(max_y + pad_y),
        }


@lru_cache
def load_callout_table(path: Optional[Path] = None) -> CalloutTable:
    return CalloutTable.from_file(path or DEFAULT_CALLOUTS_PATH)


def default_callout_table() -> CalloutTable:
    return load_callout_table(Settings.from_env().callouts_path)
