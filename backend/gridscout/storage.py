"""JSON document store on the local filesystem, keyed by kind and series id."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

KINDS = ("events", "series", "analytics", "reports")


class DocumentStore:
    """Stores raw event logs and JSON documents under ``root/<kind>/``.

    Writes go to a temp file in the target directory and are moved into place
    with ``os.replace`` so a reader never sees a partial document.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, kind: str, key: str) -> Path:
        if kind not in KINDS:
            raise ValueError(f"Unknown document kind '{kind}' (expected one of {KINDS})")
        safe_key = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in str(key).strip())
        suffix = ".jsonl" if kind == "events" else ".json"
        return self.root / kind / f"{safe_key}{suffix}"

    def has(self, kind: str, key: str) -> bool:
        return self.path_for(kind, key).exists()

    def keys(self, kind: str) -> List[str]:
        directory = self.root / kind
        if not directory.exists():
            return []
        return sorted(path.stem for path in directory.iterdir() if path.is_file())

    def load(self, kind: str, key: str) -> Optional[Any]:
        path = self.path_for(kind, key)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def save(self, kind: str, key: str, document: Any) -> Path:
        payload = json.dumps(document, ensure_ascii=False).encode("utf-8")
        return self._write_atomic(self.path_for(kind, key), payload)

    def load_events(self, series_id: str) -> Optional[bytes]:
        path = self.path_for("events", series_id)
        if not path.exists():
            return None
        return path.read_bytes()

    def save_events(self, series_id: str, content: bytes) -> Path:
        return self._write_atomic(self.path_for("events", series_id), content)

    def _write_atomic(self, path: Path, payload: bytes) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Wrote {len(payload)} bytes to {path}")
        return path
