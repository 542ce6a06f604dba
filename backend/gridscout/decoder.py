from __future__ import annotations

import io
import json
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)


class EventLogError(ValueError):
    """Raised when a container (zip) cannot be opened at all."""


def parse_timestamp_ms(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = pd.Timestamp(value).to_pydatetime()
        except (ValueError, TypeError):
            return None
    return int(round(parsed.timestamp() * 1000))


@dataclass(frozen=True)
class EventBatch:
    occurred_at: str
    series_id: str
    events: List[Dict[str, Any]] = field(default_factory=list)
    id: Optional[str] = None
    sequence_number: Optional[int] = None

    @property
    def time_ms(self) -> Optional[int]:
        return parse_timestamp_ms(self.occurred_at)

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["EventBatch"]:
        if not isinstance(raw, dict):
            return None
        events = raw.get("events")
        if not isinstance(events, list):
            events = []
        return cls(
            occurred_at=str(raw.get("occurredAt") or ""),
            series_id=str(raw.get("seriesId") or ""),
            events=[event for event in events if isinstance(event, dict)],
            id=str(raw["id"]) if raw.get("id") is not None else None,
            sequence_number=raw.get("sequenceNumber"),
        )


def decode_event_log(content: Union[str, bytes]) -> List[EventBatch]:
    """Parse a line-delimited event log into batches, skipping bad lines."""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")

    batches: List[EventBatch] = []
    skipped = 0
    # Only "\n" ends a record; JSON strings may carry raw U+2028, U+2029 or U+0085.
    for line_number, line in enumerate(content.split("\n"), start=1):
        line = line.rstrip("\r")
        if not line.strip():
            continue
        try:
            raw = json.loads(line)
        except ValueError as exc:
            skipped += 1
            logger.debug(f"Skipping malformed event line {line_number}: {exc}")
            continue
        batch = EventBatch.from_raw(raw)
        if batch is None:
            skipped += 1
            logger.debug(f"Skipping non-object event line {line_number}")
            continue
        batches.append(batch)

    if skipped:
        logger.warning(f"Dropped {skipped} malformed event line(s); kept {len(batches)}")
    return batches


def read_events_zip(content: bytes) -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            names = archive.namelist()
            if not names:
                return b""
            with archive.open(names[0]) as handle:
                return handle.read()
    except (zipfile.BadZipFile, OSError) as exc:
        raise EventLogError(f"Failed to read events zip: {exc}") from exc


def decode_payload(content: bytes) -> List[EventBatch]:
    """Decode a downloaded events payload: zipped JSONL, a JSON array or plain JSONL."""
    if content.startswith(b"PK"):
        content = read_events_zip(content)
    stripped = content.lstrip()
    if stripped.startswith(b"["):
        try:
            payload = json.loads(stripped.decode("utf-8"))
        except ValueError:
            payload = None
        if isinstance(payload, list):
            batches = [EventBatch.from_raw(item) for item in payload]
            return [batch for batch in batches if batch is not None]
    return decode_event_log(content)
