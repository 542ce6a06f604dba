from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiohttp
import requests

from gridscout.decoder import EventLogError, read_events_zip

logger = logging.getLogger(__name__)

AUTH_RETRY_STATUSES = (401, 403)


class GridAPIError(RuntimeError):
    pass


class GridConfigError(ValueError):
    pass


def auth_header_variants(api_key: str) -> List[Dict[str, str]]:
    """Header sets to try in order; later ones are only used after a 401/403.

    The configured scheme comes first. In ``auto`` mode the client also tries
    ``Authorization: Bearer`` and a bare ``x-api-key`` header.
    """
    header = os.getenv("GRID_API_AUTH_HEADER", "Authorization").strip()
    prefix = os.getenv("GRID_API_TOKEN_PREFIX", "Bearer").strip()
    schemes: List[Tuple[str, str]] = [(header, prefix)]
    if os.getenv("GRID_API_AUTH_MODE", "auto").strip().lower() == "auto":
        schemes += [("Authorization", "Bearer"), ("x-api-key", "")]

    variants: List[Dict[str, str]] = []
    for name, token_prefix in schemes:
        headers = {"Accept": "application/json"}
        if api_key:
            headers[name] = f"{token_prefix} {api_key}".strip()
        if headers not in variants:
            variants.append(headers)
    return variants


def error_detail(payload: Any, text: str) -> str:
    if isinstance(payload, dict):
        for key in ("error", "message", "error_message"):
            if key in payload:
                return str(payload[key])
        if "errors" in payload:
            return json.dumps(payload["errors"])
        return json.dumps(payload)
    return text or "No response body"


def events_file_url(files: List[Dict]) -> Optional[str]:
    """Download URL of the first listed file that looks like an event log."""
    for entry in files:
        if not isinstance(entry, dict):
            continue
        label = f"{entry.get('id') or ''} {entry.get('description') or ''}".lower()
        if "event" in label:
            return entry.get("fullURL") or entry.get("fullUrl")
    return None


def _files_from_listing(payload: Any) -> List[Dict]:
    files = payload.get("files") if isinstance(payload, dict) else None
    return files if isinstance(files, list) else []


def _unpack_events(content: bytes, content_type: str = "") -> bytes:
    """Unzip a downloaded events file; JSONL and JSON arrays pass through."""
    if content.startswith(b"PK") or "zip" in content_type.lower():
        try:
            return read_events_zip(content)
        except EventLogError as exc:
            raise GridAPIError(str(exc)) from exc
    return content


@dataclass(frozen=True)
class FileDownloadConfig:
    base_url: str
    list_path: str
    events_path: str

    @classmethod
    def from_env(cls) -> "FileDownloadConfig":
        return cls(
            base_url=os.getenv("GRID_FILE_DOWNLOAD_URL", "https://api.grid.gg/file-download"),
            list_path=os.getenv("GRID_FILE_DOWNLOAD_LIST_PATH", "/list/{series_id}"),
            events_path=os.getenv(
                "GRID_FILE_DOWNLOAD_EVENTS_PATH", "/events/grid/series/{series_id}"
            ),
        )

    def list_url(self, series_id: str) -> str:
        return self.base_url.rstrip("/") + self.list_path.format(series_id=series_id)

    def events_url(self, series_id: str) -> str:
        return self.base_url.rstrip("/") + self.events_path.format(series_id=series_id)


class FileDownloadClient:
    """Blocking client for the GRID file-download API."""

    def __init__(
        self,
        api_key: str,
        config: Optional[FileDownloadConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.config = config or FileDownloadConfig.from_env()
        self.session = session or requests.Session()

    def list_files(self, series_id: str) -> List[Dict]:
        response = self._get(self.config.list_url(series_id))
        try:
            return _files_from_listing(response.json())
        except ValueError as exc:
            raise GridAPIError(f"Non-JSON response from GRID API: {exc}") from exc

    def fetch_series_events(self, series_id: str) -> bytes:
        """Raw event log of a series, unzipped."""
        url = events_file_url(self.list_files(series_id)) or self.config.events_url(series_id)
        response = self._get(url, timeout=60)
        return _unpack_events(response.content, response.headers.get("Content-Type") or "")

    def _get(self, url: str, timeout: int = 30) -> requests.Response:
        variants = auth_header_variants(self.api_key)
        response = None
        for attempt, headers in enumerate(variants, start=1):
            last = attempt == len(variants)
            try:
                response = self.session.request("GET", url, headers=headers, params=None, timeout=timeout)
            except requests.RequestException as exc:
                if last:
                    raise GridAPIError(f"GRID API error: {exc}") from exc
                continue
            if response.status_code not in AUTH_RETRY_STATUSES or last:
                break
            logger.debug(f"GRID rejected auth variant {attempt} for {url}, retrying")
        if response is None:
            raise GridAPIError("GRID API error: No response received.")
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            detail = error_detail(payload, response.text.strip())
            raise GridAPIError(f"GRID API error: {response.status_code} - {detail}")
        return response


class AsyncFileDownloadClient:
    """aiohttp counterpart of FileDownloadClient for fetching many series at once."""

    def __init__(
        self,
        api_key: str,
        config: Optional[FileDownloadConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.api_key = api_key
        self.config = config or FileDownloadConfig.from_env()
        self.session = session
        self._own_session = session is None

    async def list_files(self, series_id: str) -> List[Dict]:
        _, body = await self._get(self.config.list_url(series_id))
        try:
            return _files_from_listing(json.loads(body))
        except ValueError as exc:
            raise GridAPIError(f"Non-JSON response from GRID API: {exc}") from exc

    async def fetch_series_events(self, series_id: str) -> bytes:
        url = events_file_url(await self.list_files(series_id)) or self.config.events_url(series_id)
        content_type, body = await self._get(url, timeout_seconds=60)
        return _unpack_events(body, content_type)

    async def fetch_many_series_events(
        self, series_ids: Iterable[str], concurrency: int = 8
    ) -> Dict[str, bytes]:
        """Download several logs at once, at most ``concurrency`` in flight."""
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def fetch(series_id: str) -> bytes:
            async with semaphore:
                t0 = time.perf_counter()
                content = await self.fetch_series_events(series_id)
                logger.info(
                    f"[TIMING] fetch events {series_id}: {time.perf_counter() - t0:.2f}s"
                )
                return content

        ids = list(series_ids)
        contents = await asyncio.gather(*(fetch(series_id) for series_id in ids))
        return dict(zip(ids, contents))

    async def _get(self, url: str, timeout_seconds: int = 30) -> Tuple[str, bytes]:
        """Content type and body of a successful GET."""
        if self.session is None:
            self.session = aiohttp.ClientSession()
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        variants = auth_header_variants(self.api_key)
        for attempt, headers in enumerate(variants, start=1):
            last = attempt == len(variants)
            try:
                async with self.session.get(url, headers=headers, timeout=timeout) as response:
                    if response.status in AUTH_RETRY_STATUSES and not last:
                        continue
                    body = await response.read()
                    if response.status >= 400:
                        text = body.decode("utf-8", errors="replace").strip()
                        try:
                            payload = json.loads(text)
                        except ValueError:
                            payload = None
                        raise GridAPIError(
                            f"GRID API error: {response.status} - {error_detail(payload, text)}"
                        )
                    return response.headers.get("Content-Type") or "", body
            except asyncio.TimeoutError as exc:
                if last:
                    raise GridAPIError(f"GRID API error: timeout after {timeout_seconds}s") from exc
            except aiohttp.ClientError as exc:
                if last:
                    raise GridAPIError(f"GRID API error: {exc}") from exc
        raise GridAPIError("GRID API error: No response received.")

    async def close(self) -> None:
        if self._own_session and self.session:
            await self.session.close()


class GridClient:
    """Event-log access for the API, with a raw-log cache in debug mode."""

    def __init__(
        self,
        api_key: str,
        debug_mode: bool = False,
        force_live: bool = False,
        file_download_url: Optional[str] = None,
        file_download_list_path: Optional[str] = None,
        file_download_events_path: Optional[str] = None,
        cache_dir: Optional[Path] = None,
    ) -> None:
        if not api_key and (force_live or not debug_mode):
            raise GridConfigError("GRID_API_KEY is required unless debug mode serves cached logs.")

        self.debug_mode = debug_mode
        self.force_live = force_live
        self.cache_dir = cache_dir or (Path(__file__).resolve().parents[1] / "data" / "debug_cache")
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        defaults = FileDownloadConfig.from_env()
        self.downloads = FileDownloadClient(
            api_key,
            config=FileDownloadConfig(
                base_url=file_download_url or defaults.base_url,
                list_path=file_download_list_path or defaults.list_path,
                events_path=file_download_events_path or defaults.events_path,
            ),
        )

    def fetch_series_events(self, series_id: str) -> bytes:
        cache_file = self.cache_dir / f"events_{_slugify(series_id)}.jsonl"
        if self.debug_mode and not self.force_live and cache_file.exists():
            logger.info(f"Loaded cached event log for series {series_id}")
            return cache_file.read_bytes()

        t0 = time.perf_counter()
        content = self.downloads.fetch_series_events(series_id)
        logger.info(
            f"[TIMING] fetch events {series_id}: {time.perf_counter() - t0:.2f}s ({len(content)} bytes)"
        )
        if self.debug_mode:
            cache_file.write_bytes(content)
        return content


def _slugify(value: str) -> str:
    cleaned = "".join(ch.lower() if ch.isalnum() else "_" for ch in value.strip())
    return cleaned.strip("_")
