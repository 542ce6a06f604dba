from __future__ import annotations

import io
import sys
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from gridscout.grid_client import (
    FileDownloadClient,
    FileDownloadConfig,
    GridAPIError,
    GridClient,
    GridConfigError,
    auth_header_variants,
)

CONFIG = FileDownloadConfig(
    base_url="https://grid.test/file-download",
    list_path="/list/{series_id}",
    events_path="/events/grid/series/{series_id}",
)


class _FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self.headers = headers or {}
        self.text = "" if payload is None else str(payload)

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _FakeSession:
    def __init__(self, responses: List[_FakeResponse]) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, headers=None, params=None, timeout=None) -> _FakeResponse:
        self.calls.append({"method": method, "url": url, "headers": headers})
        return self.responses.pop(0)


def _build_zip(content: bytes) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("events_2629391_grid.jsonl", content)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def auth_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GRID_API_AUTH_HEADER", "x-api-key")
    monkeypatch.setenv("GRID_API_TOKEN_PREFIX", "")
    monkeypatch.setenv("GRID_API_AUTH_MODE", "auto")


def test_auth_variants_fall_back_to_bearer() -> None:
    variants = auth_header_variants("secret")
    assert [v.get("x-api-key") or v.get("Authorization") for v in variants] == ["secret", "Bearer secret"]


def test_fetch_series_events_downloads_listed_file() -> None:
    session = _FakeSession(
        [
            _FakeResponse(401, {"message": "bad header"}),
            _FakeResponse(
                200,
                {"files": [{"id": "state-grid"}, {"id": "events-grid", "fullURL": "https://grid.test/events.zip"}]},
            ),
            _FakeResponse(200, content=_build_zip(b'{"id": "1"}\n'), headers={"Content-Type": "application/zip"}),
        ]
    )
    client = FileDownloadClient("secret", config=CONFIG, session=session)

    assert client.fetch_series_events("2629391") == b'{"id": "1"}\n'
    assert session.calls[0]["url"] == "https://grid.test/file-download/list/2629391"
    assert session.calls[1]["headers"]["Authorization"] == "Bearer secret"
    assert session.calls[2]["url"] == "https://grid.test/events.zip"


def test_fetch_series_events_falls_back_to_events_path() -> None:
    session = _FakeSession([_FakeResponse(200, {"files": []}), _FakeResponse(200, content=b'{"id": "1"}\n')])
    client = FileDownloadClient("secret", config=CONFIG, session=session)

    assert client.fetch_series_events("42") == b'{"id": "1"}\n'
    assert session.calls[1]["url"] == "https://grid.test/file-download/events/grid/series/42"


def test_http_errors_raise_grid_api_error() -> None:
    session = _FakeSession([_FakeResponse(404, {"error": "series not found"})])
    client = FileDownloadClient("secret", config=CONFIG, session=session)

    with pytest.raises(GridAPIError, match="404 - series not found"):
        client.list_files("42")


def test_grid_client_requires_key_outside_debug(tmp_path: Path) -> None:
    with pytest.raises(GridConfigError):
        GridClient(api_key="", cache_dir=tmp_path)


def test_debug_mode_serves_cached_logs(tmp_path: Path) -> None:
    client = GridClient(api_key="", debug_mode=True, cache_dir=tmp_path)
    (tmp_path / "events_2629391.jsonl").write_bytes(b'{"id": "cached"}\n')

    assert client.fetch_series_events("2629391") == b'{"id": "cached"}\n'
