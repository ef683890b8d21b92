# === NAVMAP v1 ===
# {
#   "module": "tests.nist_catalog.conftest",
#   "purpose": "Shared fixtures: isolated settings, fixed clock, archive builders, and a MockTransport upstream",
#   "sections": [
#     {"id": "clock", "name": "Clock fixtures", "anchor": "CLK", "kind": "fixtures"},
#     {"id": "archives", "name": "Archive builders", "anchor": "ARC", "kind": "fixtures"},
#     {"id": "upstream", "name": "UpstreamStub", "anchor": "UPS", "kind": "fixtures"}
#   ]
# }
# === /NAVMAP ===

"""Shared fixtures for the catalog test suite.

Every test runs against an isolated cache directory and a fixed clock; HTTP
traffic is served by :class:`UpstreamStub` through ``httpx.MockTransport`` so
no test touches the network or the real per-user cache.
"""

from __future__ import annotations

import io
import json
import os
import zipfile
from collections import Counter
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
import pytest

from NistCatalog import net
from NistCatalog.settings import CatalogSettings, HttpConfiguration, reset_default_settings

FIXED_NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolate_globals(monkeypatch: pytest.MonkeyPatch):
    for name in list(os.environ):
        if name.startswith("NISTCAT_"):
            monkeypatch.delenv(name, raising=False)
    reset_default_settings()
    net.reset_http_client()
    yield
    reset_default_settings()
    net.reset_http_client()


# --- Clock ----------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(now: datetime) -> Callable[[], datetime]:
    return lambda: now


# --- Settings -------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> CatalogSettings:
    return CatalogSettings(
        cache_dir=tmp_path / "cache",
        lock_timeout_sec=5.0,
        http=HttpConfiguration(max_retries=0, backoff_max_sec=0.0),
    )


# --- Archive builders -----------------------------------------------------------


@pytest.fixture
def make_record() -> Callable[..., Dict[str, Any]]:
    def _make(
        docidentifier: str,
        *,
        status: str = "final",
        issued: Optional[str] = "2014-01-15",
        published: Optional[str] = None,
        series: str = "nist-sp",
        title: str = "A Publication",
        subtitle: Optional[str] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "docidentifier": docidentifier,
            "series": series,
            "title-main": title,
            "uri": f"https://doi.org/10.6028/NIST.{docidentifier}",
            "status": status,
        }
        if subtitle is not None:
            record["title-sub"] = subtitle
        if issued is not None:
            record["issued-date"] = issued
        record["published-date"] = published if published is not None else issued
        record.update(extra)
        return record

    return _make


def build_archive(payload: Any, member: str = "pubs-export.json") -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        data = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)
        archive.writestr(member, data)
    return buffer.getvalue()


@pytest.fixture
def archive_bytes() -> Callable[..., bytes]:
    return build_archive


@pytest.fixture
def write_archive(settings: CatalogSettings) -> Callable[..., Path]:
    """Place an archive in the cache with a chosen modification time."""

    def _write(payload: Any, *, mtime: datetime) -> Path:
        path = settings.archive_path
        path.parent.mkdir(parents=True, exist_ok=True)
        data = payload if isinstance(payload, bytes) else build_archive(payload)
        path.write_bytes(data)
        stamp = mtime.timestamp()
        os.utime(path, (stamp, stamp))
        return path

    return _write


# --- Upstream -------------------------------------------------------------------


def render_search_page(rows: Iterable[Dict[str, str]], *, table: bool = True) -> str:
    body = []
    for row in rows:
        body.append(
            "<tr>"
            f"<td>{row['series']}</td>"
            f"<td>{row['code']}</td>"
            f"<td><div><strong><a href=\"{row['href']}\">{row['title']}</a></strong></div></td>"
            f"<td>{row['status']}</td>"
            f"<td>{row['date']}</td>"
            "</tr>"
        )
    if not table:
        return "<html><body><p>Service temporarily unavailable</p></body></html>"
    return (
        "<html><body><table class=\"publications-table\">"
        "<thead><tr><th>Series</th><th>Number</th><th>Title</th><th>Status</th><th>Released</th></tr></thead>"
        f"<tbody>{''.join(body)}</tbody></table></body></html>"
    )


class UpstreamStub:
    """Programmable stand-in for the CSRC metadata, archive, and search endpoints."""

    def __init__(self) -> None:
        self.archive: bytes = build_archive([])
        self.last_modified: Optional[datetime] = FIXED_NOW - timedelta(hours=4)
        self.search_html: str = render_search_page([])
        self.search_handler: Optional[Callable[[httpx.Request], httpx.Response]] = None
        self.fail: Dict[str, Exception] = {}
        self.status: Dict[str, int] = {}
        self.calls: Counter = Counter()
        self.requests: List[httpx.Request] = []

    def _kind(self, request: httpx.Request) -> str:
        path = request.url.path
        if path.endswith(".meta"):
            return "meta"
        if path.endswith(".zip"):
            return "archive"
        if path.endswith("/publications/search"):
            return "search"
        return "unknown"

    def handler(self, request: httpx.Request) -> httpx.Response:
        kind = self._kind(request)
        self.calls[(request.method, kind)] += 1
        self.requests.append(request)
        if kind in self.fail:
            raise self.fail[kind]
        if kind in self.status:
            return httpx.Response(self.status[kind], request=request)
        if kind == "meta":
            headers = {}
            if self.last_modified is not None:
                headers["Last-Modified"] = format_datetime(self.last_modified, usegmt=True)
            return httpx.Response(200, headers=headers, request=request)
        if kind == "archive":
            return httpx.Response(
                200,
                content=self.archive,
                headers={"Content-Type": "application/zip"},
                request=request,
            )
        if kind == "search":
            if self.search_handler is not None:
                return self.search_handler(request)
            return httpx.Response(200, text=self.search_html, request=request)
        return httpx.Response(404, request=request)

    @property
    def downloads(self) -> int:
        return self.calls[("GET", "archive")]

    @property
    def probes(self) -> int:
        return self.calls[("HEAD", "meta")]


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def client(upstream: UpstreamStub):
    with httpx.Client(transport=httpx.MockTransport(upstream.handler)) as http_client:
        yield http_client


@pytest.fixture
def search_page() -> Callable[..., str]:
    return render_search_page
