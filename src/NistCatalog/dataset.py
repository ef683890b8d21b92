"""Local cache of the bulk publication export.

The upstream publishes ``pubs-export.zip`` (a single JSON array of records)
together with a ``pubs-export.meta`` resource whose ``Last-Modified`` header
tells when the archive last changed.  :class:`DatasetCache` keeps one copy of
the archive on disk and follows a simple lifecycle:

1. A missing archive, or one whose timestamp falls on a day before today, is
   *possibly stale*.
2. A possibly stale cache probes the ``.meta`` resource with ``HEAD``; the
   archive is downloaded when no local copy exists or the local timestamp
   predates the remote ``Last-Modified``.  Downloads stream to a temporary
   file and are moved into place only once complete and decodable as a
   single-member JSON array.
3. The archive's single member is parsed into :class:`RawRecord` objects once
   per cache generation and memoised on the instance.

The refresh sequence runs under :func:`~NistCatalog.locks.archive_lock`; reads
of a fresh archive do not take the lock.  When a refresh fails (including a
lock timeout or an unusable download) and an older archive exists it is
used with a warning, otherwise the
:class:`CacheRefreshError` propagates.
"""

from __future__ import annotations

import email.utils
import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

import httpx

from .cancellation import CancellationToken
from .errors import ArchiveCorruptError, CacheRefreshError, ResolutionCancelled
from .io import atomic_write_stream, read_single_member
from .locks import archive_lock
from .net import get_http_client, request_extensions
from .records import RawRecord, ingest_records
from .retry import create_http_retry_policy
from .settings import CatalogSettings, get_default_settings

__all__ = ["Clock", "CachedDataset", "DatasetCache", "utc_now"]

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CachedDataset:
    """Snapshot of the retained archive and its parsed records."""

    local_path: Path
    fetched_at: datetime
    records: Tuple[RawRecord, ...]


def _parse_http_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _decode_archive(path: Path) -> List[Any]:
    """Return the JSON array held by the archive's single member.

    Raises:
        ArchiveCorruptError: If the zip, its member count, or its JSON is invalid.
    """

    payload = read_single_member(path)
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ArchiveCorruptError(f"archive {path.name} holds invalid JSON: {exc}", path=path) from exc
    if not isinstance(data, list):
        raise ArchiveCorruptError(
            f"archive {path.name} must hold a JSON array, got {type(data).__name__}",
            path=path,
        )
    return data


class DatasetCache:
    """Owns the local copy of the bulk archive and its parsed record set.

    Args:
        settings: Catalog settings; ``archive_path`` locates the cache file.
        client: HTTP client; defaults to the shared client from
            :mod:`NistCatalog.net`.
        clock: Returns the current time; the archive's day is compared with
            ``clock().date()`` in the clock's timezone.
    """

    def __init__(
        self,
        settings: Optional[CatalogSettings] = None,
        *,
        client: Optional[httpx.Client] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings or get_default_settings()
        self._client = client
        self._clock = clock or utc_now
        self._memo_lock = threading.Lock()
        self._memo_key: Optional[Tuple[int, int]] = None
        self._records: Optional[List[RawRecord]] = None
        self._checked_on: Optional[date] = None

    # --- Public API -----------------------------------------------------------

    @property
    def archive_path(self) -> Path:
        return self.settings.archive_path

    @property
    def client(self) -> httpx.Client:
        return self._client or get_http_client(self.settings.http)

    def get_records(
        self, *, cancellation_token: Optional[CancellationToken] = None
    ) -> List[RawRecord]:
        """Return the parsed record set, refreshing the archive when stale.

        Raises:
            CacheRefreshError: If a refresh fails and no local archive exists.
            ArchiveCorruptError: If the archive cannot be opened or parsed.
            ResolutionCancelled: If ``cancellation_token`` fires mid-refresh.
        """

        now = self._now()
        local_ts = self._archive_timestamp(now)
        if self.is_stale(local_ts, now) and (local_ts is None or self._checked_on != now.date()):
            self._refresh(now, cancellation_token)
        return self._load()

    def cached_dataset(
        self, *, cancellation_token: Optional[CancellationToken] = None
    ) -> CachedDataset:
        records = self.get_records(cancellation_token=cancellation_token)
        fetched_at = self._archive_timestamp(self._now())
        if fetched_at is None:
            raise ArchiveCorruptError("archive vanished after load", path=self.archive_path)
        return CachedDataset(
            local_path=self.archive_path,
            fetched_at=fetched_at,
            records=tuple(records),
        )

    def invalidate(self) -> None:
        """Drop the memoised records so the next call re-reads the archive."""

        with self._memo_lock:
            self._memo_key = None
            self._records = None
            self._checked_on = None

    @staticmethod
    def is_stale(local_ts: Optional[datetime], now: datetime) -> bool:
        """Return ``True`` when the archive is missing or dated before today."""

        return local_ts is None or local_ts.date() < now.date()

    # --- Refresh ----------------------------------------------------------------

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.astimezone()
        return now

    def _archive_timestamp(self, now: datetime) -> Optional[datetime]:
        try:
            stat = self.archive_path.stat()
        except FileNotFoundError:
            return None
        return datetime.fromtimestamp(stat.st_mtime, tz=now.tzinfo)

    def _refresh(self, now: datetime, token: Optional[CancellationToken]) -> None:
        path = self.archive_path
        local_ts = self._archive_timestamp(now)
        try:
            with archive_lock(path, timeout=self.settings.lock_timeout_sec):
                local_ts = self._archive_timestamp(now)
                if not self.is_stale(local_ts, now):
                    # another worker refreshed while we waited for the lock
                    return
                if token is not None:
                    token.raise_if_cancelled("metadata")
                remote_ts = self._remote_last_modified()
                if local_ts is None or remote_ts is None or local_ts < remote_ts:
                    self._download(now, token)
                else:
                    LOGGER.debug(
                        "dataset archive is current",
                        extra={"stage": "metadata", "path": str(path), "remote": str(remote_ts)},
                    )
        except CacheRefreshError as exc:
            if local_ts is None:
                raise
            LOGGER.warning(
                "dataset refresh failed; using cached archive",
                extra={"stage": exc.stage, "url": exc.url, "path": str(path), "error": str(exc)},
            )
        self._checked_on = now.date()

    def _retry_policy(self):
        http = self.settings.http
        return create_http_retry_policy(
            max_attempts=http.max_retries + 1,
            max_delay_seconds=http.backoff_max_sec,
        )

    def _remote_last_modified(self) -> Optional[datetime]:
        url = self.settings.meta_url
        try:
            for attempt in self._retry_policy():
                with attempt:
                    response = self.client.head(
                        url,
                        extensions=request_extensions(self.settings.http),
                    )
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise CacheRefreshError(
                f"metadata request failed with HTTP {exc.response.status_code}",
                stage="metadata",
                url=url,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise CacheRefreshError(
                f"metadata request failed: {exc}", stage="metadata", url=url
            ) from exc
        remote_ts = _parse_http_date(response.headers.get("Last-Modified"))
        if remote_ts is None:
            LOGGER.info(
                "metadata response has no usable Last-Modified; forcing download",
                extra={"stage": "metadata", "url": url},
            )
        return remote_ts

    def _download(self, now: datetime, token: Optional[CancellationToken]) -> None:
        url = self.settings.archive_url
        path = self.archive_path
        http = self.settings.http
        timeout = httpx.Timeout(http.download_timeout_sec, connect=http.connect_timeout_sec)
        should_abort = token.is_cancelled if token is not None else None
        LOGGER.info("downloading dataset archive", extra={"stage": "download", "url": url})
        try:
            for attempt in self._retry_policy():
                with attempt:
                    with self.client.stream(
                        "GET",
                        url,
                        timeout=timeout,
                        extensions=request_extensions(http),
                    ) as response:
                        response.raise_for_status()
                        written = atomic_write_stream(
                            path,
                            response.iter_bytes(),
                            should_abort=should_abort,
                            validate=_decode_archive,
                        )
        except InterruptedError as exc:
            raise ResolutionCancelled("resolution cancelled during download") from exc
        except ArchiveCorruptError as exc:
            raise CacheRefreshError(
                f"downloaded archive is unusable: {exc}", stage="download", url=url
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise CacheRefreshError(
                f"archive download failed with HTTP {exc.response.status_code}",
                stage="download",
                url=url,
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, OSError) as exc:
            raise CacheRefreshError(
                f"archive download failed: {exc}", stage="download", url=url
            ) from exc

        stamp = now.timestamp()
        os.utime(path, (stamp, stamp))
        LOGGER.info(
            "dataset archive refreshed",
            extra={"stage": "download", "url": url, "path": str(path), "bytes": written},
        )

    # --- Parsing ----------------------------------------------------------------

    def _load(self) -> List[RawRecord]:
        path = self.archive_path
        try:
            stat = path.stat()
        except FileNotFoundError as exc:
            raise ArchiveCorruptError(f"archive {path} does not exist", path=path) from exc
        key = (stat.st_mtime_ns, stat.st_size)
        with self._memo_lock:
            if self._records is not None and self._memo_key == key:
                return self._records
            self._records = ingest_records(_decode_archive(path))
            self._memo_key = key
            LOGGER.debug(
                "parsed dataset archive",
                extra={"stage": "parse", "path": str(path), "records": len(self._records)},
            )
            return self._records
