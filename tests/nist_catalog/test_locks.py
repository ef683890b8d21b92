"""Tests for the per-archive refresh lock."""

from __future__ import annotations

import threading
import time

import pytest
from filelock import FileLock

from NistCatalog.errors import CacheRefreshError
from NistCatalog.locks import archive_lock, lock_path_for


def test_lock_file_sits_beside_archive(tmp_path) -> None:
    assert lock_path_for(tmp_path / "pubs-export.zip") == tmp_path / "pubs-export.zip.lock"


def test_lock_is_reusable_after_release(tmp_path) -> None:
    archive = tmp_path / "cache" / "pubs-export.zip"
    with archive_lock(archive, timeout=1.0):
        assert lock_path_for(archive).parent.is_dir()
    with archive_lock(archive, timeout=1.0):
        pass


def test_thread_waiting_on_busy_lock_times_out(tmp_path) -> None:
    archive = tmp_path / "pubs-export.zip"
    held = threading.Event()
    release = threading.Event()

    def holder() -> None:
        with archive_lock(archive, timeout=1.0):
            held.set()
            release.wait(5.0)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert held.wait(5.0)
        started = time.monotonic()
        with pytest.raises(CacheRefreshError) as excinfo:
            with archive_lock(archive, timeout=0.1):
                pass
        assert time.monotonic() - started < 2.0
        assert excinfo.value.stage == "lock"
        assert excinfo.value.url == str(lock_path_for(archive))
    finally:
        release.set()
        thread.join()

    with archive_lock(archive, timeout=1.0):
        pass


def test_file_lock_held_elsewhere_times_out(tmp_path) -> None:
    archive = tmp_path / "pubs-export.zip"
    with FileLock(str(lock_path_for(archive))):
        with pytest.raises(CacheRefreshError) as excinfo:
            with archive_lock(archive, timeout=0.1):
                pass
    assert excinfo.value.stage == "lock"
    # a failed attempt leaves the in-process lock free
    with archive_lock(archive, timeout=1.0):
        pass
