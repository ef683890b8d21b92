"""File locking for the shared dataset archive.

The refresh sequence (probe last-modified, maybe download, replace) must run
under mutual exclusion per archive path.  An in-process :class:`threading.Lock`
keyed by path serialises threads; a :mod:`filelock` lock file beside the
archive serialises processes sharing the same cache directory.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from pathlib import Path
from typing import Dict, Iterator

from filelock import FileLock, Timeout

from .errors import CacheRefreshError

__all__ = ["archive_lock", "lock_path_for"]

LOGGER = logging.getLogger(__name__)
logging.getLogger("filelock").setLevel(logging.INFO)

_thread_locks_guard = threading.Lock()
_thread_locks: Dict[Path, threading.Lock] = {}


def lock_path_for(archive_path: Path) -> Path:
    return archive_path.with_name(archive_path.name + ".lock")


def _lock_timeout(lock_file: Path, timeout: float) -> CacheRefreshError:
    return CacheRefreshError(
        f"timed out after {timeout}s waiting for {lock_file}",
        stage="lock",
        url=str(lock_file),
    )


def _thread_lock(archive_path: Path) -> threading.Lock:
    key = archive_path.resolve(strict=False)
    with _thread_locks_guard:
        lock = _thread_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _thread_locks[key] = lock
        return lock


@contextlib.contextmanager
def archive_lock(archive_path: Path, *, timeout: float) -> Iterator[None]:
    """Hold the refresh lock for ``archive_path``.

    Raises:
        CacheRefreshError: If the in-process and cross-process locks are not
            both acquired within ``timeout`` seconds.
    """

    archive_path = Path(archive_path)
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    lock_file = lock_path_for(archive_path)
    deadline = time.monotonic() + timeout
    thread_lock = _thread_lock(archive_path)
    if not thread_lock.acquire(timeout=timeout):
        raise _lock_timeout(lock_file, timeout)
    try:
        remaining = max(0.0, deadline - time.monotonic())
        file_lock = FileLock(str(lock_file), timeout=remaining)
        try:
            file_lock.acquire()
        except Timeout as exc:
            raise _lock_timeout(lock_file, timeout) from exc
        try:
            yield
        finally:
            file_lock.release()
    finally:
        thread_lock.release()
