"""Filesystem helpers for the dataset archive.

- :func:`atomic_write_stream` streams bytes into a temporary file beside the
  destination and only moves it into place once every chunk has been written,
  so an interrupted download never replaces a previously valid archive.
- :func:`read_single_member` opens a zip archive and returns the bytes of its
  only member.
"""

from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from .errors import ArchiveCorruptError

__all__ = ["atomic_write_stream", "read_single_member"]

LOGGER = logging.getLogger(__name__)


def atomic_write_stream(
    dest_path: Union[str, Path],
    byte_iter: Iterable[bytes],
    *,
    should_abort: Optional[Callable[[], bool]] = None,
    validate: Optional[Callable[[Path], None]] = None,
) -> int:
    """Write ``byte_iter`` to ``dest_path`` atomically.

    Uses a temporary file + fsync + ``os.replace`` so that either the whole
    payload lands at ``dest_path`` or the previous file is left untouched.
    Parent directories are created when missing.

    Args:
        dest_path: Final location of the file.
        byte_iter: Iterator of byte chunks, e.g. ``response.iter_bytes()``.
        should_abort: Polled between chunks; returning ``True`` discards the
            temporary file and raises :class:`InterruptedError`.
        validate: Called with the complete temporary file before it replaces
            ``dest_path``; any exception it raises discards the file and
            propagates.

    Returns:
        Number of bytes written.
    """

    dest = Path(dest_path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=".part-", suffix=".tmp")
    tmp_path = Path(tmp_name)
    written = 0
    try:
        with os.fdopen(fd, "wb") as handle:
            for chunk in byte_iter:
                if should_abort is not None and should_abort():
                    raise InterruptedError(f"write to {dest} aborted")
                if chunk:
                    handle.write(chunk)
                    written += len(chunk)
            handle.flush()
            os.fsync(handle.fileno())
        if validate is not None:
            validate(tmp_path)
        os.replace(tmp_path, dest)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return written


def read_single_member(archive_path: Union[str, Path]) -> bytes:
    """Return the content of the only file inside a zip archive.

    Raises:
        ArchiveCorruptError: If the archive is missing, unreadable, or does not
            hold exactly one file.
    """

    path = Path(archive_path)
    try:
        with zipfile.ZipFile(path) as archive:
            members = [info for info in archive.infolist() if not info.is_dir()]
            if len(members) != 1:
                raise ArchiveCorruptError(
                    f"expected exactly one file in {path.name}, found {len(members)}",
                    path=path,
                )
            with archive.open(members[0]) as member:
                return member.read()
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as exc:
        raise ArchiveCorruptError(f"cannot read archive {path}: {exc}", path=path) from exc
