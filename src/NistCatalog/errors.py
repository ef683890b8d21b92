"""Exception hierarchy shared across catalog caching, search, and resolution.

Catalog resolution spans configuration parsing, archive refreshes, live
search scraping, and status mapping.  This module groups the failure modes
into a small hierarchy so caller code can react to high-level categories (a
refresh that may fall back to a local archive vs. a search that cannot) while
still having access to the URL and stage that failed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

__all__ = [
    "CatalogError",
    "InvalidStageError",
    "CacheRefreshError",
    "ArchiveCorruptError",
    "SearchUnavailableError",
    "ResolutionCancelled",
    "ConfigurationError",
]


class CatalogError(RuntimeError):
    """Base exception for catalog caching, search, and resolution failures."""


class ConfigurationError(CatalogError):
    """Raised when settings or environment overrides are invalid."""


class InvalidStageError(CatalogError, ValueError):
    """Raised when a document status is built from an unrecognised stage."""

    def __init__(self, stage: object) -> None:
        super().__init__(f"invalid argument: stage ({stage})")
        self.stage = stage


class CacheRefreshError(CatalogError):
    """Raised when the dataset archive cannot be refreshed from upstream.

    ``stage`` is ``"metadata"`` for the last-modified probe and ``"download"``
    for the archive transfer.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        url: str,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.url = url
        self.status_code = status_code


class ArchiveCorruptError(CatalogError):
    """Raised when a cached archive cannot be opened or parsed."""

    def __init__(self, message: str, *, path: Union[str, Path]) -> None:
        super().__init__(message)
        self.path = Path(path)


class SearchUnavailableError(CatalogError):
    """Raised when the live search endpoint is unreachable or unparseable."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ResolutionCancelled(CatalogError):
    """Raised when a caller abandons a resolution through its cancellation token."""
