"""Resolve NIST publication citations against the CSRC catalog.

Public entry points:

- :class:`CatalogResolver` routes a citation to the cached bulk export or the
  live search and returns ranked :class:`Candidate` objects.
- :class:`DocumentStatus` models publication stage, substage, and iteration.
- :func:`parse_citation` exposes the citation grammar on its own.

Example:
    >>> from NistCatalog import CatalogResolver  # doctest: +SKIP
    >>> CatalogResolver().lookup("SP 800-162").best.code  # doctest: +SKIP
    'SP800-162'
"""

__version__ = "0.1.0"

from .cancellation import CancellationToken
from .citation import ParsedCitation, parse_citation
from .dataset import CachedDataset, DatasetCache
from .errors import (
    ArchiveCorruptError,
    CacheRefreshError,
    CatalogError,
    ConfigurationError,
    InvalidStageError,
    ResolutionCancelled,
    SearchUnavailableError,
)
from .filtering import filter_records
from .records import Candidate, RawRecord
from .resolver import CatalogResolver, Resolution, rank_candidates
from .search import LiveSearchClient
from .settings import CatalogSettings, get_default_settings
from .status import STAGES, DocumentStatus

__all__ = [
    "__version__",
    "CancellationToken",
    "ParsedCitation",
    "parse_citation",
    "CachedDataset",
    "DatasetCache",
    "ArchiveCorruptError",
    "CacheRefreshError",
    "CatalogError",
    "ConfigurationError",
    "InvalidStageError",
    "ResolutionCancelled",
    "SearchUnavailableError",
    "filter_records",
    "Candidate",
    "RawRecord",
    "CatalogResolver",
    "Resolution",
    "rank_candidates",
    "LiveSearchClient",
    "CatalogSettings",
    "get_default_settings",
    "STAGES",
    "DocumentStatus",
]
