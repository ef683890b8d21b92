# === NAVMAP v1 ===
# {
#   "module": "NistCatalog.resolver",
#   "purpose": "Route citations to the dataset cache or live search and rank the hits",
#   "sections": [
#     {"id": "ranking", "name": "rank_candidates", "anchor": "function-rank-candidates", "kind": "function"},
#     {"id": "resolution", "name": "Resolution", "anchor": "class-resolution", "kind": "class"},
#     {"id": "resolver", "name": "CatalogResolver", "anchor": "class-catalogresolver", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Catalog resolution: source routing and deterministic ranking.

:class:`CatalogResolver` parses the citation, sends strict ``SP``/``FIPS``
codes to the :class:`~NistCatalog.dataset.DatasetCache` plus
:func:`~NistCatalog.filtering.filter_records`, sends everything else to the
:class:`~NistCatalog.search.LiveSearchClient`, and orders the hits with
:func:`rank_candidates`.  An empty result is the expected outcome for a
citation absent from the catalog; :meth:`CatalogResolver.lookup` wraps it in a
:class:`Resolution` whose :attr:`~Resolution.message` callers can surface.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Tuple

import httpx

from .cancellation import CancellationToken
from .citation import ParsedCitation, parse_citation
from .dataset import Clock, DatasetCache
from .filtering import filter_records
from .logging_config import generate_correlation_id
from .records import Candidate
from .search import LiveSearchClient
from .settings import CatalogSettings, get_default_settings
from .status import DocumentStatus, is_draft_marker

__all__ = [
    "SOURCE_DATASET",
    "SOURCE_SEARCH",
    "rank_candidates",
    "Resolution",
    "CatalogResolver",
]

LOGGER = logging.getLogger(__name__)

SOURCE_DATASET = "dataset"
SOURCE_SEARCH = "search"

_EARLIEST = date.min.toordinal()


def _ranking_key(candidate: Candidate) -> Tuple[int, int]:
    released = candidate.release_date.toordinal() if candidate.release_date else _EARLIEST
    return (-candidate.match_score, -released)


def rank_candidates(candidates: Iterable[Candidate]) -> List[Candidate]:
    """Order candidates by score, then release date, newest first.

    The sort is stable, so candidates tied on both keys keep their emission
    order.  Missing release dates sort as the earliest possible date.
    """

    return sorted(candidates, key=_ranking_key)


@dataclass(frozen=True)
class Resolution:
    """Outcome of one resolution call."""

    citation: ParsedCitation
    source: str
    want_draft: bool
    stage_marker: Optional[str]
    candidates: Tuple[Candidate, ...]

    @property
    def no_match(self) -> bool:
        return not self.candidates

    @property
    def best(self) -> Optional[Candidate]:
        return self.candidates[0] if self.candidates else None

    @property
    def display_citation(self) -> str:
        text = self.citation.query
        if self.citation.year is not None:
            text = f"{text}:{self.citation.year}"
        return text

    @property
    def message(self) -> Optional[str]:
        if self.no_match:
            return f"no match found for {self.display_citation}"
        return None

    def status(self) -> Optional[DocumentStatus]:
        """Map the best candidate's upstream status, including the draft iteration."""

        if self.best is None:
            return None
        return self.best.document_status(self.stage_marker)


class CatalogResolver:
    """Resolve citations against the bulk dataset or the live search.

    Args:
        settings: Shared settings for both sources.
        client: HTTP client handed to the default dataset cache and search client.
        clock: Clock for the default dataset cache.
        dataset: Pre-built :class:`DatasetCache` (shared between resolvers to
            reuse its parsed records).
        search_client: Pre-built :class:`LiveSearchClient`.

    Examples:
        >>> resolver = CatalogResolver()  # doctest: +SKIP
        >>> resolver.resolve("SP 800-162")[0].code  # doctest: +SKIP
        'SP800-162'
    """

    def __init__(
        self,
        settings: Optional[CatalogSettings] = None,
        *,
        client: Optional[httpx.Client] = None,
        clock: Optional[Clock] = None,
        dataset: Optional[DatasetCache] = None,
        search_client: Optional[LiveSearchClient] = None,
    ) -> None:
        self.settings = settings or get_default_settings()
        self.dataset = dataset or DatasetCache(self.settings, client=client, clock=clock)
        self.search_client = search_client or LiveSearchClient(self.settings, client=client)

    def resolve(
        self,
        citation_text: str,
        year: object = None,
        *,
        want_draft: Optional[bool] = None,
        stage: Optional[str] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> List[Candidate]:
        """Return candidates for ``citation_text``, best first; empty means no match."""

        resolution = self.lookup(
            citation_text,
            year,
            want_draft=want_draft,
            stage=stage,
            cancellation_token=cancellation_token,
        )
        return list(resolution.candidates)

    def lookup(
        self,
        citation_text: str,
        year: object = None,
        *,
        want_draft: Optional[bool] = None,
        stage: Optional[str] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Resolution:
        """Resolve ``citation_text`` and describe the outcome.

        Args:
            citation_text: Citation such as ``"SP 800-37 (IPD)"``.
            year: Optional publication year; overrides a ``:YYYY`` suffix.
            want_draft: Force draft (``True``) or final (``False``) matching;
                by default derived from the stage marker.
            stage: Stage marker (``"PD"``, ``"IPD"``...) overriding one
                embedded in the citation.
            cancellation_token: Checked between stages.

        Raises:
            CacheRefreshError: Dataset refresh failed with no local archive.
            ArchiveCorruptError: The dataset archive cannot be parsed.
            SearchUnavailableError: The live search failed.
            ResolutionCancelled: ``cancellation_token`` was cancelled.
        """

        parsed = parse_citation(citation_text, year)
        stage_marker = stage or parsed.stage_marker
        draft = is_draft_marker(stage_marker) if want_draft is None else bool(want_draft)
        correlation_id = generate_correlation_id()
        log_extra = {
            "citation": citation_text,
            "code": parsed.code,
            "year": parsed.year,
            "correlation_id": correlation_id,
        }

        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled("routing")

        if parsed.has_strict_code:
            source = SOURCE_DATASET
            if parsed.remainder:
                LOGGER.debug(
                    "ignoring free text around strict code",
                    extra={**log_extra, "stage": "routing", "remainder": parsed.remainder},
                )
            records = self.dataset.get_records(cancellation_token=cancellation_token)
            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled("filter")
            found = filter_records(records, parsed.code, parsed.year, draft)
        else:
            source = SOURCE_SEARCH
            found = self.search_client.search(parsed.query, parsed.year, draft)

        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled("rank")

        resolution = Resolution(
            citation=parsed,
            source=source,
            want_draft=draft,
            stage_marker=stage_marker,
            candidates=tuple(rank_candidates(found)),
        )
        if resolution.no_match:
            LOGGER.info(resolution.message, extra={**log_extra, "stage": "rank", "source": source})
        else:
            LOGGER.info(
                "resolved citation",
                extra={
                    **log_extra,
                    "stage": "rank",
                    "source": source,
                    "candidates": len(resolution.candidates),
                },
            )
        return resolution
