"""Live publication search against the CSRC web site.

Used for citations that do not carry a strict ``SP``/``FIPS`` code, such as
report numbers outside the bulk export or free-text titles.  The endpoint
renders an HTML table; each row becomes a :class:`Candidate` with a uniform
match score because the site has already ranked results by relevance.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from .errors import SearchUnavailableError
from .net import get_http_client, request_extensions
from .records import ORIGIN_SEARCH, Candidate
from .retry import create_http_retry_policy
from .settings import CatalogSettings, get_default_settings

__all__ = ["LiveSearchClient", "SEARCH_MATCH_SCORE", "DRAFT_STATUS_FILTER", "FINAL_STATUS_FILTER"]

LOGGER = logging.getLogger(__name__)

SEARCH_MATCH_SCORE = 1
DRAFT_STATUS_FILTER = "Draft,Retired Draft,Withdrawn"
FINAL_STATUS_FILTER = "Final,Withdrawn"

_ROW_SELECTOR = "table.publications-table > tbody > tr"
_TABLE_SELECTOR = "table.publications-table"


def _parse_release_date(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value.strip(), "%m/%d/%Y").date()
    except ValueError:
        return None


class LiveSearchClient:
    """Query ``/publications/search`` and parse the result table."""

    def __init__(
        self,
        settings: Optional[CatalogSettings] = None,
        *,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings = settings or get_default_settings()
        self._client = client

    @property
    def client(self) -> httpx.Client:
        return self._client or get_http_client(self.settings.http)

    def build_params(
        self, query: str, year: Optional[int] = None, want_draft: bool = False
    ) -> Dict[str, str]:
        """Return the query string parameters for a search request.

        Examples:
            >>> LiveSearchClient(CatalogSettings()).build_params("8200", 2018)["dateTo-lg"]
            '12/31/2018'
        """

        params = {"keywords-lg": query, "sortBy-lg": "relevence"}
        if year is not None:
            params["dateFrom-lg"] = date(year, 1, 1).strftime("%m/%d/%Y")
            params["dateTo-lg"] = date(year, 12, 31).strftime("%m/%d/%Y")
        params["status-lg"] = DRAFT_STATUS_FILTER if want_draft else FINAL_STATUS_FILTER
        return params

    def search(
        self, query: str, year: Optional[int] = None, want_draft: bool = False
    ) -> List[Candidate]:
        """Run a live search and return candidates in page order.

        Raises:
            SearchUnavailableError: On network failure, timeout, a non-2xx
                response, or a page without the results table.
        """

        url = self.settings.search_url
        params = self.build_params(query, year, want_draft)
        http = self.settings.http
        try:
            for attempt in create_http_retry_policy(
                max_attempts=http.max_retries + 1, max_delay_seconds=http.backoff_max_sec
            ):
                with attempt:
                    response = self.client.get(
                        url, params=params, extensions=request_extensions(http)
                    )
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SearchUnavailableError(
                f"search request failed with HTTP {exc.response.status_code}",
                url=str(exc.request.url),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise SearchUnavailableError(f"search request failed: {exc}", url=url) from exc

        candidates = self.parse_results(response.text, page_url=str(response.url))
        LOGGER.info(
            "live search completed",
            extra={"stage": "search", "url": str(response.url), "candidates": len(candidates)},
        )
        return candidates

    def parse_results(self, html: str, *, page_url: Optional[str] = None) -> List[Candidate]:
        """Parse the publications table of a search results page."""

        page_url = page_url or self.settings.search_url
        soup = BeautifulSoup(html, "html.parser")
        if soup.select_one(_TABLE_SELECTOR) is None:
            raise SearchUnavailableError("search page has no publications table", url=page_url)

        candidates: List[Candidate] = []
        for index, row in enumerate(soup.select(_ROW_SELECTOR)):
            cells = row.find_all("td", recursive=False)
            link = row.select_one("td div strong a")
            if len(cells) < 5 or link is None:
                LOGGER.warning(
                    "skipping malformed search row",
                    extra={"stage": "search", "url": page_url, "row": index},
                )
                continue
            code = cells[1].get_text(strip=True)
            if not code:
                continue
            href = link.get("href") or ""
            candidates.append(
                Candidate(
                    code=code,
                    series=cells[0].get_text(strip=True),
                    title=" ".join(link.get_text().split()),
                    source_url=urljoin(self.settings.domain + "/", href) if href else None,
                    raw_status=cells[3].get_text(strip=True).lower(),
                    release_date=_parse_release_date(cells[4].get_text(strip=True)),
                    match_score=SEARCH_MATCH_SCORE,
                    raw_record=None,
                    origin=ORIGIN_SEARCH,
                )
            )
        return candidates
