"""Citation parsing for catalog lookups.

Turns free-text citations such as ``"NIST SP 800-162"``,
``"NISTIR 8200:2018"`` or ``"SP 800-205 (February 2019) (PD)"`` into a
:class:`ParsedCitation`.  The grammar, applied to the trailing end of the
text until nothing more can be stripped:

- ``(PD)``, ``(IPD)``, ``(FPD)`` or ``(<n>PD)`` stage markers,
- ``(Month YYYY)`` or ``(Month D, YYYY)`` revision-date qualifiers, which are
  discarded because they name an update date rather than a publication year,
- a ``:YYYY`` year suffix.

A strict code (``SP`` or ``FIPS`` followed by digits and hyphens with an
optional one-character suffix) anywhere in the remaining text routes the
lookup to the bulk dataset; everything else goes to the live search.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .status import is_draft_marker, iteration_from_marker

__all__ = ["ParsedCitation", "parse_citation", "STRICT_CODE_PATTERN"]

STRICT_CODE_PATTERN = re.compile(r"(?P<series>SP|FIPS)\s(?P<number>[0-9-]+\w?)")

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
)
_STAGE_SUFFIX = re.compile(r"\s*\((?P<marker>(?:I|F|\d+)?PD)\)\s*$")
_DATE_SUFFIX = re.compile(rf"\s*\((?:{_MONTHS})(?:\s+\d{{1,2}},)?\s+\d{{4}}\)\s*$")
_YEAR_SUFFIX = re.compile(r":(?P<year>\d{4})\s*$")
_PUBLISHER_PREFIX = re.compile(r"^NIST(?:\s+|$)")


@dataclass(frozen=True)
class ParsedCitation:
    """Structured view of a citation.

    Attributes:
        text: Citation exactly as supplied.
        query: Citation with stage, date and year qualifiers stripped; used as
            the live search keyword.
        series: ``"SP"`` or ``"FIPS"`` when a strict code was found.
        code: Normalised strict code without whitespace (``"SP800-162"``).
        year: Requested publication year, if any.
        stage_marker: Raw stage marker (``"PD"``, ``"IPD"``, ``"2PD"``...).
        remainder: Free text left over after removing the publisher prefix
            and the strict code; ignored for routing.
    """

    text: str
    query: str
    series: Optional[str] = None
    code: Optional[str] = None
    year: Optional[int] = None
    stage_marker: Optional[str] = None
    remainder: str = ""

    @property
    def has_strict_code(self) -> bool:
        return self.code is not None

    @property
    def wants_draft(self) -> bool:
        return is_draft_marker(self.stage_marker)

    @property
    def iteration(self) -> Optional[str]:
        return iteration_from_marker(self.stage_marker)


def _coerce_year(year: object) -> Optional[int]:
    if year is None or year == "":
        return None
    try:
        value = int(str(year).strip())
    except ValueError as exc:
        raise ValueError(f"year must be a four digit number, got {year!r}") from exc
    if not 1000 <= value <= 9999:
        raise ValueError(f"year must be a four digit number, got {year!r}")
    return value


def parse_citation(text: str, year: object = None) -> ParsedCitation:
    """Parse ``text`` into a :class:`ParsedCitation`.

    Args:
        text: User supplied citation.
        year: Explicit year; takes precedence over a ``:YYYY`` suffix.

    Returns:
        Parsed citation.

    Raises:
        ValueError: If ``text`` is blank or ``year`` is not a four digit year.

    Examples:
        >>> parse_citation("SP 800-37 (IPD)").code
        'SP800-37'
        >>> parse_citation("NISTIR 8200:2018").year
        2018
    """

    original = text
    query = " ".join((text or "").split())
    if not query:
        raise ValueError("citation text must not be empty")

    requested_year = _coerce_year(year)
    stage_marker: Optional[str] = None
    suffix_year: Optional[int] = None

    while True:
        stage_match = _STAGE_SUFFIX.search(query)
        if stage_match and stage_marker is None:
            stage_marker = stage_match.group("marker")
            query = query[: stage_match.start()]
            continue
        date_match = _DATE_SUFFIX.search(query)
        if date_match:
            query = query[: date_match.start()]
            continue
        year_match = _YEAR_SUFFIX.search(query)
        if year_match and suffix_year is None:
            suffix_year = int(year_match.group("year"))
            query = query[: year_match.start()]
            continue
        break

    query = query.strip()
    if requested_year is None:
        requested_year = suffix_year

    series: Optional[str] = None
    code: Optional[str] = None
    remainder = _PUBLISHER_PREFIX.sub("", query)
    code_match = STRICT_CODE_PATTERN.search(query)
    if code_match:
        series = code_match.group("series")
        code = f"{series}{code_match.group('number')}"
        remainder = _PUBLISHER_PREFIX.sub(
            "", (query[: code_match.start()] + " " + query[code_match.end() :]).strip()
        )

    return ParsedCitation(
        text=original,
        query=query,
        series=series,
        code=code,
        year=requested_year,
        stage_marker=stage_marker,
        remainder=" ".join(remainder.split()),
    )
