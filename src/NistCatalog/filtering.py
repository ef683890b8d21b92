"""Record filtering for the bulk dataset.

:func:`filter_records` keeps a record only when its status class, issued
year, and identifier all match the request, and turns each survivor into a
:class:`~NistCatalog.records.Candidate` scored by how closely the identifier
matches the requested code.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Iterable, List, Optional, Pattern, Union

from .records import Candidate, RawRecord

__all__ = [
    "DRAFT_STATUSES",
    "FINAL_STATUSES",
    "SCORE_EXACT",
    "SCORE_PREFIX",
    "SCORE_PARTIAL",
    "compile_code_pattern",
    "match_score",
    "matches_status",
    "matches_year",
    "filter_records",
]

DRAFT_STATUSES = frozenset({"draft-public", "draft-prelim"})
FINAL_STATUSES = frozenset({"final"})

SCORE_EXACT = 3
SCORE_PREFIX = 2
SCORE_PARTIAL = 1

CodePattern = Union[str, Pattern[str]]


def compile_code_pattern(code_pattern: CodePattern) -> Pattern[str]:
    """Compile a user supplied partial code.

    Whitespace is removed because dataset identifiers are written without it
    (``"SP 800-162"`` matches ``"SP800-162"``).  Strings that are not valid
    regular expressions are matched literally.
    """

    if isinstance(code_pattern, re.Pattern):
        return code_pattern
    cleaned = "".join(str(code_pattern).split())
    if not cleaned:
        raise ValueError("code pattern must not be empty")
    try:
        return re.compile(cleaned, re.IGNORECASE)
    except re.error:
        return re.compile(re.escape(cleaned), re.IGNORECASE)


def match_score(identifier: str, pattern: Pattern[str]) -> int:
    """Score how well ``identifier`` matches ``pattern``; ``0`` means no match.

    Examples:
        >>> p = compile_code_pattern("SP800-53")
        >>> match_score("SP800-53", p), match_score("SP800-53r5", p), match_score("SP800-531", p)
        (3, 2, 1)
    """

    match = pattern.search(identifier)
    if match is None:
        return 0
    if match.start() == 0 and match.end() == len(identifier):
        return SCORE_EXACT
    if match.start() == 0:
        following = identifier[match.end()]
        if not (following.isdigit() or following == "-"):
            return SCORE_PREFIX
    return SCORE_PARTIAL


def matches_status(record: RawRecord, want_draft: bool) -> bool:
    allowed = DRAFT_STATUSES if want_draft else FINAL_STATUSES
    return (record.status or "") in allowed


def matches_year(record: RawRecord, year: Optional[int]) -> bool:
    """Return ``True`` when ``issued-date`` falls within ``year`` (inclusive)."""

    if year is None:
        return True
    issued = record.issued_on
    if issued is None:
        return False
    return date(year, 1, 1) <= issued <= date(year, 12, 31)


def filter_records(
    records: Iterable[RawRecord],
    code_pattern: CodePattern,
    year: Optional[int] = None,
    want_draft: bool = False,
) -> List[Candidate]:
    """Return candidates for every record matching status, year, and code.

    Candidates are emitted in record order; ranking is left to the resolver.
    """

    pattern = compile_code_pattern(code_pattern)
    candidates: List[Candidate] = []
    for record in records:
        if not matches_status(record, want_draft):
            continue
        if not matches_year(record, year):
            continue
        score = match_score(record.docidentifier, pattern)
        if score:
            candidates.append(Candidate.from_record(record, match_score=score))
    return candidates
