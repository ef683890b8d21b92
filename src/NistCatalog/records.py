"""Typed records flowing through the catalog resolver.

:class:`RawRecord` is the validated form of one entry of the bulk publication
export; :class:`Candidate` is the ranked hit handed back to callers, built
either from a :class:`RawRecord` or from a row of the live search table.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .status import DocumentStatus

__all__ = [
    "RawRecord",
    "Candidate",
    "parse_partial_date",
    "ingest_records",
    "ORIGIN_DATASET",
    "ORIGIN_SEARCH",
]

LOGGER = logging.getLogger(__name__)

ORIGIN_DATASET = "dataset"
ORIGIN_SEARCH = "search"

_PARTIAL_DATE = re.compile(r"^(?P<year>\d{4})(?:-(?P<month>\d{1,2})(?:-(?P<day>\d{1,2}))?)?")


def parse_partial_date(value: Optional[str]) -> Optional[date]:
    """Parse ``YYYY``, ``YYYY-MM`` or ``YYYY-MM-DD`` into a :class:`date`.

    Missing month/day components default to the first of the period; trailing
    time components are ignored.  Unparseable values yield ``None``.

    Examples:
        >>> parse_partial_date("2014-01")
        datetime.date(2014, 1, 1)
        >>> parse_partial_date("n/a") is None
        True
    """

    if not value:
        return None
    match = _PARTIAL_DATE.match(value.strip())
    if not match:
        return None
    try:
        return date(
            int(match.group("year")),
            int(match.group("month") or 1),
            int(match.group("day") or 1),
        )
    except ValueError:
        return None


class RawRecord(BaseModel):
    """One publication entry of the bulk export, validated at ingestion."""

    docidentifier: str = Field(min_length=1)
    series: Optional[str] = None
    title_main: Optional[str] = Field(default=None, alias="title-main")
    title_sub: Optional[str] = Field(default=None, alias="title-sub")
    uri: Optional[str] = None
    status: Optional[str] = None
    published_date: Optional[str] = Field(default=None, alias="published-date")
    issued_date: Optional[str] = Field(default=None, alias="issued-date")
    updated_date: Optional[str] = Field(default=None, alias="updated-date")
    edition: Optional[str] = None
    iteration: Optional[str] = None

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        coerce_numbers_to_str=True,
    )

    @field_validator("docidentifier")
    @classmethod
    def _strip_identifier(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("docidentifier must not be blank")
        return stripped

    @property
    def issued_on(self) -> Optional[date]:
        return parse_partial_date(self.issued_date)

    @property
    def published_on(self) -> Optional[date]:
        return parse_partial_date(self.published_date)

    @property
    def series_tag(self) -> str:
        """Trailing alphabetic token of ``series`` (``"nist-sp"`` -> ``"SP"``)."""

        if not self.series:
            return ""
        match = re.search(r"(?<=-)[A-Za-z]+$", self.series)
        token = match.group(0) if match else self.series.strip()
        return token.upper()

    @property
    def display_title(self) -> str:
        return " - ".join(part for part in (self.title_main, self.title_sub) if part)


def ingest_records(payload: Iterable[Any]) -> List[RawRecord]:
    """Validate upstream JSON objects into :class:`RawRecord` instances.

    Entries that are not objects or fail validation are skipped with a
    warning so one malformed row does not hide the rest of the catalog.
    """

    records: List[RawRecord] = []
    skipped = 0
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            skipped += 1
            continue
        try:
            records.append(RawRecord.model_validate(item))
        except ValidationError as exc:
            skipped += 1
            LOGGER.debug(
                "skipping invalid record",
                extra={"stage": "ingest", "index": index, "error": str(exc)},
            )
    if skipped:
        LOGGER.warning(
            "skipped invalid dataset records",
            extra={"stage": "ingest", "skipped": skipped, "kept": len(records)},
        )
    return records


@dataclass(frozen=True, slots=True)
class Candidate:
    """A catalog hit ranked by the resolver.

    Attributes:
        code: Normalised document identifier (never empty).
        series: Short series tag such as ``"SP"`` or ``"FIPS"``.
        title: Display title.
        source_url: Locator for full record retrieval.
        raw_status: Upstream status string, not yet mapped.
        release_date: Release date; ``None`` sorts as the earliest possible.
        match_score: Higher is better; only comparable within one resolution.
        raw_record: Originating dataset record for dataset-origin hits.
        origin: ``"dataset"`` or ``"search"``.
    """

    code: str
    series: str
    title: str
    source_url: Optional[str]
    raw_status: str
    release_date: Optional[date]
    match_score: int
    raw_record: Optional[RawRecord] = None
    origin: str = ORIGIN_DATASET

    def __post_init__(self) -> None:
        if not self.code:
            raise ValueError("candidate code must not be empty")

    @classmethod
    def from_record(cls, record: RawRecord, *, match_score: int) -> "Candidate":
        return cls(
            code=record.docidentifier,
            series=record.series_tag,
            title=record.display_title,
            source_url=record.uri,
            raw_status=record.status or "",
            release_date=record.published_on,
            match_score=match_score,
            raw_record=record,
            origin=ORIGIN_DATASET,
        )

    def document_status(self, stage_marker: Optional[str] = None) -> DocumentStatus:
        """Map :attr:`raw_status` into a :class:`DocumentStatus`."""

        return DocumentStatus.from_upstream(self.raw_status, stage_marker)
