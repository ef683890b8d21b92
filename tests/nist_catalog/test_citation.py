"""Tests for the citation grammar used to route lookups."""

from __future__ import annotations

import pytest

from NistCatalog.citation import parse_citation


@pytest.mark.parametrize(
    ("text", "series", "code"),
    [
        ("SP 800-162", "SP", "SP800-162"),
        ("NIST SP 800-162", "SP", "SP800-162"),
        ("FIPS 140-3", "FIPS", "FIPS140-3"),
        ("SP 800-53A", "SP", "SP800-53A"),
        ("SP 500-304", "SP", "SP500-304"),
    ],
)
def test_strict_codes_are_extracted(text: str, series: str, code: str) -> None:
    parsed = parse_citation(text)
    assert parsed.has_strict_code
    assert parsed.series == series
    assert parsed.code == code
    assert parsed.stage_marker is None


@pytest.mark.parametrize(
    "text",
    [
        "NISTIR 8200",
        "NIST Framework for Improving Critical Infrastructure Cybersecurity Version 1.1",
        "SP800-162",
    ],
)
def test_non_strict_citations_fall_back_to_search(text: str) -> None:
    parsed = parse_citation(text)
    assert not parsed.has_strict_code
    assert parsed.query == text


def test_year_suffix_is_split_off() -> None:
    parsed = parse_citation("NISTIR 8200:2018")
    assert parsed.year == 2018
    assert parsed.query == "NISTIR 8200"


def test_explicit_year_wins_over_suffix() -> None:
    parsed = parse_citation("NISTIR 8200:2018", "2017")
    assert parsed.year == 2017


@pytest.mark.parametrize(
    ("text", "marker", "iteration"),
    [
        ("SP 800-189(PD)", "PD", None),
        ("SP 800-37 (IPD)", "IPD", "1"),
        ("SP 800-57 (2PD)", "2PD", "2"),
        ("SP 800-37 (FPD)", "FPD", "final"),
        ("NISTIR 8228 (PD)", "PD", None),
    ],
)
def test_stage_markers(text: str, marker: str, iteration) -> None:
    parsed = parse_citation(text)
    assert parsed.stage_marker == marker
    assert parsed.wants_draft
    assert parsed.iteration == iteration


@pytest.mark.parametrize(
    "text",
    ["SP 800-162 (January 2014)", "SP 800-162 (February 25, 2019)"],
)
def test_revision_date_qualifier_is_discarded(text: str) -> None:
    parsed = parse_citation(text)
    assert parsed.code == "SP800-162"
    assert parsed.year is None
    assert parsed.query == "SP 800-162"


def test_date_qualifier_and_stage_marker_combined() -> None:
    parsed = parse_citation("SP 800-205 (February 2019) (PD)")
    assert parsed.code == "SP800-205"
    assert parsed.stage_marker == "PD"


def test_free_text_around_code_is_kept_as_remainder() -> None:
    parsed = parse_citation("NIST SP 800-162 Guide to ABAC")
    assert parsed.code == "SP800-162"
    assert parsed.remainder == "Guide to ABAC"


@pytest.mark.parametrize("text", ["", "   "])
def test_blank_citation_is_rejected(text: str) -> None:
    with pytest.raises(ValueError):
        parse_citation(text)


@pytest.mark.parametrize("year", ["20x4", "123", 99999])
def test_invalid_year_is_rejected(year) -> None:
    with pytest.raises(ValueError):
        parse_citation("SP 800-162", year)
