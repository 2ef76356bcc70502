"""Tests for agent version parsing, support tiers and lifecycle lookup."""

import json
from datetime import date

import pytest

from zonehealth.analysis.support_matrix import (
    DEFAULT_RELEASES, SupportMatrix, add_years, format_version_code, parse_version_code
)
from zonehealth.model.schemas import SupportTier

TODAY = date(2026, 10, 19)

RELEASES = {
    500: date(2018, 1, 10),
    510: date(2020, 6, 1),
    520: date(2022, 3, 1),
    530: date(2024, 5, 1),
    540: date(2026, 2, 1),
}


@pytest.fixture
def matrix():
    return SupportMatrix(RELEASES, now=TODAY)


@pytest.mark.parametrize("version, code", [
    ("5.9.1-601", 591),
    ("CentrifyDC 5.4.0-239", 540),
    ("6.0.2-110", 602),
    ("5.9.1", None),
    ("5.9.1-60", None),
    ("15.9.1-601", None),
    ("bogus", None),
    ("", None),
    (None, None),
])
def test_parse_version_code(version, code):
    assert parse_version_code(version) == code


def test_format_version_code():
    assert format_version_code(591) == "5.9.1"
    assert format_version_code(602) == "6.0.2"


def test_add_years_leap_day():
    assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
    assert add_years(date(2022, 12, 6), 3) == date(2025, 12, 6)


def test_cutoffs(matrix):
    # window starts: core 2023-10-19, extended 2021-10-19
    assert matrix.core_cutoff == 530
    assert matrix.extended_cutoff == 520


def test_tiers(matrix):
    assert matrix.classify(540) is SupportTier.CORE
    assert matrix.classify(535) is SupportTier.CORE
    assert matrix.classify(529) is SupportTier.EXTENDED
    assert matrix.classify(520) is SupportTier.EXTENDED
    assert matrix.classify(519) is SupportTier.OUT_OF_SUPPORT
    assert matrix.classify(None) is SupportTier.UNKNOWN
    assert matrix.classify_version("garbage") is SupportTier.UNKNOWN


def test_every_code_gets_exactly_one_tier(matrix):
    tiers = {matrix.classify(code) for code in range(100, 1000)}
    assert tiers == {SupportTier.CORE, SupportTier.EXTENDED, SupportTier.OUT_OF_SUPPORT}


@pytest.mark.parametrize("today", [date(2019, 1, 1), date(2023, 6, 1), date(2030, 1, 1), TODAY])
def test_core_cutoff_never_below_extended(today):
    m = SupportMatrix(RELEASES, now=today)
    assert m.core_cutoff >= m.extended_cutoff


def test_empty_window_puts_cutoff_above_every_code():
    m = SupportMatrix(RELEASES, now=date(2040, 1, 1))
    assert m.core_cutoff == m.extended_cutoff == 541
    assert m.classify(540) is SupportTier.OUT_OF_SUPPORT


def test_lifecycle_exact(matrix):
    lifecycle = matrix.lifecycle(520)
    assert lifecycle.matched_code == 520
    assert lifecycle.released == date(2022, 3, 1)
    assert lifecycle.core_end == date(2025, 3, 1)
    assert lifecycle.extended_end == date(2027, 3, 1)


def test_lifecycle_walks_down(matrix):
    lifecycle = matrix.lifecycle(527)
    assert lifecycle.code == 527
    assert lifecycle.matched_code == 520


def test_lifecycle_below_table_returns_none(matrix):
    assert matrix.lifecycle(499) is None
    assert matrix.lifecycle(99) is None


def test_lifecycle_stops_at_floor():
    m = SupportMatrix({50: date(2020, 1, 1), 150: date(2021, 1, 1)}, now=TODAY)
    assert m.lifecycle(120) is None
    assert m.lifecycle(151).matched_code == 150


def test_default_table_for_today():
    m = SupportMatrix(now=TODAY)
    assert m.releases == DEFAULT_RELEASES
    assert m.core_cutoff == 601
    assert m.extended_cutoff == 581
    assert m.classify_version("5.9.1-601") is SupportTier.EXTENDED
    assert m.classify_version("6.1.0-012") is SupportTier.CORE
    assert m.classify_version("5.3.0-123") is SupportTier.OUT_OF_SUPPORT


def test_invalid_tables():
    with pytest.raises(ValueError):
        SupportMatrix({}, now=TODAY)
    with pytest.raises(ValueError):
        SupportMatrix(RELEASES, now=TODAY, core_years=5, extended_years=3)


def test_from_file(tmp_path):
    path = tmp_path / "releases.json"
    path.write_text(json.dumps({code: d.isoformat() for code, d in RELEASES.items()}))

    m = SupportMatrix.from_file(str(path), now=TODAY)

    assert m.releases == RELEASES
    assert m.core_cutoff == 530


def test_cutoffs_dict(matrix):
    assert matrix.cutoffs() == {
        "core": 530,
        "extended": 520,
        "core_version": "5.3.0",
        "extended_version": "5.2.0",
        "as_of": "2026-10-19",
    }
