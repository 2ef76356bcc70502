"""
Agent Support Matrix
====================

Maps agent version codes to release dates and derives support tiers.

A version code is major*100 + minor*10 + patch, taken from agent version
strings such as "5.9.1-601" (-> 591). The build suffix is ignored.

Design Decisions:
-----------------
1. The release table is injected (constructor argument or JSON file), so
   tests and other vendor policies use their own tables
2. "now" is injected as well; cutoffs are computed once per matrix
3. Cutoff versions are the LOWEST codes still inside each window. Every code
   at or above the core cutoff is core-supported, every code at or above the
   extended cutoff is at least extended-supported
4. Lifecycle lookups walk down to the nearest known release, so a patch
   release missing from the table still maps to its minor/major release
"""

import json
import re
from datetime import date
from pathlib import Path
from typing import Mapping, Optional

from ..model.schemas import SupportTier, VersionLifecycle

VERSION_PATTERN = re.compile(r"(?<!\d)(\d)\.(\d)\.(\d)-(\d{3})(?!\d)")

# Agent release dates (general availability) by version code
DEFAULT_RELEASES: dict[int, date] = {
    500: date(2011, 11, 15),
    510: date(2013, 3, 12),
    511: date(2013, 9, 10),
    520: date(2014, 6, 3),
    521: date(2014, 11, 18),
    522: date(2015, 5, 19),
    523: date(2015, 12, 8),
    530: date(2016, 4, 26),
    531: date(2016, 11, 15),
    540: date(2017, 6, 6),
    541: date(2017, 11, 14),
    550: date(2018, 5, 15),
    551: date(2018, 8, 21),
    552: date(2018, 11, 13),
    553: date(2019, 4, 16),
    560: date(2019, 8, 27),
    561: date(2020, 1, 21),
    570: date(2020, 6, 9),
    571: date(2020, 11, 17),
    580: date(2021, 6, 8),
    581: date(2021, 11, 16),
    590: date(2022, 6, 14),
    591: date(2022, 12, 6),
    600: date(2023, 8, 29),
    601: date(2024, 3, 19),
    602: date(2024, 9, 24),
    610: date(2025, 6, 10),
}


def add_years(d: date, years: int) -> date:
    """Shift a date by whole years; Feb 29 falls back to Feb 28."""
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        return d.replace(year=d.year + years, day=28)


def parse_version_code(version: Optional[str]) -> Optional[int]:
    """Extract the version code from a vendor version string.

    Args:
        version: e.g. "5.9.1-601"

    Returns:
        The code (591), or None when the string has no vendor version
    """
    if not version:
        return None
    match = VERSION_PATTERN.search(str(version))
    if not match:
        return None
    major, minor, patch, _build = match.groups()
    return int(f"{major}{minor}{patch}")


def format_version_code(code: int) -> str:
    """Render a version code as major.minor.patch (591 -> 5.9.1)."""
    digits = f"{code:03d}"
    return ".".join(digits[-3:]) if len(digits) == 3 else f"{digits[:-2]}.{digits[-2]}.{digits[-1]}"


class SupportMatrix:
    """Release table with support cutoffs derived for a given day.

    Usage:
        matrix = SupportMatrix(DEFAULT_RELEASES)
        matrix.core_cutoff, matrix.extended_cutoff
        matrix.classify_version("5.9.1-601")   # SupportTier.EXTENDED (for example)
        matrix.lifecycle(592)                  # falls back to 591

    Args:
        releases: version code -> release date
        now: Day the cutoffs are computed for (defaults to today)
        core_years: Core support window after release
        extended_years: Extended support window after release
        floor: Lifecycle lookups stop below this code
    """

    def __init__(
        self,
        releases: Optional[Mapping[int, date]] = None,
        now: Optional[date] = None,
        core_years: int = 3,
        extended_years: int = 5,
        floor: int = 100
    ):
        table = dict(releases if releases is not None else DEFAULT_RELEASES)
        if not table:
            raise ValueError("Support matrix needs at least one release")
        if extended_years < core_years:
            raise ValueError("Extended support cannot be shorter than core support")

        self._releases: dict[int, date] = {int(k): v for k, v in sorted(table.items())}
        self.now = now or date.today()
        self.core_years = core_years
        self.extended_years = extended_years
        self.floor = floor

        self.core_cutoff = self._cutoff(core_years)
        self.extended_cutoff = self._cutoff(extended_years)

    @classmethod
    def from_file(cls, path: str, **kwargs) -> "SupportMatrix":
        """Load the release table from JSON: {"591": "2022-12-06", ...}."""
        with open(Path(path), "r", encoding="utf-8") as f:
            raw = json.load(f)
        releases = {int(code): date.fromisoformat(released) for code, released in raw.items()}
        return cls(releases, **kwargs)

    @property
    def releases(self) -> dict[int, date]:
        return dict(self._releases)

    def _cutoff(self, years: int) -> int:
        """Lowest code released within `years` of now, or one above every code."""
        window_start = add_years(self.now, -years)
        inside = [code for code, released in self._releases.items() if released >= window_start]
        if not inside:
            return max(self._releases) + 1
        return min(inside)

    def classify(self, code: Optional[int]) -> SupportTier:
        """Support tier of a version code (None -> UNKNOWN)."""
        if code is None:
            return SupportTier.UNKNOWN
        if code >= self.core_cutoff:
            return SupportTier.CORE
        if code >= self.extended_cutoff:
            return SupportTier.EXTENDED
        return SupportTier.OUT_OF_SUPPORT

    def classify_version(self, version: Optional[str]) -> SupportTier:
        return self.classify(parse_version_code(version))

    def lifecycle(self, code: int) -> Optional[VersionLifecycle]:
        """Lifecycle of the nearest known release at or below a code.

        Walks down one code at a time; stops below the floor and returns
        None when nothing matches.
        """
        candidate = code
        while candidate >= self.floor:
            released = self._releases.get(candidate)
            if released is not None:
                return VersionLifecycle(
                    code=code,
                    matched_code=candidate,
                    released=released,
                    core_end=add_years(released, self.core_years),
                    extended_end=add_years(released, self.extended_years),
                )
            candidate -= 1
        return None

    def cutoffs(self) -> dict:
        return {
            "core": self.core_cutoff,
            "extended": self.extended_cutoff,
            "core_version": format_version_code(self.core_cutoff),
            "extended_version": format_version_code(self.extended_cutoff),
            "as_of": self.now.isoformat(),
        }
