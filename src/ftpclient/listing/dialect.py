"""
Listing dialect record and shared date helpers

A dialect is plain data plus a pure line parser; dialects are selected
by system hint or by how well they parse a listing, never by subclassing.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence, Tuple

MONTHS = {
    'JAN': 1, 'FEB': 2, 'MAR': 3, 'APR': 4, 'MAY': 5, 'JUN': 6,
    'JUL': 7, 'AUG': 8, 'SEP': 9, 'OCT': 10, 'NOV': 11, 'DEC': 12,
}

# Two-digit years beyond this are taken to be in the previous century
TWO_DIGIT_YEAR_LIMIT = 2080

FUTURE_TOLERANCE = timedelta(days=1)


def _keep_lines(lines):
    return list(lines)


@dataclass(frozen=True)
class ListingDialect:
    """
    Capabilities of one listing format

    Attributes:
        name: Registry key, e.g. "unix"
        system_keys: Substrings of an upper-cased SYST reply that select this dialect
        parse_line: Callable (line, now) -> ListEntry or None
        ignore_patterns: Compiled regexes for header/footer lines that are not entries
        needs_lookahead: Entries may span several lines
        join_lines: Callable merging continuation lines (used when needs_lookahead)
    """

    name: str
    system_keys: Tuple[str, ...]
    parse_line: Callable
    ignore_patterns: Sequence[re.Pattern] = field(default_factory=tuple)
    needs_lookahead: bool = False
    join_lines: Callable = _keep_lines

    def matches(self, system_hint: Optional[str]) -> bool:
        """True if the SYST reply names a system using this dialect"""
        if not system_hint:
            return False
        hint = system_hint.upper()
        return any(key in hint for key in self.system_keys)

    def is_noise(self, line: str) -> bool:
        return any(pattern.match(line) for pattern in self.ignore_patterns)

    def prepare(self, lines):
        return self.join_lines(lines) if self.needs_lookahead else list(lines)


def month_number(name):
    """'Jan' / 'JAN' -> 1, None for anything else"""
    return MONTHS.get(name[:3].upper())


def expand_two_digit_year(year):
    """Map a two-digit year to 20yy, or 19yy when that would be too far ahead"""
    if year >= 100:
        return year
    full = 2000 + year
    if full > TWO_DIGIT_YEAR_LIMIT:
        full -= 100
    return full


def infer_year(month, day, now):
    """
    Year of the most recent past occurrence of month/day

    Listings drop the year for recent files, so the date is placed in the
    latest year where it is not more than FUTURE_TOLERANCE ahead of now.
    The tolerance absorbs clock and time zone skew between client and
    server. A file modified almost exactly a year ago is ambiguous and
    lands in the current year; that is a limitation of the format.
    Feb 29 walks back to the last leap year.
    """
    limit = (now + FUTURE_TOLERANCE).date()
    year = now.year
    for _ in range(9):
        try:
            candidate = date(year, month, day)
        except ValueError:
            year -= 1
            continue
        if candidate <= limit:
            return year
        year -= 1
    raise ValueError(f"No valid year for month={month} day={day}")


def build_timestamp(year, month, day, hour=0, minute=0, second=0):
    """datetime or None when the fields do not form a real date"""
    try:
        return datetime(year, month, day, hour, minute, second)
    except (TypeError, ValueError):
        return None


def recent_timestamp(month, day, hour, minute, now):
    """Timestamp for 'Mon DD HH:MM' style dates that omit the year"""
    try:
        year = infer_year(month, day, now)
    except ValueError:
        return None
    return build_timestamp(year, month, day, hour, minute)


def parse_size(text):
    """Numeric size, 0 when absent or unparseable"""
    try:
        return max(int(text), 0)
    except (TypeError, ValueError):
        return 0
