"""
Input Validation Utilities

This module provides URL recognition for dump parsing and validation
of the user-supplied date parameter.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from urllib.parse import urlparse

from urlhunter.core.errors import DateFormatError


DATE_FORMAT = "%Y-%m-%d"
LATEST = "latest"

_YEAR_PATTERN = re.compile(r'^\d{4}$')
_SCHEME_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9+.\-]*$')


def is_url(value: str) -> bool:
    """
    Check whether a string is an absolute URL.

    A URL needs a scheme and a network location and may not contain
    whitespace. Timestamps and bare short codes are not URLs.
    """
    if not value or any(c.isspace() for c in value):
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme and _SCHEME_PATTERN.match(parsed.scheme) and parsed.netloc)


@dataclass(frozen=True)
class DateSelection:
    """A validated date parameter: one day, an inclusive range, or latest."""
    start: Optional[date] = None
    end: Optional[date] = None
    latest: bool = False
    ranged: bool = False


def parse_day(value: str) -> date:
    """
    Parse a YYYY-MM-DD string.

    Raises:
        DateFormatError: If the value is not a valid calendar day
    """
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError as e:
        raise DateFormatError(f"Wrong date format: {value!r} (expected YYYY-MM-DD)") from e


def parse_date_param(value: str) -> DateSelection:
    """
    Validate the date parameter.

    Accepted forms:
      single day   2020-11-20
      range        2020-11-10:2020-11-20 (inclusive)
      full year    2024
      latest       the most recent release

    Raises:
        DateFormatError: If the value matches none of the forms
    """
    if not value or not value.strip():
        raise DateFormatError("Date parameter cannot be empty")

    value = value.strip()
    if value == LATEST:
        return DateSelection(latest=True)

    if _YEAR_PATTERN.match(value):
        year = int(value)
        if year < 1:
            raise DateFormatError(f"Wrong date format: {value!r}")
        return DateSelection(start=date(year, 1, 1), end=date(year, 12, 31), ranged=True)

    if ":" in value:
        first, _, second = value.partition(":")
        start = parse_day(first)
        end = parse_day(second)
        if end < start:
            raise DateFormatError(f"Date range ends before it starts: {value!r}")
        return DateSelection(start=start, end=end, ranged=True)

    day = parse_day(value)
    return DateSelection(start=day, end=day)
