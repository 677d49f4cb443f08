"""
Normalization of raw calendar entries into busy intervals and all-day spans.
"""

from __future__ import annotations

import re
from datetime import date

import pendulum
from pendulum import DateTime

from ..domain.intervals import AllDaySpan, Interval
from ..domain.wall_clock import load_timezone

# Graph reports seven fractional digits; keep microseconds only
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_instant(value: str, default_timezone: str = "UTC") -> DateTime:
    """
    Parse an ISO 8601 timestamp.

    Strings without an offset are read in ``default_timezone``.

    Raises:
        ValueError: If the text is not a date-time.
    """
    text = _EXCESS_FRACTION.sub(r"\1", value.strip())
    parsed = pendulum.parse(text, tz=load_timezone(default_timezone))
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value}")
    return parsed


def parse_day(value: str) -> date:
    """Calendar date of ``"2025-02-03"`` or ``"2025-02-03T00:00:00"``."""
    return date.fromisoformat(value.strip()[:10])


def all_day_span(first_day: date, end_day: date) -> AllDaySpan:
    """
    Busy span for an all-day entry.

    The span is left in calendar days; the service reads it in the schedule's
    timezone once the schedule is known.
    """
    return AllDaySpan(first_day=first_day, end_day=end_day)


def timed_interval(start: str, end: str, source_timezone: str = "UTC") -> Interval:
    """Busy interval for a timed entry."""
    return Interval(
        start=parse_instant(start, source_timezone),
        end=parse_instant(end, source_timezone),
    )
