"""
Display helpers for durations, offsets and instants.

All helpers are pure: an unknown timezone raises ``InvalidTimezone`` instead of
silently falling back to UTC.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import pendulum

from .domain.wall_clock import in_zone, load_timezone

DATE_FORMAT = "MMM D, YYYY"
TIME_FORMAT = "h:mm A"


def format_event_description(duration_minutes: int) -> str:
    """
    Human readable meeting length.

    Examples: ``"45 mins"``, ``"1 hr"``, ``"2 hrs 15 mins"``.
    """
    hours, minutes = divmod(duration_minutes, 60)
    minutes_text = f"{minutes} {'mins' if minutes > 1 else 'min'}"
    hours_text = f"{hours} {'hrs' if hours > 1 else 'hr'}"

    if hours == 0:
        return minutes_text
    if minutes == 0:
        return hours_text
    return f"{hours_text} {minutes_text}"


def format_timezone_offset(timezone: str, at: Optional[datetime] = None) -> str:
    """
    UTC offset of ``timezone`` at instant ``at`` (default: now), e.g. ``"UTC-05:00"``.
    """
    zone = load_timezone(timezone)
    moment = pendulum.now(zone) if at is None else in_zone(at, timezone)

    offset_minutes = moment.offset // 60
    sign = "+" if offset_minutes >= 0 else "-"
    hours, minutes = divmod(abs(offset_minutes), 60)
    return f"UTC{sign}{hours:02d}:{minutes:02d}"


def format_date(instant: datetime, timezone: str) -> str:
    """``"Feb 3, 2025"`` as seen in ``timezone``."""
    return in_zone(instant, timezone).format(DATE_FORMAT)


def format_time(instant: datetime, timezone: str) -> str:
    """``"9:00 AM"`` as seen in ``timezone``."""
    return in_zone(instant, timezone).format(TIME_FORMAT)


def format_datetime(instant: datetime, timezone: str) -> str:
    """``"Feb 3, 2025, 9:00 AM"`` as seen in ``timezone``."""
    return f"{format_date(instant, timezone)}, {format_time(instant, timezone)}"
