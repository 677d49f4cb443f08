"""
Projection of recurring weekly windows onto concrete calendar dates.

Windows are projected per date and never cached across dates: on a daylight
saving transition day "09:00-17:00 local" covers a different span of absolute
time than on the day before.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from .intervals import Interval
from .models import Schedule, Weekday, WeeklyWindow
from .wall_clock import to_instant


def project_onto_date(window: WeeklyWindow, day: date, timezone: str) -> Optional[Interval]:
    """
    Project ``window`` onto the local calendar date ``day`` in ``timezone``.

    Returns None when ``day`` is not the window's weekday.
    """
    if Weekday.of(day) is not window.weekday:
        return None

    start = to_instant(day, window.start, timezone)
    end = to_instant(day, window.end, timezone)

    # A window lying inside a spring-forward gap collapses to nothing
    return Interval(start=start, end=max(start, end))


def project_schedule(schedule: Schedule, day: date) -> List[Interval]:
    """Absolute intervals of every window the schedule publishes for ``day``."""
    projected: List[Interval] = []

    for window in schedule.windows_for(Weekday.of(day)):
        interval = project_onto_date(window, day, schedule.timezone)
        if interval is not None:
            projected.append(interval)

    return projected
