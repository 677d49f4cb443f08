"""
Core business logic for deciding which candidate start times are bookable.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no file access, no I/O).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Iterable, List, Sequence

from pendulum import DateTime

from .intervals import Interval, contains, overlaps
from .models import MeetingRequest, Schedule
from .wall_clock import load_timezone, local_date
from .weekday_rule import project_schedule


class AvailabilityResolver:
    """
    Filters candidate meeting starts against a weekly schedule and busy times.

    Algorithm, per candidate ``c``:
    1. Build the tentative meeting ``[c, c + duration)``
    2. Find the calendar date of ``c`` in the schedule's timezone
    3. Project that weekday's windows onto the date
    4. Keep ``c`` if one projected window contains the meeting and no busy
       interval overlaps it

    The resolver keeps no state between calls and never mutates its inputs,
    so one instance can be shared freely between threads.
    """

    def resolve(
        self,
        candidates: Sequence[datetime],
        schedule: Schedule,
        duration_minutes: int,
        busy: Iterable[Interval] = (),
    ) -> List[DateTime]:
        """
        Return the bookable candidates, in input order.

        Args:
            candidates: Aware instants to evaluate as meeting starts
            schedule: Owner's weekly availability
            duration_minutes: Length of the meeting
            busy: Busy intervals from the owner's calendar

        Returns:
            Sub-sequence of ``candidates`` (as UTC DateTimes)

        Raises:
            InvalidTimezone: If the schedule's timezone is unknown
            ValueError: If the duration is not positive or a candidate is naive
        """
        request = MeetingRequest(duration_minutes=duration_minutes)
        load_timezone(schedule.timezone)

        if not candidates or schedule.is_empty:
            return []

        busy_intervals = list(busy)
        windows_by_date: Dict[date, List[Interval]] = {}
        accepted: List[DateTime] = []

        for candidate in candidates:
            tentative = Interval.starting_at(candidate, request.duration_minutes)

            day = local_date(tentative.start, schedule.timezone)
            # Reuse projections only within this call
            if day not in windows_by_date:
                windows_by_date[day] = project_schedule(schedule, day)

            if self._is_accepted(tentative, windows_by_date[day], busy_intervals):
                accepted.append(tentative.start)

        return accepted

    def is_bookable(
        self,
        candidate: datetime,
        schedule: Schedule,
        duration_minutes: int,
        busy: Iterable[Interval] = (),
    ) -> bool:
        """Check a single requested start, e.g. right before confirming a booking."""
        return bool(self.resolve([candidate], schedule, duration_minutes, busy))

    @staticmethod
    def _is_accepted(
        tentative: Interval,
        windows: Sequence[Interval],
        busy: Sequence[Interval],
    ) -> bool:
        if not any(contains(window, tentative) for window in windows):
            return False

        return not any(overlaps(tentative, interval) for interval in busy)


def resolve(
    candidates: Sequence[datetime],
    schedule: Schedule,
    duration_minutes: int,
    busy: Iterable[Interval] = (),
) -> List[DateTime]:
    """Module-level shortcut for ``AvailabilityResolver().resolve``."""
    return AvailabilityResolver().resolve(candidates, schedule, duration_minutes, busy)
