"""
Domain layer - Pure availability logic without external dependencies.
"""

from .candidates import candidate_starts, iter_candidate_starts
from .exceptions import (
    AuthenticationError,
    BookableError,
    ExternalSourceUnavailable,
    InvalidTimezone,
    InvalidWindow,
    ScheduleError,
)
from .intervals import (
    AllDaySpan,
    BusyEntry,
    BusyInterval,
    Interval,
    busy_intervals_in_zone,
    contains,
    overlaps,
)
from .models import MeetingRequest, Schedule, WallClockTime, Weekday, WeeklyWindow
from .resolver import AvailabilityResolver, resolve
from .wall_clock import load_timezone, local_date, local_weekday, to_instant, to_utc
from .weekday_rule import project_onto_date, project_schedule

__all__ = [
    "AllDaySpan",
    "AuthenticationError",
    "AvailabilityResolver",
    "BookableError",
    "BusyEntry",
    "BusyInterval",
    "ExternalSourceUnavailable",
    "Interval",
    "InvalidTimezone",
    "InvalidWindow",
    "MeetingRequest",
    "Schedule",
    "ScheduleError",
    "WallClockTime",
    "Weekday",
    "WeeklyWindow",
    "busy_intervals_in_zone",
    "candidate_starts",
    "contains",
    "iter_candidate_starts",
    "load_timezone",
    "local_date",
    "local_weekday",
    "overlaps",
    "project_onto_date",
    "project_schedule",
    "resolve",
    "to_instant",
    "to_utc",
]
