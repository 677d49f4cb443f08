"""
Half-open interval algebra over absolute instants.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Union

from pendulum import DateTime

from .models import WallClockTime
from .wall_clock import to_instant, to_utc

MIDNIGHT = WallClockTime(0, 0)


@dataclass(frozen=True)
class Interval:
    """
    Half-open interval ``[start, end)`` between two instants.

    Both ends are normalized to UTC. Invariant: start <= end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        object.__setattr__(self, "start", to_utc(self.start))
        object.__setattr__(self, "end", to_utc(self.end))
        if self.end < self.start:
            raise ValueError(f"Interval end {self.end} is before its start {self.start}")

    @classmethod
    def starting_at(cls, start: datetime, minutes: int) -> "Interval":
        """The interval covering ``minutes`` from ``start``."""
        begin = to_utc(start)
        return cls(start=begin, end=begin.add(minutes=minutes))

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)

    def contains(self, other: "Interval") -> bool:
        return contains(self, other)

    def __str__(self) -> str:
        return f"[{self.start.to_iso8601_string()}, {self.end.to_iso8601_string()})"


# Busy periods reported by an external calendar
BusyInterval = Interval


def overlaps(a: Interval, b: Interval) -> bool:
    """
    True iff the half-open intervals share at least one instant.

    Intervals that only touch (one ends where the other starts) do not overlap.
    """
    return a.start < b.end and b.start < a.end


def contains(outer: Interval, inner: Interval) -> bool:
    """True iff ``inner`` lies entirely within ``outer``."""
    return outer.start <= inner.start and inner.end <= outer.end


@dataclass(frozen=True)
class AllDaySpan:
    """
    Calendar entry covering whole days, e.g. a vacation or a public holiday.

    ``end_day`` is exclusive, as calendar APIs report it. The span has no
    absolute position until it is read in a timezone: it covers midnight to
    midnight of the owner's local days.
    """
    first_day: date
    end_day: date

    def __post_init__(self):
        # An entry whose end does not advance past its start still blocks its first day
        if self.end_day <= self.first_day:
            object.__setattr__(self, "end_day", self.first_day + timedelta(days=1))

    def to_interval(self, timezone: str) -> Interval:
        """Absolute interval from local midnight of ``first_day`` to local midnight of ``end_day``."""
        return Interval(
            start=to_instant(self.first_day, MIDNIGHT, timezone),
            end=to_instant(self.end_day, MIDNIGHT, timezone),
        )

    def __str__(self) -> str:
        return f"[{self.first_day.isoformat()}, {self.end_day.isoformat()}) all day"


# What a calendar reports: timed entries are already absolute, all-day ones are not
BusyEntry = Union[Interval, AllDaySpan]


def busy_intervals_in_zone(entries: Iterable[BusyEntry], timezone: str) -> List[Interval]:
    """Expand all-day spans in ``timezone``; timed intervals pass through unchanged."""
    return [
        entry.to_interval(timezone) if isinstance(entry, AllDaySpan) else entry
        for entry in entries
    ]
