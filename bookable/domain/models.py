"""
Domain models for recurring weekly availability.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, time
from enum import IntEnum
from typing import Dict, Iterable, Tuple

from .exceptions import InvalidWindow
from .wall_clock import validate_timezone

_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


class Weekday(IntEnum):
    """Day of the week, numbered like ``date.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return cls(day.weekday())

    @classmethod
    def parse(cls, value: "Weekday | int | str") -> "Weekday":
        """
        Parse a weekday from an enum member, an index (0=Monday) or a name.

        Names are case-insensitive and may be abbreviated to three letters.

        Raises:
            ValueError: If the value names no weekday.
        """
        if isinstance(value, Weekday):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Not a weekday: {value!r}")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            key = value.strip().upper()
            for member in cls:
                if member.name == key or (len(key) == 3 and member.name.startswith(key)):
                    return member
        raise ValueError(f"Not a weekday: {value!r}")

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True, order=True)
class WallClockTime:
    """
    A time of day with no timezone attached.

    Invariant: 0 <= hour <= 23 and 0 <= minute <= 59.
    """
    hour: int
    minute: int = 0

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"Minute must be between 0 and 59, got {self.minute}")

    @classmethod
    def parse(cls, value: "WallClockTime | time | str") -> "WallClockTime":
        """Build from ``"HH:MM"``, a ``datetime.time`` or another instance."""
        if isinstance(value, WallClockTime):
            return value
        if isinstance(value, time):
            return cls(hour=value.hour, minute=value.minute)
        match = _TIME_PATTERN.match(value) if isinstance(value, str) else None
        if match is None:
            raise ValueError(f"Expected a time in HH:MM format, got {value!r}")
        return cls(hour=int(match.group(1)), minute=int(match.group(2)))

    @property
    def minutes_of_day(self) -> int:
        return self.hour * 60 + self.minute

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class WeeklyWindow:
    """
    One recurring availability window, e.g. every Monday 09:00-17:00.

    Invariant: start is strictly before end; windows never span midnight.
    """
    weekday: Weekday
    start: WallClockTime
    end: WallClockTime

    def __post_init__(self):
        if self.start.minutes_of_day >= self.end.minutes_of_day:
            raise InvalidWindow(
                str(self),
                f"start {self.start} must be before end {self.end}",
            )

    @classmethod
    def build(
        cls,
        weekday: "Weekday | int | str",
        start: "WallClockTime | time | str",
        end: "WallClockTime | time | str",
    ) -> "WeeklyWindow":
        """
        Build a window from loosely typed values (config files, CLI input).

        Raises:
            InvalidWindow: If any part cannot be parsed or the ordering is wrong.
        """
        raw = f"{weekday} {start}-{end}"
        try:
            return cls(
                weekday=Weekday.parse(weekday),
                start=WallClockTime.parse(start),
                end=WallClockTime.parse(end),
            )
        except ValueError as exc:
            raise InvalidWindow(raw, str(exc)) from exc

    @classmethod
    def from_text(cls, text: str) -> "WeeklyWindow":
        """Parse ``"monday 09:00-17:00"``."""
        parts = text.split()
        if len(parts) != 2 or parts[1].count("-") != 1:
            raise InvalidWindow(text, "expected '<weekday> HH:MM-HH:MM'")
        start, end = parts[1].split("-")
        return cls.build(parts[0], start, end)

    def sort_key(self) -> Tuple[int, int, int]:
        return (int(self.weekday), self.start.minutes_of_day, self.end.minutes_of_day)

    def __str__(self) -> str:
        return f"{self.weekday.label} {self.start}-{self.end}"


@dataclass(frozen=True)
class Schedule:
    """
    Published weekly availability of one owner in their home timezone.

    Construction validates the timezone, so a ``Schedule`` that exists is
    always usable by the resolver. Windows are indexed by weekday.
    """
    owner_id: str
    timezone: str
    windows: Tuple[WeeklyWindow, ...] = ()
    _by_weekday: Dict[Weekday, Tuple[WeeklyWindow, ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self):
        validate_timezone(self.timezone)
        ordered = tuple(sorted(set(self.windows), key=WeeklyWindow.sort_key))
        object.__setattr__(self, "windows", ordered)

        grouped: Dict[Weekday, Tuple[WeeklyWindow, ...]] = {day: () for day in Weekday}
        for window in ordered:
            grouped[window.weekday] += (window,)
        object.__setattr__(self, "_by_weekday", grouped)

    @classmethod
    def create(
        cls, owner_id: str, timezone: str, windows: Iterable[WeeklyWindow]
    ) -> "Schedule":
        return cls(owner_id=owner_id, timezone=timezone, windows=tuple(windows))

    def windows_for(self, weekday: Weekday) -> Tuple[WeeklyWindow, ...]:
        """All windows recurring on ``weekday`` (possibly none)."""
        return self._by_weekday[weekday]

    @property
    def is_empty(self) -> bool:
        return not self.windows


@dataclass(frozen=True)
class MeetingRequest:
    """
    Length of the meeting a requester wants to book.

    Invariant: duration is a positive number of minutes.
    """
    duration_minutes: int

    def __post_init__(self):
        if isinstance(self.duration_minutes, bool) or not isinstance(self.duration_minutes, int):
            raise ValueError(f"Duration must be an integer, got {self.duration_minutes!r}")
        if self.duration_minutes <= 0:
            raise ValueError(
                f"Duration must be a positive number of minutes, got {self.duration_minutes}"
            )
