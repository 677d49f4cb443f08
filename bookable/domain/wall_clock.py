"""
Conversion between wall-clock readings in a named timezone and absolute instants.

Instants are always returned as pendulum ``DateTime`` objects in UTC. Daylight
saving transitions are resolved with a fixed policy:

* a wall-clock time that does not exist (spring-forward gap) is pushed forward
  by the size of the gap, i.e. read with the post-transition offset
  (02:30 on 2025-03-09 in New York becomes 03:30 EDT = 07:30 UTC);
* a wall-clock time that occurs twice (fall-back overlap) resolves to its
  first occurrence, the earlier instant on the pre-transition offset
  (01:30 on 2025-11-02 in New York becomes 01:30 EDT = 05:30 UTC).
"""

from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from typing import TYPE_CHECKING

import pendulum
from pendulum import DateTime
from pendulum.tz.exceptions import AmbiguousTime, NonExistingTime
from pendulum.tz.timezone import Timezone

from .exceptions import InvalidTimezone

if TYPE_CHECKING:
    from .models import WallClockTime, Weekday

UTC = pendulum.UTC


@lru_cache(maxsize=256)
def _lookup_timezone(name: str) -> Timezone:
    return pendulum.timezone(name)


def load_timezone(name: str) -> Timezone:
    """
    Resolve an IANA timezone identifier.

    Raises:
        InvalidTimezone: If the identifier is not a string or is unknown.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidTimezone(name)
    try:
        return _lookup_timezone(name)
    except (ValueError, KeyError) as exc:
        # pendulum raises InvalidTimezone (a ValueError); zoneinfo may raise KeyError
        raise InvalidTimezone(name) from exc


def validate_timezone(name: str) -> str:
    """Return ``name`` unchanged if it is a known timezone."""
    load_timezone(name)
    return name


def to_utc(instant: datetime) -> DateTime:
    """
    Normalize an aware datetime to a pendulum ``DateTime`` in UTC.

    Raises:
        ValueError: If ``instant`` is naive.
    """
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError(f"Instant {instant!r} must be timezone-aware")
    return pendulum.instance(instant).in_timezone(UTC)


def to_instant(day: date, wall_time: "WallClockTime", timezone: str) -> DateTime:
    """
    Resolve a wall-clock reading on ``day`` in ``timezone`` to a UTC instant.

    The offset in force on that specific date is used, so the same wall-clock
    time maps to different instants in summer and winter.
    """
    zone = load_timezone(timezone)
    parts = (day.year, day.month, day.day, wall_time.hour, wall_time.minute)

    try:
        local = pendulum.datetime(*parts, tz=zone, raise_on_unknown_times=True)
    except NonExistingTime:
        # fold=1 shifts the reading forward past the gap
        local = pendulum.datetime(*parts, tz=zone, fold=1)
    except AmbiguousTime:
        local = pendulum.datetime(*parts, tz=zone, fold=0)

    return local.in_timezone(UTC)


def in_zone(instant: datetime, timezone: str) -> DateTime:
    """Express an aware instant in ``timezone``."""
    return to_utc(instant).in_timezone(load_timezone(timezone))


def local_date(instant: datetime, timezone: str) -> date:
    """Calendar date of ``instant`` as observed in ``timezone``."""
    return in_zone(instant, timezone).date()


def local_weekday(instant: datetime, timezone: str) -> "Weekday":
    """Weekday of ``instant`` as observed in ``timezone`` (not the UTC weekday)."""
    from .models import Weekday

    return Weekday.of(local_date(instant, timezone))
