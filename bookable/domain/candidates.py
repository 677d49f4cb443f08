"""
Generation of candidate meeting starts on a fixed minute grid.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterator, List

from pendulum import DateTime

from .wall_clock import to_utc


def _ceil_to_step(instant: DateTime, step_minutes: int) -> DateTime:
    floored = instant.replace(second=0, microsecond=0)
    if floored < instant:
        floored = floored.add(minutes=1)

    remainder = (floored.hour * 60 + floored.minute) % step_minutes
    if remainder:
        floored = floored.add(minutes=step_minutes - remainder)
    return floored


def iter_candidate_starts(
    start: datetime,
    end: datetime,
    step_minutes: int = 15,
) -> Iterator[DateTime]:
    """
    Yield UTC instants every ``step_minutes`` from ``start`` through ``end``.

    ``start`` is rounded up onto the grid (minutes since UTC midnight divisible
    by ``step_minutes``), so "now" becomes the next bookable quarter hour.
    """
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be greater than zero, got {step_minutes}")

    current = _ceil_to_step(to_utc(start), step_minutes)
    last = to_utc(end)

    while current <= last:
        yield current
        current = current.add(minutes=step_minutes)


def candidate_starts(
    start: datetime,
    end: datetime,
    step_minutes: int = 15,
) -> List[DateTime]:
    """List form of :func:`iter_candidate_starts`, ascending."""
    return list(iter_candidate_starts(start, end, step_minutes))
