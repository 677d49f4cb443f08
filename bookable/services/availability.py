"""
Application service for answering "when can this owner be booked?".

The service fetches the owner's schedule and busy intervals concurrently,
joins them and delegates the decision to the domain-level
``AvailabilityResolver``. Both collaborators are plain synchronous objects
described by protocols, so the real Graph adapter, the YAML store or simple
stubs can be plugged in.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Sequence, TypeVar

from pendulum import DateTime

from ..domain.candidates import candidate_starts
from ..domain.exceptions import BookableError, ExternalSourceUnavailable
from ..domain.intervals import BusyEntry, busy_intervals_in_zone
from ..domain.models import MeetingRequest, Schedule
from ..domain.resolver import AvailabilityResolver
from ..domain.wall_clock import to_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScheduleRepositoryProtocol(Protocol):
    """Persistence collaborator holding published schedules."""

    def get_schedule(self, owner_id: str) -> Optional[Schedule]:
        """Return the owner's schedule, or None if nothing is published."""


class CalendarClientProtocol(Protocol):
    """Calendar collaborator reporting an owner's busy times."""

    def get_busy_intervals(
        self,
        start_time: DateTime,
        end_time: DateTime,
        user: Optional[str] = None,
    ) -> List[BusyEntry]:
        """Return busy entries overlapping the range; all-day entries as ``AllDaySpan``."""


class AvailabilityService:
    """
    Orchestrates schedule lookup, busy-time retrieval and resolution.

    Fetch failures are fail-closed: they raise ``ExternalSourceUnavailable``
    and are never turned into an empty busy list, which would make booked
    time look free.
    """

    def __init__(
        self,
        schedule_repository: ScheduleRepositoryProtocol,
        calendar_client: CalendarClientProtocol,
        resolver: AvailabilityResolver | None = None,
        fetch_timeout_seconds: float = 30.0,
    ) -> None:
        self._schedule_repository = schedule_repository
        self._calendar_client = calendar_client
        self._resolver = resolver or AvailabilityResolver()
        self._fetch_timeout_seconds = fetch_timeout_seconds

    async def find_available_times(
        self,
        *,
        owner_id: str,
        candidates: Sequence[datetime],
        duration_minutes: int,
        mailbox: Optional[str] = None,
    ) -> List[DateTime]:
        """
        Return the candidates the owner can be booked at, in input order.

        Busy intervals are requested for ``[first candidate, last candidate +
        duration)`` so events starting inside the last meeting are seen.

        Raises:
            ExternalSourceUnavailable: If the schedule or calendar cannot be read
            InvalidTimezone, InvalidWindow: If the stored schedule is malformed
        """
        request = MeetingRequest(duration_minutes=duration_minutes)
        instants = [to_utc(candidate) for candidate in candidates]

        if not instants:
            return []

        span_start = min(instants)
        span_end = max(instants).add(minutes=request.duration_minutes)

        schedule, entries = await asyncio.gather(
            self.fetch_schedule(owner_id),
            self.fetch_busy_intervals(
                start=span_start,
                end=span_end,
                mailbox=mailbox,
            ),
        )

        if schedule is None:
            logger.info("Owner %s has not published a schedule", owner_id)
            return []

        # All-day entries cover the owner's local days
        busy = busy_intervals_in_zone(entries, schedule.timezone)
        accepted = self._resolver.resolve(instants, schedule, request.duration_minutes, busy)
        logger.debug(
            "Owner %s: %d of %d candidates bookable (%d busy intervals)",
            owner_id,
            len(accepted),
            len(instants),
            len(busy),
        )
        return accepted

    async def find_available_times_between(
        self,
        *,
        owner_id: str,
        start: datetime,
        end: datetime,
        duration_minutes: int,
        step_minutes: int = 15,
        mailbox: Optional[str] = None,
    ) -> List[DateTime]:
        """Evaluate every ``step_minutes`` grid point between ``start`` and ``end``."""
        return await self.find_available_times(
            owner_id=owner_id,
            candidates=candidate_starts(start, end, step_minutes),
            duration_minutes=duration_minutes,
            mailbox=mailbox,
        )

    async def is_time_available(
        self,
        *,
        owner_id: str,
        start: datetime,
        duration_minutes: int,
        mailbox: Optional[str] = None,
    ) -> bool:
        """Re-check a single requested start right before confirming a booking."""
        accepted = await self.find_available_times(
            owner_id=owner_id,
            candidates=[start],
            duration_minutes=duration_minutes,
            mailbox=mailbox,
        )
        return bool(accepted)

    async def fetch_schedule(self, owner_id: str) -> Optional[Schedule]:
        """Read the owner's schedule from the repository."""
        return await self._fetch(
            "Schedule store",
            self._schedule_repository.get_schedule,
            owner_id,
        )

    async def fetch_busy_intervals(
        self,
        *,
        start: DateTime,
        end: DateTime,
        mailbox: Optional[str] = None,
    ) -> List[BusyEntry]:
        """Read busy entries for ``[start, end)`` from the calendar."""
        busy = await self._fetch(
            "Calendar",
            self._calendar_client.get_busy_intervals,
            start,
            end,
            mailbox,
        )
        if busy is None:
            raise ExternalSourceUnavailable("Calendar", "no busy-interval data returned")
        return list(busy)

    async def _fetch(self, source: str, func: Callable[..., T], *args) -> T:
        """
        Run a blocking collaborator call in a worker thread with a timeout.

        Domain errors pass through untouched; anything else becomes
        ``ExternalSourceUnavailable``.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args),
                timeout=self._fetch_timeout_seconds,
            )
        except BookableError:
            raise
        except asyncio.TimeoutError as exc:
            logger.warning("%s did not answer within %ss", source, self._fetch_timeout_seconds)
            raise ExternalSourceUnavailable(
                source, f"timed out after {self._fetch_timeout_seconds}s"
            ) from exc
        except Exception as exc:
            logger.warning("%s fetch failed: %s", source, exc)
            raise ExternalSourceUnavailable(source, str(exc)) from exc
