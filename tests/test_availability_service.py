"""
Tests for the AvailabilityService orchestration layer.
"""

import asyncio
import threading
import time
from datetime import date
from typing import Dict, List, Optional

import pytest

from bookable.domain.exceptions import ExternalSourceUnavailable, InvalidWindow
from bookable.domain.intervals import AllDaySpan, BusyEntry, Interval
from bookable.domain.models import Schedule, WeeklyWindow
from bookable.services.availability import AvailabilityService

from .conftest import NEW_YORK, utc


class StubScheduleRepository:
    """Minimal stub matching ScheduleRepositoryProtocol."""

    def __init__(self, schedules: Dict[str, Schedule], barrier: Optional[threading.Barrier] = None):
        self._schedules = schedules
        self._barrier = barrier
        self.calls: List[str] = []

    def get_schedule(self, owner_id):
        self.calls.append(owner_id)
        if self._barrier is not None:
            self._barrier.wait()
        return self._schedules.get(owner_id)


class StubCalendarClient:
    """Minimal stub matching CalendarClientProtocol."""

    def __init__(self, busy: List[BusyEntry], barrier: Optional[threading.Barrier] = None):
        self._busy = busy
        self._barrier = barrier
        self.calls: List[Dict[str, object]] = []

    def get_busy_intervals(self, start_time, end_time, user=None):
        self.calls.append(
            {"start": start_time, "end": end_time, "user": user}
        )
        if self._barrier is not None:
            self._barrier.wait()
        return self._busy


class FailingCalendarClient:
    def __init__(self, error: Exception):
        self._error = error

    def get_busy_intervals(self, start_time, end_time, user=None):
        raise self._error


class SlowCalendarClient:
    def get_busy_intervals(self, start_time, end_time, user=None):
        time.sleep(0.5)
        return []


class NoneCalendarClient:
    def get_busy_intervals(self, start_time, end_time, user=None):
        return None


class BrokenScheduleRepository:
    def get_schedule(self, owner_id):
        raise InvalidWindow("monday 17:00-09:00", "start 17:00 must be before end 09:00")


CANDIDATES = [
    utc("2025-02-03T14:00:00"),
    utc("2025-02-03T15:00:00"),
    utc("2025-02-03T22:00:00"),
]


@pytest.fixture
def busy_block():
    return [Interval(start=utc("2025-02-03T15:00:00"), end=utc("2025-02-03T15:30:00"))]


def test_find_available_times_joins_schedule_and_calendar(monday_schedule, busy_block):
    """End-to-end call should apply both the window and the busy block."""
    calendar = StubCalendarClient(busy_block)
    service = AvailabilityService(StubScheduleRepository({"alice": monday_schedule}), calendar)

    result = asyncio.run(
        service.find_available_times(
            owner_id="alice",
            candidates=CANDIDATES,
            duration_minutes=30,
            mailbox="alice@example.com",
        )
    )

    assert result == [utc("2025-02-03T14:00:00")]
    assert calendar.calls == [
        {
            "start": utc("2025-02-03T14:00:00"),
            "end": utc("2025-02-03T22:30:00"),
            "user": "alice@example.com",
        }
    ]


def test_fetches_run_concurrently(monday_schedule):
    """Each collaborator blocks until the other has started."""
    barrier = threading.Barrier(2, timeout=5)
    service = AvailabilityService(
        StubScheduleRepository({"alice": monday_schedule}, barrier),
        StubCalendarClient([], barrier),
    )

    result = asyncio.run(
        service.find_available_times(
            owner_id="alice", candidates=CANDIDATES, duration_minutes=30
        )
    )

    assert result == CANDIDATES[:2]


def test_empty_candidates_skip_fetching(monday_schedule):
    repository = StubScheduleRepository({"alice": monday_schedule})
    calendar = StubCalendarClient([])
    service = AvailabilityService(repository, calendar)

    result = asyncio.run(
        service.find_available_times(owner_id="alice", candidates=[], duration_minutes=30)
    )

    assert result == []
    assert repository.calls == []
    assert calendar.calls == []


def test_missing_schedule_means_nothing_available():
    service = AvailabilityService(StubScheduleRepository({}), StubCalendarClient([]))

    result = asyncio.run(
        service.find_available_times(owner_id="bob", candidates=CANDIDATES, duration_minutes=30)
    )

    assert result == []


@pytest.mark.parametrize(
    "error",
    [RuntimeError("boom"), ConnectionError("reset by peer")],
)
def test_calendar_failure_is_fail_closed(monday_schedule, error):
    """A failed busy lookup must never be read as an empty calendar."""
    service = AvailabilityService(
        StubScheduleRepository({"alice": monday_schedule}),
        FailingCalendarClient(error),
    )

    with pytest.raises(ExternalSourceUnavailable) as excinfo:
        asyncio.run(
            service.find_available_times(
                owner_id="alice", candidates=CANDIDATES, duration_minutes=30
            )
        )

    assert excinfo.value.source == "Calendar"


def test_source_errors_pass_through(monday_schedule):
    upstream = ExternalSourceUnavailable("Microsoft Graph", "HTTP 503")
    service = AvailabilityService(
        StubScheduleRepository({"alice": monday_schedule}),
        FailingCalendarClient(upstream),
    )

    with pytest.raises(ExternalSourceUnavailable) as excinfo:
        asyncio.run(
            service.find_available_times(
                owner_id="alice", candidates=CANDIDATES, duration_minutes=30
            )
        )

    assert excinfo.value is upstream


def test_calendar_timeout_is_fail_closed(monday_schedule):
    service = AvailabilityService(
        StubScheduleRepository({"alice": monday_schedule}),
        SlowCalendarClient(),
        fetch_timeout_seconds=0.05,
    )

    with pytest.raises(ExternalSourceUnavailable, match="timed out"):
        asyncio.run(
            service.find_available_times(
                owner_id="alice", candidates=CANDIDATES, duration_minutes=30
            )
        )


def test_missing_busy_data_is_fail_closed(monday_schedule):
    service = AvailabilityService(
        StubScheduleRepository({"alice": monday_schedule}),
        NoneCalendarClient(),
    )

    with pytest.raises(ExternalSourceUnavailable):
        asyncio.run(
            service.find_available_times(
                owner_id="alice", candidates=CANDIDATES, duration_minutes=30
            )
        )


def test_malformed_schedule_propagates():
    service = AvailabilityService(BrokenScheduleRepository(), StubCalendarClient([]))

    with pytest.raises(InvalidWindow):
        asyncio.run(
            service.find_available_times(
                owner_id="alice", candidates=CANDIDATES, duration_minutes=30
            )
        )


def test_find_available_times_between_uses_grid(monday_schedule, busy_block):
    service = AvailabilityService(
        StubScheduleRepository({"alice": monday_schedule}),
        StubCalendarClient(busy_block),
    )

    result = asyncio.run(
        service.find_available_times_between(
            owner_id="alice",
            start=utc("2025-02-03T13:00:00"),
            end=utc("2025-02-03T16:00:00"),
            duration_minutes=60,
            step_minutes=60,
        )
    )

    # 13:00 opens too early, 15:00 hits the busy block
    assert result == [utc("2025-02-03T14:00:00"), utc("2025-02-03T16:00:00")]


def test_is_time_available(monday_schedule, busy_block):
    service = AvailabilityService(
        StubScheduleRepository({"alice": monday_schedule}),
        StubCalendarClient(busy_block),
    )

    def check(start):
        return asyncio.run(
            service.is_time_available(owner_id="alice", start=utc(start), duration_minutes=30)
        )

    assert check("2025-02-03T14:30:00")
    assert not check("2025-02-03T15:15:00")


class TestAllDayEntries:
    """All-day entries block the owner's local days, whatever the display zone."""

    @pytest.fixture
    def tuesday_evening(self):
        """Tuesday 17:00-23:00 New York, which ends after UTC midnight."""
        return Schedule.create(
            owner_id="alice",
            timezone=NEW_YORK,
            windows=[WeeklyWindow.build("tuesday", "17:00", "23:00")],
        )

    def find(self, schedule, busy, candidate):
        service = AvailabilityService(
            StubScheduleRepository({"alice": schedule}), StubCalendarClient(busy)
        )
        return asyncio.run(
            service.find_available_times(
                owner_id="alice", candidates=[utc(candidate)], duration_minutes=30
            )
        )

    def test_blocks_whole_local_day(self, tuesday_evening):
        # 2025-02-04 20:00 in New York
        day_off = [AllDaySpan(date(2025, 2, 4), date(2025, 2, 5))]

        assert self.find(tuesday_evening, day_off, "2025-02-05T01:00:00") == []

    def test_next_local_day_untouched(self, tuesday_evening):
        # Wednesday off does not reach Tuesday evening, though both fall on 2025-02-05 UTC
        day_off = [AllDaySpan(date(2025, 2, 5), date(2025, 2, 6))]

        assert self.find(tuesday_evening, day_off, "2025-02-05T01:00:00") == [
            utc("2025-02-05T01:00:00")
        ]
