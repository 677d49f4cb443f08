"""
Offline calendar client backed by a list of events or a JSON file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pendulum import DateTime

from ..domain.exceptions import ExternalSourceUnavailable, InvalidTimezone
from ..domain.intervals import AllDaySpan, BusyEntry, Interval, overlaps
from .events import all_day_span, parse_day, timed_interval

logger = logging.getLogger(__name__)

SOURCE_NAME = "Mock calendar"


def _touches(entry: BusyEntry, window: Interval) -> bool:
    if isinstance(entry, AllDaySpan):
        # Local midnight is within a day of UTC midnight in every zone
        widest = entry.to_interval("UTC")
        return overlaps(
            Interval(start=widest.start.subtract(days=1), end=widest.end.add(days=1)),
            window,
        )
    return overlaps(entry, window)


class MockCalendarClient:
    """
    Calendar client that serves events without any network access.

    Events look like::

        {"owner": "alice", "start": "2025-02-03T15:00:00Z", "end": "2025-02-03T15:30:00Z"}
        {"owner": "alice", "start": "2025-02-05", "end": "2025-02-06", "all_day": true}

    Events without an ``owner`` apply to every mailbox.
    """

    def __init__(
        self,
        events: Optional[Iterable[Dict[str, Any]]] = None,
        events_file: Optional[Path] = None,
    ):
        """
        Initialize the mock client.

        Args:
            events: In-memory events; takes precedence over ``events_file``
            events_file: JSON file holding a list of events
        """
        self.events_file = events_file
        self.calendar_events: List[Dict[str, Any]] = (
            list(events) if events is not None else self._load_calendar_data()
        )

    def _load_calendar_data(self) -> List[Dict[str, Any]]:
        """Load mock calendar data from the JSON file, if one was given."""
        if self.events_file is None:
            return []

        try:
            with open(self.events_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise ExternalSourceUnavailable(
                SOURCE_NAME, f"cannot read {self.events_file}: {exc}"
            ) from exc

        if not isinstance(data, list):
            raise ExternalSourceUnavailable(SOURCE_NAME, "events file must contain a list")
        return data

    def get_busy_intervals(
        self,
        start_time: DateTime,
        end_time: DateTime,
        user: Optional[str] = None,
    ) -> List[BusyEntry]:
        """
        Busy entries of ``user`` overlapping ``[start_time, end_time)``.

        All-day entries come back as ``AllDaySpan`` and are kept when any
        timezone's reading of them could touch the range.

        Raises:
            ExternalSourceUnavailable: If an event cannot be parsed
        """
        window = Interval(start=start_time, end=end_time)
        intervals: List[BusyEntry] = []

        for event in self.calendar_events:
            owner = event.get("owner")
            if owner is not None and user is not None and owner != user:
                continue
            if event.get("show_as", "busy") == "free":
                continue

            try:
                if event.get("all_day"):
                    interval: BusyEntry = all_day_span(
                        parse_day(event["start"]), parse_day(event["end"])
                    )
                else:
                    interval = timed_interval(event["start"], event["end"])
            except (KeyError, TypeError, ValueError, InvalidTimezone) as exc:
                raise ExternalSourceUnavailable(
                    SOURCE_NAME, f"could not parse event {event!r}: {exc}"
                ) from exc

            if _touches(interval, window):
                intervals.append(interval)

        logger.debug("Mock calendar returned %d busy intervals for %s", len(intervals), user)
        return intervals

    def test_connection(self) -> Dict[str, Any]:
        """
        Mock connection test.

        Returns:
            Mock user profile data
        """
        return {
            "displayName": "Mock User",
            "mail": "mock.user@example.com",
            "userPrincipalName": "mock.user@example.com",
        }
