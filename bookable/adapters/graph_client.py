"""
Microsoft Graph API client for fetching an owner's busy times.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
from pendulum import DateTime

from ..domain.exceptions import ExternalSourceUnavailable, InvalidTimezone
from ..domain.intervals import BusyEntry
from ..domain.wall_clock import to_utc
from .events import all_day_span, parse_day, timed_interval

logger = logging.getLogger(__name__)

SOURCE_NAME = "Microsoft Graph calendar"


class GraphCalendarClient:
    """
    Client for Microsoft Graph calendar reads.

    Uses the ``calendarView`` endpoint, which expands recurring series into
    single occurrences and flags all-day entries. Any failure raises
    ``ExternalSourceUnavailable``: an unreadable calendar must never be
    mistaken for an empty one.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    # Everything except "free" blocks the owner, including "unknown"
    FREE_STATUSES = {"free"}

    PAGE_SIZE = 500

    def __init__(self, access_token: str, timeout: float = 30):
        """
        Initialize the Graph API client.

        Args:
            access_token: Valid Microsoft Graph access token
            timeout: Per-request timeout in seconds
        """
        self.access_token = access_token
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    def get_busy_intervals(
        self,
        start_time: DateTime,
        end_time: DateTime,
        user: Optional[str] = None,
    ) -> List[BusyEntry]:
        """
        Get busy intervals overlapping ``[start_time, end_time)``.

        Args:
            start_time: Start of the time window
            end_time: End of the time window
            user: Mailbox to read; the signed-in user when omitted

        Returns:
            Busy intervals in UTC, all-day entries as ``AllDaySpan``

        Raises:
            ExternalSourceUnavailable: If the API call or parsing fails
        """
        mailbox = f"users/{user}" if user else "me"
        url: Optional[str] = f"{self.GRAPH_API_ENDPOINT}/{mailbox}/calendarView"
        params: Optional[Dict[str, Any]] = {
            "startDateTime": to_utc(start_time).to_iso8601_string(),
            "endDateTime": to_utc(end_time).to_iso8601_string(),
            "$select": "subject,start,end,isAllDay,showAs,isCancelled",
            "$top": self.PAGE_SIZE,
        }

        events: List[Dict[str, Any]] = []
        while url:
            data = self._get_json(url, params)
            events.extend(data.get("value", []))
            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

        intervals = self._parse_events(events)
        logger.debug(
            "Fetched %d busy intervals from %d events for %s",
            len(intervals),
            len(events),
            mailbox,
        )
        return intervals

    def _get_json(self, url: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        try:
            response = requests.get(
                url,
                headers=self.headers,
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as exc:
            raise ExternalSourceUnavailable(SOURCE_NAME, str(exc)) from exc
        except ValueError as exc:
            raise ExternalSourceUnavailable(SOURCE_NAME, f"invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise ExternalSourceUnavailable(SOURCE_NAME, "unexpected response shape")
        return data

    def _parse_events(self, events: List[Dict[str, Any]]) -> List[BusyEntry]:
        """
        Convert calendarView events into busy intervals.

        Event format (with ``Prefer: outlook.timezone="UTC"``):
        {
            "isAllDay": false,
            "isCancelled": false,
            "showAs": "busy",
            "start": {"dateTime": "2025-02-03T15:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2025-02-03T15:30:00.0000000", "timeZone": "UTC"}
        }
        """
        intervals: List[BusyEntry] = []

        for event in events:
            if event.get("isCancelled"):
                continue
            if str(event.get("showAs", "busy")).lower() in self.FREE_STATUSES:
                continue

            try:
                start = event["start"]
                end = event["end"]
                if event.get("isAllDay"):
                    interval: BusyEntry = all_day_span(
                        parse_day(start["dateTime"]), parse_day(end["dateTime"])
                    )
                else:
                    interval = timed_interval(
                        start["dateTime"],
                        end["dateTime"],
                        start.get("timeZone") or "UTC",
                    )
            except (KeyError, TypeError, ValueError, InvalidTimezone) as exc:
                logger.warning("Unparseable calendar event %r: %s", event.get("subject"), exc)
                raise ExternalSourceUnavailable(
                    SOURCE_NAME, f"could not parse calendar event: {exc}"
                ) from exc

            intervals.append(interval)

        return intervals

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching user profile.

        Returns:
            User profile data

        Raises:
            ExternalSourceUnavailable: If connection test fails
        """
        return self._get_json(f"{self.GRAPH_API_ENDPOINT}/me", None)
