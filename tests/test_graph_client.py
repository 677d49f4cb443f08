"""
Tests for the Microsoft Graph calendar client.
"""

from datetime import date
from typing import Any, Dict, List

import pytest
import requests

from bookable.adapters import graph_client
from bookable.adapters.graph_client import GraphCalendarClient
from bookable.domain.exceptions import ExternalSourceUnavailable
from bookable.domain.intervals import AllDaySpan

from .conftest import NEW_YORK, utc


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeGraph:
    """Records requests and replays queued responses."""

    def __init__(self, responses: List[FakeResponse]):
        self._responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "params": params})
        return self._responses.pop(0)


def timed_event(start: str, end: str, **extra) -> Dict[str, Any]:
    event = {
        "subject": "Meeting",
        "isAllDay": False,
        "isCancelled": False,
        "showAs": "busy",
        "start": {"dateTime": start, "timeZone": "UTC"},
        "end": {"dateTime": end, "timeZone": "UTC"},
    }
    event.update(extra)
    return event


@pytest.fixture
def install(monkeypatch):
    def _install(*responses: FakeResponse) -> FakeGraph:
        fake = FakeGraph(list(responses))
        monkeypatch.setattr(graph_client.requests, "get", fake.get)
        return fake

    return _install


def fetch(client: GraphCalendarClient, user=None):
    return client.get_busy_intervals(
        utc("2025-02-03T00:00:00"), utc("2025-02-08T00:00:00"), user
    )


def test_timed_events_become_utc_intervals(install):
    fake = install(
        FakeResponse(
            {"value": [timed_event("2025-02-03T15:00:00.0000000", "2025-02-03T15:30:00.0000000")]}
        )
    )

    intervals = fetch(GraphCalendarClient("token"))

    assert [(i.start, i.end) for i in intervals] == [
        (utc("2025-02-03T15:00:00"), utc("2025-02-03T15:30:00"))
    ]
    request = fake.requests[0]
    assert request["url"] == "https://graph.microsoft.com/v1.0/me/calendarView"
    assert request["headers"]["Authorization"] == "Bearer token"
    assert request["params"]["startDateTime"] == "2025-02-03T00:00:00Z"
    assert request["params"]["endDateTime"] == "2025-02-08T00:00:00Z"


def test_reads_other_mailbox(install):
    fake = install(FakeResponse({"value": []}))

    assert fetch(GraphCalendarClient("token"), user="alice@example.com") == []
    assert fake.requests[0]["url"].endswith("/users/alice@example.com/calendarView")


def test_all_day_event_spans_local_day(install):
    """An all-day entry comes back as its calendar days, read later in the owner's zone."""
    install(
        FakeResponse(
            {
                "value": [
                    timed_event(
                        "2025-02-05T00:00:00.0000000",
                        "2025-02-06T00:00:00.0000000",
                        isAllDay=True,
                    )
                ]
            }
        )
    )

    (span,) = fetch(GraphCalendarClient("token"))

    assert span == AllDaySpan(date(2025, 2, 5), date(2025, 2, 6))
    assert span.to_interval(NEW_YORK).start == utc("2025-02-05T05:00:00")
    assert span.to_interval(NEW_YORK).end == utc("2025-02-06T05:00:00")


def test_free_and_cancelled_events_skipped(install):
    install(
        FakeResponse(
            {
                "value": [
                    timed_event("2025-02-03T15:00:00", "2025-02-03T15:30:00", showAs="free"),
                    timed_event("2025-02-03T16:00:00", "2025-02-03T16:30:00", isCancelled=True),
                    timed_event("2025-02-03T17:00:00", "2025-02-03T17:30:00", showAs="tentative"),
                    timed_event("2025-02-03T18:00:00", "2025-02-03T18:30:00", showAs="unknown"),
                ]
            }
        )
    )

    intervals = fetch(GraphCalendarClient("token"))

    assert [i.start for i in intervals] == [
        utc("2025-02-03T17:00:00"),
        utc("2025-02-03T18:00:00"),
    ]


def test_follows_next_link(install):
    next_link = "https://graph.microsoft.com/v1.0/me/calendarView?$skip=1"
    fake = install(
        FakeResponse(
            {
                "value": [timed_event("2025-02-03T15:00:00", "2025-02-03T15:30:00")],
                "@odata.nextLink": next_link,
            }
        ),
        FakeResponse({"value": [timed_event("2025-02-04T15:00:00", "2025-02-04T15:30:00")]}),
    )

    intervals = fetch(GraphCalendarClient("token"))

    assert len(intervals) == 2
    assert fake.requests[1]["url"] == next_link
    assert fake.requests[1]["params"] is None


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({"error": {"code": "ServiceUnavailable"}}, status_code=503),
        FakeResponse(ValueError("not json")),
        FakeResponse(["unexpected"]),
    ],
)
def test_api_failures_raise(install, response):
    """Failures never degrade to an empty busy list."""
    install(response)

    with pytest.raises(ExternalSourceUnavailable):
        fetch(GraphCalendarClient("token"))


def test_network_error_raises(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr(graph_client.requests, "get", boom)

    with pytest.raises(ExternalSourceUnavailable, match="connection refused"):
        fetch(GraphCalendarClient("token"))


def test_unparseable_event_raises(install):
    install(FakeResponse({"value": [{"subject": "Broken", "start": {}, "end": {}}]}))

    with pytest.raises(ExternalSourceUnavailable):
        fetch(GraphCalendarClient("token"))


def test_test_connection_returns_profile(install):
    fake = install(FakeResponse({"displayName": "Alice", "mail": "alice@example.com"}))

    profile = GraphCalendarClient("token").test_connection()

    assert profile["mail"] == "alice@example.com"
    assert fake.requests[0]["url"] == "https://graph.microsoft.com/v1.0/me"
