"""
Tests for display helpers.
"""

import pytest

from bookable.domain.exceptions import InvalidTimezone
from bookable.formatters import (
    format_date,
    format_datetime,
    format_event_description,
    format_time,
    format_timezone_offset,
)

from .conftest import NEW_YORK, utc


@pytest.mark.parametrize(
    "minutes, expected",
    [
        (1, "1 min"),
        (45, "45 mins"),
        (60, "1 hr"),
        (61, "1 hr 1 min"),
        (120, "2 hrs"),
        (135, "2 hrs 15 mins"),
    ],
)
def test_format_event_description(minutes, expected):
    assert format_event_description(minutes) == expected


class TestTimezoneOffset:
    """Tests for UTC offset labels."""

    def test_winter_and_summer(self):
        assert format_timezone_offset(NEW_YORK, utc("2025-02-03T12:00:00")) == "UTC-05:00"
        assert format_timezone_offset(NEW_YORK, utc("2025-07-07T12:00:00")) == "UTC-04:00"

    def test_positive_half_hour_offset(self):
        assert format_timezone_offset("Asia/Kolkata", utc("2025-02-03T12:00:00")) == "UTC+05:30"

    def test_utc(self):
        assert format_timezone_offset("UTC", utc("2025-02-03T12:00:00")) == "UTC+00:00"

    def test_defaults_to_now(self):
        assert format_timezone_offset("UTC") == "UTC+00:00"

    def test_unknown_timezone_raises(self):
        """Never falls back to UTC."""
        with pytest.raises(InvalidTimezone):
            format_timezone_offset("Invalid/Zone")


class TestInstantFormatting:
    """Tests for date and time labels."""

    def test_in_owner_zone(self):
        instant = utc("2025-02-03T14:00:00")

        assert format_date(instant, NEW_YORK) == "Feb 3, 2025"
        assert format_time(instant, NEW_YORK) == "9:00 AM"
        assert format_datetime(instant, NEW_YORK) == "Feb 3, 2025, 9:00 AM"

    def test_date_follows_zone(self):
        """Early UTC morning is still the previous evening in New York."""
        instant = utc("2025-02-04T01:30:00")

        assert format_datetime(instant, NEW_YORK) == "Feb 3, 2025, 8:30 PM"
        assert format_datetime(instant, "UTC") == "Feb 4, 2025, 1:30 AM"

    def test_unknown_timezone_raises(self):
        with pytest.raises(InvalidTimezone):
            format_time(utc("2025-02-03T14:00:00"), "Invalid/Zone")
