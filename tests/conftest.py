"""
Shared fixtures for availability tests.
"""

import pendulum
import pytest

from bookable.domain.models import Schedule, WeeklyWindow

NEW_YORK = "America/New_York"


def utc(text: str) -> pendulum.DateTime:
    """Parse an ISO timestamp as UTC."""
    return pendulum.parse(text, tz="UTC")


@pytest.fixture
def monday_schedule() -> Schedule:
    """Monday 09:00-17:00 in New York."""
    return Schedule.create(
        owner_id="alice",
        timezone=NEW_YORK,
        windows=[WeeklyWindow.build("monday", "09:00", "17:00")],
    )


@pytest.fixture
def sunday_schedule() -> Schedule:
    """Sunday 09:00-17:00 in New York (DST transitions happen on Sundays)."""
    return Schedule.create(
        owner_id="alice",
        timezone=NEW_YORK,
        windows=[WeeklyWindow.build("sunday", "09:00", "17:00")],
    )
