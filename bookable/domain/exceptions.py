"""
Domain-specific exception hierarchy for the bookable application.
"""


class BookableError(Exception):
    """Base class for all application-level errors."""


class ScheduleError(BookableError):
    """Raised when a published schedule is malformed."""


class InvalidTimezone(ScheduleError):
    """Raised when a timezone identifier is unknown to the tz database."""

    def __init__(self, timezone: object) -> None:
        self.timezone = timezone
        super().__init__(f"Unknown timezone identifier: {timezone!r}")


class InvalidWindow(ScheduleError):
    """Raised when a weekly window cannot be built (bad weekday, times or ordering)."""

    def __init__(self, window: object, reason: str) -> None:
        self.window = window
        self.reason = reason
        super().__init__(f"Invalid availability window {window!r}: {reason}")


class ExternalSourceUnavailable(BookableError):
    """Raised when the schedule store or the calendar cannot be read."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"{source} unavailable: {reason}")


class AuthenticationError(BookableError):
    """Raised when authentication or token handling fails."""
