"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import (
    AvailabilityService,
    CalendarClientProtocol,
    ScheduleRepositoryProtocol,
)

__all__ = ["AvailabilityService", "CalendarClientProtocol", "ScheduleRepositoryProtocol"]
