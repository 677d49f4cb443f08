"""
Adapters layer - Schedule persistence and external calendar integrations.
"""

from .graph_authenticator import GraphAuthenticator, TokenCacheStore
from .graph_client import GraphCalendarClient
from .mock_calendar_client import MockCalendarClient
from .schedule_store import ScheduleStore

__all__ = [
    "GraphAuthenticator",
    "GraphCalendarClient",
    "MockCalendarClient",
    "ScheduleStore",
    "TokenCacheStore",
]
