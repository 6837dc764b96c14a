"""Google Calendar integration for practice-sync."""

from __future__ import annotations

from practice_sync.calendar.auth import CredentialProvider, FileCredentialProvider
from practice_sync.calendar.client import GoogleCalendarClient
from practice_sync.calendar.event_mapper import event_local_start, map_session_to_event
from practice_sync.calendar.exceptions import (
    CalendarAPIError,
    CalendarAuthError,
    CalendarNotFoundError,
    CalendarTransientError,
)
from practice_sync.calendar.series import get_series_instances, group_recurring_events

__all__ = [
    "CalendarAPIError",
    "CalendarAuthError",
    "CalendarNotFoundError",
    "CalendarTransientError",
    "CredentialProvider",
    "FileCredentialProvider",
    "GoogleCalendarClient",
    "event_local_start",
    "get_series_instances",
    "group_recurring_events",
    "map_session_to_event",
]
