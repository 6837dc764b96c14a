"""Pydantic models for application-owned records.

- :class:`SyncType` -- the closed set of relationships a session can have
  with a Google Calendar event.
- :class:`Session` -- a scheduled appointment with its sync projection
  (the ``sync_type`` and ``google_*`` fields).
- :class:`Client` -- the person a session is booked for.
"""

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from practice_sync.models.calendar import Attendee

SessionStatus = Literal["scheduled", "completed", "cancelled", "no-show"]


class SyncType(str, Enum):
    """Relationship between a session and a Google Calendar event."""

    NONE = "none"
    IMPORTED = "imported"
    MIRRORED = "mirrored"
    SENT = "sent"
    CANCELLED = "cancelled"

    @property
    def is_linked(self) -> bool:
        """Whether the session still follows its external event."""
        return self in (SyncType.IMPORTED, SyncType.MIRRORED, SyncType.SENT)


class Session(BaseModel):
    """A practice session and its Google Calendar sync fields.

    Attributes:
        id: Store-assigned identifier (empty until inserted).
        user_id: Owner of the record; every store query is scoped to it.
        client_id: The client the session is booked for.
        session_date: Local calendar date of the session.
        session_time: Local start time of the session.
        status: Attendance status.
        value: Monetary value charged for the session.
        notes: Free-text notes; mirrored to the event description.
        package_id: Optional package the session belongs to.
        recurring_session_id: Optional local recurrence group.
        sync_type: Relationship with Google Calendar.
        google_event_id: ID of the linked event, if any.
        google_html_link: Link to the event in the Google Calendar UI.
        google_attendees: Attendee list as last seen on the event.
        google_location: Location as last seen on (or pushed to) the event.
        google_recurrence_id: Master ID of the event's recurring series.
        google_last_synced: When the sync fields were last reconciled.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = ""
    user_id: str
    client_id: str | None = None
    session_date: date
    session_time: time
    status: SessionStatus = "scheduled"
    value: float = 0.0
    notes: str = ""
    package_id: str | None = None
    recurring_session_id: str | None = None
    sync_type: SyncType = SyncType.NONE
    google_event_id: str | None = None
    google_html_link: str | None = None
    google_attendees: list[Attendee] = Field(default_factory=list)
    google_location: str | None = None
    google_recurrence_id: str | None = None
    google_last_synced: datetime | None = None

    @field_validator("sync_type", mode="before")
    @classmethod
    def _none_means_local(cls, value: object) -> object:
        """Treat a missing sync type as a purely local session."""
        return SyncType.NONE if value is None else value

    @field_validator("session_time")
    @classmethod
    def _truncate_to_minute(cls, value: time) -> time:
        """Session times are kept at minute granularity."""
        return value.replace(second=0, microsecond=0)

    @property
    def is_local(self) -> bool:
        """Whether the session has no relationship with Google Calendar."""
        return self.sync_type is SyncType.NONE


class Client(BaseModel):
    """A client of the practice.

    Attributes:
        id: Store-assigned identifier (empty until inserted).
        user_id: Owner of the record.
        name: Display name.
        email: Contact email, used to match event attendees.
        notes: Free-text notes recorded at creation.
    """

    id: str = ""
    user_id: str
    name: str
    email: str | None = None
    notes: str = ""
