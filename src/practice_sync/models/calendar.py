"""Data models for Google Calendar events and sync results.

- :class:`Attendee`, :class:`EventTime`, :class:`ExternalEvent` -- parsed
  Google Calendar event resources.  Field aliases follow the API's
  camelCase names so ``ExternalEvent.model_validate(resource)`` works on raw
  responses.
- :class:`RecurringSeries` -- instances of one recurring event, grouped.
- :class:`SyncOutcome`, :class:`BatchResult`, :class:`ReconcileResult` --
  structured results returned by the sync orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from practice_sync.models.session import Session

# ---------------------------------------------------------------------------
# Google Calendar resources
# ---------------------------------------------------------------------------


class Attendee(BaseModel):
    """An event attendee as reported by Google Calendar."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = ""
    display_name: str | None = Field(default=None, alias="displayName")
    response_status: str | None = Field(default=None, alias="responseStatus")


class EventTime(BaseModel):
    """Start or end of an event: a precise instant or an all-day date."""

    model_config = ConfigDict(populate_by_name=True)

    date_time: datetime | None = Field(default=None, alias="dateTime")
    day: date | None = Field(default=None, alias="date")
    time_zone: str | None = Field(default=None, alias="timeZone")

    @property
    def is_all_day(self) -> bool:
        """Whether this is an all-day (date-only) boundary."""
        return self.date_time is None and self.day is not None

    def sort_key(self) -> datetime:
        """Return a naive UTC datetime usable for chronological sorting.

        All-day dates sort at midnight; missing values sort last.
        """
        if self.date_time is not None:
            if self.date_time.tzinfo is None:
                return self.date_time
            return self.date_time.astimezone(timezone.utc).replace(tzinfo=None)
        if self.day is not None:
            return datetime.combine(self.day, time.min)
        return datetime.max


class ExternalEvent(BaseModel):
    """A Google Calendar event resource.

    Attributes:
        id: Google event ID.
        summary: Event title.
        description: Event description (free text).
        start: Start boundary.
        end: End boundary.
        location: Free-text location.
        attendees: Attendee list.
        recurrence: RRULE/EXDATE lines; only set on series masters.
        recurring_event_id: Master ID; only set on expanded instances.
        status: ``"confirmed"``, ``"tentative"`` or ``"cancelled"``.
        updated: Last modification time on the Google side.
        html_link: Link to the event in the Google Calendar UI.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    summary: str = ""
    description: str | None = None
    start: EventTime = Field(default_factory=EventTime)
    end: EventTime = Field(default_factory=EventTime)
    location: str | None = None
    attendees: list[Attendee] = Field(default_factory=list)
    recurrence: list[str] = Field(default_factory=list)
    recurring_event_id: str | None = Field(default=None, alias="recurringEventId")
    status: str = "confirmed"
    updated: datetime | None = None
    html_link: str | None = Field(default=None, alias="htmlLink")

    @classmethod
    def from_api(cls, resource: dict[str, Any]) -> ExternalEvent:
        """Parse a raw Google Calendar event resource."""
        return cls.model_validate(resource)

    @property
    def is_cancelled(self) -> bool:
        """Whether Google reports the event as cancelled."""
        return self.status == "cancelled"

    @property
    def recurring_master_id(self) -> str | None:
        """ID of the series this event belongs to, or ``None``.

        Expanded instances point at their master through
        ``recurringEventId``; a master carries its own recurrence rule.
        """
        if self.recurring_event_id:
            return self.recurring_event_id
        if self.recurrence:
            return self.id
        return None

    @property
    def is_recurring(self) -> bool:
        """Whether the event is part of a recurring series."""
        return self.recurring_master_id is not None


@dataclass
class RecurringSeries:
    """Instances of one recurring Google Calendar event.

    Attributes:
        master_id: ID of the series master event.
        summary: Representative title (from the first event seen).
        instances: Member events, sorted by start time.
        recurrence_rule: First recurrence rule found among the members.
    """

    master_id: str
    summary: str
    instances: list[ExternalEvent] = field(default_factory=list)
    recurrence_rule: str | None = None

    @property
    def total_count(self) -> int:
        """Number of instances in the current listing window."""
        return len(self.instances)

    @property
    def first_instance(self) -> ExternalEvent:
        """Earliest instance."""
        return self.instances[0]

    @property
    def last_instance(self) -> ExternalEvent:
        """Latest instance."""
        return self.instances[-1]

    def position_of(self, event_id: str) -> int | None:
        """Return the 1-based position of *event_id* in the series."""
        for index, instance in enumerate(self.instances, start=1):
            if instance.id == event_id:
                return index
        return None


# ---------------------------------------------------------------------------
# Orchestrator results
# ---------------------------------------------------------------------------


@dataclass
class SyncOutcome:
    """Result of a single-item sync action.

    Attributes:
        success: Whether the action completed.
        session: The session created or updated, when there is one.
        event: The Google event created or updated, when there is one.
        error: The exception that stopped the action, if it failed.
    """

    success: bool
    session: Session | None = None
    event: ExternalEvent | None = None
    error: Exception | None = None

    @property
    def auth_expired(self) -> bool:
        """Whether the action failed because the credential was rejected."""
        from practice_sync.calendar.exceptions import CalendarAuthError

        return isinstance(self.error, CalendarAuthError)


@dataclass
class BatchResult:
    """Aggregated result of a sequential batch action.

    Attributes:
        requested: Number of IDs the caller asked for.
        succeeded: Number of items that completed.
        failures: ``{"id": ..., "error": ...}`` entries for failed items.
        aborted: Whether the batch stopped early on an expired credential.
    """

    requested: int = 0
    succeeded: int = 0
    failures: list[dict[str, str]] = field(default_factory=list)
    aborted: bool = False

    @property
    def has_failures(self) -> bool:
        """Whether fewer items succeeded than were requested."""
        return self.succeeded < self.requested


@dataclass
class ReconcileResult:
    """Outcome of a mirrored-session reconciliation pass.

    Attributes:
        updated: Sessions overwritten with newer Google-side values.
        conflicts: Sessions whose divergence was left for conflict resolution.
        unchanged: Sessions whose date and time already matched.
        failed: Sessions whose event could not be fetched.
    """

    updated: int = 0
    conflicts: int = 0
    unchanged: int = 0
    failed: int = 0

    @property
    def total_processed(self) -> int:
        """Number of sessions the pass looked at successfully."""
        return self.updated + self.conflicts + self.unchanged
