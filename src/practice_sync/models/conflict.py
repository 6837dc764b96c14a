"""Models for divergence between mirrored sessions and their events.

- :class:`Difference` -- one field whose normalized values differ.
- :class:`SyncConflict` -- all differences for one mirrored session, with a
  severity.  Derived on every detection pass and never stored.
- :class:`MergedFields` -- per-field values chosen by the user for a
  ``merge`` resolution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Literal

from pydantic import BaseModel

from practice_sync.models.calendar import ExternalEvent
from practice_sync.models.session import Session

ConflictField = Literal["date", "time", "description", "location", "attendees"]
Severity = Literal["high", "medium", "low"]
ConflictResolution = Literal["keep_platform", "keep_google", "merge", "dismiss"]

RESOLUTIONS: tuple[str, ...] = ("keep_platform", "keep_google", "merge", "dismiss")

_SEVERITY_ORDER: dict[str, int] = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class Difference:
    """A single diverging field.

    Attributes:
        field: Which field differs.
        platform_value: Normalized value on the session.
        external_value: Normalized value on the Google event.
    """

    field: ConflictField
    platform_value: str
    external_value: str


@dataclass
class SyncConflict:
    """Unresolved divergence between a mirrored session and its event.

    Attributes:
        session: The session snapshot the differences were computed from.
        event: The event snapshot the differences were computed from.
        differences: Diverging fields, in detection order.
        severity: ``"high"``, ``"medium"`` or ``"low"``.
        detected_at: When the detection pass ran.
    """

    session: Session
    event: ExternalEvent
    differences: list[Difference]
    severity: Severity
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def id(self) -> str:
        """Conflict identifier; one conflict per session at a time."""
        return conflict_id_for(self.session.id)

    @property
    def session_id(self) -> str:
        return self.session.id

    @property
    def google_event_id(self) -> str:
        return self.event.id

    @property
    def fields(self) -> set[str]:
        """Names of the diverging fields."""
        return {diff.field for diff in self.differences}

    def sort_key(self) -> tuple[int, str]:
        """Order conflicts with the most severe first."""
        return (_SEVERITY_ORDER[self.severity], self.session.id)


def conflict_id_for(session_id: str) -> str:
    """Return the conflict ID used for *session_id*."""
    return f"conflict-{session_id}"


class MergedFields(BaseModel):
    """Values chosen field by field for a ``merge`` resolution.

    Any field left as ``None`` keeps the session's current value.
    ``session_date``/``session_time`` stand for the ``date``/``time``
    conflict fields.
    ``attendees`` holds email addresses.
    """

    session_date: date | None = None
    session_time: time | None = None
    description: str | None = None
    location: str | None = None
    attendees: list[str] | None = None
