"""Map between sessions and Google Calendar event bodies.

Outgoing: :func:`map_session_to_event` converts a :class:`Session` into a
``dict`` payload for ``events().insert()`` and ``events().update()``:

- **summary** ``"Session - <client name>"``.
- **description** from the session notes.
- **location** from the session's location snapshot (when set).
- **start / end** as local ISO 8601 datetimes with the configured IANA
  timezone; the end is ``start + duration_minutes``.
- **attendees** from the attendee snapshot, or else the client's email.

Incoming: :func:`event_local_start` reduces an event's start to the local
``(date, time)`` pair a session stores.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from practice_sync.models.calendar import Attendee, ExternalEvent
from practice_sync.models.session import Client, Session

logger = logging.getLogger(__name__)

# All-day events have no start time; sessions created from them start here.
ALL_DAY_START = time(9, 0)

_DEFAULT_CLIENT_LABEL = "Client"


def map_session_to_event(
    session: Session,
    client: Client | None,
    timezone: str,
    duration_minutes: int = 60,
) -> dict:
    """Convert a session into a Google Calendar API event body.

    Args:
        session: The session to publish.
        client: The session's client, used for the title and as the
            fallback attendee.  ``None`` when unknown.
        timezone: IANA timezone the session's date and time are expressed in.
        duration_minutes: Event length.

    Returns:
        A ``dict`` conforming to the Google Calendar Event resource schema.
    """
    start = session_start(session)
    end = start + timedelta(minutes=duration_minutes)
    client_name = client.name if client is not None and client.name else _DEFAULT_CLIENT_LABEL

    body: dict = {
        "summary": f"Session - {client_name}",
        "description": session.notes or "",
        "start": _format_datetime(start, timezone),
        "end": _format_datetime(end, timezone),
    }

    if session.google_location:
        body["location"] = session.google_location

    attendees = _build_attendees(session.google_attendees, client)
    if attendees:
        body["attendees"] = attendees

    logger.debug(
        "Mapped session %s (%s) to Google Calendar body",
        session.id or "<new>",
        start.isoformat(),
    )

    return body


def session_start(session: Session) -> datetime:
    """Return the session's naive local start datetime."""
    return datetime.combine(session.session_date, session.session_time)


def event_local_start(event: ExternalEvent, timezone: str) -> tuple[date, time]:
    """Return the local ``(date, time)`` at which *event* starts.

    Instants carrying an offset are converted to *timezone*; naive instants
    are taken as already local.  All-day events start at
    :data:`ALL_DAY_START`.

    Raises:
        ValueError: If the event has neither a ``dateTime`` nor a ``date``.
    """
    start = event.start
    if start.date_time is not None:
        moment = start.date_time
        if moment.tzinfo is not None:
            moment = moment.astimezone(ZoneInfo(timezone))
        return moment.date(), moment.time().replace(second=0, microsecond=0, tzinfo=None)
    if start.day is not None:
        return start.day, ALL_DAY_START
    raise ValueError(f"Event {event.id} has no start date")


def attendee_emails(attendees: Iterable[Attendee]) -> list[str]:
    """Return the sorted, lower-cased, de-duplicated attendee emails."""
    return sorted({a.email.strip().lower() for a in attendees if a.email and a.email.strip()})


def event_snapshot(event: ExternalEvent) -> dict:
    """Session fields that record how *event* currently looks on Google."""
    snapshot: dict = {
        "google_attendees": list(event.attendees),
        "google_location": event.location or None,
    }
    if event.html_link:
        snapshot["google_html_link"] = event.html_link
    return snapshot


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _format_datetime(dt: datetime, timezone: str) -> dict:
    """Format a naive local datetime for the Google Calendar API."""
    return {
        "dateTime": dt.replace(tzinfo=None).isoformat(),
        "timeZone": timezone,
    }


def _build_attendees(snapshot: list[Attendee], client: Client | None) -> list[dict]:
    """Build the attendee entries for an outgoing event body.

    The snapshot taken from Google wins; a session that never had one
    invites its client, when the client has an email.
    """
    if snapshot:
        entries: list[dict] = []
        for attendee in snapshot:
            if not attendee.email:
                continue
            entry: dict = {"email": attendee.email}
            if attendee.display_name:
                entry["displayName"] = attendee.display_name
            entries.append(entry)
        return entries

    if client is not None and client.email:
        return [{"email": client.email}]
    return []
