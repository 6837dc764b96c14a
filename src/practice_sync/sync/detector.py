"""Field-level divergence detection between mirrored sessions and events.

Detection is pure: it works on the session list and the event listing
already loaded in memory and never calls Google.  Values are normalized
before comparison so that formatting noise does not surface as conflicts:

- **date** -- ``YYYY-MM-DD`` in the configured timezone.
- **time** -- ``HH:MM``; all-day events count as 09:00.
- **description / location** -- trimmed, ``None`` treated as empty.
- **attendees** -- sorted, lower-cased emails joined with ``", "``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from practice_sync.calendar.event_mapper import attendee_emails, event_local_start
from practice_sync.models.calendar import ExternalEvent
from practice_sync.models.conflict import Difference, Severity, SyncConflict
from practice_sync.models.session import Session, SyncType

logger = logging.getLogger(__name__)

_DATE_TIME_FIELDS = frozenset({"date", "time"})
_TEXT_FIELDS = frozenset({"description", "location"})


def classify_severity(differences: Iterable[Difference]) -> Severity:
    """Return the severity of a set of differences.

    Any date or time difference is ``high``; otherwise a description or
    location difference is ``medium``; attendee-only differences are
    ``low``.
    """
    fields = {diff.field for diff in differences}
    if fields & _DATE_TIME_FIELDS:
        return "high"
    if fields & _TEXT_FIELDS:
        return "medium"
    return "low"


def compare_fields(session: Session, event: ExternalEvent, timezone_name: str) -> list[Difference]:
    """Return the normalized differences between *session* and *event*."""
    differences: list[Difference] = []

    try:
        event_date, event_time = event_local_start(event, timezone_name)
    except ValueError:
        logger.debug("Event %s has no start; skipping date/time comparison", event.id)
    else:
        _compare(differences, "date", session.session_date.isoformat(), event_date.isoformat())
        _compare(
            differences,
            "time",
            session.session_time.strftime("%H:%M"),
            event_time.strftime("%H:%M"),
        )

    _compare(differences, "description", _clean(session.notes), _clean(event.description))
    _compare(differences, "location", _clean(session.google_location), _clean(event.location))
    _compare(
        differences,
        "attendees",
        ", ".join(attendee_emails(session.google_attendees)),
        ", ".join(attendee_emails(event.attendees)),
    )
    return differences


def detect_conflict(
    session: Session,
    event: ExternalEvent,
    timezone_name: str,
    detected_at: datetime | None = None,
) -> SyncConflict | None:
    """Compare one mirrored session against its event.

    Args:
        session: The platform session.
        event: The Google event the session is linked to.
        timezone_name: IANA timezone sessions are expressed in.
        detected_at: Detection timestamp (defaults to now, UTC).

    Returns:
        A :class:`SyncConflict`, or ``None`` if the session is not mirrored,
        is linked to a different event, or nothing differs.
    """
    if session.sync_type is not SyncType.MIRRORED:
        return None
    if session.google_event_id != event.id:
        return None

    differences = compare_fields(session, event, timezone_name)
    if not differences:
        return None

    return SyncConflict(
        session=session,
        event=event,
        differences=differences,
        severity=classify_severity(differences),
        detected_at=detected_at or datetime.now(timezone.utc),
    )


def detect_all_conflicts(
    sessions: Iterable[Session],
    events: Iterable[ExternalEvent],
    timezone_name: str,
    clock: Callable[[], datetime] | None = None,
) -> list[SyncConflict]:
    """Detect conflicts for every mirrored session whose event is loaded.

    Sessions whose event is outside the listing are skipped; they are not
    fetched.  Conflicts are returned most severe first.
    """
    by_id = {event.id: event for event in events}
    detected_at = clock() if clock is not None else datetime.now(timezone.utc)

    conflicts: list[SyncConflict] = []
    for session in sessions:
        if session.sync_type is not SyncType.MIRRORED or not session.google_event_id:
            continue
        event = by_id.get(session.google_event_id)
        if event is None:
            continue
        conflict = detect_conflict(session, event, timezone_name, detected_at)
        if conflict is not None:
            conflicts.append(conflict)

    conflicts.sort(key=lambda c: c.sort_key())
    logger.info("Detected %d conflict(s)", len(conflicts))
    return conflicts


def _compare(differences: list[Difference], field: str, platform: str, external: str) -> None:
    if platform != external:
        differences.append(Difference(field, platform, external))  # type: ignore[arg-type]


def _clean(value: str | None) -> str:
    return (value or "").strip()
