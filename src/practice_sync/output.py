"""Console output for the practice-sync CLI.

Each ``format_*`` function returns a multi-line string for one kind of
result: the event listing, sessions, conflicts, batch and reconciliation
summaries.  :func:`print_report` writes any of them to stdout.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable

from practice_sync.calendar.event_mapper import event_local_start
from practice_sync.models.calendar import (
    BatchResult,
    ExternalEvent,
    ReconcileResult,
    RecurringSeries,
)
from practice_sync.models.conflict import SyncConflict
from practice_sync.models.session import Session

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_BANNER_WIDTH = 60
_SEPARATOR = "=" * _BANNER_WIDTH

_SEVERITY_TAGS = {"high": "HIGH", "medium": "MED", "low": "LOW"}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def format_events(
    events: Iterable[ExternalEvent],
    timezone: str,
    pending_ids: set[str] | None = None,
    series_map: dict[str, RecurringSeries] | None = None,
) -> str:
    """Render the event listing.

    Args:
        events: Events to show, in display order.
        timezone: IANA timezone used for start times.
        pending_ids: IDs still available for import; others are tagged
            ``[LINKED]``.  ``None`` tags nothing.
        series_map: Recurring series of the listing, used to show each
            instance's position in its series.
    """
    events = list(events)
    lines: list[str] = [_SEPARATOR, f"  GOOGLE CALENDAR EVENTS ({len(events)})", _SEPARATOR]

    if not events:
        lines.append("  No events in the listing window.")

    for event in events:
        tag = ""
        if pending_ids is not None and event.id not in pending_ids:
            tag = "[LINKED] "
        lines.append(f"  {tag}{_format_start(event, timezone)}  {event.summary or '(untitled)'}")
        lines.append(f"    ID: {event.id}")

        position = _series_position(event, series_map)
        if position:
            lines.append(f"    Series: {position}")
        if event.location:
            lines.append(f"    Where: {event.location}")
        if event.attendees:
            lines.append(f"    Who: {', '.join(a.email for a in event.attendees if a.email)}")

    lines.append(_SEPARATOR)
    return "\n".join(lines)


def format_sessions(sessions: Iterable[Session]) -> str:
    """Render sessions with their sync relationship."""
    sessions = list(sessions)
    lines: list[str] = [_SEPARATOR, f"  SESSIONS ({len(sessions)})", _SEPARATOR]

    if not sessions:
        lines.append("  No sessions.")

    for session in sessions:
        when = f"{session.session_date.isoformat()} {session.session_time.strftime('%H:%M')}"
        lines.append(f"  [{session.sync_type.value.upper()}] {when}  ({session.status})")
        lines.append(f"    ID: {session.id}")
        if session.google_event_id:
            lines.append(f"    Event: {session.google_event_id}")
        if session.notes:
            lines.append(f"    Notes: {session.notes}")

    lines.append(_SEPARATOR)
    return "\n".join(lines)


def format_conflicts(conflicts: Iterable[SyncConflict]) -> str:
    """Render conflicts, most severe first, with each differing field."""
    conflicts = list(conflicts)
    lines: list[str] = [_SEPARATOR, f"  CONFLICTS ({len(conflicts)})", _SEPARATOR]

    if not conflicts:
        lines.append("  No conflicts. Sessions and events agree.")

    for conflict in conflicts:
        tag = _SEVERITY_TAGS.get(conflict.severity, conflict.severity.upper())
        lines.append("")
        lines.append(f'  [{tag}] {conflict.id}  "{conflict.event.summary}"')
        for diff in conflict.differences:
            lines.append(
                f"    {diff.field}: platform={_show(diff.platform_value)} "
                f"google={_show(diff.external_value)}"
            )

    lines.append(_SEPARATOR)
    return "\n".join(lines)


def format_batch_result(label: str, result: BatchResult) -> str:
    """Render the outcome of a batch action."""
    lines = [
        f"--- {label.upper()} ---",
        f"  Requested: {result.requested}",
        f"  Succeeded: {result.succeeded}",
        f"  Failed: {len(result.failures)}",
    ]
    for failure in result.failures:
        lines.append(f"    - {failure['id']}: {failure['error']}")
    if result.aborted:
        lines.append("  Stopped early: Google Calendar access expired.")
    return "\n".join(lines)


def format_reconcile_result(result: ReconcileResult) -> str:
    """Render the outcome of a mirrored-session reconciliation pass."""
    return "\n".join(
        [
            "--- RECONCILIATION ---",
            f"  Updated from Google: {result.updated}",
            f"  Conflicts: {result.conflicts}",
            f"  Unchanged: {result.unchanged}",
            f"  Failed: {result.failed}",
        ]
    )


def print_report(text: str) -> None:
    """Write a rendered report to stdout."""
    sys.stdout.write(text + "\n")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _format_start(event: ExternalEvent, timezone: str) -> str:
    try:
        start_date, start_time = event_local_start(event, timezone)
    except ValueError:
        return "(no start)       "
    if event.start.is_all_day:
        return f"{start_date.isoformat()} all-day"
    return f"{start_date.isoformat()} {start_time.strftime('%H:%M')}"


def _series_position(
    event: ExternalEvent,
    series_map: dict[str, RecurringSeries] | None,
) -> str | None:
    if not series_map or event.recurring_master_id is None:
        return None
    series = series_map.get(event.recurring_master_id)
    if series is None:
        return None
    position = series.position_of(event.id)
    if position is None:
        return None
    return f"{position} of {series.total_count} ({series.master_id})"


def _show(value: str) -> str:
    return f'"{value}"' if value else "(empty)"
