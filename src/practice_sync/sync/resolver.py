"""Application of user decisions to detected conflicts.

:class:`ConflictResolver` turns a :class:`SyncConflict` and a resolution
into writes on the two sides:

- **keep_platform** -- push the session's values to the event.
- **keep_google** -- copy the event's values into the session.
- **merge** -- write per-field chosen values to the session, pushing them to
  the event when they differ from it.
- **dismiss** -- nothing is written.

Whenever both sides change, Google is written first: a failed push raises
before the session is touched, so both sides stay as they were.
"""

from __future__ import annotations

import logging

from practice_sync.calendar.client import GoogleCalendarClient
from practice_sync.calendar.event_mapper import (
    event_local_start,
    event_snapshot,
    map_session_to_event,
)
from practice_sync.exceptions import SyncValidationError
from practice_sync.models.calendar import Attendee, ExternalEvent, SyncOutcome
from practice_sync.models.conflict import RESOLUTIONS, MergedFields, SyncConflict
from practice_sync.models.session import Client, Session, SyncType
from practice_sync.store import ClientStore
from practice_sync.sync.detector import compare_fields
from practice_sync.sync.state import SyncStateStore

logger = logging.getLogger(__name__)


class ConflictResolver:
    """Resolves conflicts between mirrored sessions and their events.

    Args:
        calendar: Google Calendar client used for pushes.
        state: Guarded writer of session sync fields.
        clients: Client store, for event titles and fallback attendees.
        timezone: IANA timezone sessions are expressed in.
        duration_minutes: Event length used when pushing a session.
    """

    def __init__(
        self,
        calendar: GoogleCalendarClient,
        state: SyncStateStore,
        clients: ClientStore,
        timezone: str,
        duration_minutes: int = 60,
    ) -> None:
        self._calendar = calendar
        self._state = state
        self._clients = clients
        self._timezone = timezone
        self._duration_minutes = duration_minutes

    def resolve(
        self,
        conflict: SyncConflict,
        resolution: str,
        merged: MergedFields | None = None,
    ) -> SyncOutcome:
        """Apply *resolution* to *conflict*.

        Args:
            conflict: A conflict from the latest detection pass.
            resolution: ``keep_platform``, ``keep_google``, ``merge`` or
                ``dismiss``.
            merged: Chosen values; required for ``merge``.

        Returns:
            A successful :class:`SyncOutcome` carrying the session and event
            as they are after the resolution.

        Raises:
            SyncValidationError: On an unknown resolution, a ``merge`` without
                values, or a session that is no longer mirrored.
            CalendarAPIError: If the push to Google fails.
        """
        if resolution not in RESOLUTIONS:
            raise SyncValidationError(f"Unknown resolution: {resolution}")

        if resolution == "dismiss":
            logger.info("Conflict %s dismissed", conflict.id)
            return SyncOutcome(success=True, session=conflict.session, event=conflict.event)

        session = self._state.get(conflict.session_id)
        if session.sync_type is not SyncType.MIRRORED:
            raise SyncValidationError(
                f"Session {session.id} is no longer mirrored ({session.sync_type.value})"
            )

        if resolution == "keep_platform":
            outcome = self._keep_platform(session, conflict)
        elif resolution == "keep_google":
            outcome = self._keep_google(session, conflict.event)
        else:
            if merged is None:
                raise SyncValidationError("A merge needs the chosen field values")
            outcome = self._merge(session, conflict, merged)

        logger.info("Conflict %s resolved with %s", conflict.id, resolution)
        return outcome

    # ------------------------------------------------------------------
    # Resolutions
    # ------------------------------------------------------------------

    def _keep_platform(self, session: Session, conflict: SyncConflict) -> SyncOutcome:
        event = self._push(session, conflict.google_event_id)
        updated = self._state.record_sync(session.id, **event_snapshot(event))
        return SyncOutcome(success=True, session=updated, event=event)

    def _keep_google(self, session: Session, event: ExternalEvent) -> SyncOutcome:
        try:
            event_date, event_time = event_local_start(event, self._timezone)
        except ValueError as exc:
            raise SyncValidationError(str(exc)) from exc

        updated = self._state.record_sync(
            session.id,
            session_date=event_date,
            session_time=event_time,
            notes=event.description or "",
            **event_snapshot(event),
        )
        return SyncOutcome(success=True, session=updated, event=event)

    def _merge(self, session: Session, conflict: SyncConflict, merged: MergedFields) -> SyncOutcome:
        candidate = session.model_copy(
            update={
                "session_date": merged.session_date or session.session_date,
                "session_time": (merged.session_time or session.session_time).replace(
                    second=0, microsecond=0
                ),
                "notes": merged.description if merged.description is not None else session.notes,
                "google_location": (
                    merged.location if merged.location is not None else session.google_location
                )
                or None,
                "google_attendees": _merge_attendees(
                    merged.attendees, session.google_attendees, conflict.event.attendees
                ),
            }
        )

        event = conflict.event
        if compare_fields(candidate, event, self._timezone):
            event = self._push(candidate, conflict.google_event_id)
            snapshot = event_snapshot(event)
        else:
            snapshot = {
                "google_location": candidate.google_location,
                "google_attendees": candidate.google_attendees,
            }

        updated = self._state.record_sync(
            session.id,
            session_date=candidate.session_date,
            session_time=candidate.session_time,
            notes=candidate.notes,
            **snapshot,
        )
        return SyncOutcome(success=True, session=updated, event=event)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _push(self, session: Session, event_id: str) -> ExternalEvent:
        body = map_session_to_event(
            session,
            self._client_for(session),
            self._timezone,
            self._duration_minutes,
        )
        return self._calendar.update_event(event_id, body)

    def _client_for(self, session: Session) -> Client | None:
        if not session.client_id:
            return None
        return self._clients.get_client(session.client_id)


def _merge_attendees(
    chosen: list[str] | None,
    platform: list[Attendee],
    external: list[Attendee],
) -> list[Attendee]:
    """Build the attendee list for a merge from the chosen emails.

    Display names are kept from whichever side already knew the attendee.
    """
    if chosen is None:
        return list(platform)

    known: dict[str, Attendee] = {}
    for attendee in [*platform, *external]:
        if not attendee.email:
            continue
        key = attendee.email.strip().lower()
        if key not in known or attendee.display_name:
            known[key] = attendee

    attendees: list[Attendee] = []
    seen: set[str] = set()
    for email in chosen:
        key = email.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        attendees.append(known.get(key) or Attendee(email=email.strip()))
    return attendees
