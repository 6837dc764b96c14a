"""Sync orchestrator: the facade the CLI (or any UI) drives.

:class:`SyncOrchestrator` coordinates the Google Calendar client, the
session and client stores, the sync-state guard, conflict detection and
resolution, and user notifications.  It also keeps the in-memory state a
calling UI needs: the current event listing, the session list, the detected
conflicts and the selected event/session IDs.

Operations fall into five groups:

- **Loading** -- :meth:`load_events`, :meth:`load_sessions`,
  :meth:`load_all`, plus derived views such as :attr:`pending_events`.
- **Single-item actions** -- import, mirror, send, ignore, mark attendees
  as clients, push one session, import a recurring series.  Each returns a
  :class:`~practice_sync.models.calendar.SyncOutcome`; failures are
  notified and logged, never raised.
- **Batches** -- sequential; one item's failure does not stop the rest,
  except an expired credential, which abandons the remainder.
- **Sweeps** -- cancellation detection, mirrored reconciliation and pushing
  mirrored changes, run only when asked.
- **Conflicts** -- detection over the loaded listing and resolution through
  :class:`~practice_sync.sync.resolver.ConflictResolver`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime, time, timezone
from typing import Any

from practice_sync.calendar.auth import CredentialProvider
from practice_sync.calendar.client import GoogleCalendarClient
from practice_sync.calendar.event_mapper import (
    event_local_start,
    event_snapshot,
    map_session_to_event,
)
from practice_sync.calendar.exceptions import (
    CalendarAPIError,
    CalendarAuthError,
    CalendarNotFoundError,
)
from practice_sync.calendar.series import get_series_instances, group_recurring_events
from practice_sync.config import Settings
from practice_sync.exceptions import StoreError, SyncError, SyncValidationError
from practice_sync.models.calendar import (
    BatchResult,
    ExternalEvent,
    ReconcileResult,
    RecurringSeries,
    SyncOutcome,
)
from practice_sync.models.conflict import MergedFields, SyncConflict
from practice_sync.models.session import Client, Session, SyncType
from practice_sync.notify import LoggingNotifier, NotificationSink
from practice_sync.store import ClientStore, IgnoreList, SessionStore
from practice_sync.sync.detector import detect_all_conflicts
from practice_sync.sync.resolver import ConflictResolver
from practice_sync.sync.state import SyncStateStore, is_allowed, utc_now

logger = logging.getLogger(__name__)

# Failures a single action reports instead of raising.
_ACTION_ERRORS = (CalendarAPIError, SyncError)

_LINKED_TYPES = (SyncType.IMPORTED, SyncType.MIRRORED, SyncType.SENT)

_BULK_RESOLUTIONS = ("keep_platform", "keep_google")

_UNTITLED_EVENT = "Google Calendar event"


class SyncOrchestrator:
    """Coordinates every sync action for one practice owner.

    Args:
        calendar: Google Calendar client.
        sessions: The application's session store.
        clients: The application's client store.
        credentials: Owner of the Google access token.
        settings: Timezone, event duration and default session value; the
            owner is ``settings.user_id``.
        ignore_list: Device-local ignored event IDs (in-memory if omitted).
        notifier: Sink for user-visible outcomes (logged if omitted).
        clock: Returns the current time; used for sync stamps.
    """

    def __init__(
        self,
        calendar: GoogleCalendarClient,
        sessions: SessionStore,
        clients: ClientStore,
        credentials: CredentialProvider,
        settings: Settings,
        *,
        ignore_list: IgnoreList | None = None,
        notifier: NotificationSink | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._calendar = calendar
        self._clients = clients
        self._credentials = credentials
        self._settings = settings
        self._ignore_list = ignore_list if ignore_list is not None else IgnoreList()
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock or utc_now

        self._state = SyncStateStore(sessions, self._clock)
        self._resolver = ConflictResolver(
            calendar,
            self._state,
            clients,
            settings.timezone,
            settings.session_duration_minutes,
        )

        self._events: list[ExternalEvent] = []
        self._sessions: list[Session] = []
        self._conflicts: list[SyncConflict] = []
        self._selected_events: set[str] = set()
        self._selected_sessions: set[str] = set()

    # ------------------------------------------------------------------
    # Loading and derived views
    # ------------------------------------------------------------------

    @property
    def timezone(self) -> str:
        """IANA timezone sessions are expressed in."""
        return self._settings.timezone

    @property
    def is_connected(self) -> bool:
        """Whether an access token is currently stored."""
        return bool(self._credentials.get_token())

    @property
    def events(self) -> list[ExternalEvent]:
        """The event listing from the last :meth:`load_events`."""
        return list(self._events)

    @property
    def sessions(self) -> list[Session]:
        """The sessions from the last :meth:`load_sessions`."""
        return list(self._sessions)

    def load_events(
        self,
        time_min: datetime | None = None,
        time_max: datetime | None = None,
    ) -> list[ExternalEvent]:
        """Fetch the event listing (default window: today through lookahead).

        Raises:
            CalendarAPIError: If the listing cannot be fetched.  The previous
                listing is kept.
        """
        self._events = self._calendar.list_events(time_min, time_max)
        return self.events

    def load_sessions(self) -> list[Session]:
        """Re-read every session of the owner from the store."""
        self._sessions = self._state.sessions()
        return self.sessions

    def load_all(self) -> None:
        """Load sessions and events, then detect conflicts if any are mirrored.

        Raises:
            CalendarAPIError: If the event listing cannot be fetched.
        """
        self.load_sessions()
        self.load_events()
        if self.mirrored_sessions:
            self.detect_conflicts()

    @property
    def pending_events(self) -> list[ExternalEvent]:
        """Listed events that are neither ignored nor linked to a session."""
        linked = {s.google_event_id for s in self._sessions if s.google_event_id}
        return [
            event
            for event in self._events
            if event.id not in self._ignore_list and event.id not in linked
        ]

    @property
    def recurring_series(self) -> dict[str, RecurringSeries]:
        """Recurring series in the current listing, keyed by master ID."""
        return group_recurring_events(self._events)

    @property
    def local_sessions(self) -> list[Session]:
        return [s for s in self._sessions if s.sync_type is SyncType.NONE]

    @property
    def mirrored_sessions(self) -> list[Session]:
        return [s for s in self._sessions if s.sync_type is SyncType.MIRRORED]

    def find_event(self, event_id: str) -> ExternalEvent | None:
        """Return the listed event with *event_id*, if it is loaded."""
        return next((e for e in self._events if e.id == event_id), None)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self) -> SyncOutcome:
        """Obtain a token through the provider's interactive flow, then load."""
        try:
            self._credentials.connect()
            self._calendar.reset()
            self.load_all()
        except _ACTION_ERRORS as exc:
            return self._failed("Could not connect to Google Calendar", exc)

        self._notifier.notify("Connected", "Google Calendar connected.", "success")
        return SyncOutcome(success=True)

    def disconnect(self) -> int:
        """Unlink every synced session and forget the Google connection.

        Imported, mirrored and sent sessions go back to being local
        sessions with their data intact; cancelled sessions stay cancelled.
        The token and the ignore list are cleared and the in-memory listing
        and selections reset.

        Returns:
            Number of sessions unlinked.
        """
        unlinked = 0
        for session in self._state.sessions(*_LINKED_TYPES):
            try:
                self._state.unlink(session.id)
            except SyncError as exc:
                logger.error("Could not unlink session %s: %s", session.id, exc)
                continue
            unlinked += 1

        self._credentials.invalidate()
        self._calendar.reset()
        self._ignore_list.clear()
        self._events = []
        self._conflicts = []
        self.clear_selections()
        self.load_sessions()

        logger.info("Disconnected from Google Calendar; %d session(s) unlinked", unlinked)
        self._notifier.notify(
            "Disconnected",
            f"Google Calendar disconnected. {unlinked} session(s) kept as local sessions.",
            "info",
        )
        return unlinked

    # ------------------------------------------------------------------
    # Single-item actions
    # ------------------------------------------------------------------

    def import_event(self, event: ExternalEvent, editable: bool = False) -> SyncOutcome:
        """Create a session from *event*.

        Args:
            event: A listed Google event.
            editable: ``False`` creates a read-only ``imported`` session
                linked to the event; ``True`` creates an independent local
                copy that sync never touches again.
        """
        try:
            session = self._import_event(event, editable)
        except _ACTION_ERRORS as exc:
            return self._failed("Could not import event", exc)

        if editable:
            self._notifier.notify(
                "Copy created", f'"{event.summary}" was copied as an editable session.', "success"
            )
        else:
            self._notifier.notify(
                "Event imported", f'"{event.summary}" was imported (read-only).', "success"
            )
        self.load_sessions()
        return SyncOutcome(success=True, session=session, event=event)

    def mirror_event(self, event: ExternalEvent) -> SyncOutcome:
        """Create a ``mirrored`` session that follows *event* both ways."""
        try:
            start_date, start_time = self._event_start(event)
            client = self._resolve_client(event, "Mirrored from Google Calendar")
            session = self._state.create(
                self._new_session(
                    client,
                    start_date,
                    start_time,
                    event.description,
                    **self._link_fields(event, SyncType.MIRRORED),
                )
            )
        except _ACTION_ERRORS as exc:
            return self._failed("Could not mirror event", exc)

        self._notifier.notify(
            "Mirroring enabled",
            f'"{event.summary}" will be synchronized both ways.',
            "success",
        )
        self.load_sessions()
        return SyncOutcome(success=True, session=session, event=event)

    def mirror_session(self, session_id: str) -> SyncOutcome:
        """Mirror a session, creating its Google event if it has none."""
        try:
            session, event = self._mirror_session(session_id)
        except _ACTION_ERRORS as exc:
            return self._failed("Could not enable mirroring", exc)

        self._notifier.notify(
            "Mirroring enabled",
            "The session will now be synchronized both ways with Google Calendar.",
            "success",
        )
        self.load_sessions()
        return SyncOutcome(success=True, session=session, event=event)

    def send_session(self, session_id: str) -> SyncOutcome:
        """Publish a local session to Google Calendar (one-way)."""
        try:
            session, event = self._send_session(session_id)
        except _ACTION_ERRORS as exc:
            return self._failed("Could not send session", exc)

        self._notifier.notify(
            "Sent to Google", "The session was published to Google Calendar.", "success"
        )
        self.load_sessions()
        return SyncOutcome(success=True, session=session, event=event)

    def ignore_event(self, event_id: str) -> SyncOutcome:
        """Hide *event_id* from the pending listing on this device."""
        self._ignore_event(event_id)
        self._notifier.notify("Event ignored", "The event will no longer be listed.", "info")
        return SyncOutcome(success=True, event=self.find_event(event_id))

    def mark_attendees_as_clients(self, event: ExternalEvent) -> int:
        """Create a client for every attendee of *event* not yet known.

        Attendees whose insert fails are skipped.

        Returns:
            Number of clients created.
        """
        attendees = [a for a in event.attendees if a.email and a.email.strip()]
        if not attendees:
            self._notifier.notify(
                "No attendees", "This event has no attendees to add as clients.", "warning"
            )
            return 0

        created = 0
        for attendee in attendees:
            email = attendee.email.strip()
            if self._clients.find_client_by_email(email) is not None:
                continue
            name = attendee.display_name or email.split("@")[0]
            try:
                self._clients.insert_client(
                    Client(
                        user_id=self._settings.user_id,
                        name=name,
                        email=email,
                        notes=f"Added from event: {event.summary}",
                    )
                )
            except StoreError as exc:
                logger.warning("Skipping attendee %s: %s", email, exc)
                continue
            created += 1

        message = (
            f"{created} new client(s) added."
            if created
            else "Every attendee is already a client."
        )
        self._notifier.notify("Clients added", message, "success")
        return created

    def update_external_event(self, session_id: str) -> SyncOutcome:
        """Push one mirrored session's fields to its Google event."""
        try:
            session, event = self._push_session(self._state.get(session_id))
        except _ACTION_ERRORS as exc:
            return self._failed("Could not update Google event", exc)

        self.load_sessions()
        return SyncOutcome(success=True, session=session, event=event)

    def import_series(self, event: ExternalEvent) -> BatchResult:
        """Import every listed instance of *event*'s recurring series.

        Instances are always read-only imports.  All of them share one client and carry the series master ID as
        ``google_recurrence_id``.  A series with a single listed instance is
        imported like a plain event.
        """
        instances = get_series_instances(event, self.recurring_series)
        if len(instances) <= 1:
            outcome = self.import_event(event)
            return _single_result(event.id, outcome)

        result = BatchResult(requested=len(instances))
        master_id = event.recurring_master_id
        try:
            client = self._resolve_client(
                instances[0], "Imported from Google Calendar (recurring series)", event.summary
            )
        except _ACTION_ERRORS as exc:
            self._failed("Could not import series", exc)
            result.failures = [{"id": i.id, "error": str(exc)} for i in instances]
            return result

        for instance in instances:
            try:
                start_date, start_time = self._event_start(instance)
                links = self._link_fields(instance, SyncType.IMPORTED, recurrence_id=master_id)
                self._state.create(
                    self._new_session(client, start_date, start_time, instance.description, **links)
                )
            except SyncError as exc:
                logger.warning("Skipping series instance %s: %s", instance.id, exc)
                result.failures.append({"id": instance.id, "error": str(exc)})
                continue
            result.succeeded += 1

        self._notifier.notify(
            "Series imported",
            f'{result.succeeded} of {result.requested} instance(s) of "{event.summary}" imported.',
            "success" if not result.has_failures else "warning",
        )
        self.load_sessions()
        return result

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def batch_import_events(self, event_ids: Iterable[str], editable: bool = False) -> BatchResult:
        """Import each listed event in *event_ids*, one after the other."""

        def import_one(event_id: str) -> None:
            event = self.find_event(event_id)
            if event is None:
                raise SyncValidationError(f"Event {event_id} is not in the current listing")
            self._import_event(event, editable)

        result = self._run_batch(list(event_ids), import_one)
        self._notify_batch("Import", result)
        self.load_sessions()
        return result

    def batch_send_sessions(self, session_ids: Iterable[str]) -> BatchResult:
        """Send each session in *session_ids*.

        Sessions that already have a Google event are rejected and reported
        as failures.
        """
        result = self._run_batch(list(session_ids), self._send_session)
        self._notify_batch("Send", result)
        self.load_sessions()
        return result

    def batch_ignore_events(self, event_ids: Iterable[str]) -> BatchResult:
        """Ignore each event in *event_ids* and clear the event selection."""
        result = self._run_batch(list(event_ids), self._ignore_event)
        self._selected_events.clear()
        self._notify_batch("Ignore", result)
        return result

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    def check_cancelled_events(self) -> int:
        """Mark sessions whose Google event was deleted or cancelled.

        Only ``sync_type`` and ``google_last_synced`` change.

        Returns:
            Number of sessions moved to ``cancelled``.
        """
        cancelled = 0
        for session in self._state.sessions(*_LINKED_TYPES):
            if not session.google_event_id:
                continue
            try:
                event = self._calendar.get_event(session.google_event_id)
            except CalendarNotFoundError:
                gone = True
            except CalendarAuthError as exc:
                self._report_error("Cancellation check stopped", exc)
                break
            except CalendarAPIError as exc:
                logger.warning(
                    "Could not check event %s of session %s: %s",
                    session.google_event_id,
                    session.id,
                    exc,
                )
                continue
            else:
                gone = event.is_cancelled

            if not gone:
                continue
            try:
                self._state.transition(session.id, SyncType.CANCELLED)
            except SyncError as exc:
                logger.warning("Could not cancel session %s: %s", session.id, exc)
                continue
            cancelled += 1

        if cancelled:
            self._notifier.notify(
                "Cancelled events detected",
                f"{cancelled} event(s) were cancelled in Google Calendar.",
                "warning",
            )
        self.load_sessions()
        return cancelled

    def sync_mirrored_sessions(self) -> ReconcileResult:
        """Pull newer Google-side date/time changes into mirrored sessions.

        For each mirrored session, the event is fetched.  When its date or
        time differs and the event was modified after the session was last
        synced, the event's date, time, description and location are copied
        into the session.  When it differs but the event is not newer, the
        divergence is counted as a conflict and left untouched.  When it
        does not differ, only the sync stamp is refreshed.

        Events that cannot be fetched, including deleted ones, are counted
        as failed; deletions are picked up by :meth:`check_cancelled_events`.
        """
        result = ReconcileResult()
        for session in self._state.sessions(SyncType.MIRRORED):
            if not session.google_event_id:
                continue
            try:
                event = self._calendar.get_event(session.google_event_id)
                start_date, start_time = self._event_start(event)
            except CalendarAuthError as exc:
                self._report_error("Synchronization stopped", exc)
                result.failed += 1
                break
            except _ACTION_ERRORS as exc:
                logger.warning("Could not reconcile session %s: %s", session.id, exc)
                result.failed += 1
                continue

            self._replace_event(event)
            diverged = start_date != session.session_date or start_time != session.session_time
            try:
                if not diverged:
                    self._state.record_sync(session.id)
                    result.unchanged += 1
                elif _is_newer(event.updated, session.google_last_synced):
                    self._state.record_sync(
                        session.id,
                        session_date=start_date,
                        session_time=start_time,
                        notes=event.description or session.notes,
                        google_location=event.location or None,
                    )
                    result.updated += 1
                    logger.info("Session %s updated from event %s", session.id, event.id)
                else:
                    result.conflicts += 1
                    logger.info("Session %s diverges from event %s", session.id, event.id)
            except SyncError as exc:
                logger.warning("Could not record sync of session %s: %s", session.id, exc)
                result.failed += 1

        if result.updated or result.conflicts:
            message = f"{result.updated} session(s) updated"
            if result.conflicts:
                message += f", {result.conflicts} conflict(s) detected"
            self._notifier.notify("Synchronization complete", f"{message}.", "success")
        self.load_sessions()
        return result

    def push_mirrored_changes(self) -> int:
        """Push every mirrored session to its Google event.

        Returns:
            Number of events updated.
        """
        pushed = 0
        for session in self._state.sessions(SyncType.MIRRORED):
            if not session.google_event_id:
                continue
            try:
                self._push_session(session)
            except CalendarAuthError as exc:
                self._report_error("Push stopped", exc)
                break
            except _ACTION_ERRORS as exc:
                logger.warning("Could not push session %s: %s", session.id, exc)
                continue
            pushed += 1

        if pushed:
            self._notifier.notify(
                "Changes sent", f"{pushed} event(s) updated in Google Calendar.", "success"
            )
        self.load_sessions()
        return pushed

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selected_events(self) -> set[str]:
        return set(self._selected_events)

    @property
    def selected_sessions(self) -> set[str]:
        return set(self._selected_sessions)

    def toggle_event_selection(self, event_id: str) -> bool:
        """Toggle *event_id*; returns whether it is now selected."""
        return _toggle(self._selected_events, event_id)

    def toggle_session_selection(self, session_id: str) -> bool:
        """Toggle *session_id*; returns whether it is now selected."""
        return _toggle(self._selected_sessions, session_id)

    def select_all_events(self) -> None:
        """Select every pending event."""
        self._selected_events = {e.id for e in self.pending_events}

    def select_all_sessions(self) -> None:
        """Select every local session."""
        self._selected_sessions = {s.id for s in self.local_sessions}

    def clear_selections(self) -> None:
        self._selected_events.clear()
        self._selected_sessions.clear()

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------

    @property
    def conflicts(self) -> list[SyncConflict]:
        """Conflicts from the last detection pass, minus resolved ones."""
        return list(self._conflicts)

    @property
    def conflict_stats(self) -> dict[str, int]:
        """Conflict counts in total and per severity."""
        stats = {"total": len(self._conflicts), "high": 0, "medium": 0, "low": 0}
        for conflict in self._conflicts:
            stats[conflict.severity] += 1
        return stats

    def detect_conflicts(self) -> list[SyncConflict]:
        """Recompute conflicts from the loaded sessions and listing."""
        self._conflicts = detect_all_conflicts(
            self.mirrored_sessions,
            self._events,
            self._settings.timezone,
            clock=self._clock,
        )
        if self._conflicts:
            high = self.conflict_stats["high"]
            message = (
                f"{high} high-priority conflict(s) need attention."
                if high
                else "Review the conflicts to keep your data in sync."
            )
            self._notifier.notify(
                f"{len(self._conflicts)} conflict(s) detected",
                message,
                "warning" if high else "info",
            )
        return self.conflicts

    def resolve_conflict(
        self,
        conflict_id: str,
        resolution: str,
        merged: MergedFields | None = None,
    ) -> bool:
        """Resolve one detected conflict.

        Args:
            conflict_id: ID from :attr:`conflicts`.
            resolution: ``keep_platform``, ``keep_google``, ``merge`` or
                ``dismiss``.
            merged: Chosen values, required for ``merge``.

        Returns:
            ``True`` if the conflict was resolved and removed from the list.
        """
        conflict = self._find_conflict(conflict_id)
        if conflict is None:
            self._notifier.notify("Conflict not found", f"No conflict {conflict_id}.", "warning")
            return False

        try:
            self._resolve(conflict, resolution, merged)
        except _ACTION_ERRORS as exc:
            self._report_error("Could not resolve conflict", exc)
            return False

        message = (
            "The conflict was dismissed."
            if resolution == "dismiss"
            else "The data was synchronized."
        )
        self._notifier.notify("Conflict resolved", message, "success")
        self.load_sessions()
        return True

    def resolve_all_conflicts(self, resolution: str) -> int:
        """Apply ``keep_platform`` or ``keep_google`` to every conflict.

        Returns:
            Number of conflicts resolved.

        Raises:
            SyncValidationError: For any other resolution; ``merge`` needs
                per-field input and is not available in bulk.
        """
        if resolution not in _BULK_RESOLUTIONS:
            raise SyncValidationError(f"Resolution {resolution!r} cannot be applied in bulk")

        resolved = 0
        for conflict in list(self._conflicts):
            try:
                self._resolve(conflict, resolution, None)
            except CalendarAuthError as exc:
                self._report_error("Resolution stopped", exc)
                break
            except _ACTION_ERRORS as exc:
                logger.warning("Could not resolve %s: %s", conflict.id, exc)
                continue
            resolved += 1

        if resolved:
            self._notifier.notify(
                "Conflicts resolved", f"{resolved} conflict(s) resolved.", "success"
            )
        self.load_sessions()
        return resolved

    def dismiss_conflict(self, conflict_id: str) -> bool:
        """Drop a conflict until the next detection pass."""
        return self.resolve_conflict(conflict_id, "dismiss")

    # ------------------------------------------------------------------
    # Action bodies (raise on failure)
    # ------------------------------------------------------------------

    def _import_event(self, event: ExternalEvent, editable: bool) -> Session:
        start_date, start_time = self._event_start(event)
        origin = "Created from a Google Calendar event" if editable else "Imported from Google Calendar"
        client = self._resolve_client(event, origin)
        links = {} if editable else self._link_fields(event, SyncType.IMPORTED)
        return self._state.create(
            self._new_session(client, start_date, start_time, event.description, **links)
        )

    def _mirror_session(self, session_id: str) -> tuple[Session, ExternalEvent | None]:
        session = self._state.get(session_id)
        if session.sync_type is SyncType.MIRRORED:
            raise SyncValidationError(f"Session {session_id} is already mirrored")
        if not is_allowed(session.sync_type, SyncType.MIRRORED):
            raise SyncValidationError(
                f"Session {session_id} cannot be mirrored ({session.sync_type.value})"
            )

        if session.google_event_id:
            return self._state.transition(session_id, SyncType.MIRRORED), None

        event = self._calendar.create_event(self._event_body(session))
        updated = self._state.transition(
            session_id,
            SyncType.MIRRORED,
            google_event_id=event.id,
            **event_snapshot(event),
        )
        self._events.append(event)
        return updated, event

    def _send_session(self, session_id: str) -> tuple[Session, ExternalEvent]:
        session = self._state.get(session_id)
        if session.google_event_id:
            raise SyncValidationError(
                f"Session {session_id} is already synchronized with Google Calendar"
            )
        if not is_allowed(session.sync_type, SyncType.SENT):
            raise SyncValidationError(
                f"Session {session_id} cannot be sent ({session.sync_type.value})"
            )

        event = self._calendar.create_event(self._event_body(session))
        updated = self._state.transition(
            session_id,
            SyncType.SENT,
            google_event_id=event.id,
            **event_snapshot(event),
        )
        self._events.append(event)
        return updated, event

    def _ignore_event(self, event_id: str) -> None:
        self._ignore_list.add(event_id)
        self._selected_events.discard(event_id)

    def _push_session(self, session: Session) -> tuple[Session, ExternalEvent]:
        if session.sync_type is not SyncType.MIRRORED or not session.google_event_id:
            raise SyncValidationError(f"Session {session.id} is not mirrored")
        event = self._calendar.update_event(session.google_event_id, self._event_body(session))
        updated = self._state.record_sync(session.id, **event_snapshot(event))
        self._replace_event(event)
        return updated, event

    def _resolve(
        self,
        conflict: SyncConflict,
        resolution: str,
        merged: MergedFields | None,
    ) -> None:
        outcome = self._resolver.resolve(conflict, resolution, merged)
        self._conflicts = [c for c in self._conflicts if c.id != conflict.id]
        if outcome.event is not None:
            self._replace_event(outcome.event)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _event_start(self, event: ExternalEvent) -> tuple[date, time]:
        try:
            return event_local_start(event, self._settings.timezone)
        except ValueError as exc:
            raise SyncValidationError(str(exc)) from exc

    def _event_body(self, session: Session) -> dict:
        client = self._clients.get_client(session.client_id) if session.client_id else None
        return map_session_to_event(
            session,
            client,
            self._settings.timezone,
            self._settings.session_duration_minutes,
        )

    def _resolve_client(
        self,
        event: ExternalEvent,
        origin: str,
        title: str | None = None,
    ) -> Client:
        """Find or create the client an event is booked for.

        The first attendee with an email decides: an existing client with
        that email is reused, otherwise one is created, named after the
        attendee or else the event title.  Without attendees a placeholder
        client is created from the title.
        """
        title = title if title is not None else event.summary
        title_name = _name_from_title(title)
        attendee = next((a for a in event.attendees if a.email and a.email.strip()), None)

        if attendee is not None:
            email = attendee.email.strip()
            existing = self._clients.find_client_by_email(email)
            if existing is not None:
                return existing
            return self._clients.insert_client(
                Client(
                    user_id=self._settings.user_id,
                    name=attendee.display_name or title_name,
                    email=email,
                    notes=event.description or "",
                )
            )

        placeholder_notes = f"{origin}: {event.description}" if event.description else origin
        return self._clients.insert_client(
            Client(
                user_id=self._settings.user_id,
                name=title_name,
                email=None,
                notes=placeholder_notes,
            )
        )

    def _new_session(
        self,
        client: Client,
        session_date: date,
        session_time: time,
        notes: str | None,
        **links: Any,
    ) -> Session:
        return Session(
            user_id=self._settings.user_id,
            client_id=client.id,
            session_date=session_date,
            session_time=session_time,
            status="scheduled",
            value=self._settings.default_session_value,
            notes=notes or "",
            **links,
        )

    def _link_fields(
        self,
        event: ExternalEvent,
        sync_type: SyncType,
        recurrence_id: str | None = None,
    ) -> dict[str, Any]:
        return {
            "sync_type": sync_type,
            "google_event_id": event.id,
            "google_html_link": event.html_link,
            "google_attendees": list(event.attendees),
            "google_location": event.location or None,
            "google_recurrence_id": recurrence_id or event.recurring_event_id,
            "google_last_synced": self._clock(),
        }

    def _replace_event(self, event: ExternalEvent) -> None:
        for index, listed in enumerate(self._events):
            if listed.id == event.id:
                self._events[index] = event
                return

    def _find_conflict(self, conflict_id: str) -> SyncConflict | None:
        return next((c for c in self._conflicts if c.id == conflict_id), None)

    def _run_batch(self, item_ids: list[str], action: Callable[[str], object]) -> BatchResult:
        result = BatchResult(requested=len(item_ids))
        for item_id in item_ids:
            try:
                action(item_id)
            except CalendarAuthError as exc:
                result.failures.append({"id": item_id, "error": str(exc)})
                result.aborted = True
                self._report_error("Batch stopped", exc)
                break
            except _ACTION_ERRORS as exc:
                logger.warning("Batch item %s failed: %s", item_id, exc)
                result.failures.append({"id": item_id, "error": str(exc)})
                continue
            result.succeeded += 1

        logger.info(
            "Batch complete: %d of %d succeeded%s",
            result.succeeded,
            result.requested,
            " (aborted)" if result.aborted else "",
        )
        return result

    def _notify_batch(self, label: str, result: BatchResult) -> None:
        self._notifier.notify(
            f"{label} complete",
            f"{result.succeeded} of {result.requested} item(s) processed.",
            "warning" if result.has_failures else "success",
        )

    def _failed(self, title: str, exc: Exception) -> SyncOutcome:
        self._report_error(title, exc)
        return SyncOutcome(success=False, error=exc)

    def _report_error(self, title: str, exc: Exception) -> None:
        """Log and notify a failure; an expired credential asks to reconnect."""
        if isinstance(exc, CalendarAuthError):
            logger.warning("%s: %s", title, exc)
            self._notifier.notify(
                "Google Calendar access expired",
                "Reconnect to Google Calendar to continue.",
                "error",
            )
        elif isinstance(exc, SyncValidationError):
            logger.warning("%s: %s", title, exc)
            self._notifier.notify(title, str(exc), "warning")
        else:
            logger.error("%s: %s", title, exc)
            self._notifier.notify(title, str(exc), "error")


def _name_from_title(summary: str) -> str:
    """``"Session - Ana"`` -> ``"Ana"``; otherwise the whole title."""
    parts = summary.split(" - ")
    if len(parts) > 1 and parts[1].strip():
        return parts[1].strip()
    return summary.strip() or _UNTITLED_EVENT


def _is_newer(updated: datetime | None, last_synced: datetime | None) -> bool:
    """Whether an event modified at *updated* changed after *last_synced*."""
    if updated is None:
        return False
    if last_synced is None:
        return True
    return _as_utc(updated) > _as_utc(last_synced)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _toggle(selection: set[str], item_id: str) -> bool:
    if item_id in selection:
        selection.discard(item_id)
        return False
    selection.add(item_id)
    return True


def _single_result(item_id: str, outcome: SyncOutcome) -> BatchResult:
    if outcome.success:
        return BatchResult(requested=1, succeeded=1)
    return BatchResult(
        requested=1,
        failures=[{"id": item_id, "error": str(outcome.error)}],
        aborted=outcome.auth_expired,
    )
