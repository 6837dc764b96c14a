"""Sync-state projection over the session store.

A session's relationship with Google Calendar is encoded in its
``sync_type`` and ``google_*`` fields.  :class:`SyncStateStore` is the only
writer of those fields in the engine and enforces the declared transitions:

::

    none      -> imported | mirrored            (at creation, from an event)
    none      -> mirrored | sent                (publishing a local session)
    imported  -> mirrored | cancelled | none
    sent      -> mirrored | cancelled | none
    mirrored  -> mirrored | cancelled | none
    cancelled -> (terminal)

``-> none`` is the disconnect path.  ``mirrored -> mirrored`` is the field
sync performed by reconciliation and conflict resolution.  Every linked
state requires a Google event ID; cancelled sessions keep theirs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from practice_sync.exceptions import InvalidTransitionError
from practice_sync.models.session import Session, SyncType
from practice_sync.store import SessionStore

logger = logging.getLogger(__name__)

TRANSITIONS: dict[SyncType, frozenset[SyncType]] = {
    SyncType.NONE: frozenset({SyncType.IMPORTED, SyncType.MIRRORED, SyncType.SENT}),
    SyncType.IMPORTED: frozenset({SyncType.MIRRORED, SyncType.CANCELLED, SyncType.NONE}),
    SyncType.SENT: frozenset({SyncType.MIRRORED, SyncType.CANCELLED, SyncType.NONE}),
    SyncType.MIRRORED: frozenset({SyncType.MIRRORED, SyncType.CANCELLED, SyncType.NONE}),
    SyncType.CANCELLED: frozenset(),
}

# Sync types a session may carry when it is first inserted.
CREATABLE: frozenset[SyncType] = frozenset({SyncType.NONE, SyncType.IMPORTED, SyncType.MIRRORED})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_allowed(current: SyncType, target: SyncType) -> bool:
    """Whether ``current -> target`` is a declared transition."""
    return target in TRANSITIONS[current]


class SyncStateStore:
    """Guards every write of sync fields to the session store.

    Args:
        store: The application's session store.
        clock: Returns the current time; stamps ``google_last_synced``.
    """

    def __init__(
        self,
        store: SessionStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or utc_now

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> Session:
        return self._store.get_session(session_id)

    def sessions(self, *sync_types: SyncType) -> list[Session]:
        """Return sessions, restricted to *sync_types* when any are given."""
        return self._store.list_sessions(sync_types or None)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, session: Session) -> Session:
        """Insert a new session whose sync type is set at creation.

        Raises:
            InvalidTransitionError: If the sync type cannot be set on
                creation, or a linked session has no Google event ID.
        """
        target = session.sync_type
        if target not in CREATABLE:
            raise InvalidTransitionError(
                session.id or "<new>", SyncType.NONE.value, target.value, "not allowed at creation"
            )
        if target is not SyncType.NONE and not session.google_event_id:
            raise InvalidTransitionError(
                session.id or "<new>", SyncType.NONE.value, target.value, "google_event_id required"
            )
        created = self._store.insert_session(session)
        logger.info("Created session %s as %s", created.id, target.value)
        return created

    def transition(
        self,
        session_id: str,
        target: SyncType,
        *,
        stamp: bool = True,
        **changes: Any,
    ) -> Session:
        """Move a session to *target*, writing *changes* alongside.

        Args:
            session_id: The session to update.
            target: The sync type after the write.
            stamp: Set ``google_last_synced`` to the current time.
            **changes: Other session fields to write in the same update.

        Raises:
            InvalidTransitionError: If the transition is not declared or the
                result would be a linked session without an event ID.
        """
        current = self._store.get_session(session_id)
        if not is_allowed(current.sync_type, target):
            raise InvalidTransitionError(session_id, current.sync_type.value, target.value)

        event_id = changes.get("google_event_id", current.google_event_id)
        if target is not SyncType.NONE and not event_id:
            raise InvalidTransitionError(
                session_id, current.sync_type.value, target.value, "google_event_id required"
            )

        update: dict[str, Any] = dict(changes)
        update["sync_type"] = target
        if stamp:
            update["google_last_synced"] = self._clock()

        updated = self._store.update_session(session_id, update)
        if current.sync_type is not target:
            logger.info(
                "Session %s: %s -> %s",
                session_id,
                current.sync_type.value,
                target.value,
            )
        return updated

    def record_sync(self, session_id: str, **changes: Any) -> Session:
        """Write synced field values and stamp ``google_last_synced``.

        Only states with a declared self-transition (``mirrored``) accept
        this.
        """
        current = self._store.get_session(session_id)
        return self.transition(session_id, current.sync_type, **changes)

    def unlink(self, session_id: str) -> Session:
        """Return a linked session to ``none``, keeping its data.

        Clears the event ID, link and last-synced stamp.
        """
        return self.transition(
            session_id,
            SyncType.NONE,
            stamp=False,
            google_event_id=None,
            google_html_link=None,
            google_last_synced=None,
        )
