"""Custom exceptions for the practice-sync engine.

Calendar transport errors live in :mod:`practice_sync.calendar.exceptions`;
the exceptions here cover the application side: rejected sync actions and
failures of the session/client record stores.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for application-side sync failures."""


class SyncValidationError(SyncError):
    """Raised when a sync action is rejected before any external call.

    Example: sending a session that already carries a Google event ID.
    """


class InvalidTransitionError(SyncValidationError):
    """Raised when a write would move a session along an undeclared
    ``sync_type`` transition, or would break the external-ID invariant.

    Attributes:
        session_id: The session the write targeted.
        current: The session's current sync type.
        target: The sync type the write asked for.
    """

    def __init__(self, session_id: str, current: str, target: str, reason: str = "") -> None:
        message = f"Session {session_id}: transition {current} -> {target} is not allowed"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.session_id = session_id
        self.current = current
        self.target = target


class StoreError(SyncError):
    """Raised when the session or client record store rejects an operation.

    Covers unknown IDs and failed inserts/updates.
    """
