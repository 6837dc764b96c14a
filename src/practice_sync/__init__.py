"""practice-sync: Google Calendar sync for practice sessions.

Imports, mirrors and sends sessions between a practice-management store
and the owner's Google Calendar, and detects and resolves divergence
between mirrored sessions and their events.
"""

from __future__ import annotations

from practice_sync.exceptions import (
    InvalidTransitionError,
    StoreError,
    SyncError,
    SyncValidationError,
)
from practice_sync.models import (
    Attendee,
    BatchResult,
    Client,
    ExternalEvent,
    MergedFields,
    ReconcileResult,
    RecurringSeries,
    Session,
    SyncConflict,
    SyncOutcome,
    SyncType,
)
from practice_sync.store import IgnoreList, InMemoryStore, JsonFileStore
from practice_sync.sync import ConflictResolver, SyncOrchestrator, SyncStateStore

__version__ = "0.1.0"

__all__ = [
    "Attendee",
    "BatchResult",
    "Client",
    "ConflictResolver",
    "ExternalEvent",
    "IgnoreList",
    "InMemoryStore",
    "InvalidTransitionError",
    "JsonFileStore",
    "MergedFields",
    "ReconcileResult",
    "RecurringSeries",
    "Session",
    "StoreError",
    "SyncConflict",
    "SyncError",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncStateStore",
    "SyncType",
    "SyncValidationError",
]
