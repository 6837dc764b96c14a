"""Data models for practice-sync."""

from __future__ import annotations

from practice_sync.models.calendar import (
    Attendee,
    BatchResult,
    EventTime,
    ExternalEvent,
    ReconcileResult,
    RecurringSeries,
    SyncOutcome,
)
from practice_sync.models.conflict import (
    ConflictResolution,
    Difference,
    MergedFields,
    Severity,
    SyncConflict,
)
from practice_sync.models.session import Client, Session, SyncType

__all__ = [
    "Attendee",
    "BatchResult",
    "Client",
    "ConflictResolution",
    "Difference",
    "EventTime",
    "ExternalEvent",
    "MergedFields",
    "ReconcileResult",
    "RecurringSeries",
    "Session",
    "Severity",
    "SyncConflict",
    "SyncOutcome",
    "SyncType",
]
