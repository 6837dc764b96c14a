"""Sync engine: state guard, conflict detection and resolution, orchestration."""

from __future__ import annotations

from practice_sync.sync.detector import classify_severity, detect_all_conflicts, detect_conflict
from practice_sync.sync.orchestrator import SyncOrchestrator
from practice_sync.sync.resolver import ConflictResolver
from practice_sync.sync.state import TRANSITIONS, SyncStateStore

__all__ = [
    "TRANSITIONS",
    "ConflictResolver",
    "SyncOrchestrator",
    "SyncStateStore",
    "classify_severity",
    "detect_all_conflicts",
    "detect_conflict",
]
