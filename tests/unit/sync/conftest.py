"""Shared fixtures for sync engine unit tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, time

import pytest

from practice_sync.models.session import Session, SyncType
from practice_sync.store import InMemoryStore
from practice_sync.sync.state import SyncStateStore


@pytest.fixture()
def state(store: InMemoryStore, clock) -> SyncStateStore:
    """Sync-state guard over the shared in-memory store."""
    return SyncStateStore(store, clock)


@pytest.fixture()
def add_session(store: InMemoryStore) -> Callable[..., Session]:
    """Insert a session directly into the store, bypassing the guard.

    Defaults to a local session on 2025-03-10 at 09:00; pass
    ``sync_type``/``google_event_id`` to seed linked sessions.
    """

    def _add(**overrides: object) -> Session:
        fields: dict = {
            "user_id": store.user_id,
            "session_date": date(2025, 3, 10),
            "session_time": time(9, 0),
            "notes": "",
        }
        if overrides.get("sync_type") not in (None, SyncType.NONE):
            fields["google_event_id"] = "evt-1"
        fields.update(overrides)
        return store.insert_session(Session(**fields))

    return _add
