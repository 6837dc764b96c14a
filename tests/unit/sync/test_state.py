"""Tests for the sync-state guard.

Covers the declared ``sync_type`` transitions in
:mod:`practice_sync.sync.state` and :class:`SyncStateStore`: creation,
transitions, sync stamps and unlinking.

Test matrix (15 tests):

Transition table (4):
| test_allowed_transitions (x11) | Every declared edge | is_allowed True |
| test_forbidden_transitions (x8) | Undeclared edges | is_allowed False |
| test_cancelled_is_terminal | cancelled -> anything | Nothing allowed |
| test_only_mirrored_self_transition | X -> X | Only mirrored |

Creation (3):
| test_create_local_session | sync_type none | Inserted with an ID |
| test_create_linked_requires_event_id | imported, no ID | InvalidTransitionError, nothing stored |
| test_create_sent_rejected | sent at creation | InvalidTransitionError |

Transitions (6):
| test_transition_stamps_last_synced | none -> sent | Stamp = clock |
| test_transition_without_stamp | stamp=False | Stamp untouched |
| test_transition_rejects_undeclared_edge | none -> cancelled | InvalidTransitionError, unchanged |
| test_transition_requires_event_id | none -> mirrored, no ID | InvalidTransitionError |
| test_record_sync_on_mirrored | Field sync | Fields written, stamp refreshed |
| test_record_sync_on_imported_rejected | imported self-edge | InvalidTransitionError |

Unlink (2):
| test_unlink_clears_link_fields | mirrored -> none | ID, link, stamp cleared; data kept |
| test_unlink_cancelled_rejected | cancelled -> none | InvalidTransitionError |
"""

from __future__ import annotations

from datetime import date, time
from itertools import product

import pytest

from practice_sync.exceptions import InvalidTransitionError
from practice_sync.models.session import Session, SyncType
from practice_sync.sync.state import TRANSITIONS, is_allowed

NONE = SyncType.NONE
IMPORTED = SyncType.IMPORTED
MIRRORED = SyncType.MIRRORED
SENT = SyncType.SENT
CANCELLED = SyncType.CANCELLED

_ALLOWED = [
    (NONE, IMPORTED),
    (NONE, MIRRORED),
    (NONE, SENT),
    (IMPORTED, MIRRORED),
    (IMPORTED, CANCELLED),
    (IMPORTED, NONE),
    (SENT, MIRRORED),
    (SENT, CANCELLED),
    (SENT, NONE),
    (MIRRORED, CANCELLED),
    (MIRRORED, NONE),
]

_FORBIDDEN = [
    (NONE, CANCELLED),
    (NONE, NONE),
    (IMPORTED, SENT),
    (IMPORTED, IMPORTED),
    (SENT, IMPORTED),
    (SENT, SENT),
    (MIRRORED, IMPORTED),
    (MIRRORED, SENT),
]


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


class TestTransitionTable:
    """Tests for ``TRANSITIONS`` and ``is_allowed``."""

    @pytest.mark.parametrize(("current", "target"), _ALLOWED)
    def test_allowed_transitions(self, current: SyncType, target: SyncType) -> None:
        """Declared edges are allowed."""
        assert is_allowed(current, target)

    @pytest.mark.parametrize(("current", "target"), _FORBIDDEN)
    def test_forbidden_transitions(self, current: SyncType, target: SyncType) -> None:
        """Undeclared edges are refused."""
        assert not is_allowed(current, target)

    def test_cancelled_is_terminal(self) -> None:
        """Nothing leaves the cancelled state."""
        assert TRANSITIONS[CANCELLED] == frozenset()
        assert not any(is_allowed(CANCELLED, target) for target in SyncType)

    def test_only_mirrored_self_transition(self) -> None:
        """Mirrored is the only state that may transition to itself."""
        self_edges = [s for s, t in product(SyncType, SyncType) if s is t and is_allowed(s, t)]

        assert self_edges == [MIRRORED]


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreate:
    """Tests for ``SyncStateStore.create``."""

    def test_create_local_session(self, state, store) -> None:
        """A local session is inserted and receives an ID."""
        created = state.create(
            Session(user_id="user-1", session_date=date(2025, 3, 10), session_time=time(9, 0))
        )

        assert created.id
        assert store.get_session(created.id).sync_type is NONE

    def test_create_linked_requires_event_id(self, state, store) -> None:
        """A linked session without an event ID is never stored."""
        session = Session(
            user_id="user-1",
            session_date=date(2025, 3, 10),
            session_time=time(9, 0),
            sync_type=IMPORTED,
        )

        with pytest.raises(InvalidTransitionError, match="google_event_id required"):
            state.create(session)

        assert store.list_sessions() == []

    def test_create_sent_rejected(self, state) -> None:
        """Sent sessions only come from publishing an existing local session."""
        session = Session(
            user_id="user-1",
            session_date=date(2025, 3, 10),
            session_time=time(9, 0),
            sync_type=SENT,
            google_event_id="evt-1",
        )

        with pytest.raises(InvalidTransitionError, match="not allowed at creation"):
            state.create(session)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransition:
    """Tests for ``transition`` and ``record_sync``."""

    def test_transition_stamps_last_synced(self, state, add_session, clock) -> None:
        """A stamped transition records the clock's time."""
        session = add_session()

        updated = state.transition(session.id, SENT, google_event_id="evt-9")

        assert updated.sync_type is SENT
        assert updated.google_event_id == "evt-9"
        assert updated.google_last_synced == clock.now

    def test_transition_without_stamp(self, state, add_session) -> None:
        """``stamp=False`` leaves ``google_last_synced`` alone."""
        session = add_session(sync_type=IMPORTED)

        updated = state.transition(session.id, CANCELLED, stamp=False)

        assert updated.sync_type is CANCELLED
        assert updated.google_last_synced is None
        assert updated.google_event_id == "evt-1"

    def test_transition_rejects_undeclared_edge(self, state, add_session, store) -> None:
        """An undeclared edge raises and writes nothing."""
        session = add_session()

        with pytest.raises(InvalidTransitionError) as exc_info:
            state.transition(session.id, CANCELLED)

        assert exc_info.value.current == "none"
        assert exc_info.value.target == "cancelled"
        assert store.get_session(session.id).sync_type is NONE

    def test_transition_requires_event_id(self, state, add_session) -> None:
        """A linked target needs an event ID, given or already stored."""
        session = add_session()

        with pytest.raises(InvalidTransitionError, match="google_event_id required"):
            state.transition(session.id, MIRRORED)

    def test_record_sync_on_mirrored(self, state, add_session, clock) -> None:
        """Mirrored sessions accept field syncs, which refresh the stamp."""
        session = add_session(sync_type=MIRRORED)
        clock.advance(hours=1)

        updated = state.record_sync(session.id, notes="moved", session_time=time(10, 0))

        assert updated.sync_type is MIRRORED
        assert updated.notes == "moved"
        assert updated.session_time == time(10, 0)
        assert updated.google_last_synced == clock.now

    def test_record_sync_on_imported_rejected(self, state, add_session) -> None:
        """Imported sessions are read-only and cannot be field-synced."""
        session = add_session(sync_type=IMPORTED)

        with pytest.raises(InvalidTransitionError):
            state.record_sync(session.id, notes="changed")


# ---------------------------------------------------------------------------
# Unlink
# ---------------------------------------------------------------------------


class TestUnlink:
    """Tests for ``unlink``."""

    def test_unlink_clears_link_fields(self, state, add_session, clock) -> None:
        """Unlinking keeps the session's data and drops its Google link."""
        session = add_session(
            sync_type=MIRRORED,
            notes="Keep me",
            google_html_link="https://calendar.google.com/event?eid=evt-1",
            google_last_synced=clock.now,
            google_location="Office 2",
        )

        updated = state.unlink(session.id)

        assert updated.sync_type is NONE
        assert updated.google_event_id is None
        assert updated.google_html_link is None
        assert updated.google_last_synced is None
        assert updated.notes == "Keep me"
        assert updated.session_date == date(2025, 3, 10)

    def test_unlink_cancelled_rejected(self, state, add_session) -> None:
        """Cancelled sessions stay cancelled."""
        session = add_session(sync_type=CANCELLED)

        with pytest.raises(InvalidTransitionError):
            state.unlink(session.id)
