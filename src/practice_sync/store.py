"""Record-store contracts and bundled adapters.

The sync engine does not own the application's database.  It consumes two
narrow contracts:

- :class:`SessionStore` -- read, insert and update sessions by ID, and list
  them filtered by sync type.
- :class:`ClientStore` -- look clients up by email and insert new ones.

Two adapters are bundled, both scoped to a single user ID:

- :class:`InMemoryStore` -- dict-backed, used by tests and embedders.
- :class:`JsonFileStore` -- persists to one JSON file; used by the CLI.

:class:`IgnoreList` is the device-local set of ignored Google event IDs.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from practice_sync.exceptions import StoreError
from practice_sync.models.session import Client, Session, SyncType

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


class SessionStore(Protocol):
    """Session persistence consumed by the sync engine."""

    def list_sessions(self, sync_types: Iterable[SyncType] | None = None) -> list[Session]: ...

    def get_session(self, session_id: str) -> Session: ...

    def insert_session(self, session: Session) -> Session: ...

    def update_session(self, session_id: str, changes: dict[str, Any]) -> Session: ...


class ClientStore(Protocol):
    """Client persistence consumed by the sync engine."""

    def find_client_by_email(self, email: str) -> Client | None: ...

    def get_client(self, client_id: str) -> Client | None: ...

    def insert_client(self, client: Client) -> Client: ...


# ---------------------------------------------------------------------------
# In-memory adapter
# ---------------------------------------------------------------------------


class InMemoryStore:
    """Dict-backed implementation of both store contracts.

    Every record belongs to *user_id*; records of other users are rejected on
    insert and never returned.

    Args:
        user_id: The owner whose records this store holds.
    """

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        self._sessions: dict[str, Session] = {}
        self._clients: dict[str, Client] = {}

    # -- sessions ----------------------------------------------------------

    def list_sessions(self, sync_types: Iterable[SyncType] | None = None) -> list[Session]:
        """Return sessions ordered by date and time, optionally filtered."""
        wanted = set(sync_types) if sync_types is not None else None
        sessions = [
            s.model_copy(deep=True)
            for s in self._sessions.values()
            if wanted is None or s.sync_type in wanted
        ]
        return sorted(sessions, key=lambda s: (s.session_date, s.session_time, s.id))

    def get_session(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id].model_copy(deep=True)
        except KeyError:
            raise StoreError(f"Session not found: {session_id}") from None

    def insert_session(self, session: Session) -> Session:
        if session.user_id != self.user_id:
            raise StoreError(f"Session belongs to another user: {session.user_id}")
        stored = session.model_copy(deep=True, update={"id": session.id or _new_id()})
        if stored.id in self._sessions:
            raise StoreError(f"Session already exists: {stored.id}")
        self._sessions[stored.id] = stored
        self._persist()
        logger.debug("Inserted session %s (sync_type=%s)", stored.id, stored.sync_type.value)
        return stored.model_copy(deep=True)

    def update_session(self, session_id: str, changes: dict[str, Any]) -> Session:
        current = self.get_session(session_id)
        try:
            updated = Session.model_validate({**current.model_dump(), **changes})
        except ValidationError as exc:
            raise StoreError(f"Invalid update for session {session_id}: {exc}") from exc
        self._sessions[session_id] = updated
        self._persist()
        logger.debug("Updated session %s: %s", session_id, ", ".join(sorted(changes)))
        return updated.model_copy(deep=True)

    # -- clients -----------------------------------------------------------

    def find_client_by_email(self, email: str) -> Client | None:
        wanted = email.strip().lower()
        if not wanted:
            return None
        for client in self._clients.values():
            if client.email and client.email.strip().lower() == wanted:
                return client.model_copy()
        return None

    def get_client(self, client_id: str) -> Client | None:
        client = self._clients.get(client_id)
        return client.model_copy() if client is not None else None

    def insert_client(self, client: Client) -> Client:
        if client.user_id != self.user_id:
            raise StoreError(f"Client belongs to another user: {client.user_id}")
        stored = client.model_copy(update={"id": client.id or _new_id()})
        self._clients[stored.id] = stored
        self._persist()
        logger.debug("Inserted client %s (%s)", stored.id, stored.name)
        return stored.model_copy()

    def clients(self) -> list[Client]:
        """Return every client, ordered by name."""
        return sorted((c.model_copy() for c in self._clients.values()), key=lambda c: c.name)

    def _persist(self) -> None:
        """Hook for durable subclasses; the in-memory store keeps nothing."""


# ---------------------------------------------------------------------------
# JSON file adapter
# ---------------------------------------------------------------------------


class JsonFileStore(InMemoryStore):
    """:class:`InMemoryStore` that writes through to a JSON file.

    The file holds ``{"sessions": [...], "clients": [...]}`` for one user.
    It is loaded once at construction and rewritten after every insert or
    update.

    Args:
        path: Location of the JSON file (created on first write).
        user_id: The owner whose records this store holds.

    Raises:
        StoreError: If an existing file cannot be parsed.
    """

    def __init__(self, path: Path | str, user_id: str) -> None:
        super().__init__(user_id)
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            logger.info("No record store at %s, starting empty", self.path)
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            sessions = [Session.model_validate(raw) for raw in payload.get("sessions", [])]
            clients = [Client.model_validate(raw) for raw in payload.get("clients", [])]
        except (json.JSONDecodeError, ValidationError, AttributeError) as exc:
            raise StoreError(f"Cannot read record store {self.path}: {exc}") from exc

        self._sessions = {s.id: s for s in sessions if s.user_id == self.user_id}
        self._clients = {c.id: c for c in clients if c.user_id == self.user_id}
        logger.info(
            "Loaded %d session(s) and %d client(s) from %s",
            len(self._sessions),
            len(self._clients),
            self.path,
        )

    def _persist(self) -> None:
        payload = {
            "sessions": [s.model_dump(mode="json") for s in self._sessions.values()],
            "clients": [c.model_dump(mode="json") for c in self._clients.values()],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)


# ---------------------------------------------------------------------------
# Device-local ignore list
# ---------------------------------------------------------------------------


class IgnoreList:
    """Set of Google event IDs hidden from the pending listing.

    Scoped to the current device: the IDs live in a local JSON file (or only
    in memory when *path* is ``None``) and are never sent to the server.

    Args:
        path: JSON file holding the ignored IDs, or ``None``.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._ids: set[str] = set()
        if self.path is not None and self.path.exists():
            try:
                self._ids = set(json.loads(self.path.read_text(encoding="utf-8")))
            except (json.JSONDecodeError, TypeError) as exc:
                logger.warning("Ignoring unreadable ignore list at %s: %s", self.path, exc)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def ids(self) -> set[str]:
        """Return a copy of the ignored IDs."""
        return set(self._ids)

    def add(self, event_id: str) -> bool:
        """Ignore *event_id*.  Returns ``False`` if it was already ignored."""
        if event_id in self._ids:
            return False
        self._ids.add(event_id)
        self._save()
        return True

    def clear(self) -> None:
        """Forget every ignored ID."""
        self._ids.clear()
        self._save()

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(sorted(self._ids)), encoding="utf-8")


def _new_id() -> str:
    return str(uuid.uuid4())
