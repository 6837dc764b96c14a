"""Shared fixtures for practice-sync tests."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any

import httplib2
import pytest
from googleapiclient.errors import HttpError

from practice_sync.calendar.client import GoogleCalendarClient
from practice_sync.config import Settings
from practice_sync.notify import RecordingNotifier
from practice_sync.store import IgnoreList, InMemoryStore
from practice_sync.sync.orchestrator import SyncOrchestrator

USER_ID = "user-1"
TIMEZONE = "America/Sao_Paulo"
T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def monkeypatch_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set all required environment variables to valid defaults.

    Also patches ``load_dotenv`` so that a real ``.env`` file on disk does not
    override the test values.

    Returns the dict of variables so tests can inspect or override values.
    """
    monkeypatch.setattr("practice_sync.config.load_dotenv", lambda *_a, **_kw: None)
    env_vars = {
        "PRACTICE_USER_ID": USER_ID,
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all practice-sync environment variables.

    Patches ``load_dotenv`` so a real ``.env`` file cannot re-inject values
    that the test explicitly removed.
    """
    monkeypatch.setattr("practice_sync.config.load_dotenv", lambda *_a, **_kw: None)
    for key in (
        "PRACTICE_USER_ID",
        "LOG_LEVEL",
        "TIMEZONE",
        "SYNC_DATA_DIR",
        "GOOGLE_CLIENT_SECRETS",
        "SYNC_LOOKAHEAD_DAYS",
        "SESSION_DURATION_MINUTES",
        "DEFAULT_SESSION_VALUE",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_root_logger() -> Generator[None, None, None]:
    """Reset the root logger after each test to prevent handler leaks."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def make_http_error(status: int) -> HttpError:
    """Create a ``googleapiclient.errors.HttpError`` with the given status code."""
    return HttpError(httplib2.Response({"status": str(status)}), b"simulated error")


class FakeClock:
    """Callable clock whose time only moves when a test moves it."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeCredentials:
    """In-memory :class:`~practice_sync.calendar.auth.CredentialProvider`."""

    def __init__(self, token: str | None = "token-1", connect_token: str = "token-2") -> None:
        self.token = token
        self.connect_token = connect_token
        self.invalidated = 0

    def get_token(self) -> str | None:
        return self.token

    def store(self, token: str) -> None:
        self.token = token

    def invalidate(self) -> None:
        self.token = None
        self.invalidated += 1

    def connect(self) -> str:
        self.token = self.connect_token
        return self.token


class _Request:
    """Deferred call mirroring ``googleapiclient``'s ``HttpRequest.execute()``."""

    def __init__(self, call: Callable[[], Any]) -> None:
        self._call = call

    def execute(self) -> Any:
        return self._call()


class _FakeEvents:
    def __init__(self, service: FakeCalendarService) -> None:
        self._service = service

    def list(self, **kwargs: Any) -> _Request:
        return _Request(lambda: self._service._run("list", kwargs))

    def get(self, **kwargs: Any) -> _Request:
        return _Request(lambda: self._service._run("get", kwargs))

    def insert(self, **kwargs: Any) -> _Request:
        return _Request(lambda: self._service._run("insert", kwargs))

    def update(self, **kwargs: Any) -> _Request:
        return _Request(lambda: self._service._run("update", kwargs))


class _FakeCalendarList:
    def __init__(self, service: FakeCalendarService) -> None:
        self._service = service

    def list(self, **kwargs: Any) -> _Request:
        return _Request(lambda: self._service._run("calendarList", kwargs))


class FakeCalendarService:
    """Stateful stand-in for the Calendar v3 service resource.

    Events are kept as raw API dicts.  ``insert`` assigns ``evt-N`` IDs;
    ``update`` replaces the stored resource (PUT semantics).  Missing events
    answer ``get``/``update`` with HTTP 404.  :meth:`fail` makes an
    operation raise until :meth:`recover` is called.
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock or FakeClock()
        self.resources: dict[str, dict] = {}
        self.calls: list[tuple[str, dict]] = []
        self._failures: dict[str, Exception] = {}
        self._next_id = 1

    # -- API surface -------------------------------------------------------

    def events(self) -> _FakeEvents:
        return _FakeEvents(self)

    def calendarList(self) -> _FakeCalendarList:  # noqa: N802
        return _FakeCalendarList(self)

    # -- test helpers ------------------------------------------------------

    def add_event(
        self,
        event_id: str,
        start: str,
        summary: str = "Session - Ana",
        updated: datetime | None = None,
        **fields: Any,
    ) -> dict:
        """Store an event starting at *start* (ISO datetime or date)."""
        boundary = {"date": start} if len(start) == 10 else {"dateTime": start}
        resource = {
            "id": event_id,
            "summary": summary,
            "start": boundary,
            "end": dict(boundary),
            "status": "confirmed",
            "htmlLink": f"https://calendar.google.com/event?eid={event_id}",
            "updated": (updated or self.clock()).isoformat(),
            **fields,
        }
        self.resources[event_id] = resource
        return copy.deepcopy(resource)

    def edit_event(self, event_id: str, updated: datetime | None = None, **fields: Any) -> dict:
        """Change a stored event as if edited in the Google Calendar UI."""
        resource = self.resources[event_id]
        resource.update(fields)
        resource["updated"] = (updated or self.clock()).isoformat()
        return copy.deepcopy(resource)

    def delete_event(self, event_id: str) -> None:
        del self.resources[event_id]

    def fail(self, operation: str, error: Exception) -> None:
        self._failures[operation] = error

    def recover(self, operation: str | None = None) -> None:
        if operation is None:
            self._failures.clear()
        else:
            self._failures.pop(operation, None)

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    # -- dispatch ----------------------------------------------------------

    def _run(self, operation: str, kwargs: dict) -> Any:
        self.calls.append((operation, kwargs))
        if operation in self._failures:
            raise self._failures[operation]
        return getattr(self, f"_do_{operation}")(**kwargs)

    def _do_calendarList(self, **_kwargs: Any) -> dict:  # noqa: N802
        return {"items": [{"id": "primary"}]}

    def _do_list(self, **_kwargs: Any) -> dict:
        items = sorted(
            self.resources.values(),
            key=lambda r: (r["start"].get("dateTime") or r["start"].get("date"), r["id"]),
        )
        return {"items": copy.deepcopy(items)}

    def _do_get(self, calendarId: str, eventId: str) -> dict:  # noqa: N803
        if eventId not in self.resources:
            raise make_http_error(404)
        return copy.deepcopy(self.resources[eventId])

    def _do_insert(self, calendarId: str, body: dict) -> dict:  # noqa: N803
        event_id = f"evt-{self._next_id}"
        self._next_id += 1
        resource = {
            **copy.deepcopy(body),
            "id": event_id,
            "status": "confirmed",
            "htmlLink": f"https://calendar.google.com/event?eid={event_id}",
            "updated": self.clock().isoformat(),
        }
        self.resources[event_id] = resource
        return copy.deepcopy(resource)

    def _do_update(self, calendarId: str, eventId: str, body: dict) -> dict:  # noqa: N803
        if eventId not in self.resources:
            raise make_http_error(404)
        previous = self.resources[eventId]
        resource = {
            **copy.deepcopy(body),
            "id": eventId,
            "status": "confirmed",
            "htmlLink": previous.get("htmlLink"),
            "updated": self.clock().isoformat(),
        }
        if "recurringEventId" in previous:
            resource["recurringEventId"] = previous["recurringEventId"]
        self.resources[eventId] = resource
        return copy.deepcopy(resource)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_service(clock: FakeClock) -> FakeCalendarService:
    return FakeCalendarService(clock)


@pytest.fixture()
def fake_credentials() -> FakeCredentials:
    return FakeCredentials()


@pytest.fixture()
def settings() -> Settings:
    return Settings(user_id=USER_ID, timezone=TIMEZONE, default_session_value=150.0)


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore(USER_ID)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def calendar_client(
    fake_credentials: FakeCredentials,
    fake_service: FakeCalendarService,
) -> GoogleCalendarClient:
    return GoogleCalendarClient(fake_credentials, TIMEZONE, service=fake_service)


@pytest.fixture()
def orchestrator(
    calendar_client: GoogleCalendarClient,
    store: InMemoryStore,
    fake_credentials: FakeCredentials,
    settings: Settings,
    notifier: RecordingNotifier,
    clock: FakeClock,
) -> SyncOrchestrator:
    """Orchestrator wired to the fake service and an in-memory store."""
    return SyncOrchestrator(
        calendar_client,
        store,
        store,
        fake_credentials,
        settings,
        ignore_list=IgnoreList(),
        notifier=notifier,
        clock=clock,
    )
