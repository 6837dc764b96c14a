"""Google Calendar client used by the sync engine.

Provides :class:`GoogleCalendarClient`, a thin wrapper around the Google
Calendar v3 API that handles:

- **List** -- events in a window (single occurrences expanded, ordered by
  start time), with pagination.
- **Get** -- one event by ID; a deleted event raises
  :class:`~practice_sync.calendar.exceptions.CalendarNotFoundError`.
- **Create / Update** -- insert a new event, or replace an existing one.
- **Validate** -- a cheap read confirming the access token is accepted.

Every call is attempted once.  HTTP and network failures are translated by
:func:`~practice_sync.calendar.exceptions.translate_http_errors`; a 401
invalidates the stored credential through the injected provider.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from practice_sync.calendar.auth import CredentialProvider
from practice_sync.calendar.exceptions import (
    CalendarAuthError,
    CalendarTransientError,
    translate_http_errors,
)
from practice_sync.models.calendar import ExternalEvent

logger = logging.getLogger(__name__)

# Google Calendar API calendar identifier for the primary calendar.
_PRIMARY_CALENDAR = "primary"

# Page size for events().list(); the listing window rarely exceeds one page.
_PAGE_SIZE = 500

_DEFAULT_LOOKAHEAD_DAYS = 30


class GoogleCalendarClient:
    """Client for the Google Calendar operations the sync engine needs.

    The access token is read from *credentials* when the service is first
    needed, and validated once per client instance before the first real
    call.

    Args:
        credentials: Provider owning the access token.
        timezone: IANA timezone used for the default listing window.
        lookahead_days: Length of the default listing window.
        service: Optional pre-built ``googleapiclient`` service resource.
            If ``None``, one is built from the provider's token.  Pass a
            mock here in tests.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        timezone: str,
        lookahead_days: int = _DEFAULT_LOOKAHEAD_DAYS,
        service: Any | None = None,
    ) -> None:
        self._credentials = credentials
        self._timezone = timezone
        self._lookahead_days = lookahead_days
        self._injected_service = service
        self._service = service
        self._validated = False

    # ------------------------------------------------------------------
    # Credential handling
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Forget the validated state and any service built from an old token."""
        self._validated = False
        if self._injected_service is None:
            self._service = None

    def _handle_auth_expired(self) -> None:
        """Drop the rejected token (called by ``@translate_http_errors``)."""
        self._credentials.invalidate()
        self.reset()
        logger.info("Stored access token invalidated; reconnection required")

    def _get_service(self) -> Any:
        """Return the API service, building it from the current token."""
        if self._service is not None:
            return self._service

        token = self._credentials.get_token()
        if not token:
            raise CalendarAuthError("Not connected to Google Calendar")

        self._service = build(
            "calendar",
            "v3",
            credentials=Credentials(token=token),
            cache_discovery=False,
        )
        return self._service

    def validate_credential(self) -> bool:
        """Confirm the current access token is still accepted.

        Performs a one-item ``calendarList().list()`` read.

        Returns:
            ``True`` if the token works, or if Google could not be reached
            (the token is kept and the real call will surface the error).
            ``False`` if there is no token or Google rejected it; in the
            latter case the stored token is invalidated.
        """
        if not self._credentials.get_token():
            return False

        try:
            self._get_service().calendarList().list(maxResults=1).execute()
        except HttpError as exc:
            if int(exc.resp.status) == 401:
                logger.warning("Access token rejected during validation")
                self._handle_auth_expired()
                return False
            logger.warning("Token validation inconclusive (HTTP %s)", exc.resp.status)
            return True
        except (OSError, TimeoutError, httplib2.HttpLib2Error) as exc:
            logger.warning("Token validation skipped, network error: %s", exc)
            return True

        self._validated = True
        return True

    def _ensure_valid(self) -> None:
        """Validate the token lazily, once per client instance."""
        if self._validated:
            return
        if not self.validate_credential():
            raise CalendarAuthError("Google Calendar access expired; reconnect to continue")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @translate_http_errors
    def list_events(
        self,
        time_min: datetime | None = None,
        time_max: datetime | None = None,
    ) -> list[ExternalEvent]:
        """List events within a time range.

        Handles pagination automatically, fetching all pages of results.
        Defaults to today 00:00 through the end of the day
        ``lookahead_days`` from now, in the configured timezone.

        Args:
            time_min: Start of the window (inclusive).  Naive values are
                taken as local to the configured timezone.
            time_max: End of the window (exclusive).

        Returns:
            Events ordered by start time.
        """
        default_min, default_max = self.default_window()
        time_min = self._localize(time_min) if time_min is not None else default_min
        time_max = self._localize(time_max) if time_max is not None else default_max

        self._ensure_valid()
        service = self._get_service()

        events: list[ExternalEvent] = []
        page_token: str | None = None

        while True:
            response = (
                service.events()
                .list(
                    calendarId=_PRIMARY_CALENDAR,
                    timeMin=time_min.isoformat(),
                    timeMax=time_max.isoformat(),
                    maxResults=_PAGE_SIZE,
                    singleEvents=True,
                    orderBy="startTime",
                    pageToken=page_token,
                )
                .execute()
            )

            events.extend(ExternalEvent.from_api(item) for item in response.get("items", []))

            page_token = response.get("nextPageToken")
            if page_token is None:
                break

        logger.info(
            "Listed %d event(s) between %s and %s",
            len(events),
            time_min.isoformat(),
            time_max.isoformat(),
        )
        return events

    @translate_http_errors
    def get_event(self, event_id: str) -> ExternalEvent:
        """Fetch a single event by ID.

        Raises:
            CalendarNotFoundError: If the event was deleted upstream.
        """
        self._ensure_valid()
        resource = (
            self._get_service()
            .events()
            .get(calendarId=_PRIMARY_CALENDAR, eventId=event_id)
            .execute()
        )
        return ExternalEvent.from_api(resource)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @translate_http_errors
    def create_event(self, body: dict) -> ExternalEvent:
        """Create a new event on the primary calendar.

        Args:
            body: Event resource, as built by
                :func:`~practice_sync.calendar.event_mapper.map_session_to_event`.

        Returns:
            The created event as returned by Google.
        """
        self._ensure_valid()
        resource = (
            self._get_service()
            .events()
            .insert(calendarId=_PRIMARY_CALENDAR, body=body)
            .execute()
        )
        event = _require_event(resource, "create")
        logger.info("Created event '%s' (id=%s)", event.summary, event.id)
        return event

    @translate_http_errors
    def update_event(self, event_id: str, body: dict) -> ExternalEvent:
        """Replace an existing event.

        Raises:
            CalendarNotFoundError: If the event no longer exists.
        """
        self._ensure_valid()
        resource = (
            self._get_service()
            .events()
            .update(calendarId=_PRIMARY_CALENDAR, eventId=event_id, body=body)
            .execute()
        )
        event = _require_event(resource, "update", fallback_id=event_id)
        logger.info("Updated event '%s' (id=%s)", event.summary, event.id)
        return event

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def default_window(self, now: datetime | None = None) -> tuple[datetime, datetime]:
        """Return the default ``(time_min, time_max)`` listing window."""
        zone = ZoneInfo(self._timezone)
        now = now.astimezone(zone) if now is not None else datetime.now(zone)
        start = datetime.combine(now.date(), time.min, tzinfo=zone)
        last_day = now.date() + timedelta(days=self._lookahead_days)
        end = datetime.combine(last_day, time(23, 59, 59, 999000), tzinfo=zone)
        return start, end

    def _localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            return moment.replace(tzinfo=ZoneInfo(self._timezone))
        return moment


def _require_event(resource: Any, action: str, fallback_id: str | None = None) -> ExternalEvent:
    """Parse a write response, which must at least identify the event."""
    if not isinstance(resource, dict):
        raise CalendarTransientError(f"Unexpected {action} response from Google Calendar")
    if "id" not in resource and fallback_id is not None:
        resource = {**resource, "id": fallback_id}
    if "id" not in resource:
        raise CalendarTransientError(f"Google Calendar {action} response has no event ID")
    return ExternalEvent.from_api(resource)
