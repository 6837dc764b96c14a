"""Access-credential handling for the Google Calendar API.

All token reads and writes go through a :class:`CredentialProvider`, which
is injected into the calendar client and the sync orchestrator.  The
bundled :class:`FileCredentialProvider` keeps the token in a JSON file on
the current device and can obtain one through the installed-app OAuth flow
(``google-auth-oauthlib``).

Usage::

    from practice_sync.calendar.auth import FileCredentialProvider

    provider = FileCredentialProvider(
        token_path=Path(".practice_sync/token.json"),
        client_secrets_path=Path("credentials.json"),
    )
    provider.connect()          # browser consent, token saved
    token = provider.get_token()
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from practice_sync.calendar.exceptions import CalendarAuthError

logger = logging.getLogger(__name__)

SCOPES: list[str] = ["https://www.googleapis.com/auth/calendar"]
"""OAuth 2.0 scopes required to read and write calendar events."""


class CredentialProvider(Protocol):
    """Single owner of the Google access token."""

    def get_token(self) -> str | None:
        """Return the current access token, or ``None`` when disconnected."""
        ...

    def store(self, token: str) -> None:
        """Replace the stored access token."""
        ...

    def invalidate(self) -> None:
        """Forget the stored token (called on HTTP 401 and on disconnect)."""
        ...

    def connect(self) -> str:
        """Obtain a new token interactively, store it and return it."""
        ...


class FileCredentialProvider:
    """Keeps the access token in a JSON file on this device.

    The file holds either a bare ``{"token": ...}`` entry (a token handed
    over by another OAuth client) or the full authorized-user document
    written after :meth:`connect`, in which case an expired token is
    refreshed transparently.

    Args:
        token_path: Location of the token file.
        client_secrets_path: OAuth client secrets file, needed by
            :meth:`connect` only.
    """

    def __init__(
        self,
        token_path: Path | str,
        client_secrets_path: Path | str | None = None,
    ) -> None:
        self.token_path = Path(token_path)
        self.client_secrets_path = Path(client_secrets_path) if client_secrets_path else None

    def get_token(self) -> str | None:
        creds = _load_cached_token(self.token_path)
        if creds is None:
            return None

        if creds.expired and creds.refresh_token:
            logger.info("Cached token expired, attempting refresh")
            refreshed = _refresh_token(creds)
            if refreshed is None:
                return None
            _save_credentials(refreshed, self.token_path)
            return refreshed.token

        return creds.token

    def store(self, token: str) -> None:
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(json.dumps({"token": token}))
        logger.info("Access token saved to %s", self.token_path)

    def invalidate(self) -> None:
        if self.token_path.exists():
            self.token_path.unlink()
            logger.info("Access token removed from %s", self.token_path)

    def connect(self) -> str:
        """Run the browser OAuth flow and store the resulting token.

        Returns:
            The new access token.

        Raises:
            CalendarAuthError: If the client secrets file is missing or the
                flow does not yield a token.
        """
        if self.client_secrets_path is None:
            raise CalendarAuthError("No OAuth client secrets file configured")
        creds = _run_browser_flow(self.client_secrets_path)
        if not creds.token:
            raise CalendarAuthError("OAuth flow completed without an access token")
        _save_credentials(creds, self.token_path)
        return creds.token


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_cached_token(token_path: Path) -> Credentials | None:
    """Load credentials from the token file.

    Returns:
        A :class:`Credentials` instance, or ``None`` if the file does not
        exist or cannot be parsed.
    """
    if not token_path.exists():
        logger.debug("No cached token at %s", token_path)
        return None

    try:
        info: dict[str, Any] = json.loads(token_path.read_text())
        if info.get("refresh_token"):
            return Credentials.from_authorized_user_info(info, SCOPES)
        token = info.get("token")
        if not token:
            logger.warning("Token file %s holds no token", token_path)
            return None
        return Credentials(token=token)
    except (json.JSONDecodeError, ValueError, KeyError, AttributeError) as exc:
        logger.warning("Failed to parse cached token at %s: %s", token_path, exc)
        return None


def _refresh_token(creds: Credentials) -> Credentials | None:
    """Attempt to refresh expired credentials.

    Returns:
        The refreshed :class:`Credentials`, or ``None`` if Google refused
        the refresh or could not be reached.
    """
    try:
        creds.refresh(Request())
        logger.info("Token refresh succeeded")
        return creds
    except (RefreshError, OSError) as exc:
        logger.warning("Token refresh failed: %s", exc)
        return None


def _run_browser_flow(client_secrets_path: Path) -> Credentials:
    """Launch the InstalledAppFlow to authenticate via browser.

    Raises:
        CalendarAuthError: If the client secrets file is missing.
    """
    if not client_secrets_path.exists():
        msg = f"OAuth client secrets file not found: {client_secrets_path}"
        logger.error(msg)
        raise CalendarAuthError(msg)

    flow = InstalledAppFlow.from_client_secrets_file(
        str(client_secrets_path),
        scopes=SCOPES,
    )
    creds = flow.run_local_server(port=0)
    logger.info("Browser OAuth flow completed successfully")
    return creds


def _save_credentials(creds: Credentials, token_path: Path) -> None:
    """Persist the full authorized-user document, creating parent dirs."""
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
    logger.info("Token saved to %s", token_path)
