"""Configuration loading for practice-sync.

Reads settings from environment variables (with .env support via python-dotenv)
and validates that all required values are present.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        user_id: Identifier of the practice owner whose sessions and
            clients are synchronized.  Every store query is scoped to it.
        log_level: Logging level (default ``"INFO"``).
        timezone: IANA timezone that session dates and times are expressed
            in (default ``"America/Sao_Paulo"``).
        data_dir: Directory holding the token file, the ignore list and the
            JSON record store used by the CLI.
        client_secrets_path: OAuth client secrets file used by ``connect``.
        lookahead_days: Length of the event listing window, in days.
        session_duration_minutes: Duration given to events created from
            sessions.
        default_session_value: Monetary value assigned to imported sessions.
    """

    user_id: str
    log_level: str = "INFO"
    timezone: str = "America/Sao_Paulo"
    data_dir: Path = Path(".practice_sync")
    client_secrets_path: Path = Path("credentials.json")
    lookahead_days: int = 30
    session_duration_minutes: int = 60
    default_session_value: float = 0.0

    @property
    def token_path(self) -> Path:
        """Location of the cached Google access token."""
        return self.data_dir / "token.json"

    @property
    def ignore_list_path(self) -> Path:
        """Location of the device-local list of ignored event IDs."""
        return self.data_dir / "ignored_events.json"

    @property
    def store_path(self) -> Path:
        """Location of the JSON session/client store."""
        return self.data_dir / "records.json"


_NUMERIC_SETTINGS: dict[str, tuple[str, type]] = {
    "SYNC_LOOKAHEAD_DAYS": ("lookahead_days", int),
    "SESSION_DURATION_MINUTES": ("session_duration_minutes", int),
    "DEFAULT_SESSION_VALUE": ("default_session_value", float),
}


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Calls :func:`dotenv.load_dotenv` so a ``.env`` file in the project root
    is picked up automatically.

    Returns:
        A validated :class:`Settings` instance.

    Raises:
        ConfigError: If any required environment variable is missing,
            empty, or whitespace-only, or if a numeric setting cannot be
            parsed, or if ``TIMEZONE`` is not a known IANA timezone.  The
            error message names **all** missing variables.
    """
    load_dotenv()

    required = {
        "PRACTICE_USER_ID": "user_id",
    }

    values: dict[str, object] = {}
    missing: list[str] = []

    for env_var, field_name in required.items():
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            missing.append(env_var)
        else:
            values[field_name] = raw.strip()

    if missing:
        names = ", ".join(missing)
        raise ConfigError(f"Missing required environment variables: {names}")

    # Optional settings with defaults handled by the dataclass.
    log_level = os.environ.get("LOG_LEVEL", "").strip()
    timezone = os.environ.get("TIMEZONE", "").strip()
    data_dir = os.environ.get("SYNC_DATA_DIR", "").strip()
    client_secrets = os.environ.get("GOOGLE_CLIENT_SECRETS", "").strip()

    if log_level:
        values["log_level"] = log_level
    if timezone:
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigError(f"TIMEZONE is not a known IANA timezone, got {timezone!r}") from None
        values["timezone"] = timezone
    if data_dir:
        values["data_dir"] = Path(data_dir)
    if client_secrets:
        values["client_secrets_path"] = Path(client_secrets)

    for env_var, (field_name, cast) in _NUMERIC_SETTINGS.items():
        raw = os.environ.get(env_var, "").strip()
        if not raw:
            continue
        try:
            number = cast(raw)
        except ValueError:
            raise ConfigError(f"{env_var} must be a number, got {raw!r}") from None
        if number < 0:
            raise ConfigError(f"{env_var} must not be negative, got {raw!r}")
        values[field_name] = number

    return Settings(**values)  # type: ignore[arg-type]
