"""Shared fixtures for Google Calendar unit tests."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, create_autospec

import pytest
from google.oauth2.credentials import Credentials


@pytest.fixture()
def mock_credentials() -> MagicMock:
    """Return a mock Credentials object that reports as valid."""
    creds = create_autospec(Credentials, instance=True)
    creds.valid = True
    creds.expired = False
    creds.token = "fresh-token"
    creds.refresh_token = "fake-refresh-token"
    creds.to_json.return_value = '{"token": "fresh-token", "refresh_token": "fake-refresh-token"}'
    return creds


@pytest.fixture()
def mock_expired_credentials() -> MagicMock:
    """Return a mock Credentials object that is expired but has a refresh token."""
    creds = create_autospec(Credentials, instance=True)
    creds.valid = False
    creds.expired = True
    creds.token = "refreshed-token"
    creds.refresh_token = "fake-refresh-token"
    creds.to_json.return_value = '{"token": "refreshed-token", "refresh_token": "fake-refresh-token"}'
    return creds


@pytest.fixture()
def tmp_credentials_file(tmp_path: Path) -> Path:
    """Write a minimal client secrets file to a temp directory and return its path."""
    creds_path = tmp_path / "credentials.json"
    creds_path.write_text('{"installed": {"client_id": "fake", "client_secret": "fake"}}')
    return creds_path


@pytest.fixture()
def tmp_token_file(tmp_path: Path) -> Path:
    """Write a bare access-token file and return its path."""
    token_path = tmp_path / "token.json"
    token_path.write_text(json.dumps({"token": "stored-token"}))
    return token_path


@pytest.fixture()
def mock_provider() -> MagicMock:
    """Return a mock credential provider holding a token."""
    provider = MagicMock()
    provider.get_token.return_value = "tok"
    return provider


@pytest.fixture()
def mock_service() -> MagicMock:
    """Return a mock Calendar service whose token validation succeeds."""
    service = MagicMock()
    service.calendarList.return_value.list.return_value.execute.return_value = {"items": []}
    return service
