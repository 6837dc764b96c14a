"""Unit tests for the CLI entrypoint.

Test matrix (13 tests):

    | Area        | Case                                                |
    |-------------|-----------------------------------------------------|
    | parsing     | missing subcommand, bad resolution, bad date,       |
    |             | --series combined with --editable                   |
    | config      | ConfigError exits 1 without building anything       |
    | logging     | --verbose switches to DEBUG                         |
    | handlers    | connect, import, series import, mirror --session    |
    | handlers    | send failures, reconcile, resolve merge, resolve-all |
    | errors      | SyncError and CalendarAPIError exit 1 with message  |
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from datetime import date, time
from unittest.mock import MagicMock, patch

import pytest

from practice_sync.__main__ import main
from practice_sync.calendar.exceptions import CalendarAPIError
from practice_sync.config import ConfigError, Settings
from practice_sync.exceptions import StoreError
from practice_sync.models.calendar import BatchResult, ExternalEvent, ReconcileResult, SyncOutcome
from practice_sync.models.conflict import MergedFields

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def orchestrator() -> Generator[MagicMock, None, None]:
    """Patch settings loading and orchestrator wiring; yield the fake orchestrator."""
    fake = MagicMock(name="orchestrator")
    with (
        patch("practice_sync.__main__.load_settings", return_value=Settings(user_id="user-1")),
        patch("practice_sync.__main__.build_orchestrator", return_value=fake),
    ):
        yield fake


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestArgumentParsing:
    """Argument errors are handled by argparse with exit code 2."""

    @pytest.mark.parametrize(
        "argv",
        [
            [],
            ["resolve", "conflict-s-1", "overwrite"],
            ["resolve", "conflict-s-1", "merge", "--date", "10/03/2025"],
            ["resolve-all", "merge"],
            ["import"],
            ["import", "evt-1", "--series", "--editable"],
        ],
    )
    def test_invalid_arguments_exit_2(self, argv: list[str]) -> None:
        """Invalid invocations raise SystemExit(2)."""
        with pytest.raises(SystemExit) as exc_info:
            main(argv)

        assert exc_info.value.code == 2


class TestConfiguration:
    """Configuration and logging setup."""

    def test_config_error_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        """A ConfigError is printed and nothing else runs."""
        with (
            patch(
                "practice_sync.__main__.load_settings",
                side_effect=ConfigError("Missing required environment variables: PRACTICE_USER_ID"),
            ),
            patch("practice_sync.__main__.build_orchestrator") as mock_build,
        ):
            exit_code = main(["sessions"])

        assert exit_code == 1
        assert "PRACTICE_USER_ID" in capsys.readouterr().err
        mock_build.assert_not_called()

    def test_verbose_enables_debug(self, orchestrator: MagicMock) -> None:
        """-v overrides the configured log level."""
        orchestrator.load_sessions.return_value = []

        assert main(["sessions", "-v"]) == 0

        assert logging.getLogger().level == logging.DEBUG

    def test_store_error_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        """An unreadable record store is reported, not raised."""
        with (
            patch("practice_sync.__main__.load_settings", return_value=Settings(user_id="user-1")),
            patch(
                "practice_sync.__main__.build_orchestrator",
                side_effect=StoreError("Cannot read record store"),
            ),
        ):
            exit_code = main(["sessions"])

        assert exit_code == 1
        assert "Cannot read record store" in capsys.readouterr().err


class TestHandlers:
    """Subcommands dispatch to the orchestrator and map results to exit codes."""

    def test_connect(self, orchestrator: MagicMock) -> None:
        """connect exits 0 on success and 1 on failure."""
        orchestrator.connect.return_value = SyncOutcome(success=True)
        assert main(["connect"]) == 0

        orchestrator.connect.return_value = SyncOutcome(success=False)
        assert main(["connect"]) == 1

    def test_import_editable(
        self, orchestrator: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """import passes IDs and the editable flag and prints a summary."""
        orchestrator.batch_import_events.return_value = BatchResult(requested=2, succeeded=2)

        exit_code = main(["import", "evt-1", "evt-2", "--editable"])

        assert exit_code == 0
        orchestrator.load_all.assert_called_once_with()
        orchestrator.batch_import_events.assert_called_once_with(
            ["evt-1", "evt-2"], editable=True
        )
        assert "--- IMPORT ---" in capsys.readouterr().out

    def test_import_series_unknown_event(
        self, orchestrator: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """A series import of an unlisted event is reported and exits 1."""
        event = ExternalEvent(id="evt-1")
        orchestrator.find_event.side_effect = lambda event_id: event if event_id == "evt-1" else None
        orchestrator.import_series.return_value = BatchResult(requested=4, succeeded=4)

        exit_code = main(["import", "evt-1", "evt-9", "--series"])

        assert exit_code == 1
        orchestrator.import_series.assert_called_once_with(event)
        assert "evt-9" in capsys.readouterr().err

    def test_mirror_sessions(self, orchestrator: MagicMock) -> None:
        """mirror --session treats IDs as session IDs."""
        orchestrator.mirror_session.side_effect = [
            SyncOutcome(success=True),
            SyncOutcome(success=False),
        ]

        exit_code = main(["mirror", "s-1", "s-2", "--session"])

        assert exit_code == 1
        assert [c.args for c in orchestrator.mirror_session.call_args_list] == [("s-1",), ("s-2",)]
        orchestrator.load_events.assert_not_called()

    def test_send_with_failures_exits_1(self, orchestrator: MagicMock) -> None:
        """Any failed item in a send batch exits 1."""
        orchestrator.batch_send_sessions.return_value = BatchResult(
            requested=2, succeeded=1, failures=[{"id": "s-2", "error": "Session is already linked"}]
        )

        assert main(["send", "s-1", "s-2"]) == 1

    def test_reconcile(self, orchestrator: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        """reconcile prints the counters and exits 1 when a fetch failed."""
        orchestrator.sync_mirrored_sessions.return_value = ReconcileResult(updated=1, failed=1)

        assert main(["reconcile"]) == 1
        assert "Updated from Google: 1" in capsys.readouterr().out

    def test_resolve_merge_builds_fields(self, orchestrator: MagicMock) -> None:
        """resolve merge turns the options into MergedFields."""
        orchestrator.resolve_conflict.return_value = True

        exit_code = main(
            [
                "resolve",
                "conflict-s-1",
                "merge",
                "--date",
                "2025-03-12",
                "--time",
                "10:30",
                "--attendee",
                "ana@example.com",
                "--attendee",
                "bia@example.com",
            ]
        )

        assert exit_code == 0
        orchestrator.resolve_conflict.assert_called_once_with(
            "conflict-s-1",
            "merge",
            MergedFields(
                session_date=date(2025, 3, 12),
                session_time=time(10, 30),
                attendees=["ana@example.com", "bia@example.com"],
            ),
        )

    def test_resolve_all(self, orchestrator: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        """resolve-all reports how many conflicts were resolved."""
        orchestrator.resolve_all_conflicts.return_value = 3

        assert main(["resolve-all", "keep_google"]) == 0
        orchestrator.resolve_all_conflicts.assert_called_once_with("keep_google")
        assert "Conflicts resolved: 3" in capsys.readouterr().out


class TestHandlerErrors:
    """Engine errors raised by handlers exit 1 with a message."""

    @pytest.mark.parametrize(
        "error",
        [StoreError("Session not found: s-9"), CalendarAPIError("Calendar API error (HTTP 500)")],
    )
    def test_errors_exit_1(
        self,
        orchestrator: MagicMock,
        capsys: pytest.CaptureFixture[str],
        error: Exception,
    ) -> None:
        """SyncError subclasses and CalendarAPIError are caught by main."""
        orchestrator.load_events.side_effect = error

        exit_code = main(["conflicts"])

        assert exit_code == 1
        assert str(error) in capsys.readouterr().err
