"""Entry point for ``python -m practice_sync``.

Provides a CLI over :class:`~practice_sync.sync.orchestrator.SyncOrchestrator`
for one practice owner (``PRACTICE_USER_ID``).  Uses stdlib
:mod:`argparse` for argument parsing.

Subcommands:
    connect       -- Authorize Google Calendar access in the browser.
    events        -- List events not yet imported or ignored.
    sessions      -- List sessions and their sync relationship.
    import        -- Import events as sessions (read-only or editable).
    mirror        -- Mirror events, or sessions with ``--session``.
    send          -- Publish local sessions to Google Calendar.
    ignore        -- Hide events from the pending listing on this device.
    mark-clients  -- Add an event's attendees as clients.
    cancellations -- Detect sessions whose event was cancelled or deleted.
    reconcile     -- Pull newer Google-side changes into mirrored sessions.
    push          -- Push mirrored sessions to their events.
    conflicts     -- Show conflicts between mirrored sessions and events.
    resolve       -- Resolve one conflict.
    resolve-all   -- Resolve every conflict the same way.
    disconnect    -- Unlink all sessions and forget the Google connection.

Exit codes:
    0 -- Command completed.
    1 -- An error occurred (configuration, store, Google Calendar, or a
         failed action).
    2 -- Argument parsing error (handled by argparse).
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from datetime import date, time

from practice_sync.calendar.auth import FileCredentialProvider
from practice_sync.calendar.client import GoogleCalendarClient
from practice_sync.calendar.exceptions import CalendarAPIError
from practice_sync.config import ConfigError, Settings, load_settings
from practice_sync.exceptions import SyncError
from practice_sync.log import setup_logging
from practice_sync.models.conflict import RESOLUTIONS, MergedFields
from practice_sync.models.session import SyncType
from practice_sync.notify import ConsoleNotifier
from practice_sync.output import (
    format_batch_result,
    format_conflicts,
    format_events,
    format_reconcile_result,
    format_sessions,
    print_report,
)
from practice_sync.store import IgnoreList, JsonFileStore
from practice_sync.sync.orchestrator import SyncOrchestrator


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )

    parser = argparse.ArgumentParser(
        prog="practice-sync",
        description="Synchronize practice sessions with Google Calendar.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "connect", parents=[common], help="Authorize Google Calendar access."
    )

    events_parser = subparsers.add_parser(
        "events", parents=[common], help="List pending Google Calendar events."
    )
    events_parser.add_argument(
        "--all",
        action="store_true",
        default=False,
        help="Include events already linked to a session or ignored.",
    )

    sessions_parser = subparsers.add_parser(
        "sessions", parents=[common], help="List sessions."
    )
    sessions_parser.add_argument(
        "--sync-type",
        choices=[t.value for t in SyncType],
        default=None,
        help="Only show sessions with this sync type.",
    )

    import_parser = subparsers.add_parser(
        "import", parents=[common], help="Import events as sessions."
    )
    import_parser.add_argument("event_ids", nargs="+", help="Google event IDs.")
    import_mode = import_parser.add_mutually_exclusive_group()
    import_mode.add_argument(
        "--editable",
        action="store_true",
        default=False,
        help="Create independent copies instead of read-only imports.",
    )
    import_mode.add_argument(
        "--series",
        action="store_true",
        default=False,
        help="Import every listed instance of each event's recurring series (read-only).",
    )

    mirror_parser = subparsers.add_parser(
        "mirror", parents=[common], help="Enable two-way sync."
    )
    mirror_parser.add_argument("ids", nargs="+", help="Google event IDs (or session IDs).")
    mirror_parser.add_argument(
        "--session",
        action="store_true",
        default=False,
        help="Treat the IDs as session IDs.",
    )

    send_parser = subparsers.add_parser(
        "send", parents=[common], help="Publish local sessions to Google Calendar."
    )
    send_parser.add_argument("session_ids", nargs="+", help="Session IDs.")

    ignore_parser = subparsers.add_parser(
        "ignore", parents=[common], help="Hide events from the pending listing."
    )
    ignore_parser.add_argument("event_ids", nargs="+", help="Google event IDs.")

    mark_parser = subparsers.add_parser(
        "mark-clients", parents=[common], help="Add an event's attendees as clients."
    )
    mark_parser.add_argument("event_id", help="Google event ID.")

    subparsers.add_parser(
        "cancellations", parents=[common], help="Detect cancelled or deleted events."
    )
    subparsers.add_parser(
        "reconcile", parents=[common], help="Pull newer Google-side changes."
    )

    push_parser = subparsers.add_parser(
        "push", parents=[common], help="Push mirrored sessions to Google Calendar."
    )
    push_parser.add_argument(
        "session_id", nargs="?", default=None, help="Only push this session."
    )

    subparsers.add_parser("conflicts", parents=[common], help="Show conflicts.")

    resolve_parser = subparsers.add_parser(
        "resolve", parents=[common], help="Resolve one conflict."
    )
    resolve_parser.add_argument("conflict_id", help="Conflict ID, as shown by 'conflicts'.")
    resolve_parser.add_argument("resolution", choices=RESOLUTIONS)
    resolve_parser.add_argument("--date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    resolve_parser.add_argument("--time", type=time.fromisoformat, default=None, help="HH:MM")
    resolve_parser.add_argument("--description", default=None)
    resolve_parser.add_argument("--location", default=None)
    resolve_parser.add_argument(
        "--attendee",
        action="append",
        default=None,
        dest="attendees",
        help="Attendee email (repeatable).",
    )

    resolve_all_parser = subparsers.add_parser(
        "resolve-all", parents=[common], help="Resolve every conflict the same way."
    )
    resolve_all_parser.add_argument("resolution", choices=("keep_platform", "keep_google"))

    subparsers.add_parser(
        "disconnect", parents=[common], help="Disconnect Google Calendar."
    )

    return parser


def build_orchestrator(settings: Settings) -> SyncOrchestrator:
    """Wire the CLI's file-backed adapters into an orchestrator.

    Raises:
        StoreError: If the record store file cannot be read.
    """
    store = JsonFileStore(settings.store_path, settings.user_id)
    credentials = FileCredentialProvider(settings.token_path, settings.client_secrets_path)
    calendar = GoogleCalendarClient(credentials, settings.timezone, settings.lookahead_days)
    return SyncOrchestrator(
        calendar,
        store,
        store,
        credentials,
        settings,
        ignore_list=IgnoreList(settings.ignore_list_path),
        notifier=ConsoleNotifier(),
    )


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def _handle_connect(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    return 0 if orchestrator.connect().success else 1


def _handle_events(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    orchestrator.load_all()
    pending = orchestrator.pending_events
    shown = orchestrator.events if args.all else pending
    print_report(
        format_events(
            shown,
            orchestrator.timezone,
            pending_ids={e.id for e in pending},
            series_map=orchestrator.recurring_series,
        )
    )
    return 0


def _handle_sessions(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    sessions = orchestrator.load_sessions()
    if args.sync_type:
        sessions = [s for s in sessions if s.sync_type.value == args.sync_type]
    print_report(format_sessions(sessions))
    return 0


def _handle_import(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    orchestrator.load_all()
    if not args.series:
        result = orchestrator.batch_import_events(args.event_ids, editable=args.editable)
        print_report(format_batch_result("import", result))
        return 1 if result.has_failures else 0

    exit_code = 0
    for event_id in args.event_ids:
        event = orchestrator.find_event(event_id)
        if event is None:
            print(f"Error: Event not in the current listing: {event_id}", file=sys.stderr)
            exit_code = 1
            continue
        result = orchestrator.import_series(event)
        print_report(format_batch_result(f"series {event_id}", result))
        if result.has_failures:
            exit_code = 1
    return exit_code


def _handle_mirror(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    if args.session:
        orchestrator.load_sessions()
        outcomes = [orchestrator.mirror_session(session_id) for session_id in args.ids]
        return 0 if all(o.success for o in outcomes) else 1

    orchestrator.load_all()
    exit_code = 0
    for event_id in args.ids:
        event = orchestrator.find_event(event_id)
        if event is None:
            print(f"Error: Event not in the current listing: {event_id}", file=sys.stderr)
            exit_code = 1
            continue
        if not orchestrator.mirror_event(event).success:
            exit_code = 1
    return exit_code


def _handle_send(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    orchestrator.load_sessions()
    result = orchestrator.batch_send_sessions(args.session_ids)
    print_report(format_batch_result("send", result))
    return 1 if result.has_failures else 0


def _handle_ignore(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    result = orchestrator.batch_ignore_events(args.event_ids)
    print_report(format_batch_result("ignore", result))
    return 0


def _handle_mark_clients(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    orchestrator.load_events()
    event = orchestrator.find_event(args.event_id)
    if event is None:
        print(f"Error: Event not in the current listing: {args.event_id}", file=sys.stderr)
        return 1
    created = orchestrator.mark_attendees_as_clients(event)
    print(f"Clients created: {created}")
    return 0


def _handle_cancellations(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    cancelled = orchestrator.check_cancelled_events()
    print(f"Sessions cancelled: {cancelled}")
    return 0


def _handle_reconcile(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    result = orchestrator.sync_mirrored_sessions()
    print_report(format_reconcile_result(result))
    return 1 if result.failed else 0


def _handle_push(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    if args.session_id:
        return 0 if orchestrator.update_external_event(args.session_id).success else 1
    pushed = orchestrator.push_mirrored_changes()
    print(f"Events updated: {pushed}")
    return 0


def _handle_conflicts(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    orchestrator.load_sessions()
    orchestrator.load_events()
    print_report(format_conflicts(orchestrator.detect_conflicts()))
    return 0


def _handle_resolve(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    orchestrator.load_all()
    merged = None
    if args.resolution == "merge":
        merged = MergedFields(
            session_date=args.date,
            session_time=args.time,
            description=args.description,
            location=args.location,
            attendees=args.attendees,
        )
    resolved = orchestrator.resolve_conflict(args.conflict_id, args.resolution, merged)
    return 0 if resolved else 1


def _handle_resolve_all(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    orchestrator.load_all()
    resolved = orchestrator.resolve_all_conflicts(args.resolution)
    print(f"Conflicts resolved: {resolved}")
    return 0


def _handle_disconnect(orchestrator: SyncOrchestrator, args: argparse.Namespace) -> int:
    orchestrator.disconnect()
    return 0


_HANDLERS: dict[str, Callable[[SyncOrchestrator, argparse.Namespace], int]] = {
    "connect": _handle_connect,
    "events": _handle_events,
    "sessions": _handle_sessions,
    "import": _handle_import,
    "mirror": _handle_mirror,
    "send": _handle_send,
    "ignore": _handle_ignore,
    "mark-clients": _handle_mark_clients,
    "cancellations": _handle_cancellations,
    "reconcile": _handle_reconcile,
    "push": _handle_push,
    "conflicts": _handle_conflicts,
    "resolve": _handle_resolve,
    "resolve-all": _handle_resolve_all,
    "disconnect": _handle_disconnect,
}


def main(argv: list[str] | None = None) -> int:
    """Run the practice-sync CLI.

    Args:
        argv: Command-line arguments.  Defaults to ``sys.argv[1:]``
            when ``None`` (the normal case).

    Returns:
        Exit code: ``0`` on success, ``1`` on error.
    """
    parser = build_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    # --- Load configuration -------------------------------------------
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    # --- Configure logging --------------------------------------------
    try:
        setup_logging("DEBUG" if args.verbose else settings.log_level)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    # --- Dispatch to subcommand handler -------------------------------
    try:
        orchestrator = build_orchestrator(settings)
        return _HANDLERS[args.command](orchestrator, args)
    except (CalendarAPIError, SyncError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
