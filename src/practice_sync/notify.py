"""User-visible notifications.

Every outcome the user should see (success, failure, reconnect prompt) goes
through a single ``notify(title, message, severity)`` call.  The engine
treats it as fire-and-forget.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Literal, Protocol, TextIO

logger = logging.getLogger(__name__)

NotifySeverity = Literal["success", "info", "warning", "error"]

_LOG_LEVELS: dict[str, int] = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_CONSOLE_MARKERS: dict[str, str] = {
    "success": "[OK]",
    "info": "[..]",
    "warning": "[!!]",
    "error": "[XX]",
}


class NotificationSink(Protocol):
    """Receiver of user-visible outcomes."""

    def notify(self, title: str, message: str, severity: NotifySeverity = "info") -> None: ...


class LoggingNotifier:
    """Sink that writes notifications to the ``practice_sync.notify`` logger."""

    def notify(self, title: str, message: str, severity: NotifySeverity = "info") -> None:
        logger.log(_LOG_LEVELS.get(severity, logging.INFO), "%s: %s", title, message)


class ConsoleNotifier:
    """Sink that prints one marked line per notification (used by the CLI).

    Args:
        stream: Output stream; defaults to ``sys.stdout``.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def notify(self, title: str, message: str, severity: NotifySeverity = "info") -> None:
        stream = self._stream or sys.stdout
        marker = _CONSOLE_MARKERS.get(severity, "[..]")
        stream.write(f"{marker} {title}: {message}\n")


@dataclass
class Notification:
    """A recorded notification."""

    title: str
    message: str
    severity: str


@dataclass
class RecordingNotifier:
    """Sink that keeps every notification in memory, for embedding and tests."""

    notifications: list[Notification] = field(default_factory=list)

    def notify(self, title: str, message: str, severity: NotifySeverity = "info") -> None:
        self.notifications.append(Notification(title, message, severity))

    @property
    def titles(self) -> list[str]:
        return [n.title for n in self.notifications]

    def by_severity(self, severity: str) -> list[Notification]:
        return [n for n in self.notifications if n.severity == severity]
