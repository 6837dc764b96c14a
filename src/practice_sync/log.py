"""Logging setup for practice-sync.

All modules log through ``logging.getLogger(__name__)``; this module only
configures the root logger once for the CLI.  Output uses ISO 8601
timestamps and pipe-separated fields.  The Google client libraries are
chatty at INFO (discovery cache, OAuth local server), so they are held at
WARNING unless debug logging is requested.
"""

from __future__ import annotations

import logging
import sys

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Marks the handler installed by setup_logging so repeated calls reuse it.
_HANDLER_ATTR = "_practice_sync_log_handler"

_NOISY_LOGGERS = (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google_auth_oauthlib.flow",
    "urllib3.connectionpool",
)


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with the project formatter.

    Calling this function multiple times is safe: the existing handler is
    re-levelled instead of a second one being attached.

    Args:
        level: A standard logging level name (e.g. ``"DEBUG"``,
            ``"INFO"``, ``"WARNING"``).

    Raises:
        ValueError: If *level* is not a recognised logging level string.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level!r}")

    root = logging.getLogger()
    root.setLevel(numeric_level)

    library_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    for handler in root.handlers:
        if getattr(handler, _HANDLER_ATTR, False):
            handler.setLevel(numeric_level)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))

    setattr(handler, _HANDLER_ATTR, True)
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger (thin wrapper over :func:`logging.getLogger`)."""
    return logging.getLogger(name)
