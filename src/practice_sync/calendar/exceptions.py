"""Custom exceptions and HTTP error translation for Google Calendar calls.

Defines the calendar error taxonomy and the ``@translate_http_errors``
decorator that maps ``googleapiclient`` and transport failures onto it.
Nothing is retried: every call is attempted exactly once and the caller
decides whether to try again later.

Exception hierarchy::

    CalendarAPIError            (base for all Calendar API errors)
    +-- CalendarAuthError       (401, credential rejected or missing)
    +-- CalendarNotFoundError   (404/410, event deleted upstream)
    +-- CalendarTransientError  (429, 5xx, network failures)
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httplib2
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------


class CalendarAPIError(Exception):
    """Base exception for Google Calendar API errors.

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if the
            error did not originate from an HTTP response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CalendarAuthError(CalendarAPIError):
    """Raised when the access credential is missing or rejected (HTTP 401).

    The stored credential has already been invalidated when this is raised;
    the user must reconnect.
    """

    def __init__(self, message: str = "Calendar authentication failed") -> None:
        super().__init__(message, status_code=401)


class CalendarNotFoundError(CalendarAPIError):
    """Raised when an event no longer exists (HTTP 404 or 410).

    Not a failure for the cancellation sweep: it is how deletions made in
    Google Calendar are detected.
    """

    def __init__(self, message: str = "Calendar resource not found", status_code: int = 404) -> None:
        super().__init__(message, status_code=status_code)


class CalendarTransientError(CalendarAPIError):
    """Raised for rate limiting, server errors and network failures.

    State on both sides is left unchanged; the operation may be attempted
    again later by the user.
    """


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

_NETWORK_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    TimeoutError,
    httplib2.HttpLib2Error,
)


def classify_http_error(error: HttpError) -> CalendarAPIError:
    """Map an ``HttpError`` to the appropriate calendar exception.

    Args:
        error: The ``googleapiclient.errors.HttpError`` to classify.

    Returns:
        A :class:`CalendarAPIError` subclass matching the HTTP status code.
    """
    status = int(error.resp.status)

    if status == 401:
        return CalendarAuthError(str(error))
    if status in (404, 410):
        return CalendarNotFoundError(str(error), status_code=status)
    if status == 429 or status >= 500:
        return CalendarTransientError(str(error), status_code=status)
    return CalendarAPIError(str(error), status_code=status)


def translate_http_errors(func: F) -> F:
    """Decorator that converts transport failures into calendar exceptions.

    - **HTTP 401**: calls ``self._handle_auth_expired()`` (if the instance
      has one) so the stored credential is dropped, then raises
      :class:`CalendarAuthError`.
    - **HTTP 404/410**: raises :class:`CalendarNotFoundError`.
    - **HTTP 429/5xx** and network errors (``OSError``, ``TimeoutError``,
      ``httplib2.HttpLib2Error``): raise :class:`CalendarTransientError`.
    - Other HTTP errors: raise :class:`CalendarAPIError`.

    Calendar exceptions raised inside the wrapped call pass through as-is.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)

        except CalendarAPIError:
            raise

        except HttpError as exc:
            cal_error = classify_http_error(exc)

            if isinstance(cal_error, CalendarAuthError):
                logger.warning("Access token rejected (401) in %s", func.__name__)
                instance = args[0] if args else None
                on_expired = getattr(instance, "_handle_auth_expired", None)
                if callable(on_expired):
                    on_expired()
            elif isinstance(cal_error, CalendarNotFoundError):
                logger.info("Resource not found (HTTP %s) in %s", cal_error.status_code, func.__name__)
            else:
                logger.error(
                    "Calendar API error (HTTP %s) in %s: %s",
                    cal_error.status_code,
                    func.__name__,
                    exc,
                )
            raise cal_error from exc

        except _NETWORK_ERRORS as exc:
            logger.error("Network error in %s: %s", func.__name__, exc)
            raise CalendarTransientError(f"Network error: {exc}") from exc

    return wrapper  # type: ignore[return-value]
