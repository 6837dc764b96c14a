"""Grouping of recurring-event instances into series.

The event listing is requested with ``singleEvents=True``, so a weekly
appointment shows up as one event per week, each pointing back at its
series master through ``recurringEventId``.  :func:`group_recurring_events`
rebuilds the series from a flat listing; it is a pure function and is
simply re-run after every fetch.

Key functions:
    :func:`group_recurring_events` -- ``{master_id: RecurringSeries}``.
    :func:`get_series_instances` -- the members of an event's series.
    :func:`sort_events` -- chronological ordering used throughout.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from practice_sync.models.calendar import ExternalEvent, RecurringSeries

logger = logging.getLogger(__name__)


def sort_events(events: Iterable[ExternalEvent]) -> list[ExternalEvent]:
    """Return *events* ordered by start time (ties broken by ID).

    Events without a parsable start are pushed to the end.
    """
    return sorted(events, key=lambda e: (e.start.sort_key(), e.id))


def group_recurring_events(events: Iterable[ExternalEvent]) -> dict[str, RecurringSeries]:
    """Group the recurring members of *events* by series master ID.

    An event belongs to a series iff it has a master ID: its
    ``recurringEventId`` when it is an expanded instance, or its own ID when
    it is itself a master carrying a recurrence rule.  Other events are left
    out.  Instances of each series are sorted by start time.

    Args:
        events: Flat event listing.

    Returns:
        Mapping from master ID to :class:`RecurringSeries`.
    """
    series_map: dict[str, RecurringSeries] = {}

    for event in events:
        master_id = event.recurring_master_id
        if master_id is None:
            continue

        series = series_map.get(master_id)
        if series is None:
            series = RecurringSeries(master_id=master_id, summary=event.summary)
            series_map[master_id] = series
        series.instances.append(event)

    for series in series_map.values():
        series.instances = sort_events(series.instances)
        series.recurrence_rule = next(
            (e.recurrence[0] for e in series.instances if e.recurrence),
            None,
        )

    logger.debug(
        "Grouped %d recurring series from the listing",
        len(series_map),
    )
    return series_map


def get_series_instances(
    event: ExternalEvent,
    series_map: dict[str, RecurringSeries],
) -> list[ExternalEvent]:
    """Return every member of *event*'s series, or ``[event]``.

    Args:
        event: Any event from the listing.
        series_map: Output of :func:`group_recurring_events` for the same
            listing.
    """
    master_id = event.recurring_master_id
    if master_id is None:
        return [event]

    series = series_map.get(master_id)
    if series is None or not series.instances:
        return [event]
    return list(series.instances)
