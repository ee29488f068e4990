"""Read-only queries over a list of events.

All comparisons are made on UTC instants. None of these functions mutate or
reorder their input.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime

from ..calendar.datetime_utils import to_utc
from ..calendar.models import CalendarEvent


def sort_by_start(events: Sequence[CalendarEvent]) -> list[CalendarEvent]:
    """Stable sort by start time, returning a new list."""
    return sorted(events, key=lambda e: e.start)


def events_on_date(events: Sequence[CalendarEvent], day: date) -> list[CalendarEvent]:
    """Events whose start falls on ``day`` (UTC calendar date)."""
    if isinstance(day, datetime):
        day = to_utc(day).date()
    return [e for e in events if to_utc(e.start).date() == day]


def upcoming_events(
    events: Sequence[CalendarEvent], instant: datetime, count: int = 5
) -> list[CalendarEvent]:
    """The next ``count`` events starting strictly after ``instant``."""
    if count <= 0:
        return []
    instant = to_utc(instant)
    return sort_by_start([e for e in events if e.start > instant])[:count]


def group_by_audience(events: Sequence[CalendarEvent]) -> dict[str, list[CalendarEvent]]:
    """Group events by audience value, keeping input order within each group."""
    groups: dict[str, list[CalendarEvent]] = {}
    for event in events:
        groups.setdefault(event.audience_name, []).append(event)
    return groups


def find_overlaps(events: Sequence[CalendarEvent]) -> list[tuple[CalendarEvent, CalendarEvent]]:
    """Pairs of events whose time ranges intersect.

    Ranges are half-open, so an event ending exactly when another starts does
    not overlap it.
    """
    ordered = sort_by_start(events)
    overlaps: list[tuple[CalendarEvent, CalendarEvent]] = []
    for i, first in enumerate(ordered):
        for second in ordered[i + 1 :]:
            if second.start >= first.end:
                break
            overlaps.append((first, second))
    return overlaps


def format_event_duration(event: CalendarEvent) -> str:
    """Short duration label, e.g. ``45 min``, ``2h`` or ``1h 30m``."""
    minutes = int((event.end - event.start).total_seconds() // 60)
    if minutes < 60:
        return f"{minutes} min"
    hours, remaining = divmod(minutes, 60)
    return f"{hours}h {remaining}m" if remaining else f"{hours}h"


def is_event_happening(event: CalendarEvent, instant: datetime) -> bool:
    """True when ``start <= instant < end``."""
    instant = to_utc(instant)
    return event.start <= instant < event.end
