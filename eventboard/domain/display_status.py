"""Display status calculation.

A single source of truth for the "what is happening now, what happens next"
answer shown on the display. The calculation is a pure function of the event
list, the instant and the look-ahead horizon.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ..calendar.datetime_utils import serialize_datetime_optional, serialize_datetime_utc, to_utc
from ..calendar.models import CalendarEvent
from .event_validator import EventValidator

logger = logging.getLogger(__name__)

CLOSED_THEME = "closed"


class DisplayStatusKind(str, Enum):
    """What the display is currently showing."""

    CURRENT = "current"
    BETWEEN = "between"
    CLOSED = "closed"


class DisplayStatus(BaseModel):
    """Answer to a display status query."""

    status: DisplayStatusKind = Field(..., description="current, between or closed")
    current_event: Optional[CalendarEvent] = Field(default=None, description="Event in progress")
    next_event: Optional[CalendarEvent] = Field(default=None, description="Nearest upcoming event")
    current_time: datetime = Field(..., description="Instant the status was computed for")
    override_time: Optional[datetime] = Field(default=None, description="Applied time override")
    time_remaining: Optional[str] = Field(
        default=None, description="Time until the current event ends or the next one starts"
    )
    display_theme: str = Field(default=CLOSED_THEME, description="Salient audience or 'closed'")
    error: Optional[str] = Field(default=None, description="Set only on degraded answers")
    is_stale: bool = Field(default=False, description="Computed from an expired cache entry")

    model_config = ConfigDict(use_enum_values=True, frozen=True)

    @field_serializer("current_time")
    def _serialize_current_time(self, dt: datetime) -> str:
        return serialize_datetime_utc(dt)

    @field_serializer("override_time")
    def _serialize_override_time(self, dt: Optional[datetime]) -> Optional[str]:
        return serialize_datetime_optional(dt)


def format_time_remaining(delta: timedelta) -> str:
    """Format a duration for display.

    Examples:
        >>> format_time_remaining(timedelta(hours=2))
        '2 hours'
        >>> format_time_remaining(timedelta(minutes=90))
        '1h 30m'
        >>> format_time_remaining(timedelta(minutes=1))
        '1 minute'
    """
    if delta <= timedelta(0):
        return "0 minutes"

    minutes = int(delta.total_seconds() // 60)
    hours, remaining_minutes = divmod(minutes, 60)

    if hours > 0:
        if remaining_minutes == 0:
            return f"{hours} hour{'s' if hours != 1 else ''}"
        return f"{hours}h {remaining_minutes}m"

    return f"{minutes} minute{'s' if minutes != 1 else ''}"


def compute_display_status(
    events: Sequence[CalendarEvent],
    instant: datetime,
    lookahead: timedelta,
    override: Optional[datetime] = None,
    validator: Optional[EventValidator] = None,
) -> DisplayStatus:
    """Compute the display status at an instant.

    Args:
        events: Validated, classified events
        instant: Real current time; ignored when ``override`` is given
        lookahead: Maximum wait for an upcoming event to count as ``between``
        override: Optional instant to compute the status for instead
        validator: Validator providing the partition query

    Returns:
        ``current`` when an event is in progress (earliest-starting one wins),
        ``between`` when the next event starts within ``lookahead``, else
        ``closed``. ``next_event`` is set whenever an upcoming event exists.
    """
    validator = validator or EventValidator()
    effective = to_utc(override) if override is not None else to_utc(instant)
    partition = validator.partition(events, effective)
    next_event = partition.upcoming[0] if partition.upcoming else None

    if partition.current:
        salient = min(partition.current, key=lambda e: e.start)
        return DisplayStatus(
            status=DisplayStatusKind.CURRENT,
            current_event=salient,
            next_event=next_event,
            current_time=effective,
            override_time=effective if override is not None else None,
            time_remaining=format_time_remaining(salient.end - effective),
            display_theme=salient.audience_name,
        )

    if next_event is not None and next_event.start - effective <= lookahead:
        return DisplayStatus(
            status=DisplayStatusKind.BETWEEN,
            next_event=next_event,
            current_time=effective,
            override_time=effective if override is not None else None,
            time_remaining=format_time_remaining(next_event.start - effective),
            display_theme=next_event.audience_name,
        )

    return DisplayStatus(
        status=DisplayStatusKind.CLOSED,
        next_event=next_event,
        current_time=effective,
        override_time=effective if override is not None else None,
        display_theme=CLOSED_THEME,
    )


def degraded_status(
    instant: datetime, error: str, override: Optional[datetime] = None
) -> DisplayStatus:
    """A ``closed`` answer carrying an error, used when no event data is available."""
    effective = to_utc(override) if override is not None else to_utc(instant)
    logger.warning("Serving degraded closed status at %s: %s", effective.isoformat(), error)
    return DisplayStatus(
        status=DisplayStatusKind.CLOSED,
        current_time=effective,
        override_time=effective if override is not None else None,
        display_theme=CLOSED_THEME,
        error=error,
    )
