"""Structural validation, filtering and current/upcoming partitioning of events."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from ..calendar.datetime_utils import to_utc
from ..calendar.exceptions import ValidationFailure
from ..calendar.feed_parser import clean_text
from ..calendar.models import CalendarEvent
from ..core.config_manager import (
    MAX_EVENT_DESCRIPTION_LENGTH,
    MAX_EVENT_LOCATION_LENGTH,
    MAX_EVENT_TITLE_LENGTH,
)

logger = logging.getLogger(__name__)

# Titles used for placeholder blocks rather than real programming
DEFAULT_ADMIN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bbusy\b", re.IGNORECASE),
    re.compile(r"\bblocked\b", re.IGNORECASE),
    re.compile(r"\bon\s+hold\b", re.IGNORECASE),
    re.compile(r"^\s*private\s*$", re.IGNORECASE),
)


@dataclass
class ValidationResult:
    """Outcome of validating one event."""

    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class Partition:
    """Events split around an instant."""

    current: list[CalendarEvent] = field(default_factory=list)
    upcoming: list[CalendarEvent] = field(default_factory=list)


class EventValidator:
    """Enforces event invariants and drops events that fail them."""

    def __init__(self, admin_patterns: Iterable[re.Pattern[str]] = DEFAULT_ADMIN_PATTERNS) -> None:
        self.admin_patterns = tuple(admin_patterns)
        self.last_rejections: list[ValidationFailure] = []

    def validate(self, event: CalendarEvent) -> ValidationResult:
        """Check a single event against every structural rule.

        All failing rules are reported, not just the first one.
        """
        errors: list[str] = []
        title = (event.title or "").strip()

        if not title:
            errors.append("Event title is required")
        elif self.is_administrative(title):
            errors.append(f"Administrative placeholder title: {title!r}")

        if event.start is None or event.end is None:
            errors.append("Event start and end times are required")
        elif event.start.tzinfo is None or event.end.tzinfo is None:
            errors.append("Event times must be timezone-aware")
        elif event.start >= event.end:
            errors.append("End time must be after start time")

        if event.audience is None:
            errors.append("Event has no audience classification")

        return ValidationResult(valid=not errors, errors=errors)

    def is_administrative(self, title: str) -> bool:
        return any(pattern.search(title) for pattern in self.admin_patterns)

    def filter_events(self, events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
        """Keep valid, non-cancelled events in their input order.

        Rejections from the most recent call are available in ``last_rejections``.
        """
        kept: list[CalendarEvent] = []
        rejections: list[ValidationFailure] = []

        for event in events:
            result = self.validate(event)
            errors = list(result.errors)
            if event.is_cancelled:
                errors.append("Event is cancelled")

            if errors:
                failure = ValidationFailure(f"Rejected event {event.id!r}", errors=errors)
                rejections.append(failure)
                logger.info(
                    "Filtered event %s (%r starting %s): %s",
                    event.id,
                    event.title,
                    event.start.isoformat() if event.start else None,
                    "; ".join(errors),
                )
                continue
            kept.append(event)

        self.last_rejections = rejections
        logger.debug("Validation kept %d events, rejected %d", len(kept), len(rejections))
        return kept

    def partition(self, events: Sequence[CalendarEvent], instant: datetime) -> Partition:
        """Split events into those in progress at ``instant`` and those still ahead.

        An event is current when ``start <= instant < end``; the end is
        exclusive. Upcoming events are sorted by start, ties keeping input order.
        """
        instant = to_utc(instant)
        current = [e for e in events if e.start <= instant < e.end]
        upcoming = sorted((e for e in events if e.start > instant), key=lambda e: e.start)
        return Partition(current=current, upcoming=upcoming)

    def sanitize_event(self, event: CalendarEvent) -> CalendarEvent:
        """Return a copy with text fields cleaned and length-bounded."""
        return event.model_copy(
            update={
                "title": clean_text(event.title, MAX_EVENT_TITLE_LENGTH),
                "description": clean_text(event.description, MAX_EVENT_DESCRIPTION_LENGTH),
                "location": clean_text(event.location, MAX_EVENT_LOCATION_LENGTH),
            }
        )
