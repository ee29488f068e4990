"""Shared fixtures for eventboard tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional

import pytest

from eventboard.calendar.exceptions import TransportError
from eventboard.calendar.models import AudienceGroup, CalendarEvent, EventStatus
from eventboard.core.config_manager import EngineSettings
from eventboard.domain.audience_classifier import ADULTS, SCHOOL_AGE
from tests.helpers import FakeFetcher, FixedClock, at


def pytest_configure(config: Any) -> None:
    """Register eventboard markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests wiring several components together")
    config.addinivalue_line("markers", "smoke: Basic smoke tests")


@pytest.fixture
def make_event() -> Callable[..., CalendarEvent]:
    """Factory for classified events; defaults to a one-hour adults event at 10:00."""

    def _make(
        title: str = "Laser Cutter Basics",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        audience: Optional[AudienceGroup] = ADULTS,
        status: EventStatus = EventStatus.CONFIRMED,
        **fields: Any,
    ) -> CalendarEvent:
        start = start or at(10)
        end = end or start + timedelta(hours=1)
        return CalendarEvent(
            id=fields.pop("id", f"{title}-{start.isoformat()}"),
            title=title,
            start=start,
            end=end,
            audience=audience,
            status=status,
            **fields,
        )

    return _make


@pytest.fixture
def day_events(make_event: Callable[..., CalendarEvent]) -> list[CalendarEvent]:
    """A(10:00-12:00, adults) and B(14:00-16:00, school-age)."""
    return [
        make_event("Woodshop Open Hours", at(10), at(12), audience=ADULTS, id="event-a"),
        make_event("Kids Electronics", at(14), at(16), audience=SCHOOL_AGE, id="event-b"),
    ]


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings(
        calendar_id="makerspace@example.org",
        cache_ttl_seconds=1800,
        lookahead_seconds=7200,
        failure_backoff_seconds=60,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(at(11))


@pytest.fixture
def failing_fetcher() -> FakeFetcher:
    return FakeFetcher(error=TransportError("Network error: connection refused"))


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_day() -> str:
    """Two events on 2025-01-15: an adults workshop and a school-age class."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Makerspace//Events//EN
X-WR-CALNAME:Makerspace Events
BEGIN:VEVENT
UID:event-a@makerspace.test
DTSTART:20250115T100000Z
DTEND:20250115T120000Z
SUMMARY:Woodshop Open Hours - Adults (19 and up)
LOCATION:Woodshop
DESCRIPTION:Bring your own project. Register at https://makerspace.test/register/woodshop.
STATUS:CONFIRMED
END:VEVENT
BEGIN:VEVENT
UID:event-b@makerspace.test
DTSTART:20250115T140000Z
DTEND:20250115T160000Z
SUMMARY:Kids Electronics
LOCATION:Lab
DESCRIPTION:Elementary kids (6-11 years) build a robot
STATUS:CONFIRMED
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def sample_ics_mixed() -> str:
    """Valid, administrative, cancelled and malformed records in one document."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Makerspace//Events//EN
BEGIN:VEVENT
UID:good@makerspace.test
DTSTART:20250115T100000Z
DTEND:20250115T120000Z
SUMMARY:Family Friendly Craft Night
DESCRIPTION:All ages craft session
END:VEVENT
BEGIN:VEVENT
UID:busy@makerspace.test
DTSTART:20250115T130000Z
DTEND:20250115T140000Z
SUMMARY:Busy - Private
END:VEVENT
BEGIN:VEVENT
UID:cancelled@makerspace.test
DTSTART:20250115T150000Z
DTEND:20250115T160000Z
SUMMARY:3D Printing 101
STATUS:CANCELLED
END:VEVENT
BEGIN:VEVENT
UID:no-title@makerspace.test
DTSTART:20250115T170000Z
DTEND:20250115T180000Z
END:VEVENT
BEGIN:VEVENT
UID:backwards@makerspace.test
DTSTART:20250115T200000Z
DTEND:20250115T190000Z
SUMMARY:Backwards Event
END:VEVENT
END:VCALENDAR
"""
