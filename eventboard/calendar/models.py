"""Data models for calendar feed processing."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class EventStatus(str, Enum):
    """Event status values taken from the feed's STATUS property."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    TENTATIVE = "tentative"


class AudienceGroupName(str, Enum):
    """Closed set of visitor populations an event can target."""

    ADULTS = "adults"
    SCHOOL_AGE = "school-age"
    TEENS = "teens"
    ALL_AGES = "all-ages"
    UNKNOWN = "unknown"


class AudienceGroup(BaseModel):
    """Audience category with its display metadata."""

    group: AudienceGroupName = Field(..., description="Audience category")
    label: str = Field(..., description="Human-readable label")
    glyph: str = Field(..., description="Emoji shown next to the label")
    color: str = Field(..., description="CSS color used for theming")

    model_config = ConfigDict(use_enum_values=True, frozen=True)


class CalendarEvent(BaseModel):
    """A normalized calendar event.

    ``start`` and ``end`` are absolute (timezone-aware, UTC) instants.
    ``audience`` is only ``None`` between parsing and classification.
    """

    id: str = Field(..., description="Feed UID or derived identifier")
    title: str = Field(..., description="Event title")
    description: str = Field(default="", description="Event description")
    location: str = Field(default="", description="Event location")

    start: datetime = Field(..., description="Event start (UTC)")
    end: datetime = Field(..., description="Event end (UTC)")

    status: EventStatus = Field(default=EventStatus.TENTATIVE, description="Event status")
    is_all_day: bool = Field(default=False, description="All-day event flag")
    is_recurring: bool = Field(default=False, description="Recurring event flag")

    categories: list[str] = Field(default_factory=list, description="Free-text categories")
    registration_url: Optional[str] = Field(default=None, description="Sign-up link")
    audience: Optional[AudienceGroup] = Field(default=None, description="Target audience")

    model_config = ConfigDict(use_enum_values=True, frozen=True)

    @property
    def is_cancelled(self) -> bool:
        """Check if the feed marked this event cancelled."""
        return self.status == EventStatus.CANCELLED

    @property
    def audience_name(self) -> str:
        """Audience group value, or ``unknown`` when unclassified."""
        if self.audience is None:
            return AudienceGroupName.UNKNOWN.value
        return str(self.audience.group)

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()


class SkippedRecord(BaseModel):
    """A feed record that did not become an event, with the reason why."""

    index: int = Field(..., description="Zero-based record position in the feed")
    uid: Optional[str] = Field(default=None, description="UID if one was readable")
    reason: str = Field(..., description="Why the record was dropped")
    fragment: str = Field(default="", description="Leading raw text of the record")


class ParseResult(BaseModel):
    """Result of parsing one calendar document."""

    events: list[CalendarEvent] = Field(default_factory=list)
    skipped: list[SkippedRecord] = Field(default_factory=list)
    total_records: int = 0
    calendar_name: Optional[str] = None

    @property
    def event_count(self) -> int:
        """Number of events produced."""
        return len(self.events)
