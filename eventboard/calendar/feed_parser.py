"""iCalendar feed parser.

Turns a raw calendar document into normalized ``CalendarEvent`` records:

1. Folded lines are unfolded so that no logical value spans physical lines.
2. ``BEGIN:VEVENT``/``END:VEVENT`` markers split the document into one record
   per event. Nested components (VALARM) stay inside their record.
3. Each record is decoded on its own with ``icalendar`` (escape sequences,
   typed DATE/DATE-TIME values) and assembled into an event. The document's
   VTIMEZONE blocks are decoded alongside every record so custom TZID
   references resolve to their declared offsets.

Every record produces either an event or a ``SkippedRecord`` carrying the
reason; one malformed record never aborts the whole parse.
"""

import logging
import re
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

from icalendar import Calendar

from ..core.config_manager import (
    MAX_EVENT_DESCRIPTION_LENGTH,
    MAX_EVENT_LOCATION_LENGTH,
    MAX_EVENT_TITLE_LENGTH,
)
from .datetime_utils import to_instant, to_utc
from .exceptions import ParseFailure
from .models import CalendarEvent, EventStatus, ParseResult, SkippedRecord

logger = logging.getLogger(__name__)

# Leading characters of a raw record kept for diagnostics
FRAGMENT_CHARS = 120

_MARKUP_CHARS = re.compile(r"[<>]")
_WHITESPACE = re.compile(r"\s+")
_LINE_BREAK = re.compile(r"\r\n|\n|\r")
_URL_PATTERN = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_URL_TRAILING_PUNCTUATION = ".,;:!?)]}"

# (pattern, category) pairs applied to the description
_KEYWORD_CATEGORIES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(?:arts?|crafts?|crafting)\b", re.IGNORECASE), "Arts"),
    (re.compile(r"\b(?:tech|technology|3d|robot\w*|electronics)\b", re.IGNORECASE), "Technology"),
)

_CALENDAR_WRAPPER_HEAD = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//eventboard//feed parser//EN\r\n"
_CALENDAR_WRAPPER_TAIL = "\r\nEND:VCALENDAR\r\n"


def clean_text(text: Any, max_length: int) -> str:
    """Normalize a free-text field for display.

    Removes non-printable characters and ``<``/``>``, collapses whitespace,
    trims, and truncates to ``max_length`` characters.
    """
    if not text:
        return ""
    value = "".join(ch for ch in str(text) if ch.isprintable() or ch.isspace())
    value = _MARKUP_CHARS.sub("", value)
    value = _WHITESPACE.sub(" ", value).strip()
    return value[:max_length].rstrip()


def unfold_lines(raw_text: str) -> list[str]:
    """Unfold RFC 5545 content lines.

    A physical line beginning with a space or tab continues the previous
    logical line; the single leading whitespace character is removed.
    """
    logical: list[str] = []
    for physical in _LINE_BREAK.split(raw_text):
        if physical[:1] in (" ", "\t") and logical:
            logical[-1] += physical[1:]
        else:
            logical.append(physical)
    return logical


@dataclass
class RawRecord:
    """Unfolded content lines of one VEVENT, markers included."""

    index: int
    lines: list[str] = field(default_factory=list)

    @property
    def fragment(self) -> str:
        return " | ".join(self.lines)[:FRAGMENT_CHARS]

    @property
    def uid(self) -> Optional[str]:
        for line in self.lines:
            name, _, value = line.partition(":")
            if name.split(";", 1)[0].strip().upper() == "UID":
                return value.strip() or None
        return None


@dataclass
class ScanResult:
    """Records found in a document plus records abandoned while scanning."""

    records: list[RawRecord] = field(default_factory=list)
    abandoned: list[SkippedRecord] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    timezones: list[str] = field(default_factory=list)


def _marker(line: str) -> tuple[str, str]:
    """Return (BEGIN|END, COMPONENT) for a marker line, or ("", "") otherwise."""
    name, sep, value = line.partition(":")
    keyword = name.strip().upper()
    if sep and keyword in ("BEGIN", "END"):
        return keyword, value.strip().upper()
    return "", ""


def scan_records(lines: list[str]) -> ScanResult:
    """Split unfolded lines into one record per VEVENT.

    A new ``BEGIN:VEVENT`` always resets accumulation: an open record is
    abandoned. A record still open at end of input is abandoned too.
    """
    result = ScanResult()
    current: Optional[RawRecord] = None
    depth = 0
    index = 0
    timezone_lines: Optional[list[str]] = None
    timezone_depth = 0

    def _abandon(record: RawRecord, reason: str) -> None:
        result.abandoned.append(
            SkippedRecord(index=record.index, uid=record.uid, reason=reason, fragment=record.fragment)
        )

    for line in lines:
        if not line.strip():
            continue
        keyword, component = _marker(line)

        if keyword == "BEGIN" and component == "VEVENT":
            if current is not None:
                _abandon(current, "Record not terminated before next BEGIN:VEVENT")
            if timezone_lines is not None:
                logger.warning("Dropping unterminated VTIMEZONE block: %r", timezone_lines[0][:FRAGMENT_CHARS])
                timezone_lines = None
            current = RawRecord(index=index, lines=[line])
            index += 1
            depth = 0
            continue

        if current is None and timezone_lines is not None:
            timezone_lines.append(line)
            if keyword == "BEGIN":
                timezone_depth += 1
            elif keyword == "END" and timezone_depth > 0:
                timezone_depth -= 1
            elif keyword == "END" and component == "VTIMEZONE":
                result.timezones.append("\r\n".join(timezone_lines))
                timezone_lines = None
            continue

        if current is None and keyword == "BEGIN" and component == "VTIMEZONE":
            timezone_lines = [line]
            timezone_depth = 0
            continue

        if current is None:
            # Calendar-level properties outside any event
            name, sep, value = line.partition(":")
            prop = name.split(";", 1)[0].strip().upper()
            if sep and prop in ("X-WR-CALNAME", "X-WR-TIMEZONE", "PRODID", "VERSION"):
                result.metadata[prop] = value.strip()
            continue

        if keyword == "END" and component == "VEVENT" and depth == 0:
            current.lines.append(line)
            result.records.append(current)
            current = None
            continue

        if keyword == "BEGIN":
            depth += 1
        elif keyword == "END" and depth > 0:
            depth -= 1
        elif ":" not in line:
            logger.debug("Ignoring malformed content line in record %d: %r", current.index, line[:FRAGMENT_CHARS])
            continue

        current.lines.append(line)

    if current is not None:
        _abandon(current, "Record not terminated before end of document")

    return result


def _first(prop: Any) -> Any:
    """Properties that appear more than once come back as lists; use the first."""
    if isinstance(prop, list):
        return prop[0] if prop else None
    return prop


def _text(prop: Any) -> str:
    value = _first(prop)
    return "" if value is None else str(value)


def _temporal(prop: Any) -> Optional[Union[date, datetime, timedelta]]:
    """Extract the decoded value of a DATE/DATE-TIME/DURATION property."""
    value = _first(prop)
    if value is None:
        return None
    decoded = getattr(value, "dt", value)
    if isinstance(decoded, (date, datetime, timedelta)):
        return decoded
    return None


def _require_zone(prop: Any, value: Any) -> None:
    """Reject a TZID-qualified value that icalendar could not localize.

    Raises:
        ParseFailure: If the value carries a TZID but came back naive
    """
    if not isinstance(value, datetime) or value.tzinfo is not None:
        return
    tzid = getattr(_first(prop), "params", {}).get("TZID")
    if tzid:
        raise ParseFailure(f"Unknown time zone {tzid!r}")


class FeedParser:
    """Parser for raw iCalendar documents into CalendarEvent records."""

    def parse(
        self,
        raw_text: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> ParseResult:
        """Parse a calendar document.

        Args:
            raw_text: The raw iCalendar text
            window_start: Keep only events starting at or after this instant
            window_end: Keep only events starting before this instant

        Returns:
            ParseResult with events in document order and the skipped records
        """
        if not raw_text or not raw_text.strip():
            logger.warning("Empty calendar document; nothing to parse")
            return ParseResult()

        window_start = to_utc(window_start) if window_start is not None else None
        window_end = to_utc(window_end) if window_end is not None else None

        scan = scan_records(unfold_lines(raw_text))
        events: list[CalendarEvent] = []
        skipped: list[SkippedRecord] = list(scan.abandoned)

        for record in scan.records:
            outcome = self.parse_record(record, scan.timezones)
            if isinstance(outcome, SkippedRecord):
                skipped.append(outcome)
                continue
            if not self._in_window(outcome, window_start, window_end):
                skipped.append(
                    SkippedRecord(
                        index=record.index,
                        uid=outcome.id,
                        reason="Outside date window",
                        fragment=record.fragment,
                    )
                )
                continue
            events.append(outcome)

        for item in skipped:
            if item.reason == "Outside date window":
                continue
            logger.warning(
                "Skipped calendar record %d (uid=%s): %s | %r",
                item.index,
                item.uid,
                item.reason,
                item.fragment,
            )

        total = len(scan.records) + len(scan.abandoned)
        logger.info(
            "Parsed %d events from %d records (%d skipped)", len(events), total, len(skipped)
        )
        return ParseResult(
            events=events,
            skipped=sorted(skipped, key=lambda s: s.index),
            total_records=total,
            calendar_name=scan.metadata.get("X-WR-CALNAME"),
        )

    def parse_record(
        self, record: RawRecord, timezones: Sequence[str] = ()
    ) -> Union[CalendarEvent, SkippedRecord]:
        """Turn one raw record into an event or a skip reason.

        Args:
            record: The raw VEVENT lines
            timezones: VTIMEZONE blocks of the document, needed to resolve
                custom TZID references
        """
        try:
            return self._build_event(record, timezones)
        except ParseFailure as e:
            return SkippedRecord(
                index=record.index, uid=record.uid, reason=str(e), fragment=record.fragment
            )
        except Exception as e:
            logger.debug("icalendar could not decode record %d", record.index, exc_info=True)
            return SkippedRecord(
                index=record.index,
                uid=record.uid,
                reason=f"Unreadable record: {e}",
                fragment=record.fragment,
            )

    def _decode_component(self, record: RawRecord, timezones: Sequence[str] = ()) -> Any:
        # VTIMEZONE definitions must precede the event that references them
        body = "\r\n".join([*timezones, *record.lines])
        calendar = Calendar.from_ical(_CALENDAR_WRAPPER_HEAD + body + _CALENDAR_WRAPPER_TAIL)
        for component in calendar.walk("VEVENT"):
            return component
        raise ParseFailure("Record contains no VEVENT")

    def _build_event(self, record: RawRecord, timezones: Sequence[str] = ()) -> CalendarEvent:
        component = self._decode_component(record, timezones)

        title = clean_text(_text(component.get("SUMMARY")), MAX_EVENT_TITLE_LENGTH)
        if not title:
            raise ParseFailure("Missing title")

        start_value = _temporal(component.get("DTSTART"))
        if start_value is None or isinstance(start_value, timedelta):
            raise ParseFailure("Missing or unreadable DTSTART")
        _require_zone(component.get("DTSTART"), start_value)
        start, is_all_day = to_instant(start_value)
        end = self._resolve_end(component, start, is_all_day)
        if start >= end:
            raise ParseFailure("End time must be after start time")

        raw_description = _text(component.get("DESCRIPTION"))
        uid = _text(component.get("UID")).strip() or self._derive_id(record)

        return CalendarEvent(
            id=uid,
            title=title,
            description=clean_text(raw_description, MAX_EVENT_DESCRIPTION_LENGTH),
            location=clean_text(_text(component.get("LOCATION")), MAX_EVENT_LOCATION_LENGTH),
            start=start,
            end=end,
            status=self._parse_status(component.get("STATUS")),
            is_all_day=is_all_day,
            is_recurring=component.get("RRULE") is not None
            or component.get("RECURRENCE-ID") is not None,
            categories=self._extract_categories(component.get("CATEGORIES"), raw_description),
            registration_url=self._extract_registration_url(raw_description),
        )

    def _resolve_end(self, component: Any, start: datetime, is_all_day: bool) -> datetime:
        end_value = _temporal(component.get("DTEND"))
        if isinstance(end_value, (date, datetime)):
            _require_zone(component.get("DTEND"), end_value)
            end, _ = to_instant(end_value)
            return end

        duration = _temporal(component.get("DURATION"))
        if isinstance(duration, timedelta):
            return start + duration

        if is_all_day:
            return start + timedelta(days=1)
        raise ParseFailure("Missing or unreadable DTEND")

    def _parse_status(self, status_prop: Any) -> EventStatus:
        """Map STATUS to EventStatus; absent or unknown values are tentative."""
        raw = _text(status_prop).strip().lower()
        try:
            return EventStatus(raw)
        except ValueError:
            if raw:
                logger.debug("Unknown STATUS %r, treating as tentative", raw)
            return EventStatus.TENTATIVE

    def _extract_categories(self, categories_prop: Any, description: str) -> list[str]:
        categories: list[str] = []
        props = categories_prop if isinstance(categories_prop, list) else [categories_prop]
        for prop in props:
            if prop is None:
                continue
            values = getattr(prop, "cats", None)
            if values is None:
                values = str(prop).split(",")
            for value in values:
                name = clean_text(value, MAX_EVENT_LOCATION_LENGTH)
                if name and name not in categories:
                    categories.append(name)

        for pattern, name in _KEYWORD_CATEGORIES:
            if name not in categories and pattern.search(description or ""):
                categories.append(name)
        return categories

    def _extract_registration_url(self, description: str) -> Optional[str]:
        match = _URL_PATTERN.search(description or "")
        if match is None:
            return None
        return match.group(0).rstrip(_URL_TRAILING_PUNCTUATION)

    def _derive_id(self, record: RawRecord) -> str:
        """Stable id for records without a UID, so re-parsing yields equal events."""
        return uuid.uuid5(uuid.NAMESPACE_URL, "\n".join(record.lines)).hex

    def _in_window(
        self,
        event: CalendarEvent,
        window_start: Optional[datetime],
        window_end: Optional[datetime],
    ) -> bool:
        if window_start is not None and event.start < window_start:
            return False
        if window_end is not None and event.start >= window_end:
            return False
        return True
