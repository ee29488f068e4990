"""Unit tests for eventboard.calendar.datetime_utils."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from eventboard.calendar.datetime_utils import (
    month_window,
    parse_instant,
    serialize_datetime_optional,
    serialize_datetime_utc,
    to_instant,
    to_utc,
)

pytestmark = pytest.mark.unit

UTC = timezone.utc


class TestConversions:
    def test_to_utc_when_naive_then_taken_as_utc(self) -> None:
        """Test naive datetimes are treated as UTC."""
        assert to_utc(datetime(2025, 1, 15, 10)) == datetime(2025, 1, 15, 10, tzinfo=UTC)

    def test_to_utc_when_offset_then_converted(self) -> None:
        """Test offset datetimes are converted to UTC."""
        value = to_utc(datetime(2025, 1, 15, 5, tzinfo=timezone(timedelta(hours=-5))))
        assert value == datetime(2025, 1, 15, 10, tzinfo=UTC)
        assert value.tzinfo is UTC

    def test_to_instant_when_bare_date_then_midnight_all_day(self) -> None:
        """Test bare dates become midnight UTC and all-day."""
        assert to_instant(date(2025, 1, 15)) == (datetime(2025, 1, 15, tzinfo=UTC), True)

    def test_to_instant_when_datetime_then_not_all_day(self) -> None:
        """Test datetimes are not flagged all-day."""
        assert to_instant(datetime(2025, 1, 15, 10, tzinfo=UTC)) == (datetime(2025, 1, 15, 10, tzinfo=UTC), False)

    def test_to_instant_when_other_type_then_type_error(self) -> None:
        """Test unsupported values raise TypeError."""
        with pytest.raises(TypeError):
            to_instant("2025-01-15")


class TestParseAndSerialize:
    @pytest.mark.parametrize(
        "text",
        ["2025-01-15T11:00:00Z", "2025-01-15T06:00:00-05:00", "2025-01-15T11:00:00"],
    )
    def test_parse_instant_when_iso_variants_then_same_utc_instant(self, text: str) -> None:
        """Test ISO variants parse to the same instant."""
        assert parse_instant(text) == datetime(2025, 1, 15, 11, tzinfo=UTC)

    @pytest.mark.parametrize("text", ["", "   ", "noon"])
    def test_parse_instant_when_invalid_then_value_error(self, text: str) -> None:
        """Test unparseable input raises ValueError."""
        with pytest.raises(ValueError):
            parse_instant(text)

    def test_serialize_when_utc_then_z_suffix(self) -> None:
        """Test UTC serialization uses the Z suffix."""
        assert serialize_datetime_utc(datetime(2025, 1, 15, 11, tzinfo=UTC)) == "2025-01-15T11:00:00Z"
        assert serialize_datetime_optional(None) is None


class TestMonthWindow:
    def test_month_window_when_mid_month_then_whole_months(self) -> None:
        """Test window spans whole months."""
        start, end = month_window(datetime(2025, 1, 15, 11, tzinfo=UTC))
        assert start == datetime(2024, 12, 1, tzinfo=UTC)
        assert end == datetime(2025, 3, 1, tzinfo=UTC)

    def test_month_window_when_year_end_then_wraps(self) -> None:
        """Test window wraps across the year end."""
        start, end = month_window(datetime(2025, 12, 31, 23, tzinfo=UTC), months_back=0, months_ahead=1)
        assert start == datetime(2025, 12, 1, tzinfo=UTC)
        assert end == datetime(2026, 1, 1, tzinfo=UTC)
