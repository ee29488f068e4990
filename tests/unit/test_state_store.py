"""Unit tests for eventboard.core.state_store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from eventboard.calendar.exceptions import InvalidOverrideError
from eventboard.core.state_store import JsonStateFile, TimeOverrideStore, coerce_override

pytestmark = pytest.mark.unit


class TestCoerceOverride:
    def test_coerce_when_z_string_then_utc_instant(self) -> None:
        """Test Z strings become UTC instants."""
        assert coerce_override("2025-01-15T11:00:00Z") == datetime(2025, 1, 15, 11, tzinfo=timezone.utc)

    def test_coerce_when_offset_string_then_converted(self) -> None:
        """Test offset strings are converted to UTC."""
        value = coerce_override("2025-01-15T06:00:00-05:00")
        assert value == datetime(2025, 1, 15, 11, tzinfo=timezone.utc)
        assert value.utcoffset() == timedelta(0)

    def test_coerce_when_aware_datetime_then_utc(self) -> None:
        """Test aware datetimes are converted to UTC."""
        eastern = timezone(timedelta(hours=-5))
        assert coerce_override(datetime(2025, 1, 15, 6, tzinfo=eastern)) == datetime(
            2025, 1, 15, 11, tzinfo=timezone.utc
        )

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_coerce_when_empty_then_none(self, value) -> None:
        """Test empty input coerces to None."""
        assert coerce_override(value) is None

    @pytest.mark.parametrize("value", ["tomorrow", "2025-13-45T99:00:00Z", 12345])
    def test_coerce_when_invalid_then_raises(self, value) -> None:
        """Test invalid input raises."""
        with pytest.raises(InvalidOverrideError):
            coerce_override(value)


class TestTimeOverrideStore:
    def test_state_when_unset_then_real_time_message(self) -> None:
        """Test unset override reports real time."""
        state = TimeOverrideStore().state()
        assert state.is_active is False
        assert state.message == "Using real time"

    def test_set_when_valid_then_active_with_message(self) -> None:
        """Test setting a valid override activates it."""
        store = TimeOverrideStore()
        state = store.set("2025-01-15T11:00:00Z")

        assert state.is_active is True
        assert state.message == "Time override set to 2025-01-15T11:00:00Z"
        assert store.get() == datetime(2025, 1, 15, 11, tzinfo=timezone.utc)

    def test_set_when_invalid_then_previous_value_kept(self) -> None:
        """Test an invalid override keeps the previous value."""
        store = TimeOverrideStore()
        store.set("2025-01-15T11:00:00Z")
        with pytest.raises(InvalidOverrideError):
            store.set("not a time")
        assert store.get() == datetime(2025, 1, 15, 11, tzinfo=timezone.utc)

    def test_clear_when_set_then_inactive(self) -> None:
        """Test clearing deactivates the override."""
        store = TimeOverrideStore()
        store.set("2025-01-15T11:00:00Z")
        assert store.clear().is_active is False
        assert store.get() is None

    def test_set_when_file_backed_then_visible_to_new_store(self, tmp_path: Path) -> None:
        """Test file-backed overrides are visible to a new store."""
        TimeOverrideStore(JsonStateFile(tmp_path / "state.json")).set("2025-01-15T11:00:00Z")
        other = TimeOverrideStore(JsonStateFile(tmp_path / "state.json"))
        assert other.get() == datetime(2025, 1, 15, 11, tzinfo=timezone.utc)

    def test_to_dict_when_active_then_serialized(self) -> None:
        """Test active override serializes to a dict."""
        payload = TimeOverrideStore().set("2025-01-15T11:00:00Z").to_dict()
        assert payload == {
            "override_time": "2025-01-15T11:00:00Z",
            "is_active": True,
            "message": "Time override set to 2025-01-15T11:00:00Z",
        }


class TestJsonStateFile:
    def test_read_section_when_missing_file_then_none(self, tmp_path: Path) -> None:
        """Test reading from a missing file returns None."""
        assert JsonStateFile(tmp_path / "nested" / "state.json").read_section("cache") is None

    def test_write_section_when_none_then_section_removed(self, tmp_path: Path) -> None:
        """Test writing None removes the section."""
        state_file = JsonStateFile(tmp_path / "state.json")
        state_file.write_section("override", "x")
        state_file.write_section("override", None)
        assert state_file.read_section("override") is None

    def test_read_section_when_root_not_object_then_none(self, tmp_path: Path) -> None:
        """Test a non-object file root is ignored."""
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        assert JsonStateFile(path).read_section("cache") is None
