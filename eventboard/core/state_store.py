"""JSON-backed state file with atomic writes, and the time override store.

The state file is a single JSON object with one section per owner
(``"cache"``, ``"override"``). Writers replace the whole file through a
temporary file in the same directory followed by ``os.replace``, so readers
never observe a partially written document.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from ..calendar.datetime_utils import parse_instant, serialize_datetime_optional, to_utc
from ..calendar.exceptions import InvalidOverrideError

logger = logging.getLogger(__name__)

# One lock per resolved path so that sections sharing a file do not race
_path_locks: dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _path_locks_guard:
        return _path_locks.setdefault(key, threading.Lock())


class JsonStateFile:
    """A JSON object on disk, read and written one section at a time."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._lock = _lock_for(self._path)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.debug("Could not ensure directory for state file: %s", self._path.parent)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read state file %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("State file %s does not hold a JSON object; ignoring", self._path)
            return {}
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8", suffix=".tmp"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(data, tf, ensure_ascii=False)
                tf.flush()
                with contextlib.suppress(OSError):
                    os.fsync(tf.fileno())
            os.replace(tmp_path, self._path)
        except OSError:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise

    def read_section(self, name: str) -> Any:
        """Return the stored value of a section, or None."""
        with self._lock:
            return self._read_all().get(name)

    def write_section(self, name: str, value: Any) -> None:
        """Replace one section; ``None`` removes it."""
        with self._lock:
            data = self._read_all()
            if value is None:
                data.pop(name, None)
            else:
                data[name] = value
            self._write_all(data)
        logger.debug("Persisted state section %r to %s", name, self._path)


@dataclass(frozen=True)
class OverrideState:
    """Current time override, as reported to operators."""

    override_time: Optional[datetime]
    message: str

    @property
    def is_active(self) -> bool:
        return self.override_time is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "override_time": serialize_datetime_optional(self.override_time),
            "is_active": self.is_active,
            "message": self.message,
        }


def coerce_override(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Turn an operator-supplied override into an aware UTC instant.

    Raises:
        InvalidOverrideError: If a string is not a valid ISO 8601 date-time
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return parse_instant(value)
        except (ValueError, OverflowError) as e:
            raise InvalidOverrideError(f"Invalid override time {value!r}: {e}") from e
    raise InvalidOverrideError(f"Unsupported override value type: {type(value).__name__}")


class TimeOverrideStore:
    """Holds the optional operator time override, in memory or in a state file."""

    SECTION = "override"

    def __init__(self, state_file: Optional[JsonStateFile] = None) -> None:
        self._state_file = state_file
        self._value: Optional[datetime] = None

    def get(self) -> Optional[datetime]:
        if self._state_file is None:
            return self._value
        raw = self._state_file.read_section(self.SECTION)
        if not raw:
            return None
        try:
            return parse_instant(raw)
        except ValueError:
            logger.warning("Ignoring unreadable stored override %r", raw)
            return None

    def set(self, value: Union[str, datetime, None]) -> OverrideState:
        """Set or clear the override.

        Raises:
            InvalidOverrideError: If the value cannot be parsed
        """
        instant = coerce_override(value)
        if self._state_file is None:
            self._value = instant
        else:
            self._state_file.write_section(self.SECTION, serialize_datetime_optional(instant))

        if instant is None:
            logger.info("Time override cleared")
        else:
            logger.info("Time override set to %s", instant.isoformat())
        return self.state()

    def clear(self) -> OverrideState:
        return self.set(None)

    def state(self) -> OverrideState:
        instant = self.get()
        if instant is None:
            return OverrideState(override_time=None, message="Using real time")
        return OverrideState(
            override_time=instant,
            message=f"Time override set to {serialize_datetime_optional(instant)}",
        )
