"""TTL-guarded cache slot for the validated event list.

The slot holds a frozen ``CacheEntry`` that is replaced wholesale on every
write. Expired entries are kept for stale fallback: ``get`` only returns fresh
entries while ``peek`` returns whatever was stored last.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

from ..calendar.datetime_utils import parse_instant, serialize_datetime_utc, to_utc
from ..calendar.models import CalendarEvent
from ..core.state_store import JsonStateFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """An immutable snapshot of the event list and its validity window."""

    events: tuple[CalendarEvent, ...]
    fetched_at: datetime
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return to_utc(now) < self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "events": [event.model_dump(mode="json") for event in self.events],
            "fetched_at": serialize_datetime_utc(self.fetched_at),
            "expires_at": serialize_datetime_utc(self.expires_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        return cls(
            events=tuple(CalendarEvent.model_validate(item) for item in data.get("events", [])),
            fetched_at=parse_instant(data["fetched_at"]),
            expires_at=parse_instant(data["expires_at"]),
        )


class CacheStore(Protocol):
    """Backing storage for the single cache slot."""

    def load(self) -> Optional[CacheEntry]:
        ...

    def save(self, entry: CacheEntry) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemoryCacheStore:
    """Process-local cache slot."""

    def __init__(self) -> None:
        self._entry: Optional[CacheEntry] = None

    def load(self) -> Optional[CacheEntry]:
        return self._entry

    def save(self, entry: CacheEntry) -> None:
        self._entry = entry

    def clear(self) -> None:
        self._entry = None


class JsonFileCacheStore:
    """Cache slot persisted in the ``cache`` section of a JSON state file."""

    SECTION = "cache"

    def __init__(self, state_file: JsonStateFile) -> None:
        self._state_file = state_file

    def load(self) -> Optional[CacheEntry]:
        raw = self._state_file.read_section(self.SECTION)
        if not raw:
            return None
        try:
            return CacheEntry.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Discarding unreadable cache entry in %s: %s", self._state_file.path, exc)
            return None

    def save(self, entry: CacheEntry) -> None:
        self._state_file.write_section(self.SECTION, entry.to_dict())

    def clear(self) -> None:
        self._state_file.write_section(self.SECTION, None)


class StatusCache:
    """Owns the cache slot and applies the TTL."""

    def __init__(self, store: Optional[CacheStore] = None, ttl: timedelta = timedelta(minutes=30)) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Cache TTL must be positive")
        self.store: CacheStore = store if store is not None else InMemoryCacheStore()
        self.ttl = ttl
        # Set when the store rejected a write; memory wins until a write succeeds
        self._entry: Optional[CacheEntry] = None
        self._detached = False

    def _current(self) -> Optional[CacheEntry]:
        """Read the slot through the store so writes by other processes are seen."""
        if self._detached:
            return self._entry
        return self.store.load()

    def get(self, now: datetime) -> Optional[CacheEntry]:
        """Return the entry if it is still fresh at ``now``."""
        entry = self._current()
        if entry is None:
            logger.debug("Cache empty")
            return None
        if not entry.is_fresh(now):
            logger.info("Cache expired at %s, will fetch fresh data", entry.expires_at.isoformat())
            return None
        return entry

    def peek(self) -> Optional[CacheEntry]:
        """Return the last stored entry regardless of expiry."""
        return self._current()

    def set(self, events: Iterable[CalendarEvent], now: datetime) -> CacheEntry:
        """Replace the slot with a new entry valid for one TTL from ``now``."""
        fetched_at = to_utc(now)
        entry = CacheEntry(events=tuple(events), fetched_at=fetched_at, expires_at=fetched_at + self.ttl)
        try:
            self.store.save(entry)
        except OSError:
            logger.exception("Failed to persist cache entry; keeping it in memory only")
            self._detached = True
        else:
            self._detached = False
        self._entry = entry
        logger.info(
            "Cached %d events until %s", len(entry.events), entry.expires_at.isoformat()
        )
        return entry

    def clear(self) -> None:
        self._entry = None
        try:
            self.store.clear()
        except OSError:
            logger.exception("Failed to clear persisted cache entry")
            self._detached = True
        else:
            self._detached = False
        logger.info("Cache cleared")

    def stats(self, now: datetime) -> dict[str, Any]:
        """Describe the slot for operators."""
        entry = self._current()
        if entry is None:
            return {
                "is_cached": False,
                "event_count": 0,
                "cached_at": None,
                "expires_at": None,
                "time_remaining": None,
            }

        now = to_utc(now)
        fresh = entry.is_fresh(now)
        minutes_remaining = int((entry.expires_at - now).total_seconds() // 60)
        return {
            "is_cached": fresh,
            "event_count": len(entry.events),
            "cached_at": serialize_datetime_utc(entry.fetched_at),
            "expires_at": serialize_datetime_utc(entry.expires_at),
            "time_remaining": f"{minutes_remaining} minutes" if fresh else "expired",
        }
