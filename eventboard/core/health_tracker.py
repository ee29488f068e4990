"""Health tracking for the refresh cycle."""

from __future__ import annotations

import os
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from ..calendar.datetime_utils import serialize_datetime_optional, serialize_datetime_utc, to_utc


@dataclass
class HealthStatus:
    """Health status information for the engine."""

    status: str  # "ok", "degraded", or "critical"
    server_time_iso: str
    uptime_seconds: int
    pid: int
    event_count: int
    refresh_attempts: int
    refresh_successes: int
    refresh_failures: int
    last_refresh_attempt_iso: Optional[str]
    last_refresh_success_iso: Optional[str]
    last_refresh_failure_iso: Optional[str]
    last_refresh_success_age_seconds: Optional[int]
    last_error: Optional[str]
    audience_breakdown: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class HealthTracker:
    """Records refresh outcomes and reduces them to an overall status."""

    def __init__(self) -> None:
        """Initialize health tracker with default values."""
        self._start_time: float = time.time()
        self._refresh_attempts: int = 0
        self._refresh_successes: int = 0
        self._refresh_failures: int = 0
        self._last_refresh_attempt: Optional[datetime] = None
        self._last_refresh_success: Optional[datetime] = None
        self._last_refresh_failure: Optional[datetime] = None
        self._last_outcome_ok: Optional[bool] = None
        self._last_error: Optional[str] = None
        self._current_event_count: int = 0
        self._audience_breakdown: dict[str, int] = {}

    def record_refresh_attempt(self, now: datetime) -> None:
        """Record that a refresh attempt was made."""
        self._refresh_attempts += 1
        self._last_refresh_attempt = to_utc(now)

    def record_refresh_success(
        self, now: datetime, event_count: int, breakdown: Optional[dict[str, int]] = None
    ) -> None:
        """Record a successful refresh.

        Args:
            now: Completion time
            event_count: Number of events stored by the refresh
            breakdown: Events per audience group
        """
        self._refresh_successes += 1
        self._last_refresh_success = to_utc(now)
        self._last_outcome_ok = True
        self._current_event_count = event_count
        if breakdown is not None:
            self._audience_breakdown = dict(breakdown)

    def record_cached_entry(
        self, fetched_at: datetime, event_count: int, breakdown: Optional[dict[str, int]] = None
    ) -> None:
        """Adopt a persisted cache entry written by an earlier or parallel process.

        The entry counts as the last successful refresh when it is newer than
        any success seen here. Attempt and success counters are left alone.

        Args:
            fetched_at: When the entry was stored
            event_count: Number of events in the entry
            breakdown: Events per audience group
        """
        fetched_at = to_utc(fetched_at)
        if self._last_refresh_success is not None and fetched_at <= self._last_refresh_success:
            return
        self._last_refresh_success = fetched_at
        if self._last_refresh_failure is None or self._last_refresh_failure < fetched_at:
            self._last_outcome_ok = True
        self._current_event_count = event_count
        if breakdown is not None:
            self._audience_breakdown = dict(breakdown)

    def record_refresh_failure(self, now: datetime, error: str) -> None:
        """Record a failed refresh and its error message."""
        self._refresh_failures += 1
        self._last_refresh_failure = to_utc(now)
        self._last_outcome_ok = False
        self._last_error = error

    def get_uptime_seconds(self) -> int:
        return int(time.time() - self._start_time)

    def get_last_refresh_age_seconds(self, now: datetime) -> Optional[int]:
        """Seconds since the last successful refresh, or None if never refreshed."""
        if self._last_refresh_success is None:
            return None
        return int((to_utc(now) - self._last_refresh_success).total_seconds())

    def determine_overall_status(self, now: datetime, ttl: timedelta) -> str:
        """Determine overall health status.

        Returns:
            ``critical`` when refreshes have failed and none ever succeeded,
            ``ok`` when the last success is younger than ``ttl`` and no failure
            followed it, ``degraded`` otherwise
        """
        if self._last_refresh_success is None:
            return "critical" if self._refresh_failures > 0 else "degraded"

        if not self._last_outcome_ok:
            return "degraded"

        if to_utc(now) - self._last_refresh_success >= ttl:
            return "degraded"

        return "ok"

    def get_health_status(self, now: datetime, ttl: timedelta) -> HealthStatus:
        """Get comprehensive health status."""
        return HealthStatus(
            status=self.determine_overall_status(now, ttl),
            server_time_iso=serialize_datetime_utc(now),
            uptime_seconds=self.get_uptime_seconds(),
            pid=os.getpid(),
            event_count=self._current_event_count,
            refresh_attempts=self._refresh_attempts,
            refresh_successes=self._refresh_successes,
            refresh_failures=self._refresh_failures,
            last_refresh_attempt_iso=serialize_datetime_optional(self._last_refresh_attempt),
            last_refresh_success_iso=serialize_datetime_optional(self._last_refresh_success),
            last_refresh_failure_iso=serialize_datetime_optional(self._last_refresh_failure),
            last_refresh_success_age_seconds=self.get_last_refresh_age_seconds(now),
            last_error=self._last_error,
            audience_breakdown=dict(self._audience_breakdown),
        )
