"""Status engine: answers display status queries from a TTL-guarded event list.

On a cache hit the answer is computed from the cached events. On a miss the
full fetch -> parse -> classify -> filter pipeline runs once; concurrent
misses await the same in-flight refresh. When a refresh fails the engine
answers from the last stored entry (``is_stale=True``) or, with nothing
stored, with a degraded ``closed`` status. Upstream is not contacted again
until ``failure_backoff_seconds`` have passed since the failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, Field, field_serializer

from ..calendar.datetime_utils import month_window, now_utc, serialize_datetime_utc, to_utc
from ..calendar.feed_fetcher import FeedFetcher
from ..calendar.feed_parser import FeedParser
from ..core.config_manager import EngineSettings
from ..core.health_tracker import HealthStatus, HealthTracker
from .audience_classifier import AudienceClassifier
from .display_status import DisplayStatus, compute_display_status, degraded_status
from .event_validator import EventValidator
from .pipeline import ProcessingContext
from .pipeline_stages import create_feed_pipeline
from .status_cache import StatusCache

logger = logging.getLogger(__name__)


class RefreshReport(BaseModel):
    """Outcome of one run of the refresh pipeline."""

    success: bool = Field(..., description="Events were fetched and cached")
    events_processed: int = Field(default=0, description="Events stored in the cache")
    audience_breakdown: dict[str, int] = Field(default_factory=dict)
    skipped: int = Field(default=0, description="Feed records that did not parse")
    rejected: int = Field(default=0, description="Events dropped by validation")
    duration_ms: int = Field(default=0, description="Wall time of the refresh")
    timestamp: datetime = Field(..., description="Instant the refresh ran for")
    errors: list[str] = Field(default_factory=list)

    @field_serializer("timestamp")
    def _serialize_timestamp(self, dt: datetime) -> str:
        return serialize_datetime_utc(dt)


class StatusEngine:
    """Computes display status, refreshing the cached event list on demand."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        fetcher: Optional[FeedFetcher] = None,
        parser: Optional[FeedParser] = None,
        classifier: Optional[AudienceClassifier] = None,
        validator: Optional[EventValidator] = None,
        cache: Optional[StatusCache] = None,
        clock: Callable[[], datetime] = now_utc,
        health: Optional[HealthTracker] = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.fetcher = fetcher or FeedFetcher(self.settings)
        self.parser = parser or FeedParser()
        self.classifier = classifier or AudienceClassifier()
        self.validator = validator or EventValidator()
        self.cache = cache or StatusCache(ttl=timedelta(seconds=self.settings.cache_ttl_seconds))
        self.clock = clock
        self.health = health or HealthTracker()

        self.pipeline = create_feed_pipeline(self.fetcher, self.parser, self.classifier, self.validator)
        self._inflight: Optional[asyncio.Task[RefreshReport]] = None
        self._last_failure_at: Optional[datetime] = None
        self._last_error: Optional[str] = None

    @property
    def lookahead(self) -> timedelta:
        return timedelta(seconds=self.settings.lookahead_seconds)

    @property
    def failure_backoff(self) -> timedelta:
        return timedelta(seconds=self.settings.failure_backoff_seconds)

    def _now(self) -> datetime:
        return to_utc(self.clock())

    async def get_display_status(self, at: Optional[datetime] = None) -> DisplayStatus:
        """Answer "what is happening now, and what happens next?".

        Args:
            at: Optional override instant to compute the answer for

        Returns:
            The display status. Never raises: failures produce a stale or
            degraded answer.
        """
        now = self._now()
        try:
            entry = self.cache.get(now)
            if entry is not None:
                logger.debug("Cache hit: %d events", len(entry.events))
                return self._compute(entry.events, now, at)

            if self._in_backoff(now):
                logger.debug(
                    "Refresh backoff active until %s", (self._last_failure_at + self.failure_backoff).isoformat()
                )
                return self._fallback(now, at, self._last_error or "Calendar refresh failed")

            report = await self._refresh_shared(now)
            if report.success:
                entry = self.cache.peek()
                if entry is not None:
                    return self._compute(entry.events, now, at)
            return self._fallback(now, at, "; ".join(report.errors) or "Calendar refresh failed")
        except Exception as e:
            logger.exception("Display status computation failed at %s", now.isoformat())
            return degraded_status(now, f"Status computation failed: {e}", override=at)

    async def refresh(self, now: Optional[datetime] = None) -> RefreshReport:
        """Run the pipeline and replace the cache entry; safe to call repeatedly."""
        return await self._refresh_shared(to_utc(now) if now is not None else self._now())

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.stats(self._now())

    def clear_cache(self) -> None:
        self.cache.clear()

    def health_status(self) -> HealthStatus:
        """Health of the refresh cycle, including refreshes persisted by other processes."""
        entry = self.cache.peek()
        if entry is not None:
            self.health.record_cached_entry(
                entry.fetched_at, len(entry.events), self.classifier.breakdown(entry.events)
            )
        return self.health.get_health_status(self._now(), self.cache.ttl)

    def _compute(self, events: Any, now: datetime, at: Optional[datetime]) -> DisplayStatus:
        return compute_display_status(events, now, self.lookahead, override=at, validator=self.validator)

    def _fallback(self, now: datetime, at: Optional[datetime], error: str) -> DisplayStatus:
        stale = self.cache.peek()
        if stale is None:
            return degraded_status(now, error, override=at)
        logger.warning(
            "Serving %d stale events cached at %s: %s", len(stale.events), stale.fetched_at.isoformat(), error
        )
        status = self._compute(stale.events, now, at)
        return status.model_copy(update={"is_stale": True, "error": error})

    def _in_backoff(self, now: datetime) -> bool:
        if self._last_failure_at is None:
            return False
        return now - self._last_failure_at < self.failure_backoff

    async def _refresh_shared(self, now: datetime) -> RefreshReport:
        """Start a refresh, or join the one already running."""
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._run_refresh(now))
        else:
            logger.debug("Joining in-flight calendar refresh")
        return await asyncio.shield(self._inflight)

    async def _run_refresh(self, now: datetime) -> RefreshReport:
        started = time.perf_counter()
        self.health.record_refresh_attempt(now)
        window_start, window_end = month_window(
            now, self.settings.window_months_back, self.settings.window_months_ahead
        )
        context = ProcessingContext(
            now=now,
            window_start=window_start,
            window_end=window_end,
            feed_id=self.settings.calendar_id,
        )
        logger.info(
            "Refreshing calendar for window %s to %s", window_start.date().isoformat(), window_end.date().isoformat()
        )

        try:
            result = await self.pipeline.process(context)
        except Exception as e:
            logger.exception("Calendar refresh pipeline raised")
            result = None
            errors = [f"Refresh failed: {e}"]
        else:
            errors = list(result.errors)

        duration_ms = int((time.perf_counter() - started) * 1000)

        if result is None or not result.success:
            message = "; ".join(errors) or "Calendar refresh failed"
            self._last_failure_at = now
            self._last_error = message
            self.health.record_refresh_failure(now, message)
            logger.error("Calendar refresh failed at %s: %s", now.isoformat(), message)
            return RefreshReport(
                success=False,
                skipped=len(context.skipped),
                rejected=len(context.rejections),
                duration_ms=duration_ms,
                timestamp=now,
                errors=errors,
            )

        self.cache.set(result.events, now)
        breakdown = self.classifier.breakdown(result.events)
        self._last_failure_at = None
        self._last_error = None
        self.health.record_refresh_success(now, len(result.events), breakdown)
        logger.info(
            "Calendar refresh stored %d events (%d skipped, %d rejected) in %dms",
            len(result.events),
            len(context.skipped),
            len(context.rejections),
            duration_ms,
        )
        return RefreshReport(
            success=True,
            events_processed=len(result.events),
            audience_breakdown=breakdown,
            skipped=len(context.skipped),
            rejected=len(context.rejections),
            duration_ms=duration_ms,
            timestamp=now,
            errors=errors,
        )
