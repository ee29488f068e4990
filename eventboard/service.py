"""Service facade used by the display, the admin tools and the periodic refresh job."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional, Union

from .calendar.datetime_utils import now_utc
from .core.config_manager import ConfigManager, EngineSettings
from .core.health_tracker import HealthStatus
from .core.state_store import JsonStateFile, OverrideState, TimeOverrideStore
from .domain.display_status import DisplayStatus, degraded_status
from .domain.status_cache import InMemoryCacheStore, JsonFileCacheStore, StatusCache
from .domain.status_engine import RefreshReport, StatusEngine

logger = logging.getLogger(__name__)


class DisplayService:
    """Owns the time override and forwards queries to the status engine."""

    def __init__(self, engine: StatusEngine, overrides: Optional[TimeOverrideStore] = None) -> None:
        self.engine = engine
        self.overrides = overrides or TimeOverrideStore()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[EngineSettings] = None,
        clock: Callable[[], datetime] = now_utc,
        **engine_kwargs: Any,
    ) -> DisplayService:
        """Wire an engine and stores from settings.

        With ``settings.state_file`` set, the cache slot and the override share
        that JSON file; otherwise both live in memory.
        """
        settings = settings or ConfigManager().build_settings()
        ttl = timedelta(seconds=settings.cache_ttl_seconds)

        if settings.state_file:
            state_file = JsonStateFile(Path(settings.state_file).expanduser())
            cache = StatusCache(JsonFileCacheStore(state_file), ttl=ttl)
            overrides = TimeOverrideStore(state_file)
            logger.debug("Using state file %s", state_file.path)
        else:
            cache = StatusCache(InMemoryCacheStore(), ttl=ttl)
            overrides = TimeOverrideStore()

        engine = StatusEngine(settings=settings, cache=cache, clock=clock, **engine_kwargs)
        return cls(engine, overrides)

    async def get_status(self) -> DisplayStatus:
        """Current display status, at the override instant when one is set."""
        try:
            override = self.overrides.get()
        except Exception as e:
            logger.exception("Failed to read time override")
            return degraded_status(self.engine.clock(), f"Failed to read time override: {e}")
        return await self.engine.get_display_status(at=override)

    def set_time_override(self, value: Union[str, datetime, None]) -> OverrideState:
        """Set the override from an ISO string or datetime; ``None`` or ``""`` clears it.

        Raises:
            InvalidOverrideError: If the value is not a valid date-time
        """
        return self.overrides.set(value)

    def clear_time_override(self) -> OverrideState:
        return self.overrides.clear()

    def get_time_override(self) -> OverrideState:
        return self.overrides.state()

    async def refresh(self) -> RefreshReport:
        return await self.engine.refresh()

    def cache_stats(self) -> dict[str, Any]:
        return self.engine.cache_stats()

    def clear_cache(self) -> None:
        self.engine.clear_cache()

    def health(self) -> HealthStatus:
        return self.engine.health_status()
