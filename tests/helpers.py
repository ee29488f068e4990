"""Test doubles and time helpers shared across eventboard tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

BASE_DAY = datetime(2025, 1, 15, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0) -> datetime:
    """An instant on the shared test day."""
    return BASE_DAY.replace(hour=hour, minute=minute)


class FixedClock:
    """Settable clock injected into the engine."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeFetcher:
    """Stand-in for FeedFetcher that counts calls and returns canned content."""

    def __init__(self, content: str = "", error: Optional[Exception] = None) -> None:
        self.content = content
        self.error = error
        self.calls = 0

    async def fetch(self, feed_id: Optional[str] = None) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.content
