"""End-to-end: HTTP feed -> parser -> classifier -> cache -> display status.

Only the network is faked (``httpx.MockTransport``); every other component is
the real one.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from eventboard.calendar.feed_fetcher import FeedFetcher
from eventboard.core.config_manager import EngineSettings
from eventboard.service import DisplayService
from tests.helpers import FixedClock, at

pytestmark = pytest.mark.integration


class FeedServer:
    """MockTransport handler serving a configurable calendar body."""

    def __init__(self, body: str) -> None:
        self.body = body
        self.status_code = 200
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.body, headers={"content-type": "text/calendar"})


def _service(settings: EngineSettings, server: FeedServer, clock: FixedClock) -> DisplayService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return DisplayService.from_settings(settings, clock=clock, fetcher=FeedFetcher(settings, client=client))


@pytest.fixture
def settings(tmp_path: Path) -> EngineSettings:
    return EngineSettings(
        calendar_id="makerspace@example.org",
        feed_url_template="https://calendar.example.org/ical/{feed_id}/public/basic.ics",
        state_file=str(tmp_path / "state.json"),
    )


class TestFeedToStatus:
    @pytest.mark.asyncio
    async def test_day_walkthrough_when_time_advances_then_status_follows_schedule(
        self, settings, sample_ics_day
    ) -> None:
        """Test status follows the day schedule from a single fetch."""
        server = FeedServer(sample_ics_day)
        clock = FixedClock(at(9))
        all_day = settings.model_copy(update={"cache_ttl_seconds": 24 * 60 * 60})
        service = _service(all_day, server, clock)

        seen = []
        for hour, minute in [(9, 0), (10, 30), (12, 30), (14, 0), (16, 0)]:
            clock.now = at(hour, minute)
            status = await service.get_status()
            seen.append((status.status, status.display_theme))

        assert seen == [
            ("between", "adults"),
            ("current", "adults"),
            ("between", "school-age"),
            ("current", "school-age"),
            ("closed", "closed"),
        ]
        assert len(server.requests) == 1
        assert server.requests[0].url.host == "calendar.example.org"

    @pytest.mark.asyncio
    async def test_state_file_when_new_service_then_cache_and_override_survive(
        self, settings, sample_ics_day
    ) -> None:
        """Test cache and override survive into a new service via the state file."""
        server = FeedServer(sample_ics_day)
        clock = FixedClock(at(11))
        first = _service(settings, server, clock)
        await first.refresh()
        first.set_time_override("2025-01-15T14:30:00Z")

        server.status_code = 500
        second = _service(settings, server, clock)
        status = await second.get_status()

        assert len(server.requests) == 1
        assert status.status == "current"
        assert status.current_event.id == "event-b@makerspace.test"
        assert status.is_stale is False

    @pytest.mark.asyncio
    async def test_upstream_outage_when_cache_expired_then_stale_then_recovers(
        self, settings, sample_ics_day
    ) -> None:
        """Test outage serves stale events and recovers once upstream is back."""
        server = FeedServer(sample_ics_day)
        clock = FixedClock(at(11))
        service = _service(settings, server, clock)
        await service.get_status()

        server.status_code = 503
        clock.now = at(14, 30)
        stale = await service.get_status()

        assert stale.is_stale is True
        assert stale.status == "current"
        assert "503" in stale.error

        server.status_code = 200
        clock.advance(minutes=2)
        recovered = await service.get_status()

        assert recovered.is_stale is False
        assert recovered.error is None
        assert len(server.requests) == 3
        assert service.health().status == "ok"

    @pytest.mark.asyncio
    async def test_upstream_html_page_when_cache_expired_then_stale_and_cache_kept(
        self, settings, sample_ics_day
    ) -> None:
        """Test an HTML page from upstream keeps the cached events and serves them stale."""
        server = FeedServer(sample_ics_day)
        clock = FixedClock(at(11))
        service = _service(settings, server, clock)
        await service.get_status()
        cached = service.cache_stats()["event_count"]

        server.body = "<html><body>Sign in to continue</body></html>"
        clock.now = at(14, 30)
        status = await service.get_status()

        assert status.is_stale is True
        assert status.status == "current"
        assert status.current_event.id == "event-b@makerspace.test"
        assert "not iCalendar" in status.error
        assert cached > 0
        assert service.cache_stats()["event_count"] == cached
        assert len(server.requests) == 2

    @pytest.mark.asyncio
    async def test_refresh_when_feed_has_bad_records_then_report_counts_them(self, settings, sample_ics_mixed) -> None:
        """Test refresh report counts skipped and rejected records."""
        service = _service(settings, FeedServer(sample_ics_mixed), FixedClock(at(11)))

        report = await service.refresh()
        status = await service.get_status()

        assert report.success is True
        assert report.events_processed == 1
        assert report.skipped == 2
        assert report.rejected == 2
        assert status.status == "current"
        assert status.current_event.title == "Family Friendly Craft Night"
        assert status.display_theme == "all-ages"
