"""HTTP client for downloading the upstream calendar feed."""

import logging
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from ..core.config_manager import DEFAULT_FEED_URL_TEMPLATE, get_config_value
from ..core.http_client import (
    build_timeout,
    get_shared_client,
    record_client_error,
    record_client_success,
)
from .exceptions import FetchFailed, TransportError

logger = logging.getLogger(__name__)

# Leading bytes of an error body kept for log messages
ERROR_BODY_PREVIEW_CHARS = 200


class FeedFetcher:
    """Async HTTP client for downloading the raw calendar document.

    The fetcher performs exactly one GET per call. Retry policy belongs to the
    caller.
    """

    def __init__(self, settings: Any = None, client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize feed fetcher.

        Args:
            settings: Application settings (``EngineSettings`` or any object/dict
                exposing ``feed_url_template``, ``calendar_id`` and ``request_timeout``)
            client: Optional HTTP client; the shared pooled client is used otherwise
        """
        self.settings = settings
        self.client = client
        self._client_id = "feed_fetcher"
        self._use_shared_client = client is None

    def build_url(self, feed_id: Optional[str] = None) -> str:
        """Fold a feed id into the configured URL template.

        Raises:
            FetchFailed: If no feed id is available
        """
        template = get_config_value(self.settings, "feed_url_template", None) or DEFAULT_FEED_URL_TEMPLATE
        effective = (feed_id or get_config_value(self.settings, "calendar_id", None) or "").strip()
        if not effective:
            raise FetchFailed("No calendar id configured")
        return template.format(feed_id=effective)

    def _validate_url(self, url: str) -> bool:
        """Only plain http(s) URLs with a hostname are fetched."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            logger.debug("Blocked non-HTTP(S) URL: %s", url)
            return False
        if not parsed.hostname:
            logger.debug("Blocked URL with missing hostname: %s", url)
            return False
        return True

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is not None:
            return self.client
        return await get_shared_client(self._client_id)

    async def fetch(self, feed_id: Optional[str] = None) -> str:
        """Download the raw calendar document.

        Args:
            feed_id: Opaque calendar id; defaults to ``settings.calendar_id``

        Returns:
            The response body as text

        Raises:
            FetchFailed: Non-2xx response, empty body, or unusable URL
            TransportError: The request could not complete
        """
        url = self.build_url(feed_id)
        if not self._validate_url(url):
            raise FetchFailed("URL blocked: only http(s) feeds are supported", url=url)

        timeout = build_timeout(get_config_value(self.settings, "request_timeout", 30))
        client = await self._get_client()

        logger.debug("Fetching calendar feed from %s", url)
        try:
            response = await client.get(url, timeout=timeout, follow_redirects=True)
        except httpx.TimeoutException as e:
            await self._record(success=False)
            logger.error("Timeout fetching feed from %s: %s", url, e)
            raise TransportError(f"Request timeout: {e}", url=url) from e
        except httpx.RequestError as e:
            await self._record(success=False)
            logger.error("Transport error fetching feed from %s: %s", url, e)
            raise TransportError(f"Network error: {e}", url=url) from e

        if not response.is_success:
            await self._record(success=False)
            preview = response.text[:ERROR_BODY_PREVIEW_CHARS]
            logger.error(
                "Calendar fetch failed with status %d from %s: %r",
                response.status_code,
                url,
                preview,
            )
            raise FetchFailed(
                f"Calendar fetch failed with status: {response.status_code}",
                status_code=response.status_code,
                url=url,
            )

        await self._record(success=True)
        content = response.text
        if not content or not content.strip():
            logger.error("Empty calendar content received from %s", url)
            raise FetchFailed(
                "Empty content received", status_code=response.status_code, url=url
            )

        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.warning("Unexpected content type: %s", content_type)
        if "BEGIN:VCALENDAR" not in content:
            logger.error("Content from %s does not appear to be iCalendar data", url)
            raise FetchFailed(
                "Response is not iCalendar data", status_code=response.status_code, url=url
            )

        logger.info("Fetched %d bytes of calendar data", len(content))
        return content

    async def _record(self, success: bool) -> None:
        if not self._use_shared_client:
            return
        if success:
            await record_client_success(self._client_id)
        else:
            await record_client_error(self._client_id)
