"""Exception hierarchy for feed retrieval and event processing errors.

Fetch errors are raised by the fetcher and handled by the status engine.
Parse and validation failures are never raised across component boundaries:
they exist so that skip and rejection reasons carry a typed cause.
"""

from typing import Optional


class EventboardError(Exception):
    """Base exception for all eventboard errors."""


class FeedError(EventboardError):
    """Base exception for upstream feed retrieval errors.

    Both subclasses are recoverable: the engine falls back to the last cached
    event list, or answers with a degraded ``closed`` status.
    """


class FetchFailed(FeedError):
    """The upstream server answered, but not with a usable calendar document.

    Raised when:
    - The response status is not 2xx
    - The response body is empty
    - The response body is not an iCalendar document
    - The feed URL is not an http(s) URL
    """

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class TransportError(FeedError):
    """The request could not complete (timeout, DNS failure, refused connection)."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class ParseFailure(EventboardError):
    """A single calendar record could not be turned into an event.

    Used as the cause attached to a skipped record; never propagated.
    """


class ValidationFailure(EventboardError):
    """An event violated one or more structural invariants.

    Used to describe rejections recorded by the filter; never propagated.
    """

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class InvalidOverrideError(EventboardError):
    """A time override value could not be parsed as an absolute instant."""
