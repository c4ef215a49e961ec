"""Exception types raised by upstream providers."""

from __future__ import annotations


class FetchError(Exception):
    """Base class for failures talking to an upstream service."""

    def __init__(self, message: str, *, url: str | None = None):
        super().__init__(message)
        self.url = url


class FetchTimeoutError(FetchError, TimeoutError):
    """An attempt exceeded its time budget and was cancelled."""


class NetworkError(FetchError):
    """The request never produced a response (connection reset, DNS, ...)."""


class HttpError(FetchError):
    """The upstream answered with an error status."""

    def __init__(self, status: int, *, url: str | None = None, body: str = ""):
        super().__init__(f"HTTP {status} from {url or 'upstream'}", url=url)
        self.status = status
        self.body = body[:500]

    @property
    def retryable(self) -> bool:
        return self.status >= 500 or self.status == 429


class UpstreamFormatError(ValueError):
    """A provider returned a payload with an unexpected shape."""


class BaselineError(LookupError):
    """The structured provider could not produce a baseline view."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status
