"""
Error types raised by the fetch pipeline and the sitemap resolver.
"""

from typing import Optional


class ScanError(Exception):
    """Base class for scanner failures."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class InvalidUrlError(ScanError):
    """Input URL is missing or not an absolute http(s) URL."""


class FetchError(ScanError):
    """A network fetch failed. Transient: retried by the fetch queue."""


class NetworkError(FetchError):
    """Connection, DNS or non-2xx HTTP failure."""

    def __init__(self, message: str, url: Optional[str] = None, http_code: Optional[int] = None):
        super().__init__(message, url)
        self.http_code = http_code


class RateLimitedError(FetchError):
    """Server answered HTTP 429."""

    http_code = 429

    def __init__(self, message: str = "Rate limited", url: Optional[str] = None, retry_after: Optional[float] = None):
        super().__init__(message, url)
        self.retry_after = retry_after


class FetchTimeoutError(FetchError):
    """A single fetch exceeded its timeout."""


class MalformedContentError(ScanError):
    """Content was fetched but yielded no sitemap entries."""


class ScanTimeoutError(ScanError):
    """The overall resolution deadline was exceeded."""
