"""
Async HTTP client with user-agent rotation, gzip support and
throttling through the shared fetch queue.
"""

import asyncio
import gzip
import random
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Optional, Dict
import aiohttp
from fake_useragent import UserAgent

from sitemap_scanner.config import ScannerConfig, get_config
from sitemap_scanner.crawler.fetch_queue import FetchQueue
from sitemap_scanner.errors import FetchTimeoutError, NetworkError, RateLimitedError
from sitemap_scanner.sitemap.normalizer import normalize_url
from sitemap_scanner.logging_config import get_logger

logger = get_logger("crawler.http_client")

XML_ACCEPT = "text/xml,application/xml,application/xhtml+xml,text/html;q=0.9,*/*;q=0.8"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"

FALLBACK_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
]


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After header as seconds; accepts delta-seconds or an HTTP date."""
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class HttpClient:
    """
    HTTP client for sitemap and page fetches.
    Features:
    - Browser-like user-agent rotation
    - gzip sitemaps
    - Every request goes through the shared FetchQueue
      (concurrency cap, pacing, retry/backoff, per-request timeout)
    """

    def __init__(
        self,
        queue: FetchQueue,
        session: Optional[aiohttp.ClientSession] = None,
        config: Optional[ScannerConfig] = None
    ):
        self.queue = queue
        self._session = session
        self._own_session = session is None
        self.config = config or get_config()

        # User agent rotation
        try:
            self.ua = UserAgent(browsers=["Chrome", "Firefox", "Edge"])
        except Exception:
            # Fallback if fake-useragent fails
            self.ua = None

    async def __aenter__(self):
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=max(self.config.scan_timeout, self.config.sitemap_timeout))
            connector = aiohttp.TCPConnector(limit=50, limit_per_host=10)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                connector=connector
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._own_session and self._session:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("Session not initialized. Use async context manager.")
        return self._session

    def _get_random_user_agent(self) -> str:
        """Get a random user agent string."""
        if self.ua:
            try:
                return self.ua.random
            except Exception:
                pass
        return random.choice(FALLBACK_USER_AGENTS)

    def _get_headers(self, accept: str) -> Dict[str, str]:
        """Get request headers with random user agent."""
        return {
            "User-Agent": self._get_random_user_agent(),
            "Accept": accept,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
        }

    async def fetch(
        self,
        url: str,
        timeout: Optional[float] = None,
        accept: str = XML_ACCEPT
    ) -> str:
        """
        Fetch a URL through the fetch queue.

        Args:
            url: Absolute URL
            timeout: Per-attempt timeout in seconds
            accept: Accept header value

        Returns:
            Decoded response body

        Raises:
            FetchError: once the queue gives up retrying
        """
        return await self.queue.submit(
            normalize_url(url),
            lambda: self._get(url, accept),
            timeout=timeout,
        )

    async def fetch_page(self, url: str) -> str:
        return await self.fetch(url, timeout=self.config.page_timeout, accept=HTML_ACCEPT)

    async def _get(self, url: str, accept: str) -> str:
        """Single request attempt."""
        logger.debug("Fetching", extra={"url": url})

        try:
            async with self.session.get(url, headers=self._get_headers(accept)) as response:
                http_code = response.status

                if http_code == 429:
                    raise RateLimitedError(
                        "Rate limited by server",
                        url=url,
                        retry_after=parse_retry_after(response.headers.get("Retry-After")),
                    )

                if not (200 <= http_code < 300):
                    raise NetworkError(f"HTTP {http_code}", url=url, http_code=http_code)

                content = await response.read()
                content_type = response.headers.get("Content-Type", "")

        except asyncio.TimeoutError as e:
            raise FetchTimeoutError("Request timed out", url=url) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Request failed: {e}", url=url) from e

        # Handle gzip compressed sitemaps (.xml.gz is served without Content-Encoding)
        if url.endswith(".gz") or "gzip" in content_type:
            try:
                content = gzip.decompress(content)
            except (gzip.BadGzipFile, EOFError, OSError):
                pass  # Not actually gzipped

        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            text = content.decode("latin-1")

        logger.debug("Fetched successfully", extra={"url": url, "http_code": http_code})
        return text
