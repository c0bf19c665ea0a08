"""
Sitemap resolver.
Walks sitemap indexes recursively and collects classified leaf URLs.
"""

import asyncio
import dataclasses
from typing import TYPE_CHECKING, Iterable, List, Optional, Set
from urllib.parse import urljoin, urlsplit, urlunsplit

from sitemap_scanner.config import ScannerConfig, get_config
from sitemap_scanner.errors import (
    FetchError,
    InvalidUrlError,
    MalformedContentError,
    ScanTimeoutError,
)
from sitemap_scanner.page.extractor import PageExtractor
from sitemap_scanner.sitemap.classifier import UrlClassifier
from sitemap_scanner.sitemap.models import (
    ClassifiedUrl,
    ResolutionResult,
    ScanType,
    SitemapEntry,
    UrlType,
)
from sitemap_scanner.sitemap.normalizer import is_http_url, normalize_url
from sitemap_scanner.sitemap.parser import ParseOutcome, SitemapParser
from sitemap_scanner.logging_config import get_logger

if TYPE_CHECKING:
    from sitemap_scanner.crawler.http_client import HttpClient

logger = get_logger("sitemap.resolver")


def sitemap_location(url: str) -> str:
    """
    Point a site root at its sitemap.

    URLs whose last path segment has no file extension and that carry no
    query string get "/sitemap.xml" appended; anything else is taken to be
    a sitemap document already.
    """
    url = url.strip()
    parts = urlsplit(url)
    last_segment = parts.path.rsplit("/", 1)[-1]
    if parts.query or "." in last_segment:
        return url
    path = parts.path.rstrip("/") + "/sitemap.xml"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


class VisitedSet:
    """Normalized sitemap URLs seen during one resolve() call. Only grows."""

    def __init__(self):
        self._urls: Set[str] = set()

    def add(self, url: str) -> bool:
        """Mark url visited. Returns False if it already was."""
        key = normalize_url(url)
        if key in self._urls:
            return False
        self._urls.add(key)
        return True

    def __contains__(self, url: str) -> bool:
        return normalize_url(url) in self._urls

    def __len__(self) -> int:
        return len(self._urls)


class SitemapResolver:
    """
    Turns a root sitemap URL into a classified, deduplicated URL list.
    Handles sitemap index files recursively.
    """

    def __init__(
        self,
        client: "HttpClient",
        parser: Optional[SitemapParser] = None,
        classifier: Optional[UrlClassifier] = None,
        extractor: Optional[PageExtractor] = None,
        config: Optional[ScannerConfig] = None
    ):
        self.client = client
        self.parser = parser or SitemapParser()
        self.classifier = classifier or UrlClassifier()
        self.extractor = extractor or PageExtractor()
        self.config = config or get_config()

    async def resolve(
        self,
        url: str,
        scan_type: ScanType = ScanType.BASIC,
        timeout: Optional[float] = None
    ) -> ResolutionResult:
        """
        Resolve a sitemap or sitemap index.

        Args:
            url: Root sitemap URL
            scan_type: ADVANCED also scrapes each leaf page
            timeout: Overall deadline in seconds, defaults to scan_timeout

        Returns:
            ResolutionResult

        Raises:
            InvalidUrlError: url is not an absolute http(s) URL
            FetchError: root sitemap could not be fetched
            MalformedContentError: root sitemap had no entries
            ScanTimeoutError: deadline exceeded; no partial result
        """
        if not is_http_url(url):
            raise InvalidUrlError("URL must be an absolute http(s) URL", url=url)

        root_url = sitemap_location(url)
        if root_url != url.strip():
            logger.info(f"Using sitemap location {root_url}", extra={"url": url})

        budget = timeout if timeout is not None else self.config.scan_timeout
        try:
            if budget and budget > 0:
                return await asyncio.wait_for(self._resolve(root_url, scan_type), timeout=budget)
            return await self._resolve(root_url, scan_type)
        except asyncio.TimeoutError as e:
            logger.error(f"Sitemap scan exceeded {budget}s", extra={"url": url})
            raise ScanTimeoutError("Operation timed out", url=url) from e

    async def _resolve(self, url: str, scan_type: ScanType) -> ResolutionResult:
        visited = VisitedSet()
        failed: List[str] = []

        visited.add(url)
        root = await self._fetch_and_parse(url)

        if root.is_index:
            logger.info(
                f"Found sitemap index with {len(root.entries)} nested sitemaps",
                extra={"url": url}
            )
            leaves = await self._descend(url, root.entries, visited, failed, depth=1)
        else:
            leaves = self._absolute(root.entries, url)

        unique = self._dedupe(leaves)
        truncated = False
        if self.config.max_urls and len(unique) > self.config.max_urls:
            logger.info(
                f"Limiting sitemap to first {self.config.max_urls} URLs out of {len(unique)}",
                extra={"url": url}
            )
            unique = unique[:self.config.max_urls]
            truncated = True

        classified = [
            ClassifiedUrl.from_entry(entry, self.classifier.classify(entry.loc))
            for entry in unique
        ]

        if scan_type is ScanType.ADVANCED:
            classified = await self._enrich_all(classified)

        result = ResolutionResult.build(
            classified,
            is_sitemap_index=root.is_index,
            truncated=truncated,
            failed_sitemaps=failed,
        )
        logger.info(
            f"Collected {result.stats.total} URLs from {len(visited)} sitemaps",
            extra={"url": url, "urls_found": result.stats.total}
        )
        return result

    async def _fetch_and_parse(self, url: str) -> ParseOutcome:
        content = await self.client.fetch(url, timeout=self.config.sitemap_timeout)
        outcome = self.parser.parse(content)
        if not outcome.ok:
            raise MalformedContentError(outcome.error or "No URLs found in sitemap", url=url)
        logger.debug(
            f"Parsed {outcome.kind.value if outcome.kind else 'sitemap'}",
            extra={"url": url, "urls_found": len(outcome.entries), "strategy": outcome.strategy.value}
        )
        return outcome

    async def _descend(
        self,
        parent_url: str,
        children: Iterable[SitemapEntry],
        visited: VisitedSet,
        failed: List[str],
        depth: int
    ) -> List[SitemapEntry]:
        """Resolve index children one after another, in listing order."""
        leaves: List[SitemapEntry] = []
        for i, child in enumerate(children):
            if i > 0 and self.config.child_sitemap_delay > 0:
                await asyncio.sleep(self.config.child_sitemap_delay)
            child_url = normalize_url(child.loc, base=parent_url)
            leaves.extend(await self._resolve_child(child_url, visited, failed, depth))
        return leaves

    async def _resolve_child(
        self,
        url: str,
        visited: VisitedSet,
        failed: List[str],
        depth: int
    ) -> List[SitemapEntry]:
        if not visited.add(url):
            logger.debug("Skipping already processed sitemap", extra={"url": url})
            return []

        if depth > self.config.max_sitemap_depth:
            logger.warning(
                f"Sitemap nesting deeper than {self.config.max_sitemap_depth}, skipping",
                extra={"url": url, "depth": depth}
            )
            return []

        try:
            outcome = await self._fetch_and_parse(url)
        except (FetchError, MalformedContentError) as e:
            # A broken nested sitemap must not fail the whole scan
            logger.warning(f"Skipping nested sitemap: {e}", extra={"url": url, "depth": depth})
            failed.append(url)
            return []

        if outcome.is_index:
            return await self._descend(url, outcome.entries, visited, failed, depth + 1)
        return self._absolute(outcome.entries, url)

    @staticmethod
    def _absolute(entries: Iterable[SitemapEntry], base: str) -> List[SitemapEntry]:
        """Resolve relative leaf locations against the sitemap that listed them."""
        absolute = []
        for entry in entries:
            try:
                if not urlsplit(entry.loc).scheme:
                    entry = dataclasses.replace(entry, loc=urljoin(base, entry.loc))
            except ValueError:
                pass  # Unparsable loc, kept verbatim
            absolute.append(entry)
        return absolute

    def _dedupe(self, entries: Iterable[SitemapEntry]) -> List[SitemapEntry]:
        """First occurrence of each normalized URL wins."""
        seen: Set[str] = set()
        unique = []
        for entry in entries:
            key = normalize_url(entry.loc)
            if key in seen:
                continue
            seen.add(key)
            unique.append(entry)
        return unique

    async def _enrich_all(self, urls: List[ClassifiedUrl]) -> List[ClassifiedUrl]:
        """Scrape page data in small concurrent batches."""
        batch_size = max(1, self.config.batch_size)
        enriched: List[ClassifiedUrl] = []

        for i in range(0, len(urls), batch_size):
            batch = urls[i:i + batch_size]
            results = await asyncio.gather(
                *(self._enrich(url) for url in batch),
                return_exceptions=True
            )

            for original, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if isinstance(result, asyncio.CancelledError):
                        raise result
                    logger.error(f"Failed to process URL: {result}", extra={"url": original.loc})
                    enriched.append(original)
                else:
                    enriched.append(result)

            if i + batch_size < len(urls) and self.config.batch_delay > 0:
                await asyncio.sleep(self.config.batch_delay)

        return enriched

    async def _enrich(self, url: ClassifiedUrl) -> ClassifiedUrl:
        if url.url_type in (UrlType.TAG, UrlType.PAGE):
            return url
        if url.loc.lower().split("?")[0].endswith((".xml", ".xml.gz")):
            # Nested sitemap files listed as pages carry no page data
            return url

        try:
            html = await self.client.fetch_page(url.loc)
        except FetchError as e:
            logger.warning(f"Failed to extract details: {e}", extra={"url": url.loc})
            return url

        data = self.extractor.extract(url.loc, html, url.url_type)
        return dataclasses.replace(url, data=data)
