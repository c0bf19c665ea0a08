"""
Data types shared by the sitemap parser, classifier and resolver.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from dateutil.parser import parse as parse_date


class UrlType(str, Enum):
    PRODUCT = "product"
    CATEGORY = "category"
    BLOG = "blog"
    TAG = "tag"
    PAGE = "page"


class ScanType(str, Enum):
    """basic classifies URLs only; advanced also scrapes each page."""
    BASIC = "basic"
    ADVANCED = "advanced"


@dataclass(frozen=True)
class SitemapEntry:
    """A single entry from a sitemap."""
    loc: str  # URL
    lastmod: Optional[str] = None  # Last modified date
    changefreq: Optional[str] = None  # Change frequency
    priority: Optional[str] = None  # Priority, kept as the raw string

    @property
    def lastmod_datetime(self) -> Optional[datetime]:
        """Parse lastmod as datetime."""
        if not self.lastmod:
            return None
        try:
            return parse_date(self.lastmod)
        except (ValueError, TypeError, OverflowError):
            return None


@dataclass(frozen=True)
class ClassifiedUrl:
    """A leaf URL with its detected type and optional scraped page data."""
    loc: str
    url_type: UrlType
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_entry(cls, entry: SitemapEntry, url_type: UrlType) -> "ClassifiedUrl":
        return cls(
            loc=entry.loc,
            url_type=url_type,
            lastmod=entry.lastmod,
            changefreq=entry.changefreq,
            priority=entry.priority,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loc": self.loc,
            "lastmod": self.lastmod,
            "changefreq": self.changefreq,
            "priority": self.priority,
            "type": self.url_type.value,
            "data": dict(self.data),
        }


@dataclass(frozen=True)
class ResolutionStats:
    total: int
    by_type: Dict[str, int]


@dataclass
class ResolutionResult:
    """
    Outcome of one sitemap resolution.
    urls_by_type always holds every UrlType bucket, in encounter order.
    """
    urls_by_type: Dict[UrlType, List[ClassifiedUrl]]
    is_sitemap_index: bool = False
    truncated: bool = False
    failed_sitemaps: List[str] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        urls: List[ClassifiedUrl],
        is_sitemap_index: bool,
        truncated: bool = False,
        failed_sitemaps: Optional[List[str]] = None
    ) -> "ResolutionResult":
        buckets: Dict[UrlType, List[ClassifiedUrl]] = {t: [] for t in UrlType}
        for url in urls:
            buckets[url.url_type].append(url)
        return cls(
            urls_by_type=buckets,
            is_sitemap_index=is_sitemap_index,
            truncated=truncated,
            failed_sitemaps=list(failed_sitemaps or []),
        )

    @property
    def stats(self) -> ResolutionStats:
        by_type = {t.value: len(items) for t, items in self.urls_by_type.items()}
        return ResolutionStats(total=sum(by_type.values()), by_type=by_type)

    def all_urls(self) -> List[ClassifiedUrl]:
        return [url for items in self.urls_by_type.values() for url in items]

    def to_dict(self) -> Dict[str, Any]:
        stats = self.stats
        return {
            "urls": {
                t.value: [url.to_dict() for url in items]
                for t, items in self.urls_by_type.items()
            },
            "isSitemapIndex": self.is_sitemap_index,
            "truncated": self.truncated,
            "failedSitemaps": list(self.failed_sitemaps),
            "stats": {"total": stats.total, "byType": stats.by_type},
        }
