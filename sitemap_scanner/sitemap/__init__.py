# Sitemap module
from sitemap_scanner.sitemap.models import (
    ClassifiedUrl,
    ResolutionResult,
    ScanType,
    SitemapEntry,
    UrlType,
)
from sitemap_scanner.sitemap.normalizer import normalize_url
from sitemap_scanner.sitemap.sanitizer import sanitize_xml
from sitemap_scanner.sitemap.parser import SitemapParser, ParseOutcome, ParseStrategy, SitemapKind
from sitemap_scanner.sitemap.classifier import UrlClassifier

__all__ = [
    "ClassifiedUrl",
    "ResolutionResult",
    "ScanType",
    "SitemapEntry",
    "UrlType",
    "normalize_url",
    "sanitize_xml",
    "SitemapParser",
    "ParseOutcome",
    "ParseStrategy",
    "SitemapKind",
    "UrlClassifier",
]
