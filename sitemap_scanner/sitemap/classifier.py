"""
URL type classifier.
Identifies product, category, blog, tag and plain pages from URL shape.
"""

import re
from typing import Tuple
from urllib.parse import urlsplit

from sitemap_scanner.sitemap.models import UrlType


class UrlClassifier:
    """
    Detects the page type of a URL using hostname and path patterns.
    Rules are evaluated in a fixed order; the first match wins.
    """

    # Product sitemap file names are checked before everything else;
    # the other file-name hints only after the product rules
    PRODUCT_SITEMAP_HINT = "sitemap_product"
    SITEMAP_HINTS: Tuple[Tuple[str, UrlType], ...] = (
        ("sitemap_category", UrlType.CATEGORY),
        ("sitemap_blog", UrlType.BLOG),
        ("sitemap_tag", UrlType.TAG),
    )

    PRODUCT_SEGMENTS = ("/urun/", "/product/", "/products/", "/p/", "product.aspx")
    PRODUCT_PATTERNS = (
        re.compile(r"pr-\d+\.html$"),
        re.compile(r"/p-[a-z0-9-]+$"),
        re.compile(r"/p\d+(?:\.html)?$"),
    )

    CATEGORY_SEGMENTS = ("/kategori/", "/category/", "/categories/", "/collections/", "/c/")
    CATEGORY_PATTERNS = (
        re.compile(r"cat-\d+\.html$"),
    )

    BLOG_HOST_PREFIXES = ("blog.",)
    BLOG_SEGMENTS = ("/blog/", "/makale/", "/article/", "/articles/", "/post/", "/news/")
    BLOG_PATTERNS = (
        re.compile(r"blog-\d+\.html$"),
        re.compile(r"post-\d+\.html$"),
    )

    TAG_SEGMENTS = ("/tag/", "/tags/", "/etiket/")

    def classify(self, url: str) -> UrlType:
        """
        Classify a URL.

        Args:
            url: Absolute or relative page URL

        Returns:
            UrlType, PAGE when nothing matched
        """
        host, path = self._split(url)
        # Segment checks see "/blog" the same as "/blog/"
        segment_path = path.rstrip("/") + "/"

        if self.PRODUCT_SITEMAP_HINT in path:
            return UrlType.PRODUCT

        if self._has_segment(segment_path, self.PRODUCT_SEGMENTS):
            return UrlType.PRODUCT
        if self._matches(path, self.PRODUCT_PATTERNS):
            return UrlType.PRODUCT

        for hint, url_type in self.SITEMAP_HINTS:
            if hint in path:
                return url_type

        if self._has_segment(segment_path, self.CATEGORY_SEGMENTS) or self._matches(path, self.CATEGORY_PATTERNS):
            return UrlType.CATEGORY

        if host.startswith(self.BLOG_HOST_PREFIXES):
            return UrlType.BLOG
        if self._has_segment(segment_path, self.BLOG_SEGMENTS) or self._matches(path, self.BLOG_PATTERNS):
            return UrlType.BLOG

        if self._has_segment(segment_path, self.TAG_SEGMENTS):
            return UrlType.TAG

        return UrlType.PAGE

    @staticmethod
    def _split(url: str) -> Tuple[str, str]:
        lowered = url.strip().lower()
        try:
            parts = urlsplit(lowered)
        except ValueError:
            return "", lowered
        return parts.hostname or "", parts.path or "/"

    @staticmethod
    def _has_segment(path: str, segments: Tuple[str, ...]) -> bool:
        return any(segment in path for segment in segments)

    @staticmethod
    def _matches(path: str, patterns) -> bool:
        return any(pattern.search(path) for pattern in patterns)
