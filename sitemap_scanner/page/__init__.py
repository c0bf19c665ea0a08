# Page extraction module
from sitemap_scanner.page.extractor import PageExtractor

__all__ = ["PageExtractor"]
