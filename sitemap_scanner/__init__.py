"""
Sitemap Scanner - resolves e-commerce sitemaps into classified URL lists.
"""

__version__ = "1.0.0"
