"""
Test doubles and sitemap builders shared by the test modules
"""

import asyncio
from typing import Dict, List, Optional, Union

from sitemap_scanner.errors import NetworkError


class FakeClient:
    """Stands in for HttpClient; serves canned bodies or raises canned errors."""

    def __init__(
        self,
        documents: Dict[str, Union[str, Exception]],
        pages: Optional[Dict[str, Union[str, Exception]]] = None,
        delay: float = 0.0
    ):
        self.documents = documents
        self.pages = pages or {}
        self.delay = delay
        self.fetched: List[str] = []
        self.pages_fetched: List[str] = []

    async def _serve(self, table: Dict[str, Union[str, Exception]], url: str) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        body = table.get(url)
        if body is None:
            raise NetworkError("HTTP 404", url=url, http_code=404)
        if isinstance(body, Exception):
            raise body
        return body

    async def fetch(self, url: str, timeout: Optional[float] = None, accept: Optional[str] = None) -> str:
        self.fetched.append(url)
        return await self._serve(self.documents, url)

    async def fetch_page(self, url: str) -> str:
        self.pages_fetched.append(url)
        return await self._serve(self.pages, url)


def urlset(*locs: str) -> str:
    body = "".join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{body}</urlset>'
    )


def sitemapindex(*locs: str) -> str:
    body = "".join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{body}</sitemapindex>'
    )

