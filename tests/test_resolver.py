"""
Tests for recursive sitemap resolution
"""

import dataclasses

import pytest

from sitemap_scanner.config import ScannerConfig
from sitemap_scanner.errors import (
    InvalidUrlError,
    MalformedContentError,
    NetworkError,
    ScanTimeoutError,
)
from sitemap_scanner.sitemap.models import ScanType, UrlType
from sitemap_scanner.sitemap.resolver import SitemapResolver, VisitedSet, sitemap_location

from tests.helpers import FakeClient, sitemapindex, urlset

ROOT = "https://example.com/sitemap.xml"


def test_visited_set_uses_normalized_urls() -> None:
    visited = VisitedSet()

    assert visited.add("https://Example.com/sitemap.xml/")
    assert not visited.add("https://example.com/sitemap.xml")
    assert "HTTPS://EXAMPLE.COM/sitemap.xml" in visited
    assert len(visited) == 1


@pytest.mark.asyncio
async def test_flat_urlset_is_classified(fast_config: ScannerConfig) -> None:
    client = FakeClient({
        ROOT: urlset(
            "https://example.com/sitemap_product_7.xml",
            "https://example.com/category/shoes",
            "https://example.com/about-us",
        )
    })

    result = await SitemapResolver(client, config=fast_config).resolve(ROOT)

    assert result.stats.total == 3
    assert result.stats.by_type == {"product": 1, "category": 1, "blog": 0, "tag": 0, "page": 1}
    assert result.is_sitemap_index is False
    assert result.truncated is False
    assert client.fetched == [ROOT]


@pytest.mark.asyncio
async def test_sitemap_index_aggregates_children(fast_config: ScannerConfig) -> None:
    client = FakeClient({
        ROOT: sitemapindex(
            "https://example.com/sitemap-1.xml",
            "https://example.com/sitemap-2.xml",
        ),
        "https://example.com/sitemap-1.xml": urlset(
            "https://example.com/products/a",
            "https://example.com/products/b",
        ),
        "https://example.com/sitemap-2.xml": urlset(
            "https://example.com/products/c",
            "https://example.com/products/d",
        ),
    })

    result = await SitemapResolver(client, config=fast_config).resolve(ROOT)

    assert result.is_sitemap_index is True
    assert [u.loc for u in result.urls_by_type[UrlType.PRODUCT]] == [
        "https://example.com/products/a",
        "https://example.com/products/b",
        "https://example.com/products/c",
        "https://example.com/products/d",
    ]
    assert result.stats.total == 4


@pytest.mark.asyncio
async def test_urls_listed_by_two_children_appear_once(fast_config: ScannerConfig) -> None:
    client = FakeClient({
        ROOT: sitemapindex(
            "https://example.com/sitemap-1.xml",
            "https://example.com/sitemap-2.xml",
        ),
        "https://example.com/sitemap-1.xml": urlset(
            "https://example.com/products/a",
            "https://example.com/products/shared",
        ),
        "https://example.com/sitemap-2.xml": urlset(
            "https://example.com/products/shared/",
            "https://example.com/products/b",
        ),
    })

    result = await SitemapResolver(client, config=fast_config).resolve(ROOT)

    locs = [u.loc for u in result.all_urls()]
    assert locs == [
        "https://example.com/products/a",
        "https://example.com/products/shared",
        "https://example.com/products/b",
    ]


@pytest.mark.asyncio
async def test_malformed_xml_is_still_parsed(fast_config: ScannerConfig) -> None:
    client = FakeClient({
        ROOT: (
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            "<url><loc>https://example.com/products/a?color=red&size=42</loc></url>"
            "<url/>"
            "<url><loc>https://example.com/tag/red</loc></url>"
            "</urlset>"
        )
    })

    result = await SitemapResolver(client, config=fast_config).resolve(ROOT)

    assert result.stats.total == 2
    assert result.urls_by_type[UrlType.PRODUCT][0].loc == "https://example.com/products/a?color=red&size=42"
    assert result.urls_by_type[UrlType.TAG][0].loc == "https://example.com/tag/red"


@pytest.mark.asyncio
async def test_cyclic_indexes_terminate(fast_config: ScannerConfig) -> None:
    a = "https://example.com/a.xml"
    b = "https://example.com/b.xml"
    client = FakeClient({
        ROOT: sitemapindex(a),
        a: sitemapindex(b, "https://example.com/leaf.xml"),
        b: sitemapindex(a, ROOT),
        "https://example.com/leaf.xml": urlset("https://example.com/products/x"),
    })

    result = await SitemapResolver(client, config=fast_config).resolve(ROOT)

    assert result.stats.total == 1
    assert sorted(client.fetched) == sorted([ROOT, a, b, "https://example.com/leaf.xml"])


@pytest.mark.asyncio
async def test_relative_child_locations(fast_config: ScannerConfig) -> None:
    client = FakeClient({
        "https://example.com/maps/index.xml": sitemapindex("products.xml"),
        "https://example.com/maps/products.xml": urlset("https://example.com/products/a"),
    })

    result = await SitemapResolver(client, config=fast_config).resolve("https://example.com/maps/index.xml")

    assert result.stats.total == 1


@pytest.mark.asyncio
async def test_failed_child_is_skipped_and_reported(fast_config: ScannerConfig) -> None:
    broken = "https://example.com/broken.xml"
    empty = "https://example.com/empty.xml"
    client = FakeClient({
        ROOT: sitemapindex(broken, empty, "https://example.com/good.xml"),
        broken: NetworkError("HTTP 500", url=broken, http_code=500),
        empty: "<html><body>maintenance</body></html>",
        "https://example.com/good.xml": urlset("https://example.com/products/a"),
    })

    result = await SitemapResolver(client, config=fast_config).resolve(ROOT)

    assert result.stats.total == 1
    assert result.failed_sitemaps == [broken, empty]


@pytest.mark.asyncio
async def test_root_fetch_failure_propagates(fast_config: ScannerConfig) -> None:
    client = FakeClient({ROOT: NetworkError("HTTP 503", url=ROOT, http_code=503)})

    with pytest.raises(NetworkError):
        await SitemapResolver(client, config=fast_config).resolve(ROOT)


@pytest.mark.asyncio
async def test_unparsable_root_raises_malformed_content(fast_config: ScannerConfig) -> None:
    client = FakeClient({ROOT: "<html><body>Not a sitemap</body></html>"})

    with pytest.raises(MalformedContentError) as exc_info:
        await SitemapResolver(client, config=fast_config).resolve(ROOT)

    assert "No URLs found in sitemap" in str(exc_info.value)


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["", "example.com/sitemap.xml", "ftp://example.com/sitemap.xml"])
async def test_invalid_url_is_rejected(fast_config: ScannerConfig, url: str) -> None:
    client = FakeClient({})

    with pytest.raises(InvalidUrlError):
        await SitemapResolver(client, config=fast_config).resolve(url)

    assert client.fetched == []


@pytest.mark.asyncio
async def test_result_is_truncated(fast_config: ScannerConfig) -> None:
    config = dataclasses.replace(fast_config, max_urls=2)
    client = FakeClient({
        ROOT: urlset(
            "https://example.com/products/a",
            "https://example.com/products/b",
            "https://example.com/products/c",
        )
    })

    result = await SitemapResolver(client, config=config).resolve(ROOT)

    assert result.truncated is True
    assert [u.loc for u in result.all_urls()] == [
        "https://example.com/products/a",
        "https://example.com/products/b",
    ]


@pytest.mark.asyncio
async def test_nesting_depth_is_capped(fast_config: ScannerConfig) -> None:
    config = dataclasses.replace(fast_config, max_sitemap_depth=1)
    client = FakeClient({
        ROOT: sitemapindex("https://example.com/level1.xml"),
        "https://example.com/level1.xml": sitemapindex("https://example.com/level2.xml"),
        "https://example.com/level2.xml": urlset("https://example.com/products/deep"),
    })

    result = await SitemapResolver(client, config=config).resolve(ROOT)

    assert result.stats.total == 0
    assert "https://example.com/level2.xml" not in client.fetched


@pytest.mark.asyncio
async def test_deadline_raises_scan_timeout(fast_config: ScannerConfig) -> None:
    client = FakeClient({ROOT: urlset("https://example.com/products/a")}, delay=1.0)

    with pytest.raises(ScanTimeoutError) as exc_info:
        await SitemapResolver(client, config=fast_config).resolve(ROOT, timeout=0.05)

    assert str(exc_info.value) == "Operation timed out"


@pytest.mark.asyncio
async def test_advanced_scan_enriches_pages(fast_config: ScannerConfig) -> None:
    product = "https://example.com/products/a"
    client = FakeClient(
        {ROOT: urlset(product, "https://example.com/about-us", "https://example.com/products/gone")},
        pages={
            product: (
                "<html><head><meta property='og:title' content='Red Shoe'></head>"
                "<body><span class='price'>1.299,90 TL</span></body></html>"
            ),
            "https://example.com/products/gone": NetworkError("HTTP 404", http_code=404),
        },
    )

    result = await SitemapResolver(client, config=fast_config).resolve(ROOT, scan_type=ScanType.ADVANCED)

    products = result.urls_by_type[UrlType.PRODUCT]
    assert products[0].data == {"title": "Red Shoe", "price": "1.299,90"}
    assert products[1].data == {}
    assert result.urls_by_type[UrlType.PAGE][0].data == {}
    # Plain pages are not scraped
    assert "https://example.com/about-us" not in client.pages_fetched


@pytest.mark.asyncio
async def test_result_serializes(fast_config: ScannerConfig) -> None:
    client = FakeClient({ROOT: urlset("https://example.com/products/a")})

    data = (await SitemapResolver(client, config=fast_config).resolve(ROOT)).to_dict()

    assert data["isSitemapIndex"] is False
    assert data["stats"] == {
        "total": 1,
        "byType": {"product": 1, "category": 0, "blog": 0, "tag": 0, "page": 0},
    }
    assert data["urls"]["product"][0]["loc"] == "https://example.com/products/a"
    assert data["urls"]["product"][0]["type"] == "product"
    assert data["failedSitemaps"] == []


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://shop.com", "https://shop.com/sitemap.xml"),
        ("https://shop.com/", "https://shop.com/sitemap.xml"),
        ("https://shop.com/tr/", "https://shop.com/tr/sitemap.xml"),
        ("https://shop.com/sitemap_index.xml", "https://shop.com/sitemap_index.xml"),
        ("https://shop.com/sitemap.xml.gz", "https://shop.com/sitemap.xml.gz"),
        ("https://shop.com/sitemap.txt", "https://shop.com/sitemap.txt"),
        ("https://shop.com/index.php?route=feed/sitemap", "https://shop.com/index.php?route=feed/sitemap"),
    ],
)
def test_sitemap_location(url: str, expected: str) -> None:
    assert sitemap_location(url) == expected


@pytest.mark.asyncio
async def test_site_root_resolves_to_its_sitemap(fast_config: ScannerConfig) -> None:
    client = FakeClient({
        "https://shop.com/sitemap.xml": urlset("https://shop.com/products/a"),
    })

    result = await SitemapResolver(client, config=fast_config).resolve("https://shop.com")

    assert client.fetched == ["https://shop.com/sitemap.xml"]
    assert result.stats.total == 1


@pytest.mark.asyncio
async def test_relative_leaf_locations_are_resolved(fast_config: ScannerConfig) -> None:
    client = FakeClient({
        "https://shop.com/maps/index.xml": sitemapindex("products.xml"),
        "https://shop.com/maps/products.xml": urlset("/products/a", "b-pr-12.html"),
        "https://shop.com/flat.xml": urlset("/category/shoes"),
    })
    resolver = SitemapResolver(client, config=fast_config)

    nested = await resolver.resolve("https://shop.com/maps/index.xml")
    flat = await resolver.resolve("https://shop.com/flat.xml")

    assert [u.loc for u in nested.all_urls()] == [
        "https://shop.com/products/a",
        "https://shop.com/maps/b-pr-12.html",
    ]
    assert [u.loc for u in flat.all_urls()] == ["https://shop.com/category/shoes"]
