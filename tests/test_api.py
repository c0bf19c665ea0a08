"""
Tests for the HTTP API
"""

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from sitemap_scanner.api.server import app, get_app_config, get_client
from sitemap_scanner.config import ScannerConfig
from sitemap_scanner.errors import NetworkError

from tests.helpers import FakeClient, sitemapindex, urlset

ROOT = "https://example.com/sitemap.xml"

DOCUMENTS = {
    ROOT: urlset(
        "https://example.com/sitemap_product_7.xml",
        "https://example.com/category/shoes",
        "https://example.com/about-us",
    ),
    "https://example.com/index.xml": sitemapindex(ROOT),
    "https://example.com/down.xml": NetworkError("HTTP 503", http_code=503),
    "https://example.com/junk.xml": "<html><body>hello</body></html>",
}

PAGES = {
    "https://example.com/products/a": "<html><body><h1 class='product-name'>Red Shoe</h1></body></html>",
    "https://example.com/category/shoes": "<html><body><h1>Shoes</h1></body></html>",
}


@pytest.fixture
def api(fast_config: ScannerConfig) -> Iterator[TestClient]:
    fake = FakeClient(DOCUMENTS, pages=PAGES)
    app.dependency_overrides[get_client] = lambda: fake
    app.dependency_overrides[get_app_config] = lambda: fast_config
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(api: TestClient) -> None:
    response = api.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_scan_sitemap(api: TestClient) -> None:
    response = api.post("/api/sitemap", json={"url": ROOT, "scanType": "basic"})

    assert response.status_code == 200
    body = response.json()
    assert body["isSitemapIndex"] is False
    assert body["stats"]["total"] == 3
    assert body["stats"]["byType"]["product"] == 1
    assert body["stats"]["byType"]["category"] == 1
    assert body["stats"]["byType"]["page"] == 1


def test_scan_sitemap_index(api: TestClient) -> None:
    response = api.post("/api/sitemap", json={"url": "https://example.com/index.xml"})

    assert response.status_code == 200
    assert response.json()["isSitemapIndex"] is True


@pytest.mark.parametrize("payload", [{}, {"url": ""}, {"url": "not-a-url"}])
def test_scan_rejects_bad_url(api: TestClient, payload: dict) -> None:
    response = api.post("/api/sitemap", json=payload)

    assert response.status_code == 400
    assert response.json()["urls"] == {}
    assert response.json()["isSitemapIndex"] is False


def test_scan_unparsable_sitemap_is_422(api: TestClient) -> None:
    response = api.post("/api/sitemap", json={"url": "https://example.com/junk.xml"})

    assert response.status_code == 422
    assert "No URLs found in sitemap" in response.json()["error"]


def test_scan_network_failure_is_500(api: TestClient) -> None:
    response = api.post("/api/sitemap", json={"url": "https://example.com/down.xml"})

    assert response.status_code == 500
    assert response.json()["error"] == "HTTP 503"


def test_extract_single_document(api: TestClient) -> None:
    response = api.post("/api/extract", json={"url": "https://example.com/index.xml"})

    assert response.status_code == 200
    body = response.json()
    assert body["isSitemapIndex"] is True
    assert body["parsingMethod"] == "structured"
    assert [e["loc"] for e in body["entries"]] == [ROOT]


def test_extract_classifies_entries(api: TestClient) -> None:
    response = api.post("/api/extract", json={"url": ROOT})

    types = [e["type"] for e in response.json()["entries"]]
    assert types == ["product", "category", "page"]


def test_product_details(api: TestClient) -> None:
    response = api.post("/api/product", json={"url": "https://example.com/products/a"})

    assert response.status_code == 200
    assert response.json() == {
        "url": "https://example.com/products/a",
        "type": "product",
        "data": {"title": "Red Shoe"},
    }


def test_category_details(api: TestClient) -> None:
    response = api.post("/api/category", json={"url": "https://example.com/category/shoes"})

    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Shoes"


def test_page_fetch_failure_is_500(api: TestClient) -> None:
    response = api.post("/api/product", json={"url": "https://example.com/products/missing"})

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to fetch product details"
