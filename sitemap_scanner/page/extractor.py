"""
Page data extractor.
Pulls product, category and blog fields out of HTML pages.
"""

import re
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urljoin
from bs4 import BeautifulSoup, Tag
from dateutil.parser import parse as parse_date

from sitemap_scanner.sitemap.models import UrlType
from sitemap_scanner.logging_config import get_logger

logger = get_logger("page.extractor")


class PageExtractor:
    """
    Extracts structured data from e-commerce HTML.
    Each field has an ordered selector list; the first hit wins.
    """

    PRODUCT_SELECTORS = {
        "title": [
            "h1.product-name",
            "h1.product-title",
            "h1[itemprop='name']",
            "[itemprop='name']",
            "meta[property='og:title']",
            "h1",
            "title",
        ],
        "price": [
            "meta[property='product:price:amount']",
            "meta[property='og:price:amount']",
            "[itemprop='price']",
            ".product-price",
            ".current-price",
            ".price",
            "[data-price]",
        ],
        "description": [
            "[itemprop='description']",
            ".product-description",
            "#product-description",
            "meta[property='og:description']",
            "meta[name='description']",
        ],
        "category": [
            "meta[property='product:category']",
            "[itemprop='category']",
            ".breadcrumb li:last-child",
            ".product-category",
        ],
        "sku": [
            "[itemprop='sku']",
            ".sku",
        ],
        "product_id": [
            "[itemprop='productID']",
            "[data-product-id]",
        ],
    }

    PRODUCT_IMAGE_SELECTORS = [
        "meta[property='og:image']",
        "img[itemprop='image']",
        ".product-image img",
        ".product-images img",
        ".product-gallery img",
        "#product-images img",
        ".gallery img",
    ]

    CATEGORY_SELECTORS = {
        "title": [
            "h1.category-title",
            ".category-name",
            "meta[property='og:title']",
            "h1",
            "title",
        ],
        "description": [
            ".category-description",
            "meta[property='og:description']",
            "meta[name='description']",
            ".category-content",
        ],
    }

    SUBCATEGORY_SELECTORS = [
        ".subcategories .category-item",
        ".category-grid .item",
        ".category-list .item",
    ]

    CATEGORY_PRODUCT_SELECTORS = [
        ".product-grid .product-item",
        ".product-list .product-item",
        "[data-product-id]",
    ]

    BLOG_SELECTORS = {
        "title": [
            "h1",
            "meta[property='og:title']",
            "title",
        ],
        "description": [
            "meta[name='description']",
            "meta[property='og:description']",
            "article p",
        ],
        "author": [
            "[itemprop='author']",
            "meta[name='author']",
            ".author",
            ".byline",
        ],
        "publish_date": [
            "meta[property='article:published_time']",
            "[itemprop='datePublished']",
            "time[datetime]",
            ".published-date",
        ],
    }

    # Machine-readable attributes win over visible text
    VALUE_ATTRIBUTES = ("content", "datetime", "data-price", "data-product-id")

    def extract(self, url: str, html: str, url_type: UrlType) -> Dict[str, Any]:
        """
        Extract page fields for the given URL type.

        Args:
            url: Page URL, used to absolutise image links
            html: Raw HTML
            url_type: Detected type; tag and plain pages get no fields

        Returns:
            Dict of found fields, without empty values
        """
        soup = BeautifulSoup(html, "lxml")

        if url_type is UrlType.PRODUCT:
            data = self._extract_product(url, soup)
        elif url_type is UrlType.CATEGORY:
            data = self._extract_category(soup)
        elif url_type is UrlType.BLOG:
            data = self._extract_blog(soup)
        else:
            return {}

        return {k: v for k, v in data.items() if v not in (None, "", [])}

    def _clean_text(self, text: str) -> str:
        return re.sub(r"\s+", " ", text).strip()

    def _element_value(self, elem: Tag) -> Optional[str]:
        for attr in self.VALUE_ATTRIBUTES:
            value = elem.get(attr)
            if value:
                return self._clean_text(str(value))
        if elem.name == "meta":
            return None
        return self._clean_text(elem.get_text(" ", strip=True)) or None

    def _first(self, soup: BeautifulSoup, selectors: Sequence[str]) -> Optional[str]:
        for selector in selectors:
            elem = soup.select_one(selector)
            if elem is None:
                continue
            value = self._element_value(elem)
            if value:
                return value
        return None

    def _extract_fields(self, soup: BeautifulSoup, table: Dict[str, List[str]]) -> Dict[str, Any]:
        return {name: self._first(soup, selectors) for name, selectors in table.items()}

    def _extract_product(self, url: str, soup: BeautifulSoup) -> Dict[str, Any]:
        data = self._extract_fields(soup, self.PRODUCT_SELECTORS)

        if data.get("price"):
            data["price"] = re.sub(r"[^\d.,]", "", data["price"]) or None

        images: List[str] = []
        for selector in self.PRODUCT_IMAGE_SELECTORS:
            for elem in soup.select(selector):
                src = elem.get("content") or elem.get("src") or elem.get("data-src")
                if not src:
                    continue
                absolute = urljoin(url, str(src).strip())
                if absolute not in images:
                    images.append(absolute)
        data["images"] = images

        availability = soup.select_one("[itemprop='availability']")
        if availability is not None:
            marker = f"{availability.get('href', '')} {availability.get('content', '')} {availability.get_text()}"
            data["in_stock"] = "instock" in marker.lower().replace(" ", "")

        return data

    def _extract_category(self, soup: BeautifulSoup) -> Dict[str, Any]:
        data = self._extract_fields(soup, self.CATEGORY_SELECTORS)

        subcategories: List[str] = []
        for selector in self.SUBCATEGORY_SELECTORS:
            for elem in soup.select(selector):
                name = self._clean_text(elem.get_text(" ", strip=True))
                if name and name not in subcategories:
                    subcategories.append(name)
        data["subcategories"] = subcategories

        for selector in self.CATEGORY_PRODUCT_SELECTORS:
            products = soup.select(selector)
            if products:
                data["product_count"] = len(products)
                break

        return data

    def _extract_blog(self, soup: BeautifulSoup) -> Dict[str, Any]:
        data = self._extract_fields(soup, self.BLOG_SELECTORS)

        if data.get("publish_date"):
            try:
                data["publish_date"] = parse_date(data["publish_date"]).isoformat()
            except (ValueError, TypeError, OverflowError):
                logger.debug(f"Unparsable publish date: {data['publish_date']}")

        return data
