"""
Sitemap parser.
Supports both sitemap index and urlset formats, with fallbacks for
malformed markup, JSON lists and plain-text sitemaps.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple
from lxml import etree
from bs4 import BeautifulSoup

from sitemap_scanner.sitemap.models import SitemapEntry
from sitemap_scanner.sitemap.sanitizer import sanitize_xml
from sitemap_scanner.logging_config import get_logger

logger = get_logger("sitemap.parser")

NO_URLS_FOUND = "No URLs found in sitemap"

XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)

ENTRY_FIELDS = ("loc", "lastmod", "changefreq", "priority")


class ParseStrategy(str, Enum):
    STRUCTURED = "structured"
    FALLBACK = "fallback"
    JSON = "json"
    TEXT = "text"
    FAILED = "failed"


class SitemapKind(str, Enum):
    INDEX = "sitemapindex"
    URLSET = "urlset"


@dataclass(frozen=True)
class ParseOutcome:
    """Result of parsing one sitemap document, tagged with the strategy used."""
    strategy: ParseStrategy
    kind: Optional[SitemapKind] = None
    entries: Tuple[SitemapEntry, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.strategy is not ParseStrategy.FAILED and bool(self.entries)

    @property
    def is_index(self) -> bool:
        return self.kind is SitemapKind.INDEX

    @classmethod
    def failed(cls, error: str = NO_URLS_FOUND) -> "ParseOutcome":
        return cls(strategy=ParseStrategy.FAILED, error=error)


def _local_name(element) -> str:
    """Lower-cased tag name without namespace."""
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname.lower()


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class SitemapParser:
    """
    Parser for sitemap documents.
    Each strategy is tried explicitly; the first one yielding entries wins.
    """

    def __init__(self):
        self._xml_parser = etree.XMLParser(
            recover=True,
            remove_comments=True,
            remove_pis=True,
            resolve_entities=False,
            no_network=True,
        )

    def parse(self, content: str) -> ParseOutcome:
        """
        Parse any sitemap content.

        Args:
            content: Raw document text; XML repair is applied only for
                the structured and markup strategies

        Returns:
            ParseOutcome; strategy FAILED when no strategy found entries
        """
        if not content or not content.strip():
            return ParseOutcome.failed("Empty sitemap document")

        repaired = sanitize_xml(content)

        errors: List[str] = []
        for strategy, attempt, text in (
            (ParseStrategy.STRUCTURED, self.parse_structured, repaired),
            (ParseStrategy.FALLBACK, self.parse_markup_scan, repaired),
            (ParseStrategy.JSON, self.parse_json, content),
            (ParseStrategy.TEXT, self.parse_text_format, content),
        ):
            try:
                outcome = attempt(text)
            except (etree.LxmlError, ValueError) as e:
                logger.debug(f"{strategy.value} parse failed: {e}")
                errors.append(f"{strategy.value}: {e}")
                continue

            if outcome is not None and outcome.entries:
                if strategy is not ParseStrategy.STRUCTURED:
                    logger.info(
                        f"Parsed sitemap using {strategy.value} strategy with {len(outcome.entries)} entries",
                        extra={"strategy": strategy.value}
                    )
                return outcome

        logger.warning("Failed to parse sitemap as XML, markup, JSON or text format")
        if errors:
            return ParseOutcome.failed(f"{NO_URLS_FOUND} ({'; '.join(errors)})")
        return ParseOutcome.failed()

    def parse_structured(self, content: str) -> Optional[ParseOutcome]:
        """
        Permissive XML parse.
        Returns None when the document is neither a sitemap index nor a urlset.
        """
        text = XML_DECLARATION.sub("", content.lstrip("\ufeff"), count=1)
        root = etree.fromstring(text.encode("utf-8"), self._xml_parser)
        if root is None:
            return None

        root_name = _local_name(root)
        if root_name == "sitemapindex":
            kind, child_name = SitemapKind.INDEX, "sitemap"
        elif root_name == "urlset":
            kind, child_name = SitemapKind.URLSET, "url"
        else:
            return None

        entries = []
        for child in root:
            if _local_name(child) != child_name:
                continue
            entry = self._entry_from_element(child, kind)
            if entry is not None:
                entries.append(entry)

        logger.debug(f"Parsed {kind.value} with {len(entries)} entries")
        return ParseOutcome(ParseStrategy.STRUCTURED, kind, tuple(entries))

    def _entry_from_element(self, element, kind: SitemapKind) -> Optional[SitemapEntry]:
        values = {}
        for field_elem in element:
            name = _local_name(field_elem)
            if name in ENTRY_FIELDS and name not in values:
                values[name] = _clean("".join(field_elem.itertext()))

        if not values.get("loc"):
            return None
        if kind is SitemapKind.INDEX:
            return SitemapEntry(loc=values["loc"], lastmod=values.get("lastmod"))
        return SitemapEntry(**values)

    def parse_markup_scan(self, content: str) -> Optional[ParseOutcome]:
        """
        Tolerant tag scan for markup the XML parser could not make sense of.
        Finds every <url> and <sitemap> element and reads its children.
        """
        soup = BeautifulSoup(content, "html.parser")

        url_nodes = soup.find_all("url")
        sitemap_nodes = soup.find_all("sitemap")
        if not url_nodes and not sitemap_nodes:
            return None

        is_index = soup.find("sitemapindex") is not None or not url_nodes
        kind = SitemapKind.INDEX if is_index else SitemapKind.URLSET
        nodes = sitemap_nodes if is_index else url_nodes

        entries = []
        for node in nodes:
            values = {}
            for name in ENTRY_FIELDS:
                child = node.find(name)
                values[name] = _clean(child.get_text()) if child is not None else None
            if not values["loc"]:
                continue
            if is_index:
                entries.append(SitemapEntry(loc=values["loc"], lastmod=values["lastmod"]))
            else:
                entries.append(SitemapEntry(**values))

        return ParseOutcome(ParseStrategy.FALLBACK, kind, tuple(entries))

    def parse_json(self, content: str) -> Optional[ParseOutcome]:
        """
        JSON sitemap: a list of URLs / {loc, lastmod} objects,
        or an object with a "urls" list.
        """
        stripped = content.strip()
        if not stripped or stripped[0] not in "[{":
            return None

        data = json.loads(stripped)
        items: Iterable[Any] = data if isinstance(data, list) else data.get("urls", []) if isinstance(data, dict) else []

        entries = []
        for item in items:
            if isinstance(item, str):
                loc = _clean(item)
                if loc:
                    entries.append(SitemapEntry(loc=loc))
            elif isinstance(item, dict):
                loc = _clean(str(item.get("loc") or item.get("url") or ""))
                if not loc:
                    continue
                entries.append(SitemapEntry(
                    loc=loc,
                    lastmod=_clean(item.get("lastmod")) if isinstance(item.get("lastmod"), str) else None,
                    changefreq=_clean(item.get("changefreq")) if isinstance(item.get("changefreq"), str) else None,
                    priority=str(item["priority"]) if item.get("priority") is not None else None,
                ))

        return ParseOutcome(ParseStrategy.JSON, SitemapKind.URLSET, tuple(entries))

    def parse_text_format(self, content: str) -> Optional[ParseOutcome]:
        """
        Parse text-formatted sitemaps.
        Expected format:
        URL <tab/space> Last Modified
        https://example.com/page 2024-01-01T12:00:00Z
        """
        entries = []

        for line in content.strip().split("\n"):
            line = line.strip()
            if not line.startswith("http"):
                continue

            parts = line.split()
            loc = parts[0]
            if "://" not in loc or "<" in loc:
                continue

            lastmod = parts[1] if len(parts) > 1 else None
            entries.append(SitemapEntry(loc=loc, lastmod=lastmod))

        return ParseOutcome(ParseStrategy.TEXT, SitemapKind.URLSET, tuple(entries))
