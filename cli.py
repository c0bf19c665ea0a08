"""
Sitemap Scanner - CLI

Command-line interface for one-off sitemap scans.
"""

import asyncio
import argparse
import sys
import json

from sitemap_scanner.config import get_config
from sitemap_scanner.crawler.fetch_queue import FetchQueue
from sitemap_scanner.crawler.http_client import HttpClient
from sitemap_scanner.errors import ScanError
from sitemap_scanner.sitemap.models import ScanType
from sitemap_scanner.sitemap.parser import SitemapParser
from sitemap_scanner.sitemap.resolver import SitemapResolver
from sitemap_scanner.logging_config import setup_logging, get_logger


def scan(args):
    """Resolve a sitemap and print the classified URLs."""
    config = get_config()
    setup_logging(level="WARNING" if args.json else config.log_level, json_format=config.log_json)
    logger = get_logger("cli")

    async def _run():
        queue = FetchQueue.from_config(config)
        async with HttpClient(queue, config=config) as client:
            resolver = SitemapResolver(client, config=config)
            scan_type = ScanType.ADVANCED if args.advanced else ScanType.BASIC
            return await resolver.resolve(args.url, scan_type=scan_type)

    try:
        result = asyncio.run(_run())
    except ScanError as e:
        logger.error(f"Scan failed: {e}", extra={"url": args.url})
        sys.exit(1)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    stats = result.stats
    print("\n" + "=" * 50)
    print("SCAN RESULTS")
    print("=" * 50)
    print(f"Sitemap index:   {result.is_sitemap_index}")
    print(f"Total URLs:      {stats.total}")
    for url_type, count in stats.by_type.items():
        print(f"  {url_type:<10}   {count}")
    if result.truncated:
        print(f"(truncated to {config.max_urls} URLs)")

    if result.failed_sitemaps:
        print("\nFailed sitemaps:")
        for url in result.failed_sitemaps:
            print(f"  - {url}")

    print("=" * 50)


def parse(args):
    """Parse a single sitemap document without following nested sitemaps."""
    config = get_config()
    setup_logging(level="WARNING")
    logger = get_logger("cli")

    async def _run():
        queue = FetchQueue.from_config(config)
        async with HttpClient(queue, config=config) as client:
            return await client.fetch(args.url, timeout=config.sitemap_timeout)

    try:
        content = asyncio.run(_run())
    except ScanError as e:
        logger.error(f"Fetch failed: {e}", extra={"url": args.url})
        sys.exit(1)

    outcome = SitemapParser().parse(content)
    if not outcome.ok:
        print(f"Error: {outcome.error}")
        sys.exit(1)

    kind = outcome.kind.value if outcome.kind else "unknown"
    print(f"{kind} ({outcome.strategy.value}), {len(outcome.entries)} entries")
    for entry in outcome.entries:
        print(f"  {entry.loc}" + (f"  {entry.lastmod}" if entry.lastmod else ""))


def main():
    """CLI main entry point."""
    parser = argparse.ArgumentParser(
        description="Sitemap Scanner CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # scan command
    scan_parser = subparsers.add_parser(
        "scan",
        help="Resolve a sitemap or sitemap index"
    )
    scan_parser.add_argument("url", help="Root sitemap URL")
    scan_parser.add_argument(
        "--advanced",
        action="store_true",
        help="Also scrape product, category and blog pages"
    )
    scan_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON"
    )
    scan_parser.set_defaults(func=scan)

    # parse command
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse one sitemap document and list its entries"
    )
    parse_parser.add_argument("url", help="Sitemap URL")
    parse_parser.set_defaults(func=parse)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    args.func(args)


if __name__ == "__main__":
    main()
