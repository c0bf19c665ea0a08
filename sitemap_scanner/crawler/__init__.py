# Crawler module
from sitemap_scanner.crawler.http_client import HttpClient
from sitemap_scanner.crawler.fetch_queue import FetchQueue, FetchTask
from sitemap_scanner.crawler.backoff import RetryPolicy

__all__ = ["HttpClient", "FetchQueue", "FetchTask", "RetryPolicy"]
