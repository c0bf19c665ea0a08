"""
FastAPI server for the sitemap scanner.
Provides API endpoints for sitemap resolution and page extraction.
"""

from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
from contextlib import asynccontextmanager
import aiohttp

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from sitemap_scanner import __version__
from sitemap_scanner.config import ScannerConfig, get_config
from sitemap_scanner.crawler.fetch_queue import FetchQueue
from sitemap_scanner.crawler.http_client import HttpClient
from sitemap_scanner.errors import (
    FetchError,
    InvalidUrlError,
    MalformedContentError,
    ScanError,
)
from sitemap_scanner.page.extractor import PageExtractor
from sitemap_scanner.sitemap.classifier import UrlClassifier
from sitemap_scanner.sitemap.models import ScanType, UrlType
from sitemap_scanner.sitemap.normalizer import is_http_url
from sitemap_scanner.sitemap.parser import SitemapParser
from sitemap_scanner.sitemap.resolver import SitemapResolver
from sitemap_scanner.logging_config import setup_logging, get_logger

logger = get_logger("api.server")


# Pydantic models
class ScanRequest(BaseModel):
    url: Optional[str] = None
    scan_type: ScanType = Field(default=ScanType.BASIC, alias="scanType")

    model_config = {"populate_by_name": True}


class UrlRequest(BaseModel):
    url: Optional[str] = None


class EntryResponse(BaseModel):
    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[str] = None
    type: str


class ExtractResponse(BaseModel):
    entries: List[EntryResponse]
    isSitemapIndex: bool
    parsingMethod: str


def error_response(status_code: int, message: str) -> JSONResponse:
    """Error body shared by every endpoint."""
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "urls": {}, "isSitemapIndex": False},
    )


def status_for(error: ScanError) -> int:
    if isinstance(error, InvalidUrlError):
        return 400
    if isinstance(error, MalformedContentError):
        return 422
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown: one session, queue and client per process."""
    config = get_config()
    setup_logging(level=config.log_level, json_format=config.log_json)
    logger.info("API server starting")

    timeout = aiohttp.ClientTimeout(total=max(config.scan_timeout, config.sitemap_timeout))
    async with aiohttp.ClientSession(timeout=timeout) as session:
        queue = FetchQueue.from_config(config)
        app.state.config = config
        app.state.client = HttpClient(queue, session=session, config=config)
        yield

    logger.info("API server stopping")


app = FastAPI(
    title="Sitemap Scanner API",
    description="Resolves sitemaps into classified URL lists",
    version=__version__,
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== DEPENDENCIES ====================

def get_app_config(request: Request) -> ScannerConfig:
    return getattr(request.app.state, "config", None) or get_config()


def get_client(request: Request) -> HttpClient:
    return request.app.state.client


def get_resolver(
    client: HttpClient = Depends(get_client),
    config: ScannerConfig = Depends(get_app_config)
) -> SitemapResolver:
    return SitemapResolver(client, config=config)


def get_extractor() -> PageExtractor:
    return PageExtractor()


# ==================== ENDPOINTS ====================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/sitemap")
async def scan_sitemap(request: ScanRequest, resolver: SitemapResolver = Depends(get_resolver)):
    """Resolve a sitemap or sitemap index into classified URLs."""
    if not request.url:
        return error_response(400, "URL is required")

    try:
        result = await resolver.resolve(request.url, scan_type=request.scan_type)
    except ScanError as e:
        logger.error(f"Sitemap scan failed: {e}", extra={"url": request.url})
        return error_response(status_for(e), str(e))
    except Exception as e:
        logger.exception(f"Unexpected error scanning sitemap: {e}", extra={"url": request.url})
        return error_response(500, "Failed to process sitemap")

    return result.to_dict()


@app.post("/api/extract", response_model=ExtractResponse)
async def extract_sitemap(
    request: UrlRequest,
    client: HttpClient = Depends(get_client),
    config: ScannerConfig = Depends(get_app_config)
):
    """Parse a single sitemap document without following nested sitemaps."""
    if not request.url:
        return error_response(400, "URL is required")
    if not is_http_url(request.url):
        return error_response(400, "URL must be an absolute http(s) URL")

    try:
        content = await client.fetch(request.url, timeout=config.sitemap_timeout)
    except FetchError as e:
        logger.error(f"Failed to fetch sitemap: {e}", extra={"url": request.url})
        return error_response(500, str(e))

    outcome = SitemapParser().parse(content)
    if not outcome.ok:
        return error_response(422, outcome.error or "No URLs found in sitemap")

    classifier = UrlClassifier()
    return ExtractResponse(
        entries=[
            EntryResponse(
                loc=entry.loc,
                lastmod=entry.lastmod,
                changefreq=entry.changefreq,
                priority=entry.priority,
                type=classifier.classify(entry.loc).value,
            )
            for entry in outcome.entries
        ],
        isSitemapIndex=outcome.is_index,
        parsingMethod=outcome.strategy.value,
    )


async def _extract_page(
    url: Optional[str],
    url_type: UrlType,
    client: HttpClient,
    extractor: PageExtractor
):
    if not url:
        return error_response(400, "URL is required")
    if not is_http_url(url):
        return error_response(400, "URL must be an absolute http(s) URL")

    try:
        html = await client.fetch_page(url)
    except FetchError as e:
        logger.error(f"Failed to fetch {url_type.value} page: {e}", extra={"url": url})
        return error_response(500, f"Failed to fetch {url_type.value} details")

    data: Dict[str, Any] = extractor.extract(url, html, url_type)
    return {"url": url, "type": url_type.value, "data": data}


@app.post("/api/product")
async def product_details(
    request: UrlRequest,
    client: HttpClient = Depends(get_client),
    extractor: PageExtractor = Depends(get_extractor)
):
    """Fetch a product page and extract its fields."""
    return await _extract_page(request.url, UrlType.PRODUCT, client, extractor)


@app.post("/api/category")
async def category_details(
    request: UrlRequest,
    client: HttpClient = Depends(get_client),
    extractor: PageExtractor = Depends(get_extractor)
):
    """Fetch a category page and extract its fields."""
    return await _extract_page(request.url, UrlType.CATEGORY, client, extractor)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
