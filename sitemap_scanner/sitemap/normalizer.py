"""
URL normalization used for dedup keys.
"""

from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit


def normalize_url(url: str, base: Optional[str] = None) -> str:
    """
    Canonicalize a URL.

    Relative URLs are resolved against base. Scheme and host are
    lower-cased and the path's trailing slash is dropped, except for the
    root path. Anything that does not parse to an absolute URL is
    returned unchanged.
    """
    candidate = url.strip() if isinstance(url, str) else url
    try:
        if base:
            candidate = urljoin(base, candidate)
        parts = urlsplit(candidate)
        if not parts.scheme or not parts.netloc:
            return url
        path = parts.path or "/"
        if len(path) > 1:
            path = path.rstrip("/") or "/"
        return urlunsplit((
            parts.scheme.lower(),
            parts.netloc.lower(),
            path,
            parts.query,
            parts.fragment,
        ))
    except (ValueError, TypeError, AttributeError):
        return url


def is_http_url(url: Optional[str]) -> bool:
    """Check that url is an absolute http(s) URL with a host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.hostname)
