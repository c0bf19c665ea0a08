"""
Shared fixtures for scanner tests
"""

import pytest

from sitemap_scanner.config import ScannerConfig


@pytest.fixture
def fast_config() -> ScannerConfig:
    """Config with every delay switched off"""
    return ScannerConfig(
        request_delay=0.0,
        max_retries=1,
        rate_limit_base_delay=0.0,
        child_sitemap_delay=0.0,
        batch_delay=0.0,
        scan_timeout=5.0,
        sitemap_timeout=2.0,
        page_timeout=2.0,
    )
