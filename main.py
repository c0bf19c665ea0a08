"""
Sitemap Scanner - Main Entry Point

Starts the API server.
"""

import os

import uvicorn

from sitemap_scanner.config import get_config
from sitemap_scanner.logging_config import setup_logging, get_logger


def main():
    """Main entry point."""
    config = get_config()
    setup_logging(level=config.log_level, json_format=config.log_json)
    logger = get_logger("main")

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))

    logger.info("=" * 50)
    logger.info(f"Sitemap Scanner starting on {host}:{port}")
    logger.info("=" * 50)

    uvicorn.run("sitemap_scanner.api.server:app", host=host, port=port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
