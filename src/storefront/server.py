"""
Storefront server entry point.

Usage:
    APP_SECRET=... python -m storefront.server
"""

import sys

from aiohttp import web
from loguru import logger

from .api import create_app
from .config import Settings
from .errors import ConfigurationError
from .logging import setup_logging


def main() -> None:
    """Main entry point."""
    settings = Settings()
    setup_logging(settings.log_level)

    try:
        app = create_app(settings)
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        sys.exit(1)

    logger.info(f"Starting storefront on {settings.host}:{settings.port}")
    web.run_app(app, host=settings.host, port=settings.port, print=None)


if __name__ == "__main__":
    main()
