"""CLI entry point.

Usage:
    python -m retail_services.cli services list
    python -m retail_services.cli services load pricing
    retail-services-cli services list
    retail-services-cli services preload
"""

import sys

from loguru import logger

import retail_services
from retail_services.cli.app import app
from retail_services.settings import get_settings


def _configure_cli_logging() -> None:
    """Configure loguru for CLI (compact format: level + message, no timestamps)."""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="<level>{level: <8}</level> | <level>{message}</level>",
        level=get_settings().log_level,
        colorize=True,
    )
    # Enable logging for the package
    logger.enable(retail_services.__name__)


def main() -> None:
    """CLI entry point with logging configuration."""
    _configure_cli_logging()
    app()


if __name__ == "__main__":
    main()
