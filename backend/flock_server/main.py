"""
Flock Server - Main entry point.

This module loads configuration, sets up logging and serves the FastAPI
application with uvicorn. The app's lifespan constructs the Database
handle once, passes it into every component and closes it on shutdown.

Usage:
    python -m backend.flock_server.main
    flock-server

Configuration is entirely via environment variables.
See config.py and api/settings.py for all available settings.

Invariants:
    - Configuration errors abort startup with exit code 1
    - uvicorn's own logging goes through the handler installed here
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import ApiSettings, create_app
from .config import ServerConfig

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
        settings = ApiSettings()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    app = create_app(config=config, settings=settings)
    logger.info(f"Starting Flock API on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
