"""CLI entry point for the LogVault server.

Usage::

    python -m logvault [--config config.yaml] [--log-level DEBUG]

Configures logging and serves the FastAPI application with uvicorn. The
syslog listener, notification workers and session sweeper run inside the
application lifespan.
"""

from __future__ import annotations

import argparse
import logging
import os

import uvicorn

from logvault.api.main import create_app
from logvault.core.config import CONFIG_PATH_ENV, get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="logvault",
        description="Syslog alarm vault backed by Redis.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML config file (default: config.yaml).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides log_level from config).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = _parse_args(argv)
    if args.config:
        os.environ[CONFIG_PATH_ENV] = args.config

    settings = get_settings()
    level = args.log_level or settings.log_level.upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)

    app = create_app(settings)
    uvicorn.run(app, host=settings.web_host, port=settings.web_port, log_config=None)


if __name__ == "__main__":
    main()
