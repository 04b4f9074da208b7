"""
CLI entry point for router-ddns.

This module provides the command-line interface for starting the server.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from botocore.exceptions import BotoCoreError

from router_ddns.config import ConfigValidationError, load_config, parse_args
from router_ddns.logging_config import build_uvicorn_log_config, setup_logging
from router_ddns.server import configure

logger = logging.getLogger(__name__)


def main() -> None:
    """
    Start the router-ddns server.

    Parse command-line arguments, load configuration, build the credential
    store and DNS provider, and run the server.
    """
    args = parse_args()
    try:
        config = load_config(args)
    except ConfigValidationError as e:
        print(e, file=sys.stderr)  # noqa: T201
        sys.exit(1)

    setup_logging(config.logging)

    try:
        configure(config)
    except BotoCoreError as e:
        logger.critical("Failed to set up AWS backends: %s", e)
        sys.exit(1)

    uvicorn.run(
        "router_ddns.server:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
        access_log=True,
        log_config=build_uvicorn_log_config(config.logging),
    )


if __name__ == "__main__":
    main()
