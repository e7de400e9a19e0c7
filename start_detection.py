#!/usr/bin/env python3
"""Entry point for the Head Count Detection system."""

import argparse
import os
import sys

from head_count_detection.config_manager import ConfigManager
from head_count_detection.head_count_session import HeadCountSession
from head_count_detection.logging_config import get_logger, setup_logging
from head_count_detection.web.app import HeadCountWebApp


def main(argv=None):
    """Main entry point for the head count system."""
    parser = argparse.ArgumentParser(description="Scheduled head count from a camera")
    parser.add_argument("--config", default=None, help="Path to the JSON config file")
    args = parser.parse_args(argv)

    config_manager = ConfigManager(args.config)
    config = config_manager.get_config()

    setup_logging(config.log_level, config.log_dir)
    logger = get_logger("start_detection")
    logger.info("Starting Head Count Detection System")
    logger.info(f"Python version: {sys.version.split()[0]}")
    logger.info(f"Working directory: {os.getcwd()}")

    if not config_manager.validate_config():
        logger.error("Configuration is invalid, refusing to start")
        return 1

    session = HeadCountSession(config_manager)
    session.start()

    try:
        HeadCountWebApp(session).run(host=config.web_host, port=config.web_port)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        session.stop()
        logger.info("Head count session stopped")

    return 0


if __name__ == "__main__":
    sys.exit(main())
