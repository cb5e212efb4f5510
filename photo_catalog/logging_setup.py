"""
Logging configuration for the photo catalog.
"""

import logging
import os
import sys
from .config import AppConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Libraries that log every request or decoded chunk at DEBUG
NOISY_LOGGERS = ('PIL', 'urllib3', 'requests')


def _file_handler(log_file: str) -> logging.Handler:
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return logging.FileHandler(log_file, encoding='utf-8')


def setup_logging(config: AppConfig) -> None:
    """
    Configure the root logger from the application configuration.

    Logs go to ``config.log_file`` when set, otherwise to stderr. In debug mode
    a file log is echoed to stdout as well. Calling this again replaces the
    previous handlers.

    Args:
        config: Application configuration
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers = []
    if config.log_file:
        handlers.append(_file_handler(config.log_file))
        if config.debug_mode:
            handlers.append(logging.StreamHandler(sys.stdout))
    else:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = get_logger(__name__)
    logger.info(f"Logging initialized, describing photos with {config.provider.model}")

    if config.debug_mode:
        logger.debug(f"Python {sys.version.split()[0]} on {sys.platform}")
        logger.debug(
            f"Endpoint {config.provider.api_url}, timeout {config.provider.request_timeout}s, "
            f"max image size {config.image_max_resolution}px"
        )
        logger.debug(
            f"Background enrichment: {config.background_enrichment}, "
            f"memory limit: {config.memory_limit_mb} MB, catalog file: {config.catalog_filename}"
        )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Name for the logger

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
