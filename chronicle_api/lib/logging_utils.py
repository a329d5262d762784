"""
Logging setup for the Chronicle API.

All output goes to stdout in one format. Uvicorn's loggers are routed through
the same handler so access lines and application lines interleave, and
LOG_CATEGORIES narrows the application's own output to the listed logger
prefixes, e.g. "chronicle_api.lib.event_hub,chronicle_api.routers".
"""

import logging
import sys
from typing import Iterable

APP_LOGGER = 'chronicle_api'
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Client libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ('urllib3', 'cloudinary', 'aiosmtplib')
SERVER_LOGGERS = ('uvicorn', 'uvicorn.error', 'uvicorn.access')


class CategoryFilter(logging.Filter):
    """
    Pass application records whose logger name starts with a category.

    Records from outside the application package are never filtered.
    """

    def __init__(self, categories: Iterable[str]):
        super().__init__()
        self.categories = tuple(cat for cat in categories if cat)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.categories or not record.name.startswith(APP_LOGGER):
            return True
        return record.name.startswith(self.categories)


def configure_logging(settings) -> logging.Handler:
    """
    Install the stdout handler on the root logger.

    Args:
        settings: Application settings (log_level, log_categories)

    Returns:
        The installed handler
    """
    level = getattr(logging, settings.log_level, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    if settings.log_categories:
        handler.addFilter(CategoryFilter(settings.log_categories))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return handler


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, named after it (pass __name__)."""
    return logging.getLogger(name)
