"""Process-wide logging setup for the smart reply service."""

import logging

from core.conf import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Client libraries log every HTTP round-trip at INFO
_CHATTY_LIBRARIES = ("httpx", "httpcore", "openai", "aiohttp.access", "sqlalchemy.engine")


def configure_logging(level: str = LOG_LEVEL) -> None:
    root_level = getattr(logging, level, logging.INFO)
    logging.basicConfig(level=root_level, format=_FORMAT)
    if root_level > logging.DEBUG:
        for name in _CHATTY_LIBRARIES:
            logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
