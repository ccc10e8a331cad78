# storybook/logger.py
import logging
import sys
from typing import Optional, TextIO

from storybook.config import config

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# server loggers follow LOG_LEVEL; client libraries stay at INFO or above
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "gunicorn.error", "gunicorn.access")
_CLIENT_LOGGERS = ("httpx", "httpcore", "openai", "urllib3", "google.auth", "google.genai")

_configured = False


def _level(name: Optional[str]) -> int:
    value = logging.getLevelName((name or "INFO").upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: Optional[str] = None, stream: TextIO = sys.stdout) -> None:
    """
    Idempotent root logger setup. Handlers installed earlier (gunicorn,
    pytest's capture) are kept and only brought to our level and format.
    """
    global _configured
    if _configured:
        return

    level_value = _level(level or config.log_level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level_value)
    if not root.handlers:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        root.addHandler(handler)
    for handler in root.handlers:
        handler.setLevel(level_value)
        if handler.formatter is None:
            handler.setFormatter(formatter)

    for name in _SERVER_LOGGERS:
        logging.getLogger(name).setLevel(level_value)
    for name in _CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(max(level_value, logging.INFO))

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name or "storybook")
