"""Process-wide logging setup, applied once when src.main is imported."""

import logging
from logging.config import dictConfig

from config.settings import settings


def configure_logging(level: str | None = None) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["console"],
                "level": (level or settings.LOG_LEVEL).upper(),
            },
            "loggers": {
                # SQL echo is controlled by DEBUG on the engine, keep the logger quiet otherwise
                "sqlalchemy.engine": {"level": logging.WARNING},
                "httpx": {"level": logging.WARNING},
            },
        }
    )
