"""Process-wide logging setup. Modules log through logging.getLogger(__name__)."""

import logging
from typing import Optional
from logging.config import dictConfig

from app.core.config import settings


def configure_logging(level: Optional[str] = None) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "app": {
                    "handlers": ["console"],
                    "level": (level or settings.log_level).upper(),
                    "propagate": True,
                },
            },
        }
    )
    logging.getLogger(__name__).debug("Logging configured")
