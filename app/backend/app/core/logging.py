"""Logging setup shared by the API process and migrations."""

from __future__ import annotations

import logging
import logging.config


def configure_logging(level: str = "INFO") -> None:
    """Install a single console handler on the ``app`` logger tree."""

    normalized = (level or "INFO").strip().upper()
    if normalized not in logging.getLevelNamesMapping():
        normalized = "INFO"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
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
                    "level": normalized,
                    "propagate": False,
                },
            },
        }
    )
