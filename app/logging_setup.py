"""Central logging configuration for the assessment service.

Applies a root stdout handler so the engine, repository and route loggers
emit without per-module setup. The level comes from LOG_LEVEL (INFO when
unset). Uvicorn loggers share the same handler; repeated calls are no-ops.
"""
from __future__ import annotations
import logging
import os
from logging.config import dictConfig
from typing import Any, Dict

DEFAULT_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"


def _dict_config(level: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": DEFAULT_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "app": {"level": level, "propagate": True},
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "sqlalchemy.engine": {"level": "WARNING", "propagate": True},
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Configure application-wide logging once.

    If the root logger already has handlers (pytest capture, reloaders),
    leave it alone to avoid duplicate output.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    resolved = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    if not isinstance(logging.getLevelName(resolved), int):
        resolved = "INFO"
    dictConfig(_dict_config(resolved))


__all__ = ["configure_logging", "DEFAULT_FORMAT"]
