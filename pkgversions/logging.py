"""
logging.py

Responsibility: Configure structlog once and hand out named loggers.

Log lines are JSON on stderr; stdout stays reserved for data the CLI prints.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

_CONFIGURED = False


def configure_logging(level: str | None = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    # stderr only: stdout carries the version map when printed by the CLI.
    logging.basicConfig(
        level=(level or os.environ.get("PKGVERSIONS_LOG_LEVEL") or "INFO").upper(),
        format="%(message)s",
        stream=sys.stderr,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def get_logger(name: str = "pkgversions") -> structlog.stdlib.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)
