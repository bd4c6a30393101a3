"""
PerfGate Logging Configuration
==============================
Centralized loguru setup shared by the CLI, the HTTP app and library callers.

Usage:
    from perfgate.core.logging_config import configure_logging

    configure_logging(level="DEBUG")          # human-readable, stderr
    configure_logging(json_format=True)       # one JSON object per line

Environment:
    LOG_FORMAT: "json" switches to JSON lines when json_format is None.
    LOG_LEVEL:  used when level is None.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from loguru import logger

_CONFIGURED = False

_HUMAN_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

_JSON_FORMAT = (
    '{{"timestamp": "{time:YYYY-MM-DDTHH:mm:ss.SSSZ}", '
    '"level": "{level}", '
    '"logger": "{name}", '
    '"function": "{function}", '
    '"line": {line}, '
    '"message": "{message}"}}'
)


class InterceptHandler(logging.Handler):
    """Route stdlib logging records (uvicorn, aiohttp) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(
    level: Optional[str] = "INFO",
    json_format: Optional[bool] = None,
    *,
    sink: Optional[str] = None,
) -> None:
    """
    Configure loguru for perfgate.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, emit JSON lines. If None, check LOG_FORMAT.
        sink: Optional file path. Defaults to stderr.
    """
    global _CONFIGURED

    if json_format is None:
        json_format = os.environ.get("LOG_FORMAT", "").lower() == "json"
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")

    logger.remove()
    logger.add(
        sink if sink else sys.stderr,
        level=level.upper(),
        format=_JSON_FORMAT if json_format else _HUMAN_FORMAT,
        colorize=not json_format and sink is None,
        enqueue=True,
        backtrace=True,
        diagnose=True,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for noisy in ("uvicorn", "uvicorn.error", "uvicorn.access", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(level.upper())

    _CONFIGURED = True
    logger.debug(f"Logging configured: level={level}, json_format={json_format}")


def is_configured() -> bool:
    return _CONFIGURED


__all__ = ["configure_logging", "is_configured", "InterceptHandler", "logger"]
