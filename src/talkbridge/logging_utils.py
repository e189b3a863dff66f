"""Runtime logging helpers."""

from __future__ import annotations

import sys

import loguru
from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[talker]} | {message}"
_CONFIGURED_LEVEL: str | None = None


def configure_logging(level: str | None = None) -> None:
    """Configure process-level logging once per level."""
    from talkbridge.config import get_settings

    def inject_context(record: loguru.Record) -> None:
        record["extra"].setdefault("talker", "-")

    global _CONFIGURED_LEVEL
    level = (level or get_settings().log_level).upper()
    if level == _CONFIGURED_LEVEL:
        return

    logger.remove()
    logger.configure(patcher=inject_context)
    logger.add(
        sys.stderr,
        level=level,
        format=_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    _CONFIGURED_LEVEL = level
