"""Runtime logging helpers."""

from __future__ import annotations

import os
import sys
from contextvars import ContextVar

import loguru
from loguru import logger

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[identity]} | {message}"
_CURRENT_IDENTITY: ContextVar[str] = ContextVar("switchboard_identity", default="-")
_CONFIGURED_LEVEL: str | None = None


def current_identity() -> str:
    return _CURRENT_IDENTITY.get()


def bind_identity(identity: str) -> None:
    """Tag log records emitted by the current task with the identity being served."""
    _CURRENT_IDENTITY.set(identity)


def configure_logging(level: str | None = None) -> None:
    """Configure process-level logging once."""

    def inject_context(record: loguru.Record) -> None:
        record["extra"]["identity"] = current_identity()

    global _CONFIGURED_LEVEL
    resolved = (level or os.getenv("SWITCHBOARD_LOG_LEVEL", "INFO")).upper()
    if resolved == _CONFIGURED_LEVEL:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=resolved,
        format=_LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    logger.configure(patcher=inject_context)
    _CONFIGURED_LEVEL = resolved
