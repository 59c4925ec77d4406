"""Structured logging configuration.

This module initializes structlog with a stable JSON event format.
Output goes to a per-run log file, to stderr, or nowhere; never to
stdout, which carries the converted payload.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
from pathlib import Path
import sys
from typing import IO, Any
import uuid

import structlog

from core.constants import LOG_TARGET_STDERR, TOOL_NAME

_LOG_FILE: IO[str] | None = None


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A lazily bound structlog logger.
    """
    if not structlog.is_configured():
        _configure_discard()
    return structlog.get_logger(name)


def configure_logging(target: str | None) -> Path | None:
    """Route structured log events to the requested destination.

    Args:
        target: ``None`` to discard events, ``"stderr"``, or a directory
            that receives a unique per-run log file.

    Returns:
        Path of the created log file, if any.
    """
    close_logging()
    log_path: Path | None = None
    if target is None:
        _configure_discard()
    elif target == LOG_TARGET_STDERR:
        _configure(sys.stderr, min_level=logging.DEBUG)
    else:
        log_path, stream = _open_log_file(Path(target))
        _configure(stream, min_level=logging.DEBUG)
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(invocation_id=str(uuid.uuid4()), pid=os.getpid())
    return log_path


def close_logging() -> None:
    """Flush and close the per-run log file and stop writing to it."""
    global _LOG_FILE
    if _LOG_FILE is None:
        return
    _configure_discard()
    _LOG_FILE.flush()
    _LOG_FILE.close()
    _LOG_FILE = None


def build_log_file_name(now: datetime | None = None) -> str:
    """Build a unique per-run log file name."""
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S.%fZ")
    return f"{TOOL_NAME}_{timestamp}_{os.getpid()}_{uuid.uuid4()}.log"


def _open_log_file(log_dir: Path) -> tuple[Path | None, IO[str]]:
    global _LOG_FILE
    log_path = log_dir / build_log_file_name()
    try:
        _LOG_FILE = log_path.open("a", encoding="utf-8")
    except OSError as error:
        sys.stderr.write(f"Warning: Failed to create log file {log_path}: {error}\n")
        return None, sys.stderr
    return log_path, _LOG_FILE


def _drop_event(logger: Any, method_name: str, event_dict: Any) -> Any:
    raise structlog.DropEvent


def _configure_discard() -> None:
    structlog.configure(
        processors=[_drop_event],
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def _configure(stream: IO[str], min_level: int) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.WriteLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
