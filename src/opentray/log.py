"""Logging configuration for opentray with structlog support."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from typing import TYPE_CHECKING, Any

import structlog


if TYPE_CHECKING:
    from pathlib import Path


LogLevel = int | str

# Maximum log file size in bytes (10MB)
MAX_LOG_SIZE = 10 * 1024 * 1024
BACKUP_COUNT = 5


def configure_logging(
    level: LogLevel = "INFO",
    *,
    use_colors: bool | None = None,
    json_logs: bool = False,
    log_file: Path | None = None,
) -> None:
    """Configure structlog and standard logging.

    Args:
        level: Logging level
        use_colors: Whether to use colored output (auto-detected if None)
        json_logs: Force JSON output regardless of TTY detection
        log_file: Optional file that receives a rotating copy of the log
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=MAX_LOG_SIZE,
                backupCount=BACKUP_COUNT,
                encoding="utf-8",
            )
        )
    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True,
        format="%(message)s",  # structlog handles formatting
    )

    if use_colors is None:
        use_colors = sys.stderr.isatty() and not json_logs

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs or (not use_colors and not sys.stderr.isatty()):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=use_colors))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, log_level: LogLevel | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name.

    Args:
        name: The name of the logger, will be prefixed with 'opentray.'
        log_level: The logging level to set for the logger

    Returns:
        A structlog BoundLogger instance
    """
    name = name.removeprefix("opentray.")
    logger = structlog.get_logger(f"opentray.{name}")
    if log_level is not None:
        if isinstance(log_level, str):
            log_level = getattr(logging, log_level.upper())
        stdlib_logger = logging.getLogger(f"opentray.{name}")
        stdlib_logger.setLevel(log_level)
    return logger
