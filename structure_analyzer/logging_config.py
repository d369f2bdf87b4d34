"""
Logging setup for the structure analyzer.

Engine modules only create module loggers and emit DEBUG records; hosts
call `setup_logging` once (or rely on `get_logger`) to attach handlers to
the `structure_analyzer` logger.

Environment:
    LOG_LEVEL    level name when none is passed (default INFO)
    LOG_FILE     rotating file path when none is passed
    LOG_JSON     "true" for one JSON object per line
    LOG_CONSOLE  "false" to silence stdout
"""

import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import List, Optional

PACKAGE_LOGGER = "structure_analyzer"

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"
JSON_DATEFMT = "%Y-%m-%dT%H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        color = self.COLORS.get(original)
        if color:
            record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # The record is shared with the file handler
            record.levelname = original


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, JSON_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _build_handlers(
    log_file: Optional[str], console: bool, json_format: bool, max_bytes: int, backup_count: int
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    plain = JsonLineFormatter() if json_format else logging.Formatter(TEXT_FORMAT, TEXT_DATEFMT)

    if console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(plain if json_format else ColoredFormatter(TEXT_FORMAT, TEXT_DATEFMT))
        handlers.append(stream)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        rotating.setFormatter(plain)
        handlers.append(rotating)

    return handlers


def setup_logging(
    name: str = PACKAGE_LOGGER,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Attach handlers to a logger, replacing any it already has.

    Args:
        name: Logger to configure (the package logger by default)
        level: Level name; LOG_LEVEL, then INFO when omitted
        log_file: Rotating file path; LOG_FILE when omitted, no file if unset
        console: Write to stdout
        json_format: Emit JSON lines instead of text
        max_bytes: File size that triggers rotation
        backup_count: Rotated files kept

    Returns:
        The configured logger.

    Example:
        >>> logger = setup_logging(level="DEBUG")
        >>> logger.debug("pipeline ready")
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_file = log_file or os.getenv("LOG_FILE")

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(log_file, console, json_format, max_bytes, backup_count):
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures the package logger from the environment on first use."""
    package = logging.getLogger(PACKAGE_LOGGER)
    if not package.handlers:
        setup_logging(
            json_format=_env_flag("LOG_JSON", False),
            console=_env_flag("LOG_CONSOLE", True),
        )
    return logging.getLogger(name)
