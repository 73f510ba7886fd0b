"""
Logging utilities for the timesheet submitter.

This module sets up the package logger and provides small helpers for
consistently formatted sections, steps and structured progress events.
"""

import logging
import sys
from typing import Any, Optional


LOGGER_NAME = 'timesheet_submitter'

# Placeholder written in place of credentials and other sensitive values
REDACTED = '***'


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colors the level name for terminal output.
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
            )

        formatted = super().format(record)

        # Restore so other handlers see the plain level name
        record.levelname = levelname

        return formatted


def setup_logging(verbose: bool = False, use_colors: bool = True) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        verbose: If True, log at DEBUG level; otherwise INFO
        use_colors: If True and stdout is a terminal, color the level names

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    # setup_logging may run more than once (CLI + tests)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    fmt = '%(asctime)s %(levelname)-8s | %(message)s' if verbose else '%(levelname)-8s | %(message)s'
    if use_colors and sys.stdout.isatty():
        formatter = ColoredFormatter(fmt=fmt, datefmt='%H:%M:%S')
    else:
        formatter = logging.Formatter(fmt=fmt, datefmt='%H:%M:%S')

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger() -> logging.Logger:
    """Return the package logger."""
    return logging.getLogger(LOGGER_NAME)


def redact(value: Any, sensitive: bool = True) -> str:
    """
    Render a value for logging, hiding it when it is sensitive.

    Args:
        value: Value about to be logged
        sensitive: Whether the value must be hidden

    Returns:
        The value as a (truncated) string, or the redaction placeholder
    """
    if sensitive:
        return REDACTED
    text = str(value)
    return text if len(text) <= 50 else text[:47] + '...'


def format_event(event: str, **fields: Any) -> str:
    """
    Format a structured progress event as a single log line.

    Example:
        >>> format_event('fill_start', field='hours', value='1.5')
        '[FILL_START] field=hours value=1.5'
    """
    parts = [f"[{event.upper()}]"]
    parts.extend(f"{key}={value}" for key, value in fields.items())
    return " ".join(parts)


def log_event(event: str, logger: Optional[logging.Logger] = None,
              level: int = logging.INFO, **fields: Any):
    """
    Log a structured progress event.

    Args:
        event: Event name (e.g. "fill_start")
        logger: Logger instance (uses default if None)
        level: Logging level
        **fields: Key/value context attached to the event
    """
    if logger is None:
        logger = get_logger()

    logger.log(level, format_event(event, **fields))


def log_section(title: str, logger: Optional[logging.Logger] = None):
    """Log a section header."""
    if logger is None:
        logger = get_logger()

    logger.info("")
    logger.info("=" * 60)
    logger.info(f"  {title}")
    logger.info("=" * 60)


def log_step(step: str, logger: Optional[logging.Logger] = None):
    """Log a processing step."""
    if logger is None:
        logger = get_logger()

    logger.info(f"→ {step}")


def log_error(error: str, logger: Optional[logging.Logger] = None):
    """Log an error message with consistent formatting."""
    if logger is None:
        logger = get_logger()

    logger.error(f"✗ {error}")


def log_success(message: str, logger: Optional[logging.Logger] = None):
    """Log a success message."""
    if logger is None:
        logger = get_logger()

    logger.info(f"✓ {message}")


def log_warning(warning: str, logger: Optional[logging.Logger] = None):
    """Log a warning message."""
    if logger is None:
        logger = get_logger()

    logger.warning(f"⚠ {warning}")
