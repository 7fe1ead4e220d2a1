"""
Color Analyzer Structured Logging
Centralized logging configuration using loguru.
"""
import sys
from typing import Any, Dict, Optional

from loguru import logger

from coloranalyzer.config import get_config


class StructuredLogger:
    """Structured logger for the analysis client."""

    def __init__(self, level: Optional[str] = None, add_sink: Optional[bool] = None):
        """
        Initialize structured logger.

        Records always go to whatever loguru sinks the host application has
        set up. A formatted stderr sink of our own is added only when asked
        for (config.log_to_stderr by default).
        """
        self._handler_id: Optional[int] = None
        config = get_config()
        if add_sink is None:
            add_sink = config.log_to_stderr
        if add_sink:
            self.configure(level or config.log_level)

    def configure(self, level: str):
        """Add (or replace) our own stderr sink; other sinks are left alone."""
        if self._handler_id is not None:
            logger.remove(self._handler_id)

        self._handler_id = logger.add(
            sys.stderr,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}",
            level=level,
            serialize=False  # Set to True for JSON output
        )

    def close(self):
        """Remove our stderr sink, if one was added."""
        if self._handler_id is not None:
            logger.remove(self._handler_id)
            self._handler_id = None

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log info message with optional extra data."""
        if extra:
            logger.bind(**extra).info(message)
        else:
            logger.info(message)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log warning message with optional extra data."""
        if extra:
            logger.bind(**extra).warning(message)
        else:
            logger.warning(message)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log error message with optional extra data."""
        if extra:
            logger.bind(**extra).error(message)
        else:
            logger.error(message)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log debug message with optional extra data."""
        if extra:
            logger.bind(**extra).debug(message)
        else:
            logger.debug(message)


# Global logger instance
_logger: Optional[StructuredLogger] = None


def get_logger() -> StructuredLogger:
    """Get or create global logger instance."""
    global _logger
    if _logger is None:
        _logger = StructuredLogger()
    return _logger
