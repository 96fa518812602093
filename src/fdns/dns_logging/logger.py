"""
Structured Logging Framework

This module provides the core logging infrastructure using structlog over
the standard library, with console output and an optional rotating JSON
log file.
"""

import json
import logging
import logging.handlers
import sys
import traceback
from pathlib import Path
from typing import List, Optional

import structlog

from ..config.schema import LoggingConfig


class DetailedConsoleFormatter(logging.Formatter):
    """Console formatter that appends full tracebacks for errors."""

    def format(self, record):
        formatted = super().format(record)

        if record.exc_info and not record.exc_text:
            tb_lines = traceback.format_exception(*record.exc_info)
            formatted += "\n" + "".join(tb_lines)

        return formatted


class JSONFileFormatter(logging.Formatter):
    """One JSON object per line for the log file."""

    def format(self, record):
        log_dict = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "structured_data"):
            log_dict.update(record.structured_data)

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict, default=str)


class StructuredLogger:
    """Structured logger using structlog with console and file output."""

    def __init__(self, config: LoggingConfig):
        """Initialize structured logger.

        Args:
            config: Logging configuration
        """
        self.config = config
        self._configured = False
        self.logger = None
        self._file_handler: Optional[logging.Handler] = None

    def configure(self) -> None:
        """Configure stdlib handlers and structlog processors."""
        if self._configured:
            return

        root_logger = logging.getLogger()
        root_logger.handlers.clear()

        log_level = getattr(logging, self.config.level.upper())
        root_logger.setLevel(log_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(
            DetailedConsoleFormatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(console_handler)

        structlog.configure(
            processors=self._get_processors(),
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        if self.config.file:
            self._setup_file_logging(root_logger)

        self._configured = True
        self.logger = structlog.get_logger("fdns")

    def _get_processors(self) -> List:
        """Processor chain for the configured format."""
        processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]

        if self.config.format == "structured":
            processors.append(structlog.processors.JSONRenderer())
        elif self.config.format == "detailed":
            processors.append(structlog.dev.ConsoleRenderer(colors=False))
        else:
            processors.append(structlog.processors.KeyValueRenderer(key_order=["event"]))

        return processors

    def _setup_file_logging(self, root_logger: logging.Logger) -> None:
        """Attach a rotating JSON file handler."""
        log_path = Path(self.config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=self.config.file,
            maxBytes=self.config.max_size_mb * 1024 * 1024,
            backupCount=self.config.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(getattr(logging, self.config.level.upper()))
        file_handler.setFormatter(JSONFileFormatter())

        root_logger.addHandler(file_handler)
        self._file_handler = file_handler

    def get_logger(self, name: str = "fdns") -> structlog.stdlib.BoundLogger:
        """Get a structured logger instance."""
        if not self._configured:
            self.configure()

        return structlog.get_logger(name)

    def close(self) -> None:
        """Flush and detach the file handler."""
        if self._file_handler is not None:
            logging.getLogger().removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None


# Global logger instance
_logger_instance: Optional[StructuredLogger] = None


def setup_logging(config: LoggingConfig) -> StructuredLogger:
    """Setup global logging configuration.

    Args:
        config: Logging configuration
    """
    global _logger_instance
    if _logger_instance is not None:
        _logger_instance.close()
    _logger_instance = StructuredLogger(config)
    _logger_instance.configure()
    return _logger_instance


def get_logger(name: str = "fdns") -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Raises:
        RuntimeError: If logging hasn't been configured
    """
    if _logger_instance is None:
        raise RuntimeError("Logging not configured. Call setup_logging() first.")

    return _logger_instance.get_logger(name)


def log_exception(logger, message: str, exc: Optional[BaseException] = None) -> None:
    """Log an exception with its type, message and traceback.

    Args:
        logger: Logger instance
        message: Log message
        exc: Exception instance (defaults to the one being handled)
    """
    if exc is None:
        exc = sys.exc_info()[1]

    if exc is None:
        logger.error(message)
        return

    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        message,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=tb_str,
    )
