"""
Resolver Logging Module

Structured logging setup and per-lookup event logging.
"""

from .logger import (
    StructuredLogger,
    get_logger,
    log_exception,
    setup_logging,
)
from .lookup_logger import LookupLogger

__all__ = [
    "StructuredLogger",
    "setup_logging",
    "get_logger",
    "log_exception",
    "LookupLogger",
]
