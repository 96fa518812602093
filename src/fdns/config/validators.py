"""
Configuration Validators

This module provides validation functions for resolver configuration parameters.
"""

import ipaddress
from pathlib import Path


def validate_bind_address(address: str) -> bool:
    """Validate bind address format."""
    if not address:
        return False

    try:
        ipaddress.ip_address(address)
        return True
    except ValueError:
        return False


def validate_boolean(value) -> bool:
    """Validate boolean value."""
    return isinstance(value, bool)


def validate_file_path(path: str) -> bool:
    """Validate file path format."""
    if not path:
        return False

    try:
        Path(path)
        return True
    except (TypeError, ValueError):
        return False


def validate_log_level(level: str) -> bool:
    """Validate log level."""
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    return isinstance(level, str) and level.upper() in valid_levels


def validate_positive_int(value: int) -> bool:
    """Validate positive integer."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_non_negative_int(value: int) -> bool:
    """Validate non-negative integer."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_port(port: int) -> bool:
    """Validate port number."""
    return isinstance(port, int) and 1 <= port <= 65535


def validate_udp_payload(size: int) -> bool:
    """Validate EDNS0 payload size (0 disables EDNS0)."""
    return isinstance(size, int) and (size == 0 or 512 <= size <= 4096)
