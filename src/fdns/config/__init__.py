"""
Resolver Configuration Module
"""

from .loader import ConfigLoader, load_config_from_file
from .schema import (
    FDNSConfig,
    LoggingConfig,
    ResolverConfig,
    WebConfig,
    create_default_config,
)

__all__ = [
    "ConfigLoader",
    "load_config_from_file",
    "FDNSConfig",
    "ResolverConfig",
    "LoggingConfig",
    "WebConfig",
    "create_default_config",
]
