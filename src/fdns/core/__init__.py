"""
Resolver Core Module

This module exports the resolution engine components.
"""

from .channel import Channel, QueryStatus, ServerAddress, parse_server_spec
from .dispatcher import (
    CustomServerStrategy,
    Dispatcher,
    ResolutionStrategy,
    SystemStrategy,
)
from .errors import (
    ErrorCode,
    FDNSError,
    InvalidAddressError,
    InvalidServerSpecError,
    LibraryInitError,
    MissingArgumentError,
    NotInitializedError,
    ServerUnavailableError,
)
from .records import UNRESOLVED, DnsRecord, ExtendedResult, RecordType
from .store import ChannelFactory, ServerConfigStore
from .system import SystemResolver

__all__ = [
    # Operations
    "Dispatcher",
    "ServerConfigStore",
    "ChannelFactory",
    # Strategies
    "ResolutionStrategy",
    "SystemStrategy",
    "CustomServerStrategy",
    "SystemResolver",
    # Client handle
    "Channel",
    "QueryStatus",
    "ServerAddress",
    "parse_server_spec",
    # Results
    "DnsRecord",
    "ExtendedResult",
    "RecordType",
    "UNRESOLVED",
    # Errors
    "ErrorCode",
    "FDNSError",
    "NotInitializedError",
    "LibraryInitError",
    "InvalidServerSpecError",
    "ServerUnavailableError",
    "MissingArgumentError",
    "InvalidAddressError",
]
