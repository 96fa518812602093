"""
Resolver Error Taxonomy

Errors surfaced to callers of the resolution operations. Lookup failures
(unknown names, timeouts, unreachable servers) are never raised; they are
reported through the "?" sentinel or an empty record list instead.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Numeric codes a host can hand back to its own caller"""

    NOT_INITIALIZED = 1
    LIBRARY_INIT_FAILURE = 2
    MISSING_ARGUMENT = 956
    INVALID_ADDRESS = 957


class FDNSError(Exception):
    """Base class for all surfaced resolver errors"""

    code = ErrorCode.LIBRARY_INIT_FAILURE

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)


class NotInitializedError(FDNSError):
    """Resolver is not initialized"""

    code = ErrorCode.NOT_INITIALIZED


class LibraryInitError(FDNSError):
    """Resolver client could not be initialized"""

    code = ErrorCode.LIBRARY_INIT_FAILURE


class InvalidServerSpecError(LibraryInitError):
    """Server list could not be parsed"""


class ServerUnavailableError(LibraryInitError):
    """Configured server has no usable client handle"""


class MissingArgumentError(FDNSError):
    """Required argument is missing"""

    code = ErrorCode.MISSING_ARGUMENT


class InvalidAddressError(FDNSError):
    """Address is not a valid IPv4 literal"""

    code = ErrorCode.INVALID_ADDRESS
