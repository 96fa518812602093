"""
Resolver Configuration Schema

Configuration sections for the resolver core, its logging and the HTTP host
surface. Each section validates itself on construction.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..core.channel import parse_server_spec
from ..core.errors import InvalidServerSpecError
from .validators import (
    validate_bind_address,
    validate_boolean,
    validate_file_path,
    validate_log_level,
    validate_non_negative_int,
    validate_port,
    validate_positive_int,
    validate_udp_payload,
)


@dataclass
class ResolverConfig:
    """Resolver configuration section."""

    default_timeout_ms: int = 3000
    initial_server: str = ""
    attempt_timeout_ms: int = 2000
    tries: int = 3
    rotate: bool = False
    udp_max_payload: int = 1232
    unusable_server_policy: str = "fail"
    resolv_conf: str = "/etc/resolv.conf"

    def __post_init__(self) -> None:
        """Validate resolver configuration."""
        if not validate_non_negative_int(self.default_timeout_ms):
            raise ValueError(
                f"Default timeout must be non-negative: {self.default_timeout_ms}"
            )

        if self.initial_server:
            try:
                parse_server_spec(self.initial_server)
            except InvalidServerSpecError as e:
                raise ValueError(f"Invalid initial server: {e}")

        if not validate_positive_int(self.attempt_timeout_ms):
            raise ValueError(
                f"Attempt timeout must be positive: {self.attempt_timeout_ms}"
            )

        if not validate_positive_int(self.tries):
            raise ValueError(f"Tries must be positive: {self.tries}")

        if not validate_boolean(self.rotate):
            raise ValueError(f"Rotate must be boolean: {self.rotate}")

        if not validate_udp_payload(self.udp_max_payload):
            raise ValueError(f"Invalid UDP payload size: {self.udp_max_payload}")

        if self.unusable_server_policy not in ["fail", "system"]:
            raise ValueError(
                f"Invalid unusable server policy: {self.unusable_server_policy}"
            )

        if not validate_file_path(self.resolv_conf):
            raise ValueError(f"Invalid resolv.conf path: {self.resolv_conf}")

    def channel_options(self) -> dict:
        """Keyword arguments for building client handles."""
        return {
            "attempt_timeout_ms": self.attempt_timeout_ms,
            "tries": self.tries,
            "rotate": self.rotate,
            "udp_max_payload": self.udp_max_payload,
        }


@dataclass
class LoggingConfig:
    """Logging configuration section."""

    level: str = "INFO"
    format: str = "structured"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5
    log_lookups: bool = True

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        if not validate_log_level(self.level):
            raise ValueError(f"Invalid log level: {self.level}")

        if self.format not in ["simple", "detailed", "structured"]:
            raise ValueError(f"Invalid log format: {self.format}")

        if self.file is not None and not validate_file_path(self.file):
            raise ValueError(f"Invalid log file path: {self.file}")

        if not validate_positive_int(self.max_size_mb):
            raise ValueError(f"Max size MB must be positive: {self.max_size_mb}")

        if not validate_positive_int(self.backup_count):
            raise ValueError(f"Backup count must be positive: {self.backup_count}")

        if not validate_boolean(self.log_lookups):
            raise ValueError(f"Log lookups must be boolean: {self.log_lookups}")


@dataclass
class WebConfig:
    """HTTP host configuration section."""

    enabled: bool = True
    bind_address: str = "127.0.0.1"
    port: int = 8053
    cors_enabled: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    def __post_init__(self) -> None:
        """Validate web configuration."""
        if not validate_boolean(self.enabled):
            raise ValueError(f"Web enabled must be boolean: {self.enabled}")

        if not validate_bind_address(self.bind_address):
            raise ValueError(f"Invalid bind address: {self.bind_address}")

        if not validate_port(self.port):
            raise ValueError(f"Invalid web port: {self.port}")

        if not validate_boolean(self.cors_enabled):
            raise ValueError(f"CORS enabled must be boolean: {self.cors_enabled}")

        if not isinstance(self.cors_origins, list):
            raise ValueError(f"CORS origins must be a list: {self.cors_origins}")


@dataclass
class FDNSConfig:
    """Main configuration."""

    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    web: WebConfig = field(default_factory=WebConfig)


def create_default_config() -> FDNSConfig:
    """Create a default configuration instance."""
    return FDNSConfig()
