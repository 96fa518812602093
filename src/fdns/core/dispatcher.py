"""
Resolution Dispatcher

Public resolver operations. Each call takes one snapshot of the server
store and routes to the OS resolver when no server is selected, or to the
client engine against the selected servers otherwise.
"""

import ipaddress
import logging
import time
from typing import Callable, Optional

from .channel import Channel
from .engine import resolve_fanout, resolve_single, reverse_single
from .errors import (
    InvalidAddressError,
    MissingArgumentError,
    ServerUnavailableError,
)
from .records import ExtendedResult
from .store import ServerConfigStore, ServerSnapshot
from .system import SystemResolver

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 3000
UNUSABLE_SERVER_POLICIES = ("fail", "system")


class ResolutionStrategy:
    """One way of answering resolver operations"""

    name = "abstract"

    def resolve(self, hostname: str, timeout_ms: int) -> str:
        raise NotImplementedError

    def reverse(self, ipv4: str, timeout_ms: int) -> str:
        raise NotImplementedError

    def resolve_extended(self, hostname: str, timeout_ms: int) -> ExtendedResult:
        raise NotImplementedError


class SystemStrategy(ResolutionStrategy):
    """OS stub resolver; timeouts are left to the OS"""

    name = "system"

    def __init__(self, resolver: Optional[SystemResolver] = None):
        self.resolver = resolver or SystemResolver()

    def resolve(self, hostname: str, timeout_ms: int) -> str:
        return self.resolver.resolve_forward(hostname)

    def reverse(self, ipv4: str, timeout_ms: int) -> str:
        return self.resolver.resolve_reverse(ipv4)

    def resolve_extended(self, hostname: str, timeout_ms: int) -> ExtendedResult:
        return self.resolver.resolve_extended(hostname)


class CustomServerStrategy(ResolutionStrategy):
    """Client engine against the servers bound to ``channel``.

    Every call runs on a transient handle spawned from ``channel`` and
    destroyed afterwards, so a concurrent server change that tears down
    ``channel`` does not disturb queries already in flight.
    """

    name = "custom"

    def __init__(self, channel: Channel):
        self.channel = channel

    def resolve(self, hostname: str, timeout_ms: int) -> str:
        with self.channel.spawn() as transient:
            return resolve_single(transient, hostname, timeout_ms)

    def reverse(self, ipv4: str, timeout_ms: int) -> str:
        with self.channel.spawn() as transient:
            return reverse_single(transient, ipv4, timeout_ms)

    def resolve_extended(self, hostname: str, timeout_ms: int) -> ExtendedResult:
        with self.channel.spawn() as transient:
            return resolve_fanout(transient, hostname, timeout_ms)


class Dispatcher:
    """Resolve, reverse and extended resolution over a ``ServerConfigStore``"""

    def __init__(
        self,
        store: Optional[ServerConfigStore] = None,
        system_strategy: Optional[ResolutionStrategy] = None,
        custom_strategy_factory: Callable[
            [Channel], ResolutionStrategy
        ] = CustomServerStrategy,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        unusable_server_policy: str = "fail",
        lookup_logger=None,
    ):
        if unusable_server_policy not in UNUSABLE_SERVER_POLICIES:
            raise ValueError(
                f"Invalid unusable server policy: {unusable_server_policy}"
            )
        self.store = store or ServerConfigStore()
        self.system_strategy = system_strategy or SystemStrategy()
        self.custom_strategy_factory = custom_strategy_factory
        self.default_timeout_ms = default_timeout_ms
        self.unusable_server_policy = unusable_server_policy
        self.lookup_logger = lookup_logger

    # Configuration pass-throughs

    def initialize(self) -> None:
        self.store.initialize()

    def uninitialize(self) -> None:
        self.store.uninitialize()

    def set_server(self, server_spec: Optional[str]) -> None:
        self.store.set_server((server_spec or "").strip())

    def get_current_server(self) -> str:
        return self.store.current_server()

    def get_systems_server(self) -> str:
        return self.store.system_servers()

    # Resolution

    def resolve(self, hostname: Optional[str], timeout_ms: Optional[int] = None) -> str:
        """IPv4 address for ``hostname`` or ``"?"``

        Raises:
            NotInitializedError: If the resolver is not initialized
            MissingArgumentError: If ``hostname`` is empty
            ServerUnavailableError: If the selected server has no handle
        """
        snapshot = self.store.snapshot()
        hostname = self._require(hostname, "hostname")
        timeout_ms = self._timeout(timeout_ms)
        strategy = self._select(snapshot)

        started = time.monotonic()
        answer = strategy.resolve(hostname, timeout_ms)
        self._log("resolve", hostname, strategy, snapshot, started, answer)
        return answer

    def reverse(self, ipv4: Optional[str], timeout_ms: Optional[int] = None) -> str:
        """Name for an IPv4 literal or ``"?"``

        Raises:
            NotInitializedError: If the resolver is not initialized
            MissingArgumentError: If ``ipv4`` is empty
            InvalidAddressError: If ``ipv4`` is not an IPv4 literal
            ServerUnavailableError: If the selected server has no handle
        """
        snapshot = self.store.snapshot()
        ipv4 = self._require(ipv4, "ip address")
        try:
            ipv4 = str(ipaddress.IPv4Address(ipv4))
        except ValueError:
            raise InvalidAddressError(f"Not an IPv4 address: {ipv4!r}")
        timeout_ms = self._timeout(timeout_ms)
        strategy = self._select(snapshot)

        started = time.monotonic()
        answer = strategy.reverse(ipv4, timeout_ms)
        self._log("reverse", ipv4, strategy, snapshot, started, answer)
        return answer

    def resolve_extended(
        self, hostname: Optional[str], timeout_ms: Optional[int] = None
    ) -> str:
        """JSON document with every record found for ``hostname``

        Raises:
            NotInitializedError: If the resolver is not initialized
            MissingArgumentError: If ``hostname`` is empty
            ServerUnavailableError: If the selected server has no handle
        """
        snapshot = self.store.snapshot()
        hostname = self._require(hostname, "hostname")
        timeout_ms = self._timeout(timeout_ms)
        strategy = self._select(snapshot)

        started = time.monotonic()
        result = strategy.resolve_extended(hostname, timeout_ms)
        self._log(
            "resolve_extended",
            hostname,
            strategy,
            snapshot,
            started,
            f"{len(result.records)} records",
        )
        return result.to_json()

    # Helpers

    def _select(self, snapshot: ServerSnapshot) -> ResolutionStrategy:
        if snapshot.uses_system_default:
            return self.system_strategy
        if snapshot.channel is None:
            if self.unusable_server_policy == "system":
                logger.warning(
                    f"Server {snapshot.server} has no usable handle, "
                    "falling back to system resolver"
                )
                return self.system_strategy
            raise ServerUnavailableError(
                f"Server {snapshot.server} has no usable client handle"
            )
        return self.custom_strategy_factory(snapshot.channel)

    def _timeout(self, timeout_ms: Optional[int]) -> int:
        if timeout_ms is None or timeout_ms < 0:
            return self.default_timeout_ms
        return int(timeout_ms)

    @staticmethod
    def _require(value: Optional[str], what: str) -> str:
        value = (value or "").strip()
        if not value:
            raise MissingArgumentError(f"Missing {what}")
        return value

    def _log(
        self,
        operation: str,
        target: str,
        strategy: ResolutionStrategy,
        snapshot: ServerSnapshot,
        started: float,
        outcome: str,
    ) -> None:
        if self.lookup_logger is None:
            return
        self.lookup_logger.log_lookup(
            operation=operation,
            target=target,
            path=strategy.name,
            server=snapshot.server,
            elapsed_ms=(time.monotonic() - started) * 1000.0,
            outcome=outcome,
        )
