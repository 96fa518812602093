"""
Server Configuration Store

Process-wide resolver state: the selected server list (empty means the
system default), the initialized flag and the shared client handle built
for that selection. Every read and write of the three goes through one lock
so callers only ever see a consistent triple.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .channel import Channel
from .errors import LibraryInitError, NotInitializedError
from .records import UNRESOLVED

logger = logging.getLogger(__name__)


class ChannelFactory:
    """Builds client handles with one set of channel options"""

    def __init__(self, resolv_conf: Optional[str] = None, **channel_options):
        self.resolv_conf = resolv_conf
        self.channel_options = channel_options

    def system_default(self) -> Channel:
        return Channel.system_default(self.resolv_conf, **self.channel_options)

    def from_spec(self, spec: str) -> Channel:
        return Channel.from_spec(spec, **self.channel_options)

    def for_server(self, spec: str) -> Channel:
        if spec:
            return self.from_spec(spec)
        return self.system_default()


@dataclass(frozen=True)
class ServerSnapshot:
    """Consistent view of the store taken under its lock"""

    server: str
    channel: Optional[Channel]

    @property
    def uses_system_default(self) -> bool:
        return not self.server


class ServerConfigStore:
    """Owner of the current server selection and its shared handle"""

    def __init__(self, channel_factory: Optional[ChannelFactory] = None):
        self.channel_factory = channel_factory or ChannelFactory()
        self._lock = threading.Lock()
        self._current_server = ""
        self._initialized = False
        self._channel: Optional[Channel] = None

    @property
    def initialized(self) -> bool:
        with self._lock:
            return self._initialized

    def initialize(self) -> None:
        """Mark the store initialized and (re)build the shared handle.

        Raises:
            LibraryInitError: If the handle cannot be built
        """
        with self._lock:
            if not self._initialized:
                self._current_server = ""
                self._initialized = True
            self._rebuild_channel()
            logger.debug(
                f"Resolver initialized, server={self._current_server or 'system default'}"
            )

    def uninitialize(self) -> None:
        with self._lock:
            self._destroy_channel()
            self._current_server = ""
            self._initialized = False

    def set_server(self, server_spec: str) -> None:
        """Select a new server list and rebuild the shared handle.

        The previous handle is destroyed before the new one is built; if
        building fails the selection is kept with no handle.

        Raises:
            NotInitializedError: If the store is not initialized
            LibraryInitError: If ``server_spec`` cannot be bound
        """
        with self._lock:
            if not self._initialized:
                raise NotInitializedError()
            self._current_server = server_spec
            self._rebuild_channel()

    def current_server(self) -> str:
        with self._lock:
            return self._current_server

    def snapshot(self) -> ServerSnapshot:
        """Server selection and handle as one consistent pair.

        Raises:
            NotInitializedError: If the store is not initialized
        """
        with self._lock:
            if not self._initialized:
                raise NotInitializedError()
            return ServerSnapshot(server=self._current_server, channel=self._channel)

    def system_servers(self) -> str:
        """OS-configured servers joined with ", ", or ``"?"``"""
        try:
            channel = self.channel_factory.system_default()
        except LibraryInitError as e:
            logger.warning(f"Cannot enumerate system DNS servers: {e}")
            return UNRESOLVED

        try:
            return ", ".join(server.host for server in channel.servers)
        finally:
            channel.destroy()

    def _destroy_channel(self) -> None:
        if self._channel is not None:
            self._channel.destroy()
            self._channel = None

    def _rebuild_channel(self) -> None:
        self._destroy_channel()
        try:
            self._channel = self.channel_factory.for_server(self._current_server)
        except LibraryInitError as e:
            logger.error(
                f"Cannot bind resolver to {self._current_server or 'system default'}: {e}"
            )
            raise
