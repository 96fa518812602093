"""
DNS Client Handle

Non-blocking DNS-over-UDP client bound to an explicit server list. The
handle never waits on its own: callers ask it which sockets to watch and
for how long (``fds``/``timeout``), wait themselves, then hand readiness
back to ``process`` which runs retransmission and completion callbacks.
"""

import ipaddress
import logging
import random
import socket
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import dns.exception
import dns.resolver

from .errors import InvalidServerSpecError, LibraryInitError
from .message import (
    DNSMessage,
    DNSResponseCode,
    build_query,
    names_equal,
    reverse_pointer,
)
from .records import RecordType

logger = logging.getLogger(__name__)

DEFAULT_PORT = 53
MAX_UDP_RESPONSE = 65535
FALLBACK_SERVER = "127.0.0.1"


class QueryStatus(Enum):
    """Completion status handed to query callbacks"""

    SUCCESS = "success"
    NODATA = "nodata"
    NOTFOUND = "notfound"
    SERVFAIL = "servfail"
    REFUSED = "refused"
    FORMERR = "formerr"
    BADRESP = "badresp"
    BADNAME = "badname"
    TIMEOUT = "timeout"
    CONNREFUSED = "connrefused"


# Server-side failures worth asking the next server about
RETRYABLE_RCODES = {
    DNSResponseCode.SERVFAIL: QueryStatus.SERVFAIL,
    DNSResponseCode.NOTIMP: QueryStatus.SERVFAIL,
    DNSResponseCode.REFUSED: QueryStatus.REFUSED,
}

QueryCallback = Callable[[QueryStatus, Optional[DNSMessage]], None]


@dataclass(frozen=True)
class ServerAddress:
    """One entry of a server list"""

    host: str
    port: int = DEFAULT_PORT

    @property
    def family(self) -> int:
        if ipaddress.ip_address(self.host).version == 6:
            return socket.AF_INET6
        return socket.AF_INET

    def __str__(self) -> str:
        if self.family == socket.AF_INET6:
            return f"[{self.host}]:{self.port}"
        if self.port == DEFAULT_PORT:
            return self.host
        return f"{self.host}:{self.port}"


def _parse_port(entry: str, port_str: str) -> int:
    try:
        port = int(port_str)
    except ValueError:
        raise InvalidServerSpecError(f"Invalid port in server entry: {entry!r}")
    if not 1 <= port <= 65535:
        raise InvalidServerSpecError(f"Invalid port in server entry: {entry!r}")
    return port


def _parse_server_entry(entry: str) -> ServerAddress:
    if entry.startswith("["):
        # [ipv6] or [ipv6]:port
        host, sep, rest = entry[1:].partition("]")
        if not sep:
            raise InvalidServerSpecError(f"Unterminated bracket in: {entry!r}")
        if rest and not rest.startswith(":"):
            raise InvalidServerSpecError(f"Invalid server entry: {entry!r}")
        port = _parse_port(entry, rest[1:]) if rest else DEFAULT_PORT
    elif entry.count(":") > 1:
        # bare ipv6
        host, port = entry, DEFAULT_PORT
    elif ":" in entry:
        host, port_str = entry.rsplit(":", 1)
        port = _parse_port(entry, port_str)
    else:
        host, port = entry, DEFAULT_PORT

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        raise InvalidServerSpecError(f"Server entry is not an IP address: {entry!r}")
    if entry.count(":") > 1 and not entry.startswith("[") and address.version == 4:
        raise InvalidServerSpecError(f"Invalid server entry: {entry!r}")

    return ServerAddress(host=str(address), port=port)


def parse_server_spec(spec: str) -> List[ServerAddress]:
    """Parse a comma-separated ``host[:port]`` server list.

    Entries are IPv4 (``a.b.c.d[:port]``) or IPv6 (``[addr][:port]`` or a
    bare address) literals.

    Raises:
        InvalidServerSpecError: If any entry is empty or malformed
    """
    if not spec or not spec.strip():
        raise InvalidServerSpecError("Empty server list")

    servers = []
    for raw_entry in spec.split(","):
        entry = raw_entry.strip()
        if not entry:
            raise InvalidServerSpecError(f"Empty entry in server list: {spec!r}")
        servers.append(_parse_server_entry(entry))
    return servers


def system_servers(resolv_conf: Optional[str] = None) -> List[ServerAddress]:
    """OS-configured DNS servers, loopback if none are configured"""
    try:
        if resolv_conf:
            resolver = dns.resolver.Resolver(filename=resolv_conf)
        else:
            resolver = dns.resolver.Resolver()
    except dns.resolver.NoResolverConfiguration as e:
        logger.debug(f"No system resolver configuration, using loopback: {e}")
        return [ServerAddress(FALLBACK_SERVER)]
    except dns.exception.DNSException as e:
        raise LibraryInitError(f"Cannot read system resolver configuration: {e}")

    servers = []
    for nameserver in resolver.nameservers:
        if isinstance(nameserver, str):
            host, port = nameserver, resolver.port
        else:
            host = getattr(nameserver, "address", None)
            port = getattr(nameserver, "port", resolver.port)
        try:
            servers.append(ServerAddress(str(ipaddress.ip_address(host)), port))
        except ValueError:
            logger.debug(f"Skipping non-address nameserver {nameserver!r}")

    return servers or [ServerAddress(FALLBACK_SERVER)]


@dataclass
class _PendingQuery:
    transaction_id: int
    name: str
    qtype: int
    payload: bytes
    callback: QueryCallback
    first_server: int
    attempt: int = 0
    sock: Optional[socket.socket] = None
    expires_at: float = 0.0


class Channel:
    """DNS client handle bound to a fixed server list.

    Each outstanding query owns one connected UDP socket. An attempt that
    goes unanswered for ``attempt_timeout_ms`` is retransmitted to the next
    server; after ``tries`` passes over the list the query completes with
    ``QueryStatus.TIMEOUT``. All bookkeeping is guarded by one lock so
    independent call frames can submit and pump queries on the same handle.
    Callbacks run outside that lock.
    """

    _live = 0
    _live_lock = threading.Lock()

    def __init__(
        self,
        servers: Sequence[ServerAddress],
        attempt_timeout_ms: int = 2000,
        tries: int = 3,
        rotate: bool = False,
        udp_max_payload: int = 1232,
    ):
        if not servers:
            raise LibraryInitError("No DNS servers to bind")

        self._servers: Tuple[ServerAddress, ...] = tuple(servers)
        self.attempt_timeout = attempt_timeout_ms / 1000.0
        self.tries = tries
        self.rotate = rotate
        self.udp_max_payload = udp_max_payload

        self._lock = threading.Lock()
        self._pending: Dict[socket.socket, _PendingQuery] = {}
        self._next_server = 0
        self._destroyed = False

        with Channel._live_lock:
            Channel._live += 1

    @classmethod
    def from_spec(cls, spec: str, **options) -> "Channel":
        return cls(parse_server_spec(spec), **options)

    @classmethod
    def system_default(cls, resolv_conf: Optional[str] = None, **options) -> "Channel":
        return cls(system_servers(resolv_conf), **options)

    @classmethod
    def live_count(cls) -> int:
        """Number of handles created and not yet destroyed"""
        with cls._live_lock:
            return cls._live

    @property
    def servers(self) -> Tuple[ServerAddress, ...]:
        return self._servers

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def spawn(self) -> "Channel":
        """New handle bound to the same servers with the same options"""
        return Channel(
            self._servers,
            attempt_timeout_ms=int(self.attempt_timeout * 1000),
            tries=self.tries,
            rotate=self.rotate,
            udp_max_payload=self.udp_max_payload,
        )

    # Query submission

    def query(self, name: str, rtype: int, callback: QueryCallback) -> None:
        """Submit one query; ``callback(status, message)`` runs on completion"""
        if self._destroyed:
            raise LibraryInitError("Channel has been destroyed")

        transaction_id = random.randint(0, 0xFFFF)
        try:
            payload = build_query(name, rtype, transaction_id, self.udp_max_payload)
        except (ValueError, UnicodeError) as e:
            logger.debug(f"Cannot encode query for {name!r}: {e}")
            callback(QueryStatus.BADNAME, None)
            return

        completions = []
        with self._lock:
            if self.rotate:
                first_server = self._next_server
                self._next_server = (self._next_server + 1) % len(self._servers)
            else:
                first_server = 0
            pending = _PendingQuery(
                transaction_id=transaction_id,
                name=name,
                qtype=rtype,
                payload=payload,
                callback=callback,
                first_server=first_server,
            )
            self._send(pending, completions)
        self._run_callbacks(completions)

    def gethostbyname(
        self, name: str, callback: Callable[[QueryStatus, Optional[str]], None]
    ) -> None:
        """IPv4 forward lookup reporting the first address"""
        try:
            callback(QueryStatus.SUCCESS, str(ipaddress.IPv4Address(name)))
            return
        except ValueError:
            pass

        def on_answer(status: QueryStatus, message: Optional[DNSMessage]) -> None:
            if status is not QueryStatus.SUCCESS:
                callback(status, None)
                return
            records = message.answer_records(RecordType.A)
            if records:
                callback(QueryStatus.SUCCESS, records[0].value)
            else:
                callback(QueryStatus.NODATA, None)

        self.query(name, RecordType.A, on_answer)

    def gethostbyaddr(
        self, ipv4: str, callback: Callable[[QueryStatus, Optional[str]], None]
    ) -> None:
        """PTR lookup for an IPv4 literal reporting the first name"""

        def on_answer(status: QueryStatus, message: Optional[DNSMessage]) -> None:
            if status is not QueryStatus.SUCCESS:
                callback(status, None)
                return
            records = message.answer_records(RecordType.PTR)
            if records:
                callback(QueryStatus.SUCCESS, records[0].value)
            else:
                callback(QueryStatus.NODATA, None)

        self.query(reverse_pointer(ipv4), RecordType.PTR, on_answer)

    # Event pump interface

    def fds(self) -> Tuple[List[socket.socket], List[socket.socket]]:
        """Sockets to watch for reading and writing"""
        with self._lock:
            return list(self._pending), []

    def timeout(self, max_timeout: Optional[float] = None) -> Optional[float]:
        """Seconds until the next retransmission is due, capped at ``max_timeout``"""
        with self._lock:
            if not self._pending:
                return max_timeout
            now = time.monotonic()
            due = min(p.expires_at for p in self._pending.values()) - now
        due = max(due, 0.0)
        if max_timeout is not None:
            return min(due, max_timeout)
        return due

    def process(
        self,
        readable: Sequence[socket.socket],
        writable: Sequence[socket.socket] = (),
    ) -> None:
        """Read ready sockets, retransmit expired attempts, run callbacks"""
        completions = []
        with self._lock:
            for sock in readable:
                pending = self._pending.get(sock)
                if pending is not None:
                    self._read_response(pending, completions)

            now = time.monotonic()
            for pending in list(self._pending.values()):
                if pending.expires_at <= now:
                    self._advance(pending, QueryStatus.TIMEOUT, completions)
        self._run_callbacks(completions)

    def destroy(self) -> None:
        """Close every socket; outstanding queries are dropped silently"""
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
            for sock in self._pending:
                sock.close()
            abandoned = len(self._pending)
            self._pending.clear()

        with Channel._live_lock:
            Channel._live -= 1

        if abandoned:
            logger.debug(f"Channel destroyed with {abandoned} queries outstanding")

    def __enter__(self) -> "Channel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()

    # Internals, called with self._lock held

    def _server_for(self, pending: _PendingQuery) -> ServerAddress:
        index = (pending.first_server + pending.attempt) % len(self._servers)
        return self._servers[index]

    def _send(self, pending: _PendingQuery, completions: list) -> None:
        while True:
            server = self._server_for(pending)
            sock = None
            try:
                sock = socket.socket(server.family, socket.SOCK_DGRAM)
                sock.setblocking(False)
                sock.connect((server.host, server.port))
                sock.send(pending.payload)
            except OSError as e:
                logger.debug(f"Send to {server} failed: {e}")
                if sock is not None:
                    sock.close()
                pending.attempt += 1
                if pending.attempt >= self._max_attempts():
                    completions.append((pending.callback, QueryStatus.CONNREFUSED, None))
                    return
                continue

            pending.sock = sock
            pending.expires_at = time.monotonic() + self.attempt_timeout
            self._pending[sock] = pending
            return

    def _max_attempts(self) -> int:
        return self.tries * len(self._servers)

    def _advance(
        self,
        pending: _PendingQuery,
        status: QueryStatus,
        completions: list,
        message: Optional[DNSMessage] = None,
    ) -> None:
        """Retire the current attempt and move to the next server"""
        self._release(pending)
        pending.attempt += 1
        if pending.attempt >= self._max_attempts():
            completions.append((pending.callback, status, message))
            return
        self._send(pending, completions)

    def _release(self, pending: _PendingQuery) -> None:
        if pending.sock is not None:
            self._pending.pop(pending.sock, None)
            pending.sock.close()
            pending.sock = None

    def _read_response(self, pending: _PendingQuery, completions: list) -> None:
        try:
            data = pending.sock.recv(MAX_UDP_RESPONSE)
        except BlockingIOError:
            return
        except ConnectionRefusedError:
            self._advance(pending, QueryStatus.CONNREFUSED, completions)
            return
        except OSError as e:
            logger.debug(f"Receive failed for {pending.name}: {e}")
            self._advance(pending, QueryStatus.CONNREFUSED, completions)
            return

        try:
            message = DNSMessage.from_bytes(data)
        except (ValueError, UnicodeError) as e:
            logger.debug(f"Discarding malformed response for {pending.name}: {e}")
            return

        if not self._matches(pending, message):
            return

        rcode = message.header.rcode
        if rcode in RETRYABLE_RCODES:
            self._advance(pending, RETRYABLE_RCODES[rcode], completions, message)
            return

        self._release(pending)
        if rcode == DNSResponseCode.NXDOMAIN:
            status = QueryStatus.NOTFOUND
        elif rcode == DNSResponseCode.FORMERR:
            status = QueryStatus.FORMERR
        elif rcode != DNSResponseCode.NOERROR:
            status = QueryStatus.BADRESP
        elif message.answers:
            status = QueryStatus.SUCCESS
        else:
            status = QueryStatus.NODATA
        completions.append((pending.callback, status, message))

    @staticmethod
    def _matches(pending: _PendingQuery, message: DNSMessage) -> bool:
        if not message.header.qr:
            return False
        if message.header.transaction_id != pending.transaction_id:
            return False
        if len(message.questions) != 1:
            return False
        question = message.questions[0]
        return question.qtype == pending.qtype and names_equal(
            question.name, pending.name
        )

    @staticmethod
    def _run_callbacks(completions: list) -> None:
        for callback, status, message in completions:
            callback(status, message)
