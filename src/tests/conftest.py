"""
Shared test fixtures

- Logging configured once per test
- A threaded UDP DNS responder answering from an in-memory zone
- A bound UDP socket that never answers
"""

import socket
import threading
from typing import Dict, List, Optional, Set, Tuple

import pytest

from fdns.config.schema import LoggingConfig
from fdns.core.message import (
    DNSHeader,
    DNSMessage,
    DNSResourceRecord,
    DNSResponseCode,
    create_record,
)
from fdns.core.records import RecordType
from fdns.dns_logging import setup_logging


class FakeDNSServer:
    """UDP DNS responder for tests.

    Names with records answer NOERROR (possibly with no answers for the
    asked type), unknown names answer NXDOMAIN. Per-name rcodes and dropped
    names override that.
    """

    def __init__(self):
        self.zone: Dict[Tuple[str, int], List[DNSResourceRecord]] = {}
        self.names: Set[str] = set()
        self.rcodes: Dict[str, int] = {}
        self.dropped: Set[str] = set()
        self.queries: List[Tuple[str, int]] = []

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.05)
        self.port = self.sock.getsockname()[1]

        self._running = False
        self._thread: Optional[threading.Thread] = None

    @property
    def spec(self) -> str:
        return f"127.0.0.1:{self.port}"

    def add(self, name: str, rtype: RecordType, value, qtype: Optional[int] = None):
        """Serve ``value`` for ``name``; ``qtype`` files it under another question type"""
        key = (name.lower(), int(qtype if qtype is not None else rtype))
        self.zone.setdefault(key, []).append(create_record(name, rtype, value))
        self.names.add(name.lower())

    def start(self) -> "FakeDNSServer":
        self._running = True
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=2)
        self.sock.close()

    def _serve(self) -> None:
        while self._running:
            try:
                data, addr = self.sock.recvfrom(4096)
            except socket.timeout:
                continue
            except OSError:
                return

            try:
                query = DNSMessage.from_bytes(data)
            except ValueError:
                continue

            question = query.questions[0]
            name = question.name.lower()
            self.queries.append((name, question.qtype))

            if name in self.dropped:
                continue

            answers = self.zone.get((name, question.qtype), [])
            if name in self.rcodes:
                rcode = self.rcodes[name]
            elif name in self.names:
                rcode = DNSResponseCode.NOERROR
            else:
                rcode = DNSResponseCode.NXDOMAIN

            response = DNSMessage(
                header=DNSHeader(
                    transaction_id=query.header.transaction_id,
                    qr=True,
                    rd=True,
                    ra=True,
                    rcode=rcode,
                ),
                questions=[question],
                answers=list(answers) if rcode == DNSResponseCode.NOERROR else [],
            )
            self.sock.sendto(response.to_bytes(), addr)


@pytest.fixture(autouse=True)
def configure_logging():
    """Structured logging must be set up before resolver components log."""
    setup_logging(LoggingConfig(level="DEBUG", format="simple"))
    yield


@pytest.fixture
def fake_dns_server():
    """Running fake DNS server with a small example.com zone."""
    server = FakeDNSServer()
    server.add("example.com", RecordType.A, "93.184.216.34")
    server.add("example.com", RecordType.AAAA, "2606:2800:220:1:248:1893:25c8:1946")
    server.add("example.com", RecordType.MX, (10, "mail.example.com"))
    server.add("example.com", RecordType.TXT, "v=spf1 -all")
    server.add("example.com", RecordType.NS, "a.iana-servers.net")
    server.add("example.com", RecordType.SRV, (5, 10, 5060, "sip.example.com"))
    server.add("www.example.com", RecordType.CNAME, "example.com", qtype=RecordType.A)
    server.add("www.example.com", RecordType.A, "93.184.216.34")
    server.add("www.example.com", RecordType.CNAME, "example.com")
    server.add("34.216.184.93.in-addr.arpa", RecordType.PTR, "example.com")
    server.start()
    yield server
    server.stop()


@pytest.fixture
def silent_server():
    """Spec of a bound UDP socket that never answers."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    yield f"127.0.0.1:{sock.getsockname()[1]}"
    sock.close()


@pytest.fixture
def closed_port_server():
    """Spec of a local port with nothing bound to it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"127.0.0.1:{port}"


@pytest.fixture
def resolv_conf(tmp_path):
    """resolv.conf naming two documentation-range servers."""
    path = tmp_path / "resolv.conf"
    path.write_text("nameserver 192.0.2.1\nnameserver 192.0.2.2\n")
    return str(path)


@pytest.fixture
def dns_server_factory():
    """Start extra empty fake servers; all are stopped at teardown."""
    servers = []

    def factory() -> FakeDNSServer:
        server = FakeDNSServer().start()
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.stop()
