"""Tests for the DNS client handle."""

import socket

import pytest

from fdns.core.channel import (
    Channel,
    QueryStatus,
    ServerAddress,
    parse_server_spec,
    system_servers,
)
from fdns.core.engine import poll, resolve_single
from fdns.core.errors import InvalidServerSpecError, LibraryInitError
from fdns.core.message import DNSResponseCode
from fdns.core.records import QueryOutcome, RecordType


class TestServerSpec:
    """Test server list parsing"""

    def test_single_ipv4(self):
        assert parse_server_spec("8.8.8.8") == [ServerAddress("8.8.8.8", 53)]

    def test_mixed_list(self):
        servers = parse_server_spec("1.1.1.1:5353, [2001:db8::1]:5300,::1")
        assert servers == [
            ServerAddress("1.1.1.1", 5353),
            ServerAddress("2001:db8::1", 5300),
            ServerAddress("::1", 53),
        ]
        assert servers[0].family == socket.AF_INET
        assert servers[1].family == socket.AF_INET6

    @pytest.mark.parametrize(
        "spec",
        [
            "",
            "   ",
            "dns.google",
            "1.1.1.1,,8.8.8.8",
            "1.1.1.1:0",
            "1.1.1.1:65536",
            "1.1.1.1:abc",
            "[2001:db8::1",
            "[2001:db8::1]x",
            "1.2.3.4:5:6",
            "256.1.1.1",
        ],
    )
    def test_invalid_specs(self, spec):
        with pytest.raises(InvalidServerSpecError):
            parse_server_spec(spec)

    def test_invalid_spec_is_init_failure(self):
        with pytest.raises(LibraryInitError):
            parse_server_spec("not-an-address")

    def test_server_address_str(self):
        assert str(ServerAddress("8.8.8.8")) == "8.8.8.8"
        assert str(ServerAddress("8.8.8.8", 5353)) == "8.8.8.8:5353"
        assert str(ServerAddress("::1")) == "[::1]:53"


class TestSystemServers:
    """Test OS server enumeration"""

    def test_reads_resolv_conf(self, resolv_conf):
        servers = system_servers(resolv_conf)
        assert [server.host for server in servers] == ["192.0.2.1", "192.0.2.2"]

    def test_missing_configuration_falls_back_to_loopback(self, tmp_path):
        servers = system_servers(str(tmp_path / "missing.conf"))
        assert servers == [ServerAddress("127.0.0.1")]


class TestChannelLifecycle:
    """Test handle creation, spawning and destruction"""

    def test_live_count(self):
        baseline = Channel.live_count()

        channel = Channel.from_spec("192.0.2.1")
        assert Channel.live_count() == baseline + 1

        channel.destroy()
        channel.destroy()
        assert channel.destroyed
        assert Channel.live_count() == baseline

    def test_requires_servers(self):
        with pytest.raises(LibraryInitError):
            Channel([])

    def test_spawn_copies_servers_and_options(self):
        parent = Channel.from_spec(
            "192.0.2.1,192.0.2.2", attempt_timeout_ms=250, tries=2
        )
        with parent:
            with parent.spawn() as child:
                assert child is not parent
                assert child.servers == parent.servers
                assert child.attempt_timeout == parent.attempt_timeout
                assert child.tries == 2

    def test_query_after_destroy(self):
        channel = Channel.from_spec("192.0.2.1")
        channel.destroy()
        with pytest.raises(LibraryInitError):
            channel.query("example.com", RecordType.A, lambda status, message: None)

    def test_destroy_drops_outstanding_queries(self, silent_server):
        calls = []
        channel = Channel.from_spec(silent_server)
        channel.query("example.com", RecordType.A, lambda *args: calls.append(args))

        readable, _ = channel.fds()
        assert len(readable) == 1

        channel.destroy()
        assert channel.fds() == ([], [])
        assert calls == []

    def test_timeout_without_queries(self):
        with Channel.from_spec("192.0.2.1") as channel:
            assert channel.timeout(1.5) == 1.5
            assert channel.timeout() is None


class TestChannelQueries:
    """Test queries against a local responder"""

    def _run(self, channel, name, rtype, timeout_ms=2000):
        outcome = QueryOutcome(rtype=rtype)
        result = {}

        def on_answer(status, message):
            result["status"] = status
            result["message"] = message
            outcome.complete()

        channel.query(name, rtype, on_answer)
        poll(channel, [outcome], timeout_ms)
        return result

    def test_success(self, fake_dns_server):
        with Channel.from_spec(fake_dns_server.spec) as channel:
            result = self._run(channel, "example.com", RecordType.MX)

        assert result["status"] is QueryStatus.SUCCESS
        assert [r.value for r in result["message"].answer_records(RecordType.MX)] == [
            "10 mail.example.com"
        ]

    def test_nxdomain(self, fake_dns_server):
        with Channel.from_spec(fake_dns_server.spec) as channel:
            result = self._run(channel, "missing.example.com", RecordType.A)
        assert result["status"] is QueryStatus.NOTFOUND

    def test_nodata(self, fake_dns_server):
        with Channel.from_spec(fake_dns_server.spec) as channel:
            result = self._run(channel, "example.com", RecordType.PTR)
        assert result["status"] is QueryStatus.NODATA

    def test_bad_name(self):
        calls = []
        with Channel.from_spec("192.0.2.1") as channel:
            channel.query("a" * 70 + ".com", RecordType.A, lambda *args: calls.append(args))
            assert channel.fds() == ([], [])
        assert calls == [(QueryStatus.BADNAME, None)]

    def test_gethostbyname_literal(self):
        calls = []
        with Channel.from_spec("192.0.2.1") as channel:
            channel.gethostbyname("10.1.2.3", lambda *args: calls.append(args))
        assert calls == [(QueryStatus.SUCCESS, "10.1.2.3")]

    def test_retries_next_server_after_timeout(self, silent_server, fake_dns_server):
        """An unanswered attempt moves on to the next server in the list"""
        channel = Channel.from_spec(
            f"{silent_server},{fake_dns_server.spec}", attempt_timeout_ms=100, tries=1
        )
        with channel:
            assert resolve_single(channel, "example.com", 2000) == "93.184.216.34"

    def test_servfail_moves_to_next_server(self, fake_dns_server, dns_server_factory):
        failing = dns_server_factory()
        failing.rcodes["example.com"] = DNSResponseCode.SERVFAIL

        channel = Channel.from_spec(f"{failing.spec},{fake_dns_server.spec}", tries=1)
        with channel:
            assert resolve_single(channel, "example.com", 2000) == "93.184.216.34"
        assert ("example.com", RecordType.A) in failing.queries

    def test_exhausted_attempts_time_out(self, silent_server):
        channel = Channel.from_spec(silent_server, attempt_timeout_ms=50, tries=2)
        with channel:
            result = self._run(channel, "example.com", RecordType.A, timeout_ms=2000)
        assert result["status"] is QueryStatus.TIMEOUT

    def test_rotate_spreads_first_server(self, silent_server):
        port = silent_server.rsplit(":", 1)[1]
        spec = f"127.0.0.1:{port},127.0.0.2:{port}"
        with Channel.from_spec(spec, rotate=True) as channel:
            channel.query("a.example", RecordType.A, lambda *args: None)
            channel.query("b.example", RecordType.A, lambda *args: None)
            readable, _ = channel.fds()
            peers = sorted(sock.getpeername()[0] for sock in readable)
        assert peers == ["127.0.0.1", "127.0.0.2"]
