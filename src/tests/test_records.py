"""Tests for the result model and error taxonomy."""

import json

from fdns.core.errors import (
    ErrorCode,
    FDNSError,
    InvalidAddressError,
    InvalidServerSpecError,
    LibraryInitError,
    MissingArgumentError,
    NotInitializedError,
    ServerUnavailableError,
)
from fdns.core.records import (
    FANOUT_ORDER,
    UNRESOLVED,
    DnsRecord,
    ExtendedResult,
    OutcomeState,
    QueryOutcome,
    RecordCollector,
    RecordType,
)


class TestRecordTypes:
    """Test record type codes and fan-out order"""

    def test_wire_codes(self):
        assert RecordType.A == 1
        assert RecordType.NS == 2
        assert RecordType.CNAME == 5
        assert RecordType.PTR == 12
        assert RecordType.MX == 15
        assert RecordType.TXT == 16
        assert RecordType.AAAA == 28
        assert RecordType.SRV == 33

    def test_fanout_order(self):
        assert [rtype.name for rtype in FANOUT_ORDER] == [
            "A",
            "AAAA",
            "CNAME",
            "MX",
            "TXT",
            "NS",
            "SRV",
            "PTR",
        ]


class TestQueryOutcome:
    """Test the per-query completion slot"""

    def test_pending_by_default(self):
        outcome = QueryOutcome(rtype=RecordType.A)
        assert outcome.state is OutcomeState.PENDING
        assert not outcome.done
        assert outcome.payload == UNRESOLVED

    def test_completes_once(self):
        outcome = QueryOutcome(rtype=RecordType.A)
        outcome.complete("192.0.2.1", [DnsRecord(RecordType.A, "192.0.2.1")])
        outcome.complete("192.0.2.2")

        assert outcome.done
        assert outcome.payload == "192.0.2.1"
        assert outcome.records == [DnsRecord(RecordType.A, "192.0.2.1")]


class TestExtendedResult:
    """Test the JSON document shape"""

    def test_to_json(self):
        collector = RecordCollector()
        collector.extend([DnsRecord(RecordType.MX, "10 mail.example.com")])
        collector.extend([DnsRecord(RecordType.A, "192.0.2.1")])

        result = ExtendedResult("example.com", collector.records)
        assert json.loads(result.to_json()) == {
            "hostname": "example.com",
            "records": [
                {"type": "MX", "value": "10 mail.example.com"},
                {"type": "A", "value": "192.0.2.1"},
            ],
        }

    def test_non_ascii_kept_verbatim(self):
        result = ExtendedResult("bücher.example", [DnsRecord(RecordType.TXT, "grüße")])
        document = result.to_json()
        assert "bücher.example" in document
        assert "grüße" in document


class TestErrors:
    """Test surfaced error codes"""

    def test_codes(self):
        assert NotInitializedError().code == ErrorCode.NOT_INITIALIZED == 1
        assert LibraryInitError().code == ErrorCode.LIBRARY_INIT_FAILURE == 2
        assert MissingArgumentError().code == ErrorCode.MISSING_ARGUMENT == 956
        assert InvalidAddressError().code == ErrorCode.INVALID_ADDRESS == 957

    def test_init_failure_family(self):
        assert issubclass(InvalidServerSpecError, LibraryInitError)
        assert issubclass(ServerUnavailableError, LibraryInitError)
        assert InvalidServerSpecError().code == ErrorCode.LIBRARY_INIT_FAILURE

    def test_default_message(self):
        assert str(NotInitializedError()) == "Resolver is not initialized"
        assert str(MissingArgumentError("Missing hostname")) == "Missing hostname"
        assert isinstance(MissingArgumentError(), FDNSError)
