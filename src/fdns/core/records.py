"""
Result Model

Record, per-query outcome and extended-result types shared by both
resolution paths.
"""

import json
import threading
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional

UNRESOLVED = "?"


class RecordType(IntEnum):
    """Record kinds the resolver reports, valued by their wire type code"""

    A = 1
    NS = 2
    CNAME = 5
    PTR = 12
    MX = 15
    TXT = 16
    AAAA = 28
    SRV = 33


# Order in which the fan-out issues its queries
FANOUT_ORDER = (
    RecordType.A,
    RecordType.AAAA,
    RecordType.CNAME,
    RecordType.MX,
    RecordType.TXT,
    RecordType.NS,
    RecordType.SRV,
    RecordType.PTR,
)


@dataclass(frozen=True)
class DnsRecord:
    """A single formatted record"""

    type: RecordType
    value: str

    def to_dict(self) -> dict:
        return {"type": self.type.name, "value": self.value}


class OutcomeState(Enum):
    PENDING = "pending"
    DONE = "done"


@dataclass
class QueryOutcome:
    """Completion slot for one outstanding query.

    Written once by the completion callback and read by the poll loop
    after it observes ``done``.
    """

    rtype: Optional[RecordType] = None
    state: OutcomeState = OutcomeState.PENDING
    payload: str = UNRESOLVED
    records: List[DnsRecord] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.state is OutcomeState.DONE

    def complete(self, payload: str = UNRESOLVED, records=None) -> None:
        """Move PENDING -> DONE; later calls are ignored"""
        if self.state is OutcomeState.DONE:
            return
        self.payload = payload
        if records:
            self.records = list(records)
        self.state = OutcomeState.DONE


class RecordCollector:
    """Accumulates records in completion order across fan-out callbacks"""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[DnsRecord] = []

    def extend(self, records: List[DnsRecord]) -> None:
        with self._lock:
            self._records.extend(records)

    @property
    def records(self) -> List[DnsRecord]:
        with self._lock:
            return list(self._records)


@dataclass
class ExtendedResult:
    """Multi-record answer for one hostname"""

    hostname: str
    records: List[DnsRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hostname": self.hostname,
            "records": [record.to_dict() for record in self.records],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
