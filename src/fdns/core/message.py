"""
DNS Message Codec

This module implements the RFC 1035 wire handling the client handle needs:
- Query construction (header, question, EDNS0 OPT pseudo-record)
- Response parsing with name decompression
- Presentation formatting of answer rdata for the supported record types
"""

import logging
import socket
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple, Union

from .records import DnsRecord, RecordType

logger = logging.getLogger(__name__)

# Upper bound on compression pointer hops inside one name
MAX_POINTER_HOPS = 64
OPT_RECORD_TYPE = 41


class DNSResponseCode(IntEnum):
    """DNS Response Codes"""

    NOERROR = 0
    FORMERR = 1
    SERVFAIL = 2
    NXDOMAIN = 3
    NOTIMP = 4
    REFUSED = 5


class DNSClass(IntEnum):
    """DNS Classes"""

    IN = 1
    CH = 3
    ANY = 255


@dataclass
class DNSHeader:
    """DNS Message Header"""

    transaction_id: int
    flags: int = 0
    question_count: int = 0
    answer_count: int = 0
    authority_count: int = 0
    additional_count: int = 0

    # Flag field components
    qr: bool = False  # Query/Response bit
    opcode: int = 0
    aa: bool = False
    tc: bool = False  # Truncation
    rd: bool = True  # Recursion Desired
    ra: bool = False
    z: int = 0
    rcode: int = 0

    def __post_init__(self):
        self.flags = (
            (int(self.qr) << 15)
            | (self.opcode << 11)
            | (int(self.aa) << 10)
            | (int(self.tc) << 9)
            | (int(self.rd) << 8)
            | (int(self.ra) << 7)
            | (self.z << 4)
            | self.rcode
        )

    @classmethod
    def parse_flags(cls, flags: int) -> Dict[str, Union[bool, int]]:
        """Parse flags field into individual components"""
        return {
            "qr": bool(flags & 0x8000),
            "opcode": (flags >> 11) & 0x0F,
            "aa": bool(flags & 0x0400),
            "tc": bool(flags & 0x0200),
            "rd": bool(flags & 0x0100),
            "ra": bool(flags & 0x0080),
            "z": (flags >> 4) & 0x07,
            "rcode": flags & 0x0F,
        }

    def to_bytes(self) -> bytes:
        return struct.pack(
            "!HHHHHH",
            self.transaction_id,
            self.flags,
            self.question_count,
            self.answer_count,
            self.authority_count,
            self.additional_count,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSHeader":
        if len(data) < 12:
            raise ValueError("Invalid DNS header: too short")

        tid, flags, qcount, acount, authcount, addcount = struct.unpack(
            "!HHHHHH", data[:12]
        )

        return cls(
            transaction_id=tid,
            flags=flags,
            question_count=qcount,
            answer_count=acount,
            authority_count=authcount,
            additional_count=addcount,
            **cls.parse_flags(flags),
        )


def encode_name(name: str) -> bytes:
    """Encode domain name using DNS label encoding"""
    if name in ("", "."):
        return b"\x00"

    result = b""
    for label in name.rstrip(".").split("."):
        if not label:
            raise ValueError(f"Empty label in name: {name!r}")
        label_bytes = label.encode("ascii") if label.isascii() else label.encode("idna")
        if len(label_bytes) > 63:
            raise ValueError(f"Label too long: {label}")
        result += struct.pack("!B", len(label_bytes)) + label_bytes
    result += b"\x00"  # Root label
    if len(result) > 255:
        raise ValueError(f"Name too long: {name}")
    return result


def decode_name(data: bytes, offset: int) -> Tuple[str, int]:
    """Decode DNS name with compression support.

    Returns the name without its trailing dot ("." for the root) and the
    offset just past the name in the original position.
    """
    labels = []
    end_offset = None
    hops = 0

    while True:
        if offset >= len(data):
            raise ValueError("Invalid name: offset out of bounds")

        length = data[offset]

        if length == 0:
            offset += 1
            break
        elif (length & 0xC0) == 0xC0:
            if offset + 1 >= len(data):
                raise ValueError("Invalid compression pointer")
            pointer = ((length & 0x3F) << 8) | data[offset + 1]
            if end_offset is None:
                end_offset = offset + 2
            hops += 1
            if hops > MAX_POINTER_HOPS or pointer >= len(data):
                raise ValueError("Invalid compression pointer")
            offset = pointer
        elif length & 0xC0:
            raise ValueError(f"Unsupported label type: {length:#x}")
        else:
            if offset + length + 1 > len(data):
                raise ValueError("Invalid label: length exceeds data")
            labels.append(data[offset + 1 : offset + 1 + length].decode("ascii"))
            offset += length + 1

    name = ".".join(labels) if labels else "."
    return name, end_offset if end_offset is not None else offset


def names_equal(left: str, right: str) -> bool:
    return left.rstrip(".").lower() == right.rstrip(".").lower()


@dataclass
class DNSQuestion:
    """DNS Question Section"""

    name: str
    qtype: int
    qclass: int = DNSClass.IN

    def to_bytes(self) -> bytes:
        return encode_name(self.name) + struct.pack("!HH", self.qtype, self.qclass)

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSQuestion", int]:
        name, new_offset = decode_name(data, offset)
        if new_offset + 4 > len(data):
            raise ValueError("Invalid question: not enough data for type and class")

        qtype, qclass = struct.unpack("!HH", data[new_offset : new_offset + 4])
        return cls(name=name, qtype=qtype, qclass=qclass), new_offset + 4


@dataclass
class DNSResourceRecord:
    """DNS Resource Record

    Keeps a reference to the enclosing message so compressed names inside
    rdata can be expanded.
    """

    name: str
    rtype: int
    rclass: int
    ttl: int
    rdata: bytes
    source: bytes = field(default=b"", repr=False)
    rdata_offset: int = 0

    def to_bytes(self) -> bytes:
        header = struct.pack(
            "!HHIH", self.rtype, self.rclass, self.ttl, len(self.rdata)
        )
        return encode_name(self.name) + header + self.rdata

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSResourceRecord", int]:
        name, new_offset = decode_name(data, offset)

        if new_offset + 10 > len(data):
            raise ValueError("Invalid resource record: not enough data for header")

        rtype, rclass, ttl, rdlength = struct.unpack(
            "!HHIH", data[new_offset : new_offset + 10]
        )
        new_offset += 10

        if new_offset + rdlength > len(data):
            raise ValueError("Invalid resource record: not enough data for rdata")

        record = cls(
            name=name,
            rtype=rtype,
            rclass=rclass,
            ttl=ttl,
            rdata=data[new_offset : new_offset + rdlength],
            source=data,
            rdata_offset=new_offset,
        )
        return record, new_offset + rdlength

    def _rdata_name(self, skip: int = 0) -> str:
        if self.source:
            name, _ = decode_name(self.source, self.rdata_offset + skip)
        else:
            name, _ = decode_name(self.rdata, skip)
        return name

    def get_readable_rdata(self) -> Optional[str]:
        """Presentation form of rdata, or None if it cannot be formatted"""
        try:
            if not self.rdata:
                return None
            if self.rtype == RecordType.A:
                return socket.inet_ntop(socket.AF_INET, self.rdata)
            elif self.rtype == RecordType.AAAA:
                return socket.inet_ntop(socket.AF_INET6, self.rdata)
            elif self.rtype in (RecordType.CNAME, RecordType.NS, RecordType.PTR):
                return self._rdata_name()
            elif self.rtype == RecordType.MX:
                preference = struct.unpack("!H", self.rdata[:2])[0]
                return f"{preference} {self._rdata_name(2)}"
            elif self.rtype == RecordType.SRV:
                priority, weight, port = struct.unpack("!HHH", self.rdata[:6])
                return f"{priority} {weight} {port} {self._rdata_name(6)}"
            elif self.rtype == RecordType.TXT:
                # Only the first character-string is reported
                length = self.rdata[0]
                if length + 1 > len(self.rdata):
                    return None
                return self.rdata[1 : 1 + length].decode("utf-8", errors="replace")
            return None
        except (ValueError, struct.error, OSError) as e:
            logger.debug(f"Failed to parse rdata for type {self.rtype}: {e}")
            return None


@dataclass
class DNSMessage:
    """Complete DNS Message"""

    header: DNSHeader
    questions: List[DNSQuestion] = field(default_factory=list)
    answers: List[DNSResourceRecord] = field(default_factory=list)
    authority: List[DNSResourceRecord] = field(default_factory=list)
    additional: List[DNSResourceRecord] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        self.header.question_count = len(self.questions)
        self.header.answer_count = len(self.answers)
        self.header.authority_count = len(self.authority)
        self.header.additional_count = len(self.additional)

        result = self.header.to_bytes()
        for question in self.questions:
            result += question.to_bytes()
        for section in (self.answers, self.authority, self.additional):
            for record in section:
                result += record.to_bytes()
        return result

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSMessage":
        if len(data) < 12:
            raise ValueError("Invalid DNS message: too short")

        header = DNSHeader.from_bytes(data)
        offset = 12

        questions = []
        for _ in range(header.question_count):
            question, offset = DNSQuestion.parse(data, offset)
            questions.append(question)

        sections: List[List[DNSResourceRecord]] = []
        for count in (
            header.answer_count,
            header.authority_count,
            header.additional_count,
        ):
            records = []
            for _ in range(count):
                record, offset = DNSResourceRecord.parse(data, offset)
                records.append(record)
            sections.append(records)

        return cls(
            header=header,
            questions=questions,
            answers=sections[0],
            authority=sections[1],
            additional=sections[2],
        )

    def answer_records(self, rtype: RecordType) -> List[DnsRecord]:
        """Formatted answers of the requested type, in answer order.

        Answers of other types (a CNAME chain preceding the A records, for
        instance) and answers that fail to format are skipped.
        """
        records = []
        for answer in self.answers:
            if answer.rtype != rtype:
                continue
            value = answer.get_readable_rdata()
            if value:
                records.append(DnsRecord(type=rtype, value=value))
        return records


def build_query(
    name: str, qtype: int, transaction_id: int, udp_payload: int = 0
) -> bytes:
    """Build a recursive query; a non-zero payload size adds an EDNS0 OPT record"""
    header = DNSHeader(transaction_id=transaction_id, rd=True)
    query = DNSMessage(header=header, questions=[DNSQuestion(name, qtype)])
    if udp_payload:
        query.additional.append(
            DNSResourceRecord(
                name=".", rtype=OPT_RECORD_TYPE, rclass=udp_payload, ttl=0, rdata=b""
            )
        )
    return query.to_bytes()


def reverse_pointer(ipv4: str) -> str:
    """in-addr.arpa name for a dotted-quad address"""
    octets = socket.inet_aton(ipv4)
    return ".".join(str(octet) for octet in reversed(octets)) + ".in-addr.arpa"


def create_record(name: str, rtype: RecordType, value, ttl: int = 300) -> DNSResourceRecord:
    """Build an uncompressed resource record from presentation data.

    ``value`` is an address for A/AAAA, a name for CNAME/NS/PTR, a
    ``(preference, exchange)`` tuple for MX, a ``(priority, weight, port,
    target)`` tuple for SRV and a string for TXT.
    """
    if rtype == RecordType.A:
        rdata = socket.inet_aton(value)
    elif rtype == RecordType.AAAA:
        rdata = socket.inet_pton(socket.AF_INET6, value)
    elif rtype in (RecordType.CNAME, RecordType.NS, RecordType.PTR):
        rdata = encode_name(value)
    elif rtype == RecordType.MX:
        preference, exchange = value
        rdata = struct.pack("!H", preference) + encode_name(exchange)
    elif rtype == RecordType.SRV:
        priority, weight, port, target = value
        rdata = struct.pack("!HHH", priority, weight, port) + encode_name(target)
    elif rtype == RecordType.TXT:
        text_bytes = value.encode("utf-8")
        rdata = b""
        # Split text into 255-byte chunks
        for start in range(0, max(len(text_bytes), 1), 255):
            chunk = text_bytes[start : start + 255]
            rdata += struct.pack("!B", len(chunk)) + chunk
    else:
        raise ValueError(f"Unsupported record type: {rtype}")

    return DNSResourceRecord(
        name=name, rtype=rtype, rclass=DNSClass.IN, ttl=ttl, rdata=rdata
    )
