"""
System Resolver Adapter

Lookups through the operating system's stub resolver. These calls are
bounded only by the OS resolver's own timeouts.
"""

import ipaddress
import logging
import socket
from typing import List

from .errors import InvalidAddressError
from .message import names_equal
from .records import UNRESOLVED, DnsRecord, ExtendedResult, RecordType

logger = logging.getLogger(__name__)

LOOKUP_ERRORS = (socket.gaierror, socket.herror, UnicodeError, OSError)


class SystemResolver:
    """Forward, reverse and best-effort extended lookups via the OS"""

    def resolve_forward(self, hostname: str) -> str:
        """First IPv4 address in dotted-decimal form, or ``"?"``"""
        try:
            infos = socket.getaddrinfo(
                hostname, None, socket.AF_INET, socket.SOCK_STREAM
            )
        except LOOKUP_ERRORS as e:
            logger.debug(f"System forward lookup failed for {hostname}: {e}")
            return UNRESOLVED

        for family, _, _, _, sockaddr in infos:
            if family == socket.AF_INET:
                return sockaddr[0]
        return UNRESOLVED

    def resolve_reverse(self, ipv4: str) -> str:
        """Name for an IPv4 literal, or ``"?"``

        Raises:
            InvalidAddressError: If ``ipv4`` is not an IPv4 literal
        """
        try:
            address = str(ipaddress.IPv4Address(ipv4))
        except ValueError:
            raise InvalidAddressError(f"Not an IPv4 address: {ipv4!r}")

        try:
            name, _ = socket.getnameinfo((address, 0), socket.NI_NAMEREQD)
        except LOOKUP_ERRORS as e:
            logger.debug(f"System reverse lookup failed for {address}: {e}")
            return UNRESOLVED
        return name or UNRESOLVED

    def resolve_extended(self, hostname: str) -> ExtendedResult:
        """A, AAAA and, when it differs from the input, the canonical name.

        MX, TXT, NS, SRV and PTR are not available from the OS resolver.
        """
        try:
            infos = socket.getaddrinfo(
                hostname,
                None,
                socket.AF_UNSPEC,
                socket.SOCK_STREAM,
                0,
                socket.AI_CANONNAME,
            )
        except LOOKUP_ERRORS as e:
            logger.debug(f"System extended lookup failed for {hostname}: {e}")
            return ExtendedResult(hostname=hostname)

        records: List[DnsRecord] = []
        seen = set()
        canonical = ""
        for family, _, _, canonname, sockaddr in infos:
            if canonname and not canonical:
                canonical = canonname
            if family == socket.AF_INET:
                record = DnsRecord(RecordType.A, sockaddr[0])
            elif family == socket.AF_INET6:
                # Drop any %scope suffix
                record = DnsRecord(RecordType.AAAA, sockaddr[0].split("%", 1)[0])
            else:
                continue
            if record not in seen:
                seen.add(record)
                records.append(record)

        if canonical and not names_equal(canonical, hostname):
            records.append(DnsRecord(RecordType.CNAME, canonical.rstrip(".")))

        return ExtendedResult(hostname=hostname, records=records)
