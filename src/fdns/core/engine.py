"""
Custom-Server Client Engine

Drives a ``Channel`` to completion under a caller-supplied deadline:
- Poll loop shared by every mode (readiness wait, pump, deadline)
- Single-query mode for forward A and reverse PTR lookups
- Fan-out mode issuing one query per record type and aggregating answers
"""

import logging
import selectors
import socket
import time
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

from .channel import Channel, QueryStatus
from .message import DNSMessage
from .records import (
    FANOUT_ORDER,
    UNRESOLVED,
    ExtendedResult,
    QueryOutcome,
    RecordCollector,
    RecordType,
)

logger = logging.getLogger(__name__)


class PollExit(Enum):
    """Why the poll loop stopped"""

    COMPLETED = "completed"
    IDLE = "idle"  # handle has nothing left to wait on
    DEADLINE = "deadline"
    WAIT_ERROR = "wait_error"


def poll(
    channel: Channel,
    outcomes: Iterable[QueryOutcome],
    timeout_ms: int,
    clock: Callable[[], float] = time.monotonic,
) -> PollExit:
    """Pump ``channel`` until every outcome is done or the deadline passes.

    Outstanding queries at the deadline are left in place; destroying the
    channel releases them.
    """
    outcomes = list(outcomes)
    deadline = clock() + max(timeout_ms, 0) / 1000.0

    while not all(outcome.done for outcome in outcomes):
        remaining = deadline - clock()
        if remaining <= 0:
            return PollExit.DEADLINE

        readable, writable = channel.fds()
        if not readable and not writable:
            return PollExit.IDLE

        wait = channel.timeout(remaining)
        try:
            ready_read, ready_write = _wait(readable, writable, wait)
        except (OSError, ValueError) as e:
            logger.warning(f"Readiness wait failed, abandoning queries: {e}")
            return PollExit.WAIT_ERROR

        channel.process(ready_read, ready_write)

    return PollExit.COMPLETED


def _wait(
    readable: List[socket.socket],
    writable: List[socket.socket],
    timeout: Optional[float],
) -> Tuple[List[socket.socket], List[socket.socket]]:
    """Sockets ready for reading and for writing within ``timeout``"""
    events = {}
    for sock in readable:
        events[sock] = events.get(sock, 0) | selectors.EVENT_READ
    for sock in writable:
        events[sock] = events.get(sock, 0) | selectors.EVENT_WRITE

    with selectors.DefaultSelector() as selector:
        for sock, mask in events.items():
            selector.register(sock, mask)
        ready = selector.select(timeout)

    ready_read = [key.fileobj for key, mask in ready if mask & selectors.EVENT_READ]
    ready_write = [key.fileobj for key, mask in ready if mask & selectors.EVENT_WRITE]
    return ready_read, ready_write


def resolve_single(channel: Channel, hostname: str, timeout_ms: int) -> str:
    """First IPv4 address for ``hostname`` or ``"?"``"""
    outcome = QueryOutcome(rtype=RecordType.A)

    def on_address(status: QueryStatus, address: Optional[str]) -> None:
        outcome.complete(address if status is QueryStatus.SUCCESS else UNRESOLVED)

    channel.gethostbyname(hostname, on_address)
    exit_reason = poll(channel, [outcome], timeout_ms)
    logger.debug(f"Forward lookup for {hostname} finished: {exit_reason.value}")
    return outcome.payload if outcome.done else UNRESOLVED


def reverse_single(channel: Channel, ipv4: str, timeout_ms: int) -> str:
    """First PTR name for ``ipv4`` or ``"?"``"""
    outcome = QueryOutcome(rtype=RecordType.PTR)

    def on_name(status: QueryStatus, name: Optional[str]) -> None:
        outcome.complete(name if status is QueryStatus.SUCCESS else UNRESOLVED)

    channel.gethostbyaddr(ipv4, on_name)
    exit_reason = poll(channel, [outcome], timeout_ms)
    logger.debug(f"Reverse lookup for {ipv4} finished: {exit_reason.value}")
    return outcome.payload if outcome.done else UNRESOLVED


def resolve_fanout(
    channel: Channel,
    hostname: str,
    timeout_ms: int,
    record_types: Iterable[RecordType] = FANOUT_ORDER,
) -> ExtendedResult:
    """Query every record type concurrently and collect what answers in time.

    Records are kept in completion order. Types that fail, time out or
    carry nothing formattable contribute nothing.
    """
    collector = RecordCollector()
    outcomes: List[QueryOutcome] = []

    for rtype in record_types:
        outcome = QueryOutcome(rtype=rtype)
        outcomes.append(outcome)
        channel.query(hostname, rtype, _fanout_callback(outcome, collector))

    exit_reason = poll(channel, outcomes, timeout_ms)
    answered = sum(1 for outcome in outcomes if outcome.done)
    logger.debug(
        f"Fan-out for {hostname} finished: {exit_reason.value}, "
        f"{answered}/{len(outcomes)} queries completed"
    )
    return ExtendedResult(hostname=hostname, records=collector.records)


def _fanout_callback(outcome: QueryOutcome, collector: RecordCollector):
    def on_answer(status: QueryStatus, message: Optional[DNSMessage]) -> None:
        records = []
        if status is QueryStatus.SUCCESS and message is not None:
            records = message.answer_records(outcome.rtype)
            collector.extend(records)
        outcome.complete(
            payload=str(len(records)) if records else UNRESOLVED, records=records
        )

    return on_answer
