"""Directions, statistics and link status reasons."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


class Direction(Enum):
    """Direction of a connection or link."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"

    def __lt__(self, other: Direction) -> bool:
        if not isinstance(other, Direction):
            return NotImplemented
        return self is Direction.INCOMING and other is Direction.OUTGOING

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Stats:
    """Connection statistics.

    Times are monotonic clock readings in seconds.
    """

    established: Optional[float] = None
    not_working_since: Optional[float] = None
    send_space: int = 0
    sent_unacked: int = 0
    sent_unconsumed: int = 0
    sent_unconsumed_count: int = 0
    sent_unconsumable: int = 0
    resend_queue_len: int = 0
    recved_unconsumed: int = 0
    recved_unconsumed_count: int = 0


@dataclass
class LinkIntervalStats:
    """Link statistics over a time interval of ``interval`` seconds."""

    interval: float
    start: float = field(default_factory=time.monotonic)
    sent: int = 0
    recved: int = 0
    busy: bool = True

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError("interval must be positive")

    def send_speed(self) -> float:
        """Send speed in bytes per second."""
        return self.sent / self.interval

    def recv_speed(self) -> float:
        """Receive speed in bytes per second."""
        return self.recved / self.interval


@dataclass
class LinkStats:
    """Link statistics.

    ``established`` is a monotonic clock reading and ``roundtrip`` a duration,
    both in seconds.
    """

    established: float
    total_sent: int = 0
    total_recved: int = 0
    sent_unacked: int = 0
    unacked_limit: int = 0
    roundtrip: float = 0.0
    hangs: int = 0
    time_stats: List[LinkIntervalStats] = field(default_factory=list)


class NotWorkingReason(Enum):
    """Reason why a link is not working."""

    NEW = "new"
    DISCONNECTING = "disconnecting"
    ACK_TIMEOUT = "ack timeout"
    MAX_PING_EXCEEDED = "max ping exceeded"
    TEST_FAILED = "test failed"

    def __str__(self) -> str:
        return self.value


class DisconnectReason(Exception):
    """The reason for the disconnection of a link."""

    class Kind(Enum):
        SEND_TIMEOUT = "send timeout"
        PING_TIMEOUT = "ping timeout"
        UNCONFIRMED_TIMEOUT = "unconfirmed timeout"
        ALL_UNCONFIRMED_TIMEOUT = "all links unconfirmed timeout"
        IO_ERROR = "IO error"
        LOCALLY_REQUESTED = "locally requested"
        REMOTELY_REQUESTED = "remotely requested"
        CONNECTION_CLOSED = "connection closed"
        LINK_FILTER = "link filter"
        SERVER_ID_MISMATCH = "link connected to another server"
        PROTOCOL_ERROR = "protocol error"
        TASK_TERMINATED = "task terminated"

    _RECONNECT = frozenset({Kind.SEND_TIMEOUT, Kind.PING_TIMEOUT, Kind.UNCONFIRMED_TIMEOUT, Kind.IO_ERROR})

    def __init__(self, kind: DisconnectReason.Kind, detail: Union[BaseException, str, None] = None):
        if kind is DisconnectReason.Kind.IO_ERROR and not isinstance(detail, BaseException):
            raise ValueError("an IO error reason requires the error")
        if kind is DisconnectReason.Kind.PROTOCOL_ERROR and not isinstance(detail, str):
            raise ValueError("a protocol error reason requires its message")
        self.kind = kind
        self.detail = detail
        super().__init__(str(self))
        if isinstance(detail, BaseException):
            self.__cause__ = detail

    def should_reconnect(self) -> bool:
        """Whether a reconnection should be attempted."""
        return self.kind in self._RECONNECT

    def __str__(self) -> str:
        if self.kind in (DisconnectReason.Kind.IO_ERROR, DisconnectReason.Kind.PROTOCOL_ERROR):
            return f"{self.kind.value}: {self.detail}"
        return self.kind.value

    def __repr__(self) -> str:
        if self.detail is None:
            return f"DisconnectReason({self.kind.name})"
        return f"DisconnectReason({self.kind.name}, {self.detail!r})"