"""Errors raised when listening, accepting, connecting and adding links."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .ids import ServerId
from .msg import RefusedReason


class ListenError(Exception):
    """A listener for the server already exists."""

    def __init__(self) -> None:
        super().__init__("already listening")


class IncomingError(Exception):
    """Handling an incoming link or connection failed."""

    class Kind(Enum):
        IO = "io"
        REFUSED = "refused"
        NOT_LISTENING = "not_listening"
        CLOSED = "closed"
        SERVER_DROPPED = "server_dropped"

    _MESSAGES = {
        Kind.REFUSED: "connection refused",
        Kind.NOT_LISTENING: "not listening",
        Kind.CLOSED: "connection was closed",
        Kind.SERVER_DROPPED: "server dropped",
    }

    def __init__(self, kind: IncomingError.Kind, cause: Optional[BaseException] = None):
        if kind is IncomingError.Kind.IO:
            if cause is None:
                raise ValueError("an IO error requires its cause")
            message = f"IO error: {cause}"
        else:
            message = self._MESSAGES[kind]
        super().__init__(message)
        self.kind = kind
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class ConnectError(Exception):
    """No working link was established during the configured timeout."""

    def __init__(self) -> None:
        super().__init__("connect timeout")


class AddLinkError(Exception):
    """Adding a link to a connection failed."""

    class Kind(Enum):
        IO = "io"
        SERVER_ID_MISMATCH = "server_id_mismatch"
        NOT_LISTENING = "not_listening"
        CONNECTION_CLOSED = "connection_closed"
        CONNECTION_REFUSED = "connection_refused"
        LINK_REFUSED = "link_refused"

    _MESSAGES = {
        Kind.NOT_LISTENING: "not listening",
        Kind.CONNECTION_CLOSED: "connection closed",
        Kind.CONNECTION_REFUSED: "connection refused",
        Kind.LINK_REFUSED: "link refused",
    }

    _FROM_REFUSED = {
        RefusedReason.CLOSED: Kind.CONNECTION_CLOSED,
        RefusedReason.NOT_LISTENING: Kind.NOT_LISTENING,
        RefusedReason.CONNECTION_REFUSED: Kind.CONNECTION_REFUSED,
        RefusedReason.LINK_REFUSED: Kind.LINK_REFUSED,
    }

    def __init__(
        self,
        kind: AddLinkError.Kind,
        cause: Optional[BaseException] = None,
        *,
        expected: Optional[ServerId] = None,
        present: Optional[ServerId] = None,
    ):
        if kind is AddLinkError.Kind.IO:
            if cause is None:
                raise ValueError("an IO error requires its cause")
            message = f"IO error: {cause}"
        elif kind is AddLinkError.Kind.SERVER_ID_MISMATCH:
            if expected is None or present is None:
                raise ValueError("a server id mismatch requires both server ids")
            message = f"connected to server {expected} but link connects to server {present}"
        else:
            message = self._MESSAGES[kind]
        super().__init__(message)
        self.kind = kind
        self.cause = cause
        self.expected = expected
        self.present = present
        if cause is not None:
            self.__cause__ = cause

    @staticmethod
    def from_refused(reason: RefusedReason) -> AddLinkError:
        """The error for a link refused by the remote server."""
        return AddLinkError(AddLinkError._FROM_REFUSED[RefusedReason(reason)])

    def should_reconnect(self) -> bool:
        """Whether the connection attempt should be retried."""
        return self.kind is AddLinkError.Kind.IO