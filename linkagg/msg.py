"""Protocol messages exchanged over a single link."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Optional, Tuple, Union

from .ids import EncryptedConnId, ServerId
from .seq import Seq

PROTOCOL_VERSION = 4
MAGIC = b"LIAG\0"

MSG_WELCOME = 1
MSG_CONNECT = 2
MSG_ACCEPTED = 3
MSG_REFUSED = 4
MSG_PING = 5
MSG_PONG = 6
MSG_DATA = 7
MSG_ACK = 8
MSG_CONSUMED = 9
MSG_SEND_FINISH = 10
MSG_RECEIVE_CLOSE = 11
MSG_RECEIVE_FINISH = 12
MSG_TEST_DATA = 13
MSG_SET_BLOCK = 14
MSG_GOODBYE = 15

_PUBLIC_KEY_LEN = 32
_U16_MAX = 0xFFFF


class ProtocolError(ValueError):
    """The remote endpoint violated the link aggregation protocol."""


class RefusedReason(IntEnum):
    """Reason for refusal of an incoming link."""

    CLOSED = 1
    NOT_LISTENING = 2
    CONNECTION_REFUSED = 3
    LINK_REFUSED = 4

    @classmethod
    def from_wire(cls, value: int) -> RefusedReason:
        """Decode a refusal reason, raising ProtocolError if unknown."""
        try:
            return cls(value)
        except ValueError:
            raise ProtocolError(f"unknown refused reason {value}") from None


@dataclass(frozen=True)
class Welcome:
    """Sent from server to client when a link is established.

    ``cfg`` holds the server's encoded exchanged configuration, carried as is.
    """

    extensions: int
    public_key: bytes
    server_id: ServerId
    user_data: bytes = b""
    cfg: bytes = b""


@dataclass(frozen=True)
class Connect:
    """Sent from client to server in reply to :class:`Welcome`.

    ``server_id`` is ``None`` if the client accepts no incoming connections.
    ``cfg`` holds the client's encoded exchanged configuration, carried as is.
    """

    extensions: int
    public_key: bytes
    server_id: Optional[ServerId]
    connection_id: EncryptedConnId
    existing_connection: bool
    user_data: bytes = b""
    cfg: bytes = b""


@dataclass(frozen=True)
class Accepted:
    """Connection accepted by server."""


@dataclass(frozen=True)
class Refused:
    """Connection refused by server."""

    reason: RefusedReason


@dataclass(frozen=True)
class Ping:
    """Echo request."""


@dataclass(frozen=True)
class Pong:
    """Echo reply."""


@dataclass(frozen=True)
class Data:
    """Announces that one data packet follows."""

    seq: Seq


@dataclass(frozen=True)
class Ack:
    """Acknowledges data received over this link."""

    received: Seq


@dataclass(frozen=True)
class Consumed:
    """Notifies that received data has been consumed."""

    seq: Seq
    consumed: int


@dataclass(frozen=True)
class SendFinish:
    """No more data will be sent."""

    seq: Seq


@dataclass(frozen=True)
class ReceiveClose:
    """No more data is wanted, but data already sent is still processed."""

    seq: Seq


@dataclass(frozen=True)
class ReceiveFinish:
    """No more received data will be processed."""

    seq: Seq


@dataclass(frozen=True)
class TestData:
    """Test data of the given size to check the link."""

    __test__ = False

    size: int


@dataclass(frozen=True)
class SetBlock:
    """Sets blocking of the link."""

    blocked: bool


@dataclass(frozen=True)
class Goodbye:
    """No more messages will be sent; receiving continues until Goodbye."""


LinkMsg = Union[
    Welcome,
    Connect,
    Accepted,
    Refused,
    Ping,
    Pong,
    Data,
    Ack,
    Consumed,
    SendFinish,
    ReceiveClose,
    ReceiveFinish,
    TestData,
    SetBlock,
    Goodbye,
]


def _user_data_len(user_data: bytes) -> bytes:
    if len(user_data) > _U16_MAX:
        raise ProtocolError("user data is too long")
    return struct.pack(">H", len(user_data))


def _public_key(key: bytes) -> bytes:
    if len(key) != _PUBLIC_KEY_LEN:
        raise ValueError(f"public key must be {_PUBLIC_KEY_LEN} bytes")
    return bytes(key)


def _header(msg_id: int, extensions: int, public_key: bytes) -> bytes:
    return (
        bytes([msg_id])
        + MAGIC
        + bytes([PROTOCOL_VERSION])
        + struct.pack(">I", extensions)
        + _public_key(public_key)
    )


def _u128(value: int) -> bytes:
    return value.to_bytes(16, "big")


def encode_msg(msg: LinkMsg) -> bytes:
    """Encode a link message into one packet."""
    match msg:
        case Welcome(extensions, public_key, server_id, user_data, cfg):
            return (
                _header(MSG_WELCOME, extensions, public_key)
                + _u128(server_id.value)
                + _user_data_len(user_data)
                + bytes(user_data)
                + bytes(cfg)
            )
        case Connect(extensions, public_key, server_id, connection_id, existing, user_data, cfg):
            return (
                _header(MSG_CONNECT, extensions, public_key)
                + _u128(server_id.value if server_id is not None else 0)
                + _u128(connection_id.value)
                + bytes([1 if existing else 0])
                + _user_data_len(user_data)
                + bytes(user_data)
                + bytes(cfg)
            )
        case Accepted():
            return bytes([MSG_ACCEPTED])
        case Refused(reason):
            return bytes([MSG_REFUSED, int(reason)])
        case Ping():
            return bytes([MSG_PING])
        case Pong():
            return bytes([MSG_PONG])
        case Data(seq):
            return struct.pack(">BI", MSG_DATA, int(seq))
        case Ack(received):
            return struct.pack(">BI", MSG_ACK, int(received))
        case Consumed(seq, consumed):
            return struct.pack(">BII", MSG_CONSUMED, int(seq), consumed)
        case SendFinish(seq):
            return struct.pack(">BI", MSG_SEND_FINISH, int(seq))
        case ReceiveClose(seq):
            return struct.pack(">BI", MSG_RECEIVE_CLOSE, int(seq))
        case ReceiveFinish(seq):
            return struct.pack(">BI", MSG_RECEIVE_FINISH, int(seq))
        case TestData(size):
            return bytes([MSG_TEST_DATA]) + bytes(n & 0xFF for n in range(size))
        case SetBlock(blocked):
            return bytes([MSG_SET_BLOCK, 1 if blocked else 0])
        case Goodbye():
            return bytes([MSG_GOODBYE])
    raise TypeError(f"not a link message: {msg!r}")


class _Reader:
    """Sequential reader over one packet."""

    def __init__(self, data: bytes):
        self._view = memoryview(bytes(data))
        self._pos = 0

    def take(self, n: int) -> bytes:
        if self._pos + n > len(self._view):
            raise EOFError("message too short")
        chunk = self._view[self._pos : self._pos + n].tobytes()
        self._pos += n
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return struct.unpack(">H", self.take(2))[0]

    def u32(self) -> int:
        return struct.unpack(">I", self.take(4))[0]

    def u128(self) -> int:
        return int.from_bytes(self.take(16), "big")

    def rest(self) -> bytes:
        chunk = self._view[self._pos :].tobytes()
        self._pos = len(self._view)
        return chunk


def _check_preamble(reader: _Reader) -> None:
    if reader.take(len(MAGIC)) != MAGIC:
        raise ProtocolError("invalid magic")
    version = reader.u8()
    if version != PROTOCOL_VERSION:
        raise ProtocolError(f"expected protocol version {PROTOCOL_VERSION} but got {version}")


def _user_data(reader: _Reader) -> bytes:
    return reader.take(reader.u16())


def decode_msg(data: bytes) -> LinkMsg:
    """Decode one packet into a link message.

    Raises ProtocolError on invalid content and EOFError if the packet is truncated.
    """
    reader = _Reader(data)
    msg_id = reader.u8()
    if msg_id == MSG_WELCOME:
        _check_preamble(reader)
        extensions = reader.u32()
        public_key = reader.take(_PUBLIC_KEY_LEN)
        raw_server_id = reader.u128()
        if raw_server_id == 0:
            raise ProtocolError("server id must not be zero")
        user_data = _user_data(reader)
        return Welcome(extensions, public_key, ServerId(raw_server_id), user_data, reader.rest())
    if msg_id == MSG_CONNECT:
        _check_preamble(reader)
        extensions = reader.u32()
        public_key = reader.take(_PUBLIC_KEY_LEN)
        raw_server_id = reader.u128()
        connection_id = EncryptedConnId(reader.u128())
        existing = reader.u8() != 0
        user_data = _user_data(reader)
        return Connect(
            extensions,
            public_key,
            ServerId(raw_server_id) if raw_server_id else None,
            connection_id,
            existing,
            user_data,
            reader.rest(),
        )
    if msg_id == MSG_ACCEPTED:
        return Accepted()
    if msg_id == MSG_REFUSED:
        return Refused(RefusedReason.from_wire(reader.u8()))
    if msg_id == MSG_PING:
        return Ping()
    if msg_id == MSG_PONG:
        return Pong()
    if msg_id == MSG_DATA:
        return Data(Seq(reader.u32()))
    if msg_id == MSG_ACK:
        return Ack(Seq(reader.u32()))
    if msg_id == MSG_CONSUMED:
        seq = Seq(reader.u32())
        return Consumed(seq, reader.u32())
    if msg_id == MSG_SEND_FINISH:
        return SendFinish(Seq(reader.u32()))
    if msg_id == MSG_RECEIVE_CLOSE:
        return ReceiveClose(Seq(reader.u32()))
    if msg_id == MSG_RECEIVE_FINISH:
        return ReceiveFinish(Seq(reader.u32()))
    if msg_id == MSG_TEST_DATA:
        return TestData(len(reader.rest()))
    if msg_id == MSG_SET_BLOCK:
        return SetBlock(reader.u8() != 0)
    if msg_id == MSG_GOODBYE:
        return Goodbye()
    raise ProtocolError(f"invalid message id {msg_id}")


async def send_msg(tx: Any, msg: LinkMsg) -> None:
    """Encode ``msg`` and send it as one packet over ``tx``."""
    await tx.send(encode_msg(msg))


async def recv_msg(rx: Any) -> LinkMsg:
    """Receive one packet from ``rx`` and decode it.

    Raises EOFError if the link ended before a message arrived.
    """
    packet = await rx.recv()
    if packet is None:
        raise EOFError("message too short")
    return decode_msg(packet)


@dataclass(frozen=True)
class ReliableMsg:
    """A message whose reception is acknowledged and which is resent if lost."""

    class Kind(Enum):
        DATA = "Data"
        CONSUMED = "Consumed"
        SEND_FINISH = "SendFinish"
        RECEIVE_CLOSE = "ReceiveClose"
        RECEIVE_FINISH = "ReceiveFinish"

    kind: ReliableMsg.Kind
    data: Optional[bytes] = None
    consumed: int = 0

    def __post_init__(self) -> None:
        if self.kind is ReliableMsg.Kind.DATA and self.data is None:
            raise ValueError("data message requires data")

    def to_link_msg(self, seq: Seq) -> Tuple[LinkMsg, Optional[bytes]]:
        """Convert to a link message and the data packet that follows it, if any."""
        kind = self.kind
        if kind is ReliableMsg.Kind.DATA:
            return Data(seq), self.data
        if kind is ReliableMsg.Kind.CONSUMED:
            return Consumed(seq, self.consumed), None
        if kind is ReliableMsg.Kind.SEND_FINISH:
            return SendFinish(seq), None
        if kind is ReliableMsg.Kind.RECEIVE_CLOSE:
            return ReceiveClose(seq), None
        return ReceiveFinish(seq), None

    @staticmethod
    def from_link_msg(msg: LinkMsg, data: Optional[bytes]) -> Tuple[ReliableMsg, Seq]:
        """Convert a reliable link message and its data back, with its sequence number."""
        match msg:
            case Data(seq):
                if data is None:
                    raise ValueError("data message without data")
                return ReliableMsg(ReliableMsg.Kind.DATA, data=data), seq
            case Consumed(seq, consumed):
                return ReliableMsg(ReliableMsg.Kind.CONSUMED, consumed=consumed), seq
            case SendFinish(seq):
                return ReliableMsg(ReliableMsg.Kind.SEND_FINISH), seq
            case ReceiveClose(seq):
                return ReliableMsg(ReliableMsg.Kind.RECEIVE_CLOSE), seq
            case ReceiveFinish(seq):
                return ReliableMsg(ReliableMsg.Kind.RECEIVE_FINISH), seq
        raise ValueError("not a reliable link message")

    def __repr__(self) -> str:
        if self.kind is ReliableMsg.Kind.DATA:
            return f"Data({len(self.data or b'')} bytes)"
        if self.kind is ReliableMsg.Kind.CONSUMED:
            return f"Consumed({self.consumed} bytes)"
        return self.kind.value