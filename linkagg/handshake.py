"""Protocol handshake performed when a link is established."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional

from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .errors import AddLinkError, IncomingError
from .ids import ConnId, EncryptedConnId, ServerId
from .msg import (
    Accepted,
    Connect,
    ProtocolError,
    Refused,
    RefusedReason,
    Welcome,
    recv_msg,
    send_msg,
)

_USER_DATA_MAX = 0xFFFF
_IO_ERRORS = (OSError, EOFError, ProtocolError)


@dataclass(frozen=True)
class ServerHandshake:
    """What the server learned from a client while establishing a link.

    ``remote_server_id`` is ``None`` if the client accepts no incoming
    connections. ``roundtrip`` is in seconds.
    """

    remote_server_id: Optional[ServerId]
    conn_id: ConnId
    existing: bool
    remote_cfg: bytes
    roundtrip: float
    remote_user_data: bytes


@dataclass(frozen=True)
class ClientHandshake:
    """What the client learned from a server while establishing a link.

    ``roundtrip`` is in seconds.
    """

    remote_server_id: ServerId
    remote_cfg: bytes
    roundtrip: float
    remote_user_data: bytes


def _check_user_data(user_data: bytes) -> None:
    if len(user_data) > _USER_DATA_MAX:
        raise ValueError("user_data is too big")


def _public_bytes(secret: X25519PrivateKey) -> bytes:
    return secret.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


def _exchange(secret: X25519PrivateKey, remote_public_key: bytes) -> bytes:
    try:
        return secret.exchange(X25519PublicKey.from_public_bytes(remote_public_key))
    except ValueError as err:
        raise ProtocolError(f"invalid public key: {err}") from err


async def server_handshake(
    tx: Any, rx: Any, server_id: ServerId, user_data: bytes, cfg: bytes
) -> ServerHandshake:
    """Perform the server side of the handshake on an incoming link.

    Sends Welcome and waits for Connect. Failures of the link or of the
    protocol raise IncomingError of kind IO. Callers apply the link ping
    timeout around this call.
    """
    _check_user_data(user_data)
    secret = X25519PrivateKey.generate()

    start = time.monotonic()
    try:
        await send_msg(
            tx,
            Welcome(
                extensions=0,
                public_key=_public_bytes(secret),
                server_id=server_id,
                user_data=bytes(user_data),
                cfg=bytes(cfg),
            ),
        )
        reply = await recv_msg(rx)
        if not isinstance(reply, Connect):
            raise ProtocolError("expected Connect message")
        shared = _exchange(secret, reply.public_key)
    except _IO_ERRORS as err:
        raise IncomingError(IncomingError.Kind.IO, err) from err

    return ServerHandshake(
        remote_server_id=reply.server_id,
        conn_id=reply.connection_id.decrypt(shared),
        existing=reply.existing_connection,
        remote_cfg=reply.cfg,
        roundtrip=time.monotonic() - start,
        remote_user_data=reply.user_data,
    )


async def client_handshake(
    tx: Any,
    rx: Any,
    conn_id: ConnId,
    server_id: Optional[ServerId],
    existing: bool,
    user_data: bytes,
    cfg: bytes,
    remote_server_id: Optional[ServerId],
) -> ClientHandshake:
    """Perform the client side of the handshake on an outgoing link.

    Waits for Welcome, answers with Connect and waits for the verdict.
    ``remote_server_id`` is the server the connection is already bound to,
    if any; a link to another server raises AddLinkError of kind
    SERVER_ID_MISMATCH. A refusal raises the matching AddLinkError; failures
    of the link or of the protocol raise AddLinkError of kind IO. Callers
    apply the link ping timeout around this call.
    """
    _check_user_data(user_data)
    secret = X25519PrivateKey.generate()

    try:
        welcome = await recv_msg(rx)
        if not isinstance(welcome, Welcome):
            raise ProtocolError("expected Welcome message")
        shared = _exchange(secret, welcome.public_key)
    except _IO_ERRORS as err:
        raise AddLinkError(AddLinkError.Kind.IO, err) from err

    if remote_server_id is not None and remote_server_id != welcome.server_id:
        raise AddLinkError(
            AddLinkError.Kind.SERVER_ID_MISMATCH,
            expected=remote_server_id,
            present=welcome.server_id,
        )

    start = time.monotonic()
    try:
        await send_msg(
            tx,
            Connect(
                extensions=0,
                public_key=_public_bytes(secret),
                server_id=server_id,
                connection_id=EncryptedConnId.encrypt(conn_id, shared),
                existing_connection=bool(existing),
                user_data=bytes(user_data),
                cfg=bytes(cfg),
            ),
        )
        verdict = await recv_msg(rx)
        if not isinstance(verdict, (Accepted, Refused)):
            raise ProtocolError("expected Accepted or Refused message")
    except _IO_ERRORS as err:
        raise AddLinkError(AddLinkError.Kind.IO, err) from err

    if isinstance(verdict, Refused):
        raise AddLinkError.from_refused(verdict.reason)

    return ClientHandshake(
        remote_server_id=welcome.server_id,
        remote_cfg=welcome.cfg,
        roundtrip=time.monotonic() - start,
        remote_user_data=welcome.user_data,
    )


async def refuse_link(tx: Any, reason: RefusedReason) -> None:
    """Tell the client that its link is refused for ``reason``."""
    await send_msg(tx, Refused(RefusedReason(reason)))


async def accept_link(tx: Any) -> None:
    """Tell the client that its link is accepted."""
    await send_msg(tx, Accepted())