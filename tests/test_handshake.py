import asyncio

import pytest
from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from linkagg.errors import AddLinkError, IncomingError
from linkagg.handshake import (
    accept_link,
    client_handshake,
    refuse_link,
    server_handshake,
)
from linkagg.ids import ConnId, EncryptedConnId, ServerId
from linkagg.msg import (
    Connect,
    Ping,
    ProtocolError,
    RefusedReason,
    Welcome,
    decode_msg,
    encode_msg,
)


class _Packets:
    """One direction of an in-memory packet link."""

    def __init__(self):
        self.queue = asyncio.Queue()

    async def send(self, data):
        await self.queue.put(bytes(data))

    async def recv(self):
        return await self.queue.get()

    def close(self):
        self.queue.put_nowait(None)


def _link():
    """Return (server_tx, server_rx, client_tx, client_rx)."""
    to_client = _Packets()
    to_server = _Packets()
    return to_client, to_server, to_server, to_client


def _raw_public(secret):
    return secret.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


@pytest.mark.asyncio
async def test_full_handshake_accepted():
    s_tx, s_rx, c_tx, c_rx = _link()
    server_id = ServerId.generate()
    client_server_id = ServerId.generate()
    conn_id = ConnId.generate()

    async def server_side():
        result = await server_handshake(s_tx, s_rx, server_id, b"server data", b"server cfg")
        await accept_link(s_tx)
        return result

    server, client = await asyncio.gather(
        server_side(),
        client_handshake(
            c_tx, c_rx, conn_id, client_server_id, True, b"client data", b"client cfg", None
        ),
    )

    assert server.conn_id == conn_id
    assert server.existing is True
    assert server.remote_server_id == client_server_id
    assert server.remote_user_data == b"client data"
    assert server.remote_cfg == b"client cfg"
    assert server.roundtrip >= 0

    assert client.remote_server_id == server_id
    assert client.remote_user_data == b"server data"
    assert client.remote_cfg == b"server cfg"
    assert client.roundtrip >= 0


@pytest.mark.asyncio
async def test_handshake_with_outgoing_only_client_and_known_server():
    s_tx, s_rx, c_tx, c_rx = _link()
    server_id = ServerId.generate()
    conn_id = ConnId.generate()

    async def server_side():
        result = await server_handshake(s_tx, s_rx, server_id, b"", b"")
        await accept_link(s_tx)
        return result

    server, client = await asyncio.gather(
        server_side(),
        client_handshake(c_tx, c_rx, conn_id, None, False, b"", b"", server_id),
    )
    assert server.remote_server_id is None
    assert server.existing is False
    assert server.conn_id == conn_id
    assert client.remote_server_id == server_id


@pytest.mark.asyncio
async def test_server_welcome_on_wire_and_manual_connect():
    s_tx, s_rx, c_tx, c_rx = _link()
    server_id = ServerId.generate()
    task = asyncio.ensure_future(server_handshake(s_tx, s_rx, server_id, b"hello", b"cfg"))

    welcome = decode_msg(await c_rx.recv())
    assert isinstance(welcome, Welcome)
    assert welcome.extensions == 0
    assert welcome.server_id == server_id
    assert welcome.user_data == b"hello"
    assert welcome.cfg == b"cfg"
    assert len(welcome.public_key) == 32

    secret = X25519PrivateKey.generate()
    shared = secret.exchange(X25519PublicKey.from_public_bytes(welcome.public_key))
    conn_id = ConnId.generate()
    await c_tx.send(
        encode_msg(
            Connect(
                extensions=0,
                public_key=_raw_public(secret),
                server_id=None,
                connection_id=EncryptedConnId.encrypt(conn_id, shared),
                existing_connection=False,
                user_data=b"x",
                cfg=b"",
            )
        )
    )
    result = await task
    assert result.conn_id == conn_id
    assert result.remote_user_data == b"x"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reason, kind",
    [
        (RefusedReason.CLOSED, AddLinkError.Kind.CONNECTION_CLOSED),
        (RefusedReason.NOT_LISTENING, AddLinkError.Kind.NOT_LISTENING),
        (RefusedReason.CONNECTION_REFUSED, AddLinkError.Kind.CONNECTION_REFUSED),
        (RefusedReason.LINK_REFUSED, AddLinkError.Kind.LINK_REFUSED),
    ],
)
async def test_refused_link_raises_matching_error(reason, kind):
    s_tx, s_rx, c_tx, c_rx = _link()

    async def server_side():
        await server_handshake(s_tx, s_rx, ServerId.generate(), b"", b"")
        await refuse_link(s_tx, reason)

    results = await asyncio.gather(
        server_side(),
        client_handshake(c_tx, c_rx, ConnId.generate(), None, False, b"", b"", None),
        return_exceptions=True,
    )
    assert results[0] is None
    assert isinstance(results[1], AddLinkError)
    assert results[1].kind is kind
    assert results[1].should_reconnect() is False


@pytest.mark.asyncio
async def test_server_id_mismatch():
    s_tx, s_rx, c_tx, c_rx = _link()
    server_id = ServerId.generate()
    expected = ServerId(server_id.value ^ 1) if server_id.value != 1 else ServerId(2)
    task = asyncio.ensure_future(server_handshake(s_tx, s_rx, server_id, b"", b""))

    with pytest.raises(AddLinkError) as info:
        await client_handshake(c_tx, c_rx, ConnId.generate(), None, False, b"", b"", expected)
    assert info.value.kind is AddLinkError.Kind.SERVER_ID_MISMATCH
    assert info.value.expected == expected
    assert info.value.present == server_id
    task.cancel()


@pytest.mark.asyncio
async def test_server_rejects_unexpected_message():
    s_tx, s_rx, c_tx, c_rx = _link()
    await c_tx.send(encode_msg(Ping()))
    with pytest.raises(IncomingError) as info:
        await server_handshake(s_tx, s_rx, ServerId.generate(), b"", b"")
    assert info.value.kind is IncomingError.Kind.IO
    assert isinstance(info.value.cause, ProtocolError)
    assert str(info.value.cause) == "expected Connect message"


@pytest.mark.asyncio
async def test_server_link_closed():
    s_tx, s_rx, c_tx, c_rx = _link()
    c_tx.close()
    with pytest.raises(IncomingError) as info:
        await server_handshake(s_tx, s_rx, ServerId.generate(), b"", b"")
    assert isinstance(info.value.cause, EOFError)


@pytest.mark.asyncio
async def test_client_link_closed():
    s_tx, s_rx, c_tx, c_rx = _link()
    s_tx.close()
    with pytest.raises(AddLinkError) as info:
        await client_handshake(c_tx, c_rx, ConnId.generate(), None, False, b"", b"", None)
    assert info.value.kind is AddLinkError.Kind.IO
    assert isinstance(info.value.cause, EOFError)
    assert info.value.should_reconnect() is True


@pytest.mark.asyncio
async def test_client_expects_welcome_first():
    s_tx, s_rx, c_tx, c_rx = _link()
    await s_tx.send(encode_msg(Ping()))
    with pytest.raises(AddLinkError) as info:
        await client_handshake(c_tx, c_rx, ConnId.generate(), None, False, b"", b"", None)
    assert str(info.value.cause) == "expected Welcome message"


@pytest.mark.asyncio
async def test_client_rejects_unexpected_verdict():
    s_tx, s_rx, c_tx, c_rx = _link()

    async def server_side():
        await server_handshake(s_tx, s_rx, ServerId.generate(), b"", b"")
        await s_tx.send(encode_msg(Ping()))

    results = await asyncio.gather(
        server_side(),
        client_handshake(c_tx, c_rx, ConnId.generate(), None, False, b"", b"", None),
        return_exceptions=True,
    )
    assert isinstance(results[1], AddLinkError)
    assert results[1].kind is AddLinkError.Kind.IO
    assert str(results[1].cause) == "expected Accepted or Refused message"


@pytest.mark.asyncio
async def test_accept_and_refuse_wire_bytes():
    tx = _Packets()
    await accept_link(tx)
    await refuse_link(tx, RefusedReason.NOT_LISTENING)
    assert await tx.recv() == bytes([3])
    assert await tx.recv() == bytes([4, 2])


@pytest.mark.asyncio
async def test_user_data_too_big():
    s_tx, s_rx, c_tx, c_rx = _link()
    big = bytes(0x10000)
    with pytest.raises(ValueError):
        await server_handshake(s_tx, s_rx, ServerId.generate(), big, b"")
    with pytest.raises(ValueError):
        await client_handshake(c_tx, c_rx, ConnId.generate(), None, False, big, b"", None)
    assert s_tx.queue.empty()
    assert c_tx.queue.empty()