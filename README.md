# linkagg

Protocol building blocks for combining several network links between two
endpoints into one aggregated connection. A link can be any ordered,
reliable byte stream, for example a TCP connection.

## Modules

- `linkagg.seq` – `Seq`, a wrapping 32-bit sequence number. `Seq + int`
  and `Seq - int` wrap around; `Seq - Seq` gives the signed 32-bit
  distance; comparisons treat numbers on either side of the wrap point as
  ordered (`Seq.compare` returns -1, 0 or 1).
- `linkagg.ids` – `ConnId`, `LinkId` and `ServerId` (never zero), each with
  a random `generate()`; `EncryptedConnId`, which masks a connection id with
  the first 16 bytes of a shared secret (`encrypt` / `decrypt`); and
  `OwnedConnId`, which calls a callback once when `release()` is called or
  its `with` block ends.
- `linkagg.codec` – `IntegrityCodec`, which frames packets with a 10-byte
  header (length, 16-bit sequence number, CRC32) and raises
  `IntegrityError` for oversized, skipped or corrupted packets. The default
  maximum packet size is 8 MiB.
- `linkagg.framing` – `IoTx` and `IoRx`, which turn asyncio stream writers
  and readers into packet senders and receivers using the codec. `IoRx`
  returns `None` at the end of the stream, raises `EOFError` if the stream
  ends inside a packet, and can be used with `async for`.
- `linkagg.peekable` – `PeekableReceiver`, which wraps a receiver offering
  `async recv()` and `try_recv()` so that the next item can be looked at
  before it is taken (`peek`, `try_peek`, `recv_if`, `try_recv_if`), with
  the exceptions `Empty`, `Disconnected` and `NoMatch`.
- `linkagg.msg` – the link protocol messages (`Welcome`, `Connect`,
  `Accepted`, `Refused`, `Ping`, `Pong`, `Data`, `Ack`, `Consumed`,
  `SendFinish`, `ReceiveClose`, `ReceiveFinish`, `TestData`, `SetBlock`,
  `Goodbye`), `RefusedReason`, `ReliableMsg`, and the functions
  `encode_msg`, `decode_msg`, `send_msg` and `recv_msg`. Malformed packets
  raise `ProtocolError`; truncated ones raise `EOFError`.
- `linkagg.status` – `Direction`, `Stats`, `LinkStats`,
  `LinkIntervalStats` (with `send_speed()` and `recv_speed()`),
  `NotWorkingReason` and `DisconnectReason` (with `should_reconnect()`).
- `linkagg.errors` – `ListenError`, `IncomingError`, `ConnectError` and
  `AddLinkError` (with `from_refused()` and `should_reconnect()`).
- `linkagg.handshake` – `server_handshake`, `client_handshake`,
  `accept_link` and `refuse_link`: the X25519 key exchange that opens a
  link and carries the connection id across it encrypted.

## Installation

```
pip install .
```

## Example: framing packets

```python
from linkagg.codec import IntegrityCodec

sender = IntegrityCodec()
receiver = IntegrityCodec()

buffer = bytearray(sender.encode(b"hello"))
assert receiver.decode(buffer) == b"hello"
assert buffer == bytearray()
```

## Example: protocol messages

```python
from linkagg.msg import Data, Ping, decode_msg, encode_msg
from linkagg.seq import Seq

assert isinstance(decode_msg(encode_msg(Ping())), Ping)
assert int(decode_msg(encode_msg(Data(seq=Seq(7)))).seq) == 7
```

## Example: handshake

`send_msg` and `recv_msg` work with any object that has `async send(bytes)`
and `async recv()` returning the next packet, or `None` when the link has
ended; `IoTx` and `IoRx` are such objects.

```python
import asyncio

from linkagg.handshake import accept_link, client_handshake, server_handshake
from linkagg.ids import ConnId, ServerId


class Pipe:
    def __init__(self):
        self.queue = asyncio.Queue()

    async def send(self, data):
        await self.queue.put(data)

    async def recv(self):
        return await self.queue.get()


async def main():
    to_client, to_server = Pipe(), Pipe()
    server_id, conn_id = ServerId.generate(), ConnId.generate()

    async def server():
        result = await server_handshake(to_client, to_server, server_id, b"", b"")
        await accept_link(to_client)
        return result

    client = client_handshake(to_server, to_client, conn_id, None, False, b"", b"", None)
    srv, cli = await asyncio.gather(server(), client)
    assert srv.conn_id == conn_id
    assert cli.remote_server_id == server_id


asyncio.run(main())
```

The handshake functions wait without a time limit; wrap them in
`asyncio.wait_for` to apply one.

## What this package does not do

It supplies the wire format, identifiers, errors and link handshake, but
not the aggregation itself: there is no server or listener that collects
incoming links into connections, no task that spreads data over links,
acknowledges and resends it, and no connection control handle. The
configuration carried in `Welcome` and `Connect` is treated as opaque
bytes.

## Security

The connection id is hidden from eavesdroppers by a per-link X25519 key
exchange, but data is neither authenticated nor encrypted. Run the links
over TLS when that matters.

## Running the tests

```
pip install .[test]
pytest
```