"""Packet-based wrappers around byte-stream readers and writers."""

from __future__ import annotations

from typing import Any, Optional

from .codec import IntegrityCodec

_READ_SIZE = 64 * 1024


class IoTx:
    """Sends packets over a stream writer using the integrity codec."""

    def __init__(self, writer: Any, codec: Optional[IntegrityCodec] = None):
        self._writer = writer
        self.codec = codec if codec is not None else IntegrityCodec()

    async def send(self, data: bytes) -> None:
        """Frame and send one packet, waiting until it is flushed."""
        self._writer.write(self.codec.encode(data))
        await self._writer.drain()

    async def close(self) -> None:
        """Close the underlying writer."""
        self._writer.close()
        await self._writer.wait_closed()


class IoRx:
    """Receives packets from a stream reader using the integrity codec."""

    def __init__(self, reader: Any, codec: Optional[IntegrityCodec] = None):
        self._reader = reader
        self.codec = codec if codec is not None else IntegrityCodec()
        self._buffer = bytearray()
        self._eof = False

    async def recv(self) -> Optional[bytes]:
        """Receive the next packet, or ``None`` at the end of the stream.

        Raises EOFError when the stream ends inside a packet.
        """
        while True:
            packet = self.codec.decode(self._buffer)
            if packet is not None:
                return packet
            if self._eof:
                if self._buffer:
                    raise EOFError("bytes remaining on stream")
                return None
            chunk = await self._reader.read(_READ_SIZE)
            if chunk:
                self._buffer += chunk
            else:
                self._eof = True

    def __aiter__(self) -> IoRx:
        return self

    async def __anext__(self) -> bytes:
        packet = await self.recv()
        if packet is None:
            raise StopAsyncIteration
        return packet