import asyncio

import pytest

from linkagg.codec import IntegrityCodec, IntegrityError
from linkagg.framing import IoRx, IoTx


class FakeWriter:
    def __init__(self):
        self.data = bytearray()
        self.drains = 0
        self.closed = False

    def write(self, data):
        self.data += data

    async def drain(self):
        self.drains += 1

    def close(self):
        self.closed = True

    async def wait_closed(self):
        return None


def _reader_with(data, eof=True):
    reader = asyncio.StreamReader()
    reader.feed_data(bytes(data))
    if eof:
        reader.feed_eof()
    return reader


@pytest.mark.asyncio
async def test_round_trip_through_stream():
    writer = FakeWriter()
    tx = IoTx(writer)
    packets = [b"one", b"", b"three" * 100]
    for packet in packets:
        await tx.send(packet)
    assert writer.drains == len(packets)
    rx = IoRx(_reader_with(writer.data))
    received = [packet async for packet in rx]
    assert received == packets


@pytest.mark.asyncio
async def test_recv_none_at_clean_eof():
    rx = IoRx(_reader_with(b""))
    assert await rx.recv() is None
    assert await rx.recv() is None


@pytest.mark.asyncio
async def test_truncated_stream_raises():
    frame = IntegrityCodec().encode(b"truncated payload")
    rx = IoRx(_reader_with(frame[:-3]))
    with pytest.raises(EOFError):
        await rx.recv()


@pytest.mark.asyncio
async def test_corruption_raises_integrity_error():
    frame = bytearray(IntegrityCodec().encode(b"data"))
    frame[-2] ^= 0x01
    rx = IoRx(_reader_with(frame))
    with pytest.raises(IntegrityError):
        await rx.recv()


@pytest.mark.asyncio
async def test_custom_codec_limit_applies_to_send():
    tx = IoTx(FakeWriter(), IntegrityCodec(max_packet_size=2))
    with pytest.raises(IntegrityError):
        await tx.send(b"abc")


@pytest.mark.asyncio
async def test_data_arriving_in_pieces():
    frame = IntegrityCodec().encode(b"split packet")
    reader = asyncio.StreamReader()
    rx = IoRx(reader)
    task = asyncio.ensure_future(rx.recv())
    reader.feed_data(frame[:4])
    await asyncio.sleep(0)
    reader.feed_data(frame[4:])
    assert await task == b"split packet"


@pytest.mark.asyncio
async def test_close_closes_writer():
    writer = FakeWriter()
    await IoTx(writer).close()
    assert writer.closed is True