"""Length-prefixed packet framing with sequence numbers and CRC32 checksums."""

from __future__ import annotations

import struct
import zlib
from typing import Optional, Tuple

_HEADER = struct.Struct(">IHI")


class IntegrityError(ValueError):
    """A packet failed integrity checks."""

    PACKET_TOO_BIG = "packet too big"
    SEQ_SKIPPED = "sequence number skipped"
    DATA_CORRUPTED = "data corrupted"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class IntegrityCodec:
    """Frames packets with a header of length, 16-bit sequence number and CRC32."""

    HEADER_LEN = _HEADER.size
    DEFAULT_MAX_PACKET_SIZE = 8 * 1024 * 1024

    def __init__(self, max_packet_size: int = DEFAULT_MAX_PACKET_SIZE):
        self.max_packet_size = max_packet_size
        self._header: Optional[Tuple[int, int]] = None
        self._decode_seq = 0
        self._encode_seq = 0

    def encode(self, data: bytes) -> bytes:
        """Frame one packet for the wire."""
        if len(data) > self.max_packet_size:
            raise IntegrityError(IntegrityError.PACKET_TOO_BIG)
        header = _HEADER.pack(len(data), self._encode_seq, zlib.crc32(data))
        self._encode_seq = (self._encode_seq + 1) & 0xFFFF
        return header + bytes(data)

    def decode(self, buffer: bytearray) -> Optional[bytes]:
        """Take one complete packet from the front of ``buffer``.

        Consumed bytes are removed from the buffer. Returns ``None`` when
        more data is needed.
        """
        if self._header is None:
            if len(buffer) < self.HEADER_LEN:
                return None
            length, seq, checksum = _HEADER.unpack_from(buffer)
            del buffer[: self.HEADER_LEN]
            if length > self.max_packet_size:
                raise IntegrityError(IntegrityError.PACKET_TOO_BIG)
            if seq != self._decode_seq:
                raise IntegrityError(IntegrityError.SEQ_SKIPPED)
            self._decode_seq = (self._decode_seq + 1) & 0xFFFF
            self._header = (length, checksum)

        length, checksum = self._header
        if len(buffer) < length:
            return None
        data = bytes(buffer[:length])
        del buffer[:length]
        self._header = None
        if zlib.crc32(data) != checksum:
            raise IntegrityError(IntegrityError.DATA_CORRUPTED)
        return data