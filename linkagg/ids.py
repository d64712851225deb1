"""Unique identifiers for connections, links and servers."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Callable, Optional

_U128_LIMIT = 1 << 128


def _check_u128(value: int) -> None:
    if not 0 <= value < _U128_LIMIT:
        raise ValueError(f"identifier {value} out of 128-bit range")


def _key_from_secret(secret: bytes) -> int:
    if len(secret) < 16:
        raise ValueError("shared secret must be at least 16 bytes")
    return int.from_bytes(bytes(secret[:16]), "big")


@dataclass(frozen=True, order=True)
class ConnId:
    """Connection identifier."""

    value: int

    def __post_init__(self) -> None:
        _check_u128(self.value)

    @staticmethod
    def generate() -> ConnId:
        """Generate a new random connection id."""
        return ConnId(secrets.randbits(128))

    def __str__(self) -> str:
        return f"{self.value:016x}"


@dataclass(frozen=True, order=True)
class LinkId:
    """Link identifier."""

    value: int

    def __post_init__(self) -> None:
        _check_u128(self.value)

    @staticmethod
    def generate() -> LinkId:
        """Generate a new random link id."""
        return LinkId(secrets.randbits(128))

    def __str__(self) -> str:
        return f"{self.value:016x}"


@dataclass(frozen=True, order=True)
class ServerId:
    """Server identifier; never zero."""

    value: int

    def __post_init__(self) -> None:
        _check_u128(self.value)
        if self.value == 0:
            raise ValueError("server id must not be zero")

    @staticmethod
    def generate() -> ServerId:
        """Generate a new random, non-zero server id."""
        while True:
            value = secrets.randbits(128)
            if value:
                return ServerId(value)

    def __str__(self) -> str:
        return f"{self.value:016x}"


@dataclass(frozen=True)
class EncryptedConnId:
    """Connection id masked with the first 16 bytes of a shared secret."""

    value: int

    def __post_init__(self) -> None:
        _check_u128(self.value)

    @staticmethod
    def encrypt(conn_id: ConnId, secret: bytes) -> EncryptedConnId:
        """Encrypt a connection id using the shared secret."""
        return EncryptedConnId(_key_from_secret(secret) ^ conn_id.value)

    def decrypt(self, secret: bytes) -> ConnId:
        """Recover the connection id using the shared secret."""
        return ConnId(_key_from_secret(secret) ^ self.value)

    def __repr__(self) -> str:
        return f"*{self.value:016x}*"


class OwnedConnId:
    """A connection id that reports once when it is released."""

    def __init__(self, conn_id: ConnId, on_release: Optional[Callable[[ConnId], None]] = None):
        self._conn_id = conn_id
        self._on_release = on_release

    @classmethod
    def untracked(cls, conn_id: ConnId) -> OwnedConnId:
        """Create a wrapper that reports to nobody."""
        return cls(conn_id)

    def get(self) -> ConnId:
        """The connection id."""
        return self._conn_id

    def release(self) -> None:
        """Report the release of the id; later calls do nothing."""
        callback, self._on_release = self._on_release, None
        if callback is not None:
            callback(self._conn_id)

    def __enter__(self) -> OwnedConnId:
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def __str__(self) -> str:
        return str(self._conn_id)

    def __repr__(self) -> str:
        return f"OwnedConnId({self._conn_id})"