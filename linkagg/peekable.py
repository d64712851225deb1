"""Receiver wrapper that allows peeking at the next message."""

from __future__ import annotations

from typing import Any, Callable, Optional


class Empty(Exception):
    """No message is immediately available."""


class Disconnected(Exception):
    """All senders are gone and no messages remain."""


class NoMatch(Exception):
    """The next message does not fulfil the condition."""


_NOTHING = object()


class PeekableReceiver:
    """Wraps a receiver so the next message can be inspected before taking it.

    The wrapped receiver provides ``async recv()``, returning the next message
    or ``None`` once disconnected, and ``try_recv()``, raising :class:`Empty`
    or :class:`Disconnected` when nothing can be taken.
    """

    def __init__(self, rx: Any):
        self._rx = rx
        self._peeked: Any = _NOTHING

    def _take(self) -> Any:
        msg, self._peeked = self._peeked, _NOTHING
        return msg

    async def recv(self) -> Optional[Any]:
        """Receive the next message, or ``None`` when disconnected."""
        if self._peeked is not _NOTHING:
            return self._take()
        return await self._rx.recv()

    def try_recv(self) -> Any:
        """Receive the next message if one is immediately available."""
        if self._peeked is not _NOTHING:
            return self._take()
        return self._rx.try_recv()

    async def peek(self) -> Optional[Any]:
        """Wait for the next message and return it without taking it."""
        if self._peeked is _NOTHING:
            msg = await self._rx.recv()
            if msg is None:
                return None
            self._peeked = msg
        return self._peeked

    def try_peek(self) -> Any:
        """Return the next message without taking it, if one is available."""
        if self._peeked is _NOTHING:
            self._peeked = self._rx.try_recv()
        return self._peeked

    async def recv_if(self, cond: Callable[[Any], bool]) -> Any:
        """Receive the next message if it fulfils ``cond``."""
        msg = await self.peek()
        if msg is None:
            raise Disconnected()
        if not cond(msg):
            raise NoMatch()
        return self._take()

    def try_recv_if(self, cond: Callable[[Any], bool]) -> Any:
        """Receive the next message if it is available now and fulfils ``cond``."""
        if not cond(self.try_peek()):
            raise NoMatch()
        return self._take()