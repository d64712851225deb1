"""Wrapping 32-bit sequence numbers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

_MASK = 0xFFFFFFFF
_ONE_QUARTER = _MASK // 4
_THREE_QUARTERS = _ONE_QUARTER * 3


@dataclass(frozen=True)
class Seq:
    """A 32-bit sequence number that wraps around.

    The distance between the lowest and highest sequence number in use must
    not exceed ``USABLE_INTERVAL``, otherwise comparisons give wrong results.
    """

    value: int = 0

    ZERO: ClassVar[Seq]
    MINUS_ONE: ClassVar[Seq]
    USABLE_INTERVAL: ClassVar[int] = _ONE_QUARTER

    def __post_init__(self) -> None:
        if not 0 <= self.value <= _MASK:
            raise ValueError(f"sequence number {self.value} out of 32-bit range")

    def compare(self, other: Seq) -> int:
        """Return -1, 0 or 1, treating values across the wrap point as ordered."""
        a, b = self.value, other.value
        if a < _ONE_QUARTER and b >= _THREE_QUARTERS:
            return 1
        if b < _ONE_QUARTER and a >= _THREE_QUARTERS:
            return -1
        return (a > b) - (a < b)

    def __add__(self, other: int) -> Seq:
        if not isinstance(other, int):
            return NotImplemented
        return Seq((self.value + other) & _MASK)

    def __sub__(self, other):
        """``Seq - Seq`` gives the signed 32-bit distance; ``Seq - int`` a new Seq."""
        if isinstance(other, Seq):
            diff = (self.value - other.value) & _MASK
            return diff - (1 << 32) if diff >= (1 << 31) else diff
        if isinstance(other, int):
            return Seq((self.value - other) & _MASK)
        return NotImplemented

    def __lt__(self, other: Seq) -> bool:
        if not isinstance(other, Seq):
            return NotImplemented
        return self.compare(other) < 0

    def __le__(self, other: Seq) -> bool:
        if not isinstance(other, Seq):
            return NotImplemented
        return self.compare(other) <= 0

    def __gt__(self, other: Seq) -> bool:
        if not isinstance(other, Seq):
            return NotImplemented
        return self.compare(other) > 0

    def __ge__(self, other: Seq) -> bool:
        if not isinstance(other, Seq):
            return NotImplemented
        return self.compare(other) >= 0

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


Seq.ZERO = Seq(0)
Seq.MINUS_ONE = Seq(_MASK)