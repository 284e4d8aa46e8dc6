"""Bucket and byte-range value types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Bucket:
    """A top-level named container for objects.

    Attributes:
        name: Bucket name, also the name of its root directory.
        creation_date: When the bucket was created (UTC).
    """

    name: str
    creation_date: datetime


@dataclass(frozen=True)
class ByteRange:
    """Byte interval of a source object, both ends inclusive.

    Attributes:
        start: First byte offset.
        end: Last byte offset; clamped to the content length when sliced.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < 0:
            raise ValueError(f"Range offsets must be non-negative, got {self.start}-{self.end}")
        if self.end < self.start:
            raise ValueError(f"Range end {self.end} is before start {self.start}")

    def bounds(self, length: int) -> tuple[int, int]:
        """Return the (offset, count) to read from content of the given length."""
        stop = min(self.end + 1, length)
        return self.start, max(stop - self.start, 0)
