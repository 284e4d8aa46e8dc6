"""Per-coordinate locks for storage operations.

Operations on different coordinates never share a lock. Entries are
reference-counted and dropped as soon as no thread holds or waits on them,
so the table does not grow with the number of keys ever touched.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLock:
    """A table of mutexes keyed by coordinate tuples."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[tuple[Hashable, ...], _Entry] = {}

    @contextmanager
    def hold(self, *coordinates: Hashable) -> Iterator[None]:
        """Hold the lock for the given coordinates for the duration of the block."""
        with self._guard:
            entry = self._entries.get(coordinates)
            if entry is None:
                entry = self._entries[coordinates] = _Entry()
            entry.users += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[coordinates]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
