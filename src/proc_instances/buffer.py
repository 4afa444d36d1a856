"""Bounded, thread-safe store for captured output lines."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterator

__all__ = ["LineBuffer"]


class LineBuffer:
    """Insertion-ordered line buffer that evicts its oldest lines.

    The buffer never holds more than ``capacity`` lines; eviction happens
    inside ``append`` while the lock is held, so readers never observe an
    over-full buffer. Empty lines are dropped before the capacity check when
    ``ignore_empty_lines`` is set.

    Attributes:
        capacity: Maximum number of retained lines (None = unbounded)
        ignore_empty_lines: Drop ``""`` instead of storing it
    """

    def __init__(
        self,
        capacity: int | None = None,
        ignore_empty_lines: bool = False,
    ) -> None:
        if capacity is not None and capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self.capacity = capacity
        self.ignore_empty_lines = ignore_empty_lines
        self._lines: deque[str] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, line: str) -> bool:
        """Append a line, evicting the oldest ones past capacity.

        Returns:
            Whether the line was accepted (False if filtered as empty)
        """
        if self.ignore_empty_lines and line == "":
            return False
        with self._lock:
            self._lines.append(line)
        return True

    def snapshot(self) -> tuple[str, ...]:
        """Return an independent copy of the current lines."""
        with self._lock:
            return tuple(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return (
            f"LineBuffer(size={len(self)}, "
            f"capacity={self.capacity if self.capacity is not None else 'unbounded'}, "
            f"ignore_empty_lines={self.ignore_empty_lines})"
        )
