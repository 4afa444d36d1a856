"""Observer lists for process instance notifications."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

__all__ = ["EventHandler"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventHandler(Generic[T]):
    """Named list of callbacks that receive one value per emission.

    Subscribers may be added or removed from any thread, including from
    inside a callback. ``emit`` broadcasts to the subscribers present at the
    moment of the call. A failing subscriber is logged and skipped so it
    cannot stop the thread that delivers process output.

    Example:
        ```python
        handler: EventHandler[str] = EventHandler("output_data_received")
        handler.subscribe(print)
        handler.emit("hello")
        ```
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._callbacks: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[T], None]:
        """Add a callback. Returns it so this can be used as a decorator."""
        with self._lock:
            self._callbacks.append(callback)
        return callback

    def unsubscribe(self, callback: Callable[[T], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def emit(self, value: T) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(value)
            except Exception as e:
                logger.warning(f"Error in {self.name} callback {callback!r}: {e}")

    @property
    def subscribers(self) -> list[Callable[[T], None]]:
        with self._lock:
            return list(self._callbacks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def __repr__(self) -> str:
        return f"EventHandler(name={self.name}, subscribers={len(self)})"
