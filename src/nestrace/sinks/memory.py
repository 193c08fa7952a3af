"""In-process sinks: a bounded buffer and a callback forwarder."""

from __future__ import annotations

import threading
from collections import deque
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from nestrace.models.events import CapturedEvent


class MemorySink:
    """Buffers events in memory.

    With ``maxlen`` set, the buffer keeps only the newest ``maxlen``
    events.
    """

    name = "memory"

    def __init__(self, maxlen: int | None = None) -> None:
        self._events: deque[CapturedEvent] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def accept(self, event: CapturedEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[CapturedEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._events)


class CallbackSink:
    """Forwards every event to a user callable (real-time listeners)."""

    def __init__(self, callback: Callable[[CapturedEvent], object], *, name: str = "callback") -> None:
        self._callback = callback
        self.name = name

    def accept(self, event: CapturedEvent) -> None:
        self._callback(event)

    def close(self) -> None:
        pass
