"""Event emitter: builds enriched events and fans them out to sinks."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from nestrace.hierarchy import UNKNOWN_NODE
from nestrace.models.events import CapturedEvent, EventKind

if TYPE_CHECKING:
    from nestrace.hierarchy import HierarchyResolver
    from nestrace.models.run import Run
    from nestrace.protocols import EventSink

logger = logging.getLogger(__name__)


def _sink_name(sink: object) -> str:
    return getattr(sink, "name", None) or type(sink).__name__


class EventEmitter:
    """Builds CapturedEvents with hierarchy attribution and dispatches them.

    Every event is appended to the in-process log before any sink sees
    it. Sinks are called in registration order; a sink that raises is
    logged and skipped, and the remaining sinks still receive the event.
    Nothing a sink does can propagate back to the caller.
    """

    def __init__(
        self,
        resolver: HierarchyResolver,
        sinks: Iterable[EventSink] = (),
    ) -> None:
        self._resolver = resolver
        self._sinks: list[EventSink] = list(sinks)
        self._events: list[CapturedEvent] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def sinks(self) -> list[EventSink]:
        return list(self._sinks)

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    @property
    def events(self) -> list[CapturedEvent]:
        """Snapshot of every event emitted so far, in emission order."""
        with self._lock:
            return list(self._events)

    def emit(
        self,
        kind: EventKind,
        run: Run | None,
        *,
        phase: str,
        message: str,
        metadata: Mapping[str, Any] | None = None,
        run_id: str | None = None,
    ) -> CapturedEvent:
        """Record one event derived from ``run`` and forward it to sinks.

        ``run`` may be None for events whose source run is unknown (a
        custom event for an unrecorded identity); the event is then
        attributed to the ``"unknown"`` node with an empty path.
        """
        if run is not None:
            path = tuple(self._resolver.execution_path(run))
            event = CapturedEvent(
                kind=kind,
                phase=phase,
                message=message,
                run_id=run.run_id,
                node_name=run.name,
                metadata=metadata or {},
                parent_run_id=run.parent_run_id,
                parent_node_name=self._resolver.parent_node_name(run),
                execution_path=path,
                level=max(len(path) - 1, 0),
            )
        else:
            event = CapturedEvent(
                kind=kind,
                phase=phase,
                message=message,
                run_id=str(run_id) if run_id is not None else "",
                node_name=UNKNOWN_NODE,
                metadata=metadata or {},
            )
        with self._lock:
            self._events.append(event)
        self.dispatch(event)
        return event

    def dispatch(self, event: CapturedEvent) -> None:
        """Forward an already-built event to every sink."""
        for sink in self._sinks:
            try:
                sink.accept(event)
            except Exception:
                logger.exception(
                    "Sink %s failed to accept %s event for run %s",
                    _sink_name(sink), event.kind.value, event.run_id,
                )

    def close(self) -> None:
        """Close every sink exactly once; later calls are no-ops."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        for sink in self._sinks:
            try:
                sink.close()
            except Exception:
                logger.exception("Sink %s failed to close", _sink_name(sink))
