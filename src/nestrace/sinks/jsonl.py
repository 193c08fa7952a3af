"""Durable newline-delimited JSON file sink."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from nestrace.exceptions import SinkClosedError, SinkError

if TYPE_CHECKING:
    from nestrace.models.events import CapturedEvent

logger = logging.getLogger(__name__)


class JsonlFileSink:
    """Appends one JSON record per event to a file.

    The file is opened for append at construction and flushed after
    every write, so a reader can tail it line by line while the traced
    system is still running. ``close`` releases the handle exactly once.

    Usage::

        with JsonlFileSink("traces/run.jsonl") as sink:
            tracer = NestedTracer(sinks=[sink])
            ...
    """

    name = "jsonl"

    def __init__(self, path: str | Path, *, encoding: str = "utf-8") -> None:
        self._path = Path(path)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "a", encoding=encoding)
        except OSError as exc:
            raise SinkError(self.name, f"cannot open {self._path}: {exc}") from exc
        self._lock = threading.Lock()
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    def accept(self, event: CapturedEvent) -> None:
        line = event.to_json()
        with self._lock:
            if self._closed:
                raise SinkClosedError(self.name)
            self._fh.write(line + "\n")
            self._fh.flush()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._fh.flush()
            finally:
                self._fh.close()
        logger.debug("Closed trace file %s", self._path)

    def __enter__(self) -> JsonlFileSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
