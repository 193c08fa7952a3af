"""Streaming reader for newline-delimited JSON trace files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Iterator

from nestrace.exceptions import TraceFormatError
from nestrace.models.events import CapturedEvent

logger = logging.getLogger(__name__)


def parse_line(line: str, line_number: int) -> CapturedEvent:
    """Parse one JSONL record.

    Raises:
        TraceFormatError: If the line is not a JSON object describing an event.
    """
    try:
        record = json.loads(line)
    except json.JSONDecodeError as exc:
        raise TraceFormatError(line_number, f"invalid JSON ({exc.msg})") from exc
    if not isinstance(record, dict):
        raise TraceFormatError(line_number, f"expected an object, got {type(record).__name__}")
    try:
        return CapturedEvent.from_dict(record)
    except KeyError as exc:
        raise TraceFormatError(line_number, f"missing field {exc.args[0]!r}") from exc
    except (TypeError, ValueError) as exc:
        raise TraceFormatError(line_number, str(exc)) from exc


def iter_events(lines: Iterable[str], *, strict: bool = False) -> Iterator[CapturedEvent]:
    """Parse events from an iterable of lines, skipping blank ones.

    In strict mode the first malformed line raises TraceFormatError;
    otherwise it is logged and skipped.
    """
    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            yield parse_line(line, line_number)
        except TraceFormatError as exc:
            if strict:
                raise
            logger.warning("Skipping %s", exc)


def read_events(path: str | Path, *, strict: bool = False) -> Iterator[CapturedEvent]:
    """Stream events back from a trace file, one line at a time."""
    with open(path, encoding="utf-8") as fh:
        yield from iter_events(fh, strict=strict)


def load_trace(path: str | Path, *, strict: bool = False) -> list[CapturedEvent]:
    """Read a whole trace file into a list."""
    return list(read_events(path, strict=strict))
