"""Console pretty-printer sink.

Uses rich for colour; rich auto-detects TTY and degrades gracefully
when output is piped.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape

from nestrace.models.events import EventKind

if TYPE_CHECKING:
    from nestrace.models.events import CapturedEvent

_KIND_STYLES: dict[EventKind, str] = {
    EventKind.PHASE_START: "cyan",
    EventKind.PHASE_END: "green",
    EventKind.PHASE_ERROR: "bold red",
    EventKind.LLM_END: "blue",
    EventKind.TOOL_REQUESTED: "magenta",
    EventKind.TOOL_EXECUTED: "bright_magenta",
    EventKind.CUSTOM: "yellow",
}

# Metadata keys worth a short inline note, in display order.
_INLINE_KEYS = ("tool_name", "model_name", "duration_ms", "input_tokens", "output_tokens")


class ConsoleSink:
    """Prints one line per event, indented by nesting level.

    Args:
        console: Rich console to print to. Defaults to stdout.
        indent: Spaces per nesting level.
        show_metadata: Append selected metadata values to each line.
    """

    name = "console"

    def __init__(
        self,
        console: Console | None = None,
        *,
        file: Any = None,
        indent: int = 2,
        show_metadata: bool = True,
    ) -> None:
        if console is None:
            console = Console(file=file, highlight=False) if file is not None else Console(highlight=False)
        self._console = console
        self._indent = indent
        self._show_metadata = show_metadata
        self._lock = threading.Lock()

    def format(self, event: CapturedEvent) -> str:
        """Render an event as a rich-markup line."""
        style = _KIND_STYLES.get(event.kind, "white")
        pad = " " * (self._indent * event.level)
        path = " > ".join(event.execution_path) or event.node_name
        line = (
            f"{pad}[{style}]\\[{event.kind.value}][/{style}] "
            f"[dim]{escape(path)}[/dim] {escape(event.message)}"
        )
        if self._show_metadata:
            notes = []
            for key in _INLINE_KEYS:
                value = event.metadata.get(key)
                if value is None:
                    continue
                if key == "duration_ms" and isinstance(value, (int, float)):
                    notes.append(f"{value:.0f}ms")
                else:
                    notes.append(f"{key}={value}")
            if notes:
                line += f" [dim]({escape(', '.join(notes))})[/dim]"
        return line

    def accept(self, event: CapturedEvent) -> None:
        line = self.format(event)
        with self._lock:
            self._console.print(line)

    def close(self) -> None:
        pass
