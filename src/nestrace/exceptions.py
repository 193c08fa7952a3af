"""Nestrace exception hierarchy.

All nestrace-specific exceptions inherit from NestraceError. None of them
is ever raised out of a host callback; they surface only from
library-side APIs (reading traces, building sinks, validating config).
"""


class NestraceError(Exception):
    """Base exception for all nestrace errors."""


class ConfigError(NestraceError):
    """Raised when tracer configuration is invalid."""


class TraceFormatError(NestraceError):
    """Raised when a trace file line cannot be parsed as an event record."""

    def __init__(self, line_number: int, reason: str) -> None:
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Malformed trace record on line {line_number}: {reason}")


class SinkError(NestraceError):
    """Raised when a sink cannot accept an event.

    The emitter catches this (and any other exception a sink raises),
    logs it, and moves on to the next sink.
    """

    def __init__(self, sink_name: str, reason: str) -> None:
        self.sink_name = sink_name
        self.reason = reason
        super().__init__(f"Sink '{sink_name}' failed: {reason}")


class SinkClosedError(SinkError):
    """Raised when an event is sent to a sink that was already closed."""

    def __init__(self, sink_name: str) -> None:
        super().__init__(sink_name, "sink is closed")
