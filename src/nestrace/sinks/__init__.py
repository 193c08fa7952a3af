"""Event sinks: destinations the emitter forwards captured events to."""

from nestrace.sinks.console import ConsoleSink
from nestrace.sinks.http import HttpEventSink
from nestrace.sinks.jsonl import JsonlFileSink
from nestrace.sinks.memory import CallbackSink, MemorySink
from nestrace.sinks.sql import SqlEventSink, list_trace_ids, load_events

__all__ = [
    "CallbackSink",
    "ConsoleSink",
    "HttpEventSink",
    "JsonlFileSink",
    "MemorySink",
    "SqlEventSink",
    "list_trace_ids",
    "load_events",
]
