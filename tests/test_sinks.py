"""Tests for the JSONL, console and in-memory sinks."""

import io
import json

import pytest
from rich.console import Console

from nestrace.exceptions import SinkClosedError, SinkError
from nestrace.models.events import CapturedEvent, EventKind
from nestrace.protocols import EventSink
from nestrace.sinks import CallbackSink, ConsoleSink, HttpEventSink, JsonlFileSink, MemorySink, SqlEventSink


def _event(message: str = "hello", **kwargs) -> CapturedEvent:
    defaults = dict(
        kind=EventKind.PHASE_START,
        phase="research",
        message=message,
        run_id="r1",
        node_name="research_subgraph",
        execution_path=("coordinator", "research_subgraph"),
        level=1,
    )
    defaults.update(kwargs)
    return CapturedEvent(**defaults)


class TestProtocolConformance:
    @pytest.mark.parametrize("cls", [JsonlFileSink, ConsoleSink, MemorySink, CallbackSink, HttpEventSink, SqlEventSink])
    def test_sink_classes_expose_protocol_methods(self, cls):
        assert callable(getattr(cls, "accept"))
        assert callable(getattr(cls, "close"))

    def test_memory_sink_is_event_sink(self):
        assert isinstance(MemorySink(), EventSink)


# ---------------------------------------------------------------------------
# JSONL file sink
# ---------------------------------------------------------------------------


class TestJsonlFileSink:
    def test_one_line_per_event(self, tmp_path):
        path = tmp_path / "trace.jsonl"
        with JsonlFileSink(path) as sink:
            sink.accept(_event("one"))
            sink.accept(_event("two", metadata={"tool_name": "search"}))
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        records = [json.loads(line) for line in lines]
        assert records[0]["message"] == "one"
        assert records[1]["metadata"] == {"tool_name": "search"}
        assert records[0]["execution_path"] == ["coordinator", "research_subgraph"]
        assert records[0]["kind"] == "phase:start"

    def test_flushed_per_write(self, tmp_path):
        path = tmp_path / "trace.jsonl"
        sink = JsonlFileSink(path)
        sink.accept(_event())
        assert len(path.read_text(encoding="utf-8").splitlines()) == 1
        sink.close()

    def test_appends_to_existing_file(self, tmp_path):
        path = tmp_path / "trace.jsonl"
        path.write_text('{"existing": true}\n', encoding="utf-8")
        with JsonlFileSink(path) as sink:
            sink.accept(_event())
        assert len(path.read_text(encoding="utf-8").splitlines()) == 2

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "trace.jsonl"
        with JsonlFileSink(path) as sink:
            sink.accept(_event())
        assert path.exists()

    def test_close_idempotent_and_rejects_writes(self, tmp_path):
        sink = JsonlFileSink(tmp_path / "trace.jsonl")
        sink.close()
        sink.close()
        assert sink.closed
        with pytest.raises(SinkClosedError):
            sink.accept(_event())

    def test_unopenable_path_raises_sink_error(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(SinkError) as exc_info:
            JsonlFileSink(blocker / "trace.jsonl")
        assert exc_info.value.sink_name == "jsonl"

    def test_non_json_metadata_is_stringified(self, tmp_path):
        path = tmp_path / "trace.jsonl"
        with JsonlFileSink(path) as sink:
            sink.accept(_event(metadata={"obj": object(), "nested": {"s": {1, 2}}}))
        record = json.loads(path.read_text(encoding="utf-8"))
        assert isinstance(record["metadata"]["obj"], str)
        assert sorted(record["metadata"]["nested"]["s"]) == [1, 2]


# ---------------------------------------------------------------------------
# Console sink
# ---------------------------------------------------------------------------


class TestConsoleSink:
    def _sink(self, **kwargs):
        buf = io.StringIO()
        console = Console(file=buf, width=200, color_system=None, highlight=False)
        return ConsoleSink(console, **kwargs), buf

    def test_indented_by_level(self):
        sink, buf = self._sink(indent=4)
        sink.accept(_event(level=2))
        line = buf.getvalue().rstrip("\n")
        assert line.startswith("        [phase:start]")
        assert "coordinator > research_subgraph" in line
        assert line.endswith("hello")

    def test_inline_metadata(self):
        sink, buf = self._sink()
        sink.accept(_event(
            kind=EventKind.TOOL_EXECUTED,
            message="Tool executed: search",
            metadata={"tool_name": "search", "duration_ms": 12.4, "output": "big"},
        ))
        out = buf.getvalue()
        assert "[tool:executed]" in out
        assert "(tool_name=search, 12ms)" in out
        assert "big" not in out

    def test_metadata_can_be_hidden(self):
        sink, buf = self._sink(show_metadata=False)
        sink.accept(_event(metadata={"tool_name": "search"}))
        assert "tool_name" not in buf.getvalue()

    def test_markup_in_message_is_escaped(self):
        sink, buf = self._sink()
        sink.accept(_event(message="[bold]not markup[/bold]"))
        assert "[bold]not markup[/bold]" in buf.getvalue()

    def test_node_name_used_when_path_empty(self):
        sink, buf = self._sink()
        sink.accept(_event(execution_path=(), node_name="LangGraph", level=0))
        assert "LangGraph" in buf.getvalue()


# ---------------------------------------------------------------------------
# In-memory sinks
# ---------------------------------------------------------------------------


class TestMemorySink:
    def test_buffers_events(self):
        sink = MemorySink()
        e1, e2 = _event("a"), _event("b")
        sink.accept(e1)
        sink.accept(e2)
        assert sink.events == [e1, e2]
        assert len(sink) == 2

    def test_maxlen_keeps_newest(self):
        sink = MemorySink(maxlen=2)
        for msg in ("a", "b", "c"):
            sink.accept(_event(msg))
        assert [e.message for e in sink.events] == ["b", "c"]

    def test_clear(self):
        sink = MemorySink()
        sink.accept(_event())
        sink.clear()
        assert sink.events == []


class TestCallbackSink:
    def test_forwards_to_callable(self):
        received = []
        sink = CallbackSink(received.append, name="listener")
        event = _event()
        sink.accept(event)
        assert received == [event]
        assert sink.name == "listener"
