"""Tests for reading JSONL trace files back into events."""

import json
import logging

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from nestrace.exceptions import TraceFormatError
from nestrace.models.events import CapturedEvent, EventKind
from nestrace.reader import iter_events, load_trace, parse_line, read_events
from nestrace.sinks.jsonl import JsonlFileSink
from tests.strategies import captured_events


def _record(**overrides) -> str:
    record = {
        "timestamp": "2026-01-05T10:00:00+00:00",
        "kind": "tool:requested",
        "phase": "research",
        "message": "Tool call: search",
        "run_id": "m1",
        "node_name": "ChatOpenAI",
        "execution_path": ["coordinator", "research_subgraph"],
        "level": 1,
        "metadata": {"tool_name": "search"},
    }
    record.update(overrides)
    return json.dumps(record)


class TestParseLine:
    def test_valid_record(self):
        event = parse_line(_record(), 1)
        assert event.kind is EventKind.TOOL_REQUESTED
        assert event.execution_path == ("coordinator", "research_subgraph")
        assert event.metadata["tool_name"] == "search"
        assert event.timestamp.year == 2026

    def test_optional_fields_default(self):
        event = parse_line(json.dumps({"kind": "custom:event", "run_id": "x"}), 1)
        assert event.phase == ""
        assert event.execution_path == ()
        assert event.level == 0

    @pytest.mark.parametrize("line, reason", [
        ("{not json", "invalid JSON"),
        ("[1, 2]", "expected an object"),
        (json.dumps({"kind": "phase:start"}), "missing field 'run_id'"),
        (json.dumps({"kind": "nope", "run_id": "x"}), "nope"),
        (json.dumps({"kind": "phase:start", "run_id": "x", "timestamp": "yesterday"}), "yesterday"),
    ])
    def test_malformed(self, line, reason):
        with pytest.raises(TraceFormatError) as exc_info:
            parse_line(line, 7)
        assert exc_info.value.line_number == 7
        assert reason in str(exc_info.value)


class TestIterEvents:
    def test_blank_lines_skipped(self):
        events = list(iter_events(["", _record(), "   \n", _record(run_id="m2")]))
        assert [e.run_id for e in events] == ["m1", "m2"]

    def test_lenient_skips_bad_lines(self, caplog):
        with caplog.at_level(logging.WARNING, logger="nestrace.reader"):
            events = list(iter_events([_record(), "garbage", _record(run_id="m2")]))
        assert [e.run_id for e in events] == ["m1", "m2"]
        assert "line 2" in caplog.text

    def test_strict_raises(self):
        with pytest.raises(TraceFormatError) as exc_info:
            list(iter_events([_record(), "garbage"], strict=True))
        assert exc_info.value.line_number == 2


class TestReadFiles:
    def test_reads_sink_output(self, tmp_path):
        path = tmp_path / "trace.jsonl"
        written = [
            CapturedEvent(kind=EventKind.PHASE_START, phase="p", message="Starting agent",
                          run_id="a", node_name="agent", execution_path=("agent",)),
            CapturedEvent(kind=EventKind.PHASE_END, phase="p", message="agent complete",
                          run_id="a", node_name="agent", execution_path=("agent",),
                          metadata={"duration_ms": 12.5, "success": True}),
        ]
        with JsonlFileSink(path) as sink:
            for event in written:
                sink.accept(event)
        assert [e.to_dict() for e in load_trace(path)] == [e.to_dict() for e in written]

    def test_read_events_is_lazy(self, tmp_path):
        path = tmp_path / "trace.jsonl"
        path.write_text(_record() + "\ngarbage\n", encoding="utf-8")
        stream = read_events(path, strict=True)
        assert next(stream).run_id == "m1"
        with pytest.raises(TraceFormatError):
            next(stream)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_trace(tmp_path / "absent.jsonl")

    @given(events=st.lists(captured_events, max_size=10))
    @settings(max_examples=40, deadline=None)
    def test_jsonl_lines_parse_back(self, events):
        lines = [e.to_json() for e in events]
        parsed = list(iter_events(lines, strict=True))
        assert [p.to_dict() for p in parsed] == [e.to_dict() for e in events]
