"""Tests for summaries, tool parity and run-tree reconstruction."""

from nestrace.models.events import CapturedEvent, EventKind
from nestrace.protocols import TokenUsage
from nestrace.reporting import (
    ToolAssociation,
    build_run_tree,
    build_summary,
    count_by_kind,
    count_by_phase,
    error_events,
    format_summary,
    tool_parity,
)


def _ev(kind, run_id, name, path=(), *, phase="research", parent=None, **metadata):
    return CapturedEvent(
        kind=kind,
        phase=phase,
        message=f"{kind.value} {name}",
        run_id=run_id,
        node_name=name,
        parent_run_id=parent,
        execution_path=tuple(path),
        level=max(len(path) - 1, 0),
        metadata=metadata,
    )


def _trace():
    """coordinator > researcher with one model call and one tool round trip."""
    path = ("coordinator", "researcher")
    return [
        _ev(EventKind.PHASE_START, "c", "coordinator", ("coordinator",), phase="plan", parent="graph"),
        _ev(EventKind.PHASE_START, "r", "researcher", path, parent="c"),
        _ev(EventKind.LLM_END, "m", "ChatOpenAI", path, parent="r",
            model_name="gpt-4o", input_tokens=10, output_tokens=5, total_tokens=15),
        _ev(EventKind.TOOL_REQUESTED, "m", "ChatOpenAI", path, parent="r",
            tool_name="search", current_node="researcher", master_node="coordinator",
            subgraph_node="researcher", tool_call_id="call_1", execution_path=list(path)),
        _ev(EventKind.TOOL_EXECUTED, "t", "search", path, parent="router",
            tool_name="search", tool_call_id="call_1", success=True, duration_ms=3.0),
        _ev(EventKind.LLM_END, "m2", "ChatOpenAI", path, parent="r",
            model_name="gpt-4o", input_tokens=7, output_tokens=3, total_tokens=10),
        _ev(EventKind.PHASE_END, "r", "researcher", path, parent="c"),
        _ev(EventKind.PHASE_END, "c", "coordinator", ("coordinator",), phase="plan", parent="graph"),
    ]


class TestCounts:
    def test_count_by_phase(self):
        assert count_by_phase(_trace()) == {"plan": 2, "research": 6}

    def test_count_by_kind(self):
        counts = count_by_kind(_trace())
        assert counts["phase:start"] == 2
        assert counts["llm:end"] == 2
        assert counts["tool:requested"] == 1


class TestToolParity:
    def test_balanced(self):
        parity = tool_parity(_trace())
        assert parity.balanced
        assert (parity.requested, parity.executed) == (1, 1)

    def test_unmatched_ids(self):
        events = _trace() + [
            _ev(EventKind.TOOL_REQUESTED, "m3", "ChatOpenAI", tool_name="fetch", tool_call_id="call_2"),
            _ev(EventKind.TOOL_EXECUTED, "t2", "calc", tool_name="calc", tool_call_id="call_x"),
        ]
        parity = tool_parity(events)
        assert parity.balanced
        assert parity.unmatched_requests == ("call_2",)
        assert parity.unmatched_executions == ("call_x",)

    def test_calls_without_ids_only_counted(self):
        events = [_ev(EventKind.TOOL_REQUESTED, "m", "ChatOpenAI", tool_name="a")]
        parity = tool_parity(events)
        assert not parity.balanced
        assert parity.unmatched_requests == ()


class TestToolAssociation:
    def test_from_event(self):
        event = _trace()[3]
        assoc = ToolAssociation.from_event(event)
        assert assoc.tool_name == "search"
        assert assoc.execution_path == ("coordinator", "researcher")
        assert str(assoc) == "search -> researcher (coordinator -> researcher)"

    def test_direct_call(self):
        event = _ev(EventKind.TOOL_REQUESTED, "m", "ChatOpenAI", ("agent",),
                    tool_name="calc", current_node="agent", master_node="agent")
        assert str(ToolAssociation.from_event(event)) == "calc -> agent (agent -> direct)"


class TestBuildSummary:
    def test_usage_derived_from_events(self):
        summary = build_summary(_trace())
        assert summary.total_events == 8
        assert summary.usage == TokenUsage(17, 8, 25)
        assert summary.llm_calls == 2
        assert summary.tokens_by_model == {"gpt-4o": TokenUsage(17, 8, 25)}
        assert summary.average_tokens_per_call == 12.5
        assert not summary.failed

    def test_explicit_usage_wins(self):
        summary = build_summary(_trace(), TokenUsage(1, 1, 2), llm_calls=1, open_runs=3)
        assert summary.usage == TokenUsage(1, 1, 2)
        assert summary.llm_calls == 1
        assert summary.incomplete_runs == 3

    def test_errors_collected(self):
        events = _trace() + [
            _ev(EventKind.PHASE_ERROR, "r", "researcher", ("coordinator", "researcher"), error="boom"),
        ]
        summary = build_summary(events)
        assert summary.failed
        assert summary.errors == ("researcher: boom",)
        assert error_events(events) == [events[-1]]

    def test_empty(self):
        summary = build_summary([])
        assert summary.total_events == 0
        assert summary.average_tokens_per_call == 0.0
        assert summary.parity.balanced


class TestFormatSummary:
    def test_sections(self):
        text = format_summary(build_summary(_trace(), open_runs=1))
        lines = text.splitlines()
        assert lines[0] == "=== Execution Summary ==="
        assert "Total Events: 8" in lines
        assert "Tool Calls: 1 requested, 1 executed (balanced)" in lines
        assert "Token Usage: 17 input, 8 output, 25 total" in lines
        assert "Model Calls: 2 (avg 12.5 tokens/call)" in lines
        assert "Incomplete Runs: 1" in lines
        assert "  research: 6 events" in lines
        assert "  gpt-4o: 25" in lines
        assert "  search -> researcher (coordinator -> researcher)" in lines
        assert "Errors:" not in lines

    def test_unbalanced_and_errors(self):
        events = [
            _ev(EventKind.TOOL_REQUESTED, "m", "ChatOpenAI", tool_name="a", tool_call_id="call_a"),
            _ev(EventKind.PHASE_ERROR, "n", "agent", ("agent",), error="bad"),
        ]
        text = str(build_summary(events))
        assert "(UNBALANCED)" in text
        assert "  never executed: call_a" in text
        assert "Errors:" in text
        assert "  agent: bad" in text


class TestBuildRunTree:
    def test_links_semantic_runs_and_hangs_leaves(self):
        roots = build_run_tree(_trace())
        assert [r.name for r in roots] == ["coordinator"]
        (researcher,) = roots[0].children
        assert researcher.name == "researcher"
        assert researcher.is_semantic
        assert [c.run_id for c in researcher.children] == ["m", "t", "m2"]
        assert len(researcher.events) == 2

    def test_unrelated_runs_become_roots(self):
        events = [
            _ev(EventKind.PHASE_START, "a", "alpha", ("alpha",)),
            _ev(EventKind.PHASE_START, "b", "beta", ("beta",)),
            _ev(EventKind.CUSTOM, "ghost", "unknown"),
        ]
        assert [r.name for r in build_run_tree(events)] == ["alpha", "beta", "unknown"]

    def test_sibling_subgraphs(self):
        events = [
            _ev(EventKind.PHASE_START, "root", "fanout_root", ("fanout_root",)),
            _ev(EventKind.PHASE_START, "a", "branch_a", ("fanout_root", "branch_a"), parent="root"),
            _ev(EventKind.PHASE_START, "b", "branch_b", ("fanout_root", "branch_b"), parent="root"),
            _ev(EventKind.TOOL_EXECUTED, "ta", "search", ("fanout_root", "branch_a"), parent="tools_a"),
            _ev(EventKind.TOOL_EXECUTED, "tb", "search", ("fanout_root", "branch_b"), parent="tools_b"),
        ]
        (root,) = build_run_tree(events)
        branches = {c.name: c for c in root.children}
        assert [c.run_id for c in branches["branch_a"].children] == ["ta"]
        assert [c.run_id for c in branches["branch_b"].children] == ["tb"]

    def test_empty(self):
        assert build_run_tree([]) == []
