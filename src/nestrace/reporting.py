"""Read-side aggregation over captured events.

Everything here is a pure function of an event sequence (plus, where a
live tracer is available, its token accumulator). Nothing mutates, so
reports can be built mid-execution for progress or after a failure for
a postmortem.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from nestrace.models.events import CapturedEvent, EventKind
from nestrace.protocols import TokenUsage


@dataclass(frozen=True)
class ToolAssociation:
    """One requested tool call and the nodes it is attributed to."""

    tool_name: str
    current_node: str
    master_node: str | None = None
    subgraph_node: str | None = None
    tool_call_id: str | None = None
    execution_path: tuple[str, ...] = ()

    @classmethod
    def from_event(cls, event: CapturedEvent) -> ToolAssociation:
        meta = event.metadata
        return cls(
            tool_name=str(meta.get("tool_name") or event.node_name),
            current_node=str(meta.get("current_node") or "unknown"),
            master_node=meta.get("master_node"),
            subgraph_node=meta.get("subgraph_node"),
            tool_call_id=meta.get("tool_call_id"),
            execution_path=tuple(meta.get("execution_path") or event.execution_path),
        )

    def __str__(self) -> str:
        return (
            f"{self.tool_name} -> {self.current_node} "
            f"({self.master_node or 'unknown'} -> {self.subgraph_node or 'direct'})"
        )


@dataclass(frozen=True)
class ToolParity:
    """Requested-versus-executed tool call consistency check.

    ``balanced`` compares counts. The id lists narrow down which side is
    off when the counts disagree; calls without a correlation id cannot
    be matched and are left out of them.
    """

    requested: int
    executed: int
    unmatched_requests: tuple[str, ...] = ()
    unmatched_executions: tuple[str, ...] = ()

    @property
    def balanced(self) -> bool:
        return self.requested == self.executed


@dataclass(frozen=True)
class ExecutionSummary:
    """High-level view of one orchestration invocation."""

    total_events: int
    events_by_phase: dict[str, int]
    events_by_kind: dict[str, int]
    usage: TokenUsage
    llm_calls: int
    tool_associations: tuple[ToolAssociation, ...]
    parity: ToolParity
    incomplete_runs: int = 0
    errors: tuple[str, ...] = ()
    tokens_by_model: dict[str, TokenUsage] = field(default_factory=dict)

    @property
    def average_tokens_per_call(self) -> float:
        return self.usage.total_tokens / self.llm_calls if self.llm_calls else 0.0

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def __str__(self) -> str:
        return format_summary(self)


def count_by_phase(events: Iterable[CapturedEvent]) -> dict[str, int]:
    """Event counts per phase, in first-seen order."""
    return dict(Counter(e.phase for e in events))


def count_by_kind(events: Iterable[CapturedEvent]) -> dict[str, int]:
    """Event counts per kind value, in first-seen order."""
    return dict(Counter(e.kind.value for e in events))


def events_by_phase(events: Iterable[CapturedEvent], phase: str) -> list[CapturedEvent]:
    return [e for e in events if e.phase == phase]


def tool_call_events(events: Iterable[CapturedEvent]) -> list[CapturedEvent]:
    """``tool:requested`` events, with their full attribution metadata."""
    return [e for e in events if e.kind is EventKind.TOOL_REQUESTED]


def tool_execution_events(events: Iterable[CapturedEvent]) -> list[CapturedEvent]:
    return [e for e in events if e.kind is EventKind.TOOL_EXECUTED]


def error_events(events: Iterable[CapturedEvent]) -> list[CapturedEvent]:
    return [e for e in events if e.kind is EventKind.PHASE_ERROR]


def tool_parity(events: Iterable[CapturedEvent]) -> ToolParity:
    events = list(events)
    requested = tool_call_events(events)
    executed = tool_execution_events(events)
    requested_ids = [e.metadata.get("tool_call_id") for e in requested]
    executed_ids = [e.metadata.get("tool_call_id") for e in executed]
    requested_set = {i for i in requested_ids if i}
    executed_set = {i for i in executed_ids if i}
    return ToolParity(
        requested=len(requested),
        executed=len(executed),
        unmatched_requests=tuple(i for i in requested_ids if i and i not in executed_set),
        unmatched_executions=tuple(i for i in executed_ids if i and i not in requested_set),
    )


def _usage_from_events(events: Sequence[CapturedEvent]) -> tuple[TokenUsage, int, dict[str, TokenUsage]]:
    total = TokenUsage()
    by_model: dict[str, TokenUsage] = {}
    calls = 0
    for event in events:
        if event.kind is not EventKind.LLM_END:
            continue
        calls += 1
        meta = event.metadata
        usage = TokenUsage(
            input_tokens=int(meta.get("input_tokens") or 0),
            output_tokens=int(meta.get("output_tokens") or 0),
            total_tokens=int(meta.get("total_tokens") or 0),
        )
        total = total + usage
        model = meta.get("model_name")
        if model:
            by_model[model] = by_model.get(model, TokenUsage()) + usage
    return total, calls, by_model


def build_summary(
    events: Iterable[CapturedEvent],
    usage: TokenUsage | None = None,
    *,
    llm_calls: int | None = None,
    open_runs: int = 0,
    tokens_by_model: dict[str, TokenUsage] | None = None,
) -> ExecutionSummary:
    """Summarise an event sequence.

    Without ``usage`` (for example when reading a trace file back), token
    totals are recomputed from the ``llm:end`` events.
    """
    events = list(events)
    derived_usage, derived_calls, derived_by_model = _usage_from_events(events)
    errors = tuple(
        f"{e.node_name}: {e.metadata.get('error', e.message)}" for e in error_events(events)
    )
    return ExecutionSummary(
        total_events=len(events),
        events_by_phase=count_by_phase(events),
        events_by_kind=count_by_kind(events),
        usage=usage if usage is not None else derived_usage,
        llm_calls=llm_calls if llm_calls is not None else derived_calls,
        tool_associations=tuple(ToolAssociation.from_event(e) for e in tool_call_events(events)),
        parity=tool_parity(events),
        incomplete_runs=open_runs,
        errors=errors,
        tokens_by_model=tokens_by_model if tokens_by_model is not None else derived_by_model,
    )


def format_summary(summary: ExecutionSummary) -> str:
    """Plain-text rendering of an ExecutionSummary."""
    parity = summary.parity
    lines: list[str] = [
        "=== Execution Summary ===",
        f"Total Events: {summary.total_events}",
        f"Tool Calls: {parity.requested} requested, {parity.executed} executed"
        f" ({'balanced' if parity.balanced else 'UNBALANCED'})",
        f"Token Usage: {summary.usage.input_tokens} input, "
        f"{summary.usage.output_tokens} output, {summary.usage.total_tokens} total",
        f"Model Calls: {summary.llm_calls} "
        f"(avg {summary.average_tokens_per_call:.1f} tokens/call)",
    ]
    if summary.incomplete_runs:
        lines.append(f"Incomplete Runs: {summary.incomplete_runs}")

    lines.append("")
    lines.append("Phase Breakdown:")
    for phase, count in summary.events_by_phase.items():
        lines.append(f"  {phase}: {count} events")

    if summary.tokens_by_model:
        lines.append("")
        lines.append("Tokens By Model:")
        for model, usage in summary.tokens_by_model.items():
            lines.append(f"  {model}: {usage.total_tokens}")

    lines.append("")
    lines.append("Tool Call Associations:")
    for assoc in summary.tool_associations:
        lines.append(f"  {assoc}")
    if parity.unmatched_requests:
        lines.append(f"  never executed: {', '.join(parity.unmatched_requests)}")
    if parity.unmatched_executions:
        lines.append(f"  never requested: {', '.join(parity.unmatched_executions)}")

    if summary.errors:
        lines.append("")
        lines.append("Errors:")
        for error in summary.errors:
            lines.append(f"  {error}")
    return "\n".join(lines)


@dataclass
class RunNode:
    """One run reconstructed from a trace file, with its events attached."""

    run_id: str
    name: str
    events: list[CapturedEvent] = field(default_factory=list)
    children: list[RunNode] = field(default_factory=list)
    parent_run_id: str | None = None

    @property
    def execution_path(self) -> tuple[str, ...]:
        return self.events[0].execution_path if self.events else ()

    @property
    def is_semantic(self) -> bool:
        path = self.execution_path
        return bool(path) and path[-1] == self.name


def build_run_tree(events: Iterable[CapturedEvent]) -> list[RunNode]:
    """Rebuild the run hierarchy from a flat event sequence.

    Runs are linked by ``parent_run_id`` when the parent appears in the
    trace. Plumbing runs emit no events, so a run whose recorded parent is
    absent is hung under the latest semantic run whose execution path
    encloses it; failing that, it becomes a root.
    """
    nodes: dict[str, RunNode] = {}
    for event in events:
        node = nodes.get(event.run_id)
        if node is None:
            node = RunNode(
                run_id=event.run_id,
                name=event.node_name,
                parent_run_id=event.parent_run_id,
            )
            nodes[event.run_id] = node
        node.events.append(event)

    ordered = list(nodes.values())
    roots: list[RunNode] = []
    for index, node in enumerate(ordered):
        parent = nodes.get(node.parent_run_id) if node.parent_run_id else None
        if parent is None or parent is node:
            path = node.execution_path
            enclosing = path[:-1] if node.is_semantic else path
            parent = None
            if enclosing:
                for candidate in reversed(ordered[:index]):
                    if candidate.is_semantic and candidate.execution_path == enclosing:
                        parent = candidate
                        break
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots
