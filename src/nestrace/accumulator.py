"""Token usage accumulation and per-node metrics.

Counters are mutated additively from host callbacks that may run on
several threads at once, so every mutation happens under a lock. Readers
get immutable snapshots.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime

from nestrace.protocols import TokenUsage


@dataclass(frozen=True)
class ModelUsage:
    """Aggregated usage for one model identifier."""

    model_name: str
    usage: TokenUsage
    calls: int

    @property
    def average_tokens_per_call(self) -> float:
        return self.usage.total_tokens / self.calls if self.calls else 0.0


class TokenUsageAccumulator:
    """Process-wide token counters for one tracer instance.

    There is no reset: construct a new tracer (and with it a new
    accumulator) for each orchestration invocation.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = TokenUsage()
        self._calls = 0
        self._by_model: dict[str, tuple[TokenUsage, int]] = {}

    def add(self, usage: TokenUsage, model_name: str | None = None) -> TokenUsage:
        """Add one model call's usage. Returns the new running total."""
        with self._lock:
            self._total = self._total + usage
            self._calls += 1
            if model_name:
                prior, calls = self._by_model.get(model_name, (TokenUsage(), 0))
                self._by_model[model_name] = (prior + usage, calls + 1)
            return self._total

    @property
    def usage(self) -> TokenUsage:
        return self._total

    @property
    def calls(self) -> int:
        return self._calls

    @property
    def average_tokens_per_call(self) -> float:
        with self._lock:
            return self._total.total_tokens / self._calls if self._calls else 0.0

    def by_model(self) -> dict[str, ModelUsage]:
        with self._lock:
            return {
                name: ModelUsage(model_name=name, usage=usage, calls=calls)
                for name, (usage, calls) in self._by_model.items()
            }


@dataclass(frozen=True)
class NodeMetrics:
    """Snapshot of what one semantic node run consumed.

    Attributes:
        name: Node name.
        run_id: The node's run identity.
        start_time: When the node started.
        duration_ms: Elapsed time; None while the node is still running.
        usage: Tokens of model calls attributed to this node.
        llm_calls: Number of model calls attributed to this node.
        tokens_by_model: Per-model usage inside this node.
        tool_calls: Number of tool calls requested from inside this node.
    """

    name: str
    run_id: str
    start_time: datetime
    duration_ms: float | None = None
    usage: TokenUsage = TokenUsage()
    llm_calls: int = 0
    tokens_by_model: dict[str, TokenUsage] = field(default_factory=dict)
    tool_calls: int = 0


@dataclass
class _NodeStats:
    name: str
    run_id: str
    start_time: datetime
    duration_ms: float | None = None
    usage: TokenUsage = TokenUsage()
    llm_calls: int = 0
    tokens_by_model: dict[str, TokenUsage] = field(default_factory=dict)
    tool_calls: int = 0


class NodeMetricsTracker:
    """Per-node timing, token and tool-call attribution."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._nodes: dict[str, _NodeStats] = {}

    def start(self, run_id: str, name: str, start_time: datetime) -> None:
        with self._lock:
            self._nodes.setdefault(run_id, _NodeStats(name=name, run_id=run_id, start_time=start_time))

    def finish(self, run_id: str, duration_ms: float | None) -> None:
        with self._lock:
            stats = self._nodes.get(run_id)
            if stats is not None:
                stats.duration_ms = duration_ms

    def tracks(self, run_id: str) -> bool:
        return run_id in self._nodes

    def add_usage(self, run_id: str, usage: TokenUsage, model_name: str | None) -> bool:
        """Attribute one model call to a node. False if the node is untracked."""
        with self._lock:
            stats = self._nodes.get(run_id)
            if stats is None:
                return False
            stats.usage = stats.usage + usage
            stats.llm_calls += 1
            if model_name:
                stats.tokens_by_model[model_name] = (
                    stats.tokens_by_model.get(model_name, TokenUsage()) + usage
                )
            return True

    def add_tool_calls(self, run_id: str, count: int) -> None:
        with self._lock:
            stats = self._nodes.get(run_id)
            if stats is not None:
                stats.tool_calls += count

    def snapshot(self) -> list[NodeMetrics]:
        with self._lock:
            return [
                NodeMetrics(
                    name=s.name,
                    run_id=s.run_id,
                    start_time=s.start_time,
                    duration_ms=s.duration_ms,
                    usage=s.usage,
                    llm_calls=s.llm_calls,
                    tokens_by_model=dict(s.tokens_by_model),
                    tool_calls=s.tool_calls,
                )
                for s in self._nodes.values()
            ]
