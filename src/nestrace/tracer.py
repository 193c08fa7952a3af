"""NestedTracer: the host-facing facade.

The host orchestration engine calls :meth:`NestedTracer.on_run_start`,
:meth:`~NestedTracer.on_run_end`, :meth:`~NestedTracer.on_run_error` and
:meth:`~NestedTracer.on_custom_event`, possibly from several threads at
once. The tracer records each run, resolves where it sits in the
business hierarchy, and emits enriched events to its sinks. It never
raises out of a callback: internal failures are logged and absorbed.

One tracer instance covers one orchestration invocation. It owns its run
store, event log and token counters; construct a fresh tracer for the
next invocation.

Usage::

    with NestedTracer(config, sinks=[ConsoleSink(), JsonlFileSink("trace.jsonl")]) as tracer:
        engine.run(callbacks=tracer)
        print(tracer.get_execution_summary())
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Iterable, TypeVar

from nestrace.accumulator import NodeMetrics, NodeMetricsTracker, TokenUsageAccumulator
from nestrace.emitter import EventEmitter
from nestrace.extraction.model_name import DEFAULT_MODEL_NAME_STRATEGIES, extract_model_name
from nestrace.extraction.tool_calls import (
    StrategyToolCallExtractor,
    extract_tool_call_id,
    extract_tool_output,
)
from nestrace.extraction.usage import StrategyUsageExtractor
from nestrace.hierarchy import HierarchyResolver, NodeClassifier
from nestrace.models.config import TracerConfig
from nestrace.models.events import CapturedEvent, EventKind
from nestrace.models.run import Run, RunKind
from nestrace.protocols import TokenUsage
from nestrace.reporting import (
    ExecutionSummary,
    ToolParity,
    build_summary,
    events_by_phase,
    tool_call_events,
    tool_parity,
)
from nestrace.store import RunStore

if TYPE_CHECKING:
    from nestrace.extraction.model_name import ModelNameStrategy
    from nestrace.protocols import EventSink, TokenUsageExtractor, ToolCallExtractor

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_CHAIN_KINDS = frozenset({RunKind.CHAIN, RunKind.OTHER})


def _absorb_errors(method: F) -> F:
    """Log and swallow any exception raised while handling a host callback."""

    @functools.wraps(method)
    def wrapper(self: NestedTracer, *args: Any, **kwargs: Any) -> None:
        try:
            method(self, *args, **kwargs)
        except Exception:
            logger.exception("%s: bookkeeping failed in %s", self.name, method.__name__)

    return wrapper  # type: ignore[return-value]


def _describe_error(error: Any) -> tuple[str, str | None]:
    """String form and, for exceptions, type name of a host error payload."""
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__, type(error).__name__
    return str(error), None


def _truncate(text: str, limit: int | None) -> str:
    if limit is None or len(text) <= limit:
        return text
    return text[:limit] + f"... [{len(text) - limit} chars truncated]"


class NestedTracer:
    """Hierarchical run tracer with tool-call attribution.

    Args:
        config: Tracer configuration. Defaults to ``TracerConfig()``.
        sinks: Event sinks, called in order for every event.
        tool_call_extractor: Finds requested tool calls in model outputs.
        usage_extractor: Finds token usage in model outputs.
        model_name_strategies: Ordered lookups for a model run's name.
    """

    def __init__(
        self,
        config: TracerConfig | None = None,
        *,
        sinks: Iterable[EventSink] = (),
        tool_call_extractor: ToolCallExtractor | None = None,
        usage_extractor: TokenUsageExtractor | None = None,
        model_name_strategies: tuple[ModelNameStrategy, ...] = DEFAULT_MODEL_NAME_STRATEGIES,
    ) -> None:
        self._config = config or TracerConfig()
        self._store = RunStore()
        self._resolver = HierarchyResolver(self._store, NodeClassifier(self._config.classifier))
        self._emitter = EventEmitter(self._resolver, sinks)
        self._tool_calls = tool_call_extractor or StrategyToolCallExtractor()
        self._usage_extractor = usage_extractor or StrategyUsageExtractor()
        self._model_name_strategies = model_name_strategies
        self._usage = TokenUsageAccumulator()
        self._nodes = NodeMetricsTracker()
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> TracerConfig:
        return self._config

    @property
    def store(self) -> RunStore:
        return self._store

    @property
    def resolver(self) -> HierarchyResolver:
        return self._resolver

    @property
    def emitter(self) -> EventEmitter:
        return self._emitter

    def add_sink(self, sink: EventSink) -> None:
        self._emitter.add_sink(sink)

    # ------------------------------------------------------------------
    # Host callbacks
    # ------------------------------------------------------------------

    @_absorb_errors
    def on_run_start(self, run: Run) -> None:
        """Record a started run; semantic chain runs emit ``phase:start``."""
        if not self._store.add(run):
            return
        if run.kind not in _CHAIN_KINDS:
            return
        semantic = self._resolver.is_semantic(run)
        if semantic:
            self._nodes.start(run.run_id, run.name, run.start_time)
        elif not self._config.emit_plumbing:
            return
        rule = self._config.phase_rules.get(run.name) if semantic else None
        self._emitter.emit(
            EventKind.PHASE_START,
            run,
            phase=self._phase_of(run),
            message=(rule.message if rule and rule.message else f"Starting {run.name}"),
            metadata={"level": self._resolver.nesting_level(run), "semantic": semantic},
        )

    @_absorb_errors
    def on_run_end(
        self,
        run_id: Any,
        *,
        outputs: Any = None,
        end_time: datetime | None = None,
    ) -> None:
        """Seal a run as completed and emit the matching events."""
        run = self._store.complete(str(run_id), outputs=outputs, end_time=end_time)
        if run is None:
            return
        if run.kind is RunKind.MODEL:
            self._handle_model_end(run)
        elif run.kind is RunKind.TOOL:
            self._emit_tool_executed(run, success=True)
        elif run.kind in _CHAIN_KINDS:
            self._handle_chain_end(run)

    @_absorb_errors
    def on_run_error(
        self,
        run_id: Any,
        *,
        error: Any,
        end_time: datetime | None = None,
        outputs: Any = None,
    ) -> None:
        """Seal a run as failed and emit ``phase:error`` with its breadcrumb.

        The host error itself is only recorded; it is never re-raised or
        altered here.
        """
        run = self._store.fail(str(run_id), error=error, outputs=outputs, end_time=end_time)
        if run is None:
            return
        semantic = self._resolver.is_semantic(run)
        if semantic:
            self._nodes.finish(run.run_id, run.duration_ms)
        if run.kind is RunKind.TOOL:
            self._emit_tool_executed(run, success=False)
        elif run.kind in _CHAIN_KINDS and not semantic and not self._config.emit_plumbing:
            logger.debug("Plumbing run %s (%s) failed", run.run_id, run.name)
            return
        error_text, error_type = _describe_error(error)
        metadata: dict[str, Any] = {
            "error": error_text,
            "level": self._resolver.nesting_level(run),
            "current_node": self._resolver.nearest_semantic_ancestor_name(run),
            "breadcrumbs": self._resolver.breadcrumbs(run),
            "duration_ms": run.duration_ms,
            "error_payload": error,
        }
        if error_type is not None:
            metadata["error_type"] = error_type
        self._emitter.emit(
            EventKind.PHASE_ERROR,
            run,
            phase=self._error_phase_of(run),
            message=f"Error in {run.name}: {error_text}",
            metadata=metadata,
        )

    @_absorb_errors
    def on_custom_event(self, name: str, data: Any, *, run_id: Any = None) -> None:
        """Record an application-defined event raised from inside a run."""
        run = self._store.get(run_id)
        if run is None:
            logger.debug("Custom event %r for unrecorded run %s", name, run_id)
        metadata: dict[str, Any] = {"event_name": name, "data": data}
        if run is not None:
            metadata["current_node"] = self._resolver.nearest_semantic_ancestor_name(run)
        self._emitter.emit(
            EventKind.CUSTOM,
            run,
            phase=self._phase_of(run) if run is not None else self._config.default_phase,
            message=f"Custom event: {name}",
            metadata=metadata,
            run_id=run_id,
        )

    # ------------------------------------------------------------------
    # Per-kind handling
    # ------------------------------------------------------------------

    def _handle_chain_end(self, run: Run) -> None:
        semantic = self._resolver.is_semantic(run)
        if semantic:
            self._nodes.finish(run.run_id, run.duration_ms)
        elif not self._config.emit_plumbing:
            return
        self._emitter.emit(
            EventKind.PHASE_END,
            run,
            phase=self._phase_of(run),
            message=f"{run.name} complete",
            metadata={
                "duration_ms": run.duration_ms,
                "level": self._resolver.nesting_level(run),
                "success": True,
            },
        )

    def _handle_model_end(self, run: Run) -> None:
        model_name = extract_model_name(run, self._model_name_strategies)
        owner = self._resolver.nearest_semantic_ancestor(run)
        current_node = owner.name if owner is not None else "unknown"
        phase = self._phase_of(run)

        usage = self._usage_extractor.extract(run.outputs)
        running = self._usage.add(usage or TokenUsage(), model_name)
        if usage is not None and owner is not None:
            self._nodes.add_usage(owner.run_id, usage, model_name)

        calls = self._tool_calls.extract(run.outputs)
        if calls and owner is not None:
            self._nodes.add_tool_calls(owner.run_id, len(calls))

        call_usage = usage or TokenUsage()
        self._emitter.emit(
            EventKind.LLM_END,
            run,
            phase=phase,
            message="LLM call completed",
            metadata={
                "model_name": model_name,
                "input_tokens": call_usage.input_tokens,
                "output_tokens": call_usage.output_tokens,
                "total_tokens": call_usage.total_tokens,
                "has_usage": usage is not None,
                "cumulative_input_tokens": running.input_tokens,
                "cumulative_output_tokens": running.output_tokens,
                "cumulative_total_tokens": running.total_tokens,
                "current_node": current_node,
                "tool_call_count": len(calls),
                "duration_ms": run.duration_ms,
                "level": self._resolver.nesting_level(run),
            },
        )

        if not calls:
            return
        path = self._resolver.execution_path(run)
        parent_node = self._resolver.parent_node_name(run)
        master = path[0] if path else None
        subgraph = path[1] if len(path) > 1 else None
        level = max(len(path) - 1, 0)
        for call in calls:
            self._emitter.emit(
                EventKind.TOOL_REQUESTED,
                run,
                phase=phase,
                message=f"Tool call: {call.name}",
                metadata={
                    "current_node": current_node,
                    "parent_node": parent_node,
                    "master_node": master,
                    "subgraph_node": subgraph,
                    "execution_path": list(path),
                    "level": level,
                    "tool_name": call.name,
                    "tool_args": call.arguments,
                    "tool_call_id": call.id,
                    "model_name": model_name,
                },
            )

    def _emit_tool_executed(self, run: Run, *, success: bool) -> None:
        metadata: dict[str, Any] = {
            "tool_name": run.name,
            "tool_call_id": extract_tool_call_id(run),
            "duration_ms": run.duration_ms,
            "success": success,
            "current_node": self._resolver.nearest_semantic_ancestor_name(run),
        }
        if success and self._config.capture_outputs:
            output = extract_tool_output(run.outputs)
            metadata["output"] = _truncate(
                output if isinstance(output, str) else str(output),
                self._config.max_output_chars,
            )
        if not success:
            metadata["error"] = _describe_error(run.error)[0]
        self._emitter.emit(
            EventKind.TOOL_EXECUTED,
            run,
            phase=self._phase_of(run),
            message=f"Tool executed: {run.name}" if success else f"Tool failed: {run.name}",
            metadata=metadata,
        )

    def _phase_of(self, run: Run) -> str:
        return self._config.phase_for(self._resolver.nearest_semantic_ancestor_name(run))

    def _error_phase_of(self, run: Run) -> str:
        rule = self._config.phase_rules.get(self._resolver.nearest_semantic_ancestor_name(run))
        return rule.phase if rule is not None else self._config.error_phase

    # ------------------------------------------------------------------
    # Reporting accessors
    # ------------------------------------------------------------------

    def get_captured_events(self) -> list[CapturedEvent]:
        return self._emitter.events

    def get_events_by_phase(self, phase: str) -> list[CapturedEvent]:
        return events_by_phase(self._emitter.events, phase)

    def get_tool_call_events(self) -> list[CapturedEvent]:
        return tool_call_events(self._emitter.events)

    def get_token_usage(self) -> TokenUsage:
        return self._usage.usage

    def get_tokens_by_model(self) -> dict[str, TokenUsage]:
        return {name: m.usage for name, m in self._usage.by_model().items()}

    def get_node_metrics(self) -> list[NodeMetrics]:
        return self._nodes.snapshot()

    def get_tool_parity(self) -> ToolParity:
        return tool_parity(self._emitter.events)

    def get_open_runs(self) -> list[Run]:
        return self._store.open_runs()

    def get_execution_summary(self) -> ExecutionSummary:
        """Summary of everything traced so far; ``str()`` it for plain text."""
        return build_summary(
            self._emitter.events,
            self._usage.usage,
            llm_calls=self._usage.calls,
            open_runs=len(self._store.open_runs()),
            tokens_by_model=self.get_tokens_by_model(),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close every sink. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        open_runs = self._store.open_runs()
        if open_runs:
            logger.warning(
                "%s closing with %d incomplete run(s): %s",
                self.name, len(open_runs), ", ".join(r.name for r in open_runs[:5]),
            )
        self._emitter.close()

    def __enter__(self) -> NestedTracer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
