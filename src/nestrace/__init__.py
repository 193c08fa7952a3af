"""nestrace: hierarchical run tracing and tool-call attribution.

An orchestration engine runs nested graph nodes, model calls and tool
calls. nestrace observes those runs, works out which business-level node
each one belongs to, and records enriched events for live display,
durable storage and post-hoc reporting.
"""

from nestrace._version import __version__

# Core entry point
from nestrace.tracer import NestedTracer

# Runs and events
from nestrace.models.run import Run, RunKind
from nestrace.models.events import CapturedEvent, EventKind

# Configuration
from nestrace.models.config import ClassifierConfig, PhaseRule, TracerConfig

# Building blocks
from nestrace.store import RunStore
from nestrace.hierarchy import UNKNOWN_NODE, HierarchyResolver, NodeClassifier
from nestrace.emitter import EventEmitter
from nestrace.accumulator import ModelUsage, NodeMetrics, TokenUsageAccumulator

# Protocols and output types
from nestrace.protocols import (
    EventSink,
    TokenUsage,
    TokenUsageExtractor,
    ToolCall,
    ToolCallExtractor,
)

# Extraction
from nestrace.extraction import (
    StrategyToolCallExtractor,
    StrategyUsageExtractor,
    extract_model_name,
)

# Sinks
from nestrace.sinks import (
    CallbackSink,
    ConsoleSink,
    HttpEventSink,
    JsonlFileSink,
    MemorySink,
    SqlEventSink,
)

# Reporting and reading traces back
from nestrace.reporting import (
    ExecutionSummary,
    ToolAssociation,
    ToolParity,
    build_run_tree,
    build_summary,
    format_summary,
    tool_parity,
)
from nestrace.reader import load_trace, read_events

# Exceptions
from nestrace.exceptions import (
    ConfigError,
    NestraceError,
    SinkClosedError,
    SinkError,
    TraceFormatError,
)

__all__ = [
    "__version__",
    "NestedTracer",
    # Runs and events
    "Run",
    "RunKind",
    "CapturedEvent",
    "EventKind",
    # Configuration
    "ClassifierConfig",
    "PhaseRule",
    "TracerConfig",
    # Building blocks
    "RunStore",
    "UNKNOWN_NODE",
    "HierarchyResolver",
    "NodeClassifier",
    "EventEmitter",
    "ModelUsage",
    "NodeMetrics",
    "TokenUsageAccumulator",
    # Protocols and output types
    "EventSink",
    "TokenUsage",
    "TokenUsageExtractor",
    "ToolCall",
    "ToolCallExtractor",
    # Extraction
    "StrategyToolCallExtractor",
    "StrategyUsageExtractor",
    "extract_model_name",
    # Sinks
    "CallbackSink",
    "ConsoleSink",
    "HttpEventSink",
    "JsonlFileSink",
    "MemorySink",
    "SqlEventSink",
    # Reporting
    "ExecutionSummary",
    "ToolAssociation",
    "ToolParity",
    "build_run_tree",
    "build_summary",
    "format_summary",
    "tool_parity",
    "load_trace",
    "read_events",
    # Exceptions
    "ConfigError",
    "NestraceError",
    "SinkClosedError",
    "SinkError",
    "TraceFormatError",
]
