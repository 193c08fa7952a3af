"""Captured trace events and their newline-delimited record format."""

from __future__ import annotations

import enum
import json
import types
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping


class EventKind(str, enum.Enum):
    """Kinds of events the tracer emits."""

    PHASE_START = "phase:start"
    PHASE_END = "phase:end"
    PHASE_ERROR = "phase:error"
    LLM_END = "llm:end"
    TOOL_REQUESTED = "tool:requested"
    TOOL_EXECUTED = "tool:executed"
    CUSTOM = "custom:event"


def _jsonable(value: Any) -> Any:
    """Coerce a metadata value into something ``json.dumps`` accepts.

    Containers are walked; anything else that JSON cannot represent is
    replaced by its ``str()``.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return str(value)


@dataclass(frozen=True)
class CapturedEvent:
    """An enriched, immutable trace event.

    Attributes:
        kind: What happened (see :class:`EventKind`).
        phase: Business-phase classification.
        message: Human-readable description.
        metadata: Read-only bag of event-specific details.
        timestamp: When the event was emitted.
        run_id: The run the event was derived from.
        parent_run_id: That run's parent, if any.
        node_name: The source run's name.
        parent_node_name: Nearest semantic strict ancestor, if any.
        execution_path: Semantic names from root to the source run.
        level: Nesting level (``len(execution_path) - 1``, floor 0).
    """

    kind: EventKind
    phase: str
    message: str
    run_id: str
    node_name: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    parent_run_id: str | None = None
    parent_node_name: str | None = None
    execution_path: tuple[str, ...] = ()
    level: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.kind, EventKind):
            object.__setattr__(self, "kind", EventKind(self.kind))
        if not isinstance(self.metadata, types.MappingProxyType):
            object.__setattr__(self, "metadata", types.MappingProxyType(dict(self.metadata)))
        if not isinstance(self.execution_path, tuple):
            object.__setattr__(self, "execution_path", tuple(self.execution_path))

    @property
    def is_tool_request(self) -> bool:
        return self.kind is EventKind.TOOL_REQUESTED

    @property
    def is_tool_execution(self) -> bool:
        return self.kind is EventKind.TOOL_EXECUTED

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain JSON-compatible dict (one JSONL record)."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "phase": self.phase,
            "message": self.message,
            "run_id": self.run_id,
            "parent_run_id": self.parent_run_id,
            "node_name": self.node_name,
            "parent_node_name": self.parent_node_name,
            "execution_path": list(self.execution_path),
            "level": self.level,
            "metadata": _jsonable(dict(self.metadata)),
        }

    def to_json(self) -> str:
        """Serialize to a single-line JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> CapturedEvent:
        """Reconstruct an event from a stored record.

        Raises:
            KeyError: If ``kind`` or ``run_id`` is missing.
            ValueError: If ``kind`` or ``timestamp`` is not recognised.
        """
        raw_ts = d.get("timestamp")
        timestamp = (
            datetime.fromisoformat(raw_ts) if raw_ts else datetime.now(timezone.utc)
        )
        return cls(
            kind=EventKind(d["kind"]),
            phase=d.get("phase", ""),
            message=d.get("message", ""),
            run_id=d["run_id"],
            node_name=d.get("node_name", ""),
            metadata=d.get("metadata") or {},
            timestamp=timestamp,
            parent_run_id=d.get("parent_run_id"),
            parent_node_name=d.get("parent_node_name"),
            execution_path=tuple(d.get("execution_path") or ()),
            level=int(d.get("level", 0)),
        )

    def __str__(self) -> str:
        path = " > ".join(self.execution_path) or "?"
        return f"[{self.kind.value}] [{path}] {self.message}"
