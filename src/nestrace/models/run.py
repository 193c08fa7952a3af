"""Run records: one entry per task/node/model/tool execution."""

from __future__ import annotations

import enum
import types
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping


class RunKind(str, enum.Enum):
    """Categorical tag for what a run executes."""

    CHAIN = "chain"
    MODEL = "model"
    TOOL = "tool"
    RETRIEVER = "retriever"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: RunKind | str | None) -> RunKind:
        """Map host run-type strings onto a RunKind.

        Accepts the enum itself, its value, or the LangChain run types
        ``"llm"``, ``"chat_model"``, ``"embedding"`` and ``"prompt"``.
        Anything unrecognised becomes OTHER.
        """
        if isinstance(value, RunKind):
            return value
        if value is None:
            return cls.OTHER
        key = str(value).lower()
        if key in _HOST_ALIASES:
            return _HOST_ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            return cls.OTHER


_HOST_ALIASES: dict[str, RunKind] = {
    "llm": RunKind.MODEL,
    "chat_model": RunKind.MODEL,
    "embedding": RunKind.OTHER,
    "prompt": RunKind.OTHER,
    "parser": RunKind.OTHER,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a timestamp to aware UTC; naive values are taken as local time."""
    if value is None:
        return None
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Run:
    """A single task/node execution instance.

    Identity, parent and name are fixed at creation. Completion produces a
    new sealed copy (see :meth:`sealed`) which replaces the open record in
    the store.

    Attributes:
        run_id: Opaque unique identifier.
        name: Human-assigned label (graph node, model class, tool name).
        kind: What the run executes.
        parent_run_id: The run that caused this one to start, if any.
        start_time: When the run started.
        end_time: When the run finished; None while running.
        inputs: Provider-specific input payload.
        outputs: Provider-specific output payload; None until completion.
        error: Failure payload, if the run failed.
        extra: Host-supplied metadata (invocation params, model hints).
        tags: Host-supplied tags.
    """

    run_id: str
    name: str
    kind: RunKind = RunKind.CHAIN
    parent_run_id: str | None = None
    start_time: datetime = field(default_factory=utcnow)
    end_time: datetime | None = None
    inputs: Any = None
    outputs: Any = None
    error: Any = None
    extra: Mapping[str, Any] | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "run_id", str(self.run_id))
        if self.parent_run_id is not None:
            object.__setattr__(self, "parent_run_id", str(self.parent_run_id))
        object.__setattr__(self, "kind", RunKind.coerce(self.kind))
        object.__setattr__(self, "start_time", as_utc(self.start_time))
        object.__setattr__(self, "end_time", as_utc(self.end_time))
        if self.extra is not None and not isinstance(self.extra, types.MappingProxyType):
            object.__setattr__(self, "extra", types.MappingProxyType(dict(self.extra)))
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags or ()))

    @property
    def is_open(self) -> bool:
        """True while the run has not completed or failed."""
        return self.end_time is None

    @property
    def status(self) -> str:
        """One of ``"running"``, ``"error"``, ``"success"``."""
        if self.end_time is None:
            return "running"
        if self.error is not None:
            return "error"
        return "success"

    @property
    def duration_ms(self) -> float | None:
        """Elapsed milliseconds, or None while running."""
        if self.end_time is None:
            return None
        try:
            return (self.end_time - self.start_time).total_seconds() * 1000.0
        except TypeError:
            return None

    def sealed(
        self,
        *,
        end_time: datetime | None = None,
        outputs: Any = None,
        error: Any = None,
    ) -> Run:
        """Return a completed copy of this run."""
        return replace(
            self,
            end_time=end_time or utcnow(),
            outputs=outputs if outputs is not None else self.outputs,
            error=error,
        )
