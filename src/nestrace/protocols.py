"""Protocol definitions for nestrace.

Defines pluggable interfaces (EventSink, TokenUsageExtractor,
ToolCallExtractor) and frozen dataclasses for structured extraction
output (ToolCall, TokenUsage).

No SQLAlchemy, rich or httpx imports allowed in this module -- pure
domain protocols.
"""

from __future__ import annotations

import json as _json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Protocol, TypedDict, runtime_checkable

if TYPE_CHECKING:
    from nestrace.models.events import CapturedEvent


class ToolCallDict(TypedDict):
    """Canonical storage format for a single tool call."""

    id: str | None
    name: str
    arguments: dict
    type: str


@dataclass(frozen=True)
class ToolCall:
    """A tool/function invocation requested by a model.

    Provider-agnostic canonical representation. Arguments are always
    a parsed dict -- OpenAI's JSON string is parsed at ingestion time.
    """

    name: str
    arguments: dict
    id: str | None = None
    type: str = "function"

    @classmethod
    def from_langchain(cls, tc: Mapping[str, Any]) -> ToolCall:
        """Parse from a LangChain ``ToolCall`` dict (``name``/``args``/``id``)."""
        args = tc.get("args")
        if args is None:
            args = tc.get("arguments", {})
        return cls(
            name=str(tc["name"]),
            arguments=_parse_arguments(args),
            id=tc.get("id"),
            type=tc.get("type") or "function",
        )

    @classmethod
    def from_openai(cls, tc: Mapping[str, Any]) -> ToolCall:
        """Parse from OpenAI/compatible format.

        OpenAI sends arguments as a JSON string; this parses it to a dict.
        """
        function = tc["function"]
        return cls(
            name=str(function["name"]),
            arguments=_parse_arguments(function.get("arguments")),
            id=tc.get("id"),
            type=tc.get("type") or "function",
        )

    @classmethod
    def from_anthropic(cls, block: Mapping[str, Any]) -> ToolCall:
        """Parse from an Anthropic ``tool_use`` content block."""
        return cls(
            name=str(block["name"]),
            arguments=_parse_arguments(block.get("input", {})),
            id=block.get("id"),
        )

    def to_dict(self) -> ToolCallDict:
        return {
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
            "type": self.type,
        }


def _parse_arguments(raw: Any) -> dict:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            parsed = _json.loads(raw)
        except (_json.JSONDecodeError, TypeError):
            return {"_raw": raw}
        return parsed if isinstance(parsed, dict) else {"_raw": parsed}
    return {"_raw": raw}


@dataclass(frozen=True)
class TokenUsage:
    """Token usage reported by one model invocation (or a running total)."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @property
    def is_empty(self) -> bool:
        return self.input_tokens == 0 and self.output_tokens == 0 and self.total_tokens == 0

    def to_dict(self) -> dict[str, int]:
        return {
            "input": self.input_tokens,
            "output": self.output_tokens,
            "total": self.total_tokens,
        }


@runtime_checkable
class EventSink(Protocol):
    """A consumer of emitted trace events.

    ``accept`` has side effects only: it never transforms or drops the
    event it is given. ``close`` releases any held resource and must be
    safe to call more than once.
    """

    def accept(self, event: CapturedEvent) -> None:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class TokenUsageExtractor(Protocol):
    """Extracts token usage from a completed model run's outputs."""

    def extract(self, outputs: Any) -> TokenUsage | None:
        """Return usage, or None if the payload format is not recognised."""
        ...


@runtime_checkable
class ToolCallExtractor(Protocol):
    """Extracts requested tool calls from a completed model run's outputs."""

    def extract(self, outputs: Any) -> list[ToolCall]:
        """Return requested tool calls; an empty list when there are none."""
        ...
