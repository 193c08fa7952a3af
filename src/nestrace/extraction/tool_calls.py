"""Tool-call extraction strategies.

Each strategy is a pure function ``(outputs) -> list[ToolCall] | None``.
None means "this payload shape is not present"; an empty list means the
shape is present but the model requested nothing. Strategies are tried
in order and the first non-None result wins.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Sequence

from nestrace.extraction._paths import as_list, dig
from nestrace.protocols import ToolCall

logger = logging.getLogger(__name__)

ToolCallStrategy = Callable[[Any], "list[ToolCall] | None"]


def parse_tool_call(entry: Any) -> ToolCall | None:
    """Parse one tool-call entry in LangChain, OpenAI or Anthropic shape.

    Returns None (and logs at DEBUG) for entries that carry no name.
    """
    if not isinstance(entry, Mapping):
        name = getattr(entry, "name", None)
        if name is None:
            logger.debug("Skipping tool call entry without a name: %r", entry)
            return None
        entry = {
            "name": name,
            "args": getattr(entry, "args", None) or getattr(entry, "arguments", None),
            "id": getattr(entry, "id", None),
        }
    try:
        if isinstance(entry.get("function"), Mapping):
            return ToolCall.from_openai(entry)
        if entry.get("type") == "tool_use":
            return ToolCall.from_anthropic(entry)
        if entry.get("name"):
            return ToolCall.from_langchain(entry)
    except (KeyError, TypeError) as exc:
        logger.debug("Skipping malformed tool call entry %r: %s", entry, exc)
        return None
    logger.debug("Skipping tool call entry without a name: %r", entry)
    return None


def _parse_all(entries: Any) -> list[ToolCall] | None:
    items = as_list(entries)
    if items is None:
        return None
    calls = []
    for entry in items:
        call = parse_tool_call(entry)
        if call is not None:
            calls.append(call)
    return calls


def _first_message(outputs: Any) -> Any:
    return dig(outputs, "generations", 0, 0, "message")


def from_serialized_message(outputs: Any) -> list[ToolCall] | None:
    """LangChain ``dumpd`` message: ``generations[0][0].message.kwargs.tool_calls``."""
    return _parse_all(dig(_first_message(outputs), "kwargs", "tool_calls"))


def from_message(outputs: Any) -> list[ToolCall] | None:
    """Plain message dump or object: ``generations[0][0].message.tool_calls``."""
    return _parse_all(dig(_first_message(outputs), "tool_calls"))


def from_additional_kwargs(outputs: Any) -> list[ToolCall] | None:
    """Legacy ``additional_kwargs.tool_calls`` in OpenAI wire format."""
    message = _first_message(outputs)
    raw = dig(message, "kwargs", "additional_kwargs", "tool_calls")
    if raw is None:
        raw = dig(message, "additional_kwargs", "tool_calls")
    return _parse_all(raw)


def from_openai_response(outputs: Any) -> list[ToolCall] | None:
    """Raw OpenAI chat completion: ``choices[0].message.tool_calls``."""
    return _parse_all(dig(outputs, "choices", 0, "message", "tool_calls"))


def from_anthropic_response(outputs: Any) -> list[ToolCall] | None:
    """Raw Anthropic message: ``tool_use`` blocks in ``content``."""
    blocks = as_list(dig(outputs, "content"))
    if blocks is None:
        return None
    tool_blocks = [b for b in blocks if dig(b, "type") == "tool_use"]
    return _parse_all(tool_blocks)


def from_direct(outputs: Any) -> list[ToolCall] | None:
    """``outputs.tool_calls`` set directly by a host."""
    return _parse_all(dig(outputs, "tool_calls"))


DEFAULT_TOOL_CALL_STRATEGIES: tuple[ToolCallStrategy, ...] = (
    from_serialized_message,
    from_message,
    from_additional_kwargs,
    from_openai_response,
    from_anthropic_response,
    from_direct,
)


class StrategyToolCallExtractor:
    """Tries tool-call strategies in order; implements ToolCallExtractor."""

    def __init__(self, strategies: Sequence[ToolCallStrategy] | None = None) -> None:
        self._strategies = (
            tuple(strategies) if strategies is not None else DEFAULT_TOOL_CALL_STRATEGIES
        )

    def extract(self, outputs: Any) -> list[ToolCall]:
        if outputs is None:
            return []
        for strategy in self._strategies:
            calls = strategy(outputs)
            if calls is not None:
                return calls
        return []


def extract_tool_call_id(run: Any) -> str | None:
    """Correlation id of an executed tool run, if the host recorded one.

    Looks at the returned tool message first (LangChain ``ToolMessage``,
    serialized or not), then at the inputs and extra metadata.
    """
    candidates = (
        dig(run.outputs, "output", "tool_call_id"),
        dig(run.outputs, "output", "kwargs", "tool_call_id"),
        dig(run.outputs, "tool_call_id"),
        dig(run.inputs, "tool_call_id"),
        dig(run.inputs, "tool_call", "id"),
        dig(run.extra, "tool_call_id"),
    )
    for value in candidates:
        if isinstance(value, str) and value:
            return value
    return None


def extract_tool_output(outputs: Any) -> Any:
    """The payload a tool run returned, unwrapped from its message envelope."""
    output = dig(outputs, "output")
    if output is None:
        return outputs
    content = dig(output, "kwargs", "content")
    if content is None and not isinstance(output, (str, bytes)):
        content = dig(output, "content")
    return content if content is not None else output
