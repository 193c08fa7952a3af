"""Token usage extraction strategies.

Each strategy is a pure function ``(outputs) -> TokenUsage | None``. They
are tried in order and the first hit wins. Different providers report
usage under different paths and field names; the strategies normalise
all of them onto :class:`~nestrace.protocols.TokenUsage`.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

from nestrace.extraction._paths import dig, first_int
from nestrace.protocols import TokenUsage

UsageStrategy = Callable[[Any], "TokenUsage | None"]

_INPUT_KEYS = ("input_tokens", "prompt_tokens", "promptTokens", "inputTokens")
_OUTPUT_KEYS = ("output_tokens", "completion_tokens", "completionTokens", "outputTokens")
_TOTAL_KEYS = ("total_tokens", "totalTokens")


def normalize_usage(raw: Any) -> TokenUsage | None:
    """Normalise a provider usage dict/object to TokenUsage.

    Returns None when neither input nor output counts are present.
    A missing total is computed as input + output.
    """
    if raw is None:
        return None
    input_tokens = first_int(raw, *_INPUT_KEYS)
    output_tokens = first_int(raw, *_OUTPUT_KEYS)
    if input_tokens is None and output_tokens is None:
        return None
    input_tokens = input_tokens or 0
    output_tokens = output_tokens or 0
    total = first_int(raw, *_TOTAL_KEYS)
    if total is None:
        total = input_tokens + output_tokens
    return TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total)


def _first_message(outputs: Any) -> Any:
    return dig(outputs, "generations", 0, 0, "message")


def from_serialized_message(outputs: Any) -> TokenUsage | None:
    """LangChain ``dumpd`` message: ``generations[0][0].message.kwargs.usage_metadata``."""
    return normalize_usage(dig(_first_message(outputs), "kwargs", "usage_metadata"))


def from_message(outputs: Any) -> TokenUsage | None:
    """Plain message dump or object: ``generations[0][0].message.usage_metadata``."""
    return normalize_usage(dig(_first_message(outputs), "usage_metadata"))


def from_llm_output_usage_metadata(outputs: Any) -> TokenUsage | None:
    """``llm_output.usage_metadata`` (Vertex-style)."""
    llm_output = dig(outputs, "llm_output") or dig(outputs, "llmOutput")
    return normalize_usage(dig(llm_output, "usage_metadata"))


def from_llm_output_token_usage(outputs: Any) -> TokenUsage | None:
    """``llm_output.token_usage`` / ``llmOutput.tokenUsage`` (OpenAI via LangChain)."""
    llm_output = dig(outputs, "llm_output") or dig(outputs, "llmOutput")
    raw = dig(llm_output, "token_usage") or dig(llm_output, "tokenUsage")
    return normalize_usage(raw)


def from_raw_usage(outputs: Any) -> TokenUsage | None:
    """Raw provider response ``usage`` (OpenAI or Anthropic)."""
    return normalize_usage(dig(outputs, "usage"))


def from_direct(outputs: Any) -> TokenUsage | None:
    """``outputs.token_usage`` / ``outputs.tokenUsage`` set directly by a host."""
    return normalize_usage(dig(outputs, "token_usage") or dig(outputs, "tokenUsage"))


DEFAULT_USAGE_STRATEGIES: tuple[UsageStrategy, ...] = (
    from_serialized_message,
    from_message,
    from_llm_output_usage_metadata,
    from_llm_output_token_usage,
    from_raw_usage,
    from_direct,
)


class StrategyUsageExtractor:
    """Tries usage strategies in order; implements TokenUsageExtractor."""

    def __init__(self, strategies: Sequence[UsageStrategy] | None = None) -> None:
        self._strategies = tuple(strategies) if strategies is not None else DEFAULT_USAGE_STRATEGIES

    def extract(self, outputs: Any) -> TokenUsage | None:
        if outputs is None:
            return None
        for strategy in self._strategies:
            usage = strategy(outputs)
            if usage is not None:
                return usage
        return None
