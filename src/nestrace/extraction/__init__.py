"""Provider payload extraction: tool calls, token usage, model names."""

from nestrace.extraction.model_name import DEFAULT_MODEL_NAME_STRATEGIES, extract_model_name
from nestrace.extraction.tool_calls import (
    DEFAULT_TOOL_CALL_STRATEGIES,
    StrategyToolCallExtractor,
    extract_tool_call_id,
    extract_tool_output,
    parse_tool_call,
)
from nestrace.extraction.usage import (
    DEFAULT_USAGE_STRATEGIES,
    StrategyUsageExtractor,
    normalize_usage,
)

__all__ = [
    "DEFAULT_MODEL_NAME_STRATEGIES",
    "DEFAULT_TOOL_CALL_STRATEGIES",
    "DEFAULT_USAGE_STRATEGIES",
    "StrategyToolCallExtractor",
    "StrategyUsageExtractor",
    "extract_model_name",
    "extract_tool_call_id",
    "extract_tool_output",
    "normalize_usage",
    "parse_tool_call",
]
