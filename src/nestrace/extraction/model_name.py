"""Model name extraction for model-invocation runs.

Integrations store the model identifier in different places; the
strategies below are tried in order, falling back to the run name.
"""

from __future__ import annotations

from typing import Callable

from nestrace.extraction._paths import dig
from nestrace.models.run import Run

ModelNameStrategy = Callable[[Run], "str | None"]


def _str_or_none(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def from_extra(run: Run) -> str | None:
    return _str_or_none(dig(run.extra, "model_name"))


def from_invocation_params(run: Run) -> str | None:
    params = dig(run.extra, "invocation_params")
    return _str_or_none(dig(params, "model")) or _str_or_none(dig(params, "model_name"))


def from_ls_metadata(run: Run) -> str | None:
    return _str_or_none(dig(run.extra, "metadata", "ls_model_name"))


def from_response_metadata(run: Run) -> str | None:
    """Versioned name reported back by the provider (e.g. ``gpt-4o-mini-2024-07-18``)."""
    message = dig(run.outputs, "generations", 0, 0, "message")
    return (
        _str_or_none(dig(message, "kwargs", "response_metadata", "model_name"))
        or _str_or_none(dig(message, "response_metadata", "model_name"))
        or _str_or_none(dig(run.outputs, "model"))
    )


def from_serialized(run: Run) -> str | None:
    return _str_or_none(dig(run.extra, "serialized", "kwargs", "model"))


DEFAULT_MODEL_NAME_STRATEGIES: tuple[ModelNameStrategy, ...] = (
    from_response_metadata,
    from_extra,
    from_invocation_params,
    from_ls_metadata,
    from_serialized,
)


def extract_model_name(
    run: Run,
    strategies: tuple[ModelNameStrategy, ...] = DEFAULT_MODEL_NAME_STRATEGIES,
) -> str:
    """Best-known model identifier for ``run``; the run name as a last resort."""
    for strategy in strategies:
        name = strategy(run)
        if name is not None:
            return name
    return run.name or "unknown"
