"""Configuration models for nestrace.

TracerConfig holds per-tracer settings.
ClassifierConfig controls how run names are split into semantic nodes
and infrastructure plumbing.
PhaseRule maps a semantic node name onto a business phase.
"""

from __future__ import annotations

import os
import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from nestrace.exceptions import ConfigError

# Names the orchestration engine gives its own routing/wrapper runs.
DEFAULT_PLUMBING_NAMES: frozenset[str] = frozenset({
    "LangGraph",
    "tools",
    "RunnableSequence",
    "RunnableLambda",
    "RunnableParallel",
    "RunnableCallable",
    "Branch",
})

# Substrings that mark a synthetic run name.
DEFAULT_PLUMBING_MARKERS: tuple[str, ...] = (
    "<",
    ">",
    "ChannelWrite",
    "ChannelRead",
)

DEFAULT_MODEL_NAME_PATTERN = r"^Chat[A-Z]\w*$"


class PhaseRule(BaseModel):
    """Business phase assigned to a semantic node."""

    model_config = {"frozen": True}

    phase: str
    message: Optional[str] = None  # phase:start message; None = generated


class ClassifierConfig(BaseModel):
    """Controls the semantic-node / plumbing split.

    ``allow_list`` overrides the heuristic entirely: when it is set, only
    the listed names are semantic.
    """

    model_config = {"frozen": True}

    allow_list: Optional[frozenset[str]] = None
    extra_plumbing_names: frozenset[str] = frozenset()
    extra_plumbing_markers: tuple[str, ...] = ()
    model_name_pattern: str = DEFAULT_MODEL_NAME_PATTERN

    @field_validator("model_name_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid model_name_pattern: {exc}") from exc
        return value


class TracerConfig(BaseModel):
    """Per-tracer configuration."""

    model_config = {"frozen": True}

    name: str = "nested_tracer"
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    phase_rules: dict[str, PhaseRule] = Field(default_factory=dict)
    default_phase: str = "unclassified"
    error_phase: str = "failed"
    emit_plumbing: bool = False
    capture_outputs: bool = True
    max_output_chars: Optional[int] = 2000  # None = no truncation

    @field_validator("max_output_chars")
    @classmethod
    def _check_max_output(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("max_output_chars must be >= 0")
        return value

    def phase_for(self, node_name: str | None) -> str:
        """Phase of a semantic node, or the default phase."""
        if node_name is not None:
            rule = self.phase_rules.get(node_name)
            if rule is not None:
                return rule.phase
        return self.default_phase

    @classmethod
    def from_env(cls, **overrides: object) -> TracerConfig:
        """Build a config from ``NESTRACE_*`` environment variables.

        Recognised: ``NESTRACE_DEFAULT_PHASE``, ``NESTRACE_EMIT_PLUMBING``
        (``1``/``true``/``yes``), ``NESTRACE_MAX_OUTPUT_CHARS`` (int, or
        ``none`` to disable truncation). Keyword overrides win.

        Raises:
            ConfigError: If an environment value cannot be parsed.
        """
        values: dict[str, object] = {}
        default_phase = os.environ.get("NESTRACE_DEFAULT_PHASE")
        if default_phase:
            values["default_phase"] = default_phase
        emit_plumbing = os.environ.get("NESTRACE_EMIT_PLUMBING")
        if emit_plumbing is not None:
            values["emit_plumbing"] = emit_plumbing.strip().lower() in ("1", "true", "yes")
        max_chars = os.environ.get("NESTRACE_MAX_OUTPUT_CHARS")
        if max_chars is not None:
            if max_chars.strip().lower() == "none":
                values["max_output_chars"] = None
            else:
                try:
                    values["max_output_chars"] = int(max_chars)
                except ValueError:
                    raise ConfigError(
                        f"NESTRACE_MAX_OUTPUT_CHARS must be an integer, got {max_chars!r}"
                    ) from None
        values.update(overrides)
        return cls(**values)
