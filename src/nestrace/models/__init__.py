"""Domain models for nestrace."""

from nestrace.models.config import ClassifierConfig, PhaseRule, TracerConfig
from nestrace.models.events import CapturedEvent, EventKind
from nestrace.models.run import Run, RunKind

__all__ = [
    "CapturedEvent",
    "ClassifierConfig",
    "EventKind",
    "PhaseRule",
    "Run",
    "RunKind",
    "TracerConfig",
]
