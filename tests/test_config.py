"""Tests for TracerConfig, ClassifierConfig and PhaseRule."""

import pydantic
import pytest

from nestrace.exceptions import ConfigError
from nestrace.models.config import ClassifierConfig, PhaseRule, TracerConfig


class TestTracerConfig:
    def test_defaults(self):
        config = TracerConfig()
        assert config.name == "nested_tracer"
        assert config.default_phase == "unclassified"
        assert config.error_phase == "failed"
        assert config.emit_plumbing is False
        assert config.max_output_chars == 2000

    def test_frozen(self):
        config = TracerConfig()
        with pytest.raises(pydantic.ValidationError):
            config.default_phase = "other"

    def test_phase_for(self):
        config = TracerConfig(phase_rules={"planner": PhaseRule(phase="planning")})
        assert config.phase_for("planner") == "planning"
        assert config.phase_for("writer") == "unclassified"
        assert config.phase_for(None) == "unclassified"

    def test_negative_max_output_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            TracerConfig(max_output_chars=-1)

    def test_phase_rules_from_plain_dicts(self):
        config = TracerConfig.model_validate(
            {"phase_rules": {"planner": {"phase": "planning", "message": "Planning"}}}
        )
        assert config.phase_rules["planner"].message == "Planning"


class TestClassifierConfig:
    def test_bad_pattern_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            ClassifierConfig(model_name_pattern="(unclosed")

    def test_allow_list_coerced(self):
        config = ClassifierConfig(allow_list=["planner", "writer"])
        assert config.allow_list == frozenset({"planner", "writer"})


class TestFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("NESTRACE_DEFAULT_PHASE", "misc")
        monkeypatch.setenv("NESTRACE_EMIT_PLUMBING", "true")
        monkeypatch.setenv("NESTRACE_MAX_OUTPUT_CHARS", "100")
        config = TracerConfig.from_env()
        assert config.default_phase == "misc"
        assert config.emit_plumbing is True
        assert config.max_output_chars == 100

    def test_none_disables_truncation(self, monkeypatch):
        monkeypatch.setenv("NESTRACE_MAX_OUTPUT_CHARS", "None")
        assert TracerConfig.from_env().max_output_chars is None

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("NESTRACE_EMIT_PLUMBING", "1")
        assert TracerConfig.from_env(emit_plumbing=False).emit_plumbing is False

    def test_unset_environment(self, monkeypatch):
        for var in ("NESTRACE_DEFAULT_PHASE", "NESTRACE_EMIT_PLUMBING", "NESTRACE_MAX_OUTPUT_CHARS"):
            monkeypatch.delenv(var, raising=False)
        assert TracerConfig.from_env() == TracerConfig()

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("NESTRACE_MAX_OUTPUT_CHARS", "lots")
        with pytest.raises(ConfigError, match="NESTRACE_MAX_OUTPUT_CHARS"):
            TracerConfig.from_env()
