"""Shared test fixtures for nestrace.

Provides tracer, sink and SQLite engine fixtures plus helpers that build
runs and LangChain-shaped model outputs.
"""

import uuid

import pytest

from nestrace.models.config import TracerConfig
from nestrace.models.run import Run
from nestrace.sinks.memory import MemorySink
from nestrace.storage.engine import create_trace_engine, init_db
from nestrace.tracer import NestedTracer


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    eng = create_trace_engine(":memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def tracer(memory_sink: MemorySink):
    """Tracer with default config writing into ``memory_sink``."""
    t = NestedTracer(TracerConfig(), sinks=[memory_sink])
    yield t
    t.close()


# ------------------------------------------------------------------
# Shared test helpers
# ------------------------------------------------------------------

def make_run(name: str, *, kind: str = "chain", parent: "Run | str | None" = None, **kwargs) -> Run:
    """Build a Run with a fresh id under ``parent`` (a Run or an id)."""
    parent_id = parent.run_id if isinstance(parent, Run) else parent
    return Run(
        run_id=kwargs.pop("run_id", None) or uuid.uuid4().hex,
        name=name,
        kind=kind,
        parent_run_id=parent_id,
        **kwargs,
    )


def tool_call(name: str, args: "dict | None" = None, call_id: "str | None" = None) -> dict:
    """A LangChain ``ToolCall`` dict."""
    return {
        "name": name,
        "args": args or {},
        "id": call_id or f"call_{uuid.uuid4().hex[:8]}",
        "type": "tool_call",
    }


def chat_outputs(
    *,
    tool_calls: "list[dict] | None" = None,
    usage: "dict | None" = None,
    model_name: "str | None" = None,
    content: str = "",
) -> dict:
    """Serialized LLMResult as a LangChain tracer stores it on a model run."""
    kwargs: dict = {"content": content, "tool_calls": list(tool_calls or [])}
    if usage is not None:
        kwargs["usage_metadata"] = usage
    if model_name is not None:
        kwargs["response_metadata"] = {"model_name": model_name}
    message = {
        "lc": 1,
        "type": "constructor",
        "id": ["langchain", "schema", "messages", "AIMessage"],
        "kwargs": kwargs,
    }
    return {
        "generations": [[{"text": content, "type": "ChatGeneration", "message": message}]],
        "llm_output": None,
    }
