"""LangChain / LangGraph adapter.

Requires the ``langchain`` extra (``pip install nestrace[langchain]``).

Usage::

    from nestrace.integrations.langchain import LangChainNestedTracer

    handler = LangChainNestedTracer(sinks=[ConsoleSink()])
    graph.invoke(inputs, config={"callbacks": [handler]})
    print(handler.tracer.get_execution_summary())
    handler.close()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable
from uuid import UUID

try:
    from langchain_core.tracers.base import BaseTracer
except ImportError:
    raise ImportError(
        "LangChain integration not installed. Install with: pip install nestrace[langchain]"
    ) from None

from nestrace.models.run import Run
from nestrace.tracer import NestedTracer

if TYPE_CHECKING:
    from langchain_core.tracers.schemas import Run as LangChainRun

    from nestrace.models.config import TracerConfig
    from nestrace.protocols import EventSink

logger = logging.getLogger(__name__)


def convert_run(lc_run: LangChainRun) -> Run:
    """Translate a LangChain tracer ``Run`` into a nestrace Run.

    The serialized constructor payload is folded into ``extra`` so that
    model-name lookups can find ``serialized.kwargs.model``.
    """
    extra: dict[str, Any] = dict(lc_run.extra or {})
    serialized = getattr(lc_run, "serialized", None)
    if serialized and "serialized" not in extra:
        extra["serialized"] = serialized
    return Run(
        run_id=str(lc_run.id),
        name=lc_run.name,
        kind=lc_run.run_type,
        parent_run_id=str(lc_run.parent_run_id) if lc_run.parent_run_id else None,
        start_time=lc_run.start_time,
        end_time=lc_run.end_time,
        inputs=lc_run.inputs,
        outputs=lc_run.outputs,
        error=lc_run.error,
        extra=extra,
        tags=tuple(lc_run.tags or ()),
    )


class LangChainNestedTracer(BaseTracer):
    """LangChain callback handler that feeds a :class:`NestedTracer`.

    LangChain already tracks parent/child run identities; this handler
    mirrors each run into the tracer's own store on creation and seals
    it on completion or failure.
    """

    name: str = "nested_tracer"

    def __init__(
        self,
        config: TracerConfig | None = None,
        *,
        sinks: Iterable[EventSink] = (),
        tracer: NestedTracer | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.tracer = tracer if tracer is not None else NestedTracer(config, sinks=sinks)

    def _persist_run(self, run: LangChainRun) -> None:
        # Events are emitted as runs start and finish; nothing to persist.
        pass

    def _on_run_create(self, run: LangChainRun) -> None:
        self.tracer.on_run_start(convert_run(run))

    def _on_run_update(self, run: LangChainRun) -> None:
        if run.error is not None:
            self.tracer.on_run_error(
                str(run.id), error=run.error, end_time=run.end_time, outputs=run.outputs,
            )
        else:
            self.tracer.on_run_end(str(run.id), outputs=run.outputs, end_time=run.end_time)

    def on_custom_event(
        self,
        name: str,
        data: Any,
        *,
        run_id: UUID,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        self.tracer.on_custom_event(name, data, run_id=str(run_id))

    def close(self) -> None:
        self.tracer.close()
