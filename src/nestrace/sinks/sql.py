"""SQL event sink backed by SQLAlchemy.

Persists every event as a row in the ``events`` table, grouped by a
``trace_id`` per orchestration invocation. Works with any SQLAlchemy
URL; defaults to SQLite.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import timezone
from typing import TYPE_CHECKING

from sqlalchemy import Engine, func, select

from nestrace.exceptions import SinkClosedError
from nestrace.models.events import CapturedEvent
from nestrace.storage.engine import create_session_factory, create_trace_engine, init_db
from nestrace.storage.schema import EventRow

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def _to_row(event: CapturedEvent, trace_id: str) -> EventRow:
    record = event.to_dict()
    return EventRow(
        trace_id=trace_id,
        timestamp=event.timestamp.astimezone(timezone.utc),
        kind=record["kind"],
        phase=record["phase"],
        message=record["message"],
        run_id=record["run_id"],
        parent_run_id=record["parent_run_id"],
        node_name=record["node_name"],
        parent_node_name=record["parent_node_name"],
        execution_path_json=record["execution_path"],
        level=record["level"],
        metadata_json=record["metadata"] or None,
    )


def _from_row(row: EventRow) -> CapturedEvent:
    timestamp = row.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return CapturedEvent(
        kind=row.kind,
        phase=row.phase,
        message=row.message,
        run_id=row.run_id,
        node_name=row.node_name,
        metadata=row.metadata_json or {},
        timestamp=timestamp,
        parent_run_id=row.parent_run_id,
        parent_node_name=row.parent_node_name,
        execution_path=tuple(row.execution_path_json or ()),
        level=row.level,
    )


class SqlEventSink:
    """Writes events to a SQL database, one short transaction per event.

    Args:
        db_path: SQLite path or ``":memory:"`` (ignored with *url* or *engine*).
        url: SQLAlchemy URL.
        engine: Pre-built engine; the sink does not dispose engines it
            did not create.
        trace_id: Groups this invocation's events. Generated if omitted.
    """

    name = "sql"

    def __init__(
        self,
        db_path: str = ":memory:",
        *,
        url: str | None = None,
        engine: Engine | None = None,
        trace_id: str | None = None,
    ) -> None:
        self._owns_engine = engine is None
        self._engine = engine if engine is not None else create_trace_engine(db_path, url=url)
        init_db(self._engine)
        self._session_factory = create_session_factory(self._engine)
        self.trace_id = trace_id or uuid.uuid4().hex
        self._lock = threading.Lock()
        self._closed = False

    @property
    def engine(self) -> Engine:
        return self._engine

    def accept(self, event: CapturedEvent) -> None:
        with self._lock:
            if self._closed:
                raise SinkClosedError(self.name)
            with self._session_factory() as session:
                session.add(_to_row(event, self.trace_id))
                session.commit()

    def load(self) -> list[CapturedEvent]:
        """Events written under this sink's trace_id, in insertion order."""
        return load_events(self._engine, trace_id=self.trace_id)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._owns_engine:
            # An owned in-memory database vanishes with its engine.
            self._engine.dispose()


def load_events(engine: Engine, *, trace_id: str | None = None) -> list[CapturedEvent]:
    """Read stored events back, optionally for a single trace_id."""
    stmt = select(EventRow).order_by(EventRow.id)
    if trace_id is not None:
        stmt = stmt.where(EventRow.trace_id == trace_id)
    SessionLocal = create_session_factory(engine)
    with SessionLocal() as session:
        rows: Sequence[EventRow] = session.execute(stmt).scalars().all()
        return [_from_row(row) for row in rows]


def list_trace_ids(engine: Engine) -> list[str]:
    """Distinct trace ids in first-seen order."""
    SessionLocal = create_session_factory(engine)
    with SessionLocal() as session:
        rows = session.execute(
            select(EventRow.trace_id, func.min(EventRow.id))
            .group_by(EventRow.trace_id)
            .order_by(func.min(EventRow.id))
        ).all()
    return [r[0] for r in rows]
