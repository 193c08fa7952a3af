"""Run record store.

Append-only, identity-keyed table of runs for one orchestration
invocation. Owned by a NestedTracer instance and discarded with it.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Iterator

from nestrace.models.run import Run

logger = logging.getLogger(__name__)


class RunStore:
    """Thread-safe, insertion-ordered store of runs keyed by identity.

    Lookups are O(1). Records are immutable; sealing a run replaces the
    open record with its completed copy under the same key, which keeps
    the original insertion position.
    """

    def __init__(self) -> None:
        self._runs: dict[str, Run] = {}
        self._lock = threading.RLock()

    def add(self, run: Run) -> bool:
        """Insert a newly started run.

        Returns False (and keeps the existing record) if a run with the
        same identity was already recorded.
        """
        with self._lock:
            if run.run_id in self._runs:
                logger.warning("Run %s already recorded; ignoring duplicate start", run.run_id)
                return False
            if run.parent_run_id is not None and run.parent_run_id not in self._runs:
                logger.debug(
                    "Run %s (%s) references unrecorded parent %s",
                    run.run_id, run.name, run.parent_run_id,
                )
            self._runs[run.run_id] = run
            return True

    def get(self, run_id: str | None) -> Run | None:
        """Get a run by identity. Returns None if not found."""
        if run_id is None:
            return None
        return self._runs.get(str(run_id))

    def complete(
        self,
        run_id: str,
        *,
        outputs: Any = None,
        end_time: datetime | None = None,
    ) -> Run | None:
        """Seal a run as successfully completed.

        Returns the sealed run, or None if the run is unknown or was
        already sealed.
        """
        return self._seal(run_id, outputs=outputs, end_time=end_time, error=None)

    def fail(
        self,
        run_id: str,
        *,
        error: Any,
        outputs: Any = None,
        end_time: datetime | None = None,
    ) -> Run | None:
        """Seal a run as failed. Returns None if unknown or already sealed."""
        return self._seal(run_id, outputs=outputs, end_time=end_time, error=error)

    def _seal(
        self,
        run_id: str,
        *,
        outputs: Any,
        end_time: datetime | None,
        error: Any,
    ) -> Run | None:
        run_id = str(run_id)
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                logger.warning("Cannot seal unknown run %s", run_id)
                return None
            if not run.is_open:
                logger.warning("Run %s (%s) was already sealed", run_id, run.name)
                return None
            sealed = run.sealed(end_time=end_time, outputs=outputs, error=error)
            self._runs[run_id] = sealed
            return sealed

    def runs(self) -> list[Run]:
        """Snapshot of all runs in insertion order."""
        with self._lock:
            return list(self._runs.values())

    def open_runs(self) -> list[Run]:
        """Runs that never completed or failed."""
        with self._lock:
            return [r for r in self._runs.values() if r.is_open]

    def children(self, run_id: str) -> list[Run]:
        """Direct children of a run, in insertion order."""
        run_id = str(run_id)
        with self._lock:
            return [r for r in self._runs.values() if r.parent_run_id == run_id]

    def roots(self) -> list[Run]:
        """Runs with no parent, or whose parent was never recorded."""
        with self._lock:
            return [
                r for r in self._runs.values()
                if r.parent_run_id is None or r.parent_run_id not in self._runs
            ]

    def __contains__(self, run_id: object) -> bool:
        return str(run_id) in self._runs

    def __len__(self) -> int:
        return len(self._runs)

    def __iter__(self) -> Iterator[Run]:
        return iter(self.runs())
