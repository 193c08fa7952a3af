"""Hierarchy resolution over the run store.

Walks parent pointers to compute ancestor chains, execution paths, nesting
levels, and the semantic node responsible for a run. Every operation is a
pure function of the store's current contents and never raises on
degenerate input: a missing parent simply ends the walk.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from nestrace.models.config import (
    DEFAULT_PLUMBING_MARKERS,
    DEFAULT_PLUMBING_NAMES,
    ClassifierConfig,
)
from nestrace.models.run import Run, RunKind

if TYPE_CHECKING:
    from nestrace.store import RunStore

logger = logging.getLogger(__name__)

UNKNOWN_NODE = "unknown"

# Only chain-like runs can be semantic nodes; models, tools and
# retrievers are always leaves of the business hierarchy.
_NODE_KINDS = frozenset({RunKind.CHAIN, RunKind.OTHER})


class NodeClassifier:
    """Splits run names into semantic nodes and infrastructure plumbing."""

    def __init__(self, config: ClassifierConfig | None = None) -> None:
        self._config = config or ClassifierConfig()
        self._plumbing_names = DEFAULT_PLUMBING_NAMES | self._config.extra_plumbing_names
        self._markers = DEFAULT_PLUMBING_MARKERS + tuple(self._config.extra_plumbing_markers)
        self._model_pattern = re.compile(self._config.model_name_pattern)

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    def is_semantic_node(self, name: str | None) -> bool:
        """True if ``name`` looks like a user-defined processing step."""
        if not name:
            return False
        if self._config.allow_list is not None:
            return name in self._config.allow_list
        if name in self._plumbing_names:
            return False
        if name.startswith("__"):
            return False
        if any(marker in name for marker in self._markers):
            return False
        if name.lower().startswith("branch:"):
            return False
        if self._model_pattern.match(name):
            return False
        return True


class HierarchyResolver:
    """Computes hierarchy attribution for runs in a RunStore."""

    def __init__(self, store: RunStore, classifier: NodeClassifier | None = None) -> None:
        self._store = store
        self._classifier = classifier or NodeClassifier()

    @property
    def classifier(self) -> NodeClassifier:
        return self._classifier

    def is_semantic_node(self, name: str | None) -> bool:
        return self._classifier.is_semantic_node(name)

    def is_semantic(self, run: Run) -> bool:
        """True if the run is a chain-like run with a semantic name."""
        return run.kind in _NODE_KINDS and self._classifier.is_semantic_node(run.name)

    def ancestor_chain(self, run: Run) -> list[Run]:
        """Ancestors of ``run``, root first, excluding ``run`` itself.

        Stops early at a parent identity missing from the store.
        """
        chain: list[Run] = []
        seen = {run.run_id}
        parent_id = run.parent_run_id
        while parent_id is not None:
            parent = self._store.get(parent_id)
            if parent is None:
                logger.debug("Ancestor walk for %s stopped at missing run %s", run.run_id, parent_id)
                break
            if parent.run_id in seen:
                logger.warning("Cycle in run hierarchy at %s; truncating walk", parent.run_id)
                break
            seen.add(parent.run_id)
            chain.append(parent)
            parent_id = parent.parent_run_id
        chain.reverse()
        return chain

    def execution_path(self, run: Run) -> list[str]:
        """Semantic names from root to ``run`` (inclusive when it is semantic)."""
        path = [r.name for r in self.ancestor_chain(run) if self.is_semantic(r)]
        if self.is_semantic(run):
            path.append(run.name)
        return path

    def nesting_level(self, run: Run) -> int:
        return max(len(self.execution_path(run)) - 1, 0)

    def nearest_semantic_ancestor(self, run: Run) -> Run | None:
        """First semantic run walking upward from ``run`` itself, inclusive."""
        if self.is_semantic(run):
            return run
        for ancestor in reversed(self.ancestor_chain(run)):
            if self.is_semantic(ancestor):
                return ancestor
        logger.debug("No semantic ancestor for run %s (%s)", run.run_id, run.name)
        return None

    def nearest_semantic_ancestor_name(self, run: Run) -> str:
        """Name of :meth:`nearest_semantic_ancestor`, or ``"unknown"``."""
        owner = self.nearest_semantic_ancestor(run)
        return owner.name if owner is not None else UNKNOWN_NODE

    def parent_node_name(self, run: Run) -> str | None:
        """Nearest semantic strict ancestor of ``run``."""
        for ancestor in reversed(self.ancestor_chain(run)):
            if self.is_semantic(ancestor):
                return ancestor.name
        return None

    def master_node(self, run: Run) -> str | None:
        """Root-most semantic name: the top-level operation behind ``run``."""
        path = self.execution_path(run)
        return path[0] if path else None

    def immediate_subgraph_node(self, run: Run) -> str | None:
        """Second semantic name: the first-level nested operation."""
        path = self.execution_path(run)
        return path[1] if len(path) > 1 else None

    def breadcrumbs(self, run: Run) -> str:
        """Unfiltered chain rendered as ``kind:name > kind:name``."""
        return " > ".join(
            f"{r.kind.value}:{r.name}" for r in [*self.ancestor_chain(run), run]
        )
