"""File-backed run state with inter-process locking.

The graph (tasks, statuses, edges, blocker history) and the project context are
saved together in a single YAML file (``run_state.yaml``) inside the project's
``.conductor/`` directory. Every read and write holds an exclusive file lock.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from filelock import FileLock, Timeout
from loguru import logger

from ..constants import LOCK_FILE, LOCK_TIMEOUT_SECONDS, RUN_STATE_FILE, STATE_VERSION
from ..context.synthesizer import ProjectContext
from ..errors import ConductorError, StateError
from ..graph.task_graph import TaskGraph
from ..io_utils import _atomic_write_yaml, _load_data_with_error
from ..utils import _now_iso


class RunStateStore:
    """Persist and restore one orchestration run.

    Parameters
    ----------
    state_dir:
        Path to the ``.conductor/`` directory for the project.
    """

    def __init__(self, state_dir: Path, lock_timeout: float = LOCK_TIMEOUT_SECONDS) -> None:
        self.state_dir = state_dir
        self.state_path = state_dir / RUN_STATE_FILE
        self._lock = FileLock(str(state_dir / LOCK_FILE), timeout=lock_timeout)

    def exists(self) -> bool:
        return self.state_path.exists()

    def save(self, graph: TaskGraph, context: Optional[ProjectContext] = None) -> None:
        payload: dict[str, Any] = {
            "version": STATE_VERSION,
            "saved_at": _now_iso(),
            "graph": graph.to_dict(),
            "context": (context or ProjectContext()).to_dict(),
        }
        self.state_dir.mkdir(parents=True, exist_ok=True)
        try:
            with self._lock:
                _atomic_write_yaml(self.state_path, payload)
        except Timeout as exc:
            raise StateError(f"Timed out waiting for lock on {self.state_path}") from exc
        logger.debug("Saved run state ({} tasks) to {}", len(graph), self.state_path)

    def load(self) -> tuple[TaskGraph, ProjectContext]:
        """Load the persisted graph and context.

        Returns an empty graph and context when nothing has been saved yet.

        Raises:
            StateError: If the file is unreadable, from a newer version, or
                describes an invalid graph (unknown ids, cycles).
        """
        if not self.state_path.exists():
            return TaskGraph(), ProjectContext()

        try:
            with self._lock:
                data, err = _load_data_with_error(self.state_path, {})
        except Timeout as exc:
            raise StateError(f"Timed out waiting for lock on {self.state_path}") from exc
        if err:
            raise StateError(f"Cannot read run state: {err}")

        version = data.get("version", STATE_VERSION)
        if not isinstance(version, int) or version > STATE_VERSION:
            raise StateError(f"Unsupported run state version {version!r} in {self.state_path.name}")

        graph_raw = data.get("graph") or {}
        context_raw = data.get("context") or {}
        if not isinstance(graph_raw, dict) or not isinstance(context_raw, dict):
            raise StateError(f"{self.state_path.name}: 'graph' and 'context' must be mappings")

        try:
            graph = TaskGraph.from_dict(graph_raw)
            context = ProjectContext.from_dict(context_raw)
        except (ConductorError, KeyError, TypeError, ValueError) as exc:
            raise StateError(f"{self.state_path.name}: invalid run state: {exc}") from exc

        logger.debug("Loaded run state ({} tasks) from {}", len(graph), self.state_path)
        return graph, context

    def clear(self) -> None:
        with self._lock:
            self.state_path.unlink(missing_ok=True)
